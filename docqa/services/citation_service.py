from __future__ import annotations

from docqa.core.models import QuerySource, RankedChunk


def format_sources(results: list[RankedChunk], doc_names: dict[str, str], snippet_chars: int = 600) -> list[QuerySource]:
    """Return citation payloads, numbered implicitly by list position."""
    sources: list[QuerySource] = []
    for r in results:
        c = r.chunk
        sources.append(
            QuerySource(
                document_id=c.doc_id,
                document_name=doc_names.get(c.doc_id) or c.doc_id,
                chunk_id=c.chunk_id,
                content=c.content[:snippet_chars],
                page_number=c.page_number,
                relevance_score=round(r.score, 4),
                start_index=c.start_index,
                end_index=c.end_index,
            )
        )
    return sources


def build_context(results: list[RankedChunk]) -> str:
    blocks = []
    for i, r in enumerate(results, 1):
        head = r.chunk.metadata.heading
        if head:
            blocks.append(f"[{i}] ({head})\n{r.chunk.content}")
        else:
            blocks.append(f"[{i}]\n{r.chunk.content}")
    return "\n\n".join(blocks)
