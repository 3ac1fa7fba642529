from __future__ import annotations

import asyncio
import logging
import math
from numbers import Real
from typing import Sequence

from docqa.core.errors import DocQAError
from docqa.core.models import Chunk, RankedChunk
from docqa.core.retry import RetryPolicy, retry_with_policy
from docqa.services.embed_service import embed_query
from docqa.services.similarity_service import Representation, similarity

logger = logging.getLogger(__name__)


def _check_query(query: Representation) -> None:
    if isinstance(query, str):
        if not query.strip():
            raise DocQAError.invalid_query("query text is empty")
        return
    if len(query) == 0:
        raise DocQAError.invalid_query("query vector is empty")
    for x in query:
        if isinstance(x, bool) or not isinstance(x, Real) or not math.isfinite(x):
            raise DocQAError.invalid_query("query vector must contain finite numbers")


def find_similar(
    query: Representation,
    candidates: Sequence[Chunk],
    document_ids: Sequence[str] | None = None,
    limit: int = 5,
) -> list[RankedChunk]:
    """Rank ``candidates`` against ``query``, best first, at most ``limit`` results.

    A text query is compared lexically against chunk content; a vector query
    by cosine against chunk embeddings, skipping chunks that have none.
    Equal scores keep their candidate order. Scores are returned in the
    ``RankedChunk`` envelope, the chunks themselves are not modified.
    """
    _check_query(query)
    if limit <= 0:
        return []

    scope = set(document_ids) if document_ids else None
    pool = [c for c in candidates if scope is None or c.doc_id in scope]
    if not pool:
        return []

    if isinstance(query, str):
        scored = [RankedChunk(chunk=c, score=similarity(query, c.content)) for c in pool]
    else:
        embedded = [c for c in pool if c.embedding]
        if not embedded:
            return []
        dims = {len(c.embedding) for c in embedded}
        if len(query) not in dims:
            raise DocQAError.invalid_query(
                f"query vector has dimension {len(query)}, candidates have {sorted(dims)}",
                dimension=len(query),
            )
        vec = list(query)
        scored = [
            RankedChunk(chunk=c, score=similarity(vec, c.embedding))
            for c in embedded
            if len(c.embedding) == len(vec)
        ]

    # sorted() is stable with reverse=True too
    scored = sorted(scored, key=lambda r: r.score, reverse=True)
    return scored[:limit]


class Retriever:
    """Resolves a question into ranked chunks.

    Candidates always come from the document store. With an embedder the
    question is embedded and ranked by cosine; without one it is ranked
    lexically. A configured vector index only narrows the candidate set.
    """

    def __init__(self, store, embedder=None, vector_index=None, policy: RetryPolicy | None = None, prefetch: int = 50):
        self.store = store
        self.embedder = embedder
        self.vector_index = vector_index
        self.policy = policy or RetryPolicy()
        self.prefetch = prefetch

    @property
    def mode(self) -> str:
        return "vector" if self.embedder is not None else "lexical"

    async def _candidates(self, qvec: list[float] | None, document_ids: list[str] | None) -> list[Chunk]:
        if qvec is not None and self.vector_index is not None:
            ids = await retry_with_policy(
                lambda: self.vector_index.search(qvec, self.prefetch, document_ids=document_ids),
                self.policy,
                label="vector index search",
            )
            if ids:
                return self.store.get_chunks(ids, processed_only=True)
            logger.info("vector index returned no candidates, ranking from the store")
        return self.store.list_chunks(document_ids, processed_only=True)

    async def retrieve(self, question: str, document_ids: list[str] | None = None, limit: int = 5) -> list[RankedChunk]:
        qvec = None
        if self.embedder is not None:
            qvec = await embed_query(self.embedder, question, self.policy)

        candidates = await self._candidates(qvec, document_ids)
        # ranking is CPU bound, keep it off the event loop
        results = await asyncio.to_thread(
            find_similar, qvec if qvec is not None else question, candidates, document_ids, limit
        )
        logger.debug(
            "retrieve mode=%s candidates=%d results=%d", self.mode, len(candidates), len(results)
        )
        return results
