import logging
import re
from collections import Counter

from docqa.core.errors import DocQAError
from docqa.core.models import Chunk, ChunkMetadata, Document

logger = logging.getLogger(__name__)

# markdown headings, then a few canonical section names
MD_HEAD_RE = re.compile(r"^#{1,6}\s")
SECTION_RES = [
    re.compile(r"^(introduction|overview|summary|conclusion|abstract)", re.IGNORECASE),
    re.compile(r"^(chapter|section|part)\s+\d+", re.IGNORECASE),
    re.compile(r"^(methodology|results|discussion|analysis)", re.IGNORECASE),
]
ALLCAPS_RE = re.compile(r"^[A-Z\s]+$")

# (pattern, weight) pairs added on top of the 0.5 base score
IMPORTANCE_FACTORS = [
    (re.compile(r"\b(important|key|main|primary|critical|essential)\b", re.IGNORECASE), 0.2),
    (re.compile(r"\b(summary|conclusion|overview|abstract)\b", re.IGNORECASE), 0.15),
    (re.compile(r"\b(methodology|results|findings|analysis)\b", re.IGNORECASE), 0.1),
    (re.compile(r"\d+%|\d+\.\d+%"), 0.1),
    (re.compile(r"\b\d{4}\b"), 0.05),
    (re.compile(r"[A-Z][a-z]+ [A-Z][a-z]+"), 0.05),
]

STOP_WORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by",
    "is", "are", "was", "were", "be", "been", "being", "have", "has", "had", "do", "does", "did",
    "will", "would", "could", "should", "may", "might", "can", "this", "that", "these", "those",
    "i", "you", "he", "she", "it", "we", "they", "me", "him", "her", "us", "them",
})
NON_WORD_RE = re.compile(r"[^\w\s]")

DEFAULT_MERGE_THRESHOLD = 0.7


def extract_section(content: str) -> str:
    lines = content.split("\n")
    for line in lines:
        if MD_HEAD_RE.match(line):
            return MD_HEAD_RE.sub("", line, count=1).strip()
    for line in lines:
        for pattern in SECTION_RES:
            if pattern.match(line):
                return line.strip()
    return "General"


def extract_heading(content: str) -> str:
    lines = content.split("\n")
    for line in lines:
        if MD_HEAD_RE.match(line):
            return MD_HEAD_RE.sub("", line, count=1).strip()
    for line in lines:
        s = line.strip()
        if s and len(s) < 100 and ALLCAPS_RE.match(s):
            return s
    for line in lines:
        s = line.strip()
        if s.endswith(":") and len(s) < 100:
            return s[:-1].strip()
    return ""


def calculate_importance(content: str) -> float:
    score = 0.5
    for pattern, weight in IMPORTANCE_FACTORS:
        if pattern.search(content):
            score += weight

    word_count = len(content.split())
    if word_count > 50:
        score += 0.1
    if word_count > 100:
        score += 0.05
    return max(0.0, min(score, 1.0))


def extract_keywords(content: str, max_keywords: int = 10) -> list[str]:
    words = NON_WORD_RE.sub("", content.lower()).split()
    counts = Counter(w for w in words if len(w) > 3 and w not in STOP_WORDS)
    # Counter keeps first-seen order, so the stable sort breaks ties by appearance
    ranked = sorted(counts.items(), key=lambda kv: kv[1], reverse=True)
    return [w for w, _ in ranked[:max_keywords]]


def build_metadata(content: str) -> ChunkMetadata:
    return ChunkMetadata(
        section=extract_section(content),
        heading=extract_heading(content),
        importance=calculate_importance(content),
        keywords=extract_keywords(content),
    )


class DocumentChunker:
    """Splits document text into overlapping, boundary-aware chunks."""

    def __init__(self, chunk_size: int = 1000, chunk_overlap: int = 200):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if chunk_overlap < 0:
            raise ValueError("chunk_overlap must be non-negative")
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap

    def _window_end(self, content: str, start: int) -> int:
        end = min(start + self.chunk_size, len(content))
        if end >= len(content):
            return end
        # closest sentence end / newline / space at or before the raw boundary
        break_point = max(
            content.rfind(".", 0, end + 1),
            content.rfind("\n", 0, end + 1),
            content.rfind(" ", 0, end + 1),
        )
        if break_point > start + self.chunk_size * 0.5:
            return break_point + 1
        return end

    def chunk_document(self, doc: Document) -> list[Chunk]:
        if not doc.content or not doc.content.strip():
            raise DocQAError.missing_content(doc.doc_id)

        content = doc.content
        chunks: list[Chunk] = []
        start = 0
        while start < len(content):
            end = self._window_end(content, start)
            text = content[start:end].strip()
            if text:
                chunks.append(Chunk(
                    chunk_id=f"{doc.doc_id}_chunk_{len(chunks)}",
                    doc_id=doc.doc_id,
                    content=text,
                    start_index=start,
                    end_index=end,
                    metadata=build_metadata(text),
                ))
            if end >= len(content):
                break
            next_start = end - self.chunk_overlap
            if next_start <= start:
                next_start = end
            start = next_start

        logger.debug("chunked %s into %d chunks", doc.doc_id, len(chunks))
        return chunks


def jaccard_similarity(a: str, b: str) -> float:
    """Jaccard similarity over lowercase whitespace tokens.

    Repeated tokens count with their multiplicity (min over max of the two
    token bags), which reduces to plain set Jaccard when no word repeats.
    """
    bag_a = Counter(a.lower().split())
    bag_b = Counter(b.lower().split())
    union = sum((bag_a | bag_b).values())
    if not union:
        return 0.0
    return sum((bag_a & bag_b).values()) / union


def merge_similar_chunks(chunks: list[Chunk], threshold: float = DEFAULT_MERGE_THRESHOLD) -> list[Chunk]:
    if len(chunks) <= 1:
        return chunks

    merged: list[Chunk] = []
    current = chunks[0]
    for nxt in chunks[1:]:
        if jaccard_similarity(current.content, nxt.content) > threshold:
            keywords = list(dict.fromkeys([*current.metadata.keywords, *nxt.metadata.keywords]))
            current = current.model_copy(update={
                "content": f"{current.content} {nxt.content}",
                "end_index": nxt.end_index,
                # the old vector no longer describes the merged text
                "embedding": None,
                "metadata": current.metadata.model_copy(update={"keywords": keywords}),
            })
        else:
            merged.append(current)
            current = nxt
    merged.append(current)

    if len(merged) != len(chunks):
        logger.debug("merged %d chunks into %d", len(chunks), len(merged))
    return merged
