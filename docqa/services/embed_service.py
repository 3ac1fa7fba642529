"""Embedding orchestration.

Every chunk gets its own request; requests run concurrently (bounded by a
semaphore) and each one is retried with backoff. Nothing is returned until
all of them have completed.
"""

from __future__ import annotations

import asyncio
import logging

from docqa.core.errors import DocQAError
from docqa.core.models import Chunk
from docqa.core.retry import RetryPolicy, retry_with_policy

logger = logging.getLogger(__name__)


async def _embed_one(embedder, text: str, policy: RetryPolicy) -> list[float]:
    async def call():
        vecs = await embedder.embed([text])
        if len(vecs) != 1 or not vecs[0]:
            raise DocQAError.external(embedder.name, f"expected 1 embedding, got {len(vecs)}")
        return [float(x) for x in vecs[0]]

    return await retry_with_policy(call, policy, label=f"{embedder.name} embedding")


async def embed_query(embedder, text: str, policy: RetryPolicy) -> list[float]:
    return await _embed_one(embedder, text, policy)


async def embed_chunks(embedder, chunks: list[Chunk], policy: RetryPolicy, concurrency: int = 8) -> list[Chunk]:
    if not chunks:
        return []

    sem = asyncio.Semaphore(concurrency)

    async def run(chunk: Chunk) -> list[float]:
        async with sem:
            return await _embed_one(embedder, chunk.content, policy)

    vecs = await asyncio.gather(*(run(c) for c in chunks))
    dims = {len(v) for v in vecs}
    if len(dims) != 1:
        raise DocQAError.external(embedder.name, f"inconsistent embedding dimensions: {sorted(dims)}")

    logger.debug("embedded %d chunks (dim=%d)", len(chunks), len(vecs[0]))
    return [c.model_copy(update={"embedding": v}) for c, v in zip(chunks, vecs)]
