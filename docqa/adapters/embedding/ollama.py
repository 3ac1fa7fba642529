"""Ollama embeddings.

Ollama has changed embedding endpoints across versions:
- Newer: POST /api/embed  {"model": "...", "input": ["...", ...]}
- Older: POST /api/embeddings {"model": "...", "prompt": "..."}

We prefer /api/embed (batch) and fall back to /api/embeddings.
"""

from __future__ import annotations

import logging

import httpx

from docqa.adapters.embedding.base import Embedder
from docqa.core.config import Settings

logger = logging.getLogger(__name__)


class OllamaEmbedder(Embedder):
    name = "ollama"

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None):
        self.base = settings.OLLAMA_BASE_URL.rstrip("/")
        self.model = settings.OLLAMA_EMBED_MODEL
        self._client = client or httpx.AsyncClient(timeout=120)

    async def embed(self, texts: list[str]) -> list[list[float]]:
        texts = [t if t is not None else "" for t in texts]
        if not texts:
            return []

        r = await self._client.post(f"{self.base}/api/embed", json={"model": self.model, "input": texts})
        if r.status_code == 200:
            embs = r.json().get("embeddings")
            if isinstance(embs, list) and embs and isinstance(embs[0], list):
                return embs
        elif r.status_code != 404:
            r.raise_for_status()

        logger.debug("/api/embed unavailable (status %s), using /api/embeddings", r.status_code)
        out: list[list[float]] = []
        for t in texts:
            r = await self._client.post(f"{self.base}/api/embeddings", json={"model": self.model, "prompt": t})
            r.raise_for_status()
            vec = r.json().get("embedding")
            if not vec:
                raise RuntimeError("Ollama embedding response missing 'embedding'")
            out.append(vec)
        return out

    async def ping(self) -> bool:
        try:
            r = await self._client.get(f"{self.base}/api/tags", timeout=3.0)
            return r.status_code == 200
        except httpx.HTTPError:
            return False

    async def aclose(self) -> None:
        await self._client.aclose()
