"""Service wiring.

Everything the API needs is built here from a ``Settings`` object and owned
by one ``ServiceContainer``. Tests pass their own embedder/llm/store.
"""

from __future__ import annotations

import logging

from docqa.adapters.embedding.base import Embedder
from docqa.adapters.llm.base import LLM
from docqa.adapters.vector.base import VectorIndex
from docqa.core.config import Settings
from docqa.core.retry import RetryPolicy
from docqa.services.chunk_service import DocumentChunker
from docqa.services.pipeline_service import DocumentProcessor
from docqa.services.rag_service import QueryService
from docqa.services.retrieve_service import Retriever
from docqa.services.store_service import DocumentStore

logger = logging.getLogger(__name__)


def get_embedder(settings: Settings) -> Embedder | None:
    backend = (settings.EMBED_BACKEND or "ollama").lower()
    if backend in {"none", "off", "lexical"}:
        return None
    if backend == "openai":
        from docqa.adapters.embedding.openai import OpenAIEmbedder
        return OpenAIEmbedder(settings)
    from docqa.adapters.embedding.ollama import OllamaEmbedder
    return OllamaEmbedder(settings)


def get_llm(settings: Settings) -> LLM:
    if (settings.LLM_PROVIDER or "").lower() == "openai":
        from docqa.adapters.llm.openai import OpenAILLM
        return OpenAILLM(settings)
    from docqa.adapters.llm.ollama import OllamaLLM
    return OllamaLLM(settings)


def get_vector_index(settings: Settings) -> VectorIndex | None:
    if (settings.VECTOR_BACKEND or "none").lower() == "qdrant":
        from docqa.adapters.vector.qdrant import QdrantVectorIndex
        return QdrantVectorIndex(settings)
    return None


_UNSET = object()


class ServiceContainer:
    def __init__(self, settings: Settings, *, store=None, embedder=_UNSET, llm=None, vector_index=_UNSET):
        self.settings = settings
        self.store = store or DocumentStore(settings.DB_PATH)
        self.embedder = get_embedder(settings) if embedder is _UNSET else embedder
        self.llm = llm or get_llm(settings)
        self.vector_index = get_vector_index(settings) if vector_index is _UNSET else vector_index
        self.policy = RetryPolicy.from_settings(settings)

        self.chunker = DocumentChunker(settings.CHUNK_SIZE, settings.CHUNK_OVERLAP)
        self.processor = DocumentProcessor(
            self.store,
            self.chunker,
            embedder=self.embedder,
            vector_index=self.vector_index,
            policy=self.policy,
            merge_chunks=settings.MERGE_SIMILAR_CHUNKS,
            merge_threshold=settings.MERGE_THRESHOLD,
            embed_concurrency=settings.EMBED_CONCURRENCY,
            timeout=settings.PROCESSING_TIMEOUT,
        )
        self.retriever = Retriever(
            self.store,
            embedder=self.embedder,
            vector_index=self.vector_index,
            policy=self.policy,
            prefetch=settings.VECTOR_PREFETCH,
        )
        self.queries = QueryService(
            self.store,
            self.retriever,
            self.llm,
            policy=self.policy,
            max_query_length=settings.MAX_QUERY_LENGTH,
            snippet_chars=settings.CONTEXT_SNIPPET_CHARS,
        )

    def init(self) -> None:
        self.store.init()
        self.processor.recover_interrupted()
        logger.info(
            "services ready (embeddings=%s, llm=%s, vector_index=%s)",
            getattr(self.embedder, "name", "none"),
            self.llm.name,
            type(self.vector_index).__name__ if self.vector_index else "none",
        )

    async def close(self) -> None:
        """Close every client and the store, then re-raise the first close failure."""
        errors = []
        for client in (self.embedder, self.llm, self.vector_index):
            if client is None:
                continue
            try:
                await client.aclose()
            except Exception as e:
                logger.exception("failed to close %s", type(client).__name__)
                errors.append(e)
        self.store.close()
        if errors:
            raise errors[0]

    async def health(self) -> dict:
        checks = {"store": self.store.ping(), "llm": await self.llm.ping()}
        if self.embedder is not None:
            checks["embeddings"] = await self.embedder.ping()
        if self.vector_index is not None:
            checks["vector_index"] = await self.vector_index.ping()

        if not checks["store"]:
            status = "unhealthy"
        elif all(checks.values()):
            status = "healthy"
        else:
            status = "degraded"
        return {"status": status, "deps": checks, "retrieval_mode": self.retriever.mode}
