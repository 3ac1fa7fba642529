import asyncio
import logging
import time

from docqa.core.errors import DocQAError
from docqa.core.models import Chunk, Document, DocumentStatus, ProcessResult
from docqa.core.retry import RetryPolicy, retry_with_policy, with_timeout
from docqa.services.chunk_service import DocumentChunker, merge_similar_chunks
from docqa.services.embed_service import embed_chunks

logger = logging.getLogger(__name__)


class DocumentProcessor:
    """Turns an uploaded document into stored, embedded chunks.

    Status goes uploading -> processing -> processed, or -> error on any
    failure. New chunks are written only after every embedding call has
    succeeded, so a failed attempt never exposes partial data.
    """

    def __init__(
        self,
        store,
        chunker: DocumentChunker,
        embedder=None,
        vector_index=None,
        policy: RetryPolicy | None = None,
        merge_chunks: bool = False,
        merge_threshold: float = 0.7,
        embed_concurrency: int = 8,
        timeout: float | None = 300.0,
    ):
        self.store = store
        self.chunker = chunker
        self.embedder = embedder
        self.vector_index = vector_index
        self.policy = policy or RetryPolicy()
        self.merge_chunks = merge_chunks
        self.merge_threshold = merge_threshold
        self.embed_concurrency = embed_concurrency
        self.timeout = timeout

    async def _build_chunks(self, doc: Document) -> list[Chunk]:
        chunks = self.chunker.chunk_document(doc)
        if self.merge_chunks:
            chunks = merge_similar_chunks(chunks, self.merge_threshold)
        if self.embedder is not None:
            chunks = await embed_chunks(self.embedder, chunks, self.policy, self.embed_concurrency)
        return chunks

    async def _index(self, doc: Document, chunks: list[Chunk]) -> None:
        embedded = [c for c in chunks if c.embedding]
        if self.vector_index is None or not embedded:
            return

        async def call():
            await self.vector_index.ensure_collection(dim=len(embedded[0].embedding))
            await self.vector_index.delete_by_doc_id(doc.doc_id)
            await self.vector_index.upsert(
                [c.chunk_id for c in embedded],
                [c.embedding for c in embedded],
                [{"doc_id": c.doc_id, "section": c.metadata.section} for c in embedded],
            )

        await retry_with_policy(call, self.policy, label="vector index upsert")

    async def _run(self, doc: Document) -> list[Chunk]:
        chunks = await self._build_chunks(doc)
        self.store.replace_chunks(doc.doc_id, chunks)
        await self._index(doc, chunks)
        return chunks

    def recover_interrupted(self) -> int:
        """Mark documents left in 'processing' by a previous run as failed."""
        stale = self.store.list_documents(status=DocumentStatus.PROCESSING)
        for doc in stale:
            self.store.replace_chunks(doc.doc_id, [])
            self.store.update_status(doc.doc_id, DocumentStatus.ERROR)
        if stale:
            logger.warning("marked %d interrupted documents as error", len(stale))
        return len(stale)

    async def process_document(self, doc_id: str, force_reprocess: bool = False) -> ProcessResult:
        doc = self.store.get_document(doc_id)
        if doc is None:
            raise DocQAError.not_found("Document", doc_id)

        if doc.status is DocumentStatus.PROCESSED and not force_reprocess:
            return ProcessResult(
                document_id=doc_id,
                status=doc.status,
                chunks_created=self.store.count_chunks(doc_id),
                processing_time=0,
                message="Document is already processed",
            )

        started = time.perf_counter()
        self.store.update_status(doc_id, DocumentStatus.PROCESSING)
        try:
            chunks = await with_timeout(
                self._run(doc), self.timeout, f"processing of {doc_id} timed out"
            )
        except (Exception, asyncio.CancelledError) as e:
            logger.exception("processing failed for %s", doc_id)
            # drop whatever may have been written before the failure
            self.store.replace_chunks(doc_id, [])
            self.store.update_status(doc_id, DocumentStatus.ERROR)
            if isinstance(e, DocQAError) and not e.retryable:
                raise
            if not isinstance(e, Exception):
                raise
            cause = e.kind.value if isinstance(e, DocQAError) else type(e).__name__
            raise DocQAError.processing_failed(
                doc_id, f"Document processing failed: {e}", cause=cause
            ) from e

        self.store.update_status(doc_id, DocumentStatus.PROCESSED)
        elapsed = int((time.perf_counter() - started) * 1000)
        logger.info("processed %s: %d chunks in %dms", doc_id, len(chunks), elapsed)
        return ProcessResult(
            document_id=doc_id,
            status=DocumentStatus.PROCESSED,
            chunks_created=len(chunks),
            processing_time=elapsed,
            message=f"Document processed successfully with {len(chunks)} chunks",
        )
