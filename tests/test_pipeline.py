import asyncio

import pytest

from conftest import FakeEmbedder
from docqa.core.errors import DocQAError, ErrorKind
from docqa.core.models import Document, DocumentStatus
from docqa.services.chunk_service import DocumentChunker
from docqa.services.pipeline_service import DocumentProcessor


def _processor(store, policy, embedder=None, **kw):
    return DocumentProcessor(store, DocumentChunker(200, 40), embedder=embedder, policy=policy, **kw)


def _upload(store, content, doc_id="doc_1"):
    store.save_document(Document(doc_id=doc_id, name="report.md", type="md", content=content))
    return doc_id


class RecordingIndex:
    def __init__(self):
        self.calls = []

    async def delete_by_doc_id(self, doc_id):
        self.calls.append(("delete", doc_id))

    async def ensure_collection(self, dim):
        self.calls.append(("ensure", dim))

    async def upsert(self, ids, vectors, payloads):
        self.calls.append(("upsert", list(ids)))


def test_process_document_success(store, policy, sample_text):
    doc_id = _upload(store, sample_text)
    embedder = FakeEmbedder()

    result = asyncio.run(_processor(store, policy, embedder).process_document(doc_id))

    chunks = store.list_chunks([doc_id])
    assert result.status is DocumentStatus.PROCESSED
    assert result.chunks_created == len(chunks) > 1
    assert result.message == f"Document processed successfully with {len(chunks)} chunks"
    assert all(c.embedding and len(c.embedding) == 27 for c in chunks)
    assert embedder.calls == len(chunks)

    doc = store.get_document(doc_id)
    assert doc.status is DocumentStatus.PROCESSED
    assert doc.processed_date is not None


def test_process_without_embedder_keeps_chunks_unembedded(store, policy, sample_text):
    doc_id = _upload(store, sample_text)

    asyncio.run(_processor(store, policy).process_document(doc_id))

    chunks = store.list_chunks([doc_id])
    assert chunks
    assert all(c.embedding is None for c in chunks)


def test_missing_content_marks_error(store, policy):
    doc_id = _upload(store, "   ")

    with pytest.raises(DocQAError) as ei:
        asyncio.run(_processor(store, policy, FakeEmbedder()).process_document(doc_id))

    assert ei.value.kind is ErrorKind.MISSING_CONTENT
    assert store.get_document(doc_id).status is DocumentStatus.ERROR
    assert store.count_chunks(doc_id) == 0


def test_unknown_document(store, policy):
    with pytest.raises(DocQAError) as ei:
        asyncio.run(_processor(store, policy).process_document("missing"))
    assert ei.value.kind is ErrorKind.NOT_FOUND


def test_transient_embedding_failure_is_retried(store, policy, sample_text):
    doc_id = _upload(store, sample_text)
    embedder = FakeEmbedder(fail_times=1)

    result = asyncio.run(_processor(store, policy, embedder).process_document(doc_id))

    assert result.status is DocumentStatus.PROCESSED
    assert embedder.calls == result.chunks_created + 1


def test_persistent_embedding_failure_leaves_no_chunks(store, policy, sample_text):
    doc_id = _upload(store, sample_text)

    with pytest.raises(DocQAError) as ei:
        asyncio.run(_processor(store, policy, FakeEmbedder(fail_times=1000)).process_document(doc_id))

    assert ei.value.kind is ErrorKind.PROCESSING_FAILED
    assert ei.value.details["cause"] == "EXTERNAL_SERVICE_ERROR"
    assert ei.value.__cause__.kind is ErrorKind.EXTERNAL_SERVICE
    assert store.get_document(doc_id).status is DocumentStatus.ERROR
    assert store.count_chunks(doc_id) == 0


def test_failed_reprocess_drops_previous_chunks(store, policy, sample_text):
    doc_id = _upload(store, sample_text)
    asyncio.run(_processor(store, policy, FakeEmbedder()).process_document(doc_id))
    assert store.count_chunks(doc_id) > 0

    with pytest.raises(DocQAError):
        asyncio.run(
            _processor(store, policy, FakeEmbedder(fail_times=1000)).process_document(doc_id, force_reprocess=True)
        )

    assert store.get_document(doc_id).status is DocumentStatus.ERROR
    assert store.count_chunks(doc_id) == 0


def test_processing_timeout(store, policy, sample_text):
    doc_id = _upload(store, sample_text)
    processor = _processor(store, policy, FakeEmbedder(delay=1.0), timeout=0.05)

    with pytest.raises(DocQAError) as ei:
        asyncio.run(processor.process_document(doc_id))

    assert ei.value.kind is ErrorKind.PROCESSING_FAILED
    assert ei.value.details["cause"] == "TIMEOUT"
    assert store.get_document(doc_id).status is DocumentStatus.ERROR
    assert store.count_chunks(doc_id) == 0


def test_already_processed_is_a_no_op(store, policy, sample_text):
    doc_id = _upload(store, sample_text)
    processor = _processor(store, policy, FakeEmbedder())
    first = asyncio.run(processor.process_document(doc_id))

    embedder = FakeEmbedder()
    again = asyncio.run(_processor(store, policy, embedder).process_document(doc_id))

    assert again.message == "Document is already processed"
    assert again.chunks_created == first.chunks_created
    assert embedder.calls == 0


def test_force_reprocess_rebuilds_chunks(store, policy, sample_text):
    doc_id = _upload(store, sample_text)
    asyncio.run(_processor(store, policy).process_document(doc_id))

    result = asyncio.run(_processor(store, policy, FakeEmbedder()).process_document(doc_id, force_reprocess=True))

    assert result.status is DocumentStatus.PROCESSED
    assert all(c.embedding for c in store.list_chunks([doc_id]))


def test_merge_runs_before_embedding(store, policy):
    text = "alpha beta gamma delta. " * 40
    doc_id = _upload(store, text)
    unmerged = DocumentChunker(200, 40).chunk_document(store.get_document(doc_id))
    embedder = FakeEmbedder()
    processor = _processor(store, policy, embedder, merge_chunks=True, merge_threshold=0.7)

    result = asyncio.run(processor.process_document(doc_id))

    chunks = store.list_chunks([doc_id])
    assert result.chunks_created == len(chunks) < len(unmerged)
    assert all(c.embedding is not None for c in chunks)
    assert embedder.calls == len(chunks)


def test_vector_index_is_refreshed(store, policy, sample_text):
    doc_id = _upload(store, sample_text)
    index = RecordingIndex()

    asyncio.run(_processor(store, policy, FakeEmbedder(), vector_index=index).process_document(doc_id))

    ids = [c.chunk_id for c in store.list_chunks([doc_id])]
    assert index.calls == [("ensure", 27), ("delete", doc_id), ("upsert", ids)]


def test_recover_interrupted(store, policy, sample_text):
    doc_id = _upload(store, sample_text)
    store.update_status(doc_id, DocumentStatus.PROCESSING)
    _upload(store, "other", doc_id="doc_2")

    recovered = _processor(store, policy).recover_interrupted()

    assert recovered == 1
    assert store.get_document(doc_id).status is DocumentStatus.ERROR
    assert store.get_document("doc_2").status is DocumentStatus.UPLOADING


def test_unexpected_embedder_error_becomes_processing_failure(store, policy, sample_text):
    class BrokenEmbedder(FakeEmbedder):
        async def embed(self, texts):
            raise TypeError("unsupported input")

    doc_id = _upload(store, sample_text)
    no_retries = policy.model_copy(update={"max_retries": 0})

    with pytest.raises(DocQAError) as ei:
        asyncio.run(_processor(store, no_retries, BrokenEmbedder()).process_document(doc_id))

    assert ei.value.kind is ErrorKind.PROCESSING_FAILED
    assert ei.value.details["doc_id"] == doc_id
    assert store.get_document(doc_id).status is DocumentStatus.ERROR
