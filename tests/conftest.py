import asyncio
import string

import pytest

from docqa.adapters.embedding.base import Embedder
from docqa.adapters.llm.base import LLM
from docqa.core.config import Settings
from docqa.core.models import Chunk, ChunkMetadata, Document, DocumentStatus
from docqa.core.retry import RetryPolicy
from docqa.services.store_service import DocumentStore


# ============================================================================
# FAKES
# ============================================================================

class FakeEmbedder(Embedder):
    """Bag-of-letters vectors: 26 letter counts plus a constant component."""

    name = "fake"

    def __init__(self, fail_times: int = 0, delay: float = 0.0):
        self.fail_times = fail_times
        self.delay = delay
        self.calls = 0
        self.closed = False

    @staticmethod
    def vector(text: str) -> list[float]:
        lowered = text.lower()
        return [float(lowered.count(ch)) for ch in string.ascii_lowercase] + [1.0]

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_times > 0:
            self.fail_times -= 1
            raise ConnectionError("embedding backend unavailable")
        return [self.vector(t) for t in texts]

    async def aclose(self) -> None:
        self.closed = True


class FakeLLM(LLM):
    name = "fake-llm"

    def __init__(self, answer: str = "The answer is in the documents [1]."):
        self.answer = answer
        self.prompts: list[str] = []

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self.answer


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def settings():
    return Settings(
        DB_PATH=":memory:",
        EMBED_BACKEND="none",
        VECTOR_BACKEND="none",
        CHUNK_SIZE=200,
        CHUNK_OVERLAP=40,
        MAX_RETRIES=2,
        RETRY_BASE_DELAY=0.0,
        RETRY_MAX_DELAY=0.0,
        EXTERNAL_TIMEOUT=5.0,
        PROCESSING_TIMEOUT=10.0,
        CORS_ORIGINS="",
    )


@pytest.fixture
def policy():
    return RetryPolicy(max_retries=2, base_delay=0.0, max_delay=0.0, timeout=None)


@pytest.fixture
def store():
    s = DocumentStore(":memory:")
    s.init()
    yield s
    s.close()


@pytest.fixture
def sample_text():
    return (
        "# Annual Report\n"
        "Introduction to the report. The company grew revenue by 12% in 2023.\n\n"
        "## Results\n"
        "Key results show that Solar Panels drove the main increase in sales. "
        "Wind turbines remained flat across every region during the year.\n\n"
        "## Conclusion\n"
        "In summary, the critical factor for growth was solar demand. "
        "Management expects solar demand to keep rising next year as prices fall."
    )


def make_chunk(chunk_id, doc_id, content, start=0, end=None, embedding=None, keywords=None):
    return Chunk(
        chunk_id=chunk_id,
        doc_id=doc_id,
        content=content,
        start_index=start,
        end_index=end if end is not None else start + max(len(content), 1),
        embedding=embedding,
        metadata=ChunkMetadata(keywords=keywords or []),
    )


def add_processed_document(store, doc_id, content, chunks, name="doc.txt"):
    store.save_document(Document(doc_id=doc_id, name=name, type="txt", content=content))
    store.update_status(doc_id, DocumentStatus.PROCESSING)
    store.replace_chunks(doc_id, chunks)
    store.update_status(doc_id, DocumentStatus.PROCESSED)
