import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

DocumentType = Literal["pdf", "txt", "docx", "md"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_document_id() -> str:
    return f"doc_{uuid.uuid4().hex}"


def new_query_id() -> str:
    return f"query_{uuid.uuid4().hex}"


class DocumentStatus(str, Enum):
    UPLOADING = "uploading"
    PROCESSING = "processing"
    PROCESSED = "processed"
    ERROR = "error"

    def can_transition_to(self, target: "DocumentStatus") -> bool:
        # processed/error end one attempt; a reprocess starts a new one
        return target in _TRANSITIONS[self]


_TRANSITIONS = {
    DocumentStatus.UPLOADING: {DocumentStatus.PROCESSING},
    DocumentStatus.PROCESSING: {DocumentStatus.PROCESSED, DocumentStatus.ERROR},
    DocumentStatus.PROCESSED: {DocumentStatus.PROCESSING},
    DocumentStatus.ERROR: {DocumentStatus.PROCESSING},
}


class DocumentMetadata(BaseModel):
    page_count: int | None = None
    word_count: int | None = None
    language: str | None = None
    author: str | None = None
    title: str | None = None
    created_at: datetime | None = None
    modified_at: datetime | None = None


class ChunkMetadata(BaseModel):
    section: str = "General"
    heading: str = ""
    importance: float = Field(default=0.5, ge=0.0, le=1.0)
    keywords: list[str] = Field(default_factory=list)


class Chunk(BaseModel):
    chunk_id: str
    doc_id: str
    content: str
    page_number: int | None = None
    start_index: int = Field(ge=0)
    end_index: int
    embedding: list[float] | None = None
    metadata: ChunkMetadata = Field(default_factory=ChunkMetadata)

    @model_validator(mode="after")
    def _check_range(self):
        if self.end_index <= self.start_index:
            raise ValueError("end_index must be greater than start_index")
        return self


class Document(BaseModel):
    doc_id: str = Field(default_factory=new_document_id)
    name: str
    type: DocumentType
    size: int = 0
    upload_date: datetime = Field(default_factory=utcnow)
    processed_date: datetime | None = None
    status: DocumentStatus = DocumentStatus.UPLOADING
    content: str | None = None
    chunks: list[Chunk] = Field(default_factory=list)
    metadata: DocumentMetadata = Field(default_factory=DocumentMetadata)


class RankedChunk(BaseModel):
    """A ranking result: the chunk plus its relevance for this query only."""

    chunk: Chunk
    score: float


class QueryRequest(BaseModel):
    question: str
    document_ids: list[str] | None = None
    max_results: int = Field(default=5, gt=0)
    include_sources: bool = True


class QuerySource(BaseModel):
    document_id: str
    document_name: str
    chunk_id: str
    content: str
    page_number: int | None = None
    relevance_score: float
    start_index: int
    end_index: int


class Query(BaseModel):
    model_config = ConfigDict(frozen=True)

    query_id: str = Field(default_factory=new_query_id)
    question: str
    document_ids: list[str] | None = None
    max_results: int = 5
    answer: str
    sources: list[QuerySource] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)
    processing_time: int = 0  # milliseconds
    created_at: datetime = Field(default_factory=utcnow)


class ProcessResult(BaseModel):
    document_id: str
    status: DocumentStatus
    chunks_created: int
    processing_time: int  # milliseconds
    message: str
