"""Error model.

A single exception type carries an ``ErrorKind`` tag plus structured details.
Callers branch on ``err.kind`` rather than on exception subclasses:

    try:
        chunks = chunker.chunk_document(doc)
    except DocQAError as e:
        if e.kind is ErrorKind.MISSING_CONTENT:
            ...
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    MISSING_CONTENT = "MISSING_CONTENT"
    INVALID_QUERY_REPRESENTATION = "INVALID_QUERY_REPRESENTATION"
    VALIDATION = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    INVALID_STATUS_TRANSITION = "INVALID_STATUS_TRANSITION"
    EXTERNAL_SERVICE = "EXTERNAL_SERVICE_ERROR"
    TIMEOUT = "TIMEOUT"
    PROCESSING_FAILED = "PROCESSING_FAILED"

    @property
    def retryable(self) -> bool:
        return self in _RETRYABLE

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self]


_RETRYABLE = {ErrorKind.EXTERNAL_SERVICE, ErrorKind.TIMEOUT}

_STATUS_CODES = {
    ErrorKind.MISSING_CONTENT: 422,
    ErrorKind.INVALID_QUERY_REPRESENTATION: 400,
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVALID_STATUS_TRANSITION: 409,
    ErrorKind.EXTERNAL_SERVICE: 502,
    ErrorKind.TIMEOUT: 504,
    ErrorKind.PROCESSING_FAILED: 500,
}


class DocQAError(Exception):
    def __init__(self, kind: ErrorKind, message: str, **details: Any):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.details = details

    @property
    def retryable(self) -> bool:
        return self.kind.retryable

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.kind.value,
            "message": self.message,
            "details": self.details,
            "retryable": self.retryable,
        }

    def __repr__(self) -> str:
        return f"DocQAError({self.kind.name}, {self.message!r})"

    @classmethod
    def missing_content(cls, doc_id: str) -> DocQAError:
        return cls(ErrorKind.MISSING_CONTENT, "Document content is required for chunking", doc_id=doc_id)

    @classmethod
    def invalid_query(cls, reason: str, **details: Any) -> DocQAError:
        return cls(ErrorKind.INVALID_QUERY_REPRESENTATION, reason, **details)

    @classmethod
    def validation(cls, message: str, field: str, **details: Any) -> DocQAError:
        return cls(ErrorKind.VALIDATION, message, field=field, **details)

    @classmethod
    def not_found(cls, resource: str, resource_id: str | None = None) -> DocQAError:
        msg = f"{resource} not found" + (f" with ID: {resource_id}" if resource_id else "")
        return cls(ErrorKind.NOT_FOUND, msg, resource=resource, id=resource_id)

    @classmethod
    def invalid_transition(cls, doc_id: str, current: str, target: str) -> DocQAError:
        return cls(
            ErrorKind.INVALID_STATUS_TRANSITION,
            f"Cannot move document from '{current}' to '{target}'",
            doc_id=doc_id,
            current=current,
            target=target,
        )

    @classmethod
    def external(cls, service: str, message: str | None = None) -> DocQAError:
        return cls(
            ErrorKind.EXTERNAL_SERVICE,
            message or f"{service} service is currently unavailable",
            service=service,
        )

    @classmethod
    def timeout(cls, message: str = "Operation timed out", **details: Any) -> DocQAError:
        return cls(ErrorKind.TIMEOUT, message, **details)

    @classmethod
    def processing_failed(cls, doc_id: str, message: str = "Document processing failed", **details: Any) -> DocQAError:
        return cls(ErrorKind.PROCESSING_FAILED, message, doc_id=doc_id, **details)
