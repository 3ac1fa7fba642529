"""Turn uploads into Document records.

Only plain-text formats are decoded here. PDF and DOCX text has to be
extracted upstream and sent as ``content``.
"""

import re
from pathlib import Path
from typing import Any

from docqa.core.config import Settings
from docqa.core.errors import DocQAError
from docqa.core.models import Document, DocumentMetadata
from docqa.services.title_service import best_title

TEXT_TYPES = {"txt", "md"}


def document_type_from_filename(name: str) -> str | None:
    ext = Path(name or "").suffix.lower().lstrip(".")
    return ext or None


def sanitize_filename(name: str) -> str:
    name = Path(name or "").name
    name = re.sub(r"[^a-zA-Z0-9.\-]", "_", name)
    name = re.sub(r"_+", "_", name)
    return name.strip("_") or "upload"


def validate_document(doc_type: str | None, size: int, settings: Settings) -> str:
    if doc_type not in settings.allowed_file_types:
        raise DocQAError.validation(
            "File type not supported", "file", type=doc_type, allowed=settings.allowed_file_types
        )
    if size > settings.MAX_FILE_SIZE:
        raise DocQAError.validation(
            "File size exceeds maximum allowed size", "file", size=size, max_size=settings.MAX_FILE_SIZE
        )
    return doc_type


def validate_upload(name: str, size: int, settings: Settings) -> str:
    if not name:
        raise DocQAError.validation("Please select a file to upload", "file")
    return validate_document(document_type_from_filename(name), size, settings)


def decode_text(data: bytes) -> str:
    return data.decode("utf-8", errors="ignore")


def word_count(text: str | None) -> int:
    return len((text or "").split())


def build_document(
    name: str,
    doc_type: str,
    content: str | None,
    size: int | None = None,
    metadata: dict[str, Any] | None = None,
) -> Document:
    meta = DocumentMetadata.model_validate(metadata or {})
    meta = meta.model_copy(update={
        "title": best_title(name, content, meta.title),
        "word_count": meta.word_count if meta.word_count is not None else word_count(content),
    })
    return Document(
        name=name,
        type=doc_type,
        size=size if size is not None else len((content or "").encode("utf-8")),
        content=content,
        metadata=meta,
    )


def document_from_upload(filename: str, data: bytes, settings: Settings) -> Document:
    doc_type = validate_upload(filename, len(data), settings)
    if doc_type not in TEXT_TYPES:
        raise DocQAError.validation(
            f"Text extraction for '{doc_type}' files is not available; "
            "submit the extracted text to POST /documents instead",
            "file",
            type=doc_type,
        )
    return build_document(sanitize_filename(filename), doc_type, decode_text(data), size=len(data))
