from fastapi import APIRouter, Depends, File, UploadFile
from pydantic import BaseModel, Field

from docqa.api.deps import get_services
from docqa.core.errors import DocQAError
from docqa.core.models import DocumentMetadata, DocumentType
from docqa.services.container import ServiceContainer
from docqa.services.ingest_service import build_document, document_from_upload, validate_document

router = APIRouter(prefix="/documents", tags=["documents"])


class CreateDocumentRequest(BaseModel):
    name: str
    type: DocumentType
    content: str = Field(min_length=1)
    metadata: DocumentMetadata = Field(default_factory=DocumentMetadata)


def _summary(doc) -> dict:
    # content can be large; listings don't need it
    payload = doc.model_dump(mode="json", exclude={"content", "chunks"})
    payload["id"] = doc.doc_id
    return payload


@router.post("", status_code=201)
async def create_document(req: CreateDocumentRequest, services: ServiceContainer = Depends(get_services)):
    size = len(req.content.encode("utf-8"))
    validate_document(req.type, size, services.settings)
    doc = build_document(req.name, req.type, req.content, size=size, metadata=req.metadata.model_dump(exclude_none=True))
    services.store.save_document(doc)
    return {"document_id": doc.doc_id, "status": doc.status, "message": "Document created"}


@router.post("/upload", status_code=201)
async def upload_document(file: UploadFile = File(...), services: ServiceContainer = Depends(get_services)):
    data = await file.read()
    doc = document_from_upload(file.filename or "", data, services.settings)
    services.store.save_document(doc)
    return {"document_id": doc.doc_id, "status": doc.status, "message": "File uploaded successfully"}


@router.get("")
async def list_documents(services: ServiceContainer = Depends(get_services)):
    return [_summary(d) for d in services.store.list_documents()]


@router.get("/chunk/{chunk_id}")
async def get_chunk(chunk_id: str, services: ServiceContainer = Depends(get_services)):
    c = services.store.get_chunk(chunk_id)
    if not c:
        raise DocQAError.not_found("Chunk", chunk_id)
    return c.model_dump(mode="json", exclude={"embedding"})


@router.get("/{doc_id}")
async def get_document(doc_id: str, services: ServiceContainer = Depends(get_services)):
    return services.store.require_document(doc_id).model_dump(mode="json")


@router.get("/{doc_id}/chunks")
async def list_chunks(doc_id: str, services: ServiceContainer = Depends(get_services)):
    services.store.require_document(doc_id)
    return [c.model_dump(mode="json", exclude={"embedding"}) for c in services.store.list_chunks([doc_id])]


@router.delete("/{doc_id}")
async def delete_document(doc_id: str, services: ServiceContainer = Depends(get_services)):
    services.store.require_document(doc_id)
    if services.vector_index is not None:
        await services.vector_index.delete_by_doc_id(doc_id)
    services.store.delete_document(doc_id)
    return {"ok": True, "doc_id": doc_id}
