from fastapi import APIRouter, Depends
from pydantic import BaseModel

from docqa.api.deps import get_services
from docqa.core.models import ProcessResult
from docqa.services.container import ServiceContainer

router = APIRouter(prefix="/process", tags=["process"])


class ProcessRequest(BaseModel):
    document_id: str
    force_reprocess: bool = False


@router.post("", response_model=ProcessResult)
async def process(req: ProcessRequest, services: ServiceContainer = Depends(get_services)):
    return await services.processor.process_document(req.document_id, req.force_reprocess)
