from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from docqa.api.deps import get_services
from docqa.services.container import ServiceContainer

router = APIRouter(prefix="/search", tags=["search"])


class SearchRequest(BaseModel):
    query: str
    document_ids: list[str] | None = None
    limit: int = Field(default=5, gt=0)


@router.post("")
async def search(req: SearchRequest, services: ServiceContainer = Depends(get_services)):
    question = services.queries.validate_question(req.query)
    limit = min(req.limit, services.settings.MAX_RESULTS_PER_QUERY)
    results = await services.retriever.retrieve(question, req.document_ids, limit)
    return {
        "mode": services.retriever.mode,
        "results": [
            {"score": r.score, "chunk": r.chunk.model_dump(mode="json", exclude={"embedding"})}
            for r in results
        ],
    }
