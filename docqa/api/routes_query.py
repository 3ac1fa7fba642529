from fastapi import APIRouter, Depends, Query as QueryParam

from docqa.api.deps import get_services
from docqa.core.errors import DocQAError
from docqa.core.models import Query, QueryRequest
from docqa.services.container import ServiceContainer

router = APIRouter(prefix="/query", tags=["query"])


@router.post("", response_model=Query)
async def query(req: QueryRequest, services: ServiceContainer = Depends(get_services)):
    req = req.model_copy(update={"max_results": min(req.max_results, services.settings.MAX_RESULTS_PER_QUERY)})
    return await services.queries.answer(req)


@router.get("/history", response_model=list[Query])
async def history(limit: int = QueryParam(default=10, gt=0, le=100), services: ServiceContainer = Depends(get_services)):
    return services.store.query_history(limit)


@router.get("/{query_id}", response_model=Query)
async def get_query(query_id: str, services: ServiceContainer = Depends(get_services)):
    q = services.store.get_query(query_id)
    if q is None:
        raise DocQAError.not_found("Query", query_id)
    return q
