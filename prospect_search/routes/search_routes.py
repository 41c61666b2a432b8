import logging
from typing import Optional
from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from ..errors import BackendUnavailable, InvalidRequest
from ..models.schemas import SearchResponse
from ..services.container import container
from ..services.request_parser import parse_search_params

logger = logging.getLogger(__name__)

router = APIRouter()

BACKEND_UNAVAILABLE = {
    "error": "ELASTIC_UNAVAILABLE",
    "message": "Search backend is unavailable",
}


@router.get("/search/{type}", response_model=SearchResponse, response_model_exclude_unset=True)
async def search(
    request: Request,
    type: str,
    search_term: Optional[str] = Query(None, alias="searchTerm", description="Free-text query"),
    q: Optional[str] = Query(None, description="Free-text query (alias of searchTerm)"),
    filter_dsl: Optional[str] = Query(None, description="Filter DSL as JSON"),
    semantic_query: Optional[str] = Query(None, description="Natural-language query for vector ranking"),
    sort: Optional[str] = Query(None, description="JSON list of {field, direction} or field:dir,field:dir"),
    page: Optional[str] = Query(None, description="Page number, clamped to 1 or more"),
    count: Optional[str] = Query(None, description="Results per page, clamped to 1..100"),
    per_page: Optional[str] = Query(None, description="Alias of count"),
    debug: Optional[str] = Query(None, description="Return the compiled query and index name"),
):
    """
    Search contacts or companies.

    Combines free text, the filter DSL and an optional semantic query into one
    Elasticsearch request. Anonymous responses are cached briefly.
    """
    params = {
        "type": type,
        "searchTerm": search_term,
        "q": q,
        "filter_dsl": filter_dsl,
        "semantic_query": semantic_query,
        "sort": sort,
        "page": page,
        "count": count if count is not None else per_page,
        "debug": debug,
    }
    public = not request.headers.get("authorization")

    try:
        search_request = parse_search_params(params)
        return await container.search_service.search(search_request, public=public)
    except InvalidRequest as e:
        return JSONResponse(status_code=422, content={"error": "Validation failed", "details": e.errors})
    except BackendUnavailable as e:
        logger.error("Search backend unavailable: %s", e)
        return JSONResponse(status_code=503, content=BACKEND_UNAVAILABLE)
    except Exception as e:
        logger.exception("Search failed")
        raise HTTPException(status_code=500, detail=f"Search error: {str(e)}")
