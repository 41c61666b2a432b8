from typing import Optional
from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import JSONResponse
from ..errors import BackendUnavailable, InvalidRequest, UnknownFilter
from ..models.schemas import FilterCatalogResponse, FilterValuesResponse
from ..services.container import container
from .search_routes import BACKEND_UNAVAILABLE

router = APIRouter()


@router.get("/filters", response_model=FilterCatalogResponse)
async def list_filters():
    """Catalogue of every active filter, grouped for the filter sidebar"""
    registry = container.filter_registry
    return FilterCatalogResponse(groups=registry.grouped(), total=len(registry.active_entries()))


@router.get("/filters/{filter_id}/values", response_model=FilterValuesResponse)
async def filter_values(
    filter_id: str,
    q: Optional[str] = Query(None, description="Case-insensitive value prefix"),
    page: int = Query(1, description="Page number"),
    count: int = Query(20, description="Values per page"),
    type: Optional[str] = Query(None, description="Entity index to read values from (contact or company)"),
):
    """
    Distinct values of one filter's field with document counts.

    Values are ordered by key and paged in memory.
    """
    if type is not None and type not in ("contact", "company"):
        raise HTTPException(status_code=422, detail="type must be contact or company")
    try:
        return await container.filter_values_service.get_values(filter_id, q, page, count, type)
    except UnknownFilter as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidRequest as e:
        return JSONResponse(status_code=422, content={"error": "Validation failed", "details": e.errors})
    except BackendUnavailable:
        return JSONResponse(status_code=503, content=BACKEND_UNAVAILABLE)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Filter values error: {str(e)}")
