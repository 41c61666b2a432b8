import hashlib
import json
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field, field_validator, model_validator

from ..config.settings import settings
from ..query.entities import EntityType


class SortSpec(BaseModel):
    field: str
    direction: str = "asc"

    @field_validator("direction", mode="before")
    @classmethod
    def normalize_direction(cls, value):
        return "desc" if str(value or "").lower() == "desc" else "asc"


class SearchRequest(BaseModel):
    entity_type: EntityType
    free_text: Optional[str] = None
    filters: Dict[str, Any] = Field(default_factory=dict)
    sort: List[SortSpec] = Field(default_factory=list)
    page: int = 1
    per_page: int = settings.default_per_page
    semantic_query: Optional[str] = None
    debug: bool = False

    @field_validator("free_text", "semantic_query", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    @field_validator("page", mode="before")
    @classmethod
    def clamp_page(cls, value):
        return max(1, int(value if value is not None else 1))

    @field_validator("per_page", mode="before")
    @classmethod
    def clamp_per_page(cls, value):
        value = int(value if value is not None else settings.default_per_page)
        return min(settings.max_per_page, max(1, value))

    @model_validator(mode="after")
    def clamp_page_to_result_window(self):
        # from + size may not exceed the engine's result window
        last_reachable = max(1, settings.max_result_window // self.per_page)
        if self.page > last_reachable:
            self.page = last_reachable
        return self

    def cache_key(self) -> str:
        """Deterministic hash of the fully resolved request"""
        payload = self.model_dump(mode="json", exclude={"debug"})
        canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
        return "search:" + hashlib.sha1(canonical.encode("utf-8")).hexdigest()


class PageMeta(BaseModel):
    current_page: int
    per_page: int
    total: int
    last_page: int


class SearchResponse(BaseModel):
    data: List[Dict[str, Any]]
    meta: PageMeta
    filters: Dict[str, Any] = {}
    aggregations: Dict[str, Any] = {}
    debug: Optional[Dict[str, Any]] = None


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    filters_loaded: int
    indexes_available: List[str]


class FilterCatalogResponse(BaseModel):
    groups: Dict[str, List[Dict[str, Any]]]
    total: int


class FilterValue(BaseModel):
    value: str
    count: int


class FilterValuesResponse(BaseModel):
    filter_id: str
    query: Optional[str] = None
    values: List[FilterValue]
    page: int
    per_page: int
    total: int
