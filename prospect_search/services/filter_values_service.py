from typing import Dict, Any, List, Optional

from ..config.settings import settings
from ..errors import InvalidRequest, UnknownFilter
from ..models.schemas import FilterValuesResponse, FilterValue
from ..query.entities import EntityType
from ..query.filter_registry import FilterRegistry, FilterRegistryEntry, Terms, Text
from .elasticsearch_service import ElasticsearchService


class FilterValuesService:
    """Service class for filter value suggestions"""

    def __init__(self, es_service: ElasticsearchService, registry: Optional[FilterRegistry] = None):
        self.es_service = es_service
        self.registry = registry or FilterRegistry()

    def build_values_query(self, field: str, query: Optional[str]) -> Dict[str, Any]:
        """Terms aggregation over every distinct value, optionally narrowed by a case-insensitive prefix"""
        body: Dict[str, Any] = {
            "size": 0,
            "aggs": {
                "values": {
                    "terms": {
                        "field": field,
                        "size": settings.filter_values_size,
                        "order": {"_key": "asc"},
                    }
                }
            },
        }
        if query:
            body["query"] = {
                "prefix": {
                    field: {
                        "value": query.lower(),
                        "case_insensitive": True,
                    }
                }
            }
        return body

    def extract_values(self, response: Dict[str, Any], query: Optional[str]) -> List[FilterValue]:
        """Keep buckets that start with the prefix; multi-valued fields bring along unrelated values"""
        prefix = (query or "").lower()
        values = []
        seen = set()
        buckets = response.get("aggregations", {}).get("values", {}).get("buckets", [])
        for bucket in buckets:
            key = str(bucket.get("key", "")).strip()
            if not key or key.lower() in seen:
                continue
            if prefix and not key.lower().startswith(prefix):
                continue
            seen.add(key.lower())
            values.append(FilterValue(value=key, count=bucket.get("doc_count", 0)))
        return values

    def resolve_target(self, entry: FilterRegistryEntry, entity: Optional[str]) -> tuple:
        """Entity type and aggregatable field the values are read from"""
        candidates = [EntityType(entity)] if entity else sorted(entry.applies_to, key=lambda e: e.value)
        for candidate in candidates:
            fields = entry.fields_for(candidate)
            if fields:
                field = fields[0]
                if isinstance(entry.value_kind, Text) and not field.endswith(".keyword"):
                    field = f"{field}.keyword"
                return candidate, field
        raise InvalidRequest(f"Filter '{entry.id}' has no field for {entity}")

    async def get_values(
        self,
        filter_id: str,
        query: Optional[str] = None,
        page: int = 1,
        per_page: int = 20,
        entity: Optional[str] = None,
    ) -> FilterValuesResponse:
        entry = self.registry.get(filter_id)
        if entry is None or not entry.active:
            raise UnknownFilter(f"Unknown filter: {filter_id}")
        if not isinstance(entry.value_kind, (Terms, Text)):
            raise InvalidRequest(f"Filter '{entry.id}' has no listable values")

        query = (query or "").strip() or None
        page = max(1, page)
        per_page = min(settings.max_per_page, max(1, per_page))

        target, field = self.resolve_target(entry, entity)
        response = await self.es_service.search(target, self.build_values_query(field, query))
        values = self.extract_values(response, query)

        start = (page - 1) * per_page
        return FilterValuesResponse(
            filter_id=entry.id,
            query=query,
            values=values[start:start + per_page],
            page=page,
            per_page=per_page,
            total=len(values),
        )
