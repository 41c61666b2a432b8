import json
import logging
import math
from typing import Dict, Any, List, Optional

from elasticsearch import ApiError, AsyncElasticsearch, TransportError

from ..config.settings import settings
from ..errors import (
    BackendAggregationError,
    BackendRequestError,
    BackendUnavailable,
    SearchBackendError,
)
from ..query.entities import EntityType

logger = logging.getLogger(__name__)

AGGREGATION_MARKERS = ("aggregat", "fielddata", "aggs")


def classify_error(error: Exception) -> SearchBackendError:
    """Map a client exception onto the backend error taxonomy"""
    if isinstance(error, ApiError):
        status = error.status_code
        details = f"{error.message} {json.dumps(error.body, default=str)}".lower()
        if any(marker in details for marker in AGGREGATION_MARKERS):
            return BackendAggregationError(f"Aggregation error: {error.message}", status)
        if status == 429 or (status is not None and status >= 500):
            return BackendUnavailable(f"Elasticsearch unavailable: {error.message}", status)
        return BackendRequestError(f"Elasticsearch rejected the request: {error.message}", status)
    if isinstance(error, TransportError):
        return BackendUnavailable(f"Elasticsearch unreachable: {error}")
    return SearchBackendError(f"Elasticsearch search error: {error}")


class ElasticsearchService:
    """Service class for Elasticsearch operations"""

    def __init__(self, client: Optional[AsyncElasticsearch] = None, index_aliases: Optional[Dict[str, str]] = None):
        self.client = client or AsyncElasticsearch(
            hosts=[settings.elasticsearch_url],
            basic_auth=settings.elasticsearch_auth,
            request_timeout=settings.elasticsearch_timeout,
            max_retries=0,
            retry_on_timeout=False,
        )
        self.index_aliases = dict(index_aliases or settings.index_aliases)

    def read_alias(self, entity: EntityType) -> str:
        return self.index_aliases[EntityType(entity).value]

    async def search(self, entity: EntityType, body: Dict[str, Any]) -> Dict[str, Any]:
        """Execute a raw search body against the entity's read alias"""
        index = self.read_alias(entity)
        try:
            response = await self.client.search(index=index, body=body)
        except (ApiError, TransportError) as e:
            raise classify_error(e) from e
        return getattr(response, "body", response)

    async def paginate(self, entity: EntityType, body: Dict[str, Any], page: int, per_page: int) -> Dict[str, Any]:
        """Execute a search for one page and reshape the hits"""
        paged_body = dict(body)
        paged_body["from"] = (page - 1) * per_page
        paged_body["size"] = per_page

        response = await self.search(entity, paged_body)

        hits = response.get("hits", {})
        total = hits.get("total", 0)
        if isinstance(total, dict):
            total = total.get("value", 0)

        data = [
            {
                "_id": hit.get("_id"),
                "_score": hit.get("_score"),
                "_source": hit.get("_source") or {},
                "highlight": hit.get("highlight") or {},
            }
            for hit in hits.get("hits", [])
        ]

        return {
            "data": data,
            "total": total,
            "current_page": page,
            "per_page": per_page,
            "last_page": max(1, math.ceil(total / per_page)) if per_page else 1,
            "aggregations": response.get("aggregations", {}),
            "took": response.get("took"),
        }

    async def check_index_health(self) -> List[str]:
        """Check which read aliases are available"""
        available = []
        for alias in self.index_aliases.values():
            try:
                if await self.client.indices.exists(index=alias):
                    available.append(alias)
            except (ApiError, TransportError) as e:
                logger.warning("Could not check index %s: %s", alias, e)
        return available

    async def get_index_stats(self) -> Dict[str, Any]:
        """Document counts for every read alias"""
        stats = {}
        for entity, alias in self.index_aliases.items():
            try:
                count = await self.client.count(index=alias)
                stats[entity] = {"index": alias, "doc_count": count["count"]}
            except (ApiError, TransportError) as e:
                stats[entity] = {"index": alias, "error": str(e)}
        return stats

    async def close(self) -> None:
        await self.client.close()
