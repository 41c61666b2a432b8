from datetime import datetime
from typing import Dict, Any
from ..models.schemas import HealthResponse
from ..config.settings import settings
from ..query.filter_registry import FilterRegistry
from .elasticsearch_service import ElasticsearchService


class HealthService:
    """Service class for health checks and system status"""

    def __init__(self, es_service: ElasticsearchService, registry: FilterRegistry):
        self.es_service = es_service
        self.registry = registry

    async def get_health_status(self) -> HealthResponse:
        """Overall status: OK when every read alias exists"""
        available_indexes = await self.es_service.check_index_health()
        expected = set(self.es_service.index_aliases.values())

        return HealthResponse(
            status="OK" if expected.issubset(available_indexes) else "DEGRADED",
            timestamp=datetime.now().isoformat(),
            filters_loaded=len(self.registry.active_entries()),
            indexes_available=available_indexes,
        )

    async def get_detailed_status(self) -> Dict[str, Any]:
        """Detailed status including document counts and configuration"""
        health = await self.get_health_status()
        index_stats = await self.es_service.get_index_stats()

        return {
            "status": health.status,
            "timestamp": health.timestamp,
            "elasticsearch": {
                "url": settings.elasticsearch_url,
                "available_indexes": health.indexes_available,
                "index_aliases": self.es_service.index_aliases,
                "index_stats": index_stats,
            },
            "configuration": settings.summary(),
            "filters": {
                "total": len(self.registry),
                "active": health.filters_loaded,
                "with_aggregations": sum(
                    1 for entry in self.registry.active_entries()
                    if entry.aggregation is not None and entry.aggregation.enabled
                ),
            },
            "api": {
                "title": settings.api_title,
                "version": settings.api_version,
            },
        }
