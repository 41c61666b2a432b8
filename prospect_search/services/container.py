import logging

from ..config.settings import settings
from ..query.filter_compiler import FilterCompiler
from ..query.filter_registry import FilterRegistry
from .cache import ResponseCache
from .elasticsearch_service import ElasticsearchService
from .embedding_service import EmbeddingService
from .events import LoggingEventSink
from .filter_values_service import FilterValuesService
from .health_service import HealthService
from .search_service import SearchService


class ServiceContainer:
    """Dependency injection container for managing service instances"""

    def __init__(self):
        # Initialize services
        self._filter_registry = FilterRegistry()
        self._elasticsearch_service = ElasticsearchService()
        self._embedding_service = EmbeddingService()
        self._search_service = SearchService(
            self._elasticsearch_service,
            embedding_service=self._embedding_service,
            events=LoggingEventSink(logging.getLogger("prospect_search.events")),
            compiler=FilterCompiler(self._filter_registry),
            cache=ResponseCache(ttl=settings.search_cache_ttl),
        )
        self._filter_values_service = FilterValuesService(self._elasticsearch_service, self._filter_registry)
        self._health_service = HealthService(self._elasticsearch_service, self._filter_registry)

    @property
    def filter_registry(self) -> FilterRegistry:
        return self._filter_registry

    @property
    def elasticsearch_service(self) -> ElasticsearchService:
        return self._elasticsearch_service

    @property
    def embedding_service(self) -> EmbeddingService:
        return self._embedding_service

    @property
    def search_service(self) -> SearchService:
        return self._search_service

    @property
    def filter_values_service(self) -> FilterValuesService:
        return self._filter_values_service

    @property
    def health_service(self) -> HealthService:
        return self._health_service


# Global container instance
container = ServiceContainer()
