import logging
from typing import Dict, Any, Optional, Tuple

from ..config.settings import settings
from ..errors import BackendAggregationError, BackendUnavailable, EmbeddingError, SearchBackendError
from ..models.schemas import SearchRequest
from ..query.aggregations import AggregationBuilder
from ..query.compiled_query import CompiledQuery
from ..query.dsl import FilterDSL, dsl_filter_keys, parse_filter_dsl
from ..query.entities import EntityType
from ..query.filter_compiler import FilterCompiler
from ..query.scoring import ScoringClauseBuilder
from ..query.sorting import build_sort
from .cache import ResponseCache
from .domain_resolver import CompanyDomainResolver
from .elasticsearch_service import ElasticsearchService
from .embedding_service import EmbeddingService
from .events import (
    AggregationRetryTriggered,
    CompanyDomainsResolved,
    EmbeddingFailed,
    LoggingEventSink,
    SearchEventSink,
    SearchExecuted,
    SearchRequested,
)
from .result_formatter import ResultFormatter

logger = logging.getLogger(__name__)


class SearchService:
    """
    Search orchestrator.

    Builds one CompiledQuery from filters, free text, semantic query, sort and
    facets, executes it and formats the hits. An aggregation-class backend
    failure is retried exactly once without aggregations; every other failure
    propagates.
    """

    def __init__(
        self,
        es_service: ElasticsearchService,
        embedding_service: Optional[EmbeddingService] = None,
        events: Optional[SearchEventSink] = None,
        compiler: Optional[FilterCompiler] = None,
        scoring: Optional[ScoringClauseBuilder] = None,
        aggregations: Optional[AggregationBuilder] = None,
        formatter: Optional[ResultFormatter] = None,
        domain_resolver: Optional[CompanyDomainResolver] = None,
        cache: Optional[ResponseCache] = None,
    ):
        self.es_service = es_service
        self.embedding_service = embedding_service
        self.events = events or LoggingEventSink()
        self.compiler = compiler or FilterCompiler()
        self.scoring = scoring or ScoringClauseBuilder()
        self.aggregations = aggregations or AggregationBuilder(self.compiler)
        self.formatter = formatter or ResultFormatter()
        self.domain_resolver = domain_resolver or CompanyDomainResolver(es_service, self.compiler)
        self.cache = cache if cache is not None else ResponseCache(ttl=settings.search_cache_ttl)

    async def search(self, request: SearchRequest, public: bool = False) -> Dict[str, Any]:
        """Run a search, serving anonymous non-debug requests from the response cache"""
        use_cache = public and not request.debug
        if use_cache:
            cached = self.cache.get(request.cache_key())
            if cached is not None:
                return cached

        response = await self.execute(request)

        if use_cache:
            self.cache.set(request.cache_key(), response)
        return response

    async def execute(self, request: SearchRequest) -> Dict[str, Any]:
        entity = EntityType(request.entity_type)
        dsl = parse_filter_dsl(request.filters)

        self.events.emit(SearchRequested(
            entity_type=entity.value,
            has_term=request.free_text is not None,
            filter_keys=dsl_filter_keys(dsl),
            page=request.page,
            per_page=request.per_page,
        ))

        query = await self.build_query(request, dsl)
        results, executed, degraded = await self.run(entity, query, request.page, request.per_page)

        self.events.emit(SearchExecuted(
            entity_type=entity.value,
            total=results.get("total", 0),
            degraded=degraded,
            took_ms=results.get("took"),
        ))

        response = self.formatter.format(results, entity, request.filters)
        if request.debug:
            response["debug"] = {
                "params": request.model_dump(mode="json"),
                "index_used": self.es_service.read_alias(entity),
                "raw_query": executed.to_body(),
                "degraded": degraded,
            }
        return response

    async def build_query(self, request: SearchRequest, dsl: FilterDSL) -> CompiledQuery:
        """Compose filters, relevance clauses, vector clause, sort and facets"""
        entity = EntityType(request.entity_type)
        normalized = self.compiler.normalize(dsl)

        resolved_domains = None
        if self.compiler.needs_domain_resolution(normalized, entity):
            resolved_domains = await self.domain_resolver.resolve(normalized)
            self.events.emit(CompanyDomainsResolved(
                filter_keys=[f"company.{key}" for key in dsl.company],
                domain_count=len(resolved_domains),
            ))

        query = self.compiler.compile(normalized, entity, resolved_domains=resolved_domains)

        if request.free_text:
            text_query = self.scoring.build(request.free_text, entity)
            query.must.extend(text_query.must)
            query.should.extend(text_query.should)
            query.min_score = text_query.min_score
            query.highlight = text_query.highlight
        if query.should:
            query.minimum_should_match = 1

        if request.semantic_query:
            query.knn = await self.build_knn(request.semantic_query, request.per_page, query)

        query.sort = build_sort([item.model_dump() for item in request.sort])
        query.aggregations = self.aggregations.build(normalized, entity)
        return query

    async def build_knn(self, text: str, per_page: int, query: CompiledQuery) -> Optional[Dict[str, Any]]:
        """Vector clause for hybrid search; embedding failures fall back to lexical-only"""
        if self.embedding_service is None or not self.embedding_service.available:
            logger.debug("Semantic query ignored, no embedding provider configured")
            return None
        try:
            vector = await self.embedding_service.generate(text)
        except EmbeddingError as e:
            self.events.emit(EmbeddingFailed(error=str(e)))
            return None

        knn = {
            "field": settings.embedding_field,
            "query_vector": vector,
            "k": per_page,
            "num_candidates": max(settings.knn_num_candidates, per_page),
        }
        knn_filter = query.filter_query()
        if knn_filter:
            knn["filter"] = knn_filter
        return knn

    async def run(
        self,
        entity: EntityType,
        query: CompiledQuery,
        page: int,
        per_page: int,
    ) -> Tuple[Dict[str, Any], CompiledQuery, bool]:
        """Execute the primary query, degrading once on an aggregation failure"""
        try:
            results = await self.es_service.paginate(entity, query.to_body(), page, per_page)
            return results, query, False
        except BackendAggregationError as e:
            self.events.emit(AggregationRetryTriggered(entity_type=entity.value, error=str(e)))

        degraded = query.without_aggregations()
        try:
            results = await self.es_service.paginate(entity, degraded.to_body(), page, per_page)
        except SearchBackendError as retry_error:
            raise BackendUnavailable(
                f"Search failed after dropping aggregations: {retry_error}",
                retry_error.status_code,
            ) from retry_error
        return results, degraded, True
