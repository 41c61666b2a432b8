import logging
from typing import List, Optional

from ..config.settings import settings
from ..query.entities import EntityType
from ..query.filter_compiler import DSLInput, FilterCompiler
from ..query.scoring import normalize_domain
from .elasticsearch_service import ElasticsearchService

logger = logging.getLogger(__name__)


class CompanyDomainResolver:
    """Resolves company-bucket filters into the domain allow-list of a contact search"""

    def __init__(
        self,
        es_service: ElasticsearchService,
        compiler: Optional[FilterCompiler] = None,
        limit: Optional[int] = None,
    ):
        self.es_service = es_service
        self.compiler = compiler or FilterCompiler()
        self.limit = limit or settings.domain_resolution_limit

    async def resolve(self, dsl: DSLInput) -> List[str]:
        """Distinct domains of every company matching the company filters, in hit order"""
        query = self.compiler.compile_domain_resolution(dsl)
        results = await self.es_service.paginate(EntityType.COMPANY, query.to_body(), 1, self.limit)

        domains: List[str] = []
        seen = set()
        for row in results.get("data", []):
            source = row.get("_source") or {}
            value = source.get("domain") or source.get("website")
            if not isinstance(value, str) or not value.strip():
                continue
            domain = normalize_domain(value)
            if domain not in seen:
                seen.add(domain)
                domains.append(domain)

        if results.get("total", 0) > self.limit:
            logger.warning(
                "Company filter matched %s companies, only the first %s are used for domains",
                results.get("total"), self.limit,
            )
        return domains
