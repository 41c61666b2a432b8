import logging
from typing import Dict, Any, Iterable, Optional

from .entities import EntityType
from .filter_compiler import DSLInput, FilterCompiler, exists_clause
from .filter_registry import (
    CountFacet,
    Exists,
    FilterRegistryEntry,
    PresenceFacet,
    RangeFacet,
    TermsFacet,
)

logger = logging.getLogger(__name__)


class AggregationBuilder:
    """Builds facet aggregations for every unconstrained registry entry"""

    def __init__(self, compiler: Optional[FilterCompiler] = None):
        self.compiler = compiler or FilterCompiler()
        self.registry = self.compiler.registry

    def build(self, dsl: DSLInput, entity: EntityType) -> Dict[str, Any]:
        entity = EntityType(entity)
        constrained = self.compiler.constrained_ids(dsl)
        aggs: Dict[str, Any] = {}

        for entry in self.candidates(entity):
            if entry.id in constrained:
                logger.debug("Skipping facet '%s', already filtered", entry.id)
                continue
            agg = self.build_one(entry, entity)
            if agg is None:
                logger.debug("Skipping misconfigured facet '%s'", entry.id)
                continue
            aggs[entry.id] = agg
        return aggs

    def candidates(self, entity: EntityType) -> Iterable[FilterRegistryEntry]:
        """Active entries with an enabled facet usable on ``entity`` searches"""
        for entry in self.registry.active_entries():
            if entry.aggregation is None or not entry.aggregation.enabled:
                continue
            # company facets are allowed on contact searches, not the reverse
            if entry.applies(entity) or (entity == EntityType.CONTACT and entry.applies(EntityType.COMPANY)):
                yield entry

    def build_one(self, entry: FilterRegistryEntry, entity: EntityType) -> Optional[Dict[str, Any]]:
        fields = entry.fields_for(entity)
        if not fields:
            return None
        field = fields[0]
        facet = entry.aggregation

        if isinstance(facet, TermsFacet):
            if facet.size <= 0:
                return None
            return {"terms": {"field": field, "size": facet.size, "min_doc_count": 0}}

        if isinstance(facet, RangeFacet):
            if not facet.ranges:
                return None
            ranges = []
            for key, low, high in facet.ranges:
                bucket: Dict[str, Any] = {"key": key}
                if low is not None:
                    bucket["from"] = low
                if high is not None:
                    bucket["to"] = high
                ranges.append(bucket)
            return {"range": {"field": field, "ranges": ranges}}

        nested_path = entry.value_kind.nested_path if isinstance(entry.value_kind, Exists) else None
        exists = exists_clause(field, nested_path)

        if isinstance(facet, PresenceFacet):
            return {
                "filters": {
                    "filters": {
                        "known": exists,
                        "unknown": {"bool": {"must_not": [exists]}},
                    }
                }
            }

        if isinstance(facet, CountFacet):
            return {"filter": exists}

        return None
