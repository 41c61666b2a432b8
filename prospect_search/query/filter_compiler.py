"""
Compilation of the filter DSL into engine-native filter clauses.

Contact searches apply the contact bucket directly and the company bucket
through a resolved domain allow-list. Company searches only apply the company
bucket.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, Any, Iterable, List, Mapping, Optional, Sequence, Set, Tuple, Union

from .compiled_query import CompiledQuery
from .dsl import FilterDSL, FilterValue, LocationValue, parse_filter_dsl
from .entities import EntityType
from .filter_registry import Exists, FilterRegistry, FilterRegistryEntry, Range, Terms, Text
from .scoring import normalize_domain

logger = logging.getLogger(__name__)

CONTACT_DOMAIN_FIELD = "domain"
DOMAIN_SOURCE_FIELDS = ["domain", "website"]

NORMALIZERS = {
    "domain": normalize_domain,
    "lower": str.lower,
}

FALSY_VALUES = {"false", "0", "no", "unknown"}

BRACKET_RANGE = re.compile(r"^(.+?)\s*[-–]\s*(.+)$")
MONEY_MULTIPLIERS = {"K": 1_000, "M": 1_000_000, "B": 1_000_000_000}


def parse_money(text: str) -> Optional[float]:
    """Parse ``"$1.5M"``, ``"500K"``, ``"1,000"`` into a number"""
    cleaned = text.replace("$", "").replace(",", "").replace(" ", "").upper()
    if not cleaned:
        return None
    multiplier = 1
    if cleaned[-1] in MONEY_MULTIPLIERS:
        multiplier = MONEY_MULTIPLIERS[cleaned[-1]]
        cleaned = cleaned[:-1]
    try:
        return float(cleaned) * multiplier
    except ValueError:
        return None


def parse_bracket(text: str) -> Optional[Dict[str, float]]:
    """Turn ``"1-10"``, ``"1000+"``, ``"<$1M"``, ``"$1M-$10M"`` or a single value into range bounds"""
    text = text.strip()
    if text.endswith("+"):
        low = parse_money(text[:-1])
        return {"gte": low} if low is not None else None

    if text.startswith("<"):
        # upper bound only, exclusive like the facet bucket it came from
        high = parse_money(text[1:])
        return {"lt": high} if high is not None else None

    match = BRACKET_RANGE.match(text)
    if match:
        low, high = parse_money(match.group(1)), parse_money(match.group(2))
        if low is None or high is None:
            return None
        return {"gte": low, "lte": high}

    value = parse_money(text)
    return {"gte": value, "lte": value} if value is not None else None


@dataclass(frozen=True)
class FilterItem:
    """
    One compiled constraint before clause emission.

    ``kind`` is one of terms, terms_all, text, text_all, range, range_any,
    exists. ``op`` is include or exclude.
    """

    kind: str
    fields: Tuple[str, ...]
    op: str
    value: Tuple[Any, ...]
    nested_path: Optional[str] = None

    @property
    def slot(self) -> Tuple[str, Tuple[str, ...], str]:
        return (self.kind, self.fields, self.op)


@dataclass(frozen=True)
class NormalizedFilter:
    entry: FilterRegistryEntry
    value: FilterValue


@dataclass(frozen=True)
class NormalizedDSL:
    """A FilterDSL with both buckets resolved against the registry"""

    dsl: FilterDSL
    contact: Tuple[NormalizedFilter, ...] = ()
    company: Tuple[NormalizedFilter, ...] = ()


DSLInput = Union[NormalizedDSL, FilterDSL, Mapping[str, Any], None]


class FilterCompiler:
    """Compiles FilterDSL buckets into CompiledQuery filter fragments"""

    def __init__(self, registry: Optional[FilterRegistry] = None, contact_domain_field: str = CONTACT_DOMAIN_FIELD):
        self.registry = registry or FilterRegistry()
        self.contact_domain_field = contact_domain_field

    # Normalisation

    def normalize(self, dsl: DSLInput) -> NormalizedDSL:
        """Resolve both buckets once per request; normalised input is returned unchanged"""
        if isinstance(dsl, NormalizedDSL):
            return dsl
        dsl = parse_filter_dsl(dsl)
        return NormalizedDSL(
            dsl=dsl,
            contact=tuple(self.normalize_bucket(dsl.contact, EntityType.CONTACT)),
            company=tuple(self.normalize_bucket(dsl.company, EntityType.COMPANY)),
        )

    def normalize_bucket(self, bucket: Mapping[str, Any], entity: EntityType) -> List[NormalizedFilter]:
        """Resolve ids, aliases and the location shape of one bucket, dropping unusable entries"""
        normalized: List[NormalizedFilter] = []
        for filter_id, value in bucket.items():
            if isinstance(value, LocationValue):
                normalized.extend(self._expand_location(value, entity))
                continue

            entry = self.registry.resolve(filter_id, entity)
            if entry is None:
                logger.warning("Ignoring unknown filter '%s' in %s bucket", filter_id, entity.value)
                continue
            if not entry.active:
                logger.debug("Ignoring inactive filter '%s'", entry.id)
                continue
            if not entry.applies(entity):
                logger.warning("Ignoring filter '%s' misplaced in %s bucket", filter_id, entity.value)
                continue
            if value.exclude and not entry.supports_exclusion:
                logger.warning("Exclusion not supported for %s.%s, dropping it", entity.value, entry.id)
                value = FilterValue(
                    include=value.include,
                    min=value.min,
                    max=value.max,
                    presence=value.presence,
                    operator=value.operator,
                )
            if value.is_empty():
                continue
            normalized.append(NormalizedFilter(entry, value))
        return normalized

    def _expand_location(self, location: LocationValue, entity: EntityType) -> List[NormalizedFilter]:
        expanded: List[NormalizedFilter] = []
        dimensions = list(dict.fromkeys(list(location.include) + list(location.exclude)))
        for dimension in dimensions:
            entry = self.registry.location_entry(entity, dimension)
            if entry is None:
                continue
            expanded.append(NormalizedFilter(entry, FilterValue(
                include=location.include.get(dimension, ()),
                exclude=location.exclude.get(dimension, ()),
            )))

        # Presence only constrains when exactly one side is requested
        if location.known != location.unknown:
            entry = self.registry.location_entry(entity, "country")
            if entry is not None:
                presence = "known" if location.known else "unknown"
                expanded.append(NormalizedFilter(entry, FilterValue(presence=presence)))
        return expanded

    def company_filters_for(self, dsl: DSLInput, entity: EntityType) -> List[NormalizedFilter]:
        """
        Company-bucket filters that apply to a search of ``entity``.

        On contact searches any company location dimension already constrained
        by the contact bucket is dropped.
        """
        normalized = self.normalize(dsl)
        if EntityType(entity) != EntityType.CONTACT:
            return list(normalized.company)

        contact_dimensions = {
            item.entry.location_dimension
            for item in normalized.contact
            if item.entry.location_dimension
        }
        kept = []
        for item in normalized.company:
            if item.entry.location_dimension in contact_dimensions:
                logger.debug("Contact location overrides company filter '%s'", item.entry.id)
                continue
            kept.append(item)
        return kept

    def constrained_ids(self, dsl: DSLInput) -> Set[str]:
        """Registry ids constrained by either bucket"""
        normalized = self.normalize(dsl)
        return {item.entry.id for item in normalized.contact + normalized.company}

    def needs_domain_resolution(self, dsl: DSLInput, entity: EntityType) -> bool:
        return EntityType(entity) == EntityType.CONTACT and bool(self.company_filters_for(dsl, entity))

    # Compilation

    def compile(
        self,
        dsl: DSLInput,
        entity: EntityType,
        resolved_domains: Optional[Sequence[str]] = None,
    ) -> CompiledQuery:
        """
        Compile the DSL for a search of ``entity``.

        ``resolved_domains`` is the company-side allow-list for contact
        searches; an empty sequence forces zero results, ``None`` means no
        company constraint was resolved.
        """
        normalized = self.normalize(dsl)
        entity = EntityType(entity)

        if entity == EntityType.CONTACT:
            items = self.build_items(normalized.contact, entity)
            if resolved_domains is not None:
                domains = tuple(dict.fromkeys(resolved_domains))
                items.append(FilterItem("terms", (self.contact_domain_field,), "include", domains))
            elif self.needs_domain_resolution(normalized, entity):
                logger.warning("Company filters present on a contact search without resolved domains")
        else:
            if normalized.dsl.contact:
                logger.debug("Contact filters are not applied to company searches: %s", list(normalized.dsl.contact))
            items = self.build_items(self.company_filters_for(normalized, entity), entity)

        return self.emit(self.deduplicate(items))

    def compile_domain_resolution(self, dsl: DSLInput) -> CompiledQuery:
        """Company-index query whose hits yield the domain allow-list for a contact search"""
        items = self.build_items(self.company_filters_for(dsl, EntityType.CONTACT), EntityType.COMPANY)
        query = self.emit(self.deduplicate(items))
        query.source = list(DOMAIN_SOURCE_FIELDS)
        return query

    def build_items(self, filters: Iterable[NormalizedFilter], entity: EntityType) -> List[FilterItem]:
        items: List[FilterItem] = []
        for normalized in filters:
            entry, value = normalized.entry, normalized.value
            fields = entry.fields_for(entity)
            if not fields:
                logger.debug("Filter '%s' has no field mapping for %s", entry.id, entity.value)
                continue
            kind = entry.value_kind

            if isinstance(kind, Exists):
                presence = value.presence
                if presence is None and value.include:
                    negative = value.include[0].lower() in FALSY_VALUES
                    presence = "unknown" if negative else "known"
                if presence:
                    items.append(self._presence_item(fields, presence, kind.nested_path))
                continue

            if value.presence:
                items.append(self._presence_item(fields, value.presence, None))

            if isinstance(kind, Range):
                items.extend(self._range_items(fields, value))
            elif isinstance(kind, Text):
                items.extend(self._set_items("text", fields, value, None))
            elif isinstance(kind, Terms):
                items.extend(self._set_items("terms", fields, value, NORMALIZERS.get(kind.normalizer)))
        return items

    def _presence_item(self, fields: Tuple[str, ...], presence: str, nested_path: Optional[str]) -> FilterItem:
        op = "include" if presence == "known" else "exclude"
        return FilterItem("exists", fields, op, (), nested_path)

    def _set_items(self, kind: str, fields: Tuple[str, ...], value: FilterValue, normalizer) -> List[FilterItem]:
        def prepare(values):
            if normalizer is None:
                return tuple(values)
            return tuple(dict.fromkeys(normalizer(v) for v in values))

        items = []
        if value.include:
            included = prepare(value.include)
            if value.operator == "and" and len(included) > 1:
                items.append(FilterItem(f"{kind}_all", fields, "include", included))
            else:
                items.append(FilterItem(kind, fields, "include", included))
        if value.exclude:
            items.append(FilterItem(kind, fields, "exclude", prepare(value.exclude)))
        return items

    def _range_items(self, fields: Tuple[str, ...], value: FilterValue) -> List[FilterItem]:
        items = []
        if value.has_range:
            bounds = {}
            if value.min is not None:
                bounds["gte"] = value.min
            if value.max is not None:
                bounds["lte"] = value.max
            items.append(FilterItem("range", fields, "include", (tuple(sorted(bounds.items())),)))

        for op, brackets in (("include", value.include), ("exclude", value.exclude)):
            parsed = []
            for bracket in brackets:
                bounds = parse_bracket(bracket)
                if bounds is None:
                    logger.warning("Ignoring unparseable range bracket '%s'", bracket)
                    continue
                parsed.append(tuple(sorted(bounds.items())))
            if parsed:
                items.append(FilterItem("range_any", fields, op, tuple(parsed)))
        return items

    def deduplicate(self, items: List[FilterItem]) -> List[FilterItem]:
        """Drop repeated (field, value) pairs, then keep the last item per field slot"""
        unique: List[FilterItem] = []
        seen = set()
        for item in items:
            key = (item.fields, item.op, item.value, item.kind)
            if key in seen:
                continue
            seen.add(key)
            unique.append(item)

        collapsed: Dict[Tuple[str, Tuple[str, ...], str], FilterItem] = {}
        for item in unique:
            # re-insert so the surviving item keeps the position of the last write
            collapsed.pop(item.slot, None)
            collapsed[item.slot] = item
        return list(collapsed.values())

    # Clause emission

    def emit(self, items: Iterable[FilterItem]) -> CompiledQuery:
        query = CompiledQuery()
        for item in items:
            if item.op == "include":
                query.filter.extend(self._include_clauses(item))
            else:
                query.must_not.extend(self._exclude_clauses(item))
        return query

    def _include_clauses(self, item: FilterItem) -> List[Dict[str, Any]]:
        if item.kind == "terms":
            return [_any_of([{"terms": {f: list(item.value)}} for f in item.fields])]
        if item.kind == "terms_all":
            return [
                _any_of([{"term": {f: value}} for f in item.fields])
                for value in item.value
            ]
        if item.kind == "text":
            return [_any_of([
                {"match_phrase": {f: value}}
                for value in item.value
                for f in item.fields
            ])]
        if item.kind == "text_all":
            return [
                _any_of([{"match_phrase": {f: value}} for f in item.fields])
                for value in item.value
            ]
        if item.kind == "range":
            bounds = dict(item.value[0])
            return [_any_of([{"range": {f: dict(bounds)}} for f in item.fields])]
        if item.kind == "range_any":
            return [_any_of([
                {"range": {f: dict(bounds)}}
                for bounds in item.value
                for f in item.fields
            ])]
        if item.kind == "exists":
            return [_any_of([exists_clause(f, item.nested_path) for f in item.fields])]
        raise ValueError(f"Unsupported filter item kind: {item.kind}")

    def _exclude_clauses(self, item: FilterItem) -> List[Dict[str, Any]]:
        if item.kind in ("terms", "terms_all"):
            return [{"terms": {f: list(item.value)}} for f in item.fields]
        if item.kind in ("text", "text_all"):
            return [
                {"match_phrase": {f: value}}
                for value in item.value
                for f in item.fields
            ]
        if item.kind in ("range", "range_any"):
            bounds_list = item.value if item.kind == "range_any" else item.value[:1]
            return [
                {"range": {f: dict(bounds)}}
                for bounds in bounds_list
                for f in item.fields
            ]
        if item.kind == "exists":
            return [exists_clause(f, item.nested_path) for f in item.fields]
        raise ValueError(f"Unsupported filter item kind: {item.kind}")


def _any_of(clauses: List[Dict[str, Any]]) -> Dict[str, Any]:
    if len(clauses) == 1:
        return clauses[0]
    return {"bool": {"should": clauses, "minimum_should_match": 1}}


def exists_clause(field: str, nested_path: Optional[str]) -> Dict[str, Any]:
    clause = {"exists": {"field": field}}
    if nested_path:
        return {"nested": {"path": nested_path, "query": clause}}
    return clause
