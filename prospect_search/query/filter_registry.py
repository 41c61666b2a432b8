"""
Declarative catalogue of every supported filter.

The compiler and the aggregation builder both read this table; adding a filter
means adding an entry here and nothing else.
"""

from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple, Union

from .entities import EntityType


CONTACT = EntityType.CONTACT
COMPANY = EntityType.COMPANY

# Canonical names whose meaning depends on the bucket they appear in
CONTEXT_ALIASES = {
    "countries": "country",
    "country": "country",
    "states": "state",
    "state": "state",
    "cities": "city",
    "city": "city",
}


# Value kinds

@dataclass(frozen=True)
class Terms:
    """Keyword set membership"""
    normalizer: Optional[str] = None


@dataclass(frozen=True)
class Text:
    """Phrase matching on analysed text fields"""


@dataclass(frozen=True)
class Range:
    """Inclusive numeric range"""


@dataclass(frozen=True)
class Exists:
    """Field presence, optionally inside a nested object"""
    nested_path: Optional[str] = None


ValueKind = Union[Terms, Text, Range, Exists]


# Aggregation facets

@dataclass(frozen=True)
class TermsFacet:
    size: int = 50
    enabled: bool = True


@dataclass(frozen=True)
class RangeFacet:
    ranges: Tuple[Tuple[str, Optional[float], Optional[float]], ...] = ()
    enabled: bool = True


@dataclass(frozen=True)
class PresenceFacet:
    enabled: bool = True


@dataclass(frozen=True)
class CountFacet:
    enabled: bool = True


Facet = Union[TermsFacet, RangeFacet, PresenceFacet, CountFacet]


@dataclass(frozen=True)
class FilterRegistryEntry:
    id: str
    label: str
    group: str
    applies_to: FrozenSet[EntityType]
    fields: Dict[EntityType, Tuple[str, ...]]
    value_kind: ValueKind
    aggregation: Optional[Facet] = None
    aliases: Tuple[str, ...] = ()
    supports_exclusion: bool = True
    location_dimension: Optional[str] = None
    active: bool = True

    def applies(self, entity: EntityType) -> bool:
        return EntityType(entity) in self.applies_to

    def fields_for(self, entity: EntityType) -> Tuple[str, ...]:
        return self.fields.get(EntityType(entity), ())

    def to_dict(self) -> Dict[str, object]:
        """Catalogue representation used by the filters endpoint"""
        facet = None
        if self.aggregation is not None:
            facet = {
                "type": type(self.aggregation).__name__.replace("Facet", "").lower(),
                "enabled": self.aggregation.enabled,
            }
        return {
            "id": self.id,
            "label": self.label,
            "group": self.group,
            "applies_to": sorted(e.value for e in self.applies_to),
            "value_kind": type(self.value_kind).__name__.lower(),
            "supports_exclusion": self.supports_exclusion,
            "aliases": list(self.aliases),
            "aggregation": facet,
        }


EMPLOYEE_BRACKETS = (
    ("1-10", 1, 10),
    ("10-50", 10, 50),
    ("50-200", 50, 200),
    ("200-500", 200, 500),
    ("500-1000", 500, 1000),
    ("1000+", 1000, None),
)

REVENUE_BRACKETS = (
    ("<$1M", None, 1_000_000),
    ("$1M-$10M", 1_000_000, 10_000_000),
    ("$10M-$50M", 10_000_000, 50_000_000),
    ("$50M-$100M", 50_000_000, 100_000_000),
    ("$100M-$500M", 100_000_000, 500_000_000),
    ("$500M-$1B", 500_000_000, 1_000_000_000),
    ("$1B+", 1_000_000_000, None),
)


def _entry(id, label, group, applies_to, value_kind, contact=(), company=(), **kwargs) -> FilterRegistryEntry:
    fields = {}
    if contact:
        fields[CONTACT] = tuple(contact)
    if company:
        fields[COMPANY] = tuple(company)
    return FilterRegistryEntry(
        id=id,
        label=label,
        group=group,
        applies_to=frozenset(applies_to),
        fields=fields,
        value_kind=value_kind,
        **kwargs,
    )


DEFAULT_ENTRIES: Tuple[FilterRegistryEntry, ...] = (
    # Contact attributes
    _entry("job_title", "Job Title", "Contact", {CONTACT}, Text(),
           contact=("title",), aliases=("title", "job_titles")),
    _entry("departments", "Department", "Contact", {CONTACT}, Terms(),
           contact=("departments",), aggregation=TermsFacet(size=50), aliases=("department",)),
    _entry("seniority", "Seniority", "Contact", {CONTACT}, Terms(),
           contact=("seniority",), aggregation=TermsFacet(size=20), aliases=("seniorities",)),
    _entry("first_name", "First Name", "Contact", {CONTACT}, Text(),
           contact=("first_name",)),
    _entry("last_name", "Last Name", "Contact", {CONTACT}, Text(),
           contact=("last_name",)),

    # Contact location
    _entry("contact_country", "Contact Country", "Location", {CONTACT}, Terms(),
           contact=("location.country",), aggregation=TermsFacet(size=100), location_dimension="country"),
    _entry("contact_state", "Contact State", "Location", {CONTACT}, Terms(),
           contact=("location.state",), location_dimension="state"),
    _entry("contact_city", "Contact City", "Location", {CONTACT}, Terms(),
           contact=("location.city",), location_dimension="city"),

    # Contact info presence
    _entry("has_email", "Has Email", "Contact Info", {CONTACT}, Exists(nested_path="emails"),
           contact=("emails.email",), aggregation=CountFacet(), supports_exclusion=False),
    _entry("has_phone", "Has Phone", "Contact Info", {CONTACT}, Exists(nested_path="phone_numbers"),
           contact=("phone_numbers.phone_number",), aggregation=CountFacet(), supports_exclusion=False),
    _entry("has_linkedin", "Has LinkedIn", "Contact Info", {CONTACT}, Exists(),
           contact=("linkedin_url",), aggregation=PresenceFacet(), supports_exclusion=False),

    # Company attributes; contact fields only feed facets on contact searches
    _entry("industry", "Industry", "Company", {COMPANY}, Terms(),
           company=("industry",), contact=("company_obj.industry",),
           aggregation=TermsFacet(size=50), aliases=("industries",)),
    _entry("technologies", "Technologies", "Company", {COMPANY}, Terms(),
           company=("technologies",), contact=("company_obj.technologies",),
           aggregation=TermsFacet(size=50), aliases=("company_technologies", "technology")),
    _entry("employee_count", "Company Size / Employees", "Company", {COMPANY}, Range(),
           company=("employee_count",), contact=("company_obj.employee_count",),
           aggregation=RangeFacet(ranges=EMPLOYEE_BRACKETS), aliases=("company_headcount", "employees")),
    _entry("annual_revenue", "Annual Revenue", "Company", {COMPANY}, Range(),
           company=("annual_revenue_usd",), contact=("company_obj.annual_revenue_usd",),
           aggregation=RangeFacet(ranges=REVENUE_BRACKETS), aliases=("revenue", "annual_revenue_usd")),
    _entry("founded_year", "Founded Year", "Company", {COMPANY}, Range(),
           company=("founded_year",), aliases=("founded",)),
    _entry("total_funding", "Total Funding", "Company", {COMPANY}, Range(),
           company=("total_funding_usd",), aliases=("funding", "total_funding_usd")),
    _entry("company_names", "Company Name", "Company", {COMPANY}, Terms(),
           company=("company.keyword",), aliases=("company_name",)),
    _entry("domains", "Company Domain", "Company", {COMPANY}, Terms(normalizer="domain"),
           company=("domain", "website"), aliases=("company_domain", "domain", "website")),
    _entry("company_keywords", "Keywords", "Company", {COMPANY}, Text(),
           company=("keywords", "business_description"), aliases=("keywords",)),

    # Company location
    _entry("company_country", "Company Country", "Location", {COMPANY}, Terms(),
           company=("location.country",), contact=("company_obj.location.country",),
           aggregation=TermsFacet(size=100), location_dimension="country"),
    _entry("company_state", "Company State", "Location", {COMPANY}, Terms(),
           company=("location.state",), location_dimension="state"),
    _entry("company_city", "Company City", "Location", {COMPANY}, Terms(),
           company=("location.city",), location_dimension="city"),

    # Company contact info presence
    _entry("has_company_email", "Has Company Email", "Contact Info", {COMPANY}, Exists(),
           company=("company_email",), aggregation=CountFacet(), supports_exclusion=False),
    _entry("has_company_phone", "Has Company Phone", "Contact Info", {COMPANY}, Exists(),
           company=("company_phone",), aggregation=CountFacet(), supports_exclusion=False),
)


class FilterRegistry:
    """Read-only filter catalogue with alias and context-aware lookups"""

    def __init__(self, entries: Optional[Iterable[FilterRegistryEntry]] = None):
        self._entries: Dict[str, FilterRegistryEntry] = {}
        self._aliases: Dict[str, str] = {}

        for entry in (DEFAULT_ENTRIES if entries is None else entries):
            if entry.id in self._entries:
                raise ValueError(f"Duplicate filter id: {entry.id}")
            self._entries[entry.id] = entry
            for alias in entry.aliases:
                self._aliases[alias] = entry.id

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries.values())

    def get(self, filter_id: str) -> Optional[FilterRegistryEntry]:
        """Look up an entry by id or alias"""
        key = filter_id.strip().lower()
        if key in self._entries:
            return self._entries[key]
        canonical = self._aliases.get(key)
        return self._entries.get(canonical) if canonical else None

    def resolve(self, filter_id: str, entity: EntityType) -> Optional[FilterRegistryEntry]:
        """
        Look up an entry as it appears in the bucket of ``entity``.

        Context aliases (``countries``, ``state``...) map to the location entry
        of the bucket's own entity type.
        """
        key = filter_id.strip().lower()
        dimension = CONTEXT_ALIASES.get(key)
        if dimension is not None and key not in self._entries:
            return self.location_entry(entity, dimension)
        return self.get(key)

    def location_entry(self, entity: EntityType, dimension: str) -> Optional[FilterRegistryEntry]:
        for entry in self._entries.values():
            if entry.location_dimension == dimension and entry.applies(entity):
                return entry
        return None

    def active_entries(self) -> List[FilterRegistryEntry]:
        return [entry for entry in self._entries.values() if entry.active]

    def grouped(self) -> Dict[str, List[Dict[str, object]]]:
        """Active entries grouped by their UI group, in declaration order"""
        groups: Dict[str, List[Dict[str, object]]] = {}
        for entry in self.active_entries():
            groups.setdefault(entry.group, []).append(entry.to_dict())
        return groups
