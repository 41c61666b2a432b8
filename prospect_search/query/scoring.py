import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional, Tuple

from ..errors import QuerySyntaxError
from .entities import EntityType
from .term_parser import (
    And,
    Or,
    ParsedTerm,
    Phrase,
    SearchStrategy,
    Term,
    TermParser,
    classify,
)

logger = logging.getLogger(__name__)

GENERAL_MIN_SCORE = 0.1


@dataclass(frozen=True)
class ScoringField:
    field: str
    boost: float


def _fields(*pairs) -> Tuple[ScoringField, ...]:
    return tuple(ScoringField(name, boost) for name, boost in pairs)


@dataclass(frozen=True)
class FieldScores:
    """Relevance fields of one entity type, split by matching style"""

    exact: Tuple[ScoringField, ...]
    phrase: Tuple[ScoringField, ...]
    prefix: Tuple[ScoringField, ...]
    ngram: Tuple[ScoringField, ...]
    fuzzy: Tuple[ScoringField, ...]
    website_field: str = "website"
    linkedin_field: str = "linkedin_url"

    def highlight_fields(self) -> List[str]:
        """Every scoring field name, first occurrence order"""
        names: List[str] = []
        for bucket in (self.exact, self.phrase, self.prefix, self.ngram, self.fuzzy):
            for scoring_field in bucket:
                if scoring_field.field not in names:
                    names.append(scoring_field.field)
        return names


CONTACT_SCORES = FieldScores(
    exact=_fields(
        ("full_name.keyword", 10),
        ("first_name.keyword", 8),
        ("last_name.keyword", 8),
        ("emails.email", 7),
        ("linkedin_url", 6),
        ("title.keyword", 5),
        ("departments", 5),
        ("seniority", 5),
    ),
    phrase=_fields(
        ("full_name", 6),
        ("title", 4),
        ("company", 3),
    ),
    prefix=_fields(
        ("full_name", 4),
        ("first_name", 3),
        ("last_name", 3),
        ("title", 2),
    ),
    ngram=_fields(
        ("full_name.joined", 3),
        ("first_name.joined", 2),
        ("last_name.joined", 2),
        ("title.joined", 2),
    ),
    fuzzy=_fields(
        ("full_name", 3),
        ("first_name", 2),
        ("last_name", 2),
        ("title", 1),
        ("company", 1),
        ("location.street", 1),
        ("location.city", 1),
        ("location.state", 1),
        ("location.country", 1),
    ),
    linkedin_field="linkedin_url",
)

COMPANY_SCORES = FieldScores(
    exact=_fields(
        ("company.keyword", 10),
        ("company_also_known_as.keyword", 8),
        ("website", 7),
        ("company_linkedin_url", 7),
        ("business_category", 6),
        ("keywords", 5),
    ),
    phrase=_fields(
        ("company", 6),
        ("company_also_known_as", 5),
        ("business_description", 3),
        ("service_or_product", 4),
    ),
    prefix=_fields(
        ("company", 4),
        ("company_also_known_as", 3),
    ),
    ngram=_fields(
        ("company.joined", 3),
        ("company_also_known_as.joined", 2),
    ),
    fuzzy=_fields(
        ("company", 3),
        ("company_also_known_as", 2),
        ("business_description", 1),
        ("service_or_product", 1),
        ("seo_description", 1),
        ("location.street", 1),
        ("location.city", 1),
        ("location.state", 1),
        ("location.country", 1),
    ),
    linkedin_field="company_linkedin_url",
)


class FieldScoreRegistry:
    """Read-only lookup of relevance fields per entity type"""

    def __init__(self, scores: Optional[Dict[EntityType, FieldScores]] = None):
        self._scores = dict(scores or {
            EntityType.CONTACT: CONTACT_SCORES,
            EntityType.COMPANY: COMPANY_SCORES,
        })

    def get(self, entity: EntityType) -> FieldScores:
        return self._scores[EntityType(entity)]


@dataclass
class TextQuery:
    """Relevance clauses produced for one free-text query"""

    strategy: SearchStrategy
    must: List[Dict[str, Any]] = field(default_factory=list)
    should: List[Dict[str, Any]] = field(default_factory=list)
    min_score: Optional[float] = None
    highlight: Optional[Dict[str, Any]] = None


def normalize_domain(value: str) -> str:
    """Lower-case a website or domain and strip its scheme and ``www.``"""
    value = value.strip().lower()
    value = re.sub(r"^https?://", "", value)
    return re.sub(r"^www\.", "", value)


class ScoringClauseBuilder:
    """Turns free text into weighted should/must clauses for one entity type"""

    def __init__(self, registry: Optional[FieldScoreRegistry] = None, parser: Optional[TermParser] = None):
        self.registry = registry or FieldScoreRegistry()
        self.parser = parser or TermParser()

    def build(self, text: str, entity: EntityType) -> TextQuery:
        """Pick a strategy for the raw text and build its clauses"""
        scores = self.registry.get(entity)
        strategy = classify(text)

        if strategy == SearchStrategy.DOMAIN:
            return TextQuery(strategy=strategy, should=[self.domain_clause(text, scores)])

        if strategy == SearchStrategy.STRUCTURED:
            try:
                parsed = self.parser.parse(text)
            except QuerySyntaxError as e:
                logger.debug("Falling back to general search for %r: %s", text, e)
            else:
                return TextQuery(strategy=strategy, must=[self.lower(parsed, scores)])

        return self.general_query(text, scores)

    def domain_clause(self, text: str, scores: FieldScores) -> Dict[str, Any]:
        domain = normalize_domain(text)
        return {
            "bool": {
                "should": [
                    # Exact website match
                    {"term": {scores.website_field: {"value": domain, "boost": 10}}},
                    # LinkedIn URL match
                    {"term": {scores.linkedin_field: {"value": domain, "boost": 8}}},
                    # Website contains
                    {"wildcard": {scores.website_field: {"value": f"*{domain}*", "boost": 5}}},
                ],
                "minimum_should_match": 1,
            }
        }

    def general_query(self, text: str, scores: FieldScores) -> TextQuery:
        should = self.exact_clauses(text, scores.exact)
        should += self.phrase_clauses(text, scores.phrase, slop=1)
        should += self.prefix_clauses(text, scores.prefix)
        should += self.ngram_clauses(text, scores.ngram)
        fuzzy = self.fuzzy_clause(text, scores.fuzzy)
        if fuzzy:
            should.append(fuzzy)

        return TextQuery(
            strategy=SearchStrategy.GENERAL,
            should=[{"bool": {"should": should, "minimum_should_match": 1}}],
            min_score=GENERAL_MIN_SCORE,
            highlight=self.highlight(scores),
        )

    def lower(self, node: ParsedTerm, scores: FieldScores) -> Dict[str, Any]:
        """Translate a parsed boolean tree into engine clauses"""
        if isinstance(node, And):
            return {"bool": {"must": [self.lower(child, scores) for child in node.children]}}
        if isinstance(node, Or):
            return {
                "bool": {
                    "should": [self.lower(child, scores) for child in node.children],
                    "minimum_should_match": 1,
                }
            }
        if isinstance(node, Phrase):
            return {
                "bool": {
                    "should": self.phrase_clauses(node.value, scores.phrase),
                    "minimum_should_match": 1,
                }
            }
        if isinstance(node, Term):
            should = self.exact_clauses(node.value, scores.exact)
            should += self.prefix_clauses(node.value, scores.prefix)
            should += self.ngram_clauses(node.value, scores.ngram)
            fuzzy = self.fuzzy_clause(node.value, scores.fuzzy)
            if fuzzy:
                should.append(fuzzy)
            return {"bool": {"should": should, "minimum_should_match": 1}}
        raise TypeError(f"Unsupported term node: {node!r}")

    def exact_clauses(self, text: str, fields: Tuple[ScoringField, ...]) -> List[Dict[str, Any]]:
        return [
            {"term": {f.field: {"value": text, "boost": f.boost * 3}}}
            for f in fields
        ]

    def phrase_clauses(self, text: str, fields: Tuple[ScoringField, ...], slop: Optional[int] = None) -> List[Dict[str, Any]]:
        clauses = []
        for f in fields:
            body = {"query": text, "boost": f.boost * 2}
            if slop is not None:
                body["slop"] = slop
            clauses.append({"match_phrase": {f.field: body}})
        return clauses

    def prefix_clauses(self, text: str, fields: Tuple[ScoringField, ...]) -> List[Dict[str, Any]]:
        return [
            {"match": {f"{f.field}.prefix": {"query": text, "boost": f.boost}}}
            for f in fields
        ]

    def ngram_clauses(self, text: str, fields: Tuple[ScoringField, ...]) -> List[Dict[str, Any]]:
        return [
            {"match": {f.field: {"query": text, "boost": f.boost, "operator": "and"}}}
            for f in fields
        ]

    def fuzzy_clause(self, text: str, fields: Tuple[ScoringField, ...]) -> Optional[Dict[str, Any]]:
        if not fields:
            return None
        return {
            "multi_match": {
                "query": text,
                "type": "best_fields",
                "fields": [f"{f.field}^{_format_boost(f.boost)}" for f in fields],
                "fuzziness": "AUTO",
                "prefix_length": 2,
                "tie_breaker": 0.3,
            }
        }

    def highlight(self, scores: FieldScores) -> Dict[str, Any]:
        return {
            "pre_tags": ["<mark>"],
            "post_tags": ["</mark>"],
            "fields": {name: {} for name in scores.highlight_fields()},
        }


def _format_boost(boost: float) -> str:
    return str(int(boost)) if float(boost).is_integer() else str(boost)
