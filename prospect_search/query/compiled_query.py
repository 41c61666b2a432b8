from dataclasses import dataclass, field, replace
from typing import Dict, Any, List, Optional


@dataclass
class CompiledQuery:
    """Engine-ready search request, free of business logic"""

    must: List[Dict[str, Any]] = field(default_factory=list)
    must_not: List[Dict[str, Any]] = field(default_factory=list)
    filter: List[Dict[str, Any]] = field(default_factory=list)
    should: List[Dict[str, Any]] = field(default_factory=list)
    minimum_should_match: Optional[int] = None
    min_score: Optional[float] = None
    sort: List[Dict[str, Any]] = field(default_factory=list)
    aggregations: Dict[str, Any] = field(default_factory=dict)
    knn: Optional[Dict[str, Any]] = None
    highlight: Optional[Dict[str, Any]] = None
    source: Optional[List[str]] = None

    def bool_query(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {}
        if self.must:
            body["must"] = list(self.must)
        if self.filter:
            body["filter"] = list(self.filter)
        if self.should:
            body["should"] = list(self.should)
            body["minimum_should_match"] = self.minimum_should_match or 1
        if self.must_not:
            body["must_not"] = list(self.must_not)
        if not body:
            return {"match_all": {}}
        return {"bool": body}

    def filter_query(self) -> Optional[Dict[str, Any]]:
        """Only the non-scoring constraints, used as the knn pre-filter"""
        if not self.filter and not self.must_not:
            return None
        body: Dict[str, Any] = {}
        if self.filter:
            body["filter"] = list(self.filter)
        if self.must_not:
            body["must_not"] = list(self.must_not)
        return {"bool": body}

    def to_body(self) -> Dict[str, Any]:
        """Serialise to an Elasticsearch search body"""
        body: Dict[str, Any] = {
            "query": self.bool_query(),
            "track_total_hits": True,
        }
        if self.sort:
            body["sort"] = list(self.sort)
        if self.aggregations:
            body["aggs"] = dict(self.aggregations)
        if self.min_score is not None:
            body["min_score"] = self.min_score
        if self.knn:
            body["knn"] = dict(self.knn)
        if self.highlight:
            body["highlight"] = dict(self.highlight)
        if self.source is not None:
            body["_source"] = list(self.source)
        return body

    def without_aggregations(self) -> "CompiledQuery":
        return replace(self, aggregations={})
