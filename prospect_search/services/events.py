"""Typed diagnostic events emitted by the search orchestrator"""

import logging
from dataclasses import asdict, dataclass
from typing import List, Optional, Protocol, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchRequested:
    entity_type: str
    has_term: bool
    filter_keys: List[str]
    page: int
    per_page: int


@dataclass(frozen=True)
class CompanyDomainsResolved:
    filter_keys: List[str]
    domain_count: int


@dataclass(frozen=True)
class EmbeddingFailed:
    error: str


@dataclass(frozen=True)
class AggregationRetryTriggered:
    entity_type: str
    error: str


@dataclass(frozen=True)
class SearchExecuted:
    entity_type: str
    total: int
    degraded: bool
    took_ms: Optional[int]


SearchEvent = Union[
    SearchRequested,
    CompanyDomainsResolved,
    EmbeddingFailed,
    AggregationRetryTriggered,
    SearchExecuted,
]


class SearchEventSink(Protocol):
    def emit(self, event: SearchEvent) -> None:
        ...


class LoggingEventSink:
    """Writes every event to the standard logger"""

    WARNING_EVENTS = (EmbeddingFailed, AggregationRetryTriggered)

    def __init__(self, log: Optional[logging.Logger] = None):
        self.log = log or logger

    def emit(self, event: SearchEvent) -> None:
        level = logging.WARNING if isinstance(event, self.WARNING_EVENTS) else logging.INFO
        self.log.log(level, "%s %s", type(event).__name__, asdict(event))
