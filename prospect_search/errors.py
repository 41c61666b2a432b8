from typing import List, Optional


class SearchError(Exception):
    """Base class for every error raised by the search core"""


class QuerySyntaxError(SearchError):
    """Raised by the term parser on malformed boolean queries"""


class InvalidRequest(SearchError):
    """Structurally invalid search input, rejected before any engine call"""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = errors or [message]


class SearchBackendError(SearchError):
    """The search engine rejected or failed to execute a request"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class BackendAggregationError(SearchBackendError):
    """Aggregation-class failure (e.g. a terms aggregation on a text field)"""


class BackendUnavailable(SearchBackendError):
    """The engine is unreachable, timed out or answered with a server error"""


class BackendRequestError(SearchBackendError):
    """The engine rejected the request for a reason other than aggregations"""


class EmbeddingError(Exception):
    """Raised when the embedding provider is unavailable or answers garbage"""


class UnknownFilter(SearchError):
    """Lookup of a filter id that the registry does not know"""
