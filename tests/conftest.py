import math

import pytest

from prospect_search.errors import EmbeddingError
from prospect_search.query.entities import EntityType
from prospect_search.services.cache import ResponseCache
from prospect_search.services.search_service import SearchService


def page_result(rows=None, total=None, page=1, per_page=10, aggregations=None):
    rows = rows or []
    total = len(rows) if total is None else total
    return {
        "data": rows,
        "total": total,
        "current_page": page,
        "per_page": per_page,
        "last_page": max(1, math.ceil(total / per_page)),
        "aggregations": aggregations or {},
        "took": 3,
    }


def hit(doc_id, score=1.0, **source):
    return {"_id": doc_id, "_score": score, "_source": source, "highlight": {}}


class FakeElasticsearchService:
    """Stands in for ElasticsearchService; outcomes are queued per entity type"""

    def __init__(self, contact=None, company=None):
        self.index_aliases = {"contact": "contacts", "company": "companies"}
        self.outcomes = {
            EntityType.CONTACT: list(contact or []),
            EntityType.COMPANY: list(company or []),
        }
        self.calls = []

    def read_alias(self, entity):
        return self.index_aliases[EntityType(entity).value]

    async def paginate(self, entity, body, page, per_page):
        entity = EntityType(entity)
        self.calls.append({"entity": entity, "body": body, "page": page, "per_page": per_page})
        queue = self.outcomes[entity]
        outcome = queue.pop(0) if queue else page_result(page=page, per_page=per_page)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def search(self, entity, body):
        entity = EntityType(entity)
        self.calls.append({"entity": entity, "body": body})
        queue = self.outcomes[entity]
        outcome = queue.pop(0) if queue else {"hits": {"hits": [], "total": {"value": 0}}}
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def check_index_health(self):
        return list(self.index_aliases.values())

    async def get_index_stats(self):
        return {name: {"index": alias, "doc_count": 0} for name, alias in self.index_aliases.items()}

    def calls_for(self, entity):
        return [call for call in self.calls if call["entity"] == EntityType(entity)]


class FakeEmbeddingService:
    def __init__(self, vector=None, error=None):
        self.vector = vector or [0.1, 0.2, 0.3]
        self.error = error
        self.requests = []

    @property
    def available(self):
        return True

    async def generate(self, text):
        self.requests.append(text)
        if self.error:
            raise EmbeddingError(self.error)
        return self.vector


class RecordingEventSink:
    """Keeps emitted search events in memory"""

    def __init__(self):
        self.events = []

    def emit(self, event):
        self.events.append(event)

    def of_type(self, event_type):
        return [event for event in self.events if isinstance(event, event_type)]


@pytest.fixture
def events():
    return RecordingEventSink()


@pytest.fixture
def make_service(events):
    def factory(es_service=None, embedding_service=None, cache_ttl=60):
        es_service = es_service or FakeElasticsearchService()
        return SearchService(
            es_service,
            embedding_service=embedding_service,
            events=events,
            cache=ResponseCache(ttl=cache_ttl),
        )
    return factory
