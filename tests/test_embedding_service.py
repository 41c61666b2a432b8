import asyncio
from types import SimpleNamespace

import openai
import pytest

from prospect_search.errors import EmbeddingError
from prospect_search.services.embedding_service import EmbeddingService


class FakeEmbeddings:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    async def create(self, model, input):
        self.calls.append({"model": model, "input": input})
        if self.error:
            raise self.error
        return self.response


def make_service(response=None, error=None):
    client = SimpleNamespace(embeddings=FakeEmbeddings(response, error))
    return EmbeddingService(client=client, model="test-embedding")


def embedding_response(vector):
    return SimpleNamespace(data=[SimpleNamespace(embedding=vector)])


class TestEmbeddingService:
    def test_generate(self):
        service = make_service(embedding_response([0.1, 0.2]))

        assert service.available
        assert asyncio.run(service.generate("cloud\nsales leaders")) == [0.1, 0.2]
        assert service.client.embeddings.calls == [{"model": "test-embedding", "input": "cloud sales leaders"}]

    def test_provider_errors_are_wrapped(self):
        service = make_service(error=openai.OpenAIError("quota exceeded"))
        with pytest.raises(EmbeddingError, match="quota exceeded"):
            asyncio.run(service.generate("x"))

    @pytest.mark.parametrize("response", [
        SimpleNamespace(data=[]),
        SimpleNamespace(),
        embedding_response([]),
    ])
    def test_bad_responses(self, response):
        with pytest.raises(EmbeddingError):
            asyncio.run(make_service(response).generate("x"))

    def test_unconfigured_provider(self):
        service = EmbeddingService(client=None)
        service.client = None
        assert not service.available
        with pytest.raises(EmbeddingError):
            asyncio.run(service.generate("x"))
