import logging
from typing import List, Optional

import openai

from ..config.settings import settings
from ..errors import EmbeddingError

logger = logging.getLogger(__name__)


class EmbeddingService:
    """Generates query vectors through an OpenAI-compatible embeddings endpoint"""

    def __init__(self, client: Optional[openai.AsyncOpenAI] = None, model: Optional[str] = None):
        # Configure OpenAI only when a key is present
        if client is None and settings.embeddings_enabled:
            client = openai.AsyncOpenAI(
                api_key=settings.openai_api_key,
                base_url=settings.openai_base_url or None,
            )
        self.client = client
        self.model = model or settings.embedding_model

    @property
    def available(self) -> bool:
        return self.client is not None

    async def generate(self, text: str) -> List[float]:
        """Embed one piece of text, raising EmbeddingError on any provider failure"""
        if self.client is None:
            raise EmbeddingError("Embedding provider is not configured")

        text = text.replace("\n", " ")
        try:
            response = await self.client.embeddings.create(model=self.model, input=text)
        except openai.OpenAIError as e:
            raise EmbeddingError(f"Failed to generate embedding: {e}") from e

        try:
            vector = list(response.data[0].embedding)
        except (AttributeError, IndexError, TypeError) as e:
            raise EmbeddingError("Embedding API returned an unexpected response format") from e

        if not vector:
            raise EmbeddingError("Embedding API returned an empty vector")
        return vector
