"""Query embeddings via the OpenAI embeddings API"""

from typing import List

import openai
from langsmith import traceable
from openai import AsyncOpenAI

from bible_api.config import EMBEDDING_DIMENSION, EMBEDDING_MODEL
from bible_api.errors import UpstreamError
from bible_api.log import get_logger

logger = get_logger(__name__)


class EmbeddingClient:
    def __init__(self, client: AsyncOpenAI, model: str = EMBEDDING_MODEL):
        self.client = client
        self.model = model

    @traceable(run_type="embedding", name="get_query_embedding")
    async def embed(self, text: str) -> List[float]:
        """Convert text to a 1536-dim vector"""
        logger.info(f'Getting embedding for query: "{text}"')

        try:
            response = await self.client.embeddings.create(
                input=text,
                model=self.model,
                encoding_format="float",
            )
        except openai.APIStatusError as e:
            logger.error(f"Error generating query embedding: {e.status_code} {e.body}")
            raise UpstreamError("openai", e.message, e.status_code, e.body) from e
        except openai.APIError as e:
            logger.error(f"Error generating query embedding: {e}")
            raise UpstreamError("openai", str(e)) from e

        if not response.data:
            raise UpstreamError("openai", "Embedding response contained no data")

        embedding = list(response.data[0].embedding)
        if len(embedding) != EMBEDDING_DIMENSION:
            raise UpstreamError(
                "openai",
                f"Expected a {EMBEDDING_DIMENSION}-dim embedding, got {len(embedding)}",
            )

        logger.info("Successfully generated query embedding")
        return embedding
