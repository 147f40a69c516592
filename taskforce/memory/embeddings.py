from __future__ import annotations

import os
from abc import ABC, abstractmethod
from typing import List

import openai
from openai import AsyncOpenAI

from taskforce.errors import BackendError


class Embedder(ABC):
    """Turns text into a vector for the short-term memory store."""

    @abstractmethod
    async def embed(self, text: str) -> List[float]:
        """Return the embedding of a single text."""


class OpenAIEmbedder(Embedder):

    def __init__(
        self,
        model: str = "text-embedding-3-small",
        api_key: str | None = None,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self.model = model
        self.client = client or AsyncOpenAI(
            api_key=api_key or os.environ.get("OPENAI_API_KEY"),
            max_retries=0,
        )

    async def embed(self, text: str) -> List[float]:
        try:
            response = await self.client.embeddings.create(model=self.model, input=text)
        except openai.APIError as exc:
            raise BackendError(f"Failed to embed text with {self.model}: {exc}") from exc
        return list(response.data[0].embedding)
