from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List

from taskforce.memory.embeddings import Embedder
from taskforce.memory.vector_store import VectorStore
from taskforce.schemas.messages import MemoryDocument

logger = logging.getLogger(__name__)


class ShortTermMemory:
    """Vector store plus the embedder used to write to and query it."""

    def __init__(self, embedder: Embedder, store: VectorStore | None = None) -> None:
        self.embedder = embedder
        self.store = store or VectorStore()

    async def remember(self, text: str, metadata: Dict[str, Any] | None = None) -> None:
        embedding = await self.embedder.embed(text)
        self.store.add_vectors([embedding], [MemoryDocument(text, dict(metadata or {}))])

    async def recall(self, query: str, k: int = 3) -> List[str]:
        embedding = await self.embedder.embed(query)
        hits = self.store.similarity_search(embedding, k)
        return [document.page_content for document, _ in hits]

    async def ingest(self, resource: str, chunks: Iterable[str]) -> int:
        """Store chunks of an external resource; returns how many were added."""
        count = 0
        for chunk in chunks:
            await self.remember(chunk, {"type": "resource", "tags": [resource]})
            count += 1
        logger.info("Ingested %d chunk(s) from %s", count, resource)
        return count
