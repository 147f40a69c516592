from __future__ import annotations

import asyncio
import logging
from typing import List

from langchain_text_splitters import RecursiveCharacterTextSplitter

logger = logging.getLogger(__name__)


class ResourceLoader:
    """Fetches a URL or PDF path and splits its text into overlapping chunks."""

    def __init__(self, chunk_size: int = 1000, chunk_overlap: int = 100) -> None:
        self.splitter = RecursiveCharacterTextSplitter(
            chunk_size=chunk_size,
            chunk_overlap=chunk_overlap,
        )

    def split(self, text: str) -> List[str]:
        return [chunk for chunk in self.splitter.split_text(text) if chunk.strip()]

    async def load(self, resource: str) -> List[str]:
        return await asyncio.to_thread(self._load_sync, resource)

    def _load_sync(self, resource: str) -> List[str]:
        if resource.lower().endswith(".pdf"):
            from langchain_community.document_loaders import PyPDFLoader

            loader = PyPDFLoader(resource)
        else:
            from langchain_community.document_loaders import WebBaseLoader

            loader = WebBaseLoader(resource)

        chunks: List[str] = []
        for document in loader.load():
            chunks.extend(self.split(document.page_content))
        logger.debug("Loaded %d chunk(s) from %s", len(chunks), resource)
        return chunks
