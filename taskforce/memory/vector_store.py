from __future__ import annotations

import threading
from typing import List, Sequence, Tuple

import numpy as np

from taskforce.schemas.messages import MemoryDocument


class VectorStore:
    """In-process append-only store searched by cosine similarity."""

    def __init__(self) -> None:
        self._vectors: List[np.ndarray] = []
        self._documents: List[MemoryDocument] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._documents)

    def add_vectors(
        self,
        embeddings: Sequence[Sequence[float]],
        documents: Sequence[MemoryDocument],
    ) -> None:
        if len(embeddings) != len(documents):
            raise ValueError(
                f"Got {len(embeddings)} embeddings for {len(documents)} documents"
            )
        vectors = [np.asarray(embedding, dtype=float) for embedding in embeddings]
        with self._lock:
            dimension = self._vectors[0].shape[0] if self._vectors else None
            for vector in vectors:
                if vector.ndim != 1:
                    raise ValueError("Embeddings must be one-dimensional")
                if dimension is not None and vector.shape[0] != dimension:
                    raise ValueError(
                        f"Embedding has dimension {vector.shape[0]}, store expects {dimension}"
                    )
                dimension = vector.shape[0]
            self._vectors.extend(vectors)
            self._documents.extend(documents)

    def similarity_search(
        self, query: Sequence[float], k: int = 4
    ) -> List[Tuple[MemoryDocument, float]]:
        """Return up to k (document, score) pairs, best first; ties keep insertion order."""
        with self._lock:
            vectors = list(self._vectors)
            documents = list(self._documents)
        if k <= 0 or not vectors:
            return []

        matrix = np.vstack(vectors)
        needle = np.asarray(query, dtype=float)
        if needle.shape != (matrix.shape[1],):
            raise ValueError(
                f"Query has shape {needle.shape}, store expects ({matrix.shape[1]},)"
            )

        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(needle)
        dots = matrix @ needle
        scores = np.divide(dots, norms, out=np.zeros_like(dots), where=norms != 0)
        order = np.argsort(-scores, kind="stable")[:k]
        return [(documents[i], float(scores[i])) for i in order]
