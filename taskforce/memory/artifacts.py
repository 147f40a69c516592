from __future__ import annotations

import threading
from typing import Dict


class ArtifactsStore:
    """Last result produced by each tool, keyed by tool name."""

    def __init__(self) -> None:
        self._store: Dict[str, str] = {}
        self._lock = threading.Lock()

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._store[key] = value

    def as_dict(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._store)
