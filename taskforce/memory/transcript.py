from __future__ import annotations

import threading
from typing import Iterable, List, Sequence

from taskforce.schemas.messages import Message


class Transcript:
    """Append-only conversation log backing one model backend."""

    def __init__(self, initial: Iterable[Message] | None = None) -> None:
        self._turns: List[Message] = list(initial or [])
        self._lock = threading.Lock()

    def reset(self, initial: Iterable[Message] | None = None) -> None:
        with self._lock:
            self._turns = list(initial or [])

    def append(self, message: Message) -> None:
        with self._lock:
            self._turns.append(message)

    def extend(self, messages: Iterable[Message]) -> None:
        batch = list(messages)
        with self._lock:
            self._turns.extend(batch)

    def all(self) -> List[Message]:
        with self._lock:
            return list(self._turns)

    def __len__(self) -> int:
        with self._lock:
            return len(self._turns)

    def tool_exchanges(self) -> List[Message]:
        """Assistant tool-call messages together with the tool results that answer them."""
        exchanges: List[Message] = []
        pending: set = set()
        for message in self.all():
            if message.role == "assistant" and message.tool_calls:
                exchanges.append(message)
                pending = {call.id for call in message.tool_calls}
            elif message.role == "tool" and message.tool_call_id in pending:
                exchanges.append(message)
            else:
                pending = set()
        return exchanges

    def seed(self, history: Sequence[Message]) -> None:
        """Splice prior conversation turns in around the recorded tool exchanges.

        The seed is split into earliest, middle, and latest groups; recorded tool
        exchanges go between the earliest and middle groups so each call stays
        next to the results it produced.
        """
        first, middle, latest = split_into_chunks(list(history), 3)
        exchanges = self.tool_exchanges()
        self.reset([*first, *exchanges, *middle, *latest])


def split_into_chunks(items: List[Message], n: int) -> List[List[Message]]:
    """Split items into n ordered groups whose sizes differ by at most one."""
    size, extra = divmod(len(items), n)
    chunks: List[List[Message]] = []
    start = 0
    for index in range(n):
        end = start + size + (1 if index < extra else 0)
        chunks.append(items[start:end])
        start = end
    return chunks
