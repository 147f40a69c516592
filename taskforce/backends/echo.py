from __future__ import annotations

import re
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, List, Sequence

from taskforce.backends.base import ModelBackend, StreamEvent, TextDelta
from taskforce.schemas.messages import AssistantReply, Message
from taskforce.tools.base import Tool


class EchoBackend(ModelBackend):
    """Offline backend for dry runs: answers with the prompt it was given."""

    name = "echo"
    default_model = "echo"
    supports_tools = False
    supports_parallel_tool_calls = False

    def __init__(self, model: str | None = None, **options: Any) -> None:
        options.setdefault("self_reflection", False)
        super().__init__(model=model, **options)

    @staticmethod
    def _answer(system_prompt: str, messages: List[Message]) -> str:
        latest = next((m.text for m in reversed(messages) if m.role == "user"), "")
        return f"{system_prompt.strip()}\n\n{latest.strip()}".strip()

    async def _complete(
        self, system_prompt: str, messages: List[Message], tools: Sequence[Tool]
    ) -> AssistantReply:
        return AssistantReply(text=self._answer(system_prompt, messages))

    @asynccontextmanager
    async def _open_stream(
        self, system_prompt: str, messages: List[Message], tools: Sequence[Tool]
    ) -> AsyncIterator[AsyncIterator[StreamEvent]]:
        answer = self._answer(system_prompt, messages)

        async def events() -> AsyncIterator[StreamEvent]:
            for word in re.findall(r"\S+\s*|\s+", answer):
                yield TextDelta(word)

        yield events()
