from __future__ import annotations

import string
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Sequence

import pytest

from taskforce.backends.base import ModelBackend, TextDelta, ToolCallDelta
from taskforce.memory.embeddings import Embedder
from taskforce.schemas.messages import AssistantReply, Message, ToolCall
from taskforce.tools.base import FunctionTool, Tool


class ScriptedBackend(ModelBackend):
    """Replays canned replies and streams, recording every request it receives."""

    name = "scripted"
    default_model = "scripted"

    def __init__(
        self,
        replies: Sequence[Any] = (),
        streams: Sequence[Sequence[Any]] = (),
        supports_tools: bool = True,
        supports_streaming: bool = True,
        repeat_last: bool = False,
        **options: Any,
    ) -> None:
        options.setdefault("self_reflection", False)
        super().__init__(**options)
        self.supports_tools = supports_tools
        self.supports_streaming = supports_streaming
        self.replies = list(replies)
        self.streams = [list(stream) for stream in streams]
        self.repeat_last = repeat_last
        self.requests: List[Dict[str, Any]] = []
        self.streams_opened = 0
        self.streams_closed = 0

    def _next_reply(self) -> Any:
        if self.repeat_last and len(self.replies) == 1:
            return self.replies[0]
        return self.replies.pop(0)

    async def _complete(self, system_prompt, messages, tools) -> AssistantReply:
        self.requests.append(
            {"system": system_prompt, "messages": list(messages), "tools": list(tools)}
        )
        reply = self._next_reply()
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, str):
            return AssistantReply(text=reply)
        return reply

    @asynccontextmanager
    async def _open_stream(self, system_prompt, messages, tools):
        self.requests.append(
            {"system": system_prompt, "messages": list(messages), "tools": list(tools)}
        )
        events = self.streams.pop(0)
        self.streams_opened += 1

        async def iterate():
            for event in events:
                yield event

        try:
            yield iterate()
        finally:
            self.streams_closed += 1


class LetterEmbedder(Embedder):
    """Bag-of-letters embedding: deterministic and good enough to rank by overlap."""

    def __init__(self) -> None:
        self.calls: List[str] = []

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        lowered = text.lower()
        return [float(lowered.count(letter)) for letter in string.ascii_lowercase]


def tool_call(call_id: str, name: str, arguments: str = "{}") -> ToolCall:
    return ToolCall(id=call_id, name=name, arguments=arguments)


def tool_reply(*calls: ToolCall, text: str = "") -> AssistantReply:
    return AssistantReply(text=text, tool_calls=list(calls))


def echo_tool(name: str = "echo", delegation: bool = False) -> Tool:
    async def run(value: str = "") -> str:
        return f"{name}:{value}"

    return FunctionTool(
        run,
        name=name,
        description=f"Echo tool {name}",
        parameters={
            "type": "object",
            "properties": {"value": {"type": "string"}},
        },
        delegation=delegation,
    )


@pytest.fixture
def scripted():
    return ScriptedBackend


@pytest.fixture
def embedder():
    return LetterEmbedder()


@pytest.fixture
def helpers():
    class Helpers:
        call = staticmethod(tool_call)
        reply = staticmethod(tool_reply)
        tool = staticmethod(echo_tool)
        text = TextDelta
        fragment = ToolCallDelta
        message = Message

    return Helpers
