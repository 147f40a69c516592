from __future__ import annotations

import os
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Sequence

import openai
from openai import AsyncOpenAI

from taskforce.backends.base import ModelBackend, StreamEvent, TextDelta, ToolCallDelta
from taskforce.schemas.messages import AssistantReply, Message, ToolCall
from taskforce.tools.base import Tool


class OpenAIBackend(ModelBackend):
    """Chat Completions API; tool calls stream as deltas keyed by index."""

    name = "openai"
    default_model = "gpt-4o-mini"

    def __init__(
        self,
        model: str | None = None,
        api_key: str | None = None,
        base_url: str | None = None,
        client: AsyncOpenAI | None = None,
        **options: Any,
    ) -> None:
        super().__init__(model=model, **options)
        self.client = client or AsyncOpenAI(
            api_key=api_key or os.environ.get("OPENAI_API_KEY"),
            base_url=base_url,
            max_retries=0,
        )

    def _system(self, system_prompt: str, tools: Sequence[Tool]) -> str:
        return system_prompt

    def _payload(
        self, system_prompt: str, messages: List[Message], tools: Sequence[Tool]
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": self._system(system_prompt, tools)},
                *(self._to_wire(message) for message in messages),
            ],
        }
        if tools and self.supports_tools:
            payload["tools"] = [tool.definition() for tool in tools]
        if self.temperature is not None:
            payload["temperature"] = self.temperature
        if self.max_tokens:
            payload["max_tokens"] = self.max_tokens
        return payload

    @staticmethod
    def _to_wire(message: Message) -> Dict[str, Any]:
        if message.role == "tool":
            return {
                "role": "tool",
                "tool_call_id": message.tool_call_id,
                "content": message.text,
            }
        if message.role == "assistant" and message.tool_calls:
            return {
                "role": "assistant",
                "content": message.text or None,
                "tool_calls": [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {"name": call.name, "arguments": call.arguments or "{}"},
                    }
                    for call in message.tool_calls
                ],
            }
        return {"role": message.role, "content": message.text}

    async def _complete(
        self, system_prompt: str, messages: List[Message], tools: Sequence[Tool]
    ) -> AssistantReply:
        try:
            response = await self.client.chat.completions.create(
                **self._payload(system_prompt, messages, tools)
            )
        except openai.APIError as exc:
            raise self._failure(exc) from exc

        message = response.choices[0].message
        calls = [
            ToolCall(id=call.id, name=call.function.name, arguments=call.function.arguments or "")
            for call in message.tool_calls or []
            if call.type == "function"
        ]
        return AssistantReply(text=message.content or "", tool_calls=calls)

    @asynccontextmanager
    async def _open_stream(
        self, system_prompt: str, messages: List[Message], tools: Sequence[Tool]
    ) -> AsyncIterator[AsyncIterator[StreamEvent]]:
        try:
            stream = await self.client.chat.completions.create(
                **self._payload(system_prompt, messages, tools), stream=True
            )
        except openai.APIError as exc:
            raise self._failure(exc) from exc

        async with stream:
            events = self._events(stream)
            try:
                yield events
            finally:
                await events.aclose()

    async def _events(self, stream: Any) -> AsyncIterator[StreamEvent]:
        try:
            async for chunk in stream:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta
                if delta.content:
                    yield TextDelta(delta.content)
                for fragment in delta.tool_calls or []:
                    function = fragment.function
                    yield ToolCallDelta(
                        key=fragment.index,
                        id=fragment.id,
                        name=function.name if function else None,
                        arguments=(function.arguments if function else None) or "",
                    )
        except openai.APIError as exc:
            raise self._failure(exc) from exc
