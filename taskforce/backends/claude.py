from __future__ import annotations

import json
import os
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Sequence

import anthropic
from anthropic import AsyncAnthropic

from taskforce.backends.base import ModelBackend, StreamEvent, TextDelta, ToolCallDelta
from taskforce.schemas.messages import AssistantReply, Message, ToolCall
from taskforce.tools.base import Tool


class ClaudeBackend(ModelBackend):
    """Anthropic Messages API.

    Tool results travel as ``tool_result`` blocks inside user turns, so
    consecutive tool messages are merged into one user turn on the wire.
    Streamed tool input arrives as ``input_json_delta`` fragments keyed by
    content-block index.
    """

    name = "claude"
    default_model = "claude-sonnet-4-20250514"

    def __init__(
        self,
        model: str | None = None,
        api_key: str | None = None,
        client: AsyncAnthropic | None = None,
        max_tokens: int | None = 1000,
        **options: Any,
    ) -> None:
        super().__init__(model=model, max_tokens=max_tokens, **options)
        self.client = client or AsyncAnthropic(
            api_key=api_key or os.environ.get("ANTHROPIC_API_KEY"),
            max_retries=0,
        )

    def _payload(
        self, system_prompt: str, messages: List[Message], tools: Sequence[Tool]
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self.model,
            "system": system_prompt,
            "messages": self._to_wire(messages),
            "max_tokens": self.max_tokens or 1000,
        }
        if tools:
            payload["tools"] = [
                {
                    "name": tool.name,
                    "description": tool.description,
                    "input_schema": tool.parameters,
                }
                for tool in tools
            ]
        if self.temperature is not None:
            payload["temperature"] = self.temperature
        return payload

    @staticmethod
    def _to_wire(messages: List[Message]) -> List[Dict[str, Any]]:
        wire: List[Dict[str, Any]] = []
        for message in messages:
            if message.role == "tool":
                block = {
                    "type": "tool_result",
                    "tool_use_id": message.tool_call_id,
                    "content": message.text,
                }
                previous = wire[-1] if wire else None
                if (
                    previous is not None
                    and previous["role"] == "user"
                    and isinstance(previous["content"], list)
                    and all(part.get("type") == "tool_result" for part in previous["content"])
                ):
                    previous["content"].append(block)
                else:
                    wire.append({"role": "user", "content": [block]})
            elif message.role == "assistant":
                blocks: List[Dict[str, Any]] = []
                if message.text:
                    blocks.append({"type": "text", "text": message.text})
                for call in message.tool_calls:
                    blocks.append(
                        {
                            "type": "tool_use",
                            "id": call.id,
                            "name": call.name,
                            "input": call.parsed_arguments() or {},
                        }
                    )
                wire.append({"role": "assistant", "content": blocks or "(empty response)"})
            else:
                content = message.content if isinstance(message.content, list) else message.text
                wire.append({"role": "user", "content": content})
        return wire

    async def _complete(
        self, system_prompt: str, messages: List[Message], tools: Sequence[Tool]
    ) -> AssistantReply:
        try:
            response = await self.client.messages.create(
                **self._payload(system_prompt, messages, tools)
            )
        except anthropic.APIError as exc:
            raise self._failure(exc) from exc

        text = "".join(block.text for block in response.content if block.type == "text")
        calls = [
            ToolCall(id=block.id, name=block.name, arguments=json.dumps(block.input))
            for block in response.content
            if block.type == "tool_use"
        ]
        return AssistantReply(text=text, tool_calls=calls)

    @asynccontextmanager
    async def _open_stream(
        self, system_prompt: str, messages: List[Message], tools: Sequence[Tool]
    ) -> AsyncIterator[AsyncIterator[StreamEvent]]:
        try:
            stream = await self.client.messages.create(
                **self._payload(system_prompt, messages, tools), stream=True
            )
        except anthropic.APIError as exc:
            raise self._failure(exc) from exc

        async with stream:
            events = self._events(stream)
            try:
                yield events
            finally:
                await events.aclose()

    async def _events(self, stream: Any) -> AsyncIterator[StreamEvent]:
        try:
            async for event in stream:
                if event.type == "content_block_start":
                    block = event.content_block
                    if block.type == "tool_use":
                        yield ToolCallDelta(key=event.index, id=block.id, name=block.name)
                elif event.type == "content_block_delta":
                    delta = event.delta
                    if delta.type == "text_delta":
                        yield TextDelta(delta.text)
                    elif delta.type == "input_json_delta":
                        yield ToolCallDelta(key=event.index, arguments=delta.partial_json)
        except anthropic.APIError as exc:
            raise self._failure(exc) from exc
