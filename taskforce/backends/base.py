from __future__ import annotations

import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import (
    Any,
    AsyncContextManager,
    AsyncIterator,
    Callable,
    Dict,
    List,
    Optional,
    Sequence,
    Union,
)

from taskforce.errors import (
    BackendError,
    ToolLoopLimitError,
    UnresolvedToolCallsError,
    UnsupportedOperationError,
)
from taskforce.memory.transcript import Transcript
from taskforce.schemas.messages import AssistantReply, Message, ToolCall, ToolResult
from taskforce.tools.base import Tool
from taskforce.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

MAX_SELF_REFLECTIONS = 3
REFLECTION_PROMPT = (
    "Reflect on your response, find ways to improve it, respond with only the improved "
    "version, with no mention of the reflection process, or changes made."
)
CONTEXT_HEADER = "\n\nHere is further context to help you with your task:\n"
FALLBACK_REPLY = "Unknown Error Occurred, Please try again."

ChunkCallback = Callable[[str], Any]


@dataclass
class TextDelta:
    text: str


@dataclass
class ToolCallDelta:
    """Fragment of a streamed tool call; ``key`` identifies the call within one stream."""

    key: int
    id: Optional[str] = None
    name: Optional[str] = None
    arguments: str = ""


StreamEvent = Union[TextDelta, ToolCallDelta]


class ToolCallAccumulator:
    """Rebuilds tool calls from stream fragments, whatever the provider's keying."""

    def __init__(self) -> None:
        self._calls: Dict[int, ToolCall] = {}

    def feed(self, delta: ToolCallDelta) -> Optional[ToolCall]:
        """Merge a fragment; returns the call once its arguments parse as JSON."""
        call = self._calls.get(delta.key)
        if call is None:
            if not delta.id or not delta.name:
                logger.debug("Dropping tool call fragment without id or name: %s", delta)
                return None
            call = ToolCall(id=delta.id, name=delta.name, arguments=delta.arguments or "")
            self._calls[delta.key] = call
        elif delta.arguments:
            call.arguments += delta.arguments

        if call.arguments.strip() and call.parsed_arguments() is not None:
            return call
        return None

    def calls(self) -> List[ToolCall]:
        return [self._calls[key] for key in sorted(self._calls)]

    def __bool__(self) -> bool:
        return bool(self._calls)


async def _notify(callback: Optional[ChunkCallback], text: str) -> None:
    if callback is None:
        return
    result = callback(text)
    if inspect.isawaitable(result):
        await result


class ModelBackend(ABC):
    """Uniform call/stream contract over a language-model provider."""

    name = "backend"
    default_model = ""
    supports_tools = True
    supports_streaming = True
    supports_parallel_tool_calls = True

    def __init__(
        self,
        model: str | None = None,
        parallel_tool_calls: bool = False,
        temperature: float | None = None,
        max_tokens: int | None = None,
        max_iterations: int = 25,
        self_reflection: bool = True,
    ) -> None:
        self.model = model or self.default_model
        self.parallel_tool_calls = parallel_tool_calls and self.supports_parallel_tool_calls
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.max_iterations = max_iterations
        self.self_reflection = self_reflection
        self.is_manager = False
        self.self_reflected = 0
        self.history = Transcript()

    # -- provider hooks ------------------------------------------------------

    @abstractmethod
    async def _complete(
        self,
        system_prompt: str,
        messages: List[Message],
        tools: Sequence[Tool],
    ) -> AssistantReply:
        """Send one request and return the normalized reply."""

    def _open_stream(
        self,
        system_prompt: str,
        messages: List[Message],
        tools: Sequence[Tool],
    ) -> AsyncContextManager[AsyncIterator[StreamEvent]]:
        """Open a chunked response; the context owns the underlying connection."""
        raise UnsupportedOperationError(f"{type(self).__name__} does not support streaming")

    def _failure(self, exc: Exception) -> BackendError:
        logger.debug("History: %s", self.history.all())
        return BackendError(f"Failed to call {self.name} ({self.model}): {exc}", self.history.all())

    # -- conversation loop ---------------------------------------------------

    async def call(
        self,
        system_prompt: str,
        message: Union[str, Message],
        tools: Sequence[Tool] | None = None,
        context: str | None = None,
        registry: ToolRegistry | None = None,
    ) -> str:
        tools = list(tools or [])
        registry = registry or ToolRegistry(tools)
        outgoing = self._with_context(message, context)

        for _ in range(self.max_iterations):
            self.history.append(outgoing)
            reply = await self._request(system_prompt, tools)
            self.history.append(reply.to_message())

            if not reply.tool_calls:
                return reply.text or FALLBACK_REPLY

            if reply.text:
                logger.info("%s", reply.text)
            results = await self._resolve_tool_calls(reply.tool_calls, registry)
            *earlier, last = [Message.tool(result) for result in results]
            self.history.extend(earlier)
            outgoing = last

        # every recorded tool call keeps its result, even when the loop gives up
        self.history.append(outgoing)
        raise ToolLoopLimitError(
            f"{self.name} still requested tools after {self.max_iterations} turns"
        )

    async def _request(self, system_prompt: str, tools: Sequence[Tool]) -> AssistantReply:
        messages = self.history.all()
        reply = await self._complete(system_prompt, messages, tools)
        if reply.tool_calls or not reply.text or not self.self_reflection:
            return reply
        if self.self_reflected >= MAX_SELF_REFLECTIONS:
            logger.debug("Self-reflection limit reached for %s", self.name)
            return reply

        self.self_reflected += 1
        logger.info(
            "Self-reflecting on output (%d/%d)...", self.self_reflected, MAX_SELF_REFLECTIONS
        )
        reflection = [*messages, reply.to_message(), Message.user(REFLECTION_PROMPT)]
        return await self._complete(system_prompt, reflection, tools)

    async def _resolve_tool_calls(
        self, calls: List[ToolCall], registry: ToolRegistry
    ) -> List[ToolResult]:
        if self.parallel_tool_calls and not self.is_manager:
            leaf = [call for call in calls if not registry.is_delegation(call.name)]
            delegated = [call for call in calls if registry.is_delegation(call.name)]

            settled = await asyncio.gather(
                *(self._run_tool(call, registry) for call in leaf),
                return_exceptions=True,
            )
            results: List[ToolResult] = []
            for call, outcome in zip(leaf, settled):
                if isinstance(outcome, Exception):
                    logger.error("Tool '%s' (%s) failed: %s", call.name, call.id, outcome)
                    outcome = ToolResult(
                        call.id, call.name, f"Error: tool '{call.name}' failed: {outcome}"
                    )
                elif isinstance(outcome, BaseException):
                    raise outcome
                results.append(outcome)

            # coworker agents are never invoked concurrently
            for call in delegated:
                results.append(await self._run_tool(call, registry))
        else:
            results = []
            for call in calls:
                results.append(await self._run_tool(call, registry))

        resolved = {result.tool_call_id for result in results}
        missing = [call for call in calls if call.id not in resolved]
        if missing:
            raise UnresolvedToolCallsError(missing)
        return results

    async def _run_tool(self, call: ToolCall, registry: ToolRegistry) -> ToolResult:
        content = await registry.invoke(call.name, call.arguments)
        return ToolResult(tool_call_id=call.id, name=call.name, content=content)

    def _with_context(self, message: Union[str, Message], context: str | None) -> Message:
        if isinstance(message, str):
            message = Message.user(message)
        if context and isinstance(message.content, str):
            message = Message(
                role=message.role,
                content=message.content + CONTEXT_HEADER + context,
                tool_call_id=message.tool_call_id,
                name=message.name,
            )
        return message

    # -- streaming -----------------------------------------------------------

    def call_stream(
        self,
        system_prompt: str,
        message: Union[str, Message],
        on_chunk: ChunkCallback | None = None,
        on_complete: ChunkCallback | None = None,
        tools: Sequence[Tool] | None = None,
        context: str | None = None,
        registry: ToolRegistry | None = None,
    ) -> AsyncIterator[str]:
        """Stream the answer as text fragments.

        Tool calls found in a stream are resolved when it ends and the
        conversation continues on a new stream whose fragments are spliced into
        the same iterator. ``on_chunk`` sees every fragment, ``on_complete``
        sees the whole streamed output once. Closing the iterator early closes
        the transport and suppresses further callbacks.

        Streamed answers are never self-reflected, so they match ``call`` only
        once reflection is off or its budget is spent.
        """
        if not self.supports_streaming:
            raise UnsupportedOperationError(f"{type(self).__name__} does not support streaming")
        tools = list(tools or [])
        return self._stream_turns(
            system_prompt,
            self._with_context(message, context),
            on_chunk,
            on_complete,
            tools,
            registry or ToolRegistry(tools),
        )

    async def _stream_turns(
        self,
        system_prompt: str,
        outgoing: Message,
        on_chunk: ChunkCallback | None,
        on_complete: ChunkCallback | None,
        tools: List[Tool],
        registry: ToolRegistry,
    ) -> AsyncIterator[str]:
        self.history.append(outgoing)
        output: List[str] = []

        for _ in range(self.max_iterations):
            accumulator = ToolCallAccumulator()
            parts: List[str] = []

            async with self._open_stream(system_prompt, self.history.all(), tools) as events:
                async for event in events:
                    if isinstance(event, TextDelta):
                        if not event.text:
                            continue
                        parts.append(event.text)
                        await _notify(on_chunk, event.text)
                        yield event.text
                    else:
                        ready = accumulator.feed(event)
                        if ready is not None:
                            logger.debug("Tool call '%s' (%s) is complete", ready.name, ready.id)

            text = "".join(parts)
            output.extend(parts)
            if not accumulator:
                self.history.append(Message.assistant(text))
                await _notify(on_complete, "".join(output))
                return

            calls = accumulator.calls()
            self.history.append(Message.assistant(text or None, calls))
            results = await self._resolve_tool_calls(calls, registry)
            self.history.extend(Message.tool(result) for result in results)

        raise ToolLoopLimitError(
            f"{self.name} still requested tools after {self.max_iterations} streamed turns"
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(model={self.model!r})"
