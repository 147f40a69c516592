from __future__ import annotations

import logging
from typing import AsyncIterator, Iterable, List, Union

from taskforce.backends.base import ModelBackend
from taskforce.errors import BackendError, ConfigurationError, UnsupportedOperationError
from taskforce.memory.short_term import ShortTermMemory
from taskforce.schemas.messages import Prompt
from taskforce.tools.base import HUMAN_FEEDBACK_TOOL, Tool
from taskforce.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

PLANNING_PROMPT = (
    "\n\n## Please start by planning your approach to the task, and the next steps you "
    "should take. If all steps have been completed, please indicate that you are done."
)
PLANNING_WITH_FEEDBACK_PROMPT = (
    "\n\n## Please start by planning your approach to the task, and the next steps you "
    f"should take. Verify which next steps you should take with the '{HUMAN_FEEDBACK_TOOL}' "
    "tool. If all steps have been completed, please indicate that you are done."
)
MEMORY_HEADER = "\n\n## Previous History:\n\n"


class Agent:
    """Role-bound participant that runs prompts through its model backend."""

    def __init__(
        self,
        role: str,
        goal: str,
        tools: Iterable[Tool] | None = None,
        backend: ModelBackend | None = None,
        registry: ToolRegistry | None = None,
        memory: ShortTermMemory | None = None,
        share_tool_context: bool = False,
    ) -> None:
        if backend is None:
            from taskforce.backends.gpt import OpenAIBackend

            backend = OpenAIBackend()
        self.role = role
        self.goal = goal
        self.backend = backend
        self.tools: List[Tool] = list(tools or [])
        if self.tools and not backend.supports_tools:
            raise ConfigurationError(
                f"{type(backend).__name__} cannot call tools; agent '{role}' was given "
                f"{', '.join(tool.name for tool in self.tools)}"
            )
        self.registry = registry or ToolRegistry()
        for tool in self.tools:
            self.registry.register(tool)
        self.memory = memory
        self.share_tool_context = share_tool_context

    @property
    def system_message(self) -> str:
        return f"As a {self.role}, your goal is to {self.goal}."

    def attach_memory(self, memory: ShortTermMemory) -> None:
        if self.memory is not None and self.memory is not memory:
            raise ConfigurationError(f"Agent '{self.role}' already has a memory attached")
        self.memory = memory

    async def execute(
        self,
        prompt: Union[Prompt, str],
        extra_tools: Iterable[Tool] | None = None,
    ) -> str:
        prompt = self._coerce(prompt)
        tools = self._merge_tools(prompt, extra_tools)
        message = await self._build_message(prompt, tools)

        result = await self.backend.call(
            self.system_message,
            message,
            tools=tools,
            context=self._tool_context(),
            registry=self.registry,
        )
        await self._remember(result, prompt)
        return result

    async def execute_stream(
        self,
        prompt: Union[Prompt, str],
        extra_tools: Iterable[Tool] | None = None,
    ) -> AsyncIterator[str]:
        """Return an iterator of answer fragments; memory is written when it finishes."""
        if not self.backend.supports_streaming:
            raise UnsupportedOperationError(
                f"{type(self.backend).__name__} does not support streaming"
            )
        prompt = self._coerce(prompt)
        tools = self._merge_tools(prompt, extra_tools)
        message = await self._build_message(prompt, tools)

        async def on_complete(result: str) -> None:
            await self._remember(result, prompt)

        return self.backend.call_stream(
            self.system_message,
            message,
            on_complete=on_complete,
            tools=tools,
            context=self._tool_context(),
            registry=self.registry,
        )

    @staticmethod
    def _coerce(prompt: Union[Prompt, str]) -> Prompt:
        return prompt if isinstance(prompt, Prompt) else Prompt.freeform(prompt)

    def _merge_tools(self, prompt: Prompt, extra_tools: Iterable[Tool] | None) -> List[Tool]:
        extra = list(extra_tools or [])
        if extra and not self.backend.supports_tools:
            logger.debug("Agent '%s' cannot call tools; ignoring %d extra tool(s)", self.role, len(extra))
            extra = []

        merged: List[Tool] = []
        seen = set()
        for tool in [*self.tools, *extra]:
            if tool.name in seen:
                continue
            if tool.name == HUMAN_FEEDBACK_TOOL and not prompt.is_task:
                continue
            seen.add(tool.name)
            merged.append(tool)
        for tool in merged:
            self.registry.register(tool)
        return merged

    async def _build_message(self, prompt: Prompt, tools: List[Tool]) -> str:
        if not prompt.is_task:
            logger.info("Calling agent '%s' with input: %s", self.role, prompt.text)
            return prompt.text

        message = (
            f"Complete the following task: {prompt.task}\n\n"
            f"## Here is some context to help you with your task:\n{prompt.input}"
        )
        if any(tool.name == HUMAN_FEEDBACK_TOOL for tool in tools):
            message += PLANNING_WITH_FEEDBACK_PROMPT
        else:
            message += PLANNING_PROMPT

        logger.info("Calling agent '%s' (%s) with input: %s", self.role, self.system_message, message)
        if self.memory is not None:
            try:
                memories = await self.memory.recall(prompt.task, k=3)
            except BackendError:
                logger.exception("Failed to recall short-term memory for agent '%s'", self.role)
                memories = []
            if memories:
                logger.info(
                    "Found %d memories for task: %s", len(memories), prompt.task
                )
                message += MEMORY_HEADER + "\n\n".join(memories)
        return message

    def _tool_context(self) -> str | None:
        return self.registry.context() if self.share_tool_context else None

    async def _remember(self, result: str, prompt: Prompt) -> None:
        logger.info("Agent '%s' results:\n%s", self.role, result)
        if self.memory is None:
            return
        try:
            await self.memory.remember(result, {"role": self.role, "task": prompt.task})
        except BackendError:
            logger.exception("Failed to store short-term memory for agent '%s'", self.role)

    def __repr__(self) -> str:
        return f"Agent(role={self.role!r}, backend={self.backend!r})"
