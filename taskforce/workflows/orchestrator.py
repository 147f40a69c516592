from __future__ import annotations

import logging
import time
from typing import Any, AsyncIterator, Dict, Iterable, List, Literal, Sequence, Union

from taskforce.agents.base import Agent
from taskforce.agents.manager import build_manager
from taskforce.backends.base import ModelBackend
from taskforce.errors import ConfigurationError, ManagerNotConfiguredError
from taskforce.memory.embeddings import Embedder, OpenAIEmbedder
from taskforce.memory.resources import ResourceLoader
from taskforce.memory.short_term import ShortTermMemory
from taskforce.schemas.messages import Message, RunResult
from taskforce.tools.delegation import coworker_tools, tool_name_for
from taskforce.tools.registry import ToolRegistry
from taskforce.utils.persistence import write_output
from taskforce.workflows.task import Task

logger = logging.getLogger(__name__)

TASK_DELIMITER = "\n-----------------\n"

HistoryItem = Union[Message, Dict[str, Any]]


class Orchestrator:
    """Runs tasks in order, directly on agents or through a synthesized manager.

    ``sequential``: every task runs on its own agent (or a kickoff override),
    with ``ask_question``/``delegate_task`` tools over the other agents.
    ``hierarchical``: tasks without a bound agent go to a manager agent whose
    tools call the workers; the manager also serves chat-style ``execute``.
    """

    def __init__(
        self,
        agents: Iterable[Agent],
        tasks: Iterable[Task] = (),
        llm: ModelBackend | None = None,
        process: Literal["sequential", "hierarchical"] = "hierarchical",
        memory: bool = False,
        resources: Sequence[str] | None = None,
        out_file: str | None = None,
        allow_delegation: bool = False,
        embedder: Embedder | None = None,
        loader: ResourceLoader | None = None,
        registry: ToolRegistry | None = None,
    ) -> None:
        self.agents: List[Agent] = list(agents)
        self.tasks: List[Task] = list(tasks)
        self.process = process
        self.resources = list(resources or [])
        self.out_file = out_file
        self.registry = registry or ToolRegistry()

        if process not in ("sequential", "hierarchical"):
            raise ConfigurationError(f"Unknown process '{process}'")
        if self.resources and not memory:
            raise ConfigurationError(
                "Resources can only be used with memory enabled. "
                "Please enable memory to use resources."
            )
        if process == "hierarchical":
            if llm is None:
                raise ConfigurationError("The hierarchical process needs a manager backend (llm)")
            if not llm.supports_tools:
                raise ConfigurationError(
                    f"{type(llm).__name__} cannot call tools and cannot act as a manager"
                )
        names = [tool_name_for(agent.role) for agent in self.agents]
        if len(set(names)) != len(names):
            raise ConfigurationError(f"Agent roles must be distinct: {names}")

        self.memory = ShortTermMemory(embedder or OpenAIEmbedder()) if memory else None
        self.loader = loader
        self._resources_loaded = False

        self.manager: Agent | None = None
        if process == "hierarchical":
            self.manager = build_manager(
                self.agents, llm, registry=self.registry, allow_delegation=allow_delegation
            )

        if self.memory is not None:
            for agent in self.participants():
                agent.attach_memory(self.memory)

    def participants(self) -> List[Agent]:
        return [*self.agents, *([self.manager] if self.manager else [])]

    async def kickoff(self, agent: Agent | None = None) -> RunResult:
        """Run every task in order; each sees the outputs of the ones before it."""
        logger.info("Starting agency (%s, %d task(s))", self.process, len(self.tasks))
        await self.load_resources()

        supplied = agent or self.manager
        context = ""
        final_output = ""
        started = time.perf_counter()

        for index, task in enumerate(self.tasks, start=1):
            tools = None
            if self.process == "sequential":
                owner = task.agent or supplied
                tools = coworker_tools(
                    [a for a in self.agents if owner is None or a.role != owner.role]
                )
            logger.info("Task %d/%d: %s", index, len(self.tasks), task.description[:80])
            output = await task.execute(agent=supplied, context=context, tools=tools)
            context += f"{output}{TASK_DELIMITER}"
            final_output = output

        result = RunResult(output=final_output, elapsed_seconds=time.perf_counter() - started)
        logger.info("Agency completed in %s", result.run_time)

        if self.out_file:
            write_output(self.out_file, final_output)
        return result

    async def execute(self, prompt: str, history: Sequence[HistoryItem] | None = None) -> str:
        """Chat with the manager; prior turns in ``history`` are spliced into its context."""
        manager = self._prepare_manager(history)
        await self.load_resources()
        return await manager.execute(prompt)

    async def execute_stream(
        self, prompt: str, history: Sequence[HistoryItem] | None = None
    ) -> AsyncIterator[str]:
        manager = self._prepare_manager(history)
        await self.load_resources()
        return await manager.execute_stream(prompt)

    def _prepare_manager(self, history: Sequence[HistoryItem] | None) -> Agent:
        if self.manager is None:
            raise ManagerNotConfiguredError(
                "Manager is not defined. Please provide a manager model to run the "
                "agency in chatbot mode."
            )
        if history:
            self.manager.backend.history.seed([_as_message(item) for item in history])
        return self.manager

    async def load_resources(self) -> None:
        """Ingest configured resources into memory once per orchestrator."""
        if self._resources_loaded or not self.resources or self.memory is None:
            return
        loader = self.loader or ResourceLoader()
        for resource in self.resources:
            chunks = await loader.load(resource)
            await self.memory.ingest(resource, chunks)
        self._resources_loaded = True


def _as_message(item: HistoryItem) -> Message:
    if isinstance(item, Message):
        return item
    return Message(role=item["role"], content=item["content"])
