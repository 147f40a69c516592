from __future__ import annotations

from typing import List, Sequence

from taskforce.agents.base import Agent
from taskforce.backends.base import ModelBackend
from taskforce.tools.base import Tool
from taskforce.tools.delegation import coworker_tools, worker_tools
from taskforce.tools.registry import ToolRegistry

MANAGER_ROLE = "Supervising Manager"
MANAGER_GOAL = (
    "complete the task using agents, delegating tasks as needed. The user can only see "
    "your final result, and no history of previous messages between agents/coworkers, "
    "so include all necessary information when responding with your final result"
)


def build_manager(
    workers: Sequence[Agent],
    backend: ModelBackend,
    registry: ToolRegistry | None = None,
    allow_delegation: bool = False,
) -> Agent:
    """Synthesize the manager agent for hierarchical runs.

    The backend is flagged as a manager so its delegation calls are never
    fanned out concurrently.
    """
    backend.is_manager = True
    tools: List[Tool] = worker_tools(workers)
    if allow_delegation:
        tools.extend(coworker_tools(workers))
    return Agent(
        role=MANAGER_ROLE,
        goal=MANAGER_GOAL,
        tools=tools,
        backend=backend,
        registry=registry,
    )
