from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from taskforce.agents.base import Agent
from taskforce.errors import NoAgentError
from taskforce.schemas.messages import Prompt
from taskforce.tools.base import Tool


@dataclass(frozen=True)
class Task:
    """Unit of work with an expected-output contract."""

    description: str
    expected_output: str
    agent: Optional[Agent] = None

    def prompt(self, context: str = "") -> Prompt:
        return Prompt.for_task(
            self.description, f"{context}\nExpected Output: {self.expected_output}"
        )

    async def execute(
        self,
        agent: Agent | None = None,
        context: str = "",
        tools: Iterable[Tool] | None = None,
    ) -> str:
        """Run on the bound agent, falling back to the supplied one."""
        effective = self.agent or agent
        if effective is None:
            raise NoAgentError(f"No agent provided for task: {self.description[:60]}")
        return await effective.execute(self.prompt(context), tools)
