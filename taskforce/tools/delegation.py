from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any, Dict, List, Sequence

from taskforce.errors import ToolError
from taskforce.schemas.messages import Prompt
from taskforce.tools.base import Tool

if TYPE_CHECKING:
    from taskforce.agents.base import Agent

ASK_QUESTION_TOOL = "ask_question"
DELEGATE_TASK_TOOL = "delegate_task"


def tool_name_for(role: str) -> str:
    """'Senior Research Analyst' -> 'senior_research_analyst'."""
    name = re.sub(r"\W+", "_", role.strip().lower()).strip("_")
    return name or "agent"


class WorkerTool(Tool):
    """Runs one specific agent on a task chosen by the caller."""

    def __init__(self, agent: "Agent") -> None:
        super().__init__(
            name=tool_name_for(agent.role),
            description=agent.goal,
            parameters={
                "type": "object",
                "properties": {
                    "task": {
                        "type": "string",
                        "description": "Task for the agent to complete",
                    },
                    "input": {
                        "type": "string",
                        "description": "The required input for the Agent to complete their task",
                    },
                },
                "required": ["task", "input"],
            },
            delegation=True,
        )
        self.agent = agent

    async def run(self, arguments: Dict[str, Any]) -> str:
        task = arguments.get("task")
        if not task:
            raise ToolError(f"'{self.name}' needs a task")
        return await self.agent.execute(Prompt.for_task(task, arguments.get("input", "")))


class CoworkerTool(Tool):
    """Base for tools that pick a coworker by role when called."""

    def __init__(
        self,
        name: str,
        description: str,
        coworkers: Sequence["Agent"],
        request_field: str,
        request_description: str,
    ) -> None:
        roles = [agent.role for agent in coworkers]
        super().__init__(
            name=name,
            description=f"{description} Available coworkers: {', '.join(roles)}.",
            parameters={
                "type": "object",
                "properties": {
                    "coworker": {
                        "type": "string",
                        "enum": roles,
                        "description": "Role of the coworker to contact",
                    },
                    request_field: {"type": "string", "description": request_description},
                    "context": {
                        "type": "string",
                        "description": "Everything the coworker needs to know; they see nothing else",
                    },
                },
                "required": ["coworker", request_field, "context"],
            },
            delegation=True,
        )
        self.request_field = request_field
        self._coworkers = {tool_name_for(agent.role): agent for agent in coworkers}

    def resolve(self, coworker: str) -> "Agent":
        agent = self._coworkers.get(tool_name_for(coworker or ""))
        if agent is None:
            known = ", ".join(a.role for a in self._coworkers.values())
            raise ToolError(f"Unknown coworker '{coworker}'. Choose one of: {known}")
        return agent

    async def run(self, arguments: Dict[str, Any]) -> str:
        agent = self.resolve(arguments.get("coworker", ""))
        request = arguments.get(self.request_field)
        if not request:
            raise ToolError(f"'{self.name}' needs a {self.request_field}")
        return await agent.execute(Prompt.for_task(request, arguments.get("context", "")))


def worker_tools(agents: Sequence["Agent"]) -> List[Tool]:
    return [WorkerTool(agent) for agent in agents]


def coworker_tools(coworkers: Sequence["Agent"]) -> List[Tool]:
    """``ask_question`` and ``delegate_task`` over the given agents; empty without coworkers."""
    if not coworkers:
        return []
    return [
        CoworkerTool(
            ASK_QUESTION_TOOL,
            "Ask a specific question to one of your coworkers.",
            coworkers,
            request_field="question",
            request_description="The question to ask",
        ),
        CoworkerTool(
            DELEGATE_TASK_TOOL,
            "Delegate a specific task to one of your coworkers.",
            coworkers,
            request_field="task",
            request_description="The task to delegate",
        ),
    ]
