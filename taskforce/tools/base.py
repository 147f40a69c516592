from __future__ import annotations

import asyncio
import inspect
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Union

HUMAN_FEEDBACK_TOOL = "human_feedback"


class Tool(ABC):
    """Named capability the model can invoke with JSON arguments."""

    name: str
    description: str
    parameters: Dict[str, Any]
    delegation: bool = False

    def __init__(
        self,
        name: str,
        description: str = "",
        parameters: Dict[str, Any] | None = None,
        delegation: bool = False,
    ) -> None:
        self.name = name
        self.description = description
        self.parameters = parameters or {"type": "object", "properties": {}}
        self.delegation = delegation

    @abstractmethod
    async def run(self, arguments: Dict[str, Any]) -> str:
        """Execute tool logic and return the text the model will see."""

    def definition(self) -> Dict[str, Any]:
        """OpenAI-style function schema."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": dict(self.parameters),
            },
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


Executor = Callable[..., Union[str, Awaitable[str]]]


class FunctionTool(Tool):
    """Wraps a plain or async callable taking the JSON arguments as keywords."""

    def __init__(
        self,
        func: Executor,
        name: str | None = None,
        description: str | None = None,
        parameters: Dict[str, Any] | None = None,
        delegation: bool = False,
    ) -> None:
        super().__init__(
            name=name or func.__name__,
            description=description if description is not None else (inspect.getdoc(func) or ""),
            parameters=parameters,
            delegation=delegation,
        )
        self.func = func

    async def run(self, arguments: Dict[str, Any]) -> str:
        if inspect.iscoroutinefunction(self.func):
            result = await self.func(**arguments)
        else:
            result = await asyncio.to_thread(self.func, **arguments)
            if inspect.isawaitable(result):
                result = await result
        return result if isinstance(result, str) else str(result)


def human_feedback_tool(ask: Callable[[str], str] = input) -> FunctionTool:
    """Tool that forwards a question to a human and returns the answer."""

    def human_feedback(question: str) -> str:
        return ask(f"{question}\n> ")

    return FunctionTool(
        human_feedback,
        name=HUMAN_FEEDBACK_TOOL,
        description="Ask the human operator to confirm or correct the next steps.",
        parameters={
            "type": "object",
            "properties": {
                "question": {
                    "type": "string",
                    "description": "Question or plan to put in front of the human",
                },
            },
            "required": ["question"],
        },
    )
