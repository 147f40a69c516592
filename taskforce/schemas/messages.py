from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


@dataclass
class ToolCall:
    """Tool invocation requested by the model."""

    id: str
    name: str
    arguments: str = ""

    def parsed_arguments(self) -> Optional[Dict[str, Any]]:
        """Return the arguments as a dict, or None while they are not valid JSON yet."""
        raw = self.arguments.strip() or "{}"
        try:
            value = json.loads(raw)
        except json.JSONDecodeError:
            return None
        return value if isinstance(value, dict) else None


@dataclass
class ToolResult:
    tool_call_id: str
    name: str
    content: str


@dataclass
class Message:
    """Single entry of a backend conversation history."""

    role: str
    content: Any = None
    tool_calls: List[ToolCall] = field(default_factory=list)
    tool_call_id: Optional[str] = None
    name: Optional[str] = None

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role="user", content=content)

    @classmethod
    def assistant(cls, content: Any, tool_calls: List[ToolCall] | None = None) -> "Message":
        return cls(role="assistant", content=content, tool_calls=list(tool_calls or []))

    @classmethod
    def tool(cls, result: ToolResult) -> "Message":
        return cls(
            role="tool",
            content=result.content,
            tool_call_id=result.tool_call_id,
            name=result.name,
        )

    @property
    def text(self) -> str:
        """Plain text of the message, flattening content blocks."""
        if self.content is None:
            return ""
        if isinstance(self.content, str):
            return self.content
        parts = []
        for block in self.content:
            if isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text", ""))
        return "".join(parts)


@dataclass
class AssistantReply:
    """Backend response normalized across providers."""

    text: str = ""
    tool_calls: List[ToolCall] = field(default_factory=list)

    def to_message(self) -> Message:
        return Message.assistant(self.text or None, self.tool_calls)


class PromptKind(str, Enum):
    FREEFORM = "freeform"
    TASK = "task"


@dataclass(frozen=True)
class Prompt:
    """Agent input; the caller states whether it is freeform text or a task envelope."""

    kind: PromptKind
    text: str = ""
    task: str = ""
    input: str = ""

    @classmethod
    def freeform(cls, text: str) -> "Prompt":
        return cls(kind=PromptKind.FREEFORM, text=text)

    @classmethod
    def for_task(cls, task: str, input: str = "") -> "Prompt":
        return cls(kind=PromptKind.TASK, task=task, input=input)

    @property
    def is_task(self) -> bool:
        return self.kind is PromptKind.TASK


@dataclass
class MemoryDocument:
    page_content: str
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class RunResult:
    """Outcome of one orchestrator kickoff."""

    output: str
    elapsed_seconds: float

    @property
    def run_time(self) -> str:
        total = int(self.elapsed_seconds)
        return f"{total // 60} minutes and {total % 60} seconds"

    def __str__(self) -> str:
        return f"{self.output}\n\nRun time: {self.run_time}"
