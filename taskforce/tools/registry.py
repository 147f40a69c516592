from __future__ import annotations

import json
import logging
import threading
from typing import Dict, Iterable, List

from taskforce.memory.artifacts import ArtifactsStore
from taskforce.tools.base import Tool

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Maps tool names to tools and remembers each tool's last result."""

    def __init__(self, tools: Iterable[Tool] | None = None) -> None:
        self._tools: Dict[str, Tool] = {}
        self._lock = threading.Lock()
        self.results = ArtifactsStore()
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        """Register a tool by its name, replacing any previous tool of that name."""
        with self._lock:
            self._tools[tool.name] = tool
        logger.debug("Registered tool: %s", tool.name)

    def get(self, name: str) -> Tool:
        with self._lock:
            if name not in self._tools:
                raise KeyError(f"Tool '{name}' not registered")
            return self._tools[name]

    def names(self) -> List[str]:
        with self._lock:
            return list(self._tools)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._tools

    def is_delegation(self, name: str) -> bool:
        """True when the named tool hands work to another agent."""
        with self._lock:
            tool = self._tools.get(name)
        return bool(tool and tool.delegation)

    async def invoke(self, name: str, arguments: str) -> str:
        """Run a tool with raw JSON arguments and return the text the model sees."""
        try:
            tool = self.get(name)
        except KeyError:
            logger.warning("Model requested unknown tool '%s'", name)
            return f"Error: tool '{name}' is not available."

        try:
            parsed = json.loads(arguments.strip() or "{}")
        except json.JSONDecodeError as exc:
            logger.warning("Malformed arguments for tool '%s': %s", name, exc)
            return f"Error: could not parse arguments for tool '{name}': {exc}"
        if not isinstance(parsed, dict):
            return f"Error: arguments for tool '{name}' must be a JSON object."

        logger.info("Calling function '%s' with params: %s", name, parsed)
        try:
            result = await tool.run(parsed)
        except Exception as exc:
            logger.exception("Tool '%s' failed", name)
            return f"Error: tool '{name}' failed: {type(exc).__name__}: {exc}"

        self.results.set(name, result)
        return result

    def context(self) -> str:
        """Render the latest result of every registered tool for prompt assembly."""
        cached = self.results.as_dict()
        lines = [f"{name} Results: {cached.get(name, 'Pending...')}" for name in self.names()]
        return "\n".join(lines)
