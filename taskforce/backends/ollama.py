from __future__ import annotations

from typing import Any, Sequence

from openai import AsyncOpenAI

from taskforce.backends.gpt import OpenAIBackend
from taskforce.tools.base import Tool


def describe_tools(tools: Sequence[Tool]) -> str:
    """Spell tools out in the system prompt for models without native tool calling."""
    if not tools:
        return ""

    lines = ["", "", "You have Tools Available Please tell me when to use them:"]
    for tool in tools:
        lines.append("")
        lines.append(f"Name: {tool.name}")
        lines.append(f"Description: {tool.description}")
        schema = tool.parameters or {}
        if schema.get("type"):
            lines.append(f"Parameter Type: {schema['type']}")
        required = schema.get("required")
        if isinstance(required, list) and required:
            lines.append(f"Required Parameters: {','.join(required)}")
        properties = schema.get("properties") or {}
        if properties:
            examples = []
            for key, spec in properties.items():
                kind = spec.get("type") if isinstance(spec, dict) else None
                value = "'example'" if kind == "string" else "0" if kind == "number" else "''"
                examples.append(f"'{key}': {value}")
            lines.append(
                f"Example of Calling Tool: {{'tool_call':'{tool.name}',"
                f"'arguments': {{{','.join(examples)}}}}}"
            )
    return "\n".join(lines)


class OllamaBackend(OpenAIBackend):
    """Local Ollama server through its OpenAI-compatible endpoint, without tool calling."""

    name = "ollama"
    default_model = "llama3"
    supports_tools = False
    supports_streaming = False
    supports_parallel_tool_calls = False

    def __init__(
        self,
        model: str | None = None,
        base_url: str = "http://localhost:11434/v1",
        client: AsyncOpenAI | None = None,
        **options: Any,
    ) -> None:
        options.pop("api_key", None)
        super().__init__(model=model, api_key="ollama", base_url=base_url, client=client, **options)

    def _system(self, system_prompt: str, tools: Sequence[Tool]) -> str:
        return system_prompt + describe_tools(tools)
