from __future__ import annotations

import os
from typing import Any, Dict

from taskforce.backends.base import ModelBackend
from taskforce.backends.claude import ClaudeBackend
from taskforce.backends.echo import EchoBackend
from taskforce.backends.gpt import OpenAIBackend
from taskforce.backends.ollama import OllamaBackend
from taskforce.errors import ConfigurationError
from taskforce.utils.settings import LLMConfig


def build_backend(config: LLMConfig) -> ModelBackend:
    """Instantiate the backend described by the ``llm`` config section."""
    options: Dict[str, Any] = {
        "model": config.model,
        "parallel_tool_calls": config.parallel_tool_calls,
        "temperature": config.temperature,
    }
    if config.max_tokens:
        options["max_tokens"] = config.max_tokens
    api_key = os.environ.get(config.api_key_env) if config.api_key_env else None

    if config.provider == "openai":
        return OpenAIBackend(api_key=api_key, base_url=config.base_url, **options)
    if config.provider == "claude":
        return ClaudeBackend(api_key=api_key, **options)
    if config.provider == "ollama":
        if config.base_url:
            options["base_url"] = config.base_url
        return OllamaBackend(**options)
    if config.provider == "echo":
        return EchoBackend(**options)
    raise ConfigurationError(f"Unknown LLM provider '{config.provider}'")
