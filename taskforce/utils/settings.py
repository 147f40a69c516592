from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

import yaml
from pydantic import BaseModel, Field


class LLMConfig(BaseModel):
    provider: Literal["openai", "claude", "ollama", "echo"] = "openai"
    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    parallel_tool_calls: bool = False
    api_key_env: Optional[str] = None
    base_url: Optional[str] = None


class AgencyConfig(BaseModel):
    process: Literal["sequential", "hierarchical"] = "hierarchical"
    allow_delegation: bool = False
    out_file: Optional[str] = None


class MemoryConfig(BaseModel):
    enabled: bool = False
    embedding_model: str = "text-embedding-3-small"
    resources: List[str] = Field(default_factory=list)


class AgentConfig(BaseModel):
    role: str
    goal: str


class TaskConfig(BaseModel):
    description: str
    expected_output: str
    agent: Optional[str] = None


class LoggingConfig(BaseModel):
    level: str = "INFO"


class AppConfig(BaseModel):
    llm: LLMConfig = Field(default_factory=LLMConfig)
    agency: AgencyConfig = Field(default_factory=AgencyConfig)
    memory: MemoryConfig = Field(default_factory=MemoryConfig)
    agents: List[AgentConfig] = Field(default_factory=list)
    tasks: List[TaskConfig] = Field(default_factory=list)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(env: str = "base", config_dir: Path | str = Path("configs")) -> AppConfig:
    config_dir = Path(config_dir)
    base = _read_yaml(config_dir / "base.yaml")
    if env != "base":
        override_path = config_dir / f"{env}.yaml"
        if override_path.exists():
            base = _merge_dicts(base, _read_yaml(override_path))
    return AppConfig.model_validate(base)


def _read_yaml(path: Path) -> Dict[str, Any]:
    return yaml.safe_load(path.read_text(encoding="utf-8")) or {}


def _merge_dicts(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            merged[key] = _merge_dicts(base[key], value)
        else:
            merged[key] = value
    return merged
