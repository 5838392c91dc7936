"""
Agent definitions loaded from `<config_dir>/agents/<name>.toml`.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..exceptions import AgentConfigError
from ..paths import config_dir as default_config_dir

DEFAULT_MAX_DEPTH = 3
MAX_DEPTH_LIMIT = 5


@dataclass
class SubAgentsConfig:
    """
    Delegation settings.

    Attributes:
        max_depth: Maximum nesting of sub-agent calls (1-5). 0 = use the default (3).
        timeout: Per-sub-agent timeout in seconds. 0 = none.
    """

    max_depth: int = 0
    timeout: int = 0


@dataclass
class MemoryConfig:
    """
    Persistent memory settings.

    Attributes:
        enabled: Load past entries into the prompt and append new ones.
        path: Custom memory file; empty means the default data-dir location.
        last_n: Load only the most recent N entries. 0 = all.
    """

    enabled: bool = False
    path: str = ""
    last_n: int = 0


@dataclass
class ParamsConfig:
    """Model parameters. 0 leaves the provider default in place."""

    temperature: float = 0.0
    max_tokens: int = 0


@dataclass
class AgentConfig:
    """
    One agent definition.

    Attributes:
        name: Agent name (required).
        description: Free-form summary shown by `agents list`.
        model: "provider/model-name" (required).
        system_prompt: Agent persona.
        skill: Path to a skill markdown file, relative to the config dir.
        files: Glob patterns of context files, relative to the workdir.
        workdir: Working directory for file resolution.
        sub_agents: Names of agents this agent may delegate to via call_agent.
        sub_agents_config: Delegation depth and timeout.
        memory: Persistent memory settings.
        params: Model parameters.
    """

    name: str = ""
    description: str = ""
    model: str = ""
    system_prompt: str = ""
    skill: str = ""
    files: List[str] = field(default_factory=list)
    workdir: str = ""
    sub_agents: List[str] = field(default_factory=list)
    sub_agents_config: SubAgentsConfig = field(default_factory=SubAgentsConfig)
    memory: MemoryConfig = field(default_factory=MemoryConfig)
    params: ParamsConfig = field(default_factory=ParamsConfig)

    @property
    def effective_max_depth(self) -> int:
        depth = self.sub_agents_config.max_depth
        if 0 < depth <= MAX_DEPTH_LIMIT:
            return depth
        return DEFAULT_MAX_DEPTH

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AgentConfig":
        """Build from parsed TOML; unknown keys are ignored."""
        sub_conf = _table(data, "sub_agents_config")
        memory = _table(data, "memory")
        params = _table(data, "params")
        return cls(
            name=str(data.get("name", "")),
            description=str(data.get("description", "")),
            model=str(data.get("model", "")),
            system_prompt=str(data.get("system_prompt", "")),
            skill=str(data.get("skill", "")),
            files=[str(p) for p in data.get("files", [])],
            workdir=str(data.get("workdir", "")),
            sub_agents=[str(a) for a in data.get("sub_agents", [])],
            sub_agents_config=SubAgentsConfig(
                max_depth=int(sub_conf.get("max_depth", 0)),
                timeout=int(sub_conf.get("timeout", 0)),
            ),
            memory=MemoryConfig(
                enabled=bool(memory.get("enabled", False)),
                path=str(memory.get("path", "")),
                last_n=int(memory.get("last_n", 0)),
            ),
            params=ParamsConfig(
                temperature=float(params.get("temperature", 0.0)),
                max_tokens=int(params.get("max_tokens", 0)),
            ),
        )

    def validate(self) -> None:
        """
        Check required fields and bounds. Name is checked before model.

        Raises:
            AgentConfigError: On the first problem found.
        """
        if not self.name.strip():
            raise AgentConfigError("agent config missing required field: name")
        if not self.model.strip():
            raise AgentConfigError("agent config missing required field: model")
        if self.sub_agents_config.max_depth < 0:
            raise AgentConfigError("sub_agents_config.max_depth must be non-negative")
        if self.sub_agents_config.max_depth > MAX_DEPTH_LIMIT:
            raise AgentConfigError(f"sub_agents_config.max_depth cannot exceed {MAX_DEPTH_LIMIT}")
        if self.sub_agents_config.timeout < 0:
            raise AgentConfigError("sub_agents_config.timeout must be non-negative")


def _table(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = data.get(key, {})
    if not isinstance(value, dict):
        raise AgentConfigError(f"[{key}] must be a table")
    return value


def agents_dir(config_dir: Optional[Path] = None) -> Path:
    return (config_dir or default_config_dir()) / "agents"


def agent_path(name: str, config_dir: Optional[Path] = None) -> Path:
    return agents_dir(config_dir) / f"{name}.toml"


def load_agent(name: str, config_dir: Optional[Path] = None) -> AgentConfig:
    """
    Read, parse and validate one agent definition.

    Raises:
        AgentConfigError: If the file is missing, unreadable, malformed, or invalid.
    """
    path = agent_path(name, config_dir)
    if not path.exists():
        raise AgentConfigError(f"agent config not found: {name}")
    try:
        with path.open("rb") as f:
            data = tomllib.load(f)
    except OSError as exc:
        raise AgentConfigError(f'failed to read agent config "{name}": {exc}') from exc
    except tomllib.TOMLDecodeError as exc:
        raise AgentConfigError(f'failed to parse agent config "{name}": {exc}') from exc

    try:
        config = AgentConfig.from_dict(data)
    except (TypeError, ValueError) as exc:
        raise AgentConfigError(f'failed to parse agent config "{name}": {exc}') from exc
    config.validate()
    return config


def list_agents(config_dir: Optional[Path] = None) -> List[AgentConfig]:
    """All valid agent definitions, sorted by file name. Invalid files are skipped."""
    directory = agents_dir(config_dir)
    if not directory.is_dir():
        return []
    agents = []
    for path in sorted(directory.glob("*.toml")):
        try:
            agents.append(load_agent(path.stem, config_dir))
        except AgentConfigError:
            continue
    return agents


def scaffold_agent(name: str) -> str:
    """TOML template for a new agent definition."""
    return f'''name = "{name}"
description = ""

# Full provider/model, e.g. "anthropic/claude-sonnet-4-20250514"
model = "provider/model-name"

# Agent persona (optional)
# system_prompt = ""

# Default skill (optional, can be overridden with --skill)
# skill = ""

# Context files - glob patterns resolved from workdir or cwd (optional)
# files = []

# Working directory (optional)
# workdir = ""

# Sub-agents this agent can invoke (optional)
# sub_agents = []

# [sub_agents_config]
# max_depth = 3
# timeout = 120

# [memory]
# enabled = false
# path = ""
# last_n = 0

# [params]
# temperature = 0.3
# max_tokens = 4096
'''


__all__ = [
    "DEFAULT_MAX_DEPTH",
    "MAX_DEPTH_LIMIT",
    "AgentConfig",
    "SubAgentsConfig",
    "MemoryConfig",
    "ParamsConfig",
    "agents_dir",
    "agent_path",
    "load_agent",
    "list_agents",
    "scaffold_agent",
]
