"""
Global configuration: per-provider credentials and base URLs.

Resolution order for every setting is environment variable, then
`config.toml`, then empty. The environment mapping is injected so callers and
tests never need to mutate `os.environ`.
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .exceptions import ConfigError
from .paths import config_dir

CONFIG_FILE_NAME = "config.toml"

_KNOWN_API_KEY_ENV_VARS = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
}

CONFIG_TEMPLATE = """\
# agentrelay global configuration
#
# Environment variables take precedence over values in this file:
#   ANTHROPIC_API_KEY, OPENAI_API_KEY, AGENTRELAY_<PROVIDER>_BASE_URL

# [providers.anthropic]
# api_key = ""
# base_url = ""

# [providers.openai]
# api_key = ""
# base_url = ""

# [providers.ollama]
# base_url = "http://localhost:11434"
"""


def api_key_env_var(provider_name: str) -> str:
    """Environment variable consulted for a provider's API key."""
    return _KNOWN_API_KEY_ENV_VARS.get(provider_name, f"{provider_name.upper()}_API_KEY")


def base_url_env_var(provider_name: str) -> str:
    """Environment variable consulted for a provider's base URL override."""
    return f"AGENTRELAY_{provider_name.upper()}_BASE_URL"


@dataclass
class ProviderSettings:
    """One `[providers.<name>]` table."""

    api_key: str = ""
    base_url: str = ""


@dataclass
class GlobalConfig:
    """
    Parsed global configuration.

    Attributes:
        providers: Settings keyed by provider name.
        environ: Environment consulted before the file values. Defaults to
            `os.environ`.
    """

    providers: Dict[str, ProviderSettings] = field(default_factory=dict)
    environ: Mapping[str, str] = field(default_factory=lambda: os.environ, repr=False)

    def resolve_api_key(self, provider_name: str) -> str:
        value = self.environ.get(api_key_env_var(provider_name), "")
        if value:
            return value
        settings = self.providers.get(provider_name)
        return settings.api_key if settings else ""

    def resolve_base_url(self, provider_name: str) -> str:
        value = self.environ.get(base_url_env_var(provider_name), "")
        if value:
            return value
        settings = self.providers.get(provider_name)
        return settings.base_url if settings else ""


def load_global_config(
    path: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None
) -> GlobalConfig:
    """
    Read `config.toml` from the config directory (or `path`).

    A missing file yields an empty configuration.

    Raises:
        ConfigError: If the file exists but cannot be read or parsed.
    """
    env = os.environ if environ is None else environ
    path = path or config_dir(env) / CONFIG_FILE_NAME

    try:
        with path.open("rb") as f:
            data = tomllib.load(f)
    except FileNotFoundError:
        return GlobalConfig(environ=env)
    except OSError as exc:
        raise ConfigError(f"failed to read config file: {exc}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"failed to parse config file: {exc}") from exc

    providers: Dict[str, ProviderSettings] = {}
    raw_providers: Any = data.get("providers", {})
    if not isinstance(raw_providers, dict):
        raise ConfigError("failed to parse config file: [providers] must be a table")
    for name, table in raw_providers.items():
        if not isinstance(table, dict):
            raise ConfigError(f"failed to parse config file: [providers.{name}] must be a table")
        providers[name] = ProviderSettings(
            api_key=str(table.get("api_key", "")),
            base_url=str(table.get("base_url", "")),
        )
    return GlobalConfig(providers=providers, environ=env)


__all__ = [
    "CONFIG_FILE_NAME",
    "CONFIG_TEMPLATE",
    "GlobalConfig",
    "ProviderSettings",
    "api_key_env_var",
    "base_url_env_var",
    "load_global_config",
]
