"""
Tests for config.py and paths.py: global config loading and resolution.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from agentrelay.config import (
    GlobalConfig,
    ProviderSettings,
    api_key_env_var,
    base_url_env_var,
    load_global_config,
)
from agentrelay.exceptions import ConfigError
from agentrelay.paths import config_dir, data_dir


class TestPaths:
    def test_xdg_overrides(self, tmp_path: Path):
        env = {"XDG_CONFIG_HOME": str(tmp_path / "cfg"), "XDG_DATA_HOME": str(tmp_path / "data")}

        assert config_dir(env) == tmp_path / "cfg" / "agentrelay"
        assert data_dir(env) == tmp_path / "data" / "agentrelay"

    def test_home_fallbacks(self):
        assert config_dir({}) == Path.home() / ".config" / "agentrelay"
        assert data_dir({}) == Path.home() / ".local" / "share" / "agentrelay"


class TestEnvVarNames:
    def test_known_providers(self):
        assert api_key_env_var("anthropic") == "ANTHROPIC_API_KEY"
        assert api_key_env_var("openai") == "OPENAI_API_KEY"

    def test_convention_for_others(self):
        assert api_key_env_var("mistral") == "MISTRAL_API_KEY"
        assert base_url_env_var("ollama") == "AGENTRELAY_OLLAMA_BASE_URL"


class TestResolution:
    def test_environment_beats_file(self):
        config = GlobalConfig(
            providers={"openai": ProviderSettings(api_key="file-key", base_url="http://file")},
            environ={"OPENAI_API_KEY": "env-key", "AGENTRELAY_OPENAI_BASE_URL": "http://env"},
        )

        assert config.resolve_api_key("openai") == "env-key"
        assert config.resolve_base_url("openai") == "http://env"

    def test_file_used_when_env_empty(self):
        config = GlobalConfig(
            providers={"anthropic": ProviderSettings(api_key="file-key", base_url="http://file")},
            environ={"ANTHROPIC_API_KEY": ""},
        )

        assert config.resolve_api_key("anthropic") == "file-key"
        assert config.resolve_base_url("anthropic") == "http://file"

    def test_nothing_configured(self):
        config = GlobalConfig(environ={})

        assert config.resolve_api_key("openai") == ""
        assert config.resolve_base_url("ollama") == ""


class TestLoadGlobalConfig:
    def test_missing_file_is_empty(self, tmp_path: Path):
        config = load_global_config(tmp_path / "config.toml", environ={})

        assert config.providers == {}

    def test_default_location_uses_xdg(self, tmp_path: Path):
        env = {"XDG_CONFIG_HOME": str(tmp_path)}
        path = tmp_path / "agentrelay" / "config.toml"
        path.parent.mkdir()
        path.write_text('[providers.ollama]\nbase_url = "http://gpu-box:11434"\n')

        config = load_global_config(environ=env)

        assert config.resolve_base_url("ollama") == "http://gpu-box:11434"

    def test_parses_providers(self, tmp_path: Path):
        path = tmp_path / "config.toml"
        path.write_text(
            '[providers.anthropic]\napi_key = "sk-file"\n\n'
            '[providers.openai]\nbase_url = "http://proxy"\n'
        )

        config = load_global_config(path, environ={})

        assert config.providers["anthropic"] == ProviderSettings(api_key="sk-file")
        assert config.providers["openai"] == ProviderSettings(base_url="http://proxy")

    def test_invalid_toml(self, tmp_path: Path):
        path = tmp_path / "config.toml"
        path.write_text("[providers\n")

        with pytest.raises(ConfigError) as exc_info:
            load_global_config(path, environ={})

        assert str(exc_info.value).startswith("failed to parse config file")

    def test_providers_must_be_tables(self, tmp_path: Path):
        path = tmp_path / "config.toml"
        path.write_text('providers = "nope"\n')

        with pytest.raises(ConfigError):
            load_global_config(path, environ={})
