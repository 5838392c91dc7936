"""
Tests for the CLI (cli.py).

Tests cover:
- build_parser() argument parsing
- run: output, JSON envelope, dry-run, stdin, memory, sub-agent tool wiring
- exit codes for config, credential and provider failures
- agents list/show/init, config path/init, gc, version
"""

from __future__ import annotations

import io
import json
from pathlib import Path

import pytest

from agentrelay import __version__
from agentrelay.cli import DEFAULT_USER_MESSAGE, CommandError, build_parser, exit_code_for, main
from agentrelay.exceptions import (
    AgentConfigError,
    ConfigError,
    ErrorCategory,
    ProviderError,
    ResolveError,
)
from agentrelay.types import Response, Role, ToolCall


class Terminal(io.StringIO):
    def isatty(self) -> bool:
        return True


@pytest.fixture
def home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolated XDG dirs, cwd, credentials, and an interactive stdin."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test")
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("sys.stdin", Terminal())
    return tmp_path


def _config_dir(home: Path) -> Path:
    return home / "config" / "agentrelay"


def _write_agent(home: Path, name: str, body: str) -> None:
    agents = _config_dir(home) / "agents"
    agents.mkdir(parents=True, exist_ok=True)
    (agents / f"{name}.toml").write_text(body)


def _factory_for(provider, seen=None):
    def factory(provider_name, api_key, base_url):
        if seen is not None:
            seen.append((provider_name, api_key, base_url))
        return provider

    return factory


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


class TestBuildParser:
    def test_run_defaults(self) -> None:
        args = build_parser().parse_args(["run", "reviewer"])

        assert args.func == "run"
        assert args.agent == "reviewer"
        assert args.timeout == 120
        assert args.model == ""
        assert not args.dry_run
        assert not args.verbose
        assert not args.json

    def test_run_flags(self) -> None:
        args = build_parser().parse_args(
            ["run", "r", "--model", "openai/gpt-4o", "--skill", "s.md", "--workdir", "/w",
             "--timeout", "30", "--dry-run", "-v", "--json"]
        )

        assert args.model == "openai/gpt-4o"
        assert args.skill == "s.md"
        assert args.workdir == "/w"
        assert args.timeout == 30
        assert args.dry_run and args.verbose and args.json

    def test_subcommands(self) -> None:
        parser = build_parser()

        assert parser.parse_args(["agents", "list"]).func == "agents_list"
        assert parser.parse_args(["agents", "show", "x"]).func == "agents_show"
        assert parser.parse_args(["agents", "init", "x"]).func == "agents_init"
        assert parser.parse_args(["config", "path"]).func == "config_path"
        assert parser.parse_args(["config", "init"]).func == "config_init"
        assert parser.parse_args(["gc", "--all"]).all
        assert parser.parse_args(["version"]).func == "version"


class TestExitCodes:
    @pytest.mark.parametrize(
        "category,code",
        [
            (ErrorCategory.BAD_REQUEST, 1),
            (ErrorCategory.AUTH, 3),
            (ErrorCategory.RATE_LIMIT, 3),
            (ErrorCategory.TIMEOUT, 3),
            (ErrorCategory.OVERLOADED, 3),
            (ErrorCategory.SERVER, 3),
        ],
    )
    def test_provider_categories(self, category, code) -> None:
        assert exit_code_for(ProviderError(category, "x")) == code

    def test_configuration_errors(self) -> None:
        assert exit_code_for(AgentConfigError("x")) == 2
        assert exit_code_for(ConfigError("x")) == 2
        assert exit_code_for(ResolveError("x")) == 2

    def test_explicit_and_fallback(self) -> None:
        assert exit_code_for(CommandError("x", exit_code=3)) == 3
        assert exit_code_for(RuntimeError("x")) == 1


# ---------------------------------------------------------------------------
# run
# ---------------------------------------------------------------------------


SIMPLE_AGENT = 'name = "simple"\nmodel = "anthropic/claude-test"\nsystem_prompt = "Be brief."\n'


class TestRun:
    def test_prints_content(self, home, fake_provider, capsys) -> None:
        _write_agent(home, "simple", SIMPLE_AGENT)
        provider = fake_provider(["Hello from the model"])
        seen = []

        code = main(["run", "simple"], provider_factory=_factory_for(provider, seen))

        assert code == 0
        assert capsys.readouterr().out == "Hello from the model"
        request = provider.requests[0]
        assert request.model == "claude-test"
        assert request.system == "Be brief."
        assert request.messages[0].content == DEFAULT_USER_MESSAGE
        assert request.tools == []
        assert seen == [("anthropic", "sk-ant-test", "")]

    def test_piped_stdin_becomes_user_message(self, home, fake_provider, monkeypatch) -> None:
        _write_agent(home, "simple", SIMPLE_AGENT)
        monkeypatch.setattr("sys.stdin", io.StringIO("review this diff"))
        provider = fake_provider(["ok"])

        main(["run", "simple"], provider_factory=_factory_for(provider))

        assert provider.requests[0].messages[0].content == "review this diff"

    def test_json_envelope(self, home, fake_provider, capsys) -> None:
        _write_agent(home, "simple", SIMPLE_AGENT)
        provider = fake_provider(
            [Response(content="done", model="claude-test", input_tokens=5, output_tokens=2, stop_reason="end_turn")]
        )

        code = main(["run", "simple", "--json"], provider_factory=_factory_for(provider))

        assert code == 0
        envelope = json.loads(capsys.readouterr().out)
        assert set(envelope) == {
            "model",
            "content",
            "input_tokens",
            "output_tokens",
            "stop_reason",
            "duration_ms",
            "tool_calls",
        }
        assert envelope["model"] == "claude-test"
        assert envelope["content"] == "done"
        assert envelope["input_tokens"] == 5
        assert envelope["output_tokens"] == 2
        assert envelope["stop_reason"] == "end_turn"
        assert envelope["tool_calls"] == 0
        assert isinstance(envelope["duration_ms"], int)

    def test_model_override(self, home, fake_provider) -> None:
        _write_agent(home, "simple", SIMPLE_AGENT)
        provider = fake_provider(["ok"])
        seen = []

        main(["run", "simple", "--model", "ollama/llama3.1"], provider_factory=_factory_for(provider, seen))

        assert seen[0][0] == "ollama"
        assert provider.requests[0].model == "llama3.1"

    def test_dry_run_makes_no_calls(self, home, fake_provider, capsys) -> None:
        _write_agent(home, "simple", SIMPLE_AGENT)
        provider = fake_provider(["unused"])

        code = main(["run", "simple", "--dry-run"], provider_factory=_factory_for(provider))

        out = capsys.readouterr().out
        assert code == 0
        assert provider.calls == 0
        assert out.startswith("=== Dry Run ===")
        assert "Model:    anthropic/claude-test" in out
        assert "--- System Prompt ---\nBe brief." in out
        assert "--- Sub-Agents ---\n(none)" in out

    def test_sub_agents_get_call_agent_tool(self, home, fake_provider, capsys) -> None:
        _write_agent(
            home,
            "lead",
            'name = "lead"\nmodel = "anthropic/claude-test"\nsub_agents = ["helper"]\n'
            "[sub_agents_config]\nmax_depth = 2\n",
        )
        _write_agent(home, "helper", 'name = "helper"\nmodel = "anthropic/claude-test"\n')
        provider = fake_provider(
            [
                Response(
                    stop_reason="tool_use",
                    tool_calls=[ToolCall(id="t1", name="call_agent", arguments={"agent": "helper", "task": "hi"})],
                ),
                "helper says hi",
                "lead done",
            ]
        )

        code = main(["run", "lead", "--json"], provider_factory=_factory_for(provider))

        assert code == 0
        assert [t.name for t in provider.requests[0].tools] == ["call_agent"]
        assert provider.requests[1].messages[0].content == "hi"
        final = provider.requests[2].messages
        assert final[-1].role == Role.TOOL
        assert final[-1].tool_results[0].content == "helper says hi"
        assert json.loads(capsys.readouterr().out)["tool_calls"] == 1

    def test_top_level_memory_round_trip(self, home, fake_provider) -> None:
        _write_agent(home, "mem", SIMPLE_AGENT.replace("simple", "mem") + "[memory]\nenabled = true\n")
        first = fake_provider(["first answer"])
        main(["run", "mem"], provider_factory=_factory_for(first))

        second = fake_provider(["second answer"])
        main(["run", "mem"], provider_factory=_factory_for(second))

        memory_file = home / "data" / "agentrelay" / "memory" / "mem.md"
        assert memory_file.read_text().count("## ") == 2
        assert "## Memory" in second.requests[0].system
        assert "**Result:** first answer" in second.requests[0].system

    def test_corrupt_memory_file_still_runs(self, home, fake_provider, capsys) -> None:
        _write_agent(home, "mem", SIMPLE_AGENT.replace("simple", "mem") + "[memory]\nenabled = true\n")
        memory_file = home / "data" / "agentrelay" / "memory" / "mem.md"
        memory_file.parent.mkdir(parents=True)
        memory_file.write_bytes(b"\xff\xfe")
        provider = fake_provider(["answer anyway"])

        code = main(["run", "mem"], provider_factory=_factory_for(provider))

        assert code == 0
        assert capsys.readouterr().out == "answer anyway"
        assert provider.requests[0].system == "Be brief."

    def test_missing_agent_exits_2(self, home, capsys) -> None:
        code = main(["run", "ghost"])

        assert code == 2
        assert "agent config not found: ghost" in capsys.readouterr().err

    def test_missing_skill_exits_2(self, home) -> None:
        _write_agent(home, "skilled", SIMPLE_AGENT.replace("simple", "skilled") + 'skill = "skills/none.md"\n')

        assert main(["run", "skilled"]) == 2

    def test_bad_model_exits_1(self, home, capsys) -> None:
        _write_agent(home, "simple", SIMPLE_AGENT)

        code = main(["run", "simple", "--model", "gpt-4o"])

        assert code == 1
        assert 'invalid model format "gpt-4o"' in capsys.readouterr().err

    def test_missing_api_key_exits_3(self, home, fake_provider, capsys) -> None:
        _write_agent(home, "simple", SIMPLE_AGENT)
        provider = fake_provider(["unused"])

        code = main(["run", "simple", "--model", "openai/gpt-4o"], provider_factory=_factory_for(provider))

        assert code == 3
        assert provider.calls == 0
        assert (
            'API key for provider "openai" is not configured (set OPENAI_API_KEY or add to config.toml)'
            in capsys.readouterr().err
        )

    def test_unsupported_provider_exits_1(self, home, capsys) -> None:
        _write_agent(home, "simple", SIMPLE_AGENT)

        code = main(["run", "simple", "--model", "mistral/large"])

        assert code == 1
        assert 'unsupported provider "mistral"' in capsys.readouterr().err

    @pytest.mark.parametrize(
        "category,code",
        [(ErrorCategory.AUTH, 3), (ErrorCategory.BAD_REQUEST, 1), (ErrorCategory.OVERLOADED, 3)],
    )
    def test_provider_errors_map_to_exit_codes(self, home, fake_provider, capsys, category, code) -> None:
        _write_agent(home, "simple", SIMPLE_AGENT)
        provider = fake_provider([ProviderError(category, "vendor message")])

        assert main(["run", "simple"], provider_factory=_factory_for(provider)) == code
        assert f"{category.value}: vendor message" in capsys.readouterr().err

    def test_invalid_global_config_exits_2(self, home) -> None:
        _write_agent(home, "simple", SIMPLE_AGENT)
        (_config_dir(home) / "config.toml").write_text("[providers\n")

        assert main(["run", "simple"]) == 2


# ---------------------------------------------------------------------------
# agents / config / version
# ---------------------------------------------------------------------------


class TestAgentsCommands:
    def test_list(self, home, capsys) -> None:
        _write_agent(home, "b", 'name = "b"\nmodel = "a/m"\n')
        _write_agent(home, "a", 'name = "a"\nmodel = "a/m"\ndescription = "first agent"\n')

        assert main(["agents", "list"]) == 0
        assert capsys.readouterr().out == "a - first agent\nb\n"

    def test_show(self, home, capsys) -> None:
        _write_agent(
            home,
            "r",
            'name = "r"\nmodel = "openai/gpt-4o"\nsub_agents = ["x", "y"]\n[params]\nmax_tokens = 10\n',
        )

        assert main(["agents", "show", "r"]) == 0
        out = capsys.readouterr().out.splitlines()
        assert out == [
            f"{'Name:':<16}r",
            f"{'Model:':<16}openai/gpt-4o",
            f"{'Sub-Agents:':<16}x, y",
            f"{'Max Tokens:':<16}10",
        ]

    def test_show_missing(self, home) -> None:
        assert main(["agents", "show", "nope"]) == 2

    def test_init_writes_template(self, home, capsys) -> None:
        assert main(["agents", "init", "helper"]) == 0

        path = _config_dir(home) / "agents" / "helper.toml"
        assert capsys.readouterr().out.strip() == str(path)
        assert 'name = "helper"' in path.read_text()

    def test_init_refuses_to_overwrite(self, home, capsys) -> None:
        _write_agent(home, "helper", "keep me")

        assert main(["agents", "init", "helper"]) == 1
        assert "agent config already exists" in capsys.readouterr().err
        assert (_config_dir(home) / "agents" / "helper.toml").read_text() == "keep me"


class TestConfigCommands:
    def test_path(self, home, capsys) -> None:
        assert main(["config", "path"]) == 0
        assert capsys.readouterr().out.strip() == str(_config_dir(home))

    def test_init_creates_layout(self, home) -> None:
        assert main(["config", "init"]) == 0

        root = _config_dir(home)
        assert (root / "agents").is_dir()
        assert (root / "skills" / "sample" / "SKILL.md").is_file()
        assert "[providers.anthropic]" in (root / "config.toml").read_text()

    def test_init_keeps_existing_files(self, home) -> None:
        root = _config_dir(home)
        root.mkdir(parents=True)
        (root / "config.toml").write_text("# mine\n")

        main(["config", "init"])

        assert (root / "config.toml").read_text() == "# mine\n"


class TestVersion:
    def test_version(self, capsys) -> None:
        assert main(["version"]) == 0
        assert capsys.readouterr().out == f"agentrelay version {__version__}\n"


# ---------------------------------------------------------------------------
# gc
# ---------------------------------------------------------------------------


class TestGc:
    def test_requires_name_or_all(self, home) -> None:
        assert main(["gc"]) == 1
        assert main(["gc", "x", "--all"]) == 1

    def test_memory_disabled_is_skipped(self, home, fake_provider) -> None:
        _write_agent(home, "simple", SIMPLE_AGENT)
        provider = fake_provider(["unused"])

        assert main(["gc", "simple"], provider_factory=_factory_for(provider)) == 0
        assert provider.calls == 0

    def test_no_entries(self, home, capsys) -> None:
        _write_agent(home, "mem", 'name = "mem"\nmodel = "anthropic/c"\n[memory]\nenabled = true\n')

        assert main(["gc", "mem"]) == 0
        assert 'No memory entries for agent "mem"' in capsys.readouterr().out

    def test_analysis(self, home, fake_provider, capsys) -> None:
        _write_agent(home, "mem", 'name = "mem"\nmodel = "anthropic/c"\n[memory]\nenabled = true\n')
        memory = home / "data" / "agentrelay" / "memory" / "mem.md"
        memory.parent.mkdir(parents=True)
        memory.write_text("## 2026-01-01T00:00:00Z\n**Task:** a\n**Result:** b\n\n")
        provider = fake_provider(["## Patterns Found\nNone"])

        assert main(["gc", "mem"], provider_factory=_factory_for(provider)) == 0

        out = capsys.readouterr().out
        assert "Agent: mem\nEntries: 1" in out
        assert "--- Analysis ---\n## Patterns Found" in out
        request = provider.requests[0]
        assert request.system.startswith("You are a memory analyst")
        assert request.temperature == 0.3
        assert request.max_tokens == 4096
        assert request.messages[0].content == memory.read_text()
