"""
CLI entrypoint for agentrelay.

Examples:
    agentrelay run pr-reviewer < diff.txt
    agentrelay run summarizer --model openai/gpt-4o --json
    agentrelay agents init helper
    agentrelay config path
    agentrelay gc summarizer
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from typing import List, Optional

from . import __version__
from .agent.config import AgentConfig, agent_path, agents_dir, list_agents, load_agent, scaffold_agent
from .agent.core import ConversationEngine
from .agent.subagent import ExecuteOptions, ProviderFactory, SubAgentExecutor, call_agent_tool, parse_model
from .config import CONFIG_FILE_NAME, CONFIG_TEMPLATE, GlobalConfig, api_key_env_var, load_global_config
from .context import CallContext
from .env import load_default_env
from .exceptions import (
    AgentConfigError,
    AgentRelayError,
    ConfigError,
    ErrorCategory,
    MemoryStoreError,
    ProviderError,
    ResolveError,
)
from .memory import MemoryStore
from .paths import config_dir, data_dir
from .providers.base import Provider
from .providers.factory import create_provider, is_supported, requires_api_key
from .resolve import build_system_prompt, read_stdin, resolve_files, resolve_skill, resolve_workdir
from .types import Message, Request, Role

logger = logging.getLogger(__name__)

DEFAULT_USER_MESSAGE = "Execute the task described in your instructions."
DEFAULT_TIMEOUT = 120

GC_TIMEOUT = 120
GC_SYSTEM_PROMPT = """You are a memory analyst for an AI agent. You will receive a log of the agent's past tasks and results. Analyze the entries and provide a structured report.

Your report MUST contain exactly these three sections with these exact headings:

## Patterns Found
Identify recurring themes, common task types, or behavioral patterns across the entries. If no patterns exist, state "No clear patterns detected."

## Repeated Work
Identify any tasks that appear to be duplicated or that the agent has done multiple times with the same or similar inputs. If no repetition is found, state "No repeated work detected."

## Recommendations
Based on the patterns and repetitions found, suggest concrete actions the user could take to improve the agent's configuration, skill, or workflow. If no recommendations apply, state "No specific recommendations."

Be concise. Reference specific entries by their timestamps when relevant."""

SAMPLE_SKILL = """# Sample Skill

Describe what the agent should do when this skill is loaded.

## Instructions

1. Read the provided context carefully.
2. Answer concisely.
"""

_PROVIDER_EXIT_CODES = {
    ErrorCategory.BAD_REQUEST: 1,
    ErrorCategory.AUTH: 3,
    ErrorCategory.RATE_LIMIT: 3,
    ErrorCategory.TIMEOUT: 3,
    ErrorCategory.OVERLOADED: 3,
    ErrorCategory.SERVER: 3,
}


class CommandError(AgentRelayError):
    """A command failure carrying the process exit code."""

    def __init__(self, message: str, exit_code: int = 1):
        self.exit_code = exit_code
        super().__init__(message)


def exit_code_for(exc: BaseException) -> int:
    """Map a failure to the process exit code."""
    if isinstance(exc, CommandError):
        return exc.exit_code
    if isinstance(exc, ProviderError):
        return _PROVIDER_EXIT_CODES.get(exc.category, 1)
    if isinstance(exc, (AgentConfigError, ConfigError, ResolveError)):
        return 2
    return 1


def configure_logging(verbose: bool) -> None:
    """Send agentrelay's log records to stderr; INFO and up when verbose."""
    logging.basicConfig(format="%(message)s", stream=sys.stderr)
    logging.getLogger("agentrelay").setLevel(logging.INFO if verbose else logging.WARNING)


def _require_api_key(global_config: GlobalConfig, provider_name: str) -> str:
    api_key = global_config.resolve_api_key(provider_name)
    if is_supported(provider_name) and requires_api_key(provider_name) and not api_key:
        raise CommandError(
            f'API key for provider "{provider_name}" is not configured '
            f"(set {api_key_env_var(provider_name)} or add to config.toml)",
            exit_code=3,
        )
    return api_key


def _build_provider(
    factory: ProviderFactory, global_config: GlobalConfig, provider_name: str
) -> Provider:
    api_key = _require_api_key(global_config, provider_name)
    base_url = global_config.resolve_base_url(provider_name)
    try:
        return factory(provider_name, api_key, base_url)
    except AgentRelayError as exc:
        raise CommandError(str(exc), exit_code=1) from exc


def _parse_model(model: str):
    try:
        return parse_model(model)
    except AgentRelayError as exc:
        raise CommandError(str(exc), exit_code=1) from exc


# ----------------------------------------------------------------------------
# run
# ----------------------------------------------------------------------------


def run_agent(args: argparse.Namespace, provider_factory: ProviderFactory) -> None:
    cfg_dir = config_dir()
    agent = load_agent(args.agent, cfg_dir)
    if args.model:
        agent.model = args.model
    if args.skill:
        agent.skill = args.skill

    provider_name, model_name = _parse_model(agent.model)
    global_config = load_global_config()

    workdir = resolve_workdir(args.workdir or "", agent.workdir)
    files = resolve_files(agent.files, workdir)
    skill = resolve_skill(agent.skill, cfg_dir)
    try:
        stdin_content = read_stdin()
    except ResolveError as exc:
        raise CommandError(str(exc), exit_code=1) from exc

    store = MemoryStore(data_dir())
    system_prompt = build_system_prompt(agent.system_prompt, skill, files)
    system_prompt += _load_memory(store, agent)

    if args.dry_run:
        _print_dry_run(agent, provider_name, model_name, workdir, args.timeout, system_prompt, skill, files, stdin_content)
        return

    provider = _build_provider(provider_factory, global_config, provider_name)

    user_message = stdin_content if stdin_content.strip() else DEFAULT_USER_MESSAGE
    request = Request(
        model=model_name,
        system=system_prompt,
        messages=[Message(role=Role.USER, content=user_message)],
        temperature=agent.params.temperature,
        max_tokens=agent.params.max_tokens,
    )

    options = ExecuteOptions(
        allowed_agents=list(agent.sub_agents),
        parent_model=agent.model,
        depth=0,
        max_depth=agent.effective_max_depth,
        timeout=agent.sub_agents_config.timeout,
        verbose=args.verbose,
    )
    if agent.sub_agents and options.depth < options.max_depth:
        request.tools = [call_agent_tool(agent.sub_agents)]

    logger.info("Model:    %s/%s", provider_name, model_name)
    logger.info("Workdir:  %s", workdir)
    logger.info("Skill:    %s", agent.skill or "(none)")
    logger.info("Files:    %d file(s)", len(files))
    logger.info("Stdin:    %s", "yes" if stdin_content.strip() else "no")
    logger.info("Timeout:  %ds", args.timeout)
    logger.info(
        "Params:   temperature=%g, max_tokens=%d", agent.params.temperature, agent.params.max_tokens
    )

    executor = SubAgentExecutor(
        agent_loader=lambda name: load_agent(name, cfg_dir),
        global_config=global_config,
        provider_factory=provider_factory,
        memory_store=store,
        config_dir=cfg_dir,
    )
    engine = ConversationEngine(provider, executor.tool_handlers(options))
    ctx = CallContext.background().with_timeout(args.timeout)

    start = time.monotonic()
    try:
        response = engine.run(ctx, request)
    finally:
        duration_ms = int((time.monotonic() - start) * 1000)
        logger.info("Duration: %dms", duration_ms)
    logger.info("Tokens:   %s", engine.usage)
    logger.info("Stop:     %s", response.stop_reason)

    if agent.memory.enabled:
        path = store.file_path(agent.name, agent.memory.path)
        try:
            store.append_entry(path, user_message, response.content)
        except MemoryStoreError as exc:
            logger.warning('Warning: failed to save memory for "%s": %s', agent.name, exc)

    if args.json:
        envelope = {
            "model": response.model,
            "content": response.content,
            **engine.usage.to_dict(),
            "stop_reason": response.stop_reason,
            "duration_ms": duration_ms,
        }
        print(json.dumps(envelope))
        return

    sys.stdout.write(response.content)
    sys.stdout.flush()


def _load_memory(store: MemoryStore, agent: AgentConfig) -> str:
    if not agent.memory.enabled:
        return ""
    path = store.file_path(agent.name, agent.memory.path)
    try:
        entries = store.load_entries(path, agent.memory.last_n)
    except MemoryStoreError as exc:
        logger.warning('Warning: failed to load memory for "%s": %s', agent.name, exc)
        return ""
    return "\n\n---\n\n## Memory\n\n" + entries if entries else ""


def _print_dry_run(
    agent: AgentConfig,
    provider_name: str,
    model_name: str,
    workdir: str,
    timeout: int,
    system_prompt: str,
    skill: str,
    files,
    stdin_content: str,
) -> None:
    print("=== Dry Run ===")
    print()
    print(f"Model:    {provider_name}/{model_name}")
    print(f"Workdir:  {workdir}")
    print(f"Timeout:  {timeout}s")
    print(f"Params:   temperature={agent.params.temperature:g}, max_tokens={agent.params.max_tokens}")
    print()
    print("--- System Prompt ---")
    print(system_prompt)
    print()
    print("--- Skill ---")
    print(skill or "(none)")
    print()
    print(f"--- Files ({len(files)}) ---")
    if files:
        for f in files:
            print(f.path)
    else:
        print("(none)")
    print()
    print("--- Stdin ---")
    print(stdin_content if stdin_content.strip() else "(none)")
    print()
    print("--- Sub-Agents ---")
    if agent.sub_agents:
        print(", ".join(agent.sub_agents))
        print(f"Max Depth: {agent.effective_max_depth}")
        print(f"Timeout:   {agent.sub_agents_config.timeout}s")
    else:
        print("(none)")


# ----------------------------------------------------------------------------
# agents
# ----------------------------------------------------------------------------


def agents_list(args: argparse.Namespace) -> None:
    for agent in sorted(list_agents(config_dir()), key=lambda a: a.name):
        print(f"{agent.name} - {agent.description}" if agent.description else agent.name)


def agents_show(args: argparse.Namespace) -> None:
    agent = load_agent(args.agent, config_dir())
    rows = [
        ("Name:", agent.name),
        ("Description:", agent.description),
        ("Model:", agent.model),
        ("System Prompt:", agent.system_prompt),
        ("Skill:", agent.skill),
        ("Files:", ", ".join(agent.files)),
        ("Workdir:", agent.workdir),
        ("Sub-Agents:", ", ".join(agent.sub_agents)),
        ("Memory Enabled:", "true" if agent.memory.enabled else ""),
        ("Memory Path:", agent.memory.path),
        ("Temperature:", f"{agent.params.temperature:g}" if agent.params.temperature else ""),
        ("Max Tokens:", str(agent.params.max_tokens) if agent.params.max_tokens else ""),
    ]
    for label, value in rows:
        # Name and model are always shown.
        if value or label in ("Name:", "Model:"):
            print(f"{label:<16}{value}")


def agents_init(args: argparse.Namespace) -> None:
    path = agent_path(args.agent, config_dir())
    if path.exists():
        raise CommandError(f"agent config already exists: {path}")
    try:
        agents_dir(config_dir()).mkdir(parents=True, exist_ok=True)
        path.write_text(scaffold_agent(args.agent), encoding="utf-8")
    except OSError as exc:
        raise CommandError(f"failed to write agent config: {exc}") from exc
    print(path)


# ----------------------------------------------------------------------------
# config
# ----------------------------------------------------------------------------


def config_path(args: argparse.Namespace) -> None:
    print(config_dir())


def config_init(args: argparse.Namespace) -> None:
    """Create the config directory layout without overwriting existing files."""
    root = config_dir()
    sample_skill = root / "skills" / "sample" / "SKILL.md"
    config_file = root / CONFIG_FILE_NAME
    try:
        (root / "agents").mkdir(parents=True, exist_ok=True)
        sample_skill.parent.mkdir(parents=True, exist_ok=True)
        if not sample_skill.exists():
            sample_skill.write_text(SAMPLE_SKILL, encoding="utf-8")
        if not config_file.exists():
            config_file.write_text(CONFIG_TEMPLATE, encoding="utf-8")
            config_file.chmod(0o600)
    except OSError as exc:
        raise CommandError(f"failed to initialize config directory: {exc}") from exc
    print(root)


# ----------------------------------------------------------------------------
# gc
# ----------------------------------------------------------------------------


def gc_memory(args: argparse.Namespace, provider_factory: ProviderFactory) -> None:
    if args.all and args.agent:
        raise CommandError("cannot specify both --all and an agent name")
    if not args.all and not args.agent:
        raise CommandError("agent name is required (or use --all)")

    if args.all:
        for agent in list_agents(config_dir()):
            if agent.memory.enabled:
                _analyze_memory(agent, args.model, provider_factory)
        return
    _analyze_memory(load_agent(args.agent, config_dir()), args.model, provider_factory)


def _analyze_memory(agent: AgentConfig, model_override: str, provider_factory: ProviderFactory) -> None:
    if not agent.memory.enabled:
        logger.warning('Warning: agent "%s" does not have memory enabled. Skipping.', agent.name)
        return

    store = MemoryStore(data_dir())
    path = store.file_path(agent.name, agent.memory.path)
    entries = store.load_entries(path)
    if not entries:
        print(f'No memory entries for agent "{agent.name}". Nothing to do.')
        return
    print(f"Agent: {agent.name}\nEntries: {store.count_entries(path)}")

    provider_name, model_name = _parse_model(model_override or agent.model)
    provider = _build_provider(provider_factory, load_global_config(), provider_name)
    request = Request(
        model=model_name,
        system=GC_SYSTEM_PROMPT,
        messages=[Message(role=Role.USER, content=entries)],
        temperature=0.3,
        max_tokens=4096,
    )
    response = provider.send(CallContext.background().with_timeout(GC_TIMEOUT), request)
    print(f"--- Analysis ---\n{response.content}")


def show_version(args: argparse.Namespace) -> None:
    print(f"agentrelay version {__version__}")


# ----------------------------------------------------------------------------
# parser
# ----------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agentrelay", description="Run LLM agents that can delegate to each other"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run an agent")
    run_parser.add_argument("agent", help="Agent name")
    run_parser.add_argument("--model", default="", help="Override the model (provider/model-name)")
    run_parser.add_argument("--skill", default="", help="Override the agent's default skill path")
    run_parser.add_argument("--workdir", default="", help="Override the working directory")
    run_parser.add_argument(
        "--timeout", type=int, default=DEFAULT_TIMEOUT, help="Request timeout in seconds"
    )
    run_parser.add_argument(
        "--dry-run", action="store_true", help="Show resolved context without calling the LLM"
    )
    run_parser.add_argument("-v", "--verbose", action="store_true", help="Print debug info to stderr")
    run_parser.add_argument("--json", action="store_true", help="Wrap output in JSON with metadata")
    run_parser.set_defaults(func="run")

    agents_parser = subparsers.add_parser("agents", help="Manage agent configurations")
    agents_sub = agents_parser.add_subparsers(dest="agents_command", required=True)
    agents_sub.add_parser("list", help="List all agent configurations").set_defaults(
        func="agents_list"
    )
    show_parser = agents_sub.add_parser("show", help="Show agent configuration details")
    show_parser.add_argument("agent")
    show_parser.set_defaults(func="agents_show")
    init_parser = agents_sub.add_parser("init", help="Create a new agent configuration file")
    init_parser.add_argument("agent")
    init_parser.set_defaults(func="agents_init")

    config_parser = subparsers.add_parser("config", help="Manage configuration")
    config_sub = config_parser.add_subparsers(dest="config_command", required=True)
    config_sub.add_parser("path", help="Print the configuration directory path").set_defaults(
        func="config_path"
    )
    config_sub.add_parser("init", help="Initialize the configuration directory").set_defaults(
        func="config_init"
    )

    gc_parser = subparsers.add_parser("gc", help="Analyze agent memory")
    gc_parser.add_argument("agent", nargs="?", default="")
    gc_parser.add_argument(
        "--all", action="store_true", help="Analyze every agent with memory enabled"
    )
    gc_parser.add_argument("--model", default="", help="Override the analysis model")
    gc_parser.set_defaults(func="gc")

    subparsers.add_parser("version", help="Print the version").set_defaults(func="version")

    return parser


def main(argv: Optional[List[str]] = None, provider_factory: Optional[ProviderFactory] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(getattr(args, "verbose", False))
    load_default_env()
    factory = provider_factory or create_provider

    handlers = {
        "run": lambda: run_agent(args, factory),
        "agents_list": lambda: agents_list(args),
        "agents_show": lambda: agents_show(args),
        "agents_init": lambda: agents_init(args),
        "config_path": lambda: config_path(args),
        "config_init": lambda: config_init(args),
        "gc": lambda: gc_memory(args, factory),
        "version": lambda: show_version(args),
    }
    try:
        handlers[args.func]()
    except (AgentRelayError, OSError) as exc:
        print(exc, file=sys.stderr)
        return exit_code_for(exc)
    return 0


if __name__ == "__main__":
    sys.exit(main())
