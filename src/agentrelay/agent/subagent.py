"""
The `call_agent` tool: lets a model delegate a task to another configured agent.

A delegated agent runs its own conversation (recursively able to delegate
further, down to a depth ceiling) and only its final text comes back to the
caller. Every failure, at any depth, is returned in-band as an error
`ToolResult` so the calling model can recover.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from ..config import GlobalConfig, api_key_env_var
from ..context import CallContext
from ..exceptions import AgentRelayError, ModelFormatError
from ..memory import MemoryStore
from ..paths import config_dir as default_config_dir
from ..paths import data_dir as default_data_dir
from ..providers.base import Provider
from ..providers.factory import create_provider, is_supported, requires_api_key
from ..resolve import build_system_prompt, resolve_files, resolve_skill, resolve_workdir
from ..types import Message, Request, Role, Tool, ToolCall, ToolParameter, ToolResult
from .config import DEFAULT_MAX_DEPTH, AgentConfig, load_agent
from .core import ConversationEngine, ToolHandler

logger = logging.getLogger(__name__)

CALL_AGENT_TOOL_NAME = "call_agent"

# Longest task excerpt written to the progress log.
_TASK_PREVIEW_CHARS = 80

AgentLoader = Callable[[str], AgentConfig]
ProviderFactory = Callable[[str, str, str], Provider]


class _SubAgentFailure(Exception):
    """Internal signal carrying the diagnostic for a post-validation failure."""


def call_agent_tool(allowed_agents: List[str]) -> Tool:
    """Build the `call_agent` declaration advertising `allowed_agents` to the model."""
    agent_list = ", ".join(allowed_agents)
    return Tool(
        name=CALL_AGENT_TOOL_NAME,
        description=(
            "Delegate a task to a sub-agent. The sub-agent runs independently with its "
            "own context and returns only its final result. Available agents: " + agent_list
        ),
        parameters={
            "agent": ToolParameter(
                type="string",
                description=f"Name of the sub-agent to invoke (must be one of: {agent_list})",
                required=True,
            ),
            "task": ToolParameter(
                type="string",
                description="What you need the sub-agent to do",
                required=True,
            ),
            "context": ToolParameter(
                type="string",
                description="Additional context from your conversation to pass along",
            ),
        },
    )


def parse_model(model: str) -> Tuple[str, str]:
    """
    Split "provider/model-name" at the first slash.

    Raises:
        ModelFormatError: If the slash is missing or either side is empty.
    """
    provider_name, sep, model_name = model.partition("/")
    if not sep:
        raise ModelFormatError(model, "expected provider/model-name")
    if not provider_name:
        raise ModelFormatError(model, "empty provider")
    if not model_name:
        raise ModelFormatError(model, "empty model name")
    return provider_name, model_name


def build_task_message(task: str, context: str = "") -> str:
    if context.strip():
        return f"Task: {task}\n\nContext:\n{context}"
    return task


@dataclass
class ExecuteOptions:
    """
    Per-call delegation settings, inherited down the call tree.

    Attributes:
        allowed_agents: Names the calling agent may delegate to.
        parent_model: Calling agent's "provider/model" string (informational).
        depth: Depth of the calling agent. The top-level agent is 0.
        max_depth: Depth ceiling shared by the whole tree.
        timeout: Seconds each sub-agent call may take. 0 = no limit.
        verbose: Log sub-agent progress.
    """

    allowed_agents: List[str] = field(default_factory=list)
    parent_model: str = ""
    depth: int = 0
    max_depth: int = DEFAULT_MAX_DEPTH
    timeout: int = 0
    verbose: bool = False


class SubAgentExecutor:
    """
    Executes `call_agent` tool calls.

    Collaborators are injected so the executor can be driven without touching
    the user's config directory, environment, or network.

    Example:
        >>> executor = SubAgentExecutor(global_config=load_global_config())
        >>> options = ExecuteOptions(allowed_agents=["helper"], max_depth=3)
        >>> result = executor.execute(CallContext.background(), call, options)
    """

    def __init__(
        self,
        agent_loader: Optional[AgentLoader] = None,
        global_config: Optional[GlobalConfig] = None,
        provider_factory: Optional[ProviderFactory] = None,
        memory_store: Optional[MemoryStore] = None,
        config_dir: Optional[Path] = None,
        workdir_resolver: Callable[[str, str], str] = resolve_workdir,
        files_resolver: Callable = resolve_files,
        skill_resolver: Callable[[str, Path], str] = resolve_skill,
        prompt_builder: Callable = build_system_prompt,
    ):
        self.config_dir = config_dir or default_config_dir()
        self.agent_loader = agent_loader or (lambda name: load_agent(name, self.config_dir))
        self.global_config = global_config or GlobalConfig()
        self.provider_factory = provider_factory or create_provider
        self.memory_store = memory_store or MemoryStore(default_data_dir())
        self.workdir_resolver = workdir_resolver
        self.files_resolver = files_resolver
        self.skill_resolver = skill_resolver
        self.prompt_builder = prompt_builder

    def tool_handlers(self, options: ExecuteOptions) -> Dict[str, ToolHandler]:
        """Handlers for a `ConversationEngine` whose agent delegates with `options`."""
        return {CALL_AGENT_TOOL_NAME: lambda ctx, call: self.execute(ctx, call, options)}

    def execute(self, ctx: CallContext, call: ToolCall, options: ExecuteOptions) -> ToolResult:
        """
        Run one `call_agent` invocation. Never raises.

        Arguments are validated first and no provider is contacted when
        validation fails.
        """
        agent_name = call.arguments.get("agent", "")
        task = call.arguments.get("task", "")
        task_context = call.arguments.get("context", "")

        rejection = self._validate(agent_name, task, options)
        if rejection:
            return ToolResult(call_id=call.id, content=rejection, is_error=True)

        if options.verbose:
            preview = task if len(task) <= _TASK_PREVIEW_CHARS else task[:_TASK_PREVIEW_CHARS] + "..."
            logger.info(
                '[sub-agent] Calling "%s" (depth %d) with task: %s',
                agent_name,
                options.depth + 1,
                preview,
            )

        start = time.monotonic()
        try:
            content = self._run(ctx, agent_name, task, task_context, options)
        except Exception as exc:
            return self._error_result(call.id, agent_name, str(exc), options)

        if options.verbose:
            logger.info(
                '[sub-agent] "%s" completed in %dms (%d chars returned)',
                agent_name,
                int((time.monotonic() - start) * 1000),
                len(content),
            )
        return ToolResult(call_id=call.id, content=content)

    @staticmethod
    def _validate(agent_name: str, task: str, options: ExecuteOptions) -> str:
        if not agent_name:
            return 'call_agent error: "agent" argument is required'
        if not task:
            return 'call_agent error: "task" argument is required'
        if agent_name not in options.allowed_agents:
            return f"call_agent error: agent \"{agent_name}\" is not in this agent's sub_agents list"
        if options.depth >= options.max_depth:
            return f"call_agent error: maximum sub-agent depth ({options.max_depth}) reached"
        return ""

    def _run(
        self,
        ctx: CallContext,
        agent_name: str,
        task: str,
        task_context: str,
        options: ExecuteOptions,
    ) -> str:
        try:
            agent = self.agent_loader(agent_name)
        except AgentRelayError as exc:
            raise _SubAgentFailure(f'failed to load agent "{agent_name}": {exc}') from exc

        try:
            provider_name, model_name = parse_model(agent.model)
        except ModelFormatError as exc:
            raise _SubAgentFailure(f'invalid model for agent "{agent_name}": {exc}') from exc

        workdir = self.workdir_resolver("", agent.workdir)
        try:
            files = self.files_resolver(agent.files, workdir)
        except AgentRelayError as exc:
            raise _SubAgentFailure(
                f'failed to resolve files for agent "{agent_name}": {exc}'
            ) from exc
        try:
            skill = self.skill_resolver(agent.skill, self.config_dir)
        except AgentRelayError as exc:
            raise _SubAgentFailure(f'failed to load skill for agent "{agent_name}": {exc}') from exc

        system_prompt = self.prompt_builder(agent.system_prompt, skill, files)
        system_prompt += self._memory_section(agent, options)

        api_key = self.global_config.resolve_api_key(provider_name)
        base_url = self.global_config.resolve_base_url(provider_name)
        if is_supported(provider_name) and requires_api_key(provider_name) and not api_key:
            raise _SubAgentFailure(
                f'API key for provider "{provider_name}" is not configured '
                f"(set {api_key_env_var(provider_name)} or add to config.toml)"
            )
        try:
            provider = self.provider_factory(provider_name, api_key, base_url)
        except AgentRelayError as exc:
            raise _SubAgentFailure(
                f'failed to create provider for agent "{agent_name}": {exc}'
            ) from exc

        user_message = build_task_message(task, task_context)
        request = Request(
            model=model_name,
            system=system_prompt,
            messages=[Message(role=Role.USER, content=user_message)],
            temperature=agent.params.temperature,
            max_tokens=agent.params.max_tokens,
        )

        nested = ExecuteOptions(
            allowed_agents=list(agent.sub_agents),
            parent_model=agent.model,
            depth=options.depth + 1,
            max_depth=options.max_depth,
            timeout=options.timeout,
            verbose=options.verbose,
        )
        if agent.sub_agents and nested.depth < options.max_depth:
            request.tools = [call_agent_tool(agent.sub_agents)]

        call_ctx = ctx.with_timeout(options.timeout) if options.timeout > 0 else ctx.child()
        try:
            engine = ConversationEngine(provider, self.tool_handlers(nested))
            response = engine.run(call_ctx, request)
        finally:
            call_ctx.cancel()

        if agent.memory.enabled:
            self._append_memory(agent, user_message, response.content, options)
        return response.content

    def _memory_section(self, agent: AgentConfig, options: ExecuteOptions) -> str:
        if not agent.memory.enabled:
            return ""
        path = self.memory_store.file_path(agent.name, agent.memory.path)
        try:
            entries = self.memory_store.load_entries(path, agent.memory.last_n)
        except AgentRelayError as exc:
            if options.verbose:
                logger.warning('[sub-agent] failed to load memory for "%s": %s', agent.name, exc)
            return ""
        if not entries:
            return ""
        return "\n\n---\n\n## Memory\n\n" + entries

    def _append_memory(
        self, agent: AgentConfig, task: str, result: str, options: ExecuteOptions
    ) -> None:
        path = self.memory_store.file_path(agent.name, agent.memory.path)
        try:
            self.memory_store.append_entry(path, task, result)
        except AgentRelayError as exc:
            if options.verbose:
                logger.warning('[sub-agent] failed to save memory for "%s": %s', agent.name, exc)

    @staticmethod
    def _error_result(
        call_id: str, agent_name: str, message: str, options: ExecuteOptions
    ) -> ToolResult:
        if options.verbose:
            logger.warning('[sub-agent] "%s" failed: %s', agent_name, message)
        return ToolResult(
            call_id=call_id,
            content=(
                f'Error: sub-agent "{agent_name}" failed - {message}. '
                "You may retry or proceed without this result."
            ),
            is_error=True,
        )


__all__ = [
    "CALL_AGENT_TOOL_NAME",
    "ExecuteOptions",
    "SubAgentExecutor",
    "build_task_message",
    "call_agent_tool",
    "parse_model",
]
