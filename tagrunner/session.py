#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""AgentSession: one conversation with its context, phases and collaborators.

Everything that the workflow shares lives on the session object rather than
in module-level singletons, so two sessions never see each other's state.
"""

from pathlib import Path
from typing import Callable, Optional

from tagrunner import config
from tagrunner.actions.executor import ActionExecutor
from tagrunner.actions.formatting import ActionResult
from tagrunner.actions.handlers import ActionEnvironment
from tagrunner.actions.parser import ActionParser, ParsedAction
from tagrunner.actions.runner import PlanRunner
from tagrunner.context.holder import ContextHolder
from tagrunner.context.store import OP_COMMAND, OP_READ, OP_WRITE
from tagrunner.debug_logger import get_logger
from tagrunner.llm.client import LLMClient
from tagrunner.llm.model_info import ModelInfo, ModelManager
from tagrunner.llm.provider_factory import get_provider
from tagrunner.llm.providers.base import LLMProvider
from tagrunner.phases.machine import Phase, PhaseStateMachine, PhaseTransition, default_prompt_args
from tagrunner.phases.scaler import ModelScaler
from tagrunner.streaming import StreamProtocolHandler, TurnSummary
from tagrunner.tools.base import CommandRunner, FileOperations, SearchProvider
from tagrunner.tools.command_runner import ShellCommandRunner
from tagrunner.tools.file_ops import LocalFileOperations
from tagrunner.tools.path_adjuster import PathAdjuster
from tagrunner.tools.project_info import format_project_info, gather_project_info, get_environment_details
from tagrunner.tools.search import LocalSearchProvider


INITIAL_INSTRUCTIONS = """## Initial Instructions
- Keep messages brief, clear, and concise.
- Break tasks into prioritized steps.
- Use available actions sequentially."""


def build_system_instructions(custom_instructions: str) -> str:
    parts = ['<instructions details="NEVER_OUTPUT">']
    if custom_instructions:
        parts.append(f"# Custom Instructions\n{custom_instructions}\n")
    parts.append(INITIAL_INSTRUCTIONS)
    parts.append("</instructions>")
    return "\n".join(parts)


class AgentSession:
    """Wires the context, phase machine, models, actions and streaming together.

    Collaborators default to the local implementations rooted at ``root``;
    tests pass their own.
    """

    def __init__(
        self,
        provider: Optional[LLMProvider] = None,
        root: Optional[Path] = None,
        file_ops: Optional[FileOperations] = None,
        commands: Optional[CommandRunner] = None,
        search: Optional[SearchProvider] = None,
        output: Optional[Callable[[str], None]] = None,
        echo: Callable[[str], None] = print,
    ):
        self.root = (root or config.ROOT).resolve()
        self.provider = provider or get_provider()

        self.holder = ContextHolder(phase_provider=lambda: self.phases.current_phase.value)
        self.models = ModelManager(
            config.DISCOVERY_MODEL,
            ModelInfo(self.provider.get_model_context_length),
            on_model_change=self.holder.cleanup,
        )
        self.phases = PhaseStateMachine(self.holder, self.models)
        self.scaler = ModelScaler(
            phase_provider=lambda: self.phases.current_phase.value,
            set_model=self.models.set_current_model,
            model_provider=lambda: self.models.current_model,
        )

        self.env = ActionEnvironment(
            file_ops=file_ops or LocalFileOperations(self.root),
            commands=commands or ShellCommandRunner(cwd=self.root),
            search=search or LocalSearchProvider(self.root),
            path_adjuster=PathAdjuster(self.root),
            scaler=self.scaler,
            end_phase=self._end_phase,
        )
        self.executor = ActionExecutor(self.env, on_result=self._record_result, echo=echo)
        self.runner = PlanRunner(self.executor)
        self.parser = ActionParser()
        self.client = LLMClient(self.provider, evict=self._evict_for_retry)
        self.stream_handler = StreamProtocolHandler(self.parser, self.runner, self.holder, output=output)
        self.last_transition: Optional[PhaseTransition] = None
        self._started = False

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------

    def _record_result(self, action: ParsedAction, result: ActionResult) -> None:
        """Mirror file and command outcomes into the context's operation records."""
        if action.error is not None:
            return
        if action.action_type == "read_file":
            paths = action.fields.get("path", [])
            content = result.data if result.success and len(paths) == 1 else None
            for path in paths:
                self.holder.record_result(OP_READ, path, result.success, error=result.error, content=content)
        elif action.action_type == "write_file":
            self.holder.record_result(OP_WRITE, action.fields["path"], result.success, error=result.error)
        elif action.action_type == "execute_command":
            output = result.data if isinstance(result.data, str) else None
            self.holder.record_result(
                OP_COMMAND, action.fields["command"], result.success, error=result.error, content=output
            )

    def _end_phase(self, message: str) -> str:
        """Advance the workflow and install the new phase's prompt."""
        transition = self.phases.transition()
        self.holder.add_message("system", transition.prompt)
        self.last_transition = transition
        get_logger().log("session", "PHASE_ENDED", {
            "message": message.strip()[:200],
            "phase": transition.phase.value,
            "model": transition.model,
        })
        return f"Moved to {transition.phase.value} phase using {transition.model}"

    def _evict_for_retry(self) -> bool:
        return self.holder.cleanup(self.models.token_budget(config.CONTEXT_EVICTION_RATIO))

    def _messages(self):
        self.holder.cleanup(self.models.token_budget())
        return self.holder.messages()

    def _stream(self, on_chunk: Callable[[str], None]) -> str:
        return self.client.stream_message(self._messages, self.models.current_model, on_chunk)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def current_phase(self) -> Phase:
        return self.phases.current_phase

    @property
    def current_model(self) -> str:
        return self.models.current_model

    def reset(self) -> None:
        """Start over: empty context, Discovery phase, fresh scaler counts."""
        self.holder.clear()
        self.phases.reset()
        self.scaler.reset()
        self.stream_handler.reset()
        self.last_transition = None
        self._started = False

    def _start(self, message: str) -> None:
        self.reset()
        self.holder.set_system_instructions(build_system_instructions(config.load_custom_instructions()))

        args = default_prompt_args(message)
        args.environment_details = get_environment_details(self.root) if config.INCLUDE_FILES_IN_PROMPT else None
        args.project_info = format_project_info(gather_project_info(self.root)) or None
        self.holder.add_message("system", self.phases.generate_prompt(args, Phase.DISCOVERY))
        self._started = True

    def send(self, message: str) -> TurnSummary:
        """Handle one user message through as many turns as it takes.

        Raises:
            LLMError: the transport failed and nothing was received
        """
        if not self._started:
            self._start(message)
            message = f"# Task\n{message}"
        return self.stream_handler.run_turns(message, self._stream)
