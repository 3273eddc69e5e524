#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Discovery -> Strategy -> Execute workflow state machine."""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional

from tagrunner import config
from tagrunner.context.holder import ContextHolder
from tagrunner.debug_logger import get_logger
from tagrunner.llm.model_info import ModelManager
from tagrunner.phases.prompts import (
    PhasePromptArgs,
    discovery_prompt,
    execute_prompt,
    strategy_prompt,
)


class Phase(str, Enum):
    DISCOVERY = "discovery"
    STRATEGY = "strategy"
    EXECUTE = "execute"


PromptGenerator = Callable[[PhasePromptArgs], str]

PROMPT_GENERATORS: Dict[Phase, PromptGenerator] = {
    Phase.DISCOVERY: discovery_prompt,
    Phase.STRATEGY: strategy_prompt,
    Phase.EXECUTE: execute_prompt,
}

_NEXT_PHASE = {
    Phase.DISCOVERY: Phase.STRATEGY,
    Phase.STRATEGY: Phase.EXECUTE,
    Phase.EXECUTE: Phase.EXECUTE,
}

TRANSITION_MESSAGE = "Continue with the next phase based on previous findings."


@dataclass(frozen=True)
class PhaseTransition:
    """Result of a transition: the phase entered, its model and its prompt."""
    phase: Phase
    model: str
    prompt: str


def default_prompt_args(message: str = "") -> PhasePromptArgs:
    return PhasePromptArgs(
        message=message,
        run_all_tests_cmd=config.RUN_ALL_TESTS_CMD,
        run_one_test_cmd=config.RUN_ONE_TEST_CMD,
        run_typecheck_cmd=config.RUN_TYPECHECK_CMD,
    )


class PhaseStateMachine:
    """Forward-only phase progression with a per-phase model.

    Phase models are read from config on every lookup unless ``models``
    pins them, so a project config applied after construction still wins.
    """

    def __init__(self, holder: ContextHolder, model_manager: ModelManager,
                 models: Optional[Dict[str, str]] = None):
        self.holder = holder
        self.model_manager = model_manager
        self._models = models
        self.current_phase = Phase.DISCOVERY

    def model_for(self, phase: Phase) -> str:
        models = self._models or config.get_phase_models()
        return models[phase.value]

    def generate_prompt(self, args: PhasePromptArgs, phase: Optional[Phase] = None) -> str:
        return PROMPT_GENERATORS[phase or self.current_phase](args)

    def transition(self) -> PhaseTransition:
        """Purge phase content, advance and switch to the new phase's model."""
        previous = self.current_phase
        self.holder.cleanup_phase_content()

        self.current_phase = _NEXT_PHASE[previous]
        model = self.model_for(self.current_phase)
        self.model_manager.set_current_model(model)

        prompt = self.generate_prompt(default_prompt_args(TRANSITION_MESSAGE))
        get_logger().log_phase(self.current_phase.value, {
            "previous": previous.value,
            "model": model,
        })
        return PhaseTransition(phase=self.current_phase, model=model, prompt=prompt)

    def reset(self) -> None:
        self.current_phase = Phase.DISCOVERY
        self.model_manager.set_current_model(self.model_for(Phase.DISCOVERY))
        get_logger().log_phase(Phase.DISCOVERY.value, {"reset": True})
