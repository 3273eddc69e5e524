"""Workflow phases, their prompts and model scaling."""

from tagrunner.phases.machine import Phase, PhaseStateMachine, PhaseTransition
from tagrunner.phases.prompts import PhasePromptArgs
from tagrunner.phases.scaler import ModelScaler

__all__ = [
    "ModelScaler",
    "Phase",
    "PhasePromptArgs",
    "PhaseStateMachine",
    "PhaseTransition",
]
