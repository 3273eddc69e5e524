#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""tagrunner - Phase-driven coding agent speaking an XML-like action language."""

from tagrunner.versioning import get_version

__version__ = get_version()

from tagrunner.errors import (
    TagrunnerError,
    ConfigError,
    ContextError,
    ActionError,
    LLMError,
)
from tagrunner.session import AgentSession
from tagrunner.streaming import TurnSummary

__all__ = [
    "__version__",
    "AgentSession",
    "TurnSummary",
    "TagrunnerError",
    "ConfigError",
    "ContextError",
    "ActionError",
    "LLMError",
]
