#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Action tags: catalog, scanning, planning and execution."""

from tagrunner.actions.catalog import ACTION_CATALOG, ActionBlueprint, get_blueprint
from tagrunner.actions.executor import ActionExecutor
from tagrunner.actions.formatting import ActionResult, format_action_result
from tagrunner.actions.handlers import ActionEnvironment
from tagrunner.actions.parser import ActionGroup, ActionParser, ExecutionPlan, ParsedAction
from tagrunner.actions.runner import PlanOutcome, PlanRunner, parse_and_execute
from tagrunner.actions.scanner import ActionTagScanner, ScannedTag

__all__ = [
    "ACTION_CATALOG",
    "ActionBlueprint",
    "ActionEnvironment",
    "ActionExecutor",
    "ActionGroup",
    "ActionParser",
    "ActionResult",
    "ActionTagScanner",
    "ExecutionPlan",
    "ParsedAction",
    "PlanOutcome",
    "PlanRunner",
    "ScannedTag",
    "format_action_result",
    "get_blueprint",
    "parse_and_execute",
]
