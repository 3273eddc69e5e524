#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Dispatch of parsed actions to their handlers."""

from typing import Callable, List, Optional

from tagrunner.actions.catalog import get_blueprint
from tagrunner.actions.formatting import ActionResult
from tagrunner.actions.handlers import HANDLERS, ActionEnvironment
from tagrunner.actions.parser import ParsedAction, build_action
from tagrunner.actions.scanner import find_bare_action_name, find_unknown_tag, scan
from tagrunner.debug_logger import get_logger


ResultListener = Callable[[ParsedAction, ActionResult], None]


class ActionExecutor:
    """Runs one action at a time and returns a uniform ActionResult.

    Handler exceptions are caught and turned into failed results so a broken
    collaborator never takes the session down.
    """

    def __init__(self, env: ActionEnvironment, on_result: Optional[ResultListener] = None,
                 echo: Callable[[str], None] = print):
        self.env = env
        self.on_result = on_result
        self.echo = echo

    def execute(self, action: ParsedAction) -> ActionResult:
        debug_logger = get_logger()
        blueprint = get_blueprint(action.action_type)

        if action.error is not None:
            result = ActionResult.fail(str(action.error))
        elif blueprint is None or blueprint.handler not in HANDLERS:
            result = ActionResult.fail(f"Unknown action type: {action.action_type}")
        else:
            self.echo(f"  → {blueprint.description}")
            debug_logger.log_action(action.action_type, action.action_id, action.fields)
            try:
                result = HANDLERS[blueprint.handler](action, self.env)
            except Exception as e:
                debug_logger.log_error("actions", e, {"action": action.action_id})
                result = ActionResult.fail(f"{type(e).__name__}: {e}")

        result.action_type = action.action_type
        result.action_id = action.action_id
        debug_logger.log_action(
            action.action_type, action.action_id, action.fields,
            success=result.success, error=result.error,
        )

        if self.on_result is not None:
            self.on_result(action, result)
        return result

    def execute_text(self, text: str) -> ActionResult:
        """Execute every action in ``text`` in priority order.

        Stops at the first failure and returns the last result. Text without
        recognized tags yields a failed result explaining what was wrong.
        """
        scanned = scan(text)
        if scanned.error is not None:
            return ActionResult.fail(str(scanned.error))

        if not scanned.tags:
            bare = find_bare_action_name(text)
            if bare is not None:
                return ActionResult.fail(
                    f'Found "{bare}" without proper XML tag structure. Tags must be wrapped '
                    f"in < > brackets. For example: <{bare}>content</{bare}>"
                )
            unknown = find_unknown_tag(text)
            if unknown is not None:
                return ActionResult(success=False, error=f"Unknown action type: {unknown}",
                                    action_type=unknown)
            return ActionResult.fail(
                "No valid action tags found. Actions must be wrapped in XML-style tags."
            )

        actions: List[ParsedAction] = [
            build_action(tag, f"{tag.tag}-{index}") for index, tag in enumerate(scanned.tags, 1)
        ]
        actions.sort(key=lambda a: get_blueprint(a.action_type).priority, reverse=True)

        result = ActionResult.ok()
        for action in actions:
            result = self.execute(action)
            if not result.success:
                break
        return result
