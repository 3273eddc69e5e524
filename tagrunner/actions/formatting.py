#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Action results and the text fed back to the model after a plan runs."""

from dataclasses import dataclass
from typing import Any, Iterable, Optional


@dataclass
class ActionResult:
    success: bool
    data: Any = None
    error: Optional[str] = None
    action_type: str = ""
    action_id: str = ""

    @classmethod
    def ok(cls, data: Any = None) -> "ActionResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, data: Any = None) -> "ActionResult":
        return cls(success=False, data=data, error=error)


def _render_matches(data: Any) -> str:
    if not data:
        return "No matches found."
    return "\n".join(str(item) for item in data)


def format_action_result(result: ActionResult) -> str:
    """Render one result the way the model expects to read it back."""
    action_type = result.action_type or "action"

    if not result.success:
        message = f"[Action Result] {action_type}: Failed - {result.error}"
        if action_type == "execute_command" and result.data:
            message += f"\n\nOutput:\n{result.data}"
        return message

    if action_type == "read_file":
        return (
            "Here's the content of the requested file:\n\n"
            f"{result.data}\n\n"
            "Please analyze this content and continue with the task."
        )
    if action_type == "execute_command":
        output = result.data or "(no output)"
        return f"[Action Result] execute_command: Success\n\nOutput:\n{output}"
    if action_type in ("search_string", "search_file"):
        return f"[Action Result] {action_type}: Success\n\n{_render_matches(result.data)}"
    if action_type == "fetch_url":
        content = result.data.get("content", "") if isinstance(result.data, dict) else result.data
        return f"[Action Result] fetch_url: Success\n\n{content}"
    if action_type == "relative_path_lookup":
        if not result.data:
            return "[Action Result] relative_path_lookup: Success - no matching path found"
        return (
            "[Action Result] relative_path_lookup: Success - "
            f"{result.data['original_path']} -> {result.data['new_path']}"
        )
    if action_type == "end_phase" and result.data:
        return f"[Action Result] end_phase: Success - {result.data}"

    return f"[Action Result] {action_type}: Success"


def format_results(results: Iterable[ActionResult]) -> str:
    return "\n\n".join(format_action_result(result) for result in results)
