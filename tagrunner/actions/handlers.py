#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Handlers for each action in the catalog.

A handler takes a validated ParsedAction plus the ActionEnvironment holding
the workspace collaborators, and returns an ActionResult. Handlers report
failures through the result instead of raising.
"""

import html
import os
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

from tagrunner import config
from tagrunner.actions.formatting import ActionResult
from tagrunner.actions.parser import ParsedAction
from tagrunner.tools.base import (
    CommandRunner,
    FileOperations,
    OperationResult,
    SearchProvider,
)
from tagrunner.tools.path_adjuster import PathAdjuster
from tagrunner.tools.web_tools import fetch_url

if TYPE_CHECKING:  # pragma: no cover - used only for type hints
    from tagrunner.phases.scaler import ModelScaler


@dataclass
class ActionEnvironment:
    """Collaborators available to handlers."""
    file_ops: FileOperations
    commands: CommandRunner
    search: SearchProvider
    path_adjuster: PathAdjuster
    fetch: Callable[[str], OperationResult] = fetch_url
    scaler: Optional["ModelScaler"] = None
    # Called with the end_phase message; returns a description of the new phase
    end_phase: Optional[Callable[[str], Any]] = None
    removal_threshold: Optional[float] = None


def _from_operation(result: OperationResult) -> ActionResult:
    if result.success:
        return ActionResult.ok(result.data)
    return ActionResult.fail(result.error or "Operation failed", data=result.data)


def _resolve_missing(env: ActionEnvironment, path: str) -> Optional[str]:
    """Look a missing file up by its name anywhere in the workspace."""
    name = os.path.basename(path.rstrip("/"))
    if not name:
        return None
    for match in env.search.find_by_name(".", name):
        if os.path.basename(match.path) == name:
            return match.path
    return None


def handle_read_file(action: ParsedAction, env: ActionEnvironment) -> ActionResult:
    paths: List[str] = action.fields["path"]
    contents: Dict[str, str] = {}
    missing = []

    for path in paths:
        result = env.file_ops.read(path)
        if not result.success and not env.file_ops.exists(path):
            fallback = _resolve_missing(env, path)
            if fallback is not None:
                result = env.file_ops.read(fallback)
                path = fallback
        if result.success:
            contents[path] = result.data
        else:
            missing.append(result.error or f"Failed to read {path}")

    if missing:
        return ActionResult.fail("; ".join(missing))

    if len(contents) == 1:
        return ActionResult.ok(next(iter(contents.values())))
    return ActionResult.ok("\n\n".join(
        f"[File: {path}]\n{content}" for path, content in contents.items()
    ))


def removal_percentage(existing: str, new: str) -> float:
    existing_length = len(existing.strip())
    if existing_length == 0:
        return 0.0
    removed = max(0, existing_length - len(new.strip()))
    return removed / existing_length * 100


def handle_write_file(action: ParsedAction, env: ActionEnvironment) -> ActionResult:
    path = action.fields["path"]
    content = html.unescape(action.fields["content"])

    if env.scaler is not None:
        if "try" in action.fields:
            env.scaler.set_try_count(path, action.fields["try"])
        else:
            env.scaler.increment_try_count(path)

    threshold = env.removal_threshold
    if threshold is None:
        threshold = config.WRITE_REMOVAL_THRESHOLD
    if env.file_ops.exists(path):
        existing = env.file_ops.read(path)
        if existing.success:
            removed = removal_percentage(existing.data, content)
            if removed > threshold:
                return ActionResult.fail(
                    f"Prevented removal of {removed:.1f}% of file content. This appears to be "
                    "a potential error. Please review the changes and ensure only necessary "
                    "modifications are made."
                )

    result = _from_operation(env.file_ops.write(path, content))
    if result.success and env.scaler is not None:
        result.data = dict(result.data or {}, selected_model=env.scaler.current_model)
    return result


def handle_delete_file(action: ParsedAction, env: ActionEnvironment) -> ActionResult:
    return _from_operation(env.file_ops.delete(action.fields["path"]))


def handle_move_file(action: ParsedAction, env: ActionEnvironment) -> ActionResult:
    return _from_operation(env.file_ops.move(
        action.fields["source_path"], action.fields["destination_path"]
    ))


def handle_copy_file_slice(action: ParsedAction, env: ActionEnvironment) -> ActionResult:
    return _from_operation(env.file_ops.copy(
        action.fields["source_path"], action.fields["destination_path"]
    ))


def handle_edit_file(action: ParsedAction, env: ActionEnvironment) -> ActionResult:
    edited = []
    for change in action.fields["changes"]:
        operations = []
        for op in change["operations"]:
            content = op["content"]
            if op["type"] != "delete" and content is None:
                return ActionResult.fail(
                    f"Invalid {op['type']} format for {change['path']}. Must include pattern and content."
                )
            if content is not None:
                content = content.replace("\\n", "\n")
            operations.append(dict(op, content=content))

        result = env.file_ops.edit(change["path"], operations)
        if not result.success:
            return ActionResult.fail(result.error or f"Failed to edit {change['path']}")
        edited.append(change["path"])
    return ActionResult.ok({"edited": edited})


def handle_execute_command(action: ParsedAction, env: ActionEnvironment) -> ActionResult:
    command = action.fields["command"]
    result = env.commands.run(command)
    output = result.output
    if result.returncode != 0:
        return ActionResult.fail(
            f"Command failed with exit code {result.returncode}", data=output
        )
    return ActionResult.ok(output)


def handle_search(action: ParsedAction, env: ActionEnvironment) -> ActionResult:
    directory = action.fields["directory"]
    term = action.fields["term"]
    if action.action_type == "search_string":
        matches = env.search.find_by_content(directory, term)
        lines = [f"{m.path}:{m.line}: {m.text}" for m in matches]
    else:
        matches = env.search.find_by_name(directory, term)
        lines = [m.path for m in matches]
    return ActionResult.ok(lines)


def handle_relative_path_lookup(action: ParsedAction, env: ActionEnvironment) -> ActionResult:
    found = env.path_adjuster.lookup_relative(
        action.fields["source_path"],
        action.fields["path"],
        action.fields["threshold"],
    )
    return ActionResult.ok(found)


def handle_fetch_url(action: ParsedAction, env: ActionEnvironment) -> ActionResult:
    return _from_operation(env.fetch(action.fields["url"]))


def handle_end_task(action: ParsedAction, env: ActionEnvironment) -> ActionResult:
    return ActionResult.ok(action.fields.get("message", ""))


def handle_end_phase(action: ParsedAction, env: ActionEnvironment) -> ActionResult:
    if env.end_phase is None:
        return ActionResult.fail("Phase transitions are not available in this session")
    return ActionResult.ok(env.end_phase(action.fields.get("message", "")))


HANDLERS: Dict[str, Callable[[ParsedAction, ActionEnvironment], ActionResult]] = {
    "read_file": handle_read_file,
    "write_file": handle_write_file,
    "delete_file": handle_delete_file,
    "move_file": handle_move_file,
    "copy_file_slice": handle_copy_file_slice,
    "edit_file": handle_edit_file,
    "execute_command": handle_execute_command,
    "search": handle_search,
    "relative_path_lookup": handle_relative_path_lookup,
    "fetch_url": handle_fetch_url,
    "end_task": handle_end_task,
    "end_phase": handle_end_phase,
}
