#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Turn scanned tags into typed actions and a layered execution plan.

Dependencies are computed over typed fields, never over raw tag text:

* ``write_file`` waits for a ``read_file`` of the same batch whose body is
  echoed inside the written content, or that reads the path being written.
* ``move_file``, ``delete_file`` and ``copy_file_slice`` wait for any write or
  edit of the same batch that targets the same path.
* ``end_task`` and ``end_phase`` wait for every action before them.

Plans are built wave by wave: each group holds every action whose
dependencies are already satisfied. A group only runs in parallel when every
member is parallel-safe and at most one of them mutates the workspace.
"""

import itertools
import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set
from urllib.parse import urlparse

from tagrunner.actions.catalog import (
    EDIT_OPERATION_TAGS,
    ActionBlueprint,
    get_blueprint,
)
from tagrunner.actions.scanner import (
    ActionTagScanner,
    ScannedTag,
    extract_all,
    extract_field,
)
from tagrunner.debug_logger import get_logger
from tagrunner.errors import ActionError, FormatError, ValidationError


DEFAULT_LOOKUP_THRESHOLD = 0.6

_EDIT_OP_RE = re.compile(rf"<({'|'.join(EDIT_OPERATION_TAGS)})>(.*?)</\1>", re.S)


@dataclass
class ParsedAction:
    action_id: str
    action_type: str
    raw: str
    fields: Dict[str, Any] = field(default_factory=dict)
    depends_on: Set[str] = field(default_factory=set)
    error: Optional[ActionError] = None
    body: str = ""

    @property
    def blueprint(self) -> Optional[ActionBlueprint]:
        return get_blueprint(self.action_type)

    def target_paths(self) -> List[str]:
        """Normalized paths this action writes, deletes or moves from."""
        if self.error is not None:
            return []
        if self.action_type in ("write_file", "delete_file"):
            return [normalize_path(self.fields["path"])]
        if self.action_type in ("move_file", "copy_file_slice"):
            return [normalize_path(self.fields["source_path"])]
        if self.action_type == "edit_file":
            return [normalize_path(change["path"]) for change in self.fields["changes"]]
        return []


@dataclass
class ActionGroup:
    actions: List[ParsedAction]
    parallel: bool = False


@dataclass
class ExecutionPlan:
    groups: List[ActionGroup] = field(default_factory=list)
    error: Optional[FormatError] = None

    @property
    def actions(self) -> List[ParsedAction]:
        return [action for group in self.groups for action in group.actions]

    def __len__(self) -> int:
        return sum(len(group.actions) for group in self.groups)

    def __bool__(self) -> bool:
        return bool(self.groups)


def normalize_path(path: str) -> str:
    return os.path.normpath(path.strip()).replace("\\", "/")


# ============================================================================
# Typed field extraction
# ============================================================================

def _strip_content(value: str) -> str:
    # Keep indentation of the first line, drop the newline after <content>
    return value.strip("\r\n")


def _parse_edit_changes(body: str) -> List[Dict[str, Any]]:
    changes_body = extract_field(body, "changes")
    if changes_body is None:
        raise ValidationError("Missing required field 'changes' for edit_file")

    changes = []
    for file_body in extract_all(changes_body, "file"):
        path = extract_field(file_body, "path")
        if not path or not path.strip():
            raise ValidationError("Each <file> in edit_file needs a <path>")

        operations = []
        for match in _EDIT_OP_RE.finditer(file_body):
            op_type, op_body = match.group(1), match.group(2)
            pattern = extract_field(op_body, "pattern")
            if pattern is None:
                raise ValidationError(f"{op_type} operation on {path.strip()} needs a <pattern>")
            content = extract_field(op_body, "content")
            operations.append({
                "type": op_type,
                "pattern": _strip_content(pattern),
                "content": _strip_content(content) if content is not None else None,
            })

        if not operations:
            raise ValidationError(f"No edit operations given for {path.strip()}")
        changes.append({"path": path.strip(), "operations": operations})

    if not changes:
        raise ValidationError("edit_file <changes> must contain at least one <file> block")
    return changes


def _parse_raw_body(blueprint: ActionBlueprint, body: str) -> Dict[str, Any]:
    if blueprint.tag == "execute_command":
        command = extract_field(body, "command")
        command = (command if command is not None else body).strip()
        if not command:
            raise ValidationError("execute_command requires a command")
        return {"command": command}
    return {"message": body.strip()}


def extract_typed_fields(blueprint: ActionBlueprint, body: str) -> Dict[str, Any]:
    """Extract the blueprint's parameters from a tag body.

    Raises:
        ValidationError: a required field is missing or a value is invalid
    """
    if blueprint.raw_body:
        return _parse_raw_body(blueprint, body)
    if blueprint.tag == "edit_file":
        return {"changes": _parse_edit_changes(body)}

    fields: Dict[str, Any] = {}
    for spec in blueprint.parameters:
        values = extract_all(body, spec.name)
        if spec.name == "content":
            values = [_strip_content(value) for value in values]
        else:
            values = [value.strip() for value in values if value.strip()]

        if not values:
            if spec.required:
                raise ValidationError(
                    f"Missing required field '{spec.name}' for {blueprint.tag}. "
                    f"Expected <{blueprint.tag}><{spec.name}>...</{spec.name}></{blueprint.tag}>"
                )
            continue
        fields[spec.name] = values if spec.multiple else values[0]

    if blueprint.tag == "relative_path_lookup":
        fields["threshold"] = _parse_threshold(fields.get("threshold"))
    elif blueprint.tag == "fetch_url":
        parsed = urlparse(fields["url"])
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValidationError(f"Invalid URL: {fields['url']}")
    elif blueprint.tag == "write_file" and "try" in fields:
        try:
            fields["try"] = int(fields["try"])
        except ValueError:
            raise ValidationError(f"Invalid try count: {fields['try']}") from None

    return fields


def _parse_threshold(value: Optional[str]) -> float:
    if value is None:
        return DEFAULT_LOOKUP_THRESHOLD
    try:
        threshold = float(value)
    except ValueError:
        raise ValidationError(f"Invalid threshold: {value}") from None
    if not 0 < threshold <= 1:
        raise ValidationError(f"Threshold must be in (0, 1], got {threshold}")
    return threshold


def build_action(tag: ScannedTag, action_id: str) -> ParsedAction:
    """Build a ParsedAction; extraction problems are stored, never raised."""
    action = ParsedAction(action_id=action_id, action_type=tag.tag, raw=tag.raw, body=tag.body)
    blueprint = get_blueprint(tag.tag)
    if blueprint is None:
        action.error = FormatError(f"Unknown action type: {tag.tag}")
        return action
    try:
        action.fields = extract_typed_fields(blueprint, tag.body)
    except ValidationError as e:
        action.error = e
    return action


# ============================================================================
# Dependencies and plan construction
# ============================================================================

def infer_dependencies(actions: List[ParsedAction]) -> None:
    """Fill ``depends_on`` for a batch of actions in source order."""
    for index, action in enumerate(actions):
        earlier = actions[:index]

        if action.action_type in ("end_task", "end_phase"):
            action.depends_on.update(other.action_id for other in earlier)
            continue
        if action.error is not None:
            continue

        if action.action_type == "write_file":
            content = action.fields["content"]
            target = normalize_path(action.fields["path"])
            for other in earlier:
                if other.action_type != "read_file" or other.error is not None:
                    continue
                read_body = other.body.strip()
                read_paths = {normalize_path(p) for p in other.fields["path"]}
                if (read_body and read_body in content) or target in read_paths:
                    action.depends_on.add(other.action_id)

        elif action.action_type in ("move_file", "delete_file", "copy_file_slice"):
            targets = set(action.target_paths())
            if action.action_type == "move_file":
                targets.add(normalize_path(action.fields["destination_path"]))
            for other in earlier:
                if other.action_type not in ("write_file", "edit_file"):
                    continue
                if targets.intersection(other.target_paths()):
                    action.depends_on.add(other.action_id)


def _group_is_parallel(actions: List[ParsedAction]) -> bool:
    if len(actions) < 2:
        return False
    mutating = 0
    for action in actions:
        blueprint = action.blueprint
        if blueprint is None or not blueprint.parallel_safe:
            return False
        if blueprint.mutating:
            mutating += 1
    return mutating <= 1


def build_plan(actions: List[ParsedAction]) -> ExecutionPlan:
    """Layered topological sort of one batch."""
    plan = ExecutionPlan()
    batch_ids = {action.action_id for action in actions}
    done: Set[str] = set()
    pending = list(actions)

    while pending:
        ready = [
            action for action in pending
            if (action.depends_on & batch_ids) <= done
        ]
        if not ready:
            # Only reachable with a cycle; run the rest one by one
            get_logger().log("parser", "DEPENDENCY_CYCLE", {
                "pending": [action.action_id for action in pending],
            }, "WARNING")
            plan.groups.append(ActionGroup(actions=pending, parallel=False))
            break

        plan.groups.append(ActionGroup(actions=ready, parallel=_group_is_parallel(ready)))
        done.update(action.action_id for action in ready)
        ready_ids = {action.action_id for action in ready}
        pending = [action for action in pending if action.action_id not in ready_ids]

    return plan


class ActionParser:
    """Parses model output into execution plans, one batch per call.

    The parser keeps a scanner across calls so text may arrive in pieces and
    a tag returned once is not returned again until ``reset()``.
    """

    def __init__(self, scanner: Optional[ActionTagScanner] = None):
        self.scanner = scanner or ActionTagScanner()
        self._ids = itertools.count(1)

    def parse_tags(self, tags: Iterable[ScannedTag]) -> ExecutionPlan:
        actions = [build_action(tag, f"{tag.tag}-{next(self._ids)}") for tag in tags]
        infer_dependencies(actions)
        plan = build_plan(actions)

        get_logger().log("parser", "PLAN_BUILT", {
            "actions": [action.action_id for action in actions],
            "groups": [
                {"parallel": group.parallel, "actions": [a.action_id for a in group.actions]}
                for group in plan.groups
            ],
        }, "DEBUG")
        return plan

    def parse(self, text: str) -> ExecutionPlan:
        """Append ``text`` to the buffer and plan the newly completed tags."""
        tags = self.scanner.feed(text)
        if self.scanner.error is not None:
            get_logger().log("parser", "FORMAT_ERROR", {"error": str(self.scanner.error)}, "WARNING")
            return ExecutionPlan(error=self.scanner.error)
        return self.parse_tags(tags)

    def reset(self) -> None:
        self.scanner.reset()
