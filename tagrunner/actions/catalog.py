#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Static registry of the action tags the model may emit.

The catalog is closed: a tag that is not listed here is never dispatched.
Each blueprint names its sub-field parameters, whether it may run alongside
other actions, whether it mutates the workspace, and the handler that runs it.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, List, Optional, Tuple


class ActionPriority(IntEnum):
    """Dispatch order when several actions arrive in one message."""
    LOW = 0
    MEDIUM = 1
    HIGH = 2
    CRITICAL = 3


@dataclass(frozen=True)
class ParamSpec:
    name: str
    required: bool = True
    multiple: bool = False
    description: str = ""


@dataclass(frozen=True)
class ActionBlueprint:
    tag: str
    description: str
    parameters: Tuple[ParamSpec, ...]
    parallel_safe: bool
    mutating: bool
    priority: int
    handler: str
    # Body is taken as free text instead of sub-fields
    raw_body: bool = False


PHASE_PROMPT_TAG = "phase_prompt"

_BLUEPRINTS = (
    ActionBlueprint(
        tag="read_file",
        description="Reads content from one or more files",
        parameters=(
            ParamSpec("path", multiple=True,
                      description="The path(s) of the file(s) to read. Can specify multiple path tags."),
        ),
        parallel_safe=True,
        mutating=False,
        priority=ActionPriority.CRITICAL,
        handler="read_file",
    ),
    ActionBlueprint(
        tag="write_file",
        description="Writes content to a file with safety checks for content removal",
        parameters=(
            ParamSpec("path", description="The path where the file will be written"),
            ParamSpec("content", description="The full content to write to the file"),
            ParamSpec("try", required=False, description="How many times this file has been attempted"),
        ),
        parallel_safe=False,
        mutating=True,
        priority=ActionPriority.MEDIUM,
        handler="write_file",
    ),
    ActionBlueprint(
        tag="delete_file",
        description="Deletes a file",
        parameters=(ParamSpec("path", description="The path of the file to delete"),),
        parallel_safe=False,
        mutating=True,
        priority=ActionPriority.MEDIUM,
        handler="delete_file",
    ),
    ActionBlueprint(
        tag="move_file",
        description="Moves a file from source to destination path",
        parameters=(
            ParamSpec("source_path", description="The source path of the file to move"),
            ParamSpec("destination_path", description="The destination path for the file"),
        ),
        parallel_safe=False,
        mutating=True,
        priority=ActionPriority.MEDIUM,
        handler="move_file",
    ),
    ActionBlueprint(
        tag="copy_file_slice",
        description="Copies a file from source to destination path",
        parameters=(
            ParamSpec("source_path", description="The source path of the file to copy"),
            ParamSpec("destination_path", description="The destination path for the copy"),
        ),
        parallel_safe=True,
        mutating=True,
        priority=ActionPriority.MEDIUM,
        handler="copy_file_slice",
    ),
    ActionBlueprint(
        tag="execute_command",
        description="Executes a shell command",
        parameters=(),
        parallel_safe=False,
        mutating=False,
        priority=ActionPriority.LOW,
        handler="execute_command",
        raw_body=True,
    ),
    ActionBlueprint(
        tag="search_string",
        description="Searches for content within files",
        parameters=(
            ParamSpec("directory", description="The directory to search in"),
            ParamSpec("term", description="The content to search for"),
        ),
        parallel_safe=True,
        mutating=False,
        priority=ActionPriority.HIGH,
        handler="search",
    ),
    ActionBlueprint(
        tag="search_file",
        description="Searches for files by name",
        parameters=(
            ParamSpec("directory", description="The directory to search in"),
            ParamSpec("term", description="The filename pattern to search for"),
        ),
        parallel_safe=True,
        mutating=False,
        priority=ActionPriority.HIGH,
        handler="search",
    ),
    ActionBlueprint(
        tag="edit_file",
        description="Applies pattern based edits to one or more files",
        parameters=(
            ParamSpec("changes", description="One or more <file> blocks with a path and edit operations"),
        ),
        parallel_safe=False,
        mutating=True,
        priority=ActionPriority.MEDIUM,
        handler="edit_file",
    ),
    ActionBlueprint(
        tag="relative_path_lookup",
        description="Adjusts and validates relative file paths",
        parameters=(
            ParamSpec("source_path", description="The file containing the broken reference"),
            ParamSpec("path", description="The relative path to adjust"),
            ParamSpec("threshold", required=False,
                      description="Similarity threshold for path matching (default: 0.6)"),
        ),
        parallel_safe=True,
        mutating=False,
        priority=ActionPriority.HIGH,
        handler="relative_path_lookup",
    ),
    ActionBlueprint(
        tag="fetch_url",
        description="Fetches content from a URL",
        parameters=(ParamSpec("url", description="The http(s) URL to fetch"),),
        parallel_safe=True,
        mutating=False,
        priority=ActionPriority.HIGH,
        handler="fetch_url",
    ),
    ActionBlueprint(
        tag="end_task",
        description="Marks the task as complete",
        parameters=(),
        parallel_safe=False,
        mutating=False,
        priority=ActionPriority.LOW,
        handler="end_task",
        raw_body=True,
    ),
    ActionBlueprint(
        tag="end_phase",
        description="Ends the current phase and transitions to the next phase",
        parameters=(),
        parallel_safe=False,
        mutating=False,
        priority=ActionPriority.CRITICAL,
        handler="end_phase",
        raw_body=True,
    ),
)

ACTION_CATALOG: Dict[str, ActionBlueprint] = {bp.tag: bp for bp in _BLUEPRINTS}

# Tags with their own structure inside edit_file bodies
EDIT_OPERATION_TAGS = ("replace", "insert_before", "insert_after", "delete")

# Names that appear only as sub-fields, never as actions
SUBFIELD_TAGS = frozenset(
    {spec.name for bp in _BLUEPRINTS for spec in bp.parameters}
    | {"command", "file", "pattern", "type"}
    | set(EDIT_OPERATION_TAGS)
)

TERMINAL_TAGS = frozenset({"end_task"})


def get_blueprint(tag: str) -> Optional[ActionBlueprint]:
    return ACTION_CATALOG.get(tag)


def action_tags() -> List[str]:
    """Return every recognized action tag name."""
    return list(ACTION_CATALOG)
