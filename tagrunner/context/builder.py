#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Pure functions that derive new context snapshots and LLM message lists.

Nothing here mutates its input. ``build_message_context`` and
``record_operation_result`` return a new ContextData; ``get_message_context``
renders a snapshot into the message list sent to the model:

1. system instructions
2. the latest phase instruction, as a system message
3. operation records sorted by timestamp, annotated SUCCESS/FAILED/PENDING
4. the conversation history in insertion order
"""

import re
import time
from typing import Dict, List, Optional, Tuple

from tagrunner.actions.scanner import extract_all, extract_field
from tagrunner.context.store import (
    OP_COMMAND,
    OP_READ,
    OP_WRITE,
    VALID_ROLES,
    ChatMessage,
    ContextData,
    OperationRecord,
    PhaseInstruction,
    merge_operation,
)
from tagrunner.errors import ContextError


PHASE_PROMPT_RE = re.compile(r"<phase_prompt>([\s\S]*?)</phase_prompt>")
_READ_RE = re.compile(r"<read_file>([\s\S]*?)</read_file>")
_WRITE_RE = re.compile(r"<write_file>([\s\S]*?)</write_file>")
_COMMAND_RE = re.compile(r"<execute_command>([\s\S]*?)</execute_command>")


def extract_phase_prompt(content: str) -> Optional[str]:
    match = PHASE_PROMPT_RE.search(content)
    return match.group(1).strip() if match else None


def extract_operations(content: str) -> List[Tuple[str, str]]:
    """Return ``(op_type, key)`` pairs for file and command tags in ``content``."""
    operations = []
    for match in _WRITE_RE.finditer(content):
        path = extract_field(match.group(1), "path")
        if path and path.strip():
            operations.append((OP_WRITE, path.strip()))
    for match in _READ_RE.finditer(content):
        for path in extract_all(match.group(1), "path"):
            if path.strip():
                operations.append((OP_READ, path.strip()))
    for match in _COMMAND_RE.finditer(content):
        command = extract_field(match.group(1), "command")
        command = (command if command is not None else match.group(1)).strip()
        if command:
            operations.append((OP_COMMAND, command))
    return operations


def _upsert(records: Dict[str, OperationRecord], record: OperationRecord) -> Dict[str, OperationRecord]:
    updated = dict(records)
    updated[record.key] = merge_operation(records.get(record.key), record)
    return updated


def _is_duplicate(history: Tuple[ChatMessage, ...], role: str, content: str) -> bool:
    return any(msg.role == role and msg.content == content for msg in history)


def build_message_context(role: str, content: str, phase: str, store: ContextData) -> ContextData:
    """Fold one message into the context.

    Raises:
        ContextError: the role is unknown or the content is empty
    """
    if role not in VALID_ROLES:
        raise ContextError(f"Invalid role: {role}")
    if not content or not content.strip():
        raise ContextError("Content cannot be empty")

    phase_instructions = store.phase_instructions
    phase_prompt = extract_phase_prompt(content)
    if phase_prompt:
        # Only one instruction is live at a time
        phase_instructions = {phase: PhaseInstruction(phase=phase, content=phase_prompt)}

    file_operations = store.file_operations
    command_operations = store.command_operations
    now = time.time()
    for op_type, key in extract_operations(PHASE_PROMPT_RE.sub("", content)):
        record = OperationRecord(op_type=op_type, key=key, timestamp=now)
        if op_type == OP_COMMAND:
            command_operations = _upsert(command_operations, record)
        else:
            file_operations = _upsert(file_operations, record)

    # The instruction lives in its own slot; history keeps the rest of the message
    history_content = PHASE_PROMPT_RE.sub("", content).strip() if phase_prompt else content
    history = store.conversation_history
    if history_content and not _is_duplicate(history, role, history_content):
        history = history + (ChatMessage(role=role, content=history_content),)

    return store.evolve(
        phase_instructions=phase_instructions,
        file_operations=file_operations,
        command_operations=command_operations,
        conversation_history=history,
    )


def record_operation_result(
    store: ContextData,
    op_type: str,
    key: str,
    success: bool,
    error: Optional[str] = None,
    content: Optional[str] = None,
) -> ContextData:
    """Store the outcome of an executed operation, keeping earlier successes."""
    record = OperationRecord(
        op_type=op_type,
        key=key,
        timestamp=time.time(),
        success=success,
        error=error,
        content=content,
    )
    if op_type == OP_COMMAND:
        return store.evolve(command_operations=_upsert(store.command_operations, record))
    return store.evolve(file_operations=_upsert(store.file_operations, record))


def set_system_instructions(store: ContextData, instructions: Optional[str]) -> ContextData:
    return store.evolve(system_instructions=instructions)


def render_operation(record: OperationRecord) -> str:
    header = f"[{record.status}] {record.op_type}: {record.key}"
    if record.error:
        header += f"\nError: {record.error}"
    if not record.content:
        return header
    if record.op_type == OP_READ:
        return f"{header}\nContent of {record.key}:\n{record.content}"
    if record.op_type == OP_WRITE:
        return f"{header}\nWritten to {record.key}"
    return f"{header}\nCommand: {record.key}\nOutput:\n{record.content}"


def get_message_context(store: ContextData) -> List[Dict[str, str]]:
    messages: List[Dict[str, str]] = []
    if store.system_instructions:
        messages.append({"role": "system", "content": store.system_instructions})

    instruction = store.latest_phase_instruction()
    if instruction is not None:
        messages.append({
            "role": "system",
            "content": f"<phase_prompt>{instruction.content}</phase_prompt>",
        })

    records = list(store.file_operations.values()) + list(store.command_operations.values())
    for record in sorted(records, key=lambda r: r.timestamp):
        messages.append({"role": "system", "content": render_operation(record)})

    messages.extend(msg.to_dict() for msg in store.conversation_history)
    return messages


def cleanup_phase_content(store: ContextData) -> ContextData:
    """Drop phase instructions and strip phase_prompt blocks from history."""
    history = []
    for msg in store.conversation_history:
        stripped = PHASE_PROMPT_RE.sub("", msg.content)
        if stripped.strip():
            history.append(ChatMessage(role=msg.role, content=stripped))
    return store.evolve(phase_instructions={}, conversation_history=tuple(history))
