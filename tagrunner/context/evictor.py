#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Token-budget enforcement for the conversation context."""

import re
from typing import Callable, Dict, List, Optional, Tuple

from tagrunner.context.builder import get_message_context, render_operation
from tagrunner.context.store import (
    ChatMessage,
    ContextData,
    OperationRecord,
    PhaseInstruction,
    estimate_tokens,
)
from tagrunner.debug_logger import get_logger


TokenEstimator = Callable[[str], int]

ANNOTATION_RE = re.compile(r"<!--[\s\S]*?-->")


def strip_annotations(text: str) -> str:
    """Remove ``<!-- ... -->`` annotations and the blank lines they leave."""
    stripped = ANNOTATION_RE.sub("", text)
    return re.sub(r"\n{3,}", "\n\n", stripped).strip()


def count_tokens(store: ContextData, estimator: TokenEstimator = estimate_tokens) -> int:
    return sum(estimator(message["content"]) for message in get_message_context(store))


def cleanup_context(
    store: ContextData,
    max_tokens: int,
    estimator: Optional[TokenEstimator] = None,
) -> Tuple[ContextData, bool]:
    """Drop the oldest context until the rendered message list fits ``max_tokens``.

    System instructions are reserved first and never dropped. History is
    walked newest first; the newest message is always kept and the walk stops
    at the first message that would overflow the budget. Whatever budget is
    left goes to the phase instruction and operation records, newest first.

    Returns the (possibly new) snapshot and whether anything was dropped.
    """
    estimator = estimator or estimate_tokens
    total = count_tokens(store, estimator)
    if total <= max_tokens:
        return store, False

    used = estimator(store.system_instructions) if store.system_instructions else 0

    kept_history: List[ChatMessage] = []
    for index, message in enumerate(reversed(store.conversation_history)):
        content = strip_annotations(message.content) or message.content
        cost = estimator(content)
        if index > 0 and used + cost > max_tokens:
            break
        kept_history.append(ChatMessage(role=message.role, content=content))
        used += cost
    kept_history.reverse()

    # Phase instruction and operation records compete for what is left
    extras: List[Tuple[float, str, object]] = []
    instruction = store.latest_phase_instruction()
    if instruction is not None:
        extras.append((instruction.timestamp, "phase", instruction))
    for record in store.file_operations.values():
        extras.append((record.timestamp, "file", record))
    for record in store.command_operations.values():
        extras.append((record.timestamp, "command", record))

    phase_instructions: Dict[str, PhaseInstruction] = {}
    file_operations: Dict[str, OperationRecord] = {}
    command_operations: Dict[str, OperationRecord] = {}
    for _, kind, item in sorted(extras, key=lambda e: e[0], reverse=True):
        if kind == "phase":
            item = PhaseInstruction(item.phase, strip_annotations(item.content), item.timestamp)
            text = f"<phase_prompt>{item.content}</phase_prompt>"
        else:
            text = render_operation(item)
        cost = estimator(text)
        if used + cost > max_tokens:
            continue
        used += cost
        if kind == "phase":
            phase_instructions[item.phase] = item
        elif kind == "file":
            file_operations[item.key] = item
        else:
            command_operations[item.key] = item

    evicted = store.evolve(
        phase_instructions=phase_instructions,
        file_operations=file_operations,
        command_operations=command_operations,
        conversation_history=tuple(kept_history),
    )

    operations_dropped = (
        len(store.file_operations) + len(store.command_operations)
        - len(file_operations) - len(command_operations)
    )
    # stripping annotations alone does not count as dropping context
    dropped = (
        len(kept_history) < len(store.conversation_history)
        or operations_dropped > 0
        or (instruction is not None and not phase_instructions)
    )

    get_logger().log("context", "EVICTION", {
        "max_tokens": max_tokens,
        "tokens_before": total,
        "tokens_after": used,
        "messages_before": len(store.conversation_history),
        "messages_after": len(kept_history),
        "operations_dropped": operations_dropped,
        "dropped": dropped,
    })
    return evicted, dropped
