#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Immutable snapshots of the conversation context.

A ContextData value is never modified after creation. Builder functions take
a snapshot and return a new one with ``version`` bumped, so a caller holding
an older snapshot never sees later changes.
"""

import dataclasses
import math
import time
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple


VALID_ROLES = ("user", "assistant", "system")

OP_READ = "read_file"
OP_WRITE = "write_file"
OP_COMMAND = "execute_command"


def estimate_tokens(text: str) -> int:
    """Four characters per token, rounded up."""
    return math.ceil(len(text) / 4)


@dataclass(frozen=True)
class ChatMessage:
    role: str
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class OperationRecord:
    """Last known state of a file or command operation.

    ``success`` is None while the operation is pending.
    """
    op_type: str
    key: str
    timestamp: float
    success: Optional[bool] = None
    error: Optional[str] = None
    content: Optional[str] = None

    @property
    def status(self) -> str:
        if self.success is None:
            return "PENDING"
        return "SUCCESS" if self.success else "FAILED"


def merge_operation(existing: Optional[OperationRecord], incoming: OperationRecord) -> OperationRecord:
    """Upsert rule for operation records.

    A recorded success is sticky, and a pending mention never replaces a
    record that already has an outcome.
    """
    if existing is None:
        return incoming
    if existing.success is True and incoming.success is not True:
        return existing
    if existing.success is not None and incoming.success is None:
        return existing
    return incoming


@dataclass(frozen=True)
class PhaseInstruction:
    phase: str
    content: str
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class ContextData:
    phase_instructions: Dict[str, PhaseInstruction] = field(default_factory=dict)
    file_operations: Dict[str, OperationRecord] = field(default_factory=dict)
    command_operations: Dict[str, OperationRecord] = field(default_factory=dict)
    conversation_history: Tuple[ChatMessage, ...] = ()
    system_instructions: Optional[str] = None
    version: int = 0

    def evolve(self, **changes) -> "ContextData":
        """Return a copy with ``changes`` applied and the version bumped."""
        return dataclasses.replace(self, version=self.version + 1, **changes)

    def latest_phase_instruction(self) -> Optional[PhaseInstruction]:
        if not self.phase_instructions:
            return None
        return max(self.phase_instructions.values(), key=lambda p: p.timestamp)
