"""Conversation context: immutable snapshots, builders and eviction."""

from tagrunner.context.holder import ContextHolder
from tagrunner.context.store import ChatMessage, ContextData, OperationRecord, PhaseInstruction

__all__ = [
    "ChatMessage",
    "ContextData",
    "ContextHolder",
    "OperationRecord",
    "PhaseInstruction",
]
