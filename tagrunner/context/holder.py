#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Owner of the single live context snapshot for a session."""

import threading
from typing import Callable, Dict, List, Optional

from tagrunner.context import builder
from tagrunner.context.evictor import cleanup_context, count_tokens
from tagrunner.context.store import ContextData, estimate_tokens
from tagrunner.debug_logger import get_logger


class ContextHolder:
    """Holds exactly one ContextData and swaps it under a lock.

    Every change goes through a builder function that returns a new snapshot,
    so readers that grabbed ``snapshot`` earlier keep a consistent view.
    ``phase_provider`` returns the name of the active phase, used to key
    phase instructions found in messages.
    """

    def __init__(self, phase_provider: Optional[Callable[[], str]] = None,
                 estimator: Callable[[str], int] = estimate_tokens):
        self._lock = threading.RLock()
        self._store = ContextData()
        self._phase_provider = phase_provider or (lambda: "discovery")
        self._estimator = estimator

    @property
    def snapshot(self) -> ContextData:
        with self._lock:
            return self._store

    def _current_phase(self) -> str:
        return self._phase_provider()

    def add_message(self, role: str, content: str) -> ContextData:
        """Add a message to the context.

        Raises:
            ContextError: invalid role or empty content
        """
        with self._lock:
            self._store = builder.build_message_context(
                role, content, self._current_phase(), self._store
            )
            store = self._store
        get_logger().log_conversation(role, content)
        return store

    def record_result(self, op_type: str, key: str, success: bool,
                      error: Optional[str] = None, content: Optional[str] = None) -> ContextData:
        with self._lock:
            self._store = builder.record_operation_result(
                self._store, op_type, key, success, error=error, content=content
            )
            return self._store

    def set_system_instructions(self, instructions: Optional[str]) -> None:
        with self._lock:
            self._store = builder.set_system_instructions(self._store, instructions)

    def messages(self) -> List[Dict[str, str]]:
        return builder.get_message_context(self.snapshot)

    def total_tokens(self) -> int:
        return count_tokens(self.snapshot, self._estimator)

    def cleanup(self, max_tokens: int) -> bool:
        """Evict old context to fit ``max_tokens``. Returns True if anything was dropped."""
        with self._lock:
            self._store, dropped = cleanup_context(self._store, max_tokens, self._estimator)
            return dropped

    def cleanup_phase_content(self) -> None:
        with self._lock:
            self._store = builder.cleanup_phase_content(self._store)

    def clear(self) -> None:
        """Drop everything, including system instructions."""
        with self._lock:
            self._store = ContextData()
        get_logger().log("context", "CONTEXT_CLEARED", {}, "DEBUG")
