#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Escalate to stronger models when writes keep failing during Execute."""

import threading
from typing import Any, Callable, Dict, List, Optional

from tagrunner import config
from tagrunner.debug_logger import get_logger


# Number of tries on a single file before escalation is considered
ESCALATION_THRESHOLD = 3


def model_for_try_count(ladder: List[Dict[str, Any]], tries: int, global_tries: int) -> str:
    """Pick the first rung whose budgets are not exhausted.

    A rung is exhausted when the per-file tries reach the sum of its own and
    all earlier ``max_write_tries``, or when the session-wide tries reach its
    ``max_global_tries``. The last rung is returned when all are exhausted.
    """
    previous = 0
    for rung in ladder:
        if tries >= previous + rung["max_write_tries"] or global_tries >= rung["max_global_tries"]:
            previous += rung["max_write_tries"]
            continue
        return rung["id"]
    return ladder[-1]["id"]


class ModelScaler:
    """Tracks write attempts per file and switches models along a ladder.

    Only active when auto-scaling is enabled and the current phase is
    Execute. ``set_model`` is the hook that actually changes the session's
    active model.
    """

    def __init__(
        self,
        phase_provider: Callable[[], str],
        set_model: Callable[[str], None],
        model_provider: Callable[[], str],
        enabled: Optional[bool] = None,
        ladder: Optional[List[Dict[str, Any]]] = None,
    ):
        self._phase_provider = phase_provider
        self._set_model = set_model
        self._model_provider = model_provider
        self._enabled_override = enabled
        self._ladder_override = ladder
        self._lock = threading.Lock()
        self.try_counts: Dict[str, int] = {}
        self.global_try_count = 0

    @property
    def enabled(self) -> bool:
        if self._enabled_override is not None:
            return self._enabled_override
        return bool(config.AUTO_SCALER_ENABLED)

    @property
    def ladder(self) -> List[Dict[str, Any]]:
        return self._ladder_override if self._ladder_override is not None else config.AUTO_SCALE_MODELS

    @property
    def current_model(self) -> str:
        return self._model_provider()

    def _active(self) -> bool:
        return self.enabled and bool(self.ladder) and self._phase_provider() == "execute"

    def get_try_count(self, path: str) -> int:
        if not self.enabled:
            return 0
        return self.try_counts.get(path, 0)

    def increment_try_count(self, path: str) -> None:
        if not self._active():
            return
        with self._lock:
            self.global_try_count += 1
            self.try_counts[path] = self.try_counts.get(path, 0) + 1
            count = self.try_counts[path]
        if count > ESCALATION_THRESHOLD:
            self._scale(path, count)

    def set_try_count(self, path: str, count: int) -> None:
        """Apply an explicit try count reported by the model in ``<try>``."""
        if not self._active():
            return
        with self._lock:
            self.global_try_count += 1
            self.try_counts[path] = count
        if count > ESCALATION_THRESHOLD:
            self._scale(path, count)

    def _scale(self, path: str, count: int) -> None:
        max_tries = max(self.try_counts.values(), default=0)
        new_model = model_for_try_count(self.ladder, max_tries, self.global_try_count)

        get_logger().log("scaler", "MODEL_SCALING", {
            "path": path,
            "file_count": count,
            "global_count": self.global_try_count,
            "max_tries": max_tries,
            "new_model": new_model,
        })
        self._set_model(new_model)

    def reset(self) -> None:
        with self._lock:
            self.try_counts.clear()
            self.global_try_count = 0
