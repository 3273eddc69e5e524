#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Active model tracking and model metadata lookup."""

import threading
from typing import Callable, Dict, Optional

from tagrunner import config
from tagrunner.debug_logger import get_logger


class ModelInfo:
    """Context window sizes, looked up once per model and cached.

    ``lookup`` asks the provider; unknown models fall back to
    ``config.DEFAULT_CONTEXT_LENGTH``.
    """

    def __init__(self, lookup: Optional[Callable[[str], Optional[int]]] = None):
        self._lookup = lookup
        self._cache: Dict[str, int] = {}

    def get_context_length(self, model: str) -> int:
        if model not in self._cache:
            length = self._lookup(model) if self._lookup else None
            self._cache[model] = length or config.DEFAULT_CONTEXT_LENGTH
        return self._cache[model]


class ModelManager:
    """Owns the session's active model.

    Switching model trims the context to the new model's window through
    ``on_model_change`` (called with the new token budget).
    """

    def __init__(self, initial_model: str, model_info: Optional[ModelInfo] = None,
                 on_model_change: Optional[Callable[[int], bool]] = None):
        self._lock = threading.Lock()
        self._current_model = initial_model
        self.model_info = model_info or ModelInfo()
        self._on_model_change = on_model_change
        get_logger().log("model", "MODEL_MANAGER_INIT", {"model": initial_model}, "DEBUG")

    @property
    def current_model(self) -> str:
        return self._current_model

    @property
    def context_length(self) -> int:
        return self.model_info.get_context_length(self._current_model)

    def token_budget(self, ratio: Optional[float] = None) -> int:
        """Tokens the conversation may use with the current model."""
        ratio = config.CONTEXT_BUDGET_RATIO if ratio is None else ratio
        return int(self.context_length * ratio)

    def set_current_model(self, model: str) -> None:
        with self._lock:
            if model == self._current_model:
                return
            old_model, self._current_model = self._current_model, model

        context_length = self.model_info.get_context_length(model)
        budget = self.token_budget()
        cleaned = self._on_model_change(budget) if self._on_model_change else False
        get_logger().log("model", "MODEL_CHANGED", {
            "old_model": old_model,
            "new_model": model,
            "context_length": context_length,
            "context_cleaned": cleaned,
        })
