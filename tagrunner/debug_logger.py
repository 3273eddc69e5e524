#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Debug logging for tagrunner.

Turned on with ``--debug``. Each event becomes one structured entry: the
component's logger name, an ``[EVENT]`` marker and a JSON payload. With
``TAGRUNNER_CONVERSATION_LOG=1`` every message that enters the context is
also appended to a plain-text conversation log, debug mode or not.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from tagrunner import config


LOGGER_ROOT = "tagrunner"
ENTRY_FORMAT = "%(asctime)s | %(name)-24s | %(levelname)-8s | %(message)s"
PREVIEW_CHARS = 500
FIELD_CHARS = 200


def prune_old_logs(log_dir: Path, keep: int) -> None:
    """Delete all but the ``keep`` most recently modified ``*.log`` files."""
    if keep < 1 or not log_dir.is_dir():
        return

    by_age = sorted(log_dir.glob("*.log"), key=lambda p: p.stat().st_mtime)
    for stale in by_age[:-keep]:
        try:
            stale.unlink()
        except OSError:
            # still open in another session
            pass


_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


def _level(name: str) -> int:
    return _LEVELS.get(name.upper(), logging.INFO)


class DebugLogger:
    """Process-wide structured logger.

    ``initialize()`` creates the shared instance once; later calls return it
    unchanged. Components call ``get_logger()`` and never hold on to an
    instance across a reset.
    """

    _instance: Optional['DebugLogger'] = None

    def __init__(self, enabled: bool = False, log_dir: Optional[Path] = None,
                 conversation_log: bool = False):
        self._enabled = enabled
        self._log_file: Optional[Path] = None
        self._conversation_file: Optional[Path] = None
        self._loggers: Dict[str, logging.Logger] = {}
        self._handler: Optional[logging.Handler] = None

        if not enabled and not conversation_log:
            return

        directory = log_dir or config.LOGS_DIR
        directory.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")

        if conversation_log:
            self._conversation_file = directory / f"conversation_{stamp}.log"
        if enabled:
            self._log_file = directory / f"tagrunner_debug_{stamp}.log"
            self._attach_file_handler(self._log_file)

        prune_old_logs(directory, config.LOG_RETENTION_LIMIT)
        self.log("system", "DEBUG_SESSION_START", {
            "log_file": str(self._log_file),
            "conversation_log": str(self._conversation_file),
            "cwd": str(Path.cwd()),
        })

    # ------------------------------------------------------------------
    # Shared instance
    # ------------------------------------------------------------------

    @classmethod
    def initialize(cls, enabled: bool = False, log_dir: Optional[Path] = None,
                   conversation_log: bool = False) -> 'DebugLogger':
        if cls._instance is None:
            cls._instance = cls(enabled, log_dir, conversation_log)
        return cls._instance

    @classmethod
    def get_instance(cls) -> 'DebugLogger':
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        if cls._instance is not None:
            cls._instance.close()
        cls._instance = None

    def _attach_file_handler(self, path: Path) -> None:
        handler = logging.FileHandler(path, mode='w', encoding='utf-8')
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(ENTRY_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))

        root = logging.getLogger(LOGGER_ROOT)
        root.setLevel(logging.DEBUG)
        root.addHandler(handler)
        root.propagate = False
        self._handler = handler

    def get_logger(self, component: str) -> logging.Logger:
        """Return the ``tagrunner.<component>`` logger."""
        logger = self._loggers.get(component)
        if logger is None:
            logger = self._loggers[component] = logging.getLogger(f"{LOGGER_ROOT}.{component}")
        return logger

    # ------------------------------------------------------------------
    # Structured events
    # ------------------------------------------------------------------

    def log(self, component: str, event: str, data: Optional[Dict[str, Any]] = None, level: str = "INFO"):
        """Write ``[EVENT] {payload}`` to the component's logger.

        Args:
            component: Short subsystem name ('parser', 'llm', 'runner', ...)
            event: Upper-case event name
            data: JSON-serializable payload; values that are not are stringified
            level: DEBUG, INFO, WARNING or ERROR
        """
        if not self._enabled:
            return
        entry = f"[{event}]"
        if data:
            entry = f"{entry} {json.dumps(data, indent=2, default=str)}"
        self.get_logger(component).log(_level(level), entry)

    def log_llm_request(self, model: str, messages: List[Dict[str, Any]]):
        if not self._enabled:
            return
        self.log("llm", "LLM_REQUEST", {
            "model": model,
            "message_count": len(messages),
            "messages": [
                {"role": m.get("role"), "content": str(m.get("content", ""))[:PREVIEW_CHARS]}
                for m in messages
            ],
        }, "DEBUG")

    def log_llm_response(self, model: str, content: str, usage: Optional[Dict[str, Any]] = None):
        if not self._enabled:
            return
        payload: Dict[str, Any] = {
            "model": model,
            "content_length": len(content),
            "content_preview": content[:PREVIEW_CHARS],
        }
        if usage:
            payload["usage"] = usage
        self.log("llm", "LLM_RESPONSE", payload, "DEBUG")

    def log_action(self, action_type: str, action_id: str, fields: Dict[str, Any],
                   success: Optional[bool] = None, error: Optional[str] = None):
        """Record a dispatched action; pass ``success``/``error`` once it finished."""
        if not self._enabled:
            return
        payload: Dict[str, Any] = {
            "action": action_type,
            "id": action_id,
            "fields": {name: str(value)[:FIELD_CHARS] for name, value in fields.items()},
        }
        if success is not None:
            payload["success"] = success
        if error:
            payload["error"] = str(error)
        self.log("actions", "ACTION_EXECUTION", payload, "ERROR" if error else "DEBUG")

    def log_error(self, component: str, error: Exception, context: Optional[Dict[str, Any]] = None):
        if not self._enabled:
            return
        payload: Dict[str, Any] = {"error_type": type(error).__name__, "error_message": str(error)}
        if context:
            payload["context"] = context
        self.log(component, "ERROR", payload, "ERROR")

    def log_phase(self, phase: str, details: Optional[Dict[str, Any]] = None):
        if not self._enabled:
            return
        self.log("phases", "WORKFLOW_PHASE", dict(details or {}, phase=phase))

    def log_conversation(self, role: str, content: str) -> None:
        """Append one message to the conversation log when it is enabled."""
        if self._conversation_file is None:
            return
        with self._conversation_file.open("a", encoding="utf-8") as handle:
            handle.write(f"==== {role.upper()} {datetime.now().isoformat()} ====\n{content}\n\n")

    # ------------------------------------------------------------------
    # logging.Logger-style helpers, routed to tagrunner.general
    # ------------------------------------------------------------------

    def _general(self, level: int, msg: str, *args: Any, **kwargs: Any) -> None:
        if self._enabled:
            self.get_logger("general").log(level, msg, *args, **kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._general(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._general(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._general(logging.ERROR, msg, *args, **kwargs)

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._general(logging.DEBUG, msg, *args, **kwargs)

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def log_file_path(self) -> Optional[Path]:
        return self._log_file

    @property
    def conversation_log_path(self) -> Optional[Path]:
        return self._conversation_file

    def close(self):
        """Write the end marker and detach the file handler."""
        if not self._enabled:
            return
        self.log("system", "DEBUG_SESSION_END", {"timestamp": datetime.now().isoformat()})
        if self._handler is not None:
            self._handler.close()
            logging.getLogger(LOGGER_ROOT).removeHandler(self._handler)
            self._handler = None


def get_logger() -> DebugLogger:
    """Return the shared DebugLogger (a disabled one until initialize() runs)."""
    return DebugLogger.get_instance()


def is_debug_enabled() -> bool:
    return get_logger().enabled
