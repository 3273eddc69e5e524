#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Configuration constants and settings for tagrunner."""

import os
import pathlib
from typing import Any, Dict, List, Optional

import yaml

from tagrunner.errors import ConfigError

# Configuration
ROOT = pathlib.Path(os.getcwd()).resolve()
TAGRUNNER_DIR = ROOT / ".tagrunner"
LOGS_DIR = TAGRUNNER_DIR / "logs"
PROJECT_CONFIG_FILE = TAGRUNNER_DIR / "config.yml"
LOG_RETENTION_LIMIT = int(os.getenv("TAGRUNNER_LOG_RETENTION", "10"))

# Directories never walked by search and path lookup
EXCLUDE_DIRS = {
    ".git", ".hg", ".svn", "node_modules", "__pycache__", ".venv", "venv",
    "dist", "build", ".tagrunner", ".mypy_cache", ".pytest_cache",
}

# ============================================================================
# LLM provider configuration
# ============================================================================
# Provider selection: openrouter, openai, ollama
LLM_PROVIDER = os.getenv("TAGRUNNER_LLM_PROVIDER", "openrouter").lower()
OPENROUTER_BASE_URL = os.getenv("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1")
OPENROUTER_API_KEY = os.getenv("OPENROUTER_API_KEY", "")
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OLLAMA_BASE_URL = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")

DEFAULT_MODEL = os.getenv("TAGRUNNER_MODEL", "qwen/qwen-2.5-coder-32b-instruct")

# Per-phase model overrides
DISCOVERY_MODEL = os.getenv("TAGRUNNER_DISCOVERY_MODEL", DEFAULT_MODEL)
STRATEGY_MODEL = os.getenv("TAGRUNNER_STRATEGY_MODEL", DEFAULT_MODEL)
EXECUTE_MODEL = os.getenv("TAGRUNNER_EXECUTE_MODEL", DEFAULT_MODEL)

LLM_TEMPERATURE = float(os.getenv("TAGRUNNER_TEMPERATURE", "0.1"))

# Fallback when the provider does not report a context window
DEFAULT_CONTEXT_LENGTH = int(os.getenv("TAGRUNNER_DEFAULT_CONTEXT_LENGTH", "128000"))
# Share of the context window the conversation may use before each request,
# and the tighter share used after the provider rejects a request as too long
CONTEXT_BUDGET_RATIO = float(os.getenv("TAGRUNNER_CONTEXT_BUDGET_RATIO", "0.8"))
CONTEXT_EVICTION_RATIO = float(os.getenv("TAGRUNNER_CONTEXT_EVICTION_RATIO", "0.5"))

# Transient transport errors are retried with a fixed delay.
# Generation itself has no timeout.
LLM_MAX_RETRIES = int(os.getenv("TAGRUNNER_LLM_MAX_RETRIES", "3"))
LLM_RETRY_DELAY_SECONDS = float(os.getenv("TAGRUNNER_LLM_RETRY_DELAY", "1.0"))

# ============================================================================
# Turn loop and execution limits
# ============================================================================
MAX_TURNS = int(os.getenv("TAGRUNNER_MAX_TURNS", "25"))
PARALLEL_WORKERS = max(1, int(os.getenv("TAGRUNNER_PARALLEL_WORKERS", "4")))

# Stream buffer guard: when exceeded only the tail is kept
MAX_BUFFER_SIZE = int(os.getenv("TAGRUNNER_MAX_BUFFER_SIZE", str(10 * 1024 * 1024)))
BUFFER_KEEP_SIZE = 1024 * 1024

# Percentage of an existing file a single write_file may remove
WRITE_REMOVAL_THRESHOLD = float(os.getenv("TAGRUNNER_WRITE_REMOVAL_THRESHOLD", "50"))

MAX_FILE_BYTES = int(os.getenv("TAGRUNNER_MAX_FILE_BYTES", str(5 * 1024 * 1024)))
COMMAND_TIMEOUT_SECONDS = int(os.getenv("TAGRUNNER_COMMAND_TIMEOUT", "300"))
# Run execute_command through the shell (allows pipes and &&)
COMMAND_ALLOW_SHELL = os.getenv("TAGRUNNER_ALLOW_SHELL", "0") == "1"
FETCH_TIMEOUT_SECONDS = int(os.getenv("TAGRUNNER_FETCH_TIMEOUT", "10"))
FETCH_MAX_BYTES = int(os.getenv("TAGRUNNER_FETCH_MAX_BYTES", "200000"))
SEARCH_MATCH_LIMIT = int(os.getenv("TAGRUNNER_SEARCH_MATCH_LIMIT", "200"))

# Lines of the directory listing included in the first prompt
ENV_LISTING_LINE_LIMIT = int(os.getenv("TAGRUNNER_ENV_LISTING_LINES", "200"))
INCLUDE_FILES_IN_PROMPT = os.getenv("TAGRUNNER_INCLUDE_FILES", "true").lower() == "true"

# ============================================================================
# Project commands and instructions
# ============================================================================
RUN_ALL_TESTS_CMD = os.getenv("TAGRUNNER_RUN_ALL_TESTS_CMD", "pytest -q")
RUN_ONE_TEST_CMD = os.getenv("TAGRUNNER_RUN_ONE_TEST_CMD", "pytest -q {testPath}")
RUN_TYPECHECK_CMD = os.getenv("TAGRUNNER_RUN_TYPECHECK_CMD", "mypy .")
CUSTOM_INSTRUCTIONS = os.getenv("TAGRUNNER_INSTRUCTIONS", "Follow clean code principles")
CUSTOM_INSTRUCTIONS_PATH: Optional[str] = os.getenv("TAGRUNNER_INSTRUCTIONS_PATH") or None

CONVERSATION_LOG_ENABLED = os.getenv("TAGRUNNER_CONVERSATION_LOG", "0") == "1"

# ============================================================================
# Model auto-scaling
# ============================================================================
AUTO_SCALER_ENABLED = os.getenv("TAGRUNNER_AUTO_SCALER", "0") == "1"
AUTO_SCALE_MODELS: List[Dict[str, Any]] = [
    {"id": "qwen/qwen-2.5-coder-32b-instruct", "max_write_tries": 5, "max_global_tries": 10},
    {"id": "anthropic/claude-3.5-sonnet:beta", "max_write_tries": 5, "max_global_tries": 15},
    {"id": "openai/gpt-4o-2024-11-20", "max_write_tries": 2, "max_global_tries": 20},
]

# Keys accepted in .tagrunner/config.yml mapped to module attributes
_PROJECT_CONFIG_KEYS = {
    "provider": "LLM_PROVIDER",
    "model": "DEFAULT_MODEL",
    "discovery_model": "DISCOVERY_MODEL",
    "strategy_model": "STRATEGY_MODEL",
    "execute_model": "EXECUTE_MODEL",
    "temperature": "LLM_TEMPERATURE",
    "max_turns": "MAX_TURNS",
    "parallel_workers": "PARALLEL_WORKERS",
    "run_all_tests_cmd": "RUN_ALL_TESTS_CMD",
    "run_one_test_cmd": "RUN_ONE_TEST_CMD",
    "run_typecheck_cmd": "RUN_TYPECHECK_CMD",
    "instructions": "CUSTOM_INSTRUCTIONS",
    "instructions_path": "CUSTOM_INSTRUCTIONS_PATH",
    "conversation_log": "CONVERSATION_LOG_ENABLED",
    "auto_scaler": "AUTO_SCALER_ENABLED",
    "auto_scale_models": "AUTO_SCALE_MODELS",
    "write_removal_threshold": "WRITE_REMOVAL_THRESHOLD",
    "include_files": "INCLUDE_FILES_IN_PROMPT",
}


def load_project_config(path: Optional[pathlib.Path] = None) -> Dict[str, Any]:
    """Load the optional YAML project configuration.

    Returns an empty dict when the file does not exist. Raises ConfigError
    when the file exists but is not a YAML mapping.
    """
    config_path = path or PROJECT_CONFIG_FILE
    if not config_path.exists():
        return {}

    try:
        data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{config_path} must contain a mapping, got {type(data).__name__}")
    return data


def apply_project_config(data: Dict[str, Any]) -> List[str]:
    """Apply project configuration values over the environment defaults.

    A plain ``model`` value also becomes the default for any phase model that
    is not set explicitly in the same file.

    Returns:
        The list of keys that were applied (unknown keys are ignored)
    """
    applied = []
    module_globals = globals()

    for key, attr in _PROJECT_CONFIG_KEYS.items():
        if key not in data:
            continue
        module_globals[attr] = data[key]
        applied.append(key)

    if "model" in data:
        for phase_key, attr in (
            ("discovery_model", "DISCOVERY_MODEL"),
            ("strategy_model", "STRATEGY_MODEL"),
            ("execute_model", "EXECUTE_MODEL"),
        ):
            if phase_key not in data:
                module_globals[attr] = data["model"]

    return applied


def write_default_project_config(path: Optional[pathlib.Path] = None) -> pathlib.Path:
    """Write the current settings as a starter project configuration.

    Raises ConfigError when the file already exists; it is never overwritten.
    """
    config_path = path or PROJECT_CONFIG_FILE
    if config_path.exists():
        raise ConfigError(f"{config_path} already exists")

    module_globals = globals()
    data = {key: module_globals[attr] for key, attr in _PROJECT_CONFIG_KEYS.items()}
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
    return config_path


def get_phase_models() -> Dict[str, str]:
    """Return the configured model for each workflow phase."""
    return {
        "discovery": DISCOVERY_MODEL,
        "strategy": STRATEGY_MODEL,
        "execute": EXECUTE_MODEL,
    }


def load_custom_instructions() -> str:
    """Return custom instructions from the configured file or inline value."""
    if CUSTOM_INSTRUCTIONS_PATH:
        instructions_path = pathlib.Path(CUSTOM_INSTRUCTIONS_PATH)
        try:
            return instructions_path.read_text(encoding="utf-8").strip()
        except OSError as e:
            raise ConfigError(
                f"Failed to load custom instructions from {instructions_path}, "
                "check if the file exists and is accessible."
            ) from e

    return CUSTOM_INSTRUCTIONS or ""
