#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Main entry point for the tagrunner CLI."""

import argparse
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from tagrunner import config
from tagrunner.debug_logger import DebugLogger
from tagrunner.errors import ConfigError, LLMError
from tagrunner.session import AgentSession
from tagrunner.streaming import TurnSummary


REPL_EXIT_COMMANDS = {"/exit", "/quit"}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tagrunner",
        description="tagrunner - Phase-driven coding agent"
    )
    parser.add_argument(
        "task",
        nargs="*",
        help="Task description (one-shot mode)"
    )
    parser.add_argument(
        "--repl",
        action="store_true",
        help="Interactive REPL mode (default when no task is given)"
    )
    parser.add_argument(
        "--provider",
        choices=["openrouter", "openai", "ollama"],
        help=f"LLM provider (default: {config.LLM_PROVIDER})"
    )
    parser.add_argument(
        "--model",
        help="Model used for every phase unless a phase model is given"
    )
    parser.add_argument("--discovery-model", help="Model for the Discovery phase")
    parser.add_argument("--strategy-model", help="Model for the Strategy phase")
    parser.add_argument("--execute-model", help="Model for the Execute phase")
    parser.add_argument(
        "--config",
        type=Path,
        help=f"Project configuration file (default: {config.PROJECT_CONFIG_FILE})"
    )
    parser.add_argument(
        "--init",
        action="store_true",
        help="Write a starter project configuration file and exit"
    )
    parser.add_argument(
        "--max-turns",
        type=int,
        help=f"Maximum model turns per message (default: {config.MAX_TURNS})"
    )
    parser.add_argument(
        "--auto-scale",
        action="store_true",
        help="Escalate the Execute model when writes to a file keep failing"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging to .tagrunner/logs"
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Show tagrunner version information and exit"
    )
    return parser


def cli_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Map command line flags onto project configuration keys."""
    overrides: Dict[str, Any] = {}
    for key in ("provider", "model", "discovery_model", "strategy_model", "execute_model", "max_turns"):
        value = getattr(args, key)
        if value is not None:
            overrides[key] = value
    if args.auto_scale:
        overrides["auto_scaler"] = True
    return overrides


def print_summary(summary: TurnSummary) -> None:
    print(f"\n[tagrunner] {summary.turns} turn(s), stopped: {summary.stop_reason}")


def run_task(session: AgentSession, task: str) -> int:
    """Send one message and translate failures into an exit code."""
    debug_logger = DebugLogger.get_instance()
    debug_logger.log("main", "TASK_DESCRIPTION", {"task": task})
    try:
        summary = session.send(task)
    except LLMError as e:
        debug_logger.log_error("main", e, {"context": "send"})
        print(f"\n✗ LLM request failed ({e.error_type.value}): {e}")
        return 1

    print_summary(summary)
    failed = any(outcome.failed for outcome in summary.outcomes)
    return 1 if failed and summary.stop_reason == "failed" else 0


def repl_mode(session: AgentSession) -> int:
    """Interactive loop; each line is sent to the same session."""
    if not sys.stdin.isatty():
        print("[tagrunner] Non-interactive environment detected - exiting REPL.")
        return 0

    print("tagrunner Interactive REPL")
    print("-" * 80)
    print("  [i] /reset starts a new task, /exit quits")

    while True:
        try:
            line = input("tagrunner> ").strip()
        except EOFError:
            print()
            return 0
        if not line:
            continue
        if line in REPL_EXIT_COMMANDS:
            return 0
        if line == "/reset":
            session.reset()
            print("[tagrunner] Session reset.")
            continue
        run_task(session, line)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the tagrunner CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        from tagrunner.versioning import build_version_output
        print(build_version_output(config.get_phase_models()))
        return 0

    if args.init:
        try:
            config.apply_project_config(cli_overrides(args))
            path = config.write_default_project_config(args.config)
        except ConfigError as e:
            print(f"✗ Configuration error: {e}")
            return 2
        print(f"Wrote {path}")
        return 0

    try:
        applied = config.apply_project_config(config.load_project_config(args.config))
        applied += config.apply_project_config(cli_overrides(args))
    except ConfigError as e:
        print(f"✗ Configuration error: {e}")
        return 2

    config.TAGRUNNER_DIR.mkdir(parents=True, exist_ok=True)
    debug_logger = DebugLogger.initialize(
        enabled=args.debug,
        log_dir=config.LOGS_DIR,
        conversation_log=config.CONVERSATION_LOG_ENABLED,
    )
    if debug_logger.enabled:
        print(f"Debug logging enabled: {debug_logger.log_file_path}")
    debug_logger.log("main", "CONFIG_APPLIED", {"keys": applied, "models": config.get_phase_models()})

    try:
        session = AgentSession()
        print("tagrunner - Phase-driven coding agent")
        print(f"Provider: {config.LLM_PROVIDER}")
        print(f"Model: {session.current_model}")
        print(f"Repository: {config.ROOT}")
        print()

        if args.repl or not args.task:
            return repl_mode(session)
        return run_task(session, " ".join(args.task))
    except ConfigError as e:
        print(f"✗ Configuration error: {e}")
        return 2
    except KeyboardInterrupt:
        debug_logger.log("main", "USER_INTERRUPT", {}, "WARNING")
        print("\n\nAborted by user")
        return 1
    except Exception as e:
        debug_logger.log_error("main", e, {"context": "main execution loop"})
        raise
    finally:
        debug_logger.close()


if __name__ == "__main__":
    sys.exit(main())
