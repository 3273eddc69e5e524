"""
Subprocess execution for execute_command actions.

Commands are parsed with shlex.split() and executed with shell=False unless
TAGRUNNER_ALLOW_SHELL is set. In the default mode shell metacharacters
(&&, ;, |, >, <, backticks, $()) are rejected before anything runs.

ANSI escape sequences are stripped from captured output so the model sees
plain text.
"""

import os
import re
import shlex
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional, Tuple

from tagrunner import config
from tagrunner.debug_logger import get_logger
from tagrunner.tools.base import CommandResult, CommandRunner


# Forbidden patterns that indicate shell composition
FORBIDDEN_RE = re.compile(r"[;&|><`]|(\$\()|\r|\n")

ANSI_RE = re.compile(r"\x1b\[[0-9;?]*[ -/]*[@-~]|\x1b\][^\x07]*\x07")


def strip_ansi(text: str) -> str:
    return ANSI_RE.sub("", text)


def _parse_and_validate(cmd: str) -> Tuple[bool, str, List[str]]:
    """Parse and validate a command string for shell=False execution.

    Returns:
        Tuple of (is_valid, error_message, parsed_args)
    """
    if FORBIDDEN_RE.search(cmd):
        return False, "shell metacharacters not allowed (&&, ;, |, >, <, `, $(), etc.)", []

    try:
        args = shlex.split(cmd, posix=(os.name != "nt"))
    except ValueError as e:
        return False, f"failed to parse command: {e}", []

    if not args:
        return False, "empty command", []

    return True, "", args


class ShellCommandRunner(CommandRunner):
    """Runs commands in the workspace root with a timeout."""

    def __init__(self, cwd: Optional[Path] = None, timeout: Optional[int] = None,
                 allow_shell: Optional[bool] = None):
        self.cwd = cwd or config.ROOT
        self.timeout = timeout or config.COMMAND_TIMEOUT_SECONDS
        self.allow_shell = config.COMMAND_ALLOW_SHELL if allow_shell is None else allow_shell

    def run(self, command: str) -> CommandResult:
        if self.allow_shell:
            popen_args = command
        else:
            is_valid, error_msg, args = _parse_and_validate(command)
            if not is_valid:
                return CommandResult(stdout="", stderr=f"Command blocked: {error_msg}", returncode=-1)
            resolved = shutil.which(args[0])
            if resolved:
                args[0] = resolved
            popen_args = args

        get_logger().log("command", "EXECUTE", {"command": command, "cwd": str(self.cwd)}, "DEBUG")

        try:
            proc = subprocess.Popen(
                popen_args,
                shell=self.allow_shell,
                cwd=str(self.cwd),
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except FileNotFoundError:
            return CommandResult(stdout="", stderr=f"command not found: {command.split()[0]}", returncode=127)
        except OSError as e:
            return CommandResult(stdout="", stderr=f"OS error: {e}", returncode=-1)

        try:
            stdout_data, stderr_data = proc.communicate(timeout=self.timeout)
        except subprocess.TimeoutExpired:
            proc.kill()
            stdout_data, stderr_data = proc.communicate()
            return CommandResult(
                stdout=strip_ansi(stdout_data or ""),
                stderr=strip_ansi((stderr_data or "") + f"\ncommand exceeded {self.timeout}s timeout"),
                returncode=-1,
                timed_out=True,
            )

        result = CommandResult(
            stdout=strip_ansi(stdout_data or ""),
            stderr=strip_ansi(stderr_data or ""),
            returncode=proc.returncode,
        )
        get_logger().log("command", "RESULT", {
            "command": command,
            "rc": result.returncode,
            "stdout_len": len(result.stdout),
            "stderr_len": len(result.stderr),
        }, "DEBUG")
        return result
