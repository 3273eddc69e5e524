#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Version helpers for tagrunner."""

from __future__ import annotations

import platform
import subprocess
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Dict, Optional

from tagrunner._version import TAGRUNNER_GIT_COMMIT, TAGRUNNER_VERSION

REPO_ROOT = Path(__file__).resolve().parent.parent


def get_version() -> str:
    """Version from _version.py, falling back to the installed distribution."""
    if TAGRUNNER_VERSION:
        return TAGRUNNER_VERSION
    try:
        return version("tagrunner")
    except PackageNotFoundError:
        return "unknown"


def get_git_commit(short: bool = True) -> Optional[str]:
    """Commit stamped at build time, else ``git rev-parse`` in a checkout."""
    if TAGRUNNER_GIT_COMMIT and TAGRUNNER_GIT_COMMIT != "unknown":
        return TAGRUNNER_GIT_COMMIT[:7] if short else TAGRUNNER_GIT_COMMIT

    cmd = ["git", "rev-parse"] + (["--short"] if short else []) + ["HEAD"]
    try:
        out = subprocess.check_output(cmd, cwd=REPO_ROOT, stderr=subprocess.DEVNULL)
    except (OSError, subprocess.CalledProcessError):
        return None
    return out.decode().strip() or None


def build_version_output(models: Dict[str, str]) -> str:
    """Text printed by ``tagrunner --version``.

    Args:
        models: phase name -> configured model id
    """
    commit = get_git_commit(short=True)
    version_line = get_version() + (f" (commit {commit})" if commit else "")

    lines = [
        "",
        "tagrunner - Phase-driven coding agent",
        "=" * 60,
        f"  Version:          {version_line}",
        "",
        "Models:",
    ]
    lines.extend(f"  {phase:<17} {model}" for phase, model in models.items())
    lines += [
        "",
        "System:",
        f"  OS:               {platform.system()} {platform.release()}",
        f"  Python:           {platform.python_version()}",
    ]
    return "\n".join(lines)
