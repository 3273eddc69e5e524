#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Project and working-directory summaries for the first prompt."""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from tagrunner import config
from tagrunner.tools.file_ops import iter_files, rel_to_root


# Checked in order; the first one present wins
DEPENDENCY_FILES = (
    "package.json",
    "requirements.txt",
    "Cargo.toml",
    "go.mod",
    "pom.xml",
    "composer.json",
    "pyproject.toml",
)


@dataclass
class ProjectInfo:
    main_dependencies: List[str] = field(default_factory=list)
    scripts: Dict[str, str] = field(default_factory=dict)
    dependency_file: Optional[str] = None


def _node_info(path: Path) -> ProjectInfo:
    try:
        package = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return ProjectInfo(dependency_file=path.name)
    deps = list(package.get("dependencies") or {}) + list(package.get("devDependencies") or {})
    return ProjectInfo(deps, dict(package.get("scripts") or {}), path.name)


def _requirements_info(path: Path) -> ProjectInfo:
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError:
        return ProjectInfo(dependency_file=path.name)
    deps = []
    for line in lines:
        line = line.strip()
        if not line or line.startswith(("#", "-")):
            continue
        deps.append(line.split("==")[0].split(">=")[0].strip())
    return ProjectInfo(deps, {}, path.name)


def _cargo_info(path: Path) -> ProjectInfo:
    deps = []
    in_deps = False
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError:
        lines = []
    for line in lines:
        stripped = line.strip()
        if stripped.startswith("[dependencies]"):
            in_deps = True
        elif stripped.startswith("["):
            in_deps = False
        elif in_deps and "=" in stripped:
            deps.append(stripped.split("=")[0].strip())
    scripts = {"build": "cargo build", "run": "cargo run", "test": "cargo test"}
    return ProjectInfo(deps, scripts, path.name)


def _go_info(path: Path) -> ProjectInfo:
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError:
        lines = []
    deps = [line[len("require "):].strip() for line in lines if line.startswith("require ")]
    scripts = {"build": "go build", "run": "go run .", "test": "go test ./..."}
    return ProjectInfo(deps, scripts, path.name)


def gather_project_info(root: Optional[Path] = None) -> ProjectInfo:
    """Detect the project's dependency manifest and summarize it."""
    root = root or config.ROOT
    found = next((name for name in DEPENDENCY_FILES if (root / name).is_file()), None)
    if found is None:
        return ProjectInfo()

    path = root / found
    if found == "package.json":
        return _node_info(path)
    if found == "requirements.txt":
        return _requirements_info(path)
    if found == "Cargo.toml":
        return _cargo_info(path)
    if found == "go.mod":
        return _go_info(path)
    return ProjectInfo(dependency_file=found)


def format_project_info(info: ProjectInfo) -> str:
    if not info.dependency_file:
        return ""

    scripts = "\n".join(f"{name}: {command}" for name, command in info.scripts.items())
    return (
        f"# Project Dependencies (from {info.dependency_file})\n"
        f"Main Dependencies: {', '.join(info.main_dependencies)}\n\n"
        f"# Available Scripts\n{scripts}\n\n"
        f"# Test Commands\n"
        f"Run All Tests: {config.RUN_ALL_TESTS_CMD}\n"
        f"Run Single Test: {config.RUN_ONE_TEST_CMD}\n"
        f"Run Type Check: {config.RUN_TYPECHECK_CMD}"
    )


def get_environment_details(root: Optional[Path] = None, line_limit: Optional[int] = None) -> str:
    """List the working directory's files, truncated to ``line_limit`` lines."""
    root = root or config.ROOT
    limit = line_limit or config.ENV_LISTING_LINE_LIMIT

    lines = []
    truncated = False
    for path in iter_files(root):
        if len(lines) >= limit:
            truncated = True
            break
        lines.append(rel_to_root(path, root))

    listing = "\n".join(sorted(lines))
    if truncated:
        listing += "\n[Content truncated...]"
    return f"# Current Working Directory ({root}) Files\n{listing}"
