#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Default workspace collaborators: files, commands, search, web, paths."""

from tagrunner.tools.base import (
    CommandResult,
    CommandRunner,
    FileOperations,
    OperationResult,
    SearchMatch,
    SearchProvider,
)
from tagrunner.tools.command_runner import ShellCommandRunner
from tagrunner.tools.file_ops import LocalFileOperations
from tagrunner.tools.path_adjuster import PathAdjuster
from tagrunner.tools.search import LocalSearchProvider
from tagrunner.tools.web_tools import fetch_url

__all__ = [
    "CommandResult",
    "CommandRunner",
    "FileOperations",
    "LocalFileOperations",
    "LocalSearchProvider",
    "OperationResult",
    "PathAdjuster",
    "SearchMatch",
    "SearchProvider",
    "ShellCommandRunner",
    "fetch_url",
]
