#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Interfaces for the workspace collaborators used by action handlers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional


@dataclass
class OperationResult:
    """Uniform result of a file operation."""
    success: bool
    data: Any = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: Any = None) -> "OperationResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> "OperationResult":
        return cls(success=False, error=error)


@dataclass
class CommandResult:
    stdout: str
    stderr: str
    returncode: int = 0
    timed_out: bool = False

    @property
    def output(self) -> str:
        return "\n".join(part for part in (self.stdout, self.stderr) if part)


@dataclass
class SearchMatch:
    path: str
    line: Optional[int] = None
    text: Optional[str] = None


class FileOperations(ABC):
    """Filesystem capability. Every method returns an OperationResult."""

    @abstractmethod
    def read(self, path: str) -> OperationResult:
        pass

    @abstractmethod
    def read_multiple(self, paths: List[str]) -> OperationResult:
        """Read several files; data maps each path to its content."""
        pass

    @abstractmethod
    def write(self, path: str, content: str) -> OperationResult:
        pass

    @abstractmethod
    def delete(self, path: str) -> OperationResult:
        pass

    @abstractmethod
    def move(self, source: str, destination: str) -> OperationResult:
        pass

    @abstractmethod
    def copy(self, source: str, destination: str) -> OperationResult:
        pass

    @abstractmethod
    def edit(self, path: str, operations: List[Dict[str, Any]]) -> OperationResult:
        """Apply replace/insert_before/insert_after/delete operations."""
        pass

    @abstractmethod
    def exists(self, path: str) -> bool:
        pass

    @abstractmethod
    def stats(self, path: str) -> OperationResult:
        pass


class CommandRunner(ABC):
    """Shell execution capability."""

    @abstractmethod
    def run(self, command: str) -> CommandResult:
        pass


class SearchProvider(ABC):
    """Content and file name search capability."""

    @abstractmethod
    def find_by_content(self, directory: str, term: str) -> List[SearchMatch]:
        pass

    @abstractmethod
    def find_by_name(self, directory: str, term: str) -> List[SearchMatch]:
        pass
