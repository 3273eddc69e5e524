#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Local filesystem implementation of FileOperations."""

import os
import pathlib
import re
import shutil
from typing import Any, Dict, List, Optional

from tagrunner import config
from tagrunner.debug_logger import get_logger
from tagrunner.tools.base import FileOperations, OperationResult


# ========== Helper Functions ==========

def should_skip(path: pathlib.Path) -> bool:
    """Check if path should be excluded."""
    return any(part in config.EXCLUDE_DIRS for part in path.parts)


def is_text_file(path: pathlib.Path) -> bool:
    """Check if file is text (no null bytes)."""
    try:
        with open(path, "rb") as f:
            return b"\x00" not in f.read(8192)
    except OSError:
        return False


def iter_files(base: pathlib.Path) -> List[pathlib.Path]:
    """Return every non-excluded file below ``base``."""
    files = []
    for dirpath, dirnames, filenames in os.walk(base):
        dirnames[:] = sorted(d for d in dirnames if d not in config.EXCLUDE_DIRS)
        for name in sorted(filenames):
            files.append(pathlib.Path(dirpath) / name)
    return files


def rel_to_root(path: pathlib.Path, root: pathlib.Path) -> str:
    """Return a forward-slash path relative to ``root`` when possible."""
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return os.path.relpath(path, root).replace("\\", "/")


class LocalFileOperations(FileOperations):
    """File operations confined to a workspace root."""

    def __init__(self, root: Optional[pathlib.Path] = None):
        self.root = (root or config.ROOT).resolve()

    def _safe_path(self, path: str) -> pathlib.Path:
        """Resolve a path inside the workspace root.

        Raises:
            ValueError: the path escapes the root
        """
        candidate = pathlib.Path(path.strip())
        if not candidate.is_absolute():
            candidate = self.root / candidate
        resolved = candidate.resolve()
        if resolved != self.root and self.root not in resolved.parents:
            raise ValueError(f"Path escapes workspace: {path}")
        return resolved

    def read(self, path: str) -> OperationResult:
        try:
            p = self._safe_path(path)
        except ValueError as e:
            return OperationResult.fail(str(e))
        if not p.exists():
            return OperationResult.fail(f"File not found: {path}")
        if p.is_dir():
            return OperationResult.fail(f"Path is a directory: {path}")
        if p.stat().st_size > config.MAX_FILE_BYTES:
            return OperationResult.fail(f"Too large (> {config.MAX_FILE_BYTES} bytes): {path}")
        try:
            return OperationResult.ok(p.read_text(encoding="utf-8", errors="replace"))
        except OSError as e:
            return OperationResult.fail(f"{type(e).__name__}: {e}")

    def read_multiple(self, paths: List[str]) -> OperationResult:
        contents: Dict[str, str] = {}
        missing = []
        for path in paths:
            result = self.read(path)
            if result.success:
                contents[path] = result.data
            else:
                missing.append(result.error)
        if missing:
            return OperationResult(success=False, data=contents, error="; ".join(missing))
        return OperationResult.ok(contents)

    def write(self, path: str, content: str) -> OperationResult:
        try:
            p = self._safe_path(path)
            p.parent.mkdir(parents=True, exist_ok=True)
            p.write_text(content, encoding="utf-8")
        except (OSError, ValueError) as e:
            return OperationResult.fail(f"{type(e).__name__}: {e}")

        get_logger().log("file_ops", "WRITE", {"path": rel_to_root(p, self.root), "bytes": len(content)}, "DEBUG")
        return OperationResult.ok({"path": rel_to_root(p, self.root), "bytes": len(content)})

    def delete(self, path: str) -> OperationResult:
        try:
            p = self._safe_path(path)
            if not p.exists():
                return OperationResult.fail(f"File not found: {path}")
            if p.is_dir():
                return OperationResult.fail(f"Cannot delete directory: {path}")
            p.unlink()
        except (OSError, ValueError) as e:
            return OperationResult.fail(f"{type(e).__name__}: {e}")
        return OperationResult.ok({"deleted": rel_to_root(p, self.root)})

    def move(self, source: str, destination: str) -> OperationResult:
        try:
            src_p = self._safe_path(source)
            dest_p = self._safe_path(destination)
            if not src_p.exists():
                return OperationResult.fail(f"Source not found: {source}")
            dest_p.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(src_p), str(dest_p))
        except (OSError, ValueError) as e:
            return OperationResult.fail(f"{type(e).__name__}: {e}")
        return OperationResult.ok({
            "moved": rel_to_root(src_p, self.root),
            "to": rel_to_root(dest_p, self.root),
        })

    def copy(self, source: str, destination: str) -> OperationResult:
        try:
            src_p = self._safe_path(source)
            dest_p = self._safe_path(destination)
            if not src_p.is_file():
                return OperationResult.fail(f"Source not found: {source}")
            dest_p.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(src_p, dest_p)
        except (OSError, ValueError) as e:
            return OperationResult.fail(f"{type(e).__name__}: {e}")
        return OperationResult.ok({
            "copied": rel_to_root(src_p, self.root),
            "to": rel_to_root(dest_p, self.root),
        })

    def edit(self, path: str, operations: List[Dict[str, Any]]) -> OperationResult:
        """Apply regex based edit operations in order.

        Every pattern must match at least once; the file is left untouched
        when any operation fails.
        """
        read_result = self.read(path)
        if not read_result.success:
            return read_result
        content = read_result.data

        for op in operations:
            pattern = op.get("pattern")
            if not pattern:
                return OperationResult.fail("Empty pattern not allowed")
            try:
                regex = re.compile(pattern, re.MULTILINE)
            except re.error as e:
                return OperationResult.fail(f"Invalid pattern {pattern!r}: {e}")
            if not regex.search(content):
                return OperationResult.fail(f"Pattern not found in {path}: {pattern}")

            insert = op.get("content") or ""
            op_type = op.get("type")
            if op_type == "replace":
                content = regex.sub(lambda m: insert, content)
            elif op_type == "insert_before":
                content = regex.sub(lambda m: insert + m.group(0), content)
            elif op_type == "insert_after":
                content = regex.sub(lambda m: m.group(0) + insert, content)
            elif op_type == "delete":
                content = regex.sub("", content)
            else:
                return OperationResult.fail(f"Unknown edit operation: {op_type}")

        return self.write(path, content)

    def exists(self, path: str) -> bool:
        try:
            return self._safe_path(path).exists()
        except ValueError:
            return False

    def stats(self, path: str) -> OperationResult:
        try:
            p = self._safe_path(path)
            st = p.stat()
        except (OSError, ValueError) as e:
            return OperationResult.fail(f"{type(e).__name__}: {e}")
        return OperationResult.ok({
            "size": st.st_size,
            "modified": st.st_mtime,
            "is_file": p.is_file(),
            "is_dir": p.is_dir(),
        })
