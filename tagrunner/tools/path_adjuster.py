#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Fuzzy correction of broken relative paths."""

import difflib
import os
import pathlib
from typing import Dict, List, Optional

from tagrunner import config
from tagrunner.tools.file_ops import iter_files


class PathAdjuster:
    """Finds the existing workspace file closest to a wrong path.

    The file list is collected lazily on first use; call ``refresh()`` after
    the workspace changes.
    """

    def __init__(self, root: Optional[pathlib.Path] = None):
        self.root = (root or config.ROOT).resolve()
        self._files: Optional[List[str]] = None

    def refresh(self) -> None:
        self._files = [str(path.resolve()) for path in iter_files(self.root)]

    @property
    def files(self) -> List[str]:
        if self._files is None:
            self.refresh()
        return self._files

    def find_closest_match(self, wrong_path: str, threshold: float = 0.6) -> Optional[str]:
        """Return the best matching absolute path with similarity >= threshold."""
        best_path = None
        best_score = 0.0
        wrong_name = os.path.basename(wrong_path)

        for candidate in self.files:
            # Weigh the file name more than the directories around it
            path_score = difflib.SequenceMatcher(None, wrong_path, candidate).ratio()
            name_score = difflib.SequenceMatcher(None, wrong_name, os.path.basename(candidate)).ratio()
            score = 0.4 * path_score + 0.6 * name_score
            if score > best_score:
                best_path, best_score = candidate, score

        if best_path is not None and best_score >= threshold:
            return best_path
        return None

    def adjust_path(self, wrong_path: str, threshold: float = 0.6) -> Optional[str]:
        match = self.find_closest_match(wrong_path, threshold)
        if match and os.path.isfile(match):
            return match
        return None

    def lookup_relative(self, source_path: str, relative_path: str,
                        threshold: float = 0.6) -> Optional[Dict[str, str]]:
        """Fix ``relative_path`` as referenced from the file ``source_path``.

        Returns the corrected path relative to the source file's directory
        (always starting with ``.``), or None when nothing close enough exists.
        """
        source = pathlib.Path(source_path)
        if not source.is_absolute():
            source = self.root / source
        source_dir = source.parent
        full_path = os.path.normpath(str(source_dir / relative_path))

        adjusted = self.adjust_path(full_path, threshold)
        if adjusted is None:
            return None

        new_relative = os.path.relpath(adjusted, source_dir).replace("\\", "/")
        if not new_relative.startswith("."):
            new_relative = "./" + new_relative
        return {
            "original_path": relative_path,
            "new_path": new_relative,
            "absolute_path": adjusted,
        }
