#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Content and file name search over the workspace."""

import fnmatch
import pathlib
import re
from typing import List, Optional

from tagrunner import config
from tagrunner.tools.base import SearchMatch, SearchProvider
from tagrunner.tools.file_ops import is_text_file, iter_files, rel_to_root


class LocalSearchProvider(SearchProvider):
    """Walks the workspace, skipping excluded directories and binary files."""

    def __init__(self, root: Optional[pathlib.Path] = None, max_matches: Optional[int] = None):
        self.root = (root or config.ROOT).resolve()
        self.max_matches = max_matches or config.SEARCH_MATCH_LIMIT

    def _base(self, directory: str) -> pathlib.Path:
        base = pathlib.Path(directory)
        if not base.is_absolute():
            base = self.root / base
        return base

    def find_by_content(self, directory: str, term: str) -> List[SearchMatch]:
        """Case-insensitive search; ``term`` is a regex, or a literal if it does not compile."""
        try:
            rex = re.compile(term, re.IGNORECASE)
        except re.error:
            rex = re.compile(re.escape(term), re.IGNORECASE)

        matches: List[SearchMatch] = []
        for path in iter_files(self._base(directory)):
            if path.stat().st_size > config.MAX_FILE_BYTES or not is_text_file(path):
                continue
            rel = rel_to_root(path, self.root)
            try:
                with open(path, "r", encoding="utf-8", errors="ignore") as f:
                    for i, line in enumerate(f, 1):
                        if rex.search(line):
                            matches.append(SearchMatch(path=rel, line=i, text=line.rstrip("\n")))
                            if len(matches) >= self.max_matches:
                                return matches
            except OSError:
                continue
        return matches

    def find_by_name(self, directory: str, term: str) -> List[SearchMatch]:
        """Match file names by glob pattern, or by substring when no wildcard is given."""
        has_wildcard = any(ch in term for ch in "*?[")
        needle = term.lower()

        matches: List[SearchMatch] = []
        for path in iter_files(self._base(directory)):
            name = path.name.lower()
            if has_wildcard:
                hit = fnmatch.fnmatch(name, needle)
            else:
                hit = needle in name
            if hit:
                matches.append(SearchMatch(path=rel_to_root(path, self.root)))
                if len(matches) >= self.max_matches:
                    break
        return matches
