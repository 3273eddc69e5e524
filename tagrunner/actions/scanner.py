#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Incremental tokenizer for action tags in model output.

``ActionTagScanner.feed()`` accepts text as it arrives and returns only tags
that became complete with that chunk. A partial tag at the end of the buffer
stays there until a later chunk closes it. The same scanner backs both the
batch parser and the streaming handler.

Nesting rules: recognized tags may not be nested inside one another, and a
closing tag must match the most recent opening tag. Text inside ``<content>``
blocks, ``<!-- -->`` comments and ``<phase_prompt>`` blocks is ignored by the
structure check, so file contents may quote tags freely. Any violation makes
the scanner fail closed: no tags are returned until it is reset.
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional, Set, Tuple

from tagrunner.actions.catalog import (
    ACTION_CATALOG,
    PHASE_PROMPT_TAG,
    SUBFIELD_TAGS,
)
from tagrunner.errors import FormatError


_TAG_NAMES = "|".join(re.escape(tag) for tag in ACTION_CATALOG)
_TOKEN_RE = re.compile(rf"<(/?)({_TAG_NAMES})\s*>")

# Regions whose inner text is never tokenized. An unclosed region runs to the
# end of the buffer so a half-streamed block is not misread.
_OPAQUE_RES = (
    re.compile(r"<content>.*?(?:</content>|\Z)", re.S),
    re.compile(r"<!--.*?(?:-->|\Z)", re.S),
    re.compile(rf"<{PHASE_PROMPT_TAG}>.*?(?:</{PHASE_PROMPT_TAG}>|\Z)", re.S),
)

_GENERIC_TAG_RE = re.compile(r"<(\w+)>([\s\S]*?)</\1>")


def _blank(match: "re.Match[str]") -> str:
    return " " * len(match.group(0))


def mask_opaque_regions(text: str) -> str:
    """Blank out content, comment and phase_prompt regions, preserving offsets."""
    for pattern in _OPAQUE_RES:
        text = pattern.sub(_blank, text)
    return text


@dataclass(frozen=True)
class ScannedTag:
    """One complete ``<tag>...</tag>`` span."""
    tag: str
    raw: str
    body: str
    start: int
    end: int


@dataclass
class ScanResult:
    tags: List[ScannedTag] = field(default_factory=list)
    error: Optional[FormatError] = None


class ActionTagScanner:
    """Stateful tokenizer that returns each complete action tag once."""

    def __init__(self):
        self._buffer = ""
        # Offset into the buffer up to which every tag has been resolved
        self._resolved = 0
        # Characters dropped from the front of the buffer by trim()
        self._base = 0
        self.processed_tags: Set[str] = set()
        self.error: Optional[FormatError] = None

    @property
    def buffer(self) -> str:
        return self._buffer

    @property
    def pending_text(self) -> str:
        """Text after the last complete tag."""
        return self._buffer[self._resolved:]

    def append(self, chunk: str) -> None:
        """Buffer ``chunk`` without tokenizing; the next feed() picks it up."""
        self._buffer += chunk

    def feed(self, chunk: str) -> List[ScannedTag]:
        """Append ``chunk`` and return the tags it completed."""
        if chunk:
            self._buffer += chunk
        if self.error is not None:
            return []

        tags, error, resolved = _tokenize(self._buffer, self._resolved)
        if error is not None:
            self.error = error
            return []

        previously_seen = set(self.processed_tags)
        fresh = []
        for tag in tags:
            if tag.raw in previously_seen:
                continue
            fresh.append(ScannedTag(
                tag=tag.tag,
                raw=tag.raw,
                body=tag.body,
                start=tag.start + self._base,
                end=tag.end + self._base,
            ))
            self.processed_tags.add(tag.raw)

        self._resolved = resolved
        return fresh

    def check(self) -> Tuple[bool, bool]:
        """``(has_complete_tag, has_format_error)`` from one tokenizer pass."""
        if self.error is not None:
            return False, True
        tags, error, _ = _tokenize(self._buffer, self._resolved)
        if error is not None:
            return False, True
        return any(tag.raw not in self.processed_tags for tag in tags), False

    def has_complete_tag(self) -> bool:
        """Whether the buffer holds a complete tag not yet returned by feed()."""
        return self.check()[0]

    def has_format_error(self) -> bool:
        """Whether the buffered text already breaks the nesting rules."""
        return self.check()[1]

    def trim(self, max_size: int, keep: int) -> bool:
        """Keep only the last ``keep`` characters once the buffer exceeds ``max_size``."""
        if len(self._buffer) <= max_size:
            return False
        cut = len(self._buffer) - keep
        self._buffer = self._buffer[cut:]
        self._resolved = max(0, self._resolved - cut)
        self._base += cut
        return True

    def reset(self, keep_processed: bool = False) -> None:
        self._buffer = ""
        self._resolved = 0
        self._base = 0
        self.error = None
        if not keep_processed:
            self.processed_tags = set()


def _tokenize(text: str, offset: int) -> Tuple[List[ScannedTag], Optional[FormatError], int]:
    """Find complete top-level tags in ``text[offset:]``.

    Returns the tags, a FormatError on a nesting violation, and the offset just
    past the last complete tag.
    """
    region = text[offset:]
    masked = mask_opaque_regions(region)
    stack: List[Tuple[str, int, int]] = []
    tags: List[ScannedTag] = []
    resolved = offset

    for match in _TOKEN_RE.finditer(masked):
        closing = match.group(1) == "/"
        name = match.group(2)

        if not closing:
            if stack:
                return [], FormatError(
                    f"Tag <{name}> cannot be nested inside <{stack[-1][0]}>. "
                    "Close each action before starting the next one."
                ), offset
            stack.append((name, match.start(), match.end()))
            continue

        if not stack:
            return [], FormatError(
                f"Found closing tag </{name}> without a matching <{name}>."
            ), offset

        open_name, open_start, open_end = stack.pop()
        if open_name != name:
            return [], FormatError(
                f"Found </{name}> while <{open_name}> is still open. "
                f"Tags must be closed in order: <{open_name}>...</{open_name}>."
            ), offset

        tags.append(ScannedTag(
            tag=name,
            raw=region[open_start:match.end()],
            body=region[open_end:match.start()],
            start=offset + open_start,
            end=offset + match.end(),
        ))
        resolved = offset + match.end()

    return tags, None, resolved


def scan(text: str) -> ScanResult:
    """Scan a complete text in one pass."""
    scanner = ActionTagScanner()
    tags = scanner.feed(text)
    return ScanResult(tags=tags, error=scanner.error)


# ============================================================================
# Sub-field extraction
# ============================================================================

def _field_re(name: str) -> "re.Pattern[str]":
    return re.compile(rf"<{re.escape(name)}>(.*?)</{re.escape(name)}>", re.S)


def extract_all(body: str, name: str) -> List[str]:
    """Return every ``<name>`` value in ``body``.

    Fields other than ``content`` are located with content blocks masked, so a
    ``<path>`` inside file contents is not mistaken for the action's path.
    """
    pattern = _field_re(name)
    if name == "content":
        return [m.group(1) for m in pattern.finditer(body)]

    masked = _OPAQUE_RES[0].sub(_blank, body)
    values = []
    for match in pattern.finditer(masked):
        values.append(body[match.start(1):match.end(1)])
    return values


def extract_field(body: str, name: str) -> Optional[str]:
    values = extract_all(body, name)
    return values[0] if values else None


def find_unknown_tag(text: str) -> Optional[str]:
    """Return the first tag-shaped name that is neither an action nor a sub-field."""
    for match in _GENERIC_TAG_RE.finditer(mask_opaque_regions(text)):
        name = match.group(1)
        if name in ACTION_CATALOG or name in SUBFIELD_TAGS or name == PHASE_PROMPT_TAG:
            continue
        return name
    return None


def find_bare_action_name(text: str) -> Optional[str]:
    """Return an action name used as a plain word without its angle brackets."""
    for tag in ACTION_CATALOG:
        if f"<{tag}>" in text or f"</{tag}>" in text:
            continue
        if re.search(rf"\b{re.escape(tag)}\b", text):
            return tag
    return None
