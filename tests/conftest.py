import os
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from tagrunner.debug_logger import DebugLogger
from tagrunner.llm.provider_factory import clear_provider_cache
from tagrunner.llm.providers.base import LLMProvider


@pytest.fixture(autouse=True)
def reset_debug_logger():
    """Reset the singleton logger and provider cache around each test."""
    DebugLogger._instance = None
    clear_provider_cache()
    yield
    instance = DebugLogger._instance
    if instance and instance.enabled:
        instance.close()
    DebugLogger._instance = None
    clear_provider_cache()


class ScriptedProvider(LLMProvider):
    """Provider that replays canned replies, streamed in fixed-size chunks.

    Each entry of ``replies`` is either a reply string or a dict returned
    as-is (for error payloads). Every call records the messages it got.
    """

    def __init__(self, replies: List[Any], chunk_size: int = 7,
                 context_length: Optional[int] = 100000):
        super().__init__()
        self.name = "scripted"
        self.replies = list(replies)
        self.chunk_size = chunk_size
        self.context_length = context_length
        self.calls: List[Dict[str, Any]] = []

    def _next(self, messages, model) -> Any:
        self.calls.append({"messages": [dict(m) for m in messages], "model": model})
        if not self.replies:
            return "Nothing left to do."
        return self.replies.pop(0)

    def chat(self, messages, model=None, **kwargs):
        reply = self._next(messages, model)
        if isinstance(reply, dict):
            return reply
        return {"message": {"role": "assistant", "content": reply}, "usage": {}}

    def chat_stream(self, messages, model=None, on_chunk: Optional[Callable[[str], None]] = None, **kwargs):
        reply = self._next(messages, model)
        if isinstance(reply, dict):
            return reply
        for start in range(0, len(reply), self.chunk_size):
            if on_chunk:
                on_chunk(reply[start:start + self.chunk_size])
        return {"message": {"role": "assistant", "content": reply}, "usage": {}}

    def validate_model(self, model: str) -> bool:
        return True

    def get_model_context_length(self, model: str) -> Optional[int]:
        return self.context_length


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """A small project tree to run actions against."""
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "app.py").write_text("def greet():\n    return 'hello'\n", encoding="utf-8")
    (tmp_path / "src" / "util.py").write_text("VALUE = 1\n", encoding="utf-8")
    (tmp_path / "README.md").write_text("hello\n", encoding="utf-8")
    return tmp_path


@pytest.fixture
def make_provider():
    """Factory for ScriptedProvider instances."""
    return ScriptedProvider
