#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""LLM client: provider calls with error classification and remediation.

Remediation per error class:

- NETWORK / RATE_LIMIT: fixed-delay retry through RetryHandler
- CONTEXT_LENGTH: one eviction pass, then one more attempt
- anything else: give up

Once part of a streamed reply has been delivered the client never retries;
it returns the partial text instead, since the caller has already consumed
those chunks.
"""

from typing import Any, Callable, Dict, List, Optional

from tagrunner.debug_logger import get_logger
from tagrunner.errors import LLMError, LLMErrorType
from tagrunner.llm.providers.base import LLMProvider
from tagrunner.llm.retry import RetryHandler


MessageFactory = Callable[[], List[Dict[str, Any]]]


class LLMClient:
    """Sends conversations to a provider on behalf of a session.

    ``evict`` is called at most once per request after a context-length
    error; it returns True when it freed space. Messages are rebuilt from
    ``messages`` after eviction, which is why it is a factory.
    """

    def __init__(self, provider: LLMProvider, retry_handler: Optional[RetryHandler] = None,
                 evict: Optional[Callable[[], bool]] = None):
        self.provider = provider
        self.retry_handler = retry_handler or RetryHandler()
        self.evict = evict

    def _raise_for(self, result: Dict[str, Any]) -> None:
        if "error" in result:
            raise self.provider.classify_error({"error": result["error"]})

    def _with_eviction(self, call: Callable[[], str]) -> str:
        debug_logger = get_logger()
        try:
            return self.retry_handler.execute_with_retry(call)
        except LLMError as e:
            if e.error_type != LLMErrorType.CONTEXT_LENGTH or self.evict is None:
                debug_logger.log_error("llm", e, {"error_type": e.error_type.value})
                raise
            dropped = self.evict()
            debug_logger.log("llm", "CONTEXT_LENGTH_EVICTION", {"dropped": dropped}, "WARNING")
            if not dropped:
                raise
        return self.retry_handler.execute_with_retry(call)

    def send_message(self, messages: MessageFactory, model: str) -> str:
        """Non-streaming request; returns the reply text.

        Raises:
            LLMError: remediation was exhausted
        """
        def call() -> str:
            result = self.provider.chat(messages(), model=model)
            self._raise_for(result)
            return (result.get("message") or {}).get("content", "")

        return self._with_eviction(call)

    def stream_message(self, messages: MessageFactory, model: str,
                       on_chunk: Callable[[str], None]) -> str:
        """Streaming request; chunks go to ``on_chunk``, the full text is returned.

        Raises:
            LLMError: nothing was received and remediation was exhausted
        """
        debug_logger = get_logger()

        def call() -> str:
            received: List[str] = []

            def forward(chunk: str) -> None:
                received.append(chunk)
                on_chunk(chunk)

            result = self.provider.chat_stream(messages(), model=model, on_chunk=forward)
            partial = "".join(received)
            if "error" not in result:
                return (result.get("message") or {}).get("content", partial)

            error = self.provider.classify_error({"error": result["error"]})
            if partial:
                debug_logger.log("llm", "PARTIAL_RESPONSE", {
                    "error_type": error.error_type.value,
                    "error": error.message,
                    "received": len(partial),
                }, "WARNING")
                return partial
            raise error

        return self._with_eviction(call)

    def validate_model(self, model: str) -> bool:
        return self.provider.validate_model(model)

    def get_model_context_length(self, model: str) -> Optional[int]:
        return self.provider.get_model_context_length(model)
