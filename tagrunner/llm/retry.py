#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Retry logic for LLM provider requests."""

import time
from typing import Any, Callable, Optional

from tagrunner import config
from tagrunner.debug_logger import get_logger
from tagrunner.errors import LLMError, classify_llm_error


class RetryHandler:
    """Retries retryable LLM errors with a fixed delay.

    Only NETWORK and RATE_LIMIT errors are retried. ``max_retries`` counts
    attempts including the first one.
    """

    def __init__(self, max_retries: Optional[int] = None, delay: Optional[float] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.max_retries = config.LLM_MAX_RETRIES if max_retries is None else max_retries
        self.delay = config.LLM_RETRY_DELAY_SECONDS if delay is None else delay
        self._sleep = sleep

    def should_retry(self, error: LLMError, attempt: int) -> bool:
        """Decide whether ``attempt`` (1-indexed) may be followed by another."""
        logger = get_logger()
        if attempt >= self.max_retries:
            logger.info(f"Max retries ({self.max_retries}) exceeded")
            return False
        if not error.retryable:
            logger.info(f"Error is not retryable: {error.error_type.value}")
            return False
        return True

    def execute_with_retry(self, func: Callable[..., Any], *args, **kwargs) -> Any:
        """Call ``func`` until it succeeds or the error is final.

        Raises:
            LLMError: the classified last error
        """
        logger = get_logger()
        attempt = 1
        while True:
            try:
                result = func(*args, **kwargs)
                if attempt > 1:
                    logger.info(f"Retry successful on attempt {attempt}")
                return result
            except Exception as e:
                error = classify_llm_error(e)
                logger.warning(f"Attempt {attempt} failed: {error.error_type.value}: {error}")
                if not self.should_retry(error, attempt):
                    if error is e:
                        raise
                    raise error from e

                logger.info(f"Retrying in {self.delay}s...")
                self._sleep(self.delay)
                attempt += 1
