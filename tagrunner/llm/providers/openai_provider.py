#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""OpenAI-compatible LLM provider (OpenRouter, OpenAI)."""

from typing import Any, Callable, Dict, List, Optional

import openai
import requests

from tagrunner import config
from tagrunner.debug_logger import get_logger
from .base import LLMProvider


def _error_payload(error: Exception) -> Dict[str, Any]:
    return {"message": str(error), "code": getattr(error, "status_code", None)}


class OpenAIProvider(LLMProvider):
    """Chat completions through the ``openai`` client.

    With ``base_url`` pointing at OpenRouter this serves every model OpenRouter
    routes to. Requests have no timeout and the client's own retries are
    disabled; retrying is the caller's job.
    """

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None, name: str = "openai"):
        super().__init__()
        self.name = name
        self.api_key = api_key or ""
        self.base_url = base_url
        self._client = None
        self._model_catalog: Optional[Dict[str, Dict[str, Any]]] = None

    @classmethod
    def for_openrouter(cls) -> "OpenAIProvider":
        return cls(api_key=config.OPENROUTER_API_KEY, base_url=config.OPENROUTER_BASE_URL, name="openrouter")

    def _get_client(self):
        """Lazy initialization of the OpenAI client."""
        if self._client is None:
            self._client = openai.OpenAI(
                api_key=self.api_key or "missing",
                base_url=self.base_url,
                timeout=None,
                max_retries=0,
            )
        return self._client

    def chat(
        self,
        messages: List[Dict[str, Any]],
        model: Optional[str] = None,
        **kwargs
    ) -> Dict[str, Any]:
        """Send a non-streaming chat request."""
        debug_logger = get_logger()
        model_name = model or config.DEFAULT_MODEL
        debug_logger.log_llm_request(model_name, messages)

        try:
            response = self._get_client().chat.completions.create(
                model=model_name,
                messages=messages,
                temperature=kwargs.get("temperature", config.LLM_TEMPERATURE),
            )
        except openai.OpenAIError as e:
            debug_logger.log("llm", "OPENAI_ERROR", {"error": str(e)}, "ERROR")
            return {"error": _error_payload(e)}

        content = (response.choices[0].message.content or "") if response.choices else ""
        usage = {
            "prompt": response.usage.prompt_tokens if response.usage else 0,
            "completion": response.usage.completion_tokens if response.usage else 0,
            "total": response.usage.total_tokens if response.usage else 0,
        }
        debug_logger.log_llm_response(model_name, content, usage)
        return {"message": {"role": "assistant", "content": content}, "usage": usage}

    def chat_stream(
        self,
        messages: List[Dict[str, Any]],
        model: Optional[str] = None,
        on_chunk: Optional[Callable[[str], None]] = None,
        **kwargs
    ) -> Dict[str, Any]:
        """Stream chat responses, forwarding each delta to ``on_chunk``."""
        debug_logger = get_logger()
        model_name = model or config.DEFAULT_MODEL
        debug_logger.log_llm_request(model_name, messages)

        accumulated = ""
        try:
            stream = self._get_client().chat.completions.create(
                model=model_name,
                messages=messages,
                temperature=kwargs.get("temperature", config.LLM_TEMPERATURE),
                stream=True,
            )
            for chunk in stream:
                # OpenRouter reports mid-stream failures as an error field on the chunk
                error = getattr(chunk, "error", None)
                if error:
                    return {
                        "message": {"role": "assistant", "content": accumulated},
                        "error": error,
                    }

                delta = chunk.choices[0].delta if chunk.choices else None
                if delta is None or not delta.content:
                    continue
                accumulated += delta.content
                if on_chunk:
                    on_chunk(delta.content)
        except openai.OpenAIError as e:
            debug_logger.log("llm", "OPENAI_STREAM_ERROR", {"error": str(e)}, "ERROR")
            return {
                "message": {"role": "assistant", "content": accumulated},
                "error": _error_payload(e),
            }

        debug_logger.log_llm_response(model_name, accumulated)
        return {"message": {"role": "assistant", "content": accumulated}, "usage": {}}

    def _load_model_catalog(self) -> Dict[str, Dict[str, Any]]:
        """Fetch ``/models`` once and index it by model id."""
        if self._model_catalog is not None:
            return self._model_catalog

        base_url = (self.base_url or "https://api.openai.com/v1").rstrip("/")
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        try:
            response = requests.get(f"{base_url}/models", headers=headers, timeout=10)
            response.raise_for_status()
            data = response.json().get("data", [])
        except (requests.exceptions.RequestException, ValueError) as e:
            get_logger().log("llm", "MODEL_CATALOG_ERROR", {"error": str(e)}, "WARNING")
            return {}

        self._model_catalog = {item["id"]: item for item in data if isinstance(item, dict) and "id" in item}
        return self._model_catalog

    def validate_model(self, model: str) -> bool:
        catalog = self._load_model_catalog()
        if not catalog:
            # Catalog unavailable; let the first request decide
            return True
        return model in catalog

    def get_model_context_length(self, model: str) -> Optional[int]:
        info = self._load_model_catalog().get(model)
        if not info:
            return None
        length = info.get("context_length") or (info.get("top_provider") or {}).get("context_length")
        return int(length) if length else None
