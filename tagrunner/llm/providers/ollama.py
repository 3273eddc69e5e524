#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Ollama LLM provider."""

import json
from typing import Any, Callable, Dict, List, Optional

import requests

from tagrunner import config
from tagrunner.debug_logger import get_logger
from .base import LLMProvider


class OllamaProvider(LLMProvider):
    """Local Ollama server over its ``/api`` HTTP endpoints."""

    def __init__(self, base_url: Optional[str] = None):
        super().__init__()
        self.name = "ollama"
        self.base_url = (base_url or config.OLLAMA_BASE_URL).rstrip("/")

    def _payload(self, messages: List[Dict[str, Any]], model: str, stream: bool, **kwargs) -> Dict[str, Any]:
        return {
            "model": model,
            "messages": messages,
            "stream": stream,
            "options": {"temperature": kwargs.get("temperature", config.LLM_TEMPERATURE)},
        }

    def chat(
        self,
        messages: List[Dict[str, Any]],
        model: Optional[str] = None,
        **kwargs
    ) -> Dict[str, Any]:
        debug_logger = get_logger()
        model_name = model or config.DEFAULT_MODEL
        debug_logger.log_llm_request(model_name, messages)

        try:
            # No timeout: generation may take arbitrarily long
            response = requests.post(
                f"{self.base_url}/api/chat",
                json=self._payload(messages, model_name, False, **kwargs),
                timeout=None,
            )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.HTTPError as e:
            return {"error": {"message": f"{e}: {e.response.text if e.response is not None else ''}",
                              "code": e.response.status_code if e.response is not None else None}}
        except (requests.exceptions.RequestException, ValueError) as e:
            return {"error": {"message": f"Ollama request failed: {e}"}}

        if "error" in data:
            return {"error": data["error"]}

        content = (data.get("message") or {}).get("content", "")
        usage = {
            "prompt": data.get("prompt_eval_count", 0),
            "completion": data.get("eval_count", 0),
        }
        usage["total"] = usage["prompt"] + usage["completion"]
        debug_logger.log_llm_response(model_name, content, usage)
        return {"message": {"role": "assistant", "content": content}, "usage": usage}

    def chat_stream(
        self,
        messages: List[Dict[str, Any]],
        model: Optional[str] = None,
        on_chunk: Optional[Callable[[str], None]] = None,
        **kwargs
    ) -> Dict[str, Any]:
        """Stream chat responses from Ollama's newline-delimited JSON."""
        debug_logger = get_logger()
        model_name = model or config.DEFAULT_MODEL
        debug_logger.log_llm_request(model_name, messages)

        accumulated = ""
        try:
            response = requests.post(
                f"{self.base_url}/api/chat",
                json=self._payload(messages, model_name, True, **kwargs),
                timeout=None,
                stream=True,
            )
            response.raise_for_status()

            for line in response.iter_lines():
                if not line:
                    continue
                try:
                    chunk_data = json.loads(line)
                except json.JSONDecodeError:
                    continue

                if "error" in chunk_data:
                    return {
                        "message": {"role": "assistant", "content": accumulated},
                        "error": chunk_data["error"],
                    }

                content = (chunk_data.get("message") or {}).get("content", "")
                if content:
                    accumulated += content
                    if on_chunk:
                        on_chunk(content)
                if chunk_data.get("done", False):
                    break
        except requests.exceptions.RequestException as e:
            return {
                "message": {"role": "assistant", "content": accumulated},
                "error": {"message": f"Streaming error: {e}"},
            }

        debug_logger.log_llm_response(model_name, accumulated)
        return {"message": {"role": "assistant", "content": accumulated}, "usage": {}}

    def validate_model(self, model: str) -> bool:
        try:
            response = requests.get(f"{self.base_url}/api/tags", timeout=10)
            response.raise_for_status()
            names = [item["name"] for item in response.json().get("models", [])]
        except (requests.exceptions.RequestException, ValueError, KeyError):
            return False
        return model in names or f"{model}:latest" in names

    def get_model_context_length(self, model: str) -> Optional[int]:
        try:
            response = requests.post(f"{self.base_url}/api/show", json={"model": model}, timeout=10)
            response.raise_for_status()
            model_info = response.json().get("model_info") or {}
        except (requests.exceptions.RequestException, ValueError):
            return None

        for key, value in model_info.items():
            if key.endswith(".context_length"):
                return int(value)
        return None
