"""Client for the OpenAI chat completions endpoint."""

from __future__ import annotations

import json
import os
import urllib.error
import urllib.request
from typing import Any, Callable, Dict, Optional

from .llm_client import LLMClient, LLMResponseFormatError, LLMTransportError

__all__ = ["DEFAULT_ENDPOINT", "OpenAIChatClient", "message_content"]

DEFAULT_ENDPOINT = "https://api.openai.com/v1/chat/completions"

Transport = Callable[[Dict[str, Any]], str]


def message_content(body: str) -> Optional[str]:
    """Text of the first choice in a completion body.

    Bodies that are not JSON are returned unchanged so plain-text transports
    (and tests) can hand back a diff directly.
    """
    if not body:
        return None
    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        return body
    try:
        choice = data["choices"][0]
    except (KeyError, IndexError, TypeError):
        return None
    if not isinstance(choice, dict):
        return None
    message = choice.get("message")
    if isinstance(message, dict) and isinstance(message.get("content"), str):
        return message["content"]
    text = choice.get("text")
    return text if isinstance(text, str) else None


class OpenAIChatClient(LLMClient):
    """Post chat requests and return the first choice's message text."""

    def __init__(
        self,
        *,
        model: str = "gpt-4o-mini",
        api_key: Optional[str] = None,
        base_url: str = DEFAULT_ENDPOINT,
        timeout: float = 120.0,
        transport: Optional[Transport] = None,
        max_attempts: int = 1,
        retry_delay: float = 0.5,
    ) -> None:
        super().__init__(model, max_attempts=max_attempts, retry_delay=retry_delay)
        self._api_key = api_key or os.environ.get("OPENAI_API_KEY", "")
        if transport is None and not self._api_key:
            raise ValueError("OPENAI_API_KEY is required for the HTTP transport.")
        self._endpoint = base_url
        self._timeout = timeout
        self._send = transport or self._post

    def _raw_invoke(self, payload: Dict[str, Any]) -> str:
        try:
            body = self._send(payload)
        except LLMTransportError:
            raise
        except Exception as error:
            raise LLMTransportError(f"Chat completion request failed: {error}") from error

        content = message_content(body)
        if content is None:
            raise LLMResponseFormatError("Chat completion carried no message content.")
        return content

    def _post(self, payload: Dict[str, Any]) -> str:
        request = urllib.request.Request(
            self._endpoint,
            data=json.dumps(payload).encode("utf-8"),
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Content-Type": "application/json",
            },
            method="POST",
        )
        try:
            with urllib.request.urlopen(request, timeout=self._timeout) as response:
                return response.read().decode("utf-8")
        except urllib.error.HTTPError as error:  # pragma: no cover - network-dependent
            detail = error.read().decode("utf-8", errors="replace")
            raise LLMTransportError(f"Chat completion returned HTTP {error.code}: {detail}") from error
        except (urllib.error.URLError, TimeoutError) as error:  # pragma: no cover - network-dependent
            raise LLMTransportError(f"Chat completion endpoint unreachable: {error}") from error
