"""Client base class shared by all language-model integrations."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

LOGGER = logging.getLogger(__name__)

__all__ = [
    "LLMClient",
    "LLMClientError",
    "LLMRequest",
    "LLMResponse",
    "LLMResponseFormatError",
    "LLMTransportError",
]


class LLMClientError(RuntimeError):
    """Base error for language-model failures."""


class LLMTransportError(LLMClientError):
    """The request never produced a response (network, HTTP, timeout)."""


class LLMResponseFormatError(LLMClientError):
    """The provider answered but the reply carried no message text."""


@dataclass(slots=True)
class LLMRequest:
    """One chat turn: an optional system prompt plus the user prompt."""

    prompt: str
    model: Optional[str] = None
    system_prompt: Optional[str] = None
    temperature: float = 0.0

    def to_payload(self, default_model: str) -> Dict[str, Any]:
        """Render the chat completions request body."""
        messages: List[Dict[str, str]] = []
        if self.system_prompt:
            messages.append({"role": "system", "content": self.system_prompt})
        messages.append({"role": "user", "content": self.prompt})
        return {
            "model": self.model or default_model,
            "temperature": self.temperature,
            "messages": messages,
        }


@dataclass(slots=True)
class LLMResponse:
    """Text returned by the model together with the model that produced it."""

    content: str
    model: str


class LLMClient:
    """Turns an :class:`LLMRequest` into text through ``_raw_invoke``."""

    def __init__(self, model: str, *, max_attempts: int = 1, retry_delay: float = 0.5) -> None:
        self._model = model
        self._max_attempts = max(1, max_attempts)
        self._retry_delay = retry_delay

    @property
    def model(self) -> str:
        return self._model

    def complete(self, request: LLMRequest) -> LLMResponse:
        """Invoke the model and return its message text.

        Only transport errors are retried, and only when ``max_attempts`` > 1.
        """
        payload = request.to_payload(self._model)
        attempt = 1
        while True:
            try:
                content = self._raw_invoke(payload)
            except LLMTransportError as error:
                if attempt >= self._max_attempts:
                    raise
                LOGGER.warning("Model call failed (attempt %d/%d): %s", attempt, self._max_attempts, error)
                attempt += 1
                time.sleep(self._retry_delay)
                continue
            return LLMResponse(content=content, model=str(payload["model"]))

    def _raw_invoke(self, payload: Dict[str, Any]) -> str:
        raise NotImplementedError
