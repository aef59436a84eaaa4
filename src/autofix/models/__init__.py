"""Convenience exports for language-model client implementations."""

from .llm_client import (
    LLMClient,
    LLMClientError,
    LLMRequest,
    LLMResponse,
    LLMResponseFormatError,
    LLMTransportError,
)
from .offline import OFFLINE_STUB_OUTPUT, OfflineLLMClient
from .openai_chat import OpenAIChatClient

__all__ = [
    "LLMClient",
    "LLMClientError",
    "LLMRequest",
    "LLMResponse",
    "LLMResponseFormatError",
    "LLMTransportError",
    "OFFLINE_STUB_OUTPUT",
    "OfflineLLMClient",
    "OpenAIChatClient",
]
