"""Deterministic stand-in used when no remote model is configured."""

from __future__ import annotations

from typing import Any, Dict

from .llm_client import LLMClient

OFFLINE_STUB_OUTPUT = "/* stubbed-llm-output */"


class OfflineLLMClient(LLMClient):
    """Local stub that always answers with a fixed, non-diff payload."""

    def __init__(self, model: str = "offline") -> None:
        super().__init__(model, max_attempts=1)

    def _raw_invoke(self, payload: Dict[str, Any]) -> str:
        return OFFLINE_STUB_OUTPUT


__all__ = ["OFFLINE_STUB_OUTPUT", "OfflineLLMClient"]
