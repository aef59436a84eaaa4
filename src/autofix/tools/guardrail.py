"""Allowlist guard rails applied to every path a proposed diff touches."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Iterable

_DOT_PREFIX = re.compile(r"^\.[/\\]")


@dataclass(slots=True, frozen=True)
class GuardrailDecision:
    """Verdict for a whole diff: every path allowed, or nothing applied."""

    accepted: bool
    rejected_paths: tuple[str, ...] = ()
    allowlist: tuple[str, ...] = ()

    @property
    def reason(self) -> str | None:
        if self.accepted:
            return None
        joined = ", ".join(self.rejected_paths)
        return f"diff touches non-allowlisted paths: {joined}"


def normalise_path(path: str) -> str:
    """Strip a single leading ``./`` or ``.\\`` prefix."""
    return _DOT_PREFIX.sub("", path)


def _is_unsafe(path: str) -> bool:
    """Absolute paths, ``..`` segments and ``.git`` targets are never writable."""
    candidate = path.replace("\\", "/")
    if candidate.startswith("/") or re.match(r"^[A-Za-z]:/", candidate):
        return True
    parts = PurePosixPath(candidate).parts
    if any(part == ".." for part in parts):
        return True
    return bool(parts) and parts[0] == ".git"


def _matches(path: str, prefixes: Iterable[str]) -> bool:
    candidate = normalise_path(path)
    if not candidate or _is_unsafe(candidate):
        return False
    return any(candidate.startswith(prefix) for prefix in prefixes if prefix)


def is_allowed(path: str, allowlist: Iterable[str]) -> bool:
    """Return ``True`` when ``path`` starts with any normalised allowlist prefix.

    Matching is a plain string prefix test, so ``src`` also admits
    ``src-old/``.
    """
    return _matches(path, (normalise_path(prefix) for prefix in allowlist if prefix))


def validate_paths(paths: Iterable[str], allowlist: Iterable[str]) -> GuardrailDecision:
    """Accept the set of ``paths`` only when every entry is allowlisted."""
    prefixes = tuple(dict.fromkeys(normalise_path(prefix) for prefix in allowlist if prefix))
    ordered = sorted(set(paths))
    rejected = tuple(path for path in ordered if not _matches(path, prefixes))
    return GuardrailDecision(accepted=not rejected, rejected_paths=rejected, allowlist=prefixes)


__all__ = ["GuardrailDecision", "is_allowed", "normalise_path", "validate_paths"]
