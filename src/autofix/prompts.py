"""Prompt templates and response helpers for the patch-proposal step."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Sequence

PATCH_SYSTEM_PROMPT = "You are a careful code-mod bot."

_FENCED_DIFF = (
    re.compile(r"```diff[ \t]*\n(.*?)\n?```", re.DOTALL),
    re.compile(r"```patch[ \t]*\n(.*?)\n?```", re.DOTALL),
    re.compile(r"```[\w-]*[ \t]*\n(diff --git .*?)\n?```", re.DOTALL),
)
_SECTION_HEADER = re.compile(r"^diff --git ", re.MULTILINE)


def render_patch_prompt(
    *,
    issue_number: int,
    repository: str,
    test_path: Path | str,
    allowlist: Sequence[str],
    repo_root: Path,
    files: Sequence[str],
    max_files: int = 3,
) -> str:
    """Ask for a minimal unified diff that fixes the issue inside the allowlist."""
    allowed = ", ".join(allowlist)
    known_files = "\n".join(files)
    return (
        f"Goal: propose a **minimal unified diff** to fix issue #{issue_number} in repo \"{repository}\".\n"
        f"The failing test is at: {Path(test_path).as_posix()}\n"
        "\n"
        f"Only modify files under these allowed paths: {allowed}.\n"
        "If a change must be outside these, adjust the test or create helpers under allowed paths.\n"
        "\n"
        "Rules:\n"
        f"- Output **only** a single unified diff (git format) touching at most {max_files} files.\n"
        "- Prefer small, targeted changes.\n"
        "- If you add a new file, include it in the diff.\n"
        "- No commentary outside the diff; just the patch.\n"
        "\n"
        f"Repo root: {repo_root.as_posix()}\n"
        "Known files (truncated):\n"
        f"{known_files}"
    )


def extract_diff_text(content: str | None) -> str:
    """Return the diff carried by a model reply, unwrapping a fenced block."""
    text = (content or "").strip()
    if not text:
        return ""
    if "```" in text:
        for pattern in _FENCED_DIFF:
            match = pattern.search(text)
            if match:
                return match.group(1).strip()
    return text


def looks_like_unified_diff(text: str) -> bool:
    """True when ``text`` has at least one ``diff --git`` section header."""
    return bool(_SECTION_HEADER.search(text or ""))


__all__ = [
    "PATCH_SYSTEM_PROMPT",
    "extract_diff_text",
    "looks_like_unified_diff",
    "render_patch_prompt",
]
