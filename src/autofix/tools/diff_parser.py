"""Unified diff parsing into per-file change descriptors."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Iterator, Sequence

PathExists = Callable[[str], bool]

_SECTION_PREFIX = "diff --git "
_NEW_PATH_PREFIX = "+++ b/"
_OLD_PATH_PREFIX = "--- a/"
_NEW_FILE_MARKER = "new file mode"
_HUNK_MARKER = re.compile(r"^@@ .*@@")


class LineKind(str, Enum):
    """Classification of a single hunk body line."""

    CONTEXT = "context"
    ADDED = "added"
    REMOVED = "removed"


@dataclass(slots=True)
class LineOp:
    """One line of a hunk with its marker character stripped."""

    kind: LineKind
    text: str

    @property
    def survives(self) -> bool:
        return self.kind is not LineKind.REMOVED


@dataclass(slots=True)
class Hunk:
    """Contiguous block of line operations between two ``@@`` markers."""

    lines: list[LineOp] = field(default_factory=list)

    def surviving_lines(self) -> list[str]:
        """Return added and context text in diff order."""
        return [line.text for line in self.lines if line.survives]


@dataclass(slots=True)
class FileChange:
    """Change descriptor for a single file section of a unified diff."""

    new_path: str
    old_path: str | None = None
    is_new_file: bool = False
    hunks: list[Hunk] = field(default_factory=list)

    @property
    def base_path(self) -> str:
        """Path the edit baseline is read from."""
        return self.old_path or self.new_path


def exists_under(root: Path | str) -> PathExists:
    """Build an existence probe resolving repository-relative paths under ``root``."""
    base = Path(root)

    def _exists(path: str) -> bool:
        return (base / path).exists()

    return _exists


def _split_lines(text: str) -> list[str]:
    r"""Split on ``\n`` only, treating ``\r\n`` as a single break."""
    lines = text.replace("\r\n", "\n").split("\n")
    if lines[-1] == "":
        lines.pop()
    return lines


def _split_sections(lines: Sequence[str]) -> Iterator[list[str]]:
    """Yield the lines following each ``diff --git`` header, header excluded."""
    current: list[str] | None = None
    for line in lines:
        if line.startswith(_SECTION_PREFIX):
            if current is not None:
                yield current
            current = []
            continue
        if current is not None:
            current.append(line)
    if current is not None:
        yield current


def _split_hunks(block: Sequence[str]) -> tuple[list[str], list[list[str]]]:
    """Split a section into its header lines and the raw body of each hunk."""
    header: list[str] = []
    bodies: list[list[str]] = []
    for line in block:
        if _HUNK_MARKER.match(line):
            bodies.append([])
            continue
        if bodies:
            bodies[-1].append(line)
        else:
            header.append(line)
    return header, bodies


def _header_value(header: Sequence[str], prefix: str) -> str | None:
    for line in header:
        if line.startswith(prefix):
            value = line[len(prefix):].rstrip()
            return value or None
    return None


def _classify(line: str) -> LineOp | None:
    """Map a hunk body line to a :class:`LineOp`; ``None`` drops it."""
    if line.startswith("+"):
        return LineOp(LineKind.ADDED, line[1:])
    if line.startswith("-"):
        return LineOp(LineKind.REMOVED, line[1:])
    if line.startswith("\\"):
        return None
    if line.startswith(" "):
        return LineOp(LineKind.CONTEXT, line[1:])
    return LineOp(LineKind.CONTEXT, line)


def _parse_hunk(body: Sequence[str]) -> Hunk:
    ops = (_classify(line) for line in body)
    return Hunk(lines=[op for op in ops if op is not None])


def _parse_section(block: Sequence[str], exists: PathExists) -> FileChange | None:
    header, bodies = _split_hunks(block)
    new_path = _header_value(header, _NEW_PATH_PREFIX)
    if new_path is None:
        return None
    old_path = _header_value(header, _OLD_PATH_PREFIX) or new_path
    marked_new = any(line.startswith(_NEW_FILE_MARKER) for line in header)
    return FileChange(
        new_path=new_path,
        old_path=old_path,
        is_new_file=marked_new or not exists(new_path),
        hunks=[_parse_hunk(body) for body in bodies],
    )


def parse_unified_diff(diff_text: str | None, *, exists: PathExists | None = None) -> list[FileChange]:
    """Parse ``diff_text`` into file changes, best-effort.

    Sections without a ``+++ b/<path>`` header are skipped and text without
    any ``diff --git`` header yields an empty list. ``exists`` decides
    whether a target is already present; it defaults to probing the current
    working directory.
    """
    if not diff_text:
        return []
    probe = exists or exists_under(Path.cwd())
    lines = _split_lines(diff_text)
    changes: list[FileChange] = []
    for block in _split_sections(lines):
        change = _parse_section(block, probe)
        if change is not None:
            changes.append(change)
    return changes


__all__ = [
    "FileChange",
    "Hunk",
    "LineKind",
    "LineOp",
    "PathExists",
    "exists_under",
    "parse_unified_diff",
]
