"""Apply parsed unified diffs to the working tree behind the path guardrail.

Edits are not spliced positionally. Every hunk's surviving lines (added
and context, in hunk order then line order) become the complete new body
of the target file; removed lines are dropped and never used to locate a
position. Proposed diffs are expected to be small and to cover short
files, so a diff that only shows a fragment of a larger file replaces the
whole file with that fragment.
"""

from __future__ import annotations

import json
import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Literal, Mapping, Sequence

from .diff_parser import FileChange, PathExists, exists_under, parse_unified_diff
from .guardrail import GuardrailDecision, validate_paths

LOGGER = logging.getLogger(__name__)
TELEMETRY_LOGGER = logging.getLogger("autofix.telemetry")

RECONSTRUCT_FROM_SURVIVING_LINES = "reconstruct-from-surviving-lines"

PatchStatus = Literal["applied", "no-changes", "rejected"]


class PatchError(RuntimeError):
    """Raised when a file change cannot be applied."""

    def __init__(self, message: str, *, details: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details: dict[str, Any] = dict(details or {})


class MissingBaseFileError(PatchError):
    """Raised when an edit's baseline file does not exist."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Baseline file for edit does not exist: {path}", details={"path": path})
        self.path = path


@dataclass(slots=True)
class FileFailure:
    """A change that was skipped while its siblings were still applied."""

    path: str
    error: str


@dataclass(slots=True)
class PatchOutcome:
    """Result of pushing one raw diff through parse, guardrail and apply."""

    status: PatchStatus
    applied_paths: tuple[Path, ...] = ()
    failures: tuple[FileFailure, ...] = ()
    reason: str | None = None
    decision: GuardrailDecision | None = None
    strategy: str = RECONSTRUCT_FROM_SURVIVING_LINES

    @property
    def applied_count(self) -> int:
        return len(self.applied_paths)

    @property
    def usable(self) -> bool:
        """Whether the diff produced an accepted, non-empty change set."""
        return self.status == "applied"

    @classmethod
    def no_changes(cls, reason: str) -> "PatchOutcome":
        return cls(status="no-changes", reason=reason)

    @classmethod
    def rejected(cls, decision: GuardrailDecision) -> "PatchOutcome":
        return cls(status="rejected", reason=decision.reason, decision=decision)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "strategy": self.strategy,
            "applied_paths": [path.as_posix() for path in self.applied_paths],
            "failures": [{"path": item.path, "error": item.error} for item in self.failures],
            "reason": self.reason,
        }


def _serialise_event_value(value: Any) -> Any:
    """Convert telemetry payload values into JSON-friendly representations."""
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, Path):
        return value.as_posix()
    if isinstance(value, (list, tuple, set)):
        return [_serialise_event_value(item) for item in value]
    if isinstance(value, Mapping):
        return {str(key): _serialise_event_value(child) for key, child in value.items()}
    return str(value)


def _emit_patch_event(event: str, **fields: Any) -> None:
    """Log one structured telemetry event as compact JSON."""
    payload = {"event": event, "timestamp": datetime.now(timezone.utc).isoformat()}
    for key, value in fields.items():
        payload[key] = _serialise_event_value(value)
    TELEMETRY_LOGGER.info(json.dumps(payload, separators=(",", ":"), ensure_ascii=True))


def reconstruct_from_surviving_lines(change: FileChange) -> str:
    """Join the added and context lines of every hunk into one file body."""
    lines: list[str] = []
    for hunk in change.hunks:
        lines.extend(hunk.surviving_lines())
    return "\n".join(lines)


def _resolve_target(root: Path, relative: str) -> Path:
    target = (root / relative).resolve()
    try:
        target.relative_to(root)
    except ValueError:
        raise PatchError(f"Patch target escapes repository root: {relative}", details={"path": relative}) from None
    return target


def _baseline_path(root: Path, change: FileChange) -> Path:
    source = _resolve_target(root, change.base_path)
    if not source.is_file():
        raise MissingBaseFileError(change.base_path)
    return source


def render_file_change(change: FileChange, *, repo_root: Path | str) -> str:
    """Compute the content ``change`` would leave at its target path."""
    root = Path(repo_root).resolve()
    if change.is_new_file:
        body = reconstruct_from_surviving_lines(change)
        if body.startswith("\n"):
            body = body[1:]
        return body
    source = _baseline_path(root, change)
    if not change.hunks:
        # Undecodable bytes survive the round trip through apply_file_change.
        return source.read_bytes().decode("utf-8", errors="surrogateescape")
    return reconstruct_from_surviving_lines(change)


def apply_file_change(change: FileChange, *, repo_root: Path | str) -> Path:
    """Write the reconstructed content of ``change`` and return the target path.

    Raises :class:`MissingBaseFileError` when an edit's baseline is absent.
    ``OSError`` from the file system propagates unchanged.
    """
    root = Path(repo_root).resolve()
    content = render_file_change(change, repo_root=root)
    target = _resolve_target(root, change.new_path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(content.encode("utf-8", errors="surrogateescape"))
    LOGGER.debug(
        "Wrote %s (%s, %d bytes)",
        change.new_path,
        "new file" if change.is_new_file else "edit",
        len(content),
    )
    return target.relative_to(root)


def apply_file_changes(changes: Sequence[FileChange], *, repo_root: Path | str) -> PatchOutcome:
    """Apply ``changes`` in order; a missing baseline skips only that change.

    Files written before a failure are kept, so a multi-file diff can leave
    the tree partially patched.
    """
    if not changes:
        return PatchOutcome.no_changes("diff contained no applicable file sections")

    duplicates = sorted(path for path, count in Counter(c.new_path for c in changes).items() if count > 1)
    if duplicates:
        LOGGER.warning("Diff touches %s more than once; the last section wins.", ", ".join(duplicates))

    applied: list[Path] = []
    failures: list[FileFailure] = []
    for change in changes:
        try:
            written = apply_file_change(change, repo_root=repo_root)
        except MissingBaseFileError as error:
            LOGGER.warning("Skipping %s: %s", change.new_path, error)
            failures.append(FileFailure(path=change.new_path, error=str(error)))
            _emit_patch_event("patch_file_failed", path=change.new_path, error=str(error))
            continue
        applied.append(written)
        _emit_patch_event("patch_file_applied", path=written, new_file=change.is_new_file)

    return PatchOutcome(
        status="applied",
        applied_paths=tuple(dict.fromkeys(applied)),
        failures=tuple(failures),
    )


def apply_unified_diff(
    diff_text: str,
    *,
    repo_root: Path | str,
    allowlist: Iterable[str],
    record_path: Path | str | None = None,
    exists: PathExists | None = None,
) -> PatchOutcome:
    """Parse, gate and apply ``diff_text`` against ``repo_root``.

    The guardrail is evaluated once for the whole diff before anything is
    written. When accepted, the raw diff is persisted to ``record_path``
    (relative paths resolve under ``repo_root``) before the changes are
    applied.
    """
    root = Path(repo_root).resolve()
    changes = parse_unified_diff(diff_text, exists=exists or exists_under(root))
    if not changes:
        _emit_patch_event("patch_skipped", reason="no-changes")
        return PatchOutcome.no_changes("diff contained no applicable file sections")

    _emit_patch_event(
        "patch_parsed",
        paths=[change.new_path for change in changes],
        new_files=[change.new_path for change in changes if change.is_new_file],
    )

    decision = validate_paths((change.new_path for change in changes), allowlist)
    if not decision.accepted:
        LOGGER.info("Rejecting diff: %s", decision.reason)
        _emit_patch_event("patch_rejected", rejected=decision.rejected_paths, allowlist=decision.allowlist)
        return PatchOutcome.rejected(decision)

    if record_path is not None:
        record = Path(record_path)
        if not record.is_absolute():
            record = root / record
        record.parent.mkdir(parents=True, exist_ok=True)
        record.write_text(diff_text, encoding="utf-8")

    outcome = apply_file_changes(changes, repo_root=root)
    outcome.decision = decision
    _emit_patch_event("patch_applied", outcome=outcome.to_dict())
    return outcome


__all__ = [
    "FileFailure",
    "MissingBaseFileError",
    "PatchError",
    "PatchOutcome",
    "PatchStatus",
    "RECONSTRUCT_FROM_SURVIVING_LINES",
    "apply_file_change",
    "apply_file_changes",
    "apply_unified_diff",
    "reconstruct_from_surviving_lines",
    "render_file_change",
]
