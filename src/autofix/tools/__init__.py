"""Tool integrations used by the autofix run."""

from .diff_parser import FileChange, Hunk, LineKind, LineOp, exists_under, parse_unified_diff
from .guardrail import GuardrailDecision, is_allowed, normalise_path, validate_paths
from .patch import (
    FileFailure,
    MissingBaseFileError,
    PatchError,
    PatchOutcome,
    PatchStatus,
    apply_file_change,
    apply_file_changes,
    apply_unified_diff,
)
from .test_runner import TestRunResult, TestStatus, run_tests
from .test_seed import SeededTest, seed_failing_test
from .vcs import GitError, GitRepository

__all__ = [
    "FileChange",
    "FileFailure",
    "GitError",
    "GitRepository",
    "GuardrailDecision",
    "Hunk",
    "LineKind",
    "LineOp",
    "MissingBaseFileError",
    "PatchError",
    "PatchOutcome",
    "PatchStatus",
    "SeededTest",
    "TestRunResult",
    "TestStatus",
    "apply_file_change",
    "apply_file_changes",
    "apply_unified_diff",
    "exists_under",
    "is_allowed",
    "normalise_path",
    "parse_unified_diff",
    "run_tests",
    "seed_failing_test",
    "validate_paths",
]
