"""Git plumbing for one autofix run.

Only what the run needs: find the repository, set the commit identity, cut
the work branch, commit everything and push the branch.
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence


class GitError(RuntimeError):
    """Raised when a git command fails or the repository cannot be used."""

    def __init__(self, message: str, *, returncode: Optional[int] = None) -> None:
        super().__init__(message)
        self.returncode = returncode


@dataclass(slots=True)
class GitOutput:
    """Captured result of one ``git`` invocation."""

    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def message(self) -> str:
        return self.stderr.strip() or self.stdout.strip() or "no output"


def _invoke(args: Sequence[str], cwd: Path) -> GitOutput:
    process = subprocess.run(
        ["git", *args],
        cwd=cwd,
        capture_output=True,
        text=True,
        encoding="utf-8",
        errors="replace",
        check=False,
    )
    return GitOutput(tuple(args), process.returncode, process.stdout or "", process.stderr or "")


class GitRepository:
    """A git working tree rooted at ``root``."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root).resolve()
        if not (self.root / ".git").exists():
            raise GitError(f"Not a git repository: {self.root}")

    @classmethod
    def discover(cls, start: Path | str | None = None) -> "GitRepository":
        """Return the repository whose work tree contains ``start``."""
        origin = Path(start or Path.cwd()).resolve()
        result = _invoke(["rev-parse", "--show-toplevel"], origin)
        if not result.ok:
            raise GitError(f"Unable to locate a git repository from {origin}: {result.message}")
        return cls(result.stdout.strip())

    def git(self, *args: str, check: bool = True) -> GitOutput:
        """Run ``git args`` in the work tree; raise on failure when ``check``."""
        result = _invoke(args, self.root)
        if check and not result.ok:
            raise GitError(f"git {' '.join(args)} failed: {result.message}", returncode=result.returncode)
        return result

    def tracked_files(self) -> List[Path]:
        """Tracked paths relative to the root, in index order."""
        output = self.git("ls-files", "-z").stdout
        return [Path(entry) for entry in output.split("\0") if entry]

    def configure_identity(self, name: str, email: str) -> None:
        self.git("config", "user.name", name)
        self.git("config", "user.email", email)

    def current_branch(self) -> str | None:
        """Checked-out branch name, ``None`` when ``HEAD`` is detached."""
        result = self.git("branch", "--show-current", check=False)
        if not result.ok:
            return None
        return result.stdout.strip() or None

    def create_branch(self, branch: str) -> None:
        """Create ``branch`` at ``HEAD`` and switch to it."""
        self.git("switch", "-c", branch)

    def changed_paths(self) -> List[Path]:
        """Paths with staged, unstaged or untracked changes, sorted."""
        entries = self.git("status", "--porcelain", "-z", "--untracked-files=all").stdout.split("\0")
        paths: set[Path] = set()
        index = 0
        while index < len(entries):
            entry = entries[index]
            index += 1
            if len(entry) < 4:
                continue
            paths.add(Path(entry[3:]))
            if entry[0] in "RC":
                # -z emits the rename source as the following entry.
                index += 1
        return sorted(paths, key=Path.as_posix)

    def commit_all(self, message: str) -> str | None:
        """Stage every change and commit it.

        Returns the new commit SHA, or ``None`` when nothing was staged.
        """
        self.git("add", "--all")
        if self.git("diff", "--cached", "--quiet", check=False).ok:
            return None
        self.git("commit", "-m", message)
        return self.git("rev-parse", "HEAD").stdout.strip()

    def push(self, remote: str, branch: str, *, set_upstream: bool = False) -> None:
        args = ["push", "--set-upstream", remote, branch] if set_upstream else ["push", remote, branch]
        self.git(*args)


__all__ = ["GitError", "GitOutput", "GitRepository"]
