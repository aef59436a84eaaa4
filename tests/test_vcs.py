from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from autofix.tools.vcs import GitError, GitRepository


def test_rejects_non_repository(tmp_path: Path) -> None:
    with pytest.raises(GitError):
        GitRepository(tmp_path)


def test_discover_walks_up_from_subdirectory(tiny_repo) -> None:
    repo = GitRepository.discover(tiny_repo.root / "src" / "tiny_app")

    assert repo.root == tiny_repo.root.resolve()


def test_branch_commit_and_tracked_paths(tiny_repo) -> None:
    repo = GitRepository(tiny_repo.root)
    repo.configure_identity("agent-bot", "agent-bot@users.noreply.github.com")
    repo.create_branch("agent/1-20250101T000000Z")

    assert repo.current_branch() == "agent/1-20250101T000000Z"
    assert repo.commit_all("nothing yet") is None

    (tiny_repo.root / "docs" / "extra.md").write_text("more\n", encoding="utf-8")
    assert repo.changed_paths() == [Path("docs/extra.md")]

    sha = repo.commit_all("test(agent): failing test for #1 + minimal patch")

    assert sha is not None and len(sha) == 40
    assert repo.changed_paths() == []
    assert Path("docs/extra.md") in repo.tracked_files()
    assert tiny_repo.git("log", "-1", "--format=%an").strip() == "agent-bot"


def test_push_to_local_remote(tiny_repo, tmp_path: Path) -> None:
    remote = tmp_path / "remote.git"
    subprocess.run(["git", "init", "--bare", str(remote)], check=True, capture_output=True)
    repo = GitRepository(tiny_repo.root)
    repo.git("remote", "add", "origin", str(remote))
    repo.create_branch("agent/2-x")

    repo.push("origin", "agent/2-x")

    listing = subprocess.run(
        ["git", "branch", "--list", "agent/2-x"],
        cwd=remote,
        check=True,
        capture_output=True,
        text=True,
    )
    assert "agent/2-x" in listing.stdout


def test_failed_git_command_raises(tiny_repo) -> None:
    repo = GitRepository(tiny_repo.root)

    with pytest.raises(GitError, match="switch"):
        repo.create_branch("main")
