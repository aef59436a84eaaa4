from __future__ import annotations

import subprocess
import sys
import textwrap
from dataclasses import dataclass
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


@dataclass(slots=True)
class TinyRepo:
    """Fixture payload representing the synthetic repository under test."""

    root: Path
    config_path: Path

    def git(self, *args: str) -> str:
        """Run ``git`` inside the fixture repository and return stdout."""

        completed = subprocess.run(
            ["git", *args],
            cwd=self.root,
            check=True,
            capture_output=True,
            text=True,
        )
        return completed.stdout


@pytest.fixture()
def tiny_repo(tmp_path: Path) -> TinyRepo:
    """Create a tiny git repository with an autofix config and a docs tree."""

    repo_root = tmp_path / "tiny-repo"
    repo_root.mkdir()

    def run_git(*cmd: str) -> None:
        subprocess.run(
            ["git", *cmd],
            cwd=repo_root,
            check=True,
            capture_output=True,
            text=True,
        )

    run_git("init", "-b", "main")
    run_git("config", "user.email", "agent@example.com")
    run_git("config", "user.name", "Autofix Tests")

    (repo_root / "docs").mkdir()
    (repo_root / "docs" / "readme.md").write_text("old line\nkeep me\n", encoding="utf-8")

    src_dir = repo_root / "src" / "tiny_app"
    src_dir.mkdir(parents=True)
    (src_dir / "__init__.py").write_text("", encoding="utf-8")
    (src_dir / "convert.py").write_text(
        textwrap.dedent(
            """
            def html_to_md(html: str) -> str:
                return html
            """
        ).lstrip(),
        encoding="utf-8",
    )

    (repo_root / ".autofix.yml").write_text(
        textwrap.dedent(
            """
            project:
              repository: ""
            conventions:
              whitelistPaths:
                - src/
                - docs/
                - tests/
              testCmd: pytest -q tests/agent
            models:
              default: gpt-4o-mini-offline
            """
        ).lstrip(),
        encoding="utf-8",
    )

    run_git("add", ".")
    run_git("commit", "-m", "Initial tiny repo state")

    return TinyRepo(root=repo_root, config_path=repo_root / ".autofix.yml")
