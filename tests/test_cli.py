from __future__ import annotations

from pathlib import Path

import pytest
import yaml
from typer.testing import CliRunner

from autofix.cli import app

runner = CliRunner()

NEW_DOC_DIFF = (
    "diff --git a/docs/new.md b/docs/new.md\n"
    "new file mode 100644\n"
    "--- /dev/null\n"
    "+++ b/docs/new.md\n"
    "@@ -0,0 +1,2 @@\n"
    "+line1\n"
    "+line2\n"
)


def test_check_paths_accepts_and_rejects(tmp_path: Path) -> None:
    missing_config = str(tmp_path / "none.yml")

    accepted = runner.invoke(app, ["check-paths", "./docs/a.md", "src/b.py", "--config", missing_config])
    rejected = runner.invoke(app, ["check-paths", "docs/a.md", "../docs/a.md", "--allowlist", "docs/"])

    assert accepted.exit_code == 0, accepted.output
    assert "Accepted 2 path(s)." in accepted.output
    assert rejected.exit_code == 1
    assert "../docs/a.md" in rejected.output


def test_apply_writes_files_and_records_diff(tmp_path: Path) -> None:
    diff_path = tmp_path / "change.diff"
    diff_path.write_text(NEW_DOC_DIFF, encoding="utf-8")
    tree = tmp_path / "tree"
    tree.mkdir()

    result = runner.invoke(
        app,
        ["apply", str(diff_path), "--repo-root", str(tree), "--config", str(tmp_path / "none.yml")],
    )

    assert result.exit_code == 0, result.output
    assert "- docs/new.md" in result.output
    assert (tree / "docs" / "new.md").read_text(encoding="utf-8") == "line1\nline2"
    assert (tree / ".agent.diff").exists()


def test_apply_reads_stdin_and_rejects_outside_allowlist(tmp_path: Path) -> None:
    result = runner.invoke(
        app,
        [
            "apply",
            "-",
            "--repo-root",
            str(tmp_path),
            "--allowlist",
            "src/",
            "--no-record",
            "--config",
            str(tmp_path / "none.yml"),
        ],
        input=NEW_DOC_DIFF,
    )

    assert result.exit_code == 1
    assert "Rejected: diff touches non-allowlisted paths: docs/new.md" in result.output
    assert list(tmp_path.iterdir()) == []


def test_apply_reports_missing_diff_file(tmp_path: Path) -> None:
    result = runner.invoke(app, ["apply", str(tmp_path / "absent.diff"), "--config", str(tmp_path / "none.yml")])

    assert result.exit_code == 1
    assert "Failed to read diff" in result.output


def test_init_writes_defaults_once(tmp_path: Path) -> None:
    config_path = tmp_path / ".autofix.yml"

    first = runner.invoke(app, ["init", "--config", str(config_path)])
    second = runner.invoke(app, ["init", "--config", str(config_path)])

    assert first.exit_code == 0, first.output
    data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    assert data["conventions"]["allowlist"] == ["packages/", "src/", "apps/", "docs/", "CHANGELOG.md"]
    assert second.exit_code == 1


def test_invalid_config_exits_with_error(tmp_path: Path) -> None:
    config_path = tmp_path / "bad.yml"
    config_path.write_text("conventions:\n  unknown: 1\n", encoding="utf-8")

    result = runner.invoke(app, ["triage", "--config", str(config_path)])

    assert result.exit_code == 1
    assert "Invalid configuration" in result.output


def test_run_without_repository_is_a_local_noop(tiny_repo, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GITHUB_REPOSITORY", raising=False)

    result = runner.invoke(app, ["run", "--config", str(tiny_repo.config_path), "--no-use-remote"])

    assert result.exit_code == 0, result.output
    assert "Using offline stub client." in result.output
    assert "nothing to do" in result.output
    assert tiny_repo.git("status", "--porcelain") == ""


def test_triage_without_repository(tiny_repo, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GITHUB_REPOSITORY", raising=False)

    result = runner.invoke(app, ["triage", "--config", str(tiny_repo.config_path)])

    assert result.exit_code == 0, result.output
    assert "No repository configured" in result.output
