"""CLI commands for running the issue autofix loop and its patch tooling."""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

import typer

from .config import DEFAULT_CONFIG_NAME, AgentConfig, ConfigError, dump_config, load_config
from .github import GitHubClient, GitHubError, parse_repository, select_ready_issue
from .models import LLMClient, LLMClientError, OfflineLLMClient, OpenAIChatClient
from .orchestrator import Orchestrator, RunResult
from .tools.guardrail import validate_paths
from .tools.patch import PatchError, PatchOutcome, apply_unified_diff
from .tools.vcs import GitError, GitRepository

APP_HELP = "Turn triaged issues into failing tests and minimal patches."

app = typer.Typer(help=APP_HELP)

_CONFIG_OPTION_HELP = "Path to the autofix configuration file."


def _configure_logging(level: str) -> None:
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise typer.BadParameter(f"Unknown log level: {level}")
    logging.basicConfig(level=numeric, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def _load(config: str) -> AgentConfig:
    try:
        return load_config(Path(config))
    except ConfigError as error:
        typer.echo(str(error))
        raise typer.Exit(code=1) from error


def _is_offline_model(model_name: str) -> bool:
    key = model_name.strip().lower()
    return key == "offline" or key.endswith("-offline")


def _build_client(config: AgentConfig, *, use_remote: bool) -> LLMClient:
    """Select either the chat-completions client or the offline stub."""
    models_cfg = config.models
    model_name = models_cfg.default
    if not use_remote:
        typer.echo("Using offline stub client.")
        return OfflineLLMClient()
    if _is_offline_model(model_name):
        typer.echo(f"Model '{model_name}' is offline-only; using offline stub client.")
        return OfflineLLMClient(model_name)
    if not os.getenv("OPENAI_API_KEY"):
        typer.echo("OPENAI_API_KEY not set; using offline stub client.")
        return OfflineLLMClient()

    typer.echo(f"Using chat completions client ({model_name}).")
    return OpenAIChatClient(
        model=model_name,
        base_url=models_cfg.base_url,
        timeout=models_cfg.timeout,
        max_attempts=models_cfg.max_attempts,
    )


def _describe_outcome(outcome: PatchOutcome) -> None:
    if outcome.status == "rejected":
        typer.echo(f"Rejected: {outcome.reason}")
        return
    if outcome.status == "no-changes":
        typer.echo(f"No changes: {outcome.reason}")
        return
    typer.echo(f"Applied {outcome.applied_count} file(s):")
    for path in outcome.applied_paths:
        typer.echo(f"- {path.as_posix()}")
    for failure in outcome.failures:
        typer.echo(f"Skipped {failure.path}: {failure.error}")


def _render_run_summary(result: RunResult) -> None:
    if result.outcome == "local-run":
        typer.echo("No repository configured (project.repository or GITHUB_REPOSITORY); nothing to do.")
        return
    if result.outcome == "no-issue":
        typer.echo(f"No ready issue found in {result.repository}.")
        return

    assert result.issue is not None
    typer.echo(f"Issue #{result.issue.number}: {result.issue.title}")
    typer.echo(f"Branch: {result.branch}")
    if result.seeded_test is not None:
        typer.echo(f"Seeded test: {result.seeded_test.test_path.as_posix()}")
    if result.patch is not None:
        _describe_outcome(result.patch)
    typer.echo(f"Commit: {result.commit_sha or '(nothing to commit)'}")
    typer.echo(f"Tests passing after patch: {'yes' if result.tests_passed_after else 'no'}")
    if result.pull_request is not None:
        typer.echo(f"Opened PR: {result.pull_request.html_url}")
    typer.echo("States: " + " -> ".join(state.value for state in result.states))


@app.command()
def init(
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help=_CONFIG_OPTION_HELP,
    ),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing configuration file."),
) -> None:
    """Write a configuration file populated with the defaults."""
    config_path = Path(config)
    if config_path.exists() and not force:
        typer.echo(f"Config already exists: {config_path} (use --force to overwrite)")
        raise typer.Exit(code=1)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(dump_config(AgentConfig()), encoding="utf-8")
    typer.echo(f"Wrote {config_path}")


@app.command()
def run(
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help=_CONFIG_OPTION_HELP,
    ),
    use_remote: bool = typer.Option(
        True,
        "--use-remote/--no-use-remote",
        help="Call the chat completions API instead of the offline stub (requires API key).",
    ),
    log_level: str = typer.Option("INFO", "--log-level", help="Logging level for the run."),
) -> None:
    """Pick a ready issue, seed a failing test, patch, verify and open a PR."""
    _configure_logging(log_level)
    agent_config = _load(config)
    try:
        repo = GitRepository.discover(Path(config).resolve().parent)
        client = _build_client(agent_config, use_remote=use_remote)
        result = Orchestrator(config=agent_config, repo=repo, client=client).run()
    except (GitError, GitHubError, LLMClientError, PatchError, OSError) as error:
        typer.echo(f"Run aborted: {error}")
        raise typer.Exit(code=1) from error
    _render_run_summary(result)


@app.command()
def apply(
    diff_file: str = typer.Argument(..., help="Unified diff to apply, or '-' to read stdin."),
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help=_CONFIG_OPTION_HELP,
    ),
    repo_root: Path = typer.Option(Path("."), "--repo-root", help="Tree the diff is applied to."),
    allowlist: Optional[List[str]] = typer.Option(
        None,
        "--allowlist",
        help="Allowed path prefix; repeat to add more. Defaults to the configured allowlist.",
    ),
    record: bool = typer.Option(
        True,
        "--record/--no-record",
        help="Persist the accepted diff to the configured record file.",
    ),
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level."),
) -> None:
    """Parse, gate and apply a unified diff to a working tree."""
    _configure_logging(log_level)
    agent_config = _load(config)
    if diff_file == "-":
        diff_text = sys.stdin.read()
    else:
        try:
            diff_text = Path(diff_file).read_text(encoding="utf-8")
        except OSError as error:
            typer.echo(f"Failed to read diff: {error}")
            raise typer.Exit(code=1) from error

    prefixes = allowlist or agent_config.conventions.allowlist
    try:
        outcome = apply_unified_diff(
            diff_text,
            repo_root=repo_root,
            allowlist=prefixes,
            record_path=agent_config.paths.diff_record if record else None,
        )
    except PatchError as error:
        typer.echo(f"Failed to apply diff: {error}")
        raise typer.Exit(code=1) from error

    _describe_outcome(outcome)
    if outcome.status == "rejected":
        raise typer.Exit(code=1)


@app.command("check-paths")
def check_paths(
    paths: List[str] = typer.Argument(..., help="Repository-relative paths to evaluate."),
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help=_CONFIG_OPTION_HELP,
    ),
    allowlist: Optional[List[str]] = typer.Option(
        None,
        "--allowlist",
        help="Allowed path prefix; repeat to add more. Defaults to the configured allowlist.",
    ),
) -> None:
    """Report whether a set of paths passes the allowlist guardrail."""
    prefixes = allowlist or _load(config).conventions.allowlist
    decision = validate_paths(paths, prefixes)
    if decision.accepted:
        typer.echo(f"Accepted {len(paths)} path(s).")
        return
    typer.echo(f"Rejected: {decision.reason}")
    raise typer.Exit(code=1)


@app.command()
def triage(
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help=_CONFIG_OPTION_HELP,
    ),
) -> None:
    """Show which issue the next run would pick, without acting on it."""
    agent_config = _load(config)
    parsed = parse_repository(agent_config.resolve_repository())
    if parsed is None:
        typer.echo("No repository configured; nothing to triage.")
        return
    owner, name = parsed
    try:
        issue = select_ready_issue(GitHubClient(), owner, name, agent_config.issues)
    except GitHubError as error:
        typer.echo(f"Triage failed: {error}")
        raise typer.Exit(code=1) from error
    if issue is None:
        typer.echo(f"No ready issue found in {owner}/{name}.")
        return
    typer.echo(f"Would fix issue #{issue.number}: {issue.title}")
    if issue.html_url:
        typer.echo(issue.html_url)


if __name__ == "__main__":
    app()
