"""Sequential detect → reproduce → patch → verify → publish loop."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Callable, Literal, Mapping, Optional

from .config import AgentConfig
from .github import GitHubClient, Issue, PullRequest, parse_repository, select_ready_issue
from .models.llm_client import LLMClient, LLMRequest
from .prompts import PATCH_SYSTEM_PROMPT, extract_diff_text, looks_like_unified_diff, render_patch_prompt
from .tools.patch import PatchOutcome, apply_unified_diff
from .tools.test_runner import TestRunResult, run_tests
from .tools.test_seed import SeededTest, seed_failing_test
from .tools.vcs import GitRepository
from .utils.slug import timestamp_slug

LOGGER = logging.getLogger(__name__)

TestRunner = Callable[[str, Path], TestRunResult]
RunOutcome = Literal["local-run", "no-issue", "published"]


class RunState(str, Enum):
    """States visited by one run, in order."""

    IDLE = "idle"
    ISSUE_SELECTED = "issue-selected"
    TEST_SEEDED = "test-seeded"
    PATCH_PROPOSED = "patch-proposed"
    PATCH_ACCEPTED = "patch-accepted"
    PATCH_REJECTED = "patch-rejected"
    COMMITTED = "committed"
    VERIFIED = "verified"
    PR_PUBLISHED = "pr-published"


@dataclass(slots=True)
class RunResult:
    """Everything one run observed, for the CLI summary and for tests."""

    outcome: RunOutcome = "local-run"
    states: list[RunState] = field(default_factory=lambda: [RunState.IDLE])
    repository: str | None = None
    issue: Issue | None = None
    branch: str | None = None
    seeded_test: SeededTest | None = None
    tests_before: TestRunResult | None = None
    diff_text: str = ""
    patch: PatchOutcome | None = None
    commit_sha: str | None = None
    tests_after: TestRunResult | None = None
    pull_request: PullRequest | None = None

    @property
    def state(self) -> RunState:
        return self.states[-1]

    @property
    def tests_passed_after(self) -> bool:
        return self.tests_after is not None and self.tests_after.passed

    def advance(self, state: RunState) -> None:
        LOGGER.debug("State %s -> %s", self.state.value, state.value)
        self.states.append(state)


def _default_test_runner(command: str, cwd: Path) -> TestRunResult:
    return run_tests(command, cwd=cwd)


def render_pr_title(issue: Issue, *, passed: bool) -> str:
    if passed:
        return f"[agent] fix: {issue.title} (#{issue.number})"
    return f"[agent] failing test for #{issue.number}"


def render_pr_body(issue: Issue, *, passed: bool, diff_attached: bool) -> str:
    lines = [
        f"Automated {'fix' if passed else 'repro'} for #{issue.number}.",
        "- Tests passing in CI." if passed else "- Tests currently failing; needs review.",
    ]
    if diff_attached:
        lines.append("\nAttached minimal diff proposed by agent.")
    return "\n".join(lines)


def render_status_comment(pull: PullRequest, *, passed: bool) -> str:
    status = "✅ tests passing" if passed else "❌ tests failing (intentional for repro)"
    return f"Opened PR: {pull.html_url}\n\nStatus: {status}"


class Orchestrator:
    """Drive a single autofix run against one git working tree.

    Collaborator failures (GitHub, git, the model) propagate and abort the
    run. A failing test command is an expected, recorded outcome.
    """

    def __init__(
        self,
        *,
        config: AgentConfig,
        repo: GitRepository,
        client: LLMClient,
        github: GitHubClient | None = None,
        github_factory: Callable[[], GitHubClient] = GitHubClient,
        test_runner: TestRunner = _default_test_runner,
        env: Optional[Mapping[str, str]] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._config = config
        self._repo = repo
        self._client = client
        self._github = github
        self._github_factory = github_factory
        self._test_runner = test_runner
        self._env = env
        self._clock = clock

    @property
    def repo_root(self) -> Path:
        return self._repo.root

    def _github_client(self) -> GitHubClient:
        if self._github is None:
            self._github = self._github_factory()
        return self._github

    def run(self) -> RunResult:
        """Execute the full loop once and return what happened."""
        result = RunResult()
        repository = self._config.resolve_repository(self._env)
        parsed = parse_repository(repository)
        if parsed is None:
            LOGGER.info("No repository configured; local run, nothing to do.")
            return result
        owner, name = parsed
        result.repository = f"{owner}/{name}"
        github = self._github_client()

        issue = select_ready_issue(github, owner, name, self._config.issues)
        if issue is None:
            LOGGER.info("No triaged issue with a %r comment found.", self._config.issues.ready_marker)
            result.outcome = "no-issue"
            return result
        result.issue = issue
        result.advance(RunState.ISSUE_SELECTED)

        result.branch = self._prepare_branch(issue)
        result.seeded_test = seed_failing_test(
            self.repo_root,
            number=issue.number,
            title=issue.title,
            body=issue.body,
            tests_dir=self._config.paths.tests_dir,
        )
        LOGGER.info("Wrote failing test %s", result.seeded_test.test_path.as_posix())
        result.advance(RunState.TEST_SEEDED)

        test_command = self._config.conventions.test_command
        result.tests_before = self._test_runner(test_command, self.repo_root)
        if not result.tests_before.passed:
            LOGGER.info("Tests failed as expected; proceeding to patch.")

        result.diff_text = self._propose_diff(f"{owner}/{name}", issue, result.seeded_test)
        result.advance(RunState.PATCH_PROPOSED)
        result.patch = self._apply_diff(result.diff_text)
        result.advance(RunState.PATCH_ACCEPTED if result.patch.usable else RunState.PATCH_REJECTED)

        result.commit_sha = self._repo.commit_all(
            f"test(agent): failing test for #{issue.number} + minimal patch"
        )
        if result.commit_sha is None:
            LOGGER.info("Nothing to commit after applying diff; continuing.")
        result.advance(RunState.COMMITTED)

        result.tests_after = self._test_runner(test_command, self.repo_root)
        result.advance(RunState.VERIFIED)

        result.pull_request = self._publish(owner, name, issue, result)
        result.advance(RunState.PR_PUBLISHED)
        result.outcome = "published"
        LOGGER.info(
            "Opened PR #%d (pass=%s)", result.pull_request.number, result.tests_passed_after
        )
        return result

    def _prepare_branch(self, issue: Issue) -> str:
        git_cfg = self._config.git
        branch = f"{git_cfg.branch_prefix}/{issue.number}-{timestamp_slug(self._clock())}"
        self._repo.configure_identity(git_cfg.user_name, git_cfg.user_email)
        self._repo.create_branch(branch)
        return branch

    def _propose_diff(self, repository: str, issue: Issue, seeded: SeededTest) -> str:
        prompt_cfg = self._config.prompt
        files = [path.as_posix() for path in self._repo.tracked_files()[: prompt_cfg.file_list_limit]]
        prompt = render_patch_prompt(
            issue_number=issue.number,
            repository=repository,
            test_path=seeded.test_path,
            allowlist=self._config.conventions.allowlist,
            repo_root=self.repo_root,
            files=files,
            max_files=prompt_cfg.max_files,
        )
        response = self._client.complete(
            LLMRequest(
                prompt=prompt,
                system_prompt=PATCH_SYSTEM_PROMPT,
                temperature=self._config.models.temperature,
            )
        )
        return extract_diff_text(response.content)

    def _apply_diff(self, diff_text: str) -> PatchOutcome:
        if not looks_like_unified_diff(diff_text):
            LOGGER.info("Model did not return a unified diff; skipping patch application.")
            return PatchOutcome.no_changes("model response contained no unified diff")
        outcome = apply_unified_diff(
            diff_text,
            repo_root=self.repo_root,
            allowlist=self._config.conventions.allowlist,
            record_path=self._config.paths.diff_record,
        )
        if outcome.status == "rejected":
            LOGGER.info("Diff touches non-allowlisted paths; rejecting.")
        elif outcome.failures:
            LOGGER.warning("Diff applied partially; %d file(s) skipped.", len(outcome.failures))
        return outcome

    def _publish(self, owner: str, name: str, issue: Issue, result: RunResult) -> PullRequest:
        git_cfg = self._config.git
        assert result.branch is not None
        self._repo.push(git_cfg.remote, result.branch)

        github = self._github_client()
        passed = result.tests_passed_after
        diff_attached = result.patch is not None and result.patch.usable
        pull = github.create_pull(
            owner,
            name,
            title=render_pr_title(issue, passed=passed),
            head=result.branch,
            base=self._config.project.base_branch,
            body=render_pr_body(issue, passed=passed, diff_attached=diff_attached),
        )
        github.add_labels(owner, name, issue.number, [self._config.issues.pr_label])
        github.create_comment(owner, name, issue.number, render_status_comment(pull, passed=passed))
        return pull


__all__ = [
    "Orchestrator",
    "RunOutcome",
    "RunResult",
    "RunState",
    "render_pr_body",
    "render_pr_title",
    "render_status_comment",
]
