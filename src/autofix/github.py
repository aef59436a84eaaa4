"""GitHub REST client for issue search, comments, labels and pull requests."""

from __future__ import annotations

import json
import logging
import os
import re
import urllib.parse
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .config import IssueSettings

LOGGER = logging.getLogger(__name__)

Transport = Callable[[str, str, Optional[Dict[str, Any]]], Any]


class GitHubError(RuntimeError):
    """Raised when the GitHub API returns an unusable response."""


class GitHubTransportError(GitHubError):
    """Raised when the HTTP request itself fails."""


class GitHubRecord(BaseModel):
    """Base model for API payloads; unknown response keys are ignored."""

    model_config = ConfigDict(extra="ignore")


class Issue(GitHubRecord):
    number: int
    title: str
    body: Optional[str] = None
    html_url: str = ""
    labels: List[Dict[str, Any]] = Field(default_factory=list)

    @property
    def label_names(self) -> list[str]:
        return [str(item.get("name", "")) for item in self.labels if isinstance(item, Mapping)]


class IssueComment(GitHubRecord):
    id: int
    body: Optional[str] = None


class PullRequest(GitHubRecord):
    number: int
    html_url: str
    title: str = ""


def parse_repository(value: str) -> tuple[str, str] | None:
    """Split ``owner/name``; return ``None`` when either part is missing."""
    owner, _, name = (value or "").strip().partition("/")
    if not owner or not name or "/" in name:
        return None
    return owner, name


class GitHubClient:
    """Minimal JSON client for the handful of endpoints the agent needs."""

    def __init__(
        self,
        token: Optional[str] = None,
        *,
        api_url: str = "https://api.github.com",
        transport: Optional[Transport] = None,
        timeout: float = 30.0,
    ) -> None:
        self._token = token or os.getenv("GITHUB_TOKEN")
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport or self._http_transport
        if transport is None and not self._token:
            raise GitHubError("GITHUB_TOKEN missing")

    # ------------------------------------------------------------------ HTTP
    def _request(self, method: str, path: str, body: Optional[Dict[str, Any]] = None) -> Any:
        try:
            return self._transport(method, path, body)
        except GitHubError:
            raise
        except Exception as error:
            raise GitHubTransportError(f"{method} {path} failed: {error}") from error

    def _http_transport(self, method: str, path: str, body: Optional[Dict[str, Any]]) -> Any:
        """Default transport using ``urllib`` against the REST API."""
        import urllib.error
        import urllib.request

        data = json.dumps(body).encode("utf-8") if body is not None else None
        request = urllib.request.Request(
            f"{self._api_url}{path}",
            data=data,
            headers={
                "Accept": "application/vnd.github+json",
                "Authorization": f"Bearer {self._token}",
                "Content-Type": "application/json",
                "X-GitHub-Api-Version": "2022-11-28",
            },
            method=method,
        )
        try:
            with urllib.request.urlopen(request, timeout=self._timeout) as response:
                raw = response.read()
        except urllib.error.HTTPError as error:  # pragma: no cover - network-dependent
            message = error.read().decode("utf-8", errors="ignore")
            raise GitHubTransportError(f"HTTP {error.code} for {method} {path}: {message}") from error
        except urllib.error.URLError as error:  # pragma: no cover - network-dependent
            raise GitHubTransportError(f"Failed to reach GitHub: {error.reason}") from error

        if not raw:
            return None
        try:
            return json.loads(raw.decode("utf-8"))
        except json.JSONDecodeError as error:  # pragma: no cover - network-dependent
            raise GitHubError(f"GitHub returned invalid JSON for {method} {path}") from error

    @staticmethod
    def _validate(model: type[GitHubRecord], payload: Any) -> Any:
        try:
            return model.model_validate(payload)
        except ValidationError as error:
            raise GitHubError(f"Unexpected {model.__name__} payload: {error}") from error

    # ---------------------------------------------------------------- issues
    def search_issues(
        self,
        query: str,
        *,
        sort: str = "updated",
        order: str = "desc",
        per_page: int = 10,
    ) -> list[Issue]:
        params = urllib.parse.urlencode({"q": query, "sort": sort, "order": order, "per_page": per_page})
        payload = self._request("GET", f"/search/issues?{params}")
        items = payload.get("items") if isinstance(payload, Mapping) else None
        if not isinstance(items, list):
            raise GitHubError("Search response did not contain an items list.")
        return [self._validate(Issue, item) for item in items]

    def list_comments(self, owner: str, repo: str, number: int, *, per_page: int = 50) -> list[IssueComment]:
        payload = self._request("GET", f"/repos/{owner}/{repo}/issues/{number}/comments?per_page={per_page}")
        if not isinstance(payload, list):
            raise GitHubError("Comment listing did not return a list.")
        return [self._validate(IssueComment, item) for item in payload]

    def add_labels(self, owner: str, repo: str, number: int, labels: Sequence[str]) -> None:
        self._request("POST", f"/repos/{owner}/{repo}/issues/{number}/labels", {"labels": list(labels)})

    def create_comment(self, owner: str, repo: str, number: int, body: str) -> IssueComment:
        payload = self._request("POST", f"/repos/{owner}/{repo}/issues/{number}/comments", {"body": body})
        return self._validate(IssueComment, payload)

    # --------------------------------------------------------- pull requests
    def create_pull(
        self,
        owner: str,
        repo: str,
        *,
        title: str,
        head: str,
        base: str,
        body: str,
    ) -> PullRequest:
        payload = self._request(
            "POST",
            f"/repos/{owner}/{repo}/pulls",
            {"title": title, "head": head, "base": base, "body": body},
        )
        return self._validate(PullRequest, payload)


def build_issue_query(owner: str, repo: str, settings: IssueSettings) -> str:
    """Search query for open, triaged issues that have no PR yet."""
    return f"repo:{owner}/{repo} is:issue is:open label:{settings.label} -label:{settings.exclude_label}"


def select_ready_issue(
    client: GitHubClient,
    owner: str,
    repo: str,
    settings: IssueSettings,
) -> Issue | None:
    """Return the most recently updated issue carrying a ready-marker comment."""
    marker = re.compile(re.escape(settings.ready_marker), re.IGNORECASE)
    issues = client.search_issues(
        build_issue_query(owner, repo, settings),
        sort="updated",
        order="desc",
        per_page=settings.search_limit,
    )
    for issue in issues:
        comments = client.list_comments(owner, repo, issue.number, per_page=settings.comment_limit)
        if any(marker.search(comment.body or "") for comment in comments):
            LOGGER.info("Selected issue #%d: %s", issue.number, issue.title)
            return issue
        LOGGER.debug("Issue #%d has no %r comment", issue.number, settings.ready_marker)
    return None


__all__ = [
    "GitHubClient",
    "GitHubError",
    "GitHubTransportError",
    "Issue",
    "IssueComment",
    "PullRequest",
    "build_issue_query",
    "parse_repository",
    "select_ready_issue",
]
