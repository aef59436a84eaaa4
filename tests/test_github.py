from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import parse_qs, urlparse

import pytest

from autofix.config import IssueSettings
from autofix.github import (
    GitHubClient,
    GitHubError,
    build_issue_query,
    parse_repository,
    select_ready_issue,
)


class _FakeTransport:
    """Record requests and answer from a canned route table."""

    def __init__(self, routes: Dict[Tuple[str, str], Any]) -> None:
        self.routes = routes
        self.calls: List[Tuple[str, str, Optional[Dict[str, Any]]]] = []

    def __call__(self, method: str, path: str, body: Optional[Dict[str, Any]]) -> Any:
        self.calls.append((method, path, body))
        route = path.split("?", 1)[0]
        return self.routes[(method, route)]


def _issue(number: int, title: str) -> Dict[str, Any]:
    return {
        "number": number,
        "title": title,
        "body": "steps",
        "html_url": f"https://github.com/o/r/issues/{number}",
        "labels": [{"name": "triaged"}],
        "state": "open",
    }


def test_parse_repository() -> None:
    assert parse_repository("octo/widgets") == ("octo", "widgets")
    assert parse_repository("  octo/widgets ") == ("octo", "widgets")
    assert parse_repository("") is None
    assert parse_repository("octo") is None
    assert parse_repository("octo/") is None
    assert parse_repository("a/b/c") is None


def test_client_requires_token_without_transport(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)

    with pytest.raises(GitHubError, match="GITHUB_TOKEN missing"):
        GitHubClient()


def test_build_issue_query_uses_labels() -> None:
    query = build_issue_query("o", "r", IssueSettings())

    assert query == "repo:o/r is:issue is:open label:triaged -label:has-pr"


def test_select_ready_issue_picks_first_with_marker() -> None:
    transport = _FakeTransport(
        {
            ("GET", "/search/issues"): {"items": [_issue(7, "Newest"), _issue(3, "Older")]},
            ("GET", "/repos/o/r/issues/7/comments"): [{"id": 1, "body": "needs info"}],
            ("GET", "/repos/o/r/issues/3/comments"): [{"id": 2, "body": "Looks good, REPRO-READY now"}],
        }
    )
    client = GitHubClient(transport=transport)

    issue = select_ready_issue(client, "o", "r", IssueSettings())

    assert issue is not None
    assert issue.number == 3
    assert issue.label_names == ["triaged"]
    search_path = transport.calls[0][1]
    params = parse_qs(urlparse(search_path).query)
    assert params["q"] == ["repo:o/r is:issue is:open label:triaged -label:has-pr"]
    assert params["sort"] == ["updated"]
    assert params["order"] == ["desc"]
    assert params["per_page"] == ["10"]
    assert transport.calls[1][1].endswith("?per_page=50")


def test_select_ready_issue_returns_none_without_marker() -> None:
    transport = _FakeTransport(
        {
            ("GET", "/search/issues"): {"items": [_issue(7, "Newest")]},
            ("GET", "/repos/o/r/issues/7/comments"): [{"id": 1, "body": None}],
        }
    )

    assert select_ready_issue(GitHubClient(transport=transport), "o", "r", IssueSettings()) is None


def test_write_operations_send_expected_payloads() -> None:
    transport = _FakeTransport(
        {
            ("POST", "/repos/o/r/pulls"): {"number": 11, "html_url": "https://github.com/o/r/pull/11", "title": "t"},
            ("POST", "/repos/o/r/issues/3/labels"): [{"name": "has-pr"}],
            ("POST", "/repos/o/r/issues/3/comments"): {"id": 99, "body": "hi"},
        }
    )
    client = GitHubClient(transport=transport)

    pull = client.create_pull("o", "r", title="t", head="agent/3-x", base="main", body="b")
    client.add_labels("o", "r", 3, ["has-pr"])
    comment = client.create_comment("o", "r", 3, "hi")

    assert pull.number == 11
    assert comment.id == 99
    assert transport.calls == [
        ("POST", "/repos/o/r/pulls", {"title": "t", "head": "agent/3-x", "base": "main", "body": "b"}),
        ("POST", "/repos/o/r/issues/3/labels", {"labels": ["has-pr"]}),
        ("POST", "/repos/o/r/issues/3/comments", {"body": "hi"}),
    ]


def test_malformed_payloads_raise_github_error() -> None:
    transport = _FakeTransport(
        {
            ("GET", "/search/issues"): {"message": "rate limited"},
            ("POST", "/repos/o/r/pulls"): {"message": "Validation Failed"},
        }
    )
    client = GitHubClient(transport=transport)

    with pytest.raises(GitHubError):
        client.search_issues("repo:o/r")
    with pytest.raises(GitHubError):
        client.create_pull("o", "r", title="t", head="h", base="main", body="b")


def test_transport_failures_are_wrapped() -> None:
    def broken(method: str, path: str, body: Optional[Dict[str, Any]]) -> Any:
        raise ConnectionError("boom")

    client = GitHubClient(transport=broken)

    with pytest.raises(GitHubError, match="boom"):
        client.list_comments("o", "r", 1)
