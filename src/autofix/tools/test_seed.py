"""Seed an intentionally failing regression test for a selected issue."""

from __future__ import annotations

import json
import textwrap
from dataclasses import dataclass
from pathlib import Path

from ..utils.slug import slugify

EXPECTED_FAILURE_SENTINEL = "__EXPECTED_THAT_FAILS__"
HELPER_MODULE = "agent_utils.py"
_MAX_BODY_CHARS = 2000
_MAX_NAME_CHARS = 60

_HELPER_SOURCE = textwrap.dedent(
    '''
    """Helpers shared by agent-seeded regression tests."""


    def run_html_to_md(html: str) -> str:
        # Deterministic placeholder until a real converter is wired in.
        return html or ""
    '''
).lstrip()


@dataclass(slots=True)
class SeededTest:
    """Files written for a reproduction test."""

    test_path: Path
    helper_path: Path
    helper_created: bool


def seeded_test_name(number: int, title: str) -> str:
    """Return the module name for the issue's reproduction test."""
    slug = slugify(title, fallback="issue", max_length=_MAX_NAME_CHARS, separator="_")
    return f"test_issue_{number}_{slug}.py"


def render_test_module(number: int, title: str, body: str | None) -> str:
    """Render a pytest module reproducing issue ``number``; it fails on purpose."""
    sample = (body or "")[:_MAX_BODY_CHARS] or "<div>example</div>"
    label = json.dumps(f"issue #{number}: {title}")
    return textwrap.dedent(
        f'''
        """Reproduction for {label[1:-1]}."""

        from agent_utils import run_html_to_md


        def test_issue_{number}_reproduces_reported_behavior() -> None:
            html = {json.dumps(sample)}
            md = run_html_to_md(html)
            assert md
            # Intentionally failing until a real repro/fix is applied.
            assert "{EXPECTED_FAILURE_SENTINEL}" in md
        '''
    ).lstrip()


def seed_failing_test(
    repo_root: Path | str,
    *,
    number: int,
    title: str,
    body: str | None,
    tests_dir: Path | str = Path("tests") / "agent",
) -> SeededTest:
    """Write the reproduction test and, when missing, its helper module."""
    root = Path(repo_root)
    directory = root / tests_dir
    directory.mkdir(parents=True, exist_ok=True)

    test_path = directory / seeded_test_name(number, title)
    test_path.write_text(render_test_module(number, title, body), encoding="utf-8")

    helper_path = directory / HELPER_MODULE
    helper_created = not helper_path.exists()
    if helper_created:
        helper_path.write_text(_HELPER_SOURCE, encoding="utf-8")

    return SeededTest(
        test_path=test_path.relative_to(root),
        helper_path=helper_path.relative_to(root),
        helper_created=helper_created,
    )


__all__ = [
    "EXPECTED_FAILURE_SENTINEL",
    "SeededTest",
    "render_test_module",
    "seed_failing_test",
    "seeded_test_name",
]
