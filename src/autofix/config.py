"""Typed agent configuration loaded from the repository's YAML file."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, List, Mapping, Optional

import yaml
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

DEFAULT_CONFIG_NAME = ".autofix.yml"
DEFAULT_ALLOWLIST = ["packages/", "src/", "apps/", "docs/", "CHANGELOG.md"]
DEFAULT_TEST_COMMAND = "pytest -q tests/agent"


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be read or validated."""


class SectionModel(BaseModel):
    """Base model for configuration sections; unknown keys are errors."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class ProjectSettings(SectionModel):
    repository: str = ""
    base_branch: str = "main"


class ConventionSettings(SectionModel):
    allowlist: List[str] = Field(
        default_factory=lambda: list(DEFAULT_ALLOWLIST),
        validation_alias=AliasChoices("allowlist", "whitelistPaths", "whitelist_paths"),
    )
    test_command: str = Field(
        default=DEFAULT_TEST_COMMAND,
        validation_alias=AliasChoices("test_command", "testCmd", "test_cmd"),
    )


class IssueSettings(SectionModel):
    label: str = "triaged"
    exclude_label: str = "has-pr"
    ready_marker: str = "repro-ready"
    search_limit: int = Field(default=10, gt=0)
    comment_limit: int = Field(default=50, gt=0)
    pr_label: str = "has-pr"


class ModelSettings(SectionModel):
    default: str = "gpt-4o-mini"
    temperature: float = 0.0
    timeout: float = Field(default=120.0, gt=0)
    base_url: str = "https://api.openai.com/v1/chat/completions"
    max_attempts: int = Field(default=1, gt=0)


class GitSettings(SectionModel):
    user_name: str = "agent-bot"
    user_email: str = "agent-bot@users.noreply.github.com"
    branch_prefix: str = "agent"
    remote: str = "origin"


class PathSettings(SectionModel):
    diff_record: str = ".agent.diff"
    tests_dir: str = "tests/agent"


class PromptSettings(SectionModel):
    max_files: int = Field(default=3, gt=0)
    file_list_limit: int = Field(default=400, gt=0)


class AgentConfig(SectionModel):
    """Complete configuration for one autofix run."""

    project: ProjectSettings = Field(default_factory=ProjectSettings)
    conventions: ConventionSettings = Field(default_factory=ConventionSettings)
    issues: IssueSettings = Field(default_factory=IssueSettings)
    models: ModelSettings = Field(default_factory=ModelSettings)
    git: GitSettings = Field(default_factory=GitSettings)
    paths: PathSettings = Field(default_factory=PathSettings)
    prompt: PromptSettings = Field(default_factory=PromptSettings)

    def resolve_repository(self, env: Optional[Mapping[str, str]] = None) -> str:
        """Return ``owner/name`` from config, falling back to ``$GITHUB_REPOSITORY``."""
        configured = self.project.repository.strip()
        if configured:
            return configured
        env_mapping = os.environ if env is None else env
        return str(env_mapping.get("GITHUB_REPOSITORY", "")).strip()


def parse_config(data: Mapping[str, Any] | None) -> AgentConfig:
    """Validate a raw mapping into :class:`AgentConfig`."""
    try:
        return AgentConfig.model_validate(dict(data or {}))
    except ValidationError as error:
        raise ConfigError(f"Invalid configuration: {error}") from error


def load_config(config_path: Path | str) -> AgentConfig:
    """Load YAML configuration; a missing file yields the defaults."""
    path = Path(config_path)
    if not path.exists():
        return AgentConfig()

    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except yaml.YAMLError as error:
        raise ConfigError(f"Failed to parse config {path}: {error}") from error

    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a mapping at the top level.")
    return parse_config(data)


def dump_config(config: AgentConfig) -> str:
    """Render ``config`` back to YAML with stable key order."""
    return yaml.safe_dump(config.model_dump(), sort_keys=False)


__all__ = [
    "AgentConfig",
    "ConfigError",
    "ConventionSettings",
    "DEFAULT_ALLOWLIST",
    "DEFAULT_CONFIG_NAME",
    "DEFAULT_TEST_COMMAND",
    "GitSettings",
    "IssueSettings",
    "ModelSettings",
    "PathSettings",
    "ProjectSettings",
    "PromptSettings",
    "dump_config",
    "load_config",
    "parse_config",
]
