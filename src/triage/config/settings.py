"""Action inputs and runner context.

Settings come from the GitHub Actions environment:
- Action inputs are exposed as INPUT_<NAME> with the input name uppercased
  and hyphens kept (INPUT_CONFIGURATION-PATH, INPUT_SYNC-LABELS, ...)
- Runner context comes from GITHUB_REPOSITORY, GITHUB_SHA, GITHUB_API_URL,
  GITHUB_EVENT_NAME and GITHUB_EVENT_PATH
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from triage.config.errors import ConfigValidationError
from triage.github.auth import get_github_token

DEFAULT_API_URL = "https://api.github.com"


class Settings(BaseModel):
    """Validated action inputs.

    Attributes:
        configuration_path: Path of the rule file inside the repository
        repo_token: Token used for GitHub API calls
        not_before: Ignore items created before this time
        include_title: Match label rules against the title as well as the body
        sync_labels: 1 removes labels whose rules no longer match, 0 only adds
        repository: 'owner/repo' of the triaged repository
        sha: Commit at which the rule file is read
        api_url: GitHub REST API base URL
        event_name: Triggering event name
        event_path: Path to the triggering event payload (JSON)
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    configuration_path: Annotated[str, Field(min_length=1)]
    repo_token: Annotated[str, Field(min_length=1, repr=False)]
    not_before: datetime | None = None
    include_title: bool = False
    sync_labels: int = 1
    repository: Annotated[str, Field(pattern=r"^[^/\s]+/[^/\s]+$")]
    sha: str | None = None
    api_url: str = DEFAULT_API_URL
    event_name: str | None = None
    event_path: str | None = None

    @field_validator("not_before", mode="before")
    @classmethod
    def blank_not_before(cls, v: Any) -> Any:
        """Treat an empty input as unset."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("not_before")
    @classmethod
    def assume_utc(cls, v: datetime | None) -> datetime | None:
        """Interpret naive timestamps as UTC."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v

    @field_validator("include_title", mode="before")
    @classmethod
    def blank_include_title(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return False
        return v

    @field_validator("sync_labels", mode="before")
    @classmethod
    def blank_sync_labels(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return 1
        return v

    @property
    def owner(self) -> str:
        return self.repository.split("/", 1)[0]

    @property
    def repo(self) -> str:
        return self.repository.split("/", 1)[1]


def get_input(name: str, environ: Mapping[str, str] | None = None) -> str:
    """Read an action input the way the Actions runner exposes it.

    Args:
        name: Input name as declared by the action (e.g. 'sync-labels').
        environ: Environment mapping (defaults to os.environ).

    Returns:
        The stripped input value, or '' if unset.
    """
    env = os.environ if environ is None else environ
    key = "INPUT_" + name.replace(" ", "_").upper()
    value = env.get(key)
    if value is None:
        value = env.get(key.replace("-", "_"), "")
    return value.strip()


def load_settings(
    environ: Mapping[str, str] | None = None,
    **overrides: Any,
) -> Settings:
    """Build Settings from the Actions environment.

    Args:
        environ: Environment mapping (defaults to os.environ).
        **overrides: Explicit values (e.g. from CLI options); None is ignored.

    Returns:
        Validated Settings.

    Raises:
        AuthenticationError: If no token is available.
        ConfigValidationError: If an input is missing or malformed.
    """
    env = os.environ if environ is None else environ

    raw: dict[str, Any] = {
        "configuration_path": get_input("configuration-path", env),
        "not_before": get_input("not-before", env),
        "include_title": get_input("include-title", env),
        "sync_labels": get_input("sync-labels", env),
        "repository": env.get("GITHUB_REPOSITORY", ""),
        "sha": env.get("GITHUB_SHA") or None,
        "api_url": env.get("GITHUB_API_URL") or DEFAULT_API_URL,
        "event_name": env.get("GITHUB_EVENT_NAME") or None,
        "event_path": env.get("GITHUB_EVENT_PATH") or None,
    }
    raw.update({k: v for k, v in overrides.items() if v is not None})
    if "repo_token" not in raw:
        raw["repo_token"] = get_github_token(env)

    try:
        return Settings.model_validate(raw)
    except ValidationError as e:
        errors = e.errors()
        error_msgs = [
            f"  - {'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}"
            for err in errors
        ]
        message = (
            f"Action input validation failed ({len(errors)} error(s)):\n"
            + "\n".join(error_msgs)
        )
        raise ConfigValidationError(
            message,
            validation_errors=[dict(err) for err in errors],
        ) from e
