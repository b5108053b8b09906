"""GitHub API client and event resolution."""

from triage.github.auth import (
    AuthenticationError,
    get_github_token,
    mask_token,
)
from triage.github.client import (
    GitHubAPIError,
    GitHubClient,
    TransientError,
)
from triage.github.events import (
    EventInfo,
    EventPayloadError,
    UnhandledEventError,
    extract_fixed_issues,
    get_event_info,
    load_event_payload,
    resolve_event_type,
)

__all__ = [
    "AuthenticationError",
    "EventInfo",
    "EventPayloadError",
    "GitHubAPIError",
    "GitHubClient",
    "TransientError",
    "UnhandledEventError",
    "extract_fixed_issues",
    "get_event_info",
    "get_github_token",
    "load_event_payload",
    "mask_token",
    "resolve_event_type",
]
