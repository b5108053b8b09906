"""GitHub event resolution.

Turns the triggering event name and its webhook payload into an EventInfo:
the event type, the issue/PR number(s) to act on, and the text and author
association the rules are matched against.
"""

from __future__ import annotations

import json
import re
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from triage.config.schema import EventType

# Closing keyword followed by '#123' or an issue URL ending in '/issues/123'
FIXED_ISSUE_PATTERN = re.compile(r"(?:fix|close)\s+(?:#|.*/issues/)(\d+)", re.IGNORECASE)

PUSH_CREATED_AT = "1970-01-01T00:00:00Z"


class UnhandledEventError(Exception):
    """Raised when the triggering event is not one the triage engine handles."""

    def __init__(self, event_name: str) -> None:
        self.event_name = event_name
        super().__init__(f"could not handle event `{event_name}`")


class EventPayloadError(Exception):
    """Raised when an event payload lacks data the triage run needs."""


class EventInfo(BaseModel):
    """Resolved view of the triggering event."""

    model_config = ConfigDict(frozen=True)

    event_name: EventType = Field(..., description="Triggering event")
    issue_numbers: list[int] = Field(
        default_factory=list,
        description="Issue/PR numbers to act on (several for push events)",
    )
    comment_id: int | None = Field(
        default=None,
        description="Triggering comment, for issue_comment events",
    )
    title: str = Field(default="", description="Issue or PR title")
    body: str = Field(default="", description="Issue, PR or comment body")
    created_at: str = Field(default="", description="Creation timestamp (ISO 8601)")
    author_association: str = Field(default="", description="Author association of the body's author")

    @property
    def issue_number(self) -> int:
        """Get the single issue/PR number of a non-push event.

        Raises:
            EventPayloadError: If the event does not have exactly one target.
        """
        if len(self.issue_numbers) != 1:
            msg = (
                f"event `{self.event_name.value}` has {len(self.issue_numbers)} "
                "targets, expected exactly one"
            )
            raise EventPayloadError(msg)
        return self.issue_numbers[0]

    def created_at_datetime(self) -> datetime:
        """Parse created_at.

        Raises:
            EventPayloadError: If created_at is not a valid timestamp.
        """
        try:
            return datetime.fromisoformat(self.created_at.replace("Z", "+00:00"))
        except ValueError as e:
            msg = f"cannot deduce `created_at` from {self.created_at!r}"
            raise EventPayloadError(msg) from e

    def label_text(self, *, include_title: bool) -> str:
        """Text label rules are matched against."""
        if include_title:
            return f"{self.title}\n\n{self.body}"
        return self.body


def resolve_event_type(event_name: str) -> EventType:
    """Map a trigger name to an EventType.

    Raises:
        UnhandledEventError: If the event is not recognized.
    """
    event_type = EventType.parse(event_name)
    if event_type is None:
        raise UnhandledEventError(event_name)
    return event_type


def extract_fixed_issues(messages: str) -> list[int]:
    """Find issues referenced by closing keywords in commit messages.

    Example:
        >>> extract_fixed_issues("fix #12\\n\\nclose https://x/y/issues/34\\n\\n")
        [12, 34]
    """
    return [int(match.group(1)) for match in FIXED_ISSUE_PATTERN.finditer(messages)]


def _text(item: dict[str, Any], key: str) -> str:
    value = item.get(key)
    return value if isinstance(value, str) else ""


def _number(item: dict[str, Any] | None, key: str, event_name: str) -> int:
    value = (item or {}).get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        msg = f"event `{event_name}` payload has no valid `{key}`"
        raise EventPayloadError(msg)
    return value


def _item_event(event_type: EventType, item: dict[str, Any] | None) -> EventInfo:
    item = item or {}
    return EventInfo(
        event_name=event_type,
        issue_numbers=[_number(item, "number", event_type.value)],
        title=_text(item, "title"),
        body=_text(item, "body"),
        created_at=_text(item, "created_at"),
        author_association=_text(item, "author_association"),
    )


def get_event_info(event_name: str, payload: dict[str, Any]) -> EventInfo:
    """Build EventInfo from a webhook payload.

    - issues: the issue
    - pull_request, pull_request_target: the pull request
    - issue_comment: the comment's body, author and time, with the issue's
      number and title
    - push: the commit messages, targeting every issue they close

    Raises:
        UnhandledEventError: If the event is not recognized.
        EventPayloadError: If a required number is missing.
    """
    event_type = resolve_event_type(event_name)

    if event_type == EventType.ISSUES:
        return _item_event(event_type, payload.get("issue"))

    if event_type in (EventType.PULL_REQUEST, EventType.PULL_REQUEST_TARGET):
        return _item_event(event_type, payload.get("pull_request"))

    if event_type == EventType.ISSUE_COMMENT:
        comment = payload.get("comment") or {}
        issue = payload.get("issue") or {}
        return EventInfo(
            event_name=event_type,
            issue_numbers=[_number(issue, "number", event_type.value)],
            comment_id=_number(comment, "id", event_type.value),
            title=_text(issue, "title"),
            body=_text(comment, "body"),
            created_at=_text(comment, "created_at"),
            author_association=_text(comment, "author_association"),
        )

    messages = "".join(
        f"{commit.get('message') or ''}\n\n" for commit in payload.get("commits") or []
    )
    return EventInfo(
        event_name=event_type,
        issue_numbers=extract_fixed_issues(messages),
        body=messages,
        created_at=PUSH_CREATED_AT,
    )


def load_event_payload(path: str | Path) -> dict[str, Any]:
    """Load the webhook payload written by the Actions runner.

    Raises:
        EventPayloadError: If the file is missing or not a JSON object.
    """
    payload_path = Path(path)
    try:
        data = json.loads(payload_path.read_text(encoding="utf-8"))
    except OSError as e:
        msg = f"Cannot read event payload {payload_path}: {e}"
        raise EventPayloadError(msg) from e
    except json.JSONDecodeError as e:
        msg = f"Invalid event payload {payload_path}: {e}"
        raise EventPayloadError(msg) from e

    if not isinstance(data, dict):
        msg = f"Event payload {payload_path} must be a JSON object"
        raise EventPayloadError(msg)
    return data
