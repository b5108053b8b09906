"""Pydantic schema models for triage rules.

This module defines the typed rule model produced by the configuration parser:
- EventType: The closed set of GitHub trigger events
- EventFilter: Either every event (AllEvents) or an ordered set (SpecificEvents)
- LabelMode / CommentMode: Which events and branches a rule participates in
- LabelRule / CommentRule: The rules themselves
- RuleSet: Label and comment rules for one evaluation run
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field


class EventType(str, Enum):
    """GitHub trigger event recognized by the triage engine."""

    PULL_REQUEST = "pull_request"
    PULL_REQUEST_TARGET = "pull_request_target"
    ISSUES = "issues"
    ISSUE_COMMENT = "issue_comment"
    PUSH = "push"

    @classmethod
    def parse(cls, value: object) -> EventType | None:
        """Return the matching EventType, or None if value is not an event tag."""
        if isinstance(value, str):
            try:
                return cls(value)
            except ValueError:
                return None
        return None


class AllEvents(BaseModel):
    """Event filter that accepts every trigger event."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["all"] = "all"

    def includes(self, event_type: EventType) -> bool:  # noqa: ARG002
        return True

    def __str__(self) -> str:
        return "all"


class SpecificEvents(BaseModel):
    """Event filter that accepts an explicit, ordered set of events."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["specific"] = "specific"
    events: tuple[EventType, ...] = ()

    def includes(self, event_type: EventType) -> bool:
        return event_type in self.events

    def __str__(self) -> str:
        return "[" + ", ".join(e.value for e in self.events) + "]"


EventFilter = Annotated[AllEvents | SpecificEvents, Field(discriminator="kind")]

ALL_EVENTS = AllEvents()
NO_EVENTS = SpecificEvents()


class InvalidEventError(ValueError):
    """Raised when a value is not a recognized event tag."""

    def __init__(self, value: object) -> None:
        self.value = value
        super().__init__(f"found unexpected value `{value}`")


def extend_filter(
    current: AllEvents | SpecificEvents,
    items: Iterable[object] | AllEvents,
) -> AllEvents | SpecificEvents:
    """Accumulate events into a filter.

    Once a filter accepts all events, further accumulation is a no-op.
    Passing ALL_EVENTS as items widens the filter to every event. Otherwise
    each item must be an event tag; tags already present are not repeated.

    Raises:
        InvalidEventError: If an item is not a recognized event tag.
    """
    if isinstance(current, AllEvents):
        return current
    if isinstance(items, AllEvents):
        return ALL_EVENTS

    events = list(current.events)
    for item in items:
        event = EventType.parse(item)
        if event is None:
            raise InvalidEventError(item)
        if event not in events:
            events.append(event)
    return SpecificEvents(events=tuple(events))


class LabelMode(BaseModel):
    """Which events may add a label and which may remove it.

    Attributes:
        add: Events on which a matching rule adds its label
        remove: Events on which a non-matching rule removes its label
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    add: EventFilter = NO_EVENTS
    remove: EventFilter = NO_EVENTS


class CommentModeType(str, Enum):
    """What a matching comment rule does."""

    ADD = "add"
    UPDATE = "update"


class CommentMode(BaseModel):
    """Comment rule mode.

    Attributes:
        type: 'add' posts a new comment, 'update' rewrites the comment or issue body
        event: Events on which the rule is considered at all
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: CommentModeType = CommentModeType.ADD
    event: EventFilter = ALL_EVENTS


SYNC_LABEL_MODE = LabelMode(add=ALL_EVENTS, remove=ALL_EVENTS)
ADD_ONLY_LABEL_MODE = LabelMode(add=ALL_EVENTS, remove=NO_EVENTS)
DEFAULT_COMMENT_MODE = CommentMode()


class RuleBase(BaseModel):
    """Fields shared by label and comment rules.

    Attributes:
        name: Rule name, referenced by other rules' skip_if/remove_if
        content: Label name or comment template; '' means produce nothing
        regexes: Patterns the event text must all match
        author_association: Patterns the author association must all match
        skip_if: Names of rules whose addition skips this rule
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: Annotated[str, Field(min_length=1)]
    content: str
    regexes: tuple[str, ...] = ()
    author_association: tuple[str, ...] = ()
    skip_if: tuple[str, ...] = ()


class LabelRule(RuleBase):
    """Rule that adds or removes a label.

    Attributes:
        mode: Events for the add and remove branches
        remove_if: Names of rules whose addition forces this label's removal
    """

    mode: LabelMode = SYNC_LABEL_MODE
    remove_if: tuple[str, ...] = ()


class CommentRule(RuleBase):
    """Rule that adds a comment or updates a body."""

    mode: CommentMode = DEFAULT_COMMENT_MODE


class RuleSet(BaseModel):
    """Label and comment rules parsed from one configuration document."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    labels: tuple[LabelRule, ...] = ()
    comments: tuple[CommentRule, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.labels and not self.comments
