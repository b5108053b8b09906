"""Rule document parsing and validation.

Converts a decoded configuration document (parsed YAML or JSON) into a
validated, fully-defaulted RuleSet. Document grammar:

    default-mode: <label mode>          # optional
    labels:
      - name: bug                       # required
        content: "type: bug"            # defaults to name, '' produces nothing
        regexes: ["/\\bcrash\\b/i"]     # string or list, all must match
        author-association: NONE        # string or list, all must match
        skip-if: [question]             # string or list of rule names
        remove-if: [wontfix]            # string or list of rule names
        mode: {add: [issues], remove: null}
    comments:
      - name: thanks
        content: "Thanks! You wrote: ${body}"
        mode: {type: add, event: issues}

Every field is coerced through an ordered tuple of (condition, transform)
shapes; the first shape whose condition accepts the raw value wins and a
value no shape accepts is rejected. Any malformed rule rejects the whole
document.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import ValidationError

from triage.config.errors import RuleParseError
from triage.config.schema import (
    ADD_ONLY_LABEL_MODE,
    ALL_EVENTS,
    DEFAULT_COMMENT_MODE,
    NO_EVENTS,
    SYNC_LABEL_MODE,
    AllEvents,
    CommentMode,
    CommentModeType,
    CommentRule,
    EventType,
    InvalidEventError,
    LabelMode,
    LabelRule,
    RuleSet,
    SpecificEvents,
    extend_filter,
)

logger = logging.getLogger(__name__)

TOP_LEVEL_KEYS = ("labels", "comments", "default-mode")
LABEL_BRANCHES = ("add", "remove")

Shape = tuple[Callable[[Any], bool], Callable[[Any], Any]]


def _is_str(value: Any) -> bool:
    return isinstance(value, str)


def _is_list(value: Any) -> bool:
    return isinstance(value, list)


def _is_null(value: Any) -> bool:
    return value is None


def _always(_value: Any) -> bool:
    return True


def _identity(value: Any) -> Any:
    return value


def _wrap_in_list(value: Any) -> list[Any]:
    return [value]


def _empty_string(_value: Any) -> str:
    return ""


def _string_list(value: list[Any]) -> list[str]:
    for entry in value:
        if not isinstance(entry, str):
            msg = f"expected a list of strings, found `{entry!r}`"
            raise RuleParseError(msg)
    return list(value)


STR_TO_STR: Shape = (_is_str, _identity)
STR_TO_LIST: Shape = (_is_str, _wrap_in_list)
LIST_TO_LIST: Shape = (_is_list, _string_list)
NULL_TO_EMPTY: Shape = (_is_null, _empty_string)


def _describe(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, Mapping):
        return "mapping"
    if isinstance(value, list):
        return "list"
    return type(value).__name__


def _coerce(value: Any, shapes: tuple[Shape, ...], location: str) -> Any:
    """Apply the first shape whose condition accepts value."""
    for condition, transform in shapes:
        if condition(value):
            try:
                return transform(value)
            except RuleParseError as e:
                if e.location:
                    raise
                raise RuleParseError(str(e), location) from e
            except InvalidEventError as e:
                raise RuleParseError(str(e), location) from e
    msg = f"found unexpected type of value ({_describe(value)})"
    raise RuleParseError(msg, location)


# =============================================================================
# Label mode
# =============================================================================


class _LabelModeBuilder:
    """Accumulates add/remove event filters while a label mode is parsed."""

    def __init__(self) -> None:
        self.add: AllEvents | SpecificEvents = NO_EVENTS
        self.remove: AllEvents | SpecificEvents = NO_EVENTS

    def append(self, key: Any, items: list[Any] | AllEvents = ALL_EVENTS) -> None:
        """Accumulate one mode entry.

        Args:
            key: 'add'/'remove', in which case items are event tags, or an
                 event tag, in which case items are branch names.
            items: Entries for key; ALL_EVENTS means every event (for
                   'add'/'remove') or both branches (for an event tag).
        """
        if key in LABEL_BRANCHES:
            self._extend(key, items)
            return

        event = EventType.parse(key)
        if event is None:
            raise InvalidEventError(key)

        branches = LABEL_BRANCHES if isinstance(items, AllEvents) else items
        for branch in branches:
            if branch not in LABEL_BRANCHES:
                msg = f"found unexpected value `{branch}` for event `{event.value}`"
                raise RuleParseError(msg)
            self._extend(branch, [event])

    def _extend(self, branch: str, items: list[Any] | AllEvents) -> None:
        setattr(self, branch, extend_filter(getattr(self, branch), items))

    def build(self) -> LabelMode:
        return LabelMode(add=self.add, remove=self.remove)


def parse_label_mode(value: Any) -> LabelMode:
    """Parse a label rule's mode.

    Accepted shapes:
    - 'issues': the event participates in both add and remove
    - ['issues', 'pull_request']: the same for each event
    - {add: ..., remove: ..., <event>: ...}: 'add'/'remove' take null (all
      events), an event or a list of events; an event key takes null (both
      branches), a branch name or a list of branch names

    Raises:
        RuleParseError: If the value has any other shape.
        InvalidEventError: If an entry is not a recognized event tag.
    """
    builder = _LabelModeBuilder()
    if isinstance(value, str):
        builder.append(value)
    elif isinstance(value, list):
        for entry in value:
            if not isinstance(entry, str):
                msg = f"found unexpected type of label mode entry ({_describe(entry)})"
                raise RuleParseError(msg)
            builder.append(entry)
    elif isinstance(value, Mapping):
        for key, entry in value.items():
            if entry is None:
                builder.append(key, ALL_EVENTS)
            elif isinstance(entry, str):
                builder.append(key, [entry])
            elif isinstance(entry, list):
                builder.append(key, entry)
            else:
                msg = f"found unexpected type of value for `{key}` ({_describe(entry)})"
                raise RuleParseError(msg)
    else:
        msg = f"found unexpected type of label mode ({_describe(value)})"
        raise RuleParseError(msg)
    return builder.build()


def default_label_mode(sync_labels: int) -> LabelMode:
    """Resolve the label mode used when neither a rule nor the document sets one.

    Raises:
        RuleParseError: If sync_labels is not 0 or 1.
    """
    if sync_labels == 1:
        return SYNC_LABEL_MODE
    if sync_labels == 0:
        return ADD_ONLY_LABEL_MODE
    msg = f"found unexpected value of sync-labels ({sync_labels!r}, should be 0 or 1)"
    raise RuleParseError(msg)


# =============================================================================
# Comment mode
# =============================================================================


def _comment_mode_type(value: Any) -> CommentModeType:
    try:
        return CommentModeType(value)
    except ValueError:
        msg = f"found unexpected value `{value}` of field `type`"
        raise RuleParseError(msg) from None


def parse_comment_mode(value: Any) -> CommentMode:
    """Parse a comment rule's mode.

    Accepted shapes:
    - 'add' or 'update': that type, on every event
    - {type: 'add'|'update', event: <event> | [<event>, ...]}

    A list given for 'event' fully replaces the default filter.

    Raises:
        RuleParseError: If the value or one of its fields is malformed.
    """
    if isinstance(value, str):
        return CommentMode(type=_comment_mode_type(value))

    if not isinstance(value, Mapping):
        msg = f"found unexpected type of comment mode ({_describe(value)})"
        raise RuleParseError(msg)

    for key in value:
        if key not in ("type", "event"):
            msg = f"found unexpected field `{key}`"
            raise RuleParseError(msg)

    mode_type = DEFAULT_COMMENT_MODE.type
    event_filter: AllEvents | SpecificEvents = DEFAULT_COMMENT_MODE.event

    if "type" in value:
        mode_type = _comment_mode_type(value["type"])

    if "event" in value:
        raw_event = value["event"]
        if isinstance(raw_event, list):
            try:
                event_filter = extend_filter(NO_EVENTS, raw_event)
            except InvalidEventError as e:
                msg = f"found unexpected value `{e.value}` of field `event`"
                raise RuleParseError(msg) from e
        else:
            event = EventType.parse(raw_event)
            if event is None:
                msg = f"found unexpected value `{raw_event}` of field `event`"
                raise RuleParseError(msg)
            event_filter = SpecificEvents(events=(event,))

    return CommentMode(type=mode_type, event=event_filter)


# =============================================================================
# Rules
# =============================================================================


BASE_FIELDS: dict[str, tuple[Shape, ...]] = {
    "name": (STR_TO_STR,),
    "content": (STR_TO_STR, NULL_TO_EMPTY),
    "author_association": (STR_TO_LIST, LIST_TO_LIST),
    "regexes": (STR_TO_LIST, LIST_TO_LIST),
    "skip_if": (STR_TO_LIST, LIST_TO_LIST),
}

LABEL_FIELDS: dict[str, tuple[Shape, ...]] = {
    **BASE_FIELDS,
    "remove_if": (STR_TO_LIST, LIST_TO_LIST),
    "mode": ((_always, parse_label_mode),),
}

COMMENT_FIELDS: dict[str, tuple[Shape, ...]] = {
    **BASE_FIELDS,
    "mode": ((_always, parse_comment_mode),),
}


def normalize_key(key: Any) -> str:
    """Fold a field name to its underscore spelling (skip-if -> skip_if)."""
    return str(key).replace("-", "_")


def _parse_rule_fields(
    item: Any,
    fields: dict[str, tuple[Shape, ...]],
    defaults: dict[str, Any],
    location: str,
) -> dict[str, Any]:
    """Coerce a raw rule mapping into keyword arguments for a rule model."""
    if not isinstance(item, Mapping):
        msg = f"found unexpected type of rule ({_describe(item)}), expected a mapping"
        raise RuleParseError(msg, location)

    params: dict[str, Any] = {
        "name": "",
        "content": None,
        "author_association": [],
        "regexes": [],
        "skip_if": [],
        **defaults,
    }
    for key, value in item.items():
        field = normalize_key(key)
        shapes = fields.get(field)
        if shapes is None:
            msg = f"found unexpected field `{key}`"
            raise RuleParseError(msg, location)
        params[field] = _coerce(value, shapes, f"{location}.{key}")

    if not params["name"]:
        msg = "rule name is missing"
        raise RuleParseError(msg, location)
    if params["content"] is None:
        params["content"] = params["name"]
    return params


def parse_label_rule(item: Any, default_mode: LabelMode, location: str = "labels") -> LabelRule:
    """Parse one label rule.

    Args:
        item: Raw rule mapping.
        default_mode: Mode used when the rule has none.
        location: Position of the rule, for error messages.

    Returns:
        Validated LabelRule.
    """
    params = _parse_rule_fields(
        item,
        LABEL_FIELDS,
        {"remove_if": [], "mode": default_mode},
        location,
    )
    try:
        return LabelRule.model_validate(params)
    except ValidationError as e:
        raise RuleParseError(_first_error(e), location) from e


def parse_comment_rule(
    item: Any,
    default_mode: CommentMode = DEFAULT_COMMENT_MODE,
    location: str = "comments",
) -> CommentRule:
    """Parse one comment rule."""
    params = _parse_rule_fields(item, COMMENT_FIELDS, {"mode": default_mode}, location)
    try:
        return CommentRule.model_validate(params)
    except ValidationError as e:
        raise RuleParseError(_first_error(e), location) from e


def _first_error(error: ValidationError) -> str:
    err = error.errors()[0]
    loc = ".".join(str(part) for part in err["loc"])
    return f"{loc}: {err['msg']}" if loc else err["msg"]


def _rule_list(document: Mapping[str, Any], key: str) -> list[Any]:
    if key not in document:
        return []
    value = document[key]
    if not isinstance(value, list):
        msg = f"found unexpected type of value ({_describe(value)}), expected a list of rules"
        raise RuleParseError(msg, key)
    return value


def parse_rule_set(document: Any, sync_labels: int) -> RuleSet:
    """Parse and validate a complete rule document.

    Args:
        document: Decoded configuration document. None (an empty file) is
                  treated as an empty mapping.
        sync_labels: Global sync-labels flag (0 or 1). Decides the default
                     label mode when the document has no 'default-mode'.

    Returns:
        Validated RuleSet.

    Raises:
        RuleParseError: If anything in the document is malformed.

    Example:
        >>> rules = parse_rule_set({"labels": [{"name": "bug", "regexes": "crash"}]}, 1)
        >>> rules.labels[0].content
        'bug'
    """
    if document is None:
        document = {}
    if not isinstance(document, Mapping):
        msg = f"found unexpected type of configuration ({_describe(document)}), expected a mapping"
        raise RuleParseError(msg)

    for key in document:
        if key not in TOP_LEVEL_KEYS:
            msg = f"found unexpected field `{key}`"
            raise RuleParseError(msg)

    if "default-mode" in document:
        label_default = _coerce(
            document["default-mode"],
            ((_always, parse_label_mode),),
            "default-mode",
        )
    else:
        label_default = default_label_mode(sync_labels)

    labels = tuple(
        parse_label_rule(item, label_default, f"labels[{index}]")
        for index, item in enumerate(_rule_list(document, "labels"))
    )
    comments = tuple(
        parse_comment_rule(item, DEFAULT_COMMENT_MODE, f"comments[{index}]")
        for index, item in enumerate(_rule_list(document, "comments"))
    )

    logger.debug(
        "Parsed rule set: %d label rule(s), %d comment rule(s)",
        len(labels),
        len(comments),
    )
    return RuleSet(labels=labels, comments=comments)
