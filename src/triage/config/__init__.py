"""Configuration module for issue-triage.

This module provides rule file loading, parsing and the schema of the
parsed rules. Action inputs live in triage.config.settings.

Usage:
    from triage.config import load_rule_set, load_rule_set_text

    rules = load_rule_set(".github/triage.yml", sync_labels=1)
    rules = load_rule_set_text(fetched_text, sync_labels=0)
"""

from triage.config.errors import (
    ConfigError,
    ConfigNotFoundError,
    ConfigValidationError,
    RuleParseError,
)
from triage.config.loader import (
    decode_content,
    load_rule_set,
    load_rule_set_text,
    load_yaml_text,
)
from triage.config.parser import (
    default_label_mode,
    parse_comment_mode,
    parse_comment_rule,
    parse_label_mode,
    parse_label_rule,
    parse_rule_set,
)
from triage.config.schema import (
    ALL_EVENTS,
    NO_EVENTS,
    AllEvents,
    CommentMode,
    CommentModeType,
    CommentRule,
    EventFilter,
    EventType,
    InvalidEventError,
    LabelMode,
    LabelRule,
    RuleSet,
    SpecificEvents,
    extend_filter,
)

__all__ = [
    "ALL_EVENTS",
    "NO_EVENTS",
    "AllEvents",
    "CommentMode",
    "CommentModeType",
    "CommentRule",
    "ConfigError",
    "ConfigNotFoundError",
    "ConfigValidationError",
    "EventFilter",
    "EventType",
    "InvalidEventError",
    "LabelMode",
    "LabelRule",
    "RuleParseError",
    "RuleSet",
    "SpecificEvents",
    "decode_content",
    "default_label_mode",
    "extend_filter",
    "load_rule_set",
    "load_rule_set_text",
    "load_yaml_text",
    "parse_comment_mode",
    "parse_comment_rule",
    "parse_label_mode",
    "parse_label_rule",
    "parse_rule_set",
]
