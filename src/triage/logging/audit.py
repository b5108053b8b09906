"""Structured JSON logging and audit trail functionality.

This module provides:
- structlog configuration for JSON logging to stderr
- Secret redaction for sensitive values (GitHub tokens, authorization headers)
- Structured log events for event processing, rule evaluation, action execution
- AuditObserver, which records the rule engine's decisions
- Audit log decision formatting
"""

from __future__ import annotations

import logging
import re
import sys
from typing import TYPE_CHECKING, Any

import structlog

from triage.config.schema import LabelRule

if TYPE_CHECKING:
    from collections.abc import Callable

    from structlog.typing import EventDict, WrappedLogger

    from triage.config.schema import RuleBase
    from triage.rules.schema import QueueKind

# Patterns for secret redaction
SECRET_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    # GitHub tokens (ghp_, gho_, ghu_, ghs_, ghr_ prefixes)
    (re.compile(r"(gh[pousr]_[A-Za-z0-9_]{36,})"), "[REDACTED_GITHUB_TOKEN]"),
    # Fine-grained personal access tokens
    (re.compile(r"(github_pat_[A-Za-z0-9_]{22,})"), "[REDACTED_GITHUB_TOKEN]"),
    # Generic tokens that look like they might be sensitive
    (re.compile(r"(token[=:]\s*['\"]?)([A-Za-z0-9_-]{20,})"), r"\1[REDACTED]"),
    # Bearer tokens in headers
    (re.compile(r"(Bearer\s+)([A-Za-z0-9._-]+)", re.IGNORECASE), r"\1[REDACTED]"),
    # Authorization headers
    (re.compile(r"(authorization[=:]\s*['\"]?)([^\s'\"]+)", re.IGNORECASE), r"\1[REDACTED]"),
]


def redact_secrets(value: Any) -> Any:
    """Redact sensitive values from a string, dict, or list.

    Args:
        value: Value to redact. Can be str, dict, list, or other.

    Returns:
        Value with sensitive data redacted
    """
    if isinstance(value, str):
        result = value
        for pattern, replacement in SECRET_PATTERNS:
            result = pattern.sub(replacement, result)
        return result

    if isinstance(value, dict):
        return {k: redact_secrets(v) for k, v in value.items()}

    if isinstance(value, list):
        return [redact_secrets(item) for item in value]

    return value


def _redact_processor(
    _logger: WrappedLogger,
    _method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """structlog processor that redacts secrets from log events."""
    return redact_secrets(event_dict)


def configure_logging(
    verbose: bool = False,
    json_output: bool = True,
) -> None:
    """Configure structured logging for the application.

    Sets up structlog with JSON formatting to stderr, including:
    - Timestamp in ISO format
    - Log level
    - Secret redaction
    - Exception formatting

    Args:
        verbose: If True, enable DEBUG level. Otherwise INFO.
        json_output: If True, output JSON. Otherwise use console format.
    """
    level = logging.DEBUG if verbose else logging.INFO

    # Library modules log through the standard library
    logging.basicConfig(
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
        level=level,
        force=True,
    )

    processors: list[Callable[..., Any]] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _redact_processor,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a configured structlog logger.

    Args:
        name: Optional logger name (typically __name__)

    Returns:
        Bound structlog logger
    """
    return structlog.get_logger(name)


def log_decision(
    event_name: str,
    targets: list[int],
    rules_evaluated: list[dict[str, Any]],
    actions_taken: list[dict[str, Any]],
    disposition: str,
    message: str,
) -> None:
    """Log a full decision trail for an event.

    This creates a structured log entry with the complete audit trail,
    including what each rule decided and which API calls were made.

    Args:
        event_name: Triggering event (e.g., 'issues')
        targets: Issue/PR numbers acted on
        rules_evaluated: Records collected by an AuditObserver
        actions_taken: Action execution results
        disposition: Final disposition (e.g., 'actions_applied')
        message: Human-readable summary
    """
    log = get_logger("triage.audit")

    matched_count = sum(1 for r in rules_evaluated if r.get("decision") == "matched")
    success_count = sum(1 for a in actions_taken if a.get("result") == "success")

    log.info(
        "decision",
        event_name=event_name,
        targets=targets,
        rules_evaluated=rules_evaluated,
        rules_matched=matched_count,
        actions_taken=actions_taken,
        actions_succeeded=success_count,
        disposition=disposition,
        message=message,
    )


def log_event_received(
    event_name: str,
    targets: list[int],
    author_association: str,
) -> None:
    """Log the resolved triggering event.

    Args:
        event_name: Triggering event
        targets: Issue/PR numbers the event concerns
        author_association: Author association of the body's author
    """
    log = get_logger("triage.events")
    log.info(
        "event_received",
        event_name=event_name,
        targets=targets,
        author_association=author_association,
    )


def log_rule_evaluated(
    rule_kind: str,
    rule_name: str,
    decision: str,
    reason: str,
) -> None:
    """Log a rule engine decision.

    Args:
        rule_kind: 'label' or 'comment'
        rule_name: Rule name
        decision: 'skipped', 'matched', 'unmatched' or 'queued'
        reason: Explanation of the decision
    """
    log = get_logger("triage.rules")
    log.debug(
        "rule_evaluated",
        rule_kind=rule_kind,
        rule_name=rule_name,
        decision=decision,
        reason=reason,
    )


def log_action_taken(
    action_type: str,
    target: str,
    result: str,
    message_preview: str | None = None,
    error: str | None = None,
) -> None:
    """Log when an action is executed.

    Args:
        action_type: Type of action (e.g., 'add_labels')
        target: Issue, PR or comment acted on
        result: Result status ('success', 'failure', 'dry_run')
        message_preview: First 100 chars of a comment body
        error: Error message if failed
    """
    log = get_logger("triage.actions")

    log_func = log.warning if result == "failure" else log.info

    log_func(
        "action_taken",
        action_type=action_type,
        target=target,
        result=result,
        message_preview=message_preview,
        error=error,
    )


def _rule_kind(rule: RuleBase) -> str:
    return "label" if isinstance(rule, LabelRule) else "comment"


class AuditObserver:
    """Rule engine observer that logs and records every decision.

    The collected records are what log_decision reports as rules_evaluated.
    """

    def __init__(self) -> None:
        self.records: list[dict[str, Any]] = []

    def _record(self, rule: RuleBase, decision: str, reason: str, **extra: Any) -> None:
        kind = _rule_kind(rule)
        self.records.append(
            {"rule_kind": kind, "rule_name": rule.name, "decision": decision, "reason": reason, **extra}
        )
        log_rule_evaluated(kind, rule.name, decision, reason)

    def rule_skipped(self, rule: RuleBase, reason: str) -> None:
        self._record(rule, "skipped", reason)

    def rule_matched(self, rule: RuleBase, reason: str) -> None:
        self._record(rule, "matched", reason)

    def rule_unmatched(self, rule: RuleBase, reason: str) -> None:
        self._record(rule, "unmatched", reason)

    def item_queued(self, rule: RuleBase, kind: QueueKind, content: str) -> None:
        self._record(rule, "queued", f"Queued for {kind.value}", queue=kind.value, content=content[:100])
