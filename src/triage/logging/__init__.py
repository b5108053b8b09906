"""Logging module for issue-triage.

This module provides structured JSON logging with:
- structlog configuration for consistent log formatting
- Secret redaction for GitHub tokens
- Audit logging for decision trails
- Structured log events for event processing

Usage:
    from triage.logging import configure_logging, log_decision

    configure_logging(verbose=True)
    log_decision(event_name, targets, rules_evaluated, actions_taken, disposition, message)
"""

from triage.logging.audit import (
    AuditObserver,
    configure_logging,
    get_logger,
    log_action_taken,
    log_decision,
    log_event_received,
    log_rule_evaluated,
    redact_secrets,
)

__all__ = [
    "AuditObserver",
    "configure_logging",
    "get_logger",
    "log_action_taken",
    "log_decision",
    "log_event_received",
    "log_rule_evaluated",
    "redact_secrets",
]
