"""One triage run for one triggering event.

The runner ties the pieces together:
- resolve the event and its target issue or pull request
- read the rule file from the repository at the triggering commit
- evaluate label and comment rules
- diff against the labels already present and apply the result
- write an audit decision record
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import BaseModel, ConfigDict, Field

from triage.actions.executor import (
    ActionExecutor,
    ActionResult,
    ActionStatus,
    PlannedAction,
    plan_actions,
    plan_push_actions,
)
from triage.config.loader import load_rule_set_text
from triage.config.schema import EventType
from triage.github.client import GitHubAPIError
from triage.github.events import get_event_info
from triage.logging import AuditObserver, get_logger, log_action_taken, log_decision, log_event_received
from triage.rules.engine import RulesEngine
from triage.rules.schema import Evaluation

if TYPE_CHECKING:
    from triage.config.settings import Settings
    from triage.github.client import GitHubClient
    from triage.github.events import EventInfo
    from triage.rules.engine import EvaluationObserver

logger = logging.getLogger(__name__)


class RunStatus(str, Enum):
    """Final disposition of a run."""

    COMPLETED = "completed"
    NO_ACTIONS = "no_actions"
    DRY_RUN = "dry_run"
    PARTIAL_FAILURE = "partial_failure"
    SKIPPED_NOT_BEFORE = "skipped_not_before"


class RunSummary(BaseModel):
    """What a run decided and did."""

    model_config = ConfigDict(frozen=True)

    event_name: EventType
    targets: list[int] = Field(default_factory=list)
    status: RunStatus
    evaluation: Evaluation | None = Field(
        default=None,
        description="Rule results (None for push events and skipped runs)",
    )
    results: list[ActionResult] = Field(default_factory=list)

    @property
    def planned(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.is_success)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.is_failure)


def _final_status(results: list[ActionResult], dry_run: bool) -> RunStatus:
    if not results:
        return RunStatus.NO_ACTIONS
    if any(r.is_failure for r in results):
        return RunStatus.PARTIAL_FAILURE
    if dry_run:
        return RunStatus.DRY_RUN
    return RunStatus.COMPLETED


def _action_records(results: list[ActionResult]) -> list[dict[str, Any]]:
    records = []
    for result in results:
        record: dict[str, Any] = {
            "action_type": result.action_type.value,
            "target": result.action.target,
            "result": result.status.value,
        }
        if result.status == ActionStatus.FAILURE:
            record["message"] = result.message
        records.append(record)
    return records


async def _apply(
    client: GitHubClient,
    actions: list[PlannedAction],
    *,
    dry_run: bool,
) -> list[ActionResult]:
    executor = ActionExecutor(client, dry_run=dry_run)
    results = await executor.execute_all(actions)
    for result in results:
        log_action_taken(
            result.action_type.value,
            result.action.target,
            result.status.value,
            message_preview=(result.action.body or "")[:100] or None,
            error=result.message if result.is_failure else None,
        )
    return results


async def _current_labels(client: GitHubClient, issue_number: int) -> set[str]:
    try:
        return await client.list_labels(issue_number)
    except (GitHubAPIError, httpx.HTTPError) as e:
        logger.warning("Unable to get labels of #%d, assuming none. (%s)", issue_number, e)
        return set()


def _is_before(event: EventInfo, settings: Settings) -> bool:
    if settings.not_before is None:
        return False
    return event.created_at_datetime() < settings.not_before


async def run_triage(
    settings: Settings,
    event_name: str,
    payload: dict[str, Any],
    *,
    client: GitHubClient,
    dry_run: bool = False,
    observer: EvaluationObserver | None = None,
) -> RunSummary:
    """Triage the item behind one event.

    Args:
        settings: Action inputs
        event_name: Triggering event name
        payload: Webhook payload of the event
        client: GitHub client scoped to settings.repository
        dry_run: Log actions instead of calling the API
        observer: Engine observer (an AuditObserver by default)

    Returns:
        RunSummary describing the decision and every action result.

    Raises:
        UnhandledEventError: If the event is not one the engine handles.
        EventPayloadError: If the payload lacks a required field.
        ConfigError: If the rule file cannot be decoded or parsed.
        GitHubAPIError: If the rule file cannot be fetched.
    """
    log = get_logger("triage.runner")
    event = get_event_info(event_name, payload)
    log_event_received(event.event_name.value, event.issue_numbers, event.author_association)

    if event.event_name == EventType.PUSH:
        results = await _apply(client, plan_push_actions(event), dry_run=dry_run)
        status = _final_status(results, dry_run)
        log_decision(
            event.event_name.value,
            event.issue_numbers,
            [],
            _action_records(results),
            status.value,
            f"Labelled {len(event.issue_numbers)} fixed issue(s)",
        )
        return RunSummary(
            event_name=event.event_name,
            targets=event.issue_numbers,
            status=status,
            results=results,
        )

    issue_number = event.issue_number
    if _is_before(event, settings):
        log.info(
            "Skipping item created before not-before",
            issue_number=issue_number,
            created_at=event.created_at,
            not_before=settings.not_before.isoformat() if settings.not_before else None,
        )
        return RunSummary(
            event_name=event.event_name,
            targets=[issue_number],
            status=RunStatus.SKIPPED_NOT_BEFORE,
        )

    text = await client.get_file_content(settings.configuration_path, settings.sha)
    rule_set = load_rule_set_text(
        text,
        settings.sync_labels,
        source=settings.configuration_path,
    )
    log.debug(
        "Loaded rules",
        labels=len(rule_set.labels),
        comments=len(rule_set.comments),
    )

    current_labels = await _current_labels(client, issue_number)

    audit = observer if observer is not None else AuditObserver()
    engine = RulesEngine(rule_set, observer=audit)
    evaluation = engine.evaluate(
        event.event_name,
        event.author_association,
        label_text=event.label_text(include_title=settings.include_title),
        comment_text=event.body,
    )

    actions = plan_actions(
        event,
        evaluation,
        current_labels,
        sync_labels=settings.sync_labels == 1,
    )
    results = await _apply(client, actions, dry_run=dry_run)
    status = _final_status(results, dry_run)

    records = audit.records if isinstance(audit, AuditObserver) else []
    log_decision(
        event.event_name.value,
        [issue_number],
        records,
        _action_records(results),
        status.value,
        f"Triaged #{issue_number}: {len(actions)} action(s)",
    )

    return RunSummary(
        event_name=event.event_name,
        targets=[issue_number],
        status=status,
        evaluation=evaluation,
        results=results,
    )
