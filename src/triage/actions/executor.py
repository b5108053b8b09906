"""Action planning and execution.

This module provides:
- plan_actions: turns an evaluation into concrete GitHub API calls, diffed
  against the labels already on the item
- plan_push_actions: the 'fixed' labels for issues closed by a push
- ActionExecutor: runs planned actions with per-action failure isolation
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import BaseModel, ConfigDict, Field

from triage.config.schema import EventType
from triage.github.auth import AuthenticationError
from triage.github.client import GitHubAPIError
from triage.github.events import EventPayloadError

if TYPE_CHECKING:
    from triage.github.client import GitHubClient
    from triage.github.events import EventInfo
    from triage.rules.schema import Evaluation

logger = logging.getLogger(__name__)

FIXED_LABEL = "fixed"


class ActionType(str, Enum):
    """GitHub API call performed by an action."""

    ADD_LABELS = "add_labels"
    REMOVE_LABEL = "remove_label"
    ADD_COMMENT = "add_comment"
    UPDATE_COMMENT = "update_comment"
    UPDATE_ISSUE = "update_issue"


class ActionStatus(str, Enum):
    """Status of an action execution."""

    SUCCESS = "success"
    FAILURE = "failure"
    DRY_RUN = "dry_run"


class PlannedAction(BaseModel):
    """One GitHub API call to make.

    Attributes:
        type: Kind of call
        issue_number: Issue or PR the action concerns
        comment_id: Comment to update (UPDATE_COMMENT only)
        labels: Labels to add (ADD_LABELS) or the single label to remove
        body: Comment or issue body (comment and issue actions)
    """

    model_config = ConfigDict(frozen=True)

    type: ActionType
    issue_number: int
    comment_id: int | None = None
    labels: list[str] = Field(default_factory=list)
    body: str | None = None

    @property
    def target(self) -> str:
        if self.type == ActionType.UPDATE_COMMENT:
            return f"comment {self.comment_id}"
        return f"#{self.issue_number}"

    def describe(self) -> str:
        """Human-readable one-line summary."""
        if self.type == ActionType.ADD_LABELS:
            return f"Add labels {', '.join(self.labels)} to {self.target}"
        if self.type == ActionType.REMOVE_LABEL:
            return f"Remove label {self.labels[0]} from {self.target}"
        preview = (self.body or "").replace("\n", "\\n")[:100]
        if self.type == ActionType.ADD_COMMENT:
            return f"Comment `{preview}` on {self.target}"
        return f"Update {self.target} with `{preview}`"


class ActionResult(BaseModel):
    """Result of an action execution."""

    model_config = ConfigDict(frozen=True)

    action: PlannedAction = Field(..., description="The action that was executed")
    status: ActionStatus = Field(..., description="Execution status")
    message: str = Field(default="", description="Status message or error")
    executed_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the action was executed",
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional action-specific details",
    )

    @property
    def action_type(self) -> ActionType:
        return self.action.type

    @property
    def is_success(self) -> bool:
        """Check if action succeeded."""
        return self.status == ActionStatus.SUCCESS

    @property
    def is_failure(self) -> bool:
        """Check if action failed."""
        return self.status == ActionStatus.FAILURE


def plan_actions(
    event: EventInfo,
    evaluation: Evaluation,
    current_labels: Iterable[str],
    *,
    sync_labels: bool,
) -> list[PlannedAction]:
    """Turn an evaluation into GitHub API calls.

    - Labels already on the item are not added again; the rest are added in
      a single call.
    - With sync_labels, every label to remove that is on the item is removed.
    - Every comment to add is posted.
    - Updates rewrite the triggering comment for issue_comment events and the
      issue body otherwise.

    Raises:
        EventPayloadError: If an issue_comment update has no comment id.
    """
    issue_number = event.issue_number
    present = set(current_labels)
    actions: list[PlannedAction] = []

    to_add = [label for label in evaluation.labels.to_add if label not in present]
    if to_add:
        actions.append(
            PlannedAction(type=ActionType.ADD_LABELS, issue_number=issue_number, labels=to_add)
        )

    if sync_labels:
        actions.extend(
            PlannedAction(type=ActionType.REMOVE_LABEL, issue_number=issue_number, labels=[label])
            for label in evaluation.labels.to_remove
            if label in present
        )

    actions.extend(
        PlannedAction(type=ActionType.ADD_COMMENT, issue_number=issue_number, body=body)
        for body in evaluation.comments.to_add
    )

    updates = evaluation.comments.to_update
    if updates and event.event_name == EventType.ISSUE_COMMENT:
        if event.comment_id is None:
            msg = f"event name is {event.event_name.value}, but comment_id is missing"
            raise EventPayloadError(msg)
        actions.extend(
            PlannedAction(
                type=ActionType.UPDATE_COMMENT,
                issue_number=issue_number,
                comment_id=event.comment_id,
                body=body,
            )
            for body in updates
        )
    else:
        actions.extend(
            PlannedAction(type=ActionType.UPDATE_ISSUE, issue_number=issue_number, body=body)
            for body in updates
        )

    return actions


def plan_push_actions(event: EventInfo) -> list[PlannedAction]:
    """Label every issue a push closes as fixed."""
    return [
        PlannedAction(type=ActionType.ADD_LABELS, issue_number=number, labels=[FIXED_LABEL])
        for number in event.issue_numbers
    ]


class ActionExecutor:
    """Executor for dispatching planned actions to the GitHub client.

    Every action is best effort: an API or network failure is logged and
    reported in the result, and the remaining actions still run.
    """

    def __init__(
        self,
        client: GitHubClient | None,
        *,
        dry_run: bool = False,
    ) -> None:
        """Initialize action executor.

        Args:
            client: GitHub client (may be None in dry-run mode).
            dry_run: If True, log actions without executing.
        """
        if client is None and not dry_run:
            msg = "a GitHub client is required unless dry_run is set"
            raise ValueError(msg)
        self._client = client
        self._dry_run = dry_run

    async def execute(self, action: PlannedAction) -> ActionResult:
        """Execute a single action.

        Args:
            action: Action to execute.

        Returns:
            ActionResult with execution status.
        """
        if self._dry_run or self._client is None:
            logger.info("[DRY RUN] Would %s", action.describe())
            return ActionResult(
                action=action,
                status=ActionStatus.DRY_RUN,
                message=f"Dry run: {action.describe()}",
            )

        try:
            details = await self._dispatch(self._client, action)
        except (GitHubAPIError, AuthenticationError, httpx.HTTPError) as e:
            logger.warning("Unable to %s. (%s)", action.describe(), e)
            return ActionResult(
                action=action,
                status=ActionStatus.FAILURE,
                message=str(e),
                details={"status_code": getattr(e, "status_code", None)},
            )

        logger.info("%s", action.describe())
        return ActionResult(
            action=action,
            status=ActionStatus.SUCCESS,
            message=action.describe(),
            details=details,
        )

    async def _dispatch(self, client: GitHubClient, action: PlannedAction) -> dict[str, Any]:
        if action.type == ActionType.ADD_LABELS:
            await client.add_labels(action.issue_number, action.labels)
            return {"labels": action.labels}

        if action.type == ActionType.REMOVE_LABEL:
            await client.remove_label(action.issue_number, action.labels[0])
            return {"label": action.labels[0]}

        body = action.body or ""
        if action.type == ActionType.ADD_COMMENT:
            data = await client.create_comment(action.issue_number, body)
        elif action.type == ActionType.UPDATE_COMMENT:
            if action.comment_id is None:
                msg = "update_comment action has no comment id"
                raise ValueError(msg)
            data = await client.update_comment(action.comment_id, body)
        else:
            data = await client.update_issue_body(action.issue_number, body)

        data = data if isinstance(data, dict) else {}
        return {"id": data.get("id"), "url": data.get("html_url")}

    async def execute_all(self, actions: Iterable[PlannedAction]) -> list[ActionResult]:
        """Execute actions in order, isolating failures.

        Returns:
            One ActionResult per action.
        """
        return [await self.execute(action) for action in actions]
