"""Action planning and execution for evaluated rules."""

from triage.actions.executor import (
    FIXED_LABEL,
    ActionExecutor,
    ActionResult,
    ActionStatus,
    ActionType,
    PlannedAction,
    plan_actions,
    plan_push_actions,
)

__all__ = [
    "FIXED_LABEL",
    "ActionExecutor",
    "ActionResult",
    "ActionStatus",
    "ActionType",
    "PlannedAction",
    "plan_actions",
    "plan_push_actions",
]
