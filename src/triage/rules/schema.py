"""Rule evaluation result models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class QueueKind(str, Enum):
    """Which output list an item was queued into."""

    LABEL_ADD = "label_add"
    LABEL_REMOVE = "label_remove"
    COMMENT_ADD = "comment_add"
    COMMENT_UPDATE = "comment_update"


class LabelActions(BaseModel):
    """Labels derived from the label rules for one event."""

    model_config = ConfigDict(frozen=True)

    to_add: list[str] = Field(default_factory=list, description="Labels to add, in rule order")
    to_remove: list[str] = Field(default_factory=list, description="Labels to remove, in rule order")


class CommentActions(BaseModel):
    """Comment bodies derived from the comment rules for one event."""

    model_config = ConfigDict(frozen=True)

    to_add: list[str] = Field(default_factory=list, description="Comments to post")
    to_update: list[str] = Field(
        default_factory=list,
        description="Bodies to write over the triggering comment or issue",
    )


class Evaluation(BaseModel):
    """Combined label and comment results."""

    model_config = ConfigDict(frozen=True)

    labels: LabelActions = Field(default_factory=LabelActions)
    comments: CommentActions = Field(default_factory=CommentActions)

    @property
    def has_actions(self) -> bool:
        """Check if anything was derived."""
        return bool(
            self.labels.to_add
            or self.labels.to_remove
            or self.comments.to_add
            or self.comments.to_update
        )
