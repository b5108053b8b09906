"""Rule evaluation engine.

This module evaluates label and comment rules against one event:
- Label rules produce labels to add and labels to remove
- Comment rules produce comments to add and bodies to update

Each rule list is evaluated in a single forward pass. A rule can react to an
earlier rule having been added (skip_if, remove_if) but never to a later
one; rule order in the configuration is part of the result.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING, Protocol

from triage.config.schema import CommentModeType
from triage.rules.matchers import explain_match
from triage.rules.schema import CommentActions, Evaluation, LabelActions, QueueKind

if TYPE_CHECKING:
    from triage.config.schema import (
        CommentRule,
        EventType,
        LabelRule,
        RuleBase,
        RuleSet,
    )

logger = logging.getLogger(__name__)

BODY_PLACEHOLDER = "${body}"


class EvaluationObserver(Protocol):
    """Receives callbacks at the decision points of an evaluation pass."""

    def rule_skipped(self, rule: RuleBase, reason: str) -> None:
        """A rule was not considered (skip_if, remove_if or event filter)."""
        ...

    def rule_matched(self, rule: RuleBase, reason: str) -> None:
        """A rule matched and its add/update branch fired."""
        ...

    def rule_unmatched(self, rule: RuleBase, reason: str) -> None:
        """A rule was considered but its add/update branch did not fire."""
        ...

    def item_queued(self, rule: RuleBase, kind: QueueKind, content: str) -> None:
        """An item was appended to one of the output lists."""
        ...


class NullObserver:
    """Observer that ignores every callback."""

    def rule_skipped(self, rule: RuleBase, reason: str) -> None:
        pass

    def rule_matched(self, rule: RuleBase, reason: str) -> None:
        pass

    def rule_unmatched(self, rule: RuleBase, reason: str) -> None:
        pass

    def item_queued(self, rule: RuleBase, kind: QueueKind, content: str) -> None:
        pass


NULL_OBSERVER = NullObserver()


def _first_added(names: Iterable[str], added_names: set[str]) -> str | None:
    for name in names:
        if name in added_names:
            return name
    return None


def _match_rule(rule: RuleBase, text: str, author_association: str) -> tuple[bool, str]:
    """Check the author association filter, then the content patterns."""
    matched, reason = explain_match(author_association, rule.author_association)
    if not matched:
        return False, f"Author association '{author_association}': {reason}"
    return explain_match(text, rule.regexes)


def evaluate_labels(
    rules: Sequence[LabelRule],
    text: str,
    author_association: str,
    event_type: EventType,
    *,
    observer: EvaluationObserver | None = None,
) -> LabelActions:
    """Evaluate label rules against an event.

    For each rule, in order:
    1. If a rule named in skip_if has been added, the rule is skipped.
    2. If a rule named in remove_if has been added, the label is removed.
    3. If the rule matches and the event is in mode.add, the label is added
       and the rule name is recorded as added (even with empty content).
    4. Otherwise, if the event is in mode.remove, the label is removed.

    Labels that end up in both lists are only removed.

    Args:
        rules: Label rules in configuration order.
        text: Text the content patterns are matched against.
        author_association: Author association of the event.
        event_type: Triggering event.
        observer: Optional observer for the decision points.

    Returns:
        LabelActions with de-duplicated lists in first-seen order.

    Raises:
        PatternError: If a rule pattern cannot be compiled.
    """
    observer = observer or NULL_OBSERVER
    to_add: list[str] = []
    to_remove: list[str] = []
    added_names: set[str] = set()

    for rule in rules:
        content = rule.content

        skipped_by = _first_added(rule.skip_if, added_names)
        if skipped_by is not None:
            observer.rule_skipped(rule, f"skip_if '{skipped_by}' has been added")
            continue

        removed_by = _first_added(rule.remove_if, added_names)
        if removed_by is not None:
            observer.rule_skipped(rule, f"remove_if '{removed_by}' has been added")
            if content and content not in to_remove:
                to_remove.append(content)
                observer.item_queued(rule, QueueKind.LABEL_REMOVE, content)
            continue

        need_add = rule.mode.add.includes(event_type)
        need_remove = rule.mode.remove.includes(event_type)
        matched, reason = _match_rule(rule, text, author_association)

        if matched and need_add:
            observer.rule_matched(rule, reason)
            added_names.add(rule.name)
            if content and content not in to_add:
                to_add.append(content)
                observer.item_queued(rule, QueueKind.LABEL_ADD, content)
            continue

        if matched:
            reason = f"Event '{event_type.value}' not in add events {rule.mode.add}"
        observer.rule_unmatched(rule, reason)
        if need_remove and content and content not in to_remove:
            to_remove.append(content)
            observer.item_queued(rule, QueueKind.LABEL_REMOVE, content)

    # Removal wins over addition
    to_add = [label for label in to_add if label not in to_remove]

    logger.debug(
        "Label rules evaluated: %d rule(s), add=%s, remove=%s",
        len(rules),
        to_add,
        to_remove,
    )
    return LabelActions(to_add=to_add, to_remove=to_remove)


def render_comment(template: str, text: str) -> str:
    """Substitute every '${body}' in template with the event text."""
    return template.replace(BODY_PLACEHOLDER, text)


def evaluate_comments(
    rules: Sequence[CommentRule],
    text: str,
    author_association: str,
    event_type: EventType,
    *,
    observer: EvaluationObserver | None = None,
) -> CommentActions:
    """Evaluate comment rules against an event.

    For each rule, in order: skip it if a rule named in skip_if has been
    added or if the event is not in mode.event; otherwise, if it matches,
    render its content and queue it as a new comment ('add', which also
    records the rule name as added) or as an update ('update'). Empty
    rendered content is never queued. Duplicates are kept.

    Raises:
        PatternError: If a rule pattern cannot be compiled.
    """
    observer = observer or NULL_OBSERVER
    to_add: list[str] = []
    to_update: list[str] = []
    added_names: set[str] = set()

    for rule in rules:
        skipped_by = _first_added(rule.skip_if, added_names)
        if skipped_by is not None:
            observer.rule_skipped(rule, f"skip_if '{skipped_by}' has been added")
            continue

        if not rule.mode.event.includes(event_type):
            observer.rule_skipped(
                rule,
                f"Event '{event_type.value}' not in {rule.mode.event}",
            )
            continue

        matched, reason = _match_rule(rule, text, author_association)
        if not matched:
            observer.rule_unmatched(rule, reason)
            continue

        observer.rule_matched(rule, reason)
        body = render_comment(rule.content, text)

        if rule.mode.type == CommentModeType.ADD:
            added_names.add(rule.name)
            if body:
                to_add.append(body)
                observer.item_queued(rule, QueueKind.COMMENT_ADD, body)
        elif body:
            to_update.append(body)
            observer.item_queued(rule, QueueKind.COMMENT_UPDATE, body)

    logger.debug(
        "Comment rules evaluated: %d rule(s), %d to add, %d to update",
        len(rules),
        len(to_add),
        len(to_update),
    )
    return CommentActions(to_add=to_add, to_update=to_update)


class RulesEngine:
    """Engine for evaluating an event against a rule set.

    The rule set is read-only; every call returns fresh result lists, so the
    same engine can evaluate any number of events.
    """

    def __init__(
        self,
        rule_set: RuleSet,
        *,
        observer: EvaluationObserver | None = None,
    ) -> None:
        """Initialize rules engine.

        Args:
            rule_set: Parsed label and comment rules.
            observer: Optional observer for the decision points.
        """
        self._rule_set = rule_set
        self._observer = observer

    @property
    def rule_set(self) -> RuleSet:
        return self._rule_set

    def evaluate_labels(
        self,
        text: str,
        author_association: str,
        event_type: EventType,
    ) -> LabelActions:
        return evaluate_labels(
            self._rule_set.labels,
            text,
            author_association,
            event_type,
            observer=self._observer,
        )

    def evaluate_comments(
        self,
        text: str,
        author_association: str,
        event_type: EventType,
    ) -> CommentActions:
        return evaluate_comments(
            self._rule_set.comments,
            text,
            author_association,
            event_type,
            observer=self._observer,
        )

    def evaluate(
        self,
        event_type: EventType,
        author_association: str,
        *,
        label_text: str,
        comment_text: str,
    ) -> Evaluation:
        """Evaluate both rule lists.

        Label and comment rules may see different text: label rules can
        include the item title, comment rules always see the body alone.

        Returns:
            Evaluation with label and comment results.
        """
        return Evaluation(
            labels=self.evaluate_labels(label_text, author_association, event_type),
            comments=self.evaluate_comments(comment_text, author_association, event_type),
        )
