"""Tests for label and comment rule evaluation."""

from __future__ import annotations

from typing import Any

import pytest

from triage.config.parser import parse_rule_set
from triage.config.schema import EventType, RuleBase, RuleSet
from triage.rules.engine import RulesEngine, evaluate_comments, evaluate_labels, render_comment
from triage.rules.matchers import PatternError
from triage.rules.schema import CommentActions, LabelActions, QueueKind


def rules(document: dict[str, Any], sync_labels: int = 1) -> RuleSet:
    return parse_rule_set(document, sync_labels)


def labels(
    document: dict[str, Any],
    text: str,
    *,
    event: EventType = EventType.ISSUES,
    author: str = "NONE",
    sync_labels: int = 1,
) -> LabelActions:
    return evaluate_labels(rules(document, sync_labels).labels, text, author, event)


def comments(
    document: dict[str, Any],
    text: str,
    *,
    event: EventType = EventType.ISSUES,
    author: str = "NONE",
) -> CommentActions:
    return evaluate_comments(rules(document).comments, text, author, event)


class RecordingObserver:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str, str]] = []

    def rule_skipped(self, rule: RuleBase, reason: str) -> None:
        self.calls.append(("skipped", rule.name, reason))

    def rule_matched(self, rule: RuleBase, reason: str) -> None:
        self.calls.append(("matched", rule.name, reason))

    def rule_unmatched(self, rule: RuleBase, reason: str) -> None:
        self.calls.append(("unmatched", rule.name, reason))

    def item_queued(self, rule: RuleBase, kind: QueueKind, content: str) -> None:
        self.calls.append((kind.value, rule.name, content))


class TestLabelRules:
    def test_sample_rules(self, sample_rules: dict[str, Any]) -> None:
        result = labels(sample_rules, "It crashed when I opened it. Any idea?")
        assert result.to_add == ["type: bug"]
        assert result.to_remove == ["needs triage"]

    def test_sample_rules_without_bug(self, sample_rules: dict[str, Any]) -> None:
        result = labels(sample_rules, "How do I configure this?")
        assert result.to_add == ["question", "needs triage"]
        assert result.to_remove == ["type: bug"]

    def test_match_adds_label(self) -> None:
        result = labels({"labels": [{"name": "bug", "regexes": "/foo/i"}]}, "FOO bar")
        assert result == LabelActions(to_add=["bug"], to_remove=[])

    def test_implicit_regex(self) -> None:
        result = labels({"labels": [{"name": "bug", "regexes": "foo"}]}, "a foo b")
        assert result.to_add == ["bug"]

    def test_no_match_removes_in_sync_mode(self) -> None:
        result = labels({"labels": [{"name": "bug", "regexes": "crash"}]}, "all good")
        assert result == LabelActions(to_add=[], to_remove=["bug"])

    def test_no_match_keeps_label_in_add_only_mode(self) -> None:
        result = labels({"labels": [{"name": "bug", "regexes": "crash"}]}, "all good", sync_labels=0)
        assert result == LabelActions()

    def test_skip_if(self) -> None:
        document = {
            "labels": [
                {"name": "A", "regexes": "x"},
                {"name": "B", "regexes": "y", "skip-if": ["A"]},
            ]
        }
        # B would otherwise be removed for not matching; skipping leaves it alone
        assert labels(document, "x") == LabelActions(to_add=["A"], to_remove=[])
        assert labels(document, "xy").to_add == ["A"]

    def test_skip_if_only_sees_earlier_rules(self) -> None:
        document = {
            "labels": [
                {"name": "B", "regexes": "y", "skip-if": ["A"]},
                {"name": "A", "regexes": "x"},
            ]
        }
        assert labels(document, "xy").to_add == ["B", "A"]

    def test_remove_if_forces_removal_without_match(self) -> None:
        document = {
            "labels": [
                {"name": "A", "regexes": "x"},
                {"name": "B", "regexes": "y", "remove-if": "A"},
            ]
        }
        result = labels(document, "x y")
        assert result.to_add == ["A"]
        assert result.to_remove == ["B"]

    def test_remove_if_applies_in_add_only_mode(self) -> None:
        document = {
            "labels": [
                {"name": "A"},
                {"name": "B", "remove-if": "A"},
            ]
        }
        assert labels(document, "", sync_labels=0).to_remove == ["B"]

    def test_removal_wins_over_addition(self) -> None:
        document = {
            "labels": [
                {"name": "first", "content": "shared", "regexes": "x"},
                {"name": "second", "content": "shared", "regexes": "y"},
            ]
        }
        result = labels(document, "x")
        assert result.to_add == []
        assert result.to_remove == ["shared"]

    def test_lists_are_disjoint_and_deduplicated(self) -> None:
        document = {
            "labels": [
                {"name": "a", "content": "one", "regexes": "x"},
                {"name": "b", "content": "one", "regexes": "x"},
                {"name": "c", "content": "two", "regexes": "nope"},
                {"name": "d", "content": "two", "regexes": "nope"},
            ]
        }
        result = labels(document, "x")
        assert result.to_add == ["one"]
        assert result.to_remove == ["two"]
        assert not set(result.to_add) & set(result.to_remove)

    def test_empty_content_recorded_but_not_emitted(self) -> None:
        document = {
            "labels": [
                {"name": "marker", "content": None, "regexes": "crash"},
                {"name": "other", "skip-if": "marker"},
                {"name": "gone", "content": "", "regexes": "never"},
            ]
        }
        result = labels(document, "crash")
        assert result == LabelActions()

    def test_event_not_in_add_mode_falls_to_remove(self) -> None:
        document = {"labels": [{"name": "bug", "mode": {"add": "pull_request", "remove": "issues"}}]}
        assert labels(document, "", event=EventType.ISSUES).to_remove == ["bug"]
        assert labels(document, "", event=EventType.PULL_REQUEST).to_add == ["bug"]
        assert labels(document, "", event=EventType.PUSH) == LabelActions()

    def test_matched_but_ineligible_does_not_count_as_added(self) -> None:
        document = {
            "labels": [
                {"name": "A", "mode": {"add": "pull_request"}},
                {"name": "B", "skip-if": "A"},
            ]
        }
        assert labels(document, "", event=EventType.ISSUES).to_add == ["B"]

    def test_author_association_filter(self) -> None:
        document = {"labels": [{"name": "first-timer", "author-association": "FIRST_TIME_CONTRIBUTOR"}]}
        assert labels(document, "", author="FIRST_TIME_CONTRIBUTOR").to_add == ["first-timer"]
        assert labels(document, "", author="OWNER").to_remove == ["first-timer"]

    def test_empty_rule_list(self) -> None:
        assert evaluate_labels((), "text", "NONE", EventType.ISSUES) == LabelActions()

    def test_invalid_pattern_raises(self) -> None:
        with pytest.raises(PatternError):
            labels({"labels": [{"name": "bad", "regexes": "/x/q"}]}, "x")

    def test_deterministic(self, sample_rules: dict[str, Any]) -> None:
        rule_set = rules(sample_rules)
        text = "It crashed. Why?"
        results = {
            evaluate_labels(rule_set.labels, text, "NONE", EventType.ISSUES).model_dump_json()
            for _ in range(5)
        }
        assert len(results) == 1


class TestCommentRules:
    def test_body_placeholder_replaced(self) -> None:
        document = {"comments": [{"name": "echo", "content": "You said: ${body} (${body})"}]}
        result = comments(document, "hi")
        assert result.to_add == ["You said: hi (hi)"]

    def test_placeholder_replacement_is_literal(self) -> None:
        assert render_comment("got ${body}", r"\1 $& ${body}") == r"got \1 $& ${body}"

    def test_no_match_no_comment(self) -> None:
        document = {"comments": [{"name": "hi", "regexes": "hello"}]}
        assert comments(document, "bye") == CommentActions()

    def test_event_filter(self) -> None:
        document = {"comments": [{"name": "only-prs", "content": "PR!", "mode": {"event": "pull_request"}}]}
        assert comments(document, "", event=EventType.ISSUES) == CommentActions()
        assert comments(document, "", event=EventType.PULL_REQUEST).to_add == ["PR!"]

    def test_update_mode(self) -> None:
        document = {"comments": [{"name": "tidy", "content": "[tidied] ${body}", "mode": "update"}]}
        result = comments(document, "text", event=EventType.ISSUE_COMMENT)
        assert result == CommentActions(to_add=[], to_update=["[tidied] text"])

    def test_update_does_not_count_as_added(self) -> None:
        document = {
            "comments": [
                {"name": "A", "content": "updated", "mode": "update"},
                {"name": "B", "content": "added", "skip-if": "A"},
            ]
        }
        result = comments(document, "")
        assert result.to_update == ["updated"]
        assert result.to_add == ["added"]

    def test_skip_if(self) -> None:
        document = {
            "comments": [
                {"name": "A", "content": "first"},
                {"name": "B", "content": "second", "skip-if": "A"},
            ]
        }
        assert comments(document, "").to_add == ["first"]

    def test_duplicates_kept(self) -> None:
        document = {
            "comments": [
                {"name": "a", "content": "same"},
                {"name": "b", "content": "same"},
            ]
        }
        assert comments(document, "").to_add == ["same", "same"]

    def test_empty_rendered_content_recorded_but_not_emitted(self) -> None:
        document = {
            "comments": [
                {"name": "quiet", "content": "${body}"},
                {"name": "after", "content": "skipped", "skip-if": "quiet"},
            ]
        }
        assert comments(document, "") == CommentActions()

    def test_author_association_checked(self) -> None:
        document = {"comments": [{"name": "welcome", "author-association": "/^NONE$/"}]}
        assert comments(document, "", author="NONE").to_add == ["welcome"]
        assert comments(document, "", author="OWNER").to_add == []


class TestObserver:
    def test_label_decisions_reported(self, sample_rules: dict[str, Any]) -> None:
        observer = RecordingObserver()
        evaluate_labels(
            rules(sample_rules).labels,
            "It crashed",
            "NONE",
            EventType.ISSUES,
            observer=observer,
        )
        assert observer.calls[0][:2] == ("matched", "bug")
        assert observer.calls[1] == ("label_add", "bug", "type: bug")
        assert observer.calls[2][:2] == ("skipped", "question")
        assert "skip_if 'bug'" in observer.calls[2][2]
        assert observer.calls[3][:2] == ("skipped", "needs-triage")
        assert observer.calls[4] == ("label_remove", "needs-triage", "needs triage")

    def test_comment_decisions_reported(self) -> None:
        observer = RecordingObserver()
        document = {
            "comments": [
                {"name": "prs", "mode": {"event": "pull_request"}},
                {"name": "miss", "regexes": "zzz"},
                {"name": "hit", "content": "ok"},
            ]
        }
        evaluate_comments(rules(document).comments, "", "NONE", EventType.ISSUES, observer=observer)
        assert [call[0] for call in observer.calls] == ["skipped", "unmatched", "matched", "comment_add"]


class TestRulesEngine:
    def test_evaluate_uses_separate_texts(self) -> None:
        document = {
            "labels": [{"name": "title-bug", "regexes": "^Bug:"}],
            "comments": [{"name": "echo", "content": "${body}"}],
        }
        engine = RulesEngine(rules(document))
        evaluation = engine.evaluate(
            EventType.ISSUES,
            "NONE",
            label_text="Bug: crash\n\nbody text",
            comment_text="body text",
        )
        assert evaluation.labels.to_add == ["title-bug"]
        assert evaluation.comments.to_add == ["body text"]
        assert evaluation.has_actions

    def test_engine_is_reusable(self, sample_rules: dict[str, Any]) -> None:
        engine = RulesEngine(rules(sample_rules))
        first = engine.evaluate_labels("crash", "NONE", EventType.ISSUES)
        engine.evaluate_labels("What?", "NONE", EventType.ISSUES)
        assert engine.evaluate_labels("crash", "NONE", EventType.ISSUES) == first

    def test_empty_rule_set(self) -> None:
        evaluation = RulesEngine(RuleSet()).evaluate(
            EventType.PUSH, "", label_text="x", comment_text="x"
        )
        assert not evaluation.has_actions
