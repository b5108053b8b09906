"""Rules engine for label and comment evaluation."""

from triage.rules.engine import (
    EvaluationObserver,
    NullObserver,
    RulesEngine,
    evaluate_comments,
    evaluate_labels,
    render_comment,
)
from triage.rules.matchers import PatternError, compile_pattern, explain_match, match_all
from triage.rules.schema import CommentActions, Evaluation, LabelActions, QueueKind

__all__ = [
    "CommentActions",
    "Evaluation",
    "EvaluationObserver",
    "LabelActions",
    "NullObserver",
    "PatternError",
    "QueueKind",
    "RulesEngine",
    "compile_pattern",
    "evaluate_comments",
    "evaluate_labels",
    "explain_match",
    "match_all",
    "render_comment",
]
