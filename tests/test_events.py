"""Tests for GitHub event resolution."""

from __future__ import annotations

import json
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import pytest

from triage.config.schema import EventType
from triage.github.events import (
    EventInfo,
    EventPayloadError,
    UnhandledEventError,
    extract_fixed_issues,
    get_event_info,
    load_event_payload,
    resolve_event_type,
)


class TestResolveEventType:
    @pytest.mark.parametrize("name", [e.value for e in EventType])
    def test_known(self, name: str) -> None:
        assert resolve_event_type(name).value == name

    def test_unknown(self) -> None:
        with pytest.raises(UnhandledEventError, match="could not handle event `release`") as exc_info:
            resolve_event_type("release")
        assert exc_info.value.event_name == "release"


class TestExtractFixedIssues:
    def test_hash_and_url_references(self) -> None:
        messages = "fix #12\n\nclose https://x/y/issues/34\n\n"
        assert extract_fixed_issues(messages) == [12, 34]

    def test_case_insensitive(self) -> None:
        assert extract_fixed_issues("Fix #1\n\nCLOSE #2\n\n") == [1, 2]

    def test_closing_keyword_prefixes(self) -> None:
        # 'fixes'/'closes' do not match: the keyword must be followed by whitespace
        assert extract_fixed_issues("fixes #3 closes #4") == []

    def test_no_references(self) -> None:
        assert extract_fixed_issues("refactor everything\n\n") == []

    def test_every_match_in_order(self) -> None:
        assert extract_fixed_issues("fix #9 and fix #3\n\nclose #9\n\n") == [9, 3, 9]


class TestGetEventInfo:
    def test_issues(self, issue_payload: dict[str, Any]) -> None:
        event = get_event_info("issues", issue_payload)
        assert event.event_name == EventType.ISSUES
        assert event.issue_number == 42
        assert event.title == "App crashes on start"
        assert event.body.startswith("It crashed")
        assert event.author_association == "NONE"
        assert event.comment_id is None

    def test_pull_request_with_null_body(self, pull_request_payload: dict[str, Any]) -> None:
        event = get_event_info("pull_request", pull_request_payload)
        assert event.issue_number == 123
        assert event.body == ""
        assert event.author_association == "CONTRIBUTOR"

    def test_pull_request_target(self, pull_request_payload: dict[str, Any]) -> None:
        event = get_event_info("pull_request_target", pull_request_payload)
        assert event.event_name == EventType.PULL_REQUEST_TARGET
        assert event.issue_number == 123

    def test_issue_comment(self, comment_payload: dict[str, Any]) -> None:
        event = get_event_info("issue_comment", comment_payload)
        assert event.issue_number == 42
        assert event.comment_id == 987654
        assert event.title == "App crashes on start"
        assert event.body == "Same here, any workaround?"
        assert event.author_association == "MEMBER"
        assert event.created_at == "2026-01-10T15:30:00Z"

    def test_push(self, push_payload: dict[str, Any]) -> None:
        event = get_event_info("push", push_payload)
        assert event.issue_numbers == [12, 34]
        assert event.body.endswith("Refactor, no issue\n\n")
        assert event.author_association == ""
        assert event.created_at_datetime() == datetime(1970, 1, 1, tzinfo=UTC)

    def test_push_without_commits(self) -> None:
        assert get_event_info("push", {}).issue_numbers == []

    def test_push_has_no_single_target(self, push_payload: dict[str, Any]) -> None:
        with pytest.raises(EventPayloadError):
            _ = get_event_info("push", push_payload).issue_number

    def test_unhandled(self) -> None:
        with pytest.raises(UnhandledEventError):
            get_event_info("release", {})

    def test_missing_number(self) -> None:
        with pytest.raises(EventPayloadError, match="no valid `number`"):
            get_event_info("issues", {"issue": {"title": "x"}})

    def test_missing_comment_id(self, comment_payload: dict[str, Any]) -> None:
        del comment_payload["comment"]["id"]
        with pytest.raises(EventPayloadError, match="no valid `id`"):
            get_event_info("issue_comment", comment_payload)


class TestEventInfo:
    def test_label_text(self) -> None:
        event = EventInfo(event_name=EventType.ISSUES, issue_numbers=[1], title="T", body="B")
        assert event.label_text(include_title=False) == "B"
        assert event.label_text(include_title=True) == "T\n\nB"

    def test_created_at_datetime(self) -> None:
        event = EventInfo(event_name=EventType.ISSUES, created_at="2026-01-09T10:00:00Z")
        assert event.created_at_datetime() == datetime(2026, 1, 9, 10, tzinfo=UTC)

    def test_invalid_created_at(self) -> None:
        event = EventInfo(event_name=EventType.ISSUES, created_at="yesterday")
        with pytest.raises(EventPayloadError, match="created_at"):
            event.created_at_datetime()


class TestLoadEventPayload:
    def test_loads_json(
        self,
        write_event: Callable[..., Path],
        issue_payload: dict[str, Any],
    ) -> None:
        assert load_event_payload(write_event(issue_payload)) == issue_payload

    def test_missing_file(self, temp_dir: Path) -> None:
        with pytest.raises(EventPayloadError, match="Cannot read"):
            load_event_payload(temp_dir / "nope.json")

    def test_invalid_json(self, temp_dir: Path) -> None:
        path = temp_dir / "event.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(EventPayloadError, match="Invalid event payload"):
            load_event_payload(path)

    def test_not_an_object(self, temp_dir: Path) -> None:
        path = temp_dir / "event.json"
        path.write_text(json.dumps([1, 2]), encoding="utf-8")
        with pytest.raises(EventPayloadError, match="must be a JSON object"):
            load_event_payload(path)
