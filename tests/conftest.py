"""Shared pytest fixtures for triage tests.

This module provides common fixtures for:
- Temporary rule files
- Sample rule documents
- Sample GitHub webhook payloads
- A mock GitHub API (httpx.MockTransport)
"""

from __future__ import annotations

import base64
import json
import logging
import re
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Any

import httpx
import pytest
import structlog
import yaml

from triage.github.client import GitHubClient

if TYPE_CHECKING:
    from collections.abc import Callable, Generator


# ============================================================================
# Logging
# ============================================================================


@pytest.fixture(autouse=True)
def reset_logging() -> Generator[None, None, None]:
    """Undo configure_logging() calls made by a test.

    CLI tests configure logging against streams that are closed once the
    invocation returns.
    """
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    structlog.reset_defaults()
    root.handlers[:] = handlers
    root.setLevel(level)


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory (cleaned up after test)
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_rules() -> dict[str, Any]:
    """Return a rule document with label and comment rules."""
    return {
        "labels": [
            {
                "name": "bug",
                "content": "type: bug",
                "regexes": r"/\bcrash(es|ed)?\b/i",
            },
            {
                "name": "question",
                "regexes": [r"\?"],
                "skip-if": "bug",
            },
            {
                "name": "needs-triage",
                "content": "needs triage",
                "remove-if": ["bug"],
            },
        ],
        "comments": [
            {
                "name": "thanks",
                "content": "Thanks for the report!\n\n> ${body}",
                "author-association": "NONE",
                "mode": {"type": "add", "event": "issues"},
            },
        ],
    }


@pytest.fixture
def write_config(temp_dir: Path) -> Callable[..., Path]:
    """Factory fixture to write rule files.

    Args:
        config: Rule document
        filename: Name of the rule file (default: triage.yml)

    Returns:
        Path to the written rule file
    """

    def _write(config: Any, filename: str = "triage.yml") -> Path:
        path = temp_dir / filename
        with path.open("w") as f:
            yaml.safe_dump(config, f)
        return path

    return _write


# ============================================================================
# Event Payload Fixtures
# ============================================================================


@pytest.fixture
def issue_payload() -> dict[str, Any]:
    """Return a sample `issues` webhook payload."""
    return {
        "action": "opened",
        "issue": {
            "number": 42,
            "title": "App crashes on start",
            "body": "It crashed when I opened it. Any idea?",
            "created_at": "2026-01-09T10:00:00Z",
            "author_association": "NONE",
            "labels": [],
        },
        "repository": {"full_name": "octocat/hello-world"},
    }


@pytest.fixture
def pull_request_payload() -> dict[str, Any]:
    """Return a sample `pull_request` webhook payload."""
    return {
        "action": "opened",
        "pull_request": {
            "number": 123,
            "title": "Add new feature",
            "body": None,
            "created_at": "2026-01-08T09:00:00Z",
            "author_association": "CONTRIBUTOR",
        },
    }


@pytest.fixture
def comment_payload() -> dict[str, Any]:
    """Return a sample `issue_comment` webhook payload."""
    return {
        "action": "created",
        "issue": {
            "number": 42,
            "title": "App crashes on start",
            "body": "It crashed when I opened it.",
            "author_association": "NONE",
        },
        "comment": {
            "id": 987654,
            "body": "Same here, any workaround?",
            "created_at": "2026-01-10T15:30:00Z",
            "author_association": "MEMBER",
        },
    }


@pytest.fixture
def push_payload() -> dict[str, Any]:
    """Return a sample `push` webhook payload."""
    return {
        "ref": "refs/heads/main",
        "commits": [
            {"id": "a1", "message": "Fix #12 by checking for null"},
            {"id": "b2", "message": "docs: close https://github.com/octocat/hello-world/issues/34"},
            {"id": "c3", "message": "Refactor, no issue"},
        ],
    }


@pytest.fixture
def write_event(temp_dir: Path) -> Callable[[dict[str, Any]], Path]:
    """Factory fixture to write a webhook payload file."""

    def _write(payload: dict[str, Any], filename: str = "event.json") -> Path:
        path = temp_dir / filename
        path.write_text(json.dumps(payload), encoding="utf-8")
        return path

    return _write


# ============================================================================
# Mock GitHub API
# ============================================================================


class FakeGitHub:
    """In-memory GitHub REST API for one repository.

    Serves the rule file from the contents API, tracks labels per issue and
    records every request. Paths listed in `failures` answer with the given
    status code, plus any `failure_headers` for the same path.
    """

    def __init__(self, repository: str = "octocat/hello-world") -> None:
        self.repository = repository
        self.files: dict[str, str] = {}
        self.labels: dict[int, set[str]] = {}
        self.failures: dict[tuple[str, str], int] = {}
        self.failure_headers: dict[tuple[str, str], dict[str, str]] = {}
        self.requests: list[httpx.Request] = []
        self.comments: list[dict[str, Any]] = []
        self._next_id = 1000

    def add_file(self, path: str, content: str) -> None:
        self.files[path] = content

    def calls(self, method: str | None = None) -> list[tuple[str, str]]:
        prefix = f"/repos/{self.repository}"
        return [
            (r.method, r.url.path.removeprefix(prefix))
            for r in self.requests
            if method is None or r.method == method
        ]

    def handler(self, request: httpx.Request) -> httpx.Response:  # noqa: PLR0911
        self.requests.append(request)
        prefix = f"/repos/{self.repository}"
        path = request.url.path.removeprefix(prefix)

        key = (request.method, path)
        status = self.failures.get(key)
        if status is not None:
            return httpx.Response(
                status,
                headers=self.failure_headers.get(key),
                json={"message": "Simulated failure"},
            )

        if request.method == "GET" and path.startswith("/contents/"):
            name = path.removeprefix("/contents/")
            if name not in self.files:
                return httpx.Response(404, json={"message": "Not Found"})
            encoded = base64.b64encode(self.files[name].encode("utf-8")).decode("ascii")
            return httpx.Response(200, json={"type": "file", "encoding": "base64", "content": encoded})

        match = re.fullmatch(r"/issues/(\d+)/labels(?:/(.+))?", path)
        if match:
            number = int(match.group(1))
            current = self.labels.setdefault(number, set())
            if request.method == "GET":
                return httpx.Response(200, json=[{"name": name} for name in sorted(current)])
            if request.method == "POST":
                current.update(json.loads(request.content)["labels"])
                return httpx.Response(200, json=[{"name": name} for name in sorted(current)])
            if request.method == "DELETE":
                current.discard(match.group(2))
                return httpx.Response(200, json=[])

        match = re.fullmatch(r"/issues/(\d+)/comments", path)
        if match and request.method == "POST":
            self._next_id += 1
            comment = {
                "id": self._next_id,
                "body": json.loads(request.content)["body"],
                "html_url": f"https://github.com/{self.repository}/issues/{match.group(1)}#issuecomment-{self._next_id}",
            }
            self.comments.append(comment)
            return httpx.Response(201, json=comment)

        if request.method == "PATCH":
            return httpx.Response(200, json={"id": 1, **json.loads(request.content)})

        return httpx.Response(404, json={"message": "Not Found"})


@pytest.fixture
def fake_github() -> FakeGitHub:
    """Return an empty in-memory GitHub API."""
    return FakeGitHub()


@pytest.fixture
def make_client(fake_github: FakeGitHub) -> Callable[..., GitHubClient]:
    """Factory fixture for a GitHubClient wired to fake_github."""

    def _make(**kwargs: Any) -> GitHubClient:
        kwargs.setdefault("retry_backoff", 0)
        return GitHubClient(
            "ghs_" + "x" * 36,
            fake_github.repository,
            transport=httpx.MockTransport(fake_github.handler),
            **kwargs,
        )

    return _make
