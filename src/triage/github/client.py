"""GitHub REST API client for applying triage actions.

This module provides the GitHubClient class which handles:
- Reading the rule file from the repository at a given commit
- Reading, adding and removing labels on an issue or pull request
- Creating and updating comments, and updating issue bodies
- Exponential backoff for transient failures (5xx, network errors)
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import Any
from urllib.parse import quote

import httpx

from triage.config.loader import decode_content
from triage.github.auth import AuthenticationError, mask_token

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.github.com"
USER_AGENT = "issue-triage/0.1.0"


class TransientError(Exception):
    """Raised for transient errors that should be retried.

    This includes 5xx server errors and network connectivity errors.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        retry_after: int | None = None,
    ) -> None:
        """Initialize transient error.

        Args:
            message: Error description.
            status_code: HTTP status code if available.
            retry_after: Suggested retry delay in seconds.
        """
        super().__init__(message)
        self.status_code = status_code
        self.retry_after = retry_after


class GitHubAPIError(Exception):
    """Raised for GitHub API errors."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        response_body: dict[str, Any] | None = None,
    ) -> None:
        """Initialize GitHub API error.

        Args:
            message: Error description.
            status_code: HTTP status code.
            response_body: Response JSON body if available.
        """
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body or {}


def parse_retry_after(value: str | None, now: datetime | None = None) -> int | None:
    """Parse a Retry-After header into seconds.

    The header is either a number of seconds or an HTTP-date. Dates in the
    past and unparseable values yield None.
    """
    if not value:
        return None
    value = value.strip()
    if value.isdigit():
        return int(value) or None

    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=UTC)

    seconds = int((retry_at - (now or datetime.now(UTC))).total_seconds())
    return seconds if seconds > 0 else None


class GitHubClient:
    """Async GitHub API client scoped to one repository.

    The client supports both context manager and standalone usage; in
    standalone usage call close() when done.
    """

    MAX_RETRIES = 3
    INITIAL_BACKOFF_SECONDS = 2.0
    MAX_BACKOFF_SECONDS = 30.0

    def __init__(
        self,
        token: str,
        repository: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        max_retries: int | None = None,
        retry_backoff: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize GitHub client.

        Args:
            token: GitHub token.
            repository: Repository as 'owner/repo'.
            base_url: GitHub API base URL.
            max_retries: Attempts per request for transient errors.
            retry_backoff: Initial backoff in seconds (doubles per attempt).
            transport: Optional httpx transport (used by tests).
        """
        self._token = token
        self._repository = repository
        self._base_url = base_url.rstrip("/")
        self._max_retries = max_retries if max_retries is not None else self.MAX_RETRIES
        self._retry_backoff = (
            retry_backoff if retry_backoff is not None else self.INITIAL_BACKOFF_SECONDS
        )
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def headers(self) -> dict[str, str]:
        """Get default request headers."""
        return {
            "Authorization": f"token {self._token}",
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": USER_AGENT,
        }

    @property
    def repository(self) -> str:
        return self._repository

    async def __aenter__(self) -> GitHubClient:
        """Enter async context."""
        await self._ensure_client()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Exit async context."""
        await self.close()

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _ensure_client(self) -> httpx.AsyncClient:
        """Ensure we have an active client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers=self.headers,
                timeout=30.0,
                transport=self._transport,
            )
        return self._client

    def _repo_path(self, suffix: str) -> str:
        return f"/repos/{self._repository}{suffix}"

    def _handle_response(self, response: httpx.Response) -> Any:
        """Handle an API response.

        Returns:
            Parsed JSON body, or None for empty responses.

        Raises:
            AuthenticationError: For 401 responses.
            TransientError: For 5xx errors that should be retried.
            GitHubAPIError: For other API errors.
        """
        if response.is_success:
            if not response.content:
                return None
            return response.json()

        if response.status_code == 401:
            raise AuthenticationError(
                "GitHub API authentication failed",
                status_code=401,
            )

        if response.status_code >= 500:
            retry_after = parse_retry_after(response.headers.get("Retry-After"))
            raise TransientError(
                f"GitHub API server error: {response.status_code}",
                status_code=response.status_code,
                retry_after=retry_after,
            )

        try:
            body = response.json()
        except ValueError:
            body = {"message": response.text}
        if not isinstance(body, dict):
            body = {"message": str(body)}

        raise GitHubAPIError(
            f"GitHub API error: {response.status_code} - {body.get('message', 'Unknown error')}",
            status_code=response.status_code,
            response_body=body,
        )

    async def _request_with_retry(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        """Make a request with automatic retry for transient errors.

        Backoff doubles per attempt. A server-provided Retry-After takes
        precedence. Both are capped at MAX_BACKOFF_SECONDS.

        Raises:
            GitHubAPIError: For non-recoverable errors or exhausted retries.
        """
        client = await self._ensure_client()
        last_error: Exception | None = None

        for attempt in range(self._max_retries):
            try:
                response = await client.request(method, path, params=params, json=json)
                return self._handle_response(response)

            except TransientError as e:
                backoff = min(
                    e.retry_after or self._retry_backoff * (2**attempt),
                    self.MAX_BACKOFF_SECONDS,
                )
                last_error = e

            except httpx.RequestError as e:
                backoff = min(
                    self._retry_backoff * (2**attempt),
                    self.MAX_BACKOFF_SECONDS,
                )
                last_error = e

            if attempt < self._max_retries - 1:
                logger.warning(
                    "%s %s failed (attempt %d/%d): %s. Retrying in %.1f seconds",
                    method,
                    path,
                    attempt + 1,
                    self._max_retries,
                    last_error,
                    backoff,
                )
                await asyncio.sleep(backoff)

        status_code = getattr(last_error, "status_code", None)
        raise GitHubAPIError(
            f"{method} {path} failed after {self._max_retries} attempt(s): {last_error}",
            status_code=status_code,
        ) from last_error

    async def get_file_content(self, path: str, ref: str | None = None) -> str:
        """Read a text file from the repository.

        Args:
            path: Path inside the repository.
            ref: Commit, branch or tag (default branch if None).

        Returns:
            Decoded file content.

        Raises:
            GitHubAPIError: If the path is not a file or cannot be read.
        """
        params = {"ref": ref} if ref else None
        data = await self._request_with_retry(
            "GET",
            self._repo_path(f"/contents/{path.lstrip('/')}"),
            params=params,
        )
        if not isinstance(data, dict) or not isinstance(data.get("content"), str):
            raise GitHubAPIError(f"the configuration path `{path}` provides an invalid file")
        return decode_content(data["content"], source=path)

    async def list_labels(self, issue_number: int) -> set[str]:
        """Get the names of the labels currently on an issue or PR."""
        data = await self._request_with_retry(
            "GET",
            self._repo_path(f"/issues/{issue_number}/labels"),
            params={"per_page": 100},
        )
        return {label["name"] for label in data or [] if isinstance(label, dict) and "name" in label}

    async def add_labels(self, issue_number: int, labels: list[str]) -> None:
        await self._request_with_retry(
            "POST",
            self._repo_path(f"/issues/{issue_number}/labels"),
            json={"labels": labels},
        )
        logger.debug("Added labels %s to #%d", labels, issue_number)

    async def remove_label(self, issue_number: int, name: str) -> None:
        await self._request_with_retry(
            "DELETE",
            self._repo_path(f"/issues/{issue_number}/labels/{quote(name, safe='')}"),
        )
        logger.debug("Removed label %r from #%d", name, issue_number)

    async def create_comment(self, issue_number: int, body: str) -> dict[str, Any]:
        """Post a new comment on an issue or PR."""
        return await self._request_with_retry(
            "POST",
            self._repo_path(f"/issues/{issue_number}/comments"),
            json={"body": body},
        )

    async def update_comment(self, comment_id: int, body: str) -> dict[str, Any]:
        """Replace the body of an existing comment."""
        return await self._request_with_retry(
            "PATCH",
            self._repo_path(f"/issues/comments/{comment_id}"),
            json={"body": body},
        )

    async def update_issue_body(self, issue_number: int, body: str) -> dict[str, Any]:
        """Replace the body of an issue or PR."""
        return await self._request_with_retry(
            "PATCH",
            self._repo_path(f"/issues/{issue_number}"),
            json={"body": body},
        )

    def __repr__(self) -> str:
        """Get string representation."""
        return (
            f"GitHubClient(repository={self._repository!r}, "
            f"base_url={self._base_url!r}, token={mask_token(self._token)!r})"
        )

