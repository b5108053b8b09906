"""GitHub token lookup."""

from __future__ import annotations

import os
from collections.abc import Mapping

TOKEN_INPUT = "INPUT_REPO-TOKEN"


class AuthenticationError(Exception):
    """Raised when no usable GitHub token is available or GitHub rejects it."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        """Initialize authentication error.

        Args:
            message: Error description.
            status_code: HTTP status code if from API response.
        """
        super().__init__(message)
        self.status_code = status_code


def get_github_token(environ: Mapping[str, str] | None = None) -> str:
    """Get the GitHub token from the action input or the environment.

    Looks at the 'repo-token' action input first, then GITHUB_TOKEN.

    Returns:
        GitHub token.

    Raises:
        AuthenticationError: If neither is set.
    """
    env = os.environ if environ is None else environ
    for name in (TOKEN_INPUT, "INPUT_REPO_TOKEN", "GITHUB_TOKEN"):
        token = env.get(name, "").strip()
        if token:
            return token
    raise AuthenticationError(
        "No GitHub token found. Set the 'repo-token' input "
        "or the GITHUB_TOKEN environment variable."
    )


def mask_token(token: str) -> str:
    """Mask a token for safe logging.

    Args:
        token: Token to mask.

    Returns:
        Masked token showing first 4 and last 4 characters.
    """
    if len(token) <= 8:
        return "***"
    return f"{token[:4]}...{token[-4:]}"
