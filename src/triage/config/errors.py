"""Configuration error types."""

from __future__ import annotations

from pathlib import Path
from typing import Any


class ConfigError(Exception):
    """Raised when configuration loading or validation fails."""

    def __init__(self, message: str, path: Path | str | None = None) -> None:
        """Initialize ConfigError with message and optional path.

        Args:
            message: Error description
            path: Path to the config file that caused the error
        """
        self.path = path
        super().__init__(message)


class ConfigNotFoundError(ConfigError):
    """Raised when no config file can be found."""


class ConfigValidationError(ConfigError):
    """Raised when settings or config validation fails."""

    def __init__(
        self,
        message: str,
        path: Path | str | None = None,
        validation_errors: list[dict[str, Any]] | None = None,
    ) -> None:
        """Initialize ConfigValidationError.

        Args:
            message: Error description
            path: Path to the config file
            validation_errors: List of Pydantic validation error dicts
        """
        self.validation_errors = validation_errors or []
        super().__init__(message, path)


class RuleParseError(ConfigError):
    """Raised when a rule document is malformed.

    The whole document is rejected; there is no partial result.
    """

    def __init__(self, message: str, location: str | None = None) -> None:
        """Initialize RuleParseError.

        Args:
            message: Error description
            location: Where in the document the error occurred (e.g. 'labels[2].mode')
        """
        self.location = location
        if location:
            message = f"{location}: {message}"
        super().__init__(message)
