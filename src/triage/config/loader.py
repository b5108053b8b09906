"""Rule file loading.

This module provides:
- YAML parsing of rule documents (local files or fetched text)
- Base64 decoding of GitHub contents API payloads
- Rule set construction through the parser

The configuration file normally lives in the repository being triaged and
is fetched through the GitHub API at the triggering commit; local files are
supported for validation and offline evaluation.
"""

from __future__ import annotations

import base64
import binascii
from pathlib import Path
from typing import Any

import yaml

from triage.config.errors import ConfigError, ConfigNotFoundError, RuleParseError
from triage.config.parser import parse_rule_set
from triage.config.schema import RuleSet


def load_yaml_text(text: str, source: Path | str | None = None) -> Any:
    """Parse YAML text.

    Args:
        text: YAML document
        source: Where the text came from, for error messages

    Returns:
        Parsed document (None for an empty document)

    Raises:
        ConfigError: If the text is not valid YAML
    """
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        msg = f"Invalid YAML syntax: {e}"
        raise ConfigError(msg, source) from e


def decode_content(encoded: str, source: Path | str | None = None) -> str:
    """Decode base64 file content as returned by the GitHub contents API.

    Raises:
        ConfigError: If the content is not valid base64 or not UTF-8
    """
    try:
        raw = base64.b64decode(encoded, validate=False)
        return raw.decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        msg = f"Cannot decode configuration content: {e}"
        raise ConfigError(msg, source) from e


def read_config_file(path: str | Path) -> str:
    """Read a local rule file.

    Raises:
        ConfigNotFoundError: If the file does not exist
        ConfigError: If the file cannot be read
    """
    config_path = Path(path).expanduser()
    if not config_path.exists():
        msg = f"Config file not found: {config_path}"
        raise ConfigNotFoundError(msg, config_path)
    try:
        return config_path.read_text(encoding="utf-8")
    except OSError as e:
        msg = f"Cannot read config file: {e}"
        raise ConfigError(msg, config_path) from e


def load_rule_set_text(
    text: str,
    sync_labels: int,
    *,
    source: Path | str | None = None,
) -> RuleSet:
    """Parse and validate a rule document given as YAML text.

    Args:
        text: YAML (or JSON) rule document
        sync_labels: Global sync-labels flag, 0 or 1
        source: Where the text came from, attached to raised errors

    Returns:
        Validated RuleSet

    Raises:
        ConfigError: If the YAML is invalid
        RuleParseError: If the rule document is malformed
    """
    document = load_yaml_text(text, source)
    try:
        return parse_rule_set(document, sync_labels)
    except RuleParseError as e:
        e.path = source
        raise


def load_rule_set(path: str | Path, sync_labels: int) -> RuleSet:
    """Load and validate a rule set from a local YAML file.

    Example:
        >>> rules = load_rule_set(".github/triage.yml", sync_labels=1)
        >>> [rule.name for rule in rules.labels]
        ['bug', 'question']
    """
    text = read_config_file(path)
    return load_rule_set_text(text, sync_labels, source=Path(path))
