"""CLI entry point for issue-triage.

This module provides the Typer-based CLI with commands:
- triage run: Triage the item behind the current GitHub Actions event
- triage validate: Validate a local rule file
- triage evaluate: Evaluate a rule file against some text, offline

Exit codes:
- 0: Success
- 1: Configuration error
- 2: Authentication error
- 3: Partial failure
- 4: Fatal error
"""

from __future__ import annotations

import asyncio
from enum import IntEnum
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Any

import typer

from triage import __version__
from triage.config import ConfigError, load_rule_set
from triage.config.settings import load_settings
from triage.github import (
    AuthenticationError,
    EventPayloadError,
    GitHubAPIError,
    GitHubClient,
    UnhandledEventError,
    load_event_payload,
    resolve_event_type,
)
from triage.logging import AuditObserver, configure_logging, get_logger
from triage.rules import PatternError, RulesEngine, compile_pattern
from triage.runner import RunStatus, run_triage

if TYPE_CHECKING:
    from triage.config.schema import RuleSet
    from triage.config.settings import Settings
    from triage.rules.schema import Evaluation
    from triage.runner import RunSummary


class ExitCode(IntEnum):
    """CLI exit codes."""

    SUCCESS = 0
    CONFIG_ERROR = 1
    AUTH_ERROR = 2
    PARTIAL_FAILURE = 3
    FATAL_ERROR = 4


app = typer.Typer(
    name="triage",
    help="Issue triage - label and comment on GitHub issues and pull requests by rule.",
    add_completion=False,
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"triage {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """Issue triage - rule-driven labels and comments."""


def _fail(message: str, code: ExitCode) -> typer.Exit:
    """Print an error and build the Exit to raise."""
    typer.echo(typer.style(f"✗ {message}", fg=typer.colors.RED), err=True)
    return typer.Exit(code)


def _check_patterns(rule_set: RuleSet) -> None:
    """Compile every pattern up front so a bad expression fails validation."""
    for rule in (*rule_set.labels, *rule_set.comments):
        for pattern in (*rule.regexes, *rule.author_association):
            compile_pattern(pattern)


def _load_checked(config: Path, sync_labels: int) -> RuleSet:
    try:
        rule_set = load_rule_set(config, sync_labels)
        _check_patterns(rule_set)
    except ConfigError as e:
        raise _fail(str(e), ExitCode.CONFIG_ERROR) from e
    except PatternError as e:
        raise _fail(f"{config}: {e}", ExitCode.CONFIG_ERROR) from e
    return rule_set


@app.command()
def validate(
    config: Annotated[
        Path,
        typer.Option(
            "--config",
            "-c",
            help="Path to the rule file.",
        ),
    ],
    sync_labels: Annotated[
        int,
        typer.Option(
            "--sync-labels",
            help="Global sync-labels value (0 or 1) used for default label modes.",
        ),
    ] = 1,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Show every rule.",
        ),
    ] = False,
) -> None:
    """Validate a rule file without running.

    Parses the file the same way a run does and compiles every pattern.
    Exits with code 0 if valid, or code 1 if there are errors.
    """
    configure_logging(verbose=verbose, json_output=False)

    rule_set = _load_checked(config, sync_labels)
    typer.echo(typer.style("✓ Configuration is valid", fg=typer.colors.GREEN))
    typer.echo(f"  Label rules: {len(rule_set.labels)}")
    typer.echo(f"  Comment rules: {len(rule_set.comments)}")

    if verbose:
        for rule in rule_set.labels:
            typer.echo(f"  label {rule.name!r}: add on {rule.mode.add}, remove on {rule.mode.remove}")
        for rule in rule_set.comments:
            typer.echo(f"  comment {rule.name!r}: {rule.mode.type.value} on {rule.mode.event}")

    raise typer.Exit(ExitCode.SUCCESS)


def _print_evaluation(evaluation: Evaluation) -> None:
    typer.echo(typer.style("Labels", bold=True))
    typer.echo(f"  add: {', '.join(evaluation.labels.to_add) or '-'}")
    typer.echo(f"  remove: {', '.join(evaluation.labels.to_remove) or '-'}")
    typer.echo(typer.style("Comments", bold=True))
    if not evaluation.comments.to_add and not evaluation.comments.to_update:
        typer.echo("  -")
    for body in evaluation.comments.to_add:
        typer.echo(f"  add: {body}")
    for body in evaluation.comments.to_update:
        typer.echo(f"  update: {body}")


@app.command()
def evaluate(
    config: Annotated[
        Path,
        typer.Option(
            "--config",
            "-c",
            help="Path to the rule file.",
        ),
    ],
    event: Annotated[
        str,
        typer.Option(
            "--event",
            "-e",
            help="Event type (issues, pull_request, pull_request_target, issue_comment, push).",
        ),
    ],
    text: Annotated[
        str | None,
        typer.Option(
            "--text",
            "-t",
            help="Body text to evaluate.",
        ),
    ] = None,
    text_file: Annotated[
        Path | None,
        typer.Option(
            "--text-file",
            help="Read the body text from a file.",
        ),
    ] = None,
    title: Annotated[
        str | None,
        typer.Option(
            "--title",
            help="Item title; label rules see 'title\\n\\nbody' when given.",
        ),
    ] = None,
    author_association: Annotated[
        str,
        typer.Option(
            "--author-association",
            "-a",
            help="Author association (e.g. OWNER, CONTRIBUTOR, NONE).",
        ),
    ] = "",
    sync_labels: Annotated[
        int,
        typer.Option(
            "--sync-labels",
            help="Global sync-labels value (0 or 1) used for default label modes.",
        ),
    ] = 1,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Print the evaluation as JSON.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Log every rule decision.",
        ),
    ] = False,
) -> None:
    """Evaluate a rule file against a piece of text, offline.

    No GitHub API calls are made; the derived labels and comments are
    printed instead.
    """
    configure_logging(verbose=verbose, json_output=False)

    if (text is None) == (text_file is None):
        raise _fail("Pass exactly one of --text and --text-file", ExitCode.CONFIG_ERROR)

    try:
        event_type = resolve_event_type(event)
    except UnhandledEventError as e:
        raise _fail(str(e), ExitCode.FATAL_ERROR) from e

    if text_file is not None:
        try:
            body = text_file.read_text(encoding="utf-8")
        except OSError as e:
            raise _fail(f"Cannot read {text_file}: {e}", ExitCode.CONFIG_ERROR) from e
    else:
        body = text or ""

    rule_set = _load_checked(config, sync_labels)
    engine = RulesEngine(rule_set, observer=AuditObserver())
    label_text = f"{title}\n\n{body}" if title is not None else body
    evaluation = engine.evaluate(
        event_type,
        author_association,
        label_text=label_text,
        comment_text=body,
    )

    if json_output:
        typer.echo(evaluation.model_dump_json(indent=2))
    else:
        _print_evaluation(evaluation)
    raise typer.Exit(ExitCode.SUCCESS)


async def _run(
    settings: Settings,
    event_name: str,
    payload: dict[str, Any],
    dry_run: bool,
) -> RunSummary:
    async with GitHubClient(
        settings.repo_token,
        settings.repository,
        base_url=settings.api_url,
    ) as client:
        return await run_triage(
            settings,
            event_name,
            payload,
            client=client,
            dry_run=dry_run,
        )


def _report(summary: RunSummary) -> None:
    targets = ", ".join(f"#{n}" for n in summary.targets) or "none"
    typer.echo()
    typer.echo(typer.style("Triage complete", bold=True))
    typer.echo(f"  Event: {summary.event_name.value}")
    typer.echo(f"  Targets: {targets}")
    typer.echo(f"  Status: {summary.status.value}")
    typer.echo(f"  Actions: {summary.planned} planned, {summary.succeeded} succeeded")
    if summary.failed:
        typer.echo(typer.style(f"  Failed: {summary.failed}", fg=typer.colors.YELLOW))


@app.command("run")
def run_command(
    dry_run: Annotated[
        bool,
        typer.Option(
            "--dry-run",
            help="Log actions without executing them.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable debug logging.",
        ),
    ] = False,
    event_name: Annotated[
        str | None,
        typer.Option(
            "--event-name",
            help="Override GITHUB_EVENT_NAME.",
        ),
    ] = None,
    event_path: Annotated[
        Path | None,
        typer.Option(
            "--event-path",
            help="Override GITHUB_EVENT_PATH.",
        ),
    ] = None,
) -> None:
    """Triage the issue or pull request behind the current event.

    Reads the action inputs and runner context from the environment,
    fetches the rule file at the triggering commit, evaluates it and
    applies the resulting labels and comments.
    """
    configure_logging(verbose=verbose)
    log = get_logger("triage.cli")

    try:
        settings = load_settings(
            event_name=event_name,
            event_path=str(event_path) if event_path else None,
        )
    except AuthenticationError as e:
        raise _fail(f"Authentication error: {e}", ExitCode.AUTH_ERROR) from e
    except ConfigError as e:
        raise _fail(f"Configuration error: {e}", ExitCode.CONFIG_ERROR) from e

    if not settings.event_name or not settings.event_path:
        raise _fail(
            "Configuration error: GITHUB_EVENT_NAME and GITHUB_EVENT_PATH must be set",
            ExitCode.CONFIG_ERROR,
        )

    if dry_run:
        typer.echo(
            typer.style(
                "🔍 Dry-run mode: actions will be logged but not executed",
                fg=typer.colors.CYAN,
            )
        )

    try:
        payload = load_event_payload(settings.event_path)
        summary = asyncio.run(_run(settings, settings.event_name, payload, dry_run))
    except AuthenticationError as e:
        raise _fail(f"Authentication error: {e}", ExitCode.AUTH_ERROR) from e
    except (ConfigError, PatternError) as e:
        raise _fail(f"Configuration error: {e}", ExitCode.CONFIG_ERROR) from e
    except (UnhandledEventError, EventPayloadError, GitHubAPIError) as e:
        log.error("Triage run failed", error=str(e))
        raise _fail(str(e), ExitCode.FATAL_ERROR) from e

    _report(summary)
    if summary.status == RunStatus.PARTIAL_FAILURE:
        raise typer.Exit(ExitCode.PARTIAL_FAILURE)
    raise typer.Exit(ExitCode.SUCCESS)
