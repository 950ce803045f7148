"""Inbox commands: list, watch and dismiss."""

import asyncio
from pathlib import Path

import typer

from ghinbox.cli.utils import (
    DEFAULT_CONFIG,
    display_error,
    display_info,
    display_success,
    display_view,
    display_warning,
    handle_errors,
    load_config,
    open_storage,
)
from ghinbox.models.config import AppConfig
from ghinbox.models.inbox import AlertRequest
from ghinbox.observability.diagnostics import DiagnosticEvent, DiagnosticStream
from ghinbox.observability.logging import configure_logging
from ghinbox.orchestration.session import InboxSession
from ghinbox.services.dismissal_service import DismissalStore
from ghinbox.services.providers.github import GitHubClient


def _require_token(config: AppConfig) -> None:
    if not config.github.token:
        display_error("No GitHub token configured (set GITHUB_TOKEN).")
        raise typer.Exit(code=1)


async def _list(config: AppConfig, pages: int) -> int:
    storage = open_storage(config)
    session = InboxSession(config, GitHubClient(config.github), storage)
    try:
        result = await session.start(schedule=False)
        while result.ok and session.ingestion.loaded_pages < pages and session.has_more:
            result = await session.load_more()

        if not result.ok:
            display_error(result.error or f"Refresh {result.status}")
            return 1

        display_view(session.view)
        if session.has_more:
            display_info("\nMore notifications available (use --pages).")
        return 0
    finally:
        await session.logout()
        storage.close()


@handle_errors
def list_command(
    config_path: Path = typer.Option(
        DEFAULT_CONFIG, "--config", "-c", help="Path to config YAML"
    ),
    pages: int = typer.Option(1, "--pages", "-p", min=1, help="Pages to load"),
):
    """Fetch, classify and print the inbox once."""
    config = load_config(config_path)
    _require_token(config)
    code = asyncio.run(_list(config, pages))
    if code:
        raise typer.Exit(code=code)


def _print_alert(alert: AlertRequest) -> None:
    display_warning(f"🔔 {alert.title}")
    typer.echo(f"   {alert.body}  {alert.click_url or ''}")


def _print_diagnostic(event: DiagnosticEvent) -> None:
    typer.secho(f"[{event.level}] {event.event}", fg=typer.colors.BRIGHT_BLACK)


async def _watch(config: AppConfig) -> int:
    storage = open_storage(config)
    session = InboxSession(
        config, GitHubClient(config.github), storage, alert_sink=_print_alert
    )
    try:
        result = await session.start(schedule=True)
        if not result.ok:
            display_error(result.error or f"Refresh {result.status}")
            return 1

        display_view(session.view)
        display_info(
            f"\nWatching; refreshing every {config.refresh.interval_seconds}s. "
            "Ctrl+C to stop."
        )
        await session.scheduler.wait_closed()
        return 0 if session.error is None else 1
    finally:
        await session.logout()
        storage.close()


@handle_errors
def watch_command(
    config_path: Path = typer.Option(
        DEFAULT_CONFIG, "--config", "-c", help="Path to config YAML"
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Print warnings and errors as they happen"
    ),
):
    """Refresh periodically and print alerts for new activity."""
    config = load_config(config_path)
    _require_token(config)

    if verbose:
        stream = DiagnosticStream()
        configure_logging(
            level=config.logging.level,
            json_output=config.logging.json_output,
            diagnostics=stream,
        )
        stream.subscribe(_print_diagnostic, min_level="warning")

    code = asyncio.run(_watch(config))
    if code:
        raise typer.Exit(code=code)


@handle_errors
def dismiss_command(
    group_key: str = typer.Argument(..., help="Group key printed by 'list'"),
    config_path: Path = typer.Option(
        DEFAULT_CONFIG, "--config", "-c", help="Path to config YAML"
    ),
):
    """Dismiss a notification group permanently."""
    config = load_config(config_path)
    storage = open_storage(config)
    try:
        if DismissalStore(storage).dismiss(group_key):
            display_success(f"Dismissed {group_key}")
        else:
            display_info(f"Already dismissed: {group_key}")
    finally:
        storage.close()
