"""Shared CLI utilities.

Provides config loading, error handling and output helpers for all
CLI commands.
"""

import functools
from pathlib import Path
from typing import Callable, List, TypeVar

import structlog
import typer

from ghinbox.models.config import AppConfig
from ghinbox.models.inbox import InboxView, NotificationGroup
from ghinbox.observability.logging import configure_logging
from ghinbox.services.config_manager import ConfigManager, ConfigValidationError
from ghinbox.services.storage import StateStorage
from ghinbox.utils.url import get_subject_url

logger = structlog.get_logger()

F = TypeVar("F", bound=Callable)

DEFAULT_CONFIG = Path("config/ghinbox.yaml")


def load_config(config_path: Path) -> AppConfig:
    """Load and validate configuration, then configure logging from it.

    Raises:
        typer.Exit: If configuration is invalid.
    """
    config_manager = ConfigManager(config_path=str(config_path))
    try:
        config = config_manager.load_config()
    except (FileNotFoundError, ConfigValidationError) as e:
        typer.secho(f"Configuration Error: {e}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    configure_logging(
        level=config.logging.level, json_output=config.logging.json_output
    )
    return config


def open_storage(config: AppConfig) -> StateStorage:
    return StateStorage(config.cache.storage_dir)


def handle_errors(func: F) -> F:
    """Decorator for consistent error handling.

    Catches exceptions and displays user-friendly error messages.
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except typer.Exit:
            raise
        except Exception as e:
            logger.exception("command_failed")
            typer.secho(f"Error: {e}", fg=typer.colors.RED)
            raise typer.Exit(code=1)

    return wrapper  # type: ignore[return-value]


def display_success(message: str) -> None:
    typer.secho(message, fg=typer.colors.GREEN)


def display_warning(message: str) -> None:
    typer.secho(message, fg=typer.colors.YELLOW)


def display_error(message: str) -> None:
    typer.secho(message, fg=typer.colors.RED)


def display_info(message: str) -> None:
    typer.secho(message, fg=typer.colors.CYAN)


def format_group(group: NotificationGroup) -> str:
    """One line per group: title, repository, click target and key."""
    markers = []
    if group.is_prominent:
        markers.append("!")
    if group.is_own_content:
        markers.append("you")
    prefix = f"[{','.join(markers)}] " if markers else ""
    target = get_subject_url(group.subject) or "-"
    return (
        f"  {prefix}{group.subject.title} ({group.repository.full_name})\n"
        f"      {target}\n"
        f"      key: {group.key}"
    )


def _display_section(title: str, groups: List[NotificationGroup]) -> None:
    if not groups:
        return
    typer.secho(f"\n{title} ({len(groups)})", bold=True)
    for group in groups:
        typer.echo(format_group(group))


def display_view(view: InboxView) -> None:
    """Print every non-empty bucket of an inbox view."""
    if view.total == 0:
        display_info("Inbox zero. Nothing needs your attention.")
        return

    _display_section("Review Requests", view.review_requests)
    for bucket in view.team_buckets.values():
        _display_section(bucket.name, bucket.groups)
    _display_section("Mentions", view.mentions)
    _display_section("Your Activity", view.own_content)
    _display_section("Needs Attention", view.needs_attention)
    _display_section("Other", view.others)
