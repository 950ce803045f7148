"""Cache maintenance commands."""

from pathlib import Path

import typer

from ghinbox.cli.utils import (
    DEFAULT_CONFIG,
    display_info,
    display_success,
    handle_errors,
    load_config,
    open_storage,
)
from ghinbox.services.dismissal_service import DismissalStore, VisitedStore
from ghinbox.services.state_cache import StateCache
from ghinbox.services.team_cache import TeamCache, UserTeamsCache

cache_app = typer.Typer(help="Inspect and clear local caches")


@cache_app.command(name="clear")
@handle_errors
def cache_clear(
    config_path: Path = typer.Option(
        DEFAULT_CONFIG, "--config", "-c", help="Path to config YAML"
    ),
    include_user_state: bool = typer.Option(
        False, "--all", help="Also clear dismissals and visited groups"
    ),
):
    """Clear subject state, team classification and team membership caches."""
    config = load_config(config_path)
    storage = open_storage(config)
    try:
        StateCache(storage).clear()
        TeamCache(storage, version=config.cache.team_cache_version).clear()
        UserTeamsCache(storage).clear()
        if include_user_state:
            DismissalStore(storage).clear()
            VisitedStore(storage).clear()
        display_success("Caches cleared")
    finally:
        storage.close()


@cache_app.command(name="purge-team")
@handle_errors
def cache_purge_team(
    config_path: Path = typer.Option(
        DEFAULT_CONFIG, "--config", "-c", help="Path to config YAML"
    ),
):
    """Delete team classification caches left by older versions."""
    config = load_config(config_path)
    storage = open_storage(config)
    try:
        purged = TeamCache(
            storage, version=config.cache.team_cache_version
        ).purge_prior_versions()
        if purged:
            display_success(f"Purged {len(purged)} slot(s): {', '.join(purged)}")
        else:
            display_info("No prior team cache versions found")
    finally:
        storage.close()
