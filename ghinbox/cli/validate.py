"""Validate command for configuration files."""

from pathlib import Path

import typer

from ghinbox.services.config_manager import ConfigManager
from ghinbox.cli.utils import handle_errors, display_success, display_error, display_warning


@handle_errors
def validate_command(
    config_path: Path = typer.Argument(..., help="Config file to validate"),
):
    """Validate configuration file syntax and semantics."""
    try:
        config = ConfigManager(config_path=str(config_path)).load_config()
    except Exception as e:
        display_error(f"Validation failed: {e}")
        raise typer.Exit(code=1)

    display_success("Configuration is valid! ✅")
    if not config.github.token:
        display_warning("No GitHub token set; 'list' and 'watch' will refuse to run.")
