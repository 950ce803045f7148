"""ghinbox CLI Package.

Command-line interface for the GitHub notification inbox.

Usage:
    python -m ghinbox.cli list --config config/ghinbox.yaml
    python -m ghinbox.cli watch
    python -m ghinbox.cli dismiss "octo/repo#https://api.github.com/repos/octo/repo/pulls/1"
    python -m ghinbox.cli cache clear --all
    python -m ghinbox.cli cache purge-team
    python -m ghinbox.cli validate config/ghinbox.yaml
"""

import typer

from ghinbox.cli.inbox import list_command, watch_command, dismiss_command
from ghinbox.cli.cache import cache_app
from ghinbox.cli.validate import validate_command

app = typer.Typer(help="ghinbox: GitHub notification inbox")

app.command(name="list")(list_command)
app.command(name="watch")(watch_command)
app.command(name="dismiss")(dismiss_command)
app.command(name="validate")(validate_command)

app.add_typer(cache_app, name="cache")

__all__ = [
    "app",
    "list_command",
    "watch_command",
    "dismiss_command",
    "validate_command",
    "cache_app",
]
