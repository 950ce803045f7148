"""CLI entry point.

Allows running the CLI as a module: python -m ghinbox.cli
"""

from ghinbox.cli import app

if __name__ == "__main__":
    app()
