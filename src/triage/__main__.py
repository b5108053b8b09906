"""Entry point for running triage as a module.

Allows running the application with:
    python -m triage

This delegates to the Typer CLI app.
"""

from triage.cli import app

if __name__ == "__main__":
    app()
