"""Command line interface for cctrack."""

from cctrack.cli.main import main

__all__ = [
    "main",
]
