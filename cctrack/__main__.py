"""Run the cctrack command line interface."""

from __future__ import annotations

from cctrack.cli.main import main

if __name__ == "__main__":
    main()
