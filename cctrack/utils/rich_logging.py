"""Rich logging integration for cctrack.

Provides the Rich console handler used for terminal output and a file
formatter that strips Rich markup.
"""

from __future__ import annotations

import logging
import re
import sys
from typing import Any, ClassVar

from rich.console import Console
from rich.highlighter import RegexHighlighter
from rich.logging import RichHandler
from rich.theme import Theme

_MARKUP_PATTERN = re.compile(r"\[/?[a-z#][^\]]*\]")

LOG_THEME = Theme(
    {
        "cctrack.hash": "bright_cyan",
        "cctrack.node": "magenta",
        "cctrack.alpn": "bold green",
    }
)


class IdentifierHighlighter(RegexHighlighter):
    """Highlight content hashes, node ids and protocol tags in log lines."""

    base_style = "cctrack."
    highlights: ClassVar[list[str]] = [
        r"(?P<hash>\bs?[0-9a-f]{64}\b)",
        r"(?P<node>\b[a-z2-7]{52}\b)",
        r"(?P<alpn>\bn0/[\w/.-]+)",
    ]


class CorrelationRichHandler(RichHandler):
    """RichHandler that stamps records with the current correlation ID."""

    def __init__(
        self,
        *args: Any,
        console: Console | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize RichHandler.

        Args:
            *args: Positional arguments for RichHandler
            console: Optional Rich Console instance, defaults to stderr
            **kwargs: Keyword arguments for RichHandler

        """
        if console is None:
            console = Console(file=sys.stderr, theme=LOG_THEME)
        kwargs.setdefault("highlighter", IdentifierHighlighter())
        super().__init__(*args, console=console, **kwargs)

    def emit(self, record: logging.LogRecord) -> None:
        """Emit a log record with correlation ID attached."""
        try:
            if not hasattr(record, "correlation_id"):
                from cctrack.utils.logging_config import correlation_id

                record.correlation_id = correlation_id.get() or "no-correlation-id"
            super().emit(record)
        except Exception:
            self.handleError(record)

    def handleError(self, record: logging.LogRecord) -> None:
        """Handle errors during logging to prevent circular errors."""
        try:
            sys.stderr.write(
                f"Logging error (suppressed): "
                f"{record.levelname} {record.name}: {record.msg}\n"
            )
            sys.stderr.flush()
        except Exception:  # nosec B110 - last resort, nothing left to report to
            pass


def strip_rich_markup(text: str) -> str:
    """Strip Rich markup from text for file logging."""
    return _MARKUP_PATTERN.sub("", text)


class FileFormatter(logging.Formatter):
    """Formatter for file output that strips Rich markup."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record, stripping Rich markup for file output."""
        return strip_rich_markup(super().format(record))


def create_rich_handler(
    console: Console | None = None,
    level: int | str = logging.INFO,
    show_path: bool = False,
    rich_tracebacks: bool = True,
) -> logging.Handler:
    """Create a RichHandler with correlation ID support.

    Args:
        console: Optional Rich Console instance
        level: Log level
        show_path: Whether to show file paths in log output
        rich_tracebacks: Whether to use rich tracebacks

    Returns:
        Configured RichHandler instance

    """
    return CorrelationRichHandler(
        console=console,
        level=level,
        show_path=show_path,
        rich_tracebacks=rich_tracebacks,
    )
