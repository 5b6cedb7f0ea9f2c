"""Logging utilities for uxkit-codex with colored output."""

import logging
import time
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.text import Text
from rich.theme import Theme

if TYPE_CHECKING:
    from uxkit_codex.core.error_classifier import ClassifiedError
    from uxkit_codex.core.tool_validator import ValidationOutcome

# Global console instance for colored output
_console: Optional[Console] = None

MAX_SHOWN_SUGGESTIONS = 3

_uxkit_theme = Theme(
    {
        "info": "cyan",
        "warning": "yellow",
        "error": "bold red",
        "success": "bold green",
        "status": "bold magenta",
        "tool": "bold blue",
        "file": "italic",
        "dim": "dim",
    }
)


def _get_console() -> Console:
    """Get or create global console instance."""
    global _console
    if _console is None:
        _console = Console(theme=_uxkit_theme)
    return _console


def setup_logging(level: str = "INFO") -> None:
    """Setup logging configuration for uxkit-codex with rich formatting.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    console = _get_console()

    logging.basicConfig(
        level=numeric_level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[
            RichHandler(
                console=console,
                rich_tracebacks=True,
                show_path=False,
            )
        ],
        force=True,
    )

    logging.getLogger("uxkit_codex").setLevel(numeric_level)

    if numeric_level <= logging.DEBUG:
        console.print(
            f"[dim]Logging configured at {level} level - {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}[/dim]"
        )


def get_logger(name: str) -> logging.Logger:
    """Get logger for specific module.

    Args:
        name: Module name

    Returns:
        Logger under the uxkit_codex hierarchy
    """
    return logging.getLogger(f"uxkit_codex.{name}")


def log_lifecycle_transition(previous: str, current: str) -> None:
    """Log an integration status change, e.g. initializing -> initialized.

    Printed only when the uxkit_codex logger is enabled for INFO (ERROR for
    transitions into the error status), so quiet runs stay quiet.
    """
    failed = current == "error"
    level = logging.ERROR if failed else logging.INFO
    if not logging.getLogger("uxkit_codex").isEnabledFor(level):
        return
    style = "error" if failed else "status"
    _get_console().print(
        f"  [dim]{previous}[/dim] → [{style}]{current}[/{style}]"
    )


def log_validation_outcome(outcome: "ValidationOutcome") -> None:
    """Log a tool validation outcome with a pass/fail indicator.

    Args:
        outcome: Result of ToolValidator.validate_tool()
    """
    console = _get_console()

    if outcome.success:
        version = f" {outcome.version}" if outcome.version else ""
        location = f" at [file]{escape(outcome.tool_path)}[/file]" if outcome.tool_path else ""
        console.print(f"  [success]✓[/success] Tool found{version}{location}")
        return

    console.print(
        f"  [error]✗[/error] Validation failed: {outcome.result.value}"
        + (f" - {escape(outcome.message)}" if outcome.message else "")
    )
    for suggestion in outcome.suggestions[:MAX_SHOWN_SUGGESTIONS]:
        console.print(f"    [warning]•[/warning] {escape(suggestion)}")
    if len(outcome.suggestions) > MAX_SHOWN_SUGGESTIONS:
        console.print(
            f"    [dim]... and {len(outcome.suggestions) - MAX_SHOWN_SUGGESTIONS} more[/dim]"
        )


def log_classified_error(error: "ClassifiedError") -> None:
    """Show the user-friendly rendering of a classified error in a panel."""
    from uxkit_codex.core.error_classifier import ErrorClassifier

    _get_console().print(
        Panel.fit(
            Text(ErrorClassifier().create_user_friendly_message(error)),
            title=f"[error]{error.code}[/error] ({error.error_type})",
            border_style="red" if not error.recoverable else "yellow",
        )
    )


class LogContext:
    """Prints a titled step and how long it took.

    Exceptions raised inside the block are reported and re-raised.
    """

    def __init__(self, title: str, style: str = "info"):
        """Initialize log context.

        Args:
            title: Step description, e.g. "Probing codex"
            style: Theme style for the title line
        """
        self.title = title
        self.style = style
        self.console = _get_console()
        self.elapsed_ms = 0
        self._start_time = 0.0

    def __enter__(self) -> "LogContext":
        self._start_time = time.monotonic()
        self.console.print(f"[{self.style}]▶ {escape(self.title)}[/{self.style}]")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.elapsed_ms = int((time.monotonic() - self._start_time) * 1000)
        if exc_type is not None:
            self.console.print(
                f"[error]  ✗ Failed with {exc_type.__name__} after {self.elapsed_ms}ms[/error]"
            )
        else:
            self.console.print(f"[dim]  done in {self.elapsed_ms}ms[/dim]")
        return False
