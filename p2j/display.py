"""
Centralized display utilities for console output.
Provides rich logging and the end-of-run summary table.
"""

import logging
import os
from typing import TYPE_CHECKING, Any, Protocol, cast

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from rich.theme import Theme

if TYPE_CHECKING:
    from p2j.models import MigrationResult

SUCCESS_LEVEL = 25
NOTICE_LEVEL = 21


# Define Protocol for extended Logger with success and notice methods
class ExtendedLogger(Protocol):
    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
    def info(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
    def error(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
    def critical(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
    def success(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
    def notice(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
    def exception(self, msg: str, *args: Any, **kwargs: Any) -> None: ...


LOGGING_THEME = Theme(
    {
        "logging.level.debug": "dim",
        "logging.level.info": "blue",
        "logging.level.notice": "cyan",
        "logging.level.warning": "bold yellow",
        "logging.level.error": "bold red",
        "logging.level.critical": "bold red on white",
        "logging.level.success": "bold green",
    }
)

console = Console(theme=LOGGING_THEME)


def _build_rich_handler() -> RichHandler:
    return RichHandler(
        console=console,
        rich_tracebacks=True,
        tracebacks_show_locals=False,
        markup=True,
        show_time=True,
        show_level=True,
        enable_link_path=True,
        log_time_format="[%X]",
    )


def configure_logging(
    level: str = "INFO", log_file: str | None = None, name: str = "migration"
) -> ExtendedLogger:
    """
    Configure logging with rich formatting.

    Args:
        level: Logging level (DEBUG, INFO, NOTICE, SUCCESS, WARNING, ERROR, CRITICAL)
        log_file: Optional path to a log file
        name: Name of the logger handed to the migration components

    Returns:
        Configured logger instance
    """
    logging.addLevelName(SUCCESS_LEVEL, "SUCCESS")
    logging.addLevelName(NOTICE_LEVEL, "NOTICE")

    if level.upper() == "NOTICE":
        numeric_level = NOTICE_LEVEL
    elif level.upper() == "SUCCESS":
        numeric_level = SUCCESS_LEVEL
    else:
        numeric_level = getattr(logging, level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [_build_rich_handler()]

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir, exist_ok=True)

        file_format = logging.Formatter(
            "%(asctime)s.%(msecs)03d - %(name)s - %(levelname)s - %(message)s"
        )
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(file_format)
        file_handler.setLevel(numeric_level)
        handlers.append(file_handler)

    logging.basicConfig(
        level=numeric_level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=handlers,
        force=True,
    )

    logger = logging.getLogger(name)

    def success(self: logging.Logger, message: str, *args: Any, **kwargs: Any) -> None:
        if self.isEnabledFor(SUCCESS_LEVEL):
            kwargs["extra"] = kwargs.get("extra", {})
            kwargs["extra"]["markup"] = True
            self._log(SUCCESS_LEVEL, f"[green]{message}[/]", args, stacklevel=2, **kwargs)

    def notice(self: logging.Logger, message: str, *args: Any, **kwargs: Any) -> None:
        if self.isEnabledFor(NOTICE_LEVEL):
            self._log(NOTICE_LEVEL, message, args, stacklevel=2, **kwargs)

    setattr(logging.Logger, "success", success)
    setattr(logging.Logger, "notice", notice)

    logger.debug("Rich logging configured")
    if log_file:
        logger.debug("Log file: %s", log_file)

    return cast(ExtendedLogger, logger)


def print_phase_summary(result: "MigrationResult") -> None:
    """Render one row per executed phase with its counts and elapsed time."""
    if not result.phases:
        return

    table = Table(title="Migration summary", show_lines=False)
    table.add_column("Phase", style="bold")
    table.add_column("Total", justify="right")
    table.add_column("Success", justify="right", style="green")
    table.add_column("Failed", justify="right", style="red")
    table.add_column("Skipped", justify="right", style="dim")
    table.add_column("Elapsed", justify="right")

    for name, phase in result.phases.items():
        table.add_row(
            name,
            str(phase.total_count),
            str(phase.success_count),
            str(phase.failed_count),
            str(phase.skipped_count),
            f"{phase.elapsed_seconds:.2f}s",
        )

    console.print(table)
