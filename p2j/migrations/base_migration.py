"""Base migration class providing common functionality for all phases."""

import logging
import time
from typing import ClassVar

from p2j.models import PhaseResult
from p2j.type_definitions import PhaseName


class BasePhase:
    """Base class for migration phases.

    Subclasses implement :meth:`_run` and fill in the counters of the
    :class:`PhaseResult` they are handed. :meth:`run` adds the start line,
    the completion line with counts and the elapsed time.
    Fatal problems are raised as :class:`~p2j.models.MigrationError` and are
    not caught here.
    """

    name: ClassVar[PhaseName]
    title: ClassVar[str] = ""

    def __init__(self, logger: logging.Logger) -> None:
        """Initialize the phase with the logger it reports to."""
        self.logger = logger

    @property
    def display_name(self) -> str:
        return self.title or self.name

    def run(self) -> PhaseResult:
        """Run the phase and return its counters."""
        self.logger.info("Starting %s", self.display_name)
        start_time = time.time()

        result = PhaseResult(name=self.name)
        try:
            self._run(result)
        finally:
            result.elapsed_seconds = time.time() - start_time

        self.logger.info(
            "%s completed: total=%d, success=%d, failed=%d, skipped=%d (%.2fs)",
            self.display_name,
            result.total_count,
            result.success_count,
            result.failed_count,
            result.skipped_count,
            result.elapsed_seconds,
        )
        return result

    def _run(self, result: PhaseResult) -> None:
        raise NotImplementedError
