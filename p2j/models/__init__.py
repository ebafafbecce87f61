"""Models package for data structures used in the application."""

from p2j.models.migration_error import MigrationError
from p2j.models.migration_results import MigrationResult
from p2j.models.outcome import Outcome
from p2j.models.phase_results import PhaseResult

__all__ = ["MigrationError", "MigrationResult", "Outcome", "PhaseResult"]
