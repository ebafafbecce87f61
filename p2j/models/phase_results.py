"""Phase result models for tracking migration operations."""

from typing import Any

from pydantic import BaseModel, Field

from p2j.models.outcome import Outcome


class PhaseResult(BaseModel):
    """Represents the result of one migration phase."""

    name: str
    success: bool = False
    details: dict[str, Any] = Field(default_factory=dict)
    errors: list[str] = Field(default_factory=list)
    total_count: int = 0
    success_count: int = 0
    failed_count: int = 0
    skipped_count: int = 0
    elapsed_seconds: float = 0.0

    def add_error(self, error: str) -> None:
        """Add an error message to the errors list."""
        self.errors.append(error)

    def record_outcomes(self, outcomes: list[Outcome]) -> None:
        """Fold runner outcomes into the counters."""
        self.total_count += len(outcomes)
        for outcome in outcomes:
            if outcome.ok:
                self.success_count += 1
            else:
                self.failed_count += 1
                self.add_error(f"{outcome.item_id}: {outcome.error}")
        self.success = self.failed_count == 0
