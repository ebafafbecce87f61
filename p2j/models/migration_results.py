"""
Migration result models for tracking overall migration operations.
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from p2j.models.phase_results import PhaseResult


class MigrationResult(BaseModel):
    """Represents the overall result of a migration run."""

    phases: dict[str, PhaseResult] = Field(default_factory=dict)
    overall: dict[str, Any] = Field(default_factory=dict)

    def __init__(self, **data: Any) -> None:
        super().__init__(**data)

        self.overall.setdefault("status", "success")
        self.overall.setdefault("start_time", datetime.now(tz=UTC).isoformat())

    def add_phase(self, result: PhaseResult) -> None:
        """Store a phase result and downgrade the overall status on failures."""
        self.phases[result.name] = result
        if not result.success:
            self.overall["status"] = "failed"

    @property
    def failed_count(self) -> int:
        return sum(phase.failed_count for phase in self.phases.values())

    @property
    def succeeded(self) -> bool:
        return self.overall.get("status") == "success"
