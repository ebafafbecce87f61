"""Per-item outcome produced by the bounded runner."""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Outcome:
    """Result of migrating one record or uploading one file.

    Exactly one of ``target_key`` and ``error`` is set.
    """

    item_id: str
    target_key: str | None = None
    error: str | None = None

    @classmethod
    def success(cls, item_id: str, target_key: str = "") -> "Outcome":
        return cls(item_id=item_id, target_key=target_key)

    @classmethod
    def failure(cls, item_id: str, reason: str) -> "Outcome":
        return cls(item_id=item_id, error=reason or "unknown error")

    @property
    def ok(self) -> bool:
        return self.error is None
