"""Typed errors raised by the relationship engine.

The API layer above maps these to responses; ``http_status`` is offered as
a hint only.
"""
from __future__ import annotations

from dataclasses import dataclass, field


class FamilyGraphError(Exception):
    """Base class for all engine errors."""

    http_status: int = 500


@dataclass
class ValidationError(FamilyGraphError):
    """Malformed input. Carries every violation found, not just the first."""

    errors: list[str] = field(default_factory=list)

    http_status = 400

    def __str__(self) -> str:
        return f"Validation failed: {', '.join(self.errors)}"


@dataclass
class NotFoundError(FamilyGraphError):
    """Unknown person or relationship id."""

    entity: str
    identifier: str

    http_status = 404

    def __str__(self) -> str:
        return f"{self.entity} not found: {self.identifier}"


@dataclass
class ConflictError(FamilyGraphError):
    """Duplicate live triple or an invalid state transition."""

    reason: str
    existing_id: str | None = None

    http_status = 409

    def __str__(self) -> str:
        if self.existing_id:
            return f"{self.reason} (existing={self.existing_id})"
        return self.reason


@dataclass
class StoreError(FamilyGraphError):
    """Wraps a failure raised by the storage backend. Never retried here."""

    operation: str
    cause: str = ""

    http_status = 500

    def __str__(self) -> str:
        return f"Store operation '{self.operation}' failed: {self.cause}"
