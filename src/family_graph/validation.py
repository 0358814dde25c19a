"""Stateless rule checks on a proposed relationship edge.

Every rule runs on every call so the caller gets the full list of
violations at once. Existence and duplicate checks need the store and are
done by the service, not here.
"""
from __future__ import annotations

from collections.abc import Mapping
from datetime import date, datetime
from typing import Any

from .catalog import is_valid_type, valid_type_names
from .models.relationship import CertaintyLevel, RelationshipStatus

REQUIRED_FIELDS = (
    ("person_id", "Person ID is required"),
    ("related_person_id", "Related person ID is required"),
    ("relationship_type", "Relationship type is required"),
)


def _enum_value(value: Any) -> Any:
    return value.value if hasattr(value, "value") else value


def coerce_date(value: Any) -> date | None:
    """Parse a date from a date, datetime or ISO string.

    Raises:
        ValueError: if a string is not an ISO date
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value[:10])
    raise ValueError(f"Unsupported date value: {value!r}")


class RelationshipValidator:
    """Validates raw relationship data before it reaches the store."""

    statuses = [s.value for s in RelationshipStatus]
    certainty_levels = [c.value for c in CertaintyLevel]

    def validate(self, data: Mapping[str, Any], is_update: bool = False) -> list[str]:
        """Return every violation found in ``data``; empty means valid.

        Args:
            data: Edge fields, as supplied by the caller
            is_update: Partial update; required fields are not enforced
        """
        errors: list[str] = []

        for field_name, message in REQUIRED_FIELDS:
            # An update may omit a required field but never blank it
            if (not is_update or field_name in data) and not data.get(field_name):
                errors.append(message)

        person_id = data.get("person_id")
        related_id = data.get("related_person_id")
        if person_id and related_id and str(person_id) == str(related_id):
            errors.append("A person cannot have a relationship with themselves")

        rel_type = data.get("relationship_type")
        if rel_type and not is_valid_type(rel_type):
            errors.append(
                f"Invalid relationship type. Must be one of: {', '.join(valid_type_names())}"
            )

        status = _enum_value(data.get("relationship_status"))
        if status and status not in self.statuses:
            errors.append(
                f"Invalid relationship status. Must be one of: {', '.join(self.statuses)}"
            )

        certainty = _enum_value(data.get("certainty_level"))
        if certainty and certainty not in self.certainty_levels:
            errors.append(
                f"Invalid certainty level. Must be one of: {', '.join(self.certainty_levels)}"
            )

        start_date = end_date = None
        for field_name in ("start_date", "end_date"):
            try:
                parsed = coerce_date(data.get(field_name))
            except ValueError:
                errors.append(f"Invalid {field_name}. Expected an ISO date (YYYY-MM-DD)")
                continue
            if field_name == "start_date":
                start_date = parsed
            else:
                end_date = parsed

        if start_date and end_date and start_date > end_date:
            errors.append("Start date cannot be after end date")

        return errors
