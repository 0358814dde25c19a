"""Storage contracts consumed by the relationship engine.

Any backend that satisfies ``RelationshipStore`` (SQL, embedded KV,
in-memory) can sit behind the engine. All reads exclude soft-deleted edges
unless stated otherwise, and the backend is the authoritative guard for
uniqueness of the live ``(person_id, related_person_id, relationship_type)``
triple.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from typing import TYPE_CHECKING, Any

from ..exceptions import ConflictError, NotFoundError
from ..models.relationship import (
    CertaintyLevel,
    RelationshipEdge,
    RelationshipStatus,
    RelationshipType,
    append_note,
    closing_date,
)

if TYPE_CHECKING:
    from collections.abc import Iterator

    from ..models.person import Person


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "y")
    return bool(value)


@dataclass
class EdgeQuery:
    """Filter and page over the edges of one person."""
    relationship_types: list[RelationshipType] = field(default_factory=list)
    active_only: bool = False

    # Pagination; None means unbounded
    limit: int | None = None
    offset: int = 0

    def matches(self, edge: RelationshipEdge) -> bool:
        if self.relationship_types and edge.relationship_type not in self.relationship_types:
            return False
        if self.active_only and edge.relationship_status != RelationshipStatus.ACTIVE:
            return False
        return True

    def unpaged(self) -> EdgeQuery:
        return EdgeQuery(relationship_types=list(self.relationship_types), active_only=self.active_only)


@dataclass
class SearchFilters:
    """Store-wide edge filters. ``person_id`` matches either endpoint."""
    person_id: str | None = None
    relationship_type: RelationshipType | None = None
    relationship_status: RelationshipStatus | None = None
    certainty_level: CertaintyLevel | None = None
    is_biological: bool | None = None
    start_date_from: date | None = None
    start_date_to: date | None = None
    verified: bool | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> SearchFilters:
        """Build filters from loosely typed input such as query parameters.

        Raises:
            ValueError: if an enum or date value cannot be parsed
        """
        data = data or {}

        def _get(key: str) -> Any:
            value = data.get(key)
            return None if value in (None, "") else value

        def _date(key: str) -> date | None:
            value = _get(key)
            if value is None or isinstance(value, date):
                return value
            return date.fromisoformat(str(value)[:10])

        is_biological = _get("is_biological")
        verified = _get("verified")
        return cls(
            person_id=str(_get("person_id")) if _get("person_id") is not None else None,
            relationship_type=RelationshipType(_get("relationship_type")) if _get("relationship_type") else None,
            relationship_status=RelationshipStatus(_get("relationship_status")) if _get("relationship_status") else None,
            certainty_level=CertaintyLevel(_get("certainty_level")) if _get("certainty_level") else None,
            is_biological=_truthy(is_biological) if is_biological is not None else None,
            start_date_from=_date("start_date_from"),
            start_date_to=_date("start_date_to"),
            verified=_truthy(verified) if verified is not None else None,
        )

    def matches(self, edge: RelationshipEdge) -> bool:
        if self.person_id and self.person_id not in (edge.person_id, edge.related_person_id):
            return False
        if self.relationship_type and edge.relationship_type != self.relationship_type:
            return False
        if self.relationship_status and edge.relationship_status != self.relationship_status:
            return False
        if self.certainty_level and edge.certainty_level != self.certainty_level:
            return False
        if self.is_biological is not None and edge.is_biological != self.is_biological:
            return False
        if self.start_date_from and (edge.start_date is None or edge.start_date < self.start_date_from):
            return False
        if self.start_date_to and (edge.start_date is None or edge.start_date > self.start_date_to):
            return False
        if self.verified is not None and edge.is_verified != self.verified:
            return False
        return True


class PersonDirectory(ABC):
    """Source of person records, keyed by opaque id."""

    @abstractmethod
    def get_person(self, person_id: str) -> Person | None:
        """Get a person by id, or None if unknown."""
        ...

    def get_persons(self, person_ids: Iterable[str]) -> dict[str, Person]:
        """Get several persons at once; unknown ids are left out."""
        found: dict[str, Person] = {}
        for person_id in person_ids:
            person = self.get_person(person_id)
            if person is not None:
                found[person_id] = person
        return found


class RelationshipStore(ABC):
    """Abstract base class for relationship edge storage."""

    @abstractmethod
    def exists(self, person_id: str) -> bool:
        """Check that a person is known to the store."""
        ...

    @abstractmethod
    def get(self, edge_id: str, include_deleted: bool = False) -> RelationshipEdge | None:
        """Get an edge by id."""
        ...

    @abstractmethod
    def find_edge(
        self,
        person_id: str,
        related_person_id: str,
        relationship_type: RelationshipType,
    ) -> RelationshipEdge | None:
        """Find the live edge with this triple, if any."""
        ...

    @abstractmethod
    def create(self, edge: RelationshipEdge) -> RelationshipEdge:
        """Persist a new edge.

        Raises:
            ConflictError: if a live edge with the same triple exists
        """
        ...

    @abstractmethod
    def update(self, edge_id: str, changes: Mapping[str, Any]) -> RelationshipEdge:
        """Apply field changes to a live edge and bump ``updated_at``.

        Raises:
            NotFoundError: if the edge is unknown or deleted
            ConflictError: if the change collides with another live triple
        """
        ...

    @abstractmethod
    def soft_delete(self, edge_id: str) -> bool:
        """Tombstone an edge. Returns False if it was already deleted.

        Raises:
            NotFoundError: if the edge never existed
        """
        ...

    @abstractmethod
    def query_by(self, person_id: str, query: EdgeQuery | None = None) -> list[RelationshipEdge]:
        """Live edges where ``person_id`` is the subject, oldest first."""
        ...

    @abstractmethod
    def count_by(self, person_id: str, query: EdgeQuery | None = None) -> int:
        """Count of ``query_by`` matches, ignoring pagination."""
        ...

    @abstractmethod
    def query_reciprocal(
        self, person_id: str, query: EdgeQuery | None = None
    ) -> list[RelationshipEdge]:
        """Live edges where ``person_id`` is the object, oldest first."""
        ...

    @abstractmethod
    def search(
        self,
        filters: SearchFilters,
        limit: int | None = None,
        offset: int = 0,
    ) -> tuple[list[RelationshipEdge], int]:
        """Live edges matching ``filters``, newest first, with the total count."""
        ...

    @abstractmethod
    def iter_edges(self) -> Iterator[RelationshipEdge]:
        """Iterate every live edge."""
        ...

    def close(self) -> None:
        """Release backend resources."""

    # ----------------------- Derived operations -----------------------

    def _require_live(self, edge_id: str) -> RelationshipEdge:
        edge = self.get(edge_id)
        if edge is None:
            raise NotFoundError("Relationship", edge_id)
        return edge

    def update_status(
        self,
        edge_id: str,
        status: RelationshipStatus,
        end_date: date | None = None,
    ) -> RelationshipEdge:
        """Change status; terminal statuses always carry an end date."""
        changes: dict[str, Any] = {"relationship_status": status}
        if status != RelationshipStatus.ACTIVE:
            edge = self._require_live(edge_id)
            changes["end_date"] = end_date or edge.end_date or closing_date(edge.start_date)
        elif end_date is not None:
            changes["end_date"] = end_date
        return self.update(edge_id, changes)

    def set_verified(self, edge_id: str, verifier_id: str) -> RelationshipEdge:
        """Record verification once; certainty becomes CONFIRMED.

        Raises:
            ConflictError: if the edge was already verified
        """
        edge = self._require_live(edge_id)
        if edge.is_verified:
            raise ConflictError("Relationship already verified", existing_id=edge_id)
        return self.update(
            edge_id,
            {
                "verified_by": verifier_id,
                "verified_at": datetime.now(UTC),
                "certainty_level": CertaintyLevel.CONFIRMED,
            },
        )

    def append_note(self, edge_id: str, text: str) -> RelationshipEdge:
        """Append a timestamped entry to the notes trail."""
        edge = self._require_live(edge_id)
        return self.update(edge_id, {"notes": append_note(edge.notes, text)})
