"""Relationship edge - the core entity of the family graph."""
from __future__ import annotations

from datetime import UTC, date, datetime
from enum import Enum

from pydantic import BaseModel, Field
from uuid_utils import uuid7 as _uuid7


def new_edge_id() -> str:
    """Generate a time-ordered UUID7 string for a new edge."""
    return str(_uuid7())


class RelationshipType(str, Enum):
    """Closed set of relationship types an edge may carry.

    An edge ``(A, B, FATHER)`` reads "A is the FATHER of B".
    """

    FATHER = "FATHER"
    MOTHER = "MOTHER"
    SON = "SON"
    DAUGHTER = "DAUGHTER"
    BROTHER = "BROTHER"
    SISTER = "SISTER"
    HUSBAND = "HUSBAND"
    WIFE = "WIFE"

    # Extended relationships
    GRANDFATHER = "GRANDFATHER"
    GRANDMOTHER = "GRANDMOTHER"
    GRANDSON = "GRANDSON"
    GRANDDAUGHTER = "GRANDDAUGHTER"
    UNCLE = "UNCLE"
    AUNT = "AUNT"
    NEPHEW = "NEPHEW"
    NIECE = "NIECE"
    COUSIN = "COUSIN"

    # In-law relationships
    FATHER_IN_LAW = "FATHER_IN_LAW"
    MOTHER_IN_LAW = "MOTHER_IN_LAW"
    SON_IN_LAW = "SON_IN_LAW"
    DAUGHTER_IN_LAW = "DAUGHTER_IN_LAW"
    BROTHER_IN_LAW = "BROTHER_IN_LAW"
    SISTER_IN_LAW = "SISTER_IN_LAW"

    # Step relationships
    STEP_FATHER = "STEP_FATHER"
    STEP_MOTHER = "STEP_MOTHER"
    STEP_SON = "STEP_SON"
    STEP_DAUGHTER = "STEP_DAUGHTER"

    # Adoption
    ADOPTED_SON = "ADOPTED_SON"
    ADOPTED_DAUGHTER = "ADOPTED_DAUGHTER"


class RelationshipStatus(str, Enum):
    """Lifecycle status of an edge. DISSOLVED and DECEASED are terminal."""

    ACTIVE = "ACTIVE"
    DISSOLVED = "DISSOLVED"
    DECEASED = "DECEASED"

    @property
    def is_terminal(self) -> bool:
        return self is not RelationshipStatus.ACTIVE


class CertaintyLevel(str, Enum):
    """Confidence classification of a genealogical claim."""

    CONFIRMED = "CONFIRMED"
    LIKELY = "LIKELY"
    POSSIBLE = "POSSIBLE"
    UNCERTAIN = "UNCERTAIN"


# Most certain first, used when ranking competing edges
CERTAINTY_RANK: dict[CertaintyLevel, int] = {
    CertaintyLevel.CONFIRMED: 0,
    CertaintyLevel.LIKELY: 1,
    CertaintyLevel.POSSIBLE: 2,
    CertaintyLevel.UNCERTAIN: 3,
}


def closing_date(start_date: date | None, today: date | None = None) -> date:
    """Default end date for an edge entering a terminal status.

    Today, unless the edge starts later; an end date never precedes the start.
    """
    today = today or datetime.now(UTC).date()
    if start_date is not None and start_date > today:
        return start_date
    return today


def stamp_note(text: str, at: datetime | None = None) -> str:
    """Format a single audit-trail entry."""
    at = at or datetime.now(UTC)
    return f"{at.isoformat()}: {text}"


def append_note(existing: str | None, text: str, at: datetime | None = None) -> str:
    """Append a timestamped entry to an existing notes trail."""
    entry = stamp_note(text, at)
    return f"{existing}\n{entry}" if existing else entry


class RelationshipEdge(BaseModel):
    """A single directed, typed fact linking two persons.

    ``person_id`` is the subject and ``related_person_id`` the object of
    ``relationship_type``. Edges are never hard-deleted; ``deleted_at`` is a
    tombstone.
    """

    id: str = Field(default_factory=new_edge_id)
    person_id: str
    related_person_id: str
    relationship_type: RelationshipType
    reciprocal_relationship_type: str = Field(
        default="OTHER", description="Inverse label; metadata only, never a second edge"
    )

    relationship_status: RelationshipStatus = RelationshipStatus.ACTIVE
    certainty_level: CertaintyLevel = CertaintyLevel.CONFIRMED
    is_biological: bool = True
    start_date: date | None = None
    end_date: date | None = None

    # Verification is set at most once
    verified_by: str | None = None
    verified_at: datetime | None = None

    # Audit
    created_by: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    deleted_at: datetime | None = None
    notes: str | None = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def is_verified(self) -> bool:
        return self.verified_by is not None

    @property
    def is_active(self) -> bool:
        return self.relationship_status == RelationshipStatus.ACTIVE

    def triple(self) -> tuple[str, str, str]:
        """Key that must be unique among live edges."""
        return (self.person_id, self.related_person_id, self.relationship_type.value)

    def other_person(self, person_id: str) -> str:
        """The endpoint of this edge that is not ``person_id``."""
        return self.related_person_id if self.person_id == person_id else self.person_id
