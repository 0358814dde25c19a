"""Relationship type catalog: valid types, reciprocals and type families."""
from __future__ import annotations

from .models.relationship import RelationshipType

OTHER = "OTHER"

# The label implied from the other side of an edge. Symmetric types map to
# themselves. Adoption maps to labels that are not edge types of their own.
RECIPROCAL_TYPES: dict[RelationshipType, str] = {
    RelationshipType.FATHER: "SON",
    RelationshipType.MOTHER: "DAUGHTER",
    RelationshipType.SON: "FATHER",
    RelationshipType.DAUGHTER: "MOTHER",
    RelationshipType.HUSBAND: "WIFE",
    RelationshipType.WIFE: "HUSBAND",
    RelationshipType.BROTHER: "BROTHER",
    RelationshipType.SISTER: "SISTER",
    RelationshipType.GRANDFATHER: "GRANDSON",
    RelationshipType.GRANDMOTHER: "GRANDDAUGHTER",
    RelationshipType.GRANDSON: "GRANDFATHER",
    RelationshipType.GRANDDAUGHTER: "GRANDMOTHER",
    RelationshipType.UNCLE: "NEPHEW",
    RelationshipType.AUNT: "NIECE",
    RelationshipType.NEPHEW: "UNCLE",
    RelationshipType.NIECE: "AUNT",
    RelationshipType.COUSIN: "COUSIN",
    RelationshipType.FATHER_IN_LAW: "SON_IN_LAW",
    RelationshipType.MOTHER_IN_LAW: "DAUGHTER_IN_LAW",
    RelationshipType.SON_IN_LAW: "FATHER_IN_LAW",
    RelationshipType.DAUGHTER_IN_LAW: "MOTHER_IN_LAW",
    RelationshipType.BROTHER_IN_LAW: "BROTHER_IN_LAW",
    RelationshipType.SISTER_IN_LAW: "SISTER_IN_LAW",
    RelationshipType.STEP_FATHER: "STEP_SON",
    RelationshipType.STEP_MOTHER: "STEP_DAUGHTER",
    RelationshipType.STEP_SON: "STEP_FATHER",
    RelationshipType.STEP_DAUGHTER: "STEP_MOTHER",
    RelationshipType.ADOPTED_SON: "ADOPTIVE_FATHER",
    RelationshipType.ADOPTED_DAUGHTER: "ADOPTIVE_MOTHER",
}

# Subject is the parent of the object
PARENT_TYPES = frozenset({RelationshipType.FATHER, RelationshipType.MOTHER})
# Subject is the child of the object
CHILD_TYPES = frozenset({RelationshipType.SON, RelationshipType.DAUGHTER})
SPOUSE_TYPES = frozenset({RelationshipType.HUSBAND, RelationshipType.WIFE})


def parse_relationship_type(value: object) -> RelationshipType | None:
    """Coerce a raw value to a RelationshipType, or None if it is not one."""
    if isinstance(value, RelationshipType):
        return value
    if isinstance(value, str):
        try:
            return RelationshipType(value)
        except ValueError:
            return None
    return None


def reciprocal_type(relationship_type: RelationshipType | str) -> str:
    """Return the reciprocal label of ``relationship_type``.

    Total over any input: unknown or unmapped values yield ``"OTHER"``.
    """
    parsed = parse_relationship_type(relationship_type)
    if parsed is None:
        return OTHER
    return RECIPROCAL_TYPES.get(parsed, OTHER)


def is_valid_type(value: object) -> bool:
    return parse_relationship_type(value) is not None


def valid_type_names() -> list[str]:
    return [t.value for t in RelationshipType]
