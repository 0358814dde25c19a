"""Pydantic entities and result dataclasses."""

from .person import Person
from .relationship import (
    CERTAINTY_RANK,
    CertaintyLevel,
    RelationshipEdge,
    RelationshipStatus,
    RelationshipType,
    append_note,
    closing_date,
    new_edge_id,
)
from .results import (
    EXPORT_FIELDS,
    AncestorEntry,
    AncestorResult,
    BulkError,
    BulkResult,
    DegreeResult,
    DescendantEntry,
    DescendantNode,
    DescendantResult,
    ExportResult,
    FamilyMember,
    ImmediateFamily,
    ImportItemResult,
    ImportOutcome,
    ImportResult,
    Pagination,
    ParentPair,
    RelationshipDetails,
    RelationshipPage,
    RelationshipStatistics,
    SearchPage,
    TypeStatistics,
)

__all__ = [
    "Person",
    "RelationshipEdge",
    "RelationshipType",
    "RelationshipStatus",
    "CertaintyLevel",
    "CERTAINTY_RANK",
    "append_note",
    "closing_date",
    "new_edge_id",
    "AncestorEntry",
    "AncestorResult",
    "DescendantEntry",
    "DescendantNode",
    "DescendantResult",
    "FamilyMember",
    "ParentPair",
    "ImmediateFamily",
    "DegreeResult",
    "Pagination",
    "RelationshipPage",
    "SearchPage",
    "RelationshipDetails",
    "BulkError",
    "BulkResult",
    "ImportOutcome",
    "ImportItemResult",
    "ImportResult",
    "ExportResult",
    "EXPORT_FIELDS",
    "RelationshipStatistics",
    "TypeStatistics",
]
