"""Result shapes returned by traversal, degree, bulk and statistics queries.

All results serialize to plain dicts through ``to_dict()`` so the API layer
can render them without knowing the engine's types.
"""
from __future__ import annotations

import csv
import io
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any

from .person import Person
from .relationship import RelationshipEdge


def _ancestor_label(generation: int) -> str:
    if generation == 1:
        return "parent"
    elif generation == 2:
        return "grandparent"
    return f"{'great-' * (generation - 2)}grandparent"


def _descendant_label(generation: int) -> str:
    if generation == 1:
        return "child"
    elif generation == 2:
        return "grandchild"
    return f"{'great-' * (generation - 2)}grandchild"


# =============================================================================
# Pedigree traversal
# =============================================================================


@dataclass
class AncestorEntry:
    """One parent edge visited during an ancestor walk."""
    edge: RelationshipEdge
    ancestor_id: str
    child_id: str  # the person one generation below the ancestor
    generation: int  # 1=parent, 2=grandparent, etc.
    relationship: str  # "father", "mother" or "parent"
    lineage: str  # "paternal", "maternal" or "unknown", fixed by the first hop

    @property
    def relationship_label(self) -> str:
        return _ancestor_label(self.generation)

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.edge.model_dump(mode="json"),
            "ancestor_id": self.ancestor_id,
            "child_id": self.child_id,
            "generation": self.generation,
            "relationship": self.relationship,
            "relationship_label": self.relationship_label,
            "lineage": self.lineage,
        }


@dataclass
class AncestorResult:
    """Flat ancestor list plus the same entries grouped by generation."""
    person_id: str
    max_generations: int
    ancestors: list[AncestorEntry] = field(default_factory=list)

    @property
    def generations(self) -> dict[int, list[AncestorEntry]]:
        grouped: dict[int, list[AncestorEntry]] = {}
        for entry in self.ancestors:
            grouped.setdefault(entry.generation, []).append(entry)
        return grouped

    @property
    def max_generation_reached(self) -> int:
        return max((a.generation for a in self.ancestors), default=0)

    @property
    def ancestor_ids(self) -> set[str]:
        return {a.ancestor_id for a in self.ancestors}

    def to_dict(self) -> dict[str, Any]:
        return {
            "person_id": self.person_id,
            "ancestors": [a.to_dict() for a in self.ancestors],
            "generations": {
                str(gen): [a.to_dict() for a in entries]
                for gen, entries in self.generations.items()
            },
            "max_generation_reached": self.max_generation_reached,
        }


@dataclass
class DescendantEntry:
    """One child edge visited during a descendant walk."""
    edge: RelationshipEdge
    descendant_id: str
    parent_id: str
    generation: int  # 1=child, 2=grandchild, etc.
    relationship: str  # "son", "daughter" or "child"

    @property
    def relationship_label(self) -> str:
        return _descendant_label(self.generation)

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.edge.model_dump(mode="json"),
            "descendant_id": self.descendant_id,
            "parent_id": self.parent_id,
            "generation": self.generation,
            "relationship": self.relationship,
            "relationship_label": self.relationship_label,
        }


@dataclass
class DescendantNode:
    """A descendant with its own children nested below it."""
    entry: DescendantEntry
    children: list[DescendantNode] = field(default_factory=list)

    @property
    def person_id(self) -> str:
        return self.entry.descendant_id

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.entry.to_dict(),
            "children": [c.to_dict() for c in self.children],
        }


@dataclass
class DescendantResult:
    """Flat descendant list plus the nested family tree."""
    person_id: str
    max_generations: int
    descendants: list[DescendantEntry] = field(default_factory=list)
    family_tree: list[DescendantNode] = field(default_factory=list)

    @property
    def total_descendants(self) -> int:
        return len(self.descendants)

    @property
    def max_generation_reached(self) -> int:
        return max((d.generation for d in self.descendants), default=0)

    def to_dict(self) -> dict[str, Any]:
        return {
            "person_id": self.person_id,
            "descendants": [d.to_dict() for d in self.descendants],
            "family_tree": [n.to_dict() for n in self.family_tree],
            "total_descendants": self.total_descendants,
            "max_generation_reached": self.max_generation_reached,
        }


# =============================================================================
# Immediate family
# =============================================================================


@dataclass
class FamilyMember:
    """A relative seen from the focal person.

    ``relationship_type`` is the relative's role towards the focal person
    (the relative *is* the focal person's FATHER, WIFE, SON, BROTHER, ...).
    ``edge`` is the stored edge the role was read from; siblings are derived
    through shared parents, so theirs is the parent's edge to the sibling.
    """
    related_person_id: str
    relationship_type: str
    edge: RelationshipEdge
    person: Person | None = None
    shared_parent_ids: list[str] = field(default_factory=list)

    @property
    def birth_date(self) -> date | None:
        return self.person.birth_date if self.person else None

    def to_dict(self) -> dict[str, Any]:
        data = {
            "related_person_id": self.related_person_id,
            "relationship_type": self.relationship_type,
            "relationship": self.edge.model_dump(mode="json"),
            "person": self.person.model_dump(mode="json") if self.person else None,
        }
        if self.shared_parent_ids:
            data["shared_parent_ids"] = list(self.shared_parent_ids)
        return data


@dataclass
class ParentPair:
    father: FamilyMember | None = None
    mother: FamilyMember | None = None

    def members(self) -> list[FamilyMember]:
        return [p for p in (self.father, self.mother) if p is not None]


@dataclass
class ImmediateFamily:
    """Parents, spouse, children and derived siblings of one person."""
    person_id: str
    parents: ParentPair = field(default_factory=ParentPair)
    spouse: FamilyMember | None = None
    children: list[FamilyMember] = field(default_factory=list)
    siblings: list[FamilyMember] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (
            self.parents.members() or self.spouse or self.children or self.siblings
        )

    @property
    def family_size(self) -> int:
        """Focal person plus every relative listed."""
        count = 1 + len(self.parents.members()) + len(self.children) + len(self.siblings)
        if self.spouse:
            count += 1
        return count

    def to_dict(self) -> dict[str, Any]:
        return {
            "person_id": self.person_id,
            "parents": {
                "father": self.parents.father.to_dict() if self.parents.father else None,
                "mother": self.parents.mother.to_dict() if self.parents.mother else None,
            },
            "spouse": self.spouse.to_dict() if self.spouse else None,
            "children": [c.to_dict() for c in self.children],
            "siblings": [s.to_dict() for s in self.siblings],
        }


# =============================================================================
# Kinship degree
# =============================================================================


@dataclass
class DegreeResult:
    """Kinship between two persons via their nearest common ancestor.

    Labels read from person A towards person B: ``AVUNCULAR`` with
    ``generation_a < generation_b`` means A is B's aunt or uncle, and
    ``GRANDPARENT`` means A is B's grandparent.
    """
    person_a_id: str
    person_b_id: str
    degree: str
    description: str
    generation_a: int | None = None
    generation_b: int | None = None
    removal: int | None = None
    common_ancestor_id: str | None = None
    common_ancestor: AncestorEntry | None = None
    common_ancestor_ids: list[str] = field(default_factory=list)

    @property
    def is_related(self) -> bool:
        return self.degree != "UNRELATED"

    @property
    def degree_of_relationship(self) -> int | None:
        """Number of parent/child hops through the common ancestor."""
        if self.degree == "SELF":
            return 0
        if self.generation_a is None or self.generation_b is None:
            return None
        return self.generation_a + self.generation_b

    @property
    def coefficient_of_relationship(self) -> float:
        """Probability of shared alleles through one common ancestor line.

        Full siblings share both parents, so callers wanting r=0.5 for them
        should weigh ``len(common_ancestor_ids)``.
        """
        hops = self.degree_of_relationship
        if hops is None:
            return 0.0
        return 0.5 ** hops

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "person_a_id": self.person_a_id,
            "person_b_id": self.person_b_id,
            "degree": self.degree,
            "description": self.description,
        }
        if self.generation_a is not None:
            data.update(
                generation1=self.generation_a,
                generation2=self.generation_b,
                removal=self.removal,
                common_ancestor_id=self.common_ancestor_id,
                common_ancestor=self.common_ancestor.to_dict() if self.common_ancestor else None,
                common_ancestor_ids=list(self.common_ancestor_ids),
                coefficient_of_relationship=self.coefficient_of_relationship,
            )
        return data


# =============================================================================
# Listing and search
# =============================================================================


@dataclass
class Pagination:
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        if self.limit <= 0:
            return 0
        return -(-self.total // self.limit)

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "page": self.page,
            "limit": self.limit,
            "total_pages": self.total_pages,
            "has_next": self.has_next,
            "has_previous": self.has_previous,
        }


@dataclass
class RelationshipPage:
    """Edges where the person is subject, optionally followed by edges
    where the person is object (the reciprocal read)."""
    person_id: str
    relationships: list[RelationshipEdge]
    reciprocal: list[RelationshipEdge]
    pagination: Pagination

    @property
    def all_relationships(self) -> list[RelationshipEdge]:
        return [*self.relationships, *self.reciprocal]

    @property
    def grouped_relationships(self) -> dict[str, list[RelationshipEdge]]:
        grouped: dict[str, list[RelationshipEdge]] = {}
        for edge in self.all_relationships:
            grouped.setdefault(edge.relationship_type.value, []).append(edge)
        return grouped

    def to_dict(self) -> dict[str, Any]:
        return {
            "relationships": [e.model_dump(mode="json") for e in self.all_relationships],
            "grouped_relationships": {
                rel_type: [e.model_dump(mode="json") for e in edges]
                for rel_type, edges in self.grouped_relationships.items()
            },
            "pagination": self.pagination.to_dict(),
        }


@dataclass
class SearchPage:
    data: list[RelationshipEdge]
    pagination: Pagination

    def to_dict(self) -> dict[str, Any]:
        return {
            "data": [e.model_dump(mode="json") for e in self.data],
            "pagination": self.pagination.to_dict(),
        }


@dataclass
class RelationshipDetails:
    """An edge with both endpoint records and the edge pointing back, if any."""
    relationship: RelationshipEdge
    person: Person | None = None
    related_person: Person | None = None
    reverse_relationship: RelationshipEdge | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.relationship.model_dump(mode="json"),
            "person": self.person.model_dump(mode="json") if self.person else None,
            "related_person": (
                self.related_person.model_dump(mode="json") if self.related_person else None
            ),
            "reciprocal_relationship": (
                self.reverse_relationship.model_dump(mode="json")
                if self.reverse_relationship
                else None
            ),
        }


# =============================================================================
# Bulk operations
# =============================================================================


@dataclass
class BulkError:
    index: int
    item: Any
    error: str
    error_type: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "item": self.item,
            "error": self.error,
            "error_type": self.error_type,
        }


@dataclass
class BulkResult:
    results: list[RelationshipEdge] = field(default_factory=list)
    errors: list[BulkError] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return len(self.results)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success_count": self.success_count,
            "error_count": self.error_count,
            "results": [e.model_dump(mode="json") for e in self.results],
            "errors": [e.to_dict() for e in self.errors],
        }


class ImportOutcome(str, Enum):
    CREATED = "CREATED"
    UPDATED = "UPDATED"
    SKIPPED = "SKIPPED"
    FAILED = "FAILED"


@dataclass
class ImportItemResult:
    index: int
    status: ImportOutcome
    message: str
    relationship: RelationshipEdge | None = None
    item: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "status": self.status.value,
            "message": self.message,
            "relationship": (
                self.relationship.model_dump(mode="json") if self.relationship else None
            ),
        }


@dataclass
class ImportResult:
    """Per-item outcomes, in input order."""
    total: int
    items: list[ImportItemResult] = field(default_factory=list)

    def _count(self, outcome: ImportOutcome) -> int:
        return sum(1 for item in self.items if item.status == outcome)

    @property
    def created(self) -> int:
        return self._count(ImportOutcome.CREATED)

    @property
    def updated(self) -> int:
        return self._count(ImportOutcome.UPDATED)

    @property
    def skipped(self) -> int:
        return self._count(ImportOutcome.SKIPPED)

    @property
    def failed(self) -> int:
        return self._count(ImportOutcome.FAILED)

    @property
    def errors(self) -> list[ImportItemResult]:
        return [i for i in self.items if i.status == ImportOutcome.FAILED]

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "failed": self.failed,
            "results": [i.to_dict() for i in self.items if i.status != ImportOutcome.FAILED],
            "errors": [
                {"index": i.index, "item": i.item, "error": i.message} for i in self.errors
            ],
        }


EXPORT_FIELDS = (
    "person_id",
    "related_person_id",
    "relationship_type",
    "start_date",
    "end_date",
    "is_biological",
    "relationship_status",
    "certainty_level",
    "notes",
)


@dataclass
class ExportResult:
    data: list[dict[str, Any]]
    metadata: dict[str, Any]

    def to_csv(self) -> str:
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=list(EXPORT_FIELDS))
        writer.writeheader()
        for row in self.data:
            writer.writerow({k: "" if row.get(k) is None else row[k] for k in EXPORT_FIELDS})
        return buffer.getvalue()

    def to_dict(self) -> dict[str, Any]:
        return {"data": self.data, "metadata": self.metadata}


# =============================================================================
# Statistics
# =============================================================================


@dataclass
class RelationshipStatistics:
    total_relationships: int = 0
    active_relationships: int = 0
    dissolved_relationships: int = 0
    deceased_relationships: int = 0
    biological_relationships: int = 0
    non_biological_relationships: int = 0
    verified_relationships: int = 0
    unverified_relationships: int = 0
    unique_persons_with_relationships: int = 0
    avg_relationship_duration_days: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return dict(self.__dict__)


@dataclass
class TypeStatistics:
    relationship_type: str
    count: int = 0
    active_count: int = 0
    biological_count: int = 0
    verified_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return dict(self.__dict__)
