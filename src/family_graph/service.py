"""Relationship service: the operations exposed to the API layer.

Every write is gated by ``RelationshipValidator``, then checked against
the person directory and the store before it is persisted. Reads compose
``TraversalEngine`` and ``DegreeCalculator`` results. No authorization is
performed here.
"""
from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import structlog

from .bulk import BulkOperations
from .catalog import parse_relationship_type, reciprocal_type
from .config import CONFIG, EngineConfig
from .degree import DegreeCalculator
from .exceptions import ConflictError, NotFoundError, ValidationError
from .models.relationship import (
    CERTAINTY_RANK,
    CertaintyLevel,
    RelationshipEdge,
    RelationshipStatus,
    RelationshipType,
    append_note,
    closing_date,
    stamp_note,
)
from .models.results import (
    Pagination,
    RelationshipDetails,
    RelationshipPage,
    SearchPage,
)
from .statistics import StatisticsAggregator
from .store.base import EdgeQuery, PersonDirectory, SearchFilters
from .traversal import TraversalEngine
from .validation import RelationshipValidator, coerce_date

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .models.results import (
        AncestorResult,
        BulkResult,
        DegreeResult,
        DescendantResult,
        ExportResult,
        ImmediateFamily,
        ImportResult,
        RelationshipStatistics,
        TypeStatistics,
    )
    from .store.base import RelationshipStore

logger = structlog.get_logger(__name__)

# Fields a caller may change through update_relationship
UPDATABLE_FIELDS = frozenset({
    "person_id",
    "related_person_id",
    "relationship_type",
    "relationship_status",
    "certainty_level",
    "is_biological",
    "start_date",
    "end_date",
    "notes",
})

IMMUTABLE_FIELDS = frozenset({
    "id",
    "reciprocal_relationship_type",
    "verified_by",
    "verified_at",
    "created_by",
    "created_at",
    "updated_at",
    "deleted_at",
})


def _bool(value: Any, default: bool = True) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "y")
    return bool(value)


class RelationshipService:
    """Facade over the relationship graph engine.

    Args:
        store: Edge storage
        persons: Person directory; defaults to the store when it is one
        config: Engine settings
    """

    def __init__(
        self,
        store: RelationshipStore,
        persons: PersonDirectory | None = None,
        config: EngineConfig = CONFIG,
    ) -> None:
        self.store = store
        if persons is None and isinstance(store, PersonDirectory):
            persons = store
        self.persons = persons
        self.config = config

        self.validator = RelationshipValidator()
        self.traversal = TraversalEngine(store, persons)
        self.degree = DegreeCalculator(self.traversal, config.degree_generations)
        self.bulk = BulkOperations(self)
        self.statistics = StatisticsAggregator(store)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _person_exists(self, person_id: str) -> bool:
        if self.persons is None or self.persons is self.store:
            return self.store.exists(person_id)
        return self.persons.get_person(person_id) is not None

    def _require_persons(self, *person_ids: str) -> None:
        for person_id in person_ids:
            if not self._person_exists(person_id):
                raise NotFoundError("Person", person_id)

    def _require_edge(self, relationship_id: str) -> RelationshipEdge:
        edge = self.store.get(relationship_id)
        if edge is None:
            raise NotFoundError("Relationship", relationship_id)
        return edge

    def _page_args(self, page: int, limit: int | None) -> tuple[int, int]:
        limit = limit or self.config.page_size
        limit = max(1, min(limit, self.config.max_page_size))
        return max(1, page), limit

    # =========================================================================
    # Single-edge writes
    # =========================================================================

    async def create_relationship(
        self,
        data: Mapping[str, Any],
        created_by: str | None = None,
    ) -> RelationshipEdge:
        """Validate and persist a new edge.

        Raises:
            ValidationError: on any rule violation, all reported together
            NotFoundError: if either person is unknown
            ConflictError: if a live edge with the same triple exists
        """
        errors = self.validator.validate(data)
        if errors:
            raise ValidationError(errors)

        person_id = str(data["person_id"])
        related_person_id = str(data["related_person_id"])
        relationship_type = RelationshipType(data["relationship_type"])
        self._require_persons(person_id, related_person_id)

        existing = self.store.find_edge(person_id, related_person_id, relationship_type)
        if existing is not None:
            raise ConflictError("This relationship already exists", existing_id=existing.id)

        status = RelationshipStatus(data.get("relationship_status") or RelationshipStatus.ACTIVE)
        start_date = coerce_date(data.get("start_date"))
        end_date = coerce_date(data.get("end_date"))
        if status.is_terminal and end_date is None:
            end_date = closing_date(start_date)

        edge = RelationshipEdge(
            person_id=person_id,
            related_person_id=related_person_id,
            relationship_type=relationship_type,
            reciprocal_relationship_type=reciprocal_type(relationship_type),
            relationship_status=status,
            certainty_level=CertaintyLevel(data.get("certainty_level") or CertaintyLevel.CONFIRMED),
            is_biological=_bool(data.get("is_biological"), default=True),
            start_date=start_date,
            end_date=end_date,
            created_by=created_by,
            notes=stamp_note(data["notes"]) if data.get("notes") else None,
        )
        edge = self.store.create(edge)

        logger.info(
            "relationship.created",
            relationship_id=edge.id,
            person_id=person_id,
            related_person_id=related_person_id,
            relationship_type=relationship_type.value,
        )
        return edge

    async def update_relationship(
        self,
        relationship_id: str,
        changes: Mapping[str, Any],
    ) -> RelationshipEdge:
        """Apply a partial update.

        A new ``notes`` value is appended to the trail, never written over
        it. Changing the type recomputes the reciprocal.
        """
        immutable = sorted(IMMUTABLE_FIELDS.intersection(changes))
        unknown = sorted(set(changes) - UPDATABLE_FIELDS - IMMUTABLE_FIELDS)
        if immutable or unknown:
            raise ValidationError(
                [f"Field '{f}' cannot be updated" for f in immutable]
                + [f"Unknown field '{f}'" for f in unknown]
            )

        edge = self._require_edge(relationship_id)
        merged = {**edge.model_dump(), **dict(changes)}
        errors = self.validator.validate(merged, is_update=True)
        if errors:
            raise ValidationError(errors)

        update: dict[str, Any] = {}
        for field_name in ("person_id", "related_person_id"):
            if field_name in changes and str(changes[field_name]) != getattr(edge, field_name):
                update[field_name] = str(changes[field_name])
                self._require_persons(update[field_name])

        if "relationship_type" in changes:
            rel_type = RelationshipType(changes["relationship_type"])
            update["relationship_type"] = rel_type
            update["reciprocal_relationship_type"] = reciprocal_type(rel_type)
        if changes.get("relationship_status"):
            update["relationship_status"] = RelationshipStatus(changes["relationship_status"])
        if changes.get("certainty_level"):
            update["certainty_level"] = CertaintyLevel(changes["certainty_level"])
        if "is_biological" in changes:
            update["is_biological"] = _bool(changes["is_biological"])
        for field_name in ("start_date", "end_date"):
            if field_name in changes:
                update[field_name] = coerce_date(changes[field_name])
        if changes.get("notes"):
            update["notes"] = append_note(edge.notes, str(changes["notes"]))

        status = update.get("relationship_status", edge.relationship_status)
        if status.is_terminal and update.get("end_date", edge.end_date) is None:
            update["end_date"] = closing_date(update.get("start_date", edge.start_date))

        triple = (
            update.get("person_id", edge.person_id),
            update.get("related_person_id", edge.related_person_id),
            update.get("relationship_type", edge.relationship_type),
        )
        if triple != (edge.person_id, edge.related_person_id, edge.relationship_type):
            holder = self.store.find_edge(*triple)
            if holder is not None and holder.id != relationship_id:
                raise ConflictError("This relationship already exists", existing_id=holder.id)

        updated = self.store.update(relationship_id, update)
        logger.info("relationship.updated", relationship_id=relationship_id, fields=sorted(update))
        return updated

    async def delete_relationship(self, relationship_id: str) -> bool:
        """Soft-delete an edge. Deleting twice is not an error.

        Returns:
            False when the edge was already deleted
        """
        deleted = self.store.soft_delete(relationship_id)
        logger.info("relationship.deleted", relationship_id=relationship_id, changed=deleted)
        return deleted

    async def update_status(
        self,
        relationship_id: str,
        status: RelationshipStatus | str,
        reason: str | None = None,
        end_date: Any = None,
    ) -> RelationshipEdge:
        """Move an edge to a new status; DISSOLVED and DECEASED set an end date."""
        errors = self.validator.validate(
            {"relationship_status": status, "end_date": end_date}, is_update=True
        )
        if not status:
            errors.insert(0, "Relationship status is required")
        if errors:
            raise ValidationError(errors)

        status = RelationshipStatus(status)
        end_date = coerce_date(end_date)
        current = self._require_edge(relationship_id)
        if end_date is not None and current.start_date and end_date < current.start_date:
            raise ValidationError(["Start date cannot be after end date"])

        edge = self.store.update_status(relationship_id, status, end_date)
        if reason:
            edge = self.store.append_note(relationship_id, reason)

        logger.info("relationship.status_changed", relationship_id=relationship_id, status=status.value)
        return edge

    async def verify(
        self,
        relationship_id: str,
        verifier_id: str,
        notes: str | None = None,
    ) -> RelationshipEdge:
        """Mark an edge verified; certainty becomes CONFIRMED.

        Raises:
            ConflictError: if the edge was already verified
        """
        edge = self.store.set_verified(relationship_id, verifier_id)
        if notes:
            edge = self.store.append_note(relationship_id, notes)

        logger.info("relationship.verified", relationship_id=relationship_id, verifier_id=verifier_id)
        return edge

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_relationship(self, relationship_id: str) -> RelationshipDetails:
        """An edge, both endpoint persons and the edge pointing back, if any."""
        edge = self._require_edge(relationship_id)
        reverse = next(
            (
                e
                for e in self.store.query_by(edge.related_person_id)
                if e.related_person_id == edge.person_id
            ),
            None,
        )
        persons = self.persons.get_persons([edge.person_id, edge.related_person_id]) if self.persons else {}
        return RelationshipDetails(
            relationship=edge,
            person=persons.get(edge.person_id),
            related_person=persons.get(edge.related_person_id),
            reverse_relationship=reverse,
        )

    async def get_person_relationships(
        self,
        person_id: str,
        relationship_type: RelationshipType | str | None = None,
        active_only: bool = True,
        include_reciprocal: bool = True,
        page: int = 1,
        limit: int | None = None,
    ) -> RelationshipPage:
        """Edges where the person is subject, paged.

        With ``include_reciprocal`` a second read returns the edges where the
        person is the object, under the same filters. Nothing is written.
        """
        types: list[RelationshipType] = []
        if relationship_type:
            parsed = parse_relationship_type(relationship_type)
            if parsed is None:
                raise ValidationError([f"Invalid relationship type: {relationship_type}"])
            types.append(parsed)

        page, limit = self._page_args(page, limit)
        query = EdgeQuery(
            relationship_types=types,
            active_only=active_only,
            limit=limit,
            offset=(page - 1) * limit,
        )
        relationships = self.store.query_by(person_id, query)
        total = self.store.count_by(person_id, query)
        reciprocal = (
            self.store.query_reciprocal(person_id, query.unpaged()) if include_reciprocal else []
        )
        return RelationshipPage(
            person_id=person_id,
            relationships=relationships,
            reciprocal=reciprocal,
            pagination=Pagination(total=total, page=page, limit=limit),
        )

    async def search_relationships(
        self,
        filters: SearchFilters | Mapping[str, Any] | None = None,
        page: int = 1,
        limit: int | None = None,
    ) -> SearchPage:
        if not isinstance(filters, SearchFilters):
            try:
                filters = SearchFilters.from_mapping(filters)
            except ValueError as e:
                raise ValidationError([f"Invalid search filter: {e}"]) from e

        page, limit = self._page_args(page, limit)
        rows, total = self.store.search(filters, limit=limit, offset=(page - 1) * limit)
        return SearchPage(data=rows, pagination=Pagination(total=total, page=page, limit=limit))

    async def find_relationship_between(
        self,
        person_a_id: str,
        person_b_id: str,
    ) -> RelationshipEdge | None:
        """The most certain live edge between two persons, in either direction.

        Equal certainty goes to the newest edge.
        """
        edges = [e for e in self.store.query_by(person_a_id) if e.related_person_id == person_b_id]
        edges += [e for e in self.store.query_by(person_b_id) if e.related_person_id == person_a_id]
        if not edges:
            return None
        edges.sort(key=lambda e: e.created_at, reverse=True)
        edges.sort(key=lambda e: CERTAINTY_RANK[e.certainty_level])
        return edges[0]

    async def get_immediate_family(self, person_id: str) -> ImmediateFamily:
        return await self.traversal.get_immediate_family(person_id)

    async def get_ancestors(
        self, person_id: str, max_generations: int | None = None
    ) -> AncestorResult:
        if max_generations is None:
            max_generations = self.config.ancestor_generations
        return await self.traversal.get_ancestors(person_id, max_generations)

    async def get_descendants(
        self, person_id: str, max_generations: int | None = None
    ) -> DescendantResult:
        if max_generations is None:
            max_generations = self.config.descendant_generations
        return await self.traversal.get_descendants(person_id, max_generations)

    async def calculate_degree(self, person_a_id: str, person_b_id: str) -> DegreeResult:
        return await self.degree.calculate_degree(person_a_id, person_b_id)

    # =========================================================================
    # Bulk and statistics
    # =========================================================================

    async def bulk_create(
        self,
        items: Iterable[Mapping[str, Any]],
        created_by: str | None = None,
    ) -> BulkResult:
        return await self.bulk.bulk_create(items, created_by)

    async def import_relationships(
        self,
        items: Iterable[Mapping[str, Any]],
        user_id: str | None = None,
        update_existing: bool = False,
        skip_duplicates: bool = True,
        verify_all: bool = False,
    ) -> ImportResult:
        return await self.bulk.import_relationships(
            items,
            user_id,
            update_existing=update_existing,
            skip_duplicates=skip_duplicates,
            verify_all=verify_all,
        )

    async def export_relationships(
        self,
        filters: SearchFilters | Mapping[str, Any] | None = None,
        format: str = "json",
    ) -> ExportResult:
        return await self.bulk.export(filters, format)

    async def get_statistics(self) -> RelationshipStatistics:
        return self.statistics.summary()

    async def get_type_statistics(self) -> list[TypeStatistics]:
        return self.statistics.by_type()
