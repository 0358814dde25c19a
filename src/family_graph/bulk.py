"""Batched create, import with merge policy, and export.

Items are processed sequentially so each outcome is attributed to its
input index. One item's failure never aborts the batch.
"""
from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog

from .catalog import parse_relationship_type
from .exceptions import FamilyGraphError, ValidationError
from .models.results import (
    EXPORT_FIELDS,
    BulkError,
    BulkResult,
    ExportResult,
    ImportItemResult,
    ImportOutcome,
    ImportResult,
)
from .store.base import SearchFilters

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .models.relationship import RelationshipEdge
    from .service import RelationshipService

logger = structlog.get_logger(__name__)

EXPORT_FORMATS = ("json", "csv")

AUTO_VERIFY_NOTE = "Auto-verified during import"


def _require_mapping(item: Any) -> Mapping[str, Any]:
    if not isinstance(item, Mapping):
        raise ValidationError([f"Relationship item must be an object, got {type(item).__name__}"])
    return item


def _echo(item: Any) -> Any:
    return dict(item) if isinstance(item, Mapping) else item


class BulkOperations:
    """Sequences single-edge service operations over many items."""

    def __init__(self, service: RelationshipService) -> None:
        self.service = service

    async def bulk_create(
        self,
        items: Iterable[Mapping[str, Any]],
        created_by: str | None = None,
    ) -> BulkResult:
        result = BulkResult()
        for index, item in enumerate(items):
            try:
                edge = await self.service.create_relationship(_require_mapping(item), created_by)
            except FamilyGraphError as e:
                result.errors.append(
                    BulkError(index=index, item=_echo(item), error=str(e), error_type=type(e).__name__)
                )
                continue
            result.results.append(edge)

        logger.info(
            "bulk_create.done",
            success_count=result.success_count,
            error_count=result.error_count,
        )
        return result

    def _existing(self, item: Mapping[str, Any]) -> RelationshipEdge | None:
        rel_type = parse_relationship_type(item.get("relationship_type"))
        if rel_type is None or not item.get("person_id") or not item.get("related_person_id"):
            return None
        return self.service.store.find_edge(
            str(item["person_id"]), str(item["related_person_id"]), rel_type
        )

    async def _import_one(
        self,
        index: int,
        item: Any,
        user_id: str | None,
        update_existing: bool,
        skip_duplicates: bool,
        verify_all: bool,
    ) -> ImportItemResult:
        item = _require_mapping(item)
        existing = self._existing(item)
        if existing is not None:
            if skip_duplicates:
                return ImportItemResult(
                    index, ImportOutcome.SKIPPED, "Relationship already exists", existing
                )
            if update_existing:
                changes = {
                    k: v
                    for k, v in item.items()
                    if k not in ("person_id", "related_person_id", "relationship_type")
                }
                updated = await self.service.update_relationship(existing.id, changes)
                return ImportItemResult(index, ImportOutcome.UPDATED, "Relationship updated", updated)

        # Without a merge policy a duplicate falls through to create and fails there
        edge = await self.service.create_relationship(item, user_id)
        if not verify_all:
            return ImportItemResult(index, ImportOutcome.CREATED, "Relationship created", edge)

        # The edge is persisted; a failed verify leaves it created but unverified
        try:
            edge = await self.service.verify(edge.id, user_id or "import", AUTO_VERIFY_NOTE)
        except FamilyGraphError as e:
            logger.warning("import.verify_failed", index=index, relationship_id=edge.id, error=str(e))
            return ImportItemResult(
                index, ImportOutcome.CREATED, f"Relationship created; verification failed: {e}", edge
            )
        return ImportItemResult(index, ImportOutcome.CREATED, "Relationship created", edge)

    async def import_relationships(
        self,
        items: Iterable[Mapping[str, Any]],
        user_id: str | None = None,
        update_existing: bool = False,
        skip_duplicates: bool = True,
        verify_all: bool = False,
    ) -> ImportResult:
        """Import edges, merging with existing live triples.

        Args:
            items: Edge records
            user_id: Recorded as creator and, with ``verify_all``, verifier
            update_existing: Update an existing triple in place
            skip_duplicates: Leave an existing triple untouched; checked first
            verify_all: Verify every newly created edge
        """
        items = list(items)
        result = ImportResult(total=len(items))

        for index, item in enumerate(items):
            try:
                outcome = await self._import_one(
                    index, item, user_id, update_existing, skip_duplicates, verify_all
                )
            except FamilyGraphError as e:
                logger.warning("import.item_failed", index=index, error=str(e))
                outcome = ImportItemResult(
                    index, ImportOutcome.FAILED, str(e), item=_echo(item)
                )
            result.items.append(outcome)

        logger.info(
            "import.done",
            total=result.total,
            created=result.created,
            updated=result.updated,
            skipped=result.skipped,
            failed=result.failed,
        )
        return result

    async def export(
        self,
        filters: SearchFilters | Mapping[str, Any] | None = None,
        format: str = "json",
    ) -> ExportResult:
        """Flat records without audit fields, plus export metadata."""
        if format not in EXPORT_FORMATS:
            raise ValidationError([f"Invalid export format. Must be one of: {', '.join(EXPORT_FORMATS)}"])

        if not isinstance(filters, SearchFilters):
            try:
                filters = SearchFilters.from_mapping(filters)
            except ValueError as e:
                raise ValidationError([f"Invalid search filter: {e}"]) from e

        rows, _ = self.service.store.search(filters, limit=self.service.config.export_limit)

        data = []
        for edge in rows:
            dumped = edge.model_dump(mode="json")
            data.append({k: dumped[k] for k in EXPORT_FIELDS})

        logger.info("export.done", records=len(data), format=format)
        return ExportResult(
            data=data,
            metadata={
                "export_date": datetime.now(UTC).isoformat(),
                "total_records": len(data),
                "format": format,
            },
        )
