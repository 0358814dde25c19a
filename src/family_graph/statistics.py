"""Read-side counts over the live edges of a store."""
from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from .models.relationship import RelationshipStatus
from .models.results import RelationshipStatistics, TypeStatistics

if TYPE_CHECKING:
    from .store.base import RelationshipStore


class StatisticsAggregator:
    """Counts computed on every call; nothing is cached."""

    def __init__(self, store: RelationshipStore) -> None:
        self.store = store

    def summary(self) -> RelationshipStatistics:
        stats = RelationshipStatistics()
        subjects: set[str] = set()
        durations: list[int] = []
        today = datetime.now(UTC).date()

        for edge in self.store.iter_edges():
            stats.total_relationships += 1
            if edge.relationship_status == RelationshipStatus.ACTIVE:
                stats.active_relationships += 1
            elif edge.relationship_status == RelationshipStatus.DISSOLVED:
                stats.dissolved_relationships += 1
            elif edge.relationship_status == RelationshipStatus.DECEASED:
                stats.deceased_relationships += 1

            if edge.is_biological:
                stats.biological_relationships += 1
            else:
                stats.non_biological_relationships += 1

            if edge.is_verified:
                stats.verified_relationships += 1
            else:
                stats.unverified_relationships += 1

            subjects.add(edge.person_id)

            # Open edges are measured to today
            if edge.start_date is not None:
                durations.append(((edge.end_date or today) - edge.start_date).days)

        stats.unique_persons_with_relationships = len(subjects)
        if durations:
            stats.avg_relationship_duration_days = round(sum(durations) / len(durations), 2)
        return stats

    def by_type(self) -> list[TypeStatistics]:
        """Per-type breakdown, most frequent type first."""
        by_type: dict[str, TypeStatistics] = {}
        for edge in self.store.iter_edges():
            key = edge.relationship_type.value
            stats = by_type.setdefault(key, TypeStatistics(relationship_type=key))
            stats.count += 1
            if edge.relationship_status == RelationshipStatus.ACTIVE:
                stats.active_count += 1
            if edge.is_biological:
                stats.biological_count += 1
            if edge.is_verified:
                stats.verified_count += 1

        return sorted(by_type.values(), key=lambda s: (-s.count, s.relationship_type))
