"""In-memory relationship store for tests and embedded use."""
from __future__ import annotations

import threading
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from ..exceptions import ConflictError, NotFoundError
from ..models.person import Person
from ..models.relationship import RelationshipEdge, RelationshipType
from .base import EdgeQuery, PersonDirectory, RelationshipStore, SearchFilters

if TYPE_CHECKING:
    from collections.abc import Iterator


class InMemoryRelationshipStore(RelationshipStore, PersonDirectory):
    """Dict-backed store that also serves as the person directory.

    Edges are kept in insertion order. A lock makes the duplicate check and
    the insert atomic, so the live-triple constraint holds under threads.
    """

    def __init__(self, persons: Iterable[Person] | None = None) -> None:
        self._persons: dict[str, Person] = {}
        self._edges: dict[str, RelationshipEdge] = {}
        self._live_triples: dict[tuple[str, str, str], str] = {}  # triple -> edge_id
        self._lock = threading.RLock()

        for person in persons or []:
            self.add_person(person)

    # --------------------------- Persons ---------------------------

    def add_person(self, person: Person) -> Person:
        self._persons[person.id] = person
        return person

    def get_person(self, person_id: str) -> Person | None:
        return self._persons.get(person_id)

    def exists(self, person_id: str) -> bool:
        return person_id in self._persons

    # ---------------------------- Edges ----------------------------

    def get(self, edge_id: str, include_deleted: bool = False) -> RelationshipEdge | None:
        edge = self._edges.get(edge_id)
        if edge is None or (edge.is_deleted and not include_deleted):
            return None
        return edge

    def find_edge(
        self,
        person_id: str,
        related_person_id: str,
        relationship_type: RelationshipType,
    ) -> RelationshipEdge | None:
        key = (person_id, related_person_id, RelationshipType(relationship_type).value)
        edge_id = self._live_triples.get(key)
        return self._edges.get(edge_id) if edge_id else None

    def create(self, edge: RelationshipEdge) -> RelationshipEdge:
        with self._lock:
            existing = self._live_triples.get(edge.triple())
            if existing is not None:
                raise ConflictError("This relationship already exists", existing_id=existing)
            self._edges[edge.id] = edge
            self._live_triples[edge.triple()] = edge.id
        return edge

    def update(self, edge_id: str, changes: Mapping[str, Any]) -> RelationshipEdge:
        with self._lock:
            edge = self.get(edge_id)
            if edge is None:
                raise NotFoundError("Relationship", edge_id)

            updated = RelationshipEdge.model_validate(
                {**edge.model_dump(), **dict(changes), "updated_at": datetime.now(UTC)}
            )
            if updated.triple() != edge.triple():
                holder = self._live_triples.get(updated.triple())
                if holder is not None and holder != edge_id:
                    raise ConflictError("This relationship already exists", existing_id=holder)
                del self._live_triples[edge.triple()]
                self._live_triples[updated.triple()] = edge_id

            self._edges[edge_id] = updated
            return updated

    def soft_delete(self, edge_id: str) -> bool:
        with self._lock:
            edge = self._edges.get(edge_id)
            if edge is None:
                raise NotFoundError("Relationship", edge_id)
            if edge.is_deleted:
                return False

            now = datetime.now(UTC)
            self._edges[edge_id] = edge.model_copy(update={"deleted_at": now, "updated_at": now})
            self._live_triples.pop(edge.triple(), None)
            return True

    def query_by(self, person_id: str, query: EdgeQuery | None = None) -> list[RelationshipEdge]:
        query = query or EdgeQuery()
        matches = [
            e for e in self.iter_edges() if e.person_id == person_id and query.matches(e)
        ]
        return self._page(matches, query)

    def count_by(self, person_id: str, query: EdgeQuery | None = None) -> int:
        return len(self.query_by(person_id, (query or EdgeQuery()).unpaged()))

    def query_reciprocal(
        self, person_id: str, query: EdgeQuery | None = None
    ) -> list[RelationshipEdge]:
        query = query or EdgeQuery()
        matches = [
            e for e in self.iter_edges() if e.related_person_id == person_id and query.matches(e)
        ]
        return self._page(matches, query)

    def search(
        self,
        filters: SearchFilters,
        limit: int | None = None,
        offset: int = 0,
    ) -> tuple[list[RelationshipEdge], int]:
        matches = [e for e in self.iter_edges() if filters.matches(e)]
        matches.sort(key=lambda e: (e.created_at, e.id), reverse=True)
        end = None if limit is None else offset + limit
        return matches[offset:end], len(matches)

    def iter_edges(self) -> Iterator[RelationshipEdge]:
        for edge in list(self._edges.values()):
            if not edge.is_deleted:
                yield edge

    @staticmethod
    def _page(edges: list[RelationshipEdge], query: EdgeQuery) -> list[RelationshipEdge]:
        end = None if query.limit is None else query.offset + query.limit
        return edges[query.offset:end]
