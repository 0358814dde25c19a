"""Tests for the in-memory and SQLite relationship stores.

Both backends must satisfy the same contract, so most tests run on each.
"""
from __future__ import annotations

import sqlite3
from datetime import date

import pytest

from conftest import PERSONS, make_edge
from family_graph.exceptions import ConflictError, NotFoundError, StoreError
from family_graph.models import (
    CertaintyLevel,
    Person,
    RelationshipStatus,
    RelationshipType,
)
from family_graph.store import (
    EdgeQuery,
    InMemoryRelationshipStore,
    SQLiteRelationshipStore,
    SearchFilters,
)


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "memory":
        return InMemoryRelationshipStore(PERSONS)
    store = SQLiteRelationshipStore(tmp_path / "store.db")
    for person in PERSONS:
        store.upsert_person(person)
    return store


class TestPersons:
    """Tests for the person directory side of the stores."""

    def test_exists(self, store):
        assert store.exists("dad")
        assert not store.exists("nobody")

    def test_get_person(self, store):
        person = store.get_person("gf")
        assert person is not None
        assert person.birth_date == date(1900, 3, 1)
        assert person.is_male

    def test_get_persons_skips_unknown(self, store):
        found = store.get_persons(["dad", "nobody", "mom"])
        assert set(found) == {"dad", "mom"}


class TestEdgeWrites:
    """Tests for create, update and soft delete."""

    def test_create_and_get(self, store):
        edge = store.create(make_edge("dad", "child", RelationshipType.FATHER))
        loaded = store.get(edge.id)

        assert loaded is not None
        assert loaded.id == edge.id
        assert loaded.relationship_type == RelationshipType.FATHER
        assert loaded.reciprocal_relationship_type == "SON"
        assert loaded.relationship_status == RelationshipStatus.ACTIVE
        assert loaded.is_biological is True

    def test_duplicate_triple_conflicts(self, store):
        store.create(make_edge("dad", "child", RelationshipType.FATHER))
        with pytest.raises(ConflictError):
            store.create(make_edge("dad", "child", RelationshipType.FATHER))

    def test_same_pair_different_type_allowed(self, store):
        store.create(make_edge("dad", "child", RelationshipType.FATHER))
        store.create(make_edge("dad", "child", RelationshipType.STEP_FATHER))
        assert len(store.query_by("dad")) == 2

    def test_find_edge(self, store):
        edge = store.create(make_edge("child", "daughter", RelationshipType.BROTHER))
        assert store.find_edge("child", "daughter", RelationshipType.BROTHER).id == edge.id
        assert store.find_edge("daughter", "child", RelationshipType.BROTHER) is None

    def test_update(self, store):
        edge = store.create(make_edge("dad", "child", RelationshipType.FATHER))
        updated = store.update(edge.id, {"certainty_level": CertaintyLevel.LIKELY})

        assert updated.certainty_level == CertaintyLevel.LIKELY
        assert updated.updated_at >= edge.updated_at
        assert store.get(edge.id).certainty_level == CertaintyLevel.LIKELY

    def test_update_unknown_edge(self, store):
        with pytest.raises(NotFoundError):
            store.update("missing", {"notes": "x"})

    def test_soft_delete_is_idempotent(self, store):
        edge = store.create(make_edge("dad", "child", RelationshipType.FATHER))

        assert store.soft_delete(edge.id) is True
        assert store.soft_delete(edge.id) is False

        assert store.get(edge.id) is None
        assert store.get(edge.id, include_deleted=True).is_deleted
        assert store.query_by("dad") == []
        assert store.query_reciprocal("child") == []
        assert list(store.iter_edges()) == []

    def test_soft_delete_unknown_edge(self, store):
        with pytest.raises(NotFoundError):
            store.soft_delete("missing")

    def test_triple_reusable_after_delete(self, store):
        edge = store.create(make_edge("dad", "child", RelationshipType.FATHER))
        store.soft_delete(edge.id)

        again = store.create(make_edge("dad", "child", RelationshipType.FATHER))
        assert again.id != edge.id
        assert store.find_edge("dad", "child", RelationshipType.FATHER).id == again.id


class TestDerivedOperations:
    """Tests for status, verification and note helpers on the base store."""

    def test_terminal_status_sets_end_date(self, store):
        edge = store.create(make_edge("dad", "mom", RelationshipType.HUSBAND))
        updated = store.update_status(edge.id, RelationshipStatus.DISSOLVED)

        assert updated.relationship_status == RelationshipStatus.DISSOLVED
        assert updated.end_date is not None

    def test_terminal_status_keeps_given_end_date(self, store):
        edge = store.create(make_edge("dad", "mom", RelationshipType.HUSBAND))
        updated = store.update_status(edge.id, RelationshipStatus.DECEASED, date(1999, 9, 9))
        assert updated.end_date == date(1999, 9, 9)

    def test_set_verified_once(self, store):
        edge = store.create(
            make_edge("dad", "child", RelationshipType.FATHER, certainty_level=CertaintyLevel.POSSIBLE)
        )
        verified = store.set_verified(edge.id, "reviewer")

        assert verified.verified_by == "reviewer"
        assert verified.verified_at is not None
        assert verified.certainty_level == CertaintyLevel.CONFIRMED

        with pytest.raises(ConflictError):
            store.set_verified(edge.id, "someone-else")
        assert store.get(edge.id).verified_by == "reviewer"

    def test_append_note(self, store):
        edge = store.create(make_edge("dad", "child", RelationshipType.FATHER))
        store.append_note(edge.id, "first")
        updated = store.append_note(edge.id, "second")

        lines = updated.notes.split("\n")
        assert len(lines) == 2
        assert lines[0].endswith(": first")
        assert lines[1].endswith(": second")


class TestEdgeQueries:
    """Tests for directional queries and search."""

    @pytest.fixture
    def populated(self, store):
        store.create(make_edge("dad", "child", RelationshipType.FATHER))
        store.create(make_edge("dad", "daughter", RelationshipType.FATHER))
        store.create(
            make_edge(
                "dad",
                "mom",
                RelationshipType.HUSBAND,
                relationship_status=RelationshipStatus.DISSOLVED,
                end_date=date(1980, 1, 1),
                start_date=date(1958, 6, 1),
            )
        )
        store.create(
            make_edge("mom", "child", RelationshipType.MOTHER, is_biological=False, verified_by="x")
        )
        return store

    def test_query_by(self, populated):
        edges = populated.query_by("dad")
        assert [e.related_person_id for e in edges] == ["child", "daughter", "mom"]

    def test_query_by_type_and_active(self, populated):
        query = EdgeQuery(relationship_types=[RelationshipType.HUSBAND], active_only=True)
        assert populated.query_by("dad", query) == []

        query = EdgeQuery(relationship_types=[RelationshipType.HUSBAND])
        assert len(populated.query_by("dad", query)) == 1

    def test_query_by_pagination(self, populated):
        page = populated.query_by("dad", EdgeQuery(limit=2, offset=1))
        assert [e.related_person_id for e in page] == ["daughter", "mom"]
        assert populated.count_by("dad", EdgeQuery(limit=1)) == 3

    def test_query_reciprocal(self, populated):
        edges = populated.query_reciprocal("child")
        assert {e.person_id for e in edges} == {"dad", "mom"}

    def test_search_by_person_either_side(self, populated):
        rows, total = populated.search(SearchFilters(person_id="mom"))
        assert total == 2
        assert {e.relationship_type for e in rows} == {
            RelationshipType.HUSBAND,
            RelationshipType.MOTHER,
        }

    def test_search_filters(self, populated):
        _, total = populated.search(SearchFilters(is_biological=False))
        assert total == 1

        _, total = populated.search(SearchFilters(verified=True))
        assert total == 1

        _, total = populated.search(SearchFilters(relationship_status=RelationshipStatus.DISSOLVED))
        assert total == 1

        _, total = populated.search(SearchFilters(start_date_from=date(1950, 1, 1)))
        assert total == 1

    def test_search_paging_reports_total(self, populated):
        rows, total = populated.search(SearchFilters(), limit=2, offset=0)
        assert total == 4
        assert len(rows) == 2

    def test_iter_edges(self, populated):
        assert len(list(populated.iter_edges())) == 4


class TestSearchFilters:
    """Tests for SearchFilters parsing."""

    def test_from_mapping(self):
        filters = SearchFilters.from_mapping(
            {
                "person_id": "dad",
                "relationship_type": "FATHER",
                "is_biological": "false",
                "verified": "true",
                "start_date_from": "1950-01-01",
                "certainty_level": "",
            }
        )
        assert filters.person_id == "dad"
        assert filters.relationship_type == RelationshipType.FATHER
        assert filters.is_biological is False
        assert filters.verified is True
        assert filters.start_date_from == date(1950, 1, 1)
        assert filters.certainty_level is None

    def test_from_mapping_rejects_bad_enum(self):
        with pytest.raises(ValueError):
            SearchFilters.from_mapping({"relationship_type": "GODFATHER"})


class TestSQLiteStore:
    """Tests specific to the SQLite backend."""

    def test_unique_index_is_authoritative(self, sqlite_store):
        """A duplicate that skips the pre-check still hits the index."""
        sqlite_store.create(make_edge("dad", "child", RelationshipType.FATHER))
        with pytest.raises(ConflictError):
            sqlite_store.create(make_edge("dad", "child", RelationshipType.FATHER))

    def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "persist.db"
        first = SQLiteRelationshipStore(path)
        first.upsert_person(Person(id="a"))
        edge = first.create(make_edge("a", "b", RelationshipType.SISTER))

        second = SQLiteRelationshipStore(path)
        assert second.exists("a")
        assert second.get(edge.id).relationship_type == RelationshipType.SISTER

    def test_upsert_person_updates(self, sqlite_store):
        sqlite_store.upsert_person(Person(id="dad", gender="male", name="Renamed"))
        assert sqlite_store.get_person("dad").name == "Renamed"

    def test_backend_errors_are_wrapped(self, sqlite_store, monkeypatch):
        def broken_connect(*args, **kwargs):
            raise sqlite3.OperationalError("disk I/O error")

        monkeypatch.setattr(sqlite3, "connect", broken_connect)
        with pytest.raises(StoreError) as exc_info:
            sqlite_store.get("anything")
        assert exc_info.value.operation == "get"
        assert exc_info.value.http_status == 500
