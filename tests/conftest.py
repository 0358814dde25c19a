"""Shared fixtures: small family graphs on the in-memory and SQLite stores."""
from __future__ import annotations

from datetime import date

import pytest

from family_graph.catalog import reciprocal_type
from family_graph.models import Person, RelationshipEdge, RelationshipType
from family_graph.service import RelationshipService
from family_graph.store import InMemoryRelationshipStore, SQLiteRelationshipStore

PERSONS = [
    Person(id="gf", gender="male", birth_date=date(1900, 3, 1), name="Grandfather"),
    Person(id="gm", gender="female", birth_date=date(1905, 6, 1), name="Grandmother"),
    Person(id="dad", gender="male", birth_date=date(1930, 1, 1), name="Father"),
    Person(id="aunt", gender="female", birth_date=date(1932, 1, 1), name="Aunt"),
    Person(id="mom", gender="female", birth_date=date(1935, 1, 1), name="Mother"),
    Person(id="child", gender="male", birth_date=date(1960, 5, 5), name="Child"),
    Person(id="daughter", gender="female", birth_date=date(1962, 7, 7), name="Daughter"),
    Person(id="baby", gender="male", name="Baby"),
    Person(id="cousin", gender="female", birth_date=date(1961, 2, 2), name="Cousin"),
    Person(id="cousin_child", gender="male", birth_date=date(1990, 1, 1)),
    Person(id="outsider", gender="female", birth_date=date(1950, 1, 1)),
]

# Both parent/child encodings are mixed on purpose:
# (P, C, FATHER|MOTHER) and (C, P, SON|DAUGHTER)
FAMILY_EDGES = [
    ("gf", "dad", RelationshipType.FATHER),
    ("gm", "dad", RelationshipType.MOTHER),
    ("aunt", "gf", RelationshipType.DAUGHTER),
    ("aunt", "gm", RelationshipType.DAUGHTER),
    ("dad", "mom", RelationshipType.HUSBAND),
    ("dad", "child", RelationshipType.FATHER),
    ("mom", "child", RelationshipType.MOTHER),
    ("dad", "daughter", RelationshipType.FATHER),
    ("daughter", "mom", RelationshipType.DAUGHTER),
    ("dad", "baby", RelationshipType.FATHER),
    ("aunt", "cousin", RelationshipType.MOTHER),
    ("cousin", "cousin_child", RelationshipType.MOTHER),
]


def make_edge(person_id: str, related_person_id: str, rel_type: RelationshipType, **kwargs) -> RelationshipEdge:
    return RelationshipEdge(
        person_id=person_id,
        related_person_id=related_person_id,
        relationship_type=rel_type,
        reciprocal_relationship_type=reciprocal_type(rel_type),
        **kwargs,
    )


def populate(store, persons=PERSONS, edges=FAMILY_EDGES) -> None:
    for person in persons:
        if isinstance(store, InMemoryRelationshipStore):
            store.add_person(person)
        else:
            store.upsert_person(person)
    for person_id, related_person_id, rel_type in edges:
        store.create(make_edge(person_id, related_person_id, rel_type))


@pytest.fixture
def memory_store():
    """Empty in-memory store with the family persons registered."""
    return InMemoryRelationshipStore(PERSONS)


@pytest.fixture
def family_store():
    """In-memory store holding a three-generation family.

    - gf + gm -> dad, aunt
    - dad + mom -> child, daughter; dad -> baby (no birth date)
    - aunt -> cousin -> cousin_child
    - dad is HUSBAND of mom; outsider has no edges
    """
    store = InMemoryRelationshipStore()
    populate(store)
    return store


@pytest.fixture
def sqlite_store(tmp_path):
    """Empty SQLite store in a temporary directory, persons registered."""
    store = SQLiteRelationshipStore(tmp_path / "graph" / "family.db")
    for person in PERSONS:
        store.upsert_person(person)
    return store


@pytest.fixture
def service(memory_store):
    return RelationshipService(memory_store)


@pytest.fixture
def family_service(family_store):
    return RelationshipService(family_store)
