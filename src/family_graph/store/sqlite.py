"""SQLite relationship store and person directory."""
from __future__ import annotations

import sqlite3
from collections.abc import Mapping
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

from ..exceptions import ConflictError, NotFoundError, StoreError
from ..models.person import Person
from ..models.relationship import RelationshipEdge, RelationshipType
from .base import EdgeQuery, PersonDirectory, RelationshipStore, SearchFilters

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = structlog.get_logger(__name__)

EDGE_COLUMNS = (
    "id",
    "person_id",
    "related_person_id",
    "relationship_type",
    "reciprocal_relationship_type",
    "relationship_status",
    "certainty_level",
    "is_biological",
    "start_date",
    "end_date",
    "verified_by",
    "verified_at",
    "created_by",
    "created_at",
    "updated_at",
    "deleted_at",
    "notes",
)


class SQLiteRelationshipStore(RelationshipStore, PersonDirectory):
    """SQLite-backed edge storage with a co-located persons table.

    The partial unique index on the live triple is the authoritative
    duplicate guard; the engine's pre-check only avoids a round trip.
    """

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    @contextmanager
    def _get_conn(self):
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        # Enforce PRAGMAs per-connection
        conn.execute("PRAGMA foreign_keys=ON;")
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("PRAGMA busy_timeout=5000;")
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def _op(self, operation: str):
        """Run a store operation, translating backend errors."""
        try:
            with self._get_conn() as conn:
                yield conn
        except sqlite3.IntegrityError as e:
            logger.warning("store.integrity_error", operation=operation, error=str(e))
            raise ConflictError("This relationship already exists") from e
        except sqlite3.Error as e:
            logger.error("store.error", operation=operation, error=str(e))
            raise StoreError(operation, str(e)) from e

    def _init_schema(self) -> None:
        with self._op("init_schema") as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS persons (
                    id TEXT PRIMARY KEY,
                    gender TEXT,
                    birth_date TEXT,
                    is_alive INTEGER NOT NULL DEFAULT 1,
                    name TEXT
                );

                CREATE TABLE IF NOT EXISTS family_relationships (
                    id TEXT PRIMARY KEY,
                    person_id TEXT NOT NULL,
                    related_person_id TEXT NOT NULL,
                    relationship_type TEXT NOT NULL,
                    reciprocal_relationship_type TEXT NOT NULL,
                    relationship_status TEXT NOT NULL DEFAULT 'ACTIVE',
                    certainty_level TEXT NOT NULL DEFAULT 'CONFIRMED',
                    is_biological INTEGER NOT NULL DEFAULT 1,
                    start_date TEXT,
                    end_date TEXT,
                    verified_by TEXT,
                    verified_at TEXT,
                    created_by TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    deleted_at TEXT,
                    notes TEXT,
                    CHECK (person_id != related_person_id)
                );

                CREATE UNIQUE INDEX IF NOT EXISTS uq_relationships_live_triple
                    ON family_relationships(person_id, related_person_id, relationship_type)
                    WHERE deleted_at IS NULL;
                CREATE INDEX IF NOT EXISTS idx_relationships_person ON family_relationships(person_id);
                CREATE INDEX IF NOT EXISTS idx_relationships_related ON family_relationships(related_person_id);
                CREATE INDEX IF NOT EXISTS idx_relationships_type ON family_relationships(relationship_type);
                """
            )
            conn.commit()

    # --------------------------- Persons ---------------------------

    def upsert_person(self, person: Person) -> Person:
        with self._op("upsert_person") as conn:
            conn.execute(
                """
                INSERT INTO persons (id, gender, birth_date, is_alive, name)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    gender = excluded.gender,
                    birth_date = excluded.birth_date,
                    is_alive = excluded.is_alive,
                    name = excluded.name
                """,
                (
                    person.id,
                    person.gender,
                    person.birth_date.isoformat() if person.birth_date else None,
                    int(person.is_alive),
                    person.name,
                ),
            )
            conn.commit()
        return person

    def get_person(self, person_id: str) -> Person | None:
        with self._op("get_person") as conn:
            row = conn.execute("SELECT * FROM persons WHERE id = ?", (person_id,)).fetchone()
        return Person.model_validate(dict(row)) if row else None

    def exists(self, person_id: str) -> bool:
        with self._op("exists") as conn:
            row = conn.execute("SELECT 1 FROM persons WHERE id = ?", (person_id,)).fetchone()
        return row is not None

    # ---------------------------- Edges ----------------------------

    @staticmethod
    def _to_row(edge: RelationshipEdge) -> tuple:
        data = edge.model_dump(mode="json")
        data["is_biological"] = int(edge.is_biological)
        return tuple(data[c] for c in EDGE_COLUMNS)

    @staticmethod
    def _from_row(row: sqlite3.Row) -> RelationshipEdge:
        return RelationshipEdge.model_validate(dict(row))

    def get(self, edge_id: str, include_deleted: bool = False) -> RelationshipEdge | None:
        sql = "SELECT * FROM family_relationships WHERE id = ?"
        if not include_deleted:
            sql += " AND deleted_at IS NULL"
        with self._op("get") as conn:
            row = conn.execute(sql, (edge_id,)).fetchone()
        return self._from_row(row) if row else None

    def find_edge(
        self,
        person_id: str,
        related_person_id: str,
        relationship_type: RelationshipType,
    ) -> RelationshipEdge | None:
        with self._op("find_edge") as conn:
            row = conn.execute(
                """
                SELECT * FROM family_relationships
                WHERE person_id = ?
                AND related_person_id = ?
                AND relationship_type = ?
                AND deleted_at IS NULL
                LIMIT 1
                """,
                (person_id, related_person_id, RelationshipType(relationship_type).value),
            ).fetchone()
        return self._from_row(row) if row else None

    def create(self, edge: RelationshipEdge) -> RelationshipEdge:
        placeholders = ", ".join("?" for _ in EDGE_COLUMNS)
        with self._op("create") as conn:
            conn.execute(
                f"INSERT INTO family_relationships ({', '.join(EDGE_COLUMNS)}) VALUES ({placeholders})",
                self._to_row(edge),
            )
            conn.commit()
        return edge

    def update(self, edge_id: str, changes: Mapping[str, Any]) -> RelationshipEdge:
        edge = self.get(edge_id)
        if edge is None:
            raise NotFoundError("Relationship", edge_id)

        updated = RelationshipEdge.model_validate(
            {**edge.model_dump(), **dict(changes), "updated_at": datetime.now(UTC)}
        )
        row = dict(zip(EDGE_COLUMNS, self._to_row(updated)))
        assignments = ", ".join(f"{c} = ?" for c in EDGE_COLUMNS if c != "id")
        with self._op("update") as conn:
            conn.execute(
                f"UPDATE family_relationships SET {assignments} WHERE id = ? AND deleted_at IS NULL",
                (*(row[c] for c in EDGE_COLUMNS if c != "id"), edge_id),
            )
            conn.commit()
        return updated

    def soft_delete(self, edge_id: str) -> bool:
        edge = self.get(edge_id, include_deleted=True)
        if edge is None:
            raise NotFoundError("Relationship", edge_id)
        if edge.is_deleted:
            return False

        now = datetime.now(UTC).isoformat()
        with self._op("soft_delete") as conn:
            cursor = conn.execute(
                """
                UPDATE family_relationships
                SET deleted_at = ?, updated_at = ?
                WHERE id = ? AND deleted_at IS NULL
                """,
                (now, now, edge_id),
            )
            conn.commit()
        return cursor.rowcount > 0

    def _edge_query(
        self, column: str, person_id: str, query: EdgeQuery, count: bool = False
    ) -> tuple[str, list[Any]]:
        select = "COUNT(*) AS total" if count else "*"
        sql = f"SELECT {select} FROM family_relationships WHERE {column} = ? AND deleted_at IS NULL"
        params: list[Any] = [person_id]

        if query.relationship_types:
            placeholders = ",".join("?" for _ in query.relationship_types)
            sql += f" AND relationship_type IN ({placeholders})"
            params.extend(RelationshipType(t).value for t in query.relationship_types)

        if query.active_only:
            sql += " AND relationship_status = 'ACTIVE'"

        if not count:
            sql += " ORDER BY created_at, id"
            if query.limit is not None or query.offset:
                sql += " LIMIT ? OFFSET ?"
                params.extend([query.limit if query.limit is not None else -1, query.offset])
        return sql, params

    def query_by(self, person_id: str, query: EdgeQuery | None = None) -> list[RelationshipEdge]:
        sql, params = self._edge_query("person_id", person_id, query or EdgeQuery())
        with self._op("query_by") as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._from_row(r) for r in rows]

    def count_by(self, person_id: str, query: EdgeQuery | None = None) -> int:
        sql, params = self._edge_query("person_id", person_id, query or EdgeQuery(), count=True)
        with self._op("count_by") as conn:
            row = conn.execute(sql, params).fetchone()
        return row["total"] if row else 0

    def query_reciprocal(
        self, person_id: str, query: EdgeQuery | None = None
    ) -> list[RelationshipEdge]:
        sql, params = self._edge_query("related_person_id", person_id, query or EdgeQuery())
        with self._op("query_reciprocal") as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._from_row(r) for r in rows]

    def search(
        self,
        filters: SearchFilters,
        limit: int | None = None,
        offset: int = 0,
    ) -> tuple[list[RelationshipEdge], int]:
        where = ["deleted_at IS NULL"]
        params: list[Any] = []

        if filters.person_id:
            where.append("(person_id = ? OR related_person_id = ?)")
            params.extend([filters.person_id, filters.person_id])
        if filters.relationship_type:
            where.append("relationship_type = ?")
            params.append(filters.relationship_type.value)
        if filters.relationship_status:
            where.append("relationship_status = ?")
            params.append(filters.relationship_status.value)
        if filters.certainty_level:
            where.append("certainty_level = ?")
            params.append(filters.certainty_level.value)
        if filters.is_biological is not None:
            where.append("is_biological = ?")
            params.append(int(filters.is_biological))
        if filters.start_date_from:
            where.append("start_date >= ?")
            params.append(filters.start_date_from.isoformat())
        if filters.start_date_to:
            where.append("start_date <= ?")
            params.append(filters.start_date_to.isoformat())
        if filters.verified is not None:
            where.append("verified_by IS NOT NULL" if filters.verified else "verified_by IS NULL")

        where_clause = " AND ".join(where)
        with self._op("search") as conn:
            total = conn.execute(
                f"SELECT COUNT(*) AS total FROM family_relationships WHERE {where_clause}",
                params,
            ).fetchone()["total"]
            rows = conn.execute(
                f"""
                SELECT * FROM family_relationships
                WHERE {where_clause}
                ORDER BY created_at DESC, id DESC
                LIMIT ? OFFSET ?
                """,
                [*params, limit if limit is not None else -1, offset],
            ).fetchall()
        return [self._from_row(r) for r in rows], total

    def iter_edges(self) -> Iterator[RelationshipEdge]:
        with self._op("iter_edges") as conn:
            rows = conn.execute(
                "SELECT * FROM family_relationships WHERE deleted_at IS NULL ORDER BY created_at, id"
            ).fetchall()
        for row in rows:
            yield self._from_row(row)
