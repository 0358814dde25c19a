"""Relationship storage backends."""

from .base import EdgeQuery, PersonDirectory, RelationshipStore, SearchFilters
from .memory import InMemoryRelationshipStore
from .sqlite import SQLiteRelationshipStore

__all__ = [
    "EdgeQuery",
    "InMemoryRelationshipStore",
    "PersonDirectory",
    "RelationshipStore",
    "SQLiteRelationshipStore",
    "SearchFilters",
]
