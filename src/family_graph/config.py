from __future__ import annotations

import os
from dataclasses import dataclass


def _i(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except Exception:
        return default


def _s(name: str, default: str) -> str:
    return os.getenv(name) or default


@dataclass(frozen=True)
class EngineConfig:
    # Traversal bounds
    ancestor_generations: int = 4
    descendant_generations: int = 3
    degree_generations: int = 10

    # Pagination
    page_size: int = 50
    max_page_size: int = 500
    export_limit: int = 10000

    db_path: str = "./data/family_graph.db"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> EngineConfig:
        """Read every setting from its FAMILY_GRAPH_* variable, as of now."""
        return cls(
            ancestor_generations=_i("FAMILY_GRAPH_ANCESTOR_GENERATIONS", cls.ancestor_generations),
            descendant_generations=_i("FAMILY_GRAPH_DESCENDANT_GENERATIONS", cls.descendant_generations),
            degree_generations=_i("FAMILY_GRAPH_DEGREE_GENERATIONS", cls.degree_generations),
            page_size=_i("FAMILY_GRAPH_PAGE_SIZE", cls.page_size),
            max_page_size=_i("FAMILY_GRAPH_MAX_PAGE_SIZE", cls.max_page_size),
            export_limit=_i("FAMILY_GRAPH_EXPORT_LIMIT", cls.export_limit),
            db_path=_s("FAMILY_GRAPH_DB", cls.db_path),
            log_level=_s("FAMILY_GRAPH_LOG_LEVEL", cls.log_level),
        )


CONFIG = EngineConfig.from_env()
