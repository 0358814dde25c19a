"""Kinship degree between two persons via their nearest common ancestor."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from .config import CONFIG
from .models.results import AncestorEntry, DegreeResult

if TYPE_CHECKING:
    from .models.results import AncestorResult
    from .traversal import TraversalEngine

logger = structlog.get_logger(__name__)

ORDINALS = {
    1: "First",
    2: "Second",
    3: "Third",
    4: "Fourth",
    5: "Fifth",
    6: "Sixth",
    7: "Seventh",
    8: "Eighth",
    9: "Ninth",
}

REMOVALS = {1: "Once", 2: "Twice", 3: "Thrice"}

DESCRIPTIONS = {
    "SIBLING": "Brother/Sister",
    "COUSIN_1": "First Cousin",
    "COUSIN_2": "Second Cousin",
    "COUSIN_3": "Third Cousin",
    "COUSIN_4": "Fourth Cousin",
    "COUSIN_1_REMOVED_1": "First Cousin Once Removed",
    "COUSIN_2_REMOVED_1": "Second Cousin Once Removed",
    "COUSIN_1_REMOVED_2": "First Cousin Twice Removed",
}


@dataclass
class _Candidate:
    ancestor_id: str
    generation_a: int
    generation_b: int
    entry: AncestorEntry | None

    @property
    def distance(self) -> int:
        return self.generation_a + self.generation_b

    def sort_key(self) -> tuple[int, str, int]:
        return (self.distance, self.ancestor_id, self.generation_a)


def _nearest(result: AncestorResult) -> dict[str, tuple[int, AncestorEntry | None]]:
    """Closest generation per ancestor id; the person is their own generation 0."""
    nearest: dict[str, tuple[int, AncestorEntry | None]] = {result.person_id: (0, None)}
    for entry in result.ancestors:
        known = nearest.get(entry.ancestor_id)
        if known is None or entry.generation < known[0]:
            nearest[entry.ancestor_id] = (entry.generation, entry)
    return nearest


def _great(count: int) -> str:
    return "Great-" * count


def _ordinal(n: int) -> str:
    return ORDINALS.get(n, f"{n}th")


def _removal_phrase(removal: int) -> str:
    return f"{REMOVALS.get(removal, f'{removal} Times')} Removed"


def direct_line_label(generations: int, ancestor: bool) -> tuple[str, str]:
    """Label and description for a direct ancestor/descendant pair."""
    base = "PARENT" if ancestor else "CHILD"
    if generations == 1:
        return base, base.title()
    grand = f"GRAND{base}"
    greats = generations - 2
    label = "GREAT_" * greats + grand
    return label, f"{_great(greats)}Grand{base.lower()}"


def classify(generation_a: int, generation_b: int) -> tuple[str, str, int]:
    """Degree label, description and removal, read from A towards B."""
    low, high = sorted((generation_a, generation_b))
    removal = high - low

    if low == 0:
        label, description = direct_line_label(high, ancestor=generation_a == 0)
        return label, description, removal

    if low == 1:
        if removal == 0:
            return "SIBLING", DESCRIPTIONS["SIBLING"], 0
        greats = _great(removal - 1)
        if generation_a < generation_b:
            return "AVUNCULAR", f"{greats}Aunt/Uncle", removal
        return "AVUNCULAR", f"{greats}Niece/Nephew", removal

    cousin = low - 1
    label = f"COUSIN_{cousin}"
    if removal:
        label += f"_REMOVED_{removal}"

    description = DESCRIPTIONS.get(label)
    if description is None:
        description = f"{_ordinal(cousin)} Cousin"
        if removal:
            description += f" {_removal_phrase(removal)}"
    return label, description, removal


class DegreeCalculator:
    """Computes kinship between two persons over ancestor walks.

    The chosen common ancestor minimizes ``generation_a + generation_b``;
    ties go to the lowest ancestor id, then the lowest ``generation_a``.
    """

    def __init__(self, traversal: TraversalEngine, max_generations: int | None = None) -> None:
        self.traversal = traversal
        self.max_generations = max_generations or CONFIG.degree_generations

    async def calculate_degree(self, person_a_id: str, person_b_id: str) -> DegreeResult:
        if person_a_id == person_b_id:
            return DegreeResult(person_a_id, person_b_id, degree="SELF", description="Same person")

        ancestors_a, ancestors_b = await asyncio.gather(
            self.traversal.get_ancestors(person_a_id, self.max_generations),
            self.traversal.get_ancestors(person_b_id, self.max_generations),
        )
        nearest_a = _nearest(ancestors_a)
        nearest_b = _nearest(ancestors_b)

        candidates = [
            _Candidate(
                ancestor_id=ancestor_id,
                generation_a=gen_a,
                generation_b=nearest_b[ancestor_id][0],
                entry=entry_a or nearest_b[ancestor_id][1],
            )
            for ancestor_id, (gen_a, entry_a) in nearest_a.items()
            if ancestor_id in nearest_b
        ]

        if not candidates:
            logger.debug("degree.unrelated", person_a_id=person_a_id, person_b_id=person_b_id)
            return DegreeResult(
                person_a_id,
                person_b_id,
                degree="UNRELATED",
                description="No common ancestors found",
            )

        candidates.sort(key=_Candidate.sort_key)
        chosen = candidates[0]
        degree, description, removal = classify(chosen.generation_a, chosen.generation_b)

        logger.debug(
            "degree.calculated",
            person_a_id=person_a_id,
            person_b_id=person_b_id,
            degree=degree,
            common_ancestor_id=chosen.ancestor_id,
            candidates=len(candidates),
        )
        return DegreeResult(
            person_a_id=person_a_id,
            person_b_id=person_b_id,
            degree=degree,
            description=description,
            generation_a=chosen.generation_a,
            generation_b=chosen.generation_b,
            removal=removal,
            common_ancestor_id=chosen.ancestor_id,
            common_ancestor=chosen.entry,
            common_ancestor_ids=[c.ancestor_id for c in candidates if c.distance == chosen.distance],
        )
