"""Pedigree traversal queries over the relationship graph.

Provides:
- Ancestor traversal (parents, grandparents, etc.)
- Descendant traversal with a nested family tree
- Immediate family assembly (parents, spouse, children, siblings)

Parent/child links are read in both stored encodings: ``(P, C, FATHER)``
(P is the father of C) and ``(C, P, SON)`` (C is the son of P). Lineage
edges are followed whatever their status; a deceased father is still a
father.
"""
from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING

import structlog

from .catalog import CHILD_TYPES, PARENT_TYPES, SPOUSE_TYPES
from .config import CONFIG
from .models.relationship import RelationshipEdge, RelationshipType
from .models.results import (
    AncestorEntry,
    AncestorResult,
    DescendantEntry,
    DescendantNode,
    DescendantResult,
    FamilyMember,
    ImmediateFamily,
)
from .store.base import EdgeQuery

if TYPE_CHECKING:
    from .models.person import Person
    from .store.base import PersonDirectory, RelationshipStore

logger = structlog.get_logger(__name__)

PARENT_QUERY = EdgeQuery(relationship_types=sorted(PARENT_TYPES))
CHILD_QUERY = EdgeQuery(relationship_types=sorted(CHILD_TYPES))
SPOUSE_QUERY = EdgeQuery(relationship_types=sorted(SPOUSE_TYPES), active_only=True)

LINEAGE = {"FATHER": "paternal", "MOTHER": "maternal"}


@dataclass
class _Link:
    """One parent/child hop: the edge read and the person on the far side."""
    edge: RelationshipEdge
    person_id: str
    role: str | None  # FATHER/MOTHER for parents, SON/DAUGHTER for children


class TraversalEngine:
    """Genealogical graph traversal engine.

    Example:
        >>> engine = TraversalEngine(store, persons=store)
        >>> result = await engine.get_ancestors("p-42", max_generations=4)
        >>> for entry in result.ancestors:
        ...     print(entry.generation, entry.ancestor_id, entry.lineage)
    """

    def __init__(
        self,
        store: RelationshipStore,
        persons: PersonDirectory | None = None,
    ) -> None:
        """Initialize traversal engine.

        Args:
            store: Relationship store to read edges from
            persons: Person directory used for gender and birth-date lookups
        """
        self.store = store
        self.persons = persons

    # =========================================================================
    # Hops
    # =========================================================================

    def _person(self, person_id: str) -> Person | None:
        return self.persons.get_person(person_id) if self.persons else None

    def _gender_role(self, person_id: str, male: str, female: str) -> str | None:
        person = self._person(person_id)
        if person is None:
            return None
        if person.is_male:
            return male
        if person.is_female:
            return female
        return None

    def parent_links(self, person_id: str) -> list[_Link]:
        """Parents of ``person_id``, one link per distinct parent."""
        links: list[_Link] = []
        seen: set[str] = set()

        # (P, C, FATHER|MOTHER): the subject is the parent
        for edge in self.store.query_reciprocal(person_id, PARENT_QUERY):
            if edge.person_id not in seen:
                seen.add(edge.person_id)
                links.append(_Link(edge, edge.person_id, edge.relationship_type.value))

        # (C, P, SON|DAUGHTER): the object is the parent
        for edge in self.store.query_by(person_id, CHILD_QUERY):
            parent_id = edge.related_person_id
            if parent_id not in seen:
                seen.add(parent_id)
                links.append(_Link(edge, parent_id, self._gender_role(parent_id, "FATHER", "MOTHER")))

        return links

    def child_links(self, person_id: str) -> list[_Link]:
        """Children of ``person_id``, one link per distinct child."""
        links: list[_Link] = []
        seen: set[str] = set()

        # (P, C, FATHER|MOTHER): the object is the child
        for edge in self.store.query_by(person_id, PARENT_QUERY):
            child_id = edge.related_person_id
            if child_id not in seen:
                seen.add(child_id)
                role = self._gender_role(child_id, "SON", "DAUGHTER") or edge.reciprocal_relationship_type
                links.append(_Link(edge, child_id, role))

        # (C, P, SON|DAUGHTER): the subject is the child
        for edge in self.store.query_reciprocal(person_id, CHILD_QUERY):
            if edge.person_id not in seen:
                seen.add(edge.person_id)
                links.append(_Link(edge, edge.person_id, edge.relationship_type.value))

        return links

    # =========================================================================
    # Ancestors
    # =========================================================================

    async def get_ancestors(
        self,
        person_id: str,
        max_generations: int | None = None,
    ) -> AncestorResult:
        """Get all ancestors up to the given generation.

        BFS over parent links. A person reachable through several paths is
        reported once per path; only cycles are cut.

        Args:
            person_id: Root person to start from
            max_generations: Maximum generations to traverse (1=parents, 2=grandparents)

        Returns:
            AncestorResult with a flat list and a per-generation grouping
        """
        if max_generations is None:
            max_generations = CONFIG.ancestor_generations
        result = AncestorResult(person_id=person_id, max_generations=max_generations)
        if max_generations <= 0:
            return result

        start_time = time.time()

        # (person, generation, lineage, path of ids from the root)
        queue: deque[tuple[str, int, str | None, tuple[str, ...]]] = deque()
        queue.append((person_id, 0, None, (person_id,)))

        while queue:
            current_id, generation, lineage, path = queue.popleft()
            if generation >= max_generations:
                continue

            for link in self.parent_links(current_id):
                if link.person_id in path:
                    logger.warning(
                        "ancestors.cycle",
                        person_id=person_id,
                        at=current_id,
                        parent_id=link.person_id,
                    )
                    continue

                # Lineage is fixed by the first hop
                branch = lineage or LINEAGE.get(link.role or "", "unknown")
                result.ancestors.append(
                    AncestorEntry(
                        edge=link.edge,
                        ancestor_id=link.person_id,
                        child_id=current_id,
                        generation=generation + 1,
                        relationship=(link.role or "parent").lower(),
                        lineage=branch,
                    )
                )
                queue.append((link.person_id, generation + 1, branch, path + (link.person_id,)))

        logger.debug(
            "ancestors.done",
            person_id=person_id,
            found=len(result.ancestors),
            generations=result.max_generation_reached,
            ms=round((time.time() - start_time) * 1000, 2),
        )
        return result

    # =========================================================================
    # Descendants
    # =========================================================================

    async def get_descendants(
        self,
        person_id: str,
        max_generations: int | None = None,
    ) -> DescendantResult:
        """Get all descendants down to the given generation.

        Returns:
            DescendantResult with a flat list and the nested family tree
        """
        if max_generations is None:
            max_generations = CONFIG.descendant_generations
        result = DescendantResult(person_id=person_id, max_generations=max_generations)
        if max_generations <= 0:
            return result

        start_time = time.time()

        # (person, generation, tree node of that person, path of ids)
        queue: deque[tuple[str, int, DescendantNode | None, tuple[str, ...]]] = deque()
        queue.append((person_id, 0, None, (person_id,)))

        while queue:
            current_id, generation, node, path = queue.popleft()
            if generation >= max_generations:
                continue

            for link in self.child_links(current_id):
                if link.person_id in path:
                    logger.warning(
                        "descendants.cycle",
                        person_id=person_id,
                        at=current_id,
                        child_id=link.person_id,
                    )
                    continue

                entry = DescendantEntry(
                    edge=link.edge,
                    descendant_id=link.person_id,
                    parent_id=current_id,
                    generation=generation + 1,
                    relationship=(link.role or "child").lower(),
                )
                result.descendants.append(entry)

                child_node = DescendantNode(entry=entry)
                if node is None:
                    result.family_tree.append(child_node)
                else:
                    node.children.append(child_node)
                queue.append((link.person_id, generation + 1, child_node, path + (link.person_id,)))

        logger.debug(
            "descendants.done",
            person_id=person_id,
            found=result.total_descendants,
            ms=round((time.time() - start_time) * 1000, 2),
        )
        return result

    # =========================================================================
    # Immediate family
    # =========================================================================

    def _spouse(self, person_id: str) -> FamilyMember | None:
        # (A, B, HUSBAND): B's role towards A is the reciprocal, WIFE
        for edge in self.store.query_by(person_id, SPOUSE_QUERY):
            return FamilyMember(
                related_person_id=edge.related_person_id,
                relationship_type=edge.reciprocal_relationship_type,
                edge=edge,
            )
        for edge in self.store.query_reciprocal(person_id, SPOUSE_QUERY):
            return FamilyMember(
                related_person_id=edge.person_id,
                relationship_type=edge.relationship_type.value,
                edge=edge,
            )
        return None

    async def get_immediate_family(self, person_id: str) -> ImmediateFamily:
        """Assemble parents, spouse, children and siblings of a person.

        Siblings are not stored; they are the other children of the
        person's parents, deduplicated, each listing the parents shared.
        An unknown person yields an empty family.
        """
        family = ImmediateFamily(person_id=person_id)

        parent_links = self.parent_links(person_id)
        unplaced: list[FamilyMember] = []
        for link in parent_links:
            member = FamilyMember(
                related_person_id=link.person_id,
                relationship_type=link.role or "PARENT",
                edge=link.edge,
            )
            if link.role == RelationshipType.FATHER.value and family.parents.father is None:
                family.parents.father = member
            elif link.role == RelationshipType.MOTHER.value and family.parents.mother is None:
                family.parents.mother = member
            else:
                unplaced.append(member)

        # Parents of unknown gender fill whichever slot is open
        for member in unplaced:
            if family.parents.father is None:
                family.parents.father = member
            elif family.parents.mother is None:
                family.parents.mother = member

        family.spouse = self._spouse(person_id)

        family.children = [
            FamilyMember(
                related_person_id=link.person_id,
                relationship_type=link.role or "CHILD",
                edge=link.edge,
            )
            for link in self.child_links(person_id)
        ]

        siblings: dict[str, FamilyMember] = {}
        for parent in parent_links:
            for link in self.child_links(parent.person_id):
                if link.person_id == person_id:
                    continue
                sibling = siblings.get(link.person_id)
                if sibling is None:
                    siblings[link.person_id] = FamilyMember(
                        related_person_id=link.person_id,
                        relationship_type=self._gender_role(link.person_id, "BROTHER", "SISTER") or "SIBLING",
                        edge=link.edge,
                        shared_parent_ids=[parent.person_id],
                    )
                elif parent.person_id not in sibling.shared_parent_ids:
                    sibling.shared_parent_ids.append(parent.person_id)
        family.siblings = list(siblings.values())

        self._attach_persons(family)
        family.children.sort(key=_birth_order)

        logger.debug(
            "family.assembled",
            person_id=person_id,
            parents=len(family.parents.members()),
            children=len(family.children),
            siblings=len(family.siblings),
            has_spouse=family.spouse is not None,
        )
        return family

    def _attach_persons(self, family: ImmediateFamily) -> None:
        if self.persons is None:
            return
        members = [*family.parents.members(), *family.children, *family.siblings]
        if family.spouse:
            members.append(family.spouse)
        found = self.persons.get_persons({m.related_person_id for m in members})
        for member in members:
            member.person = found.get(member.related_person_id)


def _birth_order(member: FamilyMember) -> tuple[bool, date]:
    """Sort key: birth date ascending, unknown dates last."""
    birth = member.birth_date
    return (birth is None, birth or date.max)
