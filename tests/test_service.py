"""Tests for RelationshipService operations."""
from __future__ import annotations

from datetime import date, timedelta

import pytest

from family_graph.exceptions import ConflictError, NotFoundError, ValidationError
from family_graph.models import CertaintyLevel, Person, RelationshipStatus, RelationshipType
from family_graph.service import RelationshipService
from family_graph.store import InMemoryRelationshipStore


def edge_data(person_id="dad", related_person_id="child", relationship_type="FATHER", **kwargs):
    return {
        "person_id": person_id,
        "related_person_id": related_person_id,
        "relationship_type": relationship_type,
        **kwargs,
    }


class TestCreateRelationship:
    """Tests for create_relationship."""

    @pytest.mark.asyncio
    async def test_create_with_defaults(self, service):
        edge = await service.create_relationship(edge_data(), created_by="user-1")

        assert edge.person_id == "dad"
        assert edge.relationship_type == RelationshipType.FATHER
        assert edge.reciprocal_relationship_type == "SON"
        assert edge.relationship_status == RelationshipStatus.ACTIVE
        assert edge.certainty_level == CertaintyLevel.CONFIRMED
        assert edge.is_biological is True
        assert edge.created_by == "user-1"
        assert service.store.get(edge.id) is not None

    @pytest.mark.asyncio
    async def test_overrides(self, service):
        edge = await service.create_relationship(
            edge_data(
                certainty_level="POSSIBLE",
                is_biological=False,
                start_date="1960-05-05",
                notes="From a baptism record",
            )
        )
        assert edge.certainty_level == CertaintyLevel.POSSIBLE
        assert edge.is_biological is False
        assert edge.start_date == date(1960, 5, 5)
        assert edge.notes.endswith(": From a baptism record")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("rel_type", ["FATHER", "BROTHER", "WIFE", "COUSIN"])
    async def test_self_loop_rejected(self, service, rel_type):
        with pytest.raises(ValidationError) as exc_info:
            await service.create_relationship(edge_data("dad", "dad", rel_type))
        assert exc_info.value.http_status == 400

    @pytest.mark.asyncio
    async def test_all_validation_errors_reported(self, service):
        with pytest.raises(ValidationError) as exc_info:
            await service.create_relationship(
                {"person_id": "dad", "relationship_type": "NOPE", "certainty_level": "MAYBE"}
            )
        assert len(exc_info.value.errors) == 3

    @pytest.mark.asyncio
    async def test_missing_person(self, service):
        with pytest.raises(NotFoundError) as exc_info:
            await service.create_relationship(edge_data("dad", "ghost"))
        assert exc_info.value.identifier == "ghost"
        assert exc_info.value.http_status == 404

    @pytest.mark.asyncio
    @pytest.mark.parametrize("rel_type", ["FATHER", "BROTHER", "SISTER", "COUSIN"])
    async def test_duplicate_rejected(self, service, rel_type):
        first = await service.create_relationship(edge_data("child", "daughter", rel_type))
        with pytest.raises(ConflictError) as exc_info:
            await service.create_relationship(edge_data("child", "daughter", rel_type))
        assert exc_info.value.existing_id == first.id
        assert exc_info.value.http_status == 409

    @pytest.mark.asyncio
    async def test_reverse_direction_is_not_a_duplicate(self, service):
        """Symmetric types are still stored per direction."""
        await service.create_relationship(edge_data("child", "baby", "BROTHER"))
        await service.create_relationship(edge_data("baby", "child", "BROTHER"))

    @pytest.mark.asyncio
    async def test_reciprocal_not_materialized(self, service):
        await service.create_relationship(edge_data())
        assert service.store.query_by("child") == []
        assert len(service.store.query_reciprocal("child")) == 1

    @pytest.mark.asyncio
    async def test_terminal_status_gets_end_date(self, service):
        edge = await service.create_relationship(
            edge_data("dad", "mom", "HUSBAND", relationship_status="DISSOLVED")
        )
        assert edge.end_date is not None

    @pytest.mark.asyncio
    async def test_terminal_end_date_never_precedes_start(self, service):
        start = date.today() + timedelta(days=400)
        edge = await service.create_relationship(
            edge_data("dad", "mom", "HUSBAND", start_date=start.isoformat(), relationship_status="DISSOLVED")
        )
        assert edge.end_date == start

    @pytest.mark.asyncio
    async def test_separate_person_directory(self):
        class Directory(InMemoryRelationshipStore):
            pass

        directory = Directory([Person(id="a"), Person(id="b")])
        service = RelationshipService(InMemoryRelationshipStore(), persons=directory)

        edge = await service.create_relationship(edge_data("a", "b", "SISTER"))
        assert edge.id
        with pytest.raises(NotFoundError):
            await service.create_relationship(edge_data("a", "c", "SISTER"))


class TestUpdateAndDelete:
    """Tests for update_relationship and delete_relationship."""

    @pytest.mark.asyncio
    async def test_update_type_recomputes_reciprocal(self, service):
        edge = await service.create_relationship(edge_data())
        updated = await service.update_relationship(edge.id, {"relationship_type": "STEP_FATHER"})

        assert updated.relationship_type == RelationshipType.STEP_FATHER
        assert updated.reciprocal_relationship_type == "STEP_SON"

    @pytest.mark.asyncio
    async def test_notes_are_appended(self, service):
        edge = await service.create_relationship(edge_data(notes="first"))
        updated = await service.update_relationship(edge.id, {"notes": "second"})

        lines = updated.notes.split("\n")
        assert len(lines) == 2
        assert lines[0].endswith("first")
        assert lines[1].endswith("second")

    @pytest.mark.asyncio
    async def test_immutable_fields_rejected(self, service):
        edge = await service.create_relationship(edge_data())
        with pytest.raises(ValidationError) as exc_info:
            await service.update_relationship(edge.id, {"verified_by": "me", "id": "x"})
        assert "Field 'id' cannot be updated" in exc_info.value.errors
        assert "Field 'verified_by' cannot be updated" in exc_info.value.errors

    @pytest.mark.asyncio
    async def test_update_checks_date_order_against_stored(self, service):
        edge = await service.create_relationship(edge_data(start_date="1960-01-01"))
        with pytest.raises(ValidationError):
            await service.update_relationship(edge.id, {"end_date": "1950-01-01"})

    @pytest.mark.asyncio
    async def test_update_to_terminal_status_with_future_start(self, service):
        start = date.today() + timedelta(days=30)
        edge = await service.create_relationship(edge_data("dad", "mom", "HUSBAND", start_date=start.isoformat()))

        updated = await service.update_relationship(edge.id, {"relationship_status": "DECEASED"})
        assert updated.end_date == start

    @pytest.mark.asyncio
    async def test_update_cannot_blank_type(self, service):
        edge = await service.create_relationship(edge_data())
        with pytest.raises(ValidationError) as exc_info:
            await service.update_relationship(edge.id, {"relationship_type": None})
        assert exc_info.value.errors == ["Relationship type is required"]
        assert service.store.get(edge.id).relationship_type == RelationshipType.FATHER

    @pytest.mark.asyncio
    async def test_update_into_existing_triple_conflicts(self, service):
        await service.create_relationship(edge_data("dad", "child"))
        other = await service.create_relationship(edge_data("dad", "daughter"))
        with pytest.raises(ConflictError):
            await service.update_relationship(other.id, {"related_person_id": "child"})

    @pytest.mark.asyncio
    async def test_update_unknown(self, service):
        with pytest.raises(NotFoundError):
            await service.update_relationship("missing", {"notes": "x"})

    @pytest.mark.asyncio
    async def test_delete_twice(self, service):
        edge = await service.create_relationship(edge_data())

        assert await service.delete_relationship(edge.id) is True
        assert await service.delete_relationship(edge.id) is False

        page = await service.get_person_relationships("dad")
        assert page.relationships == []
        with pytest.raises(NotFoundError):
            await service.get_relationship(edge.id)

    @pytest.mark.asyncio
    async def test_delete_unknown(self, service):
        with pytest.raises(NotFoundError):
            await service.delete_relationship("missing")


class TestStatusAndVerification:
    """Tests for update_status and verify."""

    @pytest.mark.asyncio
    async def test_status_with_reason(self, service):
        edge = await service.create_relationship(edge_data("dad", "mom", "HUSBAND"))
        updated = await service.update_status(edge.id, "DISSOLVED", reason="Divorce decree 1980")

        assert updated.relationship_status == RelationshipStatus.DISSOLVED
        assert updated.end_date is not None
        assert updated.notes.endswith(": Divorce decree 1980")

    @pytest.mark.asyncio
    async def test_status_with_end_date(self, service):
        edge = await service.create_relationship(edge_data("dad", "mom", "HUSBAND"))
        updated = await service.update_status(edge.id, RelationshipStatus.DECEASED, end_date="1999-09-09")
        assert updated.end_date == date(1999, 9, 9)

    @pytest.mark.asyncio
    async def test_status_end_date_before_start_rejected(self, service):
        edge = await service.create_relationship(edge_data("dad", "mom", "HUSBAND", start_date="2000-01-01"))

        with pytest.raises(ValidationError) as exc_info:
            await service.update_status(edge.id, "DISSOLVED", end_date="1990-01-01")

        assert exc_info.value.errors == ["Start date cannot be after end date"]
        stored = service.store.get(edge.id)
        assert stored.relationship_status == RelationshipStatus.ACTIVE
        assert stored.end_date is None

    @pytest.mark.asyncio
    async def test_status_default_end_date_with_future_start(self, service):
        start = date.today() + timedelta(days=400)
        edge = await service.create_relationship(edge_data("dad", "mom", "HUSBAND", start_date=start.isoformat()))

        updated = await service.update_status(edge.id, "DISSOLVED")
        assert updated.end_date == start

    @pytest.mark.asyncio
    async def test_invalid_status(self, service):
        edge = await service.create_relationship(edge_data())
        with pytest.raises(ValidationError):
            await service.update_status(edge.id, "DIVORCED")

    @pytest.mark.asyncio
    async def test_status_unknown_edge(self, service):
        with pytest.raises(NotFoundError):
            await service.update_status("missing", "DECEASED")

    @pytest.mark.asyncio
    async def test_verify(self, service):
        edge = await service.create_relationship(edge_data(certainty_level="LIKELY"))
        verified = await service.verify(edge.id, "reviewer", notes="Checked census")

        assert verified.verified_by == "reviewer"
        assert verified.certainty_level == CertaintyLevel.CONFIRMED
        assert verified.notes.endswith(": Checked census")

    @pytest.mark.asyncio
    async def test_verify_twice_conflicts(self, service):
        edge = await service.create_relationship(edge_data())
        await service.verify(edge.id, "reviewer")
        with pytest.raises(ConflictError):
            await service.verify(edge.id, "reviewer")


class TestReads:
    """Tests for relationship reads."""

    @pytest.mark.asyncio
    async def test_get_relationship_details(self, service):
        edge = await service.create_relationship(edge_data("dad", "child", "FATHER"))
        reverse = await service.create_relationship(edge_data("child", "dad", "SON"))

        details = await service.get_relationship(edge.id)
        assert details.person.id == "dad"
        assert details.related_person.id == "child"
        assert details.reverse_relationship.id == reverse.id

        data = details.to_dict()
        assert data["reciprocal_relationship"]["relationship_type"] == "SON"

    @pytest.mark.asyncio
    async def test_person_relationships_with_reciprocal(self, family_service):
        page = await family_service.get_person_relationships("mom")

        assert [e.related_person_id for e in page.relationships] == ["child"]
        assert {e.person_id for e in page.reciprocal} == {"dad", "daughter"}
        assert set(page.grouped_relationships) == {"MOTHER", "HUSBAND", "DAUGHTER"}
        assert page.pagination.total == 1

    @pytest.mark.asyncio
    async def test_person_relationships_without_reciprocal(self, family_service):
        page = await family_service.get_person_relationships("mom", include_reciprocal=False)
        assert page.reciprocal == []

    @pytest.mark.asyncio
    async def test_person_relationships_type_filter_applies_to_both(self, family_service):
        page = await family_service.get_person_relationships("mom", relationship_type="HUSBAND")
        assert page.relationships == []
        assert [e.person_id for e in page.reciprocal] == ["dad"]

    @pytest.mark.asyncio
    async def test_person_relationships_active_only(self, family_service):
        edge = family_service.store.find_edge("dad", "mom", RelationshipType.HUSBAND)
        await family_service.update_status(edge.id, "DISSOLVED")

        active = await family_service.get_person_relationships("dad")
        everything = await family_service.get_person_relationships("dad", active_only=False)
        assert len(everything.relationships) == len(active.relationships) + 1

    @pytest.mark.asyncio
    async def test_person_relationships_pagination(self, family_service):
        page = await family_service.get_person_relationships("dad", page=2, limit=2, include_reciprocal=False)

        assert [e.related_person_id for e in page.relationships] == ["daughter", "baby"]
        assert page.pagination.total == 4
        assert page.pagination.total_pages == 2
        assert page.pagination.has_previous
        assert not page.pagination.has_next

    @pytest.mark.asyncio
    async def test_invalid_type_filter(self, family_service):
        with pytest.raises(ValidationError):
            await family_service.get_person_relationships("dad", relationship_type="GODFATHER")

    @pytest.mark.asyncio
    async def test_search(self, family_service):
        result = await family_service.search_relationships({"relationship_type": "MOTHER"})
        assert result.pagination.total == 4
        assert all(e.relationship_type == RelationshipType.MOTHER for e in result.data)

    @pytest.mark.asyncio
    async def test_search_bad_filter(self, family_service):
        with pytest.raises(ValidationError):
            await family_service.search_relationships({"start_date_from": "soon"})

    @pytest.mark.asyncio
    async def test_page_size_is_capped(self, family_service):
        result = await family_service.search_relationships({}, limit=10**6)
        assert result.pagination.limit == family_service.config.max_page_size

    @pytest.mark.asyncio
    async def test_find_relationship_between_prefers_certainty(self, service):
        await service.create_relationship(edge_data("child", "daughter", "BROTHER", certainty_level="POSSIBLE"))
        sure = await service.create_relationship(edge_data("daughter", "child", "SISTER"))

        found = await service.find_relationship_between("child", "daughter")
        assert found.id == sure.id
        assert await service.find_relationship_between("child", "outsider") is None


class TestGraphQueries:
    """Tests for the traversal facade."""

    @pytest.mark.asyncio
    async def test_father_scenario(self, service):
        await service.create_relationship(edge_data("gf", "dad", "FATHER"))
        family = await service.get_immediate_family("dad")
        assert family.parents.father.related_person_id == "gf"

    @pytest.mark.asyncio
    async def test_sibling_scenario(self, service):
        await service.create_relationship(edge_data("dad", "child", "FATHER"))
        await service.create_relationship(edge_data("dad", "daughter", "FATHER"))

        family = await service.get_immediate_family("child")
        assert [s.related_person_id for s in family.siblings] == ["daughter"]

        degree = await service.calculate_degree("child", "daughter")
        assert degree.degree == "SIBLING"

    @pytest.mark.asyncio
    async def test_grandparent_scenario(self, service):
        await service.create_relationship(edge_data("gf", "dad", "FATHER"))
        await service.create_relationship(edge_data("dad", "child", "FATHER"))

        result = await service.calculate_degree("gf", "child")
        assert result.degree == "GRANDPARENT"
        assert (result.generation_a, result.generation_b) == (0, 2)

    @pytest.mark.asyncio
    async def test_default_generation_bounds(self, family_service):
        ancestors = await family_service.get_ancestors("cousin_child")
        descendants = await family_service.get_descendants("gf")

        assert ancestors.max_generations == family_service.config.ancestor_generations
        assert descendants.max_generations == family_service.config.descendant_generations
