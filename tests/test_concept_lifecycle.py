"""Tests for the meal concept state machine."""
import pytest

from athyra.data_layer.exceptions import ConceptNotFoundError, InvalidStateError
from athyra.data_layer.models import ConceptStatus, MealConcept
from athyra.lifecycle.concept_lifecycle import ConceptLifecycle


@pytest.fixture
def lifecycle(concept_repo):
    return ConceptLifecycle(concept_repo)


def _save(concept_repo, concept_id, status=ConceptStatus.PENDING):
    concept = MealConcept(id=concept_id, user_id="u1", name=concept_id, status=status)
    concept_repo.save(concept)
    return concept


class TestTransitions:
    """Tests for approve/reject/consume."""

    def test_approve_pending(self, lifecycle, concept_repo):
        _save(concept_repo, "c1")
        assert lifecycle.approve("u1", "c1").status == ConceptStatus.APPROVED
        assert concept_repo.get("u1", "c1").status == ConceptStatus.APPROVED

    def test_reject_pending(self, lifecycle, concept_repo):
        _save(concept_repo, "c1")
        assert lifecycle.reject("u1", "c1").status == ConceptStatus.REJECTED

    def test_repeat_transition_is_noop(self, lifecycle, concept_repo):
        _save(concept_repo, "c1", ConceptStatus.APPROVED)
        assert lifecycle.approve("u1", "c1").status == ConceptStatus.APPROVED

    @pytest.mark.parametrize("status", [ConceptStatus.REJECTED, ConceptStatus.CONSUMED])
    def test_cannot_approve_from(self, lifecycle, concept_repo, status):
        _save(concept_repo, "c1", status)
        with pytest.raises(InvalidStateError) as exc_info:
            lifecycle.approve("u1", "c1")
        assert exc_info.value.current_status == status.value

    def test_cannot_reject_approved(self, lifecycle, concept_repo):
        _save(concept_repo, "c1", ConceptStatus.APPROVED)
        with pytest.raises(InvalidStateError):
            lifecycle.reject("u1", "c1")

    def test_consume_records_recipe(self, lifecycle, concept_repo):
        _save(concept_repo, "c1", ConceptStatus.APPROVED)
        lifecycle.consume("u1", "c1", "c1-recipe")
        stored = concept_repo.get("u1", "c1")
        assert stored.status == ConceptStatus.CONSUMED
        assert stored.recipe_id == "c1-recipe"

    def test_consume_twice_fails(self, lifecycle, concept_repo):
        """Consumption is never a no-op."""
        _save(concept_repo, "c1", ConceptStatus.APPROVED)
        lifecycle.consume("u1", "c1", "c1-recipe")
        with pytest.raises(InvalidStateError):
            lifecycle.consume("u1", "c1", "c1-recipe")

    def test_consume_pending_fails(self, lifecycle, concept_repo):
        _save(concept_repo, "c1")
        with pytest.raises(InvalidStateError):
            lifecycle.consume("u1", "c1", "c1-recipe")

    def test_unknown_concept(self, lifecycle):
        with pytest.raises(ConceptNotFoundError):
            lifecycle.approve("u1", "nope")

    def test_other_users_concept_not_found(self, lifecycle, concept_repo):
        _save(concept_repo, "c1")
        with pytest.raises(ConceptNotFoundError):
            lifecycle.get("u2", "c1")

    def test_restore(self, lifecycle, concept_repo):
        original = _save(concept_repo, "c1", ConceptStatus.APPROVED)
        lifecycle.consume("u1", "c1", "c1-recipe")
        lifecycle.restore(original)
        assert concept_repo.get("u1", "c1").status == ConceptStatus.APPROVED
        assert concept_repo.get("u1", "c1").recipe_id is None


class TestBatchDecide:
    """Tests for batch approval."""

    def test_per_entry_results(self, lifecycle, concept_repo):
        _save(concept_repo, "c1")
        _save(concept_repo, "c2")
        _save(concept_repo, "c3", ConceptStatus.CONSUMED)

        results = lifecycle.batch_decide("u1", [("c1", True), ("c2", False), ("c3", True), ("c4", True)])

        assert [r.ok for r in results] == [True, True, False, False]
        assert results[0].status == ConceptStatus.APPROVED
        assert results[1].status == ConceptStatus.REJECTED
        assert isinstance(results[2].error, InvalidStateError)
        assert isinstance(results[3].error, ConceptNotFoundError)

    def test_to_dict(self, lifecycle, concept_repo):
        _save(concept_repo, "c1")
        results = lifecycle.batch_decide("u1", [("c1", True), ("c9", True)])
        assert results[0].to_dict() == {"concept_id": "c1", "status": "approved", "error": None}
        assert results[1].to_dict()["error"]["error_code"] == "CONCEPT_NOT_FOUND"


class TestDelete:
    """Tests for concept deletion."""

    def test_delete_pending(self, lifecycle, concept_repo):
        _save(concept_repo, "c1")
        lifecycle.delete("u1", "c1")
        assert concept_repo.get("u1", "c1") is None

    def test_consumed_cannot_be_deleted(self, lifecycle, concept_repo):
        _save(concept_repo, "c1", ConceptStatus.CONSUMED)
        with pytest.raises(InvalidStateError):
            lifecycle.delete("u1", "c1")
        assert concept_repo.get("u1", "c1") is not None
