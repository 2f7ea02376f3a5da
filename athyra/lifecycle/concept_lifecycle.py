"""Meal concept state machine.

    pending -> approved -> consumed
    pending -> rejected

Transitions are one-way. Repeating a transition into the state a concept is
already in is a no-op. Consuming requires ``approved``; this is what keeps
recipe generation at-most-once per concept.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from athyra.data_layer.exceptions import ConceptNotFoundError, EngineError, InvalidStateError
from athyra.data_layer.models import ConceptStatus, MealConcept
from athyra.data_layer.repositories import ConceptRepository


logger = logging.getLogger(__name__)


@dataclass
class BatchDecisionResult:
    """Outcome of one entry in a batch approve/reject call."""

    concept_id: str
    status: Optional[ConceptStatus] = None
    error: Optional[EngineError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self):
        return {
            "concept_id": self.concept_id,
            "status": self.status.value if self.status else None,
            "error": self.error.to_dict() if self.error else None,
        }


class ConceptLifecycle:
    """Applies status transitions to stored concepts."""

    def __init__(self, repository: ConceptRepository):
        self.repository = repository

    def get(self, user_id: str, concept_id: str) -> MealConcept:
        concept = self.repository.get(user_id, concept_id)
        if concept is None:
            raise ConceptNotFoundError(concept_id, user_id)
        return concept

    def approve(self, user_id: str, concept_id: str) -> MealConcept:
        """Move a pending concept to approved.

        Raises:
            ConceptNotFoundError: If the concept does not exist
            InvalidStateError: If the concept is rejected or consumed
        """
        return self._transition(user_id, concept_id, ConceptStatus.APPROVED, "approve")

    def reject(self, user_id: str, concept_id: str) -> MealConcept:
        """Move a pending concept to rejected.

        Raises:
            ConceptNotFoundError: If the concept does not exist
            InvalidStateError: If the concept is approved or consumed
        """
        return self._transition(user_id, concept_id, ConceptStatus.REJECTED, "reject")

    def consume(self, user_id: str, concept_id: str, recipe_id: str) -> MealConcept:
        """Mark an approved concept as turned into ``recipe_id``.

        Unlike approve/reject this is never a no-op: consuming twice fails.

        Raises:
            ConceptNotFoundError: If the concept does not exist
            InvalidStateError: If the concept is not approved
        """
        concept = self.get(user_id, concept_id)
        if concept.status != ConceptStatus.APPROVED:
            raise InvalidStateError(concept_id, concept.status.value, "consume")
        concept.status = ConceptStatus.CONSUMED
        concept.recipe_id = recipe_id
        self.repository.save(concept)
        logger.debug("Concept %s consumed by recipe %s", concept_id, recipe_id)
        return concept

    def restore(self, concept: MealConcept) -> None:
        """Write back a previously read concept verbatim (commit rollback)."""
        self.repository.save(concept)

    def batch_decide(
        self,
        user_id: str,
        decisions: List[Tuple[str, bool]]
    ) -> List[BatchDecisionResult]:
        """Approve or reject several concepts; failures are per entry."""
        results = []
        for concept_id, approved in decisions:
            try:
                if approved:
                    concept = self.approve(user_id, concept_id)
                else:
                    concept = self.reject(user_id, concept_id)
            except (ConceptNotFoundError, InvalidStateError) as e:
                logger.warning("Batch decision for %s failed: %s", concept_id, e)
                results.append(BatchDecisionResult(concept_id, error=e))
                continue
            results.append(BatchDecisionResult(concept_id, status=concept.status))
        return results

    def delete(self, user_id: str, concept_id: str) -> None:
        """Delete a concept that has not been consumed.

        Raises:
            ConceptNotFoundError: If the concept does not exist
            InvalidStateError: If the concept is consumed
        """
        concept = self.get(user_id, concept_id)
        if concept.status == ConceptStatus.CONSUMED:
            raise InvalidStateError(concept_id, concept.status.value, "delete")
        self.repository.delete(user_id, concept_id)

    def _transition(
        self,
        user_id: str,
        concept_id: str,
        target: ConceptStatus,
        attempted: str
    ) -> MealConcept:
        concept = self.get(user_id, concept_id)
        if concept.status == target:
            return concept
        if concept.status != ConceptStatus.PENDING:
            raise InvalidStateError(concept_id, concept.status.value, attempted)
        concept.status = target
        self.repository.save(concept)
        logger.info("Concept %s %s", concept_id, target.value)
        return concept
