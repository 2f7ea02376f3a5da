"""Turns a batch of approved meal concepts into recipes and one shopping list.

A batch is one logical transaction per user:

1. Hold the user's batch lock
2. Classify concept ids: eligible (approved), already handled (consumed)
   or failed (unknown, pending, rejected)
3. Expand eligible concepts into recipes; failures are per concept
4. Build the shopping list as a dry run
5. Commit: pantry deductions, recipes, shopping list, concept consumption

Nothing is written before step 5, so a cancelled or failed batch leaves the
pantry and every concept untouched. If step 5 itself fails part way, the
writes already made are rolled back before the error propagates.
"""

import copy
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional

from athyra.data_layer.exceptions import (
    ConceptNotFoundError,
    EngineError,
    InvalidStateError,
)
from athyra.data_layer.models import (
    ZERO,
    ConceptStatus,
    MealConcept,
    PantryEntry,
    Recipe,
    ShoppingList,
    SubstitutionSuggestion,
)
from athyra.data_layer.pantry_ledger import PantryLedger
from athyra.data_layer.repositories import (
    ConceptRepository,
    PantryRepository,
    RecipeRepository,
    ShoppingListRepository,
)
from athyra.lifecycle.concept_lifecycle import ConceptLifecycle
from athyra.lifecycle.locks import CancellationToken, UserLockRegistry
from athyra.planning.list_builder import BuildResult, IngredientCost, ShoppingListBuilder
from athyra.providers.recipe_provider import RecipeExpander


logger = logging.getLogger(__name__)


@dataclass
class GenerationRequest:
    """Request to generate detailed recipes from concepts."""

    concept_ids: List[str]
    budget_cap: Optional[Decimal] = None
    reduce_by_pantry: bool = True


@dataclass
class GenerationResult:
    """Everything one batch produced, including what it did not do."""

    recipes: List[Recipe] = field(default_factory=list)
    shopping_list: Optional[ShoppingList] = None
    ingredient_costs: Dict[str, List[IngredientCost]] = field(default_factory=dict)
    concept_failures: List[EngineError] = field(default_factory=list)
    already_handled: List[str] = field(default_factory=list)
    warnings: List[EngineError] = field(default_factory=list)

    @property
    def suggestions(self) -> List[SubstitutionSuggestion]:
        return self.shopping_list.suggestions if self.shopping_list else []

    @property
    def pantry_savings(self) -> Decimal:
        return self.shopping_list.pantry_savings if self.shopping_list else ZERO

    @property
    def budget_met(self) -> bool:
        return self.shopping_list.budget_met if self.shopping_list else True

    @property
    def shortfall(self) -> Decimal:
        return self.shopping_list.shortfall if self.shopping_list else ZERO


class RecipeGenerationService:
    """Runs generation batches with at-most-once concept consumption."""

    def __init__(
        self,
        concepts: ConceptRepository,
        recipes: RecipeRepository,
        pantry: PantryRepository,
        shopping_lists: ShoppingListRepository,
        expander: RecipeExpander,
        builder: ShoppingListBuilder,
        locks: Optional[UserLockRegistry] = None,
        max_workers: int = 1
    ):
        self.concepts = concepts
        self.recipes = recipes
        self.pantry = pantry
        self.shopping_lists = shopping_lists
        self.expander = expander
        self.builder = builder
        self.lifecycle = ConceptLifecycle(concepts)
        self.locks = locks or UserLockRegistry()
        self.max_workers = max_workers

    def generate(
        self,
        user_id: str,
        request: GenerationRequest,
        cancel_token: Optional[CancellationToken] = None
    ) -> GenerationResult:
        """Run one batch.

        Raises:
            LockTimeoutError: If another batch of this user holds the lock
            GenerationCancelledError: If cancelled before the commit step
            PantryCommitConflictError: If the pantry changed during the batch
        """
        token = cancel_token or CancellationToken()

        with self.locks.hold(user_id):
            logger.info("Generation batch for %s: %d concept ids", user_id, len(request.concept_ids))
            result = GenerationResult()

            eligible = self._classify(user_id, request.concept_ids, result)
            if not eligible:
                logger.info("No eligible concepts for %s; nothing to build", user_id)
                return result

            token.raise_if_cancelled(user_id, "recipe expansion")
            recipes, expansion_failures = self.expander.expand_all(eligible, self.max_workers)
            result.concept_failures.extend(expansion_failures)
            if not recipes:
                return result

            token.raise_if_cancelled(user_id, "list building")
            ledger = None
            if request.reduce_by_pantry:
                ledger = PantryLedger.snapshot(self.pantry, user_id, self.builder.converter)
            build = self.builder.build(
                user_id,
                recipes,
                ledger=ledger,
                budget_cap=request.budget_cap,
                reduce_by_pantry=request.reduce_by_pantry,
            )

            token.raise_if_cancelled(user_id, "commit")
            concepts_by_id = {concept.id: concept for concept in eligible}
            self._commit(user_id, build, concepts_by_id)

            result.recipes = build.recipes
            result.shopping_list = build.shopping_list
            result.ingredient_costs = build.ingredient_costs
            result.warnings = build.warnings
            logger.info(
                "Batch for %s committed: %d recipes, %d failures, %d already handled",
                user_id, len(result.recipes), len(result.concept_failures), len(result.already_handled),
            )
            return result

    def _classify(
        self,
        user_id: str,
        concept_ids: List[str],
        result: GenerationResult
    ) -> List[MealConcept]:
        eligible = []
        seen = set()
        for concept_id in concept_ids:
            if concept_id in seen:
                continue
            seen.add(concept_id)

            concept = self.concepts.get(user_id, concept_id)
            if concept is None:
                error = ConceptNotFoundError(concept_id, user_id)
                logger.warning("%s", error)
                result.concept_failures.append(error)
            elif concept.status == ConceptStatus.CONSUMED:
                logger.info("Concept %s already consumed by %s", concept_id, concept.recipe_id)
                result.already_handled.append(concept_id)
            elif concept.status != ConceptStatus.APPROVED:
                error = InvalidStateError(concept_id, concept.status.value, "consume")
                logger.warning("%s", error)
                result.concept_failures.append(error)
            else:
                eligible.append(concept)
        return eligible

    def _commit(
        self,
        user_id: str,
        build: BuildResult,
        concepts_by_id: Dict[str, MealConcept]
    ) -> None:
        saved_recipes: List[str] = []
        consumed: List[MealConcept] = []
        previous_list_id = self.shopping_lists.current_id(user_id)
        list_saved = False

        # Pantry first: a commit conflict aborts before anything else is written
        pantry_originals: List[PantryEntry] = self.builder.commit(build, self.pantry)
        try:
            for recipe in build.recipes:
                self.recipes.save(recipe)
                saved_recipes.append(recipe.id)

            self.shopping_lists.save(build.shopping_list)
            list_saved = True

            for recipe in build.recipes:
                original = copy.deepcopy(concepts_by_id[recipe.concept_id])
                self.lifecycle.consume(user_id, recipe.concept_id, recipe.id)
                consumed.append(original)
        except Exception:
            logger.warning("Commit for %s failed; rolling back", user_id)
            for concept in consumed:
                self.lifecycle.restore(concept)
            if list_saved:
                self.shopping_lists.delete(user_id, build.shopping_list.id)
                self.shopping_lists.set_current(user_id, previous_list_id)
            for recipe_id in saved_recipes:
                self.recipes.delete(user_id, recipe_id)
            if pantry_originals:
                self.pantry.restore(user_id, pantry_originals)
            raise
