"""Capability interfaces for the upstream generation steps.

Concept generation and recipe expansion are opaque, possibly slow and
possibly retried steps (an LLM in production). The engine depends only on
these interfaces so they can be swapped or mocked in tests.
"""

import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union

from athyra.data_layer.exceptions import RecipeExpansionError
from athyra.data_layer.models import MealConcept, Recipe


logger = logging.getLogger(__name__)


@dataclass
class ConceptRequest:
    """What the user asked for when generating concepts."""

    vibe: Optional[str] = None
    num_concepts: int = 5
    must_include_categories: List[str] = field(default_factory=list)
    avoid_categories: List[str] = field(default_factory=list)
    prefer_quick_meals: bool = False


class ConceptGenerator(ABC):
    """Produces pending meal concepts for a user."""

    @abstractmethod
    def generate(self, user_id: str, request: ConceptRequest) -> List[MealConcept]:
        """Return new concepts, all in ``pending`` status."""
        ...


class RecipeExpander(ABC):
    """Expands approved concepts into detailed recipes."""

    @abstractmethod
    def expand(self, concept: MealConcept) -> Recipe:
        """Expand one concept.

        Raises:
            RecipeExpansionError: If the concept cannot be expanded
        """
        ...

    def expand_all(
        self,
        concepts: List[MealConcept],
        max_workers: int = 1
    ) -> Tuple[List[Recipe], List[RecipeExpansionError]]:
        """Expand several concepts, optionally in parallel.

        Expansions are independent, so they may run concurrently; results
        keep the input order either way. A failing concept is reported and
        does not stop the others.

        Returns:
            Tuple of (recipes in concept order, per-concept failures)
        """
        if max_workers > 1 and len(concepts) > 1:
            with ThreadPoolExecutor(max_workers=max_workers) as pool:
                outcomes = list(pool.map(self._expand_safely, concepts))
        else:
            outcomes = [self._expand_safely(concept) for concept in concepts]

        recipes = [o for o in outcomes if isinstance(o, Recipe)]
        failures = [o for o in outcomes if isinstance(o, RecipeExpansionError)]
        return recipes, failures

    def _expand_safely(self, concept: MealConcept) -> Union[Recipe, RecipeExpansionError]:
        try:
            return self.expand(concept)
        except RecipeExpansionError as e:
            logger.warning("Recipe expansion failed for %s: %s", concept.id, e)
            return e
