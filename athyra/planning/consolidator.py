"""Ingredient consolidation across a batch of recipes.

Merges every recipe's ingredient requirements into one demand line per
canonical ingredient id and base unit, summing quantities after conversion
to that base unit and keeping provenance (which recipe needs how much).

Requirements whose unit cannot be converted are not dropped and not forced
into the wrong unit: each becomes its own unmerged demand line in the
recipe's unit. A catalog ingredient has a single base unit; an ingredient
missing from the catalog gets one merged line per dimension it is
measured in.

Output order is the order ingredient ids were first encountered across the
input, so the same batch always yields the same list.
"""

import logging
from collections import OrderedDict
from decimal import Decimal
from typing import Dict, List, Tuple

from athyra.data_layer.exceptions import UnitMismatchError
from athyra.data_layer.models import (
    ZERO,
    ConsolidatedDemand,
    IngredientRequirement,
    IngredientRole,
    Recipe,
)
from athyra.ingestion.unit_converter import UnitConverter, normalize_unit


logger = logging.getLogger(__name__)


class IngredientConsolidator:
    """Combines per-recipe requirements into batch-wide demand."""

    def __init__(self, converter: UnitConverter):
        self.converter = converter
        self.unit_mismatches: List[UnitMismatchError] = []

    def consolidate_recipes(self, recipes: List[Recipe]) -> List[ConsolidatedDemand]:
        """Consolidate the ingredients of several recipes, in recipe order."""
        requirements = [ing for recipe in recipes for ing in recipe.ingredients]
        return self.consolidate(requirements)

    def consolidate(self, requirements: List[IngredientRequirement]) -> List[ConsolidatedDemand]:
        """Merge requirements into demand lines.

        Args:
            requirements: Requirements of all recipes, in recipe order

        Returns:
            Demand lines: for each ingredient id in first-seen order, its
            merged lines (one per base unit, first-seen order) followed by
            its unmerged lines in input order
        """
        self.unit_mismatches = []
        merged: "OrderedDict[Tuple[str, str], ConsolidatedDemand]" = OrderedDict()
        unmerged: Dict[str, List[ConsolidatedDemand]] = {}
        order: List[str] = []

        for requirement in requirements:
            if requirement.is_to_taste:
                continue

            ingredient_id = requirement.ingredient_id
            if ingredient_id not in unmerged:
                order.append(ingredient_id)
                unmerged[ingredient_id] = []

            try:
                quantity, base_unit = self.converter.to_base_unit(
                    ingredient_id, requirement.quantity, requirement.unit
                )
            except UnitMismatchError as e:
                logger.warning("Keeping '%s' as a separate line: %s", ingredient_id, e)
                self.unit_mismatches.append(e)
                unmerged[ingredient_id].append(self._unmerged_line(requirement))
                continue

            demand = merged.get((ingredient_id, base_unit))
            if demand is None:
                demand = ConsolidatedDemand(
                    ingredient_id=ingredient_id,
                    canonical_name=requirement.canonical_name,
                    total_quantity=ZERO,
                    base_unit=base_unit,
                    role=requirement.role,
                )
                merged[(ingredient_id, base_unit)] = demand
            elif demand.role == IngredientRole.OTHER and requirement.role != IngredientRole.OTHER:
                demand.role = requirement.role

            recipe_id = requirement.source_recipe_id
            demand.contributions[recipe_id] = demand.contributions.get(recipe_id, ZERO) + quantity
            demand.total_quantity += quantity

        result: List[ConsolidatedDemand] = []
        for ingredient_id in order:
            result.extend(d for (key, _), d in merged.items() if key == ingredient_id)
            result.extend(unmerged[ingredient_id])

        logger.debug(
            "Consolidated %d requirements into %d demand lines (%d unmerged)",
            len(requirements), len(result), len(self.unit_mismatches),
        )
        return result

    @staticmethod
    def _unmerged_line(requirement: IngredientRequirement) -> ConsolidatedDemand:
        quantity: Decimal = requirement.quantity
        return ConsolidatedDemand(
            ingredient_id=requirement.ingredient_id,
            canonical_name=requirement.canonical_name,
            total_quantity=quantity,
            base_unit=normalize_unit(requirement.unit),
            role=requirement.role,
            contributions={requirement.source_recipe_id: quantity},
            mergeable=False,
        )
