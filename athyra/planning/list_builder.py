"""Shopping list assembly for one generation batch.

Pipeline:
    consolidate -> net out against the pantry (dry run) -> price what is
    left to buy -> enforce the budget cap -> assemble the ShoppingList

``build`` has no side effects. Pantry deductions are only staged on the
ledger; ``commit`` writes them once the caller accepts the list.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, Dict, List, Optional

from athyra.data_layer.exceptions import EngineError, PricingUnavailableError, UnitMismatchError
from athyra.data_layer.ingredient_db import IngredientCatalog
from athyra.data_layer.models import (
    ZERO,
    ConsolidatedDemand,
    NetResult,
    PantryEntry,
    Recipe,
    ShoppingList,
    ShoppingListItem,
    SubstitutionSuggestion,
    round_money,
    round_quantity,
)
from athyra.data_layer.pantry_ledger import PantryLedger
from athyra.data_layer.repositories import PantryRepository
from athyra.ingestion.unit_converter import UnitConverter
from athyra.planning.consolidator import IngredientConsolidator
from athyra.planning.substitution_planner import SubstitutionPlanner
from athyra.providers.library_provider import new_id, utc_now
from athyra.providers.pricing_provider import PricingOracle


logger = logging.getLogger(__name__)

SOURCE_PANTRY = "pantry"
SOURCE_SHOPPING = "shopping"


@dataclass
class IngredientCost:
    """How one recipe ingredient is covered and what it costs."""

    ingredient_id: str
    source: str  # "pantry" or "shopping"
    estimated_cost: Optional[Decimal]
    category: Optional[str] = None


@dataclass
class BuildResult:
    """A dry-run shopping list plus everything needed to commit it."""

    shopping_list: ShoppingList
    recipes: List[Recipe]
    ingredient_costs: Dict[str, List[IngredientCost]] = field(default_factory=dict)
    warnings: List[EngineError] = field(default_factory=list)
    ledger: Optional[PantryLedger] = None

    @property
    def suggestions(self) -> List[SubstitutionSuggestion]:
        return self.shopping_list.suggestions


@dataclass
class _PricedLine:
    demand: ConsolidatedDemand
    net: NetResult
    total_price: Optional[Decimal]  # price of the full demand
    buy_price: Optional[Decimal]
    savings: Decimal


class ShoppingListBuilder:
    """Builds a priced, budget-checked shopping list from recipes.

    Args:
        converter: Unit converter shared with the pantry ledger
        pricing: Price oracle for what is left to buy
        planner: Substitution planner (None disables budget enforcement)
        catalog: Display names and categories
    """

    def __init__(
        self,
        converter: UnitConverter,
        pricing: PricingOracle,
        planner: Optional[SubstitutionPlanner] = None,
        catalog: Optional[IngredientCatalog] = None,
        id_factory: Callable[[], str] = new_id,
        clock: Callable[[], str] = utc_now
    ):
        self.converter = converter
        self.pricing = pricing
        self.planner = planner
        self.catalog = catalog or IngredientCatalog()
        self.consolidator = IngredientConsolidator(converter)
        self.id_factory = id_factory
        self.clock = clock

    def build(
        self,
        user_id: str,
        recipes: List[Recipe],
        ledger: Optional[PantryLedger] = None,
        budget_cap: Optional[Decimal] = None,
        reduce_by_pantry: bool = True
    ) -> BuildResult:
        """Assemble the shopping list for a batch of recipes (dry run).

        Args:
            user_id: Owner of the list
            recipes: Recipes of the batch, in batch order
            ledger: Pantry snapshot; deductions are staged on it
            budget_cap: Optional maximum total cost
            reduce_by_pantry: When False the pantry is ignored entirely

        Returns:
            BuildResult with the list, per-recipe ingredient costs and
            any warnings (unit mismatches, unpriced items, shortfall)
        """
        warnings: List[EngineError] = []
        use_pantry = reduce_by_pantry and ledger is not None

        demands = self.consolidator.consolidate_recipes(recipes)
        warnings.extend(self.consolidator.unit_mismatches)

        if use_pantry:
            # Rebuilding must not double-count an earlier dry run
            ledger.reset_staged()

        lines: List[_PricedLine] = []
        for demand in demands:
            if use_pantry:
                net = ledger.net_out(demand)
                ledger.stage(demand.ingredient_id, net.deducted, demand.base_unit)
            else:
                net = NetResult(to_buy=demand.total_quantity, deducted=ZERO)
            lines.append(self._price_line(demand, net, warnings))

        recipe_names = {recipe.id: recipe.name for recipe in recipes}
        list_id = self.id_factory()
        items = [
            self._to_item(line, recipe_names)
            for line in lines
            if line.net.to_buy > 0
        ]

        suggestions: List[SubstitutionSuggestion] = []
        budget_met = True
        shortfall = ZERO
        if self.planner is not None and budget_cap is not None:
            plan = self.planner.plan(items, budget_cap)
            items = plan.items
            suggestions = plan.suggestions
            budget_met = plan.budget_met
            shortfall = plan.shortfall
            if plan.warning is not None:
                warnings.append(plan.warning)

        for index, item in enumerate(items):
            item.id = f"{list_id}-{index}"

        shopping_list = ShoppingList(
            id=list_id,
            user_id=user_id,
            items=items,
            pantry_savings=sum((line.savings for line in lines), ZERO),
            budget_cap=budget_cap,
            budget_met=budget_met,
            shortfall=shortfall,
            suggestions=suggestions,
            created_at=self.clock(),
        )

        logger.info(
            "Built list %s for %s: %d items, total $%s, pantry savings $%s",
            list_id, user_id, len(items), shopping_list.total_cost, shopping_list.pantry_savings,
        )
        return BuildResult(
            shopping_list=shopping_list,
            recipes=list(recipes),
            ingredient_costs=self._ingredient_costs(recipes, lines),
            warnings=warnings,
            ledger=ledger if use_pantry else None,
        )

    def commit(self, result: BuildResult, pantry_repository: PantryRepository) -> List[PantryEntry]:
        """Write the staged pantry deductions of an accepted list.

        Returns:
            Original entries touched, for rollback

        Raises:
            PantryCommitConflictError: If the pantry changed since the snapshot
        """
        if result.ledger is None:
            return []
        return result.ledger.commit(pantry_repository)

    def _price(self, ingredient_id: str, quantity: Decimal, unit: str) -> Decimal:
        if quantity <= 0:
            return ZERO
        return self.pricing.estimate(ingredient_id, quantity, unit)

    def _price_line(
        self,
        demand: ConsolidatedDemand,
        net: NetResult,
        warnings: List[EngineError]
    ) -> _PricedLine:
        try:
            total_price = self._price(demand.ingredient_id, demand.total_quantity, demand.base_unit)
            buy_price = self._price(demand.ingredient_id, net.to_buy, demand.base_unit)
            savings = self._price(demand.ingredient_id, net.deducted, demand.base_unit)
        except PricingUnavailableError as e:
            logger.warning("No price for '%s': %s", demand.ingredient_id, e)
            warnings.append(e)
            return _PricedLine(demand, net, None, None, ZERO)

        logger.debug(
            "%s: demand %s %s, deducted %s, buy %s for $%s",
            demand.ingredient_id, demand.total_quantity, demand.base_unit,
            net.deducted, net.to_buy, buy_price,
        )
        return _PricedLine(demand, net, total_price, buy_price, savings)

    def _display_name(self, demand: ConsolidatedDemand) -> str:
        if demand.ingredient_id in self.catalog:
            return self.catalog.display_name(demand.ingredient_id)
        return demand.canonical_name

    def _to_item(self, line: _PricedLine, recipe_names: Dict[str, str]) -> ShoppingListItem:
        demand = line.demand
        if demand.mergeable:
            display_quantity, display_unit = self.converter.display(
                demand.ingredient_id, line.net.to_buy, demand.base_unit
            )
        else:
            display_quantity, display_unit = round_quantity(line.net.to_buy), demand.base_unit

        from_recipes: List[str] = []
        for recipe_id in demand.contributing_recipe_ids:
            name = recipe_names.get(recipe_id, recipe_id)
            if name not in from_recipes:
                from_recipes.append(name)

        return ShoppingListItem(
            id="",
            ingredient_id=demand.ingredient_id,
            name=self._display_name(demand),
            quantity=line.net.to_buy,
            unit=demand.base_unit,
            estimated_price=line.buy_price,
            role=demand.role,
            category=self.catalog.category_of(demand.ingredient_id),
            from_recipes=from_recipes,
            pantry_deduction=line.net.deducted if line.net.deducted > 0 else None,
            display_quantity=display_quantity,
            display_unit=display_unit,
        )

    def _ingredient_costs(
        self,
        recipes: List[Recipe],
        lines: List[_PricedLine]
    ) -> Dict[str, List[IngredientCost]]:
        """Per-recipe ingredient source and cost share.

        A recipe's share of a line is proportional to its contribution.
        Ingredients on unmerged lines or without a price get no cost.
        """
        merged = {
            (line.demand.ingredient_id, line.demand.base_unit): line
            for line in lines if line.demand.mergeable
        }
        costs: Dict[str, List[IngredientCost]] = {}

        for recipe in recipes:
            entries = []
            for requirement in recipe.ingredients:
                category = self.catalog.category_of(requirement.ingredient_id)
                line = None
                quantity = None
                if not requirement.is_to_taste:
                    try:
                        quantity, base_unit = self.converter.to_base_unit(
                            requirement.ingredient_id, requirement.quantity, requirement.unit
                        )
                    except UnitMismatchError:
                        quantity = None
                    else:
                        line = merged.get((requirement.ingredient_id, base_unit))
                if line is None:
                    entries.append(IngredientCost(requirement.ingredient_id, SOURCE_SHOPPING, None, category))
                    continue

                source = SOURCE_PANTRY if line.net.to_buy == 0 else SOURCE_SHOPPING
                cost = None
                if line.total_price is not None and line.demand.total_quantity > 0:
                    cost = round_money(line.total_price * quantity / line.demand.total_quantity)
                entries.append(IngredientCost(requirement.ingredient_id, source, cost, category))
            costs[recipe.id] = entries
        return costs
