"""Budget enforcement through ingredient substitution.

Runs only when the priced list costs more than the budget cap:

1. overage = total_cost - budget_cap
2. For every priced item, pick its best eligible candidate: same role,
   registered as a cheaper peer (relative_cost_factor < 1), largest savings
   (ties: ascending alternative id)
3. Rank items by that savings, descending (ties: ascending ingredient id)
4. Apply from the top until overage <= 0 or candidates run out

Each substitution's savings is independent of the others, so when any set
of substitutions meets the cap, the greedy pass meets it too; when none
does, every candidate has been applied and the total is the minimum
reachable. In that case the plan is flagged with the shortfall instead of
pretending the cap was met.
"""

import logging
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import List, Optional, Tuple

from athyra.data_layer.exceptions import BudgetInfeasibleError, PricingUnavailableError, UnitMismatchError
from athyra.data_layer.ingredient_db import IngredientCatalog
from athyra.data_layer.models import (
    ZERO,
    IngredientRole,
    ShoppingListItem,
    SubstitutionSuggestion,
    round_money,
)
from athyra.ingestion.unit_converter import UnitConverter
from athyra.providers.pricing_provider import PricingOracle
from athyra.providers.substitution_table import SubstitutionCandidate, SubstitutionTable


logger = logging.getLogger(__name__)


def default_reason(role: IngredientRole) -> str:
    if role == IngredientRole.OTHER:
        return "cheaper alternative"
    return f"cheaper {role.value} alternative"


def priced_total(items: List[ShoppingListItem]) -> Decimal:
    return sum((i.estimated_price for i in items if i.estimated_price is not None), ZERO)


@dataclass
class SubstitutionPlan:
    """Outcome of budget enforcement."""

    items: List[ShoppingListItem]
    suggestions: List[SubstitutionSuggestion] = field(default_factory=list)
    total_cost: Decimal = ZERO
    budget_met: bool = True
    shortfall: Decimal = ZERO
    warning: Optional[BudgetInfeasibleError] = None


@dataclass(frozen=True)
class _Option:
    item_index: int
    candidate: SubstitutionCandidate
    alternative_price: Decimal
    savings: Decimal


class SubstitutionPlanner:
    """Selects cheaper role-equivalent substitutions to meet a budget cap."""

    def __init__(
        self,
        table: SubstitutionTable,
        pricing: PricingOracle,
        catalog: Optional[IngredientCatalog] = None,
        converter: Optional[UnitConverter] = None
    ):
        self.table = table
        self.pricing = pricing
        self.catalog = catalog or IngredientCatalog()
        self.converter = converter

    def plan(self, items: List[ShoppingListItem], budget_cap: Optional[Decimal]) -> SubstitutionPlan:
        """Apply substitutions until the list fits the budget cap.

        Args:
            items: Priced shopping list items (unpriced items are never touched)
            budget_cap: Maximum total cost, or None for no cap

        Returns:
            SubstitutionPlan with the (possibly) modified items, one
            suggestion per applied substitution and the budget flag
        """
        items = list(items)
        total = priced_total(items)

        if budget_cap is None or total <= budget_cap:
            return SubstitutionPlan(items=items, total_cost=total)

        overage = total - budget_cap
        logger.info("List costs $%s, over the $%s cap by $%s", total, budget_cap, overage)

        options = self.rank_options(items)
        suggestions: List[SubstitutionSuggestion] = []

        for option in options:
            if overage <= 0:
                break
            original = items[option.item_index]
            items[option.item_index] = self._substitute(original, option)
            overage -= option.savings
            suggestions.append(
                SubstitutionSuggestion(
                    original_ingredient_id=original.ingredient_id,
                    reason=option.candidate.reason or default_reason(original.role),
                    alternative_ingredient_id=option.candidate.alternative_id,
                    estimated_savings=option.savings,
                )
            )
            logger.debug(
                "Substituted %s -> %s saving $%s",
                original.ingredient_id, option.candidate.alternative_id, option.savings,
            )

        new_total = priced_total(items)
        if new_total <= budget_cap:
            return SubstitutionPlan(items=items, suggestions=suggestions, total_cost=new_total)

        warning = BudgetInfeasibleError(budget_cap, new_total)
        logger.warning("%s", warning)
        return SubstitutionPlan(
            items=items,
            suggestions=suggestions,
            total_cost=new_total,
            budget_met=False,
            shortfall=new_total - budget_cap,
            warning=warning,
        )

    def rank_options(self, items: List[ShoppingListItem]) -> List[_Option]:
        """Best option per item, ordered by savings desc then ingredient id."""
        options = []
        for index, item in enumerate(items):
            option = self._best_option(index, item)
            if option is not None:
                options.append(option)
        options.sort(key=lambda o: (-o.savings, items[o.item_index].ingredient_id, items[o.item_index].id))
        return options

    def _best_option(self, index: int, item: ShoppingListItem) -> Optional[_Option]:
        if item.estimated_price is None or item.estimated_price <= 0:
            return None
        if item.substituted_from is not None:
            return None

        best: Optional[_Option] = None
        for candidate in self.table.candidates(item.ingredient_id):
            if candidate.role != item.role:
                continue
            if candidate.relative_cost_factor >= 1:
                continue

            alternative_price = self._price_alternative(item, candidate)
            savings = item.estimated_price - alternative_price
            if savings <= 0:
                continue

            # Candidates come sorted by id, so strict > keeps the lowest id on ties
            if best is None or savings > best.savings:
                best = _Option(index, candidate, alternative_price, savings)
        return best

    def _price_alternative(self, item: ShoppingListItem, candidate: SubstitutionCandidate) -> Decimal:
        """Price the alternative for the same quantity.

        Falls back to the table's relative cost factor when the oracle
        cannot price it.
        """
        try:
            return self.pricing.estimate(candidate.alternative_id, item.quantity, item.unit)
        except PricingUnavailableError:
            return round_money(item.estimated_price * candidate.relative_cost_factor)

    def _substitute(self, item: ShoppingListItem, option: _Option) -> ShoppingListItem:
        alternative_id = option.candidate.alternative_id
        display_quantity, display_unit = self._display(alternative_id, item)
        return replace(
            item,
            ingredient_id=alternative_id,
            name=self.catalog.display_name(alternative_id),
            estimated_price=option.alternative_price,
            category=self.catalog.category_of(alternative_id) or item.category,
            substituted_from=item.name,
            pantry_deduction=None,
            substitution_reason=option.candidate.reason or default_reason(item.role),
            display_quantity=display_quantity,
            display_unit=display_unit,
        )

    def _display(self, alternative_id: str, item: ShoppingListItem) -> Tuple[Optional[Decimal], Optional[str]]:
        if self.converter is None:
            return item.display_quantity, item.display_unit
        try:
            base_quantity, base_unit = self.converter.to_base_unit(alternative_id, item.quantity, item.unit)
        except UnitMismatchError:
            return item.display_quantity, item.display_unit
        return self.converter.display(alternative_id, base_quantity, base_unit)
