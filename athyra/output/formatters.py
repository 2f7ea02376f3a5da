"""Formatters for generation output (JSON and Markdown)."""

import json
from decimal import Decimal
from typing import Any, Dict, List, Optional

from athyra.data_layer.exceptions import errors_to_dicts
from athyra.data_layer.models import (
    IngredientRequirement,
    MealConcept,
    Recipe,
    ShoppingList,
    ShoppingListItem,
    SubstitutionSuggestion,
    round_quantity,
)
from athyra.planning.generation_service import GenerationResult
from athyra.planning.list_builder import SOURCE_SHOPPING, IngredientCost


def _number(value: Optional[Decimal]) -> Optional[float]:
    return None if value is None else float(value)


def format_money(amount: Decimal) -> str:
    """Format a money amount like "$12.50"."""
    return f"${amount:.2f}"


def format_quantity(quantity: Decimal) -> str:
    """Format a quantity without trailing zeros (e.g., "2.5", "3")."""
    text = f"{round_quantity(quantity):f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def format_requirement_string(requirement: IngredientRequirement) -> str:
    """Format a recipe ingredient (e.g., "1.5 lb chicken breast").

    Returns "salt to taste" style strings for to-taste ingredients.
    """
    if requirement.is_to_taste:
        return f"{requirement.canonical_name} to taste"
    unit = requirement.unit if requirement.unit and requirement.unit != "each" else ""
    if unit:
        return f"{format_quantity(requirement.quantity)} {unit} {requirement.canonical_name}"
    return f"{format_quantity(requirement.quantity)} {requirement.canonical_name}"


def format_concept_json(concept: MealConcept) -> Dict[str, Any]:
    return concept.to_dict()


def format_item_json(item: ShoppingListItem) -> Dict[str, Any]:
    """Shopping list item in the purchase unit.

    The pantry deduction is scaled into the same unit as the quantity.
    """
    quantity = item.display_quantity if item.display_quantity is not None else item.quantity
    unit = item.display_unit or item.unit

    deduction = item.pantry_deduction
    if deduction is not None and item.quantity > 0 and item.display_quantity is not None:
        deduction = round_quantity(deduction * item.display_quantity / item.quantity)

    return {
        "id": item.id,
        "ingredient_id": item.ingredient_id,
        "name": item.name,
        "quantity": float(quantity),
        "unit": unit,
        "purchased": item.purchased,
        "category": item.category,
        "estimated_price": _number(item.estimated_price),
        "from_recipes": list(item.from_recipes),
        "substituted_from": item.substituted_from,
        "substitution_reason": item.substitution_reason,
        "pantry_deduction": _number(deduction),
    }


def format_shopping_list_json(shopping_list: ShoppingList) -> Dict[str, Any]:
    return {
        "id": shopping_list.id,
        "total_cost": float(shopping_list.total_cost),
        "pantry_savings": float(shopping_list.pantry_savings),
        "items": [format_item_json(item) for item in shopping_list.items],
        "budget_cap": _number(shopping_list.budget_cap),
        "budget_met": shopping_list.budget_met,
        "shortfall": float(shopping_list.shortfall),
        "unpriced_items": shopping_list.unpriced_items,
    }


def format_suggestion_json(suggestion: SubstitutionSuggestion) -> Dict[str, Any]:
    return {
        "item": suggestion.original_ingredient_id,
        "reason": suggestion.reason,
        "alternative": suggestion.alternative_ingredient_id,
        "savings": format_money(suggestion.estimated_savings),
    }


def format_recipe_json(
    recipe: Recipe,
    costs: Optional[List[IngredientCost]] = None
) -> Dict[str, Any]:
    """Recipe with per-ingredient source and cost.

    Args:
        recipe: The recipe
        costs: Entries aligned with ``recipe.ingredients``; when absent
            every ingredient is reported as coming from shopping
    """
    ingredients = []
    for index, requirement in enumerate(recipe.ingredients):
        cost = costs[index] if costs and index < len(costs) else None
        ingredients.append({
            "name": requirement.canonical_name,
            "quantity": float(requirement.quantity),
            "unit": requirement.unit,
            "category": cost.category if cost else None,
            "source": cost.source if cost else SOURCE_SHOPPING,
            "estimated_cost": _number(cost.estimated_cost) if cost else None,
            "is_to_taste": requirement.is_to_taste,
        })

    return {
        "id": recipe.id,
        "user_id": recipe.user_id,
        "concept_id": recipe.concept_id,
        "name": recipe.name,
        "cook_time": recipe.cook_time,
        "servings": recipe.servings,
        "calories": recipe.calories,
        "ingredients": ingredients,
        "main_ingredients": list(recipe.main_ingredients),
        "instructions": list(recipe.instructions),
        "tags": list(recipe.tags),
        "cuisine": recipe.cuisine,
        "prep_complexity": recipe.prep_complexity,
        "generation_method": recipe.generation_method,
        "created_at": recipe.created_at,
    }


def format_generation_json(result: GenerationResult) -> Dict[str, Any]:
    """Format a GenerationResult as a RecipeDetailResponse.

    Returns:
        Dictionary ready for JSON serialization
    """
    if result.shopping_list is not None:
        shopping_list = format_shopping_list_json(result.shopping_list)
    else:
        shopping_list = {"id": None, "total_cost": 0.0, "pantry_savings": 0.0, "items": []}

    return {
        "recipes": [
            format_recipe_json(recipe, result.ingredient_costs.get(recipe.id))
            for recipe in result.recipes
        ],
        "shopping_list": shopping_list,
        "substitution_suggestions": [format_suggestion_json(s) for s in result.suggestions],
        "pantry_savings": float(result.pantry_savings),
        "budget_met": result.budget_met,
        "shortfall": float(result.shortfall),
        "unpriced_items": result.shopping_list.unpriced_items if result.shopping_list else [],
        "concept_failures": errors_to_dicts(result.concept_failures),
        "already_handled": list(result.already_handled),
        "warnings": errors_to_dicts(result.warnings),
    }


def format_generation_json_string(result: GenerationResult, indent: int = 2) -> str:
    return json.dumps(format_generation_json(result), indent=indent)


def format_generation_markdown(result: GenerationResult) -> str:
    """Format a GenerationResult as Markdown.

    Args:
        result: GenerationResult from a generation batch

    Returns:
        Formatted Markdown string
    """
    lines = ["# Recipes & Shopping List\n"]

    if result.concept_failures or result.already_handled:
        lines.append("## Skipped Concepts\n")
        for concept_id in result.already_handled:
            lines.append(f"- `{concept_id}`: already handled")
        for error in result.concept_failures:
            lines.append(f"- {error}")
        lines.append("")

    for index, recipe in enumerate(result.recipes, 1):
        lines.append(f"## Recipe {index}: {recipe.name}")
        lines.append(f"**Cooking Time:** {recipe.cook_time} minutes")
        lines.append(f"**Servings:** {recipe.servings}")
        lines.append("")

        lines.append("### Ingredients")
        costs = result.ingredient_costs.get(recipe.id, [])
        for i, requirement in enumerate(recipe.ingredients):
            line = f"- {format_requirement_string(requirement)}"
            if i < len(costs) and costs[i].source != SOURCE_SHOPPING:
                line += " (from pantry)"
            lines.append(line)
        lines.append("")

        if recipe.instructions:
            lines.append("### Instructions")
            for step, instruction in enumerate(recipe.instructions, 1):
                lines.append(f"{step}. {instruction}")
            lines.append("")

    shopping_list = result.shopping_list
    if shopping_list is None:
        lines.append("_No shopping list was generated._")
        return "\n".join(lines)

    lines.append("## Shopping List\n")
    for item in shopping_list.items:
        quantity = item.display_quantity if item.display_quantity is not None else item.quantity
        unit = item.display_unit or item.unit
        price = format_money(item.estimated_price) if item.estimated_price is not None else "price unknown"
        line = f"- [ ] {format_quantity(quantity)} {unit} {item.name}: {price}"
        if item.substituted_from:
            line += f" (substituted from {item.substituted_from})"
        lines.append(line)
    lines.append("")

    lines.append(f"**Total:** {format_money(shopping_list.total_cost)}")
    lines.append(f"**Pantry Savings:** {format_money(shopping_list.pantry_savings)}")
    if shopping_list.budget_cap is not None:
        status = "met" if shopping_list.budget_met else f"over by {format_money(shopping_list.shortfall)}"
        lines.append(f"**Budget:** {format_money(shopping_list.budget_cap)} ({status})")
    lines.append("")

    if shopping_list.suggestions:
        lines.append("## Substitutions")
        for suggestion in shopping_list.suggestions:
            lines.append(
                f"- {suggestion.original_ingredient_id} -> {suggestion.alternative_ingredient_id}: "
                f"{suggestion.reason} (saves {format_money(suggestion.estimated_savings)})"
            )
        lines.append("")

    if shopping_list.unpriced_items:
        lines.append("## Warnings")
        for ingredient_id in shopping_list.unpriced_items:
            lines.append(f"- No price available for {ingredient_id}")
        lines.append("")

    return "\n".join(lines)
