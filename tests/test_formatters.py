"""Tests for JSON and Markdown output formatting."""
import json
from decimal import Decimal

import pytest

from athyra.data_layer.exceptions import ConceptNotFoundError
from athyra.data_layer.models import (
    IngredientRequirement,
    IngredientRole,
    MealConcept,
    PantryEntry,
    SubstitutionSuggestion,
)
from athyra.data_layer.pantry_ledger import PantryLedger
from athyra.output.formatters import (
    format_concept_json,
    format_generation_json,
    format_generation_json_string,
    format_generation_markdown,
    format_money,
    format_quantity,
    format_requirement_string,
    format_suggestion_json,
)
from athyra.planning.generation_service import GenerationResult
from athyra.planning.list_builder import ShoppingListBuilder

from conftest import make_recipe, requirement


@pytest.fixture
def result(converter, pricing, catalog, pantry_repo):
    """1 lb + 1.5 lb chicken with 1 lb on hand, plus rice and unpriced cilantro."""
    pantry_repo.save("user-1", PantryEntry(id="p1", ingredient_id="chicken breast", name="Chicken Breast",
                                           available_quantity=Decimal("1"), unit="lb"))
    recipes = [
        make_recipe("r1-recipe", [
            requirement("chicken breast", 1, "lb", "r1-recipe", IngredientRole.PROTEIN,
                        canonical_name="Chicken Breast"),
            requirement("salt", 0, "to taste", "r1-recipe", canonical_name="Salt", is_to_taste=True),
        ], name="Lemon Chicken"),
        make_recipe("r2-recipe", [
            requirement("chicken breast", "1.5", "lb", "r2-recipe", IngredientRole.PROTEIN,
                        canonical_name="Chicken Breast"),
            requirement("white rice", 2, "cup", "r2-recipe", canonical_name="White Rice"),
            requirement("cilantro", 1, "bunch", "r2-recipe"),
        ], name="Stir Fry"),
    ]
    recipes[0].instructions = ["Season.", "Roast."]
    builder = ShoppingListBuilder(converter, pricing, catalog=catalog, id_factory=lambda: "list1")
    build = builder.build("user-1", recipes, ledger=PantryLedger.snapshot(pantry_repo, "user-1", converter))
    return GenerationResult(
        recipes=build.recipes,
        shopping_list=build.shopping_list,
        ingredient_costs=build.ingredient_costs,
        concept_failures=[ConceptNotFoundError("c9", "user-1")],
        already_handled=["c0"],
        warnings=build.warnings,
    )


class TestSmallFormatters:
    """Tests for helper formatters."""

    def test_format_money(self):
        assert format_money(Decimal("6")) == "$6.00"
        assert format_money(Decimal("20.5")) == "$20.50"

    @pytest.mark.parametrize("quantity,text", [
        (Decimal("1.500"), "1.5"),
        (Decimal("3"), "3"),
        (Decimal("0.81571"), "0.816"),
        (Decimal("10"), "10"),
    ])
    def test_format_quantity(self, quantity, text):
        assert format_quantity(quantity) == text

    def test_format_requirement_string(self):
        assert format_requirement_string(
            IngredientRequirement("chicken breast", "Chicken Breast", Decimal("1.5"), "lb")
        ) == "1.5 lb Chicken Breast"
        assert format_requirement_string(
            IngredientRequirement("egg", "Eggs", Decimal("2"), "each")
        ) == "2 Eggs"
        assert format_requirement_string(
            IngredientRequirement("salt", "Salt", Decimal("0"), "to taste", is_to_taste=True)
        ) == "Salt to taste"

    def test_format_suggestion_json(self):
        suggestion = SubstitutionSuggestion("beef sirloin", "cheaper protein alternative",
                                            "chicken thigh", Decimal("20"))
        assert format_suggestion_json(suggestion) == {
            "item": "beef sirloin",
            "reason": "cheaper protein alternative",
            "alternative": "chicken thigh",
            "savings": "$20.00",
        }

    def test_format_concept_json(self):
        data = format_concept_json(MealConcept(id="c1", user_id="u1", name="X"))
        assert data["status"] == "pending"


class TestGenerationJson:
    """Tests for the recipe detail response."""

    def test_shopping_list_in_purchase_units(self, result):
        data = format_generation_json(result)
        chicken = data["shopping_list"]["items"][0]

        assert chicken["name"] == "Chicken Breast"
        assert chicken["quantity"] == 1.5
        assert chicken["unit"] == "lb"
        assert chicken["estimated_price"] == 6.0
        assert chicken["pantry_deduction"] == 1.0
        assert chicken["from_recipes"] == ["Lemon Chicken", "Stir Fry"]
        assert chicken["id"] == "list1-0"

    def test_totals(self, result):
        data = format_generation_json(result)
        assert data["shopping_list"]["total_cost"] == 6.82
        assert data["pantry_savings"] == 4.0
        assert data["shopping_list"]["pantry_savings"] == 4.0
        assert data["budget_met"] is True
        assert data["unpriced_items"] == ["cilantro"]

    def test_unpriced_item_has_null_price(self, result):
        cilantro = format_generation_json(result)["shopping_list"]["items"][2]
        assert cilantro["estimated_price"] is None
        assert cilantro["unit"] == "bunch"

    def test_recipe_ingredient_costs(self, result):
        recipe = format_generation_json(result)["recipes"][0]
        assert recipe["id"] == "r1-recipe"
        chicken, salt = recipe["ingredients"]
        assert chicken["estimated_cost"] == 4.0
        assert chicken["source"] == "shopping"
        assert chicken["category"] == "meat"
        assert salt["is_to_taste"] is True
        assert salt["estimated_cost"] is None

    def test_failures_and_handled(self, result):
        data = format_generation_json(result)
        assert data["already_handled"] == ["c0"]
        assert data["concept_failures"][0]["error_code"] == "CONCEPT_NOT_FOUND"
        assert [w["error_code"] for w in data["warnings"]] == ["UNIT_MISMATCH", "PRICING_UNAVAILABLE"]

    def test_json_string_is_valid(self, result):
        parsed = json.loads(format_generation_json_string(result))
        assert parsed["substitution_suggestions"] == []

    def test_empty_result(self):
        data = format_generation_json(GenerationResult(already_handled=["c1"]))
        assert data["recipes"] == []
        assert data["shopping_list"]["items"] == []
        assert data["shopping_list"]["id"] is None
        assert data["unpriced_items"] == []


class TestGenerationMarkdown:
    """Tests for the Markdown rendering."""

    def test_sections(self, result):
        text = format_generation_markdown(result)
        assert text.startswith("# Recipes & Shopping List")
        assert "## Recipe 1: Lemon Chicken" in text
        assert "## Recipe 2: Stir Fry" in text
        assert "1. Season." in text
        assert "- Salt to taste" in text

    def test_shopping_lines(self, result):
        text = format_generation_markdown(result)
        assert "- [ ] 1.5 lb Chicken Breast: $6.00" in text
        assert "- [ ] 1 bunch cilantro: price unknown" in text
        assert "**Total:** $6.82" in text
        assert "**Pantry Savings:** $4.00" in text

    def test_skipped_and_warnings(self, result):
        text = format_generation_markdown(result)
        assert "- `c0`: already handled" in text
        assert "[CONCEPT_NOT_FOUND]" in text
        assert "- No price available for cilantro" in text

    def test_budget_and_substitutions(self, result):
        result.shopping_list.budget_cap = Decimal("5")
        result.shopping_list.budget_met = False
        result.shopping_list.shortfall = Decimal("1.82")
        result.shopping_list.suggestions = [
            SubstitutionSuggestion("chicken breast", "cheaper protein alternative", "chicken thigh", Decimal("3"))
        ]
        text = format_generation_markdown(result)
        assert "**Budget:** $5.00 (over by $1.82)" in text
        assert "- chicken breast -> chicken thigh: cheaper protein alternative (saves $3.00)" in text

    def test_from_pantry_marker(self, converter, pricing, catalog, pantry_repo):
        pantry_repo.save("user-1", PantryEntry(id="p1", ingredient_id="egg", name="Eggs",
                                               available_quantity=Decimal("12"), unit="each"))
        recipes = [make_recipe("r1-recipe", [requirement("egg", 2, "each", "r1-recipe", canonical_name="Eggs")])]
        builder = ShoppingListBuilder(converter, pricing, catalog=catalog)
        build = builder.build("user-1", recipes, ledger=PantryLedger.snapshot(pantry_repo, "user-1", converter))
        result = GenerationResult(recipes=build.recipes, shopping_list=build.shopping_list,
                                  ingredient_costs=build.ingredient_costs)
        assert "- 2 Eggs (from pantry)" in format_generation_markdown(result)

    def test_no_list(self):
        text = format_generation_markdown(GenerationResult())
        assert "_No shopping list was generated._" in text
