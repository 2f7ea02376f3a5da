"""Tests for parsing recipe ingredient strings."""
from decimal import Decimal

import pytest

from athyra.data_layer.models import IngredientRole
from athyra.ingestion.ingredient_parser import IngredientParser, parse_quantity


class TestParseQuantity:
    """Tests for quantity parsing."""

    @pytest.mark.parametrize("text,expected", [
        ("2", Decimal("2")),
        ("1.5", Decimal("1.5")),
        ("1/2", Decimal("0.5")),
        ("1 1/2", Decimal("1.5")),
        ("3/4", Decimal("0.75")),
    ])
    def test_supported_forms(self, text, expected):
        assert parse_quantity(text) == expected

    def test_garbage_raises(self):
        with pytest.raises(ValueError):
            parse_quantity("lots")

    def test_zero_denominator_raises_value_error(self):
        with pytest.raises(ValueError, match="zero denominator"):
            parse_quantity("1/0")


class TestIngredientParser:
    """Tests for IngredientParser against the shared catalog."""

    def test_weight_with_plural_unit(self, parser):
        """'1.5 lbs chicken breast' parses to 1.5 lb of a catalog protein."""
        req = parser.parse("1.5 lbs chicken breast", recipe_id="r1")
        assert req.quantity == Decimal("1.5")
        assert req.unit == "lb"
        assert req.ingredient_id == "chicken breast"
        assert req.canonical_name == "Chicken Breast"
        assert req.role == IngredientRole.PROTEIN
        assert req.source_recipe_id == "r1"

    def test_size_word_as_count_unit(self, parser):
        """'2 large eggs' keeps 'large' as a count unit."""
        req = parser.parse("2 large eggs")
        assert req.quantity == Decimal("2")
        assert req.unit == "large"
        assert req.ingredient_id == "egg"
        assert req.canonical_name == "Eggs"

    def test_mixed_fraction(self, parser):
        req = parser.parse("1 1/2 cups white rice")
        assert req.quantity == Decimal("1.5")
        assert req.unit == "cup"
        assert req.ingredient_id == "white rice"
        assert req.role == IngredientRole.CARB

    def test_unicode_fraction(self, parser):
        req = parser.parse("½ cup olive oil")
        assert req.quantity == Decimal("0.5")
        assert req.unit == "cup"
        assert req.ingredient_id == "olive oil"

    def test_two_word_unit(self, parser):
        req = parser.parse("2 fl oz olive oil")
        assert req.unit == "fl oz"
        assert req.ingredient_id == "olive oil"

    def test_no_space_before_unit(self, parser):
        req = parser.parse("200g rice")
        assert req.quantity == Decimal("200")
        assert req.unit == "g"
        assert req.ingredient_id == "rice"

    def test_count_only_unit_kept(self, parser):
        """Units without a generic factor ('clove') are still recognised."""
        req = parser.parse("3 cloves garlic, minced")
        assert req.quantity == Decimal("3")
        assert req.unit == "clove"
        assert req.ingredient_id == "garlic"

    def test_to_taste(self, parser):
        req = parser.parse("salt to taste")
        assert req.is_to_taste is True
        assert req.quantity == Decimal("0")
        assert req.ingredient_id == "salt"

    def test_parenthetical_ignored(self, parser):
        req = parser.parse("1 (14 oz) can tomato sauce")
        assert req.quantity == Decimal("1")
        assert req.unit == "can"
        assert req.ingredient_id == "tomato sauce"

    def test_no_quantity_defaults_to_one_each(self, parser):
        req = parser.parse("avocado")
        assert req.quantity == Decimal("1")
        assert req.unit == "each"
        assert req.ingredient_id == "avocado"

    def test_bare_count(self, parser):
        req = parser.parse("2 lemons")
        assert req.unit == "each"
        assert req.ingredient_id == "lemon"

    def test_unknown_ingredient_role_is_other(self, parser):
        req = parser.parse("1 bunch cilantro")
        assert req.unit == "bunch"
        assert req.role == IngredientRole.OTHER
        assert req.canonical_name == "cilantro"

    def test_alias_resolved(self, parser):
        req = parser.parse("8 oz sirloin")
        assert req.ingredient_id == "beef sirloin"
        assert req.unit == "oz"

    def test_empty_string_raises(self, parser):
        with pytest.raises(ValueError, match="cannot be empty"):
            parser.parse("   ")

    def test_default_parser_without_catalog(self):
        """A parser with no catalog still normalizes names."""
        req = IngredientParser().parse("2 large tomatoes")
        assert req.ingredient_id == "tomato"
        assert req.role == IngredientRole.OTHER
