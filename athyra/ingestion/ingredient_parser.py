"""Ingredient parser for turning recipe strings into IngredientRequirements."""
import re
from decimal import Decimal
from fractions import Fraction
from typing import Optional, Tuple

from athyra.data_layer.ingredient_db import IngredientCatalog
from athyra.data_layer.models import IngredientRequirement, IngredientRole
from athyra.ingestion.ingredient_normalizer import IngredientNormalizer
from athyra.ingestion.unit_converter import dimension_of_unit, normalize_unit


# Units that are recognised as units even though they have no generic
# conversion factor (they convert only through catalog count weights).
NON_CONVERTIBLE_UNITS = {
    "clove", "slice", "bunch", "head", "pinch", "sprig", "handful", "stalk", "dash",
}

UNICODE_FRACTIONS = {
    "½": "1/2", "⅓": "1/3", "⅔": "2/3", "¼": "1/4", "¾": "3/4",
    "⅛": "1/8", "⅜": "3/8", "⅝": "5/8", "⅞": "7/8",
}

QUANTITY_PATTERN = re.compile(
    r"^(?P<qty>\d+\s+\d+/\d+|\d+/\d+|\d+(?:\.\d+)?)\s*(?P<rest>.*)$"
)
TO_TASTE_PATTERN = re.compile(r"\s*,?\s*to\s+taste\s*", re.IGNORECASE)


def parse_quantity(text: str) -> Decimal:
    """Parse "2", "1.5", "1/2" or "1 1/2" into an exact Decimal.

    Raises:
        ValueError: If the text is not a supported quantity
    """
    text = text.strip()
    total = Fraction(0)
    for part in text.split():
        try:
            total += Fraction(part)
        except ZeroDivisionError:
            raise ValueError(f"Quantity has a zero denominator: {text}") from None
    if total < 0:
        raise ValueError(f"Quantity cannot be negative: {text}")
    return Decimal(total.numerator) / Decimal(total.denominator)


class IngredientParser:
    """Parser for ingredient strings into IngredientRequirement objects.

    Examples:
        "1.5 lbs chicken breast"   -> 1.5, "lb", "chicken breast"
        "2 large eggs"             -> 2, "large", "egg"
        "1 1/2 cups whole milk"    -> 1.5, "cup", "whole milk"
        "3 cloves garlic, minced"  -> 3, "clove", "garlic"
        "salt to taste"            -> 0, "to taste", "salt"
    """

    def __init__(
        self,
        normalizer: Optional[IngredientNormalizer] = None,
        catalog: Optional[IngredientCatalog] = None
    ):
        self.catalog = catalog or IngredientCatalog()
        self.normalizer = normalizer or IngredientNormalizer(aliases=self.catalog.aliases())

    def parse(self, ingredient_string: str, recipe_id: str = "") -> IngredientRequirement:
        """Parse ingredient string into an IngredientRequirement.

        Args:
            ingredient_string: Raw ingredient string (e.g., "200g rice")
            recipe_id: Id of the recipe the ingredient belongs to

        Raises:
            ValueError: If ingredient string is empty or names no ingredient
        """
        if not ingredient_string or not ingredient_string.strip():
            raise ValueError("Ingredient string cannot be empty")

        quantity, unit, name, is_to_taste = self.extract_quantity_and_unit(ingredient_string)

        ingredient_id = self.normalizer.canonical_id(name)
        if not ingredient_id:
            raise ValueError(f"No ingredient name in '{ingredient_string}'")

        catalog_entry = self.catalog.get(ingredient_id)
        role = catalog_entry.role if catalog_entry else IngredientRole.OTHER
        display_name = catalog_entry.name if catalog_entry else ingredient_id

        return IngredientRequirement(
            ingredient_id=ingredient_id,
            canonical_name=display_name,
            quantity=quantity,
            unit=unit,
            role=role,
            source_recipe_id=recipe_id,
            is_to_taste=is_to_taste,
        )

    def extract_quantity_and_unit(self, ingredient_string: str) -> Tuple[Decimal, str, str, bool]:
        """Extract quantity, unit, and remaining name from string.

        Returns:
            Tuple of (quantity, unit, name, is_to_taste)
        """
        text = ingredient_string.strip()
        for glyph, replacement in UNICODE_FRACTIONS.items():
            text = text.replace(glyph, f" {replacement}")
        # Parenthetical notes ("(about 2 lbs)") never name the ingredient
        text = re.sub(r"\([^)]*\)", " ", text)
        text = re.sub(r"\s+", " ", text).strip()

        if TO_TASTE_PATTERN.search(text):
            name = TO_TASTE_PATTERN.sub(" ", text).strip(" ,")
            match = QUANTITY_PATTERN.match(name)
            if match:
                name = match.group("rest")
            return Decimal("0"), "to taste", name, True

        match = QUANTITY_PATTERN.match(text)
        if not match:
            # No leading quantity: one of whatever it is
            return Decimal("1"), "each", text, False

        quantity = parse_quantity(match.group("qty"))
        unit, name = self._split_unit(match.group("rest"))
        return quantity, unit, name, False

    def _split_unit(self, rest: str) -> Tuple[str, str]:
        """Split a leading unit token (one or two words) off the name."""
        words = rest.split(" ")
        # Two-word units first ("fl oz", "fluid ounces")
        if len(words) > 2:
            unit = self._recognise_unit(" ".join(words[:2]))
            if unit:
                return unit, " ".join(words[2:])
        if len(words) > 1:
            unit = self._recognise_unit(words[0])
            if unit:
                return unit, " ".join(words[1:])
        return "each", rest

    @staticmethod
    def _recognise_unit(token: str) -> Optional[str]:
        unit = normalize_unit(token)
        if dimension_of_unit(unit) is not None or unit in NON_CONVERTIBLE_UNITS:
            return unit
        return None
