"""Unit canonicalization for ingredient quantities.

Every ingredient has exactly one base unit, chosen by its dimension:

    mass   -> "g"
    volume -> "ml"
    count  -> "each"

Conversion is a static lookup of multiplicative factors. There are no
density assumptions: a volume unit for a mass ingredient (1 cup flour) or
an unknown unit (1 bunch cilantro) raises UnitMismatchError, and callers
degrade to an unmerged line item instead of guessing.

The only cross-dimension conversions allowed are explicit per-ingredient
count weights from the catalog (e.g. 1 large egg = 50 g when egg is
stocked by mass).
"""

import logging
from decimal import Decimal
from typing import Dict, Optional, Tuple

from athyra.data_layer.exceptions import UnitMismatchError
from athyra.data_layer.ingredient_db import IngredientCatalog
from athyra.data_layer.models import round_quantity, to_decimal


logger = logging.getLogger(__name__)


# ============================================================================
# CONVERSION TABLES (factor = base units per one unit)
# ============================================================================

MASS_TO_GRAMS: Dict[str, Decimal] = {
    "g": Decimal("1"),
    "kg": Decimal("1000"),
    "mg": Decimal("0.001"),
    "oz": Decimal("28.3495"),
    "lb": Decimal("453.592"),
}

VOLUME_TO_ML: Dict[str, Decimal] = {
    "ml": Decimal("1"),
    "l": Decimal("1000"),
    "tsp": Decimal("4.92892"),
    "tbsp": Decimal("14.7868"),
    "fl oz": Decimal("29.5735"),
    "cup": Decimal("236.588"),
    "pint": Decimal("473.176"),
    "quart": Decimal("946.353"),
    "gallon": Decimal("3785.41"),
}

COUNT_TO_EACH: Dict[str, Decimal] = {
    "each": Decimal("1"),
    "piece": Decimal("1"),
    "whole": Decimal("1"),
    "small": Decimal("1"),
    "medium": Decimal("1"),
    "large": Decimal("1"),
    "can": Decimal("1"),
    "jar": Decimal("1"),
    "package": Decimal("1"),
    "dozen": Decimal("12"),
}

BASE_UNITS: Dict[str, str] = {
    "mass": "g",
    "volume": "ml",
    "count": "each",
}

CONVERSION_TABLES: Dict[str, Dict[str, Decimal]] = {
    "mass": MASS_TO_GRAMS,
    "volume": VOLUME_TO_ML,
    "count": COUNT_TO_EACH,
}

UNIT_ALIASES: Dict[str, str] = {
    "gram": "g", "grams": "g", "gr": "g",
    "kilogram": "kg", "kilograms": "kg", "kgs": "kg",
    "milligram": "mg", "milligrams": "mg",
    "ounce": "oz", "ounces": "oz",
    "pound": "lb", "pounds": "lb", "lbs": "lb",
    "milliliter": "ml", "milliliters": "ml", "millilitre": "ml", "millilitres": "ml",
    "liter": "l", "liters": "l", "litre": "l", "litres": "l",
    "teaspoon": "tsp", "teaspoons": "tsp", "tsps": "tsp",
    "tablespoon": "tbsp", "tablespoons": "tbsp", "tbsps": "tbsp", "tbs": "tbsp",
    "fluid ounce": "fl oz", "fluid ounces": "fl oz", "floz": "fl oz",
    "cups": "cup", "c": "cup",
    "pints": "pint", "pt": "pint",
    "quarts": "quart", "qt": "quart",
    "gallons": "gallon", "gal": "gallon",
    "ea": "each",
    "pieces": "piece", "pcs": "piece", "pc": "piece",
    "cans": "can",
    "jars": "jar",
    "packages": "package", "pkg": "package", "packs": "package", "pack": "package",
    "dozens": "dozen",
    "cloves": "clove",
    "slices": "slice",
    "bunches": "bunch",
    "heads": "head",
}


def normalize_unit(unit: Optional[str]) -> str:
    """Normalize a unit token to its canonical spelling.

    Unknown units are returned lowercased and stripped of a trailing period
    so that per-ingredient count weights can still match them.
    """
    if not unit:
        return "each"
    token = " ".join(unit.strip().lower().rstrip(".").split())
    token = token.replace("fl. oz", "fl oz")
    return UNIT_ALIASES.get(token, token)


def dimension_of_unit(unit: str) -> Optional[str]:
    """Return "mass", "volume" or "count" for a canonical unit, else None."""
    for dimension, table in CONVERSION_TABLES.items():
        if unit in table:
            return dimension
    return None


class UnitConverter:
    """Converts quantity/unit pairs into each ingredient's base unit.

    Ingredients missing from the catalog take the dimension of whatever
    unit is being converted. Nothing is remembered between calls, so the
    same requirement always converts the same way; an unknown ingredient
    seen in grams and in cups yields two base units.

    Usage:
        converter = UnitConverter(catalog)
        converter.to_base_unit("chicken breast", Decimal("2"), "lbs")
        # (Decimal("907.184"), "g")
    """

    def __init__(self, catalog: Optional[IngredientCatalog] = None):
        self.catalog = catalog or IngredientCatalog()

    def dimension(self, ingredient_id: str, hint_unit: Optional[str] = None) -> str:
        """Resolve the measurement dimension of an ingredient.

        Raises:
            UnitMismatchError: If the ingredient is unknown and the hint unit
                does not identify a dimension
        """
        ingredient = self.catalog.get(ingredient_id)
        if ingredient is not None:
            return ingredient.dimension

        unit = normalize_unit(hint_unit)
        dimension = dimension_of_unit(unit)
        if dimension is None:
            raise UnitMismatchError(ingredient_id, hint_unit or "")
        logger.debug("Inferred dimension %s for '%s' from unit '%s'", dimension, ingredient_id, unit)
        return dimension

    def base_unit(self, ingredient_id: str, hint_unit: Optional[str] = None) -> str:
        return BASE_UNITS[self.dimension(ingredient_id, hint_unit)]

    def factor(self, ingredient_id: str, unit: str) -> Decimal:
        """Base units per one ``unit`` of this ingredient.

        Raises:
            UnitMismatchError: If the unit cannot be converted to the
                ingredient's base unit
        """
        canonical = normalize_unit(unit)
        dimension = self.dimension(ingredient_id, canonical)
        table = CONVERSION_TABLES[dimension]
        if canonical in table:
            return table[canonical]

        ingredient = self.catalog.get(ingredient_id)
        if ingredient is not None and canonical in ingredient.count_weights:
            return ingredient.count_weights[canonical]

        raise UnitMismatchError(ingredient_id, unit, BASE_UNITS[dimension])

    def to_base_unit(self, ingredient_id: str, quantity, unit: str) -> Tuple[Decimal, str]:
        """Convert a quantity to the ingredient's base unit.

        Args:
            ingredient_id: Canonical ingredient id
            quantity: Amount in ``unit`` (Decimal, int, float or numeric str)
            unit: Unit as written (aliases accepted)

        Returns:
            Tuple of (quantity in base unit, base unit)

        Raises:
            UnitMismatchError: If the unit cannot be converted
        """
        factor = self.factor(ingredient_id, unit)
        return to_decimal(quantity) * factor, self.base_unit(ingredient_id, unit)

    def from_base_unit(self, ingredient_id: str, quantity, unit: str) -> Decimal:
        """Express a base-unit quantity in ``unit`` (exact, unrounded)."""
        return to_decimal(quantity) / self.factor(ingredient_id, unit)

    def can_convert(self, ingredient_id: str, unit: str) -> bool:
        try:
            self.factor(ingredient_id, unit)
        except UnitMismatchError:
            return False
        return True

    def display(self, ingredient_id: str, base_quantity, base_unit: str) -> Tuple[Decimal, str]:
        """Express a base-unit quantity in the ingredient's purchase unit.

        Falls back to the base unit when the catalog names no purchase unit
        or the purchase unit does not convert.
        """
        ingredient = self.catalog.get(ingredient_id)
        purchase_unit = ingredient.purchase_unit if ingredient else None
        if purchase_unit and self.can_convert(ingredient_id, purchase_unit):
            quantity = self.from_base_unit(ingredient_id, base_quantity, purchase_unit)
            return round_quantity(quantity), normalize_unit(purchase_unit)
        return round_quantity(to_decimal(base_quantity)), base_unit
