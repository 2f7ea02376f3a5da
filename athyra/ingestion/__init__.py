"""Ingestion layer for turning raw ingredient text into canonical requirements."""

from athyra.ingestion.ingredient_normalizer import (
    IngredientNormalizer,
    NormalizationResult,
    singularize,
)

from athyra.ingestion.ingredient_parser import (
    IngredientParser,
    parse_quantity,
)

from athyra.ingestion.unit_converter import (
    UnitConverter,
    BASE_UNITS,
    normalize_unit,
)

__all__ = [
    # Ingredient name normalization
    "IngredientNormalizer",
    "NormalizationResult",
    "singularize",
    # Ingredient string parsing
    "IngredientParser",
    "parse_quantity",
    # Unit conversion
    "UnitConverter",
    "BASE_UNITS",
    "normalize_unit",
]
