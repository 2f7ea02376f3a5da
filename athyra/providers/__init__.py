"""Provider abstraction layer for pricing, substitutions and recipe generation.

This package decouples the list builder and the generation service from
concrete data sources (local JSON/YAML vs. external services).
"""

from athyra.providers.pricing_provider import PricingOracle
from athyra.providers.local_pricing import CatalogPricingOracle
from athyra.providers.api_pricing import HttpPricingOracle
from athyra.providers.recipe_provider import ConceptGenerator, ConceptRequest, RecipeExpander
from athyra.providers.substitution_table import SubstitutionCandidate, SubstitutionTable

__all__ = [
    "PricingOracle",
    "CatalogPricingOracle",
    "HttpPricingOracle",
    "ConceptGenerator",
    "ConceptRequest",
    "RecipeExpander",
    "SubstitutionCandidate",
    "SubstitutionTable",
]
