"""Catalog-backed pricing oracle.

Prices come from the reference ``price``/``price_unit`` pair of each
catalog ingredient, so estimates are deterministic and need no network.
"""

from decimal import Decimal

from athyra.data_layer.exceptions import PricingUnavailableError, UnitMismatchError
from athyra.data_layer.ingredient_db import IngredientCatalog
from athyra.data_layer.models import round_money, to_decimal
from athyra.ingestion.unit_converter import UnitConverter
from athyra.providers.pricing_provider import PricingOracle


class CatalogPricingOracle(PricingOracle):
    """Prices ingredients from the catalog's reference prices.

    price = quantity expressed in ``price_unit`` * ``price``, rounded to
    cents half up.
    """

    def __init__(self, catalog: IngredientCatalog, converter: UnitConverter) -> None:
        self._catalog = catalog
        self._converter = converter

    def estimate(self, ingredient_id: str, quantity: Decimal, unit: str) -> Decimal:
        ingredient = self._catalog.get(ingredient_id)
        if ingredient is None:
            raise PricingUnavailableError(ingredient_id, "not in catalog")
        if ingredient.price is None or not ingredient.price_unit:
            raise PricingUnavailableError(ingredient_id, "catalog has no reference price")

        try:
            base_quantity, _ = self._converter.to_base_unit(ingredient_id, quantity, unit)
            priced_quantity = self._converter.from_base_unit(
                ingredient_id, base_quantity, ingredient.price_unit
            )
        except UnitMismatchError as e:
            raise PricingUnavailableError(ingredient_id, e.message) from e

        return round_money(to_decimal(priced_quantity) * ingredient.price)
