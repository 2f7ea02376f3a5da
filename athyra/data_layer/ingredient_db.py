"""Ingredient catalog loaded from JSON.

The catalog is the static reference data the engine needs per ingredient:
its measurement dimension (and therefore base unit), recipe role, shopping
category, reference price and the unit it is usually bought in.

Expected JSON shape::

    {
      "ingredients": [
        {
          "id": "chicken breast",
          "name": "Chicken Breast",
          "aliases": ["chicken breasts", "chicken fillet"],
          "dimension": "mass",
          "role": "protein",
          "category": "meat",
          "price": "4.99",
          "price_unit": "lb",
          "purchase_unit": "lb",
          "count_weights": {"each": "174"}
        }
      ]
    }
"""
import json
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional

from athyra.data_layer.models import IngredientRole, to_decimal


logger = logging.getLogger(__name__)

DIMENSIONS = ("mass", "volume", "count")


@dataclass
class CatalogIngredient:
    """Reference data for one ingredient."""

    id: str
    name: str
    dimension: str  # "mass", "volume" or "count"
    role: IngredientRole = IngredientRole.OTHER
    category: str = "other"
    aliases: List[str] = field(default_factory=list)
    price: Optional[Decimal] = None  # Price per ``price_unit``
    price_unit: Optional[str] = None
    purchase_unit: Optional[str] = None
    count_weights: Dict[str, Decimal] = field(default_factory=dict)  # count unit -> base qty

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CatalogIngredient":
        dimension = data.get("dimension", "count")
        if dimension not in DIMENSIONS:
            raise ValueError(
                f"Ingredient '{data.get('id')}' has unknown dimension '{dimension}'"
            )
        price = data.get("price")
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            dimension=dimension,
            role=IngredientRole.from_string(data.get("role")),
            category=data.get("category", "other"),
            aliases=list(data.get("aliases", [])),
            price=None if price is None else to_decimal(price),
            price_unit=data.get("price_unit"),
            purchase_unit=data.get("purchase_unit"),
            count_weights={
                unit: to_decimal(weight)
                for unit, weight in data.get("count_weights", {}).items()
            },
        )


class IngredientCatalog:
    """In-memory ingredient catalog keyed by canonical id."""

    def __init__(self, ingredients: Optional[List[CatalogIngredient]] = None):
        self._ingredients: Dict[str, CatalogIngredient] = {}
        for ingredient in ingredients or []:
            self.add(ingredient)

    @classmethod
    def from_json(cls, json_path: str) -> "IngredientCatalog":
        """Load a catalog from a JSON file.

        Args:
            json_path: Path to JSON file containing ingredient data

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If an entry has an unknown dimension
        """
        with open(Path(json_path), "r") as f:
            data = json.load(f)

        ingredients = [CatalogIngredient.from_dict(d) for d in data.get("ingredients", [])]
        logger.debug("Loaded %d catalog ingredients from %s", len(ingredients), json_path)
        return cls(ingredients)

    def add(self, ingredient: CatalogIngredient) -> None:
        self._ingredients[ingredient.id.lower()] = ingredient

    def get(self, ingredient_id: str) -> Optional[CatalogIngredient]:
        """Get an ingredient by canonical id (case-insensitive)."""
        return self._ingredients.get(ingredient_id.lower())

    def __contains__(self, ingredient_id: str) -> bool:
        return ingredient_id.lower() in self._ingredients

    def all(self) -> List[CatalogIngredient]:
        return list(self._ingredients.values())

    def aliases(self) -> Dict[str, str]:
        """Alias name -> canonical id, for the normalizer."""
        mapping: Dict[str, str] = {}
        for ingredient in self._ingredients.values():
            for alias in ingredient.aliases:
                mapping[alias] = ingredient.id
            if ingredient.name.lower() != ingredient.id.lower():
                mapping[ingredient.name] = ingredient.id
        return mapping

    def role_of(self, ingredient_id: str) -> IngredientRole:
        ingredient = self.get(ingredient_id)
        return ingredient.role if ingredient else IngredientRole.OTHER

    def category_of(self, ingredient_id: str) -> Optional[str]:
        ingredient = self.get(ingredient_id)
        return ingredient.category if ingredient else None

    def display_name(self, ingredient_id: str) -> str:
        ingredient = self.get(ingredient_id)
        return ingredient.name if ingredient else ingredient_id
