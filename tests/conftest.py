"""Shared fixtures: a small priced catalog and the components built on it."""

from decimal import Decimal

import pytest

from athyra.data_layer.ingredient_db import CatalogIngredient, IngredientCatalog
from athyra.data_layer.models import IngredientRequirement, IngredientRole, Recipe
from athyra.data_layer.repositories import (
    ConceptRepository,
    PantryRepository,
    RecipeRepository,
    ShoppingListRepository,
)
from athyra.data_layer.storage import InMemoryStore
from athyra.ingestion.ingredient_normalizer import IngredientNormalizer
from athyra.ingestion.ingredient_parser import IngredientParser
from athyra.ingestion.unit_converter import UnitConverter
from athyra.providers.local_pricing import CatalogPricingOracle


LB_IN_GRAMS = Decimal("453.592")


def make_catalog() -> IngredientCatalog:
    return IngredientCatalog([
        CatalogIngredient(
            id="chicken breast", name="Chicken Breast", dimension="mass",
            role=IngredientRole.PROTEIN, category="meat", aliases=["chicken breast fillet"],
            price=Decimal("4.00"), price_unit="lb", purchase_unit="lb",
        ),
        CatalogIngredient(
            id="chicken thigh", name="Chicken Thighs", dimension="mass",
            role=IngredientRole.PROTEIN, category="meat",
            price=Decimal("2.00"), price_unit="lb", purchase_unit="lb",
        ),
        CatalogIngredient(
            id="beef sirloin", name="Beef Sirloin", dimension="mass",
            role=IngredientRole.PROTEIN, category="meat", aliases=["sirloin"],
            price=Decimal("12.00"), price_unit="lb", purchase_unit="lb",
        ),
        CatalogIngredient(
            id="white rice", name="White Rice", dimension="mass",
            role=IngredientRole.CARB, category="grains",
            price=Decimal("1.00"), price_unit="lb", purchase_unit="lb",
            count_weights={"cup": Decimal("185")},
        ),
        CatalogIngredient(
            id="egg", name="Eggs", dimension="count",
            role=IngredientRole.PROTEIN, category="dairy",
            price=Decimal("3.60"), price_unit="dozen", purchase_unit="dozen",
        ),
        CatalogIngredient(
            id="olive oil", name="Olive Oil", dimension="volume",
            role=IngredientRole.OTHER, category="pantry",
            price=Decimal("0.50"), price_unit="fl oz", purchase_unit="fl oz",
        ),
        CatalogIngredient(
            id="broccoli", name="Broccoli", dimension="mass",
            role=IngredientRole.VEGETABLE, category="produce",
            price=Decimal("2.00"), price_unit="lb", purchase_unit="lb",
        ),
        CatalogIngredient(
            id="salt", name="Salt", dimension="mass", category="pantry",
        ),
    ])


def requirement(ingredient_id, quantity, unit, recipe_id, role=IngredientRole.OTHER, **kwargs):
    return IngredientRequirement(
        ingredient_id=ingredient_id,
        canonical_name=kwargs.pop("canonical_name", ingredient_id),
        quantity=Decimal(str(quantity)),
        unit=unit,
        role=role,
        source_recipe_id=recipe_id,
        **kwargs
    )


def make_recipe(recipe_id, ingredients, name=None, user_id="user-1", concept_id=None) -> Recipe:
    return Recipe(
        id=recipe_id,
        user_id=user_id,
        name=name or recipe_id,
        concept_id=concept_id or recipe_id.replace("-recipe", ""),
        ingredients=ingredients,
    )


@pytest.fixture
def catalog():
    return make_catalog()


@pytest.fixture
def converter(catalog):
    return UnitConverter(catalog)


@pytest.fixture
def normalizer(catalog):
    return IngredientNormalizer(aliases=catalog.aliases())


@pytest.fixture
def parser(normalizer, catalog):
    return IngredientParser(normalizer, catalog)


@pytest.fixture
def pricing(catalog, converter):
    return CatalogPricingOracle(catalog, converter)


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def concept_repo(store):
    return ConceptRepository(store)


@pytest.fixture
def recipe_repo(store):
    return RecipeRepository(store)


@pytest.fixture
def pantry_repo(store):
    return PantryRepository(store)


@pytest.fixture
def list_repo(store):
    return ShoppingListRepository(store)
