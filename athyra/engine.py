"""Wires the engine's components together from an EngineConfig."""

import logging
from dataclasses import dataclass
from typing import Optional

from athyra.config import EngineConfig
from athyra.data_layer.ingredient_db import IngredientCatalog
from athyra.data_layer.repositories import (
    ConceptRepository,
    PantryRepository,
    RecipeRepository,
    ShoppingListRepository,
)
from athyra.data_layer.storage import InMemoryStore, JsonFileStore, KeyValueStore
from athyra.ingestion.ingredient_normalizer import IngredientNormalizer
from athyra.ingestion.ingredient_parser import IngredientParser
from athyra.ingestion.unit_converter import UnitConverter
from athyra.lifecycle.concept_lifecycle import ConceptLifecycle
from athyra.lifecycle.locks import UserLockRegistry
from athyra.planning.generation_service import RecipeGenerationService
from athyra.planning.list_builder import ShoppingListBuilder
from athyra.planning.substitution_planner import SubstitutionPlanner
from athyra.providers.api_pricing import HttpPricingOracle
from athyra.providers.library_provider import LibraryConceptGenerator, LibraryRecipeExpander, RecipeLibrary
from athyra.providers.local_pricing import CatalogPricingOracle
from athyra.providers.pricing_provider import PricingOracle
from athyra.providers.recipe_provider import ConceptGenerator, RecipeExpander
from athyra.providers.substitution_table import SubstitutionTable


logger = logging.getLogger(__name__)


@dataclass
class Engine:
    """Fully wired engine components shared by the CLI and the server."""

    config: EngineConfig
    catalog: IngredientCatalog
    converter: UnitConverter
    parser: IngredientParser
    concepts: ConceptRepository
    recipes: RecipeRepository
    pantry: PantryRepository
    shopping_lists: ShoppingListRepository
    lifecycle: ConceptLifecycle
    generator: ConceptGenerator
    expander: RecipeExpander
    builder: ShoppingListBuilder
    service: RecipeGenerationService


def _load_catalog(config: EngineConfig) -> IngredientCatalog:
    path = config.resolve(config.catalog_path)
    if not path.exists():
        logger.warning("Ingredient catalog %s not found; starting with an empty catalog", path)
        return IngredientCatalog()
    return IngredientCatalog.from_json(str(path))


def _load_library(config: EngineConfig) -> RecipeLibrary:
    path = config.resolve(config.recipes_path)
    if not path.exists():
        logger.warning("Recipe library %s not found; no concepts can be generated", path)
        return RecipeLibrary()
    return RecipeLibrary.from_json(str(path))


def _load_substitutions(config: EngineConfig, normalizer: IngredientNormalizer) -> SubstitutionTable:
    path = config.resolve(config.substitutions_path)
    if not path.exists():
        logger.warning("Substitution table %s not found; budget caps cannot be enforced", path)
        return SubstitutionTable()
    return SubstitutionTable.from_yaml(str(path), normalizer)


def _pricing_oracle(
    config: EngineConfig,
    catalog: IngredientCatalog,
    converter: UnitConverter
) -> PricingOracle:
    if config.pricing.backend == "http":
        return HttpPricingOracle(
            base_url=config.pricing.base_url or "",
            api_key=config.pricing.api_key,
            timeout=config.pricing.timeout,
            memo_size=config.pricing.memo_size,
            memo_ttl=config.pricing.memo_ttl,
        )
    return CatalogPricingOracle(catalog, converter)


def build_engine(config: EngineConfig, store: Optional[KeyValueStore] = None) -> Engine:
    """Build every component from configuration.

    Args:
        config: Engine configuration
        store: Optional store override (tests); otherwise JSON files under
            ``storage_dir`` or in-memory when it is unset

    Raises:
        FileNotFoundError / ValueError: If a configured data file is malformed
    """
    if store is None:
        store = JsonFileStore(config.storage_dir) if config.storage_dir else InMemoryStore()

    catalog = _load_catalog(config)
    normalizer = IngredientNormalizer(aliases=catalog.aliases())
    converter = UnitConverter(catalog)
    parser = IngredientParser(normalizer, catalog)
    library = _load_library(config)
    substitutions = _load_substitutions(config, normalizer)
    pricing = _pricing_oracle(config, catalog, converter)

    concepts = ConceptRepository(store)
    recipes = RecipeRepository(store)
    pantry = PantryRepository(store)
    shopping_lists = ShoppingListRepository(store)

    expander = LibraryRecipeExpander(library, parser)
    builder = ShoppingListBuilder(
        converter,
        pricing,
        planner=SubstitutionPlanner(substitutions, pricing, catalog, converter),
        catalog=catalog,
    )
    service = RecipeGenerationService(
        concepts,
        recipes,
        pantry,
        shopping_lists,
        expander,
        builder,
        locks=UserLockRegistry(config.lock_timeout_seconds),
        max_workers=config.expansion_workers,
    )

    logger.info(
        "Engine ready: %d catalog ingredients, %d recipe templates, %d substitution entries, %s pricing",
        len(catalog.all()), len(library.all()), len(substitutions), config.pricing.backend,
    )
    return Engine(
        config=config,
        catalog=catalog,
        converter=converter,
        parser=parser,
        concepts=concepts,
        recipes=recipes,
        pantry=pantry,
        shopping_lists=shopping_lists,
        lifecycle=ConceptLifecycle(concepts),
        generator=LibraryConceptGenerator(library),
        expander=expander,
        builder=builder,
        service=service,
    )
