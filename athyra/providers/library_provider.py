"""Recipe-library backed concept generation and recipe expansion.

A deterministic stand-in for the AI generation service: concepts are
picked from a JSON library of recipe templates and expanded by parsing the
template's ingredient strings.

Expected JSON shape::

    {
      "recipes": [
        {
          "id": "chicken-stir-fry",
          "name": "Chicken Stir-Fry",
          "description": "...",
          "protein": "chicken breast",
          "carb": "jasmine rice",
          "vegetables": ["broccoli", "bell pepper"],
          "tags": ["asian", "quick"],
          "cuisine": "asian",
          "prep_time": 25,
          "servings": 4,
          "meal_yield": "4 servings",
          "calories_per_serving": 520,
          "protein_grams": 42, "carb_grams": 55, "fat_grams": 12,
          "cost_per_serving": "$$",
          "complexity": "quick",
          "ingredients": ["1.5 lbs chicken breast", "2 cups jasmine rice"],
          "instructions": ["..."]
        }
      ]
    }
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from athyra.data_layer.exceptions import RecipeExpansionError
from athyra.data_layer.models import ConceptStatus, IngredientRequirement, MealConcept, Recipe
from athyra.ingestion.ingredient_parser import IngredientParser
from athyra.providers.recipe_provider import ConceptGenerator, ConceptRequest, RecipeExpander


logger = logging.getLogger(__name__)


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    return uuid.uuid4().hex


class RecipeLibrary:
    """Recipe templates loaded from JSON."""

    def __init__(self, templates: Optional[List[Dict[str, Any]]] = None):
        self._templates: Dict[str, Dict[str, Any]] = {}
        for template in templates or []:
            self._templates[template["id"]] = template

    @classmethod
    def from_json(cls, json_path: str) -> "RecipeLibrary":
        """Load templates from a JSON file.

        Raises:
            FileNotFoundError: If the file doesn't exist
        """
        with open(Path(json_path), "r") as f:
            data = json.load(f)
        return cls(data.get("recipes", []))

    def get(self, template_id: str) -> Optional[Dict[str, Any]]:
        return self._templates.get(template_id)

    def find_by_name(self, name: str) -> Optional[Dict[str, Any]]:
        name_lower = name.strip().lower()
        for template in self._templates.values():
            if template["name"].lower() == name_lower:
                return template
        return None

    def all(self) -> List[Dict[str, Any]]:
        """All templates, ordered by id."""
        return [self._templates[k] for k in sorted(self._templates)]


def _categories(template: Dict[str, Any]) -> List[str]:
    """Everything a category filter can match: tags, cuisine and main ingredients."""
    values = list(template.get("tags", []))
    for key in ("cuisine", "protein", "carb"):
        if template.get(key):
            values.append(template[key])
    values.extend(template.get("vegetables", []))
    return [v.lower() for v in values]


class LibraryConceptGenerator(ConceptGenerator):
    """Deterministically proposes concepts from a RecipeLibrary.

    Templates matching any avoided category are dropped; when must-include
    categories are given only templates matching at least one are kept.
    The rest are ranked by how many vibe words they match (descending),
    then by prep time when quick meals are preferred, then by id.
    """

    def __init__(
        self,
        library: RecipeLibrary,
        id_factory: Callable[[], str] = new_id,
        clock: Callable[[], str] = utc_now
    ):
        self.library = library
        self.id_factory = id_factory
        self.clock = clock

    def generate(self, user_id: str, request: ConceptRequest) -> List[MealConcept]:
        avoid = {c.lower() for c in request.avoid_categories}
        must = {c.lower() for c in request.must_include_categories}
        vibe_words = set((request.vibe or "").lower().split())

        ranked = []
        for template in self.library.all():
            categories = set(_categories(template))
            if avoid & categories:
                continue
            if must and not (must & categories):
                continue
            text = " ".join([template.get("description", ""), template["name"], *categories]).lower()
            vibe_score = sum(1 for word in vibe_words if word in text)
            prep = template.get("prep_time", 0) if request.prefer_quick_meals else 0
            ranked.append(((-vibe_score, prep, template["id"]), template))

        ranked.sort(key=lambda pair: pair[0])
        chosen = [template for _, template in ranked[:max(0, request.num_concepts)]]
        logger.info("Generated %d concepts for %s", len(chosen), user_id)
        return [self._to_concept(user_id, template) for template in chosen]

    def _to_concept(self, user_id: str, template: Dict[str, Any]) -> MealConcept:
        return MealConcept(
            id=self.id_factory(),
            user_id=user_id,
            name=template["name"],
            description=template.get("description", ""),
            meal_yield=template.get("meal_yield", f"{template.get('servings', 1)} servings"),
            protein=template.get("protein", ""),
            carb=template.get("carb"),
            vegetables=list(template.get("vegetables", [])),
            prep_time=int(template.get("prep_time", 0)),
            cost_per_serving=template.get("cost_per_serving", "$$"),
            calories_per_serving=int(template.get("calories_per_serving", 0)),
            protein_grams=float(template.get("protein_grams", 0.0)),
            carb_grams=float(template.get("carb_grams", 0.0)),
            fat_grams=float(template.get("fat_grams", 0.0)),
            complexity=template.get("complexity", "quick"),
            status=ConceptStatus.PENDING,
            created_at=self.clock(),
            template_id=template["id"],
        )


class LibraryRecipeExpander(RecipeExpander):
    """Expands a concept by parsing its template's ingredient list.

    The recipe id is derived from the concept id, so re-expanding the same
    concept always yields the same recipe id.
    """

    def __init__(
        self,
        library: RecipeLibrary,
        parser: IngredientParser,
        clock: Callable[[], str] = utc_now
    ):
        self.library = library
        self.parser = parser
        self.clock = clock

    def expand(self, concept: MealConcept) -> Recipe:
        template = None
        if concept.template_id:
            template = self.library.get(concept.template_id)
        if template is None:
            template = self.library.find_by_name(concept.name)
        if template is None:
            raise RecipeExpansionError(concept.id, f"no recipe template for '{concept.name}'")

        recipe_id = f"{concept.id}-recipe"
        try:
            ingredients = [
                self._parse_ingredient(raw, recipe_id)
                for raw in template.get("ingredients", [])
            ]
        except (ValueError, KeyError) as e:
            raise RecipeExpansionError(concept.id, f"bad ingredient in template: {e}") from e

        main_ingredients = [v for v in [template.get("protein"), template.get("carb")] if v]
        main_ingredients.extend(template.get("vegetables", []))

        return Recipe(
            id=recipe_id,
            user_id=concept.user_id,
            name=template["name"],
            concept_id=concept.id,
            ingredients=ingredients,
            instructions=list(template.get("instructions", [])),
            servings=int(template.get("servings", 1)),
            cook_time=int(template.get("prep_time", 0)),
            calories=int(template.get("calories_per_serving", 0)),
            main_ingredients=main_ingredients,
            tags=list(template.get("tags", [])),
            cuisine=template.get("cuisine"),
            prep_complexity=template.get("complexity", "quick"),
            generation_method="library",
            created_at=self.clock(),
        )

    def _parse_ingredient(self, raw: Any, recipe_id: str) -> IngredientRequirement:
        """Templates may list ingredients as strings or as structured dicts."""
        if isinstance(raw, str):
            return self.parser.parse(raw, recipe_id)
        text = f"{raw['quantity']} {raw.get('unit', '')} {raw['name']}"
        return self.parser.parse(text, recipe_id)
