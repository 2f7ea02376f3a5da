"""Tests for library-backed concept generation and recipe expansion."""
import itertools
import json
from decimal import Decimal

import pytest

from athyra.data_layer.exceptions import RecipeExpansionError
from athyra.data_layer.models import ConceptStatus, MealConcept
from athyra.providers.library_provider import (
    LibraryConceptGenerator,
    LibraryRecipeExpander,
    RecipeLibrary,
)
from athyra.providers.recipe_provider import ConceptRequest


TEMPLATES = [
    {
        "id": "chicken-stir-fry",
        "name": "Chicken Stir-Fry",
        "description": "Quick weeknight stir fry",
        "protein": "chicken breast",
        "carb": "white rice",
        "vegetables": ["broccoli"],
        "tags": ["asian", "quick"],
        "cuisine": "asian",
        "prep_time": 25,
        "servings": 4,
        "ingredients": ["1.5 lbs chicken breast", "2 cups white rice", "1 lb broccoli", "salt to taste"],
        "instructions": ["Cook rice.", "Stir fry."],
    },
    {
        "id": "lemon-herb-chicken",
        "name": "Lemon Herb Chicken",
        "description": "Bright roasted chicken, cozy and simple",
        "protein": "chicken breast",
        "tags": ["mediterranean"],
        "prep_time": 40,
        "ingredients": ["1 lb chicken breasts", {"quantity": 2, "unit": "tbsp", "name": "olive oil"}],
    },
    {
        "id": "steak-bowl",
        "name": "Steak Bowl",
        "description": "Hearty bowl",
        "protein": "beef sirloin",
        "tags": ["bowl"],
        "prep_time": 15,
        "ingredients": ["1 lb sirloin"],
    },
]


@pytest.fixture
def library():
    return RecipeLibrary(TEMPLATES)


@pytest.fixture
def generator(library):
    counter = itertools.count(1)
    return LibraryConceptGenerator(library, id_factory=lambda: f"c{next(counter)}",
                                   clock=lambda: "2026-01-01T00:00:00+00:00")


class TestRecipeLibrary:
    """Tests for RecipeLibrary."""

    def test_all_ordered_by_id(self, library):
        assert [t["id"] for t in library.all()] == ["chicken-stir-fry", "lemon-herb-chicken", "steak-bowl"]

    def test_find_by_name_case_insensitive(self, library):
        assert library.find_by_name("  steak BOWL ")["id"] == "steak-bowl"
        assert library.find_by_name("Pizza") is None

    def test_from_json(self, tmp_path):
        path = tmp_path / "library.json"
        path.write_text(json.dumps({"recipes": TEMPLATES}))
        assert RecipeLibrary.from_json(str(path)).get("steak-bowl")["name"] == "Steak Bowl"


class TestLibraryConceptGenerator:
    """Tests for LibraryConceptGenerator."""

    def test_concepts_are_pending(self, generator):
        concepts = generator.generate("u1", ConceptRequest(num_concepts=3))
        assert [c.id for c in concepts] == ["c1", "c2", "c3"]
        assert all(c.status == ConceptStatus.PENDING for c in concepts)
        assert all(c.user_id == "u1" for c in concepts)

    def test_default_order_is_by_id(self, generator):
        concepts = generator.generate("u1", ConceptRequest(num_concepts=2))
        assert [c.template_id for c in concepts] == ["chicken-stir-fry", "lemon-herb-chicken"]

    def test_vibe_ranks_matches_first(self, generator):
        concepts = generator.generate("u1", ConceptRequest(vibe="cozy", num_concepts=1))
        assert concepts[0].template_id == "lemon-herb-chicken"

    def test_prefer_quick_meals(self, generator):
        concepts = generator.generate("u1", ConceptRequest(num_concepts=3, prefer_quick_meals=True))
        assert [c.template_id for c in concepts] == ["steak-bowl", "chicken-stir-fry", "lemon-herb-chicken"]

    def test_avoid_categories(self, generator):
        concepts = generator.generate("u1", ConceptRequest(num_concepts=5, avoid_categories=["Chicken Breast"]))
        assert [c.template_id for c in concepts] == ["steak-bowl"]

    def test_must_include_categories(self, generator):
        concepts = generator.generate("u1", ConceptRequest(num_concepts=5, must_include_categories=["asian"]))
        assert [c.template_id for c in concepts] == ["chicken-stir-fry"]

    def test_concept_fields_from_template(self, generator):
        concept = generator.generate("u1", ConceptRequest(num_concepts=1))[0]
        assert concept.name == "Chicken Stir-Fry"
        assert concept.carb == "white rice"
        assert concept.vegetables == ["broccoli"]
        assert concept.meal_yield == "4 servings"
        assert concept.created_at == "2026-01-01T00:00:00+00:00"


class TestLibraryRecipeExpander:
    """Tests for LibraryRecipeExpander."""

    @pytest.fixture
    def expander(self, library, parser):
        return LibraryRecipeExpander(library, parser, clock=lambda: "2026-01-01T00:00:00+00:00")

    def _concept(self, concept_id="c1", template_id="chicken-stir-fry", name="Chicken Stir-Fry"):
        return MealConcept(id=concept_id, user_id="u1", name=name, template_id=template_id,
                           status=ConceptStatus.APPROVED)

    def test_expand(self, expander):
        recipe = expander.expand(self._concept())
        assert recipe.id == "c1-recipe"
        assert recipe.concept_id == "c1"
        assert recipe.user_id == "u1"
        assert [i.ingredient_id for i in recipe.ingredients] == ["chicken breast", "white rice", "broccoli", "salt"]
        assert all(i.source_recipe_id == "c1-recipe" for i in recipe.ingredients)
        assert recipe.main_ingredients == ["chicken breast", "white rice", "broccoli"]
        assert recipe.generation_method == "library"

    def test_recipe_id_is_deterministic(self, expander):
        assert expander.expand(self._concept()).id == expander.expand(self._concept()).id

    def test_structured_ingredient(self, expander):
        recipe = expander.expand(self._concept(template_id="lemon-herb-chicken", name="Lemon Herb Chicken"))
        oil = recipe.ingredients[1]
        assert oil.ingredient_id == "olive oil"
        assert oil.quantity == Decimal("2")
        assert oil.unit == "tbsp"

    def test_falls_back_to_name_lookup(self, expander):
        recipe = expander.expand(self._concept(template_id=None, name="steak bowl"))
        assert recipe.ingredients[0].ingredient_id == "beef sirloin"

    def test_missing_template(self, expander):
        with pytest.raises(RecipeExpansionError, match="no recipe template"):
            expander.expand(self._concept(template_id="nope", name="Pizza"))

    def test_bad_ingredient(self, parser):
        library = RecipeLibrary([{"id": "bad", "name": "Bad", "ingredients": ["   "]}])
        expander = LibraryRecipeExpander(library, parser)
        with pytest.raises(RecipeExpansionError, match="bad ingredient"):
            expander.expand(self._concept(template_id="bad", name="Bad"))

    def test_zero_denominator_is_an_expansion_failure(self, parser):
        library = RecipeLibrary([{"id": "bad", "name": "Bad", "ingredients": ["1/0 cup white rice"]}])
        expander = LibraryRecipeExpander(library, parser)
        with pytest.raises(RecipeExpansionError, match="bad ingredient"):
            expander.expand(self._concept(template_id="bad", name="Bad"))


class TestExpandAll:
    """Tests for RecipeExpander.expand_all."""

    @pytest.fixture
    def expander(self, library, parser):
        return LibraryRecipeExpander(library, parser)

    def _concepts(self):
        return [
            MealConcept(id="c1", user_id="u1", name="Chicken Stir-Fry", template_id="chicken-stir-fry"),
            MealConcept(id="c2", user_id="u1", name="Pizza", template_id="pizza"),
            MealConcept(id="c3", user_id="u1", name="Steak Bowl", template_id="steak-bowl"),
        ]

    @pytest.mark.parametrize("max_workers", [1, 3])
    def test_failures_isolated_and_order_kept(self, expander, max_workers):
        recipes, failures = expander.expand_all(self._concepts(), max_workers=max_workers)
        assert [r.id for r in recipes] == ["c1-recipe", "c3-recipe"]
        assert [f.concept_id for f in failures] == ["c2"]
