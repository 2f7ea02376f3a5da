"""Tests for user-scoped repositories."""
from decimal import Decimal

from athyra.data_layer.models import (
    ConceptStatus,
    MealConcept,
    PantryEntry,
    ShoppingList,
    ShoppingListItem,
)

from conftest import make_recipe, requirement


def _entry(entry_id, ingredient_id="egg", quantity="6", unit="each"):
    return PantryEntry(id=entry_id, ingredient_id=ingredient_id, name=ingredient_id,
                       available_quantity=Decimal(quantity), unit=unit)


class TestConceptRepository:
    """Tests for ConceptRepository."""

    def test_save_and_get(self, concept_repo):
        concept_repo.save(MealConcept(id="c1", user_id="u1", name="Stir Fry"))
        assert concept_repo.get("u1", "c1").name == "Stir Fry"

    def test_scoped_by_user(self, concept_repo):
        concept_repo.save(MealConcept(id="c1", user_id="u1", name="Stir Fry"))
        assert concept_repo.get("u2", "c1") is None
        assert concept_repo.list("u2") == []

    def test_list_filters_and_orders(self, concept_repo):
        concept_repo.save(MealConcept(id="b", user_id="u1", name="B", created_at="2026-01-02"))
        concept_repo.save(MealConcept(id="a", user_id="u1", name="A", created_at="2026-01-03",
                                      status=ConceptStatus.APPROVED))
        concept_repo.save(MealConcept(id="c", user_id="u1", name="C", created_at="2026-01-01"))
        assert [c.id for c in concept_repo.list("u1")] == ["c", "b", "a"]
        assert [c.id for c in concept_repo.list("u1", ConceptStatus.APPROVED)] == ["a"]

    def test_delete(self, concept_repo):
        concept_repo.save(MealConcept(id="c1", user_id="u1", name="X"))
        assert concept_repo.delete("u1", "c1") is True
        assert concept_repo.get("u1", "c1") is None


class TestRecipeRepository:
    """Tests for RecipeRepository."""

    def test_roundtrip_keeps_ingredients(self, recipe_repo):
        recipe = make_recipe("c1-recipe", [requirement("egg", 3, "each", "c1-recipe")], user_id="u1")
        recipe_repo.save(recipe)
        loaded = recipe_repo.get("u1", "c1-recipe")
        assert loaded.ingredients[0].quantity == Decimal("3")
        assert [r.id for r in recipe_repo.list("u1")] == ["c1-recipe"]

    def test_delete_missing(self, recipe_repo):
        assert recipe_repo.delete("u1", "nope") is False


class TestPantryRepository:
    """Tests for PantryRepository versioning."""

    def test_version_starts_at_zero(self, pantry_repo):
        assert pantry_repo.version("u1") == 0

    def test_every_write_bumps_version(self, pantry_repo):
        assert pantry_repo.save("u1", _entry("p1")) == 1
        assert pantry_repo.save("u1", _entry("p2")) == 2
        assert pantry_repo.delete("u1", "p1") is True
        assert pantry_repo.version("u1") == 3

    def test_delete_missing_does_not_bump(self, pantry_repo):
        assert pantry_repo.delete("u1", "nope") is False
        assert pantry_repo.version("u1") == 0

    def test_snapshot(self, pantry_repo):
        pantry_repo.save("u1", _entry("p2"))
        pantry_repo.save("u1", _entry("p1"))
        entries, version = pantry_repo.snapshot("u1")
        assert [e.id for e in entries] == ["p1", "p2"]
        assert version == 2

    def test_apply_deductions_with_current_version(self, pantry_repo):
        pantry_repo.save("u1", _entry("p1"))
        new_version = pantry_repo.apply_deductions("u1", {"p1": _entry("p1", quantity="2")}, 1)
        assert new_version == 2
        assert pantry_repo.get("u1", "p1").available_quantity == Decimal("2")

    def test_apply_deductions_with_stale_version(self, pantry_repo):
        """A stale version writes nothing."""
        pantry_repo.save("u1", _entry("p1"))
        pantry_repo.save("u1", _entry("p2"))
        assert pantry_repo.apply_deductions("u1", {"p1": _entry("p1", quantity="0")}, 1) is None
        assert pantry_repo.get("u1", "p1").available_quantity == Decimal("6")
        assert pantry_repo.version("u1") == 2

    def test_restore(self, pantry_repo):
        pantry_repo.save("u1", _entry("p1", quantity="0"))
        pantry_repo.restore("u1", [_entry("p1", quantity="6")])
        assert pantry_repo.get("u1", "p1").available_quantity == Decimal("6")


class TestShoppingListRepository:
    """Tests for ShoppingListRepository."""

    def _list(self, list_id):
        return ShoppingList(
            id=list_id, user_id="u1",
            items=[ShoppingListItem(id=f"{list_id}-0", ingredient_id="egg", name="Eggs",
                                    quantity=Decimal("6"), unit="each", estimated_price=Decimal("1.80"))],
        )

    def test_save_sets_current(self, list_repo):
        list_repo.save(self._list("l1"))
        list_repo.save(self._list("l2"))
        assert list_repo.current("u1").id == "l2"
        assert list_repo.current_id("u1") == "l2"

    def test_no_current_list(self, list_repo):
        assert list_repo.current("u1") is None

    def test_set_current_none_clears_pointer(self, list_repo):
        list_repo.save(self._list("l1"))
        list_repo.set_current("u1", None)
        assert list_repo.current("u1") is None
        assert list_repo.get("u1", "l1") is not None

    def test_mark_purchased(self, list_repo):
        list_repo.save(self._list("l1"))
        assert list_repo.mark_purchased("u1", "l1", "l1-0", True) is True
        assert list_repo.get("u1", "l1").items[0].purchased is True

    def test_mark_purchased_does_not_move_current(self, list_repo):
        list_repo.save(self._list("l1"))
        list_repo.save(self._list("l2"))
        list_repo.mark_purchased("u1", "l1", "l1-0", True)
        assert list_repo.current_id("u1") == "l2"

    def test_mark_purchased_missing(self, list_repo):
        list_repo.save(self._list("l1"))
        assert list_repo.mark_purchased("u1", "l1", "nope", True) is False
        assert list_repo.mark_purchased("u1", "nope", "l1-0", True) is False
