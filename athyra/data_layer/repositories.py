"""User-scoped repositories over a KeyValueStore.

Key layout:

    concept/<user>/<concept id>
    recipe/<user>/<recipe id>
    pantry/<user>/entry/<entry id>
    pantry/<user>/meta                 {"version": int}
    shopping/<user>/list/<list id>
    shopping/<user>/current            {"list_id": str}
"""

import logging
import threading
from typing import Dict, List, Optional

from athyra.data_layer.models import (
    ConceptStatus,
    MealConcept,
    PantryEntry,
    Recipe,
    ShoppingList,
)
from athyra.data_layer.storage import KeyValueStore


logger = logging.getLogger(__name__)


class ConceptRepository:
    """CRUD for meal concepts."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    @staticmethod
    def _key(user_id: str, concept_id: str) -> str:
        return f"concept/{user_id}/{concept_id}"

    def get(self, user_id: str, concept_id: str) -> Optional[MealConcept]:
        data = self.store.get(self._key(user_id, concept_id))
        return MealConcept.from_dict(data) if data is not None else None

    def save(self, concept: MealConcept) -> None:
        self.store.put(self._key(concept.user_id, concept.id), concept.to_dict())

    def delete(self, user_id: str, concept_id: str) -> bool:
        return self.store.delete(self._key(user_id, concept_id))

    def list(self, user_id: str, status: Optional[ConceptStatus] = None) -> List[MealConcept]:
        """All concepts of a user, optionally filtered by status, ordered by
        creation time then id."""
        concepts = []
        for key in self.store.keys(f"concept/{user_id}/"):
            data = self.store.get(key)
            if data is None:
                continue
            concept = MealConcept.from_dict(data)
            if status is None or concept.status == status:
                concepts.append(concept)
        return sorted(concepts, key=lambda c: (c.created_at, c.id))


class RecipeRepository:
    """CRUD for detailed recipes."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    @staticmethod
    def _key(user_id: str, recipe_id: str) -> str:
        return f"recipe/{user_id}/{recipe_id}"

    def get(self, user_id: str, recipe_id: str) -> Optional[Recipe]:
        data = self.store.get(self._key(user_id, recipe_id))
        return Recipe.from_dict(data) if data is not None else None

    def save(self, recipe: Recipe) -> None:
        self.store.put(self._key(recipe.user_id, recipe.id), recipe.to_dict())

    def delete(self, user_id: str, recipe_id: str) -> bool:
        return self.store.delete(self._key(user_id, recipe_id))

    def list(self, user_id: str) -> List[Recipe]:
        recipes = []
        for key in self.store.keys(f"recipe/{user_id}/"):
            data = self.store.get(key)
            if data is not None:
                recipes.append(Recipe.from_dict(data))
        return sorted(recipes, key=lambda r: (r.created_at, r.id))


class PantryRepository:
    """CRUD for pantry entries with a per-user version counter.

    Every write bumps the user's version. The PantryLedger records the
    version at snapshot time and commits through ``apply_deductions`` with
    that version as a precondition, which is how concurrent modification
    is detected.
    """

    def __init__(self, store: KeyValueStore):
        self.store = store
        self._lock = threading.Lock()

    @staticmethod
    def _entry_key(user_id: str, entry_id: str) -> str:
        return f"pantry/{user_id}/entry/{entry_id}"

    @staticmethod
    def _meta_key(user_id: str) -> str:
        return f"pantry/{user_id}/meta"

    def version(self, user_id: str) -> int:
        meta = self.store.get(self._meta_key(user_id))
        return int(meta.get("version", 0)) if meta else 0

    def _bump(self, user_id: str) -> int:
        new_version = self.version(user_id) + 1
        self.store.put(self._meta_key(user_id), {"version": new_version})
        return new_version

    def list(self, user_id: str) -> List[PantryEntry]:
        entries = []
        for key in self.store.keys(f"pantry/{user_id}/entry/"):
            data = self.store.get(key)
            if data is not None:
                entries.append(PantryEntry.from_dict(data))
        return sorted(entries, key=lambda e: e.id)

    def get(self, user_id: str, entry_id: str) -> Optional[PantryEntry]:
        data = self.store.get(self._entry_key(user_id, entry_id))
        return PantryEntry.from_dict(data) if data is not None else None

    def save(self, user_id: str, entry: PantryEntry) -> int:
        """Create or replace an entry. Returns the new version."""
        with self._lock:
            self.store.put(self._entry_key(user_id, entry.id), entry.to_dict())
            return self._bump(user_id)

    def delete(self, user_id: str, entry_id: str) -> bool:
        with self._lock:
            removed = self.store.delete(self._entry_key(user_id, entry_id))
            if removed:
                self._bump(user_id)
            return removed

    def snapshot(self, user_id: str):
        """Entries and version read under the write lock, so they agree."""
        with self._lock:
            return self.list(user_id), self.version(user_id)

    def apply_deductions(
        self,
        user_id: str,
        updated: Dict[str, PantryEntry],
        expected_version: int
    ) -> Optional[int]:
        """Write updated entries if the pantry is still at *expected_version*.

        Returns:
            The new version, or None if the version no longer matches (in
            which case nothing was written).
        """
        with self._lock:
            if self.version(user_id) != expected_version:
                return None
            for entry in updated.values():
                self.store.put(self._entry_key(user_id, entry.id), entry.to_dict())
            return self._bump(user_id)

    def restore(self, user_id: str, entries: List[PantryEntry]) -> int:
        """Write back previously captured entries (rollback)."""
        with self._lock:
            for entry in entries:
                self.store.put(self._entry_key(user_id, entry.id), entry.to_dict())
            return self._bump(user_id)


class ShoppingListRepository:
    """Stores generated shopping lists and the user's current list pointer."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    @staticmethod
    def _key(user_id: str, list_id: str) -> str:
        return f"shopping/{user_id}/list/{list_id}"

    @staticmethod
    def _current_key(user_id: str) -> str:
        return f"shopping/{user_id}/current"

    def save(self, shopping_list: ShoppingList, make_current: bool = True) -> None:
        self.store.put(self._key(shopping_list.user_id, shopping_list.id), shopping_list.to_dict())
        if make_current:
            self.store.put(self._current_key(shopping_list.user_id), {"list_id": shopping_list.id})

    def get(self, user_id: str, list_id: str) -> Optional[ShoppingList]:
        data = self.store.get(self._key(user_id, list_id))
        return ShoppingList.from_dict(data) if data is not None else None

    def current(self, user_id: str) -> Optional[ShoppingList]:
        pointer = self.store.get(self._current_key(user_id))
        if not pointer:
            return None
        return self.get(user_id, pointer["list_id"])

    def current_id(self, user_id: str) -> Optional[str]:
        pointer = self.store.get(self._current_key(user_id))
        return pointer["list_id"] if pointer else None

    def set_current(self, user_id: str, list_id: Optional[str]) -> None:
        if list_id is None:
            self.store.delete(self._current_key(user_id))
        else:
            self.store.put(self._current_key(user_id), {"list_id": list_id})

    def delete(self, user_id: str, list_id: str) -> bool:
        return self.store.delete(self._key(user_id, list_id))

    def mark_purchased(self, user_id: str, list_id: str, item_id: str, purchased: bool) -> bool:
        """Toggle an item's purchased flag. Returns False if list or item is missing."""
        shopping_list = self.get(user_id, list_id)
        if shopping_list is None:
            return False
        item = shopping_list.find_item(item_id)
        if item is None:
            return False
        item.purchased = purchased
        self.save(shopping_list, make_current=False)
        return True
