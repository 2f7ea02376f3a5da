"""Substitution table: which cheaper peers may replace an ingredient.

Loaded from YAML::

    substitutions:
      beef sirloin:
        - alternative: chicken thigh
          role: protein
          relative_cost_factor: 0.45
        - alternative: pork shoulder
          role: protein
          relative_cost_factor: 0.6
          reason: cheaper cut with similar cooking time

``relative_cost_factor`` is the alternative's price relative to the
original for the same quantity. Only entries with a factor below 1 are
ever considered by the planner.
"""
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from athyra.data_layer.models import IngredientRole, to_decimal
from athyra.ingestion.ingredient_normalizer import IngredientNormalizer


@dataclass(frozen=True)
class SubstitutionCandidate:
    """One registered alternative for an ingredient."""

    alternative_id: str
    role: IngredientRole
    relative_cost_factor: Decimal
    reason: Optional[str] = None


class SubstitutionTable:
    """Queryable mapping ingredient id -> substitution candidates."""

    def __init__(self, entries: Optional[Dict[str, List[SubstitutionCandidate]]] = None):
        self._entries: Dict[str, List[SubstitutionCandidate]] = {}
        for ingredient_id, candidates in (entries or {}).items():
            for candidate in candidates:
                self.register(ingredient_id, candidate)

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        normalizer: Optional[IngredientNormalizer] = None
    ) -> "SubstitutionTable":
        """Build a table from the parsed YAML structure.

        Raises:
            KeyError: If an entry lacks ``alternative`` or ``relative_cost_factor``
        """
        normalize = normalizer.canonical_id if normalizer else (lambda name: name.strip().lower())
        table = cls()
        for ingredient, candidates in (data.get("substitutions") or {}).items():
            for raw in candidates or []:
                table.register(
                    normalize(ingredient),
                    SubstitutionCandidate(
                        alternative_id=normalize(raw["alternative"]),
                        role=IngredientRole.from_string(raw.get("role")),
                        relative_cost_factor=to_decimal(str(raw["relative_cost_factor"])),
                        reason=raw.get("reason"),
                    ),
                )
        return table

    @classmethod
    def from_yaml(
        cls,
        yaml_path: str,
        normalizer: Optional[IngredientNormalizer] = None
    ) -> "SubstitutionTable":
        """Load a table from a YAML file.

        Raises:
            FileNotFoundError: If the YAML file doesn't exist
        """
        with open(Path(yaml_path), "r") as f:
            data = yaml.safe_load(f) or {}
        return cls.from_dict(data, normalizer)

    def register(self, ingredient_id: str, candidate: SubstitutionCandidate) -> None:
        candidates = self._entries.setdefault(ingredient_id, [])
        if candidate.alternative_id == ingredient_id:
            return
        if any(c.alternative_id == candidate.alternative_id for c in candidates):
            return
        candidates.append(candidate)

    def candidates(self, ingredient_id: str) -> List[SubstitutionCandidate]:
        """Registered alternatives for an ingredient, ordered by id."""
        return sorted(self._entries.get(ingredient_id, []), key=lambda c: c.alternative_id)

    def __len__(self) -> int:
        return sum(len(c) for c in self._entries.values())
