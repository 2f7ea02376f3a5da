"""Tests for the substitution table."""
from decimal import Decimal

import pytest

from athyra.data_layer.models import IngredientRole
from athyra.providers.substitution_table import SubstitutionCandidate, SubstitutionTable


YAML_TEXT = """
substitutions:
  Beef Sirloin:
    - alternative: chicken thighs
      role: protein
      relative_cost_factor: 0.45
    - alternative: Pork Shoulder
      role: protein
      relative_cost_factor: 0.6
      reason: cheaper cut with similar cooking time
  quinoa:
    - alternative: white rice
      role: carb
      relative_cost_factor: 0.3
"""


class TestSubstitutionTable:
    """Tests for SubstitutionTable loading and lookup."""

    @pytest.fixture
    def table(self, tmp_path, normalizer):
        path = tmp_path / "substitutions.yaml"
        path.write_text(YAML_TEXT)
        return SubstitutionTable.from_yaml(str(path), normalizer)

    def test_names_normalized(self, table):
        """Keys and alternatives go through the ingredient normalizer."""
        ids = [c.alternative_id for c in table.candidates("beef sirloin")]
        assert ids == ["chicken thigh", "pork shoulder"]

    def test_candidate_fields(self, table):
        pork = table.candidates("beef sirloin")[1]
        assert pork.role == IngredientRole.PROTEIN
        assert pork.relative_cost_factor == Decimal("0.6")
        assert pork.reason == "cheaper cut with similar cooking time"
        assert table.candidates("beef sirloin")[0].reason is None

    def test_unknown_ingredient_has_no_candidates(self, table):
        assert table.candidates("tofu") == []

    def test_len_counts_candidates(self, table):
        assert len(table) == 3

    def test_candidates_sorted_by_id(self):
        table = SubstitutionTable({
            "salmon": [
                SubstitutionCandidate("tilapia", IngredientRole.PROTEIN, Decimal("0.4")),
                SubstitutionCandidate("cod", IngredientRole.PROTEIN, Decimal("0.5")),
            ]
        })
        assert [c.alternative_id for c in table.candidates("salmon")] == ["cod", "tilapia"]

    def test_self_and_duplicate_alternatives_ignored(self):
        table = SubstitutionTable()
        table.register("egg", SubstitutionCandidate("egg", IngredientRole.PROTEIN, Decimal("0.5")))
        table.register("egg", SubstitutionCandidate("tofu", IngredientRole.PROTEIN, Decimal("0.5")))
        table.register("egg", SubstitutionCandidate("tofu", IngredientRole.PROTEIN, Decimal("0.4")))
        assert [c.relative_cost_factor for c in table.candidates("egg")] == [Decimal("0.5")]

    def test_missing_factor_raises(self):
        with pytest.raises(KeyError):
            SubstitutionTable.from_dict({"substitutions": {"egg": [{"alternative": "tofu"}]}})

    def test_empty_yaml(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert len(SubstitutionTable.from_yaml(str(path))) == 0

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            SubstitutionTable.from_yaml(str(tmp_path / "nope.yaml"))
