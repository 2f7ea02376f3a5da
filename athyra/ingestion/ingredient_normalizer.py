"""Ingredient identity normalization.

Produces the canonical ingredient id used as the grouping key for
consolidation, pantry netting and pricing, by:
- Converting to lowercase
- Trimming and normalizing whitespace and commas
- Removing controlled descriptors (size, preparation, quality modifiers)
- Folding plurals to singular, word by word
- Resolving catalog aliases ("scallion" -> "green onion")

Descriptors that change what you would actually buy ("ground", "canned",
"dried", "frozen") are NOT removed: "ground beef" and "beef" are different
products on a shopping list.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set


SIZE_DESCRIPTORS = {
    "small", "medium", "large", "extra large", "jumbo",
    "mini", "tiny", "xl", "xs",
}

PREPARATION_DESCRIPTORS = {
    "raw", "cooked", "uncooked", "fresh",
    "roasted", "grilled", "baked", "fried", "steamed", "boiled",
    "chilled", "softened", "melted", "room temperature",
}

CUT_DESCRIPTORS = {
    "boneless", "skinless", "bone-in", "skin-on",
    "diced", "sliced", "chopped", "minced", "shredded", "cubed",
    "halved", "quartered", "trimmed", "peeled", "julienned",
    "finely", "roughly", "thinly",
}

QUALITY_DESCRIPTORS = {
    "organic", "conventional",
    "grass-fed", "pasture-raised", "free-range", "cage-free",
    "wild-caught", "farm-raised",
}

CONTROLLED_DESCRIPTORS: Set[str] = (
    SIZE_DESCRIPTORS |
    PREPARATION_DESCRIPTORS |
    CUT_DESCRIPTORS |
    QUALITY_DESCRIPTORS
)

# Words that end in "s" but are already singular
INVARIANT_WORDS = {
    "asparagus", "hummus", "couscous", "molasses", "citrus", "octopus",
    "swiss", "grits", "brussels", "tortellini", "series", "species",
}


def singularize(word: str) -> str:
    """Fold a single lowercase word to its singular form.

    Examples:
        berries -> berry, tomatoes -> tomato, peaches -> peach,
        eggs -> egg, cheeses -> cheese, asparagus -> asparagus
    """
    if word in INVARIANT_WORDS or len(word) <= 3:
        return word
    if word.endswith("ies") and len(word) > 4:
        return word[:-3] + "y"
    if word.endswith("oes"):
        return word[:-2]
    if word.endswith(("ches", "shes", "xes", "zes")):
        return word[:-2]
    if word.endswith(("ss", "us", "is")):
        return word
    if word.endswith("s"):
        return word[:-1]
    return word


@dataclass
class NormalizationResult:
    """Result of ingredient name normalization.

    Attributes:
        original_name: The original input name (unmodified)
        canonical_name: Canonical ingredient id
        removed_descriptors: List of descriptors that were removed
        alias_of: Catalog id the name was resolved to via an alias, if any
    """
    original_name: str
    canonical_name: str
    removed_descriptors: List[str] = field(default_factory=list)
    alias_of: Optional[str] = None


class IngredientNormalizer:
    """Normalizes ingredient names into canonical ingredient ids.

    Usage:
        normalizer = IngredientNormalizer(aliases={"scallion": "green onion"})
        normalizer.canonical_id("Large Boneless Chicken Breasts")
        # "chicken breast"
        normalizer.canonical_id("Scallions")
        # "green onion"
    """

    def __init__(
        self,
        aliases: Optional[Dict[str, str]] = None,
        additional_descriptors: Optional[Set[str]] = None
    ):
        """Initialize normalizer.

        Args:
            aliases: Alias name -> canonical id (both sides are normalized)
            additional_descriptors: Extra descriptors to remove (optional)
        """
        self.descriptors = CONTROLLED_DESCRIPTORS.copy()
        if additional_descriptors:
            self.descriptors.update(additional_descriptors)

        # Longest first so "extra large" is removed before "large"
        self._sorted_descriptors = sorted(
            self.descriptors,
            key=lambda x: (-len(x), x)
        )
        self._patterns = [
            (descriptor, re.compile(r"(?<![\w-])" + re.escape(descriptor) + r"(?![\w-])"))
            for descriptor in self._sorted_descriptors
        ]

        self._aliases: Dict[str, str] = {}
        for alias, target in (aliases or {}).items():
            self.add_alias(alias, target)

    def add_alias(self, alias: str, target: str) -> None:
        """Register an alias; both names go through the same normalization."""
        alias_key = self._strip(alias)[0]
        target_key = self._strip(target)[0]
        if alias_key and target_key and alias_key != target_key:
            self._aliases[alias_key] = target_key

    def normalize(self, ingredient_name: str) -> NormalizationResult:
        """Normalize an ingredient name.

        Args:
            ingredient_name: Raw ingredient name from a recipe or pantry entry

        Returns:
            NormalizationResult with canonical name and removed descriptors
        """
        original = ingredient_name
        if not ingredient_name or not ingredient_name.strip():
            return NormalizationResult(original_name=original, canonical_name="")

        name, removed = self._strip(ingredient_name)

        alias_of = self._aliases.get(name)
        if alias_of is not None:
            name = alias_of

        return NormalizationResult(
            original_name=original,
            canonical_name=name,
            removed_descriptors=removed,
            alias_of=alias_of,
        )

    def canonical_id(self, ingredient_name: str) -> str:
        """Get just the canonical id (convenience method)."""
        return self.normalize(ingredient_name).canonical_name

    def _strip(self, ingredient_name: str):
        name = ingredient_name.lower()
        name = name.replace(",", " ")
        name = re.sub(r"\s+", " ", name).strip()

        removed = []
        for descriptor, pattern in self._patterns:
            if pattern.search(name):
                name = pattern.sub("", name)
                removed.append(descriptor)

        words = [singularize(word) for word in name.split()]
        return " ".join(words), removed
