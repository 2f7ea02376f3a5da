"""Data models for the recipe consolidation engine."""
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any, Dict, List, Optional


CENT = Decimal("0.01")
QUANTITY_STEP = Decimal("0.001")
ZERO = Decimal("0")


def to_decimal(value: Any) -> Decimal:
    """Coerce a number or numeric string to Decimal without float noise.

    Floats go through ``str`` so that ``1.5`` becomes ``Decimal("1.5")``
    rather than its binary expansion.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round_money(amount: Decimal) -> Decimal:
    """Round a money amount to cents, half up."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def round_quantity(quantity: Decimal) -> Decimal:
    """Round a display quantity to three decimal places, half up."""
    return quantity.quantize(QUANTITY_STEP, rounding=ROUND_HALF_UP)


def _optional_decimal(value: Any) -> Optional[Decimal]:
    return None if value is None else to_decimal(value)


def _optional_str(value: Optional[Decimal]) -> Optional[str]:
    return None if value is None else str(value)


class ConceptStatus(Enum):
    """Lifecycle states of a meal concept."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CONSUMED = "consumed"


class IngredientRole(Enum):
    """Role an ingredient plays in a recipe; substitutions must preserve it."""

    PROTEIN = "protein"
    CARB = "carb"
    VEGETABLE = "vegetable"
    OTHER = "other"

    @classmethod
    def from_string(cls, value: Optional[str]) -> "IngredientRole":
        """Parse a role string, treating unknown or empty values as OTHER."""
        if not value:
            return cls.OTHER
        for role in cls:
            if role.value == value.strip().lower():
                return role
        return cls.OTHER


@dataclass
class MealConcept:
    """A high-level meal idea awaiting approval before recipe expansion."""

    id: str
    user_id: str
    name: str
    description: str = ""
    meal_yield: str = ""
    protein: str = ""
    carb: Optional[str] = None
    vegetables: List[str] = field(default_factory=list)
    prep_time: int = 0  # minutes
    cost_per_serving: str = "$$"  # cost tier
    calories_per_serving: int = 0
    protein_grams: float = 0.0
    carb_grams: float = 0.0
    fat_grams: float = 0.0
    complexity: str = "quick"
    status: ConceptStatus = ConceptStatus.PENDING
    created_at: str = ""
    recipe_id: Optional[str] = None  # Set exactly once, on consumption
    template_id: Optional[str] = None  # Library template the concept came from

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "description": self.description,
            "meal_yield": self.meal_yield,
            "protein": self.protein,
            "carb": self.carb,
            "vegetables": list(self.vegetables),
            "prep_time": self.prep_time,
            "cost_per_serving": self.cost_per_serving,
            "calories_per_serving": self.calories_per_serving,
            "protein_grams": self.protein_grams,
            "carb_grams": self.carb_grams,
            "fat_grams": self.fat_grams,
            "complexity": self.complexity,
            "status": self.status.value,
            "created_at": self.created_at,
            "recipe_id": self.recipe_id,
            "template_id": self.template_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MealConcept":
        return cls(
            id=data["id"],
            user_id=data["user_id"],
            name=data["name"],
            description=data.get("description", ""),
            meal_yield=data.get("meal_yield", ""),
            protein=data.get("protein", ""),
            carb=data.get("carb"),
            vegetables=list(data.get("vegetables", [])),
            prep_time=int(data.get("prep_time", 0)),
            cost_per_serving=data.get("cost_per_serving", "$$"),
            calories_per_serving=int(data.get("calories_per_serving", 0)),
            protein_grams=float(data.get("protein_grams", 0.0)),
            carb_grams=float(data.get("carb_grams", 0.0)),
            fat_grams=float(data.get("fat_grams", 0.0)),
            complexity=data.get("complexity", "quick"),
            status=ConceptStatus(data.get("status", "pending")),
            created_at=data.get("created_at", ""),
            recipe_id=data.get("recipe_id"),
            template_id=data.get("template_id"),
        )


@dataclass(frozen=True)
class IngredientRequirement:
    """One recipe's need for one ingredient. Never mutated after creation.

    ``unit`` is the unit the recipe states; the consolidator converts it to
    the ingredient's base unit.
    """

    ingredient_id: str  # Canonical id (e.g., "chicken breast")
    canonical_name: str  # Display name
    quantity: Decimal
    unit: str
    role: IngredientRole = IngredientRole.OTHER
    source_recipe_id: str = ""
    is_to_taste: bool = False

    def __post_init__(self):
        quantity = to_decimal(self.quantity)
        if quantity < 0:
            raise ValueError(
                f"Quantity for '{self.ingredient_id}' cannot be negative: {quantity}"
            )
        object.__setattr__(self, "quantity", quantity)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ingredient_id": self.ingredient_id,
            "canonical_name": self.canonical_name,
            "quantity": str(self.quantity),
            "unit": self.unit,
            "role": self.role.value,
            "source_recipe_id": self.source_recipe_id,
            "is_to_taste": self.is_to_taste,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IngredientRequirement":
        return cls(
            ingredient_id=data["ingredient_id"],
            canonical_name=data.get("canonical_name", data["ingredient_id"]),
            quantity=to_decimal(data.get("quantity", "0")),
            unit=data.get("unit", "each"),
            role=IngredientRole.from_string(data.get("role")),
            source_recipe_id=data.get("source_recipe_id", ""),
            is_to_taste=bool(data.get("is_to_taste", False)),
        )


@dataclass
class Recipe:
    """A detailed recipe expanded from exactly one meal concept."""

    id: str
    user_id: str
    name: str
    concept_id: str
    ingredients: List[IngredientRequirement]
    instructions: List[str] = field(default_factory=list)
    servings: int = 1
    cook_time: int = 0  # minutes
    calories: int = 0
    main_ingredients: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    cuisine: Optional[str] = None
    prep_complexity: str = "quick"
    generation_method: Optional[str] = None
    created_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "concept_id": self.concept_id,
            "ingredients": [ing.to_dict() for ing in self.ingredients],
            "instructions": list(self.instructions),
            "servings": self.servings,
            "cook_time": self.cook_time,
            "calories": self.calories,
            "main_ingredients": list(self.main_ingredients),
            "tags": list(self.tags),
            "cuisine": self.cuisine,
            "prep_complexity": self.prep_complexity,
            "generation_method": self.generation_method,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Recipe":
        return cls(
            id=data["id"],
            user_id=data.get("user_id", ""),
            name=data["name"],
            concept_id=data.get("concept_id", ""),
            ingredients=[
                IngredientRequirement.from_dict(ing)
                for ing in data.get("ingredients", [])
            ],
            instructions=list(data.get("instructions", [])),
            servings=int(data.get("servings", 1)),
            cook_time=int(data.get("cook_time", 0)),
            calories=int(data.get("calories", 0)),
            main_ingredients=list(data.get("main_ingredients", [])),
            tags=list(data.get("tags", [])),
            cuisine=data.get("cuisine"),
            prep_complexity=data.get("prep_complexity", "quick"),
            generation_method=data.get("generation_method"),
            created_at=data.get("created_at", ""),
        )


@dataclass
class ConsolidatedDemand:
    """Total demand for one ingredient across a batch of recipes.

    ``contributions`` keeps provenance: recipe id -> quantity (in
    ``base_unit``). ``total_quantity`` always equals the sum of
    contributions. Unmergeable lines (unit could not be converted) keep the
    recipe's own unit and have ``mergeable`` set to False.
    """

    ingredient_id: str
    canonical_name: str
    total_quantity: Decimal
    base_unit: str
    role: IngredientRole = IngredientRole.OTHER
    contributions: Dict[str, Decimal] = field(default_factory=dict)
    mergeable: bool = True

    @property
    def contributing_recipe_ids(self) -> List[str]:
        return list(self.contributions.keys())


@dataclass
class PantryEntry:
    """An item the user currently holds."""

    id: str
    ingredient_id: str
    name: str
    available_quantity: Decimal
    unit: str
    storage_location: str = "pantry"  # "pantry", "fridge", "freezer"
    category: str = "other"
    expires_at: Optional[str] = None  # ISO date
    added_at: str = ""

    def __post_init__(self):
        self.available_quantity = to_decimal(self.available_quantity)
        if self.available_quantity < 0:
            raise ValueError(
                f"Pantry quantity for '{self.ingredient_id}' cannot be negative"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "ingredient_id": self.ingredient_id,
            "name": self.name,
            "available_quantity": str(self.available_quantity),
            "unit": self.unit,
            "storage_location": self.storage_location,
            "category": self.category,
            "expires_at": self.expires_at,
            "added_at": self.added_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PantryEntry":
        return cls(
            id=data["id"],
            ingredient_id=data["ingredient_id"],
            name=data.get("name", data["ingredient_id"]),
            available_quantity=to_decimal(data.get("available_quantity", "0")),
            unit=data.get("unit", "each"),
            storage_location=data.get("storage_location", "pantry"),
            category=data.get("category", "other"),
            expires_at=data.get("expires_at"),
            added_at=data.get("added_at", ""),
        )


@dataclass(frozen=True)
class NetResult:
    """Outcome of netting one demand line against the pantry."""

    to_buy: Decimal
    deducted: Decimal


@dataclass
class ShoppingListItem:
    """One line of a shopping list.

    ``quantity`` and ``pantry_deduction`` are in ``unit`` (the base unit for
    mergeable lines). ``display_quantity``/``display_unit`` are the same
    amount expressed in the ingredient's purchase unit.
    """

    id: str
    ingredient_id: str
    name: str
    quantity: Decimal  # quantity to buy
    unit: str
    estimated_price: Optional[Decimal]  # None when pricing was unavailable
    role: IngredientRole = IngredientRole.OTHER
    category: Optional[str] = None
    from_recipes: List[str] = field(default_factory=list)
    substituted_from: Optional[str] = None
    substitution_reason: Optional[str] = None
    pantry_deduction: Optional[Decimal] = None
    purchased: bool = False
    display_quantity: Optional[Decimal] = None
    display_unit: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "ingredient_id": self.ingredient_id,
            "name": self.name,
            "quantity": str(self.quantity),
            "unit": self.unit,
            "estimated_price": _optional_str(self.estimated_price),
            "role": self.role.value,
            "category": self.category,
            "from_recipes": list(self.from_recipes),
            "substituted_from": self.substituted_from,
            "substitution_reason": self.substitution_reason,
            "pantry_deduction": _optional_str(self.pantry_deduction),
            "purchased": self.purchased,
            "display_quantity": _optional_str(self.display_quantity),
            "display_unit": self.display_unit,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ShoppingListItem":
        return cls(
            id=data["id"],
            ingredient_id=data["ingredient_id"],
            name=data.get("name", data["ingredient_id"]),
            quantity=to_decimal(data.get("quantity", "0")),
            unit=data.get("unit", "each"),
            estimated_price=_optional_decimal(data.get("estimated_price")),
            role=IngredientRole.from_string(data.get("role")),
            category=data.get("category"),
            from_recipes=list(data.get("from_recipes", [])),
            substituted_from=data.get("substituted_from"),
            substitution_reason=data.get("substitution_reason"),
            pantry_deduction=_optional_decimal(data.get("pantry_deduction")),
            purchased=bool(data.get("purchased", False)),
            display_quantity=_optional_decimal(data.get("display_quantity")),
            display_unit=data.get("display_unit"),
        )


@dataclass(frozen=True)
class SubstitutionSuggestion:
    """Record of one substitution applied to meet a budget cap."""

    original_ingredient_id: str
    reason: str
    alternative_ingredient_id: str
    estimated_savings: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "original_ingredient_id": self.original_ingredient_id,
            "reason": self.reason,
            "alternative_ingredient_id": self.alternative_ingredient_id,
            "estimated_savings": str(self.estimated_savings),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SubstitutionSuggestion":
        return cls(
            original_ingredient_id=data["original_ingredient_id"],
            reason=data["reason"],
            alternative_ingredient_id=data["alternative_ingredient_id"],
            estimated_savings=to_decimal(data["estimated_savings"]),
        )


@dataclass
class ShoppingList:
    """The single priced shopping list produced by one generation batch."""

    id: str
    user_id: str
    items: List[ShoppingListItem] = field(default_factory=list)
    pantry_savings: Decimal = ZERO
    budget_cap: Optional[Decimal] = None
    budget_met: bool = True
    shortfall: Decimal = ZERO
    suggestions: List[SubstitutionSuggestion] = field(default_factory=list)
    created_at: str = ""

    @property
    def total_cost(self) -> Decimal:
        """Sum of all known item prices."""
        return sum(
            (item.estimated_price for item in self.items if item.estimated_price is not None),
            ZERO,
        )

    @property
    def unpriced_items(self) -> List[str]:
        return [item.ingredient_id for item in self.items if item.estimated_price is None]

    def find_item(self, item_id: str) -> Optional[ShoppingListItem]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "items": [item.to_dict() for item in self.items],
            "pantry_savings": str(self.pantry_savings),
            "budget_cap": _optional_str(self.budget_cap),
            "budget_met": self.budget_met,
            "shortfall": str(self.shortfall),
            "suggestions": [s.to_dict() for s in self.suggestions],
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ShoppingList":
        return cls(
            id=data["id"],
            user_id=data.get("user_id", ""),
            items=[ShoppingListItem.from_dict(item) for item in data.get("items", [])],
            pantry_savings=to_decimal(data.get("pantry_savings", "0")),
            budget_cap=_optional_decimal(data.get("budget_cap")),
            budget_met=bool(data.get("budget_met", True)),
            shortfall=to_decimal(data.get("shortfall", "0")),
            suggestions=[
                SubstitutionSuggestion.from_dict(s) for s in data.get("suggestions", [])
            ],
            created_at=data.get("created_at", ""),
        )
