"""Planning module: consolidation, budget substitution and batch generation."""

from .consolidator import IngredientConsolidator
from .substitution_planner import SubstitutionPlanner, SubstitutionPlan
from .list_builder import ShoppingListBuilder, BuildResult
from .generation_service import RecipeGenerationService, GenerationRequest, GenerationResult

__all__ = [
    "IngredientConsolidator",
    "SubstitutionPlanner",
    "SubstitutionPlan",
    "ShoppingListBuilder",
    "BuildResult",
    "RecipeGenerationService",
    "GenerationRequest",
    "GenerationResult",
]
