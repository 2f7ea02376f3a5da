"""FastAPI server for meal concepts, recipe generation, shopping and pantry."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from athyra.config import ConfigLoader, configure_logging
from athyra.data_layer.exceptions import EngineError, EngineErrorCode
from athyra.data_layer.models import ConceptStatus, PantryEntry, to_decimal
from athyra.engine import Engine, build_engine
from athyra.output.formatters import (
    format_concept_json,
    format_generation_json,
    format_recipe_json,
    format_shopping_list_json,
)
from athyra.planning.generation_service import GenerationRequest
from athyra.providers.library_provider import new_id
from athyra.providers.recipe_provider import ConceptRequest


DEFAULT_USER = "local-user"

ERROR_STATUS: Dict[EngineErrorCode, int] = {
    EngineErrorCode.CONCEPT_NOT_FOUND: 404,
    EngineErrorCode.INVALID_STATE: 409,
    EngineErrorCode.PANTRY_COMMIT_CONFLICT: 409,
    EngineErrorCode.GENERATION_CANCELLED: 409,
    EngineErrorCode.LOCK_TIMEOUT: 503,
}


class MealConceptRequest(BaseModel):
    vibe: Optional[str] = None
    num_concepts: int = Field(default=5, ge=1, le=20)
    must_include_categories: List[str] = Field(default_factory=list)
    avoid_categories: List[str] = Field(default_factory=list)
    prefer_quick_meals: bool = False


class ConceptApproval(BaseModel):
    concept_id: str
    approved: bool


class GenerateRecipesRequest(BaseModel):
    concept_ids: List[str] = Field(min_length=1)
    budget_cap: Optional[float] = Field(default=None, ge=0)
    reduce_by_pantry: bool = True


class ShoppingItemUpdate(BaseModel):
    item_id: Optional[str] = None
    purchased: bool


class PantryItemRequest(BaseModel):
    name: str = Field(min_length=1)
    quantity: float = Field(ge=0)
    unit: str = "each"
    storage_location: str = "pantry"
    category: str = "other"
    expires_at: Optional[str] = None


def get_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    return x_user_id or DEFAULT_USER


def create_app(engine: Optional[Engine] = None) -> FastAPI:
    """Create the API application.

    Args:
        engine: Pre-built engine (tests); otherwise built from
            config/engine.yaml and ATHYRA_* environment variables
    """
    if engine is None:
        config = ConfigLoader().load()
        configure_logging(config.log_level)
        engine = build_engine(config)

    app = FastAPI(title="Athyra Recipe Engine API")
    app.state.engine = engine

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Local development
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(EngineError)
    async def handle_engine_error(request: Request, exc: EngineError) -> JSONResponse:
        status = ERROR_STATUS.get(exc.code, 400)
        return JSONResponse(status_code=status, content={"detail": exc.message, "error": exc.to_dict()})

    # ------------------------------------------------------------------
    # Meal concepts
    # ------------------------------------------------------------------

    @app.post("/api/meal-concepts/generate")
    def generate_concepts(
        request: MealConceptRequest,
        user_id: str = Depends(get_user_id)
    ) -> List[Dict[str, Any]]:
        concepts = engine.generator.generate(
            user_id,
            ConceptRequest(
                vibe=request.vibe,
                num_concepts=request.num_concepts,
                must_include_categories=request.must_include_categories,
                avoid_categories=request.avoid_categories,
                prefer_quick_meals=request.prefer_quick_meals,
            ),
        )
        for concept in concepts:
            engine.concepts.save(concept)
        return [format_concept_json(c) for c in concepts]

    @app.get("/api/meal-concepts/")
    def list_concepts(
        status_filter: Optional[str] = None,
        user_id: str = Depends(get_user_id)
    ) -> List[Dict[str, Any]]:
        status = None
        if status_filter:
            try:
                status = ConceptStatus(status_filter)
            except ValueError as exc:
                raise HTTPException(status_code=422, detail=f"Unknown status '{status_filter}'") from exc
        return [format_concept_json(c) for c in engine.concepts.list(user_id, status)]

    @app.post("/api/meal-concepts/batch-approve")
    def batch_approve(
        approvals: List[ConceptApproval],
        user_id: str = Depends(get_user_id)
    ) -> Dict[str, Any]:
        results = engine.lifecycle.batch_decide(
            user_id, [(a.concept_id, a.approved) for a in approvals]
        )
        succeeded = sum(1 for r in results if r.ok)
        return {
            "message": f"Processed {len(results)} concepts ({succeeded} succeeded)",
            "results": [r.to_dict() for r in results],
        }

    @app.get("/api/meal-concepts/{concept_id}")
    def get_concept(concept_id: str, user_id: str = Depends(get_user_id)) -> Dict[str, Any]:
        return format_concept_json(engine.lifecycle.get(user_id, concept_id))

    @app.patch("/api/meal-concepts/{concept_id}/approve")
    def approve_concept(concept_id: str, user_id: str = Depends(get_user_id)) -> Dict[str, Any]:
        return format_concept_json(engine.lifecycle.approve(user_id, concept_id))

    @app.patch("/api/meal-concepts/{concept_id}/reject")
    def reject_concept(concept_id: str, user_id: str = Depends(get_user_id)) -> Dict[str, Any]:
        return format_concept_json(engine.lifecycle.reject(user_id, concept_id))

    @app.delete("/api/meal-concepts/{concept_id}")
    def delete_concept(concept_id: str, user_id: str = Depends(get_user_id)) -> Dict[str, str]:
        engine.lifecycle.delete(user_id, concept_id)
        return {"message": f"Concept {concept_id} deleted"}

    # ------------------------------------------------------------------
    # Recipes
    # ------------------------------------------------------------------

    @app.post("/api/recipes/generate-from-concepts")
    def generate_recipes(
        request: GenerateRecipesRequest,
        user_id: str = Depends(get_user_id)
    ) -> Dict[str, Any]:
        budget_cap = to_decimal(str(request.budget_cap)) if request.budget_cap is not None else None
        result = engine.service.generate(
            user_id,
            GenerationRequest(
                concept_ids=request.concept_ids,
                budget_cap=budget_cap,
                reduce_by_pantry=request.reduce_by_pantry,
            ),
        )
        return format_generation_json(result)

    @app.get("/api/recipes")
    def list_recipes(user_id: str = Depends(get_user_id)) -> List[Dict[str, Any]]:
        return [format_recipe_json(r) for r in engine.recipes.list(user_id)]

    @app.get("/api/recipes/{recipe_id}")
    def get_recipe(recipe_id: str, user_id: str = Depends(get_user_id)) -> Dict[str, Any]:
        recipe = engine.recipes.get(user_id, recipe_id)
        if recipe is None:
            raise HTTPException(status_code=404, detail=f"Recipe '{recipe_id}' not found")
        return format_recipe_json(recipe)

    @app.delete("/api/recipes/{recipe_id}")
    def delete_recipe(recipe_id: str, user_id: str = Depends(get_user_id)) -> Dict[str, str]:
        if not engine.recipes.delete(user_id, recipe_id):
            raise HTTPException(status_code=404, detail=f"Recipe '{recipe_id}' not found")
        return {"message": f"Recipe {recipe_id} deleted"}

    # ------------------------------------------------------------------
    # Shopping
    # ------------------------------------------------------------------

    @app.get("/api/shopping/current")
    def current_shopping_list(user_id: str = Depends(get_user_id)) -> Dict[str, Any]:
        shopping_list = engine.shopping_lists.current(user_id)
        if shopping_list is None:
            raise HTTPException(status_code=404, detail="No current shopping list")
        return format_shopping_list_json(shopping_list)

    @app.patch("/api/shopping/{list_id}/items/{item_id}")
    def update_shopping_item(
        list_id: str,
        item_id: str,
        update: ShoppingItemUpdate,
        user_id: str = Depends(get_user_id)
    ) -> Dict[str, str]:
        if not engine.shopping_lists.mark_purchased(user_id, list_id, item_id, update.purchased):
            raise HTTPException(status_code=404, detail=f"Item '{item_id}' not found in list '{list_id}'")
        return {"message": "Item updated"}

    # ------------------------------------------------------------------
    # Pantry
    # ------------------------------------------------------------------

    @app.get("/api/pantry")
    def list_pantry(user_id: str = Depends(get_user_id)) -> List[Dict[str, Any]]:
        return [entry.to_dict() for entry in engine.pantry.list(user_id)]

    @app.post("/api/pantry")
    def add_pantry_item(
        item: PantryItemRequest,
        user_id: str = Depends(get_user_id)
    ) -> Dict[str, Any]:
        ingredient_id = engine.parser.normalizer.canonical_id(item.name)
        entry = PantryEntry(
            id=new_id(),
            ingredient_id=ingredient_id,
            name=item.name,
            available_quantity=to_decimal(str(item.quantity)),
            unit=item.unit,
            storage_location=item.storage_location,
            category=item.category,
            expires_at=item.expires_at,
            added_at=datetime.now(timezone.utc).isoformat(),
        )
        engine.pantry.save(user_id, entry)
        return entry.to_dict()

    return app


if __name__ == "__main__":
    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
