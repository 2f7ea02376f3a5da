"""Structured error types for the recipe consolidation engine.

Every failure mode of a generation batch has its own typed error so callers
can decide precisely how to react:

    ┌──────────────────────────────┬──────────────────────────────────────┐
    │ Error                        │ Scope / recovery                     │
    ├──────────────────────────────┼──────────────────────────────────────┤
    │ UnitMismatchError            │ line kept unmerged, batch continues  │
    │ InvalidStateError            │ concept rejected, batch continues    │
    │ ConceptNotFoundError         │ concept rejected, batch continues    │
    │ RecipeExpansionError         │ concept rejected, batch continues    │
    │ PricingUnavailableError      │ item left unpriced, batch continues  │
    │ BudgetInfeasibleError        │ recorded as a warning, never raised  │
    │ PantryCommitConflictError    │ whole batch rolled back, retry       │
    │ GenerationCancelledError     │ whole batch abandoned before commit  │
    │ LockTimeoutError             │ batch never started, retry           │
    └──────────────────────────────┴──────────────────────────────────────┘

No error raised here is fatal to the process: all of them are scoped to
the batch that produced them.
"""

from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional


class EngineErrorCode(Enum):
    """Enumeration of all engine error codes.

    Codes are string values for easy serialization and logging.
    """

    # Quantity errors
    UNIT_MISMATCH = "UNIT_MISMATCH"

    # Concept errors
    INVALID_STATE = "INVALID_STATE"
    CONCEPT_NOT_FOUND = "CONCEPT_NOT_FOUND"
    RECIPE_EXPANSION_FAILED = "RECIPE_EXPANSION_FAILED"

    # Pricing / budget
    PRICING_UNAVAILABLE = "PRICING_UNAVAILABLE"
    BUDGET_INFEASIBLE = "BUDGET_INFEASIBLE"

    # Commit / batch control
    PANTRY_COMMIT_CONFLICT = "PANTRY_COMMIT_CONFLICT"
    GENERATION_CANCELLED = "GENERATION_CANCELLED"
    LOCK_TIMEOUT = "LOCK_TIMEOUT"


class EngineError(Exception):
    """Base exception for all engine errors.

    Attributes:
        code: EngineErrorCode identifying the error type
        message: Human-readable error description
        context: Dictionary of relevant error context (ingredient id, etc.)
    """

    def __init__(
        self,
        code: EngineErrorCode,
        message: str,
        context: Optional[Dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.context = context or {}
        super().__init__(f"[{code.value}] {message}")

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"code={self.code!r}, "
            f"message={self.message!r}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for API responses.

        Returns:
            Dictionary with error code, message, and context
        """
        return {
            "error_code": self.code.value,
            "message": self.message,
            "context": self.context
        }


class UnitMismatchError(EngineError):
    """Raised when a quantity cannot be converted to an ingredient's base unit.

    Recoverable: the consolidator keeps the offending requirement as its own
    unmerged demand line instead of summing it.

    Context includes:
        - ingredient_id: The ingredient being measured
        - unit: The unit that could not be converted
        - base_unit: The ingredient's base unit (if known)
    """

    def __init__(
        self,
        ingredient_id: str,
        unit: str,
        base_unit: Optional[str] = None
    ):
        context: Dict[str, Any] = {
            "ingredient_id": ingredient_id,
            "unit": unit,
        }
        if base_unit is not None:
            context["base_unit"] = base_unit

        if base_unit:
            message = (
                f"Cannot convert '{unit}' to base unit '{base_unit}' "
                f"for ingredient '{ingredient_id}'"
            )
        else:
            message = f"Unknown unit '{unit}' for ingredient '{ingredient_id}'"

        super().__init__(
            code=EngineErrorCode.UNIT_MISMATCH,
            message=message,
            context=context
        )

        self.ingredient_id = ingredient_id
        self.unit = unit
        self.base_unit = base_unit


class InvalidStateError(EngineError):
    """Raised when a concept transition is not allowed from its current state.

    Context includes:
        - concept_id: The concept being transitioned
        - current_status: Its status at the time of the attempt
        - attempted: The transition that was attempted
    """

    def __init__(self, concept_id: str, current_status: str, attempted: str):
        context = {
            "concept_id": concept_id,
            "current_status": current_status,
            "attempted": attempted,
        }
        message = (
            f"Cannot {attempted} concept '{concept_id}' "
            f"in state '{current_status}'"
        )
        super().__init__(
            code=EngineErrorCode.INVALID_STATE,
            message=message,
            context=context
        )

        self.concept_id = concept_id
        self.current_status = current_status
        self.attempted = attempted


class ConceptNotFoundError(EngineError):
    """Raised when a concept id does not exist for the requesting user."""

    def __init__(self, concept_id: str, user_id: Optional[str] = None):
        context: Dict[str, Any] = {"concept_id": concept_id}
        if user_id is not None:
            context["user_id"] = user_id
        super().__init__(
            code=EngineErrorCode.CONCEPT_NOT_FOUND,
            message=f"Meal concept '{concept_id}' not found",
            context=context
        )

        self.concept_id = concept_id
        self.user_id = user_id


class RecipeExpansionError(EngineError):
    """Raised when the upstream recipe expander fails for a concept."""

    def __init__(self, concept_id: str, reason: str):
        super().__init__(
            code=EngineErrorCode.RECIPE_EXPANSION_FAILED,
            message=f"Recipe expansion failed for concept '{concept_id}': {reason}",
            context={"concept_id": concept_id, "reason": reason}
        )

        self.concept_id = concept_id
        self.reason = reason


class PricingUnavailableError(EngineError):
    """Raised by a pricing oracle that cannot price an ingredient.

    Recoverable: the item is kept with an unknown price.

    Context includes:
        - ingredient_id: The ingredient being priced
        - reason: Why pricing failed
        - status_code / timeout / rate_limited: set for HTTP oracles
    """

    def __init__(
        self,
        ingredient_id: str,
        reason: str,
        status_code: Optional[int] = None,
        timeout: bool = False,
        rate_limited: bool = False
    ):
        context: Dict[str, Any] = {
            "ingredient_id": ingredient_id,
            "reason": reason,
        }
        if status_code is not None:
            context["status_code"] = status_code
        if timeout:
            context["timeout"] = timeout
        if rate_limited:
            context["rate_limited"] = rate_limited

        super().__init__(
            code=EngineErrorCode.PRICING_UNAVAILABLE,
            message=f"No price available for '{ingredient_id}': {reason}",
            context=context
        )

        self.ingredient_id = ingredient_id
        self.reason = reason
        self.status_code = status_code
        self.timeout = timeout
        self.rate_limited = rate_limited


class BudgetInfeasibleError(EngineError):
    """Describes a budget cap that could not be met.

    Soft failure: the planner never raises this. It is attached to the
    batch warnings alongside the best achievable list.
    """

    def __init__(self, budget_cap: Decimal, best_total: Decimal):
        shortfall = best_total - budget_cap
        super().__init__(
            code=EngineErrorCode.BUDGET_INFEASIBLE,
            message=(
                f"Budget cap ${budget_cap} cannot be met; best achievable "
                f"total is ${best_total} (over by ${shortfall})"
            ),
            context={
                "budget_cap": str(budget_cap),
                "best_total": str(best_total),
                "shortfall": str(shortfall),
            }
        )

        self.budget_cap = budget_cap
        self.best_total = best_total
        self.shortfall = shortfall


class PantryCommitConflictError(EngineError):
    """Raised when the pantry changed between snapshot and commit.

    The whole batch is rolled back; the caller must retry.
    """

    def __init__(self, user_id: str, expected_version: int, actual_version: int):
        super().__init__(
            code=EngineErrorCode.PANTRY_COMMIT_CONFLICT,
            message=(
                f"Pantry for user '{user_id}' was modified concurrently "
                f"(expected version {expected_version}, found {actual_version})"
            ),
            context={
                "user_id": user_id,
                "expected_version": expected_version,
                "actual_version": actual_version,
            }
        )

        self.user_id = user_id
        self.expected_version = expected_version
        self.actual_version = actual_version


class GenerationCancelledError(EngineError):
    """Raised when a batch is cancelled before its commit step."""

    def __init__(self, user_id: str, stage: str):
        super().__init__(
            code=EngineErrorCode.GENERATION_CANCELLED,
            message=f"Generation for user '{user_id}' cancelled during {stage}",
            context={"user_id": user_id, "stage": stage}
        )

        self.user_id = user_id
        self.stage = stage


class LockTimeoutError(EngineError):
    """Raised when the per-user batch lock cannot be acquired in time."""

    def __init__(self, user_id: str, timeout: float):
        super().__init__(
            code=EngineErrorCode.LOCK_TIMEOUT,
            message=(
                f"Another generation for user '{user_id}' is still running "
                f"(waited {timeout}s)"
            ),
            context={"user_id": user_id, "timeout": timeout}
        )

        self.user_id = user_id
        self.timeout = timeout


def errors_to_dicts(errors: List[EngineError]) -> List[Dict[str, Any]]:
    """Serialize a list of engine errors for API responses."""
    return [error.to_dict() for error in errors]
