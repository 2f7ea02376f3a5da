"""Concept state machine and per-user batch coordination."""

from athyra.lifecycle.concept_lifecycle import BatchDecisionResult, ConceptLifecycle
from athyra.lifecycle.locks import CancellationToken, UserLockRegistry

__all__ = [
    "BatchDecisionResult",
    "ConceptLifecycle",
    "CancellationToken",
    "UserLockRegistry",
]
