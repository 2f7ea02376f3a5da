"""Abstract base class for price estimation.

The ShoppingListBuilder and SubstitutionPlanner depend ONLY on this
interface. Concrete oracles price from the local catalog or from an
external price service without changing downstream logic.
"""

from abc import ABC, abstractmethod
from decimal import Decimal


class PricingOracle(ABC):
    """Estimates what a quantity of an ingredient costs."""

    @abstractmethod
    def estimate(self, ingredient_id: str, quantity: Decimal, unit: str) -> Decimal:
        """Return the estimated price of *quantity* *unit* of an ingredient.

        The result is rounded to cents.

        Raises:
            PricingUnavailableError: If no price can be produced. Callers
                degrade to an unknown price rather than failing the batch.
        """
        ...
