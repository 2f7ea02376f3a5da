"""HTTP-backed pricing oracle.

Queries an external price-estimation service:

    GET {base_url}/prices?ingredient=<id>&quantity=<q>&unit=<unit>
    -> {"ingredient": "...", "price": "3.49", "currency": "USD"}

Every failure (timeout, connection error, rate limit, non-200, malformed
body) becomes PricingUnavailableError so the builder can keep going with
an unknown price. Successful answers are memoised per (ingredient,
quantity, unit) so repeated dry runs of a batch see the same prices. The
memo holds at most ``memo_size`` answers (least recently used evicted
first) and each answer expires after ``memo_ttl`` seconds, so a
long-running server picks up new prices.
"""

import logging
import os
import threading
import time
from collections import OrderedDict
from decimal import Decimal, InvalidOperation
from typing import Callable, Dict, Optional, Tuple

import requests

from athyra.data_layer.exceptions import PricingUnavailableError
from athyra.data_layer.models import round_money, to_decimal
from athyra.providers.pricing_provider import PricingOracle


logger = logging.getLogger(__name__)


class HttpPricingOracle(PricingOracle):
    """Pricing oracle backed by a remote price service."""

    DEFAULT_TIMEOUT = 10
    DEFAULT_MEMO_SIZE = 1024
    DEFAULT_MEMO_TTL = 300.0

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        memo_size: int = DEFAULT_MEMO_SIZE,
        memo_ttl: float = DEFAULT_MEMO_TTL,
        clock: Callable[[], float] = time.monotonic
    ):
        """Initialize oracle.

        Args:
            base_url: Service root, e.g. "https://prices.example.com/v1"
            api_key: Optional key sent as a bearer token
            timeout: Request timeout in seconds
            memo_size: Most answers kept in the memo
            memo_ttl: Seconds a memoised answer stays valid
            clock: Monotonic time source

        Raises:
            ValueError: If base_url is empty
        """
        if not base_url or not base_url.strip():
            raise ValueError("Pricing service base URL is required")
        self.base_url = base_url.strip().rstrip("/")
        self.api_key = api_key.strip() if api_key else None
        self.timeout = timeout
        self.memo_size = memo_size
        self.memo_ttl = memo_ttl
        self.clock = clock
        self._memo: "OrderedDict[Tuple[str, str, str], Tuple[Decimal, float]]" = OrderedDict()
        self._memo_lock = threading.Lock()

    @classmethod
    def from_env(
        cls,
        url_var: str = "ATHYRA_PRICING_URL",
        key_var: str = "ATHYRA_PRICING_API_KEY"
    ) -> "HttpPricingOracle":
        """Create oracle from environment variables.

        Raises:
            ValueError: If the URL variable is not set
        """
        base_url = os.environ.get(url_var)
        if not base_url:
            raise ValueError(f"Environment variable {url_var} not set")
        return cls(base_url=base_url, api_key=os.environ.get(key_var))

    def estimate(self, ingredient_id: str, quantity: Decimal, unit: str) -> Decimal:
        memo_key = (ingredient_id, str(quantity), unit)
        cached = self._recall(memo_key)
        if cached is not None:
            return cached

        payload = self._make_request(ingredient_id, quantity, unit)
        try:
            price = round_money(to_decimal(payload["price"]))
        except (KeyError, TypeError, InvalidOperation) as e:
            raise PricingUnavailableError(ingredient_id, "malformed price response") from e
        if price < 0:
            raise PricingUnavailableError(ingredient_id, f"negative price {price}")

        self._remember(memo_key, price)
        return price

    def _recall(self, memo_key: Tuple[str, str, str]) -> Optional[Decimal]:
        with self._memo_lock:
            entry = self._memo.get(memo_key)
            if entry is None:
                return None
            price, stored_at = entry
            if self.clock() - stored_at >= self.memo_ttl:
                del self._memo[memo_key]
                return None
            self._memo.move_to_end(memo_key)
            return price

    def _remember(self, memo_key: Tuple[str, str, str], price: Decimal) -> None:
        with self._memo_lock:
            self._memo[memo_key] = (price, self.clock())
            self._memo.move_to_end(memo_key)
            while len(self._memo) > self.memo_size:
                self._memo.popitem(last=False)

    def _make_request(self, ingredient_id: str, quantity: Decimal, unit: str) -> Dict:
        """Make the price request.

        Raises:
            PricingUnavailableError: If the request fails in any way
        """
        url = f"{self.base_url}/prices"
        params = {
            "ingredient": ingredient_id,
            "quantity": str(quantity),
            "unit": unit,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}

        try:
            response = requests.get(url, params=params, headers=headers, timeout=self.timeout)
        except requests.exceptions.Timeout:
            logger.warning("Price request for '%s' timed out", ingredient_id)
            raise PricingUnavailableError(ingredient_id, "price service timed out", timeout=True)
        except requests.exceptions.ConnectionError:
            logger.warning("Could not connect to price service for '%s'", ingredient_id)
            raise PricingUnavailableError(ingredient_id, "failed to connect to price service")
        except requests.exceptions.RequestException as e:
            raise PricingUnavailableError(ingredient_id, f"request failed: {e}")

        if response.status_code == 429:
            raise PricingUnavailableError(
                ingredient_id, "price service rate limit exceeded",
                status_code=429, rate_limited=True,
            )
        if response.status_code == 404:
            raise PricingUnavailableError(ingredient_id, "unknown to price service", status_code=404)
        if response.status_code != 200:
            raise PricingUnavailableError(
                ingredient_id,
                f"price service returned status {response.status_code}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise PricingUnavailableError(ingredient_id, "price response is not JSON") from e
