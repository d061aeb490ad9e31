"""Coinbase Exchange adapter.

Endpoint: https://api.exchange.coinbase.com/products/{BASE}-{QUOTE}/ticker
Rate Limit: High (no key required)

Token identifiers are mapped to Coinbase product ids with set_product().
The ticker's ``time`` field is the last trade time and drives staleness.
"""

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from ..AssetPair import is_zero_token, normalize_token
from ..errors import AdapterError, PairNotSet, ZeroAddress, ZeroPrice
from .base import PRICE_SCALE, HTTPAdapter, register_adapter

logger = logging.getLogger(__name__)


def parse_ticker_time(value: str) -> float:
    """Parse a Coinbase ISO-8601 timestamp into unix seconds."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value).timestamp()


@register_adapter
class CoinbaseAdapter(HTTPAdapter):
    """Adapter for the Coinbase Exchange public ticker.

    Staleness defaults to 5 minutes since the ticker reflects the last trade.

    :ivar products: Mapping of (base, quote) to product id (e.g. "ETH-USD").
    """

    name = "coinbase"
    BASE_URL = "https://api.exchange.coinbase.com"
    DEFAULT_MAX_STALENESS = 300.0

    def __init__(
        self, products: dict[tuple[str, str], str] | None = None, **kwargs: Any
    ) -> None:
        super().__init__(**kwargs)
        self.products: dict[tuple[str, str], str] = {}
        for (base, quote), product in (products or {}).items():
            self.set_product(base, quote, product)

    def set_product(self, base: str, quote: str, product: str) -> None:
        """Map a token pair to a Coinbase product id.

        :raises ZeroAddress: If base or quote is empty or zero.
        """
        base, quote = normalize_token(base), normalize_token(quote)
        if is_zero_token(base) or is_zero_token(quote):
            raise ZeroAddress("Pair tokens must be non-zero")
        self.products[(base, quote)] = product.upper()

    def quote(self, amount: int, base: str, quote: str) -> int:
        product = self.products.get((normalize_token(base), normalize_token(quote)))
        if product is None:
            raise PairNotSet(f"[coinbase] No product configured for {base}/{quote}")

        response = self._get(f"{self.BASE_URL}/products/{product}/ticker")
        try:
            data = response.json()
            price = Decimal(data["price"])
            updated_at = parse_ticker_time(data["time"])
        except (KeyError, ValueError, TypeError, InvalidOperation) as e:
            raise AdapterError(f"[coinbase] Failed to parse response for {product}: {e}") from e

        if not price.is_finite():
            raise AdapterError(f"[coinbase] Non-finite price for {product}: {price}")
        if price <= 0:
            raise ZeroPrice(f"[coinbase] Zero price for {product}")
        self.check_fresh(updated_at)

        scaled = int(price * PRICE_SCALE)
        return amount * scaled // PRICE_SCALE
