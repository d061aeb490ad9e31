"""Fixed-price adapter.

Quotes a constant price set by the operator. Used for local runs and as a
controllable source in tests. A zero price is rejected like any other
source reporting zero.
"""

import logging
from typing import Any

from ..errors import AdapterError, ZeroPrice
from .base import PRICE_SCALE, BaseAdapter, register_adapter

logger = logging.getLogger(__name__)


@register_adapter
class FixedPriceAdapter(BaseAdapter):
    """Adapter returning ``amount * price / 1e18`` for every pair.

    :ivar price: Price of one base unit, 1e18-scaled.
    :ivar failing: When True, every quote raises AdapterError.
    """

    name = "fixed"

    def __init__(self, price: int, tag: str | None = None, **kwargs: Any) -> None:
        """Initialize the adapter.

        :param price: Price of one base unit, 1e18-scaled.
        :param tag: Optional tag distinguishing several fixed sources in logs.
        """
        super().__init__(**kwargs)
        self.price = int(price)
        self.tag = tag
        self.failing = False

    @property
    def label(self) -> str:
        return f"fixed:{self.tag}" if self.tag else f"fixed:{self.price}"

    def set_price(self, price: int) -> None:
        self.price = int(price)

    def set_failing(self, failing: bool) -> None:
        self.failing = failing

    def quote(self, amount: int, base: str, quote: str) -> int:
        if self.failing:
            raise AdapterError(f"[{self.label}] configured to fail")
        if self.price == 0:
            raise ZeroPrice(f"[{self.label}] zero price")
        return amount * self.price // PRICE_SCALE
