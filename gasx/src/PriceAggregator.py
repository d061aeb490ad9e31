"""PriceAggregator: Mean/median aggregation with all-or-nothing deviation check.

Algorithm:
    1. Query every enabled adapter registered for the pair
    2. Skip adapters that raise (the failure is logged, not fatal)
    3. Fail if nothing is registered, nothing answered, or any answer is zero
    4. Compute the aggregate (mean, or lower median) of the answers
    5. Fail if ANY answer deviates from the aggregate by more than
       max_deviation_bps; a deviating set never produces a result

Unlike an outlier filter, step 5 rejects the whole call: the aggregate is
only trusted when every source agrees with it.

.. code-block:: python

    aggregator = PriceAggregator(OracleRegistry(), max_deviation_bps=500)
    for price in (100, 102, 98):
        aggregator.add_oracle(pair, FixedPriceAdapter(price * 10**18))
    aggregator.aggregate_mean(10**18, pair)  # 100 * 10**18
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable

from .errors import (
    DeviationTooHigh,
    MaxDeviationTooHigh,
    NoData,
    NoOracles,
    ZeroQuote,
)
from .OracleRegistry import OracleEntry, OracleRegistry

if TYPE_CHECKING:
    from .adapters import BaseAdapter
    from .AssetPair import AssetPair

logger = logging.getLogger(__name__)

BPS_DENOMINATOR = 10_000


def mean_of(values: list[int]) -> int:
    """Arithmetic mean, rounded down."""
    return sum(values) // len(values)


def median_of(values: list[int]) -> int:
    """Median using the lower-median convention for even counts.

    The element at ``n // 2`` of the ascending sort is returned as is; the
    two middle values are not averaged.
    """
    return sorted(values)[len(values) // 2]


STRATEGIES: dict[str, Callable[[list[int]], int]] = {
    "mean": mean_of,
    "median": median_of,
}


def deviation_bps(value: int, reference: int) -> int:
    """Relative difference of ``value`` from ``reference`` in basis points."""
    return abs(value - reference) * BPS_DENOMINATOR // reference


@dataclass
class AggregationResult:
    """Result of a successful aggregation.

    :ivar price: Aggregated quote, 1e18-scaled.
    :ivar method: Strategy used ("mean" or "median").
    :ivar quotes: Quote per contributing source label.
    :ivar skipped: Error message per source that failed to answer.
    """

    price: int
    method: str
    quotes: dict[str, int] = field(default_factory=dict)
    skipped: dict[str, str] = field(default_factory=dict)

    @property
    def sources(self) -> list[str]:
        """Sources used in the calculation."""
        return list(self.quotes.keys())

    @property
    def count(self) -> int:
        return len(self.quotes)


class PriceAggregator:
    """Aggregates quotes from the adapters registered for a pair.

    Registry state lives in the OracleRegistry handle; the aggregator holds
    the policy (strategies and deviation bound) and funnels admin calls to
    the registry.

    :ivar registry: Oracle registry handle.
    :ivar max_deviation_bps: Max allowed deviation of any quote from the aggregate.
    """

    MAX_DEVIATION_LIMIT_BPS = 10_000

    def __init__(
        self,
        registry: OracleRegistry | None = None,
        max_deviation_bps: int = 500,
    ) -> None:
        """Initialize the aggregator.

        :param registry: Registry to aggregate over (a fresh one by default).
        :param max_deviation_bps: Deviation bound in basis points (default 5%).
        :raises MaxDeviationTooHigh: If the bound exceeds 10000 bps.
        """
        self.registry = registry if registry is not None else OracleRegistry()
        self._lock = threading.Lock()
        self.max_deviation_bps = 0
        self.set_deviation_bps(max_deviation_bps)

    # -- admin --------------------------------------------------------------

    def set_deviation_bps(self, bps: int) -> None:
        """Set the deviation bound.

        :raises MaxDeviationTooHigh: If bps is outside [0, 10000].
        """
        if bps < 0 or bps > self.MAX_DEVIATION_LIMIT_BPS:
            raise MaxDeviationTooHigh(
                f"Deviation bound {bps} bps outside [0, {self.MAX_DEVIATION_LIMIT_BPS}]"
            )
        with self._lock:
            old = self.max_deviation_bps
            self.max_deviation_bps = bps
        logger.info(f"Max deviation updated: {old} -> {bps} bps")

    def add_oracle(self, pair: AssetPair, adapter: BaseAdapter) -> int:
        return self.registry.add(pair, adapter)

    def remove_oracle(self, pair: AssetPair, index: int) -> OracleEntry:
        return self.registry.remove(pair, index)

    def update_oracle(self, pair: AssetPair, index: int, adapter: BaseAdapter) -> OracleEntry:
        return self.registry.update(pair, index, adapter)

    def toggle_oracle(self, pair: AssetPair, index: int, enabled: bool) -> None:
        self.registry.toggle(pair, index, enabled)

    def get_oracles(self, pair: AssetPair) -> tuple[OracleEntry, ...]:
        return self.registry.get(pair)

    # -- aggregation --------------------------------------------------------

    def _collect(
        self, amount: int, pair: AssetPair
    ) -> tuple[dict[str, int], dict[str, str]]:
        """Query every enabled adapter for the pair.

        :returns: Tuple of (quotes by source, errors by skipped source).
        :raises NoOracles: If nothing is registered for the pair.
        :raises NoData: If no enabled adapter answered.
        :raises ZeroQuote: If an adapter answered with zero.
        """
        entries = self.registry.get(pair)
        if not entries:
            raise NoOracles(f"No oracles registered for {pair}")

        quotes: dict[str, int] = {}
        skipped: dict[str, str] = {}
        for index, entry in enumerate(entries):
            if not entry.enabled:
                continue
            source = f"{entry.adapter.label}#{index}"
            try:
                value = entry.adapter.quote(amount, pair.base, pair.quote)
            except Exception as exc:
                logger.warning(f"[{source}] quote for {pair} failed, skipping: {exc}")
                skipped[source] = str(exc)
                continue
            if value <= 0:
                raise ZeroQuote(f"{source} returned a non-positive quote for {pair}")
            quotes[source] = value

        if not quotes:
            raise NoData(f"No oracle answered for {pair} (skipped: {len(skipped)})")
        return quotes, skipped

    def aggregate(self, amount: int, pair: AssetPair, method: str = "mean") -> AggregationResult:
        """Aggregate quotes for ``amount`` of the pair's base token.

        :param amount: Input amount (base token units).
        :param pair: Asset pair to quote.
        :param method: "mean" or "median".
        :returns: AggregationResult with the aggregate and per-source quotes.
        :raises ValueError: If method is unknown.
        :raises QuoteError: If no usable quote was obtained.
        :raises DeviationTooHigh: If any quote strays from the aggregate.
        """
        if method not in STRATEGIES:
            raise ValueError(f"Unknown aggregation method '{method}'")
        bound = self.max_deviation_bps

        quotes, skipped = self._collect(amount, pair)
        price = STRATEGIES[method](list(quotes.values()))

        for source, value in quotes.items():
            deviation = deviation_bps(value, price)
            if deviation > bound:
                logger.warning(
                    f"[{source}] {pair} {method} rejected: quote {value} deviates "
                    f"{deviation} bps from {price} (max {bound})"
                )
                raise DeviationTooHigh(source, value, price, deviation, bound)

        logger.debug(
            "%s %s of %d quotes: %d (skipped %d)",
            pair,
            method,
            len(quotes),
            price,
            len(skipped),
        )
        return AggregationResult(price=price, method=method, quotes=quotes, skipped=skipped)

    def aggregate_mean(self, amount: int, pair: AssetPair) -> int:
        """Arithmetic mean of the enabled, answering adapters."""
        return self.aggregate(amount, pair, "mean").price

    def aggregate_median(self, amount: int, pair: AssetPair) -> int:
        """Lower median of the enabled, answering adapters."""
        return self.aggregate(amount, pair, "median").price
