"""FeeSponsor: Two-phase sponsorship charged in a secondary token.

Phase 1, validate: check the signed quote (expiry, signer), check it against
the aggregated on-chain price, make sure the payer can cover the worst-case
fee and commit a SettlementContext carrying the on-chain price.

Phase 2, settle: once the real execution cost is known, charge the payer
for it at the committed price. Settle may run much later and in another
context; it never re-queries the aggregator.

The sponsor keeps every context it issued until settle consumes it, so a
context is settled at most once and only if validate produced it.

Fees use a single multiply chain and a single division on Python ints::

    fee = max(cost * price * (10000 + markup_bps) // (1e18 * 10000), min_fee)

.. code-block:: python

    sponsor = FeeSponsor(aggregator, pair, funds, trusted_signer=signer.address,
                         min_fee=10_000, markup_bps=100)
    context = sponsor.validate(quote, op_hash, max_cost=10**16, payer=user)
    ...  # the operation runs
    record = sponsor.settle(OperationOutcome.SUCCEEDED, context, actual_cost)
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Callable

from eth_abi import decode, encode
from web3 import Web3

from .adapters.base import PRICE_SCALE
from .AssetPair import is_zero_token, normalize_token
from .errors import (
    ConfigError,
    ContextAlreadySettled,
    Expired,
    GasXError,
    InsufficientFunds,
    InvalidOnChainPrice,
    InvalidSigner,
    MarkupTooHigh,
    OperationPending,
    PriceDeviationTooHigh,
    SponsorPaused,
    UnauthorizedSigner,
    UnknownContext,
    ZeroAddress,
)
from .PriceAggregator import BPS_DENOMINATOR, deviation_bps
from .SignedQuote import (
    SignedQuote,
    decode_sponsor_data,
    recover_quote_signer,
    to_bytes32,
)

if TYPE_CHECKING:
    from .AssetPair import AssetPair
    from .PayerFunds import PayerFunds
    from .PriceAggregator import PriceAggregator

logger = logging.getLogger(__name__)

MAX_MARKUP_BPS = 1_000
# Max distance between the signed price and the on-chain price.
PRICE_TOLERANCE_BPS = 500


def compute_fee(cost: int, price: int, markup_bps: int, min_fee: int = 0) -> int:
    """Fee owed for ``cost`` at ``price`` with markup, floored at ``min_fee``.

    :param cost: Execution cost in native units (wei).
    :param price: Price of 1e18 native units in the fee token.
    :param markup_bps: Markup in basis points.
    :param min_fee: Minimum fee in fee token units.
    """
    fee = cost * price * (BPS_DENOMINATOR + markup_bps) // (PRICE_SCALE * BPS_DENOMINATOR)
    return max(fee, min_fee)


class OperationOutcome(Enum):
    """How the sponsored operation ended."""

    SUCCEEDED = "succeeded"
    REVERTED = "reverted"


class SettlementPhase(Enum):
    """Lifecycle of a settlement context."""

    COMMITTED = "committed"
    SETTLING = "settling"
    TERMINAL = "terminal"


@dataclass
class SettlementContext:
    """Data handed from validate to settle for one operation.

    :ivar committed_price: On-chain price captured at validate time.
    :ivar payer: Address the fee is charged to.
    :ivar operation_hash: Hash of the sponsored operation.
    :ivar phase: COMMITTED until settle consumes it.
    """

    committed_price: int
    payer: str
    operation_hash: bytes
    phase: SettlementPhase = field(default=SettlementPhase.COMMITTED, compare=False)

    def encode(self) -> bytes:
        """ABI-encode as (uint256 price, address payer, bytes32 operationHash)."""
        return encode(
            ["uint256", "address", "bytes32"],
            [self.committed_price, self.payer, self.operation_hash],
        )

    @classmethod
    def decode(cls, data: bytes) -> SettlementContext:
        price, payer, operation_hash = decode(["uint256", "address", "bytes32"], data)
        return cls(price, Web3.to_checksum_address(payer), bytes(operation_hash))


@dataclass(frozen=True)
class SettlementRecord:
    """Record of a collected fee."""

    operation_hash: bytes
    payer: str
    actual_fee: int


@dataclass
class FeeLedger:
    """Fee parameters and the collected-fees counter.

    :ivar min_fee: Minimum fee in fee token units.
    :ivar markup_bps: Markup on the raw fee in basis points.
    :ivar total_fees_collected: Sum of all collected fees; never decreases.
    """

    min_fee: int
    markup_bps: int
    total_fees_collected: int = 0


class FeeSponsor:
    """Sponsors execution cost and recovers it in the fee token.

    :ivar aggregator: Aggregator queried for the reference price.
    :ivar pair: (native, fee token) pair priced by the aggregator.
    :ivar funds: Payer funds capability.
    :ivar trusted_signer: Address whose quotes are accepted.
    :ivar ledger: Fee parameters and counters.
    :ivar clock: Callable returning the current unix time.
    """

    def __init__(
        self,
        aggregator: PriceAggregator,
        pair: AssetPair,
        funds: PayerFunds,
        trusted_signer: str,
        min_fee: int = 0,
        markup_bps: int = 0,
        clock: Callable[[], float] | None = None,
    ) -> None:
        """Initialize the sponsor.

        :raises InvalidSigner: If trusted_signer is not a non-zero address.
        :raises MarkupTooHigh: If markup_bps exceeds 1000.
        :raises ConfigError: If min_fee is negative.
        """
        self.aggregator = aggregator
        self.pair = pair
        self.funds = funds
        self._check_signer(trusted_signer)
        self._check_markup(markup_bps)
        self._check_min_fee(min_fee)
        self.trusted_signer = Web3.to_checksum_address(trusted_signer)
        self.ledger = FeeLedger(min_fee=min_fee, markup_bps=markup_bps)
        self.clock = clock or time.time
        self._paused = False
        self._lock = threading.Lock()
        self._pending: dict[bytes, SettlementContext] = {}

    # -- admin --------------------------------------------------------------

    @staticmethod
    def _check_signer(signer: str) -> None:
        if is_zero_token(signer) or not Web3.is_address(signer):
            raise InvalidSigner(f"Invalid signer address {signer!r}")

    @staticmethod
    def _check_markup(markup_bps: int) -> None:
        if markup_bps < 0 or markup_bps > MAX_MARKUP_BPS:
            raise MarkupTooHigh(f"Markup {markup_bps} bps outside [0, {MAX_MARKUP_BPS}]")

    @staticmethod
    def _check_min_fee(min_fee: int) -> None:
        if min_fee < 0:
            raise ConfigError(f"Min fee must be non-negative, got {min_fee}")

    def set_fee_markup_bps(self, markup_bps: int) -> None:
        self._check_markup(markup_bps)
        with self._lock:
            old = self.ledger.markup_bps
            self.ledger.markup_bps = markup_bps
        logger.info(f"Fee markup updated: {old} -> {markup_bps} bps")

    def set_min_fee(self, min_fee: int) -> None:
        self._check_min_fee(min_fee)
        with self._lock:
            old = self.ledger.min_fee
            self.ledger.min_fee = min_fee
        logger.info(f"Min fee updated: {old} -> {min_fee}")

    def set_trusted_signer(self, signer: str) -> None:
        self._check_signer(signer)
        with self._lock:
            old = self.trusted_signer
            self.trusted_signer = Web3.to_checksum_address(signer)
        logger.info(f"Trusted signer updated: {old} -> {self.trusted_signer}")

    def pause(self) -> None:
        self._paused = True
        logger.warning("Sponsor paused")

    def unpause(self) -> None:
        self._paused = False
        logger.info("Sponsor unpaused")

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def total_fees_collected(self) -> int:
        return self.ledger.total_fees_collected

    def fee_for(self, cost: int, price: int) -> int:
        """Fee for ``cost`` at ``price`` under the current ledger settings."""
        return compute_fee(cost, price, self.ledger.markup_bps, self.ledger.min_fee)

    def withdraw_fees(self, recipient: str, amount: int) -> None:
        """Send collected fees from the treasury to ``recipient``.

        :raises ZeroAddress: If recipient is empty or the zero address.
        :raises InsufficientFunds: If the treasury holds less than amount.
        """
        if is_zero_token(recipient):
            raise ZeroAddress("Fee recipient must be non-zero")
        self.funds.withdraw_fees(normalize_token(recipient), amount)

    # -- read side ----------------------------------------------------------

    def _on_chain_price(self) -> int:
        try:
            price = self.aggregator.aggregate_mean(PRICE_SCALE, self.pair)
        except GasXError as exc:
            raise InvalidOnChainPrice(f"No on-chain price for {self.pair}: {exc}") from exc
        if price <= 0:
            raise InvalidOnChainPrice(f"On-chain price for {self.pair} is zero")
        return price

    def estimate_fee(self, cost: int) -> int:
        """Fee for ``cost`` at the current aggregated price.

        :raises InvalidOnChainPrice: If the aggregator cannot give a price.
        """
        return self.fee_for(cost, self._on_chain_price())

    def check_user_ready(self, payer: str, cost: int) -> tuple[bool, bool, int]:
        """Check whether a payer could be sponsored for ``cost`` right now.

        :returns: Tuple of (allowance covers fee, balance covers fee, fee).
        :raises InvalidOnChainPrice: If the aggregator cannot give a price.
        """
        required = self.estimate_fee(cost)
        return (
            self.funds.allowance_of(payer) >= required,
            self.funds.balance_of(payer) >= required,
            required,
        )

    def fee_balance(self) -> int:
        return self.funds.fee_balance()

    def is_pending(self, operation_hash: bytes | str) -> bool:
        """True if the operation was validated and not yet settled."""
        return to_bytes32(operation_hash) in self._pending

    # -- phase 1 ------------------------------------------------------------

    def validate(
        self,
        quote: SignedQuote,
        operation_hash: bytes | str,
        max_cost: int,
        payer: str,
    ) -> SettlementContext:
        """Validate a sponsorship request and commit a settlement context.

        Checks run cheapest first and the first failure aborts the request.

        :param quote: Signed off-chain quote.
        :param operation_hash: Hash of the operation being sponsored.
        :param max_cost: Worst-case execution cost in native units.
        :param payer: Address the fee will be charged to.
        :returns: Context to hand to settle().
        :raises SponsorPaused: If the sponsor is paused.
        :raises Expired: If the quote is past its expiry.
        :raises UnauthorizedSigner: If the quote is not from the trusted signer.
        :raises InvalidOnChainPrice: If the aggregator cannot give a price.
        :raises PriceDeviationTooHigh: If the signed price is more than 5% off.
        :raises InsufficientFunds: If the payer cannot cover the worst-case fee.
        """
        if self._paused:
            raise SponsorPaused("Sponsor is paused")

        now = self.clock()
        if now >= quote.expiry:
            raise Expired(f"Quote expired at {quote.expiry} (now {int(now)})")

        operation_hash = to_bytes32(operation_hash)
        try:
            signer = recover_quote_signer(operation_hash, quote)
        except Exception as exc:
            raise UnauthorizedSigner(f"Cannot recover quote signer: {exc}") from exc
        if signer != self.trusted_signer:
            raise UnauthorizedSigner(f"Quote signed by {signer}, expected {self.trusted_signer}")

        on_chain_price = self._on_chain_price()

        deviation = deviation_bps(quote.price, on_chain_price)
        if deviation > PRICE_TOLERANCE_BPS:
            raise PriceDeviationTooHigh(quote.price, on_chain_price, deviation)

        payer = normalize_token(payer)
        provisional_fee = self.fee_for(max_cost, on_chain_price)
        if not self.funds.has_sufficient_capacity(payer, provisional_fee):
            raise InsufficientFunds(payer, provisional_fee)

        context = SettlementContext(
            committed_price=on_chain_price,
            payer=payer,
            operation_hash=operation_hash,
        )
        with self._lock:
            if operation_hash in self._pending:
                raise OperationPending(f"Operation {operation_hash.hex()} awaits settlement")
            self._pending[operation_hash] = context

        logger.debug(
            "Validated %s for %s: price=%d provisional_fee=%d",
            operation_hash.hex(),
            payer,
            on_chain_price,
            provisional_fee,
        )
        return context

    def validate_sponsor_data(
        self,
        data: bytes,
        operation_hash: bytes | str,
        max_cost: int,
        payer: str,
    ) -> SettlementContext:
        """Decode packed sponsor data and validate the quote it carries.

        :raises InvalidSponsorData: If data cannot be decoded.
        """
        sponsor_data = decode_sponsor_data(data)
        return self.validate(sponsor_data.quote, operation_hash, max_cost, payer)

    # -- phase 2 ------------------------------------------------------------

    def settle(
        self,
        outcome: OperationOutcome,
        context: SettlementContext,
        actual_cost: int,
    ) -> SettlementRecord | None:
        """Settle a committed operation.

        A failed operation is a sunk cost: nothing is collected and None is
        returned. Otherwise the fee for ``actual_cost`` at the committed price
        is pulled from the payer.

        :param outcome: How the operation ended.
        :param context: Context returned by validate().
        :param actual_cost: Real execution cost in native units.
        :returns: SettlementRecord, or None if nothing was collected.
        :raises ContextAlreadySettled: If the context was already consumed.
        :raises UnknownContext: If validate did not issue this context.
        :raises InsufficientFunds: If the payer's funds moved since validate.
        """
        with self._lock:
            if context.phase is not SettlementPhase.COMMITTED:
                raise ContextAlreadySettled(
                    f"Context for {context.operation_hash.hex()} is {context.phase.value}"
                )
            issued = self._pending.get(context.operation_hash)
            if issued is None or issued != context:
                raise UnknownContext(
                    f"No pending context matches {context.operation_hash.hex()}"
                )
            del self._pending[context.operation_hash]
            issued.phase = SettlementPhase.SETTLING
            context.phase = SettlementPhase.SETTLING

        try:
            if outcome is not OperationOutcome.SUCCEEDED:
                logger.info(
                    f"Operation {context.operation_hash.hex()} {outcome.value}; "
                    "no fee collected"
                )
                return None

            actual_fee = self.fee_for(actual_cost, context.committed_price)
            self.funds.collect(context.payer, actual_fee)

            with self._lock:
                self.ledger.total_fees_collected += actual_fee

            record = SettlementRecord(
                operation_hash=context.operation_hash,
                payer=context.payer,
                actual_fee=actual_fee,
            )
            logger.info(
                f"Fee charged: op={context.operation_hash.hex()} "
                f"payer={context.payer} fee={actual_fee}"
            )
            return record
        finally:
            issued.phase = SettlementPhase.TERMINAL
            context.phase = SettlementPhase.TERMINAL
