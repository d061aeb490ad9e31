"""Error taxonomy shared by the aggregator, the adapters and the fee sponsor.

Every failure is fatal to the current call. Callers that want a retry make a
fresh call; nothing in this package retries on their behalf.

.. code-block:: python

    >>> try:
    ...     raise DeviationTooHigh("dia", 130, 115, 1304, 500)
    ... except DeviationError as e:
    ...     e.source
    'dia'
"""


class GasXError(Exception):
    """Base exception for all sponsor and aggregator errors."""

    pass


# -- configuration --------------------------------------------------------


class ConfigError(GasXError):
    """Raised for invalid thresholds, duplicate or zero oracles."""

    pass


class DuplicateOracle(ConfigError):
    """Raised when an adapter is already registered for a pair."""

    pass


class ZeroAddress(ConfigError):
    """Raised when a token or account identifier is empty or the zero address."""

    pass


class InvalidIndex(ConfigError):
    """Raised when an oracle index is outside the registered list.

    :ivar index: Requested index.
    :ivar length: Number of registered entries.
    """

    def __init__(self, index: int, length: int):
        self.index = index
        self.length = length
        super().__init__(f"Invalid oracle index {index} (registered: {length})")


class MaxDeviationTooHigh(ConfigError):
    """Raised when a deviation bound above 10000 bps is configured."""

    pass


class MarkupTooHigh(ConfigError):
    """Raised when a fee markup above 1000 bps is configured."""

    pass


class InvalidSigner(ConfigError):
    """Raised when the trusted signer is missing or not an address."""

    pass


# -- quoting ----------------------------------------------------------------


class QuoteError(GasXError):
    """Base exception for failures to produce a price."""

    pass


class NoOracles(QuoteError):
    """Raised when no oracle is registered for a pair."""

    pass


class NoData(QuoteError):
    """Raised when every registered oracle failed to answer."""

    pass


class ZeroQuote(QuoteError):
    """Raised when a responding oracle returned a zero quote."""

    pass


class InvalidOnChainPrice(QuoteError):
    """Raised when the aggregated reference price is unusable at validate time."""

    pass


class AdapterError(QuoteError):
    """Base exception for a single adapter failing to quote."""

    pass


class PairNotSet(AdapterError):
    """Raised when the adapter has no source configured for the pair."""

    pass


class InvalidPair(AdapterError):
    """Raised when an adapter bound to one pair is asked for another."""

    pass


class ZeroPrice(AdapterError):
    """Raised when the underlying source reports a zero price."""

    pass


class ZeroKey(AdapterError):
    """Raised when an empty source key is configured for a pair."""

    pass


class StalePrice(AdapterError):
    """Raised when the source's last update is older than the adapter allows.

    :ivar age: Age of the last update in seconds.
    :ivar max_staleness: Allowed age in seconds.
    """

    def __init__(self, age: float, max_staleness: float):
        self.age = age
        self.max_staleness = max_staleness
        super().__init__(f"Price is {age:.0f}s old (max {max_staleness:.0f}s)")


class AdapterHTTPError(AdapterError):
    """Raised when an HTTP-backed adapter gets a failed response.

    :ivar status_code: HTTP status code, or None for transport errors.
    """

    def __init__(self, status_code: int | None, message: str):
        self.status_code = status_code
        if status_code is None:
            super().__init__(message)
        else:
            super().__init__(f"HTTP {status_code}: {message}")


# -- deviation --------------------------------------------------------------


class DeviationError(GasXError):
    """Base exception for prices rejected after they were computed."""

    pass


class DeviationTooHigh(DeviationError):
    """Raised when an accepted quote strays too far from the aggregate.

    :ivar source: Name of the offending source.
    :ivar value: The offending quote.
    :ivar aggregate: Aggregate the quote was compared to.
    :ivar deviation_bps: Measured deviation in basis points.
    :ivar max_deviation_bps: Configured bound in basis points.
    """

    def __init__(
        self,
        source: str,
        value: int,
        aggregate: int,
        deviation_bps: int,
        max_deviation_bps: int,
    ):
        self.source = source
        self.value = value
        self.aggregate = aggregate
        self.deviation_bps = deviation_bps
        self.max_deviation_bps = max_deviation_bps
        super().__init__(
            f"Deviation too high: {source} quoted {value} vs aggregate {aggregate} "
            f"({deviation_bps} bps > {max_deviation_bps} bps)"
        )


class PriceDeviationTooHigh(DeviationError):
    """Raised when the signed off-chain price strays from the on-chain price.

    :ivar signed_price: Price carried by the signed quote.
    :ivar on_chain_price: Aggregated reference price.
    :ivar deviation_bps: Measured deviation in basis points.
    """

    def __init__(self, signed_price: int, on_chain_price: int, deviation_bps: int):
        self.signed_price = signed_price
        self.on_chain_price = on_chain_price
        self.deviation_bps = deviation_bps
        super().__init__(
            f"Price deviation too high: signed {signed_price} vs on-chain "
            f"{on_chain_price} ({deviation_bps} bps)"
        )


# -- authorisation ----------------------------------------------------------


class AuthError(GasXError):
    """Base exception for rejected quotes and sponsorship requests."""

    pass


class Expired(AuthError):
    """Raised when the signed quote is past its expiry."""

    pass


class UnauthorizedSigner(AuthError):
    """Raised when the quote was not signed by the trusted signer."""

    pass


class InvalidSponsorData(AuthError):
    """Raised when packed sponsor data cannot be decoded."""

    pass


class SponsorPaused(AuthError):
    """Raised when validation is attempted while the sponsor is paused."""

    pass


# -- settlement state ------------------------------------------------------


class SettlementError(GasXError):
    """Base exception for settlement contexts the sponsor cannot accept."""

    pass


class ContextAlreadySettled(SettlementError):
    """Raised when a settlement context is handed to settle a second time."""

    pass


class UnknownContext(SettlementError):
    """Raised when a context was not issued by validate or does not match it."""

    pass


class OperationPending(SettlementError):
    """Raised when an operation is validated again before it was settled."""

    pass


# -- funds ------------------------------------------------------------------


class FundsError(GasXError):
    """Base exception for payer funds problems."""

    pass


class InsufficientFunds(FundsError):
    """Raised when the payer cannot cover a fee.

    :ivar payer: Payer address.
    :ivar required: Fee that had to be covered.
    :ivar available: Spending capacity found, if known.
    """

    def __init__(self, payer: str, required: int, available: int | None = None):
        self.payer = payer
        self.required = required
        self.available = available
        detail = f" (available {available})" if available is not None else ""
        super().__init__(f"Insufficient funds for {payer}: need {required}{detail}")
