"""AssetPair: (base, quote) token identifiers keying the oracle registry.

Hex addresses are normalised to their checksum form so that the same token
spelled in different case maps to the same registry slot. Identifiers that
are not addresses (e.g. symbols used by off-chain sources) are kept as given.

.. code-block:: python

    >>> pair = AssetPair(
    ...     "0x0000000000000000000000000000000000000001",
    ...     "0x0000000000000000000000000000000000000002",
    ... )
    >>> pair.is_zero
    False
    >>> AssetPair.from_string("weth/usdc").base
    'weth'
"""

from __future__ import annotations

from web3 import Web3

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def normalize_token(token: str) -> str:
    """Normalise a token identifier.

    :param token: Hex address or free-form identifier.
    :returns: Checksum address for hex addresses, the stripped input otherwise.
    """
    token = token.strip()
    if Web3.is_address(token):
        return Web3.to_checksum_address(token)
    return token


def is_zero_token(token: str) -> bool:
    """Check whether a token identifier is empty or the zero address.

    The identifier is normalised first, so unprefixed or padded spellings of
    the zero address are caught too.
    """
    token = normalize_token(token) if token else token
    return not token or token.lower() == ZERO_ADDRESS


class AssetPair:
    """A (base, quote) pair of token identifiers.

    :ivar base: Token being priced.
    :ivar quote: Token the price is expressed in.
    """

    def __init__(self, base: str, quote: str) -> None:
        """Initialize an asset pair.

        :param base: Base token address or identifier.
        :param quote: Quote token address or identifier.
        """
        self.base = normalize_token(base)
        self.quote = normalize_token(quote)

    @property
    def is_zero(self) -> bool:
        """True if either side is empty or the zero address."""
        return is_zero_token(self.base) or is_zero_token(self.quote)

    def __str__(self) -> str:
        return f"{self.base}/{self.quote}"

    def __repr__(self) -> str:
        return f"AssetPair({self.base!r}, {self.quote!r})"

    def __hash__(self) -> int:
        return hash((self.base, self.quote))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AssetPair):
            return NotImplemented
        return (self.base, self.quote) == (other.base, other.quote)

    @classmethod
    def from_string(cls, pair_str: str) -> AssetPair:
        """Parse a pair string in format "base/quote".

        :param pair_str: Pair string like "0xC02a.../0xA0b8..." or "weth/usdc".
        :returns: New AssetPair instance.
        :raises ValueError: If pair string format is invalid.
        """
        parts = pair_str.split("/")
        if len(parts) != 2:
            raise ValueError(
                f"Invalid pair format '{pair_str}'. Expected 'base/quote'"
            )
        return cls(parts[0], parts[1])
