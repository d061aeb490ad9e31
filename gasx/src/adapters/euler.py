"""Euler price oracle adapter.

Wraps an oracle following the Euler ``IPriceOracle`` interface,
``getQuote(inAmount, base, quote) -> outAmount``, bound to a single pair.
The wrapped oracle enforces its own staleness rules and reverts when stale;
that revert surfaces here as an exception from the contract call.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from web3 import Web3

from ..AssetPair import is_zero_token, normalize_token
from ..errors import InvalidPair, ZeroAddress, ZeroPrice
from .base import BaseAdapter, register_adapter

if TYPE_CHECKING:
    from web3.contract import Contract

logger = logging.getLogger(__name__)

EULER_ORACLE_ABI = [
    {
        "inputs": [
            {"internalType": "uint256", "name": "inAmount", "type": "uint256"},
            {"internalType": "address", "name": "base", "type": "address"},
            {"internalType": "address", "name": "quote", "type": "address"},
        ],
        "name": "getQuote",
        "outputs": [{"internalType": "uint256", "name": "outAmount", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    }
]


@register_adapter
class EulerAdapter(BaseAdapter):
    """Adapter for a single-pair Euler oracle.

    :ivar contract: Euler oracle contract handle.
    :ivar base: Base token the oracle prices.
    :ivar quote_token: Quote token the oracle prices in.
    """

    name = "euler"

    def __init__(self, contract: Contract, base: str, quote: str, **kwargs: Any) -> None:
        """Initialize the adapter.

        :param contract: Web3 contract exposing getQuote(uint256,address,address).
        :param base: Base token address.
        :param quote: Quote token address.
        :raises ZeroAddress: If base or quote is zero.
        """
        super().__init__(**kwargs)
        base, quote = normalize_token(base), normalize_token(quote)
        if is_zero_token(base) or is_zero_token(quote):
            raise ZeroAddress("Euler adapter tokens must be non-zero")
        self.contract = contract
        self.base = base
        self.quote_token = quote

    @classmethod
    def from_address(
        cls, w3: Web3, address: str, base: str, quote: str, **kwargs: Any
    ) -> EulerAdapter:
        """Build an adapter for a deployed Euler oracle.

        :raises ZeroAddress: If address is the zero address.
        """
        if is_zero_token(address):
            raise ZeroAddress("Euler oracle address is zero")
        contract = w3.eth.contract(
            address=Web3.to_checksum_address(address), abi=EULER_ORACLE_ABI
        )
        return cls(contract, base, quote, **kwargs)

    @property
    def label(self) -> str:
        return f"euler:{self.contract.address}"

    def quote(self, amount: int, base: str, quote: str) -> int:
        if (normalize_token(base), normalize_token(quote)) != (self.base, self.quote_token):
            raise InvalidPair(
                f"[euler] Bound to {self.base}/{self.quote_token}, asked {base}/{quote}"
            )

        out_amount = self.contract.functions.getQuote(
            amount, self.base, self.quote_token
        ).call()
        if out_amount == 0:
            raise ZeroPrice(f"[euler] Zero quote for {self.base}/{self.quote_token}")
        return out_amount
