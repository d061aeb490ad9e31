"""DIA key/value oracle adapter.

Reads ``getValue(key) -> (price, timestamp)`` from a DIA oracle contract
through web3. DIA publishes prices with 8 decimals; keys such as "ETH/USD"
are configured per token pair.

Staleness: 1 hour by default (DIA updates on deviation or heartbeat).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from web3 import Web3

from ..AssetPair import is_zero_token, normalize_token
from ..errors import PairNotSet, ZeroAddress, ZeroKey, ZeroPrice
from .base import BaseAdapter, register_adapter

if TYPE_CHECKING:
    from web3.contract import Contract

logger = logging.getLogger(__name__)

DIA_ORACLE_ABI = [
    {
        "inputs": [{"internalType": "string", "name": "key", "type": "string"}],
        "name": "getValue",
        "outputs": [
            {"internalType": "uint128", "name": "", "type": "uint128"},
            {"internalType": "uint128", "name": "", "type": "uint128"},
        ],
        "stateMutability": "view",
        "type": "function",
    }
]


@register_adapter
class DIAAdapter(BaseAdapter):
    """Adapter for DIA oracle contracts.

    :cvar DIA_DECIMALS: Decimals of the values DIA publishes.
    :ivar contract: DIA oracle contract handle.
    :ivar pair_keys: Mapping of (base, quote) to DIA key.
    """

    name = "dia"
    DIA_DECIMALS = 8

    def __init__(
        self,
        contract: Contract,
        pair_keys: dict[tuple[str, str], str] | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize the adapter.

        :param contract: Web3 contract exposing getValue(string).
        :param pair_keys: Initial (base, quote) -> key mapping.
        """
        super().__init__(**kwargs)
        self.contract = contract
        self.pair_keys: dict[tuple[str, str], str] = {}
        for (base, quote), key in (pair_keys or {}).items():
            self.set_pair_key(base, quote, key)

    @classmethod
    def from_address(cls, w3: Web3, address: str, **kwargs: Any) -> DIAAdapter:
        """Build an adapter for a deployed DIA oracle.

        :param w3: Connected Web3 instance.
        :param address: DIA oracle contract address.
        :raises ZeroAddress: If address is the zero address.
        """
        if is_zero_token(address):
            raise ZeroAddress("DIA oracle address is zero")
        contract = w3.eth.contract(
            address=Web3.to_checksum_address(address), abi=DIA_ORACLE_ABI
        )
        return cls(contract, **kwargs)

    @property
    def label(self) -> str:
        return f"dia:{self.contract.address}"

    def set_pair_key(self, base: str, quote: str, key: str) -> None:
        """Configure the DIA key used for a pair.

        :raises ZeroAddress: If base or quote is empty or zero.
        :raises ZeroKey: If key is empty.
        """
        base, quote = normalize_token(base), normalize_token(quote)
        if is_zero_token(base) or is_zero_token(quote):
            raise ZeroAddress("Pair tokens must be non-zero")
        if not key:
            raise ZeroKey("DIA key must be non-empty")
        self.pair_keys[(base, quote)] = key
        logger.info(f"[dia] Pair key set: {base}/{quote} -> {key}")

    def quote(self, amount: int, base: str, quote: str) -> int:
        key = self.pair_keys.get((normalize_token(base), normalize_token(quote)))
        if key is None:
            raise PairNotSet(f"[dia] No key configured for {base}/{quote}")

        price, updated_at = self.contract.functions.getValue(key).call()
        if price == 0:
            raise ZeroPrice(f"[dia] Zero price for {key}")
        self.check_fresh(updated_at)

        return amount * price // 10**self.DIA_DECIMALS
