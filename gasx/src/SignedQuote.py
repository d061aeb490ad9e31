"""SignedQuote: Off-chain price quotes and their packed wire format.

A quote binds a price to one operation and an expiry. The signer signs the
EIP-191 personal message over::

    keccak256(abi.encode(bytes32 operationHash, uint256 price, uint48 expiry))

Packed sponsor data, as attached to an operation::

    sponsor (20) | verificationGasLimit (16) | postOpGasLimit (16)
        | price (32) | expiry (6) | signature (65)
"""

from __future__ import annotations

from dataclasses import dataclass

from eth_abi import encode
from eth_account import Account
from eth_account.messages import encode_defunct
from web3 import Web3

from .errors import InvalidSponsorData

SIGNATURE_LENGTH = 65

_ADDRESS_END = 20
_VERIFICATION_GAS_END = _ADDRESS_END + 16
_POST_OP_GAS_END = _VERIFICATION_GAS_END + 16
_PRICE_END = _POST_OP_GAS_END + 32
_EXPIRY_END = _PRICE_END + 6
MIN_SPONSOR_DATA_LENGTH = _EXPIRY_END + SIGNATURE_LENGTH


def to_bytes32(value: bytes | str) -> bytes:
    """Coerce a hex string or bytes into a 32-byte hash.

    :raises ValueError: If the value is not exactly 32 bytes.
    """
    raw = bytes(Web3.to_bytes(hexstr=value)) if isinstance(value, str) else bytes(value)
    if len(raw) != 32:
        raise ValueError(f"Expected 32 bytes, got {len(raw)}")
    return raw


@dataclass(frozen=True)
class SignedQuote:
    """A price quote signed by the off-chain signer.

    :ivar price: Quoted price, in the same scale as the aggregator's quotes.
    :ivar expiry: Unix time after which the quote is void.
    :ivar signature: 65-byte ECDSA signature.
    """

    price: int
    expiry: int
    signature: bytes


@dataclass(frozen=True)
class SponsorData:
    """Decoded sponsor data.

    :ivar sponsor: Address of the sponsor the data is meant for.
    :ivar verification_gas_limit: Gas limit for validation.
    :ivar post_op_gas_limit: Gas limit for settlement.
    :ivar quote: The signed quote.
    """

    sponsor: str
    verification_gas_limit: int
    post_op_gas_limit: int
    quote: SignedQuote


def quote_message_hash(operation_hash: bytes | str, price: int, expiry: int) -> bytes:
    """Hash the fields a quote signature covers."""
    return bytes(
        Web3.keccak(
            encode(
                ["bytes32", "uint256", "uint48"],
                [to_bytes32(operation_hash), price, expiry],
            )
        )
    )


def recover_quote_signer(operation_hash: bytes | str, quote: SignedQuote) -> str:
    """Recover the address that signed ``quote`` for ``operation_hash``.

    :returns: Checksum address of the signer.
    """
    digest = quote_message_hash(operation_hash, quote.price, quote.expiry)
    return Account.recover_message(encode_defunct(primitive=digest), signature=quote.signature)


def encode_sponsor_data(
    sponsor: str,
    quote: SignedQuote,
    verification_gas_limit: int = 100_000,
    post_op_gas_limit: int = 100_000,
) -> bytes:
    """Pack sponsor data for an operation."""
    return (
        bytes(Web3.to_bytes(hexstr=Web3.to_checksum_address(sponsor)))
        + verification_gas_limit.to_bytes(16, "big")
        + post_op_gas_limit.to_bytes(16, "big")
        + quote.price.to_bytes(32, "big")
        + quote.expiry.to_bytes(6, "big")
        + bytes(quote.signature)
    )


def decode_sponsor_data(data: bytes) -> SponsorData:
    """Unpack sponsor data.

    Bytes past the 65-byte signature are ignored.

    :raises InvalidSponsorData: If data is shorter than the fixed layout.
    """
    if len(data) < MIN_SPONSOR_DATA_LENGTH:
        raise InvalidSponsorData(
            f"Invalid sponsor data length {len(data)} (min {MIN_SPONSOR_DATA_LENGTH})"
        )
    return SponsorData(
        sponsor=Web3.to_checksum_address(data[:_ADDRESS_END]),
        verification_gas_limit=int.from_bytes(data[_ADDRESS_END:_VERIFICATION_GAS_END], "big"),
        post_op_gas_limit=int.from_bytes(data[_VERIFICATION_GAS_END:_POST_OP_GAS_END], "big"),
        quote=SignedQuote(
            price=int.from_bytes(data[_POST_OP_GAS_END:_PRICE_END], "big"),
            expiry=int.from_bytes(data[_PRICE_END:_EXPIRY_END], "big"),
            signature=bytes(data[_EXPIRY_END:MIN_SPONSOR_DATA_LENGTH]),
        ),
    )
