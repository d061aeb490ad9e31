"""QuoteSigner: Reference off-chain signer for sponsored price quotes.

Signs ``(operationHash, price, expiry)`` with the trusted signer key so the
fee sponsor can check that a quote came from it.

.. code-block:: python

    signer = QuoteSigner(os.environ["ORACLE_SIGNER_KEY"])
    quote = signer.sign_quote(op_hash, price=2000 * 10**6, validity=300)
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount

from .SignedQuote import SignedQuote, quote_message_hash

logger = logging.getLogger(__name__)


class QuoteSigner:
    """Signs price quotes for operations.

    :ivar account: Local signing account.
    :ivar clock: Callable returning the current unix time.
    """

    DEFAULT_VALIDITY = 300

    def __init__(self, private_key: str, clock: Callable[[], float] | None = None) -> None:
        self.account: LocalAccount = Account.from_key(private_key)
        self.clock = clock or time.time

    @property
    def address(self) -> str:
        return self.account.address

    def sign(self, operation_hash: bytes | str, price: int, expiry: int) -> SignedQuote:
        """Sign a quote with an explicit expiry."""
        digest = quote_message_hash(operation_hash, price, expiry)
        signed = self.account.sign_message(encode_defunct(primitive=digest))
        return SignedQuote(price=price, expiry=expiry, signature=bytes(signed.signature))

    def sign_quote(
        self, operation_hash: bytes | str, price: int, validity: int = DEFAULT_VALIDITY
    ) -> SignedQuote:
        """Sign a quote valid for ``validity`` seconds from now."""
        expiry = int(self.clock()) + validity
        logger.debug("Signing quote price=%d expiry=%d", price, expiry)
        return self.sign(operation_hash, price, expiry)
