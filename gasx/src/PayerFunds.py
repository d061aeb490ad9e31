"""PayerFunds: Spending-capacity interface of the payer funds subsystem.

The fee sponsor asks it whether a payer can cover an amount and to collect
that amount. Balance and allowance reads serve readiness checks, and the
treasury side holds collected fees until the operator withdraws them.
Approval management and the actual token transfer stay with the
implementation.
"""

from __future__ import annotations

import logging
import threading
from typing import Protocol

from .AssetPair import normalize_token
from .errors import InsufficientFunds

logger = logging.getLogger(__name__)


class PayerFunds(Protocol):
    """Capability the fee sponsor uses to check and pull payer funds."""

    def has_sufficient_capacity(self, payer: str, amount: int) -> bool: ...

    def collect(self, payer: str, amount: int) -> None: ...

    def balance_of(self, payer: str) -> int: ...

    def allowance_of(self, payer: str) -> int: ...

    def fee_balance(self) -> int: ...

    def withdraw_fees(self, recipient: str, amount: int) -> None: ...


class InMemoryPayerFunds:
    """Balance/allowance ledger kept in memory.

    A payer's spending capacity is the lower of its balance and the
    allowance it granted the sponsor, as with an ERC-20 fee token.

    :ivar collected: Total amount pulled into the sponsor's treasury.
    """

    def __init__(self) -> None:
        self._balances: dict[str, int] = {}
        self._allowances: dict[str, int] = {}
        self._lock = threading.Lock()
        self.collected = 0

    def deposit(self, payer: str, amount: int) -> None:
        payer = normalize_token(payer)
        with self._lock:
            self._balances[payer] = self._balances.get(payer, 0) + amount

    def withdraw(self, payer: str, amount: int) -> None:
        """Move funds out of a payer's balance outside the sponsor's control.

        :raises InsufficientFunds: If the balance is lower than amount.
        """
        payer = normalize_token(payer)
        with self._lock:
            balance = self._balances.get(payer, 0)
            if balance < amount:
                raise InsufficientFunds(payer, amount, balance)
            self._balances[payer] = balance - amount

    def approve(self, payer: str, amount: int) -> None:
        """Set the allowance the payer grants the sponsor."""
        with self._lock:
            self._allowances[normalize_token(payer)] = amount

    def balance_of(self, payer: str) -> int:
        return self._balances.get(normalize_token(payer), 0)

    def allowance_of(self, payer: str) -> int:
        return self._allowances.get(normalize_token(payer), 0)

    def capacity(self, payer: str) -> int:
        return min(self.balance_of(payer), self.allowance_of(payer))

    def has_sufficient_capacity(self, payer: str, amount: int) -> bool:
        return self.capacity(payer) >= amount

    def collect(self, payer: str, amount: int) -> None:
        """Pull ``amount`` from the payer into the treasury.

        :raises InsufficientFunds: If balance or allowance cannot cover amount.
        """
        payer = normalize_token(payer)
        with self._lock:
            balance = self._balances.get(payer, 0)
            allowance = self._allowances.get(payer, 0)
            available = min(balance, allowance)
            if available < amount:
                raise InsufficientFunds(payer, amount, available)
            self._balances[payer] = balance - amount
            self._allowances[payer] = allowance - amount
            self.collected += amount
        logger.debug("Collected %d from %s", amount, payer)

    def fee_balance(self) -> int:
        """Collected fees still held by the treasury."""
        return self.collected

    def withdraw_fees(self, recipient: str, amount: int) -> None:
        """Move collected fees from the treasury to ``recipient``.

        :raises InsufficientFunds: If the treasury holds less than amount.
        """
        recipient = normalize_token(recipient)
        with self._lock:
            if self.collected < amount:
                raise InsufficientFunds("treasury", amount, self.collected)
            self.collected -= amount
            self._balances[recipient] = self._balances.get(recipient, 0) + amount
        logger.info(f"Fees withdrawn: {amount} to {recipient}")
