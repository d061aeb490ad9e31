"""Unit tests for InMemoryPayerFunds."""

import pytest
from web3 import Web3

from gasx.src.errors import InsufficientFunds
from gasx.src.PayerFunds import InMemoryPayerFunds

PAYER = "0x" + "aa" * 20
TREASURY = Web3.to_checksum_address("0x" + "7e" * 20)


class TestInMemoryPayerFunds:
    """Test the in-memory balance/allowance ledger."""

    def test_capacity_is_min_of_balance_and_allowance(self) -> None:
        """Capacity is the lower of balance and allowance."""
        funds = InMemoryPayerFunds()
        funds.deposit(PAYER, 1_000)
        assert funds.capacity(PAYER) == 0

        funds.approve(PAYER, 400)
        assert funds.capacity(PAYER) == 400
        assert funds.has_sufficient_capacity(PAYER, 400)
        assert not funds.has_sufficient_capacity(PAYER, 401)

        funds.approve(PAYER, 5_000)
        assert funds.capacity(PAYER) == 1_000

    def test_collect(self) -> None:
        """Collecting debits balance and allowance into the treasury."""
        funds = InMemoryPayerFunds()
        funds.deposit(PAYER, 1_000)
        funds.approve(PAYER, 600)

        funds.collect(PAYER, 250)

        assert funds.balance_of(PAYER) == 750
        assert funds.allowance_of(PAYER) == 350
        assert funds.collected == 250

    def test_collect_insufficient(self) -> None:
        """A short payer is left untouched."""
        funds = InMemoryPayerFunds()
        funds.deposit(PAYER, 100)
        funds.approve(PAYER, 1_000)

        with pytest.raises(InsufficientFunds) as exc_info:
            funds.collect(PAYER, 101)

        assert exc_info.value.required == 101
        assert exc_info.value.available == 100
        assert funds.balance_of(PAYER) == 100
        assert funds.collected == 0

    def test_withdraw(self) -> None:
        """Withdrawals cannot exceed the balance."""
        funds = InMemoryPayerFunds()
        funds.deposit(PAYER, 100)
        funds.withdraw(PAYER, 60)
        assert funds.balance_of(PAYER) == 40

        with pytest.raises(InsufficientFunds):
            funds.withdraw(PAYER, 41)

    def test_address_case_ignored(self) -> None:
        """Payers are keyed by checksum address."""
        funds = InMemoryPayerFunds()
        funds.deposit(PAYER.upper().replace("0X", "0x"), 10)
        assert funds.balance_of(Web3.to_checksum_address(PAYER)) == 10

    def test_unknown_payer(self) -> None:
        """Unknown payers have zero capacity."""
        funds = InMemoryPayerFunds()
        assert funds.capacity(PAYER) == 0
        assert not funds.has_sufficient_capacity(PAYER, 1)
        assert funds.has_sufficient_capacity(PAYER, 0)


class TestInMemoryPayerFundsTreasury:
    """Test the treasury holding collected fees."""

    def test_fee_balance_tracks_collections(self) -> None:
        """Every collection adds to the fee balance."""
        funds = InMemoryPayerFunds()
        funds.deposit(PAYER, 1_000)
        funds.approve(PAYER, 1_000)
        assert funds.fee_balance() == 0

        funds.collect(PAYER, 300)
        funds.collect(PAYER, 200)

        assert funds.fee_balance() == 500

    def test_withdraw_fees(self) -> None:
        """Withdrawn fees are credited to the recipient's balance."""
        funds = InMemoryPayerFunds()
        funds.deposit(PAYER, 1_000)
        funds.approve(PAYER, 1_000)
        funds.collect(PAYER, 500)

        funds.withdraw_fees(TREASURY.lower(), 450)

        assert funds.fee_balance() == 50
        assert funds.balance_of(TREASURY) == 450
        assert funds.balance_of(PAYER) == 500

    def test_withdraw_fees_above_balance(self) -> None:
        """The treasury cannot pay out more than it holds."""
        funds = InMemoryPayerFunds()
        funds.deposit(PAYER, 100)
        funds.approve(PAYER, 100)
        funds.collect(PAYER, 100)

        with pytest.raises(InsufficientFunds) as exc_info:
            funds.withdraw_fees(TREASURY, 101)

        assert exc_info.value.available == 100
        assert funds.fee_balance() == 100
        assert funds.balance_of(TREASURY) == 0
