"""
GasX - Price Aggregation and Fee Sponsorship Module

This module provides:
- AssetPair: (base, quote) token pair keying the oracle registry
- OracleRegistry: Per-pair lists of oracle adapters with enable flags
- PriceAggregator: Mean/median aggregation with all-or-nothing deviation check
- FeeSponsor: Two-phase validate/settle sponsorship charged in a fee token
- QuoteSigner: Off-chain signer for sponsor quotes
- adapters: Modular oracle adapter implementations
"""

from .AssetPair import AssetPair
from .FeeSponsor import (
    FeeLedger,
    FeeSponsor,
    OperationOutcome,
    SettlementContext,
    SettlementRecord,
    compute_fee,
)
from .OracleRegistry import OracleEntry, OracleRegistry
from .PayerFunds import InMemoryPayerFunds, PayerFunds
from .PriceAggregator import AggregationResult, PriceAggregator
from .QuoteSigner import QuoteSigner
from .SignedQuote import SignedQuote, SponsorData

__all__ = [
    "AggregationResult",
    "AssetPair",
    "FeeLedger",
    "FeeSponsor",
    "InMemoryPayerFunds",
    "OperationOutcome",
    "OracleEntry",
    "OracleRegistry",
    "PayerFunds",
    "PriceAggregator",
    "QuoteSigner",
    "SettlementContext",
    "SettlementRecord",
    "SignedQuote",
    "SponsorData",
    "compute_fee",
]
