#!/usr/bin/env python3
"""GasX price quote tool.

Aggregates a price for a token pair from several oracle adapters and,
when an operation hash is given, signs it as the off-chain quote signer.

Configure via environment variables or CLI flags (flags take precedence).
"""

import argparse
import json
import logging
import os
import sys
from typing import Callable

from web3 import Web3

from .src.adapters import (
    BaseAdapter,
    DIAAdapter,
    EulerAdapter,
    HTTPAdapter,
    get_adapter,
    get_available_adapters,
)
from .src.AssetPair import AssetPair
from .src.ContractUtility import ContractUtility
from .src.errors import GasXError
from .src.PriceAggregator import STRATEGIES, PriceAggregator
from .src.QuoteSigner import QuoteSigner

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def parse_adapter_specs(
    spec_str: str,
    pair: AssetPair,
    w3_factory: Callable[[], Web3],
) -> list[BaseAdapter]:
    """Build adapters from a comma-separated spec string.

    Format: kind:arg[:arg],...
    Example: dia:0xDIA...:ETH/USD,euler:0xEULER...,coinbase:ETH-USD,fixed:2000000000

    :param spec_str: Adapter spec string.
    :param pair: Pair the adapters are configured for.
    :param w3_factory: Returns the Web3 instance for contract-backed adapters.
    :returns: List of adapters, in spec order.
    :raises ValueError: If a spec is malformed or names an unknown adapter.
    """
    adapters: list[BaseAdapter] = []
    w3: Web3 | None = None

    for item in spec_str.split(","):
        item = item.strip()
        if not item:
            continue
        kind, _, rest = item.partition(":")
        kind = kind.strip().lower()
        args = [a.strip() for a in rest.split(":")] if rest else []

        if kind in ("dia", "euler") and w3 is None:
            w3 = w3_factory()

        if kind == "fixed" and len(args) == 1:
            adapters.append(get_adapter("fixed", price=int(args[0])))
        elif kind == "dia" and len(args) == 2:
            adapters.append(
                DIAAdapter.from_address(
                    w3, args[0], pair_keys={(pair.base, pair.quote): args[1]}
                )
            )
        elif kind == "euler" and len(args) == 1:
            adapters.append(EulerAdapter.from_address(w3, args[0], pair.base, pair.quote))
        elif kind == "coinbase" and len(args) == 1:
            adapters.append(
                get_adapter("coinbase", products={(pair.base, pair.quote): args[0]})
            )
        else:
            raise ValueError(
                f"Invalid adapter spec '{item}'. Available: {', '.join(get_available_adapters())}"
            )
    return adapters


def main() -> None:
    """Main entry point for the GasX quote CLI."""
    parser = argparse.ArgumentParser(
        description="GasX: aggregated fee-token quotes for sponsored operations",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Adapter specs:
  fixed:<price>                 constant 1e18-scaled price
  dia:<oracle address>:<key>    DIA key/value oracle (e.g. ETH/USD)
  euler:<oracle address>        Euler getQuote oracle bound to --pair
  coinbase:<product>            Coinbase Exchange ticker (e.g. ETH-USD)

Examples:
  # Mean of two on-chain sources
  python -m gasx.main --pair 0xWETH/0xUSDC \\
      --adapters dia:0xDIA:ETH/USD,euler:0xEULER --network base-sepolia

  # Median, signed for an operation
  ORACLE_SIGNER_KEY=0x... python -m gasx.main --pair 0xWETH/0xUSDC \\
      --adapters coinbase:ETH-USD,fixed:2000000000000000000000 \\
      --method median --operation-hash 0xabc...

Environment variables (CLI args take precedence):
  PAIR, ADAPTERS, MAX_DEVIATION_BPS, METHOD, AMOUNT, NETWORK, RPC_URL,
  ORACLE_SIGNER_KEY, QUOTE_VALIDITY
""",
    )

    parser.add_argument(
        "--pair",
        type=str,
        help="Token pair as base/quote (addresses or identifiers)",
        default=os.environ.get("PAIR"),
    )

    parser.add_argument(
        "--adapters",
        type=str,
        help="Comma-separated adapter specs (see below)",
        default=os.environ.get("ADAPTERS"),
    )

    parser.add_argument(
        "--max-deviation-bps",
        dest="max_deviation_bps",
        type=int,
        help="Max deviation of any source from the aggregate in bps (default: 500)",
        default=int(os.environ.get("MAX_DEVIATION_BPS") or "500"),
    )

    parser.add_argument(
        "--method",
        type=str,
        choices=sorted(STRATEGIES),
        help="Aggregation method (default: mean)",
        default=os.environ.get("METHOD") or "mean",
    )

    parser.add_argument(
        "--amount",
        type=int,
        help="Base token amount to quote (default: 1e18)",
        default=int(os.environ.get("AMOUNT") or str(10**18)),
    )

    parser.add_argument(
        "--network",
        type=str,
        help="Network for contract-backed adapters (localnet, sepolia, arbitrum-sepolia, base-sepolia)",
        default=os.environ.get("NETWORK") or "localnet",
    )

    parser.add_argument(
        "--operation-hash",
        dest="operation_hash",
        type=str,
        help="Sign the aggregated price for this operation hash (needs ORACLE_SIGNER_KEY)",
        default=None,
    )

    parser.add_argument(
        "--validity",
        type=int,
        help="Seconds a signed quote stays valid (default: 300)",
        default=int(os.environ.get("QUOTE_VALIDITY") or "300"),
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    if not args.pair:
        parser.error("A token pair must be specified")

    if not args.adapters:
        parser.error("At least one adapter must be specified")

    if args.validity < 1:
        parser.error("--validity must be at least 1 second")

    signer_key = os.environ.get("ORACLE_SIGNER_KEY")
    if args.operation_hash and not signer_key:
        parser.error("--operation-hash requires ORACLE_SIGNER_KEY")

    try:
        pair = AssetPair.from_string(args.pair)
        adapters = parse_adapter_specs(
            args.adapters, pair, lambda: ContractUtility(args.network).w3
        )
    except (ValueError, GasXError) as e:
        parser.error(str(e))

    logger.info("=" * 60)
    logger.info("GasX quote")
    logger.info("=" * 60)
    logger.info(f"Pair:              {pair}")
    logger.info(f"Adapters:          {', '.join(a.label for a in adapters)}")
    logger.info(f"Method:            {args.method}")
    logger.info(f"Max Deviation:     {args.max_deviation_bps} bps")
    logger.info(f"Amount:            {args.amount}")
    logger.info("=" * 60)

    try:
        aggregator = PriceAggregator(max_deviation_bps=args.max_deviation_bps)
        for adapter in adapters:
            aggregator.add_oracle(pair, adapter)
        result = aggregator.aggregate(args.amount, pair, args.method)

        output: dict[str, object] = {
            "pair": str(pair),
            "method": result.method,
            "amount": args.amount,
            "price": result.price,
            "sources": result.quotes,
            "skipped": result.skipped,
        }

        if args.operation_hash:
            signer = QuoteSigner(signer_key)
            quote = signer.sign_quote(args.operation_hash, result.price, args.validity)
            output["quote"] = {
                "signer": signer.address,
                "price": quote.price,
                "expiry": quote.expiry,
                "signature": "0x" + quote.signature.hex(),
            }

        print(json.dumps(output, indent=2))
    except GasXError as e:
        logger.error(f"Quote failed: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)
    finally:
        HTTPAdapter.close_shared_client()


if __name__ == "__main__":
    main()
