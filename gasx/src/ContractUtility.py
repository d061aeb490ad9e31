"""ContractUtility: Web3 initialization for on-chain oracle adapters."""

import logging
import os

from web3 import Web3

logger = logging.getLogger(__name__)

NETWORKS = {
    "localnet": "http://localhost:8545",
    "sepolia": "https://ethereum-sepolia-rpc.publicnode.com",
    "arbitrum-sepolia": "https://sepolia-rollup.arbitrum.io/rpc",
    "base-sepolia": "https://sepolia.base.org",
}


class ContractUtility:
    """Utility for the Web3 connection used by contract-backed adapters.

    :ivar network: Network RPC URL.
    :ivar w3: Configured Web3 instance.
    """

    def __init__(self, network_name: str) -> None:
        """Initialize the contract utility.

        :param network_name: Name of the network to connect to, or an RPC URL.
        """
        # RPC_URL env var overrides the default for the network
        self.network = os.environ.get("RPC_URL") or NETWORKS.get(network_name, network_name)
        self.w3 = Web3(Web3.HTTPProvider(self.network))
        logger.debug("Web3 provider for %s: %s", network_name, self.network)
