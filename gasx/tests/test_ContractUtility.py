"""Unit tests for ContractUtility."""

from gasx.src.ContractUtility import NETWORKS, ContractUtility


class TestContractUtility:
    """Test RPC selection."""

    def test_known_network(self, monkeypatch) -> None:
        """Known network names map to their RPC URL."""
        monkeypatch.delenv("RPC_URL", raising=False)
        utility = ContractUtility("base-sepolia")
        assert utility.network == NETWORKS["base-sepolia"]
        assert utility.w3.provider.endpoint_uri == NETWORKS["base-sepolia"]

    def test_url_as_network(self, monkeypatch) -> None:
        """A URL is used as given."""
        monkeypatch.delenv("RPC_URL", raising=False)
        assert ContractUtility("http://10.0.0.5:8545").network == "http://10.0.0.5:8545"

    def test_rpc_url_override(self, monkeypatch) -> None:
        """RPC_URL overrides the network name."""
        monkeypatch.setenv("RPC_URL", "http://node:8545")
        assert ContractUtility("sepolia").network == "http://node:8545"
