"""Unit tests for the oracle adapters."""

from unittest.mock import MagicMock

import httpx
import pytest

from gasx.src.adapters import (
    BaseAdapter,
    CoinbaseAdapter,
    DIAAdapter,
    EulerAdapter,
    FixedPriceAdapter,
    get_adapter,
    get_available_adapters,
    register_adapter,
)
from gasx.src.adapters.coinbase import parse_ticker_time
from gasx.src.AssetPair import ZERO_ADDRESS
from gasx.src.errors import (
    AdapterError,
    AdapterHTTPError,
    InvalidPair,
    PairNotSet,
    StalePrice,
    ZeroAddress,
    ZeroKey,
    ZeroPrice,
)

ONE = 10**18
NOW = 1_700_000_000.0
BASE = "0x4200000000000000000000000000000000000006"
QUOTE = "0x0000000000000000000000000000000000000002"


class TestAdapterRegistry:
    """Test the adapter registry."""

    def test_available_adapters(self) -> None:
        """Every built-in adapter registers itself on import."""
        assert get_available_adapters() == ["coinbase", "dia", "euler", "fixed"]

    def test_get_adapter(self) -> None:
        """Adapters are built by name with keyword settings."""
        adapter = get_adapter("fixed", price=ONE)
        assert isinstance(adapter, FixedPriceAdapter)
        assert adapter.quote(ONE, "a", "b") == ONE

    def test_unknown_adapter(self) -> None:
        """Unknown names raise ValueError."""
        with pytest.raises(ValueError, match="Unknown adapter"):
            get_adapter("chainlink")

    def test_register_requires_name(self) -> None:
        """A class without a name cannot be registered."""
        with pytest.raises(ValueError, match="must define a 'name'"):

            @register_adapter
            class Nameless(BaseAdapter):
                def quote(self, amount: int, base: str, quote: str) -> int:
                    return amount


class TestStaleness:
    """Test the shared freshness check."""

    def test_check_fresh(self) -> None:
        """Updates older than one hour are stale by default."""
        adapter = FixedPriceAdapter(ONE, clock=lambda: NOW)
        assert adapter.max_staleness == 3600.0

        adapter.check_fresh(NOW - 3600)
        with pytest.raises(StalePrice) as exc_info:
            adapter.check_fresh(NOW - 3601)
        assert exc_info.value.age == 3601

    def test_custom_staleness(self) -> None:
        """The staleness bound can be set per adapter."""
        adapter = FixedPriceAdapter(ONE, max_staleness=10, clock=lambda: NOW)
        with pytest.raises(StalePrice):
            adapter.check_fresh(NOW - 11)


class TestFixedPriceAdapter:
    """Test FixedPriceAdapter."""

    def test_quote(self) -> None:
        """Quotes are amount * price / 1e18."""
        adapter = FixedPriceAdapter(2000 * ONE)
        assert adapter.quote(ONE, "weth", "usdc") == 2000 * ONE
        assert adapter.quote(ONE // 4, "weth", "usdc") == 500 * ONE

    def test_set_price(self) -> None:
        """The constant price can be changed."""
        adapter = FixedPriceAdapter(ONE)
        adapter.set_price(3 * ONE)
        assert adapter.quote(ONE, "a", "b") == 3 * ONE

    def test_failing(self) -> None:
        """A failing adapter raises AdapterError."""
        adapter = FixedPriceAdapter(ONE)
        adapter.set_failing(True)
        with pytest.raises(AdapterError):
            adapter.quote(ONE, "a", "b")

    def test_label(self) -> None:
        """The label shows the tag, or the price without one."""
        assert FixedPriceAdapter(5).label == "fixed:5"
        assert FixedPriceAdapter(5, tag="local").label == "fixed:local"

    def test_zero_price(self) -> None:
        """A zero constant price raises ZeroPrice instead of quoting zero."""
        adapter = FixedPriceAdapter(0)
        with pytest.raises(ZeroPrice):
            adapter.quote(ONE, "a", "b")

        adapter.set_price(ONE)
        assert adapter.quote(ONE, "a", "b") == ONE


def make_dia_contract(price: int, updated_at: float) -> MagicMock:
    contract = MagicMock()
    contract.address = "0x00000000000000000000000000000000000000d1"
    contract.functions.getValue.return_value.call.return_value = (price, updated_at)
    return contract


class TestDIAAdapter:
    """Test DIAAdapter against a mocked contract."""

    def test_quote(self) -> None:
        """8-decimal DIA values are rescaled to 1e18."""
        contract = make_dia_contract(2000 * 10**8, NOW - 60)
        adapter = DIAAdapter(contract, {(BASE, QUOTE): "ETH/USD"}, clock=lambda: NOW)

        assert adapter.quote(ONE, BASE, QUOTE) == 2000 * ONE
        contract.functions.getValue.assert_called_with("ETH/USD")

    def test_pair_not_set(self) -> None:
        """Pairs without a key raise PairNotSet."""
        adapter = DIAAdapter(make_dia_contract(1, NOW), clock=lambda: NOW)
        with pytest.raises(PairNotSet):
            adapter.quote(ONE, BASE, QUOTE)

    def test_address_case_ignored(self) -> None:
        """Pair keys match regardless of address case."""
        token = "0x" + "ab" * 20
        contract = make_dia_contract(10**8, NOW)
        adapter = DIAAdapter(contract, {(token, QUOTE): "ETH/USD"}, clock=lambda: NOW)
        assert adapter.quote(ONE, "0x" + "AB" * 20, QUOTE) == ONE

    def test_zero_price(self) -> None:
        """A zero DIA value raises ZeroPrice."""
        adapter = DIAAdapter(
            make_dia_contract(0, NOW), {(BASE, QUOTE): "ETH/USD"}, clock=lambda: NOW
        )
        with pytest.raises(ZeroPrice):
            adapter.quote(ONE, BASE, QUOTE)

    def test_stale_price(self) -> None:
        """DIA values older than one hour are refused."""
        adapter = DIAAdapter(
            make_dia_contract(10**8, NOW - 7200), {(BASE, QUOTE): "ETH/USD"}, clock=lambda: NOW
        )
        with pytest.raises(StalePrice):
            adapter.quote(ONE, BASE, QUOTE)

    def test_set_pair_key_validation(self) -> None:
        """Empty keys and zero tokens are refused."""
        adapter = DIAAdapter(make_dia_contract(1, NOW))
        with pytest.raises(ZeroKey):
            adapter.set_pair_key(BASE, QUOTE, "")
        with pytest.raises(ZeroAddress):
            adapter.set_pair_key(ZERO_ADDRESS, QUOTE, "ETH/USD")

    def test_unprefixed_zero_token_rejected(self) -> None:
        """The zero address spelled without 0x is still the zero address."""
        adapter = DIAAdapter(make_dia_contract(1, NOW))
        with pytest.raises(ZeroAddress):
            adapter.set_pair_key("0" * 40, QUOTE, "ETH/USD")
        with pytest.raises(ZeroAddress):
            adapter.set_pair_key(BASE, " " + "0" * 40, "ETH/USD")
        assert adapter.pair_keys == {}

    def test_from_address(self) -> None:
        """A contract is bound from an address; the zero address is refused."""
        w3 = MagicMock()
        adapter = DIAAdapter.from_address(w3, "0x" + "d1" * 20)

        assert adapter.contract is w3.eth.contract.return_value
        w3.eth.contract.assert_called_once()

        with pytest.raises(ZeroAddress):
            DIAAdapter.from_address(w3, ZERO_ADDRESS)


def make_euler_contract(out_amount: int) -> MagicMock:
    contract = MagicMock()
    contract.address = "0x00000000000000000000000000000000000000e1"
    contract.functions.getQuote.return_value.call.return_value = out_amount
    return contract


class TestEulerAdapter:
    """Test EulerAdapter against a mocked contract."""

    def test_quote(self) -> None:
        """getQuote output is returned as is."""
        contract = make_euler_contract(3000 * ONE)
        adapter = EulerAdapter(contract, BASE, QUOTE)

        assert adapter.quote(ONE, BASE, QUOTE) == 3000 * ONE
        contract.functions.getQuote.assert_called_with(ONE, BASE, QUOTE)

    def test_wrong_pair(self) -> None:
        """The adapter answers only for its own pair."""
        adapter = EulerAdapter(make_euler_contract(1), BASE, QUOTE)
        with pytest.raises(InvalidPair):
            adapter.quote(ONE, QUOTE, BASE)

    def test_zero_quote(self) -> None:
        """A zero Euler quote raises ZeroPrice."""
        adapter = EulerAdapter(make_euler_contract(0), BASE, QUOTE)
        with pytest.raises(ZeroPrice):
            adapter.quote(ONE, BASE, QUOTE)

    def test_revert_propagates(self) -> None:
        """A reverting oracle (e.g. stale) raises out of quote()."""
        contract = make_euler_contract(1)
        contract.functions.getQuote.return_value.call.side_effect = Exception(
            "execution reverted"
        )
        adapter = EulerAdapter(contract, BASE, QUOTE)
        with pytest.raises(Exception, match="execution reverted"):
            adapter.quote(ONE, BASE, QUOTE)

    def test_zero_tokens(self) -> None:
        """Zero base or quote tokens are refused."""
        with pytest.raises(ZeroAddress):
            EulerAdapter(make_euler_contract(1), ZERO_ADDRESS, QUOTE)
        with pytest.raises(ZeroAddress):
            EulerAdapter(make_euler_contract(1), BASE, "0" * 40)


def make_coinbase(handler, **kwargs) -> CoinbaseAdapter:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return CoinbaseAdapter(
        products={("weth", "usdc"): "eth-usd"},
        client=client,
        clock=lambda: parse_ticker_time("2026-01-01T00:00:10Z"),
        **kwargs,
    )


class TestCoinbaseAdapter:
    """Test CoinbaseAdapter with a mocked HTTP transport."""

    def test_parse_ticker_time(self) -> None:
        """Both Z and offset suffixes are parsed."""
        assert parse_ticker_time("1970-01-01T00:00:10Z") == 10.0
        assert parse_ticker_time("1970-01-01T00:00:10.500000+00:00") == 10.5

    def test_quote(self) -> None:
        """The ticker price is scaled to 1e18."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.path)
            return httpx.Response(
                200, json={"price": "2000.50", "time": "2026-01-01T00:00:00.000000Z"}
            )

        adapter = make_coinbase(handler)

        assert adapter.quote(ONE, "weth", "usdc") == 2_000_500_000_000_000_000_000
        assert adapter.quote(2 * ONE, "weth", "usdc") == 4_001 * ONE
        assert seen[0] == "/products/ETH-USD/ticker"

    def test_pair_not_set(self) -> None:
        """Pairs without a product raise PairNotSet."""
        adapter = make_coinbase(lambda request: httpx.Response(500))
        with pytest.raises(PairNotSet):
            adapter.quote(ONE, "wbtc", "usdc")

    def test_http_error(self) -> None:
        """Non-2xx responses carry the status code."""
        adapter = make_coinbase(lambda request: httpx.Response(503, text="unavailable"))
        with pytest.raises(AdapterHTTPError) as exc_info:
            adapter.quote(ONE, "weth", "usdc")
        assert exc_info.value.status_code == 503

    def test_transport_error(self) -> None:
        """Connection failures carry no status code."""
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        adapter = make_coinbase(handler)
        with pytest.raises(AdapterHTTPError) as exc_info:
            adapter.quote(ONE, "weth", "usdc")
        assert exc_info.value.status_code is None

    def test_malformed_response(self) -> None:
        """Missing fields raise AdapterError."""
        adapter = make_coinbase(lambda request: httpx.Response(200, json={"bid": "1"}))
        with pytest.raises(AdapterError, match="Failed to parse"):
            adapter.quote(ONE, "weth", "usdc")

    def test_zero_price(self) -> None:
        """A zero ticker price raises ZeroPrice."""
        adapter = make_coinbase(
            lambda request: httpx.Response(
                200, json={"price": "0", "time": "2026-01-01T00:00:00Z"}
            )
        )
        with pytest.raises(ZeroPrice):
            adapter.quote(ONE, "weth", "usdc")

    @pytest.mark.parametrize("price", ["NaN", "Infinity", "-Infinity", "sNaN"])
    def test_non_finite_price(self, price: str) -> None:
        """Non-finite ticker prices surface as adapter errors."""
        adapter = make_coinbase(
            lambda request: httpx.Response(
                200, json={"price": price, "time": "2026-01-01T00:00:00Z"}
            )
        )
        with pytest.raises(AdapterError, match="Non-finite"):
            adapter.quote(ONE, "weth", "usdc")

    def test_set_product_rejects_zero_token(self) -> None:
        """Zero tokens cannot be mapped to a product, in any spelling."""
        adapter = make_coinbase(lambda request: httpx.Response(500))
        with pytest.raises(ZeroAddress):
            adapter.set_product("0" * 40, "usdc", "ETH-USD")
        with pytest.raises(ZeroAddress):
            adapter.set_product("weth", f" {ZERO_ADDRESS} ", "ETH-USD")

    def test_stale_ticker(self) -> None:
        """Default staleness for the ticker is five minutes."""
        adapter = make_coinbase(
            lambda request: httpx.Response(
                200, json={"price": "2000", "time": "2025-12-31T23:50:00Z"}
            )
        )
        with pytest.raises(StalePrice):
            adapter.quote(ONE, "weth", "usdc")
