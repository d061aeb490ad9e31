"""Base adapter interface and adapter registry.

An adapter normalises one external price source into the common quote
format: ``quote(amount, base, quote)`` returns ``amount`` of ``base``
expressed in ``quote`` as an integer scaled to 1e18. Quoting is a
synchronous, side-effect-free read. An adapter must raise rather than
return zero or stale data.

HTTP-backed adapters derive from HTTPAdapter, which shares one httpx.Client
across instances to avoid connection overhead.

.. code-block:: python

    @register_adapter
    class MyAdapter(BaseAdapter):
        name = "mysource"

        def quote(self, amount: int, base: str, quote: str) -> int:
            price = read_my_source(base, quote)
            if price == 0:
                raise ZeroPrice(f"[mysource] zero price for {base}/{quote}")
            return amount * price // 10**18
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, ClassVar

import httpx

from ..errors import AdapterHTTPError, StalePrice

logger = logging.getLogger(__name__)

# Fixed-point scale of every quote.
PRICE_SCALE = 10**18


class BaseAdapter(ABC):
    """Abstract base class for oracle adapters.

    Subclasses must implement:
        - name: Class variable identifying the source kind (e.g. "dia")
        - quote(): Synchronous read of the source for one pair and amount

    :cvar name: Unique identifier for this adapter kind.
    :cvar DEFAULT_MAX_STALENESS: Default staleness bound in seconds.
    :ivar max_staleness: Oldest acceptable source update, in seconds.
    :ivar clock: Callable returning the current unix time.
    """

    name: ClassVar[str] = ""

    DEFAULT_MAX_STALENESS = 3600.0

    def __init__(
        self,
        max_staleness: float | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        """Initialize the adapter.

        :param max_staleness: Staleness bound in seconds (default: 1 hour).
        :param clock: Time source, defaults to time.time.
        """
        self.max_staleness = (
            self.DEFAULT_MAX_STALENESS if max_staleness is None else max_staleness
        )
        self.clock = clock or time.time

    @property
    def label(self) -> str:
        """Human-readable identity of this source, used in logs and errors."""
        return self.name

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.label}>"

    @abstractmethod
    def quote(self, amount: int, base: str, quote: str) -> int:
        """Quote ``amount`` of ``base`` in ``quote``.

        :param amount: Input amount (base token units).
        :param base: Base token identifier.
        :param quote: Quote token identifier.
        :returns: Output amount, 1e18-scaled.
        :raises AdapterError: If the source cannot give a fresh, non-zero price.
        """
        pass

    def check_fresh(self, updated_at: float) -> None:
        """Raise StalePrice if ``updated_at`` is beyond the staleness bound.

        :param updated_at: Unix timestamp of the source's last update.
        """
        age = self.clock() - updated_at
        if age > self.max_staleness:
            raise StalePrice(age, self.max_staleness)


class HTTPAdapter(BaseAdapter):
    """Base class for adapters that read a public HTTP API.

    :cvar DEFAULT_TIMEOUT: Default HTTP request timeout in seconds.
    :ivar timeout: Request timeout in seconds.
    """

    # Class-level shared HTTP client
    _shared_client: ClassVar[httpx.Client | None] = None

    DEFAULT_TIMEOUT = 5.0

    def __init__(
        self,
        timeout: float | None = None,
        client: httpx.Client | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize the adapter.

        :param timeout: Request timeout in seconds (default: 5).
        :param client: Optional client overriding the shared one.
        """
        super().__init__(**kwargs)
        self.timeout = timeout or self.DEFAULT_TIMEOUT
        self._client = client

    @classmethod
    def get_shared_client(cls) -> httpx.Client:
        """Get or create the shared HTTP client.

        :returns: Shared httpx.Client instance.
        """
        if cls._shared_client is None or cls._shared_client.is_closed:
            cls._shared_client = httpx.Client(
                timeout=httpx.Timeout(10.0, connect=5.0),
                limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
                follow_redirects=True,
            )
        return cls._shared_client

    @classmethod
    def close_shared_client(cls) -> None:
        """Close the shared HTTP client."""
        if cls._shared_client is not None and not cls._shared_client.is_closed:
            cls._shared_client.close()
            cls._shared_client = None

    def _get(self, url: str, *, params: dict | None = None) -> httpx.Response:
        """Make an HTTP GET request.

        :param url: Request URL.
        :param params: Optional query parameters.
        :returns: httpx.Response object.
        :raises AdapterHTTPError: On non-2xx responses and transport errors.
        """
        client = self._client or self.get_shared_client()
        try:
            response = client.get(url, params=params, timeout=self.timeout)
        except httpx.TimeoutException as e:
            raise AdapterHTTPError(None, f"Request timeout: {e}") from e
        except httpx.RequestError as e:
            raise AdapterHTTPError(None, f"Request failed: {e}") from e

        if not response.is_success:
            logger.debug(
                "HTTP GET %s failed with status %s: %s",
                url,
                response.status_code,
                response.text[:200],
            )
            raise AdapterHTTPError(response.status_code, response.text[:200])
        return response


# Registry of available adapters (populated by subclass imports)
ADAPTER_REGISTRY: dict[str, type[BaseAdapter]] = {}


def register_adapter(cls: type[BaseAdapter]) -> type[BaseAdapter]:
    """Decorator to register an adapter class in the global registry.

    :param cls: Adapter class to register.
    :returns: The registered class (unchanged).
    :raises ValueError: If adapter has no name defined.
    """
    if not cls.name:
        raise ValueError(f"Adapter {cls.__name__} must define a 'name' class variable")
    ADAPTER_REGISTRY[cls.name] = cls
    return cls


def get_adapter(name: str, **kwargs: Any) -> BaseAdapter:
    """Build an adapter instance by name.

    :param name: Adapter name (e.g., "dia", "coinbase").
    :param kwargs: Constructor arguments for the adapter.
    :returns: Adapter instance.
    :raises ValueError: If adapter name is unknown.
    """
    if name not in ADAPTER_REGISTRY:
        available = ", ".join(sorted(ADAPTER_REGISTRY.keys()))
        raise ValueError(f"Unknown adapter '{name}'. Available: {available}")
    return ADAPTER_REGISTRY[name](**kwargs)


def get_available_adapters() -> list[str]:
    """Get list of available adapter names.

    :returns: Sorted list of registered adapter names.
    """
    return sorted(ADAPTER_REGISTRY.keys())
