"""
Oracle adapters for multiple price sources.

Each adapter normalises one source into a 1e18-scaled integer quote.

Usage:
    from gasx.src.adapters import get_adapter, get_available_adapters

    available = get_available_adapters()
    # ['coinbase', 'dia', 'euler', 'fixed']

    adapter = get_adapter("fixed", price=2000 * 10**18)
    out = adapter.quote(10**18, weth, usdc)
"""

# Import base classes and utilities
from .base import (
    ADAPTER_REGISTRY,
    PRICE_SCALE,
    BaseAdapter,
    HTTPAdapter,
    get_adapter,
    get_available_adapters,
    register_adapter,
)

# Import all adapter implementations to trigger registration
from .coinbase import CoinbaseAdapter
from .dia import DIAAdapter
from .euler import EulerAdapter
from .fixed import FixedPriceAdapter

__all__ = [
    # Base classes
    "BaseAdapter",
    "HTTPAdapter",
    "PRICE_SCALE",
    # Registry functions
    "register_adapter",
    "get_adapter",
    "get_available_adapters",
    "ADAPTER_REGISTRY",
    # Adapter implementations
    "CoinbaseAdapter",
    "DIAAdapter",
    "EulerAdapter",
    "FixedPriceAdapter",
]
