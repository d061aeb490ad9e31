"""OracleRegistry: Per-pair, insertion-ordered lists of oracle adapters.

The registry is the state half of the aggregator. All mutations go through
one path (_mutate) which holds the writer lock, builds a new tuple and swaps
it in. Readers take the current tuple without locking and therefore see
either the whole previous list or the whole new one.

.. code-block:: python

    registry = OracleRegistry()
    index = registry.add(pair, dia_adapter)
    registry.toggle(pair, index, False)
    assert registry.get(pair)[index].enabled is False
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Callable

from .errors import DuplicateOracle, InvalidIndex, ZeroAddress

if TYPE_CHECKING:
    from .adapters import BaseAdapter
    from .AssetPair import AssetPair

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OracleEntry:
    """A registered adapter.

    :ivar adapter: Adapter reference.
    :ivar enabled: Whether aggregation queries this adapter.
    """

    adapter: BaseAdapter
    enabled: bool = True


class OracleRegistry:
    """Store of oracle entries keyed by asset pair.

    Each pair's list is independent. Duplicate detection is by adapter
    identity: the same adapter object cannot be registered twice for a pair.
    """

    def __init__(self) -> None:
        self._entries: dict[AssetPair, tuple[OracleEntry, ...]] = {}
        self._lock = threading.Lock()

    def get(self, pair: AssetPair) -> tuple[OracleEntry, ...]:
        """Get an immutable snapshot of the entries for a pair."""
        return self._entries.get(pair, ())

    def count(self, pair: AssetPair) -> int:
        return len(self.get(pair))

    def pairs(self) -> list[AssetPair]:
        """Get pairs that have at least one registered entry."""
        return [p for p, entries in self._entries.items() if entries]

    def _mutate(
        self,
        pair: AssetPair,
        change: Callable[[list[OracleEntry]], None],
    ) -> None:
        """Apply ``change`` to a copy of the pair's list and publish it."""
        with self._lock:
            entries = list(self._entries.get(pair, ()))
            change(entries)
            self._entries[pair] = tuple(entries)

    @staticmethod
    def _check_index(entries: list[OracleEntry], index: int) -> None:
        if index < 0 or index >= len(entries):
            raise InvalidIndex(index, len(entries))

    @staticmethod
    def _check_unique(
        entries: list[OracleEntry], adapter: BaseAdapter, skip: int | None = None
    ) -> None:
        for i, entry in enumerate(entries):
            if i != skip and entry.adapter is adapter:
                raise DuplicateOracle(f"{adapter.label} already registered")

    def add(self, pair: AssetPair, adapter: BaseAdapter) -> int:
        """Append an adapter for a pair.

        :returns: Index of the new entry.
        :raises ZeroAddress: If either token of the pair is empty or zero.
        :raises DuplicateOracle: If the adapter is already registered.
        """
        if pair.is_zero:
            raise ZeroAddress(f"Invalid pair {pair}")

        index = 0

        def change(entries: list[OracleEntry]) -> None:
            nonlocal index
            self._check_unique(entries, adapter)
            entries.append(OracleEntry(adapter))
            index = len(entries) - 1

        self._mutate(pair, change)
        logger.info(f"Oracle added: {pair} [{index}] {adapter.label}")
        return index

    def remove(self, pair: AssetPair, index: int) -> OracleEntry:
        """Remove the entry at ``index``, keeping the order of the rest.

        :returns: The removed entry.
        :raises InvalidIndex: If index is out of bounds.
        """
        removed: list[OracleEntry] = []

        def change(entries: list[OracleEntry]) -> None:
            self._check_index(entries, index)
            removed.append(entries.pop(index))

        self._mutate(pair, change)
        logger.info(f"Oracle removed: {pair} [{index}] {removed[0].adapter.label}")
        return removed[0]

    def update(self, pair: AssetPair, index: int, adapter: BaseAdapter) -> OracleEntry:
        """Replace the adapter at ``index``, keeping its enabled flag.

        :returns: The replaced entry.
        :raises InvalidIndex: If index is out of bounds.
        :raises DuplicateOracle: If the adapter is registered at another index.
        """
        previous: list[OracleEntry] = []

        def change(entries: list[OracleEntry]) -> None:
            self._check_index(entries, index)
            self._check_unique(entries, adapter, skip=index)
            previous.append(entries[index])
            entries[index] = replace(entries[index], adapter=adapter)

        self._mutate(pair, change)
        logger.info(
            f"Oracle updated: {pair} [{index}] "
            f"{previous[0].adapter.label} -> {adapter.label}"
        )
        return previous[0]

    def toggle(self, pair: AssetPair, index: int, enabled: bool) -> None:
        """Enable or disable the entry at ``index``.

        :raises InvalidIndex: If index is out of bounds.
        """

        def change(entries: list[OracleEntry]) -> None:
            self._check_index(entries, index)
            entries[index] = replace(entries[index], enabled=enabled)

        self._mutate(pair, change)
        logger.info(f"Oracle toggled: {pair} [{index}] enabled={enabled}")
