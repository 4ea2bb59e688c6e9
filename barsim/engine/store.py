"""Run-scoped memoization store keyed by indicator call identity."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, Optional, Tuple, Type

from ..errors import KeyCollisionError
from .identity import CacheKey

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoreStats:
    """Snapshot of store activity."""
    entries: int
    hits: int
    misses: int


class MemoStore:
    """Maps ``CacheKey`` to cached state (scalar entries or stateful functors).

    The store never runs indicator logic; it only resolves or registers the
    state object a formula then evaluates.  It holds no lock.  All calls are
    expected from the single simulation thread, and an external lock around
    ``get_or_create`` would not change its contract.
    """

    def __init__(self) -> None:
        self._entries: Dict[CacheKey, Any] = {}
        self._hits = 0
        self._misses = 0

    def get_or_create(
        self,
        key: CacheKey,
        factory: Callable[[], Any],
        expected_type: Optional[Type] = None,
    ) -> Any:
        """Return the entry for ``key``, building it with ``factory`` if absent.

        Raises
        ------
        KeyCollisionError
            If the registered entry is not an ``expected_type``.  Two
            different formulas resolved to one key; the run cannot continue.
        TypeError
            If ``factory`` builds something other than ``expected_type``.
        """
        entry = self._entries.get(key)
        if entry is not None:
            if expected_type is not None and not isinstance(entry, expected_type):
                raise KeyCollisionError(
                    f"{key!r} holds {type(entry).__name__}, expected {expected_type.__name__}"
                )
            self._hits += 1
            return entry

        # Nothing is registered until the factory has returned.
        entry = factory()
        if expected_type is not None and not isinstance(entry, expected_type):
            raise TypeError(
                f"factory for {key!r} built {type(entry).__name__}, expected {expected_type.__name__}"
            )
        self._entries[key] = entry
        self._misses += 1
        logger.debug("registered %s for %r", type(entry).__name__, key)
        return entry

    def get(self, key: CacheKey, default: Any = None) -> Any:
        return self._entries.get(key, default)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def items(self) -> Iterator[Tuple[CacheKey, Any]]:
        return iter(list(self._entries.items()))

    def stats(self) -> StoreStats:
        return StoreStats(entries=len(self._entries), hits=self._hits, misses=self._misses)

    def clear(self) -> None:
        """Drop every entry (end of run)."""
        self._entries.clear()
