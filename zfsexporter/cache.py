"""A thread-safe store of the latest sample for each metric name."""

from __future__ import annotations

import threading


class MetricCache:
    """Latest samples keyed by their expanded metric name."""

    def __init__(self) -> None:
        self._cache: dict = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def add(self, metric) -> None:
        """Store a named sample, replacing any earlier one of the same name."""
        with self._lock:
            self._cache[metric.name] = metric.metric

    def merge(self, other: MetricCache) -> None:
        """Copy every entry of ``other`` into this cache."""
        if other is self:
            return
        entries = other.items()
        with self._lock:
            self._cache.update(entries)

    def replace(self, other: MetricCache) -> None:
        """Make this cache hold exactly the entries of ``other``."""
        entries = dict(other.items())
        with self._lock:
            self._cache = entries

    def index(self) -> set[str]:
        """The names currently held."""
        with self._lock:
            return set(self._cache)

    def items(self) -> list:
        """A snapshot of (name, sample) pairs."""
        with self._lock:
            return list(self._cache.items())