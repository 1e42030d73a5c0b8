"""Collector for pool properties."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Iterable

from zfsexporter.metrics import Desc
from zfsexporter.properties import (
    HELP_ISSUE,
    PROPERTY_UNSUPPORTED_MSG,
    SUBSYSTEM_POOL,
    NamedMetric,
    PatternSet,
    Property,
    PropertyStore,
    UnsupportedPropertyError,
    new_property,
    register_collector,
)
from zfsexporter.transform import (
    PoolHealthCode,
    transform_bool,
    transform_health_code,
    transform_multiplier,
    transform_numeric,
    transform_percentage,
)
from zfsexporter.zfs_client import PoolStatus

_log = logging.getLogger(__name__)

DEFAULT_POOL_PROPS = "allocated,dedupratio,fragmentation,free,freeing,health,leaked,readonly,size"

POOL_LABELS = ("pool",)

_HEALTH_HELP = "Health status code for the pool [{}].".format(
    ", ".join(f"{code.value}: {PoolStatus[code.name].value}" for code in PoolHealthCode)
)

_DEFINITIONS = (
    ("allocated", "allocated_bytes",
     "Amount of storage in bytes used within the pool.", transform_numeric),
    ("dedupratio", "deduplication_ratio",
     "The ratio of deduplicated size vs undeduplicated size for data in this pool.",
     transform_multiplier),
    ("capacity", "capacity_ratio", "Ratio of pool space used.", transform_percentage),
    ("expandsize", "expand_size_bytes",
     "Amount of uninitialized space within the pool or device that can be used to increase "
     "the total capacity of the pool.",
     transform_numeric),
    ("fragmentation", "fragmentation_ratio",
     "The fragmentation ratio of the pool.", transform_percentage),
    ("free", "free_bytes",
     "The amount of free space in bytes available in the pool.", transform_numeric),
    ("freeing", "freeing_bytes",
     "The amount of space in bytes remaining to be freed following the destruction of a "
     "file system or snapshot.",
     transform_numeric),
    ("health", "health", _HEALTH_HELP, transform_health_code),
    ("leaked", "leaked_bytes", "Number of leaked bytes in the pool.", transform_numeric),
    ("readonly", "readonly",
     "Read-only status of the pool [0: read-write, 1: read-only].", transform_bool),
    ("size", "size_bytes", "Total size in bytes of the storage pool.", transform_numeric),
)

POOL_PROPERTIES = PropertyStore(
    SUBSYSTEM_POOL,
    POOL_LABELS,
    {
        key: new_property(SUBSYSTEM_POOL, metric_name, help_text, transform, *POOL_LABELS)
        for key, metric_name, help_text, transform in _DEFINITIONS
    },
)


@dataclass
class PoolCollector:
    """Exports the requested properties of each pool."""

    logger: logging.Logger
    client: object
    props: list[str]

    def _warn_unsupported(self, name: str, exc: Exception) -> None:
        self.logger.warning(
            "%s (help=%r collector=pool property=%s err=%s)",
            PROPERTY_UNSUPPORTED_MSG, HELP_ISSUE, name, exc,
        )

    def _lookup(self, name: str) -> Property:
        try:
            return POOL_PROPERTIES.lookup(name)
        except UnsupportedPropertyError as exc:
            self._warn_unsupported(name, exc)
            return exc.fallback

    def describe(self) -> list[Desc]:
        """Descriptions of the supported requested properties."""
        descs = []
        for name in self.props:
            try:
                descs.append(POOL_PROPERTIES.lookup(name).desc)
            except UnsupportedPropertyError as exc:
                self._warn_unsupported(name, exc)
        return descs

    def update(
        self,
        emit: Callable[[NamedMetric], None],
        pools: Iterable[str],
        excludes: PatternSet | None,
    ) -> None:
        """Emit samples for every pool concurrently; re-raise the first failure."""
        pools = list(pools)
        if not pools:
            return
        with ThreadPoolExecutor(max_workers=len(pools)) as executor:
            futures = [executor.submit(self._update_pool, emit, pool) for pool in pools]
        errors = [f.exception() for f in futures if f.exception() is not None]
        if errors:
            raise errors[0]

    def _update_pool(self, emit, pool: str) -> None:
        values = self.client.pool(pool).properties(*self.props)
        for name, value in values.items():
            emit(self._lookup(name).push(value, pool))


def new_pool_collector(logger, client, props) -> PoolCollector:
    """Build a pool collector."""
    return PoolCollector(logger or _log, client, list(props))


register_collector("pool", True, DEFAULT_POOL_PROPS, new_pool_collector)