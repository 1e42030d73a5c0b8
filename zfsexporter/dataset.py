"""Collector for filesystem, snapshot and volume dataset properties."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Iterable

from zfsexporter.metrics import Desc
from zfsexporter.properties import (
    HELP_ISSUE,
    PROPERTY_UNSUPPORTED_MSG,
    SUBSYSTEM_DATASET,
    NamedMetric,
    PatternSet,
    Property,
    PropertyStore,
    UnsupportedPropertyError,
    new_property,
    register_collector,
)
from zfsexporter.transform import transform_multiplier, transform_numeric
from zfsexporter.zfs_client import DatasetKind, DatasetProperties

_log = logging.getLogger(__name__)

DEFAULT_FILESYSTEM_PROPS = "available,logicalused,quota,referenced,used,usedbydataset,written"
DEFAULT_SNAPSHOT_PROPS = "logicalused,referenced,used,written"
DEFAULT_VOLUME_PROPS = "available,logicalused,referenced,used,usedbydataset,volsize,written"

DATASET_LABELS = ("name", "pool", "type")

_DEFINITIONS = (
    ("available", "available_bytes",
     "The amount of space in bytes available to the dataset and all its children.",
     transform_numeric),
    ("compressratio", "compression_ratio",
     "The ratio of compressed size vs uncompressed size for this dataset.",
     transform_multiplier),
    ("logicalused", "logical_used_bytes",
     'The amount of space in bytes that is "logically" consumed by this dataset and all its '
     'descendents. See the "used_bytes" property.',
     transform_numeric),
    ("logicalreferenced", "logical_referenced_bytes",
     'The amount of space that is "logically" accessible by this dataset. '
     'See the "referenced_bytes" property.',
     transform_numeric),
    ("quota", "quota_bytes",
     "The maximum amount of space in bytes this dataset and its descendents can consume.",
     transform_numeric),
    ("refcompressratio", "referenced_compression_ratio",
     "The ratio of compressed size vs uncompressed size for the referenced space of this "
     'dataset. See also the "compression_ratio" property.',
     transform_multiplier),
    ("referenced", "referenced_bytes",
     "The amount of data in bytes that is accessible by this dataset, which may or may not "
     "be shared with other datasets in the pool.",
     transform_numeric),
    ("refquota", "referenced_quota_bytes",
     "The maximum amount of space in bytes this dataset can consume.",
     transform_numeric),
    ("refreservation", "referenced_reservation_bytes",
     "The minimum amount of space in bytes guaranteed to this dataset.",
     transform_numeric),
    ("reservation", "reservation_bytes",
     "The minimum amount of space in bytes guaranteed to a dataset and its descendants.",
     transform_numeric),
    ("snapshot_count", "snapshot_count_total",
     "The total number of snapshots that exist under this location in the dataset tree. "
     "This value is only available when a snapshot_limit has been set somewhere in the tree "
     "under which the dataset resides.",
     transform_numeric),
    ("snapshot_limit", "snapshot_limit_total",
     "The total limit on the number of snapshots that can be created on a dataset and its "
     "descendents.",
     transform_numeric),
    ("used", "used_bytes",
     "The amount of space in bytes consumed by this dataset and all its descendents.",
     transform_numeric),
    ("usedbychildren", "used_by_children_bytes",
     "The amount of space in bytes used by children of this dataset, which would be freed "
     "if all the dataset's children were destroyed.",
     transform_numeric),
    ("usedbydataset", "used_by_dataset_bytes",
     "The amount of space in bytes used by this dataset itself, which would be freed if the "
     "dataset were destroyed.",
     transform_numeric),
    ("usedbyrefreservation", "used_by_referenced_reservation_bytes",
     "The amount of space in bytes used by a refreservation set on this dataset, which would "
     "be freed if the refreservation was removed.",
     transform_numeric),
    ("usedbysnapshots", "used_by_snapshot_bytes",
     "The amount of space in bytes consumed by snapshots of this dataset.",
     transform_numeric),
    ("volsize", "volume_size_bytes",
     "The logical size in bytes of this volume.",
     transform_numeric),
    ("written", "written_bytes",
     "The amount of referenced space in bytes written to this dataset since the previous "
     "snapshot.",
     transform_numeric),
    ("creation", "creation_timestamp",
     "The unix timestamp when this dataset was created.",
     transform_numeric),
)

DATASET_PROPERTIES = PropertyStore(
    SUBSYSTEM_DATASET,
    DATASET_LABELS,
    {
        key: new_property(SUBSYSTEM_DATASET, metric_name, help_text, transform, *DATASET_LABELS)
        for key, metric_name, help_text, transform in _DEFINITIONS
    },
)


@dataclass
class DatasetCollector:
    """Exports the requested properties of every dataset of one kind."""

    kind: DatasetKind
    logger: logging.Logger
    client: object
    props: list[str]

    def _warn_unsupported(self, name: str, exc: Exception) -> None:
        self.logger.warning(
            "%s (help=%r collector=%s property=%s err=%s)",
            PROPERTY_UNSUPPORTED_MSG, HELP_ISSUE, self.kind, name, exc,
        )

    def _lookup(self, name: str) -> Property:
        try:
            return DATASET_PROPERTIES.lookup(name)
        except UnsupportedPropertyError as exc:
            self._warn_unsupported(name, exc)
            return exc.fallback

    def describe(self) -> list[Desc]:
        """Descriptions of the supported requested properties."""
        descs = []
        for name in self.props:
            try:
                descs.append(DATASET_PROPERTIES.lookup(name).desc)
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
            futures = [
                executor.submit(self._update_pool, emit, pool, excludes) for pool in pools
            ]
        errors = [f.exception() for f in futures if f.exception() is not None]
        if errors:
            raise errors[0]

    def _update_pool(self, emit, pool: str, excludes: PatternSet | None) -> None:
        datasets = self.client.datasets(pool, self.kind)
        for dataset in datasets.properties(*self.props):
            if excludes is not None and excludes.matches(dataset.name):
                continue
            self._update_dataset(emit, pool, dataset)

    def _update_dataset(self, emit, pool: str, dataset: DatasetProperties) -> None:
        labels = (dataset.name, pool, str(self.kind))
        for name, value in dataset.properties.items():
            emit(self._lookup(name).push(value, *labels))


def new_dataset_collector(kind, logger, client, props) -> DatasetCollector:
    """Build a dataset collector; raises ValueError for an unknown kind."""
    try:
        kind = DatasetKind(kind)
    except ValueError:
        raise ValueError(f"unknown dataset type: {kind}") from None
    return DatasetCollector(kind, logger or _log, client, list(props))


def new_filesystem_collector(logger, client, props) -> DatasetCollector:
    return new_dataset_collector(DatasetKind.FILESYSTEM, logger, client, props)


def new_snapshot_collector(logger, client, props) -> DatasetCollector:
    return new_dataset_collector(DatasetKind.SNAPSHOT, logger, client, props)


def new_volume_collector(logger, client, props) -> DatasetCollector:
    return new_dataset_collector(DatasetKind.VOLUME, logger, client, props)


register_collector("dataset-filesystem", True, DEFAULT_FILESYSTEM_PROPS, new_filesystem_collector)
register_collector("dataset-snapshot", False, DEFAULT_SNAPSHOT_PROPS, new_snapshot_collector)
register_collector("dataset-volume", True, DEFAULT_VOLUME_PROPS, new_volume_collector)