"""The top-level collector: runs every enabled collector under a deadline with caching."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field

import zfsexporter.dataset  # noqa: F401  registers the dataset collectors
import zfsexporter.pool  # noqa: F401  registers the pool collector
from zfsexporter.cache import MetricCache
from zfsexporter.metrics import Desc, Metric
from zfsexporter.properties import (
    SCRAPE_DURATION_DESC,
    SCRAPE_DURATION_DESC_NAME,
    SCRAPE_SUCCESS_DESC,
    SCRAPE_SUCCESS_DESC_NAME,
    CollectorState,
    NamedMetric,
    PatternSet,
    registered_collectors,
)
from zfsexporter.zfs_client import Client

_log = logging.getLogger("zfsexporter")


@dataclass
class ZFSConfig:
    """Settings for a ZFSCollector; ``deadline`` is in seconds."""

    zfs_client: object = None
    disable_metrics: bool = False
    deadline: float = 8.0
    pools: list[str] = field(default_factory=list)
    excludes: list[str] = field(default_factory=list)
    logger: logging.Logger | None = None


class ZFSCollector:
    """Collects every enabled collector, falling back to cached samples after the deadline."""

    def __init__(self, config: ZFSConfig) -> None:
        self.pools: list[str] = sorted(config.pools)
        self.collectors: dict[str, CollectorState] = registered_collectors()
        self.client = config.zfs_client if config.zfs_client is not None else Client()
        self.disable_metrics = config.disable_metrics
        self.deadline = float(config.deadline)
        self.logger = config.logger or _log
        self.excludes = PatternSet(sorted(config.excludes))
        self._cache = MetricCache()
        self._ready = threading.Semaphore(1)

    def _instantiate(self, state: CollectorState):
        return state.factory(self.logger, self.client, state.properties.split(","))

    def describe(self) -> list[Desc]:
        """Descriptions of every metric the enabled collectors may produce."""
        descs: list[Desc] = []
        if not self.disable_metrics:
            descs.extend((SCRAPE_DURATION_DESC, SCRAPE_SUCCESS_DESC))
        for state in list(self.collectors.values()):
            if not state.enabled:
                continue
            try:
                collector = self._instantiate(state)
            except Exception:
                continue
            descs.extend(collector.describe())
        return descs

    def collect(self) -> list[Metric]:
        """Run a collection; on timeout or while one is in flight, fill in from the cache."""
        if not self._ready.acquire(blocking=False):
            return [metric for _, metric in self._cache.items()]

        deadline_at = time.monotonic() + self.deadline
        current = MetricCache()
        sent: list[Metric] = []
        lock = threading.Lock()
        timed_out = threading.Event()
        finished = threading.Event()

        def emit(named: NamedMetric) -> None:
            current.add(named)
            with lock:
                if not timed_out.is_set():
                    sent.append(named.metric)

        pool_error: Exception | None = None
        pools: list[str] = []
        try:
            pools = self.get_pools(self.pools)
        except Exception as exc:
            pool_error = exc

        workers: list[threading.Thread] = []
        for name, state in list(self.collectors.items()):
            if not state.enabled:
                continue
            if pool_error is not None:
                self._publish(name, pool_error, 0.0, emit, deadline_at)
                continue
            try:
                collector = self._instantiate(state)
            except Exception as exc:
                self.logger.error("Error instantiating collector %s: %s", name, exc)
                continue
            worker = threading.Thread(
                target=self._execute,
                args=(name, collector, emit, pools, deadline_at),
                daemon=True,
            )
            worker.start()
            workers.append(worker)

        def finish() -> None:
            for worker in workers:
                worker.join()
            self._cache.replace(current)
            finished.set()
            self._ready.release()

        threading.Thread(target=finish, daemon=True).start()

        if finished.wait(max(0.0, deadline_at - time.monotonic())):
            with lock:
                return list(sent)

        with lock:
            timed_out.set()
            result = list(sent)
        self._cache.merge(current)
        index = current.index()
        result.extend(metric for name, metric in self._cache.items() if name not in index)
        return result

    def get_pools(self, pools: list[str]) -> list[str]:
        """The configured pools that exist, or every pool when none are configured."""
        available = self.client.pool_names()
        if not pools:
            return list(available)
        result = []
        for want in pools:
            if want in available:
                result.append(want)
            else:
                self.logger.warning("Pool unavailable: %s", want)
        return result

    def _execute(self, name, collector, emit, pools, deadline_at: float) -> None:
        begin = time.monotonic()
        error: Exception | None = None
        try:
            collector.update(emit, pools, self.excludes)
        except Exception as exc:
            error = exc
        self._publish(name, error, time.monotonic() - begin, emit, deadline_at)

    def _publish(self, name, error, duration: float, emit, deadline_at: float) -> None:
        if error is not None:
            self.logger.error(
                "Executing collector: status=error collector=%s durationSeconds=%s err=%s",
                name, duration, error,
            )
            success = 0.0
        elif time.monotonic() >= deadline_at:
            self.logger.warning(
                "Executing collector: status=delayed collector=%s durationSeconds=%s "
                "err=deadline exceeded",
                name, duration,
            )
            success = 0.0
        else:
            self.logger.debug(
                "Executing collector: status=ok collector=%s durationSeconds=%s", name, duration
            )
            success = 1.0

        if self.disable_metrics:
            return
        emit(NamedMetric(SCRAPE_DURATION_DESC_NAME, Metric(SCRAPE_DURATION_DESC, duration, (name,))))
        emit(NamedMetric(SCRAPE_SUCCESS_DESC_NAME, Metric(SCRAPE_SUCCESS_DESC, success, (name,))))