"""Property definitions, collector registration and exclusion patterns."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable, Iterable

from zfsexporter.metrics import GAUGE, Desc, Metric, build_fq_name
from zfsexporter.transform import transform_numeric

NAMESPACE = "zfs"
SUBSYSTEM_DATASET = "dataset"
SUBSYSTEM_POOL = "pool"

PROPERTY_UNSUPPORTED_DESC = (
    "!!! This property is unsupported, results are likely to be undesirable, "
    "please file an issue to have this property supported !!!"
)
PROPERTY_UNSUPPORTED_MSG = "Unsupported dataset property, results are likely to be undesirable"
HELP_ISSUE = "Please file an issue with the project"

SCRAPE_DURATION_DESC_NAME = build_fq_name(NAMESPACE, "scrape", "collector_duration_seconds")
SCRAPE_DURATION_DESC = Desc(
    SCRAPE_DURATION_DESC_NAME,
    "zfs_exporter: Duration of a collector scrape.",
    ("collector",),
)
SCRAPE_SUCCESS_DESC_NAME = build_fq_name(NAMESPACE, "scrape", "collector_success")
SCRAPE_SUCCESS_DESC = Desc(
    SCRAPE_SUCCESS_DESC_NAME,
    "zfs_exporter: Whether a collector succeeded.",
    ("collector",),
)


@dataclass(frozen=True)
class NamedMetric:
    """A sample together with the unique name it is cached under."""

    name: str
    metric: Metric


def expand_metric_name(prefix: str, *args: str) -> str:
    """Join label values and the metric name into a unique cache key."""
    return "-".join([*args, prefix])


@dataclass(frozen=True)
class Property:
    """How one ZFS property becomes a metric."""

    name: str
    desc: Desc
    transform: Callable[[str], float]
    kind: str = GAUGE

    def push(self, value: str, *args: str) -> NamedMetric:
        """Convert ``value`` into a sample labelled with ``args``; raises ValueError."""
        number = self.transform(value)
        return NamedMetric(
            expand_metric_name(self.name, *args),
            Metric(self.desc, number, args, self.kind),
        )


def new_property(
    subsystem: str,
    metric_name: str,
    help_text: str,
    transform: Callable[[str], float],
    *args: str,
) -> Property:
    """Define a gauge property whose metric carries the label names given in ``args``."""
    name = build_fq_name(NAMESPACE, subsystem, metric_name)
    return Property(name, Desc(name, help_text, args), transform, GAUGE)


class UnsupportedPropertyError(LookupError):
    """A property has no definition; ``fallback`` describes it generically."""

    def __init__(self, name: str, fallback: Property) -> None:
        super().__init__(f"unsupported property: {name}")
        self.property_name = name
        self.fallback = fallback


@dataclass
class PropertyStore:
    """The known properties of one subsystem."""

    default_subsystem: str
    default_labels: tuple[str, ...]
    store: dict[str, Property] = field(default_factory=dict)

    def lookup(self, name: str) -> Property:
        """The definition of ``name``; raises UnsupportedPropertyError if unknown."""
        try:
            return self.store[name]
        except KeyError:
            fallback = new_property(
                self.default_subsystem,
                name,
                PROPERTY_UNSUPPORTED_DESC,
                transform_numeric,
                *self.default_labels,
            )
            raise UnsupportedPropertyError(name, fallback) from None


@dataclass
class CollectorState:
    """Whether a collector is enabled, which properties it reads and how to build it."""

    name: str
    enabled: bool
    properties: str
    factory: Callable


_registry: dict[str, CollectorState] = {}


def register_collector(
    name: str, default_enabled: bool, default_props: str, factory: Callable
) -> CollectorState:
    """Register a collector with its default state."""
    state = CollectorState(name, default_enabled, default_props, factory)
    _registry[name] = state
    return state


def registered_collectors() -> dict[str, CollectorState]:
    """The registry of collectors, keyed by name."""
    return _registry


class PatternSet:
    """A set of regular expressions; text matches if any of them is found in it."""

    def __init__(self, patterns: Iterable[str | re.Pattern] = ()) -> None:
        self.patterns = tuple(
            p if isinstance(p, re.Pattern) else re.compile(p) for p in patterns
        )

    def __len__(self) -> int:
        return len(self.patterns)

    def matches(self, text: str) -> bool:
        return any(pattern.search(text) for pattern in self.patterns)