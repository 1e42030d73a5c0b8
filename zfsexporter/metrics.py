"""Metric descriptions, constant samples and the Prometheus text exposition format."""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

GAUGE = "gauge"
COUNTER = "counter"
UNTYPED = "untyped"


def build_fq_name(namespace: str, subsystem: str, name: str) -> str:
    """Join the non-empty parts with underscores; an empty name yields ''."""
    if not name:
        return ""
    return "_".join(part for part in (namespace, subsystem, name) if part)


@dataclass(frozen=True)
class Desc:
    """The fixed description of a metric family: name, help text and label names."""

    name: str
    help: str
    labels: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "labels", tuple(self.labels))


@dataclass(frozen=True)
class Metric:
    """One constant sample of a metric family."""

    desc: Desc
    value: float
    label_values: tuple[str, ...] = ()
    kind: str = GAUGE

    def __post_init__(self) -> None:
        object.__setattr__(self, "label_values", tuple(self.label_values))
        object.__setattr__(self, "value", float(self.value))
        if len(self.label_values) != len(self.desc.labels):
            raise ValueError(
                f"inconsistent label cardinality for {self.desc.name!r}: expected "
                f"{len(self.desc.labels)} label values but got {len(self.label_values)}"
            )

    def labels(self) -> list[tuple[str, str]]:
        """Label pairs ordered by label name."""
        return sorted(zip(self.desc.labels, self.label_values))


def format_value(value: float) -> str:
    """Format a sample value the way the exposition format writes floats."""
    value = float(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if value == 0:
        return "-0" if math.copysign(1.0, value) < 0 else "0"

    sign, digit_tuple, exponent = Decimal(repr(value)).as_tuple()
    raw = "".join(map(str, digit_tuple))
    point = len(raw) + exponent
    digits = raw.rstrip("0") or "0"
    prefix = "-" if sign else ""
    exp = point - 1

    if exp < -4 or exp >= 6:
        mantissa = digits[0] + ("." + digits[1:] if len(digits) > 1 else "")
        return f"{prefix}{mantissa}e{'-' if exp < 0 else '+'}{abs(exp):02d}"
    if point <= 0:
        return f"{prefix}0.{'0' * -point}{digits}"
    if point >= len(digits):
        return f"{prefix}{digits}{'0' * (point - len(digits))}"
    return f"{prefix}{digits[:point]}.{digits[point:]}"


def _escape_help(text: str) -> str:
    return text.replace("\\", "\\\\").replace("\n", "\\n")


def _escape_label(text: str) -> str:
    return text.replace("\\", "\\\\").replace("\n", "\\n").replace('"', '\\"')


def _label_text(metric: Metric) -> str:
    pairs = metric.labels()
    if not pairs:
        return ""
    return "{" + ",".join(f'{name}="{_escape_label(value)}"' for name, value in pairs) + "}"


def _sort_key(metric: Metric) -> tuple[str, ...]:
    return tuple(value for _, value in metric.labels())


def render(metrics: Iterable[Metric]) -> str:
    """Render samples as text exposition, families sorted by name, samples by labels."""
    families: dict[str, tuple[Desc, str, list[Metric]]] = {}
    for metric in metrics:
        families.setdefault(metric.desc.name, (metric.desc, metric.kind, []))[2].append(metric)

    lines = []
    for name in sorted(families):
        desc, kind, samples = families[name]
        lines.append(f"# HELP {name} {_escape_help(desc.help)}")
        lines.append(f"# TYPE {name} {kind}")
        for sample in sorted(samples, key=_sort_key):
            lines.append(f"{name}{_label_text(sample)} {format_value(sample.value)}")
    return "".join(line + "\n" for line in lines)