"""Query pools and datasets through the zpool and zfs command-line tools."""

from __future__ import annotations

import shlex
import subprocess
from dataclasses import dataclass, field
from enum import Enum


class InvalidOutputError(Exception):
    """Output of a command could not be understood."""

    def __init__(self, message: str = "invalid output executing command") -> None:
        super().__init__(message)


class CommandError(Exception):
    """A command could not be started or exited with a failure."""


class DatasetKind(str, Enum):
    """Supported dataset types."""

    FILESYSTEM = "filesystem"
    VOLUME = "volume"
    SNAPSHOT = "snapshot"

    def __str__(self) -> str:
        return self.value


class PoolStatus(str, Enum):
    """Health states reported for a pool."""

    ONLINE = "ONLINE"
    DEGRADED = "DEGRADED"
    FAULTED = "FAULTED"
    OFFLINE = "OFFLINE"
    UNAVAIL = "UNAVAIL"
    REMOVED = "REMOVED"
    SUSPENDED = "SUSPENDED"

    def __str__(self) -> str:
        return self.value


@dataclass
class DatasetProperties:
    """Property values of one dataset."""

    name: str
    properties: dict[str, str] = field(default_factory=dict)


def parse_records(text: str) -> list[list[str]]:
    """Split tab-separated command output into rows of exactly three fields."""
    rows = []
    for line in text.split("\n"):
        line = line.rstrip("\r")
        if not line:
            continue
        fields = line.split("\t")
        if len(fields) != 3:
            raise InvalidOutputError(
                f"invalid output executing command: expected 3 fields, got {len(fields)} in {line!r}"
            )
        rows.append(fields)
    return rows


def parse_pool_properties(pool: str, rows) -> dict[str, str]:
    """Collect property values from rows that must all belong to ``pool``."""
    properties = {}
    for row in rows:
        if len(row) != 3 or row[0] != pool:
            raise InvalidOutputError()
        _, name, value = row
        properties[name] = value
    return properties


def parse_dataset_properties(pool: str, rows) -> list[DatasetProperties]:
    """Group property rows by dataset; every dataset must live in ``pool``."""
    datasets: dict[str, DatasetProperties] = {}
    for row in rows:
        if len(row) != 3 or not row[0].startswith(pool):
            raise InvalidOutputError()
        dataset_name, name, value = row
        entry = datasets.setdefault(dataset_name, DatasetProperties(dataset_name))
        entry.properties[name] = value
    return list(datasets.values())


def _run(argv: list[str]) -> subprocess.CompletedProcess:
    cmdline = shlex.join(argv)
    try:
        return subprocess.run(argv, capture_output=True, text=True, check=False)
    except OSError as exc:
        raise CommandError(f"failed to start command '{cmdline}': {exc}") from exc


def _check(argv: list[str], proc: subprocess.CompletedProcess) -> None:
    if proc.returncode != 0:
        raise CommandError(
            f"failed to execute command '{shlex.join(argv)}'; "
            f"output: '{(proc.stderr or '').strip()}' (exit status {proc.returncode})"
        )


def execute(pool: str, command: str, *args: str) -> list[list[str]]:
    """Run ``command`` with ``args`` and ``pool`` appended; return its three-field rows."""
    argv = [command, *args, pool]
    proc = _run(argv)
    rows = parse_records(proc.stdout or "")
    _check(argv, proc)
    return rows


def pool_names() -> list[str]:
    """Names of the pools available on this system."""
    argv = ["zpool", "list", "-Ho", "name"]
    proc = _run(argv)
    _check(argv, proc)
    return [line.rstrip("\r") for line in (proc.stdout or "").split("\n") if line.rstrip("\r")]


@dataclass(frozen=True)
class Pool:
    """A pool whose properties can be queried."""

    name: str

    def properties(self, *args: str) -> dict[str, str]:
        rows = execute(self.name, "zpool", "get", "-Hpo", "name,property,value", ",".join(args))
        return parse_pool_properties(self.name, rows)


@dataclass(frozen=True)
class Datasets:
    """The datasets of one kind within a pool."""

    pool: str
    kind: DatasetKind

    def properties(self, *args: str) -> list[DatasetProperties]:
        rows = execute(
            self.pool,
            "zfs",
            "get",
            "-Hprt",
            str(self.kind),
            "-o",
            "name,property,value",
            ",".join(args),
        )
        return parse_dataset_properties(self.pool, rows)


class Client:
    """Entry point for querying pools and datasets."""

    def pool_names(self) -> list[str]:
        return pool_names()

    def pool(self, name: str) -> Pool:
        return Pool(name)

    def datasets(self, pool: str, kind) -> Datasets:
        return Datasets(pool, DatasetKind(kind))