"""Version and pool status as reported by the JSON output of the zfs tools."""

from __future__ import annotations

import json
import logging
import shlex
import subprocess
from dataclasses import dataclass, field

from zfsexporter.zfs_client import CommandError

_log = logging.getLogger(__name__)


@dataclass
class CommandOutputVersion:
    command: str = ""
    major: int = 0
    minor: int = 0


@dataclass
class ZfsVersion:
    userland: str = ""
    kernel: str = ""


@dataclass
class ZfsVersionOutput:
    output_version: CommandOutputVersion = field(default_factory=CommandOutputVersion)
    zfs_version: ZfsVersion = field(default_factory=ZfsVersion)


@dataclass
class VdevStatus:
    name: str = ""
    vdev_type: str = ""
    guid: int = 0
    path: str = ""
    phys_path: str = ""
    devid: str = ""
    class_: str = ""
    state: str = ""
    parent: str = ""
    rep_dev_size: int = 0
    self_healed: int = 0
    phys_space: int = 0
    read_errors: int = 0
    write_errors: int = 0
    checksum_errors: int = 0
    scan_processed: int = 0
    slow_ios: int = 0


@dataclass
class ScanStats:
    function: str = ""
    state: str = ""
    start_time: int = 0
    end_time: int = 0
    to_examine: int = 0
    examined: int = 0
    skipped: int = 0
    processed: int = 0
    errors: int = 0
    bytes_per_scan: int = 0
    pass_start: int = 0
    scrub_pause: int = 0
    scrub_spent_paused: int = 0
    issued_bytes_per_scan: int = 0
    issued: int = 0


@dataclass
class PoolStatusReport:
    name: str = ""
    state: str = ""
    pool_guid: int = 0
    txg: int = 0
    spa_version: int = 0
    zpl_version: int = 0
    status: str = ""
    action: str = ""
    moreinfo: str = ""
    error_count: int = 0
    scan_stats: ScanStats = field(default_factory=ScanStats)
    vdevs: dict[str, VdevStatus] = field(default_factory=dict)


@dataclass
class ZpoolStatusOutput:
    output_version: CommandOutputVersion = field(default_factory=CommandOutputVersion)
    pools: dict[str, PoolStatusReport] = field(default_factory=dict)


def _obj(value, where: str) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"{where}: expected an object, got {type(value).__name__}")
    return value


def _str(data: dict, key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"{key}: expected a string, got {type(value).__name__}")
    return value


def _int(data: dict, key: str, unsigned: bool = False) -> int:
    value = data.get(key)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key}: expected an integer, got {value!r}")
    if unsigned and value < 0:
        raise ValueError(f"{key}: expected an unsigned integer, got {value!r}")
    return value


def _output_version(data) -> CommandOutputVersion:
    data = _obj(data, "output_version")
    return CommandOutputVersion(_str(data, "command"), _int(data, "major"), _int(data, "minor"))


def _vdev(data) -> VdevStatus:
    data = _obj(data, "vdev")
    return VdevStatus(
        name=_str(data, "name"),
        vdev_type=_str(data, "vdev_type"),
        guid=_int(data, "guid", unsigned=True),
        path=_str(data, "path"),
        phys_path=_str(data, "phys_path"),
        devid=_str(data, "devid"),
        class_=_str(data, "class"),
        state=_str(data, "state"),
        parent=_str(data, "parent"),
        rep_dev_size=_int(data, "rep_dev_size"),
        self_healed=_int(data, "self_healed"),
        phys_space=_int(data, "phys_space"),
        read_errors=_int(data, "read_errors"),
        write_errors=_int(data, "write_errors"),
        checksum_errors=_int(data, "checksum_errors"),
        scan_processed=_int(data, "scan_processed"),
        slow_ios=_int(data, "slow_ios"),
    )


def _scan_stats(data) -> ScanStats:
    data = _obj(data, "scan_stats")
    return ScanStats(
        function=_str(data, "function"),
        state=_str(data, "state"),
        **{
            key: _int(data, key)
            for key in (
                "start_time",
                "end_time",
                "to_examine",
                "examined",
                "skipped",
                "processed",
                "errors",
                "bytes_per_scan",
                "pass_start",
                "scrub_pause",
                "scrub_spent_paused",
                "issued_bytes_per_scan",
                "issued",
            )
        },
    )


def _pool(data) -> PoolStatusReport:
    data = _obj(data, "pool")
    return PoolStatusReport(
        name=_str(data, "name"),
        state=_str(data, "state"),
        pool_guid=_int(data, "pool_guid", unsigned=True),
        txg=_int(data, "txg"),
        spa_version=_int(data, "spa_version"),
        zpl_version=_int(data, "zpl_version"),
        status=_str(data, "status"),
        action=_str(data, "action"),
        moreinfo=_str(data, "moreinfo"),
        error_count=_int(data, "error_count"),
        scan_stats=_scan_stats(data.get("scan_stats")),
        vdevs={name: _vdev(vdev) for name, vdev in _obj(data.get("vdevs"), "vdevs").items()},
    )


def parse_zfs_version(data) -> ZfsVersionOutput:
    """Parse the output of ``zfs version --json``; raises ValueError on bad input."""
    doc = _obj(json.loads(data), "document")
    version = _obj(doc.get("zfs_version"), "zfs_version")
    return ZfsVersionOutput(
        output_version=_output_version(doc.get("output_version")),
        zfs_version=ZfsVersion(_str(version, "userland"), _str(version, "kernel")),
    )


def parse_zpool_status(data) -> ZpoolStatusOutput:
    """Parse the output of ``zpool status --json --json-int``; raises ValueError on bad input."""
    doc = _obj(json.loads(data), "document")
    return ZpoolStatusOutput(
        output_version=_output_version(doc.get("output_version")),
        pools={name: _pool(pool) for name, pool in _obj(doc.get("pools"), "pools").items()},
    )


def _run(argv: list[str], logger: logging.Logger) -> str:
    cmdline = shlex.join(argv)
    try:
        proc = subprocess.run(argv, capture_output=True, text=True, check=False)
    except OSError as exc:
        raise CommandError(f"failed to start command '{cmdline}': {exc}") from exc
    logger.debug("ZFS command output: %s", proc.stdout)
    if proc.returncode != 0:
        raise CommandError(
            f"failed to execute command '{cmdline}'; "
            f"output: '{(proc.stderr or '').strip()}' (exit status {proc.returncode})"
        )
    return proc.stdout or ""


def zfs_version(logger: logging.Logger | None = None) -> str:
    """The userland ZFS version reported by ``zfs version --json``."""
    logger = logger or _log
    argv = ["zfs", "version", "--json"]
    stdout = _run(argv, logger)
    try:
        output = parse_zfs_version(stdout)
    except ValueError as exc:
        raise CommandError(f"failed to read output of '{shlex.join(argv)}': {exc}") from exc
    logger.debug("ZFS command output parsed: %s", output)
    return output.zfs_version.userland


def zpool_status(logger: logging.Logger | None = None) -> dict[str, PoolStatusReport]:
    """Status of every pool, keyed by pool name."""
    logger = logger or _log
    argv = ["zpool", "status", "--json", "--json-int"]
    stdout = _run(argv, logger)
    try:
        output = parse_zpool_status(stdout)
    except ValueError as exc:
        raise CommandError(f"failed to read output of '{shlex.join(argv)}': {exc}") from exc
    logger.debug("Zpool status output parsed: %s", output)
    return output.pools