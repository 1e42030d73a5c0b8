import json
import logging
import subprocess

import pytest

from zfsexporter.zfs_client import CommandError
from zfsexporter.zfs_status import (
    CommandOutputVersion,
    ScanStats,
    VdevStatus,
    parse_zfs_version,
    parse_zpool_status,
    zfs_version,
    zpool_status,
)

LOGGER = logging.getLogger("test")

VERSION_DOC = {
    "output_version": {"command": "zfs version", "major": 0, "minor": 1},
    "zfs_version": {"userland": "zfs-2.3.0-1", "kernel": "zfs-kmod-2.3.0-1"},
}

STATUS_DOC = {
    "output_version": {"command": "zpool status", "major": 0, "minor": 1},
    "pools": {
        "tank": {
            "name": "tank",
            "state": "ONLINE",
            "pool_guid": 1234,
            "txg": 99,
            "spa_version": 5000,
            "zpl_version": 5,
            "error_count": 0,
            "scan_stats": {"function": "SCRUB", "state": "FINISHED", "errors": 0, "examined": 4096},
            "vdevs": {
                "tank": {
                    "name": "tank",
                    "vdev_type": "root",
                    "guid": 1234,
                    "class": "normal",
                    "state": "ONLINE",
                    "read_errors": 2,
                    "unknown_field": "ignored",
                }
            },
        }
    },
}


class FakeRun:
    def __init__(self, stdout="", stderr="", returncode=0):
        self.stdout = stdout
        self.stderr = stderr
        self.returncode = returncode
        self.calls = []

    def __call__(self, argv, **kwargs):
        self.calls.append(list(argv))
        return subprocess.CompletedProcess(argv, self.returncode, stdout=self.stdout, stderr=self.stderr)


def test_parse_zfs_version():
    output = parse_zfs_version(json.dumps(VERSION_DOC))
    assert output.zfs_version.userland == "zfs-2.3.0-1"
    assert output.zfs_version.kernel == "zfs-kmod-2.3.0-1"
    assert output.output_version == CommandOutputVersion("zfs version", 0, 1)


def test_parse_zfs_version_accepts_bytes_and_missing_fields():
    output = parse_zfs_version(b"{}")
    assert output.zfs_version.userland == ""
    assert output.output_version == CommandOutputVersion()


def test_parse_zfs_version_invalid_json():
    with pytest.raises(ValueError):
        parse_zfs_version("not json")


def test_parse_zfs_version_wrong_type():
    with pytest.raises(ValueError):
        parse_zfs_version(json.dumps({"zfs_version": {"userland": 5}}))


def test_parse_zpool_status():
    output = parse_zpool_status(json.dumps(STATUS_DOC))
    pool = output.pools["tank"]
    assert pool.state == "ONLINE"
    assert pool.pool_guid == 1234
    assert pool.txg == 99
    assert pool.scan_stats.function == "SCRUB"
    assert pool.scan_stats.examined == 4096
    vdev = pool.vdevs["tank"]
    assert vdev.class_ == "normal"
    assert vdev.read_errors == 2
    assert vdev.slow_ios == 0


def test_parse_zpool_status_defaults():
    output = parse_zpool_status(json.dumps({"pools": {"p": {}}}))
    assert output.pools["p"].scan_stats == ScanStats()
    assert output.pools["p"].vdevs == {}


def test_parse_zpool_status_rejects_negative_guid():
    doc = {"pools": {"p": {"vdevs": {"v": {"guid": -1}}}}}
    with pytest.raises(ValueError):
        parse_zpool_status(json.dumps(doc))


def test_parse_zpool_status_rejects_float_count():
    with pytest.raises(ValueError):
        parse_zpool_status(json.dumps({"pools": {"p": {"txg": 1.5}}}))


def test_vdev_defaults():
    assert VdevStatus().name == "" and VdevStatus().guid == 0


def test_zfs_version_runs_command(monkeypatch):
    fake = FakeRun(stdout=json.dumps(VERSION_DOC))
    monkeypatch.setattr(subprocess, "run", fake)
    assert zfs_version(LOGGER) == "zfs-2.3.0-1"
    assert fake.calls == [["zfs", "version", "--json"]]


def test_zfs_version_command_failure(monkeypatch):
    monkeypatch.setattr(subprocess, "run", FakeRun(stderr="no zfs\n", returncode=1))
    with pytest.raises(CommandError, match="no zfs"):
        zfs_version(LOGGER)


def test_zpool_status_runs_command(monkeypatch):
    fake = FakeRun(stdout=json.dumps(STATUS_DOC))
    monkeypatch.setattr(subprocess, "run", fake)
    pools = zpool_status(LOGGER)
    assert list(pools) == ["tank"]
    assert pools["tank"].vdevs["tank"].vdev_type == "root"
    assert fake.calls == [["zpool", "status", "--json", "--json-int"]]


def test_zpool_status_bad_output(monkeypatch):
    monkeypatch.setattr(subprocess, "run", FakeRun(stdout="garbage"))
    with pytest.raises(CommandError, match="failed to read output"):
        zpool_status(LOGGER)