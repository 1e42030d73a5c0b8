import subprocess
import sys

import pytest

from zfsexporter.zfs_client import (
    Client,
    CommandError,
    DatasetKind,
    DatasetProperties,
    Datasets,
    InvalidOutputError,
    Pool,
    PoolStatus,
    execute,
    parse_dataset_properties,
    parse_pool_properties,
    parse_records,
    pool_names,
)


class FakeRun:
    def __init__(self, stdout="", stderr="", returncode=0):
        self.stdout = stdout
        self.stderr = stderr
        self.returncode = returncode
        self.calls = []

    def __call__(self, argv, **kwargs):
        self.calls.append(list(argv))
        return subprocess.CompletedProcess(argv, self.returncode, stdout=self.stdout, stderr=self.stderr)


def test_parse_records_splits_tabs_and_skips_blank_lines():
    text = "tank\tsize\t1024\n\ntank\tfree\t512\r\n"
    assert parse_records(text) == [["tank", "size", "1024"], ["tank", "free", "512"]]


def test_parse_records_empty():
    assert parse_records("") == []


def test_parse_records_wrong_field_count():
    with pytest.raises(InvalidOutputError):
        parse_records("tank\tsize\n")


def test_parse_pool_properties():
    rows = [["tank", "size", "1024"], ["tank", "health", "ONLINE"]]
    assert parse_pool_properties("tank", rows) == {"size": "1024", "health": "ONLINE"}


def test_parse_pool_properties_rejects_other_pool():
    with pytest.raises(InvalidOutputError):
        parse_pool_properties("tank", [["other", "size", "1"]])


def test_parse_dataset_properties_groups_by_name():
    rows = [
        ["tank/a", "used", "1"],
        ["tank/b", "used", "2"],
        ["tank/a", "available", "3"],
    ]
    result = parse_dataset_properties("tank", rows)
    assert result == [
        DatasetProperties("tank/a", {"used": "1", "available": "3"}),
        DatasetProperties("tank/b", {"used": "2"}),
    ]


def test_parse_dataset_properties_rejects_foreign_dataset():
    with pytest.raises(InvalidOutputError):
        parse_dataset_properties("tank", [["rpool/a", "used", "1"]])


def test_execute_appends_pool_and_parses_output():
    script = "import sys; print(sys.argv[1] + '\\tsize\\t1024')"
    assert execute("tank", sys.executable, "-c", script) == [["tank", "size", "1024"]]


def test_execute_reports_failure_with_stderr():
    script = "import sys; sys.stderr.write('boom\\n'); sys.exit(3)"
    with pytest.raises(CommandError, match="boom"):
        execute("tank", sys.executable, "-c", script)


def test_execute_missing_command():
    with pytest.raises(CommandError, match="failed to start command"):
        execute("tank", "definitely-not-a-real-command-xyz")


def test_execute_invalid_output():
    script = "print('only one field')"
    with pytest.raises(InvalidOutputError):
        execute("tank", sys.executable, "-c", script)


def test_pool_properties_runs_zpool_get(monkeypatch):
    fake = FakeRun(stdout="tank\tsize\t2048\ntank\tfree\t1024\n")
    monkeypatch.setattr(subprocess, "run", fake)
    result = Pool("tank").properties("size", "free")
    assert result == {"size": "2048", "free": "1024"}
    assert fake.calls == [["zpool", "get", "-Hpo", "name,property,value", "size,free", "tank"]]


def test_datasets_properties_runs_zfs_get(monkeypatch):
    fake = FakeRun(stdout="tank/fs\tused\t10\n")
    monkeypatch.setattr(subprocess, "run", fake)
    result = Datasets("tank", DatasetKind.FILESYSTEM).properties("used")
    assert result == [DatasetProperties("tank/fs", {"used": "10"})]
    assert fake.calls == [
        ["zfs", "get", "-Hprt", "filesystem", "-o", "name,property,value", "used", "tank"]
    ]


def test_pool_names(monkeypatch):
    fake = FakeRun(stdout="tank\nrpool\n")
    monkeypatch.setattr(subprocess, "run", fake)
    assert pool_names() == ["tank", "rpool"]
    assert fake.calls == [["zpool", "list", "-Ho", "name"]]


def test_pool_names_failure(monkeypatch):
    monkeypatch.setattr(subprocess, "run", FakeRun(stderr="no pools\n", returncode=1))
    with pytest.raises(CommandError, match="no pools"):
        Client().pool_names()


def test_client_builds_handles():
    client = Client()
    assert client.pool("tank") == Pool("tank")
    datasets = client.datasets("tank", "snapshot")
    assert datasets.pool == "tank"
    assert datasets.kind is DatasetKind.SNAPSHOT


def test_enum_values():
    assert PoolStatus("ONLINE") is PoolStatus.ONLINE
    assert str(DatasetKind.VOLUME) == "volume"