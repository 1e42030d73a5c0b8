import pytest

from zfsexporter.metrics import Desc, Metric, build_fq_name, format_value, render

ALLOCATED = Desc(
    "zfs_pool_allocated_bytes",
    "Amount of storage in bytes used within the pool.",
    ("pool",),
)


def test_build_fq_name_joins_all_parts():
    assert (
        build_fq_name("zfs", "scrape", "collector_duration_seconds")
        == "zfs_scrape_collector_duration_seconds"
    )


def test_build_fq_name_skips_empty_parts():
    assert build_fq_name("zfs", "", "health") == build_fq_name("", "zfs", "health")


def test_build_fq_name_empty_name_is_empty():
    assert build_fq_name("zfs", "pool", "") == ""


@pytest.mark.parametrize(
    "value, text",
    [
        (1024, "1024"),
        (0.4, "0.4"),
        (0.041666666666666664, "0.041666666666666664"),
        (0, "0"),
        (1756033110, "1.75603311e+09"),
    ],
)
def test_format_value_known(value, text):
    assert format_value(value) == text


def test_format_value_infinity():
    assert format_value(float("inf")) == "+Inf"


@pytest.mark.parametrize(
    "value", [1024.0, 0.4, 0.05, 1e-7, 123456789.125, -2.5, 1756033110.0, 3e300, 0.25]
)
def test_format_value_round_trips(value):
    assert float(format_value(value)) == value


def test_render_matches_exposition():
    output = render([Metric(ALLOCATED, 1024, ("testpool",))])
    assert output == (
        "# HELP zfs_pool_allocated_bytes Amount of storage in bytes used within the pool.\n"
        "# TYPE zfs_pool_allocated_bytes gauge\n"
        'zfs_pool_allocated_bytes{pool="testpool"} 1024\n'
    )


def test_render_sorts_samples_by_label():
    output = render(
        [
            Metric(ALLOCATED, 2048, ("testpool2",)),
            Metric(ALLOCATED, 1024, ("testpool1",)),
        ]
    )
    lines = output.splitlines()
    assert lines[2] == 'zfs_pool_allocated_bytes{pool="testpool1"} 1024'
    assert lines[3] == 'zfs_pool_allocated_bytes{pool="testpool2"} 2048'


def test_render_groups_families_once():
    other = Desc("zfs_pool_size_bytes", "Total size in bytes of the storage pool.", ("pool",))
    output = render(
        [
            Metric(other, 2048, ("a",)),
            Metric(ALLOCATED, 1, ("a",)),
            Metric(ALLOCATED, 2, ("b",)),
        ]
    )
    assert output.count("# TYPE zfs_pool_allocated_bytes gauge") == 1
    assert output.index("zfs_pool_allocated_bytes") < output.index("zfs_pool_size_bytes")


def test_render_escapes_label_values():
    output = render([Metric(ALLOCATED, 1, ('a"b',))])
    assert 'pool="a\\"b"' in output


def test_metric_rejects_wrong_label_count():
    with pytest.raises(ValueError):
        Metric(ALLOCATED, 1, ("a", "b"))