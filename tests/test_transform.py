import pytest

from zfsexporter.transform import (
    PoolHealthCode,
    transform_bool,
    transform_health_code,
    transform_multiplier,
    transform_numeric,
    transform_percentage,
)


@pytest.mark.parametrize(
    "value, expected", [("1024", 1024), ("-", 0), ("none", 0), ("1756033110", 1756033110)]
)
def test_transform_numeric(value, expected):
    assert transform_numeric(value) == expected


@pytest.mark.parametrize("value", ["abc", "", " 1024", "1_024"])
def test_transform_numeric_rejects_garbage(value):
    with pytest.raises(ValueError):
        transform_numeric(value)


@pytest.mark.parametrize(
    "status, code",
    [
        ("ONLINE", 0),
        ("DEGRADED", 1),
        ("FAULTED", 2),
        ("OFFLINE", 3),
        ("UNAVAIL", 4),
        ("REMOVED", 5),
        ("SUSPENDED", 6),
    ],
)
def test_transform_health_code(status, code):
    assert transform_health_code(status) == code
    assert PoolHealthCode(code).name == status


def test_transform_health_code_unknown():
    with pytest.raises(ValueError, match="BROKEN"):
        transform_health_code("BROKEN")


@pytest.mark.parametrize("value", ["on", "yes", "enabled", "active"])
def test_transform_bool_true(value):
    assert transform_bool(value) == 1


@pytest.mark.parametrize("value", ["off", "no", "disabled", "inactive", "-"])
def test_transform_bool_false(value):
    assert transform_bool(value) == 0


def test_transform_bool_unknown():
    with pytest.raises(ValueError, match="maybe"):
        transform_bool("maybe")


@pytest.mark.parametrize("value, expected", [("50", 0.5), ("25", 0.25), ("5%", 0.05)])
def test_transform_percentage(value, expected):
    assert transform_percentage(value) == expected


def test_transform_percentage_rejects_garbage():
    with pytest.raises(ValueError):
        transform_percentage("abc%")


@pytest.mark.parametrize(
    "value, expected",
    [("2.50", 0.4), ("2.50x", 0.4), ("24.00", 0.041666666666666664)],
)
def test_transform_multiplier(value, expected):
    assert transform_multiplier(value) == expected


def test_transform_multiplier_of_zero_is_infinite():
    result = transform_multiplier("0x")
    assert result == float("inf")


def test_transform_multiplier_rejects_garbage():
    with pytest.raises(ValueError):
        transform_multiplier("twox")