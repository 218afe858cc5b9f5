import datetime
import random

import pytest
from pytest import mark

from killer import _conversions


@mark.parametrize("value", [1, 2, 3, 4, 10, 100, 600, 12345])
def test_apply_jitter(value: int):
    """Should always deviate by less than 25% of the value."""
    rng = random.Random(value)
    for _ in range(200):
        observed = _conversions.apply_jitter(value, rng)
        assert 0.75 * value <= observed < 1.25 * value


def test_apply_jitter_varies():
    """Should actually spread values out."""
    rng = random.Random(0)
    observed = {_conversions.apply_jitter(100, rng) for _ in range(100)}
    assert len(observed) > 10


TIMESTAMPS = [
    ("2017-11-11T11:11:11Z", datetime.datetime(2017, 11, 11, 11, 11, 11)),
    ("2017-11-11T12:11:11+01:00", datetime.datetime(2017, 11, 11, 11, 11, 11)),
    ("2017-11-11T11:11:11", datetime.datetime(2017, 11, 11, 11, 11, 11)),
]


@mark.parametrize("value, expected", TIMESTAMPS)
def test_from_timestamp(value: str, expected: datetime.datetime):
    """Should parse RFC 3339 timestamps into aware UTC datetimes."""
    observed = _conversions.from_timestamp(value)
    assert observed == expected.replace(tzinfo=datetime.timezone.utc)
    assert _conversions.to_timestamp(observed) == "2017-11-11T11:11:11Z"


@mark.parametrize("value", [None, "", "tomorrow", "2017-13-45T00:00:00Z"])
def test_from_timestamp_invalid(value: str):
    """Should raise a ValueError for values that are not timestamps."""
    with pytest.raises(ValueError):
        _conversions.from_timestamp(value)


def test_parse_label_filters():
    """Should parse label filters ignoring whitespace."""
    observed = _conversions.parse_label_filters("pool: spot-a; team : data")
    assert observed == {"pool": "spot-a", "team": "data"}
    assert _conversions.parse_label_filters("") == {}


@mark.parametrize("value", ["pool", "pool: a: b", ": a"])
def test_parse_label_filters_invalid(value: str):
    """Should raise a ValueError for filters not in `key: value` form."""
    with pytest.raises(ValueError):
        _conversions.parse_label_filters(value)


def test_to_label_selector():
    """Should render labels as a sorted equality label selector."""
    observed = _conversions.to_label_selector({"b": "2", "a": "1"})
    assert observed == "a=1,b=2"
