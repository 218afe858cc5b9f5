import datetime

import pytest
from pytest import mark

from killer import _types
from killer._types import _spans
from killer._types import _windows

UTC = datetime.timezone.utc

ALLOWED_SECONDS_SCENARIOS = [
    ("", "", 86400),
    # The whole day twice, forcing the spans to merge.
    ("00:00 - 23:59, 23:59 - 23:58", "", 86400),
    ("09:00 - 12:00, 13:00 - 18:00", "10:00 - 11:00", 25200),
    ("", "10:00 - 11:00", 82800),
    ("22:00 - 02:00", "", 4 * 3600),
    (
        "00:00 - 04:00, 08:00 - 12:00, 16:00 - 20:00",
        "01:00 - 02:00, 06:00 - 14:00, 15:00 - 17:00",
        21600,
    ),
]


@mark.parametrize("whitelist, blacklist, expected", ALLOWED_SECONDS_SCENARIOS)
def test_allowed_seconds_per_day(whitelist: str, blacklist: str, expected: int):
    """Should count the allowed seconds of whitelist minus blacklist."""
    policy = _types.WindowPolicy(whitelist, blacklist)
    assert policy.allowed_seconds_per_day == expected


def test_midnight_split():
    """Should split a range crossing midnight into evening and morning spans."""
    assert _windows.to_reference_spans(22 * 3600, 2 * 3600) == [
        _spans.Timespan(22 * 3600, 86400),
        _spans.Timespan(0, 2 * 3600),
    ]
    policy = _types.WindowPolicy("22:00 - 02:00")
    assert policy.allowed_hours.to_list() == [(0, 7200), (79200, 86400)]


def test_allowed_hours_are_copies():
    """Should not allow callers to change the policy through its allowed hours."""
    policy = _types.WindowPolicy("09:00 - 10:00")
    policy.allowed_hours.insert(0, 86400)
    assert policy.allowed_seconds_per_day == 3600
    assert policy.allowed_hours.to_list() == [(32400, 36000)]


@mark.parametrize(
    "value",
    ["09:00", "09:00 - 10:00 - 11:00", "9 - 10", "25:00 - 26:00", "09:60 - 10:00"],
)
def test_malformed_hours(value: str):
    """Should raise a configuration error for malformed hours."""
    with pytest.raises(_types.ConfigurationError):
        _types.WindowPolicy(whitelist=value)
    with pytest.raises(_types.ConfigurationError):
        _types.WindowPolicy(blacklist=value)


def test_invalid_direction():
    """Should raise a configuration error for an unknown direction."""
    with pytest.raises(_types.ConfigurationError):
        _windows.merge_hours(_types.IntervalSet(), "09:00 - 10:00", "*")


def test_no_allowed_time():
    """Should refuse a policy that leaves no time in the day."""
    with pytest.raises(_types.ConfigurationError):
        _types.WindowPolicy("09:00 - 12:00", "08:00 - 13:00")


EXPIRY_SCENARIOS = [
    # No restrictions simply adds the seconds.
    ("", "", "2017-11-11T12:00:00", 3600, "2017-11-11T13:00:00"),
    ("", "", "2017-11-11T12:00:00", 0, "2017-11-11T12:00:00"),
    # Creation before the window starts counting at the window start.
    ("09:00 - 12:00", "", "2017-11-11T07:00:00", 1800, "2017-11-11T09:30:00"),
    # Creation inside the window counts from creation.
    ("09:00 - 12:00", "", "2017-11-11T10:00:00", 1800, "2017-11-11T10:30:00"),
    # The gap between windows consumes nothing.
    ("09:00 - 10:00, 13:00 - 14:00", "", "2017-11-11T09:30:00", 3600, "2017-11-11T13:30:00"),
    # Budgets beyond the remaining windows of the day wrap into the next day.
    ("09:00 - 12:00", "", "2017-11-11T11:00:00", 3 * 3600, "2017-11-12T11:00:00"),
    ("09:00 - 12:00", "", "2017-11-11T13:00:00", 30, "2017-11-12T09:00:30"),
    # Budgets spanning several days of windows.
    ("09:00 - 10:00", "", "2017-11-11T08:00:00", 2 * 3600 + 60, "2017-11-13T09:01:00"),
    # Budget matching a window exactly lands at the start of the next window.
    ("09:00 - 10:00, 13:00 - 14:00", "", "2017-11-11T09:00:00", 3600, "2017-11-11T13:00:00"),
    # Windows crossing midnight.
    ("22:00 - 02:00", "", "2017-11-11T23:00:00", 2 * 3600, "2017-11-12T01:00:00"),
    # Blacklist only.
    ("", "12:00 - 13:00", "2017-11-11T11:30:00", 3600, "2017-11-11T13:30:00"),
    # Zero budget outside of the windows waits for the next window.
    ("09:00 - 12:00", "", "2017-11-11T13:00:00", 0, "2017-11-12T09:00:00"),
]


@mark.parametrize(
    "whitelist, blacklist, creation, seconds, expected", EXPIRY_SCENARIOS
)
def test_expiry_from(
    whitelist: str,
    blacklist: str,
    creation: str,
    seconds: int,
    expected: str,
):
    """Should project the budget through the allowed hours."""
    policy = _types.WindowPolicy(whitelist, blacklist)
    observed = policy.expiry_from(
        datetime.datetime.fromisoformat(creation).replace(tzinfo=UTC), seconds
    )
    assert observed == datetime.datetime.fromisoformat(expected).replace(tzinfo=UTC)


POLICIES = [
    ("", ""),
    ("09:00 - 12:00, 13:00 - 18:00", "10:00 - 11:00"),
    ("22:00 - 02:00", ""),
    ("", "00:00 - 23:00"),
    ("00:00 - 00:01", ""),
]


@mark.parametrize("whitelist, blacklist", POLICIES)
def test_expiry_within_allowed_hours(whitelist: str, blacklist: str):
    """Should never precede creation and always land inside an allowed span."""
    policy = _types.WindowPolicy(whitelist, blacklist)
    creations = [
        datetime.datetime(2017, 11, 11, hour, minute, 30, 250, tzinfo=UTC)
        for hour in range(0, 24, 5)
        for minute in (0, 59)
    ]
    maximum = 3 * policy.allowed_seconds_per_day
    durations = sorted({0, 1, maximum - 1, maximum, *range(0, maximum, 9973)})
    for creation in creations:
        for duration in durations:
            observed = policy.expiry_from(creation, duration)
            assert observed >= creation
            assert policy.contains(observed), f"{observed} is outside {policy.to_dict()}"


def test_expiry_from_negative():
    """Should reject negative budgets."""
    policy = _types.WindowPolicy()
    with pytest.raises(ValueError):
        policy.expiry_from(datetime.datetime(2017, 11, 11, tzinfo=UTC), -1)


def test_expiry_from_naive_is_utc():
    """Should treat naive datetimes as UTC."""
    policy = _types.WindowPolicy("09:00 - 12:00")
    observed = policy.expiry_from(datetime.datetime(2017, 11, 11, 8), 60)
    assert observed == datetime.datetime(2017, 11, 11, 9, 1, tzinfo=UTC)


def test_to_dict():
    """Should describe the allowed hours for logging."""
    policy = _types.WindowPolicy("09:00 - 12:00", "10:00 - 11:00")
    assert policy.to_dict()["allowed_hours"] == ["09:00 - 10:00", "11:00 - 12:00"]


def test_expiry_from_unresolved():
    """Should raise instead of looping when the budget outlasts its day bound."""
    policy = _types.WindowPolicy("09:00 - 10:00")
    # Claiming more allowed seconds than the spans hold shrinks the day bound
    # to two days, which only hold two hours of allowed time.
    policy.allowed_seconds_per_day = 86400
    with pytest.raises(_types.ExpiryProjectionError):
        policy.expiry_from(datetime.datetime(2017, 11, 11, 8, tzinfo=UTC), 3 * 3600)
