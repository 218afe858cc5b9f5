import datetime
import re
import typing

from killer import _configs
from killer import _conversions
from killer._types import _errors
from killer._types import _spans

_HOUR_MINUTE_REGEX = re.compile(r"^(?P<hour>[0-9]{1,2}):(?P<minute>[0-9]{2})$")

#: The whole day expressed in the hours grammar. Used when no whitelist has
#: been specified so that a blacklist alone still has something to remove
#: allowed time from.
WHOLE_DAY = "00:00 - 12:00, 12:00 - 00:00"

INSERT = "+"
REMOVE = "-"


def _to_day_seconds(value: str) -> int:
    """
    Convert an `(H)H:MM` string into a number of seconds since midnight.

    Raises a ConfigurationError if the value is not a valid 24h clock time.
    """
    match = _HOUR_MINUTE_REGEX.match(value.strip())
    if not match:
        raise _errors.ConfigurationError(f"Unable to parse time value '{value}'.")

    try:
        time = datetime.time(
            hour=int(match.group("hour")),
            minute=int(match.group("minute")),
        )
    except ValueError as error:
        raise _errors.ConfigurationError(f'Invalid time value of "{value}".') from error

    return 3600 * time.hour + 60 * time.minute


def parse_hours(value: typing.Optional[str]) -> typing.List[typing.Tuple[int, int]]:
    """
    Parse an hours string into a list of `(start, end)` seconds since midnight.

    Expects a format of `09:00 - 11:00[, 21:00 - 23:00[, ...]]` in UTC. An end
    earlier than its start is returned as-is and denotes a range that crosses
    midnight. An empty value produces an empty list.
    """
    if not value:
        return []

    output = []
    for time_range in value.replace(" ", "").split(","):
        times = time_range.split("-")
        if len(times) != 2:
            raise _errors.ConfigurationError(
                f"Interval '{time_range}' should be of the form"
                " `09:00 - 11:00[, 21:00 - 23:00[, ...]]`."
            )
        output.append((_to_day_seconds(times[0]), _to_day_seconds(times[1])))
    return output


def to_reference_spans(start: int, end: int) -> typing.List[_spans.Timespan]:
    """
    Convert a daily range into spans of the reference day `[0, 86400)`.

    A range crossing midnight is split in two: the evening part up to the end
    of the day and the morning part of the following day, which lands at the
    beginning of the reference day as the pattern repeats every day.
    """
    if end < start:
        return [
            _spans.Timespan(start, _configs.DAY_SECONDS),
            _spans.Timespan(0, end),
        ]
    return [_spans.Timespan(start, end)]


def merge_hours(allowed_hours: "_spans.IntervalSet", value: str, direction: str):
    """
    Insert or remove the ranges of an hours string into the allowed hours.

    :param allowed_hours:
        The set being built, which is modified in place.
    :param value:
        Hours string in the `09:00 - 11:00[, ...]` format.
    :param direction:
        Either "+" to insert the ranges or "-" to remove them.
    """
    if direction not in (INSERT, REMOVE):
        raise _errors.ConfigurationError(
            f"Direction expected to be + or - but got '{direction}'."
        )

    for start, end in parse_hours(value):
        for span in to_reference_spans(start, end):
            if direction == INSERT:
                allowed_hours.insert(span.start, span.end)
            else:
                allowed_hours.remove(span.start, span.end)


def _split_instant(
    instant: datetime.datetime,
) -> typing.Tuple[datetime.datetime, int]:
    """
    Split an instant into its UTC midnight and its whole seconds into the day.

    Sub-second parts round up to the next second so that anything computed
    from the returned values never precedes the instant itself.
    """
    value = _conversions.to_utc(instant)
    midnight = value.replace(hour=0, minute=0, second=0, microsecond=0)
    delta = value - midnight
    seconds = delta.seconds + (1 if delta.microseconds else 0)
    if seconds >= _configs.DAY_SECONDS:
        return midnight + datetime.timedelta(days=1), 0
    return midnight, seconds


def _format_day_seconds(value: int) -> str:
    hours, remainder = divmod(value, 3600)
    return f"{hours:02d}:{remainder // 60:02d}"


class WindowPolicy:
    """
    Daily recurring UTC windows in which nodes are allowed to be deleted.

    The allowed hours are the whitelist minus the blacklist over a reference
    day spanning `[0, 86400)` seconds, which repeats every day. An empty
    whitelist allows the whole day. Policies are built once from configuration
    and are read-only thereafter.
    """

    def __init__(self, whitelist: str = "", blacklist: str = ""):
        self.whitelist = whitelist or ""
        self.blacklist = blacklist or ""

        allowed_hours = _spans.IntervalSet()
        merge_hours(allowed_hours, self.whitelist or WHOLE_DAY, INSERT)
        merge_hours(allowed_hours, self.blacklist, REMOVE)
        self._allowed_hours = allowed_hours

        self.allowed_seconds_per_day = allowed_hours.total_seconds(
            0, _configs.DAY_SECONDS
        )
        if self.allowed_seconds_per_day <= 0:
            raise _errors.ConfigurationError(
                f"Whitelist hours '{self.whitelist}' minus blacklist hours"
                f" '{self.blacklist}' leave no time in the day to delete nodes."
            )

    @property
    def allowed_hours(self) -> "_spans.IntervalSet":
        """Copy of the allowed spans within the reference day."""
        return self._allowed_hours.copy()

    def contains(self, instant: datetime.datetime) -> bool:
        """Determine whether the given instant falls within the allowed hours."""
        value = _conversions.to_utc(instant)
        midnight = value.replace(hour=0, minute=0, second=0, microsecond=0)
        return self._allowed_hours.contains((value - midnight).seconds)

    def expiry_from(
        self,
        creation: datetime.datetime,
        seconds_to_add: int,
    ) -> datetime.datetime:
        """
        Advance from the creation instant by the given budget of allowed seconds.

        Only seconds inside the allowed hours consume the budget; disallowed
        gaps are skipped entirely, wrapping into the following days as the
        allowed hours repeat. The returned instant is never earlier than the
        creation instant and always lies strictly inside an allowed span. A zero
        budget yields the first allowed instant at or after creation.

        :param creation:
            Instant from which to start counting.
        :param seconds_to_add:
            Number of allowed seconds to advance by.
        """
        remaining = int(seconds_to_add)
        if remaining < 0:
            raise ValueError(f"Cannot add a negative number of seconds: {remaining}.")

        midnight, projected = _split_instant(creation)

        # The first day consumes at least nothing and each following day
        # consumes exactly the allowed seconds of a day, so the budget is
        # always exhausted within this many days.
        max_days = remaining // self.allowed_seconds_per_day + 2
        for day in range(max_days):
            window_start = projected if day == 0 else 0
            spans = self._allowed_hours.spans_between(
                window_start, _configs.DAY_SECONDS
            )
            for span in spans:
                if remaining < span.duration:
                    return midnight + datetime.timedelta(
                        days=day,
                        seconds=span.start + remaining,
                    )
                remaining -= span.duration

        raise _errors.ExpiryProjectionError(
            f"Expiry for {seconds_to_add} seconds from {creation} did not resolve"
            f" within {max_days} days of allowed hours {self._allowed_hours}."
        )

    def to_dict(self) -> typing.Dict[str, typing.Any]:
        """Convert to a dictionary representation that is JSON serializable for logs."""
        return {
            "whitelist": self.whitelist,
            "blacklist": self.blacklist,
            "allowed_seconds_per_day": self.allowed_seconds_per_day,
            "allowed_hours": [
                f"{_format_day_seconds(s.start)} - {_format_day_seconds(s.end)}"
                for s in self._allowed_hours
            ],
        }
