import datetime
import random
import typing

_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def to_utc(value: datetime.datetime) -> datetime.datetime:
    """Coerce a datetime into an aware UTC datetime, assuming UTC if naive."""
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value.astimezone(datetime.timezone.utc)


def to_timestamp(value: datetime.datetime) -> str:
    """
    Convert a datetime into the RFC 3339 string stored in node annotations.

    Sub-second precision is dropped, which is the resolution of the annotation.
    """
    return to_utc(value).strftime(_TIMESTAMP_FORMAT)


def from_timestamp(value: str) -> datetime.datetime:
    """
    Convert an RFC 3339 timestamp string into an aware UTC datetime.

    Both the "Z" suffix and explicit offsets like "+02:00" are accepted. A
    ValueError is raised if the value cannot be parsed.
    """
    if not value or not isinstance(value, str):
        raise ValueError(f'Invalid timestamp value of "{value}".')
    text = value.strip()
    if text[-1:] in ("Z", "z"):
        text = f"{text[:-1]}+00:00"
    return to_utc(datetime.datetime.fromisoformat(text))


def parse_label_filters(value: typing.Optional[str]) -> typing.Dict[str, str]:
    """
    Convert a label filters string into a dictionary of label keys and values.

    Expects a format of `key1: value1[; key2: value2[; ...]]`. Whitespace is
    ignored. A ValueError is raised for any pair that is not a single
    `key: value` pair.
    """
    if not value:
        return {}

    filters = {}
    for pair in value.replace(" ", "").split(";"):
        if not pair:
            continue
        key_value = pair.split(":")
        if len(key_value) != 2 or not all(key_value):
            raise ValueError(
                f"Filter '{pair}' should be of the form `label_key: label_value`."
            )
        filters[key_value[0]] = key_value[1]
    return filters


def parse_label(value: str) -> typing.Tuple[str, str]:
    """Split a `key=value` label into its key and value."""
    key, separator, label_value = value.strip().partition("=")
    if not key or not separator:
        raise ValueError(f"Label '{value}' should be of the form `key=value`.")
    return key, label_value


def to_label_selector(labels: typing.Dict[str, str]) -> str:
    """Render required labels as an equality-based Kubernetes label selector."""
    return ",".join(f"{key}={value}" for key, value in sorted(labels.items()))


def apply_jitter(value: int, rng: random.Random = None) -> int:
    """
    Randomly deviate an interval by up to 25% in either direction.

    The returned value always lies within `[0.75 * value, 1.25 * value)`.
    Values too small to deviate by at least a whole unit are returned as-is.
    """
    deviation = int(0.25 * value)
    if deviation <= 0:
        return value
    return value - deviation + (rng or random).randrange(2 * deviation)
