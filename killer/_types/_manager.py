import dataclasses
import datetime
import json
import os
import pathlib
import typing

import boto3
import yaml

from killer import _configs
from killer import _conversions
from killer._types import _errors
from killer._types import _windows


def _or(*args: typing.Any, default: typing.Any = None) -> typing.Any:
    """
    Find the first non-None element in the args.

    If none of the values are not None, the default value will be returned instead.
    """
    return next((x for x in args if x is not None), default)


def _or_truthy(*args: typing.Any, default: typing.Any = None) -> typing.Any:
    """
    Find the first truthy element in the args.

    If none of the values are truthy, the default value will be returned instead.
    """
    return next((x for x in args if x), default)


def _to_int(value: typing.Any, name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as error:
        raise _errors.ConfigurationError(
            f'Invalid {name} value of "{value}".'
        ) from error


def _load_configs(
    args: typing.Dict[str, typing.Any],
    config_path: typing.Union[str, pathlib.Path] = None,
) -> typing.Dict[str, typing.Any]:
    """
    Load configuration data from the config path.

    Config path lookup is prioritized in the following way:
    - config_path argument specified in this function signature.
    - `--config-path` command line argument.
    - CONFIG_PATH environmental variable.
    - Default value of "/application/config/config.yaml"

    If the config file fails to load because the file is not found, a blank
    configuration will be used instead.
    """
    p = pathlib.Path(
        config_path
        or args.get("config_path")
        or os.environ.get("CONFIG_PATH")
        or "/application/config/config.yaml"
    )
    try:
        return yaml.safe_load(p.resolve().read_text()) or {}
    except FileNotFoundError:
        return {}


@dataclasses.dataclass()
class KillerConfigs:
    """Configuration data structure for preemptible killer operation."""

    whitelist_hours: str = ""
    blacklist_hours: str = ""
    drain_timeout: int = 300
    drain_poll_interval: int = 10
    interval: int = 600
    preemptible_label: str = _configs.PREEMPTIBLE_LABEL
    aws_profile: typing.Optional[str] = None
    external: bool = False
    live: bool = False
    pretty_print: bool = False
    critical_error_threshold: int = 100
    config_refresh_interval: float = 60
    session: boto3.Session = dataclasses.field(
        hash=False, default_factory=lambda: boto3.Session()
    )
    filters: typing.Dict[str, str] = dataclasses.field(
        hash=False, default_factory=lambda: {}
    )
    window_policy: "_windows.WindowPolicy" = dataclasses.field(
        hash=False, default_factory=lambda: _windows.WindowPolicy()
    )
    last_loaded_at: datetime.datetime = dataclasses.field(
        default_factory=lambda: datetime.datetime.now(datetime.timezone.utc)
    )

    @property
    def dry_run(self) -> bool:
        """
        Whether this killer is in dry-run mode.

        When running in dry-run mode, the killer will compute and echo node expiry
        and termination decisions without changing anything in the cluster.
        """
        return not self.live

    @property
    def seconds_old(self) -> int:
        """Compute number of seconds since this config was created/refreshed."""
        now = datetime.datetime.now(datetime.timezone.utc)
        return int((now - self.last_loaded_at).total_seconds())

    @property
    def node_selector(self) -> typing.Dict[str, str]:
        """Required labels of the nodes to be managed by the killer."""
        key, value = _conversions.parse_label(self.preemptible_label)
        return {key: value, **self.filters}

    def load(
        self,
        args: typing.Dict[str, typing.Any],
        config_path: typing.Union[str, pathlib.Path] = None,
    ) -> "KillerConfigs":
        """
        Populate killer config with data from arguments, environment and config file.

        Command line arguments take precedence over environment variables, which
        take precedence over the YAML config file found by `_load_configs`.
        Settings missing everywhere keep their defaults. A ConfigurationError is
        raised if the hours, filters, label or numbers are malformed.
        """
        self.last_loaded_at = datetime.datetime.now(datetime.timezone.utc)
        raw = _load_configs(args, config_path)

        self.whitelist_hours = _or(
            args.get("whitelist_hours"),
            os.environ.get("WHITELIST_HOURS"),
            raw.get("whitelist_hours"),
            default="",
        )
        self.blacklist_hours = _or(
            args.get("blacklist_hours"),
            os.environ.get("BLACKLIST_HOURS"),
            raw.get("blacklist_hours"),
            default="",
        )
        self.drain_timeout = _to_int(
            _or(
                args.get("drain_timeout"),
                os.environ.get("DRAIN_TIMEOUT"),
                raw.get("drain_timeout"),
                default=300,
            ),
            "drain_timeout",
        )
        self.interval = _to_int(
            _or(
                args.get("interval"),
                os.environ.get("INTERVAL"),
                raw.get("interval"),
                default=600,
            ),
            "interval",
        )
        self.preemptible_label = _or_truthy(
            os.environ.get("PREEMPTIBLE_LABEL"),
            raw.get("preemptible_label"),
            default=_configs.PREEMPTIBLE_LABEL,
        )
        self.drain_poll_interval = _to_int(
            _or(raw.get("drain_poll_interval"), 10), "drain_poll_interval"
        )
        self.critical_error_threshold = _or(raw.get("critical_error_threshold"), 100)
        self.config_refresh_interval = _or(raw.get("config_refresh_interval"), 60)

        self.aws_profile = _or(args.get("aws_profile"), self.aws_profile)
        self.external = _or_truthy(self.external, args.get("external"), False)
        self.live = _or_truthy(self.live, args.get("live"), False)
        self.pretty_print = _or_truthy(
            self.pretty_print, args.get("pretty_print"), False
        )

        try:
            self.filters = _conversions.parse_label_filters(
                _or(args.get("filters"), os.environ.get("FILTERS"), raw.get("filters"))
            )
            _conversions.parse_label(self.preemptible_label)
        except ValueError as error:
            raise _errors.ConfigurationError(str(error)) from error

        self.window_policy = _windows.WindowPolicy(
            whitelist=self.whitelist_hours,
            blacklist=self.blacklist_hours,
        )
        self.session = boto3.Session(profile_name=self.aws_profile)
        return self

    def log(self, message: str, data: dict):
        """Log the message and data for structured output."""
        print(
            json.dumps(
                {"message": message, "data": data},
                indent=2 if self.pretty_print else None,
                default=str,
            )
        )

    def to_dict(self) -> typing.Dict[str, typing.Any]:
        """Convert to a dictionary representation that is JSON serializable for logs."""
        return {
            "aws_profile": self.aws_profile,
            "external": self.external,
            "live": self.live,
            "drain_timeout": self.drain_timeout,
            "drain_poll_interval": self.drain_poll_interval,
            "interval": self.interval,
            "critical_error_threshold": self.critical_error_threshold,
            "config_refresh_interval": self.config_refresh_interval,
            "node_selector": self.node_selector,
            "last_loaded_at": str(self.last_loaded_at),
            "window_policy": self.window_policy.to_dict(),
        }
