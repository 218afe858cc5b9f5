"""Kluster preemptible killer package."""
import argparse as _argparse
import json as _json

from killer import _runner
from killer import _types


def parse(arguments: list = None) -> dict:
    """Parse command line arguments to invoke the preemptible killer."""
    parser = _argparse.ArgumentParser(prog="preemptible-killer")
    parser.add_argument(
        "-w",
        "--whitelist-hours",
        help="UTC intervals like `09:00 - 12:00, 13:00 - 18:00` allowing deletion.",
    )
    parser.add_argument(
        "-b",
        "--blacklist-hours",
        help="UTC intervals like `09:00 - 12:00, 13:00 - 18:00` forbidding deletion.",
    )
    parser.add_argument("--drain-timeout", type=int)
    parser.add_argument("-i", "--interval", type=int)
    parser.add_argument(
        "-f",
        "--filters",
        help="Label filters like `key1: value1; key2: value2`.",
    )
    parser.add_argument("-p", "--profile", dest="aws_profile")
    parser.add_argument("--external", action="store_true")
    parser.add_argument("--live", action="store_true")
    parser.add_argument("--pretty-print", action="store_true")
    parser.add_argument("--config-path")
    return vars(parser.parse_args(arguments))


def main():
    """Execute the kluster preemptible killer."""
    try:
        return 1 if _runner.main(parse()) else 0
    except _types.ConfigurationError as error:
        print(_json.dumps({"message": "invalid_configuration", "data": str(error)}))
        return 2
