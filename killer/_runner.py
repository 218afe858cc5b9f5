import dataclasses
import datetime
import pathlib
import signal
import threading
import traceback
import typing

import kuber

from killer import _configs
from killer import _controller
from killer import _conversions
from killer import _lifecycle
from killer import _types


@dataclasses.dataclass()
class Status:
    """Data structure for cross-execution-loop status."""

    recent_error_count: int = 0
    #: Number of nodes processed for each outcome since starting up.
    outcomes: typing.Dict[str, int] = dataclasses.field(
        default_factory=lambda: {k: 0 for k in _configs.OUTCOMES}
    )
    stopping: threading.Event = dataclasses.field(
        default_factory=lambda: threading.Event()
    )

    def record(self, outcome: str):
        """Count a processed node towards its outcome."""
        self.outcomes[outcome] = self.outcomes.get(outcome, 0) + 1


def _process_nodes(
    configs: "_types.KillerConfigs",
    nodes: typing.List["_types.PreemptibleNode"],
    status: "Status",
) -> typing.Dict[str, int]:
    """
    Process each node in turn until done or a shutdown has been requested.

    Shutdown requests are only honored between nodes so that a node being
    terminated finishes its current step. Unexpected errors are logged and count
    as a failed outcome for that node without affecting the remaining nodes.
    """
    outcomes = {k: 0 for k in _configs.OUTCOMES}
    for node in nodes:
        if status.stopping.is_set():
            break

        try:
            outcome = _lifecycle.process_node(configs, node)
        except Exception as error:
            traceback.print_exc()
            configs.log(
                "node_processing_failed",
                {"node": node.name, "error": f"{type(error).__name__}: {error}"},
            )
            outcome = _configs.FAILED_OUTCOME

        outcomes[outcome] = outcomes.get(outcome, 0) + 1
        status.record(outcome)

    return outcomes


def _execute(configs: "_types.KillerConfigs", status: "Status"):
    """Execute a single poll over the preemptible nodes of the cluster."""
    # Access config must be loaded within the loop because it
    # creates temporary credentials and won't survive for an
    # extended period of time outside of the loop.
    kuber.load_access_config(in_cluster=not configs.external)

    nodes = _controller.list_preemptible_nodes(configs)
    configs.log(
        "listed_preemptible_nodes",
        {"count": len(nodes), "selector": configs.node_selector},
    )

    outcomes = _process_nodes(configs, nodes, status)
    status.recent_error_count = max(0, status.recent_error_count - 1)
    configs.log(
        "processed_nodes",
        {
            "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
            "recent_error_count": status.recent_error_count,
            "outcomes": outcomes,
            "totals": dict(status.outcomes),
        },
    )


def _refresh(
    configs: "_types.KillerConfigs",
    args: typing.Dict[str, typing.Any],
    config_path_override: typing.Union[str, pathlib.Path] = None,
) -> "_types.KillerConfigs":
    """
    Reload the configs, keeping the current ones if the new ones are invalid.

    Configuration errors are only fatal while starting up. Afterwards a broken
    config change is logged and the controller carries on as it was.
    """
    try:
        return _types.KillerConfigs().load(args, config_path_override)
    except _types.ConfigurationError as error:
        configs.log("config_refresh_failed", {"error": str(error)})
        configs.last_loaded_at = datetime.datetime.now(datetime.timezone.utc)
        return configs


def _handle_signals(status: "Status"):
    """Request a graceful stop of the poll loop on SIGTERM and SIGINT."""

    def handler(signum, frame):
        status.stopping.set()

    if threading.current_thread() is not threading.main_thread():
        return

    signal.signal(signal.SIGTERM, handler)
    signal.signal(signal.SIGINT, handler)


def main(
    args: typing.Dict[str, typing.Any],
    config_path_override: typing.Union[str, pathlib.Path] = None,
    status: "Status" = None,
) -> int:
    """
    Iterate a loop that kills preemptible nodes as they reach their expiry.

    Each iteration lists the preemptible nodes in the cluster and processes
    them one after another, annotating new nodes with an expiry and
    terminating expired ones. Iterations are separated by a jittered sleep.
    The loop ends when a shutdown is requested or too many errors have
    happened recently.

    :param args:
        Arguments parsed from the command line. These arguments will take precedence
        over arguments specified by other means during execution.
    :param config_path_override:
        An override for the config path that is only used during non-normal execution
        calls. Most commonly this will be for testing purposes, but alternative calling
        implementations of this code could utilize this as well.
    :param status:
        Loop status to use, which allows callers to request a stop.
    :return:
        The number of recent errors when the loop ended.
    """
    configs = _types.KillerConfigs().load(args, config_path_override)
    configs.log("starting", configs.to_dict())

    status = status or Status()
    _handle_signals(status)

    while (
        not status.stopping.is_set()
        and status.recent_error_count < configs.critical_error_threshold
    ):
        if configs.seconds_old > configs.config_refresh_interval:
            # Refresh the configs every so often to ensure any configuration
            # changes will be applied to future iterations. This allows the
            # configuration specified via a ConfigMap object to be updated and
            # apply to this running instance.
            configs = _refresh(configs, args, config_path_override)

        try:
            _execute(configs, status)
        except Exception as error:
            # Catch errors, print them and then begin the loop again.
            # There are a lot of reasons for transient errors here that
            # are not critical failures. However, the accumulation of
            # lots of errors in a row become critical and logging should
            # raise that concern.
            traceback.print_exc()
            print(f"{type(error)}: {error}")
            status.recent_error_count += 1

        sleep_time = _conversions.apply_jitter(configs.interval)
        configs.log("sleeping", {"seconds": sleep_time})
        status.stopping.wait(sleep_time)

    configs.log(
        "stopping",
        {
            "recent_error_count": status.recent_error_count,
            "totals": dict(status.outcomes),
        },
    )
    return status.recent_error_count
