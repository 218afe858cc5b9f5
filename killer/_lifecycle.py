import datetime
import random
import typing

from killer import _configs
from killer import _controller
from killer import _conversions
from killer import _drainer
from killer import _types


def current_state(node: "_types.PreemptibleNode") -> "_types.NodeState":
    """
    Derive the expiry state of the node from its annotation.

    The annotation is the only record of the expiry. A node without one, or
    with one that cannot be parsed, is new and needs an expiry computed.
    """
    try:
        expiry = _conversions.from_timestamp(node.expiry_annotation)
    except ValueError:
        return _types.NodeState(node_name=node.name, created_at=node.created_at)

    return _types.NodeState(
        node_name=node.name,
        created_at=node.created_at,
        expiry=expiry,
        phase=_configs.ANNOTATED_STATE,
    )


def get_random_offset(
    created_at: datetime.datetime,
    now: datetime.datetime,
    drain_timeout: int,
    rng: random.Random = None,
) -> int:
    """
    Pick a random number of seconds from now after which the node should expire.

    The offset is drawn uniformly from the remaining life of the node, less the
    time needed to drain it. Whenever more than half a day of life remains,
    offsets in the first half day are pushed back by half a day, so nodes are
    killed in the second half of their lives.
    """
    deleted_by = created_at + datetime.timedelta(
        seconds=_configs.MAX_LIFETIME_SECONDS
    )
    remaining_life = max(int((deleted_by - now).total_seconds()), 0)
    latest_safe_offset = max(remaining_life - drain_timeout, 0)

    random_offset = 0
    if latest_safe_offset > 0:
        random_offset = (rng or random).randint(0, latest_safe_offset)

    if (
        remaining_life > _configs.HALF_DAY_SECONDS
        and random_offset < _configs.HALF_DAY_SECONDS
    ):
        random_offset += _configs.HALF_DAY_SECONDS

    return random_offset


def desired_expiry(
    configs: "_types.KillerConfigs",
    node: "_types.PreemptibleNode",
    now: datetime.datetime,
    rng: random.Random = None,
) -> typing.Tuple[datetime.datetime, bool]:
    """
    Compute the expiry of a node and persist it as an annotation on the node.

    A random offset is projected through the allowed hours of the window policy
    starting from now. Failing to persist the annotation is not fatal: the
    computed expiry is still used for the current decision and a new one will
    be computed on the next poll. Nothing is persisted in dry-run mode.

    :param configs:
        Current execution configuration for the preemptible killer.
    :param node:
        The node for which to compute an expiry.
    :param now:
        The instant at which the expiry is computed.
    :param rng:
        Random number generator to use instead of the module level one.
    :return:
        The expiry and whether it was persisted as an annotation, which is
        always the case in dry-run mode where no writes are expected.
    """
    now = _conversions.to_utc(now)
    offset = get_random_offset(node.created_at, now, configs.drain_timeout, rng)
    expiry = configs.window_policy.expiry_from(now, offset)
    timestamp = _conversions.to_timestamp(expiry)

    configs.log(
        "annotating_node",
        {
            "node": node.name,
            "annotation": _configs.ANNOTATION_KEY,
            "expiry": timestamp,
            "offset_seconds": offset,
            "dry_run": configs.dry_run,
        },
    )

    if configs.dry_run:
        return expiry, True

    try:
        _controller.set_node_annotation(node.name, _configs.ANNOTATION_KEY, timestamp)
    except Exception as error:
        configs.log(
            "annotation_failed",
            {"node": node.name, "error": f"{type(error).__name__}: {error}"},
        )
        return expiry, False

    return expiry, True


def should_terminate(now: datetime.datetime, expiry: datetime.datetime) -> bool:
    """Whether the node has reached its expiry."""
    return _conversions.to_utc(now) >= _conversions.to_utc(expiry)


def _cordon(configs: "_types.KillerConfigs", node: "_types.PreemptibleNode"):
    if not _controller.get_node(node.name).unschedulable:
        _controller.set_unschedulable(node.name, True)


def _drain_workloads(configs: "_types.KillerConfigs", node: "_types.PreemptibleNode"):
    task = _drainer.drain(configs, node.name, configs.drain_timeout)
    if task.timed_out:
        raise _types.DrainTimeoutError(
            node.name, configs.drain_timeout, len(task.pending_pods)
        )


def _drain_dns(configs: "_types.KillerConfigs", node: "_types.PreemptibleNode"):
    task = _drainer.drain(
        configs,
        node.name,
        configs.drain_timeout,
        exclude=None,
        namespace=_configs.SYSTEM_NAMESPACE,
        label_selector=_configs.DNS_LABEL_SELECTOR,
    )
    if task.timed_out:
        raise _types.DrainTimeoutError(
            node.name, configs.drain_timeout, len(task.pending_pods)
        )


def _delete_node(configs: "_types.KillerConfigs", node: "_types.PreemptibleNode"):
    _controller.delete_node(node.name)


def _delete_instance(configs: "_types.KillerConfigs", node: "_types.PreemptibleNode"):
    _controller.delete_instance(configs, node)


#: Termination is carried out as a strict sequence of steps, each of which is
#: safe to repeat. The phase is the state the node is in while the step runs.
TERMINATION_STEPS: typing.Tuple[typing.Tuple[str, str, typing.Callable], ...] = (
    ("cordon", _configs.EXPIRED_STATE, _cordon),
    ("drain_workloads", _configs.CORDONED_STATE, _drain_workloads),
    ("drain_dns", _configs.DRAINING_STATE, _drain_dns),
    ("delete_node", _configs.DELETING_STATE, _delete_node),
    ("delete_instance", _configs.DELETING_STATE, _delete_instance),
)


def terminate_node(
    configs: "_types.KillerConfigs",
    node: "_types.PreemptibleNode",
) -> str:
    """
    Cordon, drain and delete an expired node along with its backing instance.

    Any failing step aborts the sequence for this poll. The node is evaluated
    again on the next poll and the steps are retried from the start, which is
    safe because every step is idempotent.

    :return:
        The killed outcome if every step succeeded, otherwise the failed outcome.
    """
    for step, phase, action in TERMINATION_STEPS:
        try:
            action(configs, node)
        except Exception as error:
            configs.log(
                "termination_failed",
                {
                    "node": node.name,
                    "step": step,
                    "phase": phase,
                    "next_phase": _configs.FAILED_STATE,
                    "error": f"{type(error).__name__}: {error}",
                },
            )
            return _configs.FAILED_OUTCOME

    configs.log(
        "node_deleted",
        {
            "node": node.name,
            "instance_id": node.instance_id,
            "phase": _configs.DONE_STATE,
        },
    )
    return _configs.KILLED_OUTCOME


def process_node(
    configs: "_types.KillerConfigs",
    node: "_types.PreemptibleNode",
    now: datetime.datetime = None,
    rng: random.Random = None,
) -> str:
    """
    Decide what to do with a preemptible node during a single poll.

    New nodes get an expiry computed and annotated. A new node whose annotation
    could not be written is reported as failed, although its expiry is still
    used for this decision. Nodes that have reached their expiry are
    terminated, everything else is kept for now.

    :param configs:
        Current execution configuration for the preemptible killer.
    :param node:
        The node to process.
    :param now:
        The instant of the decision, defaulting to the current time.
    :param rng:
        Random number generator used when computing a new expiry.
    :return:
        The outcome of processing the node, one of annotated, skipped, killed
        or failed.
    """
    now = _conversions.to_utc(now or datetime.datetime.now(datetime.timezone.utc))
    state = current_state(node)
    outcome = _configs.SKIPPED_OUTCOME

    if state.is_new:
        if node.expiry_annotation:
            configs.log(
                "invalid_annotation",
                {"node": node.name, "annotation": node.expiry_annotation},
            )
        expiry, persisted = desired_expiry(configs, node, now, rng)
        outcome = (
            _configs.ANNOTATED_OUTCOME if persisted else _configs.FAILED_OUTCOME
        )
    else:
        expiry = typing.cast(datetime.datetime, state.expiry)

    seconds_to_go = int((expiry - now).total_seconds())
    if not should_terminate(now, expiry):
        configs.log(
            "keeping_node",
            {
                "node": node.name,
                "expiry": _conversions.to_timestamp(expiry),
                "minutes_to_go": round(seconds_to_go / 60),
            },
        )
        return outcome

    configs.log(
        "node_expired",
        {
            "node": node.name,
            "expiry": _conversions.to_timestamp(expiry),
            "minutes_ago": round(-seconds_to_go / 60),
            "dry_run": configs.dry_run,
        },
    )
    if configs.dry_run:
        return outcome

    return terminate_node(configs, node)
