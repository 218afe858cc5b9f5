import datetime
import threading
import typing

from kuber.latest import core_v1

from killer import _controller
from killer import _conversions
from killer import _types

PodPredicate = typing.Callable[[core_v1.Pod], bool]


def _get_pending_pods(
    task: "_types.DrainTask",
    exclude: typing.Optional[PodPredicate],
    namespace: typing.Optional[str],
    label_selector: typing.Optional[str],
) -> typing.List[core_v1.Pod]:
    """List pods on the node being drained that have yet to be deleted."""
    pods = _controller.list_node_pods(
        task.node_name,
        namespace=namespace,
        label_selector=label_selector,
    )
    pending = [p for p in pods if exclude is None or not exclude(p)]
    task.pending_pods = [_controller.to_pod_id(p) for p in pending]
    return pending


def _wait_for_deletion(
    configs: "_types.KillerConfigs",
    task: "_types.DrainTask",
    finished: threading.Event,
    stopped: threading.Event,
    exclude: typing.Optional[PodPredicate],
    namespace: typing.Optional[str],
    label_selector: typing.Optional[str],
):
    """
    Poll the node until no pods remain pending deletion.

    Runs in a background thread and sets the finished event once the node has
    been drained. Polling stops when the stopped event is set by the caller,
    which happens once the caller is no longer waiting on the drain.
    """
    while not stopped.is_set():
        sleep_time = _conversions.apply_jitter(configs.drain_poll_interval)
        try:
            pending = _get_pending_pods(task, exclude, namespace, label_selector)
        except Exception as error:
            configs.log(
                "drain_poll_failed",
                {
                    "node": task.node_name,
                    "error": f"{type(error).__name__}: {error}",
                    "sleep_seconds": sleep_time,
                },
            )
            stopped.wait(sleep_time)
            continue

        if not pending:
            finished.set()
            return

        if stopped.is_set():
            return

        configs.log(
            "pods_pending_deletion",
            {
                "node": task.node_name,
                "pending": len(pending),
                "sleep_seconds": sleep_time,
            },
        )
        stopped.wait(sleep_time)


def drain(
    configs: "_types.KillerConfigs",
    node_name: str,
    timeout: float,
    exclude: typing.Optional[PodPredicate] = _controller.is_daemon_set_pod,
    namespace: str = None,
    label_selector: str = None,
) -> "_types.DrainTask":
    """
    Delete the pods on a node and wait until they are gone or the timeout elapses.

    Pod deletions are best-effort: a failure to delete one pod is logged and the
    remaining pods are still deleted. A background thread then polls the node on
    a jittered interval while this call waits for either the drain to finish or
    the timeout to elapse, whichever comes first. Timeouts are reported to the
    caller and not retried here.

    :param configs:
        Current execution configuration for the preemptible killer.
    :param node_name:
        Name of the node to drain.
    :param timeout:
        Maximum number of seconds to wait for the pods to be deleted.
    :param exclude:
        Predicate identifying pods that should be left on the node. By default,
        DaemonSet pods are left alone as they ignore the unschedulable state.
    :param namespace:
        Namespace to drain. Defaults to all namespaces except the system one.
    :param label_selector:
        Optional label selector restricting which pods are drained.
    :return:
        The drain task holding the result of the wait and the pods that were
        still pending deletion when it ended.
    """
    now = datetime.datetime.now(datetime.timezone.utc)
    task = _types.DrainTask(
        node_name=node_name,
        deadline=now + datetime.timedelta(seconds=timeout),
    )

    pods = _get_pending_pods(task, exclude, namespace, label_selector)
    configs.log("draining_node", task.to_dict())

    for pod in pods:
        try:
            _controller.delete_pod(pod)
        except Exception as error:
            configs.log(
                "pod_deletion_failed",
                {
                    "node": node_name,
                    "pod": _controller.to_pod_id(pod),
                    "error": f"{type(error).__name__}: {error}",
                },
            )

    finished = threading.Event()
    stopped = threading.Event()
    waiter = threading.Thread(
        target=_wait_for_deletion,
        args=(configs, task, finished, stopped, exclude, namespace, label_selector),
        name=f"drain-{node_name}",
        daemon=True,
    )
    waiter.start()
    try:
        completed = finished.wait(timeout)
    finally:
        stopped.set()
        # A poll in flight finishes before the task is handed back.
        waiter.join(timeout=max(configs.drain_poll_interval, 1))

    if not completed:
        task.result = _types.DrainResult.TIMED_OUT
        configs.log("drain_timed_out", task.to_dict())
        return task

    task.result = _types.DrainResult.COMPLETED
    configs.log("drained_node", {"node": node_name})
    return task
