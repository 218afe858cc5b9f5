import typing

from kubernetes.client.rest import ApiException
from kuber.latest import core_v1

from killer import _configs


def to_pod_id(pod: core_v1.Pod) -> str:
    """Identify a pod by its namespace and name."""
    return f"{pod.metadata.namespace}:{pod.metadata.name}"


def is_daemon_set_pod(pod: core_v1.Pod) -> bool:
    """
    Determine if the pod is owned by a DaemonSet.

    DaemonSet pods ignore the unschedulable state of a node and would be
    recreated on it right away, so they must not block draining it.
    """
    owner_kinds = [ref.kind for ref in (pod.metadata.owner_references or [])]
    return "DaemonSet" in owner_kinds


def list_node_pods(
    node_name: str,
    namespace: str = None,
    label_selector: str = None,
) -> typing.List[core_v1.Pod]:
    """
    List the pods scheduled on the named node.

    :param node_name:
        Name of the node on which the pods are scheduled.
    :param namespace:
        Namespace in which to list pods. When not specified, pods in all
        namespaces except the system namespace are listed.
    :param label_selector:
        Optional label selector further restricting the listed pods.
    """
    api = core_v1.Pod.get_resource_api()
    options = {"label_selector": label_selector} if label_selector else {}
    if namespace is None:
        response = api.list_pod_for_all_namespaces(
            field_selector=(
                f"spec.nodeName={node_name},"
                f"metadata.namespace!={_configs.SYSTEM_NAMESPACE}"
            ),
            **options,
        )
    else:
        response = api.list_namespaced_pod(
            namespace=namespace,
            field_selector=f"spec.nodeName={node_name}",
            **options,
        )

    pods = [core_v1.Pod().from_dict(pod.to_dict()) for pod in response.items]
    return [p for p in pods if p.spec.node_name == node_name]


def delete_pod(pod: core_v1.Pod) -> bool:
    """
    Delete the pod from the cluster.

    :return:
        Whether or not the pod was deleted by this call. A pod that no longer
        exists is not an error, it was already deleted.
    """
    api = core_v1.Pod.get_resource_api()
    try:
        api.delete_namespaced_pod(
            name=pod.metadata.name,
            namespace=pod.metadata.namespace,
        )
    except ApiException as error:
        if error.status == 404:
            return False
        raise
    return True
