import datetime
import typing

from kubernetes.client.rest import ApiException
from kuber.latest import core_v1

from killer import _conversions
from killer import _configs
from killer import _types


def _get_created_at(node: core_v1.Node) -> datetime.datetime:
    """Get the creation timestamp of the node as an aware UTC datetime."""
    value = node.metadata.creation_timestamp
    if isinstance(value, datetime.datetime):
        return _conversions.to_utc(value)
    return _conversions.from_timestamp(value)


def to_preemptible_node(node: core_v1.Node) -> "_types.PreemptibleNode":
    """
    Convert a kuber node object into a PreemptibleNode data structure.

    The instance ID and zone come from the provider ID of the node, which has
    the form `aws:///<zone>/<instance-id>`.
    """
    provider_id = node.spec.provider_id or ""
    parts = provider_id.rsplit("/", 2) if provider_id else []
    return _types.PreemptibleNode(
        name=node.metadata.name,
        created_at=_get_created_at(node),
        instance_id=(parts[-1] or None) if parts else None,
        zone=(parts[-2] or None) if len(parts) > 1 else None,
        expiry_annotation=(node.metadata.annotations or {}).get(
            _configs.ANNOTATION_KEY
        ),
        unschedulable=bool(node.spec.unschedulable),
        resource=node,
    )


def list_preemptible_nodes(
    configs: "_types.KillerConfigs",
) -> typing.List["_types.PreemptibleNode"]:
    """
    List the preemptible nodes in the cluster.

    Nodes are selected by the preemptible label along with any additional
    label filters that were configured.

    :param configs:
        Current execution configuration for the preemptible killer.
    """
    api = core_v1.Node.get_resource_api()
    response = api.list_node(
        label_selector=_conversions.to_label_selector(configs.node_selector)
    )
    return [
        to_preemptible_node(core_v1.Node().from_dict(node_data.to_dict()))
        for node_data in response.items
    ]


def get_node(name: str) -> "_types.PreemptibleNode":
    """Fetch the current version of the named node from the cluster."""
    api = core_v1.Node.get_resource_api()
    node_data = api.read_node(name=name)
    return to_preemptible_node(core_v1.Node().from_dict(node_data.to_dict()))


def set_node_annotation(name: str, key: str, value: str):
    """Add or replace an annotation on the named node."""
    node_patch = core_v1.Node()
    node_patch.metadata.name = name
    node_patch.metadata.annotations[key] = value
    node_patch.patch_resource()


def set_unschedulable(name: str, unschedulable: bool = True):
    """
    Cordon or uncordon the named node.

    Patching the node is idempotent, so cordoning an already cordoned node
    succeeds without changing anything.
    """
    node_patch = core_v1.Node()
    node_patch.metadata.name = name
    node_patch.spec.unschedulable = unschedulable
    node_patch.patch_resource()


def delete_node(name: str) -> bool:
    """
    Delete the named node object from the cluster.

    :return:
        Whether or not the node was deleted by this call. A node that no longer
        exists is not an error, it was already deleted.
    """
    api = core_v1.Node.get_resource_api()
    try:
        api.delete_node(name=name)
    except ApiException as error:
        if error.status == 404:
            return False
        raise
    return True
