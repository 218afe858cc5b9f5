from botocore.exceptions import ClientError

from killer import _types

_NOT_FOUND_CODES = ("InvalidInstanceID.NotFound",)


def delete_instance(
    configs: "_types.KillerConfigs",
    node: "_types.PreemptibleNode",
) -> bool:
    """
    Terminate the EC2 instance backing the specified node.

    Terminating an instance that is already terminated succeeds, and one that
    no longer exists is treated as already deleted.

    :param configs:
        Current execution configuration for the preemptible killer.
    :param node:
        The node whose backing instance should be terminated.
    :return:
        Whether or not a termination request was accepted for the instance.
    """
    if not node.instance_id:
        raise ValueError(f"Node {node.name} has no instance ID in its provider ID.")

    client = configs.session.client("ec2", region_name=node.region)
    try:
        client.terminate_instances(InstanceIds=[node.instance_id])
    except ClientError as error:
        if error.response.get("Error", {}).get("Code") in _NOT_FOUND_CODES:
            return False
        raise
    return True
