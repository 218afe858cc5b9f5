from killer._controller._instances import delete_instance  # noqa: F401
from killer._controller._nodes import delete_node  # noqa: F401
from killer._controller._nodes import get_node  # noqa: F401
from killer._controller._nodes import list_preemptible_nodes  # noqa: F401
from killer._controller._nodes import set_node_annotation  # noqa: F401
from killer._controller._nodes import set_unschedulable  # noqa: F401
from killer._controller._nodes import to_preemptible_node  # noqa: F401
from killer._controller._pods import delete_pod  # noqa: F401
from killer._controller._pods import is_daemon_set_pod  # noqa: F401
from killer._controller._pods import list_node_pods  # noqa: F401
from killer._controller._pods import to_pod_id  # noqa: F401
