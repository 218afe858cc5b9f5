import dataclasses
import datetime
import enum
import typing

from kuber.latest import core_v1

from killer import _configs


@dataclasses.dataclass(frozen=True)
class PreemptibleNode:
    """
    Data structure that describes a preemptible node within the cluster.

    The expiry annotation is carried in its raw string form as it was read from
    the cluster. It is parsed when the node state is evaluated.
    """

    name: str
    created_at: datetime.datetime
    #: EC2 instance identifier taken from the node provider ID.
    instance_id: typing.Optional[str] = None
    #: Availability zone taken from the node provider ID.
    zone: typing.Optional[str] = None
    expiry_annotation: typing.Optional[str] = None
    unschedulable: bool = False
    resource: typing.Optional[core_v1.Node] = dataclasses.field(
        default=None, hash=False, repr=False, compare=False
    )

    @property
    def region(self) -> typing.Optional[str]:
        """AWS region derived from the availability zone of the node."""
        if not self.zone:
            return None
        return self.zone.rstrip("abcdefghijklmnopqrstuvwxyz") or None


@dataclasses.dataclass(frozen=True)
class NodeState:
    """Expiry state of a node as derived from its annotation."""

    node_name: str
    created_at: datetime.datetime
    expiry: typing.Optional[datetime.datetime] = None
    phase: str = _configs.NEW_STATE

    @property
    def is_new(self) -> bool:
        """Whether an expiry still has to be computed for the node."""
        return self.expiry is None


class DrainResult(enum.Enum):
    """Tagged result of a bounded drain wait."""

    COMPLETED = "completed"
    TIMED_OUT = "timed_out"


@dataclasses.dataclass()
class DrainTask:
    """Bookkeeping for a single drain of a node, never persisted."""

    node_name: str
    deadline: datetime.datetime
    pending_pods: typing.List[str] = dataclasses.field(default_factory=lambda: [])
    #: Set once the drain has finished waiting.
    result: typing.Optional[DrainResult] = None

    @property
    def timed_out(self) -> bool:
        """Whether pods were still pending deletion when the wait ended."""
        return self.result == DrainResult.TIMED_OUT

    @property
    def seconds_left(self) -> float:
        """Number of seconds remaining until the deadline."""
        now = datetime.datetime.now(datetime.timezone.utc)
        return max(0.0, (self.deadline - now).total_seconds())

    def to_dict(self) -> typing.Dict[str, typing.Any]:
        """Convert to a dictionary representation that is JSON serializable for logs."""
        return {
            "node": self.node_name,
            "deadline": self.deadline.isoformat(),
            "pending_pods": list(self.pending_pods),
            "result": self.result.value if self.result else None,
        }
