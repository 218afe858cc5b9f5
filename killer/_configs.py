#: The expiry instant computed for a node is persisted on the node itself as
#: an annotation holding an RFC 3339 timestamp. The annotation is the only
#: state this controller owns. Everything else is re-derived from the cluster
#: on each poll, which makes every step safe to repeat after a failure.
ANNOTATION_KEY = "estafette.io/gke-preemptible-killer-state"

#: Label selecting preemptible nodes unless overridden by configuration.
PREEMPTIBLE_LABEL = "eks.amazonaws.com/capacityType=SPOT"

#: Pods selected by this label in the system namespace are cluster DNS pods
#: that are drained separately once the workload pods are gone.
DNS_LABEL_SELECTOR = "k8s-app=kube-dns"
SYSTEM_NAMESPACE = "kube-system"

DAY_SECONDS = 24 * 3600
HALF_DAY_SECONDS = 12 * 3600
#: Preemptible nodes are reclaimed by the provider within this lifetime.
MAX_LIFETIME_SECONDS = DAY_SECONDS

NEW_STATE = "new"
ANNOTATED_STATE = "annotated"
EXPIRED_STATE = "expired_pending"
CORDONED_STATE = "cordoned"
DRAINING_STATE = "draining"
DELETING_STATE = "deleting"
DONE_STATE = "done"
FAILED_STATE = "failed_retry"

ANNOTATED_OUTCOME = "annotated"
SKIPPED_OUTCOME = "skipped"
KILLED_OUTCOME = "killed"
FAILED_OUTCOME = "failed"
OUTCOMES = (ANNOTATED_OUTCOME, SKIPPED_OUTCOME, KILLED_OUTCOME, FAILED_OUTCOME)
