class KillerError(Exception):
    """Base class for errors raised by the preemptible killer."""


class ConfigurationError(KillerError, ValueError):
    """
    Raised when the configuration cannot produce a usable controller.

    This covers malformed whitelist/blacklist hours, malformed label filters
    and window policies that leave no allowed time in the day. These are only
    fatal when raised while starting up.
    """


class InvalidTimespanError(KillerError, ValueError):
    """Raised when a timespan ends before it starts."""


class ExpiryProjectionError(KillerError, RuntimeError):
    """
    Raised when an expiry projection fails to converge within its bound.

    The bound is derived from the allowed seconds per day, so reaching it
    means the window policy or the projection is broken and the computed
    timestamp could not be trusted.
    """


class DrainTimeoutError(KillerError, RuntimeError):
    """Raised when pods are still pending deletion after the drain timeout."""

    def __init__(self, node_name: str, timeout: int, pending: int = 0):
        super().__init__(
            f"Draining node {node_name} timed out after {timeout} seconds"
            f" with {pending} pod(s) pending deletion."
        )
        self.node_name = node_name
        self.timeout = timeout
        self.pending = pending
