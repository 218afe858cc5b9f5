from killer._types._errors import ConfigurationError  # noqa: F401
from killer._types._errors import DrainTimeoutError  # noqa: F401
from killer._types._errors import ExpiryProjectionError  # noqa: F401
from killer._types._errors import InvalidTimespanError  # noqa: F401
from killer._types._errors import KillerError  # noqa: F401
from killer._types._manager import KillerConfigs  # noqa: F401
from killer._types._nodes import DrainResult  # noqa: F401
from killer._types._nodes import DrainTask  # noqa: F401
from killer._types._nodes import NodeState  # noqa: F401
from killer._types._nodes import PreemptibleNode  # noqa: F401
from killer._types._spans import IntervalSet  # noqa: F401
from killer._types._spans import Timespan  # noqa: F401
from killer._types._windows import WindowPolicy  # noqa: F401
from killer._types._windows import parse_hours  # noqa: F401
