"""Mission Control exceptions.

Store and service primitives raise these; fan-out helpers and producer
triggers catch ``MissionControlError`` and turn it into result values.
"""


class MissionControlError(Exception):
    """Base class for Mission Control errors."""


class NotFoundError(MissionControlError):
    """A referenced record does not exist."""

    def __init__(self, kind: str, record_id: str):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind.capitalize()} not found: {record_id}")


class StoreError(MissionControlError):
    """The persistence layer failed (I/O, corrupt data)."""


class DeliveryError(MissionControlError):
    """A sink send failed where the caller cannot leave it queued."""


class StartupError(MissionControlError):
    """A process could not build its dependencies."""
