class BackendError(Exception):
    """Raised when a call to the hosted backend fails."""


class ConditionFailed(BackendError):
    """A conditional write was rejected because its condition did not hold."""
