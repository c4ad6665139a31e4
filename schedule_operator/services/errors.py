"""
Operator exceptions

Every failure the reconciler reports through a status condition has its own
type here; Kubernetes ApiException never leaves the service layer.
"""


class ScheduleOperatorError(Exception):
    """Base class for operator failures"""
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class TimeAPIError(ScheduleOperatorError):
    """The time query endpoint failed, returned non-200 or an unparsable datetime"""


class NamespaceError(ScheduleOperatorError):
    """The target namespace could not be read or created"""


class ScaleError(ScheduleOperatorError):
    """
    The target deployment could not be read or scaled

    `replicas` is the observed count to report: 0 when the deployment could
    not be read, the pre-scale count when the write failed.
    """
    def __init__(self, action: str, replicas: int, message: str):
        self.action = action
        self.replicas = replicas
        super().__init__(message)


class LifecycleError(ScheduleOperatorError):
    """Adding or removing the finalizer failed"""


class StatusUpdateError(ScheduleOperatorError):
    """Writing the status subresource failed"""
