"""
Operator Services

Reconcile side: time_client, window, scaling_engine, lifecycle,
status_reporter, reconciler, work_queue, controller.
Admission side: schedule_index, pod_mutator.
"""

from .errors import (
    ScheduleOperatorError,
    TimeAPIError,
    NamespaceError,
    ScaleError,
    LifecycleError,
    StatusUpdateError,
)
from .result import ReconcileResult
from .window import is_within_active_window, desired_replicas

__all__ = [
    "ScheduleOperatorError",
    "TimeAPIError",
    "NamespaceError",
    "ScaleError",
    "LifecycleError",
    "StatusUpdateError",
    "ReconcileResult",
    "is_within_active_window",
    "desired_replicas",
]
