"""
Common Schemas for the Workload Schedule Operator

This module contains all shared Pydantic models used across:
- the reconcile loop (controller)
- the admission webhook (API)
"""

from .k8s_models import (
    ObjectKey,
    ObjectMeta,
    AdmissionRequest,
    AdmissionResponse,
    AdmissionReview,
)

from .schedule_models import (
    API_GROUP,
    API_VERSION,
    KIND,
    PLURAL,
    FINALIZER_NAME,
    ACTIVE_LABEL,
    ACTIVE_ENV_VAR,
    CONDITION_READY,
    CONDITION_SYNCED,
    REASON_RECONCILED,
    REASON_SYNCED,
    REASON_NAMESPACE_ERROR,
    REASON_TIME_API_ERROR,
    REASON_SCALE_ERROR,
    Condition,
    WorkloadScheduleSpec,
    WorkloadScheduleStatus,
    WorkloadSchedule,
    format_timestamp,
)

from .responses import (
    TimeSnapshot,
    ScaleOutcome,
)

__all__ = [
    # K8s models
    "ObjectKey",
    "ObjectMeta",
    "AdmissionRequest",
    "AdmissionResponse",
    "AdmissionReview",

    # WorkloadSchedule
    "API_GROUP",
    "API_VERSION",
    "KIND",
    "PLURAL",
    "FINALIZER_NAME",
    "ACTIVE_LABEL",
    "ACTIVE_ENV_VAR",
    "CONDITION_READY",
    "CONDITION_SYNCED",
    "REASON_RECONCILED",
    "REASON_SYNCED",
    "REASON_NAMESPACE_ERROR",
    "REASON_TIME_API_ERROR",
    "REASON_SCALE_ERROR",
    "Condition",
    "WorkloadScheduleSpec",
    "WorkloadScheduleStatus",
    "WorkloadSchedule",
    "format_timestamp",

    # Responses
    "TimeSnapshot",
    "ScaleOutcome",
]
