"""
WorkloadSchedule Models

Pydantic mirror of the `workloadschedules.infra.illumin.com` custom resource.
Field names are snake_case in Python and camelCase on the wire; always dump
with `by_alias=True` before sending an object back to the API server.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional, Dict, Any
from datetime import datetime, timezone

from .k8s_models import ObjectKey, ObjectMeta

# Custom resource coordinates
API_GROUP = "infra.illumin.com"
API_VERSION = "v1alpha1"
KIND = "WorkloadSchedule"
PLURAL = "workloadschedules"

FINALIZER_NAME = "workloadschedule.infra.illumin.com/finalizer"

# Artifacts injected into pods by the admission webhook
ACTIVE_LABEL = "schedule.illumin.com/active"
ACTIVE_ENV_VAR = "WORKLOAD_SCHEDULE_ACTIVE"

# Condition types
CONDITION_READY = "Ready"
CONDITION_SYNCED = "Synced"

# Condition reasons
REASON_RECONCILED = "Reconciled"
REASON_SYNCED = "Synced"
REASON_NAMESPACE_ERROR = "NamespaceError"
REASON_TIME_API_ERROR = "TimeAPIError"
REASON_SCALE_ERROR = "ScaleError"


def format_timestamp(value: datetime) -> str:
    """Render a datetime as RFC3339 the way the API server stores metav1.Time"""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


class Condition(BaseModel):
    """
    Status condition (metav1.Condition)

    status is one of "True", "False", "Unknown".
    """
    model_config = ConfigDict(populate_by_name=True)

    type: str = Field(..., description="Condition type (Ready, Synced)")
    status: str = Field(..., description="True, False or Unknown")
    reason: str = Field(..., description="Machine-readable reason")
    message: str = Field("", description="Human-readable message")
    last_transition_time: str = Field(..., alias="lastTransitionTime")
    observed_generation: Optional[int] = Field(None, alias="observedGeneration")


class WorkloadScheduleSpec(BaseModel):
    """
    Desired scaling rule

    The active window is [start_hour, end_hour). Nothing enforces
    start_hour < end_hour; such windows are simply never active.
    """
    model_config = ConfigDict(populate_by_name=True)

    timezone: str = Field(..., min_length=1, description="IANA timezone, e.g. America/Toronto")
    start_hour: int = Field(..., ge=0, le=23, alias="startHour")
    end_hour: int = Field(..., ge=0, le=24, alias="endHour")
    target_namespace: str = Field(..., min_length=1, alias="targetNamespace")
    target_deployment: str = Field(..., min_length=1, alias="targetDeployment")
    replicas_when_active: int = Field(..., ge=1, alias="replicasWhenActive")


class WorkloadScheduleStatus(BaseModel):
    """Observed state, written only by the reconciler"""
    model_config = ConfigDict(populate_by_name=True)

    current_local_time: str = Field("", alias="currentLocalTime")
    within_active_window: bool = Field(False, alias="withinActiveWindow")
    last_scale_action: str = Field("", alias="lastScaleAction")
    last_sync_time: Optional[str] = Field(None, alias="lastSyncTime")
    current_replicas: int = Field(0, alias="currentReplicas")
    conditions: List[Condition] = Field(default_factory=list)

    def get_condition(self, condition_type: str) -> Optional[Condition]:
        for condition in self.conditions:
            if condition.type == condition_type:
                return condition
        return None


class WorkloadSchedule(BaseModel):
    """WorkloadSchedule custom resource"""
    model_config = ConfigDict(populate_by_name=True)

    api_version: str = Field(f"{API_GROUP}/{API_VERSION}", alias="apiVersion")
    kind: str = Field(KIND)
    metadata: ObjectMeta
    spec: WorkloadScheduleSpec
    status: WorkloadScheduleStatus = Field(default_factory=WorkloadScheduleStatus)

    @property
    def key(self) -> ObjectKey:
        return self.metadata.key

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> "WorkloadSchedule":
        return cls.model_validate(obj)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)
