"""
Status Reporter

Merges reconcile outcomes into WorkloadSchedule.status and persists it
through the status subresource. Conditions are keyed by type: setting a
condition replaces the entry of that type, and lastTransitionTime only moves
when the status value changes.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from kubernetes.client.rest import ApiException

from schedule_common.schemas import (
    CONDITION_READY,
    CONDITION_SYNCED,
    REASON_RECONCILED,
    REASON_SYNCED,
    Condition,
    ScaleOutcome,
    TimeSnapshot,
    WorkloadSchedule,
    WorkloadScheduleStatus,
    format_timestamp,
)

from .errors import StatusUpdateError
from .k8s_remote_client import KubeGateway

logger = logging.getLogger(__name__)

STATUS_TRUE = "True"
STATUS_FALSE = "False"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def set_condition(
    status: WorkloadScheduleStatus,
    condition_type: str,
    condition_status: str,
    reason: str,
    message: str,
    now: datetime,
    observed_generation: Optional[int] = None
) -> Condition:
    """Insert or update the condition of condition_type"""
    existing = status.get_condition(condition_type)
    if existing is None:
        condition = Condition(
            type=condition_type,
            status=condition_status,
            reason=reason,
            message=message,
            last_transition_time=format_timestamp(now),
            observed_generation=observed_generation,
        )
        status.conditions.append(condition)
        return condition

    if existing.status != condition_status:
        existing.status = condition_status
        existing.last_transition_time = format_timestamp(now)
    existing.reason = reason
    existing.message = message
    existing.observed_generation = observed_generation
    return existing


class StatusReporter:
    """Writes WorkloadSchedule.status"""

    def __init__(self, gateway: KubeGateway, clock: Callable[[], datetime] = _utcnow):
        self.gateway = gateway
        self.clock = clock

    def mark_failure(self, schedule: WorkloadSchedule, condition_type: str, reason: str, message: str):
        """Set one condition to False; every other status field is left as it was"""
        set_condition(
            schedule.status, condition_type, STATUS_FALSE, reason, message,
            self.clock(), schedule.metadata.generation
        )

    def mark_success(
        self,
        schedule: WorkloadSchedule,
        snapshot: TimeSnapshot,
        active: bool,
        outcome: ScaleOutcome
    ):
        """Record a fully successful cycle"""
        now = self.clock()
        status = schedule.status
        status.current_local_time = snapshot.local_time_string()
        status.within_active_window = active
        status.last_scale_action = outcome.action
        status.last_sync_time = format_timestamp(now)
        status.current_replicas = outcome.replicas

        generation = schedule.metadata.generation
        set_condition(status, CONDITION_READY, STATUS_TRUE, REASON_RECONCILED,
                      "Successfully reconciled", now, generation)
        set_condition(status, CONDITION_SYNCED, STATUS_TRUE, REASON_SYNCED,
                      "Successfully synced with World Time API", now, generation)

    async def persist(self, schedule: WorkloadSchedule) -> WorkloadSchedule:
        """
        Write the status subresource

        Raises:
            StatusUpdateError: the write failed (e.g. resourceVersion conflict)
        """
        try:
            updated = await self.gateway.update_schedule_status(schedule.to_dict())
        except ApiException as e:
            raise StatusUpdateError(f"failed to update status: {e.reason}") from e
        return WorkloadSchedule.from_dict(updated) if updated else schedule
