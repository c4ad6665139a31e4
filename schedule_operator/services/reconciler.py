"""
WorkloadSchedule Reconciler

One cycle for one schedule identity:

1. Load the schedule (missing -> nothing to do)
2. Finalizer protocol on metadata alone (may stop the cycle); then the
   spec is validated, an invalid spec ends the cycle
3. Ensure the target namespace exists          -> Ready=False/NamespaceError
4. Fetch the current time in spec.timezone     -> Synced=False/TimeAPIError
5. Evaluate the active window
6. desired = replicasWhenActive if active else 0
7. Converge the target deployment              -> Ready=False/ScaleError
8. Record the outcome in status, both conditions True
9. Re-check after the fixed requeue interval, whatever happened

Failure branches persist the failed condition before returning, and leave
the rest of the status (active flag, replica count) from the last good cycle.
"""

import logging
from typing import Optional

from kubernetes.client.rest import ApiException
from pydantic import ValidationError

from schedule_common.schemas import (
    CONDITION_READY,
    CONDITION_SYNCED,
    REASON_NAMESPACE_ERROR,
    REASON_SCALE_ERROR,
    REASON_TIME_API_ERROR,
    ObjectKey,
    ObjectMeta,
    WorkloadSchedule,
)

from .errors import (
    LifecycleError,
    NamespaceError,
    ScaleError,
    StatusUpdateError,
    TimeAPIError,
)
from .k8s_remote_client import KubeGateway, is_already_exists
from .lifecycle import LifecycleManager
from .result import ReconcileResult
from .scaling_engine import ScalingEngine
from .status_reporter import StatusReporter
from .time_client import WorldTimeClient
from .window import desired_replicas, is_within_active_window

logger = logging.getLogger(__name__)

DEFAULT_REQUEUE_INTERVAL = 60.0


class WorkloadScheduleReconciler:
    """
    Per-object convergence driver

    Assumes at most one reconcile per identity is in flight; the work queue
    provides that guarantee.
    """

    def __init__(
        self,
        gateway: KubeGateway,
        time_client: WorldTimeClient,
        requeue_interval: float = DEFAULT_REQUEUE_INTERVAL,
        lifecycle: Optional[LifecycleManager] = None,
        scaling_engine: Optional[ScalingEngine] = None,
        status_reporter: Optional[StatusReporter] = None
    ):
        """
        Initialize the reconciler

        Args:
            gateway: Kubernetes API gateway
            time_client: Source of the current time per timezone
            requeue_interval: Fixed re-check delay in seconds
            lifecycle: Finalizer manager (built from gateway if omitted)
            scaling_engine: Replica convergence (built from gateway if omitted)
            status_reporter: Status writer (built from gateway if omitted)
        """
        self.gateway = gateway
        self.time_client = time_client
        self.requeue_interval = requeue_interval
        self.lifecycle = lifecycle or LifecycleManager(gateway)
        self.scaling_engine = scaling_engine or ScalingEngine(gateway)
        self.status_reporter = status_reporter or StatusReporter(gateway)
        self.logger = logging.getLogger(f"{__name__}.WorkloadScheduleReconciler")

    async def reconcile(self, key: ObjectKey) -> ReconcileResult:
        """Run one reconcile cycle for key"""
        log_extra = {"schedule": str(key)}
        self.logger.info(f"Reconciling WorkloadSchedule {key}", extra=log_extra)

        try:
            raw = await self.gateway.get_schedule(key)
        except ApiException as e:
            self.logger.error(f"Failed to get WorkloadSchedule {key}: {e.reason}", extra=log_extra)
            return ReconcileResult(error=e)

        if raw is None:
            self.logger.info(
                f"WorkloadSchedule {key} not found. Ignoring since object must be deleted",
                extra=log_extra
            )
            return ReconcileResult()

        try:
            metadata = ObjectMeta.model_validate(raw.get("metadata") or {})
        except ValidationError as e:
            self.logger.error(f"WorkloadSchedule {key} has invalid metadata: {e}", extra=log_extra)
            return ReconcileResult()

        # The finalizer protocol must not depend on a valid spec
        try:
            stop = await self.lifecycle.handle(raw, metadata)
        except LifecycleError as e:
            self.logger.error(f"Finalizer update failed for {key}: {e.message}", extra=log_extra)
            return ReconcileResult(error=e)
        if stop is not None:
            return stop

        try:
            schedule = WorkloadSchedule.from_dict(raw)
        except ValidationError as e:
            # Retrying cannot fix a malformed spec; wait for the next edit
            self.logger.error(f"WorkloadSchedule {key} is invalid: {e}", extra=log_extra)
            return ReconcileResult()

        spec = schedule.spec

        try:
            await self.ensure_namespace(spec.target_namespace)
        except NamespaceError as e:
            self.logger.error(
                f"Failed to ensure namespace {spec.target_namespace} exists: {e.message}",
                extra=log_extra
            )
            return await self._fail(schedule, CONDITION_READY, REASON_NAMESPACE_ERROR, e)

        try:
            snapshot = await self.time_client.get_current_time(spec.timezone)
        except TimeAPIError as e:
            self.logger.error(
                f"Failed to get current time for timezone {spec.timezone}: {e.message}",
                extra=log_extra
            )
            return await self._fail(schedule, CONDITION_SYNCED, REASON_TIME_API_ERROR, e)

        active = is_within_active_window(snapshot.local_datetime, spec.start_hour, spec.end_hour)
        self.logger.info(
            f"Time check for {key}: {snapshot.local_time_string()} hour={snapshot.hour} "
            f"window=[{spec.start_hour}, {spec.end_hour}) active={active}",
            extra=log_extra
        )

        desired = desired_replicas(active, spec.replicas_when_active)

        try:
            outcome = await self.scaling_engine.scale(spec.target_namespace, spec.target_deployment, desired)
        except ScaleError as e:
            self.logger.error(f"Failed to scale deployment for {key}: {e.message}", extra=log_extra)
            return await self._fail(schedule, CONDITION_READY, REASON_SCALE_ERROR, e)

        self.status_reporter.mark_success(schedule, snapshot, active, outcome)
        try:
            await self.status_reporter.persist(schedule)
        except StatusUpdateError as e:
            self.logger.error(f"Failed to update WorkloadSchedule status for {key}: {e.message}", extra=log_extra)
            return ReconcileResult(error=e)

        self.logger.info(
            f"Successfully reconciled WorkloadSchedule {key}: {outcome.action}",
            extra={**log_extra, "replicas": outcome.replicas}
        )
        return ReconcileResult(requeue_after=self.requeue_interval)

    async def ensure_namespace(self, namespace: str):
        """
        Create namespace if it does not exist; losing a create race is fine

        Raises:
            NamespaceError: the namespace could not be read or created
        """
        try:
            if await self.gateway.get_namespace(namespace) is not None:
                return
        except ApiException as e:
            raise NamespaceError(f"failed to check namespace: {e.reason}") from e

        try:
            await self.gateway.create_namespace(namespace)
        except ApiException as e:
            if not is_already_exists(e):
                raise NamespaceError(f"failed to create namespace: {e.reason}") from e

    async def _fail(
        self,
        schedule: WorkloadSchedule,
        condition_type: str,
        reason: str,
        error: Exception
    ) -> ReconcileResult:
        """Persist a False condition and requeue after the fixed interval"""
        self.status_reporter.mark_failure(schedule, condition_type, reason, str(error))
        try:
            await self.status_reporter.persist(schedule)
        except StatusUpdateError as e:
            self.logger.error(f"Failed to update status for {schedule.key}: {e.message}")
        return ReconcileResult(requeue_after=self.requeue_interval, error=error)
