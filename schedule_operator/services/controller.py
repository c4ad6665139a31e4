"""
WorkloadSchedule Controller

Delivery layer around the reconciler:
- list + watch WorkloadSchedules, feeding the ScheduleIndex and the WorkQueue
- relist on resync interval and when the watch expires (410 Gone)
- a small pool of workers pulling keys and applying the requeue policy

Status-only changes (the reconciler's own writes) are indexed for the
admission path but do not trigger a reconcile; time-based re-checks come from
the fixed requeue interval.
"""

import asyncio
import logging
from contextlib import aclosing
from typing import Any, Dict, List, Optional

from kubernetes.client.rest import ApiException
from pydantic import ValidationError

from schedule_common.schemas import ObjectKey, WorkloadSchedule

from .k8s_remote_client import KubeGateway
from .reconciler import WorkloadScheduleReconciler
from .result import ReconcileResult
from .schedule_index import ScheduleIndex
from .work_queue import WorkQueue

logger = logging.getLogger(__name__)

HTTP_GONE = 410
WATCH_RETRY_SECONDS = 5.0


def object_key(obj: Dict[str, Any]) -> Optional[ObjectKey]:
    """Identity from raw metadata, without validating the rest of the object"""
    metadata = obj.get("metadata") or {}
    name = metadata.get("name")
    if not name:
        return None
    return ObjectKey(metadata.get("namespace") or "", name)


def needs_reconcile(previous: Optional[WorkloadSchedule], current: WorkloadSchedule) -> bool:
    """Spec, finalizer or deletion changes trigger a reconcile; status changes do not"""
    if previous is None:
        return True
    return (
        previous.metadata.generation != current.metadata.generation
        or previous.metadata.deletion_timestamp != current.metadata.deletion_timestamp
        or previous.metadata.finalizers != current.metadata.finalizers
    )


class ScheduleController:
    """
    Watch loop and worker pool for WorkloadSchedules

    Runs inside the webhook process's event loop; start() spawns background
    tasks and returns immediately.
    """

    def __init__(
        self,
        gateway: KubeGateway,
        reconciler: WorkloadScheduleReconciler,
        index: ScheduleIndex,
        queue: WorkQueue,
        namespace: str = "",
        workers: int = 2,
        watch_timeout_seconds: int = 300,
        resync_interval_seconds: float = 600.0
    ):
        """
        Initialize the controller

        Args:
            gateway: Kubernetes API gateway
            reconciler: Per-object reconcile logic
            index: Namespace index shared with the admission webhook
            queue: Work queue of schedule keys
            namespace: Namespace to watch ("" for all)
            workers: Number of concurrent reconcile workers
            watch_timeout_seconds: Server-side timeout of each watch call
            resync_interval_seconds: Full relist interval
        """
        self.gateway = gateway
        self.reconciler = reconciler
        self.index = index
        self.queue = queue
        self.namespace = namespace
        self.workers = workers
        self.watch_timeout_seconds = watch_timeout_seconds
        self.resync_interval_seconds = resync_interval_seconds
        self.running = False
        self._tasks: List[asyncio.Task] = []
        self.metrics: Dict[str, int] = {
            "reconciles_total": 0,
            "reconcile_errors_total": 0,
            "watch_restarts_total": 0,
        }
        logger.info(f"WorkloadSchedule controller initialized (workers: {workers})")

    async def start(self):
        self.running = True
        logger.info("Starting WorkloadSchedule controller")
        self._tasks.append(asyncio.create_task(self._watch_loop(), name="schedule-watch"))
        for i in range(self.workers):
            self._tasks.append(asyncio.create_task(self._worker(), name=f"schedule-worker-{i}"))

    async def stop(self):
        logger.info("Stopping WorkloadSchedule controller")
        self.running = False
        self.queue.shutdown()
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

    # Watch side
    async def _watch_loop(self):
        while self.running:
            try:
                resource_version = await self.resync()
                await self._watch(resource_version)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.metrics["watch_restarts_total"] += 1
                logger.error(f"WorkloadSchedule watch failed, retrying in {WATCH_RETRY_SECONDS}s: {e}")
                await asyncio.sleep(WATCH_RETRY_SECONDS)

    async def resync(self) -> str:
        """List all schedules, replace the index and enqueue every key"""
        items, resource_version = await self.gateway.list_schedules(self.namespace)
        schedules = [s for s in (self._parse(item) for item in items) if s is not None]
        self.index.replace_all(schedules)
        # Invalid objects are enqueued too so their finalizer is still handled
        keys = [k for k in (object_key(item) for item in items) if k is not None]
        for key in keys:
            self.queue.add(key)
        logger.info(
            f"Listed {len(keys)} WorkloadSchedules, {len(schedules)} valid "
            f"(resourceVersion {resource_version})"
        )
        return resource_version

    async def _watch(self, resource_version: str):
        """Follow the watch from resource_version until expiry or the resync deadline"""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.resync_interval_seconds
        while self.running and loop.time() < deadline:
            events = self.gateway.watch_schedules(self.namespace, resource_version, self.watch_timeout_seconds)
            try:
                async with aclosing(events):
                    async for event in events:
                        if event.get("type") == "ERROR":
                            status = event.get("object") or {}
                            if status.get("code") == HTTP_GONE:
                                logger.info("WorkloadSchedule watch expired, relisting")
                                return
                            raise RuntimeError(f"watch error: {status.get('message', status)}")
                        resource_version = self.handle_event(event) or resource_version
            except ApiException as e:
                if e.status == HTTP_GONE:
                    logger.info("WorkloadSchedule watch expired, relisting")
                    return
                raise

    def handle_event(self, event: Dict[str, Any]) -> Optional[str]:
        """
        Apply one watch event to the index and queue

        A schedule whose spec no longer validates leaves the index (admission
        stops using it) but is still enqueued for the finalizer protocol.

        Returns:
            The object's resourceVersion, to resume the watch from
        """
        event_type = event.get("type")
        obj = event.get("object") or {}
        key = object_key(obj)
        if key is None:
            logger.warning(f"Ignoring {event_type} event for an object without a name")
            return None

        schedule = self._parse(obj)
        if event_type == "DELETED":
            self.index.delete(key)
            self.queue.forget(key)
        elif event_type in ("ADDED", "MODIFIED"):
            if schedule is None:
                self.index.delete(key)
                self.queue.add(key)
            else:
                previous = self.index.get(key)
                self.index.upsert(schedule)
                if needs_reconcile(previous, schedule):
                    self.queue.add(key)
        return (obj.get("metadata") or {}).get("resourceVersion")

    def _parse(self, obj: Dict[str, Any]) -> Optional[WorkloadSchedule]:
        try:
            return WorkloadSchedule.from_dict(obj)
        except ValidationError as e:
            logger.warning(f"Invalid WorkloadSchedule {object_key(obj)}: {e}")
            return None

    # Worker side
    async def _worker(self):
        while True:
            key = await self.queue.get()
            if key is None:
                return
            try:
                result = await self.reconciler.reconcile(key)
            except asyncio.CancelledError:
                self.queue.done(key)
                raise
            except Exception as e:
                logger.exception(f"Unexpected error reconciling {key}: {e}")
                result = ReconcileResult(error=e)
            self.apply_result(key, result)
            self.queue.done(key)

    def apply_result(self, key: ObjectKey, result: ReconcileResult):
        """Requeue policy: fixed delay when given, backoff for bare errors"""
        self.metrics["reconciles_total"] += 1
        if result.error is not None:
            self.metrics["reconcile_errors_total"] += 1

        if result.requeue_after is not None:
            if result.error is None:
                self.queue.forget(key)
            self.queue.add_after(key, result.requeue_after)
        elif result.error is not None:
            self.queue.add_rate_limited(key)
        elif result.requeue:
            self.queue.forget(key)
            self.queue.add(key)
        else:
            self.queue.forget(key)
