"""
Lifecycle Manager - finalizer protocol

States:
    Unregistered -> Registered   finalizer added, cycle stops, fresh trigger
    Registered   -> Deleting     deletionTimestamp observed, cleanup runs
    Deleting     -> Gone         finalizer removed, object can be collected

Only metadata is read, so an object whose spec no longer validates can still
be registered and deleted. A cycle that touches the finalizer never continues
to scaling or status work.
"""

import logging
from typing import Any, Dict, Optional

from kubernetes.client.rest import ApiException

from schedule_common.schemas import FINALIZER_NAME, ObjectKey, ObjectMeta

from .errors import LifecycleError
from .k8s_remote_client import KubeGateway
from .result import ReconcileResult

logger = logging.getLogger(__name__)


class LifecycleManager:
    """Owns the WorkloadSchedule finalizer"""

    def __init__(self, gateway: KubeGateway, finalizer: str = FINALIZER_NAME):
        self.gateway = gateway
        self.finalizer = finalizer

    async def handle(self, obj: Dict[str, Any], metadata: ObjectMeta) -> Optional[ReconcileResult]:
        """
        Run the finalizer state machine for one schedule

        Args:
            obj: The schedule as read from the API server
            metadata: Its validated metadata

        Returns:
            None to continue reconciling, or the result to stop with

        Raises:
            LifecycleError: the finalizer write failed
        """
        if not metadata.is_deleting:
            if metadata.has_finalizer(self.finalizer):
                return None
            metadata.finalizers.append(self.finalizer)
            await self._persist(obj, metadata, "add")
            logger.info(f"Added finalizer to WorkloadSchedule {metadata.key}")
            return ReconcileResult(requeue=True)

        if metadata.has_finalizer(self.finalizer):
            await self.cleanup(metadata.key)
            metadata.finalizers = [f for f in metadata.finalizers if f != self.finalizer]
            await self._persist(obj, metadata, "remove")
            logger.info(f"Removed finalizer from WorkloadSchedule {metadata.key}")
        return ReconcileResult()

    async def cleanup(self, key: ObjectKey):
        """
        Release what the schedule holds before deletion

        The target deployment is left at its current replica count; scaling
        it back to a default on deletion is not implemented.
        """
        logger.info(f"Cleaning up resources for WorkloadSchedule {key}")
        logger.info("Cleanup completed")

    async def _persist(self, obj: Dict[str, Any], metadata: ObjectMeta, verb: str):
        # Only finalizers change; labels, annotations and managedFields pass through
        updated = dict(obj)
        updated["metadata"] = {**(obj.get("metadata") or {}), "finalizers": list(metadata.finalizers)}
        try:
            await self.gateway.update_schedule(updated)
        except ApiException as e:
            raise LifecycleError(f"failed to {verb} finalizer: {e.reason}") from e
