"""
Schedule Index - targetNamespace -> WorkloadSchedule

Holds the schedules exactly as the API server last reported them through the
watch stream, so the admission path reads persisted status without listing
every schedule per pod. The watch loop is the only writer; stored objects are
replaced, never modified in place, and readers must treat them as read-only.

When several schedules target the same namespace the governing one is chosen
deterministically: oldest creationTimestamp, then namespace/name.
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from schedule_common.schemas import ObjectKey, WorkloadSchedule

logger = logging.getLogger(__name__)


def _priority(schedule: WorkloadSchedule) -> Tuple[bool, str, str, str]:
    created = schedule.metadata.creation_timestamp
    return (created is None, created or "", schedule.metadata.namespace or "", schedule.metadata.name)


class ScheduleIndex:
    """Namespace-keyed view of the persisted WorkloadSchedules"""

    def __init__(self):
        self._by_key: Dict[ObjectKey, WorkloadSchedule] = {}
        self._by_namespace: Dict[str, List[ObjectKey]] = {}
        self.synced = False

    def __len__(self) -> int:
        return len(self._by_key)

    def lookup(self, namespace: str) -> Optional[WorkloadSchedule]:
        """Governing schedule for pods in namespace, or None"""
        keys = self._by_namespace.get(namespace)
        if not keys:
            return None
        return self._by_key.get(keys[0])

    def get(self, key: ObjectKey) -> Optional[WorkloadSchedule]:
        return self._by_key.get(key)

    def upsert(self, schedule: WorkloadSchedule):
        key = schedule.key
        previous = self._by_key.get(key)
        self._by_key[key] = schedule
        if previous is not None and previous.spec.target_namespace != schedule.spec.target_namespace:
            self._rebuild_namespace(previous.spec.target_namespace)
        self._rebuild_namespace(schedule.spec.target_namespace)

    def delete(self, key: ObjectKey):
        previous = self._by_key.pop(key, None)
        if previous is not None:
            self._rebuild_namespace(previous.spec.target_namespace)

    def replace_all(self, schedules: Iterable[WorkloadSchedule]):
        """Swap in the result of a full list"""
        by_key = {schedule.key: schedule for schedule in schedules}
        namespaces = {s.spec.target_namespace for s in by_key.values()}
        self._by_key = by_key
        self._by_namespace = {}
        for namespace in namespaces:
            self._rebuild_namespace(namespace)
        self.synced = True

    def _rebuild_namespace(self, namespace: str):
        candidates = sorted(
            (s for s in self._by_key.values() if s.spec.target_namespace == namespace),
            key=_priority
        )
        if not candidates:
            self._by_namespace.pop(namespace, None)
            return
        if len(candidates) > 1:
            logger.warning(
                f"{len(candidates)} WorkloadSchedules target namespace {namespace}; "
                f"{candidates[0].key} governs admission",
                extra={"target_namespace": namespace, "schedules": [str(s.key) for s in candidates]}
            )
        self._by_namespace[namespace] = [s.key for s in candidates]
