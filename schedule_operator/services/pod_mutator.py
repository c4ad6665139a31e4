"""
Pod Mutator - admission-time schedule propagation

For a pod being created in a namespace governed by a WorkloadSchedule:
- label schedule.illumin.com/active = "true" | "false"
- upsert env WORKLOAD_SCHEDULE_ACTIVE with the same value into every
  container and init container

The value comes from the schedule's persisted status.withinActiveWindow, never
from a fresh time fetch. Mutation is best-effort: any failure leaves the pod
untouched and creation proceeds.
"""

import copy
import logging
from typing import Any, Dict, List, Optional

from schedule_common.schemas import ACTIVE_ENV_VAR, ACTIVE_LABEL

from .schedule_index import ScheduleIndex

logger = logging.getLogger(__name__)

CONTAINER_LISTS = ("containers", "initContainers")


def _escape_pointer(token: str) -> str:
    """RFC 6901 escaping for a JSON pointer segment"""
    return token.replace("~", "~0").replace("/", "~1")


class PodMutator:
    """Derives and applies the schedule label/env for new pods"""

    def __init__(self, index: ScheduleIndex):
        self.index = index
        self.metrics: Dict[str, int] = {
            "mutations_total": 0,
            "mutations_skipped_total": 0,
            "mutation_errors_total": 0,
        }

    def active_value(self, namespace: Optional[str]) -> Optional[str]:
        """
        "true"/"false" for pods in namespace, or None when nothing governs it

        Args:
            namespace: Pod namespace (may be empty during admission)
        """
        if not namespace:
            logger.info("Pod namespace is empty, skipping mutation")
            return None

        schedule = self.index.lookup(namespace)
        if schedule is None:
            logger.info(f"No WorkloadSchedule found for namespace {namespace}, skipping mutation")
            return None

        logger.info(f"Found matching WorkloadSchedule {schedule.key} for namespace {namespace}")
        return "true" if schedule.status.within_active_window else "false"

    def mutate(self, pod: Dict[str, Any], namespace: Optional[str] = None) -> Dict[str, Any]:
        """
        Return a mutated copy of pod (or pod itself when nothing applies)

        Args:
            pod: Pod manifest as sent by the API server
            namespace: Fallback namespace when metadata.namespace is unset
        """
        value = self._safe_active_value(pod, namespace)
        if value is None:
            return pod

        mutated = copy.deepcopy(pod)
        metadata = mutated.setdefault("metadata", {})
        labels = metadata.get("labels") or {}
        labels[ACTIVE_LABEL] = value
        metadata["labels"] = labels

        spec = mutated.setdefault("spec", {})
        for list_name in CONTAINER_LISTS:
            for container in spec.get(list_name) or []:
                container["env"] = self._upsert_env(container.get("env") or [], value)

        self.metrics["mutations_total"] += 1
        logger.info(
            f"Mutated Pod {metadata.get('name') or metadata.get('generateName', '')} "
            f"in {self._namespace_of(pod, namespace)}: active={value}"
        )
        return mutated

    def build_patch(self, pod: Dict[str, Any], namespace: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        RFC 6902 patch turning pod into its mutated form

        Returns an empty list when no mutation applies.
        """
        value = self._safe_active_value(pod, namespace)
        if value is None:
            return []

        patch: List[Dict[str, Any]] = []
        metadata = pod.get("metadata") or {}
        if "metadata" not in pod:
            patch.append({"op": "add", "path": "/metadata", "value": {}})
        if metadata.get("labels"):
            patch.append({
                "op": "add",
                "path": f"/metadata/labels/{_escape_pointer(ACTIVE_LABEL)}",
                "value": value,
            })
        else:
            patch.append({"op": "add", "path": "/metadata/labels", "value": {ACTIVE_LABEL: value}})

        spec = pod.get("spec") or {}
        for list_name in CONTAINER_LISTS:
            for i, container in enumerate(spec.get(list_name) or []):
                patch.append({
                    "op": "add",
                    "path": f"/spec/{list_name}/{i}/env",
                    "value": self._upsert_env(container.get("env") or [], value),
                })

        self.metrics["mutations_total"] += 1
        logger.info(
            f"Mutating Pod {metadata.get('name') or metadata.get('generateName', '')} "
            f"in {self._namespace_of(pod, namespace)}: active={value}"
        )
        return patch

    def _safe_active_value(self, pod: Dict[str, Any], namespace: Optional[str]) -> Optional[str]:
        try:
            value = self.active_value(self._namespace_of(pod, namespace))
        except Exception as e:
            # Never block pod creation
            self.metrics["mutation_errors_total"] += 1
            logger.error(f"Failed to resolve WorkloadSchedule for pod, skipping mutation: {e}", exc_info=True)
            return None
        if value is None:
            self.metrics["mutations_skipped_total"] += 1
        return value

    @staticmethod
    def _namespace_of(pod: Dict[str, Any], namespace: Optional[str]) -> Optional[str]:
        return (pod.get("metadata") or {}).get("namespace") or namespace

    @staticmethod
    def _upsert_env(env: List[Dict[str, Any]], value: str) -> List[Dict[str, Any]]:
        """Update WORKLOAD_SCHEDULE_ACTIVE in place if present by name, else append"""
        updated = [dict(entry) for entry in env]
        for entry in updated:
            if entry.get("name") == ACTIVE_ENV_VAR:
                entry.pop("valueFrom", None)
                entry["value"] = value
                return updated
        updated.append({"name": ACTIVE_ENV_VAR, "value": value})
        return updated
