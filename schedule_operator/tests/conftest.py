"""
Shared fixtures for the operator tests

FakeKubeGateway stands in for the API server: it keeps schedules, namespaces
and deployments in memory, counts writes, and can be told to fail a call
with an ApiException.
"""

import asyncio
import copy
import json
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

import httpx
import pytest
from kubernetes.client.rest import ApiException

from schedule_common.schemas import FINALIZER_NAME, ObjectKey
from schedule_operator.services.time_client import WorldTimeClient

TIME_API_URL = "https://time.test/api/timezone"


def make_schedule(
    name: str = "office-hours",
    namespace: str = "default",
    start_hour: int = 9,
    end_hour: int = 17,
    target_namespace: str = "apps",
    target_deployment: str = "web",
    replicas_when_active: int = 3,
    timezone: str = "America/Toronto",
    finalizers: Optional[List[str]] = None,
    deletion_timestamp: Optional[str] = None,
    status: Optional[Dict[str, Any]] = None,
    creation_timestamp: str = "2025-01-01T00:00:00Z",
    generation: int = 1,
) -> Dict[str, Any]:
    metadata: Dict[str, Any] = {
        "name": name,
        "namespace": namespace,
        "uid": f"uid-{namespace}-{name}",
        "resourceVersion": "1",
        "generation": generation,
        "creationTimestamp": creation_timestamp,
        "finalizers": [FINALIZER_NAME] if finalizers is None else finalizers,
    }
    if deletion_timestamp:
        metadata["deletionTimestamp"] = deletion_timestamp
    obj = {
        "apiVersion": "infra.illumin.com/v1alpha1",
        "kind": "WorkloadSchedule",
        "metadata": metadata,
        "spec": {
            "timezone": timezone,
            "startHour": start_hour,
            "endHour": end_hour,
            "targetNamespace": target_namespace,
            "targetDeployment": target_deployment,
            "replicasWhenActive": replicas_when_active,
        },
    }
    if status is not None:
        obj["status"] = status
    return obj


def make_deployment(namespace: str = "apps", name: str = "web", replicas: Optional[int] = 0) -> Dict[str, Any]:
    spec: Dict[str, Any] = {"selector": {"matchLabels": {"app": name}}}
    if replicas is not None:
        spec["replicas"] = replicas
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {"name": name, "namespace": namespace},
        "spec": spec,
    }


def make_pod(namespace: Optional[str] = "apps", containers: int = 1, init_containers: int = 0,
             labels: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    metadata: Dict[str, Any] = {"generateName": "web-"}
    if namespace is not None:
        metadata["namespace"] = namespace
    if labels is not None:
        metadata["labels"] = labels
    spec: Dict[str, Any] = {
        "containers": [{"name": f"app-{i}", "image": "nginx"} for i in range(containers)],
    }
    if init_containers:
        spec["initContainers"] = [{"name": f"init-{i}", "image": "busybox"} for i in range(init_containers)]
    return {"apiVersion": "v1", "kind": "Pod", "metadata": metadata, "spec": spec}


def time_payload(hour: int, minute: int = 30, timezone: str = "America/Toronto") -> Dict[str, Any]:
    return {
        "datetime": f"2025-06-02T{hour:02d}:{minute:02d}:12.345678-04:00",
        "timezone": timezone,
        "utc_datetime": f"2025-06-02T{(hour + 4) % 24:02d}:{minute:02d}:12.345678+00:00",
        "utc_offset": "-04:00",
        "day_of_week": 1,
        "day_of_year": 153,
        "week_number": 23,
    }


class TimeAPIStub:
    """httpx transport handler answering GET {base}/{timezone}"""

    def __init__(self, hour: int = 10, status_code: int = 200, body: Optional[str] = None):
        self.hour = hour
        self.status_code = status_code
        self.body = body
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.body is not None:
            return httpx.Response(self.status_code, content=self.body.encode())
        if self.status_code != 200:
            return httpx.Response(self.status_code, json={"error": "unavailable"})
        timezone = request.url.path.split("/api/timezone/", 1)[-1]
        return httpx.Response(200, json=time_payload(self.hour, timezone=timezone))

    def client(self) -> WorldTimeClient:
        return WorldTimeClient(
            TIME_API_URL,
            client=httpx.AsyncClient(transport=httpx.MockTransport(self)),
        )


class FakeKubeGateway:
    """In-memory replacement for KubeGateway"""

    def __init__(self):
        self.schedules: Dict[ObjectKey, Dict[str, Any]] = {}
        self.namespaces: Dict[str, Dict[str, Any]] = {}
        self.deployments: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self.failures: Dict[str, ApiException] = {}
        self.calls: Dict[str, int] = {}
        self.watch_events: List[Any] = []
        self._resource_version = 1

    # Test helpers
    def add_schedule(self, obj: Dict[str, Any]) -> ObjectKey:
        key = ObjectKey(obj["metadata"]["namespace"], obj["metadata"]["name"])
        self.schedules[key] = copy.deepcopy(obj)
        return key

    def add_namespace(self, name: str):
        self.namespaces[name] = {"metadata": {"name": name}}

    def add_deployment(self, obj: Dict[str, Any]):
        self.deployments[(obj["metadata"]["namespace"], obj["metadata"]["name"])] = copy.deepcopy(obj)

    def fail(self, method: str, status: int = 500, reason: str = "Internal Server Error"):
        self.failures[method] = ApiException(status=status, reason=reason)

    def replicas(self, namespace: str = "apps", name: str = "web") -> Optional[int]:
        return self.deployments[(namespace, name)]["spec"].get("replicas")

    def count(self, method: str) -> int:
        return self.calls.get(method, 0)

    def _enter(self, method: str):
        self.calls[method] = self.calls.get(method, 0) + 1
        if method in self.failures:
            raise self.failures[method]

    def _bump(self, obj: Dict[str, Any]):
        self._resource_version += 1
        obj["metadata"]["resourceVersion"] = str(self._resource_version)

    # KubeGateway interface
    async def get_schedule(self, key: ObjectKey) -> Optional[Dict[str, Any]]:
        self._enter("get_schedule")
        obj = self.schedules.get(key)
        return copy.deepcopy(obj) if obj is not None else None

    async def list_schedules(self, namespace: str = "") -> Tuple[List[Dict[str, Any]], str]:
        self._enter("list_schedules")
        items = [copy.deepcopy(o) for k, o in self.schedules.items() if not namespace or k.namespace == namespace]
        return items, str(self._resource_version)

    async def watch_schedules(self, namespace: str = "", resource_version: Optional[str] = None,
                              timeout_seconds: int = 300) -> AsyncIterator[Dict[str, Any]]:
        self._enter("watch_schedules")
        for event in self.watch_events:
            if isinstance(event, Exception):
                raise event
            yield copy.deepcopy(event)
        # Idle stream until the consumer is cancelled
        await asyncio.Event().wait()

    async def update_schedule(self, obj: Dict[str, Any]) -> Dict[str, Any]:
        self._enter("update_schedule")
        key = ObjectKey(obj["metadata"]["namespace"], obj["metadata"]["name"])
        stored = self.schedules[key]
        stored["metadata"] = copy.deepcopy(obj["metadata"])
        stored["spec"] = copy.deepcopy(obj["spec"])
        self._bump(stored)
        if stored["metadata"].get("deletionTimestamp") and not stored["metadata"].get("finalizers"):
            del self.schedules[key]
        return copy.deepcopy(stored)

    async def update_schedule_status(self, obj: Dict[str, Any]) -> Dict[str, Any]:
        self._enter("update_schedule_status")
        key = ObjectKey(obj["metadata"]["namespace"], obj["metadata"]["name"])
        stored = self.schedules[key]
        # Round-trip through JSON like the API server does
        stored["status"] = json.loads(json.dumps(obj.get("status", {})))
        self._bump(stored)
        return copy.deepcopy(stored)

    async def get_namespace(self, name: str) -> Optional[Dict[str, Any]]:
        self._enter("get_namespace")
        return copy.deepcopy(self.namespaces.get(name))

    async def create_namespace(self, name: str) -> Dict[str, Any]:
        self._enter("create_namespace")
        if name in self.namespaces:
            raise ApiException(status=409, reason="AlreadyExists")
        self.add_namespace(name)
        return copy.deepcopy(self.namespaces[name])

    async def get_deployment(self, namespace: str, name: str) -> Optional[Dict[str, Any]]:
        self._enter("get_deployment")
        obj = self.deployments.get((namespace, name))
        return copy.deepcopy(obj) if obj is not None else None

    async def scale_deployment(self, namespace: str, deployment_name: str, replicas: int) -> bool:
        self._enter("scale_deployment")
        self.deployments[(namespace, deployment_name)]["spec"]["replicas"] = replicas
        return True

    def close(self):
        pass


@pytest.fixture
def gateway():
    """Fake API server with the target namespace and a scaled-down deployment"""
    fake = FakeKubeGateway()
    fake.add_namespace("apps")
    fake.add_deployment(make_deployment("apps", "web", replicas=0))
    return fake


@pytest.fixture
def time_api():
    """World Time API answering 10:30 local time"""
    return TimeAPIStub(hour=10)
