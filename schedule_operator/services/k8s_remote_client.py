"""
Kubernetes API Gateway

All API server traffic of the operator goes through this class: the
WorkloadSchedule custom resource, its status subresource, namespaces and the
target deployments. The kubernetes client is synchronous, so every call runs
on a worker thread to keep the event loop free for admission requests.

Objects cross this boundary as plain dicts (API JSON shape). Reads return
None on 404; every other ApiException is logged and re-raised.
"""

import asyncio
import logging
import threading
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

from kubernetes import client as k8s_client
from kubernetes import config as k8s_config
from kubernetes import watch as k8s_watch
from kubernetes.client.rest import ApiException

from schedule_common.config import OperatorSettings
from schedule_common.schemas import API_GROUP, API_VERSION, PLURAL, ObjectKey

logger = logging.getLogger(__name__)

HTTP_NOT_FOUND = 404
HTTP_CONFLICT = 409


def is_not_found(exc: Exception) -> bool:
    return isinstance(exc, ApiException) and exc.status == HTTP_NOT_FOUND


def is_already_exists(exc: Exception) -> bool:
    return isinstance(exc, ApiException) and exc.status == HTTP_CONFLICT


def deliver(loop: asyncio.AbstractEventLoop, queue: asyncio.Queue, item: Any) -> bool:
    """
    Hand item from a worker thread to queue on loop

    Returns False once the loop is closed, e.g. the process shut down while
    the watch thread was still blocked on the stream.
    """
    if loop.is_closed():
        return False
    try:
        loop.call_soon_threadsafe(queue.put_nowait, item)
    except RuntimeError:
        # Closed between the check and the call
        return False
    return True


class KubeGateway:
    """
    Kubernetes API gateway

    Wraps CoreV1Api, AppsV1Api and CustomObjectsApi behind async methods.
    """

    def __init__(self, api_client: k8s_client.ApiClient):
        """
        Initialize the gateway

        Args:
            api_client: Configured kubernetes ApiClient
        """
        self.api_client = api_client
        self.core_v1 = k8s_client.CoreV1Api(api_client)
        self.apps_v1 = k8s_client.AppsV1Api(api_client)
        self.custom = k8s_client.CustomObjectsApi(api_client)

    @classmethod
    def from_settings(cls, settings: OperatorSettings) -> "KubeGateway":
        """Load kubeconfig (if given) or the in-cluster service account"""
        if settings.kubeconfig:
            configuration = k8s_client.Configuration()
            k8s_config.load_kube_config(
                config_file=settings.kubeconfig,
                context=settings.kube_context,
                client_configuration=configuration,
            )
            logger.info(f"Loaded kubeconfig {settings.kubeconfig}")
        else:
            configuration = k8s_client.Configuration()
            k8s_config.load_incluster_config(client_configuration=configuration)
            logger.info("Loaded in-cluster Kubernetes configuration")
        return cls(k8s_client.ApiClient(configuration))

    def _to_dict(self, obj: Any) -> Dict[str, Any]:
        """Typed client models -> API JSON dict"""
        return self.api_client.sanitize_for_serialization(obj)

    # WorkloadSchedule operations
    async def get_schedule(self, key: ObjectKey) -> Optional[Dict[str, Any]]:
        """Read one WorkloadSchedule; None if it does not exist"""
        try:
            return await asyncio.to_thread(
                self.custom.get_namespaced_custom_object,
                API_GROUP, API_VERSION, key.namespace, PLURAL, key.name
            )
        except ApiException as e:
            if is_not_found(e):
                return None
            logger.error(f"Failed to get WorkloadSchedule {key}: {e.reason}")
            raise

    async def list_schedules(self, namespace: str = "") -> Tuple[List[Dict[str, Any]], str]:
        """
        List WorkloadSchedules

        Args:
            namespace: Limit to one namespace ("" for all)

        Returns:
            (items, list resourceVersion) - the version seeds the next watch
        """
        try:
            if namespace:
                result = await asyncio.to_thread(
                    self.custom.list_namespaced_custom_object,
                    API_GROUP, API_VERSION, namespace, PLURAL
                )
            else:
                result = await asyncio.to_thread(
                    self.custom.list_cluster_custom_object,
                    API_GROUP, API_VERSION, PLURAL
                )
        except ApiException as e:
            logger.error(f"Failed to list WorkloadSchedules: {e.reason}")
            raise
        return result.get("items", []), result.get("metadata", {}).get("resourceVersion", "")

    async def watch_schedules(
        self,
        namespace: str = "",
        resource_version: str = "",
        timeout_seconds: int = 300
    ) -> AsyncIterator[Dict[str, Any]]:
        """
        Stream WorkloadSchedule watch events

        Yields raw events ({"type": ..., "object": {...}}) until the server
        closes the watch. The blocking stream is consumed on a thread and
        handed to the event loop through an asyncio.Queue.
        """
        loop = asyncio.get_running_loop()
        events: asyncio.Queue = asyncio.Queue()
        done = object()
        watcher = k8s_watch.Watch()

        if namespace:
            func, args = self.custom.list_namespaced_custom_object, (API_GROUP, API_VERSION, namespace, PLURAL)
        else:
            func, args = self.custom.list_cluster_custom_object, (API_GROUP, API_VERSION, PLURAL)

        kwargs: Dict[str, Any] = {"timeout_seconds": timeout_seconds}
        if resource_version:
            kwargs["resource_version"] = resource_version

        def pump():
            try:
                for event in watcher.stream(func, *args, **kwargs):
                    if not deliver(loop, events, event):
                        return
            except Exception as e:
                deliver(loop, events, e)
            finally:
                deliver(loop, events, done)

        thread = threading.Thread(target=pump, name="schedule-watch", daemon=True)
        thread.start()
        try:
            while True:
                item = await events.get()
                if item is done:
                    return
                if isinstance(item, Exception):
                    raise item
                yield item
        finally:
            watcher.stop()

    async def update_schedule(self, obj: Dict[str, Any]) -> Dict[str, Any]:
        """Full update of a WorkloadSchedule (metadata/spec; status is ignored by the server)"""
        metadata = obj["metadata"]
        try:
            return await asyncio.to_thread(
                self.custom.replace_namespaced_custom_object,
                API_GROUP, API_VERSION, metadata["namespace"], PLURAL, metadata["name"], obj
            )
        except ApiException as e:
            logger.error(f"Failed to update WorkloadSchedule {metadata['namespace']}/{metadata['name']}: {e.reason}")
            raise

    async def update_schedule_status(self, obj: Dict[str, Any]) -> Dict[str, Any]:
        """Write the status subresource of a WorkloadSchedule"""
        metadata = obj["metadata"]
        try:
            return await asyncio.to_thread(
                self.custom.replace_namespaced_custom_object_status,
                API_GROUP, API_VERSION, metadata["namespace"], PLURAL, metadata["name"], obj
            )
        except ApiException as e:
            logger.error(
                f"Failed to update status of WorkloadSchedule {metadata['namespace']}/{metadata['name']}: {e.reason}"
            )
            raise

    # Namespace operations
    async def get_namespace(self, name: str) -> Optional[Dict[str, Any]]:
        try:
            namespace = await asyncio.to_thread(self.core_v1.read_namespace, name)
        except ApiException as e:
            if is_not_found(e):
                return None
            logger.error(f"Failed to get namespace {name}: {e.reason}")
            raise
        return self._to_dict(namespace)

    async def create_namespace(self, name: str) -> Dict[str, Any]:
        body = k8s_client.V1Namespace(metadata=k8s_client.V1ObjectMeta(name=name))
        try:
            namespace = await asyncio.to_thread(self.core_v1.create_namespace, body)
        except ApiException as e:
            if not is_already_exists(e):
                logger.error(f"Failed to create namespace {name}: {e.reason}")
            raise
        logger.info(f"Created namespace {name}")
        return self._to_dict(namespace)

    # Deployment operations
    async def get_deployment(self, namespace: str, name: str) -> Optional[Dict[str, Any]]:
        """Read a deployment; None if it does not exist"""
        try:
            deployment = await asyncio.to_thread(self.apps_v1.read_namespaced_deployment, name, namespace)
        except ApiException as e:
            if is_not_found(e):
                return None
            logger.error(f"Failed to get deployment {namespace}/{name}: {e.reason}")
            raise
        return self._to_dict(deployment)

    async def scale_deployment(self, namespace: str, deployment_name: str, replicas: int) -> bool:
        """Set spec.replicas through the scale subresource"""
        try:
            body = {"spec": {"replicas": replicas}}
            await asyncio.to_thread(
                self.apps_v1.patch_namespaced_deployment_scale,
                name=deployment_name,
                namespace=namespace,
                body=body
            )
            logger.info(f"Scaled deployment {namespace}/{deployment_name} to {replicas} replicas")
            return True
        except ApiException as e:
            logger.error(f"Failed to scale deployment {namespace}/{deployment_name}: {e.reason}")
            raise

    def close(self):
        self.api_client.close()
