"""
Scaling Engine

Converges a deployment's spec.replicas to a desired count in a single set.
Repeated calls against an unchanged deployment issue no writes.
"""

import logging

from kubernetes.client.rest import ApiException

from schedule_common.schemas import ScaleOutcome

from .errors import ScaleError
from .k8s_remote_client import KubeGateway

logger = logging.getLogger(__name__)


class ScalingEngine:
    """Idempotent replica convergence for one target deployment"""

    def __init__(self, gateway: KubeGateway):
        self.gateway = gateway

    async def scale(self, namespace: str, deployment_name: str, desired_replicas: int) -> ScaleOutcome:
        """
        Converge namespace/deployment_name to desired_replicas

        Args:
            namespace: Target namespace
            deployment_name: Target deployment
            desired_replicas: Replica count to converge to

        Returns:
            ScaleOutcome(action, replicas, changed)

        Raises:
            ScaleError: deployment missing, unreadable, or the write failed
        """
        try:
            deployment = await self.gateway.get_deployment(namespace, deployment_name)
        except ApiException as e:
            raise ScaleError("error", 0, f"failed to get deployment: {e.reason}") from e

        if deployment is None:
            raise ScaleError(
                "deployment not found", 0,
                f"deployment {namespace}/{deployment_name} not found"
            )

        current_replicas = (deployment.get("spec") or {}).get("replicas") or 0

        if current_replicas == desired_replicas:
            return ScaleOutcome(
                action=f"no change needed (replicas={desired_replicas})",
                replicas=desired_replicas,
            )

        logger.info(
            f"Scaling deployment {namespace}/{deployment_name} from {current_replicas} to {desired_replicas}",
            extra={"namespace": namespace, "deployment": deployment_name,
                   "from_replicas": current_replicas, "to_replicas": desired_replicas}
        )

        try:
            await self.gateway.scale_deployment(namespace, deployment_name, desired_replicas)
        except ApiException as e:
            raise ScaleError("scale failed", current_replicas, f"failed to scale deployment: {e.reason}") from e

        return ScaleOutcome(
            action=f"scaled from {current_replicas} to {desired_replicas}",
            replicas=desired_replicas,
            changed=True,
        )
