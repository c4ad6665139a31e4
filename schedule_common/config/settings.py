"""
Base Settings for the Workload Schedule Operator

Provides Pydantic settings with environment variable support.
"""

from pydantic_settings import BaseSettings as PydanticBaseSettings
from pydantic_settings import SettingsConfigDict
from pydantic import Field
from typing import Optional
from functools import lru_cache


class OperatorSettings(PydanticBaseSettings):
    """
    Settings for the controller and the admission webhook

    Every field can be overridden with a WSO_-prefixed environment variable
    (e.g. WSO_REQUEUE_INTERVAL_SECONDS=30).
    """

    # Application
    app_name: str = Field("workload-schedule-operator", description="Application name")
    app_version: str = Field("0.1.0", description="Application version")
    environment: str = Field("development", description="Environment (development, staging, production)")
    debug: bool = Field(False, description="Debug mode")

    # Admission API
    api_host: str = Field("0.0.0.0", description="Webhook server host")
    api_port: int = Field(9443, description="Webhook server port")
    tls_cert_file: Optional[str] = Field(None, description="Serving certificate (None for plain HTTP)")
    tls_key_file: Optional[str] = Field(None, description="Serving private key")

    # Kubernetes
    kubeconfig: Optional[str] = Field(None, description="Kubeconfig path (None for in-cluster config)")
    kube_context: Optional[str] = Field(None, description="Kubeconfig context")
    watch_namespace: str = Field("", description="Namespace to watch for schedules (empty for all)")

    # World Time API
    time_api_url: str = Field(
        "https://worldtimeapi.org/api/timezone",
        description="Base URL of the time query endpoint"
    )
    time_api_timeout_seconds: float = Field(10.0, description="Time query timeout (seconds)")

    # Controller
    controller_enabled: bool = Field(True, description="Run the reconcile loop next to the webhook")
    requeue_interval_seconds: float = Field(60.0, description="Fixed re-check delay after every reconcile")
    backoff_base_seconds: float = Field(1.0, description="First retry delay for propagated write failures")
    backoff_max_seconds: float = Field(300.0, description="Retry delay cap for propagated write failures")
    max_concurrent_reconciles: int = Field(2, description="Number of reconcile workers")
    watch_timeout_seconds: int = Field(300, description="Server-side timeout of one watch call")
    resync_interval_seconds: float = Field(600.0, description="Full relist interval (seconds)")

    # Logging
    log_level: str = Field("INFO", description="Logging level")
    log_format: str = Field("json", description="Log format (json, text)")
    log_file: Optional[str] = Field(None, description="Log file path (None for stdout only)")

    model_config = SettingsConfigDict(
        env_prefix="WSO_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )


@lru_cache()
def get_settings() -> OperatorSettings:
    """
    Get global settings instance (cached)

    Returns:
        OperatorSettings instance
    """
    return OperatorSettings()
