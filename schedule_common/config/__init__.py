"""
Common Configuration Utilities for the Workload Schedule Operator

Shared configuration logic for the controller and the admission webhook.
"""

from .settings import OperatorSettings, get_settings
from .logging_config import setup_logging

__all__ = [
    # Settings
    "OperatorSettings",
    "get_settings",

    # Logging
    "setup_logging",
]
