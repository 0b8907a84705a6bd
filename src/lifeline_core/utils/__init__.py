"""Utility Functions"""

from lifeline_core.utils.resilience import (
    service_startup_retry,
    create_custom_retry,
    call_with_retry,
)

__all__ = [
    "service_startup_retry",
    "create_custom_retry",
    "call_with_retry",
]
