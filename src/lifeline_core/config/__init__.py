"""Configuration"""

from lifeline_core.config.settings import (
    LifelineSettings,
    LLMSettings,
    RedisSettings,
    ServiceSettings,
    WorkflowSettings,
    get_settings,
    reset_settings,
)

__all__ = [
    "LifelineSettings",
    "LLMSettings",
    "RedisSettings",
    "ServiceSettings",
    "WorkflowSettings",
    "get_settings",
    "reset_settings",
]
