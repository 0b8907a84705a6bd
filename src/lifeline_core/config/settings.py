"""Runtime configuration.

Settings are plain Pydantic models assembled from environment variables. A
``.env`` file in the working directory is loaded first when python-dotenv finds
one; real environment variables win over the file.

Environment Variables:
    LOG_LEVEL: Logging level (default: INFO)

    CHAT_PROVIDER: Primary LLM provider, "gemini" (default) or "openai"
    GEMINI_API_KEY / GEMINI_MODEL / GEMINI_API_BASE
    OPENAI_API_KEY / OPENAI_MODEL / OPENAI_API_BASE
    LLM_REQUEST_TIMEOUT: Provider request timeout in seconds (default: 60)
    LLM_MAX_RETRIES: Attempts per provider for transport errors (default: 3)
    STRICT_PROVIDER_MODE: "true" disables fallback providers

    REDIS_MODE / REDIS_HOST / REDIS_PORT / REDIS_DB / REDIS_PASSWORD
    REDIS_SENTINEL_HOSTS / REDIS_MASTER_SET

    LEDGER_SERVICE_URL / NOTIFICATION_SERVICE_URL / ACCESS_SERVICE_URL
    SERVICE_TIMEOUT: HTTP timeout for service clients (default: 10)

    INVESTIGATION_COST: Amount debited when a patient starts an intake (default: 500)
    ALLOW_FOLLOW_UP_OVERRIDE: "true" lets clinicians request a follow-up visit
        even after a final-diagnosis verdict (default: false)
    NOTIFICATION_TIMEOUT: Seconds to wait for a notification before dropping it (default: 5)
"""

import logging
import os
from typing import Optional

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field, SecretStr

logger = logging.getLogger(__name__)


def _bool_env(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _secret_env(name: str) -> Optional[SecretStr]:
    value = os.getenv(name)
    return SecretStr(value) if value else None


class LLMSettings(BaseModel):
    """Inference provider configuration"""

    provider: str = Field(default="gemini")
    gemini_api_key: Optional[SecretStr] = None
    gemini_model: Optional[str] = None
    gemini_base_url: Optional[str] = None
    openai_api_key: Optional[SecretStr] = None
    openai_model: Optional[str] = None
    openai_base_url: Optional[str] = None
    request_timeout: int = Field(default=60, gt=0)
    max_retries: int = Field(default=3, ge=1)
    strict_provider_mode: bool = False


class RedisSettings(BaseModel):
    mode: str = Field(default="standalone")
    host: str = Field(default="localhost")
    port: int = Field(default=6379)
    db: int = Field(default=0, ge=0)
    password: Optional[SecretStr] = None
    sentinel_hosts: Optional[str] = None
    master_set: str = Field(default="mymaster")


class ServiceSettings(BaseModel):
    """Base URLs of the external collaborator services"""

    ledger_url: str = Field(default="http://lifeline-ledger-service:8000")
    notification_url: str = Field(default="http://lifeline-notification-service:8000")
    access_url: str = Field(default="http://lifeline-access-service:8000")
    timeout: float = Field(default=10.0, gt=0)


class WorkflowSettings(BaseModel):
    investigation_cost: int = Field(default=500, ge=0)
    allow_follow_up_override: bool = False
    notification_timeout: float = Field(default=5.0, gt=0)


class LifelineSettings(BaseModel):
    """Top-level settings object"""

    log_level: str = Field(default="INFO")
    llm: LLMSettings = Field(default_factory=LLMSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    services: ServiceSettings = Field(default_factory=ServiceSettings)
    workflow: WorkflowSettings = Field(default_factory=WorkflowSettings)

    @classmethod
    def from_env(cls) -> "LifelineSettings":
        """Build settings from the process environment"""
        load_dotenv(find_dotenv(usecwd=True))

        llm = LLMSettings(
            provider=os.getenv("CHAT_PROVIDER", "gemini").strip().lower(),
            gemini_api_key=_secret_env("GEMINI_API_KEY"),
            gemini_model=os.getenv("GEMINI_MODEL"),
            gemini_base_url=os.getenv("GEMINI_API_BASE"),
            openai_api_key=_secret_env("OPENAI_API_KEY"),
            openai_model=os.getenv("OPENAI_MODEL"),
            openai_base_url=os.getenv("OPENAI_API_BASE"),
            request_timeout=int(os.getenv("LLM_REQUEST_TIMEOUT", "60")),
            max_retries=int(os.getenv("LLM_MAX_RETRIES", "3")),
            strict_provider_mode=_bool_env("STRICT_PROVIDER_MODE"),
        )

        redis = RedisSettings(
            mode=os.getenv("REDIS_MODE", "standalone").lower(),
            host=os.getenv("REDIS_HOST", "localhost"),
            port=int(os.getenv("REDIS_PORT", "6379")),
            db=int(os.getenv("REDIS_DB", "0")),
            password=_secret_env("REDIS_PASSWORD"),
            sentinel_hosts=os.getenv("REDIS_SENTINEL_HOSTS"),
            master_set=os.getenv("REDIS_MASTER_SET", "mymaster"),
        )

        services = ServiceSettings(
            ledger_url=os.getenv("LEDGER_SERVICE_URL", ServiceSettings().ledger_url),
            notification_url=os.getenv("NOTIFICATION_SERVICE_URL", ServiceSettings().notification_url),
            access_url=os.getenv("ACCESS_SERVICE_URL", ServiceSettings().access_url),
            timeout=float(os.getenv("SERVICE_TIMEOUT", "10")),
        )

        workflow = WorkflowSettings(
            investigation_cost=int(os.getenv("INVESTIGATION_COST", "500")),
            allow_follow_up_override=_bool_env("ALLOW_FOLLOW_UP_OVERRIDE"),
            notification_timeout=float(os.getenv("NOTIFICATION_TIMEOUT", "5")),
        )

        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            llm=llm,
            redis=redis,
            services=services,
            workflow=workflow,
        )


# Global settings instance
_settings: Optional[LifelineSettings] = None


def get_settings() -> LifelineSettings:
    """Get the process-wide settings, loading them on first use"""
    global _settings
    if _settings is None:
        _settings = LifelineSettings.from_env()
        logger.info(
            f"Settings loaded: provider={_settings.llm.provider}, "
            f"redis_mode={_settings.redis.mode}, "
            f"follow_up_override={_settings.workflow.allow_follow_up_override}"
        )
    return _settings


def reset_settings() -> None:
    """Reset the global settings (mainly for testing)"""
    global _settings
    _settings = None
