"""Redis connection factory with Sentinel support.

Standalone Redis for development and self-hosted installs, Redis Sentinel for
HA deployments. Which one is used comes from RedisSettings.mode.
"""

import logging
from typing import List, Optional, Tuple

from redis.asyncio import Redis
from redis.asyncio.sentinel import Sentinel

from lifeline_core.config import RedisSettings, get_settings
from lifeline_core.utils import service_startup_retry

logger = logging.getLogger(__name__)

DEFAULT_SENTINEL_PORT = 26379


def parse_sentinel_hosts(hosts_str: str) -> List[Tuple[str, int]]:
    """Parse a comma-separated sentinel host:port string.

    Example:
        >>> parse_sentinel_hosts("sentinel1:26379,sentinel2")
        [('sentinel1', 26379), ('sentinel2', 26379)]
    """
    sentinels = []

    for host_port in hosts_str.split(","):
        host_port = host_port.strip()
        if not host_port:
            continue

        if ":" in host_port:
            host, port_str = host_port.rsplit(":", 1)
            sentinels.append((host, int(port_str)))
        else:
            sentinels.append((host_port, DEFAULT_SENTINEL_PORT))

    return sentinels


@service_startup_retry
async def _verify_redis_connection(client: Redis) -> None:
    await client.ping()
    logger.info("Redis connection verified")


async def get_redis_client(
    settings: Optional[RedisSettings] = None,
    decode_responses: bool = True,
    health_check_interval: int = 30,
) -> Redis:
    """Create a Redis client and verify it answers PING.

    Args:
        settings: Connection settings (default: process settings)
        decode_responses: Decode responses to str (default: True)
        health_check_interval: Health check interval in seconds

    Returns:
        Async Redis client, standalone or Sentinel-managed

    Raises:
        ValueError: If Sentinel mode is configured without sentinel hosts
        ConnectionError: If Redis stays unreachable after retries
    """
    settings = settings or get_settings().redis
    password = settings.password.get_secret_value() if settings.password else None

    logger.info(f"Initializing Redis client in {settings.mode} mode")

    if settings.mode == "sentinel":
        sentinels = parse_sentinel_hosts(settings.sentinel_hosts or "")
        if not sentinels:
            raise ValueError("REDIS_SENTINEL_HOSTS is required for Sentinel mode")

        logger.info(f"Connecting to Redis Sentinel: master={settings.master_set}, sentinels={sentinels}")

        sentinel_client = Sentinel(
            sentinels,
            sentinel_kwargs={"password": password} if password else {},
            socket_keepalive=True,
            health_check_interval=health_check_interval,
        )
        redis_client = sentinel_client.master_for(
            settings.master_set,
            db=settings.db,
            password=password,
            decode_responses=decode_responses,
            socket_keepalive=True,
            health_check_interval=health_check_interval,
        )
    else:
        logger.info(f"Connecting to standalone Redis: {settings.host}:{settings.port}/{settings.db}")

        redis_client = Redis(
            host=settings.host,
            port=settings.port,
            db=settings.db,
            password=password,
            decode_responses=decode_responses,
            socket_keepalive=True,
            health_check_interval=health_check_interval,
            socket_connect_timeout=5,
        )

    await _verify_redis_connection(redis_client)
    return redis_client
