"""Redis connections for the key-value store and the arq dispatcher.

Both talk to the same Redis instance, so host, database and resilience
options come from one place in Settings.
"""

from __future__ import annotations

import redis.asyncio as aioredis
from arq.connections import RedisSettings

from pagewatch.main.config import Settings, get_settings


def redis_database(settings: Settings) -> int:
    return settings.redis_db if settings.redis_db is not None else 0


def redis_url(settings: Settings | None = None) -> str:
    settings = settings or get_settings()
    return f"redis://{settings.redis_host}:{settings.redis_port}/{redis_database(settings)}"


def create_connection_pool(settings: Settings | None = None) -> aioredis.ConnectionPool:
    """Connection pool for the key-value store. Responses are decoded to str."""
    settings = settings or get_settings()

    options = {
        "decode_responses": True,
        "socket_connect_timeout": settings.redis_conn_timeout,
        "retry_on_timeout": settings.redis_retry_on_timeout,
        "socket_keepalive": settings.redis_socket_keepalive,
        "health_check_interval": settings.redis_health_check_interval,
    }
    if settings.redis_max_connections is not None:
        options["max_connections"] = settings.redis_max_connections

    return aioredis.ConnectionPool.from_url(redis_url(settings), **options)


def arq_redis_settings(settings: Settings | None = None) -> RedisSettings:
    """Settings for the arq pool the dispatcher enqueues continuations on."""
    settings = settings or get_settings()
    return RedisSettings(
        host=settings.redis_host,
        port=settings.redis_port,
        database=redis_database(settings),
        conn_timeout=settings.redis_conn_timeout,
        conn_retries=settings.redis_conn_retries,
        conn_retry_delay=settings.redis_conn_retry_delay,
        retry_on_timeout=settings.redis_retry_on_timeout,
        max_connections=settings.redis_max_connections,
    )
