"""
Shared async Redis pool.

Only the purchase rate limiter talks to Redis. The pool is created lazily on
first use and closed from the application lifespan.
"""

import logging
from typing import Optional

import redis.asyncio as redis
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff
from redis.exceptions import BusyLoadingError, ConnectionError, TimeoutError

from fanledger.core.config import settings

log = logging.getLogger(__name__)

_pool: Optional[redis.ConnectionPool] = None

POOL_MAX_CONNECTIONS = 20
SOCKET_TIMEOUT = 2.0
SOCKET_CONNECT_TIMEOUT = 2.0
HEALTH_CHECK_INTERVAL = 30
RETRY_ATTEMPTS = 2

_TRANSIENT_ERRORS = (ConnectionError, TimeoutError, BusyLoadingError)


def _build_pool() -> redis.ConnectionPool:
    return redis.ConnectionPool.from_url(
        settings.REDIS_URL,
        max_connections=POOL_MAX_CONNECTIONS,
        socket_timeout=SOCKET_TIMEOUT,
        socket_connect_timeout=SOCKET_CONNECT_TIMEOUT,
        health_check_interval=HEALTH_CHECK_INTERVAL,
        decode_responses=True,
    )


async def get_redis() -> redis.Redis:
    """Client borrowing connections from the shared pool; retries transient errors."""
    global _pool
    if _pool is None:
        _pool = _build_pool()
        log.info("redis.pool.created max_connections=%d", POOL_MAX_CONNECTIONS)

    return redis.Redis(
        connection_pool=_pool,
        retry=Retry(
            retries=RETRY_ATTEMPTS,
            backoff=ExponentialBackoff(cap=0.5, base=0.1),
            supported_errors=_TRANSIENT_ERRORS,
        ),
        retry_on_error=list(_TRANSIENT_ERRORS),
    )


async def close_redis() -> None:
    global _pool
    if _pool is not None:
        await _pool.disconnect()
        _pool = None
        log.info("redis.pool.closed")
