import logging
import time
from functools import wraps
from typing import Callable, Optional

from fastapi import HTTPException, Request, Response
from starlette.status import HTTP_429_TOO_MANY_REQUESTS

from fanledger.core.config import settings
from fanledger.utils.redis_pool import get_redis

log = logging.getLogger(__name__)


async def check_rate_limit(key: str, max_requests: int, window_seconds: int) -> tuple[bool, int, int]:
    """
    Sliding-window counter backed by a Redis sorted set.

    Returns (allowed, remaining, retry_after_seconds).
    """
    r = await get_redis()
    now = time.time()

    pipe = r.pipeline()
    pipe.zremrangebyscore(key, 0, now - window_seconds)
    pipe.zadd(key, {f"{now:.6f}": now})
    pipe.zcard(key)
    pipe.expire(key, window_seconds + 1)
    results = await pipe.execute()
    count = results[2]

    if count <= max_requests:
        return True, max_requests - count, 0

    oldest = await r.zrange(key, 0, 0, withscores=True)
    retry_after = int(oldest[0][1] + window_seconds - now) + 1 if oldest else window_seconds
    return False, 0, max(1, retry_after)


def principal_key(request: Request) -> str:
    principal = getattr(request.state, "principal", None)
    if principal is not None:
        return f"{principal.role}:{principal.id}"

    client_ip = request.client.host if request.client else "unknown"
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        client_ip = forwarded.split(",")[0].strip()
    return f"ip:{client_ip}"


def rate_limit(
    max_requests: int = 10,
    window_seconds: int = 60,
    key_prefix: str = "ratelimit",
    key_func: Optional[Callable[[Request], str]] = None,
):
    """
    Endpoint decorator. The endpoint must declare a ``request: Request`` parameter.
    Redis failures let the request through.
    """
    def decorator(func: Callable):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            if not settings.RATE_LIMIT_ENABLED:
                return await func(*args, **kwargs)

            request: Optional[Request] = kwargs.get("request")
            if request is None:
                request = next((a for a in args if isinstance(a, Request)), None)
            if request is None:
                log.warning("rate_limit.no_request endpoint=%s", func.__name__)
                return await func(*args, **kwargs)

            redis_key = f"{key_prefix}:{(key_func or principal_key)(request)}"
            try:
                allowed, remaining, retry_after = await check_rate_limit(
                    redis_key, max_requests, window_seconds
                )
            except Exception as e:
                log.error("rate_limit.check_failed key=%s err=%s", redis_key, e, exc_info=True)
                return await func(*args, **kwargs)

            if not allowed:
                log.warning("rate_limit.exceeded key=%s limit=%d/%ds", redis_key, max_requests, window_seconds)
                raise HTTPException(
                    status_code=HTTP_429_TOO_MANY_REQUESTS,
                    detail={
                        "ok": False,
                        "error": "RATE_LIMITED",
                        "message": f"Too many requests. Try again in {retry_after} seconds.",
                        "retryAfter": retry_after,
                    },
                    headers={"Retry-After": str(retry_after)},
                )

            response = await func(*args, **kwargs)
            if isinstance(response, Response):
                response.headers["X-RateLimit-Limit"] = str(max_requests)
                response.headers["X-RateLimit-Remaining"] = str(remaining)
            return response

        return wrapper
    return decorator


def purchase_rate_limit(key_prefix: str):
    return rate_limit(
        max_requests=settings.RATE_LIMIT_PURCHASE_MAX,
        window_seconds=settings.RATE_LIMIT_PURCHASE_WINDOW,
        key_prefix=f"ratelimit:{key_prefix}",
    )
