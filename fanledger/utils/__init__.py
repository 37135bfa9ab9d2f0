"""
Shared helpers.

- auth / deps: JWT principals and FastAPI dependencies
- redis_pool / rate_limiter: Redis-backed request throttling
- dates: UTC helpers
"""

from .auth import create_access_token, create_token
from .dates import ensure_utc, utcnow
