"""Rate limiting middleware — Redis fixed-window counter per client IP.

Rules (requests per minute per IP):
  - POST /api/v1/bids           -> RATE_LIMIT_BIDS_PER_MINUTE   ("bids")
  - POST /api/v1/wallet/top-up  -> RATE_LIMIT_WALLET_PER_MINUTE ("wallet")
Everything else is unlimited.

Key pattern: "ratelimit:{ip}:{group}:{window}". INCR then EXPIRE on the first
hit of a window. Redis errors fail open: the request proceeds and a warning
is logged.
"""

import logging
import time
from collections.abc import Awaitable, Callable

import redis.asyncio as aioredis
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from config.settings import settings
from src.sc_common.errors import RateLimitError
from src.sc_common.redis_client import get_redis
from src.sc_common.response import error_response

logger = logging.getLogger(__name__)

_WINDOW_SECONDS = 60

# (method, path) -> (group, limit)
_RULES: dict[tuple[str, str], tuple[str, int]] = {
    ("POST", "/api/v1/bids"): ("bids", settings.RATE_LIMIT_BIDS_PER_MINUTE),
    ("POST", "/api/v1/wallet/top-up"): ("wallet", settings.RATE_LIMIT_WALLET_PER_MINUTE),
}


def client_ip(request: Request) -> str:
    """First X-Forwarded-For hop when behind a proxy, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app: ASGIApp,
        redis_getter: Callable[[], Awaitable[aioredis.Redis]] = get_redis,
        rules: dict[tuple[str, str], tuple[str, int]] | None = None,
    ) -> None:
        super().__init__(app)
        self._redis_getter = redis_getter
        self._rules = rules if rules is not None else _RULES

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        rule = self._rules.get((request.method, request.url.path.rstrip("/")))
        if rule is None:
            return await call_next(request)

        group, limit = rule
        window = int(time.time()) // _WINDOW_SECONDS
        key = f"ratelimit:{client_ip(request)}:{group}:{window}"
        try:
            redis = await self._redis_getter()
            count = await redis.incr(key)
            if count == 1:
                await redis.expire(key, _WINDOW_SECONDS)
        except Exception as exc:
            logger.warning("Rate limiter unavailable, allowing request: %s", exc)
            return await call_next(request)

        if count > limit:
            err = RateLimitError()
            retry_after = _WINDOW_SECONDS - int(time.time()) % _WINDOW_SECONDS
            logger.info("Rate limited: group=%s key=%s count=%d", group, key, count)
            return JSONResponse(
                status_code=err.http_status,
                content=error_response(err.code, err.message).model_dump(),
                headers={"Retry-After": str(retry_after)},
            )
        return await call_next(request)
