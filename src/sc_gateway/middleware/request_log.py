"""Request logging middleware.

Every request gets a request id: the caller's X-Request-ID when it sends a
sane one (so ids survive a hop through the edge proxy), else a fresh
"req_<12 hex>". The id goes into request.state for ApiResponse envelopes and
back out on the X-Request-ID response header.

Log format:
    INFO [POST] /api/v1/bids → 201 (23ms) req_a1b2c3d4e5f6 ip=203.0.113.9
5xx responses are logged at WARNING.
"""

import logging
import re
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from src.sc_gateway.middleware.rate_limit import client_ip

logger = logging.getLogger("sc.request")

REQUEST_ID_HEADER = "X-Request-ID"
_INBOUND_ID = re.compile(r"^[A-Za-z0-9_.-]{8,64}$")


def _request_id(request: Request) -> str:
    inbound = request.headers.get(REQUEST_ID_HEADER)
    if inbound and _INBOUND_ID.match(inbound):
        return inbound
    return f"req_{uuid.uuid4().hex[:12]}"


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = _request_id(request)
        request.state.request_id = request_id

        start = time.perf_counter()
        response: Response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        response.headers[REQUEST_ID_HEADER] = request_id

        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(
            level,
            "[%s] %s → %d (%.0fms) %s ip=%s",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            request_id,
            client_ip(request),
        )
        return response
