"""Per-request bookkeeping for the DOCNEX API.

``RequestContextMiddleware`` tags every request with an ``X-Request-ID``
(taken from the client or generated), throttles it against the client's
token buckets, times it and writes one access log line.

Two budgets apply: ``rate_limit_per_minute`` to every non-exempt path and
``ai_rate_limit_per_minute`` on top of it for ``/api/ai/``, since those
calls are billed by the model provider.
"""

import logging
import threading
import time
import uuid
from typing import Dict, Optional, Tuple

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from ..core.config import settings
from ..core.logging_config import request_id_var
from ..exceptions import ErrorCode

logger = logging.getLogger(__name__)

# client key -> (tokens left, timestamp of the last refill)
Bucket = Dict[str, Tuple[float, float]]

_rate_buckets: Bucket = {}
_ai_rate_buckets: Bucket = {}
_bucket_lock = threading.Lock()

AI_PATH_PREFIX = "/api/ai/"
UNTHROTTLED_PATHS = frozenset({"/", "/health", "/docs", "/redoc", "/openapi.json"})

STALE_AFTER_SECONDS = 120.0
SWEEP_INTERVAL = 100
_calls_since_sweep = 0


def evict_stale(bucket: Bucket, now: float, max_age: float = STALE_AFTER_SECONDS) -> int:
    """Drop clients not seen for *max_age* seconds. Returns how many went."""
    stale = [key for key, (_, seen) in bucket.items() if seen < now - max_age]
    for key in stale:
        del bucket[key]
    return len(stale)


def check_rate_limit(
    bucket: Bucket,
    key: str,
    max_per_minute: int,
    now: Optional[float] = None,
) -> Tuple[bool, float]:
    """Take one token for *key* from *bucket*.

    The bucket holds at most *max_per_minute* tokens and refills
    continuously. Returns ``(allowed, retry_after)`` where *retry_after*
    is the wait in seconds for the next token (0.0 when allowed). A limit
    of zero or less disables throttling.
    """
    global _calls_since_sweep

    if max_per_minute <= 0:
        return True, 0.0
    now = time.monotonic() if now is None else now

    _calls_since_sweep += 1
    if _calls_since_sweep >= SWEEP_INTERVAL:
        _calls_since_sweep = 0
        evict_stale(bucket, now)

    per_second = max_per_minute / 60.0
    tokens, seen = bucket.get(key, (float(max_per_minute), now))
    tokens = min(float(max_per_minute), tokens + (now - seen) * per_second)

    if tokens < 1.0:
        bucket[key] = (tokens, now)
        return False, (1.0 - tokens) / per_second
    bucket[key] = (tokens - 1.0, now)
    return True, 0.0


def client_key(request: Request) -> str:
    """First ``X-Forwarded-For`` hop, else the peer address."""
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded.strip():
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def _throttle(path: str, key: str) -> Tuple[bool, float]:
    with _bucket_lock:
        allowed, retry_after = check_rate_limit(_rate_buckets, key, settings.rate_limit_per_minute)
        if allowed and path.startswith(AI_PATH_PREFIX):
            allowed, retry_after = check_rate_limit(_ai_rate_buckets, key, settings.ai_rate_limit_per_minute)
    return allowed, retry_after


def _too_many_requests(retry_after: float, request_id: str) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={
            "error": ErrorCode.RATE_LIMITED.value,
            "message": "Too many requests",
            "details": {"retry_after": round(retry_after, 1)},
        },
        headers={"Retry-After": str(int(retry_after) + 1), "X-Request-ID": request_id},
    )


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:16]
        request_id_var.set(request_id)
        path = request.url.path

        if path not in UNTHROTTLED_PATHS:
            key = client_key(request)
            allowed, retry_after = _throttle(path, key)
            if not allowed:
                logger.warning(
                    "Rate limit exceeded",
                    extra={"client": key, "path": path, "retry_after": round(retry_after, 1)},
                )
                return _too_many_requests(retry_after, request_id)

        started = time.monotonic()
        response = await call_next(request)
        elapsed_ms = round((time.monotonic() - started) * 1000, 1)

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{elapsed_ms}ms"
        logger.info(
            "%s %s %s", request.method, path, response.status_code,
            extra={
                "method": request.method,
                "path": path,
                "status_code": response.status_code,
                "duration_ms": elapsed_ms,
            },
        )
        return response
