"""Renders ``DocnexException`` as the JSON error envelope."""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from ..exceptions import AIError, DocnexException

logger = logging.getLogger(__name__)


async def docnex_exception_handler(request: Request, exc: DocnexException) -> JSONResponse:
    """``{error, message, details}`` with the exception's status code.

    Server-side failures log at ERROR and client mistakes at WARNING. AI
    errors carrying a ``retry_after`` detail also set ``Retry-After``.
    """
    level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logger.log(
        level,
        "%s on %s %s", exc.error_code.value, request.method, request.url.path,
        extra={"error_code": exc.error_code.value, "status_code": exc.status_code, "details": exc.details},
    )

    headers = None
    retry_after = exc.details.get("retry_after") if isinstance(exc, AIError) else None
    if retry_after:
        headers = {"Retry-After": str(int(retry_after))}
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)
