"""JSON error bodies shared by the routers.

Every failure body carries an ``error`` string and, where one is known, a
``detail``. Agent-backed routes classify upstream statuses through
``client_status``; the session and admin proxies relay them instead.
"""

from __future__ import annotations

from typing import Any

import httpx
from fastapi.responses import JSONResponse

from gateway.utils.errors import GatewayError, UpstreamError, parse_upstream_error

# Failures a handler turns into an error body rather than letting escape.
# ValueError covers undecodable upstream JSON.
HANDLED_FAILURES: tuple[type[Exception], ...] = (GatewayError, httpx.HTTPError, ValueError)


def error_response(
    status: int,
    error: str,
    detail: str | None = None,
    *,
    headers: dict[str, str] | None = None,
    **extra: Any,
) -> JSONResponse:
    content: dict[str, Any] = {"error": error}
    if detail is not None:
        content["detail"] = detail
    content.update(extra)
    return JSONResponse(status_code=status, content=content, headers=headers)


def describe_failure(exc: Exception) -> tuple[int, str, int | None]:
    """(client status, detail, upstream status) for a handled failure."""
    if isinstance(exc, UpstreamError):
        info = parse_upstream_error(exc.message)
        return exc.status_code, info.detail, info.status
    if isinstance(exc, GatewayError):
        return exc.status_code, exc.message, None
    return 500, str(exc) or type(exc).__name__, None


def failure_response(error: str, exc: Exception, **extra: Any) -> JSONResponse:
    status, detail, _ = describe_failure(exc)
    return error_response(status, error, detail, **extra)


def relay_upstream_error(exc: UpstreamError) -> JSONResponse:
    """Relay an upstream failure with its own status and body.

    Object bodies pass through, gaining ``error: "upstream_error"`` when they
    carry no string ``error`` of their own.
    """
    if isinstance(exc.data, dict):
        content = exc.data
        if not isinstance(content.get("error"), str):
            content = {**content, "error": "upstream_error"}
        return JSONResponse(status_code=exc.upstream_status, content=content)
    detail = parse_upstream_error(exc.message).detail
    return error_response(exc.upstream_status, "upstream_error", detail)
