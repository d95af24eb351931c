"""Gateway error taxonomy and the upstream error-message classifier.

Upstream failures reach handlers as exceptions whose message embeds
``status NNN`` and a trailing ``body: ...`` section; the parser below recovers
both from the message text.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass

RETRYABLE_STATUSES: frozenset[int] = frozenset({409, 429, 503, 504})

_STATUS_RE = re.compile(r"status\s*[:=]?\s*(\d{3})\b")
_BODY_MARKER = "body:"


class GatewayError(Exception):
    """Base for every failure a handler converts into a JSON error body."""

    status_code: int = 500
    error: str = "gateway_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class RequestValidationFailed(GatewayError):
    status_code = 400
    error = "invalid_request"


class BackendNotConfigured(GatewayError):
    status_code = 500
    error = "backend_not_configured"


class NotFoundError(GatewayError):
    status_code = 404
    error = "not_found"


class UpstreamError(GatewayError):
    """Non-2xx response from an upstream dependency.

    The message follows the ``<operation> failed with status <NNN> body: <text>``
    shape so that ``parse_upstream_error`` can recover both halves later.
    """

    error = "upstream_error"

    def __init__(
        self,
        operation: str,
        upstream_status: int,
        body: str = "",
        data: object | None = None,
    ) -> None:
        message = f"{operation} failed with status {upstream_status}"
        if body:
            message += f" body: {body}"
        super().__init__(message)
        self.operation = operation
        self.upstream_status = upstream_status
        self.body = body
        self.data = data

    @property
    def status_code(self) -> int:  # type: ignore[override]
        return client_status(self.upstream_status)


@dataclass(frozen=True)
class UpstreamErrorInfo:
    status: int | None
    detail: str


def parse_upstream_error(message: str) -> UpstreamErrorInfo:
    """Recover the upstream status and a human-readable detail from a message.

    ``status`` followed by three digits gives the status. If a ``body:`` marker
    is present, the trimmed text after it is the body: a JSON object with a
    string ``detail`` contributes that string, anything else contributes the
    raw text. Without a marker the whole message is the detail.
    """
    match = _STATUS_RE.search(message)
    status = int(match.group(1)) if match else None

    marker = message.find(_BODY_MARKER)
    if marker == -1:
        return UpstreamErrorInfo(status=status, detail=message)

    body = message[marker + len(_BODY_MARKER) :].strip()
    detail = body
    try:
        parsed = json.loads(body)
    except ValueError:
        parsed = None
    if isinstance(parsed, dict) and isinstance(parsed.get("detail"), str):
        detail = parsed["detail"]
    return UpstreamErrorInfo(status=status, detail=detail)


def client_status(upstream_status: int | None) -> int:
    """Pass retry-worthy statuses through; collapse everything else to 500."""
    if upstream_status in RETRYABLE_STATUSES:
        return upstream_status  # type: ignore[return-value]
    return 500
