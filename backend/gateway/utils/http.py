"""Header and cookie plumbing for the session-cookie proxies.

Inbound browser headers are forwarded to an upstream origin minus the
connection-management ones, with ``accept-encoding`` pinned to ``identity`` so
the body can be relayed without decompressing. On the way back every
``Set-Cookie`` value is replayed as its own header; the body is re-emitted
through a different transport, so encoding/length headers are dropped.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from typing import TYPE_CHECKING

import structlog
from fastapi import Request, Response

if TYPE_CHECKING:
    import httpx

logger = structlog.get_logger()

_DROP_REQUEST_HEADERS = frozenset({"host", "connection", "content-length", "accept-encoding"})
_DROP_RESPONSE_HEADERS = frozenset(
    {"set-cookie", "content-encoding", "content-length", "transfer-encoding", "connection"}
)
_BODYLESS_METHODS = frozenset({"GET", "HEAD"})

# A comma only separates cookies when a `name=` token follows it; the comma in
# `Expires=Wed, 21 Oct 2015 07:28:00 GMT` is followed by a digit and a space.
_COOKIE_SEPARATOR_RE = re.compile(r",(?=\s*[^;,=\s]+=)")


def build_upstream_headers(headers: Iterable[tuple[str, str]]) -> list[tuple[str, str]]:
    """Filter inbound headers for forwarding, keeping duplicates and order."""
    forwarded = [(key, value) for key, value in headers if key.lower() not in _DROP_REQUEST_HEADERS]
    forwarded.append(("accept-encoding", "identity"))
    return forwarded


def build_downstream_headers(headers: Iterable[tuple[str, str]]) -> list[tuple[str, str]]:
    return [(key, value) for key, value in headers if key.lower() not in _DROP_RESPONSE_HEADERS]


def split_set_cookie_header(value: str) -> list[str]:
    """Split a comma-joined ``Set-Cookie`` value back into individual cookies."""
    value = (value or "").strip()
    if not value:
        return []
    return [part.strip() for part in _COOKIE_SEPARATOR_RE.split(value) if part.strip()]


def collect_set_cookies(response: httpx.Response) -> list[str]:
    cookies: list[str] = []
    for raw in response.headers.get_list("set-cookie"):
        cookies.extend(split_set_cookie_header(raw))
    return cookies


def relay_response(upstream: httpx.Response) -> Response:
    """Re-emit an upstream response, appending one header per cookie."""
    response = Response(content=upstream.content, status_code=upstream.status_code)
    for key, value in build_downstream_headers(upstream.headers.multi_items()):
        response.headers.append(key, value)
    for cookie in collect_set_cookies(upstream):
        response.headers.append("set-cookie", cookie)
    return response


async def proxy_request(client: httpx.AsyncClient, request: Request, upstream_url: str) -> Response:
    """Forward method, headers, query string and body; relay the response verbatim."""
    if request.url.query:
        upstream_url = f"{upstream_url}?{request.url.query}"
    body = None if request.method in _BODYLESS_METHODS else await request.body()

    upstream = await client.request(
        request.method,
        upstream_url,
        headers=build_upstream_headers(request.headers.items()),
        content=body,
        follow_redirects=False,
    )
    logger.info(
        "session_proxy",
        method=request.method,
        upstream_status=upstream.status_code,
        cookies=len(upstream.headers.get_list("set-cookie")),
    )
    return relay_response(upstream)
