"""Merchant operations backend client (promotions, disputes, returns).

Calls carry a single ``X-ADMIN-KEY`` header. Callers resolve the endpoint
through ``Settings.admin_endpoint()`` first, which raises before any network
I/O when the backend is not configured.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from gateway.config import AdminEndpoint
from gateway.utils.errors import RequestValidationFailed, UpstreamError

logger = structlog.get_logger()

PROMOTIONS_PATH = "/api/merchant/promotions"
DISPUTES_PATH = "/api/merchant/disputes"
RETURNS_PATH = "/api/merchant/returns"


@dataclass(frozen=True)
class AdminResult:
    status: int
    data: Any


def _parse_json(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return None


async def call_admin(
    client: httpx.AsyncClient,
    endpoint: AdminEndpoint,
    method: str,
    path: str,
    *,
    query: str = "",
    json_body: Any = None,
) -> AdminResult:
    """Proxy one call to the merchant backend.

    ``query`` is appended verbatim (including its leading ``?``). A 204 is
    surfaced as ``{"success": True}``.

    Raises:
        UpstreamError: non-2xx status; ``data`` holds the parsed JSON body, if any.
    """
    headers = {"X-ADMIN-KEY": endpoint.admin_key}
    response = await client.request(
        method,
        endpoint.url(path, query),
        headers=headers,
        json=json_body,
    )
    logger.info("admin_call", method=method, path=path, upstream_status=response.status_code)

    if response.status_code == 204:
        return AdminResult(status=204, data={"success": True})

    data = _parse_json(response)
    if not response.is_success:
        raise UpstreamError(f"{method} {path}", response.status_code, response.text, data)
    return AdminResult(status=response.status_code, data=data if data is not None else {})


# === Promotions ===


async def list_promotions(
    client: httpx.AsyncClient, endpoint: AdminEndpoint, query: str = ""
) -> AdminResult:
    return await call_admin(client, endpoint, "GET", PROMOTIONS_PATH, query=query)


async def create_promotion(
    client: httpx.AsyncClient, endpoint: AdminEndpoint, body: Any
) -> AdminResult:
    return await call_admin(client, endpoint, "POST", PROMOTIONS_PATH, json_body=body)


async def get_promotion(
    client: httpx.AsyncClient, endpoint: AdminEndpoint, promotion_id: str
) -> AdminResult:
    return await call_admin(client, endpoint, "GET", f"{PROMOTIONS_PATH}/{promotion_id}")


async def update_promotion(
    client: httpx.AsyncClient, endpoint: AdminEndpoint, promotion_id: str, body: Any
) -> AdminResult:
    path = f"{PROMOTIONS_PATH}/{promotion_id}"
    return await call_admin(client, endpoint, "PATCH", path, json_body=body)


async def delete_promotion(
    client: httpx.AsyncClient, endpoint: AdminEndpoint, promotion_id: str
) -> AdminResult:
    return await call_admin(client, endpoint, "DELETE", f"{PROMOTIONS_PATH}/{promotion_id}")


# === Disputes / returns ===


async def list_disputes(
    client: httpx.AsyncClient, endpoint: AdminEndpoint, query: str = ""
) -> AdminResult:
    return await call_admin(client, endpoint, "GET", DISPUTES_PATH, query=query)


async def sync_disputes(
    client: httpx.AsyncClient, endpoint: AdminEndpoint, body: Any
) -> AdminResult:
    """Sync disputes for one order; ``orderId`` (or ``order_id``) is required."""
    body = body if isinstance(body, dict) else {}
    order_id = body.get("orderId") or body.get("order_id")
    if not order_id:
        raise RequestValidationFailed("orderId is required")

    payload: dict[str, Any] = {"orderId": order_id}
    if body.get("limit"):
        payload["limit"] = body["limit"]
    return await call_admin(client, endpoint, "POST", f"{DISPUTES_PATH}/sync", json_body=payload)


async def list_returns(
    client: httpx.AsyncClient, endpoint: AdminEndpoint, query: str = ""
) -> AdminResult:
    return await call_admin(client, endpoint, "GET", RETURNS_PATH, query=query)


async def sync_returns(
    client: httpx.AsyncClient, endpoint: AdminEndpoint, body: Any
) -> AdminResult:
    return await call_admin(client, endpoint, "POST", f"{RETURNS_PATH}/sync", json_body=body or {})
