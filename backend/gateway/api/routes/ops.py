"""Merchant operations proxies: promotions, disputes, returns.

Upstream statuses and bodies are relayed 1:1. A missing merchant backend
configuration fails every call with a 500 before any request is made.
"""

from __future__ import annotations

from collections.abc import Awaitable
from typing import Any

import httpx
from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import JSONResponse

from gateway.api.deps import get_http_client
from gateway.api.responses import relay_upstream_error
from gateway.config import Settings, get_settings
from gateway.services import admin
from gateway.services.admin import AdminResult
from gateway.utils.errors import UpstreamError

router = APIRouter(prefix="/api/ops", tags=["ops"])


def _query(request: Request) -> str:
    return f"?{request.url.query}" if request.url.query else ""


async def _relay(call: Awaitable[AdminResult]) -> JSONResponse:
    try:
        result = await call
    except UpstreamError as exc:
        return relay_upstream_error(exc)
    return JSONResponse(status_code=result.status, content=result.data)


# === Promotions ===


@router.get("/promotions")
async def list_promotions(
    request: Request,
    settings: Settings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    endpoint = settings.admin_endpoint()
    return await _relay(admin.list_promotions(client, endpoint, _query(request)))


@router.post("/promotions")
async def create_promotion(
    body: Any = Body(...),
    settings: Settings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    endpoint = settings.admin_endpoint()
    return await _relay(admin.create_promotion(client, endpoint, body))


@router.get("/promotions/{promotion_id}")
async def get_promotion(
    promotion_id: str,
    settings: Settings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    endpoint = settings.admin_endpoint()
    return await _relay(admin.get_promotion(client, endpoint, promotion_id))


@router.patch("/promotions/{promotion_id}")
async def update_promotion(
    promotion_id: str,
    body: Any = Body(...),
    settings: Settings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    endpoint = settings.admin_endpoint()
    return await _relay(admin.update_promotion(client, endpoint, promotion_id, body))


@router.delete("/promotions/{promotion_id}")
async def delete_promotion(
    promotion_id: str,
    settings: Settings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    endpoint = settings.admin_endpoint()
    return await _relay(admin.delete_promotion(client, endpoint, promotion_id))


# === Disputes ===


@router.get("/disputes")
async def list_disputes(
    request: Request,
    settings: Settings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    endpoint = settings.admin_endpoint()
    return await _relay(admin.list_disputes(client, endpoint, _query(request)))


@router.post("/disputes/sync")
async def sync_disputes(
    body: dict[str, Any] | None = Body(default=None),
    settings: Settings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    endpoint = settings.admin_endpoint()
    return await _relay(admin.sync_disputes(client, endpoint, body))


# === Returns ===


@router.get("/returns")
async def list_returns(
    request: Request,
    settings: Settings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    endpoint = settings.admin_endpoint()
    return await _relay(admin.list_returns(client, endpoint, _query(request)))


@router.post("/returns/sync")
async def sync_returns(
    body: dict[str, Any] | None = Body(default=None),
    settings: Settings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    endpoint = settings.admin_endpoint()
    return await _relay(admin.sync_returns(client, endpoint, body))
