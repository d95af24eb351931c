"""Session-cookie proxies to the accounts service.

The browser's cookies travel upstream untouched and every upstream
``Set-Cookie`` comes back as its own header, so the accounts session lives on
the gateway's origin.
"""

from __future__ import annotations

from urllib.parse import quote

import httpx
from fastapi import APIRouter, Depends, Request

from gateway.api.deps import get_http_client
from gateway.config import Settings, get_settings
from gateway.utils.http import proxy_request

router = APIRouter(tags=["accounts"])

_PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]


@router.api_route("/questions", methods=["GET", "POST"])
async def questions_proxy(
    request: Request,
    settings: Settings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    return await proxy_request(client, request, f"{settings.accounts_origin()}/questions")


@router.api_route("/api/accounts-root/{path:path}", methods=_PROXY_METHODS)
async def accounts_root_proxy(
    path: str,
    request: Request,
    settings: Settings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    upstream_path = "/".join(quote(segment, safe="") for segment in path.split("/"))
    return await proxy_request(client, request, f"{settings.accounts_origin()}/{upstream_path}")
