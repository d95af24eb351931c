from __future__ import annotations

from typing import Any

import httpx
from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse

from gateway.api.deps import get_http_client
from gateway.config import Settings, get_settings
from gateway.services import reviews
from gateway.services.reviews import ReviewsResult

router = APIRouter(prefix="/api/reviews/buyer", tags=["reviews"])

_NO_STORE = {"Cache-Control": "no-store"}


def _relay(result: ReviewsResult) -> JSONResponse:
    return JSONResponse(status_code=result.status, content=result.data, headers=_NO_STORE)


@router.post("/exchange")
async def exchange_review_token(
    body: dict[str, Any] | None = Body(default=None),
    settings: Settings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    """Trade a buyer's emailed token for a short-lived submission token."""
    result = await reviews.exchange_verification(client, settings.reviews_base(), body or {})
    return _relay(result)


@router.post("/create")
async def create_review(
    body: dict[str, Any] | None = Body(default=None),
    settings: Settings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    result = await reviews.create_review(client, settings.reviews_base(), body or {})
    return _relay(result)
