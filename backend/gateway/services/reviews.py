"""Buyer review flows: token exchange and review submission.

Both calls authenticate with a buyer-held bearer token, not a service
credential. Upstream statuses are relayed unchanged.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from gateway.utils.errors import RequestValidationFailed

logger = structlog.get_logger()

EXCHANGE_PATH = "/buyer/reviews/v1/verification/exchange"
REVIEWS_PATH = "/buyer/reviews/v1/reviews"
DEFAULT_TTL_SECONDS = 900


@dataclass(frozen=True)
class ReviewsResult:
    status: int
    data: Any


def _parse_body(response: httpx.Response) -> Any:
    """JSON when it parses, raw text when it doesn't, None when empty."""
    text = response.text
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return text


def _finite_number(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _clean(value: Any) -> str:
    return str(value).strip() if value is not None else ""


async def exchange_verification(
    client: httpx.AsyncClient, base_url: str, body: dict[str, Any]
) -> ReviewsResult:
    token = _clean(body.get("token"))
    if not token:
        raise RequestValidationFailed("Missing token")

    ttl = _finite_number(body.get("ttl_seconds"))
    payload: dict[str, Any] = {"ttl_seconds": ttl if ttl is not None else DEFAULT_TTL_SECONDS}
    order_id = _clean(body.get("order_id"))
    if order_id:
        payload["order_id"] = order_id

    response = await client.post(
        f"{base_url}{EXCHANGE_PATH}",
        json=payload,
        headers={"Authorization": f"Bearer {token}"},
    )
    logger.info("reviews_exchange", upstream_status=response.status_code)
    return ReviewsResult(status=response.status_code, data=_parse_body(response))


async def create_review(
    client: httpx.AsyncClient, base_url: str, body: dict[str, Any]
) -> ReviewsResult:
    submission_token = _clean(body.get("submission_token"))
    idempotency_key = _clean(body.get("idempotency_key"))
    merchant_id = _clean(body.get("merchant_id"))
    platform = _clean(body.get("platform"))
    platform_product_id = _clean(body.get("platform_product_id"))
    rating = _finite_number(body.get("rating"))

    if not submission_token:
        raise RequestValidationFailed("Missing submission_token")
    if not merchant_id or not platform or not platform_product_id:
        raise RequestValidationFailed("Missing subject fields")
    if rating is None:
        raise RequestValidationFailed("Missing rating")
    if not idempotency_key:
        raise RequestValidationFailed("Missing idempotency_key")

    payload = {
        "merchant_id": merchant_id,
        "platform": platform,
        "platform_product_id": platform_product_id,
        "variant_id": None if body.get("variant_id") is None else _clean(body["variant_id"]),
        "rating": rating,
        "title": None if body.get("title") is None else str(body["title"]),
        "body": None if body.get("body") is None else str(body["body"]),
    }
    response = await client.post(
        f"{base_url}{REVIEWS_PATH}",
        json=payload,
        headers={
            "Authorization": f"Bearer {submission_token}",
            "Idempotency-Key": idempotency_key,
        },
    )
    logger.info("reviews_create", upstream_status=response.status_code, merchant_id=merchant_id)
    return ReviewsResult(status=response.status_code, data=_parse_body(response))
