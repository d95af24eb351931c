"""Creator shopping-agent endpoints.

Thin handlers over ``gateway.services.agent``: validate, invoke once, normalize.
Upstream failures are classified (409/429/503/504 pass through, anything else
is a 500) and reported with the parsed upstream detail.
"""

from __future__ import annotations

import time
import uuid
from typing import Any

import httpx
import structlog
from fastapi import APIRouter, Body, Depends, Request, Response

from gateway.api.deps import get_http_client
from gateway.api.responses import (
    HANDLED_FAILURES,
    describe_failure,
    error_response,
    failure_response,
)
from gateway.config import Settings, get_settings
from gateway.models.contracts import (
    CreatorAgentRequest,
    PdpRequest,
    ProductRefRequest,
    RecommendationsRequest,
    ResolveCandidatesRequest,
    SimilarProductsRequest,
)
from gateway.services import agent
from gateway.services.pdp import build_pdp_view, extract_pdp_payload
from gateway.utils.errors import RequestValidationFailed

logger = structlog.get_logger()

router = APIRouter(prefix="/api/creator-agent", tags=["creator-agent"])

_CHECKOUT_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, X-Agent-API-Key, X-Checkout-Token",
    "Access-Control-Expose-Headers": "Server-Timing, x-gateway-retries, x-gateway-trace-id",
}


@router.post("")
async def creator_agent_turn(
    body: CreatorAgentRequest,
    settings: Settings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    try:
        result = await agent.run_creator_agent_turn(
            client,
            settings,
            body.creator_id,
            body.messages,
            user_id=body.user_id,
            recent_queries=body.recent_queries,
            trace_id=body.trace_id,
            search=body.search,
        )
    except HANDLED_FAILURES as exc:
        status, detail, upstream_status = describe_failure(exc)
        logger.warning("creator_agent_turn_failed", status=status, upstream_status=upstream_status)
        return error_response(
            status,
            "Creator agent backend error",
            detail,
            upstreamStatus=upstream_status,
            traceId=body.trace_id,
            agentUrlConfigured=bool(settings.agent_url),
        )
    return result.model_dump(by_alias=True, exclude_none=True)


@router.post("/pdp")
async def creator_agent_pdp(
    body: PdpRequest,
    settings: Settings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    try:
        raw = await agent.get_pdp(
            client,
            settings,
            body.merchant_id,
            body.product_id,
            include=body.include,
            debug=body.debug,
        )
    except HANDLED_FAILURES as exc:
        logger.warning("pdp_fetch_failed", product_id=body.product_id, error=str(exc))
        return failure_response("Failed to fetch pdp payload", exc)

    payload = extract_pdp_payload(raw)
    if payload is None:
        logger.warning("pdp_payload_missing", product_id=body.product_id)
        extra = {"raw": raw} if body.debug else {}
        return error_response(502, "PDP payload missing from gateway response", **extra)

    view = build_pdp_view(payload, color=body.color, size=body.size)
    content: dict[str, Any] = {"pdp_payload": payload, "view": view.model_dump(exclude_none=True)}
    if body.debug:
        content["raw"] = raw
    return content


@router.post("/similar")
async def creator_agent_similar(
    body: SimilarProductsRequest,
    settings: Settings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    try:
        similar = await agent.find_similar_products(
            client, settings, body.creator_slug, body.product_id, limit=body.limit
        )
    except HANDLED_FAILURES as exc:
        logger.warning("similar_products_failed", product_id=body.product_id, error=str(exc))
        return failure_response("Failed to fetch similar products", exc)

    return {
        "products": [p.to_ui() for p in similar.products],
        "baseProductId": similar.base_product_id,
        "strategyUsed": similar.strategy_used,
    }


@router.post("/product-detail")
async def creator_agent_product_detail(
    body: ProductRefRequest,
    settings: Settings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    try:
        product, raw = await agent.get_product_detail(
            client, settings, body.merchant_id, body.product_id
        )
    except HANDLED_FAILURES as exc:
        logger.warning("product_detail_failed", product_id=body.product_id, error=str(exc))
        return failure_response("Failed to fetch product detail", exc)

    return {"product": product.to_ui(), "rawAgentResponse": raw}


@router.post("/recommendations")
async def creator_agent_recommendations(
    body: RecommendationsRequest,
    settings: Settings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    try:
        items = await agent.get_recommendations(
            client,
            settings,
            body.merchant_id,
            body.product_id,
            limit=body.limit,
            debug=body.debug,
            cache_bypass=body.cache_bypass,
        )
    except HANDLED_FAILURES as exc:
        return failure_response("Failed to fetch recommendations", exc)

    return {
        "strategy": agent.RECOMMENDATIONS_STRATEGY,
        "items": [item.model_dump(exclude_none=True) for item in items],
    }


@router.post("/resolve-product-candidates")
async def creator_agent_resolve_candidates(
    body: ResolveCandidatesRequest,
    settings: Settings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    try:
        return await agent.resolve_product_candidates(
            client,
            settings,
            body.product_id,
            merchant_id=body.merchant_id,
            country=body.country,
            postal_code=body.postal_code,
            limit=body.limit,
            debug=body.debug,
            cache_bypass=body.cache_bypass,
        )
    except HANDLED_FAILURES as exc:
        logger.warning("resolve_candidates_failed", product_id=body.product_id, error=str(exc))
        return failure_response("Failed to resolve product candidates", exc)


@router.post("/checkout/invoke")
async def creator_checkout_invoke(
    request: Request,
    body: dict[str, Any] = Body(...),
    settings: Settings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    """Relay a checkout operation; the upstream status and body pass through.

    ``Server-Timing`` reports upstream, proxy and total durations (the
    upstream's own timing entry replaces ours when it sends one).
    """
    started = time.perf_counter()
    trace_id = request.headers.get("x-trace-id", "").strip() or f"creator-checkout:{uuid.uuid4()}"
    checkout_token = request.headers.get("x-checkout-token", "").strip()

    try:
        upstream_started = time.perf_counter()
        upstream = await agent.invoke_checkout(
            client, settings, body, trace_id=trace_id, checkout_token=checkout_token
        )
    except RequestValidationFailed as exc:
        return error_response(
            400, "UNSUPPORTED_OPERATION", exc.message, headers=_CHECKOUT_CORS_HEADERS
        )
    except HANDLED_FAILURES as exc:
        logger.warning("checkout_invoke_failed", trace_id=trace_id, error=str(exc))
        status, detail, _ = describe_failure(exc)
        return error_response(
            status, "CREATOR_CHECKOUT_PROXY_ERROR", detail, headers=_CHECKOUT_CORS_HEADERS
        )

    upstream_ms = round((time.perf_counter() - upstream_started) * 1000)
    total_ms = round((time.perf_counter() - started) * 1000)
    upstream_timing = upstream.headers.get("server-timing", "").strip()
    timing = ", ".join(
        [
            upstream_timing or f"upstream;dur={upstream_ms}",
            f"proxy;dur={max(0, total_ms - upstream_ms)}",
            f"gateway;dur={total_ms}",
        ]
    )

    headers = {
        **_CHECKOUT_CORS_HEADERS,
        "Server-Timing": timing,
        "x-gateway-trace-id": trace_id,
    }
    retries = upstream.headers.get("x-gateway-retries", "").strip()
    if retries:
        headers["x-gateway-retries"] = retries

    return Response(
        content=upstream.content,
        status_code=upstream.status_code,
        headers=headers,
        media_type=upstream.headers.get("content-type") or "text/plain; charset=utf-8",
    )


@router.options("/checkout/invoke")
async def creator_checkout_preflight():
    return Response(status_code=200, headers=_CHECKOUT_CORS_HEADERS)
