"""Creator catalog endpoints (category tree and category listings)."""

from __future__ import annotations

import httpx
import structlog
from fastapi import APIRouter, Depends, Request

from gateway.api.deps import get_http_client
from gateway.api.responses import HANDLED_FAILURES, failure_response
from gateway.config import Settings, get_settings
from gateway.services.catalog import get_category_products, get_creator_categories, resolve_locale

logger = structlog.get_logger()

router = APIRouter(prefix="/api/creator", tags=["creators"])


@router.get("/{slug}/categories")
async def creator_categories(
    slug: str,
    includeCounts: str = "true",  # noqa: N803
    dealsOnly: str = "false",  # noqa: N803
    settings: Settings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    try:
        return await get_creator_categories(
            client, settings, slug, include_counts=includeCounts, deals_only=dealsOnly
        )
    except HANDLED_FAILURES as exc:
        logger.warning("creator_categories_failed", creator_slug=slug, error=str(exc))
        return failure_response("Failed to fetch creator categories", exc)


@router.get("/{slug}/category/{category_slug}/products")
async def creator_category_products(
    request: Request,
    slug: str,
    category_slug: str,
    page: str | None = None,
    limit: str | None = None,
    view: str | None = None,
    locale: str | None = None,
    settings: Settings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    try:
        return await get_category_products(
            client,
            settings,
            slug,
            category_slug,
            page=page,
            limit=limit,
            view=view,
            locale=resolve_locale(locale, request.headers.get("accept-language")),
        )
    except HANDLED_FAILURES as exc:
        logger.warning(
            "category_products_failed",
            creator_slug=slug,
            category_slug=category_slug,
            error=str(exc),
        )
        return failure_response("Failed to fetch category products", exc)
