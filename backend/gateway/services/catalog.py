"""Creator catalog reads (category tree, category product listings).

These are plain GETs against the agent base URL rather than invoke
operations.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from gateway.config import Settings
from gateway.services.products import normalize_products
from gateway.utils.errors import UpstreamError

logger = structlog.get_logger()

DEFAULT_CATEGORY_PAGE = "1"
DEFAULT_CATEGORY_LIMIT = "500"


def _api_key_headers(settings: Settings) -> dict[str, str]:
    if not settings.agent_api_key:
        return {}
    return {"X-Agent-API-Key": settings.agent_api_key, "x-api-key": settings.agent_api_key}


def resolve_locale(explicit: str | None, accept_language: str | None) -> str:
    """Explicit locale wins; otherwise zh-CN for Chinese browsers, else en-US."""
    if explicit and explicit.strip():
        return explicit.strip()
    if "zh" in (accept_language or "").lower():
        return "zh-CN"
    return "en-US"


async def _get_json(client: httpx.AsyncClient, operation: str, url: str, **kwargs: Any) -> Any:
    response = await client.get(url, **kwargs)
    if not response.is_success:
        logger.warning(
            "catalog_fetch_failed", operation=operation, upstream_status=response.status_code
        )
        raise UpstreamError(operation, response.status_code, response.text)
    return response.json()


async def get_creator_categories(
    client: httpx.AsyncClient,
    settings: Settings,
    creator_slug: str,
    *,
    include_counts: str = "true",
    deals_only: str = "false",
) -> dict[str, Any]:
    base = settings.agent_base()
    data = await _get_json(
        client,
        "creator_categories",
        f"{base}/creator/{creator_slug}/categories",
        params={"includeCounts": include_counts, "dealsOnly": deals_only},
        headers=_api_key_headers(settings),
    )
    data = data if isinstance(data, dict) else {}
    return {
        "creatorId": data.get("creatorId") or creator_slug,
        "roots": data.get("roots") or [],
        "hotDeals": data.get("hotDeals") or [],
    }


async def get_category_products(
    client: httpx.AsyncClient,
    settings: Settings,
    creator_slug: str,
    category_slug: str,
    *,
    page: str | None = None,
    limit: str | None = None,
    view: str | None = None,
    locale: str | None = None,
) -> dict[str, Any]:
    base = settings.agent_base()
    params = {"page": page or DEFAULT_CATEGORY_PAGE, "limit": limit or DEFAULT_CATEGORY_LIMIT}
    if view:
        params["view"] = view
    if locale:
        params["locale"] = locale

    data = await _get_json(
        client,
        "category_products",
        f"{base}/creator/{creator_slug}/categories/{category_slug}/products",
        params=params,
        headers=_api_key_headers(settings),
    )
    data = data if isinstance(data, dict) else {}
    result: dict[str, Any] = {
        "products": [p.to_ui() for p in normalize_products(data.get("products"))],
    }
    if data.get("pagination") is not None:
        result["pagination"] = data["pagination"]
    return result
