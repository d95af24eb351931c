"""Shopping-agent invocation client.

Every agent call is one POST of ``{operation, payload, metadata}`` to the
configured invoke URL. Responses come back in one of several envelopes (fields
at the top level, under ``output`` or under ``data``); ``unwrap`` is the single
place that knows that order.

One outbound call per operation: no retries, no pending-task polling and no
fallback re-invocation. Required identifiers are validated before the endpoint
is resolved, so a bad request never touches the network.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from gateway.config import AgentEndpoint, Settings
from gateway.creators import get_creator_by_id, get_creator_by_slug
from gateway.models.contracts import (
    ChatMessage,
    CreatorAgentResponse,
    PageInfo,
    Product,
    RecommendationItem,
    SearchOptions,
)
from gateway.services.products import normalize_deal, normalize_product, normalize_products
from gateway.utils.errors import NotFoundError, RequestValidationFailed, UpstreamError

logger = structlog.get_logger()

METADATA_SOURCE = "creator-agent-ui"

# Where a response field may live, tried in this order.
ENVELOPE_STRATEGIES: tuple[str, ...] = ("flat", "output", "data")

DEFAULT_SEARCH_LIMIT = 24
MAX_RECENT_QUERIES = 5
DEFAULT_SIMILAR_LIMIT = 12
DEFAULT_RECOMMENDATIONS_LIMIT = 6
DEFAULT_CANDIDATES_LIMIT = 10
RECOMMENDATIONS_STRATEGY = "find_similar_products"

CHECKOUT_OPERATIONS = frozenset({"preview_quote", "create_order", "submit_payment"})

GENERIC_INTENTS = frozenset(
    {
        "show popular items",
        "show me popular items",
        "show me some popular items",
        "recommend something",
        "recommend some products",
    }
)

REPLY_WITH_RESULTS = "Here are some product picks based on your request."
REPLY_POPULAR = "Here are some popular pieces to get you started."
REPLY_NO_RESULTS = (
    "I couldn't find products that match your request well enough, so I'm not going "
    "to recommend unrelated items just to fill the list.\n"
    "Try a more specific category, share your budget or size, or describe the occasion "
    "in more detail."
)
REPLY_EMPTY = (
    "I don't have good items to recommend yet and prefer not to show unrelated products.\n"
    "Tell me what category, budget, or occasion you care about, and I'll try again."
)


# === Envelope ===


def _from_strategy(data: dict[str, Any], strategy: str, field: str) -> Any:
    container = data if strategy == "flat" else data.get(strategy)
    if isinstance(container, dict):
        return container.get(field)
    return None


def unwrap(data: Any, *fields: str) -> Any:
    """First non-None value for ``fields``, each tried across ENVELOPE_STRATEGIES."""
    if not isinstance(data, dict):
        return None
    for field in fields:
        for strategy in ENVELOPE_STRATEGIES:
            value = _from_strategy(data, strategy, field)
            if value is not None:
                return value
    return None


def build_envelope(
    operation: str,
    payload: dict[str, Any],
    metadata: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return {
        "operation": operation,
        "payload": payload,
        "metadata": {**(metadata or {}), "source": METADATA_SOURCE},
    }


async def invoke_agent(
    client: httpx.AsyncClient,
    endpoint: AgentEndpoint,
    operation: str,
    payload: dict[str, Any],
    metadata: dict[str, Any] | None = None,
) -> Any:
    """POST one operation and return the decoded JSON body.

    Raises:
        UpstreamError: the agent answered with a non-2xx status.
    """
    response = await client.post(
        endpoint.invoke_url,
        json=build_envelope(operation, payload, metadata),
        headers=endpoint.auth_headers(),
    )
    if not response.is_success:
        logger.warning(
            "agent_invoke_failed",
            operation=operation,
            upstream_status=response.status_code,
        )
        raise UpstreamError(operation, response.status_code, response.text)

    logger.info("agent_invoke", operation=operation, upstream_status=response.status_code)
    return response.json()


# === Creator turn ===


def normalize_query(raw: str | None) -> str:
    """Trimmed query text; generic "show me something" intents become empty."""
    if not raw:
        return ""
    trimmed = raw.strip()
    if trimmed.lower() in GENERIC_INTENTS:
        return ""
    return trimmed


def _floor_at_least_one(value: float | None, default: int) -> int:
    if value is None or not math.isfinite(value):
        return default
    return max(1, math.floor(value) or default)


def _int_field(data: dict[str, Any], *keys: str) -> int | None:
    for key in keys:
        value = data.get(key)
        if isinstance(value, bool):
            continue
        if isinstance(value, (int, float)) and math.isfinite(value):
            return math.floor(value)
        if isinstance(value, str):
            try:
                return math.floor(float(value))
            except ValueError:
                continue
    return None


def derive_page_info(data: Any, product_count: int, page: int, limit: int) -> PageInfo:
    """Page info from upstream paging fields, filling gaps from the request."""
    data = data if isinstance(data, dict) else {}

    upstream_page = _int_field(data, "page")
    upstream_size = _int_field(data, "page_size", "pageSize")
    total = _int_field(data, "total")

    page = upstream_page if upstream_page and upstream_page > 0 else page
    page_size = upstream_size if upstream_size and upstream_size > 0 else limit
    if total is not None and total < 0:
        total = None

    if isinstance(data.get("has_more"), bool):
        has_more = data["has_more"]
    elif isinstance(data.get("hasMore"), bool):
        has_more = data["hasMore"]
    elif total is not None:
        has_more = page * page_size < total
    else:
        has_more = product_count >= page_size

    return PageInfo(page=page, page_size=page_size, total=total, has_more=has_more)


def _fallback_reply(has_user_query: bool, has_products: bool) -> str:
    if has_products:
        return REPLY_WITH_RESULTS if has_user_query else REPLY_POPULAR
    return REPLY_NO_RESULTS if has_user_query else REPLY_EMPTY


async def run_creator_agent_turn(
    client: httpx.AsyncClient,
    settings: Settings,
    creator_id: str | None,
    messages: list[ChatMessage],
    *,
    user_id: str | None = None,
    recent_queries: list[str] | None = None,
    trace_id: str | None = None,
    search: SearchOptions | None = None,
) -> CreatorAgentResponse:
    if not creator_id:
        raise RequestValidationFailed("creatorId is required")
    creator = get_creator_by_id(creator_id)
    if creator is None:
        raise NotFoundError(f"Unknown creatorId: {creator_id}")
    endpoint = settings.agent_endpoint()

    last_user = next((m for m in reversed(messages) if m.role == "user"), None)
    user_text = last_user.content if last_user else ""
    has_user_query = bool(user_text.strip())
    search = search or SearchOptions()
    query = normalize_query(search.query if search.query is not None else user_text)
    page = _floor_at_least_one(search.page, 1)
    limit = _floor_at_least_one(search.limit, DEFAULT_SEARCH_LIMIT)

    user: dict[str, Any] = {}
    if user_id:
        user["id"] = user_id
    if recent_queries is not None:
        user["recent_queries"] = [q for q in recent_queries if q][-MAX_RECENT_QUERIES:]

    payload = {
        "search": {
            "query": query,
            "page": page,
            "limit": limit,
            "in_stock_only": False,
            "allow_external_seed": True,
            "external_seed_strategy": "unified_relevance",
            "search_all_merchants": True,
        },
        "user": user,
    }
    metadata: dict[str, Any] = {
        "creator_id": creator.id,
        "creator_name": creator.name,
        "persona": creator.persona_prompt,
    }
    if trace_id:
        metadata["trace_id"] = trace_id

    data = await invoke_agent(client, endpoint, "find_products_multi", payload, metadata)

    raw_products = unwrap(data, "products", "items")
    if not isinstance(raw_products, list):
        raw_products = []
    products = normalize_products(raw_products)

    reply = unwrap(data, "reply", "message", "final_text")
    if not isinstance(reply, str) or not reply:
        reply = _fallback_reply(has_user_query, bool(products))

    return CreatorAgentResponse(
        reply=reply,
        products=[p.to_ui() for p in products],
        page_info=derive_page_info(data, len(raw_products), page, limit),
        raw_agent_response=data,
        agent_url_used=endpoint.invoke_url,
    )


# === Product lookups ===


async def get_product_detail(
    client: httpx.AsyncClient,
    settings: Settings,
    merchant_id: str | None,
    product_id: str | None,
) -> tuple[Product, Any]:
    """Returns the normalized product and the raw agent response."""
    if not merchant_id or not product_id:
        raise RequestValidationFailed("merchantId and productId are required")
    endpoint = settings.agent_endpoint()

    data = await invoke_agent(
        client,
        endpoint,
        "get_product_detail",
        {"product": {"merchant_id": merchant_id, "product_id": product_id}},
    )
    raw = unwrap(data, "product", "product_raw")
    return normalize_product(raw if isinstance(raw, dict) else data), data


@dataclass
class SimilarProducts:
    base_product_id: str
    strategy_used: str
    products: list[Product]


def _similar_item_product(item: dict[str, Any]) -> Product:
    nested = (item.get(k) for k in ("product", "raw_product", "product_raw"))
    raw = next((n for n in nested if isinstance(n, dict)), item)
    product = normalize_product(raw)
    # Deals may ride on the item rather than on the product record.
    if product.best_deal is None and isinstance(item.get("best_deal"), dict):
        product.best_deal = normalize_deal(item["best_deal"])
    if product.all_deals is None and isinstance(item.get("all_deals"), list):
        product.all_deals = [normalize_deal(d) for d in item["all_deals"] if isinstance(d, dict)]
    return product


async def find_similar_products(
    client: httpx.AsyncClient,
    settings: Settings,
    creator_slug: str | None,
    product_id: str | None,
    limit: int | None = None,
    strategy: str = "auto",
) -> SimilarProducts:
    if not creator_slug or not product_id:
        raise RequestValidationFailed("creatorSlug and productId are required")
    creator = get_creator_by_slug(creator_slug)
    if creator is None:
        raise NotFoundError(f"Creator not found: {creator_slug}")
    endpoint = settings.agent_endpoint()

    data = await invoke_agent(
        client,
        endpoint,
        "find_similar_products",
        {
            "product_id": product_id,
            "creator_id": creator.id,
            "limit": limit or DEFAULT_SIMILAR_LIMIT,
            "strategy": strategy,
        },
        {"creator_id": creator.id},
    )

    items = unwrap(data, "items", "products")
    products: list[Product] = []
    for item in items or []:
        if not isinstance(item, dict):
            continue
        try:
            products.append(_similar_item_product(item))
        except ValidationError as exc:
            logger.warning(
                "product_record_invalid",
                product_id=item.get("product_id") or item.get("id"),
                errors=exc.error_count(),
            )
    meta = data if isinstance(data, dict) else {}
    return SimilarProducts(
        base_product_id=meta.get("base_product_id") or product_id,
        strategy_used=meta.get("strategy_used") or strategy,
        products=products,
    )


async def get_pdp(
    client: httpx.AsyncClient,
    settings: Settings,
    merchant_id: str | None,
    product_id: str | None,
    *,
    include: list[str] | None = None,
    debug: bool = False,
) -> Any:
    """Raw ``get_pdp_v2`` response; payload extraction is left to the caller."""
    merchant_id = (merchant_id or "").strip()
    if not merchant_id or not product_id:
        raise RequestValidationFailed("merchantId and productId are required")
    endpoint = settings.agent_endpoint()

    payload: dict[str, Any] = {
        "product_ref": {"product_id": product_id, "merchant_id": merchant_id},
        "options": {"debug": True} if debug else {},
    }
    include = [i for i in include or [] if i]
    if include:
        payload["include"] = include
    return await invoke_agent(client, endpoint, "get_pdp_v2", payload)


# === Recommendations / candidates ===


def _clean(value: Any) -> str:
    return str(value).strip() if value is not None else ""


def to_recommendation_item(raw: dict[str, Any]) -> RecommendationItem | None:
    product_id = _clean(raw.get("product_id") or raw.get("productId") or raw.get("id"))
    if not product_id:
        return None

    price: dict[str, Any] | None = None
    raw_price = raw.get("price")
    if isinstance(raw_price, dict) and isinstance(raw_price.get("amount"), (int, float)):
        price = {"amount": raw_price["amount"]}
        currency = raw_price.get("currency") or raw.get("currency")
        if isinstance(currency, str):
            price["currency"] = currency
    elif isinstance(raw_price, (int, float)) and not isinstance(raw_price, bool):
        price = {"amount": raw_price}
        if isinstance(raw.get("currency"), str):
            price["currency"] = raw["currency"]

    rating = raw.get("rating")
    review_count = raw.get("review_count", raw.get("reviewCount"))
    return RecommendationItem(
        product_id=product_id,
        title=_clean(raw.get("title") or raw.get("name")) or product_id,
        image_url=_clean(raw.get("image_url") or raw.get("imageUrl") or raw.get("image")) or None,
        merchant_id=_clean(raw.get("merchant_id") or raw.get("merchantId")) or None,
        price=price,
        rating=rating if isinstance(rating, (int, float)) else None,
        review_count=review_count if isinstance(review_count, int) else None,
    )


def _bounded_limit(limit: float | None, default: int) -> int:
    if limit is None or not math.isfinite(limit):
        return default
    return max(1, math.floor(limit))


async def get_recommendations(
    client: httpx.AsyncClient,
    settings: Settings,
    merchant_id: str | None,
    product_id: str | None,
    *,
    limit: float | None = None,
    debug: bool = False,
    cache_bypass: bool = False,
) -> list[RecommendationItem]:
    """Similar items for a PDP.

    Recommendations are decorative: an upstream or transport failure is logged
    and yields an empty list so the PDP still renders.
    """
    if not merchant_id or not product_id:
        raise RequestValidationFailed("merchantId and productId are required")
    endpoint = settings.agent_endpoint()

    resolved_limit = _bounded_limit(limit, DEFAULT_RECOMMENDATIONS_LIMIT)
    ref = {"merchant_id": merchant_id, "product_id": product_id, "limit": resolved_limit}
    # Flat shape first; nested `similar` for gateways that still expect it.
    payload: dict[str, Any] = {**ref, "similar": dict(ref)}
    if debug:
        payload["debug"] = True
    if cache_bypass:
        payload["cache_bypass"] = True

    try:
        data = await invoke_agent(client, endpoint, RECOMMENDATIONS_STRATEGY, payload)
    except (UpstreamError, httpx.HTTPError) as exc:
        logger.warning("recommendations_unavailable", product_id=product_id, error=str(exc))
        return []

    raw_items = unwrap(data, "products", "items")
    items = [to_recommendation_item(p) for p in raw_items or [] if isinstance(p, dict)]
    return [item for item in items if item is not None]


async def resolve_product_candidates(
    client: httpx.AsyncClient,
    settings: Settings,
    product_id: str | None,
    *,
    merchant_id: str | None = None,
    country: str | None = None,
    postal_code: str | None = None,
    limit: float | None = None,
    debug: bool = False,
    cache_bypass: bool = False,
) -> Any:
    if not product_id:
        raise RequestValidationFailed("productId is required")
    endpoint = settings.agent_endpoint()

    product_ref: dict[str, Any] = {"product_id": product_id}
    if merchant_id:
        product_ref["merchant_id"] = merchant_id
    context: dict[str, Any] = {}
    if country:
        context["country"] = country
    if postal_code:
        context["postal_code"] = postal_code
    options: dict[str, Any] = {
        "limit": _bounded_limit(limit, DEFAULT_CANDIDATES_LIMIT),
        "include_offers": True,
    }
    if debug:
        options["debug"] = True
    if cache_bypass:
        options["cache_bypass"] = True

    return await invoke_agent(
        client,
        endpoint,
        "resolve_product_candidates",
        {"product_ref": product_ref, "context": context, "options": options},
    )


# === Checkout ===


async def invoke_checkout(
    client: httpx.AsyncClient,
    settings: Settings,
    body: dict[str, Any],
    *,
    trace_id: str,
    checkout_token: str = "",
) -> httpx.Response:
    """Relay a checkout envelope as-is; the caller relays the response status.

    A buyer checkout token replaces the service API key when present.
    """
    operation = str(body.get("operation") or "").strip()
    if operation not in CHECKOUT_OPERATIONS:
        raise RequestValidationFailed(
            "operation must be preview_quote, create_order, or submit_payment"
        )
    endpoint = settings.checkout_endpoint()

    headers = {"X-Trace-Id": trace_id}
    if checkout_token:
        headers["X-Checkout-Token"] = checkout_token
    else:
        headers.update(endpoint.auth_headers())

    response = await client.post(endpoint.invoke_url, json=body, headers=headers)
    logger.info(
        "checkout_invoke",
        operation=operation,
        trace_id=trace_id,
        upstream_status=response.status_code,
    )
    return response
