"""RawProduct → Product normalization.

Pure and total over valid RawProduct records: every Product field comes from
exactly one source field, and optional fields the source did not supply stay
unset (they are dropped from the UI payload, never defaulted). Feeding a
normalized product back in (``product.model_dump(exclude_none=True)``) yields
the same product.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import Any

import structlog
from pydantic import ValidationError

from gateway.models.contracts import Deal, Product, ProductOption, ProductVariant, RawProduct

logger = structlog.get_logger()

_TAG_RE = re.compile(r"<[^>]+>")


def _first_present(source: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = source.get(key)
        if value is not None:
            return value
    return None


def _number(source: Mapping[str, Any], *keys: str) -> float | int | None:
    for key in keys:
        value = source.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return value
    return None


def strip_html(value: str | None) -> str:
    if not value:
        return ""
    return _TAG_RE.sub("", value).strip()


def normalize_deal(raw: Mapping[str, Any]) -> Deal:
    """Accepts both snake_case and camelCase deal keys."""
    deal_id = _first_present(raw, "deal_id", "dealId", "id")
    return Deal(
        deal_id=str(deal_id) if deal_id is not None else None,
        type=raw.get("type"),
        label=raw.get("label"),
        discount_percent=_number(raw, "discount_percent", "discountPercent"),
        threshold_quantity=_number(raw, "threshold_quantity", "thresholdQuantity"),
        flash_price=_number(raw, "flash_price", "flashPrice"),
        end_at=_first_present(raw, "end_at", "endAt"),
        urgency_level=_first_present(raw, "urgency_level", "urgencyLevel"),
    )


def _normalize_options(raw: Mapping[str, Any]) -> list[ProductOption] | None:
    source = raw.get("options") or raw.get("product_options")
    if not isinstance(source, list):
        return None

    result: list[ProductOption] = []
    for opt in source:
        if not isinstance(opt, Mapping):
            continue
        name = opt.get("name") if isinstance(opt.get("name"), str) else opt.get("label")
        if not isinstance(name, str) or not name:
            continue
        values_source = _first_present(opt, "values", "options", "value_list", "valueList")
        values = [str(v) for v in values_source] if isinstance(values_source, list) else []
        if values:
            result.append(ProductOption(name=name, values=values))
    return result or None


def _normalize_images(raw: Mapping[str, Any]) -> list[str] | None:
    urls: list[str] = []
    source = raw.get("images")
    if isinstance(source, list):
        for img in source:
            if isinstance(img, str):
                urls.append(img)
            elif isinstance(img, Mapping):
                url = img.get("url") if isinstance(img.get("url"), str) else img.get("src")
                if isinstance(url, str):
                    urls.append(url)

    image_url = raw.get("image_url")
    if isinstance(image_url, str) and image_url and image_url not in urls:
        urls.insert(0, image_url)
    return urls or None


def _normalize_variants(raw: Mapping[str, Any]) -> list[ProductVariant] | None:
    attributes = raw.get("attributes")
    if isinstance(attributes, Mapping) and isinstance(attributes.get("variants"), list):
        source = attributes["variants"]
    elif isinstance(raw.get("variants"), list):
        source = raw["variants"]
    else:
        return None

    variants: list[ProductVariant] = []
    for v in source:
        if not isinstance(v, Mapping):
            continue
        variant_id = str(v.get("variant_id") or v.get("id") or "").strip()
        if not variant_id:
            continue

        options = None
        if isinstance(v.get("options"), Mapping):
            options = {str(k): str(val) for k, val in v["options"].items() if val is not None}

        price = _number(v, "price")
        if price is None:
            price = _number(raw, "price")

        image = v.get("image")
        image_url = v.get("image_url")
        if not isinstance(image_url, str) and isinstance(image, Mapping):
            image_url = image.get("src")

        variants.append(
            ProductVariant(
                id=variant_id,
                title=str(v.get("title") or "").strip(),
                price=price,
                sku=str(v["sku"]) if v.get("sku") else None,
                inventory_quantity=_number(v, "inventory_quantity"),
                options=options,
                image_url=image_url if isinstance(image_url, str) else None,
            )
        )
    return variants or None


def normalize_product(raw: RawProduct | Mapping[str, Any]) -> Product:
    record = raw if isinstance(raw, RawProduct) else RawProduct.model_validate(raw)
    extras: dict[str, Any] = record.model_dump()

    return Product(
        id=record.id,
        title=record.title,
        description=strip_html(record.description),
        price=record.price,
        currency=record.currency,
        image_url=record.image_url,
        inventory_quantity=record.inventory_quantity,
        merchant_id=record.merchant_id,
        merchant_name=record.merchant_name,
        discount_percent=record.discount_percent,
        creator_mentions=record.creator_mentions,
        from_creator_directly=record.from_creator_directly,
        detail_url=record.detail_url,
        best_deal=normalize_deal(record.best_deal) if record.best_deal else None,
        all_deals=(
            [normalize_deal(d) for d in record.all_deals] if record.all_deals is not None else None
        ),
        options=_normalize_options(extras),
        images=_normalize_images(extras),
        variants=_normalize_variants(extras),
    )


def normalize_products(raws: Iterable[RawProduct | Mapping[str, Any]] | None) -> list[Product]:
    """Normalize a product list; records that are not valid products are skipped."""
    if not raws:
        return []
    products: list[Product] = []
    for raw in raws:
        try:
            products.append(normalize_product(raw))
        except ValidationError as exc:
            logger.warning(
                "product_record_invalid",
                product_id=raw.get("id") if isinstance(raw, Mapping) else None,
                errors=exc.error_count(),
            )
    return products
