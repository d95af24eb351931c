"""PDP payload assembly.

``get_pdp_v2`` answers with a list of typed modules (``canonical``, ``offers``,
``reviews_preview``, ``similar``); older gateways answer with a single
``pdp_payload`` under one of the envelope keys. Both collapse into the same
payload dict, from which ``build_pdp_view`` derives what the UI needs to render
option pickers and the selected variant.
"""

from __future__ import annotations

from typing import Any

import structlog
from pydantic import ValidationError

from gateway.models.contracts import PdpProduct, PdpView, Variant
from gateway.services.agent import unwrap
from gateway.services.mode import detect_mode
from gateway.services.variants import (
    collect_color_options,
    collect_size_options,
    extract_attribute_options,
    extract_beauty_attributes,
    find_variant_by_options,
)

logger = structlog.get_logger()

REVIEWS_MODULE_PRIORITY = 50
RECOMMENDATIONS_MODULE_PRIORITY = 90


def _find_module(modules: list[Any], module_type: str) -> dict[str, Any] | None:
    for module in modules:
        if isinstance(module, dict) and module.get("type") == module_type:
            return module
    return None


def _module_data(modules: list[Any], module_type: str) -> dict[str, Any] | None:
    module = _find_module(modules, module_type)
    data = module.get("data") if module else None
    return data if isinstance(data, dict) else None


def _replace_module(payload: dict[str, Any], module: dict[str, Any]) -> None:
    module_type = module["type"]
    kept = [
        m for m in payload["modules"] if not (isinstance(m, dict) and m.get("type") == module_type)
    ]
    payload["modules"] = [*kept, module]


def _clean_str(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def pick_pdp_v2_payload(raw: Any) -> dict[str, Any] | None:
    """Flatten a module-based ``get_pdp_v2`` response into one PDP payload."""
    if not isinstance(raw, dict):
        return None
    modules = raw.get("modules") if isinstance(raw.get("modules"), list) else []

    canonical = _module_data(modules, "canonical")
    base = canonical.get("pdp_payload") if canonical else None
    if not isinstance(base, dict):
        return None

    payload: dict[str, Any] = dict(base)
    if isinstance(base.get("product"), dict):
        payload["product"] = dict(base["product"])
    payload["modules"] = list(base["modules"]) if isinstance(base.get("modules"), list) else []
    payload["actions"] = list(base["actions"]) if isinstance(base.get("actions"), list) else []

    subject = raw.get("subject") if isinstance(raw.get("subject"), dict) else {}
    subject_group_id = ""
    if str(subject.get("type") or "").strip().lower() == "product_group":
        subject_group_id = str(subject.get("id") or "").strip()
    product_group_id = _clean_str(canonical.get("product_group_id")) or subject_group_id
    if product_group_id:
        payload["product_group_id"] = product_group_id

    offers_data = _module_data(modules, "offers")
    if offers_data:
        offers = offers_data.get("offers") if isinstance(offers_data.get("offers"), list) else None
        if offers is not None:
            payload["offers"] = offers
        offers_count = offers_data.get("offers_count")
        if not isinstance(offers_count, (int, float)) or isinstance(offers_count, bool):
            offers_count = len(offers) if offers is not None else payload.get("offers_count")
        if offers_count is not None:
            payload["offers_count"] = offers_count
        for key in ("default_offer_id", "best_price_offer_id"):
            if isinstance(offers_data.get(key), str):
                payload[key] = offers_data[key]
        if not payload.get("product_group_id") and _clean_str(offers_data.get("product_group_id")):
            payload["product_group_id"] = _clean_str(offers_data.get("product_group_id"))

    reviews_data = _module_data(modules, "reviews_preview")
    if reviews_data:
        _replace_module(
            payload,
            {
                "module_id": "reviews_preview",
                "type": "reviews_preview",
                "priority": REVIEWS_MODULE_PRIORITY,
                "title": "Reviews",
                "data": reviews_data,
            },
        )

    similar_data = _module_data(modules, "similar")
    if similar_data:
        _replace_module(
            payload,
            {
                "module_id": "recommendations",
                "type": "recommendations",
                "priority": RECOMMENDATIONS_MODULE_PRIORITY,
                "title": "Similar",
                "data": similar_data,
            },
        )
        payload["x_recommendations_state"] = "ready"

    return payload


def pick_pdp_payload(raw: Any) -> dict[str, Any] | None:
    """Legacy ``pdp_payload`` lookup through the standard envelope strategies."""
    payload = unwrap(raw, "pdp_payload")
    return payload if isinstance(payload, dict) else None


def extract_pdp_payload(raw: Any) -> dict[str, Any] | None:
    return pick_pdp_v2_payload(raw) or pick_pdp_payload(raw)


def _parse_product(raw: Any) -> PdpProduct:
    """Validate the product record, dropping variants that cannot be read on their own."""
    record = dict(raw) if isinstance(raw, dict) else {}
    raw_variants = record.pop("variants", None)
    try:
        product = PdpProduct.model_validate(record)
    except ValidationError as exc:
        logger.warning("pdp_product_unparseable", error=str(exc))
        product = PdpProduct()

    variants: list[Variant] = []
    for raw_variant in raw_variants if isinstance(raw_variants, list) else []:
        try:
            variants.append(Variant.model_validate(raw_variant))
        except ValidationError as exc:
            logger.warning(
                "pdp_variant_invalid",
                variant_id=raw_variant.get("variant_id") if isinstance(raw_variant, dict) else None,
                errors=exc.error_count(),
            )
    product.variants = variants
    return product


def build_pdp_view(
    payload: dict[str, Any],
    color: str | None = None,
    size: str | None = None,
) -> PdpView:
    """Derive mode, option vocabularies and the selected variant for a payload.

    An explicit color/size selection resolves through exact matching; without
    one, the payload's ``default_variant_id`` (else the first variant) is the
    selection. A selection that matches nothing leaves ``selected_variant_id``
    unset.
    """
    product = _parse_product(payload.get("product"))

    variants = product.variants
    if color or size:
        selected = find_variant_by_options(variants, color=color, size=size)
    else:
        default_id = product.default_variant_id or (variants[0].variant_id if variants else None)
        selected = next((v for v in variants if v.variant_id == default_id), None)

    mode = detect_mode(product)
    view = PdpView(
        mode=mode,
        color_options=collect_color_options(variants),
        size_options=collect_size_options(variants),
        selected_variant_id=selected.variant_id if selected else None,
    )
    if selected is not None:
        view.attributes = extract_attribute_options(selected)
        if mode == "beauty":
            view.beauty_attributes = extract_beauty_attributes(selected)
    return view
