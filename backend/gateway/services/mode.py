"""Beauty vs generic PDP classification.

A best-effort keyword heuristic, not a taxonomy: any keyword contained anywhere
in the product's text fields selects the beauty vocabulary.
"""

from __future__ import annotations

from gateway.models.contracts import PdpMode, PdpProduct

BEAUTY_KEYWORDS: tuple[str, ...] = (
    "beauty",
    "makeup",
    "cosmetic",
    "skincare",
    "lip",
    "lips",
    "lipstick",
    "foundation",
    "concealer",
    "blush",
    "mascara",
    "eyeshadow",
    "fragrance",
    "perfume",
)


def _product_text(product: PdpProduct) -> str:
    brand_name = product.brand.name if product.brand else None
    parts = [
        " ".join(product.category_path),
        product.title or "",
        product.subtitle or "",
        brand_name or "",
        " ".join(product.tags),
        product.department or "",
    ]
    return " ".join(parts).lower()


def detect_mode(product: PdpProduct) -> PdpMode:
    text = _product_text(product)
    if any(keyword in text for keyword in BEAUTY_KEYWORDS):
        return "beauty"
    return "generic"


def is_beauty_product(product: PdpProduct) -> bool:
    return detect_mode(product) == "beauty"
