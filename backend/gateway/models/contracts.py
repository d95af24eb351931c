"""Gateway contract models.

Upstream shapes (``Raw*``, PDP records) are snake_case and tolerate extra keys.
UI-facing shapes (``Product`` and friends) keep snake_case attribute names but
serialize in camelCase; dump them with ``by_alias=True, exclude_none=True`` so
that absent optional fields stay absent.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

PdpMode = Literal["beauty", "generic"]

_UI_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True)
_UPSTREAM_CONFIG = ConfigDict(extra="allow", coerce_numbers_to_str=True)


# === Upstream product records ===


class RawProduct(BaseModel):
    """Product record as the agent / creator backends send it."""

    model_config = _UPSTREAM_CONFIG

    id: str
    title: str
    description: str
    price: float
    currency: str
    image_url: str
    inventory_quantity: int
    merchant_id: str | None = None
    merchant_name: str | None = None
    discount_percent: float | None = None
    creator_mentions: int | None = None
    from_creator_directly: bool | None = None
    detail_url: str | None = None
    best_deal: dict[str, Any] | None = None
    all_deals: list[dict[str, Any]] | None = None


# === Canonical (UI) product ===


class Deal(BaseModel):
    """A multi-buy discount or a flash sale, exactly as upstream described it."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, coerce_numbers_to_str=True
    )

    deal_id: str | None = None
    # Usually MULTI_BUY_DISCOUNT or FLASH_SALE; other upstream strings are kept.
    type: str | None = None
    label: str | None = None
    discount_percent: float | None = None
    threshold_quantity: int | None = None
    flash_price: float | None = None
    end_at: str | None = None
    urgency_level: str | None = None

    @property
    def is_flash_sale(self) -> bool:
        return self.type == "FLASH_SALE"


class ProductOption(BaseModel):
    model_config = _UI_CONFIG

    name: str
    values: list[str]


class ProductVariant(BaseModel):
    model_config = _UI_CONFIG

    id: str
    title: str = ""
    price: float | None = None
    sku: str | None = None
    inventory_quantity: int | None = None
    options: dict[str, str] | None = None
    image_url: str | None = None


class Product(BaseModel):
    model_config = _UI_CONFIG

    id: str
    title: str
    description: str
    price: float
    currency: str
    image_url: str
    inventory_quantity: int
    merchant_id: str | None = None
    merchant_name: str | None = None
    discount_percent: float | None = None
    creator_mentions: int | None = None
    from_creator_directly: bool | None = None
    detail_url: str | None = None
    best_deal: Deal | None = None
    all_deals: list[Deal] | None = None
    options: list[ProductOption] | None = None
    images: list[str] | None = None
    variants: list[ProductVariant] | None = None

    def to_ui(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# === PDP records ===


def _none_to_empty_list(value: Any) -> Any:
    return [] if value is None else value


class VariantOption(BaseModel):
    model_config = _UPSTREAM_CONFIG

    name: str | None = None
    value: str | None = None


class BeautyMeta(BaseModel):
    model_config = ConfigDict(extra="allow")

    shade_hex: str | None = None
    finish: str | None = None
    coverage: str | None = None
    undertone: str | None = None


class Variant(BaseModel):
    model_config = _UPSTREAM_CONFIG

    variant_id: str
    title: str = ""
    options: list[VariantOption] = []
    beauty_meta: BeautyMeta | None = None

    @field_validator("title", mode="before")
    @classmethod
    def _title_none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("options", mode="before")
    @classmethod
    def _keep_object_options(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return _none_to_empty_list(value)
        return [option for option in value if isinstance(option, dict)]


class Brand(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str | None = None


class PdpProduct(BaseModel):
    model_config = _UPSTREAM_CONFIG

    product_id: str | None = None
    title: str | None = None
    subtitle: str | None = None
    brand: Brand | None = None
    category_path: list[str] = []
    tags: list[str] = []
    department: str | None = None
    default_variant_id: str | None = None
    variants: list[Variant] = []

    @field_validator("category_path", "tags", mode="before")
    @classmethod
    def _drop_missing_entries(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return _none_to_empty_list(value)
        return [entry for entry in value if entry is not None]

    @field_validator("variants", mode="before")
    @classmethod
    def _variants_none_to_empty(cls, value: Any) -> Any:
        return _none_to_empty_list(value)


class LabeledAttribute(BaseModel):
    label: str
    value: str


class NamedAttribute(BaseModel):
    name: str
    value: str


class PdpView(BaseModel):
    """What the gateway derives from a PDP payload for the UI."""

    mode: PdpMode
    color_options: list[str] = []
    size_options: list[str] = []
    selected_variant_id: str | None = None
    attributes: list[NamedAttribute] = []
    beauty_attributes: list[LabeledAttribute] = []


# === Inbound request bodies ===


class ChatMessage(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str


class SearchOptions(BaseModel):
    # Floats are accepted and floored by the agent client.
    page: float | None = None
    limit: float | None = None
    query: str | None = None


class CreatorAgentRequest(BaseModel):
    model_config = _UI_CONFIG

    creator_id: str | None = None
    messages: list[ChatMessage] = []
    user_id: str | None = None
    recent_queries: list[str] | None = None
    trace_id: str | None = None
    search: SearchOptions | None = None


class PdpRequest(BaseModel):
    model_config = _UI_CONFIG

    merchant_id: str | None = None
    product_id: str | None = None
    include: list[str] | None = None
    debug: bool = False
    color: str | None = None
    size: str | None = None


class ProductRefRequest(BaseModel):
    model_config = _UI_CONFIG

    merchant_id: str | None = None
    product_id: str | None = None


class SimilarProductsRequest(BaseModel):
    model_config = _UI_CONFIG

    creator_slug: str | None = None
    product_id: str | None = None
    limit: int | None = None


class RecommendationsRequest(BaseModel):
    model_config = _UI_CONFIG

    merchant_id: str | None = None
    product_id: str | None = None
    limit: float | None = None
    debug: bool = False
    cache_bypass: bool = False


class ResolveCandidatesRequest(BaseModel):
    model_config = _UI_CONFIG

    product_id: str | None = None
    merchant_id: str | None = None
    country: str | None = None
    postal_code: str | None = None
    limit: float | None = None
    debug: bool = False
    cache_bypass: bool = False


# === Outbound response bodies ===


class PageInfo(BaseModel):
    page: int
    page_size: int
    total: int | None = None
    has_more: bool


class CreatorAgentResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    reply: str
    products: list[dict[str, Any]] = []
    page_info: PageInfo | None = None
    raw_agent_response: Any = Field(default=None, alias="rawAgentResponse")
    agent_url_used: str = Field(alias="agentUrlUsed")


class RecommendationItem(BaseModel):
    product_id: str
    title: str
    image_url: str | None = None
    merchant_id: str | None = None
    price: dict[str, Any] | None = None
    rating: float | None = None
    review_count: int | None = None
