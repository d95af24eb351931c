"""Variant option lookup and selection resolution.

Upstream option names are free text ("Color", "Shade Name", "Colour Way"), so
every lookup is a case-insensitive substring match against a small key set.
The vocabulary (which colors / sizes exist) is inferred from the variants that
are actually present.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from gateway.models.contracts import LabeledAttribute, NamedAttribute, Variant

COLOR_KEYS: tuple[str, ...] = ("color", "colour", "shade", "tone")
SIZE_KEYS: tuple[str, ...] = ("size", "fit")

# (label, option-name keys, beauty_meta field)
BEAUTY_ATTRIBUTES: tuple[tuple[str, tuple[str, ...], str], ...] = (
    ("Finish", ("finish", "texture"), "finish"),
    ("Coverage", ("coverage",), "coverage"),
    ("Undertone", ("undertone", "tone"), "undertone"),
)

MAX_DISPLAY_ATTRIBUTES = 3


def _matches_key(name: str, keys: Iterable[str]) -> bool:
    lowered = name.lower()
    return any(key in lowered for key in keys)


def get_option_value(variant: Variant, keys: Iterable[str]) -> str | None:
    """Value of the first option whose name contains any of ``keys``."""
    keys = tuple(k.lower() for k in keys)
    for option in variant.options:
        if option.name and _matches_key(option.name, keys):
            return option.value
    return None


def collect_option_values(variants: Sequence[Variant], keys: Iterable[str]) -> list[str]:
    keys = tuple(keys)
    values: dict[str, None] = {}
    for variant in variants:
        value = get_option_value(variant, keys)
        if value:
            values[value] = None
    return list(values)


def collect_color_options(variants: Sequence[Variant]) -> list[str]:
    return collect_option_values(variants, COLOR_KEYS)


def collect_size_options(variants: Sequence[Variant]) -> list[str]:
    return collect_option_values(variants, SIZE_KEYS)


def find_variant_by_options(
    variants: Sequence[Variant],
    color: str | None = None,
    size: str | None = None,
) -> Variant | None:
    """First variant matching every requested dimension exactly.

    A dimension that was not requested matches anything. Requesting neither
    is "nothing to resolve" and returns None rather than an arbitrary variant.
    """
    if not color and not size:
        return None

    for variant in variants:
        if color and get_option_value(variant, COLOR_KEYS) != color:
            continue
        if size and get_option_value(variant, SIZE_KEYS) != size:
            continue
        return variant
    return None


def extract_attribute_options(variant: Variant) -> list[NamedAttribute]:
    """Up to three options that are not color, size or a beauty attribute."""
    result: list[NamedAttribute] = []
    for option in variant.options:
        if not option.name or not option.value:
            continue
        if _matches_key(option.name, COLOR_KEYS) or _matches_key(option.name, SIZE_KEYS):
            continue
        if any(_matches_key(option.name, keys) for _, keys, _ in BEAUTY_ATTRIBUTES):
            continue
        result.append(NamedAttribute(name=option.name, value=option.value))
    return result[:MAX_DISPLAY_ATTRIBUTES]


def extract_beauty_attributes(variant: Variant) -> list[LabeledAttribute]:
    """Finish / Coverage / Undertone, preferring beauty_meta over option text."""
    items: list[LabeledAttribute] = []
    for label, keys, meta_field in BEAUTY_ATTRIBUTES:
        from_meta = getattr(variant.beauty_meta, meta_field, None) if variant.beauty_meta else None
        value = from_meta or get_option_value(variant, keys)
        if value:
            items.append(LabeledAttribute(label=label, value=str(value)))
    return items
