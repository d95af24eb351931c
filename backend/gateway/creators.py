"""Creator agent registry.

The handlers only need id/slug resolution and the persona text forwarded as
agent metadata. Adding a creator means appending one entry.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class CreatorAgent:
    id: str
    slug: str
    name: str
    persona_prompt: str


CREATOR_AGENTS: tuple[CreatorAgent, ...] = (
    CreatorAgent(
        id="creator_demo_001",
        slug="nina-studio",
        name="Nina Studio",
        persona_prompt=(
            "You are the creator shopping agent for Nina Studio.\n"
            "- Prefer pieces that appeared in Nina's content, or close alternatives\n"
            "  in the same style.\n"
            "- Typical occasions: city commute, weekend coffee, light exercise\n"
            "  (walks, easy runs).\n"
            "- Style: clean, muted colors, comfortable; avoid large logos and loud palettes.\n"
            "When no exact Nina pick exists, search the wider catalog for similar styles and say "
            "clearly that these are same-style alternatives."
        ),
    ),
)


def get_creator_by_slug(slug: str | None) -> CreatorAgent | None:
    return next((c for c in CREATOR_AGENTS if c.slug == slug), None)


def get_creator_by_id(creator_id: str | None) -> CreatorAgent | None:
    return next((c for c in CREATOR_AGENTS if c.id == creator_id), None)
