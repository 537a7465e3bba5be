"""Mutagen (四化) tag maps keyed by star name."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

MUTAGEN_LABELS = ["禄", "权", "科", "忌"]
NATAL_LABEL = "本命"

# Scopes whose 4-slot mutagen list produces tags, with their tag prefix.
# The age (小限) layer carries no tags of its own.
SCOPE_TAG_LABELS = {
    "decadal": "大限",
    "yearly": "流年",
    "monthly": "流月",
    "daily": "流日",
    "hourly": "流时",
}

TagMap = Dict[str, List[str]]


def build_mutagen_map(star_names: Optional[Iterable[Optional[str]]], scope_label: str) -> TagMap:
    """
    Label a scope's mutagen slots positionally: slot 0 -> 禄, 1 -> 权, 2 -> 科, 3 -> 忌.

    Empty slots yield no tag.
    """
    tags: TagMap = {}
    for index, star_name in enumerate(star_names or []):
        if not star_name:
            continue
        label = MUTAGEN_LABELS[index] if index < len(MUTAGEN_LABELS) else str(index)
        tags.setdefault(star_name, []).append(f"{scope_label}{label}")
    return tags


def collect_natal_mutagen_tags(palaces: Iterable[dict[str, Any]]) -> TagMap:
    """Scan every palace's major and minor stars for a natal mutagen."""
    tags: TagMap = {}
    for palace in palaces:
        stars = list(palace.get("majorStars") or []) + list(palace.get("minorStars") or [])
        for star in stars:
            name = (star or {}).get("name")
            mutagen = (star or {}).get("mutagen")
            if not name or not mutagen:
                continue
            tags.setdefault(name, []).append(f"{NATAL_LABEL}{mutagen}")
    return tags


def build_all_mutagen_maps(natal: dict[str, Any], snapshot: dict[str, Any]) -> list[TagMap]:
    """Natal map first, then one map per tagged scope in SCOPE_TAG_LABELS order."""
    maps = [collect_natal_mutagen_tags(natal.get("palaces") or [])]
    for scope_key, label in SCOPE_TAG_LABELS.items():
        scope = snapshot.get(scope_key) or {}
        maps.append(build_mutagen_map(scope.get("mutagen"), label))
    return maps


def tags_for_star(star_name: Optional[str], tag_maps: list[TagMap]) -> list[str]:
    """Union of tags across all maps; a name present in several scopes collects each tag."""
    tags: list[str] = []
    if not star_name:
        return tags
    for tag_map in tag_maps:
        tags.extend(tag_map.get(star_name, []))
    return tags
