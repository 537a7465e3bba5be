"""Per-palace report entries merging natal and flow stars."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .mutagen import TagMap, tags_for_star
from .scopes import SCOPE_KEYS, YearlyDecStarContext, scope_role_at_index, scope_stars_at_index

PALACE_ALIASES = {
    "官禄": "事业",
    "仆役": "交友",
}
PALACE_SUFFIX = "宫"
BODY_PALACE_MARKER = "-身宫"


@dataclass
class PalaceContext:
    """Everything built once per snapshot and shared by all 12 palace entries."""

    tag_maps: List[TagMap]
    scope_maps: Dict[str, Dict[str, List[dict]]]
    yearly_dec: YearlyDecStarContext
    snapshot: dict[str, Any]
    include_index_mapping: bool = False


def star_entry_with_tags(star: dict[str, Any], tag_maps: List[TagMap]) -> dict[str, Any]:
    return {
        "name": star.get("name"),
        "type": star.get("type") or None,
        "scope": star.get("scope") or None,
        "brightness": star.get("brightness") or None,
        "mutagen": star.get("mutagen") or None,
        "tags": tags_for_star(star.get("name"), tag_maps),
    }


def _entries(stars: Optional[List[dict]], tag_maps: List[TagMap]) -> List[dict[str, Any]]:
    return [star_entry_with_tags(star, tag_maps) for star in (stars or []) if star]


def palace_display_name(name: str, is_body_palace: bool) -> str:
    """Alias when one exists, a single 宫 suffix, and the body-palace marker."""
    display = PALACE_ALIASES.get(name, name)
    if not display.endswith(PALACE_SUFFIX):
        display += PALACE_SUFFIX
    if is_body_palace:
        display += BODY_PALACE_MARKER
    return display


def build_flow_stars_by_role(palace: dict[str, Any], ctx: PalaceContext) -> Dict[str, List[dict]]:
    name = palace.get("name")
    return {key: _entries(ctx.scope_maps[key].get(name), ctx.tag_maps) for key in SCOPE_KEYS}


def build_flow_stars_by_index(palace: dict[str, Any], ctx: PalaceContext) -> Dict[str, List[dict]]:
    index = palace.get("index")
    return {
        key: _entries(scope_stars_at_index(ctx.snapshot.get(key), index), ctx.tag_maps)
        for key in SCOPE_KEYS
    }


def build_flow_role_at_index(palace: dict[str, Any], ctx: PalaceContext) -> Dict[str, Optional[str]]:
    index = palace.get("index")
    return {key: scope_role_at_index(ctx.snapshot.get(key), index) for key in SCOPE_KEYS}


def _decadal_ganzhi(decadal: Any) -> Optional[str]:
    if not isinstance(decadal, dict):
        return None
    return f"{decadal.get('heavenlyStem') or ''}{decadal.get('earthlyBranch') or ''}" or None


def build_palace_entry(palace: dict[str, Any], ctx: PalaceContext) -> dict[str, Any]:
    """
    Merge one natal palace with every scope of a snapshot.

    Index-keyed fields are always present and None unless index mapping is on.
    """
    name = palace.get("name") or ""
    index = palace.get("index")
    is_body_palace = bool(palace.get("isBodyPalace"))
    decadal = palace.get("decadal")
    decadal_range = decadal.get("range") if isinstance(decadal, dict) else None
    ages = palace.get("ages")
    debug = ctx.include_index_mapping

    return {
        "palaceIndex": index,
        "palaceName": name,
        "palaceAlias": PALACE_ALIASES.get(name),
        "palaceDisplayName": palace_display_name(name, is_body_palace),
        "heavenlyStem": palace.get("heavenlyStem"),
        "earthlyBranch": palace.get("earthlyBranch"),
        "isBodyPalace": is_body_palace,
        "isOriginalPalace": bool(palace.get("isOriginalPalace")),
        "changsheng12": palace.get("changsheng12") or None,
        "boshi12": palace.get("boshi12") or None,
        "jiangqian12": palace.get("jiangqian12") or None,
        "suiqian12": palace.get("suiqian12") or None,
        "yearlyDecStar": ctx.yearly_dec.by_role(name),
        "yearlyDecStarByIndex": ctx.yearly_dec.by_index(index) if debug else None,
        "natal": {
            "majorStars": _entries(palace.get("majorStars"), ctx.tag_maps),
            "minorStars": _entries(palace.get("minorStars"), ctx.tag_maps),
            "adjectiveStars": _entries(palace.get("adjectiveStars"), ctx.tag_maps),
        },
        "flowStarsByRole": build_flow_stars_by_role(palace, ctx),
        "flowStarsByIndex": build_flow_stars_by_index(palace, ctx) if debug else None,
        "flowRoleAtIndex": build_flow_role_at_index(palace, ctx) if debug else None,
        "decadalRange": list(decadal_range) if isinstance(decadal_range, (list, tuple)) else None,
        "decadalGanZhi": _decadal_ganzhi(decadal),
        "ages": list(ages) if isinstance(ages, (list, tuple)) else [],
    }
