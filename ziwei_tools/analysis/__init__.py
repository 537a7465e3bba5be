from __future__ import annotations

from typing import Any, List

from ..output import sanitize_for_json
from .mutagen import build_all_mutagen_maps
from .palaces import PalaceContext, build_palace_entry
from .scopes import SCOPE_KEYS, build_all_scope_palace_maps, build_yearly_dec_star_context

NATAL_SUMMARY_KEYS = [
    "gender",
    "solarDate",
    "lunarDate",
    "chineseDate",
    "rawDates",
    "time",
    "timeRange",
    "sign",
    "zodiac",
    "earthlyBranchOfBodyPalace",
    "earthlyBranchOfSoulPalace",
    "soul",
    "body",
    "fiveElementsClass",
]


def build_detailed_palace_report(
    natal: dict[str, Any], snapshot: dict[str, Any], include_index_mapping: bool = False
) -> List[dict[str, Any]]:
    """
    Build one merged entry per natal palace:
    - natal major/minor/adjective stars with mutagen tags
    - flow stars of every scope addressed by palace role
    - 岁前/将前 yearly stars by role
    - index-keyed views of the same data when include_index_mapping is set
    """
    ctx = PalaceContext(
        tag_maps=build_all_mutagen_maps(natal, snapshot),
        scope_maps=build_all_scope_palace_maps(snapshot),
        yearly_dec=build_yearly_dec_star_context(snapshot),
        snapshot=snapshot,
        include_index_mapping=include_index_mapping,
    )
    return [build_palace_entry(palace, ctx) for palace in natal.get("palaces") or []]


def build_detailed_snapshot(
    natal: dict[str, Any],
    snapshot: dict[str, Any],
    target_solar_date: str,
    include_index_mapping: bool = False,
) -> dict[str, Any]:
    """Reshape one horoscope snapshot; pure function of its arguments."""
    detailed: dict[str, Any] = {
        "targetSolarDate": target_solar_date,
        "targetLunarDate": snapshot.get("lunarDate") or None,
    }
    for key in ("age", "decadal", "yearly", "monthly", "daily", "hourly"):
        detailed[key] = sanitize_for_json(snapshot.get(key) or None)
    detailed["palaces"] = build_detailed_palace_report(natal, snapshot, include_index_mapping)
    return detailed


def build_natal_summary(natal: dict[str, Any]) -> dict[str, Any]:
    """Chart-level metadata only; the palaces array is left out."""
    return {key: sanitize_for_json(natal.get(key) or None) for key in NATAL_SUMMARY_KEYS}


__all__ = [
    "SCOPE_KEYS",
    "build_detailed_palace_report",
    "build_detailed_snapshot",
    "build_natal_summary",
]
