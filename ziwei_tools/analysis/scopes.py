"""Per-scope lookups: flow stars and role names by palace role or position."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

SCOPE_KEYS = ["decadal", "age", "yearly", "monthly", "daily", "hourly"]


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


def build_scope_palace_map(scope: Optional[dict[str, Any]]) -> Dict[str, List[dict]]:
    """Zip a scope's ``palaceNames`` with its ``stars`` positionally: role name -> stars."""
    scope = scope or {}
    palace_names = _as_list(scope.get("palaceNames"))
    stars = _as_list(scope.get("stars"))

    mapping: Dict[str, List[dict]] = {}
    for index, role_name in enumerate(palace_names):
        mapping[role_name] = (stars[index] if index < len(stars) else None) or []
    return mapping


def build_all_scope_palace_maps(snapshot: dict[str, Any]) -> Dict[str, Dict[str, List[dict]]]:
    return {key: build_scope_palace_map(snapshot.get(key)) for key in SCOPE_KEYS}


def scope_stars_at_index(scope: Optional[dict[str, Any]], index: int) -> List[dict]:
    stars = _as_list((scope or {}).get("stars"))
    if not isinstance(index, int) or not 0 <= index < len(stars):
        return []
    return stars[index] or []


def scope_role_at_index(scope: Optional[dict[str, Any]], index: int) -> Optional[str]:
    palace_names = _as_list((scope or {}).get("palaceNames"))
    if not isinstance(index, int) or not 0 <= index < len(palace_names):
        return None
    return palace_names[index] or None


@dataclass
class YearlyDecStarContext:
    """
    岁前十二神 / 将前十二神 for the yearly scope.

    Both the role-keyed and the index-keyed views read these same sequences.
    """

    suiqian: List[Optional[str]] = field(default_factory=list)
    jiangqian: List[Optional[str]] = field(default_factory=list)
    index_by_palace: Dict[str, int] = field(default_factory=dict)

    def _at(self, index: Optional[int]) -> dict[str, Optional[str]]:
        if not isinstance(index, int):
            return {"suiqian12": None, "jiangqian12": None}
        return {
            "suiqian12": (self.suiqian[index] if 0 <= index < len(self.suiqian) else None) or None,
            "jiangqian12": (self.jiangqian[index] if 0 <= index < len(self.jiangqian) else None) or None,
        }

    def by_role(self, palace_name: str) -> dict[str, Optional[str]]:
        return self._at(self.index_by_palace.get(palace_name))

    def by_index(self, index: int) -> dict[str, Optional[str]]:
        return self._at(index)


def build_yearly_dec_star_context(snapshot: dict[str, Any]) -> YearlyDecStarContext:
    yearly = snapshot.get("yearly") or {}
    dec_star = yearly.get("yearlyDecStar") or {}
    index_by_palace: Dict[str, int] = {}
    for index, name in enumerate(_as_list(yearly.get("palaceNames"))):
        index_by_palace[name] = index
    return YearlyDecStarContext(
        suiqian=_as_list(dec_star.get("suiqian12")),
        jiangqian=_as_list(dec_star.get("jiangqian12")),
        index_by_palace=index_by_palace,
    )
