"""Dataclasses that capture the normalized request and chart data."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

DEFAULT_TIMEZONE = "Asia/Shanghai"
DEFAULT_LANGUAGE = "zh-CN"


@dataclass(frozen=True)
class BirthInput:
    """Validated birth record."""

    calendar: str  # "solar" or "lunar"
    date: str  # Y-M-D without zero padding
    time_index: int  # 0..12, two-hour slots; 12 is the late rat hour
    gender: str  # "male" or "female"
    birthplace: str
    confirmed: bool = True
    is_leap_month: bool = False
    fix_leap: bool = True
    language: str = DEFAULT_LANGUAGE


@dataclass(frozen=True)
class QueryInput:
    """Validated query: which dates to snapshot and how to render them."""

    timezone: str = DEFAULT_TIMEZONE
    base_date: str = ""
    future_dates: tuple[str, ...] = ()
    include_index_mapping: bool = False


@dataclass(frozen=True)
class ChartRequest:
    birth: BirthInput
    query: QueryInput


@dataclass
class NatalChart:
    """
    Chart as returned by a provider.

    ``data`` is the plain-dict astrolabe (metadata plus 12 palace dicts).
    ``horoscope`` maps a moment to a plain-dict snapshot; it is None when the
    library result offers no horoscope accessor.
    """

    data: dict[str, Any]
    horoscope: Optional[Callable[[datetime], dict[str, Any]]] = field(default=None, repr=False)

    @property
    def palaces(self) -> list[dict[str, Any]]:
        return list(self.data.get("palaces") or [])
