"""Loading and validation of the JSON request file."""

from __future__ import annotations

import json
import logging
import re
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .errors import InputFileError, ValidationError
from .models import DEFAULT_LANGUAGE, DEFAULT_TIMEZONE, BirthInput, ChartRequest, QueryInput

log = logging.getLogger(__name__)

YMD_PATTERN = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
LUNAR_MAX_DAY = 30
SOLAR_MAX_DAY = 31
MAX_TIME_INDEX = 12
NOON_HOUR = 12


def load_input(path: str | Path) -> dict[str, Any]:
    """Read the request file and parse it as JSON."""
    file_path = Path(path).expanduser().resolve()
    try:
        raw_text = file_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise InputFileError(f"Input file not found: {file_path}") from None
    except (OSError, UnicodeDecodeError) as exc:
        raise InputFileError(f"Cannot read input file: {exc}") from exc

    try:
        data = json.loads(raw_text)
    except json.JSONDecodeError as exc:
        raise InputFileError(f"Invalid JSON in input file: {exc}") from exc

    if not isinstance(data, dict):
        raise InputFileError("Input file must contain a JSON object.")
    log.debug("Loaded request from %s", file_path)
    return data


def normalize_ymd(date_text: Any, field_name: str, is_lunar: bool = False) -> str:
    """
    Normalize a YYYY-M-D / YYYY-MM-DD string to YYYY-M-D.

    Lunar dates only get the 1..30 day bound; lunar month lengths cannot be
    checked against the Gregorian calendar. Solar dates must exist.
    """
    if not isinstance(date_text, str):
        raise ValidationError(field_name, "must be a string in YYYY-M-D or YYYY-MM-DD.")

    match = YMD_PATTERN.match(date_text.strip())
    if not match:
        raise ValidationError(field_name, "must match YYYY-M-D or YYYY-MM-DD.")

    year, month, day = (int(part) for part in match.groups())
    if not 1 <= month <= 12:
        raise ValidationError(field_name, "month must be 1..12.")

    max_day = LUNAR_MAX_DAY if is_lunar else SOLAR_MAX_DAY
    if not 1 <= day <= max_day:
        raise ValidationError(field_name, f"day must be 1..{max_day}.")

    if not is_lunar:
        try:
            date(year, month, day)
        except ValueError:
            raise ValidationError(field_name, "is not a valid calendar date.") from None

    return f"{year}-{month}-{day}"


def resolve_zone(tz_name: Any) -> ZoneInfo:
    if not isinstance(tz_name, str) or not tz_name.strip():
        raise ValidationError("query.timezone", "must be a non-empty IANA timezone name.")
    try:
        return ZoneInfo(tz_name.strip())
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError("query.timezone", f"is not a known IANA timezone: {tz_name}") from None


def date_in_timezone(tz_name: str, instant: datetime | None = None) -> str:
    """Calendar date (Y-M-D) of ``instant`` (default: now) as seen in ``tz_name``."""
    zone = resolve_zone(tz_name)
    if instant is None:
        instant = datetime.now(timezone.utc)
    elif instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    local = instant.astimezone(zone)
    return f"{local.year}-{local.month}-{local.day}"


def local_noon(date_text: str, tz_name: str = DEFAULT_TIMEZONE) -> datetime:
    """Noon of a normalized Y-M-D date in ``tz_name``."""
    year, month, day = (int(part) for part in date_text.split("-"))
    return datetime(year, month, day, NOON_HOUR, 0, 0, tzinfo=resolve_zone(tz_name))


def parse_time_index(value: Any) -> int:
    field_name = "birth.timeIndex"
    if isinstance(value, bool):
        raise ValidationError(field_name, "must be an integer from 0 to 12.")
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            raise ValidationError(field_name, "must be an integer from 0 to 12.") from None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if not isinstance(value, int) or not 0 <= value <= MAX_TIME_INDEX:
        raise ValidationError(field_name, "must be an integer from 0 to 12.")
    return value


def _optional_bool(section: dict[str, Any], key: str, default: bool, prefix: str) -> bool:
    value = section.get(key)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ValidationError(f"{prefix}.{key}", "must be true or false.")
    return value


def parse_birth(raw: Any, default_language: str = DEFAULT_LANGUAGE) -> BirthInput:
    """Validate the ``birth`` section."""
    birth = raw if isinstance(raw, dict) else {}

    calendar = birth.get("calendar")
    if calendar not in ("solar", "lunar"):
        raise ValidationError("birth.calendar", "must be either solar or lunar.")

    # policy gate: only a literal JSON true passes
    if birth.get("confirmed") is not True:
        raise ValidationError("birth.confirmed", "must be true before generating chart output.")

    birth_date = normalize_ymd(birth.get("date"), "birth.date", is_lunar=calendar == "lunar")
    time_index = parse_time_index(birth.get("timeIndex"))

    gender = birth.get("gender")
    gender = gender.strip().lower() if isinstance(gender, str) else ""
    if gender not in ("male", "female"):
        raise ValidationError("birth.gender", "must be male or female.")

    birthplace = birth.get("birthplace")
    birthplace = birthplace.strip() if isinstance(birthplace, str) else ""
    if not birthplace:
        raise ValidationError("birth.birthplace", "must be a non-empty string.")

    language = birth.get("language") or default_language
    if not isinstance(language, str):
        raise ValidationError("birth.language", "must be a language tag such as zh-CN.")

    return BirthInput(
        calendar=calendar,
        date=birth_date,
        time_index=time_index,
        gender=gender,
        birthplace=birthplace,
        confirmed=True,
        is_leap_month=_optional_bool(birth, "isLeapMonth", False, "birth"),
        fix_leap=_optional_bool(birth, "fixLeap", True, "birth"),
        language=language,
    )


def parse_query(raw: Any, now: datetime | None = None) -> QueryInput:
    """Validate the optional ``query`` section, resolving "today" in its timezone."""
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValidationError("query", "must be an object when present.")

    tz_name = raw.get("timezone") or DEFAULT_TIMEZONE
    tz_name = resolve_zone(tz_name).key

    base_raw = raw.get("baseDate")
    if not base_raw or base_raw == "today":
        base_date = date_in_timezone(tz_name, now)
        log.debug("Resolved base date 'today' in %s to %s", tz_name, base_date)
    else:
        base_date = normalize_ymd(base_raw, "query.baseDate")

    future_raw = raw.get("futureDates")
    if future_raw is None:
        future_raw = []
    if not isinstance(future_raw, list):
        raise ValidationError("query.futureDates", "must be a list of dates.")
    future_dates = tuple(
        normalize_ymd(value, f"query.futureDates[{index}]") for index, value in enumerate(future_raw)
    )

    debug = raw.get("debug")
    include_index_mapping = isinstance(debug, dict) and debug.get("includeIndexMapping") is True

    return QueryInput(
        timezone=tz_name,
        base_date=base_date,
        future_dates=future_dates,
        include_index_mapping=include_index_mapping,
    )


def parse_request(
    data: dict[str, Any],
    now: datetime | None = None,
    default_language: str = DEFAULT_LANGUAGE,
) -> ChartRequest:
    """Validate a loaded request document into a ChartRequest."""
    return ChartRequest(
        birth=parse_birth(data.get("birth"), default_language=default_language),
        query=parse_query(data.get("query"), now=now),
    )
