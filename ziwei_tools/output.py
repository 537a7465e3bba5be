"""Output helpers: JSON-safe conversion, document assembly, and rich tables."""

from __future__ import annotations

import json
import math
from collections.abc import Mapping
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Iterable

from .models import ChartRequest

CIRCULAR_MARKER = "[Circular]"
DISCLAIMER = (
    "For cultural study and entertainment reference only. "
    "No true-solar-time correction is applied by default."
)
MAPPING_BY_ROLE = "by_role"
MAPPING_BY_INDEX = "by_index"

_ELIDED = object()


def sanitize_for_json(value: Any) -> Any:
    """
    Return a copy of ``value`` that json.dumps accepts.

    Callables are dropped from mappings and become None inside sequences.
    A container that contains itself renders as "[Circular]".
    """
    result = _sanitize(value, set())
    return None if result is _ELIDED else result


def _sanitize(value: Any, ancestors: set[int]) -> Any:
    if value is None or isinstance(value, (str, bool, int)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if hasattr(value, "model_dump"):
        value = value.model_dump(by_alias=True)
    if callable(value):
        return _ELIDED

    if isinstance(value, (Mapping, list, tuple, set, frozenset)):
        marker = id(value)
        if marker in ancestors:
            return CIRCULAR_MARKER
        ancestors.add(marker)
        try:
            if isinstance(value, Mapping):
                cleaned = {}
                for key, item in value.items():
                    item = _sanitize(item, ancestors)
                    if item is not _ELIDED:
                        cleaned[str(key)] = item
                return cleaned
            items = [_sanitize(item, ancestors) for item in value]
            return [None if item is _ELIDED else item for item in items]
        finally:
            ancestors.discard(marker)

    return str(value)


def iso_timestamp(moment: datetime | None = None) -> str:
    """UTC timestamp with millisecond precision and a trailing Z."""
    moment = (moment or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_normalized_input(request: ChartRequest, base_date_lunar: Any = None) -> dict[str, Any]:
    birth, query = request.birth, request.query
    return {
        "calendar": birth.calendar,
        "birthDate": birth.date,
        "timeIndex": birth.time_index,
        "gender": birth.gender,
        "birthplace": birth.birthplace,
        "birthConfirmed": True,
        "isLeapMonth": birth.is_leap_month,
        "fixLeap": birth.fix_leap,
        "language": birth.language,
        "timezone": query.timezone,
        "baseDateSolar": query.base_date,
        "baseDateLunar": base_date_lunar or None,
        "futureDates": list(query.future_dates),
    }


def build_output_policy(include_index_mapping: bool) -> dict[str, Any]:
    modes = [MAPPING_BY_ROLE, MAPPING_BY_INDEX] if include_index_mapping else [MAPPING_BY_ROLE]
    return {
        "detailLevel": "full",
        "mappingModes": modes,
        "includeIndexMapping": include_index_mapping,
        "requiredConfirmation": True,
        "disclaimer": DISCLAIMER,
    }


def assemble_output(
    request: ChartRequest,
    natal_summary: dict[str, Any],
    current_detailed: dict[str, Any],
    future_detailed: Iterable[dict[str, Any]],
    generated_at: datetime | None = None,
) -> dict[str, Any]:
    """Top-level document; only reshaped data, never the raw chart."""
    document = {
        "generatedAt": iso_timestamp(generated_at),
        "normalizedInput": build_normalized_input(request, current_detailed.get("targetLunarDate")),
        "outputPolicy": build_output_policy(request.query.include_index_mapping),
        "natalSummary": natal_summary,
        "currentDetailed": current_detailed,
        "futureDetailed": list(future_detailed),
    }
    return sanitize_for_json(document)


def dump_json(document: dict[str, Any]) -> str:
    return json.dumps(document, ensure_ascii=False, indent=2)


def _star_text(stars: list[dict[str, Any]]):
    """Comma-joined star names; tagged stars are bold with their tags appended."""
    from rich.text import Text

    text = Text()
    for position, star in enumerate(stars):
        if position:
            text.append(", ")
        label = star.get("name") or "?"
        if star.get("brightness"):
            label += f"({star['brightness']})"
        if star.get("tags"):
            text.append(label, style="bold")
            text.append(" " + "/".join(star["tags"]), style="yellow")
        else:
            text.append(label)
    if not stars:
        text.append("-", style="dim")
    return text


def render_palace_table(console, detailed: dict[str, Any]) -> None:
    """Print the palace report of one detailed snapshot as a rich table."""
    from rich import box
    from rich.table import Table

    title = f"{detailed.get('targetSolarDate')}"
    if detailed.get("targetLunarDate"):
        title += f" ({detailed['targetLunarDate']})"
    table = Table(title=title, box=box.SIMPLE_HEAVY, show_lines=False)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Palace", style="bold cyan", no_wrap=True)
    table.add_column("GanZhi", no_wrap=True)
    table.add_column("Major")
    table.add_column("Minor")
    table.add_column("Yearly flow")
    table.add_column("Suiqian/Jiangqian", no_wrap=True)
    table.add_column("Decadal", no_wrap=True)

    for palace in detailed.get("palaces") or []:
        natal = palace.get("natal") or {}
        dec_star = palace.get("yearlyDecStar") or {}
        decadal_range = palace.get("decadalRange")
        table.add_row(
            str(palace.get("palaceIndex")),
            palace.get("palaceDisplayName") or "",
            f"{palace.get('heavenlyStem') or ''}{palace.get('earthlyBranch') or ''}",
            _star_text(natal.get("majorStars") or []),
            _star_text(natal.get("minorStars") or []),
            _star_text((palace.get("flowStarsByRole") or {}).get("yearly") or []),
            f"{dec_star.get('suiqian12') or '-'}/{dec_star.get('jiangqian12') or '-'}",
            f"{decadal_range[0]}-{decadal_range[1]}" if decadal_range and len(decadal_range) >= 2 else "-",
        )
    console.print(table)


def print_palace_table(detailed: dict[str, Any]) -> None:
    """Render to stderr so stdout stays a clean JSON document."""
    from rich.console import Console

    render_palace_table(Console(stderr=True), detailed)


def export_palace_table_html(path: str | Path, detailed: dict[str, Any]) -> None:
    """Export the palace table to an HTML file with a dark theme."""
    from io import StringIO

    from rich.console import Console
    from rich.theme import Theme

    console = Console(record=True, theme=Theme({}), file=StringIO(), width=160)
    render_palace_table(console, detailed)
    html = console.export_html(inline_styles=True)
    dark_css = """
<style>
html, body { background:#0b0b0b !important; color:#eaeaea !important; }
pre, code {
  background:#0b0b0b !important;
  color:#eaeaea !important;
  white-space: pre;
  font-family:'Noto Sans Mono CJK SC','Noto Sans Mono','DejaVu Sans Mono','Menlo','Consolas',monospace;
}
</style>
""".strip()
    if "</head>" in html:
        html = html.replace("</head>", f"{dark_css}\n</head>", 1)
    else:
        html = f"{dark_css}\n{html}"
    Path(path).write_text(html, encoding="utf-8")
