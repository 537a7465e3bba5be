"""Cast Zi Wei Dou Shu charts with py_iztro and reshape them into per-palace reports."""

from .analysis import build_detailed_snapshot, build_natal_summary
from .chart_engine import ChartProvider, build_chart, load_provider, take_snapshot
from .input_parser import load_input, parse_request
from .models import BirthInput, ChartRequest, NatalChart, QueryInput

__all__ = [
    "BirthInput",
    "ChartProvider",
    "ChartRequest",
    "NatalChart",
    "QueryInput",
    "build_chart",
    "build_detailed_snapshot",
    "build_natal_summary",
    "load_input",
    "load_provider",
    "parse_request",
    "take_snapshot",
]
