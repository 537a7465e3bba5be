"""Command line entry point: request JSON in, reshaped chart JSON out."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, NoReturn

from . import chart_engine, input_parser, output
from .analysis import build_detailed_snapshot, build_natal_summary
from .chart_engine import ChartProvider
from .errors import ZiweiError
from .models import ChartRequest

PROG = "ziwei-chart"
DEFAULT_OUTPUT_DIR = Path("outputs")

log = logging.getLogger(__name__)


def fail(message: str) -> NoReturn:
    """Print one diagnostic line on stderr and exit with status 1."""

    print(f"[{PROG}] {' '.join(str(message).split())}", file=sys.stderr)
    sys.exit(1)


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> NoReturn:
        fail(f"{message}. Usage: {PROG} [--table] [--html out.html] [-v] path/to/input.json")


def _build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog=PROG,
        description="Cast a Zi Wei Dou Shu chart with py_iztro and print a merged per-palace JSON report.",
    )
    parser.add_argument("input", nargs="?", help="Path to the request JSON ({birth: ..., query: ...}).")
    parser.add_argument(
        "--table",
        action="store_true",
        help="Also render the base-date palace report as a table on stderr.",
    )
    parser.add_argument("--html", metavar="PATH", help="Export the base-date palace table to an HTML file.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging on stderr.")
    return parser


def _configure_logging(verbose: bool) -> None:
    from rich.console import Console
    from rich.logging import RichHandler

    if verbose:
        level = logging.DEBUG
    else:
        level = getattr(logging, os.environ.get("ZIWEI_LOG_LEVEL", "WARNING").upper(), logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def resolve_output_path(path_str: str | None) -> Path | None:
    """Bare file names land in outputs/; anything with a directory is used as given."""

    if not path_str:
        return None
    p = Path(path_str).expanduser()
    if not p.is_absolute() and p.parent == Path("."):
        p = DEFAULT_OUTPUT_DIR / p
    p.parent.mkdir(parents=True, exist_ok=True)
    return p


def build_report(
    request: ChartRequest, provider: ChartProvider, generated_at: datetime | None = None
) -> dict[str, Any]:
    """
    Run the chart pipeline for a validated request.

    Snapshots are taken in order: the base date first, then each future date
    as requested. Any failure propagates; nothing partial is returned.
    """
    query = request.query
    chart = chart_engine.build_chart(provider, request.birth)

    current_raw = chart_engine.take_snapshot(chart, query.base_date, query.timezone)
    current_detailed = build_detailed_snapshot(
        chart.data, current_raw, query.base_date, query.include_index_mapping
    )

    future_detailed = []
    for date_text in query.future_dates:
        snapshot_raw = chart_engine.take_snapshot(chart, date_text, query.timezone)
        future_detailed.append(
            build_detailed_snapshot(chart.data, snapshot_raw, date_text, query.include_index_mapping)
        )

    return output.assemble_output(
        request,
        build_natal_summary(chart.data),
        current_detailed,
        future_detailed,
        generated_at=generated_at,
    )


def main(argv: list[str] | None = None) -> None:
    """
    CLI entry point.

    Usage:
        ziwei-chart path/to/input.json
    """

    args = _build_parser().parse_args(argv)
    _configure_logging(args.verbose)

    if not args.input:
        fail(f"Missing input JSON path. Usage: {PROG} path/to/input.json")

    try:
        data = input_parser.load_input(args.input)
        request = input_parser.parse_request(data, default_language=chart_engine.default_language())
        provider = chart_engine.load_provider()
        report = build_report(request, provider)
    except ZiweiError as exc:
        fail(str(exc))

    if args.table:
        output.print_palace_table(report["currentDetailed"])
    if args.html:
        try:
            html_path = resolve_output_path(args.html)
            output.export_palace_table_html(html_path, report["currentDetailed"])
        except OSError as exc:
            fail(f"Cannot write HTML table: {exc}")
        log.info("Palace table written to %s", html_path)

    sys.stdout.write(output.dump_json(report) + "\n")


if __name__ == "__main__":
    main()
