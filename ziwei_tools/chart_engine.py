"""py_iztro wrapper: natal chart construction and horoscope snapshots."""

from __future__ import annotations

import importlib
import logging
import os
from datetime import datetime
from typing import Any, Protocol

from .errors import ChartDataError, IncompatibleDependencyError, MissingDependencyError
from .input_parser import local_noon
from .models import DEFAULT_LANGUAGE, BirthInput, NatalChart

log = logging.getLogger(__name__)

LIBRARY_MODULE = "py_iztro"
PALACE_COUNT = 12
# py_iztro accepts the Chinese gender names in every output language.
GENDER_NAMES = {"male": "男", "female": "女"}


class ChartProvider(Protocol):
    """The two chart-construction entry points the pipeline depends on."""

    def by_solar(
        self, date: str, time_index: int, gender: str, fix_leap: bool, language: str
    ) -> NatalChart:
        ...

    def by_lunar(
        self,
        date: str,
        time_index: int,
        gender: str,
        is_leap_month: bool,
        fix_leap: bool,
        language: str,
    ) -> NatalChart:
        ...


def default_language() -> str:
    """Chart language used when the birth record does not name one."""

    return os.environ.get("ZIWEI_LANGUAGE") or DEFAULT_LANGUAGE


def time_index_for_hour(hour: int) -> int:
    """
    Map a clock hour to iztro's two-hour slot index.

    0 is the early rat hour (00:00-01:00), 12 the late rat hour (23:00-24:00).
    """
    if hour == 23:
        return 12
    return (hour + 1) // 2


def _plain(value: Any) -> dict[str, Any]:
    """Return the alias-keyed dict form of a py_iztro pydantic result."""

    if hasattr(value, "model_dump"):
        return value.model_dump(by_alias=True)
    if isinstance(value, dict):
        return value
    raise ChartDataError(f"Unexpected chart library result type: {type(value).__name__}")


class IztroChartProvider:
    """
    ChartProvider backed by ``py_iztro.Astro``.

    ``Astro.by_lunar`` has no leap-month parameter and forwards ``fix_leap``
    into iztro's isLeapMonth slot, so lunar charts call the wrapped iztro
    object's ``byLunar`` directly and build the model with ``astrolabe_model``.
    """

    def __init__(self, astro: Any, astrolabe_model: Any) -> None:
        self._astro = astro
        self._astrolabe_model = astrolabe_model

    def by_solar(
        self, date: str, time_index: int, gender: str, fix_leap: bool = True, language: str = DEFAULT_LANGUAGE
    ) -> NatalChart:
        try:
            astrolabe = self._astro.by_solar(date, time_index, GENDER_NAMES[gender], fix_leap, language)
        except Exception as exc:
            raise ChartDataError(f"chart library failed for solar date {date}: {exc}") from exc
        return self._wrap(astrolabe)

    def by_lunar(
        self,
        date: str,
        time_index: int,
        gender: str,
        is_leap_month: bool = False,
        fix_leap: bool = True,
        language: str = DEFAULT_LANGUAGE,
    ) -> NatalChart:
        js_astro = getattr(self._astro, "_astro", None)
        if js_astro is None or not callable(getattr(js_astro, "byLunar", None)):
            raise IncompatibleDependencyError("py_iztro API incompatible: Astro._astro.byLunar not found")
        try:
            raw = js_astro.byLunar(date, time_index, GENDER_NAMES[gender], is_leap_month, fix_leap, language)
            astrolabe = self._astrolabe_model.from_js_astro_obj(raw)
        except Exception as exc:
            raise ChartDataError(f"chart library failed for lunar date {date}: {exc}") from exc
        return self._wrap(astrolabe)

    @staticmethod
    def _wrap(astrolabe: Any) -> NatalChart:
        accessor = getattr(astrolabe, "horoscope", None)
        if not callable(accessor):
            return NatalChart(data=_plain(astrolabe), horoscope=None)

        def horoscope(moment: datetime) -> dict[str, Any]:
            date_text = f"{moment.year}-{moment.month}-{moment.day}"
            try:
                raw = accessor(date_text, time_index_for_hour(moment.hour))
            except Exception as exc:
                raise ChartDataError(f"chart library failed for horoscope {date_text}: {exc}") from exc
            return _plain(raw)

        return NatalChart(data=_plain(astrolabe), horoscope=horoscope)


def load_provider() -> IztroChartProvider:
    """
    Import py_iztro and check its API shape.

    Raises MissingDependencyError when the package is absent and
    IncompatibleDependencyError when it imports badly or lacks
    ``Astro.by_solar`` / ``Astro.by_lunar`` or ``AstrolabeModel``.
    """
    try:
        module = importlib.import_module(LIBRARY_MODULE)
    except ModuleNotFoundError as exc:
        if exc.name and exc.name.split(".")[0] == LIBRARY_MODULE:
            raise MissingDependencyError(
                "py_iztro is not installed. Run: pip install py-iztro "
                f"(original error: {exc})"
            ) from exc
        raise IncompatibleDependencyError(
            f"Failed to import py_iztro (dependency {exc.name} is missing): {exc}"
        ) from exc
    except Exception as exc:
        raise IncompatibleDependencyError(
            "Failed to import py_iztro (possibly a version or runtime compatibility issue): "
            f"{exc}"
        ) from exc

    astro_cls = getattr(module, "Astro", None)
    if astro_cls is None or not all(callable(getattr(astro_cls, name, None)) for name in ("by_solar", "by_lunar")):
        available = ", ".join(sorted(name for name in dir(module) if not name.startswith("_"))) or "(none)"
        raise IncompatibleDependencyError(
            f"py_iztro API incompatible: Astro.by_solar/by_lunar not found; available exports: {available}"
        )
    astrolabe_model = getattr(module, "AstrolabeModel", None)
    if not callable(getattr(astrolabe_model, "from_js_astro_obj", None)):
        raise IncompatibleDependencyError("py_iztro API incompatible: AstrolabeModel.from_js_astro_obj not found")

    log.debug("Loaded chart library %s %s", LIBRARY_MODULE, getattr(module, "__version__", "(unknown version)"))
    return IztroChartProvider(astro_cls(), astrolabe_model)


def build_chart(provider: ChartProvider, birth: BirthInput) -> NatalChart:
    """Cast the natal chart for a validated birth record."""

    if birth.calendar == "solar":
        chart = provider.by_solar(birth.date, birth.time_index, birth.gender, birth.fix_leap, birth.language)
    else:
        chart = provider.by_lunar(
            birth.date,
            birth.time_index,
            birth.gender,
            birth.is_leap_month,
            birth.fix_leap,
            birth.language,
        )

    if chart.horoscope is None:
        raise ChartDataError("astrolabe.horoscope is not available from the chart library result.")
    if len(chart.palaces) != PALACE_COUNT:
        raise ChartDataError(f"expected {PALACE_COUNT} palaces from the chart library, got {len(chart.palaces)}.")
    log.debug("Cast %s chart for %s (time index %d)", birth.calendar, birth.date, birth.time_index)
    return chart


def take_snapshot(chart: NatalChart, date_text: str, tz_name: str) -> dict[str, Any]:
    """Horoscope snapshot at local noon of ``date_text`` in ``tz_name``."""

    if chart.horoscope is None:
        raise ChartDataError("astrolabe.horoscope is not available from the chart library result.")
    moment = local_noon(date_text, tz_name)
    snapshot = chart.horoscope(moment)
    if not isinstance(snapshot, dict):
        raise ChartDataError(f"horoscope for {date_text} did not return an object.")
    log.debug("Snapshot for %s taken at %s", date_text, moment.isoformat())
    return snapshot
