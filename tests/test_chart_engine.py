import types
import unittest
from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from chart_fixtures import FakeProvider, make_natal, make_snapshot
from ziwei_tools import chart_engine
from ziwei_tools.errors import ChartDataError, IncompatibleDependencyError, MissingDependencyError
from ziwei_tools.input_parser import parse_birth
from ziwei_tools.models import NatalChart


class _Dumpable:
    """Stand-in for a py_iztro pydantic result."""

    def __init__(self, data: dict) -> None:
        self._data = data
        self.dump_calls: list[dict] = []

    def model_dump(self, **kwargs) -> dict:
        self.dump_calls.append(kwargs)
        return self._data


class _JsResult:
    """What the wrapped iztro object returns: chart data plus call records."""

    def __init__(self, data: dict) -> None:
        self.data = data
        self.dump_calls: list[dict] = []
        self.horoscope_calls: list[tuple] = []


class _JsAstro:
    """Stand-in for the iztro object py_iztro keeps on ``Astro._astro``."""

    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.results: list[_JsResult] = []

    def _result(self) -> _JsResult:
        self.results.append(_JsResult(make_natal()))
        return self.results[-1]

    def bySolar(self, solar_date_str, time_index, gender, fix_leap=True, language="zh-CN"):  # noqa: N802
        self.calls.append(("bySolar", solar_date_str, time_index, gender, fix_leap, language))
        return self._result()

    def byLunar(  # noqa: N802
        self, lunar_date_str, time_index, gender, is_leap_month=False, fix_leap=True, language="zh-CN"
    ):
        self.calls.append(("byLunar", lunar_date_str, time_index, gender, is_leap_month, fix_leap, language))
        return self._result()


class _Astrolabe:
    """Stand-in for py_iztro's AstrolabeModel instance."""

    def __init__(self, js_obj: _JsResult) -> None:
        self._js = js_obj

    def model_dump(self, **kwargs) -> dict:
        self._js.dump_calls.append(kwargs)
        return self._js.data

    def horoscope(self, date_str, time_index=0):
        self._js.horoscope_calls.append((date_str, time_index))
        return _Dumpable(make_snapshot(solar_date=date_str))


class _AstrolabeModel:
    @classmethod
    def from_js_astro_obj(cls, js_obj):
        return _Astrolabe(js_obj)


class _Astro:
    """Mirrors the public signatures of ``py_iztro.Astro``."""

    def __init__(self) -> None:
        self._astro = _JsAstro()

    def by_solar(self, solar_date_str, time_index, gender, fix_leap=True, language="zh-CN"):
        return _AstrolabeModel.from_js_astro_obj(
            self._astro.bySolar(solar_date_str, time_index, gender, fix_leap, language)
        )

    def by_lunar(self, lunar_date_str, time_index, gender, fix_leap=True, language="zh-CN"):
        # the real wrapper hands fix_leap to byLunar's isLeapMonth slot
        return _AstrolabeModel.from_js_astro_obj(
            self._astro.byLunar(lunar_date_str, time_index, gender, fix_leap, language)
        )


def _provider(astro=None):
    return chart_engine.IztroChartProvider(astro or _Astro(), _AstrolabeModel)


def _birth(**overrides):
    birth = {
        "calendar": "solar",
        "date": "1994-8-15",
        "timeIndex": 7,
        "gender": "female",
        "birthplace": "Shanghai",
        "confirmed": True,
    }
    birth.update(overrides)
    return parse_birth(birth)


class TimeIndexTest(unittest.TestCase):
    def test_clock_hours_map_to_two_hour_slots(self) -> None:
        self.assertEqual(chart_engine.time_index_for_hour(0), 0)  # early rat
        self.assertEqual(chart_engine.time_index_for_hour(1), 1)
        self.assertEqual(chart_engine.time_index_for_hour(2), 1)
        self.assertEqual(chart_engine.time_index_for_hour(12), 6)  # horse
        self.assertEqual(chart_engine.time_index_for_hour(22), 11)
        self.assertEqual(chart_engine.time_index_for_hour(23), 12)  # late rat


def test_missing_library_is_reported_as_missing(monkeypatch):
    def fake_import(name):
        raise ModuleNotFoundError(f"No module named '{name}'", name=name)

    monkeypatch.setattr(chart_engine, "importlib", types.SimpleNamespace(import_module=fake_import))
    with pytest.raises(MissingDependencyError, match="not installed"):
        chart_engine.load_provider()


def test_broken_transitive_import_is_incompatible(monkeypatch):
    def fake_import(name):
        raise ModuleNotFoundError("No module named 'pythonmonkey'", name="pythonmonkey")

    monkeypatch.setattr(chart_engine, "importlib", types.SimpleNamespace(import_module=fake_import))
    with pytest.raises(IncompatibleDependencyError, match="pythonmonkey"):
        chart_engine.load_provider()


def test_import_crash_is_incompatible(monkeypatch):
    def fake_import(name):
        raise RuntimeError("engine bootstrap failed")

    monkeypatch.setattr(chart_engine, "importlib", types.SimpleNamespace(import_module=fake_import))
    with pytest.raises(IncompatibleDependencyError, match="engine bootstrap failed"):
        chart_engine.load_provider()


def test_unexpected_api_shape_is_incompatible(monkeypatch):
    class OldAstro:
        def bySolar(self):  # noqa: N802
            pass

    module = types.SimpleNamespace(Astro=OldAstro, astro=object())
    monkeypatch.setattr(chart_engine, "importlib", types.SimpleNamespace(import_module=lambda name: module))
    with pytest.raises(IncompatibleDependencyError, match="Astro.by_solar/by_lunar not found") as excinfo:
        chart_engine.load_provider()
    assert "Astro" in str(excinfo.value)


def test_load_provider_wraps_astro(monkeypatch):
    module = types.SimpleNamespace(Astro=_Astro, AstrolabeModel=_AstrolabeModel)
    monkeypatch.setattr(chart_engine, "importlib", types.SimpleNamespace(import_module=lambda name: module))
    provider = chart_engine.load_provider()
    assert isinstance(provider, chart_engine.IztroChartProvider)


def test_load_provider_requires_the_astrolabe_model(monkeypatch):
    module = types.SimpleNamespace(Astro=_Astro)
    monkeypatch.setattr(chart_engine, "importlib", types.SimpleNamespace(import_module=lambda name: module))
    with pytest.raises(IncompatibleDependencyError, match="AstrolabeModel"):
        chart_engine.load_provider()


def test_iztro_provider_passes_library_arguments():
    astro = _Astro()
    provider = _provider(astro)

    chart = provider.by_solar("1994-8-15", 7, "female", True, "zh-CN")
    assert astro._astro.calls[-1] == ("bySolar", "1994-8-15", 7, "女", True, "zh-CN")
    assert chart.data["palaces"][0]["name"] == "命宫"
    assert astro._astro.results[-1].dump_calls == [{"by_alias": True}]


@pytest.mark.parametrize("is_leap_month, fix_leap", [(True, False), (False, True), (True, True)])
def test_lunar_chart_keeps_leap_month_and_fix_leap_apart(is_leap_month, fix_leap):
    astro = _Astro()
    chart = _provider(astro).by_lunar("1994-7-30", 0, "male", is_leap_month, fix_leap, "en-US")

    assert astro._astro.calls == [("byLunar", "1994-7-30", 0, "男", is_leap_month, fix_leap, "en-US")]
    assert len(chart.palaces) == 12
    assert chart.horoscope is not None


def test_leap_month_birth_reaches_the_library():
    astro = _Astro()
    birth = _birth(calendar="lunar", date="1994-7-30", isLeapMonth=True)
    chart = chart_engine.build_chart(_provider(astro), birth)

    assert astro._astro.calls == [("byLunar", "1994-7-30", 7, "女", True, True, "zh-CN")]
    chart_engine.take_snapshot(chart, "2026-3-1", "Asia/Shanghai")
    assert astro._astro.results[-1].horoscope_calls == [("2026-3-1", 6)]


def test_lunar_chart_needs_the_wrapped_iztro_object():
    class NoJsAstro(_Astro):
        def __init__(self) -> None:
            super().__init__()
            del self._astro

    with pytest.raises(IncompatibleDependencyError, match="byLunar"):
        _provider(NoJsAstro()).by_lunar("1994-7-30", 0, "male", False, True, "zh-CN")


def test_iztro_horoscope_uses_the_noon_slot():
    astro = _Astro()
    chart = _provider(astro).by_solar("1994-8-15", 7, "female", True, "zh-CN")

    snapshot = chart.horoscope(datetime(2026, 3, 1, 12, tzinfo=ZoneInfo("Asia/Shanghai")))
    assert astro._astro.results[-1].horoscope_calls == [("2026-3-1", 6)]
    assert snapshot["solarDate"] == "2026-3-1"


def test_library_failures_become_chart_errors():
    class FailingJsAstro(_JsAstro):
        def byLunar(self, *args):  # noqa: N802
            raise ValueError("no such lunar day")

    class FailingAstro(_Astro):
        def __init__(self) -> None:
            self._astro = FailingJsAstro()

        def by_solar(self, solar_date_str, time_index, gender, fix_leap=True, language="zh-CN"):
            raise ValueError("bad date")

    provider = _provider(FailingAstro())
    with pytest.raises(ChartDataError, match="bad date"):
        provider.by_solar("1994-8-15", 7, "female", True, "zh-CN")
    with pytest.raises(ChartDataError, match="no such lunar day"):
        provider.by_lunar("1994-7-30", 7, "female", False, True, "zh-CN")


def test_astrolabe_without_horoscope_is_a_domain_error():
    class BareAstro(_Astro):
        def by_solar(self, solar_date_str, time_index, gender, fix_leap=True, language="zh-CN"):
            return _Dumpable(make_natal())

    provider = _provider(BareAstro())
    assert provider.by_solar("1994-8-15", 7, "female", True, "zh-CN").horoscope is None
    with pytest.raises(ChartDataError, match="horoscope is not available"):
        chart_engine.build_chart(provider, _birth())


def test_build_chart_dispatches_on_calendar():
    provider = FakeProvider()
    chart_engine.build_chart(provider, _birth())
    chart_engine.build_chart(provider, _birth(calendar="lunar", date="1994-7-30", isLeapMonth=True))
    assert provider.calls == [
        ("solar", "1994-8-15", 7, "female", True, "zh-CN"),
        ("lunar", "1994-7-30", 7, "female", True, True, "zh-CN"),
    ]


def test_build_chart_requires_twelve_palaces():
    natal = make_natal()
    natal["palaces"] = natal["palaces"][:11]
    with pytest.raises(ChartDataError, match="expected 12 palaces"):
        chart_engine.build_chart(FakeProvider(natal=natal), _birth())


def test_take_snapshot_anchors_at_local_noon():
    provider = FakeProvider()
    chart = chart_engine.build_chart(provider, _birth())
    snapshot = chart_engine.take_snapshot(chart, "2026-3-1", "America/New_York")
    moment = provider.moments[-1]
    assert (moment.year, moment.month, moment.day, moment.hour) == (2026, 3, 1, 12)
    assert moment.tzinfo == ZoneInfo("America/New_York")
    assert snapshot["lunarDate"] == "lunar:2026-3-1"


def test_take_snapshot_rejects_non_object_results():
    chart = NatalChart(data=make_natal(), horoscope=lambda moment: None)
    with pytest.raises(ChartDataError, match="did not return an object"):
        chart_engine.take_snapshot(chart, "2026-3-1", "Asia/Shanghai")


def test_default_language_comes_from_environment(monkeypatch):
    monkeypatch.delenv("ZIWEI_LANGUAGE", raising=False)
    assert chart_engine.default_language() == "zh-CN"
    monkeypatch.setenv("ZIWEI_LANGUAGE", "zh-TW")
    assert chart_engine.default_language() == "zh-TW"
