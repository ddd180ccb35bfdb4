"""METAR present-weather, precipitation and sky-condition classification tests."""

from __future__ import annotations

import pytest

from forecast_accuracy.models import WeatherCategory
from forecast_accuracy.weather import (
    classify_cloud_cover,
    classify_metar_text,
    classify_observation,
    estimate_precipitation_mm,
)
from forecast_accuracy.weather.classifier import intensity_of


@pytest.mark.parametrize(
    ("code", "expected"),
    [
        ("+TSRA", WeatherCategory.THUNDERSTORM),
        ("VCTS", WeatherCategory.THUNDERSTORM),
        ("-SN", WeatherCategory.SNOW),
        ("FZRAPL", WeatherCategory.SNOW),
        ("-RA", WeatherCategory.RAIN),
        ("SHGR", WeatherCategory.RAIN),
        ("DZ", WeatherCategory.RAIN),
        ("BR", WeatherCategory.FOG_MIST),
        ("hz", WeatherCategory.FOG_MIST),
        ("NSW", WeatherCategory.CLEAR),
        ("", WeatherCategory.CLEAR),
        (None, WeatherCategory.CLEAR),
        ("null", WeatherCategory.CLEAR),
    ],
)
def test_classify_metar_text_follows_priority(code: str | None, expected: WeatherCategory) -> None:
    assert classify_metar_text(code) is expected


def test_thunderstorm_wins_over_rain_in_same_group() -> None:
    assert classify_metar_text("TSRA") is WeatherCategory.THUNDERSTORM
    assert classify_metar_text("RATS") is WeatherCategory.THUNDERSTORM


@pytest.mark.parametrize(
    ("code", "expected"),
    [
        ("-RA", 0.5),
        ("RA", 2.0),
        ("+RA", 4.0),
        ("-DZ", 0.5),
        ("+TSRA", 15.0),
        ("-TSRA", 5.0),
        ("TS", 10.0),
        ("-SHRA", 1.0),
        ("+SHSN", 8.0),
        ("SN", 0.8),
        ("+SN", 2.0),
        ("GR", 4.0),
        ("+GR", 10.0),
        ("FG", 0.0),
        ("", 0.0),
        (None, 0.0),
    ],
)
def test_estimate_precipitation_mm(code: str | None, expected: float) -> None:
    assert estimate_precipitation_mm(code) == expected


def test_intensity_flag() -> None:
    assert intensity_of("-RA") == "light"
    assert intensity_of("+RA") == "heavy"
    assert intensity_of("RA") == "moderate"


@pytest.mark.parametrize(
    ("raw_report", "expected"),
    [
        ("LQSA 031200Z 27005KT 9999 OVC012 18/12 Q1015", WeatherCategory.CLOUDS),
        ("LQSA 031200Z 27005KT 9999 BKN030 18/12 Q1015", WeatherCategory.CLOUDS),
        ("LQSA 031200Z 27005KT 9999 BKN080 18/12 Q1015", WeatherCategory.PARTIAL_CLOUDS),
        ("LQSA 031200Z 27005KT 9999 BKN100 OVC020 18/12 Q1015", WeatherCategory.CLOUDS),
        ("LQSA 031200Z 27005KT 9999 BKN030CB 18/12 Q1015", WeatherCategory.CLOUDS),
        ("LQSA 031200Z 27005KT 9999 FEW040 18/12 Q1015", WeatherCategory.PARTIAL_CLOUDS),
        ("LQSA 031200Z 27005KT 9999 SCT025 18/12 Q1015", WeatherCategory.PARTIAL_CLOUDS),
        ("LQSA 031200Z 27005KT CAVOK 18/12 Q1015", WeatherCategory.CLEAR),
        ("", WeatherCategory.CLEAR),
        (None, WeatherCategory.CLEAR),
    ],
)
def test_classify_cloud_cover(raw_report: str | None, expected: WeatherCategory) -> None:
    assert classify_cloud_cover(raw_report) is expected


def test_cloud_cover_only_consulted_when_weather_is_clear() -> None:
    raw = "LQSA 031200Z 27005KT 4000 -RA OVC010 18/12 Q1015"
    assert classify_observation("-RA", raw) is WeatherCategory.RAIN
    assert classify_observation(None, raw) is WeatherCategory.CLOUDS
    assert classify_observation("null", "LQSA 031200Z CAVOK") is WeatherCategory.CLEAR
