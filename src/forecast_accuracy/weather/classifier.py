"""METAR present-weather and sky-condition classification.

All tests are case-insensitive substring checks on the raw weather code, so a
group such as ``+TSRA`` is matched by both the thunderstorm and the rain rule;
the first rule in priority order wins.
"""

from __future__ import annotations

import re
from typing import Literal

from ..models import WeatherCategory

Intensity = Literal["light", "moderate", "heavy"]

THUNDERSTORM_CODES = ("TS",)
SNOW_CODES = ("SN", "SG", "IC", "PL", "GS")
RAIN_CODES = ("RA", "DZ", "GR", "SH", "UP")
OBSCURATION_CODES = ("FG", "BR", "HZ", "DU", "SA", "FU", "VA", "PO", "SQ", "FC", "SS", "DS")

# Estimated millimetres per condition family, indexed by intensity.
_PRECIPITATION_TABLE: tuple[tuple[tuple[str, ...], dict[Intensity, float]], ...] = (
    (THUNDERSTORM_CODES, {"light": 5.0, "moderate": 10.0, "heavy": 15.0}),
    (("SH",), {"light": 1.0, "moderate": 3.0, "heavy": 8.0}),
    (("RA", "DZ"), {"light": 0.5, "moderate": 2.0, "heavy": 4.0}),
    (SNOW_CODES, {"light": 0.2, "moderate": 0.8, "heavy": 2.0}),
    (("GR",), {"light": 1.0, "moderate": 4.0, "heavy": 10.0}),
)

# Broken layers below 8,000 ft count as overcast.
BROKEN_CEILING_THRESHOLD = 80

_BROKEN_LAYER_RE = re.compile(r"BKN(\d+)")


def _normalize(code: str | None) -> str:
    if code is None:
        return ""
    stripped = code.strip()
    # The aviationweather.gov API serializes a missing wxString as "null".
    if stripped.lower() == "null":
        return ""
    return stripped.upper()


def _contains_any(code: str, needles: tuple[str, ...]) -> bool:
    return any(needle in code for needle in needles)


def intensity_of(code: str | None) -> Intensity:
    """Return the METAR intensity qualifier: ``-`` light, ``+`` heavy, else moderate."""
    normalized = _normalize(code)
    if "-" in normalized:
        return "light"
    if "+" in normalized:
        return "heavy"
    return "moderate"


def classify_metar_text(code: str | None) -> WeatherCategory:
    """Map a METAR present-weather code to a weather category."""
    normalized = _normalize(code)
    if not normalized:
        return WeatherCategory.CLEAR
    if _contains_any(normalized, THUNDERSTORM_CODES):
        return WeatherCategory.THUNDERSTORM
    if _contains_any(normalized, SNOW_CODES):
        return WeatherCategory.SNOW
    if _contains_any(normalized, RAIN_CODES):
        return WeatherCategory.RAIN
    if _contains_any(normalized, OBSCURATION_CODES):
        return WeatherCategory.FOG_MIST
    return WeatherCategory.CLEAR


def estimate_precipitation_mm(code: str | None) -> float:
    """Estimate precipitation in millimetres from condition family and intensity."""
    normalized = _normalize(code)
    if not normalized:
        return 0.0
    intensity = intensity_of(normalized)
    for family, amounts in _PRECIPITATION_TABLE:
        if _contains_any(normalized, family):
            return amounts[intensity]
    return 0.0


def classify_cloud_cover(raw_report: str | None) -> WeatherCategory:
    """Derive cloudiness from the sky-condition groups of a raw METAR report."""
    category = WeatherCategory.CLEAR
    for token in (raw_report or "").split(" "):
        if "OVC" in token or "BKN" in token:
            match = _BROKEN_LAYER_RE.fullmatch(token)
            if match is None:
                return WeatherCategory.CLOUDS
            if int(match.group(1)) < BROKEN_CEILING_THRESHOLD:
                return WeatherCategory.CLOUDS
            category = WeatherCategory.PARTIAL_CLOUDS
        if "FEW" in token or "SCT" in token:
            category = WeatherCategory.PARTIAL_CLOUDS
    return category


def classify_observation(code: str | None, raw_report: str | None) -> WeatherCategory:
    """Classify present weather, falling back to sky condition when it reads CLEAR."""
    category = classify_metar_text(code)
    if category is WeatherCategory.CLEAR:
        return classify_cloud_cover(raw_report)
    return category
