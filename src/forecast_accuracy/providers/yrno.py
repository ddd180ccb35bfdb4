"""MET Norway (yr.no) Locationforecast parser."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from ..exceptions import MalformedPayloadError
from ..models import ForecastRecord, WeatherCategory
from .base import ENTRY_ERRORS, ForecastParser, as_number, parse_iso_datetime, require_list

# Least to most severe. Symbols missing from this table rank in the middle.
SYMBOL_SEVERITY: tuple[str, ...] = (
    "clearsky",
    "fair",
    "partlycloudy",
    "cloudy",
    "fog",
    "lightrain",
    "rain",
    "heavyrain",
    "lightsnow",
    "snow",
    "heavysnow",
    "sleet",
    "heavysleet",
    "lightsleetshowers",
    "sleetshowers",
    "heavysleetshowers",
    "lightrainshowers",
    "rainshowers",
    "heavyrainshowers",
    "lightsnowshowers",
    "snowshowers",
    "heavysnowshowers",
    "lightrainshowersandthunder",
    "rainshowersandthunder",
    "heavyrainshowersandthunder",
    "lightsleetshowersandthunder",
    "sleetshowersandthunder",
    "heavysleetshowersandthunder",
    "lightsnowshowersandthunder",
    "snowshowersandthunder",
    "heavysnowshowersandthunder",
    "lightrainandthunder",
    "rainandthunder",
    "heavyrainandthunder",
    "lightsleetandthunder",
    "sleetandthunder",
    "heavysleetandthunder",
    "lightsnowandthunder",
    "snowandthunder",
    "heavysnowandthunder",
)
_SEVERITY_INDEX = {symbol: index for index, symbol in enumerate(SYMBOL_SEVERITY)}
_UNKNOWN_SEVERITY = len(SYMBOL_SEVERITY) // 2

_SYMBOL_SUFFIXES = ("_day", "_night", "_polartwilight")


def normalize_symbol_code(symbol_code: str) -> str:
    """Strip the ``_day``/``_night``/``_polartwilight`` variant suffix."""
    normalized = symbol_code
    for suffix in _SYMBOL_SUFFIXES:
        normalized = normalized.replace(suffix, "")
    return normalized


def severity_of(symbol: str) -> int:
    return _SEVERITY_INDEX.get(symbol, _UNKNOWN_SEVERITY)


def worse_symbol(first: str | None, second: str | None) -> str | None:
    """Return the more severe symbol; ``first`` wins ties."""
    if first is None:
        return second
    if second is None:
        return first
    return first if severity_of(first) >= severity_of(second) else second


@dataclass
class _DailySamples:
    temperatures: list[float] = field(default_factory=list)
    midnight_symbol: str | None = None
    noon_symbol: str | None = None


class YrNoParser(ForecastParser):
    """Builds daily records from the ``properties.timeseries`` instant samples.

    Min/max come from every ``air_temperature`` sample of the UTC day; the
    weather is the worse of the 12-hour summaries issued at 00:00 and 12:00.
    """

    provider_name = "YR.NO"

    def _parse_payload(
        self,
        payload: Any,
        city_name: str,
        fetch_timestamp: datetime,
    ) -> list[ForecastRecord]:
        properties = payload.get("properties") if isinstance(payload, dict) else None
        timeseries = require_list(properties, "timeseries")

        days: dict[date, _DailySamples] = {}
        for entry in timeseries:
            try:
                self._collect_sample(entry, days)
            except ENTRY_ERRORS as exc:
                self.logger.warning("Error processing timeseries entry: %s", exc)

        records: list[ForecastRecord] = []
        for day, samples in days.items():
            if not samples.temperatures:
                continue
            symbol = worse_symbol(samples.midnight_symbol, samples.noon_symbol)
            record = self._record(
                city_name=city_name,
                fetch_timestamp=fetch_timestamp,
                target_date=day,
                min_temp=min(samples.temperatures),
                max_temp=max(samples.temperatures),
                weather=self.map_symbol(symbol),
            )
            self.logger.debug(
                "Parsed forecast for %s: %s - Min: %s, Max: %s, Weather: %s",
                city_name,
                day,
                record.predicted_min_temp,
                record.predicted_max_temp,
                record.predicted_weather,
            )
            records.append(record)
        return records

    def _collect_sample(self, entry: Any, days: dict[date, _DailySamples]) -> None:
        if not isinstance(entry, dict):
            raise MalformedPayloadError("timeseries entry is not an object")
        sampled_at = parse_iso_datetime(entry["time"])
        samples = days.setdefault(sampled_at.date(), _DailySamples())

        data = entry["data"]
        details = data["instant"]["details"]
        if "air_temperature" in details:
            samples.temperatures.append(as_number(details["air_temperature"], "air_temperature"))

        summary = (data.get("next_12_hours") or {}).get("summary") or {}
        symbol_code = summary.get("symbol_code")
        if not isinstance(symbol_code, str):
            return
        if sampled_at.hour == 0:
            samples.midnight_symbol = normalize_symbol_code(symbol_code)
        elif sampled_at.hour == 12:
            samples.noon_symbol = normalize_symbol_code(symbol_code)

    def map_symbol(self, symbol_code: str | None) -> WeatherCategory:
        """Map a yr.no symbol code to a weather category by keyword."""
        if symbol_code is None:
            return WeatherCategory.CLEAR
        code = normalize_symbol_code(symbol_code.lower())
        if "thunder" in code:
            return WeatherCategory.THUNDERSTORM
        if "sleet" in code or "snow" in code:
            return WeatherCategory.SNOW
        if "rain" in code or "shower" in code:
            return WeatherCategory.RAIN
        if "fog" in code:
            return WeatherCategory.FOG_MIST
        if "cloudy" in code and "partlycloudy" not in code:
            return WeatherCategory.CLOUDS
        if "partlycloudy" in code or "fair" in code:
            return WeatherCategory.PARTIAL_CLOUDS
        if "clearsky" in code:
            return WeatherCategory.CLEAR
        self.logger.warning("Unknown weather symbol code: %s", symbol_code)
        return WeatherCategory.CLEAR
