"""AccuWeather daily forecast parser."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from ..exceptions import MalformedPayloadError
from ..models import ForecastRecord, WeatherCategory
from .base import ENTRY_ERRORS, ForecastParser, as_number, require_list, utc_date_from_epoch

# Checked in order; the first keyword found in the icon phrase wins.
_PHRASE_KEYWORDS: tuple[tuple[tuple[str, ...], WeatherCategory], ...] = (
    (("thunderstorm",), WeatherCategory.THUNDERSTORM),
    (("snow", "sleet", "flurries"), WeatherCategory.SNOW),
    (("rain", "showers"), WeatherCategory.RAIN),
    (("fog", "hazy"), WeatherCategory.FOG_MIST),
    (("cloudy", "overcast"), WeatherCategory.CLOUDS),
    (("partly sunny", "intermittent clouds", "mostly cloudy"), WeatherCategory.PARTIAL_CLOUDS),
    (("sunny", "clear"), WeatherCategory.CLEAR),
)


def map_icon_phrase(phrase: str) -> WeatherCategory:
    """Map an AccuWeather ``IconPhrase`` to a weather category (CLEAR if unmatched)."""
    lowered = phrase.lower()
    for keywords, category in _PHRASE_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return category
    return WeatherCategory.CLEAR


class AccuWeatherParser(ForecastParser):
    """Parses the ``DailyForecasts`` array of the 5-day forecast endpoint.

    Target dates come from ``EpochDate`` as a UTC calendar date.
    """

    provider_name = "AccuWeather"

    def _parse_payload(
        self,
        payload: Any,
        city_name: str,
        fetch_timestamp: datetime,
    ) -> list[ForecastRecord]:
        records: list[ForecastRecord] = []
        for entry in require_list(payload, "DailyForecasts"):
            try:
                records.append(self._parse_entry(entry, city_name, fetch_timestamp))
            except ENTRY_ERRORS as exc:
                self.logger.warning("Error parsing a daily forecast entry for AccuWeather: %s", exc)
        return records

    def _parse_entry(
        self,
        entry: Any,
        city_name: str,
        fetch_timestamp: datetime,
    ) -> ForecastRecord:
        if not isinstance(entry, dict):
            raise MalformedPayloadError("daily forecast entry is not an object")
        temperature = entry["Temperature"]
        phrase = entry["Day"]["IconPhrase"]
        if not isinstance(phrase, str):
            raise MalformedPayloadError(f"'IconPhrase' is not text: {phrase!r}")
        return self._record(
            city_name=city_name,
            fetch_timestamp=fetch_timestamp,
            target_date=utc_date_from_epoch(entry["EpochDate"]),
            min_temp=as_number(temperature["Minimum"]["Value"], "Temperature.Minimum.Value"),
            max_temp=as_number(temperature["Maximum"]["Value"], "Temperature.Maximum.Value"),
            weather=map_icon_phrase(phrase),
        )
