"""OpenWeatherMap 5 day / 3 hour forecast parser."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from ..exceptions import MalformedPayloadError
from ..models import ForecastRecord, WeatherCategory
from .base import ENTRY_ERRORS, ForecastParser, as_number, require_list, utc_date_from_epoch

_MAIN_CATEGORIES = {
    "Thunderstorm": WeatherCategory.THUNDERSTORM,
    "Drizzle": WeatherCategory.RAIN,
    "Rain": WeatherCategory.RAIN,
    "Snow": WeatherCategory.SNOW,
    "Atmosphere": WeatherCategory.FOG_MIST,
    "Clear": WeatherCategory.CLEAR,
}
_OVERCAST_IDS = {803, 804}
DEFAULT_CONDITION_ID = 800


def map_condition(main: str, condition_id: int) -> WeatherCategory:
    """Map a ``weather[0]`` entry (coarse type + condition id) to a category."""
    if main == "Clouds":
        # 801 few / 802 scattered are partial; 803 broken / 804 overcast are cloudy.
        if condition_id in _OVERCAST_IDS:
            return WeatherCategory.CLOUDS
        return WeatherCategory.PARTIAL_CLOUDS
    return _MAIN_CATEGORIES.get(main, WeatherCategory.CLEAR)


@dataclass
class _DailyAggregate:
    min_temp: float | None = None
    max_temp: float | None = None
    weather_counts: Counter[WeatherCategory] = field(default_factory=Counter)

    def add_min(self, value: float) -> None:
        if self.min_temp is None or value < self.min_temp:
            self.min_temp = value

    def add_max(self, value: float) -> None:
        if self.max_temp is None or value > self.max_temp:
            self.max_temp = value

    def most_frequent_weather(self) -> WeatherCategory:
        if not self.weather_counts:
            return WeatherCategory.CLEAR
        # max() keeps the first-inserted category among equal counts.
        return max(self.weather_counts, key=self.weather_counts.__getitem__)


@dataclass(frozen=True)
class _Slice:
    day: date
    temp_min: float | None
    temp_max: float | None
    weather: WeatherCategory | None


class OpenWeatherMapParser(ForecastParser):
    """Aggregates 3-hour slices into one record per UTC calendar day."""

    provider_name = "OpenWeatherMap"

    def _parse_payload(
        self,
        payload: Any,
        city_name: str,
        fetch_timestamp: datetime,
    ) -> list[ForecastRecord]:
        days: dict[date, _DailyAggregate] = {}
        for entry in require_list(payload, "list"):
            try:
                slice_ = self._parse_slice(entry)
            except ENTRY_ERRORS as exc:
                self.logger.warning("Error parsing forecast entry: %s", exc)
                continue
            aggregate = days.setdefault(slice_.day, _DailyAggregate())
            if slice_.temp_min is not None:
                aggregate.add_min(slice_.temp_min)
            if slice_.temp_max is not None:
                aggregate.add_max(slice_.temp_max)
            if slice_.weather is not None:
                aggregate.weather_counts[slice_.weather] += 1

        records: list[ForecastRecord] = []
        for day, aggregate in days.items():
            record = self._record(
                city_name=city_name,
                fetch_timestamp=fetch_timestamp,
                target_date=day,
                min_temp=aggregate.min_temp,
                max_temp=aggregate.max_temp,
                weather=aggregate.most_frequent_weather(),
            )
            self.logger.debug(
                "Created forecast for %s: %s - Min: %s, Max: %s, Weather: %s",
                city_name,
                day,
                record.predicted_min_temp,
                record.predicted_max_temp,
                record.predicted_weather,
            )
            records.append(record)
        return records

    def _parse_slice(self, entry: Any) -> _Slice:
        if not isinstance(entry, dict):
            raise MalformedPayloadError("forecast slice is not an object")
        day = utc_date_from_epoch(entry["dt"])

        temp_min: float | None = None
        temp_max: float | None = None
        main_block = entry.get("main")
        if isinstance(main_block, dict):
            if "temp_min" in main_block:
                temp_min = as_number(main_block["temp_min"], "main.temp_min")
            if "temp_max" in main_block:
                temp_max = as_number(main_block["temp_max"], "main.temp_max")

        weather: WeatherCategory | None = None
        conditions = entry.get("weather")
        if isinstance(conditions, list) and conditions:
            condition = conditions[0]
            if not isinstance(condition, dict):
                raise MalformedPayloadError("weather condition is not an object")
            main = condition.get("main", "")
            condition_id = condition.get("id", DEFAULT_CONDITION_ID)
            weather = map_condition(
                main if isinstance(main, str) else "",
                int(as_number(condition_id, "weather.id")),
            )
        return _Slice(day=day, temp_min=temp_min, temp_max=temp_max, weather=weather)
