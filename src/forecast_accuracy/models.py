"""Canonical records shared by parsers, the analyzer and the ranking layer."""

from __future__ import annotations

import math
from collections.abc import Iterable
from datetime import UTC, date, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class WeatherCategory(str, Enum):
    """Closed weather classification every provider condition is mapped into."""

    RAIN = "RAIN"
    SNOW = "SNOW"
    THUNDERSTORM = "THUNDERSTORM"
    CLOUDS = "CLOUDS"
    PARTIAL_CLOUDS = "PARTIAL_CLOUDS"
    CLEAR = "CLEAR"
    FOG_MIST = "FOG_MIST"

    @property
    def is_precipitation(self) -> bool:
        return self in _PRECIPITATION_CATEGORIES


_PRECIPITATION_CATEGORIES = frozenset(
    {WeatherCategory.RAIN, WeatherCategory.SNOW, WeatherCategory.THUNDERSTORM}
)


class PrecipitationScore(str, Enum):
    """Confusion-matrix cell for predicted vs. observed precipitation."""

    TRUE_POSITIVE = "TRUE_POSITIVE"
    TRUE_NEGATIVE = "TRUE_NEGATIVE"
    FALSE_POSITIVE = "FALSE_POSITIVE"
    FALSE_NEGATIVE = "FALSE_NEGATIVE"

    @classmethod
    def classify(
        cls,
        predicted_weather: WeatherCategory | None,
        had_precipitation: bool,
    ) -> PrecipitationScore:
        predicted = predicted_weather is not None and predicted_weather.is_precipitation
        if predicted and had_precipitation:
            return cls.TRUE_POSITIVE
        if predicted:
            return cls.FALSE_POSITIVE
        if had_precipitation:
            return cls.FALSE_NEGATIVE
        return cls.TRUE_NEGATIVE

    @property
    def is_correct(self) -> bool:
        return self in (PrecipitationScore.TRUE_POSITIVE, PrecipitationScore.TRUE_NEGATIVE)


class ForecastRecord(BaseModel):
    """One provider's prediction for one city/day, fetched at one instant."""

    model_config = ConfigDict(frozen=True)

    id: int | None = Field(default=None, description="Identity assigned by the store")
    provider_name: str
    city: str
    fetch_timestamp: datetime
    target_date: date
    predicted_min_temp: float | None = None
    predicted_max_temp: float | None = None
    predicted_weather: WeatherCategory | None = None

    @field_validator("fetch_timestamp", mode="after")
    @classmethod
    def ensure_utc(cls, value: datetime) -> datetime:
        return _ensure_utc(value)


class ActualObservation(BaseModel):
    """One ground-truth measurement for a city at an instant (UTC)."""

    model_config = ConfigDict(frozen=True)

    id: int | None = None
    city: str
    measurement_timestamp: datetime
    actual_temperature: float | None = None
    actual_precipitation: float | None = Field(default=None, description="Millimetres")
    weather: WeatherCategory | None = None

    @field_validator("measurement_timestamp", mode="after")
    @classmethod
    def ensure_utc(cls, value: datetime) -> datetime:
        return _ensure_utc(value)


class DailyActualWeather(BaseModel):
    """Observed daily extremes for one city; NaN when no temperature was reported."""

    min_temp: float
    max_temp: float
    had_precipitation: bool

    @classmethod
    def from_observations(cls, observations: Iterable[ActualObservation]) -> DailyActualWeather:
        temperatures: list[float] = []
        had_precipitation = False
        for observation in observations:
            if observation.actual_temperature is not None:
                temperatures.append(observation.actual_temperature)
            precipitation = observation.actual_precipitation
            if precipitation is not None and precipitation > 0:
                had_precipitation = True
        return cls(
            min_temp=min(temperatures) if temperatures else math.nan,
            max_temp=max(temperatures) if temperatures else math.nan,
            had_precipitation=had_precipitation,
        )


class AccuracyScore(BaseModel):
    """Comparison of one forecast with the observed day it predicted."""

    model_config = ConfigDict(frozen=True)

    provider_name: str
    city: str
    target_date: date
    forecast_horizon: int = Field(description="Whole hours between fetch and local day start")
    min_temp_deviation: float = Field(description="Predicted minus actual minimum, signed")
    max_temp_deviation: float = Field(description="Predicted minus actual maximum, signed")
    precipitation_score: PrecipitationScore | None = None

    @property
    def key(self) -> tuple[str, str, date, int]:
        return (self.provider_name, self.city, self.target_date, self.forecast_horizon)


class ProviderScoreSummary(BaseModel):
    """Aggregated accuracy of one provider over a filtered score set."""

    provider_name: str
    overall_score: float
    average_temp_deviation: float
    precipitation_accuracy: float = Field(ge=0.0, le=1.0)


class AccuracyScoreDetail(BaseModel):
    """Flat row of the detailed score listing."""

    provider_name: str
    target_date: date
    forecast_horizon: int
    min_temp_deviation: float
    max_temp_deviation: float
    precipitation_score: PrecipitationScore | None = None

    @classmethod
    def from_score(cls, score: AccuracyScore) -> AccuracyScoreDetail:
        return cls(
            provider_name=score.provider_name,
            target_date=score.target_date,
            forecast_horizon=score.forecast_horizon,
            min_temp_deviation=score.min_temp_deviation,
            max_temp_deviation=score.max_temp_deviation,
            precipitation_score=score.precipitation_score,
        )


class FilterOptions(BaseModel):
    """Distinct horizons (ascending) and ISO dates (descending) scored for a city."""

    available_horizons: list[int] = Field(default_factory=list)
    available_dates: list[str] = Field(default_factory=list)


def _ensure_utc(value: datetime) -> datetime:
    """Naive timestamps are taken as UTC; aware ones are converted."""
    return value.astimezone(UTC) if value.tzinfo else value.replace(tzinfo=UTC)
