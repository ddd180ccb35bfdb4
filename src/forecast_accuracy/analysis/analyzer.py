"""Scores stored forecasts against the observed weather of a target date."""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from datetime import UTC, date, datetime, timedelta
from enum import Enum
from zoneinfo import ZoneInfo

from pydantic import BaseModel

from ..config import DEFAULT_REFERENCE_TIMEZONE
from ..exceptions import MissingUpstreamDataError
from ..models import (
    AccuracyScore,
    ActualObservation,
    DailyActualWeather,
    ForecastRecord,
    PrecipitationScore,
)
from ..storage import ForecastStore

COMPLETENESS_WINDOW = timedelta(hours=1)


class AnalysisState(str, Enum):
    CHECKING_COMPLETENESS = "checking_completeness"
    JOINING = "joining"
    SCORING = "scoring"
    REPLACED = "replaced"
    SKIPPED = "skipped"


class AnalysisRun(BaseModel):
    """Outcome of one ``analyze_accuracy_for_date`` call."""

    target_date: date
    state: AnalysisState
    scores_written: int = 0
    skip_reason: str | None = None


class AccuracyAnalyzer:
    """Joins one day's forecasts with observations and replaces that day's scores.

    Day boundaries and forecast horizons use a single reference timezone for
    every city. Forecasts fetched after the local day began are not scored.
    """

    def __init__(
        self,
        store: ForecastStore,
        reference_timezone: str = DEFAULT_REFERENCE_TIMEZONE,
        logger: logging.Logger | None = None,
    ) -> None:
        self.store = store
        self.zone = ZoneInfo(reference_timezone)
        self.logger = logger or logging.getLogger("forecast_accuracy.analysis.analyzer")
        self.last_run: AnalysisRun | None = None

    def day_bounds(self, target_date: date) -> tuple[datetime, datetime]:
        """UTC instants of local midnight on ``target_date`` and on the next day."""
        midnight = datetime.min.time()
        start = datetime.combine(target_date, midnight, tzinfo=self.zone)
        end = datetime.combine(target_date + timedelta(days=1), midnight, tzinfo=self.zone)
        return start.astimezone(UTC), end.astimezone(UTC)

    def forecast_horizon(self, fetch_timestamp: datetime, target_date: date) -> int:
        """Whole hours from fetch to the local start of ``target_date``, truncated toward zero."""
        day_start, _ = self.day_bounds(target_date)
        return int((day_start - fetch_timestamp).total_seconds() / 3600)

    def previous_local_date(self, now: datetime) -> date:
        """Yesterday's date in the reference timezone, the default analysis target."""
        return now.astimezone(self.zone).date() - timedelta(days=1)

    def analyze_accuracy_for_date(self, target_date: date) -> int:
        """Score all forecasts for ``target_date`` and return how many scores were written.

        Returns 0 without touching stored scores when observations are incomplete.
        Storage failures propagate to the caller.
        """
        self.logger.info(
            "Starting accuracy analysis for date: %s (%s)", target_date, self.zone.key
        )
        try:
            forecasts, actual_by_city = self.gather_inputs(target_date)
        except MissingUpstreamDataError as exc:
            return self._skip(target_date, str(exc))
        self.logger.info("Found %d forecasts for date: %s", len(forecasts), target_date)

        self._enter(target_date, AnalysisState.SCORING)
        scores = self.score_forecasts(target_date, forecasts, actual_by_city)

        written = self.store.replace_scores_for_date(target_date, scores)
        self.last_run = AnalysisRun(
            target_date=target_date,
            state=AnalysisState.REPLACED,
            scores_written=written,
        )
        self.logger.info(
            "Generated and saved %d accuracy scores for date: %s", written, target_date
        )
        return written

    def gather_inputs(
        self, target_date: date
    ) -> tuple[list[ForecastRecord], dict[str, DailyActualWeather]]:
        """Load the day's forecasts and per-city actuals.

        Raises:
            MissingUpstreamDataError: if the final-hour observations are
                incomplete or no city has observations for the day.
        """
        self._enter(target_date, AnalysisState.CHECKING_COMPLETENESS)
        forecasts = self.store.forecasts_for_date(target_date)
        if not self.is_actual_data_complete(target_date, forecasts):
            raise MissingUpstreamDataError("actual data incomplete")

        self._enter(target_date, AnalysisState.JOINING)
        actual_by_city = self.daily_actual_weather(target_date)
        if not actual_by_city:
            raise MissingUpstreamDataError("no actual weather data")
        return forecasts, actual_by_city

    def analyze_dates(self, dates: Iterable[date]) -> dict[date, int | None]:
        """Analyze each date independently; a failed date maps to ``None``."""
        results: dict[date, int | None] = {}
        for target_date in dates:
            try:
                results[target_date] = self.analyze_accuracy_for_date(target_date)
            except Exception:
                self.logger.exception("Error during accuracy analysis for %s", target_date)
                results[target_date] = None
        return results

    def is_actual_data_complete(
        self,
        target_date: date,
        forecasts: list[ForecastRecord] | None = None,
    ) -> bool:
        """True when every forecast city has an observation in the day's final hour."""
        if forecasts is None:
            forecasts = self.store.forecasts_for_date(target_date)
        _, day_end = self.day_bounds(target_date)
        last_hour_start = day_end - COMPLETENESS_WINDOW
        self.logger.debug(
            "Checking data completeness between %s and %s UTC", last_hour_start, day_end
        )

        cities = sorted({forecast.city for forecast in forecasts})
        if not cities:
            self.logger.info("No forecast data found for any city on date: %s", target_date)
            return False

        complete = True
        for city in cities:
            if not self.store.observations_for_city_in_range(city, last_hour_start, day_end):
                self.logger.info(
                    "Missing actual weather data for city %s on date %s in the last hour",
                    city,
                    target_date,
                )
                complete = False
        return complete

    def daily_actual_weather(self, target_date: date) -> dict[str, DailyActualWeather]:
        """Observed min/max temperature and precipitation per city for the local day."""
        day_start, day_end = self.day_bounds(target_date)
        by_city: dict[str, list[ActualObservation]] = {}
        for observation in self.store.observations_in_range(day_start, day_end):
            by_city.setdefault(observation.city, []).append(observation)
        return {
            city: DailyActualWeather.from_observations(observations)
            for city, observations in by_city.items()
        }

    @staticmethod
    def deduplicate(forecasts: Iterable[ForecastRecord]) -> list[ForecastRecord]:
        """Keep one forecast per (provider, city, fetch time), preferring the higher id."""
        kept: dict[tuple[str, str, datetime], ForecastRecord] = {}
        for forecast in forecasts:
            key = (forecast.provider_name, forecast.city, forecast.fetch_timestamp)
            existing = kept.get(key)
            if existing is None or _identity(forecast) >= _identity(existing):
                kept[key] = forecast
        return list(kept.values())

    def score_forecasts(
        self,
        target_date: date,
        forecasts: Iterable[ForecastRecord],
        actual_by_city: dict[str, DailyActualWeather],
    ) -> list[AccuracyScore]:
        """Score deduplicated forecasts; one score per (provider, city, date, horizon)."""
        scores: dict[tuple[str, str, date, int], AccuracyScore] = {}
        skipped_cities: set[str] = set()
        ordered = sorted(self.deduplicate(forecasts), key=lambda f: f.fetch_timestamp)
        for forecast in ordered:
            actual = actual_by_city.get(forecast.city)
            if actual is None:
                if forecast.city not in skipped_cities:
                    self.logger.warning(
                        "No actual weather data for city: %s. Skipping accuracy analysis.",
                        forecast.city,
                    )
                    skipped_cities.add(forecast.city)
                continue
            horizon = self.forecast_horizon(forecast.fetch_timestamp, target_date)
            if horizon < 0:
                continue
            score = self.score_forecast(forecast, actual, horizon)
            # Fetches within the same hour share a horizon; the latest fetch wins.
            scores[score.key] = score
        return list(scores.values())

    @staticmethod
    def score_forecast(
        forecast: ForecastRecord,
        actual: DailyActualWeather,
        forecast_horizon: int,
    ) -> AccuracyScore:
        """Compare a single forecast with the observed day."""
        return AccuracyScore(
            provider_name=forecast.provider_name,
            city=forecast.city,
            target_date=forecast.target_date,
            forecast_horizon=forecast_horizon,
            min_temp_deviation=_deviation(forecast.predicted_min_temp, actual.min_temp),
            max_temp_deviation=_deviation(forecast.predicted_max_temp, actual.max_temp),
            precipitation_score=PrecipitationScore.classify(
                forecast.predicted_weather, actual.had_precipitation
            ),
        )

    def _enter(self, target_date: date, state: AnalysisState) -> None:
        self.logger.debug("Analysis for %s entering state %s", target_date, state.value)
        self.last_run = AnalysisRun(target_date=target_date, state=state)

    def _skip(self, target_date: date, reason: str) -> int:
        self.logger.warning("Skipping analysis for %s: %s.", target_date, reason)
        self.last_run = AnalysisRun(
            target_date=target_date,
            state=AnalysisState.SKIPPED,
            skip_reason=reason,
        )
        return 0


def _identity(forecast: ForecastRecord) -> int:
    return forecast.id if forecast.id is not None else -1


def _deviation(predicted: float | None, actual: float) -> float:
    if predicted is None or math.isnan(actual):
        return 0.0
    return predicted - actual
