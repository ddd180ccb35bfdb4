"""Per-provider ranking and detail views over stored accuracy scores."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from ..config import DEFAULT_REFERENCE_TIMEZONE
from ..models import AccuracyScore, AccuracyScoreDetail, FilterOptions, ProviderScoreSummary
from ..storage import ForecastStore

TEMP_PENALTY_WEIGHT = 10.0
PRECIPITATION_BONUS_WEIGHT = 10.0


def summarize_provider(provider_name: str, scores: Iterable[AccuracyScore]) -> ProviderScoreSummary:
    """Aggregate one provider's scores into a single blended summary.

    ``overall_score`` is not clamped; large temperature errors drive it negative.
    """
    batch = list(scores)
    deviations = [
        (abs(score.min_temp_deviation) + abs(score.max_temp_deviation)) / 2.0 for score in batch
    ]
    average_deviation = sum(deviations) / len(deviations) if deviations else 0.0

    judged = [score.precipitation_score for score in batch if score.precipitation_score is not None]
    correct = sum(1 for outcome in judged if outcome.is_correct)
    precipitation_accuracy = correct / len(judged) if judged else 0.0

    overall = (100 - average_deviation * TEMP_PENALTY_WEIGHT) + (
        precipitation_accuracy * PRECIPITATION_BONUS_WEIGHT
    )
    return ProviderScoreSummary(
        provider_name=provider_name,
        overall_score=overall,
        average_temp_deviation=average_deviation,
        precipitation_accuracy=precipitation_accuracy,
    )


class RankingAggregator:
    """Read side of the accuracy store: ranked summaries, detail rows and filters."""

    def __init__(
        self,
        store: ForecastStore,
        reference_timezone: str = DEFAULT_REFERENCE_TIMEZONE,
        today: date | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.store = store
        self.zone = ZoneInfo(reference_timezone)
        self._today = today
        self.logger = logger or logging.getLogger("forecast_accuracy.analysis.ranking")

    def today(self) -> date:
        if self._today is not None:
            return self._today
        return datetime.now(self.zone).date()

    def select_scores(
        self,
        city: str,
        days: int,
        horizon: int | None = None,
        target_date: date | None = None,
    ) -> list[AccuracyScore]:
        """Apply the filters: an exact date wins over horizon, which narrows the day window."""
        if target_date is not None:
            return self.store.scores_by_city_and_date(city, target_date)
        window_start = self.today() - timedelta(days=days)
        if horizon is not None:
            return self.store.scores_by_city_horizon_and_date_after(city, horizon, window_start)
        return self.store.scores_by_city_and_date_after(city, window_start)

    def ranked_summary(
        self,
        city: str,
        days: int,
        horizon: int | None = None,
        target_date: date | None = None,
    ) -> list[ProviderScoreSummary]:
        scores = self.select_scores(city, days, horizon, target_date)
        by_provider: dict[str, list[AccuracyScore]] = {}
        for score in scores:
            by_provider.setdefault(score.provider_name, []).append(score)

        summaries = [summarize_provider(name, batch) for name, batch in by_provider.items()]
        summaries.sort(key=lambda summary: summary.overall_score, reverse=True)
        self.logger.info(
            "Ranked %d providers for %s from %d scores", len(summaries), city, len(scores)
        )
        return summaries

    def detailed_scores(
        self,
        city: str,
        days: int,
        horizon: int | None = None,
        target_date: date | None = None,
    ) -> list[AccuracyScoreDetail]:
        """Filtered scores, newest target date first, then shortest horizon first."""
        rows = [
            AccuracyScoreDetail.from_score(score)
            for score in self.select_scores(city, days, horizon, target_date)
        ]
        rows.sort(key=lambda row: row.forecast_horizon)
        rows.sort(key=lambda row: row.target_date, reverse=True)
        return rows

    def available_filters(self, city: str) -> FilterOptions:
        pairs = self.store.distinct_horizons_and_dates_for_city(city)
        horizons = sorted({horizon for horizon, _ in pairs})
        dates = sorted({target.isoformat() for _, target in pairs}, reverse=True)
        return FilterOptions(available_horizons=horizons, available_dates=dates)
