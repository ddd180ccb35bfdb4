"""Accuracy analysis tests: completeness, horizons, dedup and scoring."""

from __future__ import annotations

import math
from datetime import UTC, date, datetime

import pytest

from forecast_accuracy.analysis import AccuracyAnalyzer, AnalysisState
from forecast_accuracy.exceptions import MissingUpstreamDataError, StorageError
from forecast_accuracy.models import (
    AccuracyScore,
    ActualObservation,
    DailyActualWeather,
    ForecastRecord,
    PrecipitationScore,
    WeatherCategory,
)
from forecast_accuracy.storage import InMemoryStore

TARGET = date(2025, 8, 3)


def _forecast(
    fetched_at: datetime,
    *,
    provider: str = "YR.NO",
    city: str = "Sarajevo",
    min_temp: float | None = 15.0,
    max_temp: float | None = 27.0,
    weather: WeatherCategory | None = WeatherCategory.RAIN,
    forecast_id: int | None = None,
) -> ForecastRecord:
    return ForecastRecord(
        id=forecast_id,
        provider_name=provider,
        city=city,
        fetch_timestamp=fetched_at,
        target_date=TARGET,
        predicted_min_temp=min_temp,
        predicted_max_temp=max_temp,
        predicted_weather=weather,
    )


def _observation(
    at: datetime,
    temperature: float | None,
    *,
    city: str = "Sarajevo",
    precipitation: float = 0.0,
) -> ActualObservation:
    return ActualObservation(
        city=city,
        measurement_timestamp=at,
        actual_temperature=temperature,
        actual_precipitation=precipitation,
        weather=WeatherCategory.CLEAR,
    )


def _seed_day(store: InMemoryStore, city: str = "Sarajevo", final_hour: bool = True) -> None:
    observations = [
        # 23:00 local on the previous day: outside the target day.
        _observation(datetime(2025, 8, 2, 21, 0, tzinfo=UTC), 5.0, city=city),
        _observation(datetime(2025, 8, 3, 4, 0, tzinfo=UTC), 14.0, city=city),
        _observation(datetime(2025, 8, 3, 12, 0, tzinfo=UTC), 26.0, city=city),
    ]
    if final_hour:
        observations.append(_observation(datetime(2025, 8, 3, 21, 30, tzinfo=UTC), 18.0, city=city))
    store.save_observations(observations)


def _analyzer(store: InMemoryStore) -> AccuracyAnalyzer:
    return AccuracyAnalyzer(store, reference_timezone="Europe/Sarajevo")


def test_day_bounds_follow_reference_timezone() -> None:
    start, end = _analyzer(InMemoryStore()).day_bounds(TARGET)
    assert start == datetime(2025, 8, 2, 22, 0, tzinfo=UTC)
    assert end == datetime(2025, 8, 3, 22, 0, tzinfo=UTC)


def test_day_bounds_across_dst_change() -> None:
    start, end = _analyzer(InMemoryStore()).day_bounds(date(2025, 10, 26))
    assert start == datetime(2025, 10, 25, 22, 0, tzinfo=UTC)
    assert end == datetime(2025, 10, 26, 23, 0, tzinfo=UTC)


def test_forecast_horizon_truncates_whole_hours() -> None:
    analyzer = _analyzer(InMemoryStore())
    assert analyzer.forecast_horizon(datetime(2025, 8, 1, 18, 0, tzinfo=UTC), TARGET) == 28
    assert analyzer.forecast_horizon(datetime(2025, 8, 1, 18, 45, tzinfo=UTC), TARGET) == 27
    assert analyzer.forecast_horizon(datetime(2025, 8, 2, 23, 0, tzinfo=UTC), TARGET) == -1


def test_naive_timestamps_are_read_as_utc() -> None:
    store = InMemoryStore()
    store.save_forecasts([_forecast(datetime(2025, 8, 1, 18, 0))])
    store.save_observations([_observation(datetime(2025, 8, 3, 21, 30), 18.0)])
    analyzer = _analyzer(store)

    (stored,) = store.forecasts_for_date(TARGET)
    assert stored.fetch_timestamp == datetime(2025, 8, 1, 18, 0, tzinfo=UTC)
    assert analyzer.analyze_accuracy_for_date(TARGET) == 1
    (score,) = store.scores_by_city_and_date("Sarajevo", TARGET)
    assert score.forecast_horizon == 28


def test_previous_local_date_uses_reference_timezone() -> None:
    analyzer = _analyzer(InMemoryStore())
    assert analyzer.previous_local_date(datetime(2025, 8, 3, 22, 30, tzinfo=UTC)) == TARGET
    assert analyzer.previous_local_date(datetime(2025, 8, 3, 21, 30, tzinfo=UTC)) == date(
        2025, 8, 2
    )


def test_scores_forecast_against_observed_day() -> None:
    store = InMemoryStore()
    store.save_forecasts([_forecast(datetime(2025, 8, 1, 18, 0, tzinfo=UTC))])
    _seed_day(store)
    analyzer = _analyzer(store)

    assert analyzer.analyze_accuracy_for_date(TARGET) == 1

    (score,) = store.scores_by_city_and_date("Sarajevo", TARGET)
    assert score == AccuracyScore(
        provider_name="YR.NO",
        city="Sarajevo",
        target_date=TARGET,
        forecast_horizon=28,
        min_temp_deviation=1.0,
        max_temp_deviation=1.0,
        precipitation_score=PrecipitationScore.FALSE_POSITIVE,
    )
    assert analyzer.last_run is not None
    assert analyzer.last_run.state is AnalysisState.REPLACED
    assert analyzer.last_run.scores_written == 1


def test_rerun_is_idempotent() -> None:
    store = InMemoryStore()
    store.save_forecasts(
        [
            _forecast(datetime(2025, 8, 1, 18, 0, tzinfo=UTC)),
            _forecast(datetime(2025, 8, 2, 0, 0, tzinfo=UTC), provider="AccuWeather"),
        ]
    )
    _seed_day(store)
    analyzer = _analyzer(store)

    analyzer.analyze_accuracy_for_date(TARGET)
    first = sorted(store.scores_by_city_and_date("Sarajevo", TARGET), key=lambda s: s.key)
    analyzer.analyze_accuracy_for_date(TARGET)
    second = sorted(store.scores_by_city_and_date("Sarajevo", TARGET), key=lambda s: s.key)

    assert first == second
    assert len(second) == 2


def test_forecast_fetched_after_day_start_is_not_scored() -> None:
    store = InMemoryStore()
    store.save_forecasts(
        [
            _forecast(datetime(2025, 8, 1, 18, 0, tzinfo=UTC)),
            _forecast(datetime(2025, 8, 3, 6, 0, tzinfo=UTC)),
        ]
    )
    _seed_day(store)

    assert _analyzer(store).analyze_accuracy_for_date(TARGET) == 1
    (score,) = store.scores_by_city_and_date("Sarajevo", TARGET)
    assert score.forecast_horizon == 28


def test_incomplete_day_is_skipped_and_keeps_existing_scores() -> None:
    store = InMemoryStore()
    store.save_forecasts([_forecast(datetime(2025, 8, 1, 18, 0, tzinfo=UTC))])
    _seed_day(store, final_hour=False)
    existing = AccuracyScore(
        provider_name="YR.NO",
        city="Sarajevo",
        target_date=TARGET,
        forecast_horizon=99,
        min_temp_deviation=0.0,
        max_temp_deviation=0.0,
    )
    store.save_scores([existing])
    analyzer = _analyzer(store)

    assert analyzer.analyze_accuracy_for_date(TARGET) == 0
    assert store.scores_by_city_and_date("Sarajevo", TARGET) == [existing]
    assert analyzer.last_run is not None
    assert analyzer.last_run.state is AnalysisState.SKIPPED
    assert analyzer.last_run.skip_reason == "actual data incomplete"


def test_gather_inputs_reports_missing_observations() -> None:
    store = InMemoryStore()
    analyzer = _analyzer(store)

    with pytest.raises(MissingUpstreamDataError, match="actual data incomplete"):
        analyzer.gather_inputs(TARGET)
    assert analyzer.last_run is not None
    assert analyzer.last_run.state is AnalysisState.CHECKING_COMPLETENESS


def test_every_forecast_city_needs_final_hour_observation() -> None:
    store = InMemoryStore()
    store.save_forecasts(
        [
            _forecast(datetime(2025, 8, 1, 18, 0, tzinfo=UTC)),
            _forecast(datetime(2025, 8, 1, 18, 0, tzinfo=UTC), city="Zagreb"),
        ]
    )
    _seed_day(store)
    _seed_day(store, city="Zagreb", final_hour=False)
    analyzer = _analyzer(store)

    assert not analyzer.is_actual_data_complete(TARGET)
    assert analyzer.analyze_accuracy_for_date(TARGET) == 0


def test_observation_at_day_end_does_not_count_as_final_hour() -> None:
    store = InMemoryStore()
    store.save_forecasts([_forecast(datetime(2025, 8, 1, 18, 0, tzinfo=UTC))])
    _seed_day(store, final_hour=False)
    store.save_observations([_observation(datetime(2025, 8, 3, 22, 0, tzinfo=UTC), 17.0)])
    assert not _analyzer(store).is_actual_data_complete(TARGET)

    store.save_observations([_observation(datetime(2025, 8, 3, 21, 0, tzinfo=UTC), 17.0)])
    assert _analyzer(store).is_actual_data_complete(TARGET)


def test_no_forecasts_means_nothing_to_analyze() -> None:
    store = InMemoryStore()
    _seed_day(store)
    analyzer = _analyzer(store)
    assert not analyzer.is_actual_data_complete(TARGET)
    assert analyzer.analyze_accuracy_for_date(TARGET) == 0


def test_duplicate_fetch_keeps_highest_id() -> None:
    store = InMemoryStore()
    fetched_at = datetime(2025, 8, 1, 18, 0, tzinfo=UTC)
    store.save_forecasts([_forecast(fetched_at, min_temp=10.0)])
    store.save_forecasts([_forecast(fetched_at, min_temp=12.0)])
    _seed_day(store)

    assert _analyzer(store).analyze_accuracy_for_date(TARGET) == 1
    (score,) = store.scores_by_city_and_date("Sarajevo", TARGET)
    assert score.min_temp_deviation == -2.0


def test_deduplicate_prefers_higher_id_regardless_of_order() -> None:
    fetched_at = datetime(2025, 8, 1, 18, 0, tzinfo=UTC)
    newer = _forecast(fetched_at, min_temp=12.0, forecast_id=7)
    older = _forecast(fetched_at, min_temp=10.0, forecast_id=3)
    assert AccuracyAnalyzer.deduplicate([newer, older]) == [newer]
    assert AccuracyAnalyzer.deduplicate([older, newer]) == [newer]


def test_same_hour_fetches_keep_latest() -> None:
    store = InMemoryStore()
    store.save_forecasts(
        [
            _forecast(datetime(2025, 8, 1, 18, 40, tzinfo=UTC), min_temp=13.0),
            _forecast(datetime(2025, 8, 1, 18, 10, tzinfo=UTC), min_temp=11.0),
        ]
    )
    _seed_day(store)

    assert _analyzer(store).analyze_accuracy_for_date(TARGET) == 1
    (score,) = store.scores_by_city_and_date("Sarajevo", TARGET)
    assert score.forecast_horizon == 27
    assert score.min_temp_deviation == -1.0


def test_city_without_actual_data_is_dropped() -> None:
    analyzer = _analyzer(InMemoryStore())
    fetched_at = datetime(2025, 8, 1, 18, 0, tzinfo=UTC)
    actual = {"Sarajevo": DailyActualWeather(min_temp=14.0, max_temp=26.0, had_precipitation=True)}
    scores = analyzer.score_forecasts(
        TARGET,
        [_forecast(fetched_at), _forecast(fetched_at, city="Zagreb")],
        actual,
    )
    assert [score.city for score in scores] == ["Sarajevo"]
    assert scores[0].precipitation_score is PrecipitationScore.TRUE_POSITIVE


def test_missing_temperatures_score_zero_deviation() -> None:
    actual = DailyActualWeather.from_observations(
        [_observation(datetime(2025, 8, 3, 21, 30, tzinfo=UTC), None, precipitation=2.0)]
    )
    assert math.isnan(actual.min_temp)
    assert actual.had_precipitation

    score = AccuracyAnalyzer.score_forecast(
        _forecast(datetime(2025, 8, 1, 18, 0, tzinfo=UTC), weather=WeatherCategory.CLEAR),
        actual,
        28,
    )
    assert score.min_temp_deviation == 0.0
    assert score.max_temp_deviation == 0.0
    assert score.precipitation_score is PrecipitationScore.FALSE_NEGATIVE


def test_missing_prediction_scores_zero_deviation() -> None:
    actual = DailyActualWeather(min_temp=14.0, max_temp=26.0, had_precipitation=False)
    score = AccuracyAnalyzer.score_forecast(
        _forecast(
            datetime(2025, 8, 1, 18, 0, tzinfo=UTC), min_temp=None, max_temp=24.5, weather=None
        ),
        actual,
        28,
    )
    assert score.min_temp_deviation == 0.0
    assert score.max_temp_deviation == -1.5
    assert score.precipitation_score is PrecipitationScore.TRUE_NEGATIVE


@pytest.mark.parametrize(
    ("weather", "had_precipitation", "expected"),
    [
        (WeatherCategory.RAIN, True, PrecipitationScore.TRUE_POSITIVE),
        (WeatherCategory.SNOW, True, PrecipitationScore.TRUE_POSITIVE),
        (WeatherCategory.THUNDERSTORM, False, PrecipitationScore.FALSE_POSITIVE),
        (WeatherCategory.RAIN, False, PrecipitationScore.FALSE_POSITIVE),
        (WeatherCategory.CLEAR, True, PrecipitationScore.FALSE_NEGATIVE),
        (WeatherCategory.FOG_MIST, False, PrecipitationScore.TRUE_NEGATIVE),
        (WeatherCategory.CLOUDS, False, PrecipitationScore.TRUE_NEGATIVE),
    ],
)
def test_precipitation_confusion_matrix(
    weather: WeatherCategory, had_precipitation: bool, expected: PrecipitationScore
) -> None:
    assert PrecipitationScore.classify(weather, had_precipitation) is expected


class _FlakyStore(InMemoryStore):
    def forecasts_for_date(self, target_date: date) -> list[ForecastRecord]:
        if target_date == date(2025, 8, 2):
            raise StorageError("disk unavailable")
        return super().forecasts_for_date(target_date)


def test_failed_date_does_not_stop_other_dates() -> None:
    store = _FlakyStore()
    store.save_forecasts([_forecast(datetime(2025, 8, 1, 18, 0, tzinfo=UTC))])
    _seed_day(store)

    results = _analyzer(store).analyze_dates([date(2025, 8, 2), TARGET])
    assert results == {date(2025, 8, 2): None, TARGET: 1}


def test_storage_failure_propagates_from_single_date() -> None:
    with pytest.raises(StorageError):
        _analyzer(_FlakyStore()).analyze_accuracy_for_date(date(2025, 8, 2))
