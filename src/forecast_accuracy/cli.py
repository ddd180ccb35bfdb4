"""Command-line entry point: collect, analyze and rank forecast providers."""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import UTC, date, datetime, timedelta

from rich.console import Console
from rich.table import Table

from .analysis import AccuracyAnalyzer, RankingAggregator
from .config import Settings, load_monitor_config, load_settings
from .exceptions import ConfigError, ConfigurationError, StorageError, TransportError
from .ingestion import ForecastCollector, HttpFetcher, LocationKeyCache, ObservationCollector
from .log_setup import setup_logger
from .models import AccuracyScoreDetail, FilterOptions, ProviderScoreSummary
from .providers import default_registry
from .storage import JsonFileStore

MAX_ANALYZE_DAYS = 366


def _add_query_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--city", required=True, help="City name as configured.")
    parser.add_argument(
        "--days",
        type=int,
        default=None,
        help="Trailing window in days (defaults to RANKING_DEFAULT_DAYS).",
    )
    parser.add_argument("--horizon", type=int, default=None, help="Exact forecast horizon.")
    parser.add_argument(
        "--date",
        type=date.fromisoformat,
        default=None,
        help="Exact target date (YYYY-MM-DD); overrides --days and --horizon.",
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(
        prog="forecast-accuracy",
        description="Collect weather forecasts and observations, score and rank providers.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("collect-forecasts", help="Fetch forecasts from every provider.")
    subparsers.add_parser("collect-observations", help="Fetch METAR observations.")

    analyze = subparsers.add_parser("analyze", help="Score forecasts for past dates.")
    analyze.add_argument("--date", type=date.fromisoformat, default=None, help="Single date.")
    analyze.add_argument(
        "--from", dest="date_from", type=date.fromisoformat, default=None, help="Range start."
    )
    analyze.add_argument(
        "--to", dest="date_to", type=date.fromisoformat, default=None, help="Range end, inclusive."
    )

    summary = subparsers.add_parser("summary", help="Ranked per-provider summary.")
    _add_query_arguments(summary)
    details = subparsers.add_parser("details", help="Individual accuracy scores.")
    _add_query_arguments(details)
    filters = subparsers.add_parser("filters", help="Available horizons and dates.")
    filters.add_argument("--city", required=True, help="City name as configured.")

    args = parser.parse_args(argv)
    if args.command == "analyze":
        if args.date is not None and (args.date_from is not None or args.date_to is not None):
            parser.error("Use either --date or --from/--to, not both.")
        if (args.date_from is None) != (args.date_to is None):
            parser.error("--from and --to must be given together.")
        if args.date_from is not None and args.date_from > args.date_to:
            parser.error("--from must not be after --to.")
        if args.date_from is not None and (args.date_to - args.date_from).days >= MAX_ANALYZE_DAYS:
            parser.error(f"Date range must span fewer than {MAX_ANALYZE_DAYS} days.")
    if args.command in ("summary", "details") and args.days is not None and args.days <= 0:
        parser.error("--days must be > 0.")
    return args


def analysis_dates(args: argparse.Namespace, analyzer: AccuracyAnalyzer) -> list[date]:
    """Dates selected by ``analyze`` arguments; yesterday in the reference zone by default."""
    if args.date is not None:
        return [args.date]
    if args.date_from is not None:
        span = (args.date_to - args.date_from).days
        return [args.date_from + timedelta(days=offset) for offset in range(span + 1)]
    return [analyzer.previous_local_date(datetime.now(UTC))]


def _print_collection(console: Console, saved: dict[str, int]) -> None:
    table = Table(title="Collected Forecasts")
    table.add_column("Provider")
    table.add_column("Records", justify="right")
    for provider_name, count in saved.items():
        table.add_row(provider_name, str(count))
    console.print(table)
    console.print(f"Saved {sum(saved.values())} forecast records")


def _print_analysis(console: Console, results: dict[date, int | None]) -> None:
    table = Table(title="Accuracy Analysis")
    table.add_column("Date")
    table.add_column("Scores", justify="right")
    for target_date, written in results.items():
        table.add_row(target_date.isoformat(), "failed" if written is None else str(written))
    console.print(table)


def _print_summary(console: Console, city: str, summaries: list[ProviderScoreSummary]) -> None:
    if not summaries:
        console.print(f"No accuracy scores found for {city}.")
        return
    table = Table(title=f"Provider Ranking: {city}")
    table.add_column("#", justify="right")
    table.add_column("Provider")
    table.add_column("Overall", justify="right")
    table.add_column("Avg Temp Dev", justify="right")
    table.add_column("Precip Acc", justify="right")
    for rank, summary in enumerate(summaries, start=1):
        table.add_row(
            str(rank),
            summary.provider_name,
            f"{summary.overall_score:.2f}",
            f"{summary.average_temp_deviation:.2f}",
            f"{summary.precipitation_accuracy:.0%}",
        )
    console.print(table)


def _print_details(console: Console, city: str, rows: list[AccuracyScoreDetail]) -> None:
    if not rows:
        console.print(f"No accuracy scores found for {city}.")
        return
    table = Table(title=f"Accuracy Scores: {city}")
    table.add_column("Date")
    table.add_column("Horizon", justify="right")
    table.add_column("Provider", overflow="fold")
    table.add_column("Min Dev", justify="right")
    table.add_column("Max Dev", justify="right")
    table.add_column("Precip")
    for row in rows:
        table.add_row(
            row.target_date.isoformat(),
            f"{row.forecast_horizon}h",
            row.provider_name,
            f"{row.min_temp_deviation:+.1f}",
            f"{row.max_temp_deviation:+.1f}",
            row.precipitation_score.value if row.precipitation_score else "-",
        )
    console.print(table)


def _print_filters(console: Console, city: str, options: FilterOptions) -> None:
    horizons = ", ".join(str(horizon) for horizon in options.available_horizons) or "-"
    dates = ", ".join(options.available_dates) or "-"
    console.print(f"Filters for {city}")
    console.print(f"Horizons: {horizons}")
    console.print(f"Dates: {dates}")


def _run(
    args: argparse.Namespace,
    settings: Settings,
    store: JsonFileStore,
    console: Console,
    logger: logging.Logger,
) -> int:
    if args.command in ("collect-forecasts", "collect-observations"):
        monitor_config = load_monitor_config(settings.monitor_config_path)
        with HttpFetcher(settings=settings, logger=logger) as fetcher:
            if args.command == "collect-forecasts":
                collector = ForecastCollector(
                    fetcher=fetcher,
                    registry=default_registry(logger=logger),
                    store=store,
                    monitor_config=monitor_config,
                    api_key_lookup=settings.api_key_for,
                    location_cache=LocationKeyCache(),
                    logger=logger,
                )
                _print_collection(console, collector.collect())
                return 0
            observations = ObservationCollector(
                fetcher=fetcher, store=store, monitor_config=monitor_config, logger=logger
            )
            console.print(f"Saved {observations.collect()} observations")
            return 0

    if args.command == "analyze":
        analyzer = AccuracyAnalyzer(store, settings.reference_timezone, logger=logger)
        results = analyzer.analyze_dates(analysis_dates(args, analyzer))
        _print_analysis(console, results)
        return 4 if any(written is None for written in results.values()) else 0

    ranking = RankingAggregator(store, settings.reference_timezone, logger=logger)
    if args.command == "filters":
        _print_filters(console, args.city, ranking.available_filters(args.city))
        return 0

    days = args.days or settings.ranking_default_days
    if args.command == "summary":
        summaries = ranking.ranked_summary(args.city, days, args.horizon, args.date)
        _print_summary(console, args.city, summaries)
    else:
        rows = ranking.detailed_scores(args.city, days, args.horizon, args.date)
        _print_details(console, args.city, rows)
    return 0


def main() -> int:
    """Run one CLI command and return its exit code."""
    args = parse_args()
    logger = setup_logger()
    console = Console()

    try:
        settings = load_settings()
    except ConfigError as exc:
        logger.error("Configuration failure: %s", exc)
        return 2
    logger.setLevel(settings.log_level)
    logger.info("Starting %s with settings %s", args.command, settings.safe_summary())

    try:
        store = JsonFileStore(settings.store_path, logger=logger)
    except StorageError as exc:
        logger.error("Failed to open store: %s", exc)
        return 3

    try:
        return _run(args, settings, store, console, logger)
    except ConfigError as exc:
        logger.error("Configuration failure: %s", exc)
        return 2
    except StorageError as exc:
        logger.error("Storage failure: %s", exc)
        return 3
    except (TransportError, ConfigurationError) as exc:
        logger.error("Run failed: %s", exc)
        return 4
    except Exception as exc:  # pragma: no cover - last-resort catch for scheduled runs
        logger.exception("Unexpected failure: %s", exc)
        return 99


if __name__ == "__main__":
    sys.exit(main())
