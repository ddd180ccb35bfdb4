"""Provider-agnostic forecast parser contract."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from datetime import UTC, date, datetime
from typing import Any

from ..exceptions import MalformedPayloadError
from ..models import ForecastRecord, WeatherCategory

# Errors a single malformed entry may raise while being read.
ENTRY_ERRORS = (
    MalformedPayloadError,
    AttributeError,
    KeyError,
    TypeError,
    ValueError,
    OverflowError,
)


class ForecastParser(ABC):
    """Converts one provider's raw forecast payload into per-day forecast records.

    ``parse`` never raises: an unreadable payload yields an empty list and a
    malformed entry is logged and skipped without aborting the batch.
    """

    provider_name: str

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or logging.getLogger(
            f"forecast_accuracy.providers.{type(self).__name__}"
        )

    def parse(
        self,
        city_name: str,
        raw_payload: str,
        fetch_timestamp: datetime,
    ) -> list[ForecastRecord]:
        """Parse a raw JSON payload fetched at ``fetch_timestamp`` for ``city_name``."""
        self.logger.info("Parsing %s forecast for %s", self.provider_name, city_name)
        try:
            payload = json.loads(raw_payload)
        except (TypeError, ValueError):
            self.logger.error(
                "%s response for %s is not valid JSON", self.provider_name, city_name
            )
            return []

        fetched_at = _as_utc(fetch_timestamp)
        try:
            records = self._parse_payload(payload, city_name, fetched_at)
        except MalformedPayloadError as exc:
            self.logger.error(
                "Invalid %s response format for %s: %s", self.provider_name, city_name, exc
            )
            return []

        records.sort(key=lambda record: record.target_date)
        self.logger.info(
            "Parsed %d forecast entries for %s from %s",
            len(records),
            city_name,
            self.provider_name,
        )
        return records

    @abstractmethod
    def _parse_payload(
        self,
        payload: Any,
        city_name: str,
        fetch_timestamp: datetime,
    ) -> list[ForecastRecord]:
        """Build records from decoded JSON; raise MalformedPayloadError on bad structure."""

    def _record(
        self,
        *,
        city_name: str,
        fetch_timestamp: datetime,
        target_date: date,
        min_temp: float | None,
        max_temp: float | None,
        weather: WeatherCategory | None,
    ) -> ForecastRecord:
        return ForecastRecord(
            provider_name=self.provider_name,
            city=city_name,
            fetch_timestamp=fetch_timestamp,
            target_date=target_date,
            predicted_min_temp=min_temp,
            predicted_max_temp=max_temp,
            predicted_weather=weather,
        )


def require_list(container: Any, key: str) -> list[Any]:
    """Return ``container[key]`` when it is a JSON array."""
    value = container.get(key) if isinstance(container, dict) else None
    if not isinstance(value, list):
        raise MalformedPayloadError(f"missing '{key}' array")
    return value


def as_number(value: Any, field: str) -> float:
    """Coerce a JSON number (never a bool) to float."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedPayloadError(f"'{field}' is not numeric: {value!r}")
    return float(value)


def utc_date_from_epoch(epoch_seconds: Any) -> date:
    """Return the UTC calendar date of a Unix timestamp in seconds."""
    seconds = as_number(epoch_seconds, "epoch")
    try:
        return datetime.fromtimestamp(seconds, tz=UTC).date()
    except (OverflowError, OSError, ValueError) as exc:
        raise MalformedPayloadError(f"epoch out of range: {epoch_seconds!r}") from exc


def parse_iso_datetime(value: Any) -> datetime:
    """Parse an ISO-8601 timestamp (``Z`` suffix allowed) into UTC."""
    if not isinstance(value, str) or not value.strip():
        raise MalformedPayloadError(f"invalid timestamp {value!r}")
    candidate = value.strip()
    if candidate.endswith("Z"):
        candidate = candidate[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError as exc:
        raise MalformedPayloadError(f"invalid timestamp {value!r}") from exc
    return _as_utc(parsed)


def _as_utc(value: datetime) -> datetime:
    return value.astimezone(UTC) if value.tzinfo else value.replace(tzinfo=UTC)
