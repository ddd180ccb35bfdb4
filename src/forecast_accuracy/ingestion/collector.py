"""Scheduled-job bodies: fetch provider forecasts and METAR observations."""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from ..config import CityConfig, MonitorConfig, ProviderConfig
from ..exceptions import ConfigurationError, MalformedPayloadError, TransportError
from ..models import ForecastRecord
from ..providers import ParserRegistry
from ..redaction import sanitize_for_logging
from ..storage import ForecastStore
from ..weather import MetarObservationParser
from .http_client import Fetcher
from .urls import build_url

LOCATION_KEY_PLACEHOLDER = "locationKey"
ICAO_PLACEHOLDER = "{}"


class LocationKeyCache:
    """City name to provider location key; entries are never evicted."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._keys: dict[str, str] = {}

    def get(self, city_name: str) -> str | None:
        with self._lock:
            return self._keys.get(city_name)

    def put(self, city_name: str, key: str) -> None:
        with self._lock:
            self._keys[city_name] = key

    def get_or_fetch(self, city_name: str, fetch: Callable[[], str]) -> str:
        cached = self.get(city_name)
        if cached is not None:
            return cached
        key = fetch()
        self.put(city_name, key)
        return key

    def __len__(self) -> int:
        with self._lock:
            return len(self._keys)


def extract_location_key(raw_payload: str) -> str:
    """Read ``Key`` from a location lookup response (first array item or plain object)."""
    try:
        payload: Any = json.loads(raw_payload)
    except ValueError as exc:
        raise MalformedPayloadError("location response is not valid JSON") from exc
    if isinstance(payload, list) and payload:
        payload = payload[0]
    key = payload.get("Key") if isinstance(payload, dict) else None
    if key is None or key == "":
        raise MalformedPayloadError("location response did not contain a 'Key' field")
    return str(key)


class ForecastCollector:
    """Fetches every configured provider for every city, one combination at a time."""

    def __init__(
        self,
        fetcher: Fetcher,
        registry: ParserRegistry,
        store: ForecastStore,
        monitor_config: MonitorConfig,
        api_key_lookup: Callable[[str], str | None] | None = None,
        location_cache: LocationKeyCache | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.registry = registry
        self.store = store
        self.monitor_config = monitor_config
        self.api_key_lookup = api_key_lookup
        self.location_cache = location_cache if location_cache is not None else LocationKeyCache()
        self.logger = logger or logging.getLogger("forecast_accuracy.ingestion.collector")

    def collect(self, fetch_time: datetime | None = None) -> dict[str, int]:
        """Return saved record counts keyed by provider name.

        ``fetch_time`` stamps every record of the run; by default each request
        is stamped with the current UTC time when its response arrives.

        Transport, configuration and location-lookup failures are logged per
        provider/city and never stop the remaining combinations. Storage
        failures propagate.
        """
        self.logger.info("Fetching weather forecasts...")
        saved: dict[str, int] = {}
        for provider in self.monitor_config.providers:
            self.logger.info("Processing provider: %s", provider.name)
            self.logger.debug(
                "Provider attributes: %s", sanitize_for_logging(provider.attributes())
            )
            if not self.registry.has(provider.name):
                self.logger.warning("No parser configured for provider: %s", provider.name)
                continue
            saved[provider.name] = 0
            for city in self.monitor_config.cities:
                try:
                    records = self.collect_one(provider, city, fetch_time)
                except (TransportError, ConfigurationError, MalformedPayloadError) as exc:
                    self.logger.error(
                        "Error fetching forecast for %s from %s: %s", city.name, provider.name, exc
                    )
                    continue
                saved[provider.name] += len(records)
        self.logger.info("Forecast fetching completed")
        return saved

    def collect_one(
        self,
        provider: ProviderConfig,
        city: CityConfig,
        fetch_time: datetime | None = None,
    ) -> list[ForecastRecord]:
        """Fetch, parse and store one provider/city forecast."""
        extra: dict[str, str] = {}
        if provider.location_url:
            location_key = self.location_cache.get_or_fetch(
                city.name, lambda: self._lookup_location_key(provider, city)
            )
            self.logger.info("Location key for %s is %s", city.name, location_key)
            extra[LOCATION_KEY_PLACEHOLDER] = location_key

        url = build_url(provider.url, city, provider, self.api_key_lookup, extra=extra)
        self.logger.info("Fetching forecast for %s from %s", city.name, provider.name)
        raw_payload = self.fetcher.get(url)

        fetch_timestamp = fetch_time or datetime.now(UTC)
        records = self.registry.parse(provider.name, city.name, raw_payload, fetch_timestamp)
        if not records:
            self.logger.warning("No forecast data parsed for %s from %s", city.name, provider.name)
            return []
        saved = self.store.save_forecasts(records)
        self.logger.info(
            "Saved %d forecast entries for %s from %s", len(saved), city.name, provider.name
        )
        return saved

    def _lookup_location_key(self, provider: ProviderConfig, city: CityConfig) -> str:
        template = provider.location_url or ""
        url = build_url(template, city, provider, self.api_key_lookup)
        return extract_location_key(self.fetcher.get(url))


class ObservationCollector:
    """Fetches one METAR batch covering every configured station."""

    def __init__(
        self,
        fetcher: Fetcher,
        store: ForecastStore,
        monitor_config: MonitorConfig,
        metar_parser: MetarObservationParser | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.store = store
        self.monitor_config = monitor_config
        self.logger = logger or logging.getLogger("forecast_accuracy.ingestion.collector")
        self.metar_parser = metar_parser or MetarObservationParser(logger=self.logger)

    def station_url(self) -> str:
        source = self.monitor_config.actual_weather_source
        if source is None:
            raise ConfigurationError("Monitor config has no 'actualWeatherSource'.")
        codes = [city.icao_code for city in self.monitor_config.cities if city.icao_code]
        if not codes:
            raise ConfigurationError("No city in the monitor config has an 'icao_code'.")
        return source.url.replace(ICAO_PLACEHOLDER, ",".join(codes))

    def collect(self) -> int:
        """Fetch, parse and store observations; return how many were saved.

        Raises:
            ConfigurationError: if no METAR source or station is configured.
            TransportError: if the METAR request fails.
        """
        self.logger.info("Fetching actual weather...")
        raw_payload = self.fetcher.get(self.station_url())
        observations = self.metar_parser.parse(raw_payload, self.monitor_config.city_by_icao())
        saved = self.store.save_observations(observations)
        for observation in saved:
            self.logger.info(
                "Saved actual weather data for %s: %s C, %s",
                observation.city,
                observation.actual_temperature,
                observation.weather.value if observation.weather else None,
            )
        return len(saved)
