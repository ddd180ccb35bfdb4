"""Lookup of forecast parsers by provider name."""

from __future__ import annotations

import logging
from datetime import datetime

from ..exceptions import UnknownProviderError
from ..models import ForecastRecord
from .accuweather import AccuWeatherParser
from .base import ForecastParser
from .openweathermap import OpenWeatherMapParser
from .yrno import YrNoParser


class ParserRegistry:
    """Maps each provider name to the parser that understands its payloads."""

    def __init__(self, parsers: list[ForecastParser] | None = None) -> None:
        self._parsers: dict[str, ForecastParser] = {}
        for parser in parsers or []:
            self.register(parser)

    def register(self, parser: ForecastParser) -> None:
        if parser.provider_name in self._parsers:
            raise ValueError(f"Parser already registered for provider {parser.provider_name!r}.")
        self._parsers[parser.provider_name] = parser

    def get(self, provider_name: str) -> ForecastParser | None:
        return self._parsers.get(provider_name)

    def has(self, provider_name: str) -> bool:
        return provider_name in self._parsers

    def require(self, provider_name: str) -> ForecastParser:
        parser = self.get(provider_name)
        if parser is None:
            raise UnknownProviderError(f"No parser configured for provider: {provider_name}")
        return parser

    def provider_names(self) -> list[str]:
        return sorted(self._parsers)

    def parse(
        self,
        provider_name: str,
        city_name: str,
        raw_payload: str,
        fetch_timestamp: datetime,
    ) -> list[ForecastRecord]:
        """Parse a payload with the parser registered for ``provider_name``."""
        return self.require(provider_name).parse(city_name, raw_payload, fetch_timestamp)


def default_registry(logger: logging.Logger | None = None) -> ParserRegistry:
    """Registry with the AccuWeather, OpenWeatherMap and YR.NO parsers."""
    return ParserRegistry(
        [
            AccuWeatherParser(logger=logger),
            OpenWeatherMapParser(logger=logger),
            YrNoParser(logger=logger),
        ]
    )
