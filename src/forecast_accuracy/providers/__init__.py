"""Forecast provider payload parsers."""

from .accuweather import AccuWeatherParser
from .base import ForecastParser
from .openweathermap import OpenWeatherMapParser
from .registry import ParserRegistry, default_registry
from .yrno import YrNoParser

__all__ = [
    "AccuWeatherParser",
    "ForecastParser",
    "OpenWeatherMapParser",
    "ParserRegistry",
    "YrNoParser",
    "default_registry",
]
