"""Forecast and observation collection."""

from .collector import (
    ForecastCollector,
    LocationKeyCache,
    ObservationCollector,
    extract_location_key,
)
from .http_client import Fetcher, HttpFetcher
from .urls import build_url

__all__ = [
    "Fetcher",
    "ForecastCollector",
    "HttpFetcher",
    "LocationKeyCache",
    "ObservationCollector",
    "build_url",
    "extract_location_key",
]
