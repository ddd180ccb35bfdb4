"""Observation-side weather classification and METAR parsing."""

from .classifier import (
    classify_cloud_cover,
    classify_metar_text,
    classify_observation,
    estimate_precipitation_mm,
)
from .metar import MetarObservationParser

__all__ = [
    "MetarObservationParser",
    "classify_cloud_cover",
    "classify_metar_text",
    "classify_observation",
    "estimate_precipitation_mm",
]
