"""Normalize aviationweather.gov METAR JSON into actual observations."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Any

from ..exceptions import MalformedPayloadError
from ..models import ActualObservation
from .classifier import classify_observation, estimate_precipitation_mm

RECEIPT_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


class MetarObservationParser:
    """Turns a METAR API response into one observation per known station."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or logging.getLogger("forecast_accuracy.weather.metar")

    def parse(self, raw_payload: str, city_by_icao: dict[str, str]) -> list[ActualObservation]:
        """Parse the payload; unknown stations and malformed entries are skipped."""
        try:
            payload = json.loads(raw_payload)
        except ValueError:
            self.logger.error("METAR response is not valid JSON; no observations parsed.")
            return []
        if not isinstance(payload, list):
            self.logger.error(
                "METAR response has unexpected type %s; expected a list.",
                type(payload).__name__,
            )
            return []

        observations: list[ActualObservation] = []
        for entry in payload:
            try:
                observation = self._parse_entry(entry, city_by_icao)
            except MalformedPayloadError as exc:
                self.logger.warning("Skipping METAR entry: %s", exc)
                continue
            if observation is not None:
                observations.append(observation)
        return observations

    def _parse_entry(
        self,
        entry: Any,
        city_by_icao: dict[str, str],
    ) -> ActualObservation | None:
        if not isinstance(entry, dict):
            raise MalformedPayloadError(f"entry is {type(entry).__name__}, not an object")
        icao_id = entry.get("icaoId")
        if not isinstance(icao_id, str) or not icao_id:
            raise MalformedPayloadError("missing 'icaoId'")
        city = city_by_icao.get(icao_id)
        if city is None:
            self.logger.warning("City not found for ICAO code: %s", icao_id)
            return None

        measured_at = self._parse_receipt_time(entry.get("receiptTime"))
        temperature = entry.get("temp")
        if temperature is not None and (
            isinstance(temperature, bool) or not isinstance(temperature, (int, float))
        ):
            raise MalformedPayloadError(f"non-numeric 'temp' for {icao_id}: {temperature!r}")

        wx_string = entry.get("wxString")
        wx_string = wx_string if isinstance(wx_string, str) else None
        raw_report = entry.get("rawOb")
        raw_report = raw_report if isinstance(raw_report, str) else None

        return ActualObservation(
            city=city,
            measurement_timestamp=measured_at,
            actual_temperature=float(temperature) if temperature is not None else None,
            actual_precipitation=estimate_precipitation_mm(wx_string),
            weather=classify_observation(wx_string, raw_report),
        )

    @staticmethod
    def _parse_receipt_time(value: Any) -> datetime:
        if not isinstance(value, str):
            raise MalformedPayloadError("missing 'receiptTime'")
        try:
            parsed = datetime.strptime(value.strip(), RECEIPT_TIME_FORMAT)
        except ValueError as exc:
            raise MalformedPayloadError(f"invalid 'receiptTime' {value!r}") from exc
        return parsed.replace(tzinfo=UTC)
