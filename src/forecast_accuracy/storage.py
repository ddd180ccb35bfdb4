"""Record stores for forecasts, observations and accuracy scores."""

from __future__ import annotations

import logging
import os
import tempfile
from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from .exceptions import StorageError
from .models import AccuracyScore, ActualObservation, ForecastRecord


class ForecastStore(ABC):
    """Storage contract used by ingestion, the analyzer and the ranking layer."""

    @abstractmethod
    def save_forecasts(self, records: Iterable[ForecastRecord]) -> list[ForecastRecord]:
        """Persist forecasts and return them with their assigned identities."""

    @abstractmethod
    def forecasts_for_date(self, target_date: date) -> list[ForecastRecord]:
        """Return every stored forecast predicting ``target_date``."""

    @abstractmethod
    def save_observations(
        self, observations: Iterable[ActualObservation]
    ) -> list[ActualObservation]:
        """Persist observations and return them with their assigned identities."""

    @abstractmethod
    def observations_in_range(self, start: datetime, end: datetime) -> list[ActualObservation]:
        """Observations with ``start <= measurement_timestamp < end``."""

    @abstractmethod
    def observations_for_city_in_range(
        self, city: str, start: datetime, end: datetime
    ) -> list[ActualObservation]:
        """Observations of one city with ``start <= measurement_timestamp < end``."""

    @abstractmethod
    def delete_scores_for_date(self, target_date: date) -> int:
        """Delete all scores for ``target_date`` and return how many were removed."""

    @abstractmethod
    def save_scores(self, scores: Iterable[AccuracyScore]) -> None:
        """Insert scores; a duplicate (provider, city, date, horizon) key is an error."""

    @abstractmethod
    def scores_by_city_and_date_after(self, city: str, after: date) -> list[AccuracyScore]:
        """Scores for ``city`` with target dates strictly after ``after``."""

    @abstractmethod
    def scores_by_city_and_date(self, city: str, target_date: date) -> list[AccuracyScore]:
        """Scores for ``city`` on exactly ``target_date``."""

    @abstractmethod
    def scores_by_city_horizon_and_date_after(
        self, city: str, horizon: int, after: date
    ) -> list[AccuracyScore]:
        """Scores for ``city`` at ``horizon`` with target dates strictly after ``after``."""

    @abstractmethod
    def distinct_horizons_and_dates_for_city(self, city: str) -> list[tuple[int, date]]:
        """Distinct (horizon, target date) pairs scored for ``city``."""

    @abstractmethod
    @contextmanager
    def transaction(self) -> Iterator[None]:
        """All-or-nothing scope: mutations inside are discarded if it raises."""

    def replace_scores_for_date(self, target_date: date, scores: Iterable[AccuracyScore]) -> int:
        """Atomically swap every score of ``target_date`` for ``scores``."""
        batch = list(scores)
        with self.transaction():
            self.delete_scores_for_date(target_date)
            self.save_scores(batch)
        return len(batch)


class _StoreState(BaseModel):
    next_id: int = 1
    forecasts: list[ForecastRecord] = Field(default_factory=list)
    observations: list[ActualObservation] = Field(default_factory=list)
    scores: list[AccuracyScore] = Field(default_factory=list)


class InMemoryStore(ForecastStore):
    """Process-local store; identities increase monotonically from 1."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or logging.getLogger("forecast_accuracy.storage")
        self._state = _StoreState()
        self._depth = 0

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if self._depth:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        # Records are frozen, so copying the containers is enough to roll back.
        snapshot = _StoreState.model_construct(
            next_id=self._state.next_id,
            forecasts=list(self._state.forecasts),
            observations=list(self._state.observations),
            scores=list(self._state.scores),
        )
        self._depth = 1
        try:
            yield
            self._commit()
        except Exception:
            self._state = snapshot
            self.logger.warning("Store transaction rolled back.")
            raise
        finally:
            self._depth = 0

    def _commit(self) -> None:
        """Hook run after the outermost transaction succeeds."""

    def _next_id(self) -> int:
        value = self._state.next_id
        self._state.next_id += 1
        return value

    def save_forecasts(self, records: Iterable[ForecastRecord]) -> list[ForecastRecord]:
        saved: list[ForecastRecord] = []
        with self.transaction():
            for record in records:
                stored = record.model_copy(update={"id": self._next_id()})
                self._state.forecasts.append(stored)
                saved.append(stored)
        return saved

    def forecasts_for_date(self, target_date: date) -> list[ForecastRecord]:
        return [record for record in self._state.forecasts if record.target_date == target_date]

    def save_observations(
        self, observations: Iterable[ActualObservation]
    ) -> list[ActualObservation]:
        saved: list[ActualObservation] = []
        with self.transaction():
            for observation in observations:
                stored = observation.model_copy(update={"id": self._next_id()})
                self._state.observations.append(stored)
                saved.append(stored)
        return saved

    def observations_in_range(self, start: datetime, end: datetime) -> list[ActualObservation]:
        return [
            observation
            for observation in self._state.observations
            if start <= observation.measurement_timestamp < end
        ]

    def observations_for_city_in_range(
        self, city: str, start: datetime, end: datetime
    ) -> list[ActualObservation]:
        return [
            observation
            for observation in self.observations_in_range(start, end)
            if observation.city == city
        ]

    def delete_scores_for_date(self, target_date: date) -> int:
        with self.transaction():
            before = len(self._state.scores)
            self._state.scores = [
                score for score in self._state.scores if score.target_date != target_date
            ]
            return before - len(self._state.scores)

    def save_scores(self, scores: Iterable[AccuracyScore]) -> None:
        with self.transaction():
            existing = {score.key for score in self._state.scores}
            for score in scores:
                if score.key in existing:
                    raise StorageError(f"Duplicate accuracy score key {score.key!r}.")
                existing.add(score.key)
                self._state.scores.append(score)

    def scores_by_city_and_date_after(self, city: str, after: date) -> list[AccuracyScore]:
        return [
            score
            for score in self._state.scores
            if score.city == city and score.target_date > after
        ]

    def scores_by_city_and_date(self, city: str, target_date: date) -> list[AccuracyScore]:
        return [
            score
            for score in self._state.scores
            if score.city == city and score.target_date == target_date
        ]

    def scores_by_city_horizon_and_date_after(
        self, city: str, horizon: int, after: date
    ) -> list[AccuracyScore]:
        return [
            score
            for score in self.scores_by_city_and_date_after(city, after)
            if score.forecast_horizon == horizon
        ]

    def distinct_horizons_and_dates_for_city(self, city: str) -> list[tuple[int, date]]:
        pairs = {
            (score.forecast_horizon, score.target_date)
            for score in self._state.scores
            if score.city == city
        }
        return sorted(pairs)


class JsonFileStore(InMemoryStore):
    """In-memory store persisted to one JSON document after every committed change.

    The document is written to a temporary sibling file and moved into place,
    so readers see either the previous or the new state.
    """

    def __init__(self, path: Path, logger: logging.Logger | None = None) -> None:
        super().__init__(logger=logger)
        self.path = path
        if path.exists():
            self._state = self._load(path)

    @staticmethod
    def _load(path: Path) -> _StoreState:
        try:
            return _StoreState.model_validate_json(path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise StorageError(f"Failed reading store {path}: {exc}") from exc
        except ValidationError as exc:
            raise StorageError(f"Store {path} is corrupt: {exc}") from exc

    def _commit(self) -> None:
        document = self._state.model_dump_json(indent=2)
        tmp_name: str | None = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as fh:
                tmp_name = fh.name
                fh.write(document)
                fh.write("\n")
            os.replace(tmp_name, self.path)
        except OSError as exc:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StorageError(f"Failed writing store {self.path}: {exc}") from exc
