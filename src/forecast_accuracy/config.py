"""Typed settings and monitor configuration loaders."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigError

DEFAULT_REFERENCE_TIMEZONE = "Europe/Sarajevo"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and `.env`."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_env: Literal["dev", "staging", "prod"] = Field(default="dev", alias="APP_ENV")
    monitor_config_path: Path = Field(
        default=Path("./config/monitor.json"),
        alias="MONITOR_CONFIG_PATH",
    )
    store_path: Path = Field(default=Path("./data/store.json"), alias="STORE_PATH")
    reference_timezone: str = Field(
        default=DEFAULT_REFERENCE_TIMEZONE,
        alias="REFERENCE_TIMEZONE",
    )

    http_timeout_seconds: float = Field(default=15.0, alias="HTTP_TIMEOUT_SECONDS")
    http_user_agent: str = Field(
        default="forecast-accuracy/0.1 (contact: research@example.com)",
        alias="HTTP_USER_AGENT",
    )
    ranking_default_days: int = Field(default=30, alias="RANKING_DEFAULT_DAYS")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
    )

    accuweather_api_key: str | None = Field(
        default=None, alias="ACCUWEATHER_API_KEY", repr=False
    )
    openweathermap_api_key: str | None = Field(
        default=None, alias="OPENWEATHERMAP_API_KEY", repr=False
    )

    @field_validator("accuweather_api_key", "openweathermap_api_key", mode="before")
    @classmethod
    def empty_string_to_none(cls, value: Any) -> Any:
        """Treat empty env-string values as unset keys."""
        if isinstance(value, str) and value.strip() == "":
            return None
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_log_level(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @model_validator(mode="after")
    def validate_ranges(self) -> Settings:
        """Validate numeric ranges and the reference timezone name."""
        try:
            ZoneInfo(self.reference_timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(
                f"REFERENCE_TIMEZONE {self.reference_timezone!r} is not a known IANA zone."
            ) from exc
        if self.http_timeout_seconds <= 0:
            raise ValueError("HTTP_TIMEOUT_SECONDS must be > 0.")
        if not self.http_user_agent.strip():
            raise ValueError("HTTP_USER_AGENT must not be empty.")
        if self.ranking_default_days <= 0:
            raise ValueError("RANKING_DEFAULT_DAYS must be > 0.")
        return self

    def api_key_for(self, provider_name: str) -> str | None:
        """Return the environment-sourced API key for a provider, if any."""
        keys = {
            "accuweather": self.accuweather_api_key,
            "openweathermap": self.openweathermap_api_key,
        }
        return keys.get(provider_name.strip().lower())

    def safe_summary(self) -> dict[str, Any]:
        """Return config summary safe for logging (no credentials)."""
        return {
            "app_env": self.app_env,
            "monitor_config_path": str(self.monitor_config_path),
            "store_path": str(self.store_path),
            "reference_timezone": self.reference_timezone,
            "http_timeout_seconds": self.http_timeout_seconds,
            "ranking_default_days": self.ranking_default_days,
            "accuweather_api_key_set": self.accuweather_api_key is not None,
            "openweathermap_api_key_set": self.openweathermap_api_key is not None,
        }


class CityConfig(BaseModel):
    """A monitored city; extra attributes are available as URL placeholders."""

    model_config = ConfigDict(extra="allow")

    name: str
    latitude: float | None = None
    longitude: float | None = None
    icao_code: str | None = None

    def attributes(self) -> dict[str, Any]:
        return {key: value for key, value in self.model_dump().items() if value is not None}


class ProviderConfig(BaseModel):
    """A forecast provider endpoint definition."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str
    url: str
    location_url: str | None = Field(default=None, alias="locationUrl")
    api_key: str | None = Field(default=None, alias="apiKey", repr=False)

    def attributes(self) -> dict[str, Any]:
        """Return placeholder attributes keyed by their config-file names."""
        return {
            key: value
            for key, value in self.model_dump(by_alias=True).items()
            if value is not None
        }


class ObservationSourceConfig(BaseModel):
    """METAR source; `{}` in the URL is replaced by comma-joined ICAO codes."""

    name: str = "Aviation Weather (METAR)"
    url: str


class MonitorConfig(BaseModel):
    """Cities, forecast providers and the observation source being monitored."""

    model_config = ConfigDict(populate_by_name=True)

    cities: list[CityConfig] = Field(default_factory=list)
    providers: list[ProviderConfig] = Field(default_factory=list)
    actual_weather_source: ObservationSourceConfig | None = Field(
        default=None,
        alias="actualWeatherSource",
    )

    @model_validator(mode="after")
    def validate_unique_names(self) -> MonitorConfig:
        city_names = [city.name for city in self.cities]
        if len(city_names) != len(set(city_names)):
            raise ValueError("City names in monitor config must be unique.")
        provider_names = [provider.name for provider in self.providers]
        if len(provider_names) != len(set(provider_names)):
            raise ValueError("Provider names in monitor config must be unique.")
        return self

    def city_by_icao(self) -> dict[str, str]:
        """Map ICAO station codes to city names."""
        return {city.icao_code: city.name for city in self.cities if city.icao_code}


def load_settings() -> Settings:
    """Load and validate settings, raising ConfigError on failure."""
    try:
        settings = Settings()
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Failed reading environment/.env: {exc}") from exc

    settings.store_path.parent.mkdir(parents=True, exist_ok=True)
    return settings


def load_monitor_config(path: Path) -> MonitorConfig:
    """Read the JSON monitor config (cities, providers, METAR source)."""
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"Failed reading monitor config {path}: {exc}") from exc
    except ValueError as exc:
        raise ConfigError(f"Monitor config {path} is not valid JSON: {exc}") from exc
    try:
        return MonitorConfig.model_validate(payload)
    except ValidationError as exc:
        raise ConfigError(f"Invalid monitor config {path}: {exc}") from exc
