"""Application exception classes."""


class ForecastAccuracyError(Exception):
    """Base class for all forecast-accuracy failures."""


class ConfigError(ForecastAccuracyError):
    """Raised when settings or the monitor config file are invalid or incomplete."""


class ConfigurationError(ForecastAccuracyError):
    """Raised when a provider URL template placeholder cannot be resolved."""

    def __init__(self, message: str, *, placeholder: str | None = None) -> None:
        super().__init__(message)
        self.placeholder = placeholder


class MalformedPayloadError(ForecastAccuracyError):
    """Raised when a single provider or METAR entry cannot be normalized."""


class MissingUpstreamDataError(ForecastAccuracyError):
    """Raised when observations required for scoring a date are absent."""


class TransportError(ForecastAccuracyError):
    """Raised when an HTTP fetch fails or returns an unusable response."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class StorageError(ForecastAccuracyError):
    """Raised when reading or writing the record store fails."""


class UnknownProviderError(ForecastAccuracyError):
    """Raised when no forecast parser is registered for a provider name."""
