"""Placeholder substitution for provider URL templates."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Mapping
from typing import Any

from ..config import CityConfig, ProviderConfig
from ..exceptions import ConfigurationError
from ..redaction import sanitize_text

PLACEHOLDER_RE = re.compile(r"\{([^}]+)\}")
API_KEY_PLACEHOLDER = "apiKey"

logger = logging.getLogger("forecast_accuracy.ingestion.urls")


def build_url(
    template: str,
    city: CityConfig,
    provider: ProviderConfig,
    api_key_lookup: Callable[[str], str | None] | None = None,
    extra: Mapping[str, Any] | None = None,
) -> str:
    """Fill every ``{name}`` placeholder in ``template``.

    ``apiKey`` comes from ``api_key_lookup`` (environment settings) and falls
    back to the provider config. Other names are looked up in ``extra``, then
    the city's attributes, then the provider's.

    Raises:
        ConfigurationError: if any placeholder has no value.
    """
    city_values = city.attributes()
    provider_values = provider.attributes()
    extra_values = dict(extra or {})

    def resolve(match: re.Match[str]) -> str:
        name = match.group(1)
        value: Any = None
        if name == API_KEY_PLACEHOLDER:
            if api_key_lookup is not None:
                value = api_key_lookup(provider.name)
            if not value:
                logger.warning(
                    "Environment variable for %s apiKey not set. Falling back to config.",
                    provider.name,
                )
                value = provider.api_key
        elif name in extra_values:
            value = extra_values[name]
        elif name in city_values:
            value = city_values[name]
        elif name in provider_values:
            value = provider_values[name]

        if value is None or value == "":
            raise ConfigurationError(
                f"Parameter '{name}' not found in config or environment for URL: "
                f"{sanitize_text(template)}",
                placeholder=name,
            )
        return str(value)

    return PLACEHOLDER_RE.sub(resolve, template)
