"""Registry of locale providers keyed by ISO country code."""
from __future__ import annotations

from crm_demo.core.log import get_logger
from crm_demo.generator.rng import SeededRNG

from .base import Address, City, LocaleProvider
from .de import DEProvider
from .faker_provider import FAKER_LOCALES, FakerLocaleProvider
from .uk import UKProvider
from .us import USProvider

LOGGER = get_logger(__name__)

FALLBACK_COUNTRY = "US"

_STATIC_PROVIDERS: dict[str, type[LocaleProvider]] = {
    "US": USProvider,
    "GB": UKProvider,
    "UK": UKProvider,
    "DE": DEProvider,
}

_ALIASES = {"UK"}


def get_provider(country: str, rng: SeededRNG) -> LocaleProvider:
    """Return the provider for ``country``, falling back to the US data set."""

    code = (country or "").upper()
    provider_cls = _STATIC_PROVIDERS.get(code)
    if provider_cls is not None:
        return provider_cls(rng)
    if code in FAKER_LOCALES:
        return FakerLocaleProvider(code, rng)
    LOGGER.debug("No locale provider for %s; using %s", code, FALLBACK_COUNTRY)
    return _STATIC_PROVIDERS[FALLBACK_COUNTRY](rng)


def has_provider(country: str) -> bool:
    code = (country or "").upper()
    return code in _STATIC_PROVIDERS or code in FAKER_LOCALES


def supported_countries() -> list[str]:
    codes = [code for code in _STATIC_PROVIDERS if code not in _ALIASES]
    codes.extend(FAKER_LOCALES)
    return sorted(codes)


__all__ = [
    "Address",
    "City",
    "DEProvider",
    "FakerLocaleProvider",
    "LocaleProvider",
    "UKProvider",
    "USProvider",
    "get_provider",
    "has_provider",
    "supported_countries",
]
