import pytest

from crm_demo.generator.locales import (
    DEProvider,
    FakerLocaleProvider,
    UKProvider,
    USProvider,
    get_provider,
    has_provider,
    supported_countries,
)
from crm_demo.generator.rng import SeededRNG


@pytest.mark.parametrize(
    ("country", "provider_cls", "prefix"),
    [("US", USProvider, "+1 ("), ("GB", UKProvider, "+44 "), ("uk", UKProvider, "+44 "), ("DE", DEProvider, "+49 ")],
)
def test_static_providers(country: str, provider_cls: type, prefix: str) -> None:
    provider = get_provider(country, SeededRNG("locale"))

    assert isinstance(provider, provider_cls)
    assert provider.phone().startswith(prefix)
    assert provider.first_name()
    assert provider.full_address().country == provider.country_name


def test_unknown_country_falls_back_to_us() -> None:
    provider = get_provider("ZZ", SeededRNG(1))

    assert isinstance(provider, USProvider)
    assert not has_provider("ZZ")


def test_faker_provider_for_france() -> None:
    provider = get_provider("FR", SeededRNG("paris"))

    assert isinstance(provider, FakerLocaleProvider)
    assert provider.locale == "fr_FR"
    assert provider.full_address().country == "France"
    assert "@" in provider.email(provider.first_name(), provider.last_name())


def test_faker_provider_is_reproducible() -> None:
    first = get_provider("NL", SeededRNG("same"))
    second = get_provider("NL", SeededRNG("same"))

    assert [first.full_name() for _ in range(5)] == [second.full_name() for _ in range(5)]
    assert first.phone() == second.phone()


def test_same_seed_same_company_names() -> None:
    names = [get_provider("US", SeededRNG(99)).company_name() for _ in range(2)]

    assert names[0] == names[1]


def test_email_is_ascii() -> None:
    provider = get_provider("DE", SeededRNG(5))

    email = provider.email("Jürgen", "Müller", domain="beispiel.de")

    assert email.isascii()
    assert email.endswith("@beispiel.de")


def test_supported_countries() -> None:
    countries = supported_countries()

    assert {"US", "GB", "DE", "FR"} <= set(countries)
    assert "UK" not in countries
    assert countries == sorted(countries)
