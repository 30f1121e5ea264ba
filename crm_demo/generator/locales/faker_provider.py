"""Locale provider whose pools are drawn from Faker for countries without static data."""
from __future__ import annotations

from typing import Callable

from faker import Faker

from crm_demo.generator.rng import SeededRNG

from .base import City, LocaleProvider

POOL_SIZE = 60

FAKER_LOCALES: dict[str, tuple[str, str]] = {
    "FR": ("fr_FR", "France"),
    "NL": ("nl_NL", "Netherlands"),
    "ES": ("es_ES", "Spain"),
    "IT": ("it_IT", "Italy"),
    "BR": ("pt_BR", "Brazil"),
    "AU": ("en_AU", "Australia"),
    "CA": ("en_CA", "Canada"),
    "CH": ("de_CH", "Switzerland"),
    "IN": ("en_IN", "India"),
    "MX": ("es_MX", "Mexico"),
    "AT": ("de_AT", "Austria"),
    "BE": ("nl_BE", "Belgium"),
    "IE": ("en_IE", "Ireland"),
    "NZ": ("en_NZ", "New Zealand"),
    "PT": ("pt_PT", "Portugal"),
    "PL": ("pl_PL", "Poland"),
}


def _pool(factory: Callable[[], str], size: int = POOL_SIZE) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for _ in range(size):
        value = factory().strip()
        if value:
            seen.setdefault(value, None)
    return tuple(seen)


def _optional(faker: Faker, attribute: str) -> Callable[[], str]:
    if hasattr(faker, attribute):
        return getattr(faker, attribute)
    return lambda: ""


class FakerLocaleProvider(LocaleProvider):
    """Provider that snapshots Faker output into pools at construction time.

    Faker is seeded from the job RNG once; afterwards all selection goes through
    the RNG like the static providers.
    """

    def __init__(self, country: str, rng: SeededRNG) -> None:
        super().__init__(rng)
        locale, country_name = FAKER_LOCALES[country.upper()]
        self.country = country.upper()
        self.country_name = country_name
        self.locale = locale

        faker = Faker(locale)
        faker.seed_instance(rng.int(0, 2**31 - 1))

        self.first_names_male = _pool(faker.first_name_male)
        self.first_names_female = _pool(faker.first_name_female)
        self.last_names = _pool(faker.last_name)
        state = _optional(faker, "administrative_unit")
        self.cities = tuple(
            City(faker.city(), state(), faker.postcode()) for _ in range(POOL_SIZE // 2)
        )
        self.street_names = _pool(faker.street_name, POOL_SIZE // 2)
        self.company_suffixes = _pool(_optional(faker, "company_suffix"), 10) or ("Group",)
        self.company_words = _pool(lambda: faker.word().capitalize(), 40)
        self.email_domains = _pool(faker.free_email_domain, 10)
        self.phone_numbers = _pool(faker.phone_number, 40)

    def phone(self) -> str:
        return self.rng.pick(self.phone_numbers)

    def street_address(self) -> str:
        return f"{self.rng.pick(self.street_names)} {self.rng.int(1, 200)}"
