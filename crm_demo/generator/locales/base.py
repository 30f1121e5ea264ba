"""Base class for country-specific reference data used to build realistic records."""
from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from typing import Optional, Sequence

from crm_demo.generator.rng import SeededRNG

DEFAULT_COMPANY_PATTERNS: tuple[str, ...] = (
    "{Word} {Suffix}",
    "{Word} {Word} {Suffix}",
    "{Name} {Suffix}",
    "{Word} Solutions {Suffix}",
    "{Word} Global {Suffix}",
    "{Name} & Associates",
)

DOMAIN_TLDS = ("com", "io", "co", "net")

_EMAIL_STRIP = re.compile(r"[^a-z0-9.@]")
_DOMAIN_STRIP = re.compile(r"[^a-z0-9]")


def list_from_block(block: str) -> list[str]:
    """Turn a newline separated text block into a list of unique entries."""

    seen: set[str] = set()
    values: list[str] = []
    for raw in block.splitlines():
        item = raw.strip()
        if not item or item.startswith("#"):
            continue
        if item in seen:
            continue
        seen.add(item)
        values.append(item)
    return values


def ascii_fold(value: str) -> str:
    normalized = unicodedata.normalize("NFKD", value)
    return normalized.encode("ascii", "ignore").decode("ascii")


@dataclass(frozen=True, slots=True)
class City:
    name: str
    state: str
    postal_code: str


@dataclass(frozen=True, slots=True)
class Address:
    street: str
    city: str
    state: str
    postal_code: str
    country: str


class LocaleProvider:
    """Static reference pools for one country.

    Subclasses fill in the class-level pools and override ``phone`` (and, where
    the local format differs, ``street_address`` or ``postal_code``). Every draw
    goes through the injected :class:`SeededRNG`, so output is reproducible.
    """

    country: str = ""
    country_name: str = ""
    phone_prefix: str = ""

    first_names_male: Sequence[str] = ()
    first_names_female: Sequence[str] = ()
    last_names: Sequence[str] = ()
    cities: Sequence[City] = ()
    street_types: Sequence[str] = ()
    company_suffixes: Sequence[str] = ()
    company_words: Sequence[str] = ()
    email_domains: Sequence[str] = ()

    def __init__(self, rng: SeededRNG) -> None:
        self.rng = rng

    def first_name(self, gender: Optional[str] = None) -> str:
        gender = gender or ("male" if self.rng.bool() else "female")
        names = self.first_names_male if gender == "male" else self.first_names_female
        return self.rng.pick(names)

    def last_name(self) -> str:
        return self.rng.pick(self.last_names)

    def full_name(self, gender: Optional[str] = None) -> str:
        return f"{self.first_name(gender)} {self.last_name()}"

    def email(self, first: str, last: str, domain: Optional[str] = None) -> str:
        domain = domain or self.rng.pick(self.email_domains)
        first_part = ascii_fold(first).lower()
        last_part = ascii_fold(last).lower()
        formats = (
            f"{first_part}.{last_part}",
            f"{first_part}{last_part}",
            f"{first_part[:1]}{last_part}",
            first_part,
        )
        local = self.rng.pick(formats)
        suffix = str(self.rng.int(1, 99)) if self.rng.bool(0.3) else ""
        return _EMAIL_STRIP.sub("", f"{local}{suffix}@{domain.lower()}")

    def phone(self) -> str:
        raise NotImplementedError

    def street_address(self) -> str:
        number = self.rng.int(1, 9999)
        street = self.rng.pick(self.last_names)
        street_type = self.rng.pick(self.street_types)
        return f"{number} {street} {street_type}"

    def city(self) -> str:
        return self.rng.pick(self.cities).name

    def postal_code(self) -> str:
        return self.rng.pick(self.cities).postal_code

    def full_address(self) -> Address:
        city = self.rng.pick(self.cities)
        return Address(
            street=self.street_address(),
            city=city.name,
            state=city.state,
            postal_code=city.postal_code,
            country=self.country_name,
        )

    def company_suffix(self) -> str:
        return self.rng.pick(self.company_suffixes)

    def company_name(self, patterns: Optional[Sequence[str]] = None) -> str:
        pattern = self.rng.pick(patterns or DEFAULT_COMPANY_PATTERNS)
        return self._expand_pattern(pattern)

    def _expand_pattern(self, pattern: str) -> str:
        result = pattern
        while "{Word}" in result:
            result = result.replace("{Word}", self.rng.pick(self.company_words), 1)
        if "{Name}" in result:
            result = result.replace("{Name}", self.last_name(), 1)
        if "{Suffix}" in result:
            result = result.replace("{Suffix}", self.company_suffix(), 1)
        return result

    def company_domain(self, name: str) -> str:
        clean = _DOMAIN_STRIP.sub("", ascii_fold(name).lower())[:20] or "company"
        return f"{clean}.{self.rng.pick(DOMAIN_TLDS)}"
