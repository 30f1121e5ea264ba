"""United States reference data."""
from __future__ import annotations

from .base import City, LocaleProvider, list_from_block

AREA_CODES = (
    "212", "310", "312", "415", "617", "713", "202", "404", "305", "702",
    "213", "323", "469", "972", "214", "818", "949", "619", "858", "510",
)


class USProvider(LocaleProvider):
    country = "US"
    country_name = "United States"
    phone_prefix = "+1"

    first_names_male = list_from_block(
        """
        James
        John
        Robert
        Michael
        William
        David
        Richard
        Joseph
        Thomas
        Christopher
        Charles
        Daniel
        Matthew
        Anthony
        Mark
        Donald
        Steven
        Paul
        Andrew
        Joshua
        Kenneth
        Kevin
        Brian
        George
        Timothy
        Ronald
        Edward
        Jason
        Jeffrey
        Ryan
        Jacob
        Gary
        Nicholas
        Eric
        Jonathan
        Stephen
        Larry
        Justin
        Scott
        Brandon
        Benjamin
        Samuel
        Raymond
        Gregory
        Frank
        Alexander
        Patrick
        Jack
        Dennis
        Jerry
        Tyler
        Aaron
        Jose
        """
    )
    first_names_female = list_from_block(
        """
        Mary
        Patricia
        Jennifer
        Linda
        Elizabeth
        Barbara
        Susan
        Jessica
        Sarah
        Karen
        Lisa
        Nancy
        Betty
        Margaret
        Sandra
        Ashley
        Kimberly
        Emily
        Donna
        Michelle
        Dorothy
        Carol
        Amanda
        Melissa
        Deborah
        Stephanie
        Rebecca
        Sharon
        Laura
        Cynthia
        Kathleen
        Amy
        Angela
        Shirley
        Anna
        Brenda
        Pamela
        Emma
        Nicole
        Helen
        Samantha
        Katherine
        Christine
        Debra
        Rachel
        Carolyn
        Janet
        Catherine
        Maria
        Heather
        """
    )
    last_names = list_from_block(
        """
        Smith
        Johnson
        Williams
        Brown
        Jones
        Garcia
        Miller
        Davis
        Rodriguez
        Martinez
        Hernandez
        Lopez
        Gonzalez
        Wilson
        Anderson
        Thomas
        Taylor
        Moore
        Jackson
        Martin
        Lee
        Perez
        Thompson
        White
        Harris
        Sanchez
        Clark
        Ramirez
        Lewis
        Robinson
        Walker
        Young
        Allen
        King
        Wright
        Scott
        Torres
        Nguyen
        Hill
        Flores
        Green
        Adams
        Nelson
        Baker
        Hall
        Rivera
        Campbell
        Mitchell
        Carter
        Roberts
        Turner
        Phillips
        Evans
        Parker
        Edwards
        Collins
        Stewart
        Morris
        Murphy
        Cook
        """
    )
    cities = (
        City("New York", "NY", "10001"),
        City("Los Angeles", "CA", "90001"),
        City("Chicago", "IL", "60601"),
        City("Houston", "TX", "77001"),
        City("Phoenix", "AZ", "85001"),
        City("Philadelphia", "PA", "19101"),
        City("San Antonio", "TX", "78201"),
        City("San Diego", "CA", "92101"),
        City("Dallas", "TX", "75201"),
        City("San Jose", "CA", "95101"),
        City("Austin", "TX", "78701"),
        City("Jacksonville", "FL", "32099"),
        City("Fort Worth", "TX", "76101"),
        City("Columbus", "OH", "43085"),
        City("Charlotte", "NC", "28201"),
        City("San Francisco", "CA", "94102"),
        City("Indianapolis", "IN", "46201"),
        City("Seattle", "WA", "98101"),
        City("Denver", "CO", "80201"),
        City("Boston", "MA", "02101"),
        City("Nashville", "TN", "37201"),
        City("Detroit", "MI", "48201"),
        City("Portland", "OR", "97201"),
        City("Las Vegas", "NV", "89101"),
        City("Miami", "FL", "33101"),
        City("Atlanta", "GA", "30301"),
    )
    street_types = ("St", "Ave", "Blvd", "Dr", "Ln", "Way", "Rd", "Ct", "Pl", "Cir")
    company_suffixes = (
        "Inc", "LLC", "Corp", "Co", "Group", "Holdings", "Partners", "Enterprises",
    )
    company_words = list_from_block(
        """
        Global
        National
        American
        United
        First
        Capital
        Prime
        Elite
        Premier
        Strategic
        Innovative
        Dynamic
        Advanced
        Summit
        Apex
        Pinnacle
        Vanguard
        Horizon
        Frontier
        Pacific
        Atlantic
        Continental
        Heritage
        Legacy
        Venture
        Titan
        Stellar
        Quantum
        Nexus
        Synergy
        Catalyst
        Insight
        Vision
        """
    )
    email_domains = (
        "gmail.com", "yahoo.com", "outlook.com", "hotmail.com", "aol.com",
        "icloud.com", "mail.com", "protonmail.com", "zoho.com", "fastmail.com",
    )

    def phone(self) -> str:
        area = self.rng.pick(AREA_CODES)
        exchange = self.rng.int(200, 999)
        subscriber = self.rng.int(1000, 9999)
        return f"+1 ({area}) {exchange}-{subscriber}"

    def postal_code(self) -> str:
        base = int(self.rng.pick(self.cities).postal_code)
        zip_code = max(10000, min(99999, base + self.rng.int(-100, 100)))
        return f"{zip_code:05d}"
