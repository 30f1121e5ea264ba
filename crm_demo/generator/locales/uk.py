"""United Kingdom reference data (registered as ``GB`` with a ``UK`` alias)."""
from __future__ import annotations

import string

from .base import City, LocaleProvider, list_from_block

AREA_CODES = ("20", "121", "131", "141", "151", "161", "113", "114", "115", "116", "117", "118", "191")

STREET_NAMES = (
    "High", "Church", "Mill", "Park", "Station", "Main", "London", "Victoria",
    "Green", "Manor", "King", "Queen", "North", "South", "East", "West",
)


class UKProvider(LocaleProvider):
    country = "GB"
    country_name = "United Kingdom"
    phone_prefix = "+44"

    first_names_male = list_from_block(
        """
        Oliver
        George
        Harry
        Jack
        Noah
        Charlie
        Jacob
        Alfie
        Freddie
        Oscar
        Leo
        Archie
        Henry
        Thomas
        William
        James
        Joshua
        Alexander
        Arthur
        Edward
        Sebastian
        Joseph
        Daniel
        Max
        Samuel
        Ethan
        Lucas
        Isaac
        Benjamin
        Theodore
        Matthew
        Harrison
        Finley
        Adam
        Ryan
        Dylan
        Jake
        Connor
        Callum
        Nathan
        Jamie
        Luke
        Cameron
        Liam
        Michael
        David
        Robert
        Richard
        Christopher
        Andrew
        Stephen
        Simon
        Mark
        """
    )
    first_names_female = list_from_block(
        """
        Olivia
        Amelia
        Isla
        Ava
        Emily
        Sophia
        Grace
        Mia
        Poppy
        Ella
        Lily
        Evie
        Charlotte
        Freya
        Isabelle
        Daisy
        Sophie
        Ivy
        Florence
        Willow
        Rosie
        Sienna
        Alice
        Jessica
        Millie
        Ruby
        Phoebe
        Matilda
        Evelyn
        Emilia
        Emma
        Hannah
        Lucy
        Chloe
        Lauren
        Bethany
        Eleanor
        Imogen
        Jasmine
        Maya
        Amber
        Georgia
        Scarlett
        Victoria
        Elizabeth
        Rebecca
        Sarah
        Katie
        Abigail
        Holly
        Zoe
        Harriet
        Molly
        """
    )
    last_names = list_from_block(
        """
        Smith
        Jones
        Williams
        Taylor
        Brown
        Davies
        Evans
        Wilson
        Thomas
        Roberts
        Johnson
        Lewis
        Walker
        Robinson
        Wood
        Thompson
        White
        Watson
        Jackson
        Wright
        Green
        Harris
        Cooper
        King
        Lee
        Martin
        Clarke
        James
        Morgan
        Hughes
        Edwards
        Hill
        Moore
        Clark
        Harrison
        Scott
        Young
        Morris
        Hall
        Ward
        Turner
        Carter
        Phillips
        Mitchell
        Patel
        Adams
        Campbell
        Anderson
        Allen
        Cook
        Bailey
        Parker
        Miller
        Davis
        Murphy
        """
    )
    cities = (
        City("London", "Greater London", "EC1A 1BB"),
        City("Birmingham", "West Midlands", "B1 1AA"),
        City("Manchester", "Greater Manchester", "M1 1AA"),
        City("Leeds", "West Yorkshire", "LS1 1AA"),
        City("Glasgow", "Scotland", "G1 1AA"),
        City("Liverpool", "Merseyside", "L1 1AA"),
        City("Bristol", "Bristol", "BS1 1AA"),
        City("Sheffield", "South Yorkshire", "S1 1AA"),
        City("Edinburgh", "Scotland", "EH1 1AA"),
        City("Leicester", "Leicestershire", "LE1 1AA"),
        City("Coventry", "West Midlands", "CV1 1AA"),
        City("Bradford", "West Yorkshire", "BD1 1AA"),
        City("Cardiff", "Wales", "CF1 1AA"),
        City("Belfast", "Northern Ireland", "BT1 1AA"),
        City("Nottingham", "Nottinghamshire", "NG1 1AA"),
        City("Newcastle", "Tyne and Wear", "NE1 1AA"),
        City("Southampton", "Hampshire", "SO1 1AA"),
        City("Brighton", "East Sussex", "BN1 1AA"),
        City("Cambridge", "Cambridgeshire", "CB1 1AA"),
        City("Oxford", "Oxfordshire", "OX1 1AA"),
    )
    street_types = (
        "Street", "Road", "Lane", "Avenue", "Drive", "Close", "Way", "Court",
        "Gardens", "Place", "Terrace", "Grove", "Crescent", "Square", "Mews",
    )
    company_suffixes = ("Ltd", "PLC", "LLP", "Group", "Holdings", "Partners", "UK", "International")
    company_words = list_from_block(
        """
        British
        Royal
        United
        Imperial
        National
        Crown
        Windsor
        Sterling
        Capital
        Premier
        Elite
        Heritage
        Classic
        Modern
        Global
        Apex
        Summit
        Thames
        Atlantic
        Northern
        Southern
        Eastern
        Western
        Central
        Metropolitan
        City
        Cross
        Bridge
        """
    )
    email_domains = (
        "gmail.com", "yahoo.co.uk", "outlook.com", "hotmail.co.uk", "btinternet.com",
        "sky.com", "virginmedia.com", "talktalk.net", "mail.com", "icloud.com",
    )

    def phone(self) -> str:
        area = self.rng.pick(AREA_CODES)
        return f"+44 {area} {self.rng.int(1000, 9999)} {self.rng.int(1000, 9999)}"

    def postal_code(self) -> str:
        outward = self.rng.pick(self.cities).postal_code.split(" ")[0]
        letters = string.ascii_uppercase
        inward = f"{self.rng.int(1, 9)}{self.rng.pick(letters)}{self.rng.pick(letters)}"
        return f"{outward} {inward}"

    def street_address(self) -> str:
        number = self.rng.int(1, 200)
        return f"{number} {self.rng.pick(STREET_NAMES)} {self.rng.pick(self.street_types)}"
