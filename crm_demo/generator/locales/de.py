"""German reference data."""
from __future__ import annotations

from .base import City, LocaleProvider, list_from_block

AREA_CODES = (
    "30", "40", "69", "89", "221", "211", "711", "341", "351", "421",
    "511", "231", "201", "911", "203", "234", "202", "228", "251", "941",
)

STREET_NAMES = (
    "Haupt", "Bahnhof", "Kirch", "Schul", "Markt", "Berg", "Wald", "Garten",
    "Linden", "Eichen", "Birken", "Ring", "Park", "Schloss", "Brunnen", "Bach",
)


class DEProvider(LocaleProvider):
    country = "DE"
    country_name = "Germany"
    phone_prefix = "+49"

    first_names_male = list_from_block(
        """
        Lukas
        Leon
        Finn
        Paul
        Jonas
        Felix
        Noah
        Elias
        Ben
        Luis
        Maximilian
        Luca
        Alexander
        Julian
        Moritz
        Jan
        Tim
        David
        Niklas
        Simon
        Tom
        Max
        Philipp
        Erik
        Fabian
        Sebastian
        Daniel
        Michael
        Thomas
        Christian
        Markus
        Stefan
        Andreas
        Martin
        Tobias
        Patrick
        Marco
        Florian
        Kevin
        Marcel
        Dennis
        Dominik
        Benjamin
        Matthias
        Johannes
        Peter
        Frank
        Klaus
        Wolfgang
        Hans
        Juergen
        """
    )
    first_names_female = list_from_block(
        """
        Emma
        Mia
        Hannah
        Sofia
        Anna
        Lea
        Emilia
        Marie
        Lena
        Leonie
        Amelie
        Luisa
        Johanna
        Laura
        Lina
        Clara
        Sophie
        Charlotte
        Mila
        Ella
        Nele
        Paula
        Ida
        Julia
        Sarah
        Lisa
        Jana
        Katharina
        Christina
        Sabine
        Petra
        Monika
        Andrea
        Nicole
        Stefanie
        Melanie
        Claudia
        Susanne
        Martina
        Birgit
        Kerstin
        Heike
        Silke
        Anja
        Katja
        Franziska
        Simone
        Daniela
        Sandra
        Tanja
        Jennifer
        Vanessa
        """
    )
    last_names = list_from_block(
        """
        Mueller
        Schmidt
        Schneider
        Fischer
        Weber
        Meyer
        Wagner
        Becker
        Schulz
        Hoffmann
        Schaefer
        Koch
        Bauer
        Richter
        Klein
        Wolf
        Schroeder
        Neumann
        Schwarz
        Zimmermann
        Braun
        Krueger
        Hofmann
        Hartmann
        Lange
        Schmitt
        Werner
        Schmitz
        Krause
        Meier
        Lehmann
        Schmid
        Schulze
        Maier
        Koehler
        Herrmann
        Koenig
        Walter
        Mayer
        Huber
        Kaiser
        Fuchs
        Peters
        Lang
        Scholz
        Moeller
        Weiss
        Jung
        Hahn
        Vogel
        """
    )
    cities = (
        City("Berlin", "Berlin", "10115"),
        City("Hamburg", "Hamburg", "20095"),
        City("Munich", "Bayern", "80331"),
        City("Cologne", "Nordrhein-Westfalen", "50667"),
        City("Frankfurt", "Hessen", "60311"),
        City("Stuttgart", "Baden-Wuerttemberg", "70173"),
        City("Duesseldorf", "Nordrhein-Westfalen", "40213"),
        City("Dortmund", "Nordrhein-Westfalen", "44135"),
        City("Essen", "Nordrhein-Westfalen", "45127"),
        City("Leipzig", "Sachsen", "04109"),
        City("Bremen", "Bremen", "28195"),
        City("Dresden", "Sachsen", "01067"),
        City("Hanover", "Niedersachsen", "30159"),
        City("Nuremberg", "Bayern", "90402"),
        City("Duisburg", "Nordrhein-Westfalen", "47051"),
        City("Bochum", "Nordrhein-Westfalen", "44787"),
        City("Wuppertal", "Nordrhein-Westfalen", "42103"),
        City("Bielefeld", "Nordrhein-Westfalen", "33602"),
        City("Bonn", "Nordrhein-Westfalen", "53111"),
        City("Muenster", "Nordrhein-Westfalen", "48143"),
    )
    street_types = ("Strasse", "Weg", "Allee", "Platz", "Ring", "Gasse", "Damm", "Ufer")
    company_suffixes = ("GmbH", "AG", "KG", "OHG", "e.K.", "GmbH & Co. KG", "SE", "UG")
    company_words = list_from_block(
        """
        Deutsche
        Erste
        Europa
        Global
        Inter
        Multi
        Nord
        Sued
        Ost
        West
        Zentral
        Technik
        Handel
        Industrie
        Beratung
        Service
        System
        Gruppe
        Consulting
        Solutions
        Engineering
        Finanz
        Immobilien
        Medien
        Digital
        Software
        Data
        Netz
        """
    )
    email_domains = (
        "gmail.com", "gmx.de", "web.de", "outlook.de", "t-online.de", "freenet.de",
        "yahoo.de", "posteo.de", "mail.de", "arcor.de", "1und1.de", "vodafone.de",
    )

    def phone(self) -> str:
        area = self.rng.pick(AREA_CODES)
        digits = "".join(str(self.rng.int(0, 9)) for _ in range(self.rng.int(6, 8)))
        return f"+49 {area} {digits}"

    def postal_code(self) -> str:
        base = int(self.rng.pick(self.cities).postal_code)
        zip_code = max(1000, min(99999, base + self.rng.int(-500, 500)))
        return f"{zip_code:05d}"

    def street_address(self) -> str:
        name = self.rng.pick(STREET_NAMES)
        street_type = self.rng.pick(self.street_types)
        # Street name precedes the house number.
        return f"{name}{street_type.lower()} {self.rng.int(1, 150)}"
