"""
Calcul zodiacal approximatif et déterministe.

Utilisé comme secours lorsque le fournisseur de thèmes est indisponible, et pour les transits du
jour. Ce n'est pas une éphéméride: signe solaire par table de dates, Lune par cycle uniforme de
28 jours, ascendant par heure de la journée (un signe toutes les 2 heures).
"""

from __future__ import annotations

import math
from datetime import date, datetime, timezone

from natalbot.core.constants import HOURS_PER_SIGN, MOON_CYCLE_DAYS, SIGN_COUNT
from natalbot.domain.entities import HouseCusp, PlanetPosition

ZODIAC_SIGNS = [
    "Aries",
    "Taurus",
    "Gemini",
    "Cancer",
    "Leo",
    "Virgo",
    "Libra",
    "Scorpio",
    "Sagittarius",
    "Capricorn",
    "Aquarius",
    "Pisces",
]

# (signe, (mois, jour) début, (mois, jour) fin); le Capricorne chevauche le changement d'année
SUN_SIGN_TABLE: list[tuple[str, tuple[int, int], tuple[int, int]]] = [
    ("Capricorn", (1, 1), (1, 19)),
    ("Aquarius", (1, 20), (2, 18)),
    ("Pisces", (2, 19), (3, 20)),
    ("Aries", (3, 21), (4, 19)),
    ("Taurus", (4, 20), (5, 20)),
    ("Gemini", (5, 21), (6, 20)),
    ("Cancer", (6, 21), (7, 22)),
    ("Leo", (7, 23), (8, 22)),
    ("Virgo", (8, 23), (9, 22)),
    ("Libra", (9, 23), (10, 22)),
    ("Scorpio", (10, 23), (11, 21)),
    ("Sagittarius", (11, 22), (12, 21)),
    ("Capricorn", (12, 22), (12, 31)),
]

# (planète, décalage de signe depuis le Soleil, degré, maison); la Lune suit son propre signe
_FALLBACK_PLANETS: list[tuple[str, int, float, int]] = [
    ("Sun", 0, 15, 1),
    ("Moon", 0, 15, 4),
    ("Mercury", 0, 10, 1),
    ("Venus", -1, 20, 12),
    ("Mars", 2, 5, 3),
    ("Jupiter", 4, 12, 5),
    ("Saturn", 6, 25, 7),
]

_MOON_CYCLE_MS = MOON_CYCLE_DAYS * 24 * 60 * 60 * 1000

FALLBACK_NOTE = {
    "method": "basic_calculation",
    "note": "This is an approximation. For accurate readings, please configure an astrology API.",
}


def sun_sign(day: date) -> str:
    """Signe solaire d'après la table fixe de dates."""
    key = (day.month, day.day)
    for sign, start, end in SUN_SIGN_TABLE:
        if start <= key <= end:
            return sign
    return "Capricorn"


def sign_index(sign: str) -> int:
    """Index 0-11 d'un signe (Bélier = 0)."""
    return ZODIAC_SIGNS.index(sign)


def offset_sign(sign: str, offset: int) -> str:
    """Signe situé `offset` signes plus loin (négatif = en arrière)."""
    return ZODIAC_SIGNS[(sign_index(sign) + offset) % SIGN_COUNT]


def _epoch_millis(instant: datetime) -> float:
    # Un instant naïf est lu comme UTC: le résultat ne dépend pas du fuseau du serveur.
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.timestamp() * 1000


def moon_sign(instant: datetime) -> str:
    """Signe lunaire grossier: la Lune parcourt les 12 signes tous les 28 jours depuis l'epoch."""
    cycle = (_epoch_millis(instant) / _MOON_CYCLE_MS) % 1
    return ZODIAC_SIGNS[math.floor(cycle * SIGN_COUNT)]


def ascendant(sun: str, hour: int, minute: int) -> str:
    """Ascendant approché: avance d'un signe toutes les 2 heures depuis le signe solaire."""
    offset = (hour + minute / 60) / HOURS_PER_SIGN
    return ZODIAC_SIGNS[math.floor((sign_index(sun) + offset) % SIGN_COUNT)]


def fallback_planets(sun: str, moon: str) -> list[PlanetPosition]:
    """Sept planètes synthétiques décalées depuis le signe solaire."""
    return [
        PlanetPosition(
            name=name,
            sign=moon if name == "Moon" else offset_sign(sun, offset),
            degree=degree,
            house=house,
        )
        for name, offset, degree, house in _FALLBACK_PLANETS
    ]


def fallback_houses(asc: str) -> list[HouseCusp]:
    """Douze maisons en signes entiers à partir de l'ascendant."""
    return [
        HouseCusp(house=i + 1, sign=offset_sign(asc, i), degree=0) for i in range(SIGN_COUNT)
    ]


def approximate_transits(now: datetime) -> list[PlanetPosition]:
    """Transits du jour: Soleil par la table, Lune par le cycle de 28 jours."""
    return [
        PlanetPosition(name="Sun", sign=sun_sign(now.date()), degree=now.day, house=1),
        PlanetPosition(name="Moon", sign=moon_sign(now), degree=15, house=4),
    ]
