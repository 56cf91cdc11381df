"""
Validation et analyse des saisies libres de l'utilisateur.

Fonctions pures: chaque parseur retourne une valeur typée ou lève `InputRejected` avec le message
de relance à renvoyer tel quel à l'utilisateur.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date

from natalbot.core.constants import (
    MIN_BIRTH_YEAR,
    MIN_NAME_LENGTH,
    MIN_PLACE_LENGTH,
    UNKNOWN_BIRTH_TIME,
)
from natalbot.domain.errors import InputRejected

# Latin/cyrillique, espaces, tirets et apostrophes uniquement
_NAME_DISALLOWED = re.compile(r"[^a-zA-Zа-яА-ЯёЁ\s\-']")
# Chiffres ASCII uniquement
_DATE_PATTERN = re.compile(r"(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{4})", re.ASCII)
_TIME_PATTERN = re.compile(r"(\d{1,2}):(\d{2})", re.ASCII)
_UNKNOWN_TIME_MARKERS = ("unknown", "don't know", "don’t know")

NAME_TOO_SHORT = "Please enter a valid name (at least 2 characters)."
DATE_BAD_FORMAT = "❌ Invalid date format. Please use DD/MM/YYYY format.\n\nExample: 25/12/1990"
DATE_INVALID = "❌ That doesn't seem to be a valid date. Please check and try again."
DATE_IN_FUTURE = "❌ Birth date cannot be in the future!"
DATE_TOO_OLD = "❌ Please enter a birth year of 1900 or later."
TIME_BAD_FORMAT = '❌ Invalid time format. Please use HH:MM format.\n\nExample: 14:30 or type "unknown"'
TIME_OUT_OF_RANGE = "❌ Invalid time. Hours should be 0-23 and minutes 0-59."
PLACE_TOO_SHORT = "Please enter a valid city name."


@dataclass(frozen=True)
class ParsedBirthDate:
    """Date de naissance validée et composants saisis (pour l'écho de confirmation)."""

    value: date
    day: str
    month: str
    year: str


def parse_name(raw: str) -> str:
    """Nettoie un prénom et vérifie sa longueur minimale."""
    clean = _NAME_DISALLOWED.sub("", raw.strip()).strip()
    if len(clean) < MIN_NAME_LENGTH:
        raise InputRejected("too_short", NAME_TOO_SHORT)
    return clean


def parse_birth_date(raw: str, today: date | None = None) -> ParsedBirthDate:
    """
    Extrait la première date `J/M/AAAA` (séparateurs `/`, `-` ou `.`).

    Rejets, dans l'ordre: format absent, date impossible (31/02, mois 13), date future,
    année antérieure à 1900.
    """
    match = _DATE_PATTERN.search(raw)
    if not match:
        raise InputRejected("format", DATE_BAD_FORMAT)
    day, month, year = match.groups()
    try:
        value = date(int(year), int(month), int(day))
    except ValueError:
        raise InputRejected("invalid", DATE_INVALID) from None
    if value > (today or date.today()):
        raise InputRejected("future", DATE_IN_FUTURE)
    if value.year < MIN_BIRTH_YEAR:
        raise InputRejected("too_old", DATE_TOO_OLD)
    return ParsedBirthDate(value=value, day=day, month=month, year=year)


def parse_birth_time(raw: str) -> str:
    """
    Retourne une heure `HH:MM` (24h).

    "unknown" / "don't know" → midi. L'extraction est volontairement permissive: un signe ou un
    suffixe ("PM") autour d'un motif valide est ignoré.
    """
    lowered = raw.lower()
    if any(marker in lowered for marker in _UNKNOWN_TIME_MARKERS):
        return UNKNOWN_BIRTH_TIME
    match = _TIME_PATTERN.search(raw)
    if not match:
        raise InputRejected("format", TIME_BAD_FORMAT)
    hours, minutes = match.groups()
    if not (0 <= int(hours) <= 23 and 0 <= int(minutes) <= 59):  # noqa: PLR2004
        raise InputRejected("out_of_range", TIME_OUT_OF_RANGE)
    return f"{hours.zfill(2)}:{minutes}"


def parse_place(raw: str) -> str:
    """Vérifie seulement la longueur: la validité réelle relève du géocodage."""
    place = raw.strip()
    if len(place) < MIN_PLACE_LENGTH:
        raise InputRejected("too_short", PLACE_TOO_SHORT)
    return place
