"""
Résolution du lieu et du thème natal.

`geocode` transforme un lieu libre en coordonnées + fuseau (erreur visible par l'utilisateur si
introuvable). `generate_chart` ne lève jamais sur une défaillance du fournisseur: tout échec du
chemin distant bascule sur le calcul local déterministe de `natalbot.domain.zodiac`.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, time, timezone
from typing import Any, Protocol

import structlog

from natalbot.app.metrics import CHART_RESOLUTIONS
from natalbot.core.constants import HOUSE_COUNT
from natalbot.domain import zodiac
from natalbot.domain.entities import Chart, GeoLocation, HouseCusp, PlanetPosition, UserProfile
from natalbot.domain.errors import IncompleteBirthData

log = structlog.get_logger(__name__)


class Geocoder(Protocol):
    """Capacité de géocodage (voir `natalbot.infra.http_clients.GeoClient`)."""

    async def geocode(self, place: str) -> GeoLocation: ...


class ChartProvider(Protocol):
    """Capacité de calcul distant (voir `natalbot.infra.astro.prokerala_client`)."""

    async def fetch_chart(
        self, birth: datetime, latitude: float, longitude: float
    ) -> dict[str, Any]: ...


def parse_planets(positions: list[dict[str, Any]]) -> list[PlanetPosition]:
    """Convertit les positions planétaires du fournisseur (ordre conservé)."""
    return [
        PlanetPosition(
            name=p.get("name") or p.get("planet") or "Unknown",
            sign=(p.get("rasi") or {}).get("name") or p.get("sign") or "Unknown",
            degree=float(p.get("degree") or 0),
            house=int(p.get("house") or 1),
            retrograde=bool(p.get("is_retrograde", False)),
        )
        for p in positions
    ]


def parse_houses(houses: list[dict[str, Any]]) -> list[HouseCusp]:
    """Convertit les maisons du fournisseur; le numéro suit l'ordre de la liste."""
    return [
        HouseCusp(
            house=index + 1,
            sign=(h.get("rasi") or {}).get("name") or h.get("sign") or "Unknown",
            degree=float(h.get("degree") or 0),
        )
        for index, h in enumerate(houses[:HOUSE_COUNT])
    ]


def birth_instant(user: UserProfile) -> datetime:
    """Instant de naissance local (naïf) à partir de la date et de l'heure `HH:MM`."""
    if not user.has_complete_birth_data():
        raise IncompleteBirthData(f"User {user.id} has incomplete birth data")
    hours, minutes = (int(part) for part in user.birth_time.split(":")[:2])
    return datetime.combine(user.birth_date, time(hours, minutes))


def build_fallback_chart(user: UserProfile) -> Chart:
    """Thème approximatif, fonction pure des données de naissance."""
    instant = birth_instant(user)
    sun = zodiac.sun_sign(instant.date())
    moon = zodiac.moon_sign(instant)
    asc = zodiac.ascendant(sun, instant.hour, instant.minute)
    return Chart(
        user_id=user.id,
        sun_sign=sun,
        moon_sign=moon,
        ascendant=asc,
        planets=zodiac.fallback_planets(sun, moon),
        houses=zodiac.fallback_houses(asc),
        aspects=[],
        raw_payload=dict(zodiac.FALLBACK_NOTE),
        source="fallback",
    )


def build_provider_chart(user: UserProfile, data: dict[str, Any]) -> Chart:
    """Construit le thème depuis la réponse du fournisseur."""
    rasi = data.get("chart_rasi") or {}
    planets = parse_planets(rasi.get("planet_positions") or [])
    houses = parse_houses(rasi.get("house_positions") or [])
    by_name = {p.name: p for p in planets}
    first_house = next((h for h in houses if h.house == 1), None)
    sun = by_name.get("Sun")
    moon = by_name.get("Moon")
    return Chart(
        user_id=user.id,
        sun_sign=sun.sign if sun else zodiac.sun_sign(user.birth_date),
        moon_sign=moon.sign if moon else "Unknown",
        ascendant=first_house.sign if first_house else "Unknown",
        planets=planets,
        houses=houses,
        aspects=[],
        raw_payload=data,
        source="provider",
    )


class ChartResolver:
    """Coordonne géocodage, fournisseur de thèmes et calcul de secours."""

    def __init__(
        self,
        geocoder: Geocoder,
        provider: ChartProvider,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.geocoder = geocoder
        self.provider = provider
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def geocode(self, place: str) -> GeoLocation:
        """Lève `LocationNotFound` si le lieu est introuvable."""
        return await self.geocoder.geocode(place)

    async def generate_chart(self, user: UserProfile) -> Chart:
        """Thème du fournisseur, ou thème de secours si une étape du chemin distant échoue."""
        instant = birth_instant(user)
        try:
            data = await self.provider.fetch_chart(
                instant, user.birth_latitude, user.birth_longitude
            )
            chart = build_provider_chart(user, data)
        except Exception as exc:
            log.warning(
                "chart_provider_fallback",
                user_id=user.id,
                error=type(exc).__name__,
                detail=str(exc),
            )
            chart = build_fallback_chart(user)
        CHART_RESOLUTIONS.labels(source=chart.source).inc()
        log.info("chart_generated", user_id=user.id, source=chart.source)
        return chart

    def current_transits(self, now: datetime | None = None) -> list[PlanetPosition]:
        """Positions approchées du Soleil et de la Lune à l'instant donné."""
        return zodiac.approximate_transits(now or self._clock())
