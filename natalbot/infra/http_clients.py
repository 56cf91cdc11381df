"""Clients HTTP externes (géocodage, fuseaux horaires).

Objectif du module
------------------
- Encapsuler les appels réseau vers des services tiers.
- Géocodage direct via Nominatim (OpenStreetMap), fuseau horaire par coordonnées via timeapi.io
  avec estimation par longitude en secours.
"""

from __future__ import annotations

import math
from typing import Any

import httpx
import structlog

from natalbot.domain.entities import GeoLocation
from natalbot.domain.errors import LocationNotFound

log = structlog.get_logger(__name__)

DEGREES_PER_HOUR = 15


def estimate_timezone(longitude: float) -> str:
    """Estime un fuseau `Etc/GMT±N` à partir de la longitude (15° par heure).

    Les zones `Etc/GMT` ont un signe inversé: UTC+2 s'écrit `Etc/GMT-2`.
    """
    offset = math.floor(longitude / DEGREES_PER_HOUR + 0.5)
    sign = "-" if offset >= 0 else "+"
    return f"Etc/GMT{sign}{abs(offset)}"


class GeoClient:
    """Client de géocodage: lieu → coordonnées, coordonnées → fuseau horaire."""

    def __init__(
        self,
        geocoder_url: str = "https://nominatim.openstreetmap.org",
        timezone_url: str = "https://timeapi.io",
        user_agent: str = "NatalChartBot/1.0",
        timeout_s: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.geocoder_url = geocoder_url.rstrip("/")
        self.timezone_url = timezone_url.rstrip("/")
        headers = {"User-Agent": user_agent, "Accept": "application/json"}
        timeout = httpx.Timeout(timeout_s, connect=5.0)
        self._client = httpx.AsyncClient(headers=headers, timeout=timeout, transport=transport)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def search(self, place: str) -> list[dict[str, Any]]:
        """Retourne les candidats Nominatim (au plus un)."""
        resp = await self._client.get(
            f"{self.geocoder_url}/search",
            params={"q": place, "format": "json", "limit": 1},
        )
        resp.raise_for_status()
        data = resp.json()
        return data if isinstance(data, list) else []

    async def timezone_at(self, latitude: float, longitude: float) -> str:
        """Fuseau IANA pour des coordonnées; estimation par longitude si le service échoue."""
        try:
            resp = await self._client.get(
                f"{self.timezone_url}/api/TimeZone/coordinate",
                params={"latitude": latitude, "longitude": longitude},
            )
            resp.raise_for_status()
            return resp.json().get("timeZone") or "UTC"
        except Exception as exc:
            log.warning("timezone_lookup_fallback", error=type(exc).__name__)
            return estimate_timezone(longitude)

    async def geocode(self, place: str) -> GeoLocation:
        """Géocode un lieu; lève `LocationNotFound` si aucun candidat ou en cas d'erreur."""
        try:
            results = await self.search(place)
            if not results:
                raise LocationNotFound(place)
            best = results[0]
            latitude = float(best["lat"])
            longitude = float(best["lon"])
        except LocationNotFound:
            raise
        except Exception as exc:
            log.error("geocode_request_failed", error=type(exc).__name__)
            raise LocationNotFound(place) from exc
        tz = await self.timezone_at(latitude, longitude)
        return GeoLocation(
            latitude=latitude,
            longitude=longitude,
            timezone=tz,
            formatted_address=best.get("display_name"),
        )
