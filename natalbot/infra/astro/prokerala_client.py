# ============================================================
# Module : natalbot/infra/astro/prokerala_client.py
# Objet  : Client du fournisseur de thèmes (OAuth2 + kundli).
# Invariants :
#  - Toute défaillance est levée en ChartProviderError.
#  - Les identifiants ne sont jamais journalisés.
# ============================================================
"""Client HTTP du fournisseur de thèmes natals.

Obtient un jeton bearer par échange client-credentials (mis en cache via `TokenCache`), puis
demande le thème pour un instant de naissance local (naïf) et des coordonnées.
La conversion du bloc `data` en entités relève de `natalbot.domain.chart_resolver`.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

import httpx
import structlog

from natalbot.domain.errors import ChartProviderError
from natalbot.infra.astro.token_cache import TokenCache, shared_token_cache

TOKEN_PATH = "/token"
CHART_PATH = "/v2/astrology/kundli"
LAHIRI_AYANAMSA = 1


class ProkeralaClient:
    """
    Client asynchrone du fournisseur de thèmes.

    Lève `ChartProviderError` si les identifiants manquent, si l'authentification ou la requête
    échoue, ou si la réponse n'a pas le format attendu.
    """

    def __init__(
        self,
        client_id: str | None,
        client_secret: str | None,
        base_url: str = "https://api.prokerala.com",
        token_cache: TokenCache | None = None,
        timeout_s: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.base_url = base_url.rstrip("/")
        self.tokens = token_cache or shared_token_cache
        self._log = structlog.get_logger(__name__).bind(component="chart_provider")
        timeout = httpx.Timeout(timeout_s, connect=5.0)
        limits = httpx.Limits(max_keepalive_connections=10, max_connections=20)
        self._client = httpx.AsyncClient(timeout=timeout, limits=limits, transport=transport)

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _access_token(self) -> str:
        cached = self.tokens.get()
        if cached:
            return cached
        if not self.configured:
            raise ChartProviderError("Chart provider credentials not configured")
        try:
            resp = await self._client.post(
                f"{self.base_url}{TOKEN_PATH}",
                data={
                    "grant_type": "client_credentials",
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                },
            )
            resp.raise_for_status()
            payload = resp.json()
            token = payload["access_token"]
            ttl = float(payload.get("expires_in", 3600))
        except (httpx.HTTPError, KeyError, TypeError, ValueError) as exc:
            self._log.error("chart_provider_auth_failed", error=type(exc).__name__)
            raise ChartProviderError("Failed to authenticate with astrology API") from exc
        self.tokens.store(token, ttl)
        self._log.info("chart_provider_token_refreshed", ttl_s=ttl)
        return token

    async def fetch_chart(self, birth: datetime, latitude: float, longitude: float) -> dict[str, Any]:
        """Retourne le bloc `data` de la réponse du fournisseur."""
        token = await self._access_token()
        params = {
            "ayanamsa": LAHIRI_AYANAMSA,
            "coordinates": f"{latitude},{longitude}",
            "datetime": birth.strftime("%Y-%m-%dT%H:%M:00"),
            "la": "en",
        }
        try:
            resp = await self._client.get(
                f"{self.base_url}{CHART_PATH}",
                params=params,
                headers={"Authorization": f"Bearer {token}"},
            )
            resp.raise_for_status()
            data = resp.json()["data"]
        except (httpx.HTTPError, KeyError, TypeError, ValueError) as exc:
            raise ChartProviderError(f"Chart request failed: {type(exc).__name__}") from exc
        if not isinstance(data, dict):
            raise ChartProviderError("Unexpected chart payload")
        return data
