"""
Cache du jeton d'accès au fournisseur de thèmes.

Le jeton est une valeur explicite `{token, expires_at}` tenue par un `TokenCache` dont l'horloge
est injectable (tests de bord d'expiration sans attente réelle). Pas de verrou: deux
rafraîchissements concurrents sont tolérés, le dernier écrit gagne.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

from natalbot.core.constants import TOKEN_EXPIRY_MARGIN_S

Clock = Callable[[], float]


@dataclass(frozen=True)
class CachedToken:
    """Jeton bearer et instant d'expiration (secondes epoch)."""

    token: str
    expires_at: float


class TokenCache:
    """Conserve un seul jeton et le considère valide tant que `now < expires_at`."""

    def __init__(self, clock: Clock = time.time, margin_s: float = TOKEN_EXPIRY_MARGIN_S):
        self._clock = clock
        self._margin_s = margin_s
        self._entry: CachedToken | None = None

    @property
    def entry(self) -> CachedToken | None:
        return self._entry

    def get(self) -> str | None:
        """Retourne le jeton encore valide, sinon None."""
        entry = self._entry
        if entry is not None and self._clock() < entry.expires_at:
            return entry.token
        return None

    def store(self, token: str, ttl_s: float) -> CachedToken:
        """Enregistre un jeton émis maintenant, valable `ttl_s` moins la marge de sécurité."""
        entry = CachedToken(token=token, expires_at=self._clock() + ttl_s - self._margin_s)
        self._entry = entry
        return entry

    def clear(self) -> None:
        self._entry = None


# Cache partagé par le processus (un seul compte fournisseur)
shared_token_cache = TokenCache()
