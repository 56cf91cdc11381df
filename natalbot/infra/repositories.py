"""
Repositories pour la gestion des données.

Ce module définit les interfaces de persistance consommées par le moteur de conversation
(utilisateurs, thèmes, journal des messages) et leurs implémentations en mémoire et Redis.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any

import redis.asyncio as redis

from natalbot.domain.entities import (
    Chart,
    ConversationState,
    ConversationTurn,
    MessageRole,
    UserProfile,
)
from natalbot.domain.errors import UserNotFound


class UserRepository(ABC):
    """Dépôt des profils utilisateurs (adresse unique)."""

    @abstractmethod
    async def find_by_address(self, address: str) -> UserProfile | None: ...

    @abstractmethod
    async def create(self, address: str) -> UserProfile: ...

    @abstractmethod
    async def get(self, user_id: str) -> UserProfile:
        """Retourne le profil ou lève `UserNotFound`."""
        ...

    @abstractmethod
    async def update(self, user_id: str, **fields: Any) -> UserProfile:
        """Applique une mise à jour partielle et retourne le profil à jour."""
        ...


class ChartRepository(ABC):
    """Dépôt des thèmes, un seul par utilisateur."""

    @abstractmethod
    async def save(self, chart: Chart) -> Chart:
        """Attribue (ou remplace) le thème de son propriétaire."""
        ...

    @abstractmethod
    async def get_for_user(self, user_id: str) -> Chart | None: ...


class MessageRepository(ABC):
    """Journal append-only des messages."""

    @abstractmethod
    async def append(
        self,
        user_id: str,
        role: MessageRole,
        content: str,
        external_id: str | None = None,
    ) -> ConversationTurn: ...

    @abstractmethod
    async def recent(self, user_id: str, limit: int) -> list[ConversationTurn]:
        """Derniers messages, du plus récent au plus ancien."""
        ...


def _apply_update(user: UserProfile, fields: dict[str, Any]) -> UserProfile:
    if "state" in fields:
        fields["state"] = ConversationState(fields["state"])
    fields["updated_at"] = datetime.now(timezone.utc)
    return UserProfile.model_validate({**user.model_dump(), **fields})


class InMemoryUserRepo(UserRepository):
    """Dépôt utilisateurs en mémoire (adresse indexée par dict)."""

    def __init__(self) -> None:
        self._db: dict[str, UserProfile] = {}
        self._by_address: dict[str, str] = {}

    async def find_by_address(self, address: str) -> UserProfile | None:
        user_id = self._by_address.get(address)
        return self._db.get(user_id) if user_id else None

    async def create(self, address: str) -> UserProfile:
        user = UserProfile(address=address)
        self._db[user.id] = user
        self._by_address[address] = user.id
        return user

    async def get(self, user_id: str) -> UserProfile:
        user = self._db.get(user_id)
        if user is None:
            raise UserNotFound(user_id)
        return user

    async def update(self, user_id: str, **fields: Any) -> UserProfile:
        user = _apply_update(await self.get(user_id), fields)
        self._db[user_id] = user
        return user


class InMemoryChartRepo(ChartRepository):
    """
    Dépôt de thèmes en mémoire (utilisé pour dev/tests).

    Stocke un thème par utilisateur dans un dict local, non persistant.
    """

    def __init__(self) -> None:
        self._db: dict[str, Chart] = {}

    async def save(self, chart: Chart) -> Chart:
        self._db[chart.user_id] = chart
        return chart

    async def get_for_user(self, user_id: str) -> Chart | None:
        return self._db.get(user_id)


class InMemoryMessageRepo(MessageRepository):
    """Journal en mémoire; l'ordre d'insertion fait foi pour les horodatages égaux."""

    def __init__(self) -> None:
        self._db: dict[str, list[ConversationTurn]] = {}

    async def append(
        self,
        user_id: str,
        role: MessageRole,
        content: str,
        external_id: str | None = None,
    ) -> ConversationTurn:
        turn = ConversationTurn(
            user_id=user_id, role=role, content=content, external_id=external_id
        )
        self._db.setdefault(user_id, []).append(turn)
        return turn

    async def recent(self, user_id: str, limit: int) -> list[ConversationTurn]:
        turns = self._db.get(user_id, [])
        return list(reversed(turns))[: max(0, limit)]


class RedisUserRepo(UserRepository):
    """Dépôt utilisateurs via Redis avec index adresse->id (hash)."""

    def __init__(self, url: str):
        """Crée un client Redis à partir de l'URL fournie."""
        self.client = redis.Redis.from_url(url, decode_responses=True)
        self.idx_key = "user:idx:address"

    @staticmethod
    def _key(user_id: str) -> str:
        return f"user:{user_id}"

    async def _store(self, user: UserProfile) -> None:
        # Le thème vit dans son propre dépôt
        pipe = self.client.pipeline()
        pipe.set(self._key(user.id), user.model_dump_json(exclude={"chart"}))
        pipe.hset(self.idx_key, user.address, user.id)
        await pipe.execute()

    async def find_by_address(self, address: str) -> UserProfile | None:
        user_id = await self.client.hget(self.idx_key, address)
        if not user_id:
            return None
        raw = await self.client.get(self._key(user_id))
        return UserProfile.model_validate_json(raw) if raw else None

    async def create(self, address: str) -> UserProfile:
        user = UserProfile(address=address)
        await self._store(user)
        return user

    async def get(self, user_id: str) -> UserProfile:
        raw = await self.client.get(self._key(user_id))
        if not raw:
            raise UserNotFound(user_id)
        return UserProfile.model_validate_json(raw)

    async def update(self, user_id: str, **fields: Any) -> UserProfile:
        user = _apply_update(await self.get(user_id), fields)
        await self._store(user)
        return user


class RedisChartRepo(ChartRepository):
    """Dépôt de thèmes adossé à Redis (clé: `chart:user:{user_id}`)."""

    def __init__(self, url: str):
        """Crée un client Redis à partir de l'URL fournie."""
        self.client = redis.Redis.from_url(url, decode_responses=True)

    async def save(self, chart: Chart) -> Chart:
        await self.client.set(f"chart:user:{chart.user_id}", chart.model_dump_json())
        return chart

    async def get_for_user(self, user_id: str) -> Chart | None:
        raw = await self.client.get(f"chart:user:{user_id}")
        return Chart.model_validate_json(raw) if raw else None


class RedisMessageRepo(MessageRepository):
    """Journal adossé à une liste Redis par utilisateur (`messages:{user_id}`)."""

    def __init__(self, url: str):
        """Crée un client Redis à partir de l'URL fournie."""
        self.client = redis.Redis.from_url(url, decode_responses=True)

    async def append(
        self,
        user_id: str,
        role: MessageRole,
        content: str,
        external_id: str | None = None,
    ) -> ConversationTurn:
        turn = ConversationTurn(
            user_id=user_id, role=role, content=content, external_id=external_id
        )
        await self.client.rpush(f"messages:{user_id}", turn.model_dump_json())
        return turn

    async def recent(self, user_id: str, limit: int) -> list[ConversationTurn]:
        if limit <= 0:
            return []
        raws = await self.client.lrange(f"messages:{user_id}", -limit, -1)
        return [ConversationTurn.model_validate_json(raw) for raw in reversed(raws)]
