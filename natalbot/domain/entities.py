"""
Entités du domaine métier.

Ce module définit les modèles de données du bot: profil utilisateur et état de conversation,
thème natal (planètes, maisons, aspects) et journal des messages.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

ChartSource = Literal["provider", "fallback"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class ConversationState(str, Enum):
    """Étape courante de la conversation d'un utilisateur."""

    NEW = "NEW"
    AWAITING_NAME = "AWAITING_NAME"
    AWAITING_BIRTH_DATE = "AWAITING_BIRTH_DATE"
    AWAITING_BIRTH_TIME = "AWAITING_BIRTH_TIME"
    AWAITING_BIRTH_PLACE = "AWAITING_BIRTH_PLACE"
    CHART_READY = "CHART_READY"
    CHATTING = "CHATTING"


class MessageRole(str, Enum):
    """Auteur d'un message du journal."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class PlanetPosition(BaseModel):
    """Position d'une planète dans le thème."""

    model_config = ConfigDict(frozen=True)

    name: str
    sign: str
    degree: float = 0.0
    house: int = 1
    retrograde: bool = False


class HouseCusp(BaseModel):
    """Cuspide de maison (1 à 12)."""

    model_config = ConfigDict(frozen=True)

    house: int = Field(..., ge=1, le=12)
    sign: str
    degree: float = 0.0


class Aspect(BaseModel):
    """Aspect entre deux planètes."""

    model_config = ConfigDict(frozen=True)

    planet1: str
    planet2: str
    aspect: str
    orb: float = 0.0


class Chart(BaseModel):
    """
    Thème natal calculé, immuable une fois produit.

    `raw_payload` conserve la réponse du fournisseur (ou la note du calcul de secours) pour audit;
    `interpretation` est mise en cache via `model_copy` avant persistance.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    user_id: str
    sun_sign: str
    moon_sign: str
    ascendant: str
    planets: list[PlanetPosition] = Field(default_factory=list)
    houses: list[HouseCusp] = Field(default_factory=list)
    aspects: list[Aspect] = Field(default_factory=list)
    raw_payload: dict[str, Any] = Field(default_factory=dict)
    interpretation: str | None = None
    source: ChartSource = "fallback"
    created_at: datetime = Field(default_factory=_utcnow)


class GeoLocation(BaseModel):
    """Résultat de géocodage d'un lieu de naissance."""

    latitude: float
    longitude: float
    timezone: str
    formatted_address: str | None = None


class UserProfile(BaseModel):
    """Profil utilisateur identifié par son adresse sur le canal de messagerie."""

    id: str = Field(default_factory=_new_id)
    address: str
    name: str | None = None
    birth_date: date | None = None
    birth_time: str | None = None  # HH:MM (24h)
    birth_place: str | None = None
    birth_latitude: float | None = None
    birth_longitude: float | None = None
    timezone: str | None = None
    state: ConversationState = ConversationState.NEW
    chart: Chart | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def has_complete_birth_data(self) -> bool:
        """Indique si date, heure, lieu et coordonnées sont tous renseignés.

        Une coordonnée à 0 (équateur, méridien de Greenwich) est une valeur valide.
        """
        return (
            self.birth_date is not None
            and bool(self.birth_time)
            and bool(self.birth_place)
            and self.birth_latitude is not None
            and self.birth_longitude is not None
        )


class ConversationTurn(BaseModel):
    """Entrée du journal des messages (append-only)."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    user_id: str
    role: MessageRole
    content: str
    external_id: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)
