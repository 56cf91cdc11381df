"""Définition et chargement des paramètres de configuration du bot.

Objectif du module
------------------
- Centraliser les paramètres (env/.env) via Pydantic Settings
- Résoudre le fichier `.env` à utiliser selon la stratégie: ENV_FILE > .env.{APP_ENV} > .env
"""

import os
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Détermination du fichier .env à utiliser avec priorité:
# 1) ENV_FILE (chemin explicite)
# 2) .env.{APP_ENV} si présent
# 3) .env (défaut)
_cwd = Path.cwd()
_env_file_from_env = os.getenv("ENV_FILE")
if _env_file_from_env:
    _ENV_FILE_PATH = _env_file_from_env
else:
    _app_env = os.getenv("APP_ENV", "dev")
    _candidate_specific = _cwd / f".env.{_app_env}"
    _candidate_default = _cwd / ".env"
    if _candidate_specific.exists():
        _ENV_FILE_PATH = _candidate_specific
    else:
        _ENV_FILE_PATH = _candidate_default


class Settings(BaseSettings):
    """Modèle de configuration chargé depuis l'environnement et .env."""

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE_PATH,
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=False,
        extra="ignore",
    )
    APP_NAME: str = "natalbot"
    APP_ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    # Stockage (Redis optionnel, mémoire sinon)
    REDIS_URL: str | None = None
    REQUIRE_REDIS: bool = False

    # LLM
    OPENAI_API_KEY: str | None = None
    OPENAI_MODEL: str = "gpt-4o-mini"

    # Fournisseur de thèmes (OAuth2 client-credentials)
    ASTROLOGY_API_CLIENT_ID: str | None = None
    ASTROLOGY_API_CLIENT_SECRET: str | None = None
    ASTROLOGY_API_URL: str = "https://api.prokerala.com"

    # Géocodage / fuseaux horaires
    GEOCODER_URL: str = "https://nominatim.openstreetmap.org"
    TIMEZONE_API_URL: str = "https://timeapi.io"
    GEOCODER_USER_AGENT: str = "NatalChartBot/1.0"
    HTTP_TIMEOUT_S: float = 10.0

    # Conversation
    HISTORY_LIMIT: int = 10


def get_settings() -> Settings:
    """Construit et retourne la configuration du bot."""
    return Settings()
