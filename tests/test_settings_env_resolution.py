"""
Tests pour la résolution des variables d'environnement.

Ce module teste le chargement des settings depuis un fichier .env désigné par `ENV_FILE` et la
précédence des variables d'environnement.
"""

from __future__ import annotations

import importlib
from pathlib import Path

TEST_HISTORY_LIMIT = 7
TEST_HTTP_TIMEOUT_S = 2.5


def test_settings_reads_env_file(tmp_path: Path, monkeypatch) -> None:
    """
    Teste que les settings lisent correctement les fichiers d'environnement.

    Vérifie que les variables définies dans un fichier .env personnalisé sont chargées et que les
    clés inconnues sont ignorées.
    """
    env = tmp_path / ".env.custom"
    env.write_text(
        "OPENAI_MODEL=gpt-custom\nHISTORY_LIMIT=7\nHTTP_TIMEOUT_S=2.5\nSOMETHING_ELSE=1\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("ENV_FILE", str(env))
    monkeypatch.delenv("OPENAI_MODEL", raising=False)

    # Reload settings module to pick up new ENV_FILE
    settings_mod = importlib.import_module("natalbot.core.settings")
    importlib.reload(settings_mod)

    s = settings_mod.get_settings()
    assert s.OPENAI_MODEL == "gpt-custom"
    assert s.HISTORY_LIMIT == TEST_HISTORY_LIMIT
    assert s.HTTP_TIMEOUT_S == TEST_HTTP_TIMEOUT_S


def test_environment_overrides_env_file(tmp_path: Path, monkeypatch) -> None:
    env = tmp_path / ".env.custom"
    env.write_text("OPENAI_MODEL=from-file\n", encoding="utf-8")
    monkeypatch.setenv("ENV_FILE", str(env))
    monkeypatch.setenv("OPENAI_MODEL", "from-env")

    settings_mod = importlib.import_module("natalbot.core.settings")
    importlib.reload(settings_mod)

    assert settings_mod.get_settings().OPENAI_MODEL == "from-env"


def test_defaults_without_env_file(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("ENV_FILE", str(tmp_path / "missing.env"))
    for key in ("REDIS_URL", "OPENAI_API_KEY", "ASTROLOGY_API_CLIENT_ID", "HISTORY_LIMIT"):
        monkeypatch.delenv(key, raising=False)

    settings_mod = importlib.import_module("natalbot.core.settings")
    importlib.reload(settings_mod)

    s = settings_mod.get_settings()
    assert s.REDIS_URL is None
    assert s.OPENAI_API_KEY is None
    assert s.ASTROLOGY_API_URL == "https://api.prokerala.com"
    assert s.HISTORY_LIMIT == 10  # noqa: PLR2004
