"""Configuration de test pour pytest avec gestion des chemins.

Ce module ajoute la racine du projet au sys.path pour résoudre les imports `natalbot...` et expose
les fixtures partagées (dépôts en mémoire, fakes des dépendances externes, moteur assemblé).
"""

import os
import sys
from datetime import date, datetime, timezone

import pytest

# Ensure project root is on sys.path so that
# imports like `from natalbot...` resolve.
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from natalbot.domain.advice import AdviceGenerator  # noqa: E402
from natalbot.domain.chart_resolver import ChartResolver  # noqa: E402
from natalbot.domain.conversation import ConversationEngine  # noqa: E402
from natalbot.infra.repositories import (  # noqa: E402
    InMemoryChartRepo,
    InMemoryMessageRepo,
    InMemoryUserRepo,
)
from tests.fakes import FakeChartProvider, FakeGeocoder, FakeLLM  # noqa: E402

FIXED_NOW = datetime(2024, 6, 15, 9, 30, tzinfo=timezone.utc)
FIXED_TODAY = date(2024, 6, 15)


@pytest.fixture
def users() -> InMemoryUserRepo:
    return InMemoryUserRepo()


@pytest.fixture
def charts() -> InMemoryChartRepo:
    return InMemoryChartRepo()


@pytest.fixture
def messages() -> InMemoryMessageRepo:
    return InMemoryMessageRepo()


@pytest.fixture
def geocoder() -> FakeGeocoder:
    return FakeGeocoder()


@pytest.fixture
def provider() -> FakeChartProvider:
    return FakeChartProvider()


@pytest.fixture
def llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def resolver(geocoder, provider) -> ChartResolver:
    return ChartResolver(geocoder, provider, clock=lambda: FIXED_NOW)


@pytest.fixture
def advisor(llm, resolver) -> AdviceGenerator:
    return AdviceGenerator(llm, resolver, today=lambda: FIXED_TODAY)


@pytest.fixture
def engine(users, charts, messages, resolver, advisor) -> ConversationEngine:
    """Moteur assemblé sur des dépôts en mémoire et des fakes déterministes."""
    return ConversationEngine(
        users=users,
        charts=charts,
        messages=messages,
        chart_resolver=resolver,
        advisor=advisor,
    )
