"""
Conteneur d'injection de dépendances.

Instancie les composants centraux (settings, dépôts, clients HTTP, LLM, conseiller) et assemble
le `ConversationEngine` consommé par le transport de messagerie.
"""

from __future__ import annotations

import structlog

from natalbot.core.logging import setup_logging
from natalbot.core.settings import Settings, get_settings
from natalbot.domain.advice import AdviceGenerator
from natalbot.domain.chart_resolver import ChartResolver
from natalbot.domain.conversation import ConversationEngine
from natalbot.infra.astro.prokerala_client import ProkeralaClient
from natalbot.infra.astro.token_cache import shared_token_cache
from natalbot.infra.http_clients import GeoClient
from natalbot.infra.llm.openai_client import OpenAILLM
from natalbot.infra.repositories import (
    InMemoryChartRepo,
    InMemoryMessageRepo,
    InMemoryUserRepo,
    RedisChartRepo,
    RedisMessageRepo,
    RedisUserRepo,
)

log = structlog.get_logger(__name__)


class Container:
    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        setup_logging(self.settings.LOG_LEVEL)
        self._init_repositories()

        self.geo = GeoClient(
            geocoder_url=self.settings.GEOCODER_URL,
            timezone_url=self.settings.TIMEZONE_API_URL,
            user_agent=self.settings.GEOCODER_USER_AGENT,
            timeout_s=self.settings.HTTP_TIMEOUT_S,
        )
        self.chart_provider = ProkeralaClient(
            client_id=self.settings.ASTROLOGY_API_CLIENT_ID,
            client_secret=self.settings.ASTROLOGY_API_CLIENT_SECRET,
            base_url=self.settings.ASTROLOGY_API_URL,
            token_cache=shared_token_cache,
            timeout_s=self.settings.HTTP_TIMEOUT_S,
        )
        self.chart_resolver = ChartResolver(self.geo, self.chart_provider)
        self.llm = OpenAILLM(
            api_key=self.settings.OPENAI_API_KEY, model=self.settings.OPENAI_MODEL
        )
        self.advisor = AdviceGenerator(self.llm, self.chart_resolver)
        self.engine = ConversationEngine(
            users=self.user_repo,
            charts=self.chart_repo,
            messages=self.message_repo,
            chart_resolver=self.chart_resolver,
            advisor=self.advisor,
            history_limit=self.settings.HISTORY_LIMIT,
        )
        log.info(
            "container_ready",
            storage=self.storage_backend,
            chart_provider=self.chart_provider.configured,
            llm=self.llm.configured,
        )

    def _init_repositories(self) -> None:
        if self.settings.REDIS_URL:
            try:
                self.user_repo = RedisUserRepo(self.settings.REDIS_URL)
                self.chart_repo = RedisChartRepo(self.settings.REDIS_URL)
                self.message_repo = RedisMessageRepo(self.settings.REDIS_URL)
                self.storage_backend = "redis"
                return
            except Exception as err:
                if self.settings.REQUIRE_REDIS:
                    raise RuntimeError("Redis required but unavailable") from err
                log.warning("redis_unavailable", error=type(err).__name__)
                self.storage_backend = "memory-fallback"
        else:
            if self.settings.REQUIRE_REDIS:
                raise RuntimeError("Redis required but REDIS_URL not set")
            self.storage_backend = "memory"
        self.user_repo = InMemoryUserRepo()
        self.chart_repo = InMemoryChartRepo()
        self.message_repo = InMemoryMessageRepo()

    async def aclose(self) -> None:
        """Ferme les clients HTTP sortants."""
        await self.geo.aclose()
        await self.chart_provider.aclose()


def build_container(settings: Settings | None = None) -> Container:
    """Construit un conteneur prêt à l'emploi."""
    return Container(settings)
