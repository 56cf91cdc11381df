"""
Moteur de conversation: machine à états par utilisateur.

À chaque message entrant, le moteur journalise le tour utilisateur, route vers le gestionnaire de
l'état courant (collecte du nom, de la date, de l'heure puis du lieu de naissance, puis
discussion), persiste les mutations et journalise la réponse.

Aucun verrou n'est pris entre deux tours: l'appelant sérialise la livraison par adresse.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable

import structlog

from natalbot.app.metrics import GEOCODE_FAILURES, STATE_TRANSITIONS, TURNS_TOTAL
from natalbot.core.constants import HISTORY_LIMIT
from natalbot.domain.advice import AdviceGenerator
from natalbot.domain.chart_resolver import ChartResolver
from natalbot.domain.entities import ConversationState, MessageRole, UserProfile
from natalbot.domain.errors import InputRejected, LocationNotFound
from natalbot.domain.parsers import (
    parse_birth_date,
    parse_birth_time,
    parse_name,
    parse_place,
)
from natalbot.infra.repositories import ChartRepository, MessageRepository, UserRepository

log = structlog.get_logger(__name__)

Handler = Callable[[UserProfile, str], Awaitable[str]]

WELCOME = (
    "✨ *Welcome to Natal Chart Bot!* ✨\n\n"
    "I'm your personal astrology guide. I'll create your unique birth chart and provide "
    "insights about your life path, personality, and cosmic influences.\n\n"
    "To begin, *what's your name?*"
)
RESTART = "🔄 Starting over! Let's create a new chart.\n\n*What's your name?*"
LOCATION_NOT_FOUND = (
    "❌ I couldn't find that location. Please try again with a more specific location.\n\n"
    'Example: "London, United Kingdom" or "New York City, USA"'
)
NO_CHART = "❌ No chart found. Type *reset* to create one."
MENU = (
    "🔮 *What can I help you with?*\n\n"
    '📊 *"my chart"* - View your natal chart summary\n'
    '🌅 *"today"* - Get your daily horoscope\n'
    '💕 *"love"* - Relationship insights\n'
    '💼 *"career"* - Career guidance\n'
    '🧘 *"health"* - Wellness advice\n'
    '🔄 *"reset"* - Create a new chart\n\n'
    "Or simply ask me any question about your life, personality, or future!"
)

MENU_COMMANDS = {"menu", "help"}
RESET_COMMANDS = {"reset", "start over"}
SUMMARY_KEYWORDS = ("my chart", "summary")
HOROSCOPE_KEYWORDS = ("today", "daily", "horoscope")


def is_reset_command(text: str) -> bool:
    return text.strip().lower() in RESET_COMMANDS


def chart_summary(user: UserProfile) -> str:
    """Résumé du thème et des données de naissance."""
    chart = user.chart
    if chart is None:
        return NO_CHART
    born = user.birth_date.strftime("%d/%m/%Y") if user.birth_date else "-"
    return (
        "📊 *Your Natal Chart Summary*\n\n"
        f"👤 *Name:* {user.name or '-'}\n"
        f"📅 *Born:* {born}\n"
        f"🕐 *Time:* {user.birth_time or '-'}\n"
        f"📍 *Place:* {user.birth_place or '-'}\n\n"
        "---\n\n"
        f"☀️ *Sun in {chart.sun_sign}*\nYour core identity and ego\n\n"
        f"🌙 *Moon in {chart.moon_sign}*\nYour emotions and inner self\n\n"
        f"⬆️ *Ascendant in {chart.ascendant}*\nHow others perceive you\n\n"
        "---\n\n"
        "Ask me anything about your chart! 🔮"
    )


class ConversationEngine:
    """Orchestrateur des tours de conversation."""

    def __init__(
        self,
        users: UserRepository,
        charts: ChartRepository,
        messages: MessageRepository,
        chart_resolver: ChartResolver,
        advisor: AdviceGenerator,
        history_limit: int = HISTORY_LIMIT,
    ) -> None:
        self.users = users
        self.charts = charts
        self.messages = messages
        self.chart_resolver = chart_resolver
        self.advisor = advisor
        self.history_limit = history_limit
        self._handlers: dict[ConversationState, Handler] = {
            ConversationState.NEW: self._handle_new,
            ConversationState.AWAITING_NAME: self._handle_name,
            ConversationState.AWAITING_BIRTH_DATE: self._handle_birth_date,
            ConversationState.AWAITING_BIRTH_TIME: self._handle_birth_time,
            ConversationState.AWAITING_BIRTH_PLACE: self._handle_birth_place,
            ConversationState.CHART_READY: self._handle_chat,
            ConversationState.CHATTING: self._handle_chat,
        }
        missing = set(ConversationState) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No handler for states: {sorted(s.value for s in missing)}")

    async def load_user(self, user_id: str) -> UserProfile:
        """Charge le profil (lève `UserNotFound`) avec son thème éventuel."""
        user = await self.users.get(user_id)
        chart = await self.charts.get_for_user(user_id)
        return user.model_copy(update={"chart": chart})

    async def handle_inbound(
        self, address: str, text: str, external_id: str | None = None
    ) -> str:
        """Point d'entrée du transport: retrouve ou crée l'utilisateur puis traite le message."""
        user = await self.users.find_by_address(address)
        if user is None:
            user = await self.users.create(address)
            log.info("user_created", user_id=user.id)
        else:
            user = await self.load_user(user.id)
        return await self.process_message(user, text, external_id=external_id)

    async def process_message(
        self, user: UserProfile, text: str, external_id: str | None = None
    ) -> str:
        """Traite un tour complet et retourne la réponse à envoyer."""
        await self.messages.append(user.id, MessageRole.USER, text, external_id=external_id)
        TURNS_TOTAL.labels(state=user.state.value).inc()
        log.debug("turn_received", user_id=user.id, state=user.state.value)

        if user.state is not ConversationState.NEW and is_reset_command(text):
            reply = await self._reset(user)
        else:
            reply = await self._handlers[user.state](user, text)

        await self.messages.append(user.id, MessageRole.ASSISTANT, reply)
        return reply

    async def _transition(
        self, user: UserProfile, target: ConversationState, **fields
    ) -> UserProfile:
        updated = await self.users.update(user.id, state=target, **fields)
        STATE_TRANSITIONS.labels(source=user.state.value, target=target.value).inc()
        log.info(
            "state_transition", user_id=user.id, source=user.state.value, target=target.value
        )
        return updated

    async def _reset(self, user: UserProfile) -> str:
        await self._transition(user, ConversationState.NEW)
        return RESTART

    async def _handle_new(self, user: UserProfile, text: str) -> str:
        await self._transition(user, ConversationState.AWAITING_NAME)
        return WELCOME

    async def _handle_name(self, user: UserProfile, text: str) -> str:
        try:
            name = parse_name(text)
        except InputRejected as rejection:
            return rejection.message
        await self._transition(user, ConversationState.AWAITING_BIRTH_DATE, name=name)
        return (
            f"Nice to meet you, *{name}*! 🌟\n\n"
            "Now I need your birth date to create your natal chart.\n\n"
            "*Please enter your birth date* in format:\n"
            "📅 DD/MM/YYYY (e.g., 25/12/1990)"
        )

    async def _handle_birth_date(self, user: UserProfile, text: str) -> str:
        try:
            parsed = parse_birth_date(text)
        except InputRejected as rejection:
            log.debug("birth_date_rejected", user_id=user.id, reason=rejection.reason)
            return rejection.message
        await self._transition(
            user, ConversationState.AWAITING_BIRTH_TIME, birth_date=parsed.value
        )
        return (
            f"📅 Birth date saved: *{parsed.day}/{parsed.month}/{parsed.year}*\n\n"
            "Now, *what time were you born?*\n\n"
            "Please enter in 24-hour format:\n"
            "🕐 HH:MM (e.g., 14:30 or 09:15)\n\n"
            "💡 _If you don't know your exact birth time, type \"unknown\" and I'll use "
            "noon (12:00)._"
        )

    async def _handle_birth_time(self, user: UserProfile, text: str) -> str:
        try:
            birth_time = parse_birth_time(text)
        except InputRejected as rejection:
            return rejection.message
        await self._transition(
            user, ConversationState.AWAITING_BIRTH_PLACE, birth_time=birth_time
        )
        return (
            f"🕐 Birth time saved: *{birth_time}*\n\n"
            "Finally, *where were you born?*\n\n"
            "Please enter your birth city and country:\n"
            "📍 Example: London, UK or New York, USA"
        )

    async def _handle_birth_place(self, user: UserProfile, text: str) -> str:
        try:
            place = parse_place(text)
        except InputRejected as rejection:
            return rejection.message
        try:
            location = await self.chart_resolver.geocode(place)
        except LocationNotFound:
            GEOCODE_FAILURES.inc()
            log.warning("geocode_failed", user_id=user.id)
            return LOCATION_NOT_FOUND

        resolved_place = location.formatted_address or place
        user = await self.users.update(
            user.id,
            birth_place=resolved_place,
            birth_latitude=location.latitude,
            birth_longitude=location.longitude,
            timezone=location.timezone,
        )
        chart = await self.chart_resolver.generate_chart(user)
        interpretation = await self.advisor.interpret_chart(chart)
        chart = await self.charts.save(chart.model_copy(update={"interpretation": interpretation}))
        await self._transition(user, ConversationState.CHART_READY)

        return (
            f"📍 Location found: *{resolved_place}*\n\n"
            "⏳ *Calculating your natal chart...*\n\n"
            "✅ *Your Natal Chart is Ready!*\n\n"
            f"☀️ *Sun Sign:* {chart.sun_sign}\n"
            f"🌙 *Moon Sign:* {chart.moon_sign}\n"
            f"⬆️ *Ascendant:* {chart.ascendant}\n\n"
            "---\n\n"
            f"{interpretation}\n\n"
            "---\n\n"
            "🔮 You can now ask me anything about your chart, life path, relationships, "
            "career, or get personalized advice!\n\n"
            'Type *"menu"* to see what I can help you with.'
        )

    async def _handle_chat(self, user: UserProfile, text: str) -> str:
        command = text.strip().lower()

        if command in MENU_COMMANDS:
            return MENU
        if any(k in command for k in SUMMARY_KEYWORDS):
            return chart_summary(user)
        if any(k in command for k in HOROSCOPE_KEYWORDS):
            return await self.advisor.daily_horoscope(user)

        if user.state is ConversationState.CHART_READY:
            updated = await self._transition(user, ConversationState.CHATTING)
            # le dépôt utilisateurs ne porte pas le thème
            user = updated.model_copy(update={"chart": user.chart})
        history = await self.messages.recent(user.id, self.history_limit)
        return await self.advisor.get_advice(user, text, history)
