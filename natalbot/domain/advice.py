"""Conseiller astrologique: interprétation, questions/réponses et horoscope du jour.

Chaque opération construit un prompt à partir du thème, appelle le LLM et, sur n'importe quelle
erreur du fournisseur (y compris l'absence de configuration), renvoie un texte gabarit local.
L'appelant ne voit jamais l'exception.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import date
from typing import Protocol

import structlog

from natalbot.app.metrics import LLM_CALLS, LLM_TOKENS_TOTAL
from natalbot.core.constants import (
    ADVICE_HISTORY_TURNS,
    ADVICE_MAX_TOKENS,
    ADVICE_TEMPERATURE,
    ADVISOR_MAX_PLANETS,
    HOROSCOPE_MAX_TOKENS,
    HOROSCOPE_TEMPERATURE,
    INTERPRETATION_MAX_TOKENS,
    INTERPRETATION_TEMPERATURE,
)
from natalbot.domain.entities import (
    Chart,
    ConversationTurn,
    MessageRole,
    PlanetPosition,
    UserProfile,
)
from natalbot.infra.llm.base import LLM

log = structlog.get_logger(__name__)

INTERPRETER_SYSTEM = (
    "You are an expert astrologer with deep knowledge of natal chart interpretation. "
    "You provide insightful, personalized readings that are both mystical and practical. "
    "Keep responses warm, engaging, and formatted for WhatsApp (use *bold* and emojis "
    "sparingly). Limit your response to ~500 words."
)
HOROSCOPE_SYSTEM = (
    "You are a mystical yet practical astrologer providing daily guidance. "
    "Be encouraging and specific."
)
NO_CHART_YET = "❌ I don't have your chart yet. Let's create one first!"

_WEEKDAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
_LOVE_KEYWORDS = ("love", "relationship")
_CAREER_KEYWORDS = ("career", "work", "job")


class TransitSource(Protocol):
    """Fournit les positions planétaires courantes (voir `ChartResolver.current_transits`)."""

    def current_transits(self) -> list[PlanetPosition]: ...


def _format_date(day: date) -> str:
    return day.strftime("%d/%m/%Y")


def build_interpretation_prompt(chart: Chart) -> str:
    """Prompt d'interprétation: trois placements puis, si présentes, les planètes."""
    lines = [
        "Interpret this natal chart and provide insights about the person's personality, "
        "strengths, challenges, and life path.",
        "",
        "*Core Placements:*",
        f"- Sun in {chart.sun_sign}: Core identity",
        f"- Moon in {chart.moon_sign}: Emotional nature",
        f"- Ascendant in {chart.ascendant}: Public persona",
        "",
    ]
    if chart.planets:
        lines.append("*Planetary Positions:*")
        for p in chart.planets:
            lines.append(f"- {p.name} in {p.sign}{' (Retrograde)' if p.retrograde else ''}")
        lines.append("")
    lines += [
        "Provide a reading that covers:",
        "1. Personality overview (who they are at their core)",
        "2. Emotional nature and needs",
        "3. How they appear to others",
        "4. Key strengths to embrace",
        "5. Potential challenges to work on",
        "6. Life purpose hints",
        "",
        "Make it personal, insightful, and actionable. "
        "Format for WhatsApp (use *bold* for emphasis).",
    ]
    return "\n".join(lines)


def build_advisor_system_prompt(user: UserProfile) -> str:
    """Prompt système du conseiller, tolérant à l'absence de thème."""
    chart = user.chart
    lines = [
        "You are a wise astrological advisor providing personalized guidance to "
        f"{user.name or 'this person'}.",
        "",
        "Their Natal Chart Profile:",
        f"- Sun Sign: {chart.sun_sign if chart else 'Unknown'} (Core identity, ego, life force)",
        f"- Moon Sign: {chart.moon_sign if chart else 'Unknown'} "
        "(Emotions, instincts, inner self)",
        f"- Ascendant: {chart.ascendant if chart else 'Unknown'} "
        "(How they appear to others, first impressions)",
    ]
    if chart and chart.planets:
        lines += ["", "Key Planetary Placements:"]
        lines += [f"- {p.name} in {p.sign}" for p in chart.planets[:ADVISOR_MAX_PLANETS]]
    lines += [
        "",
        "Guidelines for your responses:",
        "1. Always consider their chart when giving advice",
        "2. Be warm, supportive, and mystically insightful",
        "3. Provide practical, actionable guidance",
        "4. Reference their specific placements when relevant",
        "5. Keep responses concise (under 300 words) and formatted for WhatsApp",
        "6. Use *bold* for emphasis and emojis sparingly",
        "7. For relationship questions, consider their Venus placement",
        "8. For career questions, consider their Saturn and 10th house",
        "9. For emotional matters, focus on their Moon sign",
        "",
        "Never break character. You are their personal astrological guide.",
    ]
    return "\n".join(lines)


def history_messages(
    history: Sequence[ConversationTurn], question: str
) -> list[dict[str, str]]:
    """
    Convertit l'historique (du plus récent au plus ancien) en messages chronologiques.

    Le tour courant, déjà journalisé avant l'appel, est retiré s'il est en tête pour ne pas
    dupliquer la question. Seuls les 8 tours les plus récents sont conservés.
    """
    turns = list(history)
    if turns and turns[0].role == MessageRole.USER and turns[0].content == question:
        turns = turns[1:]
    recent = turns[:ADVICE_HISTORY_TURNS]
    return [
        {
            "role": "user" if t.role == MessageRole.USER else "assistant",
            "content": t.content,
        }
        for t in reversed(recent)
    ]


def build_horoscope_prompt(chart: Chart, transits: list[PlanetPosition], today: date) -> str:
    transit_lines = "\n".join(f"- {t.name} in {t.sign}" for t in transits)
    return (
        f"Generate a personalized daily horoscope for today ({_format_date(today)}).\n\n"
        "User's Natal Chart:\n"
        f"- Sun Sign: {chart.sun_sign}\n"
        f"- Moon Sign: {chart.moon_sign}\n"
        f"- Ascendant: {chart.ascendant}\n\n"
        "Current Transits:\n"
        f"{transit_lines}\n\n"
        "Provide:\n"
        "1. Overall energy for today\n"
        "2. Lucky areas (love, career, health)\n"
        "3. A piece of practical advice\n"
        "4. A power word/mantra for the day\n\n"
        "Format for WhatsApp with emojis. Keep it under 300 words."
    )


def fallback_interpretation(chart: Chart) -> str:
    return (
        "🌟 *Your Cosmic Blueprint*\n\n"
        f"As a *{chart.sun_sign}* Sun, your core essence radiates with the energy of this "
        f"sign. Your identity, ego, and life force are colored by {chart.sun_sign}'s unique "
        "characteristics.\n\n"
        f"With your Moon in *{chart.moon_sign}*, your emotional world runs deep. This "
        "placement reveals how you process feelings, seek comfort, and nurture yourself and "
        "others.\n\n"
        f"Your *{chart.ascendant}* Ascendant is the mask you show the world: it's how others "
        "first perceive you and how you initiate new beginnings.\n\n"
        "*Key Themes for You:*\n"
        f"• Embrace your {chart.sun_sign} strengths\n"
        f"• Honor your {chart.moon_sign} emotional needs\n"
        f"• Use your {chart.ascendant} rising energy to make great first impressions\n\n"
        "Ask me specific questions about love, career, or personal growth to get deeper "
        "insights! 🔮"
    )


def fallback_advice(user: UserProfile, question: str) -> str:
    """Gabarit choisi par mots-clés: amour, carrière, ou général."""
    chart = user.chart
    sun = chart.sun_sign if chart else "your sign"
    moon = chart.moon_sign if chart else "emotional"
    lowered = question.lower()

    if any(k in lowered for k in _LOVE_KEYWORDS):
        return (
            f"💕 *Love Insight for {sun}*\n\n"
            f"Your {sun} nature influences how you love. Remember to balance your {moon} "
            "needs with your partner's energy.\n\n"
            "Key advice: Communication is essential. Express your feelings openly and listen "
            "with compassion."
        )
    if any(k in lowered for k in _CAREER_KEYWORDS):
        return (
            f"💼 *Career Insight for {sun}*\n\n"
            f"Your {sun} energy brings unique gifts to your professional life. Trust your "
            "natural abilities and don't be afraid to lead.\n\n"
            "Key advice: This is a time for strategic planning. Set clear goals and take "
            "consistent action."
        )
    return (
        f"🔮 *Guidance for {user.name or 'You'}*\n\n"
        f"As a {sun}, trust your natural instincts on this matter. Your {moon} Moon helps "
        "you sense the right path.\n\n"
        "Key advice: Take time to reflect before making major decisions. The stars support "
        "thoughtful action.\n\n"
        "Feel free to ask me more specific questions! 🌟"
    )


def fallback_horoscope(user: UserProfile, today: date) -> str:
    chart = user.chart
    sun = chart.sun_sign if chart else "cosmic"
    moon = chart.moon_sign if chart else "emotional"
    return (
        f"🌅 *Daily Horoscope for {user.name or sun}*\n"
        f"📅 {_WEEKDAYS[today.weekday()]}, {_format_date(today)}\n\n"
        "*Overall Energy:* ⭐⭐⭐⭐\n\n"
        f"As a {sun} soul, today brings opportunities for growth and connection. Your {moon} "
        "Moon encourages you to trust your feelings.\n\n"
        "*Focus Areas:*\n"
        "💕 Love: Open heart conversations\n"
        "💼 Career: Creative problem-solving\n"
        "🧘 Wellness: Take mindful breaks\n\n"
        "*Power Word:* ✨ *Balance* ✨\n\n"
        "Remember, you create your own luck. Make today count! 🌟"
    )


class AdviceGenerator:
    """Génère les textes du conseiller via le LLM, avec gabarits de secours."""

    def __init__(
        self,
        llm: LLM,
        transits: TransitSource,
        today: Callable[[], date] | None = None,
    ) -> None:
        """Initialise le conseiller avec un LLM et une source de transits."""
        self.llm = llm
        self.transits = transits
        self._today = today or date.today

    async def _complete(
        self,
        call: str,
        messages: list[dict[str, str]],
        fallback: Callable[[], str],
        *,
        user_id: str | None = None,
        temperature: float,
        max_tokens: int,
    ) -> str:
        try:
            text, usage = await self.llm.generate(
                messages,
                with_usage=True,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except Exception as exc:
            log.warning("llm_fallback", call=call, user_id=user_id, error=type(exc).__name__)
            LLM_CALLS.labels(call=call, outcome="fallback").inc()
            return fallback()
        LLM_CALLS.labels(call=call, outcome="ok").inc()
        if usage.get("total_tokens"):
            LLM_TOKENS_TOTAL.labels(call=call).inc(usage["total_tokens"])
        return text

    async def interpret_chart(self, chart: Chart) -> str:
        """Lecture du thème en plusieurs paragraphes."""
        messages = [
            {"role": "system", "content": INTERPRETER_SYSTEM},
            {"role": "user", "content": build_interpretation_prompt(chart)},
        ]
        return await self._complete(
            "interpretation",
            messages,
            lambda: fallback_interpretation(chart),
            user_id=chart.user_id,
            temperature=INTERPRETATION_TEMPERATURE,
            max_tokens=INTERPRETATION_MAX_TOKENS,
        )

    async def get_advice(
        self,
        user: UserProfile,
        question: str,
        history: Sequence[ConversationTurn] = (),
    ) -> str:
        """Réponse contextualisée par le thème et les derniers échanges."""
        messages = [{"role": "system", "content": build_advisor_system_prompt(user)}]
        messages += history_messages(history, question)
        messages.append({"role": "user", "content": question})
        return await self._complete(
            "advice",
            messages,
            lambda: fallback_advice(user, question),
            user_id=user.id,
            temperature=ADVICE_TEMPERATURE,
            max_tokens=ADVICE_MAX_TOKENS,
        )

    async def daily_horoscope(self, user: UserProfile, today: date | None = None) -> str:
        """Horoscope du jour à partir du thème natal et des transits courants."""
        if user.chart is None:
            return NO_CHART_YET
        day = today or self._today()
        transits = self.transits.current_transits()
        messages = [
            {"role": "system", "content": HOROSCOPE_SYSTEM},
            {"role": "user", "content": build_horoscope_prompt(user.chart, transits, day)},
        ]
        return await self._complete(
            "horoscope",
            messages,
            lambda: fallback_horoscope(user, day),
            user_id=user.id,
            temperature=HOROSCOPE_TEMPERATURE,
            max_tokens=HOROSCOPE_MAX_TOKENS,
        )
