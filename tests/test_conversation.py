"""
Tests pour le moteur de conversation.

Parcours complet d'onboarding, relances sur saisie invalide, commandes en discussion,
réinitialisation et journalisation des tours.
"""

from __future__ import annotations

import pytest

from natalbot.domain.advice import AdviceGenerator
from natalbot.domain.conversation import (
    LOCATION_NOT_FOUND,
    MENU,
    NO_CHART,
    RESTART,
    ConversationEngine,
)
from natalbot.domain.entities import ConversationState, MessageRole
from natalbot.domain.errors import UserNotFound
from natalbot.domain.parsers import DATE_INVALID, PLACE_TOO_SHORT
from natalbot.infra.llm.openai_client import OpenAILLM
from tests.fakes import FailingLLM

ADDRESS = "whatsapp:+15550001"
ONBOARDING = ["hi", "Maria", "25/12/1990", "14:30", "London, UK"]
TURNS_PER_MESSAGE = 2

STATE_ORDER = [
    ConversationState.NEW,
    ConversationState.AWAITING_NAME,
    ConversationState.AWAITING_BIRTH_DATE,
    ConversationState.AWAITING_BIRTH_TIME,
    ConversationState.AWAITING_BIRTH_PLACE,
    ConversationState.CHART_READY,
    ConversationState.CHATTING,
]


async def _onboard(engine: ConversationEngine, steps=ONBOARDING) -> list[str]:
    return [await engine.handle_inbound(ADDRESS, text) for text in steps]


async def _state(engine: ConversationEngine) -> ConversationState:
    user = await engine.users.find_by_address(ADDRESS)
    return user.state


@pytest.mark.asyncio
async def test_full_onboarding_happy_path(engine, charts, llm) -> None:
    """Cinq messages mènent de NEW à CHART_READY avec un thème persisté."""
    llm.reply = "A deep and warm reading."
    replies = await _onboard(engine)

    assert "Welcome" in replies[0]
    assert "Nice to meet you, *Maria*!" in replies[1]
    assert "Birth date saved: *25/12/1990*" in replies[2]
    assert "Birth time saved: *14:30*" in replies[3]
    assert "✅ *Your Natal Chart is Ready!*" in replies[4]
    assert "*Sun Sign:* Capricorn" in replies[4]
    assert "A deep and warm reading." in replies[4]

    user = await engine.users.find_by_address(ADDRESS)
    assert user.state is ConversationState.CHART_READY
    assert user.name == "Maria"
    assert user.birth_time == "14:30"
    assert user.birth_place.startswith("London")
    assert user.timezone == "Europe/London"

    chart = await charts.get_for_user(user.id)
    assert chart.sun_sign == "Capricorn"
    assert chart.source == "fallback"
    assert chart.interpretation == "A deep and warm reading."


@pytest.mark.asyncio
async def test_onboarding_states_only_move_forward(engine) -> None:
    seen: list[ConversationState] = []
    for text in ONBOARDING:
        await engine.handle_inbound(ADDRESS, text)
        seen.append(await _state(engine))
    indexes = [STATE_ORDER.index(s) for s in seen]
    assert indexes == sorted(indexes)
    assert seen[-1] is ConversationState.CHART_READY


@pytest.mark.asyncio
async def test_invalid_date_reprompts_without_state_change(engine) -> None:
    await _onboard(engine, ONBOARDING[:2])
    reply = await engine.handle_inbound(ADDRESS, "31/02/1990")
    assert reply == DATE_INVALID
    assert await _state(engine) is ConversationState.AWAITING_BIRTH_DATE


@pytest.mark.asyncio
async def test_short_place_reprompts(engine, geocoder) -> None:
    await _onboard(engine, ONBOARDING[:4])
    reply = await engine.handle_inbound(ADDRESS, "X")
    assert reply == PLACE_TOO_SHORT
    assert geocoder.queries == []
    assert await _state(engine) is ConversationState.AWAITING_BIRTH_PLACE


@pytest.mark.asyncio
async def test_unknown_place_keeps_state(engine, geocoder, charts) -> None:
    """Lieu introuvable: relance, aucun lieu ni coordonnées enregistrés, aucun thème."""
    await _onboard(engine, ONBOARDING[:4])
    geocoder.fail = True
    reply = await engine.handle_inbound(ADDRESS, "Atlantis")
    assert reply == LOCATION_NOT_FOUND

    user = await engine.users.find_by_address(ADDRESS)
    assert user.state is ConversationState.AWAITING_BIRTH_PLACE
    assert user.birth_place is None
    assert user.birth_latitude is None
    assert user.birth_longitude is None
    assert await charts.get_for_user(user.id) is None


@pytest.mark.asyncio
async def test_place_without_formatted_address_keeps_user_text(engine, geocoder) -> None:
    geocoder.location = geocoder.location.model_copy(update={"formatted_address": None})
    replies = await _onboard(engine)
    assert "Location found: *London, UK*" in replies[4]


@pytest.mark.asyncio
async def test_unknown_birth_time_defaults_to_noon(engine) -> None:
    steps = [*ONBOARDING[:3], "unknown"]
    replies = await _onboard(engine, steps)
    assert "Birth time saved: *12:00*" in replies[3]


@pytest.mark.asyncio
async def test_onboarding_completes_when_llm_is_down(
    users, charts, messages, resolver
) -> None:
    """Sans LLM, l'interprétation de secours est utilisée et le thème reste persisté."""
    engine = ConversationEngine(
        users, charts, messages, resolver, AdviceGenerator(FailingLLM(), resolver)
    )
    replies = await _onboard(engine)
    assert "Your Cosmic Blueprint" in replies[4]
    user = await users.find_by_address(ADDRESS)
    assert (await charts.get_for_user(user.id)).interpretation.startswith("🌟")


@pytest.mark.asyncio
async def test_free_question_moves_to_chatting(engine, llm) -> None:
    await _onboard(engine)
    llm.reply = "Follow your heart."
    reply = await engine.handle_inbound(ADDRESS, "Will I find love?")
    assert reply == "Follow your heart."
    assert await _state(engine) is ConversationState.CHATTING

    messages, _ = llm.calls[-1]
    assert "Sun Sign: Capricorn" in messages[0]["content"]
    assert messages[-1] == {"role": "user", "content": "Will I find love?"}
    # la question courante n'est pas dupliquée dans l'historique
    assert [m["content"] for m in messages].count("Will I find love?") == 1


@pytest.mark.asyncio
async def test_commands_do_not_change_state(engine) -> None:
    await _onboard(engine)

    assert await engine.handle_inbound(ADDRESS, "  MENU ") == MENU
    summary = await engine.handle_inbound(ADDRESS, "show my chart")
    assert "Your Natal Chart Summary" in summary
    assert "*Born:* 25/12/1990" in summary
    assert "Sun in Capricorn" in summary
    assert await _state(engine) is ConversationState.CHART_READY


@pytest.mark.asyncio
async def test_daily_horoscope_command(engine, llm) -> None:
    await _onboard(engine)
    llm.reply = "Today shines."
    assert await engine.handle_inbound(ADDRESS, "What about today?") == "Today shines."
    messages, _ = llm.calls[-1]
    assert "Current Transits" in messages[1]["content"]


@pytest.mark.asyncio
@pytest.mark.parametrize("command", ["reset", " Start Over "])
async def test_reset_from_chatting(engine, command: str) -> None:
    await _onboard(engine)
    await engine.handle_inbound(ADDRESS, "Tell me something")
    assert await engine.handle_inbound(ADDRESS, command) == RESTART
    assert await _state(engine) is ConversationState.NEW

    # le message suivant relance l'accueil
    assert "Welcome" in await engine.handle_inbound(ADDRESS, "hello")
    assert await _state(engine) is ConversationState.AWAITING_NAME


@pytest.mark.asyncio
async def test_reset_during_onboarding(engine) -> None:
    await _onboard(engine, ONBOARDING[:3])
    assert await engine.handle_inbound(ADDRESS, "reset") == RESTART
    assert await _state(engine) is ConversationState.NEW


@pytest.mark.asyncio
async def test_reset_in_new_state_is_a_greeting(engine) -> None:
    reply = await engine.handle_inbound(ADDRESS, "reset")
    assert "Welcome" in reply
    assert await _state(engine) is ConversationState.AWAITING_NAME


@pytest.mark.asyncio
async def test_summary_without_chart(engine, users) -> None:
    user = await users.create(ADDRESS)
    user = await users.update(user.id, state=ConversationState.CHATTING)
    assert await engine.process_message(user, "my chart") == NO_CHART


@pytest.mark.asyncio
async def test_every_turn_is_logged(engine, messages) -> None:
    await _onboard(engine, ONBOARDING[:2])
    await engine.handle_inbound(ADDRESS, "not a date", external_id="wamid.123")

    user = await engine.users.find_by_address(ADDRESS)
    turns = await messages.recent(user.id, 100)
    assert len(turns) == 3 * TURNS_PER_MESSAGE
    # du plus récent au plus ancien: réponse puis message utilisateur
    assert turns[0].role is MessageRole.ASSISTANT
    assert turns[1].role is MessageRole.USER
    assert turns[1].content == "not a date"
    assert turns[1].external_id == "wamid.123"


@pytest.mark.asyncio
async def test_returning_user_is_reused(engine, users) -> None:
    await _onboard(engine, ONBOARDING[:2])
    await engine.handle_inbound(ADDRESS, "01/01/2000")
    first = await users.find_by_address(ADDRESS)
    assert first.name == "Maria"
    assert first.birth_date.year == 2000  # noqa: PLR2004


@pytest.mark.asyncio
async def test_load_user_unknown_id_raises(engine) -> None:
    with pytest.raises(UserNotFound):
        await engine.load_user("missing")


def test_every_state_has_a_handler(engine) -> None:
    assert set(engine._handlers) == set(ConversationState)


@pytest.mark.asyncio
async def test_chatting_user_keeps_chart_across_turns(engine, llm) -> None:
    await _onboard(engine)
    await engine.handle_inbound(ADDRESS, "first question")
    await engine.handle_inbound(ADDRESS, "second question")
    messages, _ = llm.calls[-1]
    assert "Sun Sign: Capricorn" in messages[0]["content"]


@pytest.mark.asyncio
async def test_love_question_without_llm_key_uses_love_template(
    users, charts, messages, resolver
) -> None:
    """Sans clé LLM, une question amoureuse en discussion reçoit le gabarit amour du signe."""
    engine = ConversationEngine(
        users, charts, messages, resolver, AdviceGenerator(OpenAILLM(api_key=None), resolver)
    )
    await _onboard(engine)
    await engine.handle_inbound(ADDRESS, "What should I focus on?")
    assert await _state(engine) is ConversationState.CHATTING

    reply = await engine.handle_inbound(ADDRESS, "Tell me about my love life")
    assert "Love Insight for Capricorn" in reply
    assert await _state(engine) is ConversationState.CHATTING


@pytest.mark.asyncio
async def test_reset_right_after_chart_ready(engine, llm) -> None:
    """Le reset est traité avant le routage des commandes, sans appel au conseiller."""
    await _onboard(engine)
    calls_before = len(llm.calls)
    assert await engine.handle_inbound(ADDRESS, "RESET") == RESTART
    assert await _state(engine) is ConversationState.NEW
    assert len(llm.calls) == calls_before
