"""
Client LLM basé sur l'API OpenAI (chat.completions, SDK asynchrone).

Sans clé API, le client n'est pas construit et chaque appel lève `LLMNotConfiguredError`; toute
erreur du SDK ou réponse vide est convertie en `LLMError`.
"""

from __future__ import annotations

from typing import Any, Literal, overload

from openai import AsyncOpenAI

from natalbot.domain.errors import LLMError, LLMNotConfiguredError
from natalbot.infra.llm.base import LLM, ChatMessages, TokenUsage


class OpenAILLM(LLM):
    """LLM basé sur OpenAI."""

    def __init__(self, api_key: str | None = None, model: str = "gpt-4o-mini") -> None:
        """Initialize the OpenAILLM client."""
        self.model = model
        self.client: AsyncOpenAI | None = AsyncOpenAI(api_key=api_key) if api_key else None

    @property
    def configured(self) -> bool:
        return self.client is not None

    @overload
    async def generate(
        self,
        messages: ChatMessages,
        *,
        with_usage: Literal[True],
        **kwargs: Any,
    ) -> tuple[str, TokenUsage]: ...

    @overload
    async def generate(
        self,
        messages: ChatMessages,
        *,
        with_usage: Literal[False] = False,
        **kwargs: Any,
    ) -> str: ...

    async def generate(
        self,
        messages: ChatMessages,
        *,
        with_usage: bool = False,
        **kwargs: Any,
    ) -> str | tuple[str, TokenUsage]:
        """
        Génère du texte (et éventuellement les métriques d'usage).

        - with_usage=False (défaut) -> str
        - with_usage=True -> (str, dict[str, int])

        `kwargs` est transmis tel quel (temperature, max_tokens...).
        """
        if self.client is None:
            raise LLMNotConfiguredError("OpenAI API key not configured")
        try:
            resp = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                **kwargs,
            )
        except Exception as exc:
            raise LLMError(f"OpenAI call failed: {type(exc).__name__}") from exc
        choice = resp.choices[0] if resp.choices else None
        content = getattr(getattr(choice, "message", None), "content", None)
        if not content:
            raise LLMError("OpenAI returned an empty completion")
        text = str(content)
        return (text, self._extract_usage_dict(resp)) if with_usage else text

    def _extract_usage_dict(self, resp: Any) -> TokenUsage:
        """
        Extrait les infos d'usage depuis la réponse OpenAI.

        Toujours un dict.
        """
        usage = getattr(resp, "usage", None)
        if not usage:
            return {}
        return {
            "prompt_tokens": int(getattr(usage, "prompt_tokens", 0) or 0),
            "completion_tokens": int(getattr(usage, "completion_tokens", 0) or 0),
            "total_tokens": int(getattr(usage, "total_tokens", 0) or 0),
        }
