"""
Contrat asynchrone des modèles de langage.

Les messages suivent le format chat (`role` parmi system/user/assistant, `content`). Les options
d'échantillonnage (`temperature`, `max_tokens`) passent par `**kwargs`. Avec `with_usage=True`,
l'appel retourne aussi le décompte des jetons (`prompt_tokens`, `completion_tokens`,
`total_tokens`, à zéro si le fournisseur n'en donne pas).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Literal, overload

ChatMessages = list[dict[str, str]]
TokenUsage = dict[str, int]


class LLM(ABC):
    """Modèle de langage appelé par `natalbot.domain.advice.AdviceGenerator`.

    Une implémentation lève `LLMError` (ou `LLMNotConfiguredError`) sur tout échec, réponse vide
    comprise; elle ne produit jamais de texte de repli elle-même.
    """

    @property
    def configured(self) -> bool:
        """Faux quand aucun appel ne peut aboutir (clé absente)."""
        return True

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

    @abstractmethod
    async def generate(
        self,
        messages: ChatMessages,
        *,
        with_usage: bool = False,
        **kwargs: Any,
    ) -> str | tuple[str, TokenUsage]:
        """Complète la conversation; `(texte, usage)` si `with_usage`."""
        ...
