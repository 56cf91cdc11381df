"""Erreurs du domaine avec codes stables.

Trois familles:
- rejet de validation (`InputRejected`): récupérable, message de relance pour l'utilisateur;
- défaillance de dépendance (géocodage, fournisseur de thèmes, LLM);
- défaillance d'intégrité (utilisateur introuvable, données incomplètes): fatale pour le tour.
"""

from __future__ import annotations


class NatalBotError(Exception):
    """Base des erreurs métier, porte un `code` stable pour les logs."""

    code = "NATALBOT_ERROR"


class InputRejected(NatalBotError, ValueError):
    """Saisie utilisateur refusée par une règle locale."""

    code = "INPUT_REJECTED"

    def __init__(self, reason: str, message: str) -> None:
        """Initialise le rejet avec sa raison (code court) et le message utilisateur."""
        super().__init__(message)
        self.reason = reason
        self.message = message


class LocationNotFound(NatalBotError):
    """Aucun lieu trouvé pour la saisie, ou le géocodeur a échoué."""

    code = "LOCATION_NOT_FOUND"

    def __init__(self, place: str) -> None:
        super().__init__(f"Could not geocode location: {place}")
        self.place = place


class ChartProviderError(NatalBotError):
    """Échec du fournisseur de thèmes (authentification, réseau, format)."""

    code = "CHART_PROVIDER_ERROR"


class LLMError(NatalBotError):
    """Échec d'appel au modèle de langage."""

    code = "LLM_ERROR"


class LLMNotConfiguredError(LLMError):
    """Aucun client LLM configuré (clé absente)."""

    code = "LLM_NOT_CONFIGURED"


class UserNotFound(NatalBotError, KeyError):
    """Utilisateur absent du dépôt."""

    code = "USER_NOT_FOUND"

    def __init__(self, user_id: str) -> None:
        super().__init__(f"User not found: {user_id}")
        self.user_id = user_id

    def __str__(self) -> str:
        return f"User not found: {self.user_id}"


class IncompleteBirthData(NatalBotError):
    """Thème demandé pour un profil sans données de naissance complètes."""

    code = "INCOMPLETE_BIRTH_DATA"
