"""
Métriques Prometheus du bot.

Compteurs de tours, de transitions d'état et d'usage des chemins de secours (fournisseur de thèmes,
LLM). L'exposition (endpoint /metrics ou push) est laissée au processus hôte.
"""

from prometheus_client import Counter

TURNS_TOTAL = Counter(
    "natalbot_turns_total",
    "Inbound turns processed, by conversation state at arrival",
    ["state"],
)
STATE_TRANSITIONS = Counter(
    "natalbot_state_transitions_total",
    "Conversation state transitions",
    ["source", "target"],
)
CHART_RESOLUTIONS = Counter(
    "natalbot_chart_resolutions_total",
    "Charts generated, by resolution path",
    ["source"],
)
GEOCODE_FAILURES = Counter(
    "natalbot_geocode_failures_total",
    "Birth places that could not be geocoded",
)
LLM_CALLS = Counter(
    "natalbot_llm_calls_total",
    "Language-model calls, by call type and outcome (ok|fallback)",
    ["call", "outcome"],
)
LLM_TOKENS_TOTAL = Counter(
    "natalbot_llm_tokens_total",
    "Tokens reported by the language-model provider",
    ["call"],
)
