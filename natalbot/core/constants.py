"""Constantes métier partagées pour éviter les valeurs magiques dans le code."""

# Saisie utilisateur
MIN_NAME_LENGTH = 2
MIN_PLACE_LENGTH = 2
MIN_BIRTH_YEAR = 1900
UNKNOWN_BIRTH_TIME = "12:00"

# Calcul de secours
MOON_CYCLE_DAYS = 28
HOURS_PER_SIGN = 2
SIGN_COUNT = 12
HOUSE_COUNT = 12

# Jeton du fournisseur de thèmes
TOKEN_EXPIRY_MARGIN_S = 60

# Conversation / contexte LLM
HISTORY_LIMIT = 10
ADVICE_HISTORY_TURNS = 8
ADVISOR_MAX_PLANETS = 7

# Paramètres LLM par type d'appel
INTERPRETATION_TEMPERATURE = 0.8
ADVICE_TEMPERATURE = 0.7
HOROSCOPE_TEMPERATURE = 0.9
INTERPRETATION_MAX_TOKENS = 800
ADVICE_MAX_TOKENS = 600
HOROSCOPE_MAX_TOKENS = 500
