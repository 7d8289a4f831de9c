"""Gameplay constants shared across the session engine and API layer."""

ROUND_SIZE: int = 10
OPTION_COUNT: int = 3
MIN_CATEGORY_POOL: int = 10
COUNTDOWN_TICKS: int = 3
CHALLENGE_TIME_LIMIT_SECONDS: int = 15
TICK_INTERVAL_SECONDS: float = 1.0
TIMEOUT_OPTION_INDEX: int = -1
SESSION_IDLE_TIMEOUT_SECONDS: float = 30 * 60
