"""Network configuration constants for the trivia service."""

DEFAULT_HOST: str = "0.0.0.0"
DEFAULT_PORT: int = 8000
DEFAULT_REMOTE_TIMEOUT_SECONDS: float = 10.0
DEFAULT_GENERATOR_URL: str = "https://api.openai.com/v1/chat/completions"
DEFAULT_GENERATOR_MODEL: str = "gpt-4.1-mini"
