"""Environment-driven deployment settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from trivia_app.constants.network_constants import (
    DEFAULT_GENERATOR_MODEL,
    DEFAULT_GENERATOR_URL,
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_REMOTE_TIMEOUT_SECONDS,
)

load_dotenv()


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    remote_store_url: str = ""
    remote_timeout_seconds: float = DEFAULT_REMOTE_TIMEOUT_SECONDS
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    log_level: str = "INFO"
    generator_api_key: str = ""
    generator_model: str = DEFAULT_GENERATOR_MODEL
    generator_url: str = DEFAULT_GENERATOR_URL

    @property
    def remote_enabled(self) -> bool:
        return bool(self.remote_store_url)


def get_settings() -> Settings:
    return Settings(
        data_dir=get_data_dir(),
        remote_store_url=get_remote_store_url(),
        remote_timeout_seconds=get_remote_timeout_seconds(),
        host=get_host(),
        port=get_port(),
        log_level=get_log_level(),
        generator_api_key=os.getenv("TRIVIA_GENERATOR_API_KEY", "").strip(),
        generator_model=os.getenv("TRIVIA_GENERATOR_MODEL", DEFAULT_GENERATOR_MODEL).strip()
        or DEFAULT_GENERATOR_MODEL,
        generator_url=os.getenv("TRIVIA_GENERATOR_URL", DEFAULT_GENERATOR_URL).strip()
        or DEFAULT_GENERATOR_URL,
    )


def get_data_dir() -> Path:
    raw = os.getenv("TRIVIA_DATA_DIR", "").strip()
    if raw:
        return Path(raw).expanduser()
    return Path.home() / ".trivia_app"


def get_remote_store_url() -> str:
    return os.getenv("TRIVIA_REMOTE_STORE_URL", "").strip().rstrip("/")


def get_remote_timeout_seconds() -> float:
    raw = os.getenv("TRIVIA_REMOTE_TIMEOUT_SECONDS", str(DEFAULT_REMOTE_TIMEOUT_SECONDS)).strip()
    try:
        value = float(raw)
    except ValueError:
        return DEFAULT_REMOTE_TIMEOUT_SECONDS
    return max(1.0, min(value, 60.0))


def get_host() -> str:
    return os.getenv("TRIVIA_HOST", DEFAULT_HOST).strip() or DEFAULT_HOST


def get_port() -> int:
    raw = os.getenv("TRIVIA_PORT", str(DEFAULT_PORT)).strip()
    try:
        value = int(raw)
    except ValueError:
        return DEFAULT_PORT
    if not 0 < value < 65536:
        return DEFAULT_PORT
    return value


def get_log_level() -> str:
    return os.getenv("TRIVIA_LOG_LEVEL", "INFO").strip().upper() or "INFO"
