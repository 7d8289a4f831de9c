"""Bundled default content used when no stored or remote copy exists yet."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

_DATA_PATH = Path(__file__).resolve().parent.parent / "data"
SEED_QUESTIONS_PATH = _DATA_PATH / "seed_questions.json"
SEED_LEARNING_MODULES_PATH = _DATA_PATH / "seed_learning_modules.json"


def load_seed_questions() -> list[dict[str, Any]]:
    return _load_documents(SEED_QUESTIONS_PATH)


def load_seed_learning_modules() -> list[dict[str, Any]]:
    return _load_documents(SEED_LEARNING_MODULES_PATH)


def _load_documents(path: Path) -> list[dict[str, Any]]:
    raw = json.loads(path.read_text(encoding="utf-8-sig"))
    if not isinstance(raw, list):
        raise ValueError(f"Seed file {path.name} must contain a list of documents.")
    return raw
