from __future__ import annotations

import random
from typing import Any

import pytest

from trivia_app.core.errors import RemoteUnavailable
from trivia_app.core.models import Category, Difficulty, GameConfig, Question
from trivia_app.core.serialization import question_to_dict
from trivia_app.core.services.content_cache import ContentCache, EntityKind
from trivia_app.core.services.local_store import MemoryStore


def make_question(
    question_id: str,
    category: Category = Category.VOLCANOES,
    correct_index: int = 0,
    difficulty: Difficulty = Difficulty.EASY,
) -> Question:
    return Question(
        id=question_id,
        category=category,
        difficulty=difficulty,
        text=f"Question {question_id}?",
        options=("Alpha", "Bravo", "Charlie"),
        correct_index=correct_index,
        fact=f"Fact about {question_id}.",
    )


def make_pool(count: int, category: Category = Category.VOLCANOES, prefix: str = "q") -> list[Question]:
    return [make_question(f"{prefix}-{index}", category, correct_index=index % 3) for index in range(count)]


def make_module_document(module_id: str = "mod-test") -> dict[str, Any]:
    return {
        "id": module_id,
        "category": Category.GLACIERS.value,
        "description": "Ice basics",
        "units": [
            {"id": f"{module_id}-read", "type": "text", "title": "Read", "duration": "2 min", "content": "# Ice"},
            {
                "id": f"{module_id}-cards",
                "type": "flashcards",
                "title": "Cards",
                "duration": "1 min",
                "flashcards": [{"front": "Blue ice?", "back": "Dense, air-free ice."}],
            },
            {
                "id": f"{module_id}-quiz",
                "type": "quiz",
                "title": "Check",
                "duration": "1 min",
                "quiz": {"question": "Largest glacier?", "options": ["Vatnajökull", "Langjökull"], "correctIndex": 0},
            },
        ],
    }


class FakeRemoteStore:
    """In-memory remote; set ``fail`` to make every call unavailable."""

    def __init__(self, collections: dict[str, list[dict[str, Any]]] | None = None, fail: bool = False) -> None:
        self.collections: dict[str, dict[str, dict[str, Any]]] = {
            name: {document["id"]: dict(document) for document in documents}
            for name, documents in (collections or {}).items()
        }
        self.fail = fail
        self.put_calls: list[tuple[str, str]] = []
        self.delete_calls: list[tuple[str, str]] = []

    async def list_documents(self, collection: str) -> list[dict[str, Any]]:
        if self.fail:
            raise RemoteUnavailable("remote is down")
        return [dict(document) for document in self.collections.get(collection, {}).values()]

    async def put_document(self, collection: str, document_id: str, document: dict[str, Any]) -> None:
        if self.fail:
            raise RemoteUnavailable("remote is down")
        self.put_calls.append((collection, document_id))
        self.collections.setdefault(collection, {})[document_id] = dict(document)

    async def delete_document(self, collection: str, document_id: str) -> None:
        if self.fail:
            raise RemoteUnavailable("remote is down")
        self.delete_calls.append((collection, document_id))
        self.collections.get(collection, {}).pop(document_id, None)

    def ids(self, collection: str) -> list[str]:
        return sorted(self.collections.get(collection, {}))


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def fake_remote() -> FakeRemoteStore:
    return FakeRemoteStore()


@pytest.fixture
def small_seeds() -> dict[EntityKind, list[dict[str, Any]]]:
    return {
        EntityKind.QUESTIONS: [question_to_dict(question) for question in make_pool(12, prefix="seed")],
        EntityKind.COURSE_MODULES: [make_module_document()],
    }


@pytest.fixture
def content_cache(memory_store: MemoryStore, small_seeds) -> ContentCache:
    return ContentCache(memory_store, seeds=small_seeds)


@pytest.fixture
def volcano_config() -> GameConfig:
    return GameConfig(username="Sigga", category=Category.VOLCANOES, difficulty=Difficulty.EASY)
