"""Local, synchronous mirror of questions and course modules."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
from typing import Any, Callable, Sequence, Union

from trivia_app.constants.storage_constants import (
    LEARNING_MODULES_COLLECTION,
    LEARNING_MODULES_KEY,
    QUESTIONS_COLLECTION,
    QUESTIONS_KEY,
)
from trivia_app.core.errors import MalformedEntity
from trivia_app.core.models import CourseModule, Question
from trivia_app.core.seed_data import load_seed_learning_modules, load_seed_questions
from trivia_app.core.serialization import (
    course_module_from_dict,
    course_module_to_dict,
    question_from_dict,
    question_to_dict,
)
from trivia_app.core.services.local_store import KeyValueStore

logger = logging.getLogger(__name__)

Entity = Union[Question, CourseModule]


class EntityKind(str, Enum):
    QUESTIONS = "questions"
    COURSE_MODULES = "course_modules"


@dataclass(frozen=True, slots=True)
class EntitySchema:
    """How one entity kind is stored locally and remotely."""

    storage_key: str
    collection: str
    to_dict: Callable[[Any], dict[str, Any]]
    from_dict: Callable[[Any], Any]
    load_seed: Callable[[], list[dict[str, Any]]]


SCHEMAS: dict[EntityKind, EntitySchema] = {
    EntityKind.QUESTIONS: EntitySchema(
        storage_key=QUESTIONS_KEY,
        collection=QUESTIONS_COLLECTION,
        to_dict=question_to_dict,
        from_dict=question_from_dict,
        load_seed=load_seed_questions,
    ),
    EntityKind.COURSE_MODULES: EntitySchema(
        storage_key=LEARNING_MODULES_KEY,
        collection=LEARNING_MODULES_COLLECTION,
        to_dict=course_module_to_dict,
        from_dict=course_module_from_dict,
        load_seed=load_seed_learning_modules,
    ),
}


class ContentCache:
    """Key-addressed local copy of content; the remote store owns the long-lived data.

    On first access to a kind with nothing stored, the bundled seed is persisted
    immediately so later reads are stable.
    """

    def __init__(
        self,
        store: KeyValueStore,
        seeds: dict[EntityKind, list[dict[str, Any]]] | None = None,
    ) -> None:
        self._store = store
        self._seeds = seeds or {}

    def get(self, kind: EntityKind) -> list[Entity]:
        schema = SCHEMAS[kind]
        documents = self._store.get(schema.storage_key)
        if documents is None:
            documents = self.seed_documents(kind)
            self._store.set(schema.storage_key, documents)
            logger.info("Seeded local %s with %d bundled entries", kind.value, len(documents))
        return self._decode(kind, documents)

    def get_by_id(self, kind: EntityKind, entity_id: str) -> Entity | None:
        return next((entity for entity in self.get(kind) if entity.id == entity_id), None)

    def put(self, kind: EntityKind, entity: Entity) -> None:
        """Insert an entity or fully replace the one with the same id."""
        entities = self.get(kind)
        existing_index = next((i for i, item in enumerate(entities) if item.id == entity.id), -1)
        if existing_index >= 0:
            entities[existing_index] = entity
        else:
            entities.append(entity)
        self._write(kind, entities)

    def remove(self, kind: EntityKind, entity_id: str) -> bool:
        entities = self.get(kind)
        remaining = [entity for entity in entities if entity.id != entity_id]
        if len(remaining) == len(entities):
            return False
        self._write(kind, remaining)
        return True

    def replace_all(self, kind: EntityKind, entities: Sequence[Entity]) -> None:
        self._write(kind, list(entities))

    def seed_documents(self, kind: EntityKind) -> list[dict[str, Any]]:
        if kind in self._seeds:
            return list(self._seeds[kind])
        return SCHEMAS[kind].load_seed()

    def seed_entities(self, kind: EntityKind) -> list[Entity]:
        return self._decode(kind, self.seed_documents(kind))

    def questions(self) -> list[Question]:
        return self.get(EntityKind.QUESTIONS)  # type: ignore[return-value]

    def course_modules(self) -> list[CourseModule]:
        return self.get(EntityKind.COURSE_MODULES)  # type: ignore[return-value]

    def _write(self, kind: EntityKind, entities: list[Entity]) -> None:
        schema = SCHEMAS[kind]
        self._store.set(schema.storage_key, [schema.to_dict(entity) for entity in entities])

    def _decode(self, kind: EntityKind, documents: Any) -> list[Entity]:
        if not isinstance(documents, list):
            logger.warning("Stored %s is not a list; treating it as empty", kind.value)
            return []
        return decode_documents(kind, documents)


def decode_documents(kind: EntityKind, documents: Sequence[Any]) -> list[Entity]:
    """Decode documents, skipping (and logging) any that fail validation."""
    schema = SCHEMAS[kind]
    entities: list[Entity] = []
    for document in documents:
        try:
            entities.append(schema.from_dict(document))
        except MalformedEntity as exc:
            logger.warning("Skipping malformed %s entry %s: %s", kind.value, exc.entity_id or "<unknown>", exc)
    return entities
