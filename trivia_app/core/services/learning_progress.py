"""Tracks which course units each player has finished."""

from __future__ import annotations

from dataclasses import dataclass
import logging

from trivia_app.constants.storage_constants import LEARNING_PROGRESS_KEY
from trivia_app.core.errors import MalformedEntity
from trivia_app.core.models import CourseModule, QuizUnit, UserProgress
from trivia_app.core.serialization import user_progress_from_dict, user_progress_to_dict
from trivia_app.core.services.local_store import KeyValueStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ModuleCompletion:
    completed: int
    total: int

    @property
    def percent(self) -> int:
        if self.total <= 0:
            return 0
        return round(self.completed / self.total * 100)


def is_unit_locked(module: CourseModule, index: int, progress: UserProgress) -> bool:
    """Unit 0 is always open; unit ``i`` opens once unit ``i - 1`` is complete."""
    if not 0 <= index < len(module.units):
        raise IndexError(f"Unit index {index} out of range")
    if index == 0:
        return False
    return module.units[index - 1].id not in progress.completed_unit_ids


def module_completion(module: CourseModule, progress: UserProgress) -> ModuleCompletion:
    done = set(progress.completed_unit_ids)
    completed = sum(1 for unit in module.units if unit.id in done)
    return ModuleCompletion(completed=completed, total=len(module.units))


def check_quiz_unit(unit: QuizUnit, option_index: int) -> bool:
    if not 0 <= option_index < len(unit.quiz.options):
        raise ValueError(f"Option index {option_index} out of range")
    return option_index == unit.quiz.correct_index


class LearningProgressService:
    """Reads and updates per-player course progress in the local store."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    def get_progress(self, username: str) -> UserProgress:
        document = self._raw_map().get(username)
        if document is None:
            return UserProgress(username=username)
        try:
            return user_progress_from_dict(document)
        except MalformedEntity as exc:
            logger.warning("Discarding malformed progress for %s: %s", username, exc)
            return UserProgress(username=username)

    def complete_unit(self, username: str, module: CourseModule, unit_id: str) -> UserProgress:
        """Mark a unit complete; finishing an already-finished unit is a no-op."""
        index = next((i for i, unit in enumerate(module.units) if unit.id == unit_id), -1)
        if index < 0:
            raise ValueError(f"Unit '{unit_id}' is not part of module '{module.id}'.")

        progress = self.get_progress(username)
        if unit_id in progress.completed_unit_ids:
            return progress
        if is_unit_locked(module, index, progress):
            raise ValueError(f"Unit '{unit_id}' is locked until the previous unit is complete.")

        progress.completed_unit_ids.append(unit_id)
        self._save(progress)
        return progress

    def _save(self, progress: UserProgress) -> None:
        progress_map = self._raw_map()
        progress_map[progress.username] = user_progress_to_dict(progress)
        self._store.set(LEARNING_PROGRESS_KEY, progress_map)

    def _raw_map(self) -> dict[str, object]:
        raw = self._store.get(LEARNING_PROGRESS_KEY)
        return raw if isinstance(raw, dict) else {}
