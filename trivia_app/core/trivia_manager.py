"""Facade over content, sync, sessions, statistics and course progress."""

from __future__ import annotations

import logging
import random
import time
from typing import Any, Callable
from uuid import uuid4

from trivia_app.constants.quiz_constants import SESSION_IDLE_TIMEOUT_SECONDS, TICK_INTERVAL_SECONDS
from trivia_app.core.errors import MalformedEntity
from trivia_app.core.models import (
    Category,
    CourseModule,
    Difficulty,
    GameConfig,
    GameResult,
    PlayerAnswer,
    PlayerStats,
    Question,
    QuizUnit,
    UserProgress,
)
from trivia_app.core.serialization import course_module_from_dict, question_from_dict
from trivia_app.core.services.content_cache import ContentCache, EntityKind
from trivia_app.core.services.learning_progress import (
    LearningProgressService,
    ModuleCompletion,
    check_quiz_unit,
    module_completion,
)
from trivia_app.core.services.local_store import KeyValueStore
from trivia_app.core.services.question_generator import QuestionGenerator
from trivia_app.core.services.remote_store import RemoteStore
from trivia_app.core.services.results_sink import ResultsSink
from trivia_app.core.services.session_clock import SessionClock
from trivia_app.core.services.session_engine import SessionEngine, SessionSnapshot
from trivia_app.core.services.stats_aggregator import DashboardSummary, LeaderboardRow, StatsAggregator
from trivia_app.core.services.sync_engine import SyncEngine, SyncState

logger = logging.getLogger(__name__)


class SessionNotFound(KeyError):
    """Raised when a session id is unknown, finished or cancelled."""


class TriviaManager:
    """Facade for the trivia services: cache, sync, sessions, stats and progress."""

    def __init__(
        self,
        store: KeyValueStore,
        remote: RemoteStore,
        generator: QuestionGenerator | None = None,
        rng: random.Random | None = None,
        auto_tick: bool = True,
        seeds: dict[EntityKind, list[dict[str, Any]]] | None = None,
        tick_interval: float = TICK_INTERVAL_SECONDS,
        idle_timeout: float = SESSION_IDLE_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._cache = ContentCache(store, seeds=seeds)
        self._sync = SyncEngine(self._cache, remote)
        self._sink = ResultsSink(store, self._sync)
        self._stats = StatsAggregator(self._sink)
        self._progress = LearningProgressService(store)
        self._generator = generator
        self._rng = rng or random.Random()
        self._auto_tick = auto_tick
        self._tick_interval = tick_interval
        self._idle_timeout = idle_timeout
        self._now = clock
        self._sessions: dict[str, SessionEngine] = {}
        self._clocks: dict[str, SessionClock] = {}
        self._last_activity: dict[str, float] = {}

    @property
    def sync_engine(self) -> SyncEngine:
        return self._sync

    # --- Lifecycle ---

    async def startup(self) -> dict[EntityKind, SyncState]:
        """Run the initial sync; must complete before admin mutations are offered."""
        states = await self._sync.sync_all()
        logger.info("Initial sync finished: %s", {kind.value: state.value for kind, state in states.items()})
        return states

    async def shutdown(self) -> None:
        for session_id in list(self._sessions):
            await self.cancel_session(session_id)
        await self._sync.drain()

    # --- Content (read side) ---

    def list_questions(self) -> list[Question]:
        return self._cache.questions()

    def list_course_modules(self) -> list[CourseModule]:
        return self._cache.course_modules()

    def get_course_module(self, module_id: str) -> CourseModule:
        module = self._cache.get_by_id(EntityKind.COURSE_MODULES, module_id)
        if module is None:
            raise KeyError(module_id)
        return module  # type: ignore[return-value]

    # --- Content (admin write-through) ---

    async def add_question(self, document: dict[str, Any]) -> Question:
        """Validate and store a question; a missing id gets a fresh uuid."""
        question = question_from_dict(_with_id(document))
        await self._sync.put(EntityKind.QUESTIONS, question)
        return question

    async def delete_question(self, question_id: str) -> bool:
        return await self._sync.remove(EntityKind.QUESTIONS, question_id)

    async def add_course_module(self, document: dict[str, Any]) -> CourseModule:
        module = course_module_from_dict(_with_id(document))
        await self._sync.put(EntityKind.COURSE_MODULES, module)
        return module

    async def update_course_module(self, module_id: str, document: dict[str, Any]) -> CourseModule:
        if self._cache.get_by_id(EntityKind.COURSE_MODULES, module_id) is None:
            raise KeyError(module_id)
        module = course_module_from_dict({**document, "id": module_id})
        await self._sync.put(EntityKind.COURSE_MODULES, module)
        return module

    async def delete_course_module(self, module_id: str) -> bool:
        return await self._sync.remove(EntityKind.COURSE_MODULES, module_id)

    @property
    def generator_available(self) -> bool:
        return self._generator is not None and self._generator.available

    async def generate_questions(self, category: Category, difficulty: Difficulty, count: int = 5) -> list[Question]:
        if self._generator is None:
            raise RuntimeError("Question generation is not configured.")
        questions = await self._generator.generate(category, difficulty, count)
        for question in questions:
            await self._sync.put(EntityKind.QUESTIONS, question)
        logger.info("Added %d generated %s questions", len(questions), category.value)
        return questions

    # --- Sessions ---

    def start_session(self, config: GameConfig) -> SessionEngine:
        """Build a round; raises InsufficientContent when no questions exist.

        Sessions idle for longer than the idle timeout are cancelled first.
        """
        self.reap_idle_sessions()
        engine = SessionEngine(config, self._cache.questions(), rng=self._rng)
        self._sessions[engine.session_id] = engine
        self._last_activity[engine.session_id] = self._now()
        if self._auto_tick:
            clock = SessionClock(engine, self._tick_interval)
            clock.start()
            self._clocks[engine.session_id] = clock
        logger.info("Started session %s for %s (%s)", engine.session_id, config.username, config.category.value)
        return engine

    def get_session(self, session_id: str) -> SessionEngine:
        engine = self._sessions.get(session_id)
        if engine is None:
            raise SessionNotFound(session_id)
        return engine

    def snapshot(self, session_id: str) -> SessionSnapshot:
        return self._touch(session_id).snapshot()

    def select_option(self, session_id: str, presentation_index: int) -> PlayerAnswer | None:
        return self._touch(session_id).select_option(presentation_index)

    def advance(self, session_id: str) -> GameResult | None:
        """Advance the session; on completion the result is persisted and the session dropped."""
        engine = self._touch(session_id)
        result = engine.advance()
        if result is not None:
            self._dispose(session_id)
            self._stats.record(result)
        return result

    async def cancel_session(self, session_id: str) -> None:
        engine = self.get_session(session_id)
        engine.cancel()
        clock = self._clocks.pop(session_id, None)
        self._dispose(session_id)
        if clock is not None:
            await clock.stop()

    def reap_idle_sessions(self) -> int:
        """Cancel sessions with no player activity within the idle timeout; no result is saved."""
        cutoff = self._now() - self._idle_timeout
        idle = [session_id for session_id, seen in self._last_activity.items() if seen < cutoff]
        for session_id in idle:
            self._sessions[session_id].cancel()
            self._dispose(session_id)
        if idle:
            logger.info("Cancelled %d idle sessions", len(idle))
        return len(idle)

    def active_session_count(self) -> int:
        return len(self._sessions)

    def _touch(self, session_id: str) -> SessionEngine:
        engine = self.get_session(session_id)
        self._last_activity[session_id] = self._now()
        return engine

    def _dispose(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)
        self._last_activity.pop(session_id, None)
        # The clock task exits on its own once the engine reports it is finished.
        self._clocks.pop(session_id, None)

    # --- Statistics ---

    def player_stats(self, username: str) -> PlayerStats | None:
        return self._stats.get(username)

    def all_stats(self) -> list[PlayerStats]:
        return self._stats.all_stats()

    def all_results(self) -> list[GameResult]:
        return self._sink.all_results()

    def leaderboard(self, limit: int = 10) -> list[LeaderboardRow]:
        return self._stats.leaderboard(limit)

    def dashboard_summary(self) -> DashboardSummary:
        return self._stats.dashboard_summary()

    # --- Learning progress ---

    def get_player_progress(self, username: str) -> UserProgress:
        return self._progress.get_progress(username)

    def complete_unit(self, username: str, module_id: str, unit_id: str) -> UserProgress:
        return self._progress.complete_unit(username, self.get_course_module(module_id), unit_id)

    def answer_unit_quiz(self, username: str, module_id: str, unit_id: str, option_index: int) -> bool:
        """Check a quiz unit answer; a correct answer completes the unit."""
        module = self.get_course_module(module_id)
        unit = next((item for item in module.units if item.id == unit_id), None)
        if not isinstance(unit, QuizUnit):
            raise ValueError(f"Unit '{unit_id}' is not a quiz unit of module '{module_id}'.")
        correct = check_quiz_unit(unit, option_index)
        if correct:
            self._progress.complete_unit(username, module, unit_id)
        return correct

    def module_completion(self, username: str, module_id: str) -> ModuleCompletion:
        return module_completion(self.get_course_module(module_id), self.get_player_progress(username))


def _with_id(document: dict[str, Any]) -> dict[str, Any]:
    if not isinstance(document, dict):
        raise MalformedEntity("Entity must be an object.")
    if document.get("id"):
        return document
    return {**document, "id": uuid4().hex}
