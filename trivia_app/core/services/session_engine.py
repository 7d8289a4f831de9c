"""State machine for one player's timed ten-question round."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
import random
import time
from typing import Callable, Sequence
from uuid import uuid4

from trivia_app.constants.quiz_constants import (
    CHALLENGE_TIME_LIMIT_SECONDS,
    COUNTDOWN_TICKS,
    MIN_CATEGORY_POOL,
    ROUND_SIZE,
    TIMEOUT_OPTION_INDEX,
)
from trivia_app.core.errors import InsufficientContent
from trivia_app.core.models import Category, Difficulty, GameConfig, GameResult, PlayerAnswer, Question
from trivia_app.core.randomizer import ShuffledQuestion, shuffle, shuffle_options
from trivia_app.core.scoring import finalize, record_answer
from trivia_app.core.serialization import current_timestamp

logger = logging.getLogger(__name__)


class SessionPhase(str, Enum):
    COUNTDOWN = "countdown"
    ACTIVE = "active"
    ANSWERED = "answered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TimerKind(str, Enum):
    COUNTDOWN = "countdown"
    QUESTION = "question"


@dataclass(frozen=True, slots=True)
class SessionSnapshot:
    """Read-only view of a session for rendering."""

    session_id: str
    phase: SessionPhase
    countdown: int
    question_number: int
    total_questions: int
    streak: int
    max_streak: int
    score: int
    time_remaining: int | None
    question_id: str | None = None
    text: str | None = None
    category: Category | None = None
    difficulty: Difficulty | None = None
    options: tuple[str, ...] = ()
    selected_option_index: int | None = None
    correct_option_index: int | None = None
    is_correct: bool | None = None
    fact: str | None = None


SessionListener = Callable[["SessionEngine"], None]


def build_round(
    pool: Sequence[Question],
    category: Category,
    rng: random.Random | None = None,
    round_size: int = ROUND_SIZE,
) -> list[Question]:
    """Pick the questions for a round.

    Filters by category (``General`` uses the whole pool) and falls back to the
    whole pool when the filtered set is too small to fill a round.
    """
    if category is Category.GENERAL:
        candidates = list(pool)
    else:
        candidates = [question for question in pool if question.category is category]
    if len(candidates) < MIN_CATEGORY_POOL:
        candidates = list(pool)
    if not candidates:
        raise InsufficientContent("There are no questions available to start a round.")
    return shuffle(candidates, rng)[:round_size]


class SessionEngine:
    """Owns countdown, question, timeout, scoring and streak state for one round."""

    def __init__(
        self,
        config: GameConfig,
        pool: Sequence[Question],
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.monotonic,
        session_id: str | None = None,
    ) -> None:
        rng = rng or random.Random()
        # Raises InsufficientContent before any state exists.
        selected = build_round(pool, config.category, rng)

        self._session_id = session_id or uuid4().hex
        self._config = config
        self._clock = clock
        self._round: tuple[ShuffledQuestion, ...] = tuple(shuffle_options(q, rng) for q in selected)
        self._phase = SessionPhase.COUNTDOWN
        self._countdown = COUNTDOWN_TICKS
        self._current_index = 0
        self._answers: list[PlayerAnswer] = []
        self._streak = 0
        self._max_streak = 0
        self._time_remaining = CHALLENGE_TIME_LIMIT_SECONDS
        self._question_started_at: float | None = None
        self._last_presentation_index: int | None = None
        self._timer_generation = 0
        self._result: GameResult | None = None
        self._listeners: list[SessionListener] = []
        logger.debug(
            "Session %s built with %d questions for %s", self._session_id, len(self._round), config.username
        )

    # --- Read-only state ---

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def config(self) -> GameConfig:
        return self._config

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def countdown(self) -> int:
        return self._countdown

    @property
    def current_index(self) -> int:
        return self._current_index

    @property
    def round_questions(self) -> tuple[ShuffledQuestion, ...]:
        return self._round

    @property
    def answers(self) -> tuple[PlayerAnswer, ...]:
        return tuple(self._answers)

    @property
    def streak(self) -> int:
        return self._streak

    @property
    def max_streak(self) -> int:
        return self._max_streak

    @property
    def time_remaining(self) -> int:
        return self._time_remaining

    @property
    def result(self) -> GameResult | None:
        return self._result

    @property
    def is_finished(self) -> bool:
        return self._phase in (SessionPhase.COMPLETED, SessionPhase.CANCELLED)

    @property
    def active_timer(self) -> TimerKind | None:
        if self._phase is SessionPhase.COUNTDOWN:
            return TimerKind.COUNTDOWN
        if self._phase is SessionPhase.ACTIVE and self._config.is_challenge_mode:
            return TimerKind.QUESTION
        return None

    @property
    def timer_generation(self) -> int:
        """Incremented whenever a timer starts or is invalidated."""
        return self._timer_generation

    def current_question(self) -> ShuffledQuestion | None:
        if self._phase in (SessionPhase.ACTIVE, SessionPhase.ANSWERED):
            return self._round[self._current_index]
        return None

    def add_listener(self, listener: SessionListener) -> None:
        self._listeners.append(listener)

    # --- Transitions ---

    def tick(self) -> None:
        """Advance whichever timer is running by one second; stale ticks are ignored."""
        timer = self.active_timer
        if timer is TimerKind.COUNTDOWN:
            self._countdown -= 1
            if self._countdown <= 0:
                self._countdown = 0
                self._activate_question(0)
            self._notify()
        elif timer is TimerKind.QUESTION:
            self._time_remaining -= 1
            if self._time_remaining <= 0:
                self._time_remaining = 0
                self._submit(TIMEOUT_OPTION_INDEX)
            self._notify()

    def select_option(self, presentation_index: int) -> PlayerAnswer | None:
        """Record the player's choice for the current question.

        Returns ``None`` when the question has already been answered or timed out.
        """
        if self._phase is SessionPhase.ANSWERED:
            logger.debug("Ignoring late selection for session %s", self._session_id)
            return None
        if self._phase is not SessionPhase.ACTIVE:
            raise RuntimeError(f"Session is not accepting answers (phase: {self._phase.value}).")
        current = self._round[self._current_index]
        if not 0 <= presentation_index < len(current.options):
            raise ValueError(f"Option index {presentation_index} out of range")
        answer = self._submit(presentation_index)
        self._notify()
        return answer

    def advance(self) -> GameResult | None:
        """Move past an answered question; returns the result after the last one."""
        if self._phase is not SessionPhase.ANSWERED:
            raise RuntimeError(f"Cannot advance from phase: {self._phase.value}.")
        if self._current_index >= len(self._round) - 1:
            self._complete()
        else:
            self._activate_question(self._current_index + 1)
        self._notify()
        return self._result

    def cancel(self) -> None:
        """Abandon the round without producing a result."""
        if self._phase is SessionPhase.CANCELLED:
            return
        if self._phase is SessionPhase.COMPLETED:
            raise RuntimeError("Session already completed.")
        self._phase = SessionPhase.CANCELLED
        self._timer_generation += 1
        logger.info("Session %s cancelled at question %d", self._session_id, self._current_index + 1)
        self._notify()

    def snapshot(self) -> SessionSnapshot:
        current = self.current_question()
        base = dict(
            session_id=self._session_id,
            phase=self._phase,
            countdown=self._countdown,
            question_number=self._current_index + 1,
            total_questions=len(self._round),
            streak=self._streak,
            max_streak=self._max_streak,
            score=finalize(self._answers),
            time_remaining=self._time_remaining if self._config.is_challenge_mode else None,
        )
        if current is None:
            return SessionSnapshot(**base)

        question = current.question
        answered = self._phase is SessionPhase.ANSWERED
        last_answer = self._answers[-1] if answered else None
        return SessionSnapshot(
            **base,
            question_id=question.id,
            text=question.text,
            category=question.category,
            difficulty=question.difficulty,
            options=current.options,
            selected_option_index=self._last_presentation_index if answered else None,
            correct_option_index=current.correct_presentation_index if answered else None,
            is_correct=last_answer.is_correct if last_answer is not None else None,
            fact=question.fact if answered else None,
        )

    # --- Internals ---

    def _activate_question(self, index: int) -> None:
        self._current_index = index
        self._phase = SessionPhase.ACTIVE
        self._time_remaining = CHALLENGE_TIME_LIMIT_SECONDS
        self._last_presentation_index = None
        self._question_started_at = self._clock()
        self._timer_generation += 1

    def _submit(self, presentation_index: int) -> PlayerAnswer:
        current = self._round[self._current_index]
        outcome = record_answer(
            current,
            presentation_index,
            self._streak,
            self._max_streak,
            time_taken=self._elapsed_for_current_question(),
        )
        self._answers.append(outcome.answer)
        self._streak = outcome.streak
        self._max_streak = outcome.max_streak
        self._last_presentation_index = presentation_index
        self._phase = SessionPhase.ANSWERED
        self._timer_generation += 1
        return outcome.answer

    def _elapsed_for_current_question(self) -> float:
        if self._config.is_challenge_mode:
            return float(CHALLENGE_TIME_LIMIT_SECONDS - self._time_remaining)
        if self._question_started_at is None:
            return 0.0
        return round(max(0.0, self._clock() - self._question_started_at), 3)

    def _complete(self) -> None:
        answers = tuple(self._answers)
        self._result = GameResult(
            id=uuid4().hex,
            timestamp=current_timestamp(),
            username=self._config.username,
            config=self._config,
            score=finalize(answers),
            total_questions=len(self._round),
            answers=answers,
            streak_max=self._max_streak,
        )
        self._phase = SessionPhase.COMPLETED
        self._timer_generation += 1
        logger.info(
            "Session %s completed: %s scored %d/%d",
            self._session_id,
            self._config.username,
            self._result.score,
            self._result.total_questions,
        )

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)
