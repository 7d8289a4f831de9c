"""Pure scoring and streak rules for a round."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from trivia_app.constants.quiz_constants import TIMEOUT_OPTION_INDEX
from trivia_app.core.models import PlayerAnswer
from trivia_app.core.randomizer import ShuffledQuestion


@dataclass(frozen=True, slots=True)
class AnswerOutcome:
    answer: PlayerAnswer
    streak: int
    max_streak: int


def record_answer(
    shuffled: ShuffledQuestion,
    presentation_index: int,
    streak: int,
    max_streak: int,
    time_taken: float = 0.0,
) -> AnswerOutcome:
    """Score one answer given by presentation index, or ``-1`` for a timeout."""
    if presentation_index == TIMEOUT_OPTION_INDEX:
        original_index = TIMEOUT_OPTION_INDEX
    else:
        original_index = shuffled.to_original_index(presentation_index)

    is_correct = original_index != TIMEOUT_OPTION_INDEX and original_index == shuffled.question.correct_index
    new_streak, new_max_streak = advance_streak(streak, max_streak, is_correct)
    answer = PlayerAnswer(
        question_id=shuffled.question.id,
        selected_option_index=original_index,
        is_correct=is_correct,
        time_taken=time_taken,
    )
    return AnswerOutcome(answer=answer, streak=new_streak, max_streak=new_max_streak)


def advance_streak(streak: int, max_streak: int, is_correct: bool) -> tuple[int, int]:
    if not is_correct:
        return 0, max_streak
    streak += 1
    if streak > max_streak:
        max_streak = streak
    return streak, max_streak


def finalize(answers: Iterable[PlayerAnswer]) -> int:
    """Score of a round: the number of correct answers in the final list."""
    return sum(1 for answer in answers if answer.is_correct)
