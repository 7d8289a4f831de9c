"""Shuffling helpers for round selection and option ordering."""

from __future__ import annotations

from dataclasses import dataclass
import random
from typing import Sequence, TypeVar

from trivia_app.core.models import Question

T = TypeVar("T")


def shuffle(items: Sequence[T], rng: random.Random | None = None) -> list[T]:
    """Return a uniformly shuffled copy of ``items`` using a Fisher-Yates walk."""
    rng = rng or random.Random()
    shuffled = list(items)
    for index in range(len(shuffled) - 1, 0, -1):
        swap_index = rng.randint(0, index)
        shuffled[index], shuffled[swap_index] = shuffled[swap_index], shuffled[index]
    return shuffled


@dataclass(frozen=True, slots=True)
class ShuffledQuestion:
    """A question whose options are in presentation order.

    ``option_order[p]`` is the original index of the option shown at
    presentation position ``p``.
    """

    question: Question
    options: tuple[str, ...]
    option_order: tuple[int, ...]

    @property
    def correct_presentation_index(self) -> int:
        return self.option_order.index(self.question.correct_index)

    def to_original_index(self, presentation_index: int) -> int:
        if not 0 <= presentation_index < len(self.option_order):
            raise ValueError(f"Option index {presentation_index} out of range")
        return self.option_order[presentation_index]


def shuffle_options(question: Question, rng: random.Random | None = None) -> ShuffledQuestion:
    order = shuffle(range(len(question.options)), rng)
    return ShuffledQuestion(
        question=question,
        options=tuple(question.options[index] for index in order),
        option_order=tuple(order),
    )
