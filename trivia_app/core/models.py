"""Domain models for the trivia service."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Category(str, Enum):
    GENERAL = "General"
    NORTHERN_LIGHTS = "Northern Lights"
    VOLCANOES = "Volcanoes & Geology"
    GLACIERS = "Glaciers & Ice Caves"
    WILDLIFE = "Wildlife & Birds"
    HISTORY = "Icelandic History"
    WATER = "Water & Nature"
    PERLAN = "Perlan"
    CHRISTMAS = "Christmas"


class Difficulty(str, Enum):
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"


@dataclass(frozen=True, slots=True)
class Question:
    """Multiple-choice trivia question with exactly three options."""

    id: str
    category: Category
    difficulty: Difficulty
    text: str
    options: tuple[str, ...]
    correct_index: int
    fact: str  # Shown as "Did you know?" once the question is answered


@dataclass(frozen=True, slots=True)
class Flashcard:
    front: str
    back: str


@dataclass(frozen=True, slots=True)
class UnitQuiz:
    """Single check-your-understanding question embedded in a course."""

    question: str
    options: tuple[str, ...]
    correct_index: int


@dataclass(frozen=True, slots=True)
class TextUnit:
    id: str
    title: str
    duration: str
    content: str


@dataclass(frozen=True, slots=True)
class FlashcardsUnit:
    id: str
    title: str
    duration: str
    flashcards: tuple[Flashcard, ...]


@dataclass(frozen=True, slots=True)
class QuizUnit:
    id: str
    title: str
    duration: str
    quiz: UnitQuiz


LearningUnit = TextUnit | FlashcardsUnit | QuizUnit


@dataclass(frozen=True, slots=True)
class CourseModule:
    """Ordered, gated sequence of learning units for one category."""

    id: str
    category: Category
    description: str
    units: tuple[LearningUnit, ...] = ()


@dataclass(frozen=True, slots=True)
class GameConfig:
    """Settings chosen by the player when a round starts."""

    username: str
    category: Category
    difficulty: Difficulty
    is_challenge_mode: bool = False


@dataclass(frozen=True, slots=True)
class PlayerAnswer:
    """One answered or timed-out question, keyed by the original option index."""

    question_id: str
    selected_option_index: int
    is_correct: bool
    time_taken: float


@dataclass(frozen=True, slots=True)
class GameResult:
    """Terminal record of a completed round."""

    id: str
    timestamp: datetime
    username: str
    config: GameConfig
    score: int
    total_questions: int
    answers: tuple[PlayerAnswer, ...]
    streak_max: int


@dataclass(slots=True)
class PlayerStats:
    """Running totals for one player, folded from completed rounds."""

    username: str
    total_games: int = 0
    total_score: int = 0
    total_questions_answered: int = 0
    total_correct: int = 0
    best_category: Category | None = None
    streak_record: int = 0
    last_played: datetime | None = None


@dataclass(slots=True)
class UserProgress:
    """Course units a player has finished."""

    username: str
    completed_unit_ids: list[str] = field(default_factory=list)
