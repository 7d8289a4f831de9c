"""Conversion between domain models and JSON-compatible documents.

Documents use the camelCase field names of the stored content so that the
local cache and the remote store share one format. Learning units carry a
``type`` discriminator (``text``, ``flashcards`` or ``quiz``).
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from trivia_app.constants.quiz_constants import OPTION_COUNT, TIMEOUT_OPTION_INDEX
from trivia_app.core.errors import MalformedEntity
from trivia_app.core.models import (
    Category,
    CourseModule,
    Difficulty,
    Flashcard,
    FlashcardsUnit,
    GameConfig,
    GameResult,
    LearningUnit,
    PlayerAnswer,
    PlayerStats,
    Question,
    QuizUnit,
    TextUnit,
    UnitQuiz,
    UserProgress,
)

Document = dict[str, Any]

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


# --- Questions ---


def question_to_dict(question: Question) -> Document:
    return {
        "id": question.id,
        "category": question.category.value,
        "difficulty": question.difficulty.value,
        "text": question.text,
        "options": list(question.options),
        "correctIndex": question.correct_index,
        "fact": question.fact,
    }


def question_from_dict(raw: Any) -> Question:
    """Validate a raw document and build a question from it."""
    document = _require_mapping(raw, "Question")
    question_id = _require_str(document, "id", None)
    text = _require_str(document, "text", question_id).strip()
    if not text:
        raise MalformedEntity("Question text must not be empty.", question_id)

    options = _require_options(document, question_id)
    if len(options) != OPTION_COUNT:
        raise MalformedEntity(
            f"Question must have exactly {OPTION_COUNT} options, got {len(options)}.", question_id
        )
    correct_index = _require_index(document, "correctIndex", len(options), question_id)

    return Question(
        id=question_id,
        category=_require_category(document, question_id),
        difficulty=_require_difficulty(document, question_id),
        text=text,
        options=options,
        correct_index=correct_index,
        fact=str(document.get("fact", "")).strip(),
    )


# --- Course modules ---


def course_module_to_dict(module: CourseModule) -> Document:
    return {
        "id": module.id,
        "category": module.category.value,
        "description": module.description,
        "units": [learning_unit_to_dict(unit) for unit in module.units],
    }


def course_module_from_dict(raw: Any) -> CourseModule:
    document = _require_mapping(raw, "Course module")
    module_id = _require_str(document, "id", None)
    raw_units = document.get("units", [])
    if not isinstance(raw_units, list):
        raise MalformedEntity("Course module units must be a list.", module_id)

    units = tuple(learning_unit_from_dict(item, module_id) for item in raw_units)
    seen: set[str] = set()
    for unit in units:
        if unit.id in seen:
            raise MalformedEntity(f"Duplicate unit id '{unit.id}'.", module_id)
        seen.add(unit.id)

    return CourseModule(
        id=module_id,
        category=_require_category(document, module_id),
        description=str(document.get("description", "")),
        units=units,
    )


def learning_unit_to_dict(unit: LearningUnit) -> Document:
    document: Document = {"id": unit.id, "title": unit.title, "duration": unit.duration}
    if isinstance(unit, TextUnit):
        document["type"] = "text"
        document["content"] = unit.content
    elif isinstance(unit, FlashcardsUnit):
        document["type"] = "flashcards"
        document["flashcards"] = [{"front": card.front, "back": card.back} for card in unit.flashcards]
    else:
        document["type"] = "quiz"
        document["quiz"] = {
            "question": unit.quiz.question,
            "options": list(unit.quiz.options),
            "correctIndex": unit.quiz.correct_index,
        }
    return document


def learning_unit_from_dict(raw: Any, module_id: str | None = None) -> LearningUnit:
    document = _require_mapping(raw, "Learning unit")
    unit_id = _require_str(document, "id", module_id)
    title = str(document.get("title", ""))
    duration = str(document.get("duration", ""))
    unit_type = document.get("type")

    if unit_type == "text":
        content = document.get("content")
        if not isinstance(content, str):
            raise MalformedEntity(f"Text unit '{unit_id}' has no content.", module_id)
        return TextUnit(id=unit_id, title=title, duration=duration, content=content)

    if unit_type == "flashcards":
        raw_cards = document.get("flashcards")
        if not isinstance(raw_cards, list):
            raise MalformedEntity(f"Flashcards unit '{unit_id}' has no flashcards.", module_id)
        cards = []
        for card in raw_cards:
            if not isinstance(card, dict) or not isinstance(card.get("front"), str) or not isinstance(
                card.get("back"), str
            ):
                raise MalformedEntity(f"Flashcards unit '{unit_id}' has an invalid card.", module_id)
            cards.append(Flashcard(front=card["front"], back=card["back"]))
        return FlashcardsUnit(id=unit_id, title=title, duration=duration, flashcards=tuple(cards))

    if unit_type == "quiz":
        raw_quiz = document.get("quiz")
        if not isinstance(raw_quiz, dict):
            raise MalformedEntity(f"Quiz unit '{unit_id}' has no quiz.", module_id)
        question = raw_quiz.get("question")
        if not isinstance(question, str) or not question.strip():
            raise MalformedEntity(f"Quiz unit '{unit_id}' has no question.", module_id)
        options = _require_options(raw_quiz, module_id)
        if len(options) < 2:
            raise MalformedEntity(f"Quiz unit '{unit_id}' needs at least two options.", module_id)
        correct_index = _require_index(raw_quiz, "correctIndex", len(options), module_id)
        return QuizUnit(
            id=unit_id,
            title=title,
            duration=duration,
            quiz=UnitQuiz(question=question, options=options, correct_index=correct_index),
        )

    raise MalformedEntity(f"Unknown learning unit type: {unit_type!r}.", module_id)


# --- Rounds and statistics ---


def game_config_to_dict(config: GameConfig) -> Document:
    return {
        "username": config.username,
        "category": config.category.value,
        "difficulty": config.difficulty.value,
        "isChallengeMode": config.is_challenge_mode,
    }


def game_config_from_dict(raw: Any) -> GameConfig:
    document = _require_mapping(raw, "Game config")
    username = _require_str(document, "username", None).strip()
    if not username:
        raise MalformedEntity("Username must not be empty.")
    return GameConfig(
        username=username,
        category=_require_category(document, None),
        difficulty=_require_difficulty(document, None),
        is_challenge_mode=bool(document.get("isChallengeMode", False)),
    )


def player_answer_to_dict(answer: PlayerAnswer) -> Document:
    return {
        "questionId": answer.question_id,
        "selectedOptionIndex": answer.selected_option_index,
        "isCorrect": answer.is_correct,
        "timeTaken": answer.time_taken,
    }


def player_answer_from_dict(raw: Any) -> PlayerAnswer:
    document = _require_mapping(raw, "Player answer")
    selected = document.get("selectedOptionIndex")
    if not isinstance(selected, int) or isinstance(selected, bool) or selected < TIMEOUT_OPTION_INDEX:
        raise MalformedEntity("Player answer has an invalid option index.")
    return PlayerAnswer(
        question_id=_require_str(document, "questionId", None),
        selected_option_index=selected,
        is_correct=bool(document.get("isCorrect", False)),
        time_taken=_require_float(document, "timeTaken", 0.0, None),
    )


def game_result_to_dict(result: GameResult) -> Document:
    return {
        "id": result.id,
        "timestamp": _to_millis(result.timestamp),
        "username": result.username,
        "config": game_config_to_dict(result.config),
        "score": result.score,
        "totalQuestions": result.total_questions,
        "answers": [player_answer_to_dict(answer) for answer in result.answers],
        "streakMax": result.streak_max,
    }


def game_result_from_dict(raw: Any) -> GameResult:
    document = _require_mapping(raw, "Game result")
    result_id = _require_str(document, "id", None)
    raw_answers = document.get("answers", [])
    if not isinstance(raw_answers, list):
        raise MalformedEntity("Game result answers must be a list.", result_id)
    answers = tuple(player_answer_from_dict(item) for item in raw_answers)
    return GameResult(
        id=result_id,
        timestamp=_from_millis(document.get("timestamp", 0)),
        username=_require_str(document, "username", result_id),
        config=game_config_from_dict(document.get("config")),
        score=_require_int(document, "score", 0, result_id),
        total_questions=_require_int(document, "totalQuestions", len(answers), result_id),
        answers=answers,
        streak_max=_require_int(document, "streakMax", 0, result_id),
    )


def player_stats_to_dict(stats: PlayerStats) -> Document:
    return {
        "username": stats.username,
        "totalGames": stats.total_games,
        "totalScore": stats.total_score,
        "totalQuestionsAnswered": stats.total_questions_answered,
        "totalCorrect": stats.total_correct,
        "bestCategory": stats.best_category.value if stats.best_category is not None else None,
        "streakRecord": stats.streak_record,
        "lastPlayed": _to_millis(stats.last_played) if stats.last_played is not None else 0,
    }


def player_stats_from_dict(raw: Any) -> PlayerStats:
    document = _require_mapping(raw, "Player stats")
    username = _require_str(document, "username", None)
    best_category = document.get("bestCategory")
    last_played = document.get("lastPlayed") or 0
    return PlayerStats(
        username=username,
        total_games=_require_int(document, "totalGames", 0, username),
        total_score=_require_int(document, "totalScore", 0, username),
        total_questions_answered=_require_int(document, "totalQuestionsAnswered", 0, username),
        total_correct=_require_int(document, "totalCorrect", 0, username),
        best_category=_require_category(document, username, "bestCategory") if best_category else None,
        streak_record=_require_int(document, "streakRecord", 0, username),
        last_played=_from_millis(last_played) if last_played else None,
    )


def user_progress_to_dict(progress: UserProgress) -> Document:
    return {"username": progress.username, "completedUnitIds": list(progress.completed_unit_ids)}


def user_progress_from_dict(raw: Any) -> UserProgress:
    document = _require_mapping(raw, "User progress")
    raw_ids = document.get("completedUnitIds", [])
    if not isinstance(raw_ids, list):
        raise MalformedEntity("completedUnitIds must be a list.")
    return UserProgress(
        username=_require_str(document, "username", None),
        completed_unit_ids=[str(item) for item in raw_ids],
    )


# --- Field helpers ---


def _require_mapping(raw: Any, label: str) -> dict[str, Any]:
    if not isinstance(raw, dict):
        raise MalformedEntity(f"{label} must be an object, got {type(raw).__name__}.")
    return raw


def _require_str(document: dict[str, Any], key: str, entity_id: str | None) -> str:
    value = document.get(key)
    if not isinstance(value, str) or not value:
        raise MalformedEntity(f"Field '{key}' must be a non-empty string.", entity_id)
    return value


def _require_options(document: dict[str, Any], entity_id: str | None) -> tuple[str, ...]:
    raw_options = document.get("options")
    if not isinstance(raw_options, list):
        raise MalformedEntity("Options must be a list.", entity_id)
    options = tuple(str(option).strip() for option in raw_options)
    if any(not option for option in options):
        raise MalformedEntity("Option text cannot be empty.", entity_id)
    return options


def _require_index(document: dict[str, Any], key: str, size: int, entity_id: str | None) -> int:
    value = document.get(key)
    if not isinstance(value, int) or isinstance(value, bool) or not 0 <= value < size:
        raise MalformedEntity(f"Field '{key}' must be an index between 0 and {size - 1}.", entity_id)
    return value


def _require_int(document: dict[str, Any], key: str, default: int, entity_id: str | None) -> int:
    value = document.get(key, default)
    if isinstance(value, bool):
        raise MalformedEntity(f"Field '{key}' must be a number, got {value!r}.", entity_id)
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError) as exc:
        raise MalformedEntity(f"Field '{key}' must be a number, got {value!r}.", entity_id) from exc


def _require_float(document: dict[str, Any], key: str, default: float, entity_id: str | None) -> float:
    value = document.get(key, default)
    if isinstance(value, bool):
        raise MalformedEntity(f"Field '{key}' must be a number, got {value!r}.", entity_id)
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise MalformedEntity(f"Field '{key}' must be a number, got {value!r}.", entity_id) from exc


def _require_category(document: dict[str, Any], entity_id: str | None, key: str = "category") -> Category:
    try:
        return Category(document.get(key))
    except ValueError as exc:
        raise MalformedEntity(f"Unknown category: {document.get(key)!r}.", entity_id) from exc


def _require_difficulty(document: dict[str, Any], entity_id: str | None) -> Difficulty:
    try:
        return Difficulty(document.get("difficulty"))
    except ValueError as exc:
        raise MalformedEntity(f"Unknown difficulty: {document.get('difficulty')!r}.", entity_id) from exc


def _to_millis(moment: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (moment - _EPOCH) // timedelta(milliseconds=1)


def _from_millis(value: Any) -> datetime:
    try:
        return _EPOCH + timedelta(milliseconds=int(value))
    except (TypeError, ValueError, OverflowError) as exc:
        raise MalformedEntity(f"Invalid timestamp: {value!r}.") from exc


def current_timestamp() -> datetime:
    """Return the current UTC time truncated to the millisecond precision of stored documents."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond - now.microsecond % 1000)
