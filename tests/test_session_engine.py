import random

import pytest

from trivia_app.constants.quiz_constants import CHALLENGE_TIME_LIMIT_SECONDS, COUNTDOWN_TICKS, ROUND_SIZE
from trivia_app.core.errors import InsufficientContent
from trivia_app.core.models import Category, Difficulty, GameConfig
from trivia_app.core.services.session_engine import SessionEngine, SessionPhase, TimerKind, build_round
from tests.conftest import make_pool


class FakeClock:
    def __init__(self, start=100.0):
        self.now = start

    def __call__(self):
        return self.now


def _start(engine):
    for _ in range(COUNTDOWN_TICKS):
        engine.tick()
    assert engine.phase is SessionPhase.ACTIVE


def _answer_correctly(engine):
    return engine.select_option(engine.current_question().correct_presentation_index)


def _answer_wrong(engine):
    correct = engine.current_question().correct_presentation_index
    return engine.select_option((correct + 1) % 3)


@pytest.fixture
def mixed_pool():
    return make_pool(3, Category.VOLCANOES, "volc") + make_pool(12, Category.WILDLIFE, "wild")


# --- Round construction ---


def test_small_category_falls_back_to_whole_pool(mixed_pool, rng):
    questions = build_round(mixed_pool, Category.VOLCANOES, rng)

    assert len(questions) == ROUND_SIZE
    assert any(question.category is Category.WILDLIFE for question in questions)


def test_small_category_with_small_pool_uses_all_questions(rng):
    pool = make_pool(3, Category.VOLCANOES)

    questions = build_round(pool, Category.VOLCANOES, rng)

    assert sorted(question.id for question in questions) == sorted(question.id for question in pool)


def test_large_category_is_filtered(mixed_pool, rng):
    questions = build_round(mixed_pool, Category.WILDLIFE, rng)

    assert len(questions) == ROUND_SIZE
    assert all(question.category is Category.WILDLIFE for question in questions)
    assert len({question.id for question in questions}) == ROUND_SIZE


def test_general_draws_from_whole_pool(mixed_pool):
    seen = set()
    for seed in range(30):
        seen.update(question.category for question in build_round(mixed_pool, Category.GENERAL, random.Random(seed)))

    assert seen == {Category.VOLCANOES, Category.WILDLIFE}


def test_empty_pool_raises_insufficient_content(volcano_config):
    with pytest.raises(InsufficientContent):
        build_round([], Category.GENERAL)
    with pytest.raises(InsufficientContent):
        SessionEngine(volcano_config, [])


# --- Countdown and answering ---


def test_countdown_runs_before_first_question(mixed_pool, volcano_config, rng):
    engine = SessionEngine(volcano_config, mixed_pool, rng=rng)

    assert engine.phase is SessionPhase.COUNTDOWN
    assert engine.active_timer is TimerKind.COUNTDOWN
    assert engine.current_question() is None
    engine.tick()
    assert engine.countdown == COUNTDOWN_TICKS - 1
    with pytest.raises(RuntimeError):
        engine.select_option(0)

    _start(engine)
    assert engine.current_index == 0
    assert engine.snapshot().question_number == 1


def test_selection_is_scored_and_question_locks(mixed_pool, volcano_config, rng):
    engine = SessionEngine(volcano_config, mixed_pool, rng=rng)
    _start(engine)

    answer = _answer_correctly(engine)

    assert answer.is_correct is True
    assert engine.phase is SessionPhase.ANSWERED
    assert engine.streak == 1
    # A second selection for the same question is ignored.
    assert engine.select_option(0) is None
    assert len(engine.answers) == 1


def test_out_of_range_selection_is_rejected(mixed_pool, volcano_config, rng):
    engine = SessionEngine(volcano_config, mixed_pool, rng=rng)
    _start(engine)

    with pytest.raises(ValueError):
        engine.select_option(3)
    assert engine.phase is SessionPhase.ACTIVE
    assert engine.answers == ()


def test_snapshot_reveals_answer_only_after_selection(mixed_pool, volcano_config, rng):
    engine = SessionEngine(volcano_config, mixed_pool, rng=rng)
    _start(engine)

    before = engine.snapshot()
    assert before.fact is None
    assert before.correct_option_index is None
    assert len(before.options) == 3

    _answer_wrong(engine)
    after = engine.snapshot()
    assert after.phase is SessionPhase.ANSWERED
    assert after.is_correct is False
    assert after.correct_option_index == engine.current_question().correct_presentation_index
    assert after.fact == engine.current_question().question.fact


def test_time_taken_uses_elapsed_clock_time(mixed_pool, volcano_config, rng):
    clock = FakeClock()
    engine = SessionEngine(volcano_config, mixed_pool, rng=rng, clock=clock)
    _start(engine)

    clock.now += 4.25
    answer = _answer_correctly(engine)

    assert answer.time_taken == pytest.approx(4.25)


# --- Challenge mode timer ---


def test_challenge_timeout_records_a_wrong_answer(mixed_pool, rng):
    config = GameConfig("Jón", Category.WILDLIFE, Difficulty.HARD, is_challenge_mode=True)
    engine = SessionEngine(config, mixed_pool, rng=rng)
    _start(engine)
    _answer_correctly(engine)
    engine.advance()
    assert engine.streak == 1

    for _ in range(CHALLENGE_TIME_LIMIT_SECONDS):
        engine.tick()

    timed_out = engine.answers[-1]
    assert engine.phase is SessionPhase.ANSWERED
    assert timed_out.selected_option_index == -1
    assert timed_out.is_correct is False
    assert timed_out.time_taken == float(CHALLENGE_TIME_LIMIT_SECONDS)
    assert engine.streak == 0
    assert engine.max_streak == 1


def test_timer_resets_for_each_question(mixed_pool, rng):
    config = GameConfig("Jón", Category.WILDLIFE, Difficulty.HARD, is_challenge_mode=True)
    engine = SessionEngine(config, mixed_pool, rng=rng)
    _start(engine)

    for _ in range(5):
        engine.tick()
    assert engine.time_remaining == CHALLENGE_TIME_LIMIT_SECONDS - 5
    answer = _answer_correctly(engine)
    assert answer.time_taken == 5.0

    # Ticks while answered are ignored.
    engine.tick()
    assert engine.time_remaining == CHALLENGE_TIME_LIMIT_SECONDS - 5

    engine.advance()
    assert engine.time_remaining == CHALLENGE_TIME_LIMIT_SECONDS


def test_untimed_mode_ignores_ticks_during_questions(mixed_pool, volcano_config, rng):
    engine = SessionEngine(volcano_config, mixed_pool, rng=rng)
    _start(engine)

    assert engine.active_timer is None
    for _ in range(CHALLENGE_TIME_LIMIT_SECONDS + 5):
        engine.tick()

    assert engine.phase is SessionPhase.ACTIVE
    assert engine.snapshot().time_remaining is None


def test_timer_generation_changes_on_every_timer_transition(mixed_pool, volcano_config, rng):
    engine = SessionEngine(volcano_config, mixed_pool, rng=rng)
    generations = [engine.timer_generation]
    _start(engine)
    generations.append(engine.timer_generation)
    _answer_correctly(engine)
    generations.append(engine.timer_generation)
    engine.advance()
    generations.append(engine.timer_generation)

    assert len(set(generations)) == len(generations)


# --- Completion and cancellation ---


def test_full_round_produces_result(mixed_pool, volcano_config, rng):
    engine = SessionEngine(volcano_config, mixed_pool, rng=rng)
    _start(engine)

    result = None
    for index in range(ROUND_SIZE):
        if index == 4:
            _answer_wrong(engine)
        else:
            _answer_correctly(engine)
        result = engine.advance()
        if index < ROUND_SIZE - 1:
            assert result is None

    assert engine.phase is SessionPhase.COMPLETED
    assert engine.is_finished
    assert result is engine.result
    assert result.score == 9
    assert result.total_questions == ROUND_SIZE
    assert result.streak_max == 5
    assert result.username == "Sigga"
    assert [answer.question_id for answer in result.answers] == [
        shuffled.question.id for shuffled in engine.round_questions
    ]
    with pytest.raises(RuntimeError):
        engine.advance()
    with pytest.raises(RuntimeError):
        engine.cancel()


def test_advance_requires_an_answer(mixed_pool, volcano_config, rng):
    engine = SessionEngine(volcano_config, mixed_pool, rng=rng)
    with pytest.raises(RuntimeError):
        engine.advance()
    _start(engine)
    with pytest.raises(RuntimeError):
        engine.advance()


def test_cancel_discards_round(mixed_pool, volcano_config, rng):
    engine = SessionEngine(volcano_config, mixed_pool, rng=rng)
    _start(engine)
    _answer_correctly(engine)

    engine.cancel()
    engine.cancel()

    assert engine.phase is SessionPhase.CANCELLED
    assert engine.result is None
    assert engine.active_timer is None
    with pytest.raises(RuntimeError):
        engine.select_option(0)
    with pytest.raises(RuntimeError):
        engine.advance()


def test_listeners_are_notified_on_transitions(mixed_pool, volcano_config, rng):
    engine = SessionEngine(volcano_config, mixed_pool, rng=rng)
    phases = []
    engine.add_listener(lambda e: phases.append(e.phase))

    _start(engine)
    _answer_correctly(engine)
    engine.cancel()

    assert phases[-3:] == [SessionPhase.ACTIVE, SessionPhase.ANSWERED, SessionPhase.CANCELLED]
