import asyncio

import pytest

from trivia_app.constants.quiz_constants import COUNTDOWN_TICKS, ROUND_SIZE
from trivia_app.constants.storage_constants import QUESTIONS_COLLECTION, RESULTS_COLLECTION
from trivia_app.core.errors import InsufficientContent, MalformedEntity
from trivia_app.core.models import Category, Difficulty, GameConfig
from trivia_app.core.services.content_cache import EntityKind
from trivia_app.core.services.session_engine import SessionPhase
from trivia_app.core.services.sync_engine import SyncState
from trivia_app.core.trivia_manager import SessionNotFound, TriviaManager
from tests.conftest import FakeRemoteStore, make_module_document


@pytest.fixture
def manager(memory_store, fake_remote, small_seeds, rng):
    return TriviaManager(memory_store, fake_remote, rng=rng, auto_tick=False, seeds=small_seeds)


def _play_round(manager, session_id, correct=True):
    engine = manager.get_session(session_id)
    for _ in range(COUNTDOWN_TICKS):
        engine.tick()
    result = None
    for _ in range(len(engine.round_questions)):
        correct_index = engine.current_question().correct_presentation_index
        manager.select_option(session_id, correct_index if correct else (correct_index + 1) % 3)
        result = manager.advance(session_id)
    return result


def test_startup_syncs_every_kind(manager, fake_remote):
    states = asyncio.run(manager.startup())

    assert set(states.values()) == {SyncState.SYNCED}
    assert len(fake_remote.ids(QUESTIONS_COLLECTION)) == 12


def test_completed_round_is_recorded_and_disposed(manager, volcano_config, fake_remote):
    async def scenario():
        await manager.startup()
        engine = manager.start_session(volcano_config)
        result = _play_round(manager, engine.session_id)
        await manager.sync_engine.drain()
        return engine, result

    engine, result = asyncio.run(scenario())

    assert result.score == ROUND_SIZE
    assert result.streak_max == ROUND_SIZE
    assert manager.active_session_count() == 0
    with pytest.raises(SessionNotFound):
        manager.get_session(engine.session_id)
    stats = manager.player_stats("Sigga")
    assert stats.total_games == 1
    assert stats.best_category is Category.VOLCANOES
    assert [stored.id for stored in manager.all_results()] == [result.id]
    assert result.id in fake_remote.ids(RESULTS_COLLECTION)
    assert manager.leaderboard()[0].username == "Sigga"
    assert manager.dashboard_summary().total_games == 1


def test_start_session_without_questions_fails(memory_store, fake_remote, volcano_config):
    manager = TriviaManager(
        memory_store,
        fake_remote,
        auto_tick=False,
        seeds={EntityKind.QUESTIONS: [], EntityKind.COURSE_MODULES: []},
    )

    with pytest.raises(InsufficientContent):
        manager.start_session(volcano_config)
    assert manager.active_session_count() == 0


def test_cancel_removes_session(manager, volcano_config):
    async def scenario():
        engine = manager.start_session(volcano_config)
        await manager.cancel_session(engine.session_id)
        return engine

    engine = asyncio.run(scenario())

    assert engine.phase is SessionPhase.CANCELLED
    assert manager.active_session_count() == 0
    assert manager.all_results() == []
    with pytest.raises(SessionNotFound):
        asyncio.run(manager.cancel_session(engine.session_id))


def test_auto_tick_drives_countdown(memory_store, fake_remote, small_seeds, rng, volcano_config):
    manager = TriviaManager(memory_store, fake_remote, rng=rng, seeds=small_seeds, tick_interval=0.001)

    async def scenario():
        engine = manager.start_session(volcano_config)
        for _ in range(500):
            if engine.phase is SessionPhase.ACTIVE:
                break
            await asyncio.sleep(0.002)
        phase = engine.phase
        await manager.shutdown()
        return engine, phase

    engine, phase = asyncio.run(scenario())

    assert phase is SessionPhase.ACTIVE
    assert engine.phase is SessionPhase.CANCELLED


def test_admin_question_writes_go_through_sync(manager, fake_remote):
    async def scenario():
        await manager.startup()
        question = await manager.add_question(
            {
                "category": "Perlan",
                "difficulty": "Easy",
                "text": "What is on top of Perlan?",
                "options": ["A dome", "A spire", "A garden"],
                "correctIndex": 0,
            }
        )
        removed = await manager.delete_question("seed-0")
        await manager.sync_engine.drain()
        return question, removed

    question, removed = asyncio.run(scenario())

    assert removed is True
    assert question.id in fake_remote.ids(QUESTIONS_COLLECTION)
    assert "seed-0" not in fake_remote.ids(QUESTIONS_COLLECTION)
    assert any(item.id == question.id for item in manager.list_questions())


def test_invalid_question_is_rejected(manager):
    with pytest.raises(MalformedEntity):
        asyncio.run(manager.add_question({"text": "No options", "category": "Perlan", "difficulty": "Easy"}))


def test_course_module_crud(manager):
    async def scenario():
        added = await manager.add_course_module(make_module_document("mod-new"))
        updated_doc = make_module_document("ignored")
        updated_doc["description"] = "Updated"
        updated = await manager.update_course_module("mod-new", updated_doc)
        deleted = await manager.delete_course_module("mod-new")
        return added, updated, deleted

    added, updated, deleted = asyncio.run(scenario())

    assert added.id == "mod-new"
    assert updated.id == "mod-new"
    assert updated.description == "Updated"
    assert deleted is True
    assert [module.id for module in manager.list_course_modules()] == ["mod-test"]
    with pytest.raises(KeyError):
        asyncio.run(manager.update_course_module("missing", make_module_document()))


def test_learning_progress_through_manager(manager):
    manager.complete_unit("Sigga", "mod-test", "mod-test-read")

    assert manager.get_player_progress("Sigga").completed_unit_ids == ["mod-test-read"]
    assert manager.module_completion("Sigga", "mod-test").percent == 33
    with pytest.raises(ValueError):
        manager.complete_unit("Sigga", "mod-test", "mod-test-quiz")
    with pytest.raises(KeyError):
        manager.complete_unit("Sigga", "missing", "mod-test-read")


def test_generation_requires_configuration(manager):
    assert manager.generator_available is False
    with pytest.raises(RuntimeError):
        asyncio.run(manager.generate_questions(Category.PERLAN, Difficulty.EASY))


def test_offline_startup_keeps_playing(memory_store, small_seeds, rng, volcano_config):
    manager = TriviaManager(memory_store, FakeRemoteStore(fail=True), rng=rng, auto_tick=False, seeds=small_seeds)

    async def scenario():
        states = await manager.startup()
        engine = manager.start_session(volcano_config)
        result = _play_round(manager, engine.session_id, correct=False)
        await manager.sync_engine.drain()
        return states, result

    states, result = asyncio.run(scenario())

    assert set(states.values()) == {SyncState.FAILED}
    assert result.score == 0
    assert manager.player_stats("Sigga").total_games == 1


def test_game_config_is_passed_through(manager):
    config = GameConfig("Óli", Category.GENERAL, Difficulty.HARD, is_challenge_mode=True)

    async def scenario():
        engine = manager.start_session(config)
        return engine.config, engine.snapshot().time_remaining

    stored_config, time_remaining = asyncio.run(scenario())

    assert stored_config == config
    assert time_remaining == 15


def test_unit_quiz_answer_completes_unit(manager):
    manager.complete_unit("Sigga", "mod-test", "mod-test-read")
    manager.complete_unit("Sigga", "mod-test", "mod-test-cards")

    assert manager.answer_unit_quiz("Sigga", "mod-test", "mod-test-quiz", 1) is False
    assert "mod-test-quiz" not in manager.get_player_progress("Sigga").completed_unit_ids
    assert manager.answer_unit_quiz("Sigga", "mod-test", "mod-test-quiz", 0) is True
    assert manager.module_completion("Sigga", "mod-test").percent == 100
    with pytest.raises(ValueError):
        manager.answer_unit_quiz("Sigga", "mod-test", "mod-test-read", 0)


def test_idle_sessions_are_cancelled_on_next_start(memory_store, fake_remote, small_seeds, rng, volcano_config):
    now = [0.0]
    manager = TriviaManager(
        memory_store,
        fake_remote,
        rng=rng,
        auto_tick=False,
        seeds=small_seeds,
        idle_timeout=60.0,
        clock=lambda: now[0],
    )
    abandoned = manager.start_session(volcano_config)
    for _ in range(COUNTDOWN_TICKS):
        abandoned.tick()
    manager.select_option(abandoned.session_id, 0)
    now[0] = 30.0
    active = manager.start_session(volcano_config)
    now[0] = 80.0
    manager.snapshot(active.session_id)

    now[0] = 100.0
    manager.start_session(volcano_config)

    assert abandoned.phase is SessionPhase.CANCELLED
    assert active.phase is SessionPhase.COUNTDOWN
    assert manager.active_session_count() == 2
    assert manager.all_results() == []
    with pytest.raises(SessionNotFound):
        manager.get_session(abandoned.session_id)
