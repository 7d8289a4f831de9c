"""FastAPI server exposing gameplay, admin content and statistics endpoints."""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Any, AsyncIterator

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, Field
import uvicorn

from trivia_app.constants.about import APP_ABOUT_TEXT, APP_LICENSE, APP_NAME, APP_VERSION
from trivia_app.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from trivia_app.core.errors import InsufficientContent, MalformedEntity, RemoteUnavailable
from trivia_app.core.markdown_renderer import renderer
from trivia_app.core.models import Category, CourseModule, Difficulty, GameConfig
from trivia_app.core.serialization import (
    course_module_to_dict,
    game_result_to_dict,
    player_stats_to_dict,
    question_to_dict,
    user_progress_to_dict,
)
from trivia_app.core.services.session_engine import SessionSnapshot
from trivia_app.core.trivia_manager import SessionNotFound, TriviaManager


class StartSessionPayload(BaseModel):
    """Payload schema for starting a round."""

    username: str = Field(min_length=1)
    category: Category = Category.GENERAL
    difficulty: Difficulty = Difficulty.MEDIUM
    is_challenge_mode: bool = False


class AnswerPayload(BaseModel):
    """Payload schema for submitted answers."""

    selected_option_index: int


class QuestionPayload(BaseModel):
    id: str | None = None
    category: Category = Category.GENERAL
    difficulty: Difficulty = Difficulty.MEDIUM
    text: str
    options: list[str]
    correct_index: int = 0
    fact: str = ""


class CourseModulePayload(BaseModel):
    id: str | None = None
    category: Category = Category.GENERAL
    description: str = "New Learning Module"
    units: list[dict[str, Any]] = Field(default_factory=list)


class CompleteUnitPayload(BaseModel):
    module_id: str
    unit_id: str


class UnitQuizAnswerPayload(BaseModel):
    module_id: str
    unit_id: str
    selected_option_index: int


class GeneratePayload(BaseModel):
    category: Category
    difficulty: Difficulty = Difficulty.MEDIUM
    count: int = Field(default=5, ge=1, le=20)


def _get_trivia_manager_dependency(trivia_manager: TriviaManager):
    def dependency() -> TriviaManager:
        return trivia_manager

    return dependency


def _module_payload(module: CourseModule) -> dict[str, Any]:
    """Module document with text units and flashcards rendered to HTML."""
    document = course_module_to_dict(module)
    for unit in document["units"]:
        if unit["type"] == "text":
            unit["content_html"] = renderer.render_fragment(unit["content"])
        elif unit["type"] == "flashcards":
            for card in unit["flashcards"]:
                card["front_html"] = renderer.render_inline(card["front"])
                card["back_html"] = renderer.render_fragment(card["back"])
    return document


def _snapshot_payload(snapshot: SessionSnapshot) -> dict[str, object]:
    payload: dict[str, object] = asdict(snapshot)
    payload["phase"] = snapshot.phase.value
    payload["category"] = snapshot.category.value if snapshot.category is not None else None
    payload["difficulty"] = snapshot.difficulty.value if snapshot.difficulty is not None else None
    payload["options"] = list(snapshot.options)
    payload["question_html"] = renderer.render_fragment(snapshot.text) if snapshot.text else None
    payload["options_html"] = [renderer.render_inline(option) for option in snapshot.options]
    payload["fact_html"] = renderer.render_fragment(snapshot.fact) if snapshot.fact else None
    return payload


def _question_document(payload: QuestionPayload) -> dict[str, Any]:
    document: dict[str, Any] = {
        "category": payload.category.value,
        "difficulty": payload.difficulty.value,
        "text": payload.text,
        "options": payload.options,
        "correctIndex": payload.correct_index,
        "fact": payload.fact,
    }
    if payload.id:
        document["id"] = payload.id
    return document


def _module_document(payload: CourseModulePayload) -> dict[str, Any]:
    document: dict[str, Any] = {
        "category": payload.category.value,
        "description": payload.description,
        "units": payload.units,
    }
    if payload.id:
        document["id"] = payload.id
    return document


def create_api_app(trivia_manager: TriviaManager, run_initial_sync: bool = True) -> FastAPI:
    """Create a FastAPI application wired to the provided trivia manager."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if run_initial_sync:
            await trivia_manager.startup()
        yield
        await trivia_manager.shutdown()

    app = FastAPI(
        title=f"{APP_NAME} API",
        version=APP_VERSION,
        description=APP_ABOUT_TEXT,
        license_info={"name": APP_LICENSE},
        lifespan=lifespan,
    )
    manager_dep = _get_trivia_manager_dependency(trivia_manager)

    # --- Gameplay ---

    @app.post("/sessions", status_code=201)
    async def start_session(
        payload: StartSessionPayload,
        manager: TriviaManager = Depends(manager_dep),
    ) -> dict[str, object]:
        config = GameConfig(
            username=payload.username.strip(),
            category=payload.category,
            difficulty=payload.difficulty,
            is_challenge_mode=payload.is_challenge_mode,
        )
        try:
            engine = manager.start_session(config)
        except InsufficientContent as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        return {"session_id": engine.session_id, "snapshot": _snapshot_payload(engine.snapshot())}

    @app.get("/sessions/{session_id}")
    async def get_session(session_id: str, manager: TriviaManager = Depends(manager_dep)) -> dict[str, object]:
        try:
            return _snapshot_payload(manager.snapshot(session_id))
        except SessionNotFound as exc:
            raise HTTPException(status_code=404, detail="Session not found.") from exc

    @app.post("/sessions/{session_id}/answer")
    async def submit_answer(
        session_id: str,
        payload: AnswerPayload,
        manager: TriviaManager = Depends(manager_dep),
    ) -> dict[str, object]:
        try:
            answer = manager.select_option(session_id, payload.selected_option_index)
            snapshot = manager.snapshot(session_id)
        except SessionNotFound as exc:
            raise HTTPException(status_code=404, detail="Session not found.") from exc
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        except RuntimeError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        return {"accepted": answer is not None, "snapshot": _snapshot_payload(snapshot)}

    @app.post("/sessions/{session_id}/advance")
    async def advance_session(session_id: str, manager: TriviaManager = Depends(manager_dep)) -> dict[str, object]:
        try:
            result = manager.advance(session_id)
            if result is not None:
                return {"completed": True, "result": game_result_to_dict(result)}
            return {"completed": False, "snapshot": _snapshot_payload(manager.snapshot(session_id))}
        except SessionNotFound as exc:
            raise HTTPException(status_code=404, detail="Session not found.") from exc
        except RuntimeError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc

    @app.delete("/sessions/{session_id}", status_code=204)
    async def cancel_session(session_id: str, manager: TriviaManager = Depends(manager_dep)) -> None:
        try:
            await manager.cancel_session(session_id)
        except SessionNotFound as exc:
            raise HTTPException(status_code=404, detail="Session not found.") from exc

    # --- Question bank ---

    @app.get("/questions")
    async def list_questions(
        category: Category | None = None,
        manager: TriviaManager = Depends(manager_dep),
    ) -> list[dict[str, Any]]:
        questions = manager.list_questions()
        if category is not None:
            questions = [question for question in questions if question.category is category]
        return [question_to_dict(question) for question in questions]

    @app.post("/questions", status_code=201)
    async def add_question(payload: QuestionPayload, manager: TriviaManager = Depends(manager_dep)) -> dict[str, Any]:
        try:
            question = await manager.add_question(_question_document(payload))
        except MalformedEntity as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return question_to_dict(question)

    @app.post("/questions/generate", status_code=201)
    async def generate_questions(
        payload: GeneratePayload,
        manager: TriviaManager = Depends(manager_dep),
    ) -> list[dict[str, Any]]:
        if not manager.generator_available:
            raise HTTPException(status_code=503, detail="Question generation is not configured.")
        try:
            questions = await manager.generate_questions(payload.category, payload.difficulty, payload.count)
        except RemoteUnavailable as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        return [question_to_dict(question) for question in questions]

    @app.delete("/questions/{question_id}", status_code=204)
    async def delete_question(question_id: str, manager: TriviaManager = Depends(manager_dep)) -> None:
        if not await manager.delete_question(question_id):
            raise HTTPException(status_code=404, detail="Question not found.")

    # --- Course modules ---

    @app.get("/modules")
    async def list_modules(manager: TriviaManager = Depends(manager_dep)) -> list[dict[str, Any]]:
        return [_module_payload(module) for module in manager.list_course_modules()]

    @app.post("/modules", status_code=201)
    async def add_module(payload: CourseModulePayload, manager: TriviaManager = Depends(manager_dep)) -> dict[str, Any]:
        try:
            module = await manager.add_course_module(_module_document(payload))
        except MalformedEntity as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return _module_payload(module)

    @app.put("/modules/{module_id}")
    async def update_module(
        module_id: str,
        payload: CourseModulePayload,
        manager: TriviaManager = Depends(manager_dep),
    ) -> dict[str, Any]:
        try:
            module = await manager.update_course_module(module_id, _module_document(payload))
        except KeyError as exc:
            raise HTTPException(status_code=404, detail="Module not found.") from exc
        except MalformedEntity as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return _module_payload(module)

    @app.delete("/modules/{module_id}", status_code=204)
    async def delete_module(module_id: str, manager: TriviaManager = Depends(manager_dep)) -> None:
        if not await manager.delete_course_module(module_id):
            raise HTTPException(status_code=404, detail="Module not found.")

    # --- Statistics ---

    @app.get("/stats")
    async def list_stats(manager: TriviaManager = Depends(manager_dep)) -> list[dict[str, Any]]:
        return [player_stats_to_dict(stats) for stats in manager.all_stats()]

    @app.get("/stats/{username}")
    async def get_stats(username: str, manager: TriviaManager = Depends(manager_dep)) -> dict[str, Any]:
        stats = manager.player_stats(username)
        if stats is None:
            raise HTTPException(status_code=404, detail="No games recorded for this player.")
        return player_stats_to_dict(stats)

    @app.get("/leaderboard")
    async def get_leaderboard(limit: int = 10, manager: TriviaManager = Depends(manager_dep)) -> list[dict[str, Any]]:
        return [asdict(row) for row in manager.leaderboard(limit)]

    @app.get("/dashboard")
    async def get_dashboard(manager: TriviaManager = Depends(manager_dep)) -> dict[str, Any]:
        summary = asdict(manager.dashboard_summary())
        summary["sync"] = {kind.value: state.value for kind, state in manager.sync_engine.states().items()}
        return summary

    # --- Learning progress ---

    @app.get("/progress/{username}")
    async def get_progress(username: str, manager: TriviaManager = Depends(manager_dep)) -> dict[str, Any]:
        progress = manager.get_player_progress(username)
        payload = user_progress_to_dict(progress)
        payload["modules"] = {
            module.id: manager.module_completion(username, module.id).percent
            for module in manager.list_course_modules()
        }
        return payload

    @app.post("/progress/{username}/complete")
    async def complete_unit(
        username: str,
        payload: CompleteUnitPayload,
        manager: TriviaManager = Depends(manager_dep),
    ) -> dict[str, Any]:
        try:
            progress = manager.complete_unit(username, payload.module_id, payload.unit_id)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail="Module not found.") from exc
        except ValueError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        return user_progress_to_dict(progress)

    @app.post("/progress/{username}/quiz")
    async def answer_unit_quiz(
        username: str,
        payload: UnitQuizAnswerPayload,
        manager: TriviaManager = Depends(manager_dep),
    ) -> dict[str, Any]:
        try:
            correct = manager.answer_unit_quiz(
                username, payload.module_id, payload.unit_id, payload.selected_option_index
            )
        except KeyError as exc:
            raise HTTPException(status_code=404, detail="Module not found.") from exc
        except ValueError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        return {"correct": correct, "progress": user_progress_to_dict(manager.get_player_progress(username))}

    return app


def start_api_server(
    trivia_manager: TriviaManager,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
    log_level: str = "info",
) -> None:
    """Run the FastAPI server; blocks until the server exits."""
    app = create_api_app(trivia_manager)
    config = uvicorn.Config(app=app, host=host, port=port, log_level=log_level.lower())
    server = uvicorn.Server(config)
    server.run()
