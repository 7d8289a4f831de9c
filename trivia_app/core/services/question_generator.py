"""Generates short trivia questions through an OpenAI-compatible chat endpoint."""

from __future__ import annotations

import json
import logging
from typing import Any
from uuid import uuid4

import httpx

from trivia_app.constants.network_constants import DEFAULT_GENERATOR_MODEL, DEFAULT_GENERATOR_URL
from trivia_app.constants.quiz_constants import OPTION_COUNT
from trivia_app.core.errors import MalformedEntity, RemoteUnavailable
from trivia_app.core.models import Category, Difficulty, Question
from trivia_app.core.serialization import question_from_dict

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You write fast, pub-quiz style trivia for a museum in Iceland. "
    "Reply with strict JSON only."
)


def build_prompt(category: Category, difficulty: Difficulty, count: int) -> str:
    return (
        f"Generate {count} ultra-short trivia questions about \"{category.value}\".\n"
        f"Difficulty: {difficulty.value}.\n\n"
        "JSON schema:\n"
        "{\n"
        '  "questions": [\n'
        '    {"text": "string", "options": ["string","string","string"], "correctIndex": 0, "fact": "string"}\n'
        "  ]\n"
        "}\n\n"
        "Rules:\n"
        "- QUESTION: max 12 words, simple and direct.\n"
        f"- OPTIONS: exactly {OPTION_COUNT}, max 4 words each, no sentences.\n"
        "- FACT: max 20 words, fun and surprising.\n"
    )


class QuestionGenerator:
    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_GENERATOR_MODEL,
        base_url: str = DEFAULT_GENERATOR_URL,
        timeout_seconds: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.strip() or DEFAULT_GENERATOR_URL
        self._timeout_seconds = max(3.0, timeout_seconds)
        self._client = client

    @property
    def available(self) -> bool:
        return bool(self._api_key)

    async def generate(self, category: Category, difficulty: Difficulty, count: int = 5) -> list[Question]:
        """Request ``count`` questions; items that fail validation are dropped."""
        if not self.available:
            raise RemoteUnavailable("Question generation is not configured.")
        if count <= 0:
            raise ValueError("Question count must be a positive integer.")

        content = await self._request_content(build_prompt(category, difficulty, count))
        items = _parse_items(content)
        questions: list[Question] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            document = {
                **item,
                "id": uuid4().hex,
                "category": category.value,
                "difficulty": difficulty.value,
            }
            try:
                questions.append(question_from_dict(document))
            except MalformedEntity as exc:
                logger.warning("Dropping generated question: %s", exc)
        return questions[:count]

    async def _request_content(self, user_prompt: str) -> str:
        payload = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": 0.9,
            "response_format": {"type": "json_object"},
        }
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        try:
            if self._client is not None:
                response = await self._client.post(self._base_url, headers=headers, json=payload)
            else:
                async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
                    response = await client.post(self._base_url, headers=headers, json=payload)
            body = response.json()
        except httpx.TimeoutException as exc:
            raise RemoteUnavailable("Question generation timed out.") from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise RemoteUnavailable(f"Question generation failed: {exc}") from exc

        if response.status_code >= 400:
            raise RemoteUnavailable(f"Question generation returned HTTP {response.status_code}.")
        content = _extract_content(body)
        if not content:
            raise RemoteUnavailable("Question generation returned no content.")
        return content


def _extract_content(body: Any) -> str:
    if not isinstance(body, dict):
        return ""
    choices = body.get("choices")
    if not isinstance(choices, list) or not choices:
        return ""
    message = choices[0].get("message", {}) if isinstance(choices[0], dict) else {}
    content = message.get("content", "")
    return content if isinstance(content, str) else ""


def _parse_items(content: str) -> list[Any]:
    stripped = content.strip()
    start = min((i for i in (stripped.find("{"), stripped.find("[")) if i != -1), default=-1)
    if start == -1:
        return []
    try:
        parsed = json.loads(stripped[start:])
    except json.JSONDecodeError:
        end = max(stripped.rfind("}"), stripped.rfind("]"))
        try:
            parsed = json.loads(stripped[start : end + 1])
        except json.JSONDecodeError:
            logger.warning("Generated content was not valid JSON")
            return []
    if isinstance(parsed, dict):
        parsed = parsed.get("questions", [])
    return parsed if isinstance(parsed, list) else []
