"""Persists completed rounds and player statistics locally and remotely."""

from __future__ import annotations

import logging

from trivia_app.constants.storage_constants import (
    RESULTS_COLLECTION,
    RESULTS_KEY,
    STATS_COLLECTION,
    STATS_KEY,
)
from trivia_app.core.errors import MalformedEntity
from trivia_app.core.models import GameResult, PlayerStats
from trivia_app.core.serialization import (
    game_result_from_dict,
    game_result_to_dict,
    player_stats_from_dict,
    player_stats_to_dict,
)
from trivia_app.core.services.local_store import KeyValueStore
from trivia_app.core.services.sync_engine import SyncEngine

logger = logging.getLogger(__name__)


class ResultsSink:
    """Local append plus fire-and-forget remote write for results and stats."""

    def __init__(self, store: KeyValueStore, sync_engine: SyncEngine) -> None:
        self._store = store
        self._sync = sync_engine

    def persist_result(self, result: GameResult) -> None:
        document = game_result_to_dict(result)
        results = self._store.get(RESULTS_KEY)
        if not isinstance(results, list):
            results = []
        results.append(document)
        self._store.set(RESULTS_KEY, results)
        self._sync.write_through(RESULTS_COLLECTION, result.id, document)

    def persist_stats(self, stats: PlayerStats) -> None:
        document = player_stats_to_dict(stats)
        stats_map = self._raw_stats_map()
        stats_map[stats.username] = document
        self._store.set(STATS_KEY, stats_map)
        self._sync.write_through(STATS_COLLECTION, stats.username, document)

    def all_results(self) -> list[GameResult]:
        raw = self._store.get(RESULTS_KEY)
        if not isinstance(raw, list):
            return []
        results: list[GameResult] = []
        for document in raw:
            try:
                results.append(game_result_from_dict(document))
            except MalformedEntity as exc:
                logger.warning("Skipping malformed stored result: %s", exc)
        return results

    def stats_map(self) -> dict[str, PlayerStats]:
        stats: dict[str, PlayerStats] = {}
        for username, document in self._raw_stats_map().items():
            try:
                stats[username] = player_stats_from_dict(document)
            except MalformedEntity as exc:
                logger.warning("Skipping malformed stats for %s: %s", username, exc)
        return stats

    def _raw_stats_map(self) -> dict[str, object]:
        raw = self._store.get(STATS_KEY)
        return raw if isinstance(raw, dict) else {}
