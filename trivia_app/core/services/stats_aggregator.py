"""Folds completed rounds into per-player running totals."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Mapping

from trivia_app.core.models import GameResult, PlayerStats
from trivia_app.core.services.results_sink import ResultsSink


@dataclass(frozen=True, slots=True)
class LeaderboardRow:
    """Immutable snapshot returned to consumers."""

    username: str
    total_games: int
    total_score: int
    accuracy_percent: float
    streak_record: int


@dataclass(slots=True)
class DashboardSummary:
    total_games: int
    unique_players: int
    average_score: float
    games_per_category: dict[str, int]


def apply_result(
    result: GameResult,
    stats_map: Mapping[str, PlayerStats],
    now: datetime | None = None,
) -> dict[str, PlayerStats]:
    """Return a new map with ``result`` folded into its player's totals.

    ``best_category`` keeps the first category the player ever played.
    """
    updated = dict(stats_map)
    existing = stats_map.get(result.username)
    entry = replace(existing) if existing is not None else PlayerStats(username=result.username)

    entry.total_games += 1
    entry.total_score += result.score
    entry.total_questions_answered += result.total_questions
    entry.total_correct += result.score
    entry.last_played = now or datetime.now(timezone.utc)
    if result.streak_max > entry.streak_record:
        entry.streak_record = result.streak_max
    if entry.best_category is None:
        entry.best_category = result.config.category

    updated[result.username] = entry
    return updated


class StatsAggregator:
    """Single writer of player statistics."""

    def __init__(self, sink: ResultsSink) -> None:
        self._sink = sink

    def record(self, result: GameResult) -> PlayerStats:
        """Persist the result and the player's updated totals."""
        self._sink.persist_result(result)
        updated = apply_result(result, self._sink.stats_map())
        stats = updated[result.username]
        self._sink.persist_stats(stats)
        return stats

    def get(self, username: str) -> PlayerStats | None:
        return self._sink.stats_map().get(username)

    def all_stats(self) -> list[PlayerStats]:
        return sorted(self._sink.stats_map().values(), key=lambda s: s.username)

    def leaderboard(self, limit: int = 10) -> list[LeaderboardRow]:
        """Return the top players sorted by total score, then streak record."""
        sorted_entries = sorted(
            self._sink.stats_map().values(),
            key=lambda s: (-s.total_score, -s.streak_record, s.username),
        )
        return [
            LeaderboardRow(
                username=entry.username,
                total_games=entry.total_games,
                total_score=entry.total_score,
                accuracy_percent=_percent(entry.total_correct, entry.total_questions_answered),
                streak_record=entry.streak_record,
            )
            for entry in sorted_entries[:limit]
        ]

    def dashboard_summary(self) -> DashboardSummary:
        results = self._sink.all_results()
        total_games = len(results)
        average = sum(result.score for result in results) / total_games if total_games else 0.0
        per_category = Counter(result.config.category.value for result in results)
        return DashboardSummary(
            total_games=total_games,
            unique_players=len(self._sink.stats_map()),
            average_score=round(average, 2),
            games_per_category=dict(per_category),
        )


def _percent(part: int, whole: int) -> float:
    if whole <= 0:
        return 0.0
    return round(part / whole * 100, 1)
