"""Tests for the automatic grading pass."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from decimal import Decimal

from spread_core.config.schema import AppConfig
from spread_core.grading.runner import grade_once, run_loop
from spread_core.models import EventResult
from spread_core.settlement.service import SettlementService
from spread_core.store import InMemoryStore

NOW = datetime(2026, 3, 1, 18, 0, tzinfo=timezone.utc)


class FakeScores:
    """Stands in for ScoresClient: canned events per sport, or an error."""

    def __init__(self, events: dict[str, list[EventResult]], failing: set[str] = frozenset()) -> None:
        self.events = events
        self.failing = failing
        self.calls: list[str] = []

    async def completed_events(self, sport: str) -> list[EventResult]:
        self.calls.append(sport)
        if sport in self.failing:
            raise ConnectionError(f"{sport} feed down")
        return self.events.get(sport, [])


def _result(event_id: str, home: int, away: int, sport: str = "soccer") -> EventResult:
    return EventResult(
        event_id=event_id, sport=sport, home_team="Arsenal", away_team="Chelsea",
        home_score=home, away_score=away,
    )


def _service_with_bet(match_id: str = "evt-1") -> SettlementService:
    svc = SettlementService(InMemoryStore(), AppConfig(), sleep=lambda _s: None)
    svc.place_bet("u1", match_id, "buy", Decimal("1"), Decimal("10"), Decimal("20"))
    return svc


class TestGradeOnce:
    def test_grades_completed_events(self):
        svc = _service_with_bet()
        scores = FakeScores({"soccer": [_result("evt-1", 3, 0), _result("evt-9", 1, 1)]})

        graded = asyncio.run(grade_once(svc, scores, ["soccer"], now=NOW))

        assert graded == ["evt-1"]
        # buy at 1, result 3: +20 on top of the 200 collateral
        assert svc.get_account("u1").balance == Decimal("1020")
        (log,) = svc.store.grading_logs("evt-1")
        assert log.method == "auto"
        assert log.sport == "soccer"
        assert log.final_result == Decimal("3")

    def test_second_pass_grades_nothing(self):
        svc = _service_with_bet()
        scores = FakeScores({"soccer": [_result("evt-1", 3, 0)]})
        asyncio.run(grade_once(svc, scores, ["soccer"], now=NOW))
        assert asyncio.run(grade_once(svc, scores, ["soccer"], now=NOW)) == []
        assert svc.get_account("u1").balance == Decimal("1020")

    def test_failing_sport_logged_and_others_continue(self):
        svc = _service_with_bet()
        scores = FakeScores({"soccer": [_result("evt-1", 2, 0)]}, failing={"football"})

        graded = asyncio.run(grade_once(svc, scores, ["football", "soccer"], now=NOW))

        assert graded == ["evt-1"]
        assert scores.calls == ["football", "soccer"]
        failed = [log for log in svc.store.grading_logs() if log.status == "failed"]
        assert len(failed) == 1
        assert failed[0].event_id == f"error_football_{int(NOW.timestamp() * 1000)}"
        assert "feed down" in failed[0].error_message


class TestRunLoop:
    def test_disabled_returns_immediately(self):
        cfg = AppConfig(grading={"enabled": False})
        assert asyncio.run(run_loop(cfg)) is None

    def test_missing_api_key_returns_immediately(self):
        cfg = AppConfig()
        assert asyncio.run(run_loop(cfg)) is None
