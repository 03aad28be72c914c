"""Tests for the scores client and payload parsing."""

from __future__ import annotations

import asyncio
from decimal import Decimal

import httpx
import pytest

from spread_core.config.schema import RetryConfig, ScoresConfig
from spread_core.grading.scores import ScoresClient, TransientScoresError, parse_scores


def _event(event_id="e1", home=2, away=1, completed=True, **overrides) -> dict:
    event = {
        "id": event_id,
        "sport_key": "soccer",
        "completed": completed,
        "home_team": "Arsenal",
        "away_team": "Chelsea",
        "scores": [
            {"name": "Arsenal", "score": str(home)},
            {"name": "Chelsea", "score": str(away)},
        ],
    }
    event.update(overrides)
    return event


def _client(handler, **retry) -> ScoresClient:
    return ScoresClient(
        ScoresConfig(api_key="test-key", days_from=2),
        RetryConfig(base_delay_s=0, **retry),
        transport=httpx.MockTransport(handler),
    )


async def _fetch(client: ScoresClient, sport: str):
    try:
        return await client.completed_events(sport)
    finally:
        await client.close()


class TestParseScores:
    def test_completed_event(self):
        (result,) = parse_scores([_event(home=3, away=1)], "soccer")
        assert result.event_id == "e1"
        assert result.home_team == "Arsenal"
        assert result.final_result == Decimal("2")

    def test_away_win_is_negative(self):
        (result,) = parse_scores([_event(home=0, away=2)], "soccer")
        assert result.final_result == Decimal("-2")

    def test_skips_incomplete(self):
        assert parse_scores([_event(completed=False)], "soccer") == []

    def test_skips_missing_scores(self):
        assert parse_scores([_event(scores=None)], "soccer") == []
        assert parse_scores([_event(scores=[{"name": "Arsenal", "score": "1"}])], "soccer") == []

    def test_skips_non_integer_score(self):
        bad = _event(scores=[{"name": "Arsenal", "score": "n/a"}, {"name": "Chelsea", "score": "1"}])
        assert parse_scores([bad], "soccer") == []

    def test_numeric_ids_become_strings(self):
        (result,) = parse_scores([_event(event_id=4711)], "soccer")
        assert result.event_id == "4711"


class TestScoresClient:
    def test_requires_api_key(self):
        with pytest.raises(ValueError):
            ScoresClient(ScoresConfig())

    def test_request_shape(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[_event(), _event("e2", completed=False)])

        events = asyncio.run(_fetch(_client(handler), "soccer"))

        assert [e.event_id for e in events] == ["e1"]
        assert seen[0].url.path == "/v4/sports/soccer/scores/"
        assert seen[0].url.params["apiKey"] == "test-key"
        assert seen[0].url.params["daysFrom"] == "2"

    def test_retries_server_errors(self):
        calls = {"n": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["n"] += 1
            if calls["n"] == 1:
                return httpx.Response(503)
            return httpx.Response(200, json=[_event()])

        events = asyncio.run(_fetch(_client(handler), "soccer"))
        assert len(events) == 1
        assert calls["n"] == 2

    def test_rate_limit_exhausts_retries(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(429)

        with pytest.raises(TransientScoresError):
            asyncio.run(_fetch(_client(handler, max_attempts=2), "soccer"))

    def test_client_error_not_retried(self):
        calls = {"n": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["n"] += 1
            return httpx.Response(401, json={"message": "bad key"})

        with pytest.raises(httpx.HTTPStatusError):
            asyncio.run(_fetch(_client(handler), "soccer"))
        assert calls["n"] == 1
