"""Scores client — completed-event results from The Odds API."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from spread_core.config.schema import RetryConfig, ScoresConfig
from spread_core.models import EventResult
from spread_core.settlement.retry import acall_with_retry

log = structlog.get_logger("scores")


class TransientScoresError(Exception):
    """Retryable upstream failure (5xx, 429)."""


def _score_for(scores: list[dict], team: str) -> int | None:
    for entry in scores:
        if entry.get("name") == team:
            try:
                return int(entry.get("score"))
            except (TypeError, ValueError):
                return None
    return None


def parse_scores(payload: list[dict[str, Any]], sport: str) -> list[EventResult]:
    """Keep completed events that carry an integer score for both teams."""
    results: list[EventResult] = []
    for event in payload:
        if not event.get("completed") or not event.get("scores"):
            continue
        home = event.get("home_team")
        away = event.get("away_team")
        home_score = _score_for(event["scores"], home)
        away_score = _score_for(event["scores"], away)
        if home_score is None or away_score is None:
            log.info("event_missing_scores", event_id=event.get("id"), sport=sport)
            continue
        results.append(EventResult(
            event_id=str(event["id"]),
            sport=sport,
            home_team=home,
            away_team=away,
            home_score=home_score,
            away_score=away_score,
            completed=True,
        ))
    return results


class ScoresClient:
    """Async client for the ``/sports/{sport}/scores`` endpoint."""

    def __init__(
        self,
        config: ScoresConfig,
        retry: RetryConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not config.api_key:
            raise ValueError("scores.api_key is not configured")
        self.config = config
        self.retry = retry or RetryConfig()
        self._transport = transport
        self._http: httpx.AsyncClient | None = None

    async def _get_http(self) -> httpx.AsyncClient:
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(
                base_url=self.config.base_url.rstrip("/"),
                timeout=self.config.timeout_s,
                transport=self._transport,
            )
        return self._http

    async def close(self) -> None:
        if self._http and not self._http.is_closed:
            await self._http.aclose()

    async def _fetch(self, sport: str) -> list[dict[str, Any]]:
        http = await self._get_http()
        resp = await http.get(
            f"/sports/{sport}/scores/",
            params={"apiKey": self.config.api_key, "daysFrom": self.config.days_from},
        )
        if resp.status_code == 429 or resp.status_code >= 500:
            raise TransientScoresError(f"{sport}: HTTP {resp.status_code}")
        resp.raise_for_status()
        return resp.json()

    async def completed_events(self, sport: str) -> list[EventResult]:
        """Fetch recent results for *sport* and return the completed ones."""
        payload = await acall_with_retry(
            lambda: self._fetch(sport),
            self.retry,
            retry_on=(TransientScoresError, httpx.TransportError),
            op=f"scores:{sport}",
        )
        events = parse_scores(payload, sport)
        log.info("scores_fetched", sport=sport, events=len(payload), completed=len(events))
        return events
