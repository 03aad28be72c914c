"""Grading runner — async loop that grades finished events on a schedule."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from decimal import Decimal

import structlog

from spread_core.config.loader import load_config
from spread_core.config.schema import AppConfig
from spread_core.db.engine import dispose_engine, get_sessionmaker, init_engine
from spread_core.grading.scores import ScoresClient
from spread_core.logging.setup import setup_logging
from spread_core.models import GradingLog
from spread_core.settlement.service import SettlementService
from spread_core.store.sql import SqlStore

log = structlog.get_logger("grading_runner")


async def grade_once(
    service: SettlementService,
    client: ScoresClient,
    sports: list[str],
    now: datetime | None = None,
) -> list[str]:
    """One grading pass over all sports. Returns the event ids graded."""
    now = now or datetime.now(timezone.utc)
    graded: list[str] = []

    for sport in sports:
        try:
            events = await client.completed_events(sport)
        except Exception as exc:
            log.exception("sport_fetch_error", sport=sport)
            service.store.record_grading(GradingLog(
                event_id=f"error_{sport}_{int(now.timestamp() * 1000)}",
                sport=sport,
                final_result=Decimal("0"),
                method="auto",
                status="failed",
                error_message=str(exc),
                ts=now,
            ))
            continue

        for event in events:
            try:
                results = service.grade_event(
                    event.event_id,
                    event.final_result,
                    sport=sport,
                    method="auto",
                    now=now,
                )
            except Exception:
                log.exception("event_grading_error", event_id=event.event_id, sport=sport)
                continue
            if any(r.success for r in results):
                graded.append(event.event_id)

    log.info("grading_pass_complete", graded=len(graded), events=graded)
    return graded


async def run_loop(config: AppConfig) -> None:
    """Main grading loop — fetch scores, grade, sleep."""
    if not config.grading.enabled:
        log.info("auto_grading_disabled")
        return
    if not config.scores.api_key:
        log.error("scores_api_key_missing")
        return

    init_engine(config.database.url)
    store = SqlStore(get_sessionmaker(), config.settlement.free_starting_balance)
    service = SettlementService(store, config)
    client = ScoresClient(config.scores, config.retry)
    interval_s = config.grading.interval_minutes * 60

    log.info(
        "grading_runner_started",
        sports=config.grading.supported_sports,
        interval_s=interval_s,
    )

    try:
        while True:
            try:
                await grade_once(service, client, config.grading.supported_sports)
            except Exception:
                log.exception("tick_error")
            await asyncio.sleep(interval_s)
    finally:
        await client.close()
        dispose_engine()


def main(config_path: str | None = None) -> None:
    """Entry point — load config, set up logging, run the async loop."""
    config = load_config(config_path)
    setup_logging(level=config.logging.level, log_format=config.logging.format)
    asyncio.run(run_loop(config))
