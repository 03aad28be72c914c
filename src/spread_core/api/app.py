"""FastAPI application — positions, accounts and event grading."""

from fastapi import FastAPI, HTTPException, Depends
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from datetime import datetime, timezone
from typing import Literal, Optional
import structlog

from spread_core.config.loader import load_config
from spread_core.db.engine import dispose_engine, get_sessionmaker, init_engine
from spread_core.models import CloseResult, Position, UserAccount
from spread_core.settlement.errors import (
    InsufficientBalance,
    PositionNotFound,
    PositionStateError,
    SettlementError,
    StaleStateError,
    ValidationError,
)
from spread_core.settlement.service import ALREADY_TERMINAL, SettlementService
from spread_core.store.sql import SqlStore

logger = structlog.get_logger()

app = FastAPI(
    title="Spread Settlement API",
    description="Spread-bet positions, collateral and event grading",
    version="0.1.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

config = load_config()

_service: SettlementService | None = None


@app.on_event("startup")
async def startup_event():
    """Initialize database engine and the settlement service on startup."""
    global _service
    init_engine(config.database.url)
    store = SqlStore(get_sessionmaker(), config.settlement.free_starting_balance)
    _service = SettlementService(store, config)
    logger.info("Settlement service initialized")


@app.on_event("shutdown")
async def shutdown_event():
    global _service
    _service = None
    dispose_engine()


def get_service() -> SettlementService:
    """Dependency returning the process-wide settlement service."""
    if _service is None:
        raise HTTPException(status_code=503, detail="Service not initialised")
    return _service


def _raise_http(exc: SettlementError) -> None:
    if isinstance(exc, PositionNotFound):
        raise HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, InsufficientBalance):
        raise HTTPException(status_code=402, detail=str(exc))
    if isinstance(exc, (PositionStateError, StaleStateError)):
        raise HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, ValidationError):
        raise HTTPException(status_code=422, detail=str(exc))
    raise HTTPException(status_code=500, detail=str(exc))


def _position_json(p: Position) -> dict:
    return {
        "id": p.id,
        "userId": p.user_id,
        "matchId": p.match_id,
        "matchName": p.match_name,
        "market": p.market,
        "betType": p.bet_type,
        "betPrice": float(p.bet_price),
        "stakePerPoint": float(p.stake_per_point),
        "makeupLimit": float(p.makeup_limit) if p.makeup_limit is not None else None,
        "collateralHeld": float(p.collateral_held),
        "status": p.status,
        "stakeOpen": float(p.stake_open),
        "stakeClosed": float(p.stake_closed),
        "finalResult": float(p.final_result) if p.final_result is not None else None,
        "currentPrice": float(p.current_price) if p.current_price is not None else None,
        "profitLoss": float(p.profit_loss),
        "accountType": p.account_type,
        "timestamp": p.timestamp.isoformat(),
        "settledAt": p.settled_at.isoformat() if p.settled_at else None,
    }


def _account_json(a: UserAccount) -> dict:
    return {
        "userId": a.user_id,
        "accountType": a.account_type,
        "balance": float(a.balance),
        "virtualBalance": float(a.virtual_balance),
        "walletBalance": float(a.wallet_balance),
        "betsPlaced": a.bets_placed,
        "walletAddress": a.wallet_address,
        "walletConnectedAt": a.wallet_connected_at.isoformat() if a.wallet_connected_at else None,
    }


def _close_json(r: CloseResult) -> dict:
    return {
        "position": _position_json(r.position),
        "profitLoss": float(r.profit_loss),
        "collateralReleased": float(r.collateral_released),
        "amountCredited": float(r.amount_credited),
        "closedStake": float(r.closed_stake),
        "remainingStake": float(r.remaining_stake),
        "newStatus": r.new_status,
    }


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}


# ═══════════════════════════════════════════════════════════════
# Accounts
# ═══════════════════════════════════════════════════════════════


class UpgradeRequest(BaseModel):
    wallet_address: str


@app.get("/api/accounts/{user_id}")
def get_account(user_id: str, service: SettlementService = Depends(get_service)):
    """Account balances; a free account is created on first access."""
    return _account_json(service.get_account(user_id))


@app.get("/api/accounts/{user_id}/summary")
def get_account_summary(user_id: str, service: SettlementService = Depends(get_service)):
    """Balance, locked collateral and realised P&L."""
    s = service.summary(user_id)
    return {
        "userId": s["user_id"],
        "accountType": s["account_type"],
        "balance": float(s["balance"]),
        "lockedCollateral": float(s["locked_collateral"]),
        "realisedPnl": float(s["realised_pnl"]),
        "openPositions": s["open_positions"],
        "settledPositions": s["settled_positions"],
        "betsPlaced": s["bets_placed"],
        "promptUpgrade": s["prompt_upgrade"],
    }


@app.post("/api/accounts/{user_id}/upgrade")
def upgrade_account(
    user_id: str,
    req: UpgradeRequest,
    service: SettlementService = Depends(get_service),
):
    """Switch a free account to cash mode."""
    try:
        account = service.upgrade_account(user_id, req.wallet_address)
    except SettlementError as exc:
        _raise_http(exc)
    return _account_json(account)


# ═══════════════════════════════════════════════════════════════
# Positions
# ═══════════════════════════════════════════════════════════════


class PlaceBetRequest(BaseModel):
    user_id: str
    match_id: str
    bet_type: Literal["buy", "sell"]
    price: float
    stake_per_point: float = Field(gt=0)
    makeup_limit: Optional[float] = Field(default=None, ge=0)
    market: Optional[str] = None
    match_name: Optional[str] = None


class ClosePositionRequest(BaseModel):
    percent: float = 100
    current_price: float


class GradeEventRequest(BaseModel):
    final_result: float
    sport: Optional[str] = None


@app.get("/api/positions")
def list_positions(
    user_id: Optional[str] = None,
    match_id: Optional[str] = None,
    status: Optional[str] = None,
    service: SettlementService = Depends(get_service),
):
    """List positions filtered by user, match and status."""
    statuses = [status] if status else None
    positions = service.store.list_positions(user_id=user_id, match_id=match_id, statuses=statuses)
    return {"positions": [_position_json(p) for p in positions]}


@app.get("/api/positions/{position_id}")
def get_position(position_id: str, service: SettlementService = Depends(get_service)):
    """Single position by id."""
    pos = service.store.get_position(position_id)
    if pos is None:
        raise HTTPException(status_code=404, detail="Position not found")
    return _position_json(pos)


@app.post("/api/positions", status_code=201)
def place_bet(req: PlaceBetRequest, service: SettlementService = Depends(get_service)):
    """Open a position, reserving its collateral."""
    try:
        pos = service.place_bet(
            user_id=req.user_id,
            match_id=req.match_id,
            bet_type=req.bet_type,
            price=req.price,
            stake_per_point=req.stake_per_point,
            makeup_limit=req.makeup_limit,
            market=req.market,
            match_name=req.match_name,
        )
    except SettlementError as exc:
        _raise_http(exc)
    return _position_json(pos)


@app.post("/api/positions/{position_id}/close")
def close_position(
    position_id: str,
    req: ClosePositionRequest,
    service: SettlementService = Depends(get_service),
):
    """Close a percentage of a live position at the current price."""
    try:
        result = service.close_position(position_id, req.percent, req.current_price)
    except SettlementError as exc:
        _raise_http(exc)
    if result is None:
        raise HTTPException(status_code=409, detail=ALREADY_TERMINAL)
    return _close_json(result)


@app.post("/api/positions/{position_id}/cancel")
def cancel_position(position_id: str, service: SettlementService = Depends(get_service)):
    """Cancel an untouched open position."""
    try:
        result = service.cancel_position(position_id)
    except SettlementError as exc:
        _raise_http(exc)
    if result is None:
        raise HTTPException(status_code=409, detail=ALREADY_TERMINAL)
    return _close_json(result)


# ═══════════════════════════════════════════════════════════════
# Grading
# ═══════════════════════════════════════════════════════════════


@app.post("/api/events/{event_id}/grade")
def grade_event(
    event_id: str,
    req: GradeEventRequest,
    service: SettlementService = Depends(get_service),
):
    """Manually grade an event at its final result."""
    try:
        results = service.grade_event(event_id, req.final_result, sport=req.sport, method="manual")
    except SettlementError as exc:
        _raise_http(exc)
    return {
        "eventId": event_id,
        "graded": sum(1 for r in results if r.success),
        "results": [
            {
                "positionId": r.position_id,
                "userId": r.user_id,
                "profitLoss": float(r.profit_loss),
                "collateralReleased": float(r.collateral_released),
                "amountCredited": float(r.amount_credited),
                "success": r.success,
                "message": r.message,
            }
            for r in results
        ],
    }
