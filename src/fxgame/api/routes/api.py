"""JSON API endpoints: rates, player, predictions, leaderboard."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

import structlog
from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from fxgame.exceptions import AlreadyOpen, InvalidHorizon, InvalidStake, NoRate
from fxgame.models import Direction, OpenPrediction, PlayerState, ResolvedPrediction
from fxgame.session import GameSession

log = structlog.get_logger(__name__)

router = APIRouter()


class PredictionRequest(BaseModel):
    instrument: str
    direction: Direction
    stake: Decimal
    horizon: float


def _session(request: Request) -> GameSession:
    return request.app.state.session


def _decimal_to_str(obj: Any) -> Any:
    """Recursively convert Decimal values to strings for JSON serialization."""
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, dict):
        return {k: _decimal_to_str(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_decimal_to_str(item) for item in obj]
    return obj


def player_to_dict(state: PlayerState) -> dict[str, Any]:
    return {
        "username": state.username,
        "credits": str(state.credits),
        "wins": state.wins,
        "losses": state.losses,
        "current_streak": state.current_streak,
        "best_streak": state.best_streak,
        "total_xp": state.total_xp,
        "badges": list(state.badges),
    }


def prediction_to_dict(prediction: OpenPrediction | ResolvedPrediction) -> dict[str, Any]:
    placed = prediction.placed if isinstance(prediction, ResolvedPrediction) else prediction
    data: dict[str, Any] = {
        "id": placed.id,
        "status": prediction.status.value,
        "instrument": placed.instrument,
        "direction": placed.direction.value,
        "stake": str(placed.stake),
        "start_rate": str(placed.start_rate),
        "start_time": placed.start_time,
        "horizon": placed.horizon,
        "end_time": placed.end_time,
    }
    if isinstance(prediction, ResolvedPrediction):
        outcome = prediction.outcome
        data.update(
            {
                "end_rate": str(prediction.end_rate),
                "resolved_at": prediction.resolved_at,
                "percent_move": str(outcome.percent_move),
                "correct": outcome.correct,
                "multiplier": str(outcome.multiplier),
                "credit_delta": str(outcome.credit_delta),
                "xp_earned": outcome.xp_earned,
            }
        )
    return data


@router.get("/rates")
async def get_rates(request: Request) -> JSONResponse:
    """Current rate per tracked instrument and the active feed mode."""
    session = _session(request)
    return JSONResponse(
        content={
            "mode": session.feed.mode.value,
            "timestamp": session.clock.now(),
            "rates": _decimal_to_str(session.feed.rates()),
        }
    )


@router.get("/rates/{instrument}/history")
async def get_rate_history(request: Request, instrument: str, points: int = 100) -> JSONResponse:
    """Most recent samples for one instrument, oldest first."""
    session = _session(request)
    if instrument not in session.feed.instruments:
        raise HTTPException(status_code=404, detail=f"Unknown instrument {instrument}")
    samples = session.feed.history(instrument, max(1, min(points, session.history.max_samples)))
    return JSONResponse(
        content=[{"timestamp": s.timestamp, "rate": str(s.rate)} for s in samples]
    )


@router.get("/player")
async def get_player(request: Request) -> JSONResponse:
    session = _session(request)
    return JSONResponse(content=player_to_dict(session.lifecycle.player))


@router.post("/player/reset")
async def reset_player(request: Request) -> JSONResponse:
    """Reset credits and counters to defaults. Refused while a prediction is open."""
    session = _session(request)
    try:
        state = await session.lifecycle.reset_ledger(session.settings.game.initial_credits)
    except AlreadyOpen as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    log.info("player_reset_via_api", username=state.username)
    return JSONResponse(content=player_to_dict(state))


@router.get("/predictions/current")
async def get_current_prediction(request: Request) -> JSONResponse:
    """The open prediction with time remaining, else the last resolved one."""
    lifecycle = _session(request).lifecycle
    current = lifecycle.current
    if current is not None:
        data = prediction_to_dict(current)
        data["time_remaining"] = lifecycle.time_remaining()
        return JSONResponse(content=data)
    if lifecycle.last_resolved is not None:
        return JSONResponse(content=prediction_to_dict(lifecycle.last_resolved))
    return JSONResponse(content=None)


@router.post("/predictions", status_code=201)
async def place_prediction(request: Request, body: PredictionRequest) -> JSONResponse:
    session = _session(request)
    allowed = session.settings.game.allowed_horizons
    if allowed and body.horizon not in allowed:
        raise HTTPException(
            status_code=400,
            detail=f"Horizon must be one of {allowed}, got {body.horizon}",
        )

    try:
        prediction = await session.lifecycle.place(
            body.instrument, body.direction, body.stake, body.horizon
        )
    except (InvalidStake, InvalidHorizon) as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except AlreadyOpen as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except NoRate as e:
        raise HTTPException(status_code=404, detail=str(e)) from e

    return JSONResponse(status_code=201, content=prediction_to_dict(prediction))


@router.get("/leaderboard")
async def get_leaderboard(request: Request) -> JSONResponse:
    """Remote leaderboard; empty when the backend is disabled or unreachable."""
    entries = await _session(request).leaderboard()
    return JSONResponse(
        content=[
            {"rank": e.rank, "username": e.username, "score": str(e.score)} for e in entries
        ]
    )
