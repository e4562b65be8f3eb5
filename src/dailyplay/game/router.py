"""Daily play game API."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dailyplay.cache import GameCache
from dailyplay.dependencies import get_cache, get_db, get_locks, get_metrics, get_oracle
from dailyplay.game.errors import (
    InvalidReferralCodeError,
    PlayerNotFoundError,
    QuotaExhaustedError,
    ReferralAlreadyAppliedError,
)
from dailyplay.game.guards import require_game_available
from dailyplay.game.leaderboard import MAX_PAGE_SIZE, get_leaderboard
from dailyplay.game.locks import WalletLocks
from dailyplay.game.referral import apply_referral_code, get_referral_info
from dailyplay.game.referral_oracle import BaseReferralOracle
from dailyplay.game.schemas import (
    ApplyReferralRequest,
    ApplyReferralResponse,
    GameStateResponse,
    LeaderboardResponse,
    PlayerStatusResponse,
    PlayHistoryResponse,
    PlaySessionResponse,
    QuotaExhaustedResponse,
    ReferralInfoResponse,
    SubmitScoreRequest,
    SubmitScoreResponse,
    WeeklyResetResponse,
)
from dailyplay.game.service import get_game_state, get_player_history, get_player_status, submit_score
from dailyplay.game.weekly_reset import trigger_reset
from dailyplay.metrics import MetricsSink

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/game", tags=["Game"])


@router.get("/state", response_model=GameStateResponse)
async def game_state(
    db: AsyncSession = Depends(get_db),
    cache: GameCache = Depends(get_cache),
) -> GameStateResponse:
    """Current game state and launch date. Not gated by game state."""
    state = await get_game_state(db, cache)
    return GameStateResponse.model_validate(state)


@router.get(
    "/status/{wallet_address}",
    response_model=PlayerStatusResponse,
    dependencies=[Depends(require_game_available)],
)
async def player_status(
    wallet_address: str,
    db: AsyncSession = Depends(get_db),
    cache: GameCache = Depends(get_cache),
    metrics: MetricsSink = Depends(get_metrics),
) -> PlayerStatusResponse:
    """Plays remaining, streak and the multiplier the next play would get."""
    try:
        status = await get_player_status(db, cache, wallet_address, metrics=metrics)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return PlayerStatusResponse.model_validate(status)


@router.post(
    "/submit",
    response_model=SubmitScoreResponse,
    responses={429: {"model": QuotaExhaustedResponse}},
    dependencies=[Depends(require_game_available)],
)
async def submit(
    body: SubmitScoreRequest,
    db: AsyncSession = Depends(get_db),
    cache: GameCache = Depends(get_cache),
    metrics: MetricsSink = Depends(get_metrics),
    locks: WalletLocks = Depends(get_locks),
) -> SubmitScoreResponse | JSONResponse:
    """Record one play for a wallet."""
    try:
        result = await submit_score(
            db,
            cache,
            body.wallet_address,
            body.score,
            game_data=body.game_data,
            metrics=metrics,
            locks=locks,
        )
    except QuotaExhaustedError as e:
        payload = QuotaExhaustedResponse(
            detail=str(e),
            next_available_at=e.next_available_at,
            seconds_to_next_play=e.seconds_to_next_play,
        )
        headers = {}
        if e.seconds_to_next_play is not None:
            headers["Retry-After"] = str(e.seconds_to_next_play)
        return JSONResponse(status_code=429, content=jsonable_encoder(payload), headers=headers)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except IntegrityError as e:
        logger.warning("Submission conflict for %s: %s", body.wallet_address, e.orig)
        raise HTTPException(status_code=409, detail="Conflicting submission, please retry") from e
    return SubmitScoreResponse.model_validate(result)


@router.get("/leaderboard", response_model=LeaderboardResponse)
async def leaderboard(
    limit: int = Query(10, ge=1, le=MAX_PAGE_SIZE),
    page: int = Query(1, ge=1),
    user_address: str | None = Query(None, max_length=128),
    db: AsyncSession = Depends(get_db),
    cache: GameCache = Depends(get_cache),
    metrics: MetricsSink = Depends(get_metrics),
) -> LeaderboardResponse:
    """Ranked players for the active scoring mode (weekly or lifetime)."""
    board = await get_leaderboard(db, cache, limit=limit, page=page, wallet_address=user_address, metrics=metrics)
    return LeaderboardResponse.model_validate(board)


@router.get(
    "/history/{wallet_address}",
    response_model=PlayHistoryResponse,
    dependencies=[Depends(require_game_available)],
)
async def history(
    wallet_address: str,
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
) -> PlayHistoryResponse:
    """Most recent play sessions, newest first."""
    try:
        sessions = await get_player_history(db, wallet_address, limit)
    except PlayerNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return PlayHistoryResponse(
        wallet_address=wallet_address,
        sessions=[PlaySessionResponse.model_validate(s) for s in sessions],
        total=len(sessions),
    )


@router.post("/referral/apply", response_model=ApplyReferralResponse)
async def apply_referral(
    body: ApplyReferralRequest,
    db: AsyncSession = Depends(get_db),
    cache: GameCache = Depends(get_cache),
    oracle: BaseReferralOracle = Depends(get_oracle),
) -> ApplyReferralResponse:
    """Redeem a referral code for extra plays. One code per wallet."""
    try:
        applied = await apply_referral_code(db, cache, oracle, body.wallet_address, body.code)
    except InvalidReferralCodeError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except (ReferralAlreadyAppliedError, ValueError) as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return ApplyReferralResponse.model_validate(applied)


@router.get("/referral/{wallet_address}", response_model=ReferralInfoResponse)
async def referral_info(
    wallet_address: str,
    db: AsyncSession = Depends(get_db),
) -> ReferralInfoResponse:
    try:
        info = await get_referral_info(db, wallet_address)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return ReferralInfoResponse.model_validate(info)


@router.post("/admin/weekly-reset", response_model=WeeklyResetResponse)
async def weekly_reset(
    db: AsyncSession = Depends(get_db),
    cache: GameCache = Depends(get_cache),
    metrics: MetricsSink = Depends(get_metrics),
) -> WeeklyResetResponse:
    """Run the weekly rollover check now."""
    result = await trigger_reset(db, cache, metrics=metrics)
    return WeeklyResetResponse.model_validate(result)
