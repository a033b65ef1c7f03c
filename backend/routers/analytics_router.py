"""
Analytics HTTP endpoints — session tracking for external clients and the
haunt owner dashboard.

Routes:
  POST /api/analytics/session              — Open a game session record
  PUT  /api/analytics/session/{session_id} — Close it with the final tallies
  POST /api/analytics/ad-interaction       — Log an ad view / click
  GET  /api/analytics/{haunt_id}?timeRange=30d — Dashboard summary
"""
import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from models.trivia import AdInteractionRequest, AnalyticsSessionRequest, AnalyticsSessionUpdate
from routers.trivia_router import require_valid_haunt
from services.analytics import TIME_RANGE_DAYS, summarize_analytics
from services.firestore_service import get_firestore_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.post("/session", status_code=201)
async def create_session(body: AnalyticsSessionRequest, fs=Depends(get_firestore_service)):
    require_valid_haunt(body.haunt_id)
    try:
        session_id = await fs.create_game_session(
            haunt_id=body.haunt_id,
            player_id=body.player_id,
            session_type=body.session_type,
            group_id=body.group_id,
        )
    except Exception as exc:
        logger.error(f"[{body.haunt_id}] Error creating analytics session: {exc}")
        raise HTTPException(status_code=500, detail="Failed to create session")
    return {"sessionId": session_id}


@router.put("/session/{session_id}")
async def complete_session(session_id: str, body: AnalyticsSessionUpdate, fs=Depends(get_firestore_service)):
    try:
        await fs.complete_game_session(session_id, body.model_dump(by_alias=True))
    except Exception as exc:
        logger.error(f"Error completing analytics session {session_id}: {exc}")
        raise HTTPException(status_code=500, detail="Failed to update session")
    return {"success": True}


@router.post("/ad-interaction", status_code=201)
async def ad_interaction(body: AdInteractionRequest, fs=Depends(get_firestore_service)):
    require_valid_haunt(body.haunt)
    try:
        await fs.log_ad_interaction(
            haunt_id=body.haunt,
            session_id=body.session_id,
            ad_index=body.ad_index,
            ad_id=body.ad_id or f"ad-{body.ad_index}",
            action=body.action,
        )
    except Exception as exc:
        logger.error(f"[{body.haunt}] Error logging ad {body.action}: {exc}")
        raise HTTPException(status_code=500, detail="Failed to track ad interaction")
    return {"success": True}


@router.get("/{haunt_id}")
async def dashboard(
    haunt_id: str,
    time_range: str = Query("30d", alias="timeRange"),
    fs=Depends(get_firestore_service),
):
    require_valid_haunt(haunt_id)
    if time_range not in TIME_RANGE_DAYS:
        raise HTTPException(status_code=400, detail=f"Unknown time range: {time_range!r}")
    try:
        sessions, ads, questions = await asyncio.gather(
            fs.get_game_sessions(haunt_id),
            fs.get_ad_interactions(haunt_id),
            fs.get_question_results(haunt_id),
        )
    except Exception as exc:
        logger.error(f"[{haunt_id}] Error fetching analytics: {exc}")
        raise HTTPException(status_code=500, detail="Failed to fetch analytics")
    return summarize_analytics(sessions, ads, questions, time_range=time_range)
