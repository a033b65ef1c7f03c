"""
Sidequest HTTP endpoints.

Routes:
  GET  /api/sidequests?tier=Pro                            — Active sidequests, optionally tier-gated
  GET  /api/sidequests/tier/{tier}                         — Sidequest ids unlocked by a tier
  POST /api/sidequests/progress                            — Upsert one player's progress
  GET  /api/sidequests/{id}/progress/{session_id}?hauntId= — Read it back ({} when none)
  GET  /api/sidequests/{id}                                — One sidequest
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from game.sidequests import filter_sidequests_by_tier, get_available_sidequests
from models.trivia import SidequestProgress, Tier
from services.firestore_service import get_firestore_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["sidequests"])


@router.get("/sidequests")
async def list_sidequests(tier: Optional[str] = None, fs=Depends(get_firestore_service)):
    try:
        sidequests = await fs.get_sidequests()
    except Exception as exc:
        logger.error(f"Error fetching sidequests: {exc}")
        raise HTTPException(status_code=500, detail="Failed to fetch sidequests")
    if tier:
        sidequests = filter_sidequests_by_tier(sidequests, tier)
    return [sq.model_dump(by_alias=True) for sq in sidequests]


@router.get("/sidequests/tier/{tier}")
async def sidequests_for_tier(tier: str):
    try:
        level = Tier(tier.lower())
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown tier: {tier!r}")
    return {"tier": level.value, "sidequests": get_available_sidequests(level)}


@router.post("/sidequests/progress")
async def save_progress(progress: SidequestProgress, fs=Depends(get_firestore_service)):
    try:
        await fs.save_sidequest_progress(progress)
    except Exception as exc:
        logger.error(f"[{progress.haunt_id}] Error saving progress for {progress.sidequest_id}: {exc}")
        raise HTTPException(status_code=500, detail="Failed to save sidequest progress")
    return {"success": True, "id": progress.document_id}


@router.get("/sidequests/{sidequest_id}/progress/{session_id}")
async def get_progress(
    sidequest_id: str,
    session_id: str,
    haunt_id: str = Query(..., alias="hauntId"),
    fs=Depends(get_firestore_service),
):
    try:
        progress = await fs.get_sidequest_progress(haunt_id, sidequest_id, session_id)
    except Exception as exc:
        logger.error(f"[{haunt_id}] Error fetching progress for {sidequest_id}: {exc}")
        raise HTTPException(status_code=500, detail="Failed to fetch sidequest progress")
    return progress.model_dump(by_alias=True) if progress else {}


@router.get("/sidequests/{sidequest_id}")
async def get_sidequest(sidequest_id: str, fs=Depends(get_firestore_service)):
    try:
        sidequest = await fs.get_sidequest(sidequest_id)
    except Exception as exc:
        logger.error(f"Error fetching sidequest {sidequest_id}: {exc}")
        raise HTTPException(status_code=500, detail="Failed to fetch sidequest")
    if not sidequest:
        raise HTTPException(status_code=404, detail="Sidequest not found")
    return sidequest.model_dump(by_alias=True)
