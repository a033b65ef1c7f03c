"""
Haunt content HTTP endpoints.

Routes:
  GET  /api/trivia-questions/{haunt}           — Normalised, shuffled question set
  GET  /api/haunt-config/{haunt_id}            — Public haunt config (auth code stripped)
  GET  /api/ads/{haunt_id}                     — Ad rotation for interstitials
  GET  /api/haunts                             — All haunts (public view)
  GET  /api/haunt/resolve?url=...              — Resolve a haunt id from a shared link
  GET  /api/haunt/{haunt_id}/check             — Exists / active check
  GET  /api/haunt/{haunt_id}/urls              — Shareable link formats
  POST /api/haunt/{haunt_id}/auth              — Access-code check
  GET  /api/leaderboard/{haunt_id}             — Top 10 (local fallback when Firestore is down)
  POST /api/leaderboard/{haunt_id}             — Save a leaderboard entry
  POST /api/moderate/{haunt_id}/{entry_id}     — Hide / unhide a leaderboard entry
"""
import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from pydantic import BaseModel

from config import settings
from game.haunt_urls import generate_haunt_urls, haunt_from_location, is_admin_path, is_valid_haunt_id
from models.trivia import HauntAuthRequest, LeaderboardEntry
from services.firestore_service import get_firestore_service
from services.kv_store import KeyValueStore, get_local_store
from services.trivia_loader import load_haunt_config, load_leaderboard, load_trivia_questions

logger = logging.getLogger(__name__)

router = APIRouter(tags=["haunts"])

_NO_CACHE = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


class ModerationRequest(BaseModel):
    hidden: bool = True


def require_valid_haunt(haunt_id: str) -> str:
    if not is_valid_haunt_id(haunt_id):
        raise HTTPException(status_code=400, detail=f"Invalid haunt id: {haunt_id!r}")
    return haunt_id


@router.get("/trivia-questions/{haunt}")
async def get_trivia_questions(haunt: str, response: Response, fs=Depends(get_firestore_service)):
    """Always answers with a full set; the loader falls back to the emergency pack."""
    require_valid_haunt(haunt)
    for name, value in _NO_CACHE.items():
        response.headers[name] = value
    config = await load_haunt_config(fs, haunt)
    questions = await load_trivia_questions(fs, haunt, config)
    return [q.model_dump(mode="json", by_alias=True) for q in questions]


@router.get("/haunt-config/{haunt_id}")
async def get_haunt_config(haunt_id: str, fs=Depends(get_firestore_service)):
    require_valid_haunt(haunt_id)
    try:
        config = await fs.get_haunt_config(haunt_id)
    except Exception as exc:
        logger.error(f"[{haunt_id}] Failed to get haunt config: {exc}")
        raise HTTPException(status_code=500, detail="Failed to get haunt config")
    if not config:
        raise HTTPException(status_code=404, detail="Haunt config not found")
    return config.to_public()


@router.get("/ads/{haunt_id}")
async def get_ads(haunt_id: str, fs=Depends(get_firestore_service)):
    require_valid_haunt(haunt_id)
    try:
        ads = await fs.get_ads(haunt_id)
    except Exception as exc:
        logger.error(f"[{haunt_id}] Error fetching ads: {exc}")
        raise HTTPException(status_code=500, detail="Failed to fetch ads")
    logger.info(f"[{haunt_id}] Found {len(ads)} ads")
    return [ad.model_dump(mode="json", by_alias=True) for ad in ads]


@router.get("/haunts")
async def list_haunts(fs=Depends(get_firestore_service)):
    try:
        haunts = await fs.get_all_haunts()
    except Exception as exc:
        logger.error(f"Error fetching haunts: {exc}")
        raise HTTPException(status_code=500, detail="Failed to fetch haunts")
    return [h.to_public() for h in haunts]


@router.get("/haunt/resolve")
async def resolve_haunt(url: str = Query(..., description="Full URL the player arrived on")):
    return {
        "hauntId": haunt_from_location(url, default=settings.default_haunt),
        "isAdminPath": is_admin_path(url),
    }


@router.get("/haunt/{haunt_id}/check")
async def check_haunt(haunt_id: str, fs=Depends(get_firestore_service)):
    try:
        config = await fs.get_haunt_config(haunt_id)
    except Exception as exc:
        logger.warning(f"[{haunt_id}] Haunt check failed: {exc}")
        return {"exists": False, "isActive": False}
    return {
        "exists": config is not None,
        "isActive": bool(config and config.is_active),
    }


@router.get("/haunt/{haunt_id}/urls")
async def haunt_urls(haunt_id: str):
    require_valid_haunt(haunt_id)
    return generate_haunt_urls(haunt_id, settings.public_base_url).model_dump()


@router.post("/haunt/{haunt_id}/auth")
async def authenticate_haunt(haunt_id: str, body: HauntAuthRequest, fs=Depends(get_firestore_service)):
    try:
        config = await fs.get_haunt_config(haunt_id)
    except Exception as exc:
        logger.error(f"[{haunt_id}] Failed to load haunt for auth: {exc}")
        raise HTTPException(status_code=500, detail="Failed to authenticate")
    if not config:
        raise HTTPException(status_code=404, detail="Haunt not found")
    if not config.is_active:
        raise HTTPException(status_code=403, detail="Haunt is not active")
    if config.auth_code and config.auth_code != body.auth_code:
        raise HTTPException(status_code=401, detail="Invalid access code")
    return {"success": True, "config": config.to_public()}


@router.get("/leaderboard/{haunt_id}")
async def get_leaderboard(
    haunt_id: str,
    response: Response,
    fs=Depends(get_firestore_service),
    store: KeyValueStore = Depends(get_local_store),
) -> List[Dict[str, Any]]:
    require_valid_haunt(haunt_id)
    response.headers["Cache-Control"] = "no-cache"
    entries = await load_leaderboard(fs, store, haunt_id)
    return [e.model_dump(by_alias=True) for e in entries]


@router.post("/leaderboard/{haunt_id}")
async def save_leaderboard_entry(haunt_id: str, entry: LeaderboardEntry, fs=Depends(get_firestore_service)):
    require_valid_haunt(haunt_id)
    # The path decides which board the entry belongs to
    entry = entry.model_copy(update={"haunt": haunt_id})
    try:
        entry_id = await fs.save_leaderboard_entry(haunt_id, entry)
    except Exception as exc:
        logger.error(f"[{haunt_id}] Error saving leaderboard entry: {exc}")
        raise HTTPException(status_code=500, detail="Failed to save leaderboard entry")
    return {"id": entry_id, **entry.model_dump(by_alias=True)}


@router.post("/moderate/{haunt_id}/{entry_id}")
async def moderate_entry(
    haunt_id: str, entry_id: str, body: ModerationRequest, fs=Depends(get_firestore_service)
):
    try:
        await fs.set_leaderboard_entry_hidden(haunt_id, entry_id, body.hidden)
    except Exception as exc:
        logger.error(f"[{haunt_id}] Error moderating entry {entry_id}: {exc}")
        raise HTTPException(status_code=500, detail="Failed to moderate player")
    return {"success": True}
