"""
Haunt admin HTTP endpoints — content management for haunt owners and the
platform admin.

Routes:
  POST   /api/haunt-config/{haunt_id}        — Save (merge) a haunt's config
  POST   /api/haunt-config                   — Same, id taken from the body
  GET    /api/custom-questions/{haunt_id}    — Raw custom question documents
  POST   /api/custom-questions/{haunt_id}    — Replace the haunt's custom set
  POST   /api/ads/{haunt_id}                 — Create an ad, or update one by id
  DELETE /api/ads/{haunt_id}/{ad_id}         — Remove an ad
  POST   /api/uber/assign-trivia-pack        — Add a trivia pack to a haunt
"""
import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import ValidationError

from game.question_pack import normalize_questions
from models.trivia import AdUpsertRequest, AssignPackRequest, CustomQuestionsRequest, HauntConfig
from routers.trivia_router import require_valid_haunt
from services.firestore_service import get_firestore_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["admin"])


async def _save_config(config: HauntConfig, fs) -> Dict[str, Any]:
    require_valid_haunt(config.id)
    try:
        await fs.save_haunt_config(config)
    except Exception as exc:
        logger.error(f"[{config.id}] Error saving haunt config: {exc}")
        raise HTTPException(status_code=500, detail="Failed to save configuration")
    logger.info(f"[{config.id}] Haunt config saved")
    return {"success": True}


@router.post("/haunt-config/{haunt_id}")
async def save_haunt_config(
    haunt_id: str,
    body: Dict[str, Any] = Body(...),
    fs=Depends(get_firestore_service),
):
    try:
        config = HauntConfig.model_validate({**body, "id": haunt_id})
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.errors(include_url=False, include_context=False))
    return await _save_config(config, fs)


@router.post("/haunt-config")
async def save_haunt_config_by_body(config: HauntConfig, fs=Depends(get_firestore_service)):
    return await _save_config(config, fs)


@router.get("/custom-questions/{haunt_id}")
async def get_custom_questions(haunt_id: str, fs=Depends(get_firestore_service)):
    require_valid_haunt(haunt_id)
    try:
        questions = await fs.get_custom_questions(haunt_id)
    except Exception as exc:
        logger.error(f"[{haunt_id}] Error fetching custom questions: {exc}")
        raise HTTPException(status_code=500, detail="Failed to fetch custom questions")
    logger.info(f"[{haunt_id}] Loaded {len(questions)} custom questions")
    return questions


@router.post("/custom-questions/{haunt_id}")
async def save_custom_questions(
    haunt_id: str, body: CustomQuestionsRequest, fs=Depends(get_firestore_service)
):
    """Replaces the whole set. Unplayable entries are dropped and counted."""
    require_valid_haunt(haunt_id)
    questions = normalize_questions(body.questions)
    try:
        count = await fs.replace_custom_questions(haunt_id, questions)
    except Exception as exc:
        logger.error(f"[{haunt_id}] Error saving custom questions: {exc}")
        raise HTTPException(status_code=500, detail="Failed to save custom questions")
    logger.info(f"[{haunt_id}] Saved {count} custom questions")
    return {"success": True, "count": count, "dropped": len(body.questions) - count}


@router.post("/ads/{haunt_id}")
async def save_ad(haunt_id: str, ad: AdUpsertRequest, fs=Depends(get_firestore_service)):
    require_valid_haunt(haunt_id)
    data = ad.model_dump(by_alias=True, exclude={"id"})
    try:
        ad_id = await fs.save_ad(haunt_id, data, ad.id)
    except Exception as exc:
        logger.error(f"[{haunt_id}] Error saving ad: {exc}")
        raise HTTPException(status_code=500, detail="Failed to save ad")
    return {"success": True, "id": ad_id}


@router.delete("/ads/{haunt_id}/{ad_id}")
async def delete_ad(haunt_id: str, ad_id: str, fs=Depends(get_firestore_service)):
    require_valid_haunt(haunt_id)
    try:
        await fs.delete_ad(haunt_id, ad_id)
    except Exception as exc:
        logger.error(f"[{haunt_id}] Error deleting ad {ad_id}: {exc}")
        raise HTTPException(status_code=500, detail="Failed to delete ad")
    return {"success": True}


@router.post("/uber/assign-trivia-pack")
async def assign_trivia_pack(body: AssignPackRequest, fs=Depends(get_firestore_service)):
    try:
        config = await fs.get_haunt_config(body.haunt_id)
    except Exception as exc:
        logger.error(f"[{body.haunt_id}] Error loading haunt for pack assignment: {exc}")
        raise HTTPException(status_code=500, detail="Failed to assign trivia pack")
    if not config:
        raise HTTPException(status_code=404, detail="Haunt not found")

    if body.pack_id in config.trivia_packs:
        return {
            "success": True,
            "message": f"Pack {body.pack_id} already assigned to {body.haunt_id}",
            "triviaPacks": config.trivia_packs,
        }

    packs = [*config.trivia_packs, body.pack_id]
    try:
        await fs.set_trivia_packs(body.haunt_id, packs)
    except Exception as exc:
        logger.error(f"[{body.haunt_id}] Error assigning trivia pack: {exc}")
        raise HTTPException(status_code=500, detail="Failed to assign trivia pack")
    logger.info(f"[{body.haunt_id}] Assigned pack {body.pack_id}")
    return {
        "success": True,
        "message": f"Pack {body.pack_id} assigned to {body.haunt_id}",
        "triviaPacks": packs,
    }
