"""
Loads everything a game needs for one haunt: config, question pool, ads.

Question sources, in order:
  1. haunt custom questions plus every trivia pack assigned to the haunt
     (mixed on equal footing)
  2. the starter pack, when 1. yields nothing
  3. the built-in emergency set, when Firestore itself fails
The pool is then normalised, topped up and cut to the game size.
"""
import logging
import random
from typing import Any, Dict, List, Optional

from config import settings
from game.game_manager import game_manager
from game.question_pack import build_question_set
from models.trivia import AdData, GameState, HauntConfig, LeaderboardEntry, TriviaQuestion
from services.kv_store import KeyValueStore

logger = logging.getLogger(__name__)


async def _collect_raw_questions(fs, haunt_id: str, config: Optional[HauntConfig]) -> List[Dict[str, Any]]:
    raw = await fs.get_custom_questions(haunt_id)
    if raw:
        logger.info(f"[{haunt_id}] Loaded {len(raw)} custom questions")

    for pack_id in (config.trivia_packs if config else []):
        try:
            pack = await fs.get_pack_questions(pack_id)
        except Exception as exc:
            logger.warning(f"[{haunt_id}] Could not load pack {pack_id}: {exc}")
            continue
        logger.info(f"[{haunt_id}] Loaded {len(pack)} questions from pack {pack_id}")
        raw.extend(pack)

    if not raw:
        logger.info(f"[{haunt_id}] No questions found, falling back to {settings.starter_pack_id}")
        try:
            raw = await fs.get_pack_questions(settings.starter_pack_id)
        except Exception as exc:
            logger.error(f"[{haunt_id}] Failed to load starter pack: {exc}")
    return raw


async def load_trivia_questions(
    fs,
    haunt_id: str,
    config: Optional[HauntConfig] = None,
    rng: Optional[random.Random] = None,
) -> List[TriviaQuestion]:
    try:
        raw = await _collect_raw_questions(fs, haunt_id, config)
    except Exception as exc:
        logger.error(f"[{haunt_id}] Error loading questions from Firestore: {exc}")
        raw = []
    questions = build_question_set(raw, size=settings.questions_per_game, rng=rng)
    logger.info(f"[{haunt_id}] Returning {len(questions)} randomized questions")
    return questions


async def load_ads(fs, haunt_id: str, rng: Optional[random.Random] = None) -> List[AdData]:
    """Shuffled ad rotation; an ad outage just means no interstitial content."""
    try:
        ads = await fs.get_ads(haunt_id)
    except Exception as exc:
        logger.warning(f"[{haunt_id}] Failed to load ads: {exc}")
        return []
    return game_manager.shuffle_array(ads, rng)


async def load_haunt_config(fs, haunt_id: str) -> Optional[HauntConfig]:
    try:
        return await fs.get_haunt_config(haunt_id)
    except Exception as exc:
        logger.warning(f"[{haunt_id}] Failed to load haunt config: {exc}")
        return None


async def initialize_game_state(fs, haunt_id: str, rng: Optional[random.Random] = None) -> GameState:
    """Fresh GameState seeded with the haunt's config, questions and ads."""
    config = await load_haunt_config(fs, haunt_id)
    questions = await load_trivia_questions(fs, haunt_id, config, rng)
    ads = await load_ads(fs, haunt_id, rng)
    return game_manager.create_initial_state(haunt_id).model_copy(update={
        "haunt_config": config,
        "questions": questions,
        "ads": ads,
    })


async def load_leaderboard(fs, store: KeyValueStore, haunt_id: str) -> List[LeaderboardEntry]:
    """Firestore top ten; the local copy stands in when Firestore is unreachable."""
    try:
        return await fs.get_leaderboard(haunt_id, limit=game_manager.LEADERBOARD_SIZE)
    except Exception as exc:
        logger.warning(f"[{haunt_id}] Leaderboard read failed, serving local copy: {exc}")
        return [e for e in game_manager.get_leaderboard(store) if e.haunt == haunt_id]
