"""
Game HTTP endpoints — drives GameManager for one play session.

Routes:
  POST   /api/games                         — Load a haunt's pack and start a game
  GET    /api/games/{game_id}               — Current state + phase
  POST   /api/games/{game_id}/answer        — Lock in an answer (answering phase)
  POST   /api/games/{game_id}/next          — Leave feedback (→ question, ad or end)
  POST   /api/games/{game_id}/close-ad      — Dismiss the interstitial
  POST   /api/games/{game_id}/ad-click      — Record an ad click-through
  POST   /api/games/{game_id}/score         — Save final score (once per game)
  POST   /api/games/{game_id}/leaderboard   — Show leaderboard, maybe offer a sidequest
  POST   /api/games/{game_id}/reset         — Same questions, zeroed progress
  POST   /api/games/{game_id}/play-again    — Reshuffled questions, zeroed progress
  DELETE /api/games/{game_id}               — Discard the game
"""
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Response

from game.game_manager import game_manager
from game.haunt_session import validate_haunt_access
from game.session_registry import GameSessionRegistry, PlaySession, get_game_sessions
from game.sidequests import select_random_sidequest, should_trigger_random_sidequest
from models.trivia import AnswerRequest, CreateGameRequest, GamePhase, SaveScoreRequest
from routers.trivia_router import require_valid_haunt
from services import analytics
from services.firestore_service import get_firestore_service
from services.kv_store import KeyValueStore, get_local_store
from services.trivia_loader import initialize_game_state, load_leaderboard

logger = logging.getLogger(__name__)

router = APIRouter(tags=["games"])


def _snapshot(session: PlaySession) -> Dict[str, Any]:
    return {
        "gameId": session.game_id,
        "phase": game_manager.current_phase(session.state).value,
        "state": session.state.model_dump(
            mode="json", by_alias=True, exclude={"haunt_config": {"auth_code"}}
        ),
    }


def _get_session(game_id: str, registry: GameSessionRegistry) -> PlaySession:
    session = registry.get(game_id)
    if not session:
        raise HTTPException(status_code=404, detail="Game not found")
    return session


def _require_phase(session: PlaySession, expected: GamePhase) -> None:
    phase = game_manager.current_phase(session.state)
    if phase != expected:
        raise HTTPException(
            status_code=409,
            detail=f"Game is in {phase.value} phase, expected {expected.value}",
        )


@router.post("/games", status_code=201)
async def create_game(
    body: CreateGameRequest,
    fs=Depends(get_firestore_service),
    registry: GameSessionRegistry = Depends(get_game_sessions),
):
    """Load config, questions and ads for the haunt and open a new game."""
    haunt_id = require_valid_haunt(body.haunt)
    if not await validate_haunt_access(haunt_id, fs):
        raise HTTPException(status_code=403, detail="Haunt is not available")

    state = await initialize_game_state(fs, haunt_id)
    tracking = await analytics.start_session(fs, haunt_id)
    session = registry.create(state, tracking)
    logger.info(
        f"[{session.game_id}] Game started for {haunt_id} "
        f"({len(state.questions)} questions, {len(state.ads)} ads)"
    )
    return _snapshot(session)


@router.get("/games/{game_id}")
async def get_game(game_id: str, registry: GameSessionRegistry = Depends(get_game_sessions)):
    return _snapshot(_get_session(game_id, registry))


@router.post("/games/{game_id}/answer")
async def answer(
    game_id: str,
    body: AnswerRequest,
    fs=Depends(get_firestore_service),
    registry: GameSessionRegistry = Depends(get_game_sessions),
):
    session = _get_session(game_id, registry)
    _require_phase(session, GamePhase.ANSWERING)

    question = game_manager.current_question(session.state)
    new_state = game_manager.select_answer(session.state, body.answer_index)
    if new_state is session.state:
        raise HTTPException(status_code=400, detail="Invalid answer index")

    registry.update(game_id, new_state)
    if session.analytics:
        await analytics.track_question_result(fs, session.analytics, question, new_state.is_correct)
    return _snapshot(session)


@router.post("/games/{game_id}/next")
async def next_question(
    game_id: str,
    fs=Depends(get_firestore_service),
    registry: GameSessionRegistry = Depends(get_game_sessions),
):
    session = _get_session(game_id, registry)
    _require_phase(session, GamePhase.FEEDBACK)

    new_state = game_manager.next_question(session.state)
    registry.update(game_id, new_state)
    if new_state.show_ad and new_state.ads and session.analytics:
        ad = new_state.ads[new_state.current_ad_index]
        await analytics.track_ad_interaction(
            fs, session.analytics, new_state.current_ad_index, "view", ad.id
        )
    return _snapshot(session)


@router.post("/games/{game_id}/close-ad")
async def close_ad(game_id: str, registry: GameSessionRegistry = Depends(get_game_sessions)):
    session = _get_session(game_id, registry)
    _require_phase(session, GamePhase.AD)
    registry.update(game_id, game_manager.close_ad(session.state))
    return _snapshot(session)


@router.post("/games/{game_id}/ad-click")
async def ad_click(
    game_id: str,
    fs=Depends(get_firestore_service),
    registry: GameSessionRegistry = Depends(get_game_sessions),
):
    session = _get_session(game_id, registry)
    _require_phase(session, GamePhase.AD)
    state = session.state
    if not state.ads:
        raise HTTPException(status_code=404, detail="No ad is showing")
    ad = state.ads[state.current_ad_index]
    if session.analytics:
        await analytics.track_ad_interaction(fs, session.analytics, state.current_ad_index, "click", ad.id)
    return {"link": ad.link}


@router.post("/games/{game_id}/score")
async def save_score(
    game_id: str,
    body: SaveScoreRequest,
    fs=Depends(get_firestore_service),
    store: KeyValueStore = Depends(get_local_store),
    registry: GameSessionRegistry = Depends(get_game_sessions),
):
    """
    Persist the final result to the haunt leaderboard.
    When Firestore rejects the write the entry goes to the local
    leaderboard instead, so a finished game is never lost.
    """
    session = _get_session(game_id, registry)
    _require_phase(session, GamePhase.COMPLETE)
    if session.score_saved:
        raise HTTPException(status_code=409, detail="Score already saved for this game")

    state = session.state
    if session.analytics:
        await analytics.complete_session(fs, session.analytics, state)

    entry = game_manager.build_leaderboard_entry(body.player_name, state)
    try:
        await fs.save_leaderboard_entry(state.current_haunt, entry)
        stored_in = "firestore"
    except Exception as exc:
        logger.warning(f"[{game_id}] Leaderboard write failed, saving locally: {exc}")
        entry = game_manager.save_score(body.player_name, state, store)
        stored_in = "local"

    session.score_saved = True
    logger.info(f"[{game_id}] {body.player_name} scored {state.score} at {state.current_haunt} ({stored_in})")
    return {"entry": entry.model_dump(by_alias=True), "storedIn": stored_in}


@router.post("/games/{game_id}/leaderboard")
async def view_leaderboard(
    game_id: str,
    fs=Depends(get_firestore_service),
    store: KeyValueStore = Depends(get_local_store),
    registry: GameSessionRegistry = Depends(get_game_sessions),
):
    session = _get_session(game_id, registry)
    _require_phase(session, GamePhase.COMPLETE)

    state = game_manager.view_leaderboard(session.state)
    registry.update(game_id, state)
    entries = await load_leaderboard(fs, store, state.current_haunt)
    sidequest = (
        select_random_sidequest(state.haunt_config) if should_trigger_random_sidequest() else None
    )
    return {
        **_snapshot(session),
        "leaderboard": [e.model_dump(by_alias=True) for e in entries],
        "sidequest": sidequest,
    }


async def _restart(session: PlaySession, new_state, fs, registry: GameSessionRegistry) -> Dict[str, Any]:
    registry.update(session.game_id, new_state)
    session.score_saved = False
    session.analytics = await analytics.start_session(
        fs,
        new_state.current_haunt,
        player_id=session.analytics.player_id if session.analytics else None,
    )
    return _snapshot(session)


@router.post("/games/{game_id}/reset")
async def reset_game(
    game_id: str,
    fs=Depends(get_firestore_service),
    registry: GameSessionRegistry = Depends(get_game_sessions),
):
    session = _get_session(game_id, registry)
    _require_phase(session, GamePhase.COMPLETE)
    return await _restart(session, game_manager.reset_game(session.state), fs, registry)


@router.post("/games/{game_id}/play-again")
async def play_again(
    game_id: str,
    fs=Depends(get_firestore_service),
    registry: GameSessionRegistry = Depends(get_game_sessions),
):
    session = _get_session(game_id, registry)
    _require_phase(session, GamePhase.COMPLETE)
    return await _restart(session, game_manager.play_again(session.state), fs, registry)


@router.delete("/games/{game_id}", status_code=204)
async def discard_game(game_id: str, registry: GameSessionRegistry = Depends(get_game_sessions)):
    if not registry.discard(game_id):
        raise HTTPException(status_code=404, detail="Game not found")
    return Response(status_code=204)
