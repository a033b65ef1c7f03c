import logging
import time
import uuid
from typing import Callable, Dict, Optional

from pydantic import BaseModel

from config import settings
from models.trivia import GameState
from services.analytics import AnalyticsSession

logger = logging.getLogger(__name__)


class PlaySession(BaseModel):
    game_id: str
    state: GameState
    analytics: Optional[AnalyticsSession] = None
    score_saved: bool = False
    last_seen: float = 0.0  # registry clock reading


class GameSessionRegistry:
    """
    In-process store of live games keyed by game id.
    Safe for asyncio single-threaded event loop (no extra locking needed).
    Games are dropped on DELETE, after `ttl_seconds` without activity, or
    oldest-first once `max_sessions` is reached. Nothing survives a restart.
    """

    def __init__(
        self,
        ttl_seconds: float = 2 * 60 * 60,
        max_sessions: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._sessions: Dict[str, PlaySession] = {}
        self.ttl_seconds = ttl_seconds
        self.max_sessions = max_sessions
        self._clock = clock

    def _prune(self) -> None:
        cutoff = self._clock() - self.ttl_seconds
        stale = [gid for gid, s in self._sessions.items() if s.last_seen < cutoff]
        for game_id in stale:
            del self._sessions[game_id]
        if stale:
            logger.info(f"Evicted {len(stale)} idle games ({len(self)} live)")

    def create(self, state: GameState, analytics: Optional[AnalyticsSession] = None) -> PlaySession:
        self._prune()
        while len(self._sessions) >= self.max_sessions:
            oldest = min(self._sessions.values(), key=lambda s: s.last_seen)
            del self._sessions[oldest.game_id]
            logger.warning(f"[{oldest.game_id}] Evicted, registry full ({self.max_sessions} games)")

        game_id = uuid.uuid4().hex[:12]
        session = PlaySession(game_id=game_id, state=state, analytics=analytics, last_seen=self._clock())
        self._sessions[game_id] = session
        logger.debug(f"[{game_id}] Game created for haunt {state.current_haunt} ({len(self)} live)")
        return session

    def get(self, game_id: str) -> Optional[PlaySession]:
        self._prune()
        session = self._sessions.get(game_id)
        if session:
            session.last_seen = self._clock()
        return session

    def update(self, game_id: str, state: GameState) -> PlaySession:
        session = self._sessions[game_id]
        session.state = state
        session.last_seen = self._clock()
        return session

    def discard(self, game_id: str) -> bool:
        return self._sessions.pop(game_id, None) is not None

    def __len__(self) -> int:
        return len(self._sessions)


# Module-level singleton
game_sessions = GameSessionRegistry(
    ttl_seconds=settings.game_ttl_minutes * 60,
    max_sessions=settings.max_live_games,
)


def get_game_sessions() -> GameSessionRegistry:
    return game_sessions
