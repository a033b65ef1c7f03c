"""
Haunt session isolation.

A browser may visit several haunts; data saved under one must never leak into
another. The guard binds the session to a single haunt and, on a switch,
purges every local key namespaced to the previous one.
"""
import json
import logging
import time
from typing import Optional

from pydantic import ValidationError

from game.haunt_urls import CURRENT_HAUNT_KEY, HEADQUARTERS, is_admin_path
from models.trivia import HauntSession
from services.kv_store import KeyValueStore

logger = logging.getLogger(__name__)


class HauntSessionGuard:
    SESSION_KEY = "heinous_haunt_session"
    # Session-scoped keys dropped whenever the bound haunt is cleared
    SESSION_SCOPED_KEYS = (SESSION_KEY, CURRENT_HAUNT_KEY, "fromWelcomeScreen", "gameState")

    def __init__(self, local_store: KeyValueStore, session_store: KeyValueStore):
        self.local_store = local_store
        self.session_store = session_store

    def get_current_session(self) -> Optional[HauntSession]:
        raw = self.session_store.get(self.SESSION_KEY)
        if not raw:
            return None
        try:
            return HauntSession.model_validate(json.loads(raw))
        except (ValueError, ValidationError):
            return None

    def set_haunt_session(self, haunt_id: str, player_name: Optional[str] = None) -> HauntSession:
        previous = self.get_current_session()
        if previous and previous.haunt_id != haunt_id:
            self.clear_session_data(previous.haunt_id)

        session = HauntSession(
            haunt_id=haunt_id,
            timestamp=int(time.time() * 1000),
            player_name=player_name,
        )
        self.session_store.set(self.SESSION_KEY, session.model_dump_json(by_alias=True))
        self.session_store.set(CURRENT_HAUNT_KEY, haunt_id)
        return session

    def clear_session_data(self, haunt_id: Optional[str] = None) -> None:
        """
        Drop local keys namespaced to `haunt_id` (containing `-<id>-` or
        ending in `-<id>`) plus the session-scoped keys.
        """
        if haunt_id:
            infix, suffix = f"-{haunt_id}-", f"-{haunt_id}"
            for key in self.local_store.keys():
                if infix in key or key.endswith(suffix):
                    self.local_store.delete(key)
        for key in self.SESSION_SCOPED_KEYS:
            self.session_store.delete(key)

    def enforce_haunt_isolation(self, new_haunt_id: str) -> HauntSession:
        current = self.get_current_session()
        if current and current.haunt_id != new_haunt_id:
            logger.info(f"Switching from {current.haunt_id} to {new_haunt_id}, clearing session data")
            self.clear_session_data(current.haunt_id)
        return self.set_haunt_session(new_haunt_id)

    @staticmethod
    def is_admin_path(url: str) -> bool:
        return is_admin_path(url)


async def validate_haunt_access(haunt_id: str, fs) -> bool:
    """
    Headquarters is always open. Any other haunt must exist and not be
    switched off; a failed lookup denies access.
    """
    if haunt_id == HEADQUARTERS:
        return True
    try:
        config = await fs.get_haunt_config(haunt_id)
    except Exception as exc:
        logger.warning(f"[{haunt_id}] Access check failed: {exc}")
        return False
    return config is not None and config.is_active
