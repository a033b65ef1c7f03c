"""
Haunt URL generation and detection.

Some hosts strip query strings from QR-code redirects, so a haunt link is
published in four equivalent forms and resolved with an ordered fallback:

  1. query         ?haunt=Sorcererslair
  2. hash param    #haunt=Sorcererslair
  3. hash direct   #Sorcererslair
  4. path segment  /h/Sorcererslair   (also /game/<id>, /welcome/<id>)
  5. the id preserved in session storage for in-app navigation
  6. the last haunt this browser session was bound to

Candidates that fail is_valid_haunt_id are skipped, not returned.
"""
import logging
import re
from typing import Iterator, Optional
from urllib.parse import parse_qs, unquote, urlsplit

from pydantic import BaseModel

from services.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

HEADQUARTERS = "headquarters"
DEFAULT_BASE_URL = "https://heinoustrivia.com"

PRESERVED_HAUNT_KEY = "preservedHauntParam"
CURRENT_HAUNT_KEY = "currentHaunt"

ADMIN_PATHS = ("admin", "haunt-admin", "analytics", "uber-admin")
HAUNT_PATH_PREFIXES = ("h", "game", "welcome")

_HAUNT_ID_RE = re.compile(r"[A-Za-z0-9_-]{2,50}")


class HauntUrlFormats(BaseModel):
    query: str
    hash: str
    path: str
    direct: str


def generate_haunt_urls(haunt_id: str, base_url: str = DEFAULT_BASE_URL) -> HauntUrlFormats:
    base = base_url.rstrip("/")
    return HauntUrlFormats(
        query=f"{base}/?haunt={haunt_id}",
        hash=f"{base}/#haunt={haunt_id}",
        path=f"{base}/h/{haunt_id}",
        direct=f"{base}/#{haunt_id}",
    )


def is_valid_haunt_id(haunt_id: Optional[str]) -> bool:
    """Alphanumerics, dash and underscore; 2 to 50 characters."""
    return bool(haunt_id) and _HAUNT_ID_RE.fullmatch(haunt_id) is not None


def _path_segments(url: str):
    return urlsplit(url).path.split("/")


def is_admin_path(url: str) -> bool:
    segments = _path_segments(url)
    return len(segments) >= 2 and segments[1] in ADMIN_PATHS


def _url_candidates(url: str) -> Iterator[str]:
    parts = urlsplit(url)

    query_haunt = parse_qs(parts.query).get("haunt")
    if query_haunt:
        yield query_haunt[0]

    fragment = parts.fragment
    if fragment:
        if "haunt=" in fragment:
            hash_haunt = parse_qs(fragment).get("haunt")
            if hash_haunt:
                yield hash_haunt[0]
        elif "=" not in fragment and len(fragment) > 2:
            yield unquote(fragment)

    segments = parts.path.split("/")
    if len(segments) >= 3 and segments[1] in HAUNT_PATH_PREFIXES and segments[2]:
        yield unquote(segments[2])


def extract_haunt_id(url: str, session_store: Optional[KeyValueStore] = None) -> Optional[str]:
    """Resolve the haunt id for a location, or None when nothing usable is found."""
    for candidate in _url_candidates(url):
        if is_valid_haunt_id(candidate):
            return candidate
        logger.debug(f"Ignoring malformed haunt id in URL: {candidate!r}")

    if session_store is not None:
        for key in (PRESERVED_HAUNT_KEY, CURRENT_HAUNT_KEY):
            stored = session_store.get(key)
            if is_valid_haunt_id(stored):
                return stored
    return None


def haunt_from_location(
    url: str,
    session_store: Optional[KeyValueStore] = None,
    default: str = HEADQUARTERS,
) -> str:
    """Like extract_haunt_id but never empty; admin pages carry no haunt context."""
    if is_admin_path(url):
        return default
    return extract_haunt_id(url, session_store) or default


def preserve_haunt_id(session_store: KeyValueStore, haunt_id: str) -> None:
    session_store.set(PRESERVED_HAUNT_KEY, haunt_id)


def clear_preserved_haunt_id(session_store: KeyValueStore) -> None:
    session_store.delete(PRESERVED_HAUNT_KEY)
