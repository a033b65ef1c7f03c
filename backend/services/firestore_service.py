import asyncio
import itertools
import os
import logging
from typing import Optional, List, Dict, Any, Type, TypeVar
from datetime import datetime, timezone

from pydantic import BaseModel

from models.trivia import (
    AdData, AdInteractionRecord, GameSessionRecord, HauntConfig, LeaderboardEntry,
    QuestionPerformanceRecord, Sidequest, SidequestProgress, TriviaQuestion, progress_document_id,
)
from utils.validation import validate_document
from config import settings

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

# Collection names as they exist in the production project (mixed conventions)
HAUNTS = "haunts"
HAUNT_QUESTIONS = "haunt-questions"
TRIVIA_PACKS = "trivia-packs"
HAUNT_ADS = "haunt-ads"
LEGACY_ADS = "ads"
LEADERBOARDS = "leaderboards"
SIDEQUESTS = "sidequests"
SIDEQUEST_PROGRESS = "sidequest-progress"
GAME_SESSIONS = "game_sessions"
AD_INTERACTIONS = "ad_interactions"
QUESTION_PERFORMANCE = "question-performance"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class FirestoreService:
    """
    Async-friendly Firestore wrapper using run_in_executor to avoid
    blocking the event loop. Every document read is schema-validated;
    invalid documents are logged and skipped rather than trusted.
    """

    def __init__(self):
        if settings.firestore_emulator_host:
            os.environ["FIRESTORE_EMULATOR_HOST"] = settings.firestore_emulator_host
        # Lazy import so the service can be instantiated before GCP creds exist
        from google.cloud import firestore
        self._firestore = firestore
        self.db = firestore.Client(project=settings.google_cloud_project or None)

    def _run(self, fn):
        """Run a sync Firestore call in the default thread pool."""
        loop = asyncio.get_running_loop()
        return loop.run_in_executor(None, fn)

    def _parse_docs(self, model: Type[M], docs, collection: str) -> List[M]:
        parsed: List[M] = []
        for doc in docs:
            result = validate_document(model, doc.to_dict(), collection=collection, doc_id=doc.id)
            if result.ok:
                parsed.append(result.value)
            else:
                logger.warning(f"Skipping invalid document: {result.error}")
        return parsed

    def _parse_doc(self, model: Type[M], doc, collection: str) -> Optional[M]:
        if not doc.exists:
            return None
        return next(iter(self._parse_docs(model, [doc], collection)), None)

    # ── Collection helpers ────────────────────────────────────────────────────

    def _haunt_ref(self, haunt_id: str):
        return self.db.collection(HAUNTS).document(haunt_id)

    def _custom_questions_ref(self, haunt_id: str):
        return self.db.collection(HAUNT_QUESTIONS).document(haunt_id).collection("questions")

    def _ads_ref(self, haunt_id: str):
        return self.db.collection(HAUNT_ADS).document(haunt_id).collection("ads")

    def _leaderboard_ref(self, haunt_id: str):
        return self.db.collection(LEADERBOARDS).document(haunt_id).collection("entries")

    # ── Haunt configuration ───────────────────────────────────────────────────

    async def get_haunt_config(self, haunt_id: str) -> Optional[HauntConfig]:
        doc = await self._run(lambda: self._haunt_ref(haunt_id).get())
        return self._parse_doc(HauntConfig, doc, HAUNTS)

    async def save_haunt_config(self, config: HauntConfig):
        """Merge only the fields the caller supplied; stored values survive."""
        data = config.model_dump(mode="json", by_alias=True, exclude_unset=True)
        await self._run(lambda: self._haunt_ref(config.id).set(data, merge=True))

    async def set_trivia_packs(self, haunt_id: str, pack_ids: List[str]):
        await self._run(lambda: self._haunt_ref(haunt_id).update({"triviaPacks": pack_ids}))

    async def get_all_haunts(self) -> List[HauntConfig]:
        docs = await self._run(lambda: list(self.db.collection(HAUNTS).stream()))
        return self._parse_docs(HauntConfig, docs, HAUNTS)

    # ── Questions (raw; normalised by game.question_pack) ─────────────────────

    async def get_custom_questions(self, haunt_id: str) -> List[Dict[str, Any]]:
        docs = await self._run(lambda: list(self._custom_questions_ref(haunt_id).stream()))
        return [{"id": d.id, **d.to_dict()} for d in docs]

    async def get_pack_questions(self, pack_id: str) -> List[Dict[str, Any]]:
        doc = await self._run(lambda: self.db.collection(TRIVIA_PACKS).document(pack_id).get())
        if not doc.exists:
            return []
        questions = (doc.to_dict() or {}).get("questions")
        return [q for q in questions if isinstance(q, dict)] if isinstance(questions, list) else []

    async def replace_custom_questions(self, haunt_id: str, questions: List[TriviaQuestion]) -> int:
        """Swap the haunt's whole custom set in one batch."""
        ref = self._custom_questions_ref(haunt_id)
        stamp = _now_iso()

        def _replace():
            batch = self.db.batch()
            for doc in ref.stream():
                batch.delete(doc.reference)
            for q in questions:
                data = q.model_dump(mode="json", by_alias=True, exclude={"id"})
                batch.set(ref.document(), {**data, "timestamp": stamp})
            batch.commit()

        await self._run(_replace)
        return len(questions)

    # ── Ads ───────────────────────────────────────────────────────────────────

    async def get_ads(self, haunt_id: str) -> List[AdData]:
        """
        Current layout first (haunt-ads/{id}/ads by creation time), then the
        same collection unordered (docs without createdAt), then the two
        legacy layouts: ads/{id}/items and an `ads` array on ads/{id}.
        """
        ref = self._ads_ref(haunt_id)
        docs = await self._run(lambda: list(ref.order_by("createdAt").stream()))
        if not docs:
            docs = await self._run(lambda: list(ref.stream()))
        if not docs:
            legacy_ref = self.db.collection(LEGACY_ADS).document(haunt_id)
            docs = await self._run(lambda: list(legacy_ref.collection("items").stream()))
            if not docs:
                legacy_doc = await self._run(lambda: legacy_ref.get())
                items = (legacy_doc.to_dict() or {}).get("ads") if legacy_doc.exists else None
                if not isinstance(items, list):
                    return []
                ads = []
                for index, item in enumerate(items):
                    result = validate_document(
                        AdData, {"id": f"ad-{index}", **(item or {})},
                        collection=LEGACY_ADS, doc_id=haunt_id,
                    )
                    if result.ok:
                        ads.append(result.value)
                    else:
                        logger.warning(f"Skipping invalid document: {result.error}")
                return ads
        return self._parse_docs(AdData, docs, HAUNT_ADS)

    async def save_ad(self, haunt_id: str, data: Dict[str, Any], ad_id: Optional[str] = None) -> str:
        """Update `ad_id` in place, or add a new ad when no id is given."""
        ref = self._ads_ref(haunt_id)
        if ad_id:
            await self._run(lambda: ref.document(ad_id).set(data, merge=True))
            return ad_id
        _, doc_ref = await self._run(lambda: ref.add({**data, "createdAt": _now_iso()}))
        return doc_ref.id

    async def delete_ad(self, haunt_id: str, ad_id: str):
        await self._run(lambda: self._ads_ref(haunt_id).document(ad_id).delete())

    # ── Leaderboards ──────────────────────────────────────────────────────────

    async def save_leaderboard_entry(self, haunt_id: str, entry: LeaderboardEntry) -> str:
        data = {**entry.model_dump(by_alias=True), "hidden": False, "timestamp": _now_iso()}
        _, ref = await self._run(lambda: self._leaderboard_ref(haunt_id).add(data))
        return ref.id

    async def get_leaderboard(self, haunt_id: str, limit: int = 10) -> List[LeaderboardEntry]:
        """Top `limit` visible entries by score; moderated entries are skipped."""
        query = self._leaderboard_ref(haunt_id).order_by(
            "score", direction=self._firestore.Query.DESCENDING
        )
        docs = await self._run(lambda: list(itertools.islice(
            (d for d in query.stream() if not (d.to_dict() or {}).get("hidden")), limit
        )))
        return self._parse_docs(LeaderboardEntry, docs, LEADERBOARDS)

    async def set_leaderboard_entry_hidden(self, haunt_id: str, entry_id: str, hidden: bool):
        await self._run(lambda: self._leaderboard_ref(haunt_id).document(entry_id).update({
            "hidden": hidden,
            "moderatedAt": _now_iso(),
        }))

    # ── Sidequests ────────────────────────────────────────────────────────────

    async def get_sidequests(self) -> List[Sidequest]:
        """Active sidequests only."""
        docs = await self._run(
            lambda: list(self.db.collection(SIDEQUESTS).where("isActive", "==", True).stream())
        )
        return self._parse_docs(Sidequest, docs, SIDEQUESTS)

    async def get_sidequest(self, sidequest_id: str) -> Optional[Sidequest]:
        doc = await self._run(lambda: self.db.collection(SIDEQUESTS).document(sidequest_id).get())
        return self._parse_doc(Sidequest, doc, SIDEQUESTS)

    async def save_sidequest_progress(self, progress: SidequestProgress):
        data = {**progress.model_dump(by_alias=True), "updatedAt": _now_iso()}
        await self._run(
            lambda: self.db.collection(SIDEQUEST_PROGRESS).document(progress.document_id).set(data, merge=True)
        )

    async def get_sidequest_progress(
        self, haunt_id: str, sidequest_id: str, session_id: str
    ) -> Optional[SidequestProgress]:
        doc_id = progress_document_id(haunt_id, sidequest_id, session_id)
        doc = await self._run(lambda: self.db.collection(SIDEQUEST_PROGRESS).document(doc_id).get())
        return self._parse_doc(SidequestProgress, doc, SIDEQUEST_PROGRESS)

    # ── Analytics (append-only) ───────────────────────────────────────────────

    async def create_game_session(
        self,
        haunt_id: str,
        player_id: str,
        session_type: str = "individual",
        group_id: Optional[str] = None,
    ) -> str:
        ref = self.db.collection(GAME_SESSIONS).document()
        data = {
            "hauntId": haunt_id,
            "playerId": player_id,
            "sessionType": session_type,
            "groupId": group_id,
            "questionsAnswered": 0,
            "correctAnswers": 0,
            "finalScore": 0,
            "startedAt": _now_iso(),
            "status": "active",
        }
        await self._run(lambda: ref.set(data))
        return ref.id

    async def complete_game_session(self, session_id: str, updates: Dict[str, Any]):
        data = {**updates, "completedAt": _now_iso(), "status": "completed"}
        await self._run(lambda: self.db.collection(GAME_SESSIONS).document(session_id).update(data))

    async def log_ad_interaction(
        self,
        haunt_id: str,
        session_id: Optional[str],
        ad_index: int,
        ad_id: str,
        action: str,
    ):
        data = {
            "hauntId": haunt_id,
            "haunt": haunt_id,
            "sessionId": session_id,
            "adIndex": ad_index,
            "adId": ad_id,
            "action": action,
            "timestamp": _now_iso(),
        }
        await self._run(lambda: self.db.collection(AD_INTERACTIONS).document().set(data))

    async def log_question_result(
        self, haunt_id: str, question_text: str, question_pack: str, was_correct: bool
    ):
        data = {
            "hauntId": haunt_id,
            "questionText": question_text,
            "questionPack": question_pack,
            "wasCorrect": was_correct,
            "timestamp": _now_iso(),
        }
        await self._run(lambda: self.db.collection(QUESTION_PERFORMANCE).document().set(data))

    async def _records_for_haunt(self, collection: str, model: Type[M], haunt_id: str) -> List[M]:
        docs = await self._run(
            lambda: list(self.db.collection(collection).where("hauntId", "==", haunt_id).stream())
        )
        return self._parse_docs(model, docs, collection)

    async def get_game_sessions(self, haunt_id: str) -> List[GameSessionRecord]:
        return await self._records_for_haunt(GAME_SESSIONS, GameSessionRecord, haunt_id)

    async def get_ad_interactions(self, haunt_id: str) -> List[AdInteractionRecord]:
        return await self._records_for_haunt(AD_INTERACTIONS, AdInteractionRecord, haunt_id)

    async def get_question_results(self, haunt_id: str) -> List[QuestionPerformanceRecord]:
        return await self._records_for_haunt(QUESTION_PERFORMANCE, QuestionPerformanceRecord, haunt_id)


_firestore_service: Optional["FirestoreService"] = None


def get_firestore_service() -> "FirestoreService":
    """Lazy singleton — initialised on first call, not at import time.
    This prevents credential errors from crashing the app before FastAPI boots.
    Use as a FastAPI dependency: Depends(get_firestore_service)
    """
    global _firestore_service
    if _firestore_service is None:
        _firestore_service = FirestoreService()
    return _firestore_service
