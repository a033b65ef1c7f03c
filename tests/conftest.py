import random
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from game.session_registry import GameSessionRegistry, get_game_sessions
from main import app
from models.trivia import (
    AdData, AdInteractionRecord, GameSessionRecord, HauntConfig, LeaderboardEntry,
    QuestionPerformanceRecord, Sidequest, SidequestProgress, TriviaQuestion,
)
from services.firestore_service import get_firestore_service
from services.kv_store import InMemoryKeyValueStore, get_local_store


class FakeFirestoreService:
    """
    Dict-backed stand-in for FirestoreService with the same async surface.
    Method names listed in `failing` raise RuntimeError when called.
    """

    def __init__(self):
        self.haunts: Dict[str, HauntConfig] = {}
        self.custom_questions: Dict[str, List[Dict[str, Any]]] = {}
        self.packs: Dict[str, List[Dict[str, Any]]] = {}
        self.ads: Dict[str, List[AdData]] = {}
        self.leaderboards: Dict[str, List[Dict[str, Any]]] = {}
        self.sidequests: Dict[str, Sidequest] = {}
        self.progress: Dict[str, SidequestProgress] = {}
        self.sessions: Dict[str, Dict[str, Any]] = {}
        self.session_records: List[GameSessionRecord] = []
        self.ad_interactions: List[Dict[str, Any]] = []
        self.ad_records: List[AdInteractionRecord] = []
        self.question_results: List[Dict[str, Any]] = []
        self.question_records: List[QuestionPerformanceRecord] = []
        self.failing: set = set()
        self._ids = 0

    def _check(self, name: str):
        if name in self.failing:
            raise RuntimeError(f"{name} unavailable")

    def _next_id(self, prefix: str) -> str:
        self._ids += 1
        return f"{prefix}-{self._ids}"

    async def get_haunt_config(self, haunt_id: str) -> Optional[HauntConfig]:
        self._check("get_haunt_config")
        return self.haunts.get(haunt_id)

    async def save_haunt_config(self, config: HauntConfig):
        self._check("save_haunt_config")
        existing = self.haunts.get(config.id)
        if existing:
            config = existing.model_copy(update=config.model_dump(exclude_unset=True))
        self.haunts[config.id] = config

    async def set_trivia_packs(self, haunt_id: str, pack_ids: List[str]):
        self._check("set_trivia_packs")
        self.haunts[haunt_id] = self.haunts[haunt_id].model_copy(update={"trivia_packs": pack_ids})

    async def get_all_haunts(self) -> List[HauntConfig]:
        self._check("get_all_haunts")
        return list(self.haunts.values())

    async def get_custom_questions(self, haunt_id: str) -> List[Dict[str, Any]]:
        self._check("get_custom_questions")
        return list(self.custom_questions.get(haunt_id, []))

    async def get_pack_questions(self, pack_id: str) -> List[Dict[str, Any]]:
        self._check("get_pack_questions")
        return list(self.packs.get(pack_id, []))

    async def replace_custom_questions(self, haunt_id: str, questions: List[TriviaQuestion]) -> int:
        self._check("replace_custom_questions")
        self.custom_questions[haunt_id] = [
            {"id": self._next_id("cq"), **q.model_dump(by_alias=True, exclude={"id"})} for q in questions
        ]
        return len(questions)

    async def get_ads(self, haunt_id: str) -> List[AdData]:
        self._check("get_ads")
        return list(self.ads.get(haunt_id, []))

    async def save_ad(self, haunt_id: str, data: Dict[str, Any], ad_id: Optional[str] = None) -> str:
        self._check("save_ad")
        ads = self.ads.setdefault(haunt_id, [])
        if ad_id:
            ads[:] = [a for a in ads if a.id != ad_id]
        ad = AdData.model_validate({**data, "id": ad_id or self._next_id("ad")})
        ads.append(ad)
        return ad.id

    async def delete_ad(self, haunt_id: str, ad_id: str):
        self._check("delete_ad")
        self.ads[haunt_id] = [a for a in self.ads.get(haunt_id, []) if a.id != ad_id]

    async def save_leaderboard_entry(self, haunt_id: str, entry: LeaderboardEntry) -> str:
        self._check("save_leaderboard_entry")
        entry_id = self._next_id("entry")
        self.leaderboards.setdefault(haunt_id, []).append(
            {"id": entry_id, "entry": entry, "hidden": False}
        )
        return entry_id

    async def get_leaderboard(self, haunt_id: str, limit: int = 10) -> List[LeaderboardEntry]:
        self._check("get_leaderboard")
        visible = [row["entry"] for row in self.leaderboards.get(haunt_id, []) if not row["hidden"]]
        return sorted(visible, key=lambda e: e.score, reverse=True)[:limit]

    async def set_leaderboard_entry_hidden(self, haunt_id: str, entry_id: str, hidden: bool):
        self._check("set_leaderboard_entry_hidden")
        for row in self.leaderboards.get(haunt_id, []):
            if row["id"] == entry_id:
                row["hidden"] = hidden

    async def get_sidequests(self) -> List[Sidequest]:
        self._check("get_sidequests")
        return [sq for sq in self.sidequests.values() if sq.is_active]

    async def get_sidequest(self, sidequest_id: str) -> Optional[Sidequest]:
        self._check("get_sidequest")
        return self.sidequests.get(sidequest_id)

    async def save_sidequest_progress(self, progress: SidequestProgress):
        self._check("save_sidequest_progress")
        self.progress[progress.document_id] = progress

    async def get_sidequest_progress(self, haunt_id, sidequest_id, session_id) -> Optional[SidequestProgress]:
        self._check("get_sidequest_progress")
        return self.progress.get(f"{haunt_id}_{sidequest_id}_{session_id}")

    async def create_game_session(self, haunt_id, player_id, session_type="individual", group_id=None) -> str:
        self._check("create_game_session")
        session_id = self._next_id("session")
        self.sessions[session_id] = {
            "hauntId": haunt_id,
            "playerId": player_id,
            "sessionType": session_type,
            "groupId": group_id,
            "status": "active",
        }
        return session_id

    async def complete_game_session(self, session_id: str, updates: Dict[str, Any]):
        self._check("complete_game_session")
        self.sessions[session_id].update({**updates, "status": "completed"})

    async def log_ad_interaction(self, haunt_id, session_id, ad_index, ad_id, action):
        self._check("log_ad_interaction")
        self.ad_interactions.append({
            "hauntId": haunt_id,
            "sessionId": session_id,
            "adIndex": ad_index,
            "adId": ad_id,
            "action": action,
        })

    async def log_question_result(self, haunt_id, question_text, question_pack, was_correct):
        self._check("log_question_result")
        self.question_results.append({
            "hauntId": haunt_id,
            "questionText": question_text,
            "questionPack": question_pack,
            "wasCorrect": was_correct,
        })

    async def get_game_sessions(self, haunt_id: str) -> List[GameSessionRecord]:
        self._check("get_game_sessions")
        return [r for r in self.session_records if r.haunt_id == haunt_id]

    async def get_ad_interactions(self, haunt_id: str) -> List[AdInteractionRecord]:
        self._check("get_ad_interactions")
        return [r for r in self.ad_records if r.haunt_id == haunt_id]

    async def get_question_results(self, haunt_id: str) -> List[QuestionPerformanceRecord]:
        self._check("get_question_results")
        return [r for r in self.question_records if r.haunt_id == haunt_id]


def make_question(n: int, correct: int = 0, points: int = 100) -> TriviaQuestion:
    return TriviaQuestion(
        id=f"q{n}",
        text=f"Question {n}?",
        category="Horror",
        answers=["A", "B", "C", "D"],
        correct_answer=correct,
        points=points,
    )


def raw_question(n: int, correct: int = 0) -> Dict[str, Any]:
    return {
        "id": f"raw-{n}",
        "text": f"Raw question {n}?",
        "answers": ["Yes", "No", "Maybe"],
        "correctAnswer": correct,
    }


@pytest.fixture
def rng():
    return random.Random(1337)


@pytest.fixture
def fake_fs():
    return FakeFirestoreService()


@pytest.fixture
def local_store():
    return InMemoryKeyValueStore()


@pytest.fixture
def registry():
    return GameSessionRegistry()


@pytest.fixture
def client(fake_fs, local_store, registry):
    app.dependency_overrides[get_firestore_service] = lambda: fake_fs
    app.dependency_overrides[get_local_store] = lambda: local_store
    app.dependency_overrides[get_game_sessions] = lambda: registry
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
