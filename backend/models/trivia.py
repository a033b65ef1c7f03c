from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional, List, Dict, Any, Literal
from enum import Enum
from datetime import datetime, timezone


def _utcnow() -> datetime:
    """Timezone-aware UTC datetime (replaces deprecated datetime.utcnow)."""
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """
    Base for every document shared with Firestore or the React client.
    Both store camelCase keys; attributes stay snake_case. Either spelling
    is accepted on input, dumps use the camelCase alias.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class Tier(str, Enum):
    BASIC = "basic"
    PRO = "pro"
    PREMIUM = "premium"


class GamePhase(str, Enum):
    ANSWERING = "answering"
    FEEDBACK = "feedback"
    AD = "ad"
    COMPLETE = "complete"


# ── Haunt (tenant) configuration ──────────────────────────────────────────────

class HauntTheme(CamelModel):
    primary_color: str = "#8B0000"
    secondary_color: str = "#2D1B69"
    accent_color: str = "#FF6B35"


class HauntConfig(CamelModel):
    id: str
    name: str = ""
    description: str = ""
    logo_path: str = ""
    tier: Tier = Tier.BASIC
    mode: Literal["individual", "queue"] = "individual"
    theme: HauntTheme = Field(default_factory=HauntTheme)
    progress_bar_theme: Optional[str] = None
    is_active: bool = True
    is_published: bool = True
    auth_code: Optional[str] = None
    trivia_packs: List[str] = []

    @field_validator("tier", mode="before")
    @classmethod
    def _coerce_tier(cls, value: Any) -> Any:
        # Legacy documents store "Pro"/"Premium" or nothing at all
        if isinstance(value, Tier):
            return value
        if isinstance(value, str) and value.lower() in {t.value for t in Tier}:
            return value.lower()
        return Tier.BASIC

    @field_validator("mode", mode="before")
    @classmethod
    def _coerce_mode(cls, value: Any) -> Any:
        return "queue" if value == "queue" else "individual"

    def to_public(self) -> Dict[str, Any]:
        """Client-safe representation without the auth code."""
        return self.model_dump(mode="json", by_alias=True, exclude={"auth_code"})


# ── Question packs and ads ────────────────────────────────────────────────────

class TriviaQuestion(CamelModel):
    id: str
    text: str
    category: str = "General"
    difficulty: Optional[int] = Field(default=None, ge=1, le=5)
    answers: List[str] = Field(min_length=2)
    correct_answer: int = Field(ge=0)
    explanation: str = ""
    points: int = 100


class AdData(CamelModel):
    id: str
    title: str = ""
    description: str = ""
    image_url: str = Field(
        default="",
        validation_alias=AliasChoices("imageUrl", "image", "image_url"),
        serialization_alias="imageUrl",
    )
    link: Optional[str] = None
    duration: int = 5000  # ms


class LeaderboardEntry(CamelModel):
    name: str
    score: int
    date: str  # ISO-8601
    haunt: str
    questions_answered: int = 0
    correct_answers: int = 0


# ── Game state (one per play session) ─────────────────────────────────────────

class GameState(CamelModel):
    current_haunt: str
    haunt_config: Optional[HauntConfig] = None
    score: int = 0
    current_question_index: int = 0
    questions: List[TriviaQuestion] = []
    ads: List[AdData] = []
    selected_answer: Optional[int] = None
    show_feedback: bool = False
    is_correct: bool = False
    game_complete: bool = False
    show_ad: bool = False
    show_leaderboard: bool = False
    show_end_screen: bool = False
    correct_answers: int = 0
    questions_answered: int = 0
    current_ad_index: int = 0


class HauntSession(CamelModel):
    haunt_id: str
    timestamp: int  # epoch ms
    player_name: Optional[str] = None


# ── Sidequests ────────────────────────────────────────────────────────────────

class Sidequest(CamelModel):
    id: str
    name: str = ""
    description: str = ""
    required_tier: str = "Basic"
    is_active: bool = True
    config: Dict[str, Any] = {}


class SidequestProgress(CamelModel):
    haunt_id: str
    sidequest_id: str
    session_id: str
    progress: Dict[str, Any] = {}
    completed: bool = False
    score: int = 0
    updated_at: Optional[str] = None

    @property
    def document_id(self) -> str:
        return progress_document_id(self.haunt_id, self.sidequest_id, self.session_id)


def progress_document_id(haunt_id: str, sidequest_id: str, session_id: str) -> str:
    return f"{haunt_id}_{sidequest_id}_{session_id}"


# ── Analytics records (read back for the dashboard) ───────────────────────────

class GameSessionRecord(CamelModel):
    id: str = ""
    haunt_id: str
    player_id: str = ""
    session_type: Literal["individual", "group"] = "individual"
    group_id: Optional[str] = None
    started_at: datetime = Field(default_factory=_utcnow)
    completed_at: Optional[datetime] = None
    questions_answered: int = 0
    correct_answers: int = 0
    final_score: int = 0


class AdInteractionRecord(CamelModel):
    haunt_id: str
    session_id: Optional[str] = None
    ad_index: int = 0
    ad_id: str = ""
    action: Literal["view", "click"]
    timestamp: datetime = Field(default_factory=_utcnow)


class QuestionPerformanceRecord(CamelModel):
    haunt_id: str
    question_text: str
    question_pack: str = ""
    was_correct: bool = False
    timestamp: datetime = Field(default_factory=_utcnow)


# ── HTTP request/response models ──────────────────────────────────────────────

class CreateGameRequest(CamelModel):
    haunt: str


class AnswerRequest(CamelModel):
    answer_index: int


class SaveScoreRequest(CamelModel):
    player_name: str = Field(min_length=1, max_length=30)


class HauntAuthRequest(CamelModel):
    auth_code: Optional[str] = None


class AnalyticsSessionRequest(CamelModel):
    haunt_id: str
    player_id: str
    session_type: Literal["individual", "group"] = "individual"
    group_id: Optional[str] = None


class AnalyticsSessionUpdate(CamelModel):
    questions_answered: int = 0
    correct_answers: int = 0
    final_score: int = 0


class AdInteractionRequest(CamelModel):
    haunt: str
    session_id: Optional[str] = None
    ad_index: int = 0
    ad_id: Optional[str] = None
    action: Literal["view", "click"]


# ── Admin request bodies ──────────────────────────────────────────────────────

class CustomQuestionsRequest(CamelModel):
    # Raw entries in any of the pack spellings; normalised before saving
    questions: List[Dict[str, Any]]


class AdUpsertRequest(CamelModel):
    id: Optional[str] = None
    title: str = ""
    description: str = ""
    image_url: str = Field(
        default="",
        validation_alias=AliasChoices("imageUrl", "image", "image_url"),
        serialization_alias="imageUrl",
    )
    link: Optional[str] = None
    duration: int = 5000


class AssignPackRequest(CamelModel):
    haunt_id: str = Field(min_length=1)
    pack_id: str = Field(min_length=1)
