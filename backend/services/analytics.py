"""
Play analytics — session tracking and the haunt owner dashboard.

An AnalyticsSession is created when a game starts and travels with that game
(no process-wide "current session"). Tracking never breaks gameplay: every
Firestore failure here is logged and swallowed.
"""
import logging
import time
import uuid
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, Field

from models.trivia import (
    AdInteractionRecord, GameSessionRecord, GameState, QuestionPerformanceRecord, TriviaQuestion,
)

logger = logging.getLogger(__name__)

TIME_RANGE_DAYS: Dict[str, int] = {"7d": 7, "30d": 30, "90d": 90}
BEST_QUESTIONS_LIMIT = 5


def new_player_id() -> str:
    return f"player_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


class AnalyticsSession(BaseModel):
    haunt_id: str
    player_id: str = Field(default_factory=new_player_id)
    session_type: str = "individual"
    group_id: Optional[str] = None
    session_id: Optional[str] = None  # None when the session could not be recorded


async def start_session(
    fs,
    haunt_id: str,
    player_id: Optional[str] = None,
    session_type: str = "individual",
    group_id: Optional[str] = None,
) -> AnalyticsSession:
    session = AnalyticsSession(
        haunt_id=haunt_id,
        session_type=session_type,
        group_id=group_id,
        **({"player_id": player_id} if player_id else {}),
    )
    try:
        session.session_id = await fs.create_game_session(
            haunt_id=haunt_id,
            player_id=session.player_id,
            session_type=session_type,
            group_id=group_id,
        )
        logger.info(f"[{haunt_id}] Analytics session {session.session_id} started")
    except Exception as exc:
        logger.warning(f"[{haunt_id}] Failed to start analytics session: {exc}")
    return session


async def complete_session(fs, session: AnalyticsSession, state: GameState) -> None:
    if not session.session_id:
        return
    try:
        await fs.complete_game_session(session.session_id, {
            "questionsAnswered": state.questions_answered,
            "correctAnswers": state.correct_answers,
            "finalScore": state.score,
        })
    except Exception as exc:
        logger.warning(f"[{session.haunt_id}] Failed to complete analytics session: {exc}")


async def track_ad_interaction(
    fs, session: AnalyticsSession, ad_index: int, action: str, ad_id: Optional[str] = None
) -> None:
    try:
        await fs.log_ad_interaction(
            haunt_id=session.haunt_id,
            session_id=session.session_id,
            ad_index=ad_index,
            ad_id=ad_id or f"ad-{ad_index}",
            action=action,
        )
    except Exception as exc:
        logger.warning(f"[{session.haunt_id}] Failed to track ad {action}: {exc}")


async def track_question_result(fs, session: AnalyticsSession, question: TriviaQuestion, was_correct: bool) -> None:
    try:
        await fs.log_question_result(
            haunt_id=session.haunt_id,
            question_text=question.text,
            question_pack=question.category,
            was_correct=was_correct,
        )
    except Exception as exc:
        logger.warning(f"[{session.haunt_id}] Failed to record question result: {exc}")


# ── Dashboard aggregation ─────────────────────────────────────────────────────

def _percent(part: float, whole: float) -> int:
    """Half-up rounded percentage; 0 when the denominator is empty."""
    if not whole:
        return 0
    return int(part * 100 / whole + 0.5)


def _aware(dt: datetime) -> datetime:
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def summarize_analytics(
    sessions: Sequence[GameSessionRecord],
    ad_interactions: Sequence[AdInteractionRecord],
    question_results: Sequence[QuestionPerformanceRecord],
    time_range: str = "30d",
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Build the dashboard payload for one haunt.
    Everything except the return-player rate is restricted to the window;
    returning players are counted over the full history.
    """
    days = TIME_RANGE_DAYS.get(time_range, 90)
    start = (now or datetime.now(timezone.utc)) - timedelta(days=days)

    recent = [s for s in sessions if _aware(s.started_at) >= start]
    unique_players = len({s.player_id for s in recent})

    per_player: Dict[str, int] = defaultdict(int)
    for s in sessions:
        per_player[s.player_id] += 1
    returning = sum(1 for count in per_player.values() if count > 1)

    recent_ads = [a for a in ad_interactions if _aware(a.timestamp) >= start]
    views = sum(1 for a in recent_ads if a.action == "view")
    clicks = sum(1 for a in recent_ads if a.action == "click")

    stats: Dict[str, Dict[str, Any]] = {}
    for q in question_results:
        if _aware(q.timestamp) < start:
            continue
        entry = stats.setdefault(q.question_text, {"total": 0, "correct": 0, "pack": q.question_pack})
        entry["total"] += 1
        if q.was_correct:
            entry["correct"] += 1
    best_questions: List[Dict[str, Any]] = sorted(
        (
            {"question": text, "correctRate": _percent(s["correct"], s["total"]), "pack": s["pack"]}
            for text, s in stats.items()
        ),
        key=lambda row: row["correctRate"],
        reverse=True,
    )[:BEST_QUESTIONS_LIMIT]

    completed = [s for s in recent if s.completed_at is not None]
    scores = [s.final_score for s in completed]

    group_sessions = [s for s in recent if s.session_type == "group"]
    group_ids = {s.group_id for s in group_sessions}

    return {
        "totalGames": len(recent),
        "uniquePlayers": unique_players,
        "returnPlayerRate": _percent(returning, len(per_player)),
        "adClickThrough": _percent(clicks, views),
        "bestQuestions": best_questions,
        "competitiveMetrics": {
            "averageScore": int(sum(scores) / len(scores) + 0.5) if scores else 0,
            "topScore": max(scores) if scores else 0,
            "participationRate": _percent(len(completed), len(recent)),
        },
        "averageGroupSize": int(len(group_sessions) / len(group_ids) + 0.5) if group_ids else 0,
        "timeRange": time_range,
    }