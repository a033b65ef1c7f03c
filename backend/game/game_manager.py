"""
Game Manager — pure trivia round state machine.

Every transition takes a GameState and returns a new one; nothing here awaits
or touches the network. Phases are derived from the state flags:

  ANSWERING --select_answer--> FEEDBACK
  FEEDBACK  --next_question--> ANSWERING | AD (round boundary) | COMPLETE
  AD        --close_ad-------> ANSWERING | COMPLETE
  COMPLETE  --reset_game / play_again--> ANSWERING

Out-of-phase calls return the state unchanged. The only side effect is the
local leaderboard, written through an injected KeyValueStore.
"""
import json
import logging
import random
from datetime import datetime, timezone
from typing import List, Optional, Sequence, TypeVar

from pydantic import ValidationError

from models.trivia import GamePhase, GameState, LeaderboardEntry, TriviaQuestion
from services.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class GameManager:
    STORAGE_KEY = "heinous-trivia-leaderboard"
    QUESTIONS_PER_ROUND = 5  # ad interstitial cadence
    LEADERBOARD_SIZE = 10

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def create_initial_state(self, haunt: str) -> GameState:
        return GameState(current_haunt=haunt)

    def reset_game(self, state: GameState) -> GameState:
        """Zero all progress but keep the loaded config, questions and ads."""
        return self.create_initial_state(state.current_haunt).model_copy(update={
            "haunt_config": state.haunt_config,
            "questions": state.questions,
            "ads": state.ads,
        })

    def play_again(self, state: GameState, rng: Optional[random.Random] = None) -> GameState:
        """Reset, then reshuffle the retained questions for a fresh order."""
        fresh = self.reset_game(state)
        return fresh.model_copy(update={"questions": self.shuffle_questions(state.questions, rng)})

    @staticmethod
    def current_phase(state: GameState) -> GamePhase:
        if state.game_complete:
            return GamePhase.COMPLETE
        if state.show_ad:
            return GamePhase.AD
        if state.show_feedback:
            return GamePhase.FEEDBACK
        return GamePhase.ANSWERING

    @staticmethod
    def current_question(state: GameState) -> Optional[TriviaQuestion]:
        if 0 <= state.current_question_index < len(state.questions):
            return state.questions[state.current_question_index]
        return None

    # ── Transitions ───────────────────────────────────────────────────────────

    def select_answer(self, state: GameState, answer_index: int) -> GameState:
        """
        Lock in an answer for the current question.
        No-op when an answer is already selected (double submit), when the
        game is over or paused on an ad, or when the index is out of range.
        """
        if state.selected_answer is not None:
            return state
        if state.game_complete or state.show_ad:
            return state
        question = self.current_question(state)
        if question is None:
            return state
        if answer_index < 0 or answer_index >= len(question.answers):
            return state

        is_correct = answer_index == question.correct_answer
        points = question.points if is_correct else 0
        return state.model_copy(update={
            "selected_answer": answer_index,
            "show_feedback": True,
            "is_correct": is_correct,
            "score": state.score + points,
            "correct_answers": state.correct_answers + (1 if is_correct else 0),
            "questions_answered": state.questions_answered + 1,
        })

    def next_question(self, state: GameState) -> GameState:
        """
        Leave the feedback view. Three outcomes, checked in order:
          1. no questions left            -> game complete, end screen
          2. round boundary (every 5th)   -> ad interstitial; close_ad advances
          3. otherwise                    -> advance to the next question
        """
        if not state.show_feedback:
            return state

        next_index = state.current_question_index + 1
        cleared = {"selected_answer": None, "show_feedback": False}

        if next_index >= len(state.questions):
            return state.model_copy(update={
                **cleared,
                "game_complete": True,
                "show_end_screen": True,
            })

        if state.questions_answered > 0 and state.questions_answered % self.QUESTIONS_PER_ROUND == 0:
            return state.model_copy(update={**cleared, "show_ad": True})

        return state.model_copy(update={
            **cleared,
            "current_question_index": next_index,
            "is_correct": False,
        })

    def close_ad(self, state: GameState) -> GameState:
        """Dismiss the interstitial, advance the question and rotate the ad."""
        if not state.show_ad:
            return state

        next_index = state.current_question_index + 1
        next_ad = (state.current_ad_index + 1) % len(state.ads) if state.ads else 0
        update = {
            "show_ad": False,
            "selected_answer": None,
            "show_feedback": False,
            "is_correct": False,
            "current_ad_index": next_ad,
        }
        if next_index >= len(state.questions):
            update.update({"game_complete": True, "show_end_screen": True})
        else:
            update["current_question_index"] = next_index
        return state.model_copy(update=update)

    def view_leaderboard(self, state: GameState) -> GameState:
        """End screen -> leaderboard view. Only meaningful once complete."""
        if not state.game_complete:
            return state
        return state.model_copy(update={"show_leaderboard": True, "show_end_screen": False})

    # ── Local leaderboard ─────────────────────────────────────────────────────

    def get_leaderboard(self, store: KeyValueStore) -> List[LeaderboardEntry]:
        """Read the stored top-ten. Missing or corrupt data reads as empty."""
        raw = store.get(self.STORAGE_KEY)
        if not raw:
            return []
        try:
            items = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning(f"Discarding unparsable leaderboard under {self.STORAGE_KEY}")
            return []
        if not isinstance(items, list):
            return []

        entries: List[LeaderboardEntry] = []
        for item in items:
            try:
                entries.append(LeaderboardEntry.model_validate(item))
            except ValidationError:
                logger.warning(f"Skipping malformed leaderboard entry: {item!r}")
        return entries

    def build_leaderboard_entry(
        self, player_name: str, state: GameState, now: Optional[datetime] = None
    ) -> LeaderboardEntry:
        return LeaderboardEntry(
            name=player_name,
            score=state.score,
            date=(now or datetime.now(timezone.utc)).isoformat(),
            haunt=state.current_haunt,
            questions_answered=state.questions_answered,
            correct_answers=state.correct_answers,
        )

    def save_score(
        self,
        player_name: str,
        state: GameState,
        store: KeyValueStore,
        now: Optional[datetime] = None,
    ) -> LeaderboardEntry:
        """Append the final result, keep the best LEADERBOARD_SIZE by score."""
        entry = self.build_leaderboard_entry(player_name, state, now)
        board = self.get_leaderboard(store)
        board.append(entry)
        board.sort(key=lambda e: e.score, reverse=True)
        top = board[: self.LEADERBOARD_SIZE]
        store.set(self.STORAGE_KEY, json.dumps([e.model_dump(by_alias=True) for e in top]))
        logger.info(f"[{state.current_haunt}] Saved local score {entry.score} for {player_name}")
        return entry

    # ── Shuffling ─────────────────────────────────────────────────────────────

    @staticmethod
    def shuffle_array(items: Sequence[T], rng: Optional[random.Random] = None) -> List[T]:
        """Fisher–Yates over a copy; the input sequence is left untouched."""
        shuffled = list(items)
        rand = rng or random
        for i in range(len(shuffled) - 1, 0, -1):
            j = rand.randint(0, i)
            shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
        return shuffled

    def shuffle_questions(
        self, questions: Sequence[TriviaQuestion], rng: Optional[random.Random] = None
    ) -> List[TriviaQuestion]:
        return self.shuffle_array(questions, rng)


# Module-level singleton
game_manager = GameManager()
