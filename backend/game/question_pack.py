"""
Question pack normalisation.

Packs were authored by hand over several seasons and disagree on field names
(`text` vs `question`, `answers` vs `choices`, index vs answer-string for the
correct answer). Everything is folded into TriviaQuestion here; anything that
cannot be played is dropped. A game never starts short: the built-in
emergency set tops the pool up to the game size.
"""
import logging
import random
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError

from models.trivia import TriviaQuestion
from game.game_manager import game_manager

logger = logging.getLogger(__name__)

QUESTIONS_PER_GAME = 20

EMERGENCY_QUESTIONS: List[Dict[str, Any]] = [
    {
        "text": "What horror movie features the character Michael Myers?",
        "category": "Horror",
        "answers": ["Friday the 13th", "Halloween", "Scream", "The Shining"],
        "correctAnswer": 1,
        "explanation": "Michael Myers is the killer in the Halloween franchise.",
    },
    {
        "text": "Who wrote the novel 'Dracula'?",
        "category": "Literature",
        "answers": ["Mary Shelley", "Edgar Allan Poe", "Bram Stoker", "H.P. Lovecraft"],
        "correctAnswer": 2,
        "explanation": "Bram Stoker published Dracula in 1897.",
    },
    {
        "text": "What creature is said to suck the blood of livestock?",
        "category": "Cryptids",
        "answers": ["Bigfoot", "Chupacabra", "Mothman", "Jersey Devil"],
        "correctAnswer": 1,
        "explanation": "The Chupacabra is known for attacking livestock.",
    },
    {
        "text": "In which state were the Salem witch trials held?",
        "category": "History",
        "answers": ["Massachusetts", "Virginia", "Pennsylvania", "Connecticut"],
        "correctAnswer": 0,
        "explanation": "The Salem witch trials occurred in Massachusetts in 1692.",
    },
    {
        "text": "What is the fear of ghosts called?",
        "category": "Phobias",
        "difficulty": 2,
        "answers": ["Thanatophobia", "Phasmophobia", "Necrophobia", "Spectrophobia"],
        "correctAnswer": 1,
        "explanation": "Phasmophobia is the fear of ghosts and phantoms.",
    },
]


def _correct_index(raw: Any, answers: List[str]) -> int:
    if isinstance(raw, str):
        return answers.index(raw) if raw in answers else 0
    if isinstance(raw, bool) or not isinstance(raw, int):
        return 0
    return raw if 0 <= raw < len(answers) else 0


def _difficulty(raw: Any) -> int:
    if isinstance(raw, bool):
        return 1
    if isinstance(raw, (int, float)):
        return min(max(int(raw), 1), 5)
    return 1


def normalize_question(raw: Dict[str, Any], index: int) -> Optional[TriviaQuestion]:
    """Fold one raw pack entry into a TriviaQuestion; None when unplayable."""
    text = raw.get("text") or raw.get("question") or ""
    answers = raw.get("answers") or raw.get("choices") or []
    if not isinstance(text, str) or not text.strip():
        return None
    if not isinstance(answers, list) or len(answers) < 2:
        return None
    if not all(isinstance(a, str) and a.strip() for a in answers):
        return None

    correct = raw.get("correctAnswer", raw.get("correct_answer", raw.get("correct")))
    try:
        return TriviaQuestion(
            id=str(raw.get("id") or f"question-{index}"),
            text=text,
            category=raw.get("category") or "General",
            difficulty=_difficulty(raw.get("difficulty")),
            answers=answers,
            correct_answer=_correct_index(correct, answers),
            explanation=raw.get("explanation") or "",
            points=raw.get("points") or 100,
        )
    except ValidationError:
        return None


def normalize_questions(raw_questions: Iterable[Dict[str, Any]]) -> List[TriviaQuestion]:
    raw_list = list(raw_questions)
    valid = [
        q for q in (normalize_question(raw, i) for i, raw in enumerate(raw_list)) if q is not None
    ]
    dropped = len(raw_list) - len(valid)
    if dropped:
        logger.info(f"Validated {len(valid)} questions from {len(raw_list)} total (filtered {dropped} invalid)")
    return valid


def emergency_questions(count: int) -> List[TriviaQuestion]:
    """`count` questions cycled from the built-in set, each with a unique id."""
    filler = []
    for i in range(count):
        template = EMERGENCY_QUESTIONS[i % len(EMERGENCY_QUESTIONS)]
        filler.append(normalize_question({**template, "id": f"emergency-{i + 1}"}, i))
    return filler


def build_question_set(
    raw_questions: Iterable[Dict[str, Any]],
    size: int = QUESTIONS_PER_GAME,
    rng: Optional[random.Random] = None,
) -> List[TriviaQuestion]:
    """Normalise, top up with emergency questions, shuffle and cut to `size`."""
    questions = normalize_questions(raw_questions)
    if len(questions) < size:
        missing = size - len(questions)
        logger.warning(f"Only {len(questions)} valid questions available; adding {missing} emergency questions")
        questions.extend(emergency_questions(missing))
    return game_manager.shuffle_questions(questions, rng)[:size]
