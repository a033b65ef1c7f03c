"""
Sidequest tier gating.

Each subscription tier unlocks a fixed pool of mini-games. After the
leaderboard view a sidequest is offered with a flat 20% chance.
"""
import random
from typing import Any, Dict, List, Optional, Sequence

from models.trivia import HauntConfig, Sidequest, Tier

SIDEQUEST_TRIGGER_CHANCE = 0.2

SIDEQUEST_TIERS: Dict[Tier, tuple] = {
    Tier.BASIC: (
        "glory-grab",
        "wack-a-chupacabra",
        "cryptic-compliments",
    ),
    Tier.PRO: (
        "glory-grab",
        "wack-a-chupacabra",
        "wretched-wiring",
        "lab-escape",
        "curse-crafting",
    ),
    Tier.PREMIUM: (
        "chupacabra-challenge",
        "crime",
        "cryptic-compliments",
        "curse-crafting",
        "face-the-chupacabra",
        "glory-grab",
        "lab-escape",
        "monster-name-generator",
        "wack-a-chupacabra",
        "wretched-wiring",
    ),
}

# Firestore sidequest documents use capitalised tier names
_TIER_LEVEL: Dict[str, int] = {"basic": 0, "pro": 1, "premium": 2}


def _tier_level(tier: Any) -> int:
    value = tier.value if isinstance(tier, Tier) else str(tier or "")
    return _TIER_LEVEL.get(value.lower(), 0)


def get_available_sidequests(tier: Tier) -> List[str]:
    return list(SIDEQUEST_TIERS[Tier(tier)])


def select_random_sidequest(
    haunt_config: Optional[HauntConfig], rng: Optional[random.Random] = None
) -> str:
    tier = haunt_config.tier if haunt_config else Tier.BASIC
    return (rng or random).choice(SIDEQUEST_TIERS[tier])


def should_trigger_random_sidequest(rng: Optional[random.Random] = None) -> bool:
    return (rng or random).random() < SIDEQUEST_TRIGGER_CHANCE


def filter_sidequests_by_tier(sidequests: Sequence[Sidequest], tier: Any) -> List[Sidequest]:
    """Keep the sidequests whose required tier is at or below `tier`."""
    level = _tier_level(tier)
    return [sq for sq in sidequests if _tier_level(sq.required_tier) <= level]
