"""Gamification catalog: coin rewards per action and parker levels."""
from typing import NamedTuple, Optional


class RewardAction(NamedTuple):
    amount: int
    description: str


# Coins granted for each tracked in-app action
COIN_REWARDS = {
    "PROFILE_COMPLETE": RewardAction(50, "Completing your profile"),
    "FIRST_BOOKING": RewardAction(100, "Making your first parking booking"),
    "BOOKING_COMPLETE": RewardAction(25, "Completing a parking booking"),
    "NAVIGATION_USE": RewardAction(10, "Using navigation to find parking"),
    "REVIEW_SUBMIT": RewardAction(20, "Submitting a parking review"),
    "DAILY_LOGIN": RewardAction(5, "Daily login bonus"),
    "SHARE_LOCATION": RewardAction(15, "Sharing parking location"),
    "DOCUMENT_UPLOAD": RewardAction(30, "Uploading vehicle documents"),
    "FEEDBACK_SUBMIT": RewardAction(15, "Submitting feedback"),
    "REFERRAL": RewardAction(200, "Referring a friend"),
}

POINTS_PER_LEVEL = 1000

# (lowest level, tier name), checked highest first
TIERS = [
    (7, "Platinum Parker"),
    (5, "Gold Parker"),
    (3, "Silver Parker"),
    (1, "Bronze Parker"),
]


def get_reward(action: str) -> Optional[RewardAction]:
    """Look up a catalogued action (case-insensitive)."""
    return COIN_REWARDS.get((action or "").strip().upper())


def level_for(total_earned: int) -> int:
    """Level grows by one for every 1000 coins ever earned, starting at 1."""
    return max(0, int(total_earned)) // POINTS_PER_LEVEL + 1


def tier_for(level: int) -> str:
    for lowest, name in TIERS:
        if level >= lowest:
            return name
    return TIERS[-1][1]


def next_level_at(level: int) -> int:
    """Total earned coins required to reach the level after `level`."""
    return level * POINTS_PER_LEVEL
