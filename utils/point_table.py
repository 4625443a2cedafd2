"""
Static gamification configuration: XP per activity, level thresholds and the badge catalog
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from models import XpReason


POINT_VALUES: Dict[XpReason, int] = {
    XpReason.DAILY_LOG_SUBMIT: 10,
    XpReason.PHOTO_ATTACHED: 3,  # per photo
    XpReason.SELF_ASSESSMENT: 5,  # only when every competency is rated
    XpReason.LOG_APPROVED: 20,
    XpReason.POLL_COMPLETED: 10,
    XpReason.QUIZ_PERFECT_SCORE: 15,
}


@dataclass(frozen=True)
class Level:
    level: int
    name: str
    min_xp: int


LEVELS: List[Level] = [
    Level(1, "beginner", 0),
    Level(2, "novice", 100),
    Level(3, "apprentice", 300),
    Level(4, "journeyman", 600),
    Level(5, "expert", 1000),
    Level(6, "master", 1500),
    Level(7, "grandmaster", 2100),
    Level(8, "legend", 2800),
    Level(9, "mythic", 3600),
    Level(10, "transcendent", 4500),
]


def calculate_level(total_xp: int, levels: Sequence[Level] = LEVELS) -> int:
    """Highest level whose threshold is reached; level 1 when none is"""
    for entry in sorted(levels, key=lambda lvl: lvl.min_xp, reverse=True):
        if total_xp >= entry.min_xp:
            return entry.level
    return 1


def get_level(level: int, levels: Sequence[Level] = LEVELS) -> Optional[Level]:
    return next((entry for entry in levels if entry.level == level), None)


def next_level_threshold(level: int, levels: Sequence[Level] = LEVELS) -> Optional[int]:
    """XP needed for the level after `level`, None at the top"""
    higher = [entry.min_xp for entry in levels if entry.level > level]
    return min(higher) if higher else None


@dataclass(frozen=True)
class Badge:
    key: str
    name: str
    description: str
    tier: str
    category: str
    requirement: int


BADGES: Dict[str, Badge] = {
    badge.key: badge
    for badge in [
        Badge("first_log", "First Log", "Submit your first daily log", "bronze", "milestone", 1),
        Badge("streak_7", "Week Streak", "Log activity 7 days in a row", "bronze", "consistency", 7),
        Badge("streak_30", "Month Streak", "Log activity 30 days in a row", "silver", "consistency", 30),
        Badge("quality_10", "Quality Work", "Get 10 logs approved with a rating of 4 or more", "silver", "quality", 10),
        Badge("quiz_master", "Quiz Master", "Respond to 5 polls or quizzes", "gold", "engagement", 5),
    ]
}

STREAK_BADGES = ("streak_7", "streak_30")

# Mentor rating from which an approval counts towards quality_10
QUALITY_RATING_THRESHOLD = 4
