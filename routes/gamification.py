"""
XP, levels, badges and leaderboard endpoints
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from config import settings
from db import get_db
from models import User
from schemas.api_models import (
    EarnedBadgeResponse,
    GamificationProfileResponse,
    LeaderboardEntry,
    PointTableResponse,
    XpTransactionResponse,
)
from utils.auth_dependencies import get_current_user, get_engine
from utils.gamification import GamificationEngine
from utils.permissions import PermissionChecker
from utils.point_table import BADGES, LEVELS, POINT_VALUES, get_level, next_level_threshold

router = APIRouter()


@router.get("/students/{student_id}/profile", response_model=GamificationProfileResponse)
async def get_profile(
    student_id: int,
    current_user: User = Depends(get_current_user),
    engine: GamificationEngine = Depends(get_engine),
    db: Session = Depends(get_db),
):
    PermissionChecker.require_student_access(db, current_user, student_id)
    profile = engine.get_profile(student_id)
    level = get_level(profile.current_level)
    return {
        "student_id": profile.id,
        "total_xp": profile.total_xp,
        "current_level": profile.current_level,
        "level_name": level.name if level else "",
        "next_level_xp": next_level_threshold(profile.current_level),
        "current_streak": profile.current_streak,
        "longest_streak": profile.longest_streak,
        "last_activity_date": profile.last_activity_date,
    }


@router.get("/students/{student_id}/xp-history", response_model=List[XpTransactionResponse])
async def get_xp_history(
    student_id: int,
    current_user: User = Depends(get_current_user),
    engine: GamificationEngine = Depends(get_engine),
    db: Session = Depends(get_db),
):
    PermissionChecker.require_student_access(db, current_user, student_id)
    return engine.xp_history(student_id)


@router.get("/students/{student_id}/badges", response_model=List[EarnedBadgeResponse])
async def get_badges(
    student_id: int,
    current_user: User = Depends(get_current_user),
    engine: GamificationEngine = Depends(get_engine),
    db: Session = Depends(get_db),
):
    PermissionChecker.require_student_access(db, current_user, student_id)
    return [
        {
            "badge_key": earned.badge_key,
            "name": BADGES[earned.badge_key].name,
            "description": BADGES[earned.badge_key].description,
            "earned_at": earned.earned_at,
        }
        for earned in engine.earned_badges(student_id)
        if earned.badge_key in BADGES
    ]


@router.get("/leaderboard", response_model=List[LeaderboardEntry])
async def get_leaderboard(
    limit: Optional[int] = Query(None, ge=1, le=settings.LEADERBOARD_MAX_PAGE_SIZE),
    current_user: User = Depends(get_current_user),
    engine: GamificationEngine = Depends(get_engine),
):
    """Students ranked by total XP"""
    rows = engine.leaderboard(limit or settings.LEADERBOARD_PAGE_SIZE)
    return [
        {
            "rank": rank,
            "student_id": profile.id,
            "full_name": user.full_name,
            "total_xp": profile.total_xp,
            "current_level": profile.current_level,
            "current_streak": profile.current_streak,
        }
        for rank, (profile, user) in enumerate(rows, start=1)
    ]


@router.get("/point-table", response_model=PointTableResponse)
async def get_point_table():
    return {
        "points": {reason.value: amount for reason, amount in POINT_VALUES.items()},
        "levels": [{"level": lvl.level, "name": lvl.name, "min_xp": lvl.min_xp} for lvl in LEVELS],
        "badges": [
            {"key": b.key, "name": b.name, "description": b.description, "requirement": b.requirement}
            for b in BADGES.values()
        ],
    }
