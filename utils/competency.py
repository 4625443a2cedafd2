"""
Competency rubric shared by student self-assessments and mentor feedback
"""

from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

COMPETENCIES = (
    "technical_skills",
    "problem_solving",
    "communication",
    "teamwork",
    "time_management",
    "adaptability",
    "initiative",
    "professional_ethics",
)

COMPETENCY_LABELS = {
    "technical_skills": "Technical Skills",
    "problem_solving": "Problem Solving",
    "communication": "Communication",
    "teamwork": "Teamwork",
    "time_management": "Time Management",
    "adaptability": "Adaptability",
    "initiative": "Initiative",
    "professional_ethics": "Professional Ethics",
}

MIN_RATING = 1
MAX_RATING = 5
DISCREPANCY_THRESHOLD = 1.5


def validate_ratings(ratings: Mapping[str, int]) -> Dict[str, int]:
    """Reject unknown competencies and out-of-range values; missing competencies are allowed"""
    unknown = sorted(set(ratings) - set(COMPETENCIES))
    if unknown:
        raise ValueError(f"Unknown competencies: {', '.join(unknown)}")
    for key, value in ratings.items():
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"Rating for {key} must be an integer")
        if not MIN_RATING <= value <= MAX_RATING:
            raise ValueError(f"Rating for {key} must be between {MIN_RATING} and {MAX_RATING}")
    return dict(ratings)


def is_complete(ratings: Optional[Mapping[str, int]]) -> bool:
    """True when every competency has a rating"""
    if not ratings:
        return False
    return all(ratings.get(key) is not None and ratings[key] >= MIN_RATING for key in COMPETENCIES)


@dataclass
class CompetencyComparison:
    competency: str
    label: str
    self_rating: Optional[int]
    mentor_rating: Optional[int]
    difference: Optional[int]
    is_discrepancy: bool


def compare_ratings(
    self_ratings: Optional[Mapping[str, int]], mentor_ratings: Optional[Mapping[str, int]]
) -> List[CompetencyComparison]:
    """
    Pair self and mentor ratings per competency.

    A discrepancy is |self - mentor| > 1.5; a competency missing on either side is never flagged.
    Display only: the review workflow does not read these flags.
    """
    self_ratings = self_ratings or {}
    mentor_ratings = mentor_ratings or {}
    result = []
    for key in COMPETENCIES:
        own = self_ratings.get(key)
        mentor = mentor_ratings.get(key)
        difference = None if own is None or mentor is None else own - mentor
        result.append(
            CompetencyComparison(
                competency=key,
                label=COMPETENCY_LABELS[key],
                self_rating=own,
                mentor_rating=mentor,
                difference=difference,
                is_discrepancy=difference is not None and abs(difference) > DISCREPANCY_THRESHOLD,
            )
        )
    return result
