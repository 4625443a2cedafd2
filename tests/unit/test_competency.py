import pytest

from utils.competency import COMPETENCIES, compare_ratings, is_complete, validate_ratings


def test_eight_fixed_competencies():
    assert len(COMPETENCIES) == 8
    assert "professional_ethics" in COMPETENCIES


def test_discrepancy_threshold():
    comparison = compare_ratings(
        {"teamwork": 5, "communication": 4, "initiative": 2},
        {"teamwork": 3, "communication": 3, "initiative": 4},
    )
    by_key = {item.competency: item for item in comparison}

    assert by_key["teamwork"].difference == 2
    assert by_key["teamwork"].is_discrepancy is True
    assert by_key["initiative"].difference == -2
    assert by_key["initiative"].is_discrepancy is True
    # A difference of 1 stays under the 1.5 threshold
    assert by_key["communication"].is_discrepancy is False


def test_missing_side_is_never_flagged():
    comparison = compare_ratings({"teamwork": 5}, None)

    assert len(comparison) == len(COMPETENCIES)
    assert all(item.is_discrepancy is False for item in comparison)
    assert all(item.mentor_rating is None for item in comparison)


def test_is_complete():
    assert is_complete({key: 3 for key in COMPETENCIES})
    assert not is_complete({key: 3 for key in COMPETENCIES[:-1]})
    assert not is_complete(None)


@pytest.mark.parametrize(
    "ratings",
    [{"charisma": 3}, {"teamwork": 0}, {"teamwork": 6}, {"teamwork": "4"}, {"teamwork": True}],
)
def test_invalid_ratings(ratings):
    with pytest.raises(ValueError):
        validate_ratings(ratings)


def test_partial_ratings_are_valid():
    assert validate_ratings({"teamwork": 1, "adaptability": 5}) == {"teamwork": 1, "adaptability": 5}
