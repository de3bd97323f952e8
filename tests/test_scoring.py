from __future__ import annotations

from datetime import date, timedelta

import pandas as pd
import pytest

from src.normalize.profile import UserProfile, normalize_answers
from src.rank.scoring import clamp_score, explain_score, score_candidates, score_scholarship
from src.rank.weights import MajorCategoryTable, ScoringWeights
from src.store.base import Eq
from src.store.frame_store import FrameRecordStore

TODAY = date(2026, 3, 1)


def _profile(**overrides: object) -> UserProfile:
    values = {
        "education_level": "College Junior",
        "school": "UCLA",
        "major": "Computer Science",
        "gpa": 3.8,
        "location": "CA",
        "is_pell_eligible": False,
    }
    values.update(overrides)
    return UserProfile(**values)


def _candidate(**overrides: object) -> dict[str, object]:
    values: dict[str, object] = {
        "id": "s-1",
        "name": "Open Award",
        "provider": "Acme",
        "amount": 0.0,
        "deadline": None,
        "education_level": None,
        "state": None,
        "national": None,
        "is_local": None,
        "school": None,
        "major": None,
        "gpa_requirement": None,
        "competition_level": None,
        "is_pell_eligible": None,
    }
    values.update(overrides)
    return values


def test_strong_stem_match_clamps_to_one_hundred() -> None:
    candidate = _candidate(
        education_level=["College Junior"],
        major="STEM",
        gpa_requirement=3.0,
        state="CA",
        amount=5000.0,
        competition_level="Low",
        deadline=TODAY + timedelta(days=10),
    )

    breakdown = explain_score(candidate, _profile(), today=TODAY)

    assert breakdown.adjustments["education_level"] == 25
    assert breakdown.adjustments["location"] == 20
    assert breakdown.adjustments["major"] == 25
    assert breakdown.adjustments["gpa"] == pytest.approx(23.0)
    assert breakdown.adjustments["amount"] == pytest.approx(10.0)
    assert breakdown.adjustments["competition_level"] == 10
    assert breakdown.adjustments["deadline"] == 5
    assert breakdown.score == 100


def test_gpa_below_requirement_scores_zero() -> None:
    candidate = _candidate(
        education_level=["College Junior"],
        major="STEM",
        gpa_requirement=3.9,
        state="CA",
        amount=5000.0,
        competition_level="Low",
        deadline=TODAY + timedelta(days=10),
    )

    assert score_scholarship(candidate, _profile(), today=TODAY) == 0


def test_component_sum_is_visible_with_lower_base() -> None:
    weights = ScoringWeights(base=0.0)
    candidate = _candidate(amount=2500.0, competition_level="Medium")

    # education +15, location +10, major +15, gpa +15, amount +5, competition +5
    assert score_scholarship(candidate, _profile(), today=TODAY, weights=weights) == 65


def test_explicit_mismatches_are_penalized() -> None:
    candidate = _candidate(
        education_level=["Graduate"],
        state="NY",
        national=False,
        school="MIT",
        major="History",
        competition_level="High",
        deadline=TODAY + timedelta(days=200),
    )

    breakdown = explain_score(candidate, _profile(), today=TODAY)

    assert breakdown.adjustments == {
        "education_level": -25,
        "location": -20,
        "school": -25,
        "major": -30,
        "gpa": 15,
        "competition_level": -5,
        "deadline": -5,
    }
    assert breakdown.score == 5


def test_school_is_matched_case_insensitively() -> None:
    breakdown = explain_score(_candidate(school="ucla"), _profile(), today=TODAY)

    assert breakdown.adjustments["school"] == 25


def test_school_is_ignored_when_candidate_has_none() -> None:
    breakdown = explain_score(_candidate(school=""), _profile(), today=TODAY)

    assert "school" not in breakdown.adjustments


def test_location_prefers_exact_state_over_national() -> None:
    same_state = explain_score(_candidate(state="CA", national=True), _profile(), today=TODAY)
    national = explain_score(_candidate(state="NY", national=True), _profile(), today=TODAY)

    assert same_state.adjustments["location"] == 20
    assert national.adjustments["location"] == 10


def test_state_match_is_exact_like_the_candidate_filters() -> None:
    lowercase = explain_score(_candidate(state="ca"), _profile(), today=TODAY)

    assert lowercase.adjustments["location"] == -20
    store = FrameRecordStore([{"id": "lower", "state": "ca"}, {"id": "upper", "state": "CA"}])
    assert store.query_scholarships([Eq("state", "CA")])["id"].tolist() == ["upper"]


def test_blank_profile_major_belongs_to_every_category() -> None:
    profile = normalize_answers({"education_level": "College Junior", "gpa": "3.5", "major": ""})

    assert explain_score({"major": "STEM"}, profile, today=TODAY).adjustments["major"] == 25
    assert explain_score({"major": "Business"}, profile, today=TODAY).adjustments["major"] == 25
    assert explain_score({"major": "Nursing"}, profile, today=TODAY).adjustments["major"] == -30


@pytest.mark.parametrize(
    ("candidate_major", "profile_major", "expected"),
    [
        ("Computer Science", "computer science", 30),
        ("STEM", "Biomedical Engineering", 25),
        ("stem", "Data Science", -30),
        ("Business", "Finance", 25),
        ("Business", "Computer Science", -30),
        ("STEM", "", 25),
        ("Nursing", "Computer Science", -30),
    ],
)
def test_major_matching(candidate_major: str, profile_major: str, expected: int) -> None:
    breakdown = explain_score(_candidate(major=candidate_major), _profile(major=profile_major), today=TODAY)

    assert breakdown.adjustments["major"] == expected


def test_major_categories_are_configurable() -> None:
    table = MajorCategoryTable.from_mapping({"Health": ["Nursing", "Public Health"]})

    breakdown = explain_score(
        _candidate(major="Health"),
        _profile(major="Nursing"),
        today=TODAY,
        major_categories=table,
    )

    assert breakdown.adjustments["major"] == 25


def test_gpa_bonus_is_capped() -> None:
    breakdown = explain_score(_candidate(gpa_requirement=2.0), _profile(gpa=4.0), today=TODAY)

    assert breakdown.adjustments["gpa"] == 25


def test_gpa_exactly_at_requirement_is_eligible() -> None:
    breakdown = explain_score(_candidate(gpa_requirement=3.8), _profile(gpa=3.8), today=TODAY)

    assert breakdown.adjustments["gpa"] == 15
    assert not breakdown.disqualified


def test_amount_bonus_is_linear_and_capped() -> None:
    small = explain_score(_candidate(amount=1000.0), _profile(), today=TODAY)
    large = explain_score(_candidate(amount=50000.0), _profile(), today=TODAY)

    assert small.adjustments["amount"] == pytest.approx(2.0)
    assert large.adjustments["amount"] == 20


def test_pell_requirement() -> None:
    required = _candidate(is_pell_eligible=True)

    assert score_scholarship(required, _profile(is_pell_eligible=False), today=TODAY) == 0
    breakdown = explain_score(required, _profile(is_pell_eligible=True), today=TODAY)
    assert breakdown.adjustments["pell"] == 15
    assert breakdown.score > 0


@pytest.mark.parametrize(
    ("days", "expected"),
    [(0, 10), (7, 10), (8, 5), (30, 5), (31, None), (120, None), (121, -5)],
)
def test_deadline_proximity(days: int, expected: int | None) -> None:
    breakdown = explain_score(_candidate(deadline=TODAY + timedelta(days=days)), _profile(), today=TODAY)

    assert breakdown.adjustments.get("deadline") == expected
    assert not breakdown.disqualified


def test_passed_deadline_scores_zero() -> None:
    candidate = _candidate(deadline=TODAY - timedelta(days=1), amount=10000.0, competition_level="Low")

    assert score_scholarship(candidate, _profile(), today=TODAY) == 0


def test_deadline_strings_are_parsed() -> None:
    candidate = _candidate(deadline="2026-03-05")

    assert explain_score(candidate, _profile(), today=TODAY).adjustments["deadline"] == 10


def test_clamp_score_rounds_half_up_and_bounds() -> None:
    assert clamp_score(42.5) == 43
    assert clamp_score(42.49) == 42
    assert clamp_score(-3.0) == 0
    assert clamp_score(150.0) == 100
    assert clamp_score(float("nan")) == 0


def test_scores_stay_within_bounds_and_are_deterministic() -> None:
    candidates = [
        _candidate(),
        _candidate(education_level=["Graduate"], state="TX", school="Rice", major="Art", competition_level="High"),
        _candidate(amount=1_000_000.0, competition_level="Low", deadline=TODAY),
        _candidate(gpa_requirement=4.0, is_pell_eligible=True),
        _candidate(education_level=[], state="", major="", amount=-50.0),
    ]
    weights = ScoringWeights(base=0.0)

    for candidate in candidates:
        for active in (None, weights):
            first = score_scholarship(candidate, _profile(), today=TODAY, weights=active)
            second = score_scholarship(candidate, _profile(), today=TODAY, weights=active)
            assert first == second
            assert 0 <= first <= 100


def test_score_candidates_adds_integer_scores_sorted_descending() -> None:
    weights = ScoringWeights(base=0.0)
    df = pd.DataFrame(
        [
            _candidate(id="low", competition_level="High"),
            _candidate(id="high", competition_level="Low", amount=10000.0),
            _candidate(id="gone", gpa_requirement=4.0),
        ]
    )

    scored_df = score_candidates(df, _profile(), today=TODAY, weights=weights)

    assert scored_df["id"].tolist() == ["high", "low", "gone"]
    assert scored_df["score"].tolist() == [85, 50, 0]
    assert scored_df["score"].dtype.kind == "i"
    assert "score" not in df.columns


def test_score_candidates_handles_empty_frame() -> None:
    scored_df = score_candidates(pd.DataFrame(columns=["id", "amount"]), _profile(), today=TODAY)

    assert scored_df.empty
    assert "score" in scored_df.columns
