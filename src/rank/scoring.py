from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Mapping

import numpy as np
import pandas as pd

from src.normalize.profile import UserProfile
from src.normalize.schema import coerce_date, coerce_float, coerce_levels, is_missing
from src.rank.weights import MajorCategoryTable, ScoringWeights

SCORE_MIN = 0
SCORE_MAX = 100


@dataclass(slots=True)
class ScoreBreakdown:
    total: float
    adjustments: dict[str, float] = field(default_factory=dict)
    disqualified: bool = False

    def add(self, component: str, points: float) -> None:
        self.adjustments[component] = self.adjustments.get(component, 0.0) + points
        self.total += points

    def disqualify(self, component: str, penalty: float) -> None:
        self.add(component, penalty)
        self.disqualified = True

    @property
    def score(self) -> int:
        if self.disqualified:
            return SCORE_MIN
        return clamp_score(self.total)


def clamp_score(value: float) -> int:
    if not math.isfinite(value):
        return SCORE_MIN
    # Half-up, not banker's rounding.
    rounded = math.floor(value + 0.5)
    return int(max(SCORE_MIN, min(SCORE_MAX, rounded)))


def _text(value: Any) -> str:
    if is_missing(value):
        return ""
    return str(value).strip()


def _flag(value: Any) -> bool:
    if is_missing(value):
        return False
    return bool(value)


def _score_education(candidate: Mapping[str, Any], profile: UserProfile, weights: ScoringWeights, breakdown: ScoreBreakdown) -> None:
    levels = coerce_levels(candidate.get("education_level"))
    if not levels:
        breakdown.add("education_level", weights.education_open)
    elif profile.education_level in levels:
        breakdown.add("education_level", weights.education_match)
    else:
        breakdown.add("education_level", weights.education_mismatch)


def _score_location(candidate: Mapping[str, Any], profile: UserProfile, weights: ScoringWeights, breakdown: ScoreBreakdown) -> None:
    state = _text(candidate.get("state"))
    if state and state == profile.location.strip():
        breakdown.add("location", weights.location_match)
    elif _flag(candidate.get("national")) or not state:
        breakdown.add("location", weights.location_open)
    else:
        breakdown.add("location", weights.location_mismatch)


def _score_school(candidate: Mapping[str, Any], profile: UserProfile, weights: ScoringWeights, breakdown: ScoreBreakdown) -> None:
    school = _text(candidate.get("school"))
    if not school:
        return
    if school.lower() == profile.school.strip().lower():
        breakdown.add("school", weights.school_match)
    else:
        breakdown.add("school", weights.school_mismatch)


def _score_major(
    candidate: Mapping[str, Any],
    profile: UserProfile,
    weights: ScoringWeights,
    major_categories: MajorCategoryTable,
    breakdown: ScoreBreakdown,
) -> None:
    major = _text(candidate.get("major"))
    if not major:
        breakdown.add("major", weights.major_open)
    elif major.lower() == profile.major.strip().lower():
        breakdown.add("major", weights.major_match)
    elif major_categories.major_in_category(profile.major, major):
        breakdown.add("major", weights.major_category_match)
    else:
        breakdown.add("major", weights.major_mismatch)


def _score_gpa(candidate: Mapping[str, Any], profile: UserProfile, weights: ScoringWeights, breakdown: ScoreBreakdown) -> None:
    requirement = coerce_float(candidate.get("gpa_requirement"))
    if requirement is None:
        breakdown.add("gpa", weights.gpa_open)
        return
    buffer = profile.gpa - requirement
    if buffer >= 0:
        breakdown.add("gpa", min(weights.gpa_base + buffer * weights.gpa_per_point, weights.gpa_cap))
    else:
        breakdown.disqualify("gpa", weights.disqualify)


def _score_amount(candidate: Mapping[str, Any], weights: ScoringWeights, breakdown: ScoreBreakdown) -> None:
    amount = coerce_float(candidate.get("amount"))
    if amount is None or amount <= 0.0:
        return
    breakdown.add("amount", min(weights.amount_cap, (amount / weights.amount_reference) * weights.amount_cap))


def _score_competition(candidate: Mapping[str, Any], weights: ScoringWeights, breakdown: ScoreBreakdown) -> None:
    level = _text(candidate.get("competition_level"))
    points = {
        "Low": weights.competition_low,
        "Medium": weights.competition_medium,
        "High": weights.competition_high,
    }.get(level)
    if points is not None:
        breakdown.add("competition_level", points)


def _score_pell(candidate: Mapping[str, Any], profile: UserProfile, weights: ScoringWeights, breakdown: ScoreBreakdown) -> None:
    if not _flag(candidate.get("is_pell_eligible")):
        return
    if profile.is_pell_eligible:
        breakdown.add("pell", weights.pell_match)
    else:
        breakdown.disqualify("pell", weights.disqualify)


def _score_deadline(candidate: Mapping[str, Any], today: date, weights: ScoringWeights, breakdown: ScoreBreakdown) -> None:
    deadline = coerce_date(candidate.get("deadline"))
    if deadline is None:
        return
    days_remaining = (deadline - today).days
    if days_remaining < 0:
        breakdown.disqualify("deadline", weights.disqualify)
    elif days_remaining <= 7:
        breakdown.add("deadline", weights.deadline_week)
    elif days_remaining <= 30:
        breakdown.add("deadline", weights.deadline_month)
    elif days_remaining > 120:
        breakdown.add("deadline", weights.deadline_distant)


def explain_score(
    candidate: Mapping[str, Any],
    profile: UserProfile,
    *,
    today: date | None = None,
    weights: ScoringWeights | None = None,
    major_categories: MajorCategoryTable | None = None,
) -> ScoreBreakdown:
    active_weights = weights or ScoringWeights.baseline()
    active_categories = major_categories or MajorCategoryTable.baseline()
    effective_today = today or date.today()

    breakdown = ScoreBreakdown(total=active_weights.base)
    _score_education(candidate, profile, active_weights, breakdown)
    _score_location(candidate, profile, active_weights, breakdown)
    _score_school(candidate, profile, active_weights, breakdown)
    _score_major(candidate, profile, active_weights, active_categories, breakdown)
    _score_gpa(candidate, profile, active_weights, breakdown)
    _score_amount(candidate, active_weights, breakdown)
    _score_competition(candidate, active_weights, breakdown)
    _score_pell(candidate, profile, active_weights, breakdown)
    _score_deadline(candidate, effective_today, active_weights, breakdown)
    return breakdown


def score_scholarship(
    candidate: Mapping[str, Any],
    profile: UserProfile,
    *,
    today: date | None = None,
    weights: ScoringWeights | None = None,
    major_categories: MajorCategoryTable | None = None,
) -> int:
    """Score one candidate against a profile; 0 means disqualified."""

    return explain_score(
        candidate,
        profile,
        today=today,
        weights=weights,
        major_categories=major_categories,
    ).score


def score_candidates(
    candidates_df: pd.DataFrame,
    profile: UserProfile,
    *,
    today: date | None = None,
    weights: ScoringWeights | None = None,
    major_categories: MajorCategoryTable | None = None,
) -> pd.DataFrame:
    effective_today = today or date.today()
    scored_df = candidates_df.copy()

    scores = np.array(
        [
            score_scholarship(
                row,
                profile,
                today=effective_today,
                weights=weights,
                major_categories=major_categories,
            )
            for _, row in scored_df.iterrows()
        ],
        dtype=int,
    )
    scored_df["score"] = np.clip(scores, SCORE_MIN, SCORE_MAX).astype(int)

    scored_df = scored_df.sort_values(by="score", ascending=False, kind="mergesort")
    return scored_df.reset_index(drop=True)
