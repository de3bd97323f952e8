from __future__ import annotations

from collections import Counter
from datetime import date
from typing import Any, Mapping

import pandas as pd

from src.normalize.profile import UserProfile
from src.normalize.schema import coerce_date, coerce_float, is_missing


def disqualification_reasons(candidate: Mapping[str, Any], profile: UserProfile, today: date) -> list[str]:
    reasons: list[str] = []

    deadline = coerce_date(candidate.get("deadline"))
    if deadline is not None and deadline < today:
        reasons.append("DEADLINE_PASSED")

    requirement = coerce_float(candidate.get("gpa_requirement"))
    if requirement is not None and profile.gpa < requirement:
        reasons.append("GPA_BELOW_MIN")

    requires_pell = candidate.get("is_pell_eligible")
    if not is_missing(requires_pell) and bool(requires_pell) and not profile.is_pell_eligible:
        reasons.append("PELL_REQUIRED")

    return reasons


def summarize_disqualifications(
    scored_df: pd.DataFrame, profile: UserProfile, today: date
) -> dict[str, int]:
    counter: Counter[str] = Counter()
    if scored_df.empty:
        return {}
    for _, row in scored_df[scored_df["score"] == 0].iterrows():
        counter.update(disqualification_reasons(row, profile, today) or ["LOW_SCORE"])
    return dict(sorted(counter.items()))


def drop_disqualified(scored_df: pd.DataFrame) -> pd.DataFrame:
    """Remove candidates whose score collapsed to zero, keeping the remaining order."""

    if "score" not in scored_df.columns:
        raise ValueError("Eligibility filter requires a 'score' column.")
    kept_df = scored_df[scored_df["score"] != 0].copy()
    return kept_df.reset_index(drop=True)
