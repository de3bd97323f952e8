from __future__ import annotations

from datetime import date

import pandas as pd

from src.normalize.schema import coerce_date, is_missing
from src.rank.results import MatchCategory

DEFAULT_CATEGORY_LIMIT = 10
DEFAULT_BEST_MATCH_THRESHOLD = 80
DEADLINE_SOON_DAYS = 30


def _has_value(series: pd.Series) -> pd.Series:
    return series.map(lambda value: not is_missing(value) and str(value).strip() != "")


def _is_true(series: pd.Series) -> pd.Series:
    return series.map(lambda value: not is_missing(value) and bool(value))


def _deadline_sort_key(df: pd.DataFrame) -> pd.Series:
    return pd.to_datetime(df["deadline"].map(coerce_date), errors="coerce")


def _sorted_by(df: pd.DataFrame, column: str, *, ascending: bool) -> pd.DataFrame:
    return df.sort_values(by=column, ascending=ascending, kind="mergesort", na_position="last")


def _by_deadline(df: pd.DataFrame, *, ascending: bool) -> pd.DataFrame:
    keyed_df = df.assign(_deadline_sort=_deadline_sort_key(df))
    return _sorted_by(keyed_df, "_deadline_sort", ascending=ascending).drop(columns=["_deadline_sort"])


def _days_until_deadline(df: pd.DataFrame, today: date) -> pd.Series:
    return df["deadline"].map(
        lambda value: None if coerce_date(value) is None else (coerce_date(value) - today).days
    )


def categorize_matches(
    ranked_df: pd.DataFrame,
    *,
    today: date | None = None,
    limit: int = DEFAULT_CATEGORY_LIMIT,
    best_match_threshold: int = DEFAULT_BEST_MATCH_THRESHOLD,
) -> list[MatchCategory]:
    """Group the ranked list into overlapping display categories.

    Each category filters the full list independently, is sorted by its own
    key and truncated to ``limit`` rows; empty categories are left out.
    """

    if ranked_df.empty:
        return []

    ranked_df = ranked_df.copy()
    for column in ("is_local", "state", "major", "competition_level", "amount", "deadline"):
        if column not in ranked_df.columns:
            ranked_df[column] = None

    effective_today = today or date.today()
    days_left = _days_until_deadline(ranked_df, effective_today)
    deadline_soon_mask = days_left.map(lambda days: days is not None and 0 <= days <= DEADLINE_SOON_DAYS)

    selections = [
        (
            "Best Matches",
            _sorted_by(ranked_df[ranked_df["score"] >= best_match_threshold], "score", ascending=False),
        ),
        (
            "Local Scholarships",
            _sorted_by(
                ranked_df[_is_true(ranked_df["is_local"]) | _has_value(ranked_df["state"])],
                "score",
                ascending=False,
            ),
        ),
        (
            "Major-Specific",
            _sorted_by(ranked_df[_has_value(ranked_df["major"])], "score", ascending=False),
        ),
        (
            "Easiest to Apply",
            _by_deadline(ranked_df[ranked_df["competition_level"] == "Low"], ascending=False),
        ),
        ("Highest Amount", _sorted_by(ranked_df, "amount", ascending=False)),
        ("Deadline Soon", _by_deadline(ranked_df[deadline_soon_mask.astype(bool)], ascending=True)),
    ]

    categories: list[MatchCategory] = []
    for name, selected_df in selections:
        truncated_df = selected_df.head(limit).reset_index(drop=True)
        if truncated_df.empty:
            continue
        categories.append(MatchCategory(name=name, scholarships=truncated_df))
    return categories
