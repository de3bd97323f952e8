from __future__ import annotations

import pandas as pd

from src.normalize.schema import is_missing

UNKNOWN_PROVIDER = "Unknown"
DEFAULT_PROVIDER_LIMIT = 3


def _provider_key(value: object) -> str:
    if is_missing(value):
        return UNKNOWN_PROVIDER
    text = str(value).strip()
    return text or UNKNOWN_PROVIDER


def diversify_by_provider(
    scored_df: pd.DataFrame, *, provider_limit: int = DEFAULT_PROVIDER_LIMIT
) -> pd.DataFrame:
    """Cap how many scholarships a single provider contributes to the ranking.

    Every provider first contributes its best match; the remaining slots (up to
    ``provider_limit`` per provider) are then filled in score order.
    """

    if provider_limit < 1:
        raise ValueError("provider_limit must be at least 1.")
    if scored_df.empty:
        return scored_df.copy().reset_index(drop=True)

    working_df = scored_df.copy()
    working_df["_provider_key"] = working_df["provider"].map(_provider_key)
    working_df = working_df.sort_values(by="score", ascending=False, kind="mergesort")

    groups = [group for _, group in working_df.groupby("_provider_key", sort=False)]
    first_pass = [group.iloc[:1] for group in groups]
    second_pass = [group.iloc[1:provider_limit] for group in groups]

    diversified_df = pd.concat([*first_pass, *second_pass])
    diversified_df = diversified_df.sort_values(by="score", ascending=False, kind="mergesort")
    return diversified_df.drop(columns=["_provider_key"]).reset_index(drop=True)
