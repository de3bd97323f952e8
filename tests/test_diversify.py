from __future__ import annotations

import pandas as pd
import pytest

from src.rank.diversify import diversify_by_provider


def _scored(rows: list[tuple[str, str | None, int]]) -> pd.DataFrame:
    return pd.DataFrame([{"id": sid, "provider": provider, "score": score} for sid, provider, score in rows])


def test_prolific_provider_is_capped_at_three() -> None:
    rows = [(f"acme-{i}", "Acme", 95 - i) for i in range(8)]
    rows += [("beta-1", "Beta", 60), ("beta-2", "Beta", 55)]

    diversified_df = diversify_by_provider(_scored(rows))

    counts = diversified_df["provider"].value_counts().to_dict()
    assert counts == {"Acme": 3, "Beta": 2}
    assert diversified_df["id"].tolist() == ["acme-0", "acme-1", "acme-2", "beta-1", "beta-2"]
    assert diversified_df["score"].is_monotonic_decreasing


def test_each_provider_keeps_its_best_entry_regardless_of_position() -> None:
    rows = [("a1", "A", 99), ("a2", "A", 98), ("b1", "B", 10), ("a3", "A", 97), ("b2", "B", 5)]

    diversified_df = diversify_by_provider(_scored(rows), provider_limit=1)

    assert diversified_df["id"].tolist() == ["a1", "b1"]


def test_missing_provider_is_grouped_as_unknown() -> None:
    rows = [("x1", None, 80), ("x2", "", 70), ("x3", None, 60), ("x4", None, 50), ("y1", "Y", 40)]

    diversified_df = diversify_by_provider(_scored(rows))

    assert diversified_df["id"].tolist() == ["x1", "x2", "x3", "y1"]
    assert "_provider_key" not in diversified_df.columns


def test_unsorted_input_still_keeps_top_scores_per_provider() -> None:
    rows = [("a-low", "A", 20), ("a-top", "A", 90), ("a-mid", "A", 50), ("a-min", "A", 10)]

    diversified_df = diversify_by_provider(_scored(rows))

    assert diversified_df["id"].tolist() == ["a-top", "a-mid", "a-low"]


def test_empty_input_returns_empty_frame() -> None:
    assert diversify_by_provider(_scored([]).reindex(columns=["id", "provider", "score"])).empty


def test_provider_limit_must_be_positive() -> None:
    with pytest.raises(ValueError):
        diversify_by_provider(_scored([("a", "A", 1)]), provider_limit=0)
