from __future__ import annotations

import json
from pathlib import Path

import pandas as pd
import pytest

from src.store.base import AnyOf, Contains, Eq, IsNull, Lte, StoreError
from src.store.frame_store import FrameRecordStore

RECORDS = [
    {"id": "open", "name": "Open", "provider": "A", "amount": 1000},
    {"id": "ca", "name": "CA Only", "provider": "B", "state": "CA", "gpa_requirement": 3.0},
    {"id": "ny", "name": "NY Only", "provider": "C", "state": "NY", "national": False},
    {"id": "nat", "name": "National", "provider": "D", "state": "TX", "national": True},
    {"id": "grad", "name": "Grad", "provider": "E", "education_level": ["Graduate"], "gpa_requirement": 3.9},
]


def test_query_applies_anded_filters_and_limit() -> None:
    store = FrameRecordStore(RECORDS)

    located = store.query_scholarships(
        [AnyOf((Eq("state", "CA"), Eq("national", True), IsNull("state")))],
        limit=10,
    )
    gpa_ok = store.query_scholarships([AnyOf((IsNull("gpa_requirement"), Lte("gpa_requirement", 3.5)))])
    graduate = store.query_scholarships([Contains("education_level", "Graduate")])
    limited = store.query_scholarships(limit=2)

    assert located["id"].tolist() == ["open", "ca", "nat", "grad"]
    assert gpa_ok["id"].tolist() == ["open", "ca", "ny", "nat"]
    assert graduate["id"].tolist() == ["grad"]
    assert limited["id"].tolist() == ["open", "ca"]


def test_unknown_filter_column_raises_store_error() -> None:
    with pytest.raises(StoreError):
        FrameRecordStore(RECORDS).query_scholarships([IsNull("missing_column")])


def test_call_function_requires_registration() -> None:
    def _match(df: pd.DataFrame, params) -> pd.DataFrame:  # noqa: ANN001
        return df[df["provider"] == params["provider"]]

    store = FrameRecordStore(RECORDS, functions={"by_provider": _match})

    assert store.call_function("by_provider", {"provider": "C"})["id"].tolist() == ["ny"]
    with pytest.raises(StoreError):
        store.call_function("match_scholarships", {})


def test_upsert_replaces_by_id_and_delete_removes() -> None:
    store = FrameRecordStore(RECORDS)

    written = store.upsert([{"id": "open", "name": "Open v2", "provider": "A", "amount": 2500}])
    removed = store.delete(["ny", "unknown"])

    snapshot = store.snapshot()
    assert written == 1
    assert removed == 1
    assert len(store) == 4
    assert snapshot.loc[snapshot["id"] == "open", "amount"].item() == 2500.0
    assert snapshot.loc[snapshot["id"] == "open", "name"].item() == "Open v2"


def test_increment_popularity_counts_from_zero() -> None:
    store = FrameRecordStore(RECORDS)

    store.increment_popularity("ca")
    store.increment_popularity("ca")

    snapshot = store.snapshot()
    assert snapshot.loc[snapshot["id"] == "ca", "popularity"].item() == 2
    with pytest.raises(StoreError):
        store.increment_popularity("missing")


def test_from_path_reads_wrapped_json(tmp_path: Path) -> None:
    records_path = tmp_path / "scholarships.json"
    records_path.write_text(json.dumps({"scholarships": RECORDS[:2]}), encoding="utf-8")

    store = FrameRecordStore.from_path(records_path)

    assert len(store) == 2
    with pytest.raises(FileNotFoundError):
        FrameRecordStore.from_path(tmp_path / "missing.json")
