from __future__ import annotations

import json
import logging
import threading
from dataclasses import asdict
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping, Sequence

import pandas as pd

from src.normalize.schema import (
    SCHOLARSHIP_COLUMNS,
    coerce_float,
    coerce_levels,
    is_missing,
    prepare_scholarship_df,
    record_from_row,
)
from src.store.base import AnyOf, Contains, Eq, Filter, IsNull, Lte, RecordStore, StoreError

logger = logging.getLogger(__name__)

FrameFunction = Callable[[pd.DataFrame, Mapping[str, Any]], pd.DataFrame]


def _predicate_mask(df: pd.DataFrame, predicate: Filter) -> pd.Series:
    if isinstance(predicate, AnyOf):
        if not predicate.predicates:
            raise ValueError("AnyOf requires at least one predicate.")
        mask = pd.Series(False, index=df.index)
        for item in predicate.predicates:
            mask = mask | _predicate_mask(df, item)
        return mask

    if predicate.column not in df.columns:
        raise StoreError(f"Unknown column '{predicate.column}'.")
    column = df[predicate.column]

    if isinstance(predicate, IsNull):
        return column.map(is_missing).astype(bool)
    if isinstance(predicate, Eq):
        return column.map(lambda value: not is_missing(value) and value == predicate.value).astype(bool)
    if isinstance(predicate, Lte):
        limit = float(predicate.value)
        return column.map(
            lambda value: coerce_float(value) is not None and coerce_float(value) <= limit
        ).astype(bool)
    if isinstance(predicate, Contains):
        return column.map(lambda value: predicate.value in (coerce_levels(value) or [])).astype(bool)
    raise TypeError(f"Unsupported filter type: {type(predicate).__name__}")


class FrameRecordStore(RecordStore):
    """In-memory record store over a DataFrame, for snapshots, fixtures and tests."""

    def __init__(
        self,
        records: pd.DataFrame | list[dict[str, Any]] | None = None,
        *,
        functions: Mapping[str, FrameFunction] | None = None,
    ) -> None:
        self._df = prepare_scholarship_df(records if records is not None else [])
        self._functions = dict(functions or {})
        self._lock = threading.Lock()

    @classmethod
    def from_path(cls, path: Path, **kwargs: Any) -> FrameRecordStore:
        if not path.exists():
            raise FileNotFoundError(f"Scholarship records file '{path}' does not exist.")
        if path.suffix == ".parquet":
            return cls(pd.read_parquet(path), **kwargs)
        payload = json.loads(path.read_text(encoding="utf-8"))
        if isinstance(payload, dict):
            payload = payload.get("scholarships", [])
        if not isinstance(payload, list):
            raise ValueError(f"Records file '{path}' must hold a list of scholarships.")
        return cls(payload, **kwargs)

    def __len__(self) -> int:
        return int(len(self._df))

    def snapshot(self) -> pd.DataFrame:
        with self._lock:
            return self._df.copy()

    def query_scholarships(self, filters: Sequence[Filter] = (), *, limit: int = 100) -> pd.DataFrame:
        with self._lock:
            df = self._df
            mask = pd.Series(True, index=df.index)
            for predicate in filters:
                mask = mask & _predicate_mask(df, predicate)
            return df[mask].head(limit).copy().reset_index(drop=True)

    def call_function(self, name: str, params: Mapping[str, Any]) -> pd.DataFrame:
        function = self._functions.get(name)
        if function is None:
            raise StoreError(f"Function '{name}' is not available on this store.")
        with self._lock:
            source_df = self._df.copy()
        return prepare_scholarship_df(function(source_df, params))

    def upsert(self, records: Iterable[Mapping[str, Any]]) -> int:
        normalized = [asdict(record_from_row(record)) for record in records]
        if not normalized:
            return 0
        incoming_df = prepare_scholarship_df(normalized)
        with self._lock:
            remaining_df = self._df[~self._df["id"].isin(incoming_df["id"])]
            combined_df = pd.concat([remaining_df, incoming_df[SCHOLARSHIP_COLUMNS]], ignore_index=True)
            self._df = prepare_scholarship_df(combined_df)
        return len(normalized)

    def delete(self, scholarship_ids: Iterable[str]) -> int:
        ids = {str(item) for item in scholarship_ids}
        with self._lock:
            doomed = self._df["id"].isin(ids)
            removed = int(doomed.sum())
            self._df = self._df[~doomed].reset_index(drop=True)
        return removed

    def increment_popularity(self, scholarship_id: str) -> None:
        with self._lock:
            matches = self._df.index[self._df["id"] == str(scholarship_id)]
            if len(matches) == 0:
                raise StoreError(f"Scholarship '{scholarship_id}' does not exist.")
            for index in matches:
                current = self._df.at[index, "popularity"]
                self._df.at[index, "popularity"] = (0 if is_missing(current) else int(current)) + 1
