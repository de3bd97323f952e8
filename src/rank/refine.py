from __future__ import annotations

import math
from dataclasses import dataclass, fields
from datetime import date
from typing import Any, Mapping

import pandas as pd

from src.normalize.schema import COMPETITION_LEVELS, coerce_date, coerce_float, coerce_levels, is_missing

SCOPES = ("Local", "National", "State", "International")
SORT_KEYS = ("match", "deadline", "amount", "competition")
SEARCH_COLUMNS = ("name", "provider", "major", "requirements")
_COMPETITION_ORDER = {level: rank for rank, level in enumerate(COMPETITION_LEVELS)}


@dataclass(frozen=True, slots=True)
class ResultFilters:
    """User-facing refinements over an already ranked match list.

    ``None`` (or an empty tuple) leaves a dimension unfiltered. The
    ``need_based`` and ``essay_required`` checks only apply to rows that carry
    the corresponding column value.
    """

    min_amount: float = 0.0
    max_amount: float = 100000.0
    competition: tuple[str, ...] = ()
    scope: tuple[str, ...] = ()
    deadline_days: int | None = None
    education_levels: tuple[str, ...] = ()
    major: str | None = None
    need_based: bool | None = None
    essay_required: bool | None = None

    def __post_init__(self) -> None:
        for name in ("min_amount", "max_amount"):
            value = getattr(self, name)
            if not math.isfinite(value) or value < 0.0:
                raise ValueError(f"Result filter '{name}' must be a finite, non-negative amount.")
        if self.min_amount > self.max_amount:
            raise ValueError("Result filter 'min_amount' must not exceed 'max_amount'.")
        unknown_levels = sorted(set(self.competition) - set(COMPETITION_LEVELS))
        if unknown_levels:
            raise ValueError("Unknown competition levels: " + ", ".join(unknown_levels))
        unknown_scopes = sorted(set(self.scope) - set(SCOPES))
        if unknown_scopes:
            raise ValueError("Unknown scopes: " + ", ".join(unknown_scopes))
        if self.deadline_days is not None and self.deadline_days < 0:
            raise ValueError("Result filter 'deadline_days' must be non-negative.")

    @classmethod
    def baseline(cls) -> ResultFilters:
        return cls()

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any] | None) -> ResultFilters:
        values = dict(payload or {})
        known = {item.name for item in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ValueError("Unknown result filters: " + ", ".join(unknown))

        for name in ("competition", "scope", "education_levels"):
            if name in values:
                raw = values[name]
                if isinstance(raw, str):
                    raise ValueError(f"Result filter '{name}' must be a list.")
                values[name] = tuple(str(item) for item in raw or ())
        for name in ("min_amount", "max_amount"):
            if name in values:
                values[name] = float(values[name])
        if values.get("deadline_days") is not None:
            values["deadline_days"] = int(values["deadline_days"])
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        payload = {item.name: getattr(self, item.name) for item in fields(self)}
        for name in ("competition", "scope", "education_levels"):
            payload[name] = list(payload[name])
        return payload


def _column(df: pd.DataFrame, name: str) -> pd.Series:
    if name in df.columns:
        return df[name]
    return pd.Series([None] * len(df), index=df.index, dtype=object)


def _lower_text(value: Any) -> str:
    if is_missing(value):
        return ""
    return str(value).lower()


def _truthy(value: Any) -> bool:
    return not is_missing(value) and bool(value)


def _in_scope(row: Mapping[str, Any], scopes: tuple[str, ...]) -> bool:
    is_local = _truthy(row.get("is_local"))
    national = _truthy(row.get("national"))
    has_state = bool(_lower_text(row.get("state")).strip())
    checks = {
        "Local": is_local or (has_state and not national),
        "National": national and not is_local,
        "State": has_state,
        "International": national,
    }
    return any(checks[scope] for scope in scopes)


def _matches_flag(value: Any, wanted: bool | None) -> bool:
    if wanted is None or is_missing(value):
        return True
    return bool(value) == wanted


def filter_matches(
    ranked_df: pd.DataFrame,
    filters: ResultFilters | None = None,
    search_term: str | None = None,
    *,
    today: date | None = None,
) -> pd.DataFrame:
    """Keep the rows passing every active filter, in their current order."""

    active = filters or ResultFilters.baseline()
    if ranked_df.empty:
        return ranked_df.copy().reset_index(drop=True)

    mask = pd.Series(True, index=ranked_df.index)

    term = (search_term or "").strip().lower()
    if term:
        hits = pd.Series(False, index=ranked_df.index)
        for column in SEARCH_COLUMNS:
            hits = hits | _column(ranked_df, column).map(lambda value: term in _lower_text(value)).astype(bool)
        mask &= hits

    amounts = _column(ranked_df, "amount").map(lambda value: coerce_float(value) or 0.0)
    mask &= (amounts >= active.min_amount) & (amounts <= active.max_amount)

    if active.competition:
        mask &= _column(ranked_df, "competition_level").isin(active.competition)

    if active.scope:
        records = ranked_df.to_dict(orient="records")
        mask &= pd.Series([_in_scope(row, active.scope) for row in records], index=ranked_df.index)

    if active.deadline_days is not None:
        effective_today = today or date.today()
        window = active.deadline_days
        mask &= _column(ranked_df, "deadline").map(
            lambda value: coerce_date(value) is not None and (coerce_date(value) - effective_today).days <= window
        ).astype(bool)

    if active.education_levels:
        wanted_levels = set(active.education_levels)
        mask &= _column(ranked_df, "education_level").map(
            lambda value: bool(wanted_levels.intersection(coerce_levels(value) or []))
        ).astype(bool)

    if active.major is not None:
        mask &= _column(ranked_df, "major").map(lambda value: not is_missing(value) and value == active.major).astype(bool)

    mask &= _column(ranked_df, "is_need_based").map(lambda value: _matches_flag(value, active.need_based)).astype(bool)
    mask &= _column(ranked_df, "essay_required").map(
        lambda value: _matches_flag(value, active.essay_required)
    ).astype(bool)

    return ranked_df[mask].copy().reset_index(drop=True)


def sort_matches(ranked_df: pd.DataFrame, sort_by: str = "match") -> pd.DataFrame:
    """Re-order matches by one of ``SORT_KEYS``; ties keep their ranked order."""

    if sort_by not in SORT_KEYS:
        raise ValueError(f"Unknown sort key '{sort_by}'. Expected one of: {', '.join(SORT_KEYS)}")
    if ranked_df.empty:
        return ranked_df.copy().reset_index(drop=True)

    if sort_by == "match":
        key = pd.to_numeric(_column(ranked_df, "score"), errors="coerce")
        ascending = False
    elif sort_by == "deadline":
        key = pd.to_datetime(_column(ranked_df, "deadline").map(coerce_date), errors="coerce")
        ascending = True
    elif sort_by == "amount":
        key = _column(ranked_df, "amount").map(lambda value: coerce_float(value) or 0.0)
        ascending = False
    else:
        key = _column(ranked_df, "competition_level").map(_COMPETITION_ORDER)
        ascending = True

    keyed_df = ranked_df.assign(_sort_key=key)
    keyed_df = keyed_df.sort_values(by="_sort_key", ascending=ascending, kind="mergesort", na_position="last")
    return keyed_df.drop(columns=["_sort_key"]).reset_index(drop=True)


def refine_matches(
    ranked_df: pd.DataFrame,
    filters: ResultFilters | None = None,
    *,
    search_term: str | None = None,
    sort_by: str = "match",
    today: date | None = None,
) -> pd.DataFrame:
    return sort_matches(filter_matches(ranked_df, filters, search_term, today=today), sort_by)
