from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional

import pandas as pd

SCHOLARSHIP_COLUMNS = [
    "id",
    "name",
    "provider",
    "amount",
    "deadline",
    "education_level",
    "state",
    "national",
    "is_local",
    "school",
    "major",
    "gpa_requirement",
    "competition_level",
    "is_pell_eligible",
    "link",
    "popularity",
]

COMPETITION_LEVELS = ("Low", "Medium", "High")


@dataclass(slots=True)
class ScholarshipRecord:
    """Scholarship row as stored in the record store; read-only to matching."""

    id: str
    name: str
    provider: str
    amount: float
    deadline: Optional[date]
    education_level: Optional[list[str]]
    state: Optional[str]
    national: Optional[bool]
    is_local: Optional[bool]
    school: Optional[str]
    major: Optional[str]
    gpa_requirement: Optional[float]
    competition_level: Optional[str]
    is_pell_eligible: Optional[bool]
    link: Optional[str] = None
    popularity: Optional[int] = None


def is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float):
        return math.isnan(value)
    if isinstance(value, (list, tuple, dict, set)):
        return False
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def coerce_date(value: Any) -> date | None:
    if is_missing(value):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, pd.Timestamp):
        return value.date()

    cleaned = str(value).strip()
    if not cleaned:
        return None
    try:
        return datetime.fromisoformat(cleaned.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    try:
        return date.fromisoformat(cleaned[:10])
    except ValueError:
        return None


def coerce_float(value: Any) -> float | None:
    if is_missing(value):
        return None
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(numeric):
        return None
    return numeric


def coerce_levels(value: Any) -> list[str] | None:
    if is_missing(value):
        return None
    if isinstance(value, str):
        cleaned = value.strip()
        return [cleaned] if cleaned else None
    try:
        values = [str(item).strip() for item in value if not is_missing(item)]
    except TypeError:
        return None
    return [item for item in values if item] or None


def prepare_scholarship_df(records: pd.DataFrame | list[dict[str, Any]]) -> pd.DataFrame:
    """Return a copy with every scholarship column present and typed consistently."""

    df = records.copy() if isinstance(records, pd.DataFrame) else pd.DataFrame(records)
    for column in SCHOLARSHIP_COLUMNS:
        if column not in df.columns:
            df[column] = None

    if df.empty:
        return df.reset_index(drop=True)

    df["id"] = df["id"].map(lambda value: None if is_missing(value) else str(value))
    df["amount"] = df["amount"].map(lambda value: max(coerce_float(value) or 0.0, 0.0))
    df["gpa_requirement"] = df["gpa_requirement"].map(coerce_float).astype(object)
    df["deadline"] = df["deadline"].map(coerce_date).astype(object)
    df["education_level"] = df["education_level"].map(coerce_levels).astype(object)
    return df.reset_index(drop=True)


def record_from_row(row: Any) -> ScholarshipRecord:
    def _text(key: str) -> str | None:
        value = row.get(key)
        return None if is_missing(value) else str(value)

    def _flag(key: str) -> bool | None:
        value = row.get(key)
        return None if is_missing(value) else bool(value)

    popularity = coerce_float(row.get("popularity"))
    return ScholarshipRecord(
        id=str(row.get("id")),
        name=_text("name") or "",
        provider=_text("provider") or "",
        amount=coerce_float(row.get("amount")) or 0.0,
        deadline=coerce_date(row.get("deadline")),
        education_level=coerce_levels(row.get("education_level")),
        state=_text("state"),
        national=_flag("national"),
        is_local=_flag("is_local"),
        school=_text("school"),
        major=_text("major"),
        gpa_requirement=coerce_float(row.get("gpa_requirement")),
        competition_level=_text("competition_level"),
        is_pell_eligible=_flag("is_pell_eligible"),
        link=_text("link"),
        popularity=None if popularity is None else int(popularity),
    )
