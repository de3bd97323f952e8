from __future__ import annotations

import math
from dataclasses import dataclass, field, fields
from typing import Any, Mapping

STEM_MAJORS = (
    "Computer Science",
    "Engineering",
    "Mathematics",
    "Physics",
    "Chemistry",
    "Biology",
    "Information Technology",
    "Data Science",
    "Statistics",
    "Biochemistry",
    "Environmental Science",
    "Neuroscience",
    "Robotics",
    "Cybersecurity",
)
BUSINESS_MAJORS = (
    "Business",
    "Finance",
    "Accounting",
    "Economics",
    "Marketing",
    "Management",
    "Entrepreneurship",
    "Business Administration",
)


@dataclass(frozen=True, slots=True)
class ScoringWeights:
    """Point values for the additive match score.

    Each adjustment is added to ``base``; the total is rounded and clamped to
    [0, 100]. ``disqualify`` is the penalty applied for a hard mismatch
    (GPA shortfall, passed deadline, missing Pell eligibility).
    """

    base: float = 100.0
    education_match: float = 25.0
    education_open: float = 15.0
    education_mismatch: float = -25.0
    location_open: float = 10.0
    location_match: float = 20.0
    location_mismatch: float = -20.0
    school_match: float = 25.0
    school_mismatch: float = -25.0
    major_open: float = 15.0
    major_match: float = 30.0
    major_category_match: float = 25.0
    major_mismatch: float = -30.0
    gpa_open: float = 15.0
    gpa_base: float = 15.0
    gpa_per_point: float = 10.0
    gpa_cap: float = 25.0
    amount_cap: float = 20.0
    amount_reference: float = 10000.0
    competition_low: float = 10.0
    competition_medium: float = 5.0
    competition_high: float = -5.0
    pell_match: float = 15.0
    deadline_week: float = 10.0
    deadline_month: float = 5.0
    deadline_distant: float = -5.0
    disqualify: float = -100.0

    def __post_init__(self) -> None:
        for weight in fields(self):
            value = float(getattr(self, weight.name))
            if not math.isfinite(value):
                raise ValueError(f"Scoring weight '{weight.name}' must be finite.")
        if self.amount_reference <= 0.0:
            raise ValueError("Scoring weight 'amount_reference' must be positive.")

    @classmethod
    def baseline(cls) -> ScoringWeights:
        return cls()

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any] | None) -> ScoringWeights:
        values = payload or {}
        known = {weight.name for weight in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ValueError("Unknown scoring weights: " + ", ".join(unknown))
        return cls(**{name: float(value) for name, value in values.items()})

    def to_dict(self) -> dict[str, float]:
        return {weight.name: float(getattr(self, weight.name)) for weight in fields(self)}


@dataclass(frozen=True, slots=True)
class MajorCategoryTable:
    """Category tokens (as used in a scholarship's ``major``) and their member majors."""

    categories: Mapping[str, tuple[str, ...]] = field(
        default_factory=lambda: {"STEM": STEM_MAJORS, "Business": BUSINESS_MAJORS}
    )

    @classmethod
    def baseline(cls) -> MajorCategoryTable:
        return cls()

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any] | None) -> MajorCategoryTable:
        if not payload:
            return cls.baseline()
        categories: dict[str, tuple[str, ...]] = {}
        for token, majors in payload.items():
            if isinstance(majors, str) or not isinstance(majors, (list, tuple)):
                raise ValueError(f"Major category '{token}' must map to a list of majors.")
            categories[str(token)] = tuple(str(major).strip() for major in majors if str(major).strip())
        return cls(categories=categories)

    def category_for(self, token: str | None) -> str | None:
        if token and token in self.categories:
            return token
        return None

    def major_in_category(self, major: str | None, token: str | None) -> bool:
        category = self.category_for(token)
        if category is None:
            return False
        normalized_major = (major or "").strip().lower()
        for member in self.categories[category]:
            normalized_member = member.lower()
            if normalized_member in normalized_major or normalized_major in normalized_member:
                return True
        return False

    def to_dict(self) -> dict[str, list[str]]:
        return {name: list(majors) for name, majors in self.categories.items()}
