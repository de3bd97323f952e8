from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Mapping

_ANSWER_ALIASES = {
    "education_level": ("education_level", "educationLevel"),
    "school": ("school",),
    "major": ("major",),
    "gpa": ("gpa",),
    "location": ("location",),
    "is_pell_eligible": ("is_pell_eligible", "isPellEligible"),
}
REQUIRED_ANSWERS = ("education_level", "major", "gpa")


class InvalidProfileError(ValueError):
    """Raised when questionnaire answers cannot be turned into a profile."""


@dataclass(frozen=True, slots=True)
class UserProfile:
    education_level: str
    school: str
    major: str
    gpa: float
    location: str
    is_pell_eligible: bool

    def __post_init__(self) -> None:
        if not math.isfinite(self.gpa) or self.gpa < 0.0:
            raise InvalidProfileError(f"GPA must be a finite, non-negative number (received {self.gpa!r}).")


def _answer(raw: Mapping[str, Any], field_name: str) -> Any:
    for key in _ANSWER_ALIASES[field_name]:
        if key in raw:
            return raw[key]
    return None


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _parse_gpa(value: Any) -> float:
    if value is None or isinstance(value, bool):
        raise InvalidProfileError(f"GPA is required and must be numeric (received {value!r}).")
    try:
        gpa = float(str(value).strip())
    except ValueError as exc:
        raise InvalidProfileError(f"GPA must be numeric (received {value!r}).") from exc
    if not math.isfinite(gpa) or gpa < 0.0:
        raise InvalidProfileError(f"GPA must be a finite, non-negative number (received {value!r}).")
    return gpa


def has_required_answers(raw: Mapping[str, Any]) -> bool:
    return all(_as_text(_answer(raw, field_name)).strip() for field_name in REQUIRED_ANSWERS)


def normalize_answers(raw: Mapping[str, Any]) -> UserProfile:
    """Convert raw questionnaire answers (form strings) into a typed profile.

    Only the GPA is validated. Pell eligibility is true solely for the exact
    answer ``"Yes"``.
    """

    return UserProfile(
        education_level=_as_text(_answer(raw, "education_level")),
        school=_as_text(_answer(raw, "school")),
        major=_as_text(_answer(raw, "major")),
        gpa=_parse_gpa(_answer(raw, "gpa")),
        location=_as_text(_answer(raw, "location")),
        is_pell_eligible=_answer(raw, "is_pell_eligible") == "Yes",
    )


def profile_fingerprint(profile: UserProfile) -> str:
    return "|".join(
        [
            profile.education_level,
            profile.major,
            format(profile.gpa, "g"),
            profile.location,
            "true" if profile.is_pell_eligible else "false",
        ]
    )
