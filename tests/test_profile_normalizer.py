from __future__ import annotations

import pytest

from src.normalize.profile import (
    InvalidProfileError,
    UserProfile,
    has_required_answers,
    normalize_answers,
    profile_fingerprint,
)


def test_normalize_answers_parses_gpa_and_pell_flag() -> None:
    profile = normalize_answers(
        {
            "education_level": "College Junior",
            "school": "UCLA",
            "major": "Computer Science",
            "gpa": "3.8",
            "location": "CA",
            "is_pell_eligible": "Yes",
        }
    )

    assert profile == UserProfile(
        education_level="College Junior",
        school="UCLA",
        major="Computer Science",
        gpa=3.8,
        location="CA",
        is_pell_eligible=True,
    )


@pytest.mark.parametrize("answer", ["yes", "YES", "No", "", None, True])
def test_pell_flag_requires_exact_yes(answer: object) -> None:
    profile = normalize_answers({"gpa": "3.0", "is_pell_eligible": answer})

    assert profile.is_pell_eligible is False


def test_missing_text_answers_default_to_empty_strings() -> None:
    profile = normalize_answers({"gpa": "2.5"})

    assert profile.school == ""
    assert profile.major == ""
    assert profile.location == ""
    assert profile.education_level == ""


def test_camel_case_form_keys_are_accepted() -> None:
    profile = normalize_answers({"educationLevel": "High School Senior", "gpa": "4", "isPellEligible": "Yes"})

    assert profile.education_level == "High School Senior"
    assert profile.gpa == 4.0
    assert profile.is_pell_eligible is True


@pytest.mark.parametrize("gpa", ["abc", "", None, "nan", "inf", "-1.0"])
def test_unusable_gpa_raises_invalid_profile_error(gpa: object) -> None:
    with pytest.raises(InvalidProfileError):
        normalize_answers({"gpa": gpa, "major": "Biology"})


def test_invalid_profile_error_is_a_value_error() -> None:
    assert issubclass(InvalidProfileError, ValueError)


def test_has_required_answers_checks_level_major_and_gpa() -> None:
    assert has_required_answers({"education_level": "College Junior", "major": "Math", "gpa": "3.1"})
    assert not has_required_answers({"education_level": "College Junior", "major": "  ", "gpa": "3.1"})
    assert not has_required_answers({"major": "Math", "gpa": "3.1"})


def test_profile_fingerprint_is_pipe_joined_in_fixed_order() -> None:
    profile = UserProfile(
        education_level="College Junior",
        school="UCLA",
        major="Computer Science",
        gpa=3.8,
        location="CA",
        is_pell_eligible=False,
    )

    assert profile_fingerprint(profile) == "College Junior|Computer Science|3.8|CA|false"


def test_profile_fingerprint_ignores_school() -> None:
    base = normalize_answers({"gpa": "3.5", "school": "UCLA", "major": "Art"})
    other = normalize_answers({"gpa": "3.50", "school": "Stanford", "major": "Art"})

    assert profile_fingerprint(base) == profile_fingerprint(other)
