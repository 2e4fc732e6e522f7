"""Builders for raw profile payloads and domain objects used across tests."""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Dict, Iterable, Optional, Sequence

from abitur.academic.types import (
    ExamType,
    FatalScope,
    FederalState,
    RulesConfig,
    SemesterGrades,
    Subject,
    SubjectType,
    UserInputProfile,
)


def subject_raw(
    subject_id: str,
    name: str,
    grades: Sequence[int],
    *,
    type: str = "GK",
    mandatory: bool = False,
    exam_type: str = "None",
    exam_grade: Optional[int] = None,
    confidence: int = 7,
    stress: Iterable[str] = (),
) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "id": subject_id,
        "name": name,
        "type": type,
        "isMandatory": mandatory,
        "isBelegpflichtig": False,
        "semesterGrades": dict(zip(("Q1_1", "Q1_2", "Q2_1", "Q2_2"), grades)),
        "confidence": confidence,
        "stressFactors": list(stress),
        "isExamSubject": exam_type != "None",
        "examType": exam_type,
    }
    if exam_grade is not None:
        data["finalExamGrade"] = exam_grade
    return data


def nrw_profile_raw() -> Dict[str, Any]:
    """2 LK, 4 exam subjects (written + oral) and one non-exam subject."""
    return {
        "federalState": "NRW",
        "graduationYear": 2027,
        "subjects": [
            subject_raw("s-de", "Deutsch", [10, 11, 10, 11], type="LK", mandatory=True, exam_type="Written"),
            subject_raw("s-ma", "Mathematik", [9, 9, 10, 10], type="LK", mandatory=True, exam_type="Written"),
            subject_raw("s-en", "Englisch", [12, 12, 12, 12], exam_type="Written"),
            subject_raw("s-bi", "Biologie", [8, 8, 8, 8], exam_type="Oral"),
            subject_raw("s-sp", "Sport", [11, 11, 11, 11]),
        ],
    }


def general_rules_raw(**overrides: Any) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "lkWeight": 2,
        "gkWeight": 1,
        "deficitThreshold": 4,
        "maxDeficits": 7,
        "minTotalPoints": 300,
        "zeroIsFatal": True,
        "fatalScope": "ALL_COURSES",
    }
    data.update(overrides)
    return data


def general_profile_raw(**rules_overrides: Any) -> Dict[str, Any]:
    return {
        "federalState": "General",
        "graduationYear": 2026,
        "subjects": [subject_raw("g-de", "Deutsch", [8, 8, 8, 8])],
        "rulesConfig": general_rules_raw(**rules_overrides),
    }


def make_subject(
    subject_id: str,
    grades: Sequence[int],
    *,
    name: Optional[str] = None,
    lk: bool = False,
    mandatory: bool = False,
    exam: bool = False,
    exam_grade: Optional[int] = None,
    confidence: int = 7,
    stress: Iterable[str] = (),
) -> Subject:
    return Subject(
        id=subject_id,
        name=name or subject_id,
        type=SubjectType.LK if lk else SubjectType.GK,
        is_mandatory=mandatory,
        is_belegpflichtig=False,
        semester_grades=SemesterGrades(*grades),
        final_exam_grade=exam_grade,
        confidence=confidence,
        stress_factors=frozenset(stress),
        is_exam_subject=exam,
        exam_type=ExamType.WRITTEN if exam else ExamType.NONE,
    )


def make_rules(**overrides: Any) -> RulesConfig:
    base = RulesConfig(
        lk_weight=2,
        gk_weight=1,
        deficit_threshold=4,
        max_deficits=7,
        min_total_points=300,
        zero_is_fatal=True,
        fatal_scope=FatalScope.ALL_COURSES,
    )
    return replace(base, **overrides)


def make_profile(
    subjects: Sequence[Subject],
    *,
    rules: Optional[RulesConfig] = None,
    state: FederalState = FederalState.GENERAL,
    year: int = 2027,
) -> UserInputProfile:
    if state is FederalState.GENERAL and rules is None:
        rules = make_rules()
    return UserInputProfile(
        federal_state=state,
        graduation_year=year,
        subjects=tuple(subjects),
        rules_config=rules if state is FederalState.GENERAL else None,
    )
