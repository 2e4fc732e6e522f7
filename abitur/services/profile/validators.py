"""Profile validators: raw (decoded JSON) input -> UserInputProfile or violations."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Optional, Tuple, Type

from abitur.academic.types import (
    MAX_GRADE,
    MIN_GRADE,
    PERIOD_KEYS,
    STRESS_FACTOR_OPTIONS,
    ExamType,
    FatalScope,
    FederalState,
    MandatoryRequirement,
    RulesConfig,
    SemesterGrades,
    Subject,
    SubjectType,
    UserInputProfile,
)
from abitur.services.shared.dto import ViolationPayload

MIN_GRADUATION_YEAR = 2024
MAX_GRADUATION_YEAR = 2030
MIN_CONFIDENCE = 0
MAX_CONFIDENCE = 10


@dataclass(frozen=True)
class Violation:
    path: str
    code: str
    message: str

    def as_dict(self) -> ViolationPayload:
        return {"path": self.path, "code": self.code, "message": self.message}


@dataclass(frozen=True)
class ValidationResult:
    profile: Optional[UserInputProfile]
    violations: Tuple[Violation, ...] = ()

    @property
    def ok(self) -> bool:
        return self.profile is not None and not self.violations


@dataclass(frozen=True)
class JurisdictionConstraints:
    lk_count: Optional[int]
    exam_count: Optional[int]
    requires_rules_config: bool


JURISDICTION_CONSTRAINTS = MappingProxyType(
    {
        FederalState.NRW: JurisdictionConstraints(lk_count=2, exam_count=4, requires_rules_config=False),
        FederalState.BAVARIA: JurisdictionConstraints(lk_count=2, exam_count=5, requires_rules_config=False),
        FederalState.GENERAL: JurisdictionConstraints(lk_count=None, exam_count=None, requires_rules_config=True),
    }
)


class _Issues:
    def __init__(self) -> None:
        self.items: List[Violation] = []

    def add(self, path: str, code: str, message: str) -> None:
        self.items.append(Violation(path=path, code=code, message=message))

    def __len__(self) -> int:
        return len(self.items)


# ── field readers ────────────────────────────────────────────────────────────

def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _join(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def _read_int(
    issues: _Issues,
    obj: Dict[str, Any],
    key: str,
    path: str,
    *,
    lo: Optional[int] = None,
    hi: Optional[int] = None,
    required: bool = True,
    default: Optional[int] = None,
) -> Optional[int]:
    p = _join(path, key)
    value = obj.get(key)
    if value is None:
        if required:
            issues.add(p, "REQUIRED", f"{key} is required")
        return default
    if not _is_int(value):
        issues.add(p, "INVALID_TYPE", f"{key} must be an integer")
        return None
    if lo is not None and value < lo:
        issues.add(p, "OUT_OF_RANGE", f"{key} must be at least {lo}")
        return None
    if hi is not None and value > hi:
        issues.add(p, "OUT_OF_RANGE", f"{key} must be at most {hi}")
        return None
    return value


def _read_number(
    issues: _Issues, obj: Dict[str, Any], key: str, path: str, *, lo: float, default: float
) -> Optional[float]:
    p = _join(path, key)
    value = obj.get(key)
    if value is None:
        return default
    if not _is_number(value):
        issues.add(p, "INVALID_TYPE", f"{key} must be a number")
        return None
    if value < lo:
        issues.add(p, "OUT_OF_RANGE", f"{key} must be at least {lo:g}")
        return None
    return float(value)


def _read_bool(
    issues: _Issues, obj: Dict[str, Any], key: str, path: str, *, default: Optional[bool] = None
) -> Optional[bool]:
    p = _join(path, key)
    value = obj.get(key)
    if value is None:
        if default is None:
            issues.add(p, "REQUIRED", f"{key} is required")
        return default
    if not isinstance(value, bool):
        issues.add(p, "INVALID_TYPE", f"{key} must be a boolean")
        return None
    return value


def _read_str(issues: _Issues, obj: Dict[str, Any], key: str, path: str) -> Optional[str]:
    p = _join(path, key)
    value = obj.get(key)
    if value is None:
        issues.add(p, "REQUIRED", f"{key} is required")
        return None
    if not isinstance(value, str) or not value.strip():
        issues.add(p, "INVALID_TYPE", f"{key} must be a non-empty string")
        return None
    return value.strip()


def _read_enum(
    issues: _Issues,
    obj: Dict[str, Any],
    key: str,
    path: str,
    enum_cls: Type[Enum],
    *,
    default: Optional[Enum] = None,
) -> Optional[Any]:
    p = _join(path, key)
    value = obj.get(key)
    if value is None:
        if default is None:
            issues.add(p, "REQUIRED", f"{key} is required")
        return default
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(f'"{m.value}"' for m in enum_cls)
        issues.add(p, "INVALID_CHOICE", f"{key} must be one of {allowed}")
        return None


# ── subject ──────────────────────────────────────────────────────────────────

def _validate_semester_grades(issues: _Issues, raw: Any, path: str) -> Optional[SemesterGrades]:
    if not isinstance(raw, dict):
        issues.add(path, "INVALID_TYPE", "semesterGrades must be an object with Q1_1, Q1_2, Q2_1 and Q2_2")
        return None
    before = len(issues)
    values = [_read_int(issues, raw, key, path, lo=MIN_GRADE, hi=MAX_GRADE) for key in PERIOD_KEYS]
    if len(issues) != before:
        return None
    return SemesterGrades(*values)


def _validate_stress_factors(issues: _Issues, raw: Any, path: str) -> Optional[frozenset]:
    if raw is None:
        return frozenset()
    if not isinstance(raw, list):
        issues.add(path, "INVALID_TYPE", "stressFactors must be a list")
        return None
    before = len(issues)
    for i, tag in enumerate(raw):
        if tag not in STRESS_FACTOR_OPTIONS:
            issues.add(f"{path}[{i}]", "INVALID_CHOICE", f"Unknown stress factor: {tag!r}")
    if len(issues) != before:
        return None
    return frozenset(raw)


def validate_subject(issues: _Issues, raw: Any, path: str) -> Optional[Subject]:
    if not isinstance(raw, dict):
        issues.add(path, "INVALID_TYPE", "Subject must be an object")
        return None
    before = len(issues)

    subject_id = _read_str(issues, raw, "id", path)
    name = _read_str(issues, raw, "name", path)
    subject_type = _read_enum(issues, raw, "type", path, SubjectType)
    is_mandatory = _read_bool(issues, raw, "isMandatory", path)
    is_belegpflichtig = _read_bool(issues, raw, "isBelegpflichtig", path, default=False)
    grades = _validate_semester_grades(issues, raw.get("semesterGrades"), _join(path, "semesterGrades"))
    final_exam_grade = _read_int(issues, raw, "finalExamGrade", path, lo=MIN_GRADE, hi=MAX_GRADE, required=False)
    confidence = _read_int(issues, raw, "confidence", path, lo=MIN_CONFIDENCE, hi=MAX_CONFIDENCE)
    stress_factors = _validate_stress_factors(issues, raw.get("stressFactors"), _join(path, "stressFactors"))
    is_exam = _read_bool(issues, raw, "isExamSubject", path)
    exam_type = _read_enum(issues, raw, "examType", path, ExamType)

    if is_exam is False and exam_type is not None and exam_type is not ExamType.NONE:
        issues.add(
            _join(path, "examType"),
            "EXAM_TYPE_MISMATCH",
            f'examType must be "{ExamType.NONE.value}" when isExamSubject is false',
        )
    if is_exam is True and exam_type is ExamType.NONE:
        issues.add(
            _join(path, "examType"),
            "EXAM_TYPE_MISSING",
            "Exam subjects must have an examType of Written, Oral, or Colloquium",
        )
    if is_exam is False and raw.get("finalExamGrade") is not None:
        issues.add(
            _join(path, "finalExamGrade"),
            "EXAM_GRADE_NOT_ALLOWED",
            "finalExamGrade is only allowed for exam subjects",
        )

    if len(issues) != before:
        return None
    return Subject(
        id=subject_id,
        name=name,
        type=subject_type,
        is_mandatory=is_mandatory,
        is_belegpflichtig=is_belegpflichtig,
        semester_grades=grades,
        final_exam_grade=final_exam_grade,
        confidence=confidence,
        stress_factors=stress_factors,
        is_exam_subject=is_exam,
        exam_type=exam_type,
    )


# ── rules config (General) ───────────────────────────────────────────────────

def _validate_mandatory_names(issues: _Issues, raw: Any, path: str) -> Optional[Tuple[MandatoryRequirement, ...]]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        issues.add(path, "INVALID_TYPE", "customMandatorySubjects must be a list of subject names")
        return None
    out = []
    for i, name in enumerate(raw):
        if not isinstance(name, str) or not name.strip():
            issues.add(f"{path}[{i}]", "INVALID_TYPE", "Subject name must be a non-empty string")
            continue
        out.append(MandatoryRequirement(label=name.strip(), patterns=(name.strip().lower(),), match_substring=True))
    return tuple(out)


def validate_rules_config(issues: _Issues, raw: Any, path: str = "rulesConfig") -> Optional[RulesConfig]:
    if not isinstance(raw, dict):
        issues.add(path, "INVALID_TYPE", "rulesConfig must be an object")
        return None
    before = len(issues)

    lk_weight = _read_int(issues, raw, "lkWeight", path, lo=1)
    gk_weight = _read_int(issues, raw, "gkWeight", path, lo=1)
    deficit_threshold = _read_int(issues, raw, "deficitThreshold", path, lo=MIN_GRADE, hi=MAX_GRADE)
    max_deficits = _read_int(issues, raw, "maxDeficits", path, lo=0)
    min_total_points = _read_int(issues, raw, "minTotalPoints", path, lo=0)
    zero_is_fatal = _read_bool(issues, raw, "zeroIsFatal", path)
    fatal_scope = _read_enum(issues, raw, "fatalScope", path, FatalScope)
    exam_weight = _read_int(issues, raw, "examWeight", path, lo=1, required=False, default=4)
    near_miss_margin = _read_int(issues, raw, "nearMissMargin", path, lo=0, required=False, default=30)
    max_lk_deficits = _read_int(issues, raw, "maxLkDeficits", path, lo=0, required=False)
    required_lk_count = _read_int(issues, raw, "requiredLkCount", path, lo=0, required=False, default=0)
    required_exam_count = _read_int(issues, raw, "requiredExamCount", path, lo=0, required=False, default=0)
    anchor_threshold = _read_number(issues, raw, "anchorThreshold", path, lo=0, default=3.0)
    volatility_threshold = _read_number(issues, raw, "volatilityThreshold", path, lo=0, default=3.5)
    mandatory = _validate_mandatory_names(
        issues, raw.get("customMandatorySubjects"), _join(path, "customMandatorySubjects")
    )

    if len(issues) != before:
        return None
    return RulesConfig(
        lk_weight=lk_weight,
        gk_weight=gk_weight,
        deficit_threshold=deficit_threshold,
        max_deficits=max_deficits,
        min_total_points=min_total_points,
        zero_is_fatal=zero_is_fatal,
        fatal_scope=fatal_scope,
        exam_weight=exam_weight,
        near_miss_margin=near_miss_margin,
        max_lk_deficits=max_lk_deficits,
        required_lk_count=required_lk_count,
        required_exam_count=required_exam_count,
        mandatory_subjects=mandatory,
        anchor_threshold=anchor_threshold,
        volatility_threshold=volatility_threshold,
    )


# ── jurisdiction constraints ─────────────────────────────────────────────────

def validate_jurisdiction_counts(
    issues: _Issues, state: FederalState, raw_subjects: List[Any]
) -> None:
    constraints = JURISDICTION_CONSTRAINTS[state]
    subjects = [s for s in raw_subjects if isinstance(s, dict)]
    lk_count = sum(1 for s in subjects if s.get("type") == SubjectType.LK.value)
    exam_count = sum(1 for s in subjects if s.get("isExamSubject") is True)

    if constraints.lk_count is not None and lk_count != constraints.lk_count:
        issues.add(
            "subjects",
            "LK_COUNT",
            f"{state.value} requires exactly {constraints.lk_count} LK subjects, found {lk_count}",
        )
    if constraints.exam_count is not None and exam_count != constraints.exam_count:
        issues.add(
            "subjects",
            "EXAM_COUNT",
            f"{state.value} requires exactly {constraints.exam_count} exam subjects, found {exam_count}",
        )


def _validate_rules_presence(issues: _Issues, state: FederalState, raw: Dict[str, Any]) -> Optional[RulesConfig]:
    constraints = JURISDICTION_CONSTRAINTS[state]
    rules_raw = raw.get("rulesConfig")
    if constraints.requires_rules_config:
        if rules_raw is None:
            issues.add("rulesConfig", "REQUIRED", f"rulesConfig is required for {state.value}")
            return None
        return validate_rules_config(issues, rules_raw)
    if rules_raw is not None:
        issues.add(
            "rulesConfig",
            "RULES_CONFIG_FORBIDDEN",
            f"rulesConfig is not allowed for {state.value}; built-in rules apply",
        )
    return None


# ── entry points ─────────────────────────────────────────────────────────────

def validate_profile(raw: Any) -> ValidationResult:
    issues = _Issues()
    if not isinstance(raw, dict):
        issues.add("$", "INVALID_TYPE", "Profile must be a JSON object")
        return ValidationResult(profile=None, violations=tuple(issues.items))

    state = _read_enum(issues, raw, "federalState", "", FederalState)
    graduation_year = _read_int(issues, raw, "graduationYear", "", lo=MIN_GRADUATION_YEAR, hi=MAX_GRADUATION_YEAR)

    raw_subjects = raw.get("subjects")
    subjects: List[Optional[Subject]] = []
    if not isinstance(raw_subjects, list):
        issues.add("subjects", "INVALID_TYPE", "subjects must be a list")
        raw_subjects = []
    elif not raw_subjects:
        issues.add("subjects", "TOO_SHORT", "At least one subject is required")
    else:
        seen_ids = set()
        for i, item in enumerate(raw_subjects):
            subject = validate_subject(issues, item, f"subjects[{i}]")
            subjects.append(subject)
            if subject is None:
                continue
            if subject.id in seen_ids:
                issues.add(f"subjects[{i}].id", "DUPLICATE_SUBJECT_ID", f"Duplicate subject id: {subject.id}")
            seen_ids.add(subject.id)

    rules_config = None
    if state is not None:
        validate_jurisdiction_counts(issues, state, raw_subjects)
        rules_config = _validate_rules_presence(issues, state, raw)

    if issues.items:
        return ValidationResult(profile=None, violations=tuple(issues.items))
    return ValidationResult(
        profile=UserInputProfile(
            federal_state=state,
            graduation_year=graduation_year,
            subjects=tuple(subjects),
            rules_config=rules_config,
        )
    )


def decode_profile_blob(text: Optional[str]) -> ValidationResult:
    """Decode a persisted profile blob; missing or malformed text becomes a violation."""
    if text is None or not str(text).strip():
        return ValidationResult(
            profile=None,
            violations=(Violation("$", "MISSING_PROFILE", "No stored profile found"),),
        )
    try:
        data = json.loads(text)
    except (TypeError, ValueError, RecursionError) as e:
        return ValidationResult(
            profile=None,
            violations=(Violation("$", "INVALID_JSON", f"Stored profile is not valid JSON: {e}"),),
        )
    return validate_profile(data)
