"""Immutable domain values shared by the risk engine stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, FrozenSet, Mapping, Optional, Tuple


class FederalState(str, Enum):
    NRW = "NRW"
    BAVARIA = "Bavaria"
    GENERAL = "General"

    @property
    def is_configurable(self) -> bool:
        return self is FederalState.GENERAL


class SubjectType(str, Enum):
    LK = "LK"  # Leistungskurs
    GK = "GK"  # Grundkurs


class ExamType(str, Enum):
    NONE = "None"
    WRITTEN = "Written"
    ORAL = "Oral"
    COLLOQUIUM = "Colloquium"


class FatalScope(str, Enum):
    NONE = "NONE"
    EXAM_ONLY = "EXAM_ONLY"
    MANDATORY_ONLY = "MANDATORY_ONLY"
    ALL_COURSES = "ALL_COURSES"


class Severity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.LOW: 0, Severity.MEDIUM: 1, Severity.HIGH: 2}


class TrapType(str, Enum):
    FATAL_ZERO = "fatal_zero"
    MANDATORY_COVERAGE = "mandatory_coverage"
    KEYSTONE_SUBJECTS = "keystone_subjects"
    ART_MUSIC_REQUIREMENT = "art_music_requirement"
    COURSE_STRUCTURE = "course_structure"
    DEFICIT_CEILING = "deficit_ceiling"
    LK_DEFICIT_CEILING = "lk_deficit_ceiling"
    MINIMUM_POINTS = "minimum_points"
    ZERO_DANGER_ZONE = "zero_danger_zone"
    TRANSITION_YEAR = "transition_year"
    ANCHOR_EFFECT = "anchor_effect"
    EXAM_VOLATILITY = "exam_volatility"
    DECLINING_TREND = "declining_trend"
    PERFORMANCE_RISK = "performance_risk"
    HIDDEN_FRAGILITY = "hidden_fragility"
    COLLAPSE_RISK = "collapse_risk"
    EXAM_SAFE_BETS = "exam_safe_bets"


PERIOD_KEYS: Tuple[str, ...] = ("Q1_1", "Q1_2", "Q2_1", "Q2_2")

PERIOD_LABELS: Mapping[str, str] = MappingProxyType(
    {"Q1_1": "Q1.1", "Q1_2": "Q1.2", "Q2_1": "Q2.1", "Q2_2": "Q2.2"}
)

STRESS_FACTOR_OPTIONS: Tuple[str, ...] = (
    "Time Management",
    "Anxiety",
    "Lack of Motivation",
    "Difficulty Understanding Material",
    "External Pressure",
    "Health Issues",
    "Perfectionism",
    "Procrastination",
)

MIN_GRADE = 0
MAX_GRADE = 15


@dataclass(frozen=True)
class SemesterGrades:
    q1_1: int
    q1_2: int
    q2_1: int
    q2_2: int

    def values(self) -> Tuple[int, int, int, int]:
        return (self.q1_1, self.q1_2, self.q2_1, self.q2_2)

    def items(self) -> Tuple[Tuple[str, int], ...]:
        return tuple(zip(PERIOD_KEYS, self.values()))


@dataclass(frozen=True)
class Subject:
    id: str
    name: str
    type: SubjectType
    is_mandatory: bool
    is_belegpflichtig: bool
    semester_grades: SemesterGrades
    final_exam_grade: Optional[int]
    confidence: int
    stress_factors: FrozenSet[str]
    is_exam_subject: bool
    exam_type: ExamType

    @property
    def is_lk(self) -> bool:
        return self.type is SubjectType.LK


@dataclass(frozen=True)
class MandatoryRequirement:
    """A subject group the profile must cover; matches by name prefix or substring."""

    label: str
    patterns: Tuple[str, ...]
    match_substring: bool = False

    def matches(self, subject_name: str) -> bool:
        name = (subject_name or "").strip().lower()
        if self.match_substring:
            return any(p in name for p in self.patterns)
        return any(name.startswith(p) for p in self.patterns)


@dataclass(frozen=True)
class RulesConfig:
    lk_weight: int
    gk_weight: int
    deficit_threshold: int
    max_deficits: int
    min_total_points: int
    zero_is_fatal: bool
    fatal_scope: FatalScope
    exam_weight: int = 4
    near_miss_margin: int = 30
    max_lk_deficits: Optional[int] = None
    required_lk_count: int = 0
    required_exam_count: int = 0
    mandatory_subjects: Tuple[MandatoryRequirement, ...] = ()
    anchor_threshold: float = 3.0
    volatility_threshold: float = 3.5
    transition_year: Optional[int] = None
    transition_deficit_threshold: Optional[int] = None
    transition_lk_deficit_threshold: Optional[int] = None
    require_art_music: bool = False
    version: str = "custom"

    def weight_for(self, subject: Subject) -> int:
        return self.lk_weight if subject.is_lk else self.gk_weight


@dataclass(frozen=True)
class UserInputProfile:
    federal_state: FederalState
    graduation_year: int
    subjects: Tuple[Subject, ...]
    rules_config: Optional[RulesConfig] = None


@dataclass(frozen=True)
class RiskFinding:
    trap_type: TrapType
    severity: Severity
    message: str
    i18n_key: str
    i18n_params: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    affected_subject_ids: Tuple[str, ...] = ()


def make_finding(
    trap_type: TrapType,
    severity: Severity,
    message: str,
    i18n_key: str,
    params: Optional[Mapping[str, Any]] = None,
    affected: Tuple[str, ...] | list = (),
) -> RiskFinding:
    return RiskFinding(
        trap_type=trap_type,
        severity=severity,
        message=message,
        i18n_key=i18n_key,
        i18n_params=MappingProxyType(dict(params or {})),
        affected_subject_ids=tuple(affected),
    )


@dataclass(frozen=True)
class SubjectScore:
    subject_id: str
    period_points: int
    exam_points: int
    projected_exam_grade: Optional[int]
    deficits: int
    zero_points: int
    average: float

    @property
    def total_points(self) -> int:
        return self.period_points + self.exam_points


@dataclass(frozen=True)
class ScoreStats:
    total_projected_points: int
    period_points: int
    exam_points: int
    total_deficits: int
    lk_deficits: int
    total_zero_points: int
    average_points: float
    predicted_grade: float
    subjects: Tuple[SubjectScore, ...] = ()
    keystone_count: int = 0
    # filled in by the report assembler once findings exist
    high_findings_count: int = 0
    medium_findings_count: int = 0
    low_findings_count: int = 0

    def for_subject(self, subject_id: str) -> Optional[SubjectScore]:
        for score in self.subjects:
            if score.subject_id == subject_id:
                return score
        return None


@dataclass(frozen=True)
class RiskReport:
    federal_state: FederalState
    rules_version: str
    overall_severity: Severity
    stats: ScoreStats
    findings: Tuple[RiskFinding, ...]
