from __future__ import annotations

from typing import Any, Dict, List, Optional, TypedDict


class ViolationPayload(TypedDict):
    path: str
    code: str
    message: str


class FindingPayload(TypedDict):
    trapType: str
    severity: str
    message: str
    i18nKey: str
    i18nParams: Dict[str, Any]
    affectedSubjectIds: List[str]


class SubjectScorePayload(TypedDict):
    subjectId: str
    periodPoints: int
    examPoints: int
    totalPoints: int
    projectedExamGrade: Optional[int]
    deficits: int
    zeroPoints: int
    average: float


class StatsPayload(TypedDict):
    totalProjectedPoints: int
    periodPoints: int
    examPoints: int
    totalDeficits: int
    lkDeficits: int
    totalZeroPoints: int
    averagePoints: float
    predictedGrade: float
    predictedGradeLabel: str
    keystoneCount: int
    highFindingsCount: int
    mediumFindingsCount: int
    lowFindingsCount: int
    subjects: List[SubjectScorePayload]


class ReportPayload(TypedDict):
    federalState: str
    rulesVersion: str
    overallSeverity: str
    stats: StatsPayload
    findings: List[FindingPayload]
