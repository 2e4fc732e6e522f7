from __future__ import annotations

import math
from typing import Dict, List, Sequence, Tuple

from .types import (
    MAX_GRADE,
    MIN_GRADE,
    RulesConfig,
    ScoreStats,
    Subject,
    SubjectScore,
    UserInputProfile,
)

# Abitur points (0..15) -> German grade (0.7..6.0 scale as shown on the report).
POINTS_TO_GRADE: Dict[int, float] = {
    15: 0.7,
    14: 1.0,
    13: 1.3,
    12: 1.7,
    11: 2.0,
    10: 2.3,
    9: 2.7,
    8: 3.0,
    7: 3.3,
    6: 3.7,
    5: 4.0,
    4: 4.3,
    3: 4.7,
    2: 5.0,
    1: 5.3,
    0: 5.7,
}

# (label, best grade, worst grade) inclusive
DEFAULT_GRADE_SCALE: List[Tuple[str, float, float]] = [
    ("sehr gut", 0.7, 1.3),
    ("gut", 1.7, 2.3),
    ("befriedigend", 2.7, 3.3),
    ("ausreichend", 3.7, 4.3),
    ("mangelhaft", 4.7, 5.3),
    ("ungenügend", 5.7, 6.0),
]


def points_to_grade(points: float) -> float:
    try:
        p = float(points)
    except (TypeError, ValueError):
        return POINTS_TO_GRADE[MIN_GRADE]
    clamped = max(MIN_GRADE, min(MAX_GRADE, _round_half_up(p)))
    return POINTS_TO_GRADE[clamped]


def get_grade_label(grade: float, grade_scale: List[Tuple[str, float, float]] | None = None) -> str:
    scale = grade_scale or DEFAULT_GRADE_SCALE
    try:
        g = float(grade)
    except (TypeError, ValueError):
        return scale[-1][0]

    # buckets are contiguous: anything up to a label's worst grade belongs to it
    for label, _best, worst in scale:
        if g <= worst:
            return label
    return scale[-1][0]


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def mean(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


def population_stdev(values: Sequence[float]) -> float:
    if len(values) < 2:
        return 0.0
    avg = mean(values)
    return math.sqrt(sum((v - avg) ** 2 for v in values) / len(values))


def subject_average(subject: Subject) -> float:
    return mean(subject.semester_grades.values())


def projected_exam_grade(subject: Subject) -> int | None:
    """Actual exam grade, or the rounded period mean while the exam is outstanding."""
    if not subject.is_exam_subject:
        return None
    if subject.final_exam_grade is not None:
        return subject.final_exam_grade
    return _round_half_up(subject_average(subject))


def keystone_subjects(profile: UserInputProfile, rules: RulesConfig) -> List[Tuple[Subject, str]]:
    """Subjects that alone satisfy a mandatory group; dropping one breaks that requirement."""
    out: List[Tuple[Subject, str]] = []
    for req in rules.mandatory_subjects:
        matches = [s for s in profile.subjects if req.matches(s.name)]
        if len(matches) == 1:
            out.append((matches[0], req.label))
    return out


def score_subject(subject: Subject, rules: RulesConfig) -> SubjectScore:
    weight = rules.weight_for(subject)
    grades = subject.semester_grades.values()
    exam_grade = projected_exam_grade(subject)
    return SubjectScore(
        subject_id=subject.id,
        period_points=sum(g * weight for g in grades),
        exam_points=(exam_grade or 0) * rules.exam_weight,
        projected_exam_grade=exam_grade,
        deficits=sum(1 for g in grades if g <= rules.deficit_threshold),
        zero_points=sum(1 for g in grades if g == 0),
        average=round(mean(grades), 2),
    )


def compute_stats(profile: UserInputProfile, rules: RulesConfig) -> ScoreStats:
    scores = tuple(score_subject(s, rules) for s in profile.subjects)
    period_points = sum(s.period_points for s in scores)
    exam_points = sum(s.exam_points for s in scores)
    lk_ids = {s.id for s in profile.subjects if s.is_lk}
    all_grades = [g for s in profile.subjects for g in s.semester_grades.values()]
    average = mean(all_grades)

    return ScoreStats(
        total_projected_points=period_points + exam_points,
        period_points=period_points,
        exam_points=exam_points,
        total_deficits=sum(s.deficits for s in scores),
        lk_deficits=sum(s.deficits for s in scores if s.subject_id in lk_ids),
        total_zero_points=sum(s.zero_points for s in scores),
        average_points=round(average, 2),
        predicted_grade=points_to_grade(average),
        subjects=scores,
        keystone_count=len({s.id for s, _ in keystone_subjects(profile, rules)}),
    )
