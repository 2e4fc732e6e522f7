"""
Trap detection: an ordered registry of independent checks.

Every check has the signature ``(profile, rules, stats) -> RiskFinding | None``
and may only look at those three values. Registration happens at import time;
the registry freezes on first use and rejects later registrations.
"""

from __future__ import annotations

from typing import Callable, List, Optional, Tuple

from .grade_calculator import keystone_subjects, mean, population_stdev, subject_average
from .types import (
    PERIOD_LABELS,
    FatalScope,
    MandatoryRequirement,
    RiskFinding,
    RulesConfig,
    ScoreStats,
    Severity,
    Subject,
    TrapType,
    UserInputProfile,
    make_finding,
)


Check = Callable[[UserInputProfile, RulesConfig, ScoreStats], Optional[RiskFinding]]

DANGER_ZONE_MEAN = 3.0
SAFE_BET_MAX_STDEV = 1.5
SAFE_BET_MIN_MEAN = 10.0
SAFE_BET_LIMIT = 3
FRAGILE_MIN_MEAN = 10.0
FRAGILE_MAX_CONFIDENCE = 4
COLLAPSE_MAX_MEAN = 6.0
PERFORMANCE_RISK_MEAN = 5.0
ART_MUSIC = MandatoryRequirement("Kunst/Musik", ("kunst", "musik", "music", "art"))
COLLAPSE_STRESS_FACTORS = frozenset({"Anxiety", "Health Issues"})
EXAM_GRADE_LABEL = "Abiturprüfung"


class CheckRegistry:
    def __init__(self) -> None:
        self._checks: List[Tuple[str, Check]] = []
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def checks(self) -> Tuple[Tuple[str, Check], ...]:
        return tuple(self._checks)

    def names(self) -> Tuple[str, ...]:
        return tuple(name for name, _ in self._checks)

    def register(self, name: str) -> Callable[[Check], Check]:
        def decorator(fn: Check) -> Check:
            if self._frozen:
                raise RuntimeError(f"Check registry is frozen; cannot register {name!r}")
            if name in self.names():
                raise RuntimeError(f"Check {name!r} is already registered")
            self._checks.append((name, fn))
            return fn

        return decorator

    def freeze(self) -> None:
        self._frozen = True

    def run(self, profile: UserInputProfile, rules: RulesConfig, stats: ScoreStats) -> Tuple[RiskFinding, ...]:
        self.freeze()
        findings: List[RiskFinding] = []
        for _name, check in self._checks:
            finding = check(profile, rules, stats)
            if finding is not None:
                findings.append(finding)
        return tuple(findings)


registry = CheckRegistry()
register_check = registry.register


def detect_traps(
    profile: UserInputProfile,
    rules: RulesConfig,
    stats: ScoreStats,
    check_registry: CheckRegistry | None = None,
) -> Tuple[RiskFinding, ...]:
    return (check_registry or registry).run(profile, rules, stats)


# ── helpers ──────────────────────────────────────────────────────────────────

def _names(subjects: List[Subject]) -> str:
    return ", ".join(s.name for s in subjects)


def _ids(subjects: List[Subject]) -> Tuple[str, ...]:
    return tuple(s.id for s in subjects)


def _in_fatal_scope(subject: Subject, scope: FatalScope) -> bool:
    if scope is FatalScope.ALL_COURSES:
        return True
    if scope is FatalScope.EXAM_ONLY:
        return subject.is_exam_subject
    if scope is FatalScope.MANDATORY_ONLY:
        return subject.is_mandatory or subject.is_belegpflichtig
    return False


def _zero_hits(profile: UserInputProfile, scope: FatalScope) -> List[Tuple[Subject, str]]:
    hits: List[Tuple[Subject, str]] = []
    for subject in profile.subjects:
        if not _in_fatal_scope(subject, scope):
            continue
        for key, grade in subject.semester_grades.items():
            if grade == 0:
                hits.append((subject, PERIOD_LABELS[key]))
        if scope is not FatalScope.MANDATORY_ONLY and subject.is_exam_subject and subject.final_exam_grade == 0:
            hits.append((subject, EXAM_GRADE_LABEL))
    return hits


def _is_anchor(subject: Subject, rules: RulesConfig) -> bool:
    if subject.is_mandatory:
        return True
    return any(req.matches(subject.name) for req in rules.mandatory_subjects)


def _exam_subjects(profile: UserInputProfile) -> List[Subject]:
    return [s for s in profile.subjects if s.is_exam_subject]


# ── checks (registration order = presentation order) ─────────────────────────

@register_check("fatal_zero")
def check_fatal_zero(profile: UserInputProfile, rules: RulesConfig, stats: ScoreStats) -> Optional[RiskFinding]:
    if not rules.zero_is_fatal or rules.fatal_scope is FatalScope.NONE:
        return None
    hits = _zero_hits(profile, rules.fatal_scope)
    if not hits:
        return None
    first_subject, first_label = hits[0]
    affected = tuple(dict.fromkeys(s.id for s, _ in hits))
    return make_finding(
        TrapType.FATAL_ZERO,
        Severity.HIGH,
        f"Disqualification risk: 0 points in {first_subject.name} ({first_label}). "
        "A single zero in this course disqualifies regardless of the point total.",
        "report.fatalZero.detected",
        {"subjectName": first_subject.name, "period": first_label, "count": len(hits)},
        affected,
    )


@register_check("mandatory_coverage")
def check_mandatory_coverage(profile: UserInputProfile, rules: RulesConfig, stats: ScoreStats) -> Optional[RiskFinding]:
    missing = [
        req.label
        for req in rules.mandatory_subjects
        if not any(req.matches(s.name) for s in profile.subjects)
    ]
    if not missing:
        return None
    return make_finding(
        TrapType.MANDATORY_COVERAGE,
        Severity.HIGH,
        f"Mandatory subject coverage incomplete: {', '.join(missing)} missing from your courses.",
        "report.mandatoryCoverage.missing",
        {"missing": ", ".join(missing), "count": len(missing)},
    )


@register_check("keystone_subjects")
def check_keystone_subjects(profile: UserInputProfile, rules: RulesConfig, stats: ScoreStats) -> Optional[RiskFinding]:
    keystones = keystone_subjects(profile, rules)
    if not keystones:
        return None
    subjects = list(dict.fromkeys(s for s, _ in keystones))
    return make_finding(
        TrapType.KEYSTONE_SUBJECTS,
        Severity.MEDIUM,
        f"Keystone subjects: {_names(subjects)}. Dropping any of them would break a mandatory requirement "
        f"({', '.join(label for _, label in keystones)}).",
        "report.profileViolations.keystoneWarning",
        {"subjects": _names(subjects), "rules": ", ".join(label for _, label in keystones), "count": len(subjects)},
        _ids(subjects),
    )


@register_check("art_music_requirement")
def check_art_music_requirement(profile: UserInputProfile, rules: RulesConfig, stats: ScoreStats) -> Optional[RiskFinding]:
    if not rules.require_art_music:
        return None
    if any(ART_MUSIC.matches(s.name) for s in profile.subjects):
        return None
    return make_finding(
        TrapType.ART_MUSIC_REQUIREMENT,
        Severity.MEDIUM,
        "At least one art or music course (Kunst/Musik) is required in the qualification phase.",
        "report.profileViolations.nrw.artMusicRequired",
    )


@register_check("course_structure")
def check_course_structure(profile: UserInputProfile, rules: RulesConfig, stats: ScoreStats) -> Optional[RiskFinding]:
    lk_count = sum(1 for s in profile.subjects if s.is_lk)
    exam_count = len(_exam_subjects(profile))
    problems = []
    if rules.required_lk_count and lk_count != rules.required_lk_count:
        problems.append(f"{rules.required_lk_count} LK required (found {lk_count})")
    if rules.required_exam_count and exam_count != rules.required_exam_count:
        problems.append(f"{rules.required_exam_count} exam subjects required (found {exam_count})")
    if not problems:
        return None
    return make_finding(
        TrapType.COURSE_STRUCTURE,
        Severity.HIGH,
        f"Course structure does not meet the rules: {'; '.join(problems)}.",
        "report.courseStructure.invalid",
        {
            "lkCount": lk_count,
            "requiredLkCount": rules.required_lk_count,
            "examCount": exam_count,
            "requiredExamCount": rules.required_exam_count,
        },
    )


@register_check("deficit_ceiling")
def check_deficit_ceiling(profile: UserInputProfile, rules: RulesConfig, stats: ScoreStats) -> Optional[RiskFinding]:
    current = stats.total_deficits
    limit = rules.max_deficits
    affected = tuple(s.subject_id for s in stats.subjects if s.deficits > 0)

    if current > limit:
        return make_finding(
            TrapType.DEFICIT_CEILING,
            Severity.HIGH,
            f"Disqualified: {current} deficits, the maximum allowed is {limit}.",
            "report.deficit.exceeded",
            {"current": current, "max": limit},
            affected,
        )
    if current == 0:
        return make_finding(
            TrapType.DEFICIT_CEILING,
            Severity.LOW,
            f"No deficits so far. Your full deficit allowance of {limit} is untouched.",
            "report.deficit.none",
            {"max": limit},
        )
    remaining = limit - current
    if remaining <= 1:
        return make_finding(
            TrapType.DEFICIT_CEILING,
            Severity.MEDIUM,
            f"Critical: only {remaining} deficit{'' if remaining == 1 else 's'} left before disqualification.",
            "report.deficit.critical",
            {"current": current, "max": limit, "remaining": remaining},
            affected,
        )
    if current >= limit // 2:
        percent = round(current * 100 / limit)
        return make_finding(
            TrapType.DEFICIT_CEILING,
            Severity.MEDIUM,
            f"Warning: {current} of {limit} allowed deficits used ({percent}%).",
            "report.deficit.warning",
            {"current": current, "max": limit, "percent": percent},
            affected,
        )
    return None


@register_check("lk_deficit_ceiling")
def check_lk_deficit_ceiling(profile: UserInputProfile, rules: RulesConfig, stats: ScoreStats) -> Optional[RiskFinding]:
    limit = rules.max_lk_deficits
    if limit is None:
        return None
    current = stats.lk_deficits
    lk_ids = {s.id for s in profile.subjects if s.is_lk}
    affected = tuple(s.subject_id for s in stats.subjects if s.deficits > 0 and s.subject_id in lk_ids)
    if current > limit:
        return make_finding(
            TrapType.LK_DEFICIT_CEILING,
            Severity.HIGH,
            f"Disqualified: {current} deficits in advanced courses, the limit is {limit}.",
            "report.deficit.lkExceeded",
            {"lkCurrent": current, "maxLk": limit},
            affected,
        )
    if current > 0 and current == limit:
        return make_finding(
            TrapType.LK_DEFICIT_CEILING,
            Severity.MEDIUM,
            f"Advanced-course deficit limit reached: {current} of {limit}. One more disqualifies.",
            "report.deficit.lkWarning",
            {"lkCurrent": current, "maxLk": limit},
            affected,
        )
    return None


@register_check("minimum_points")
def check_minimum_points(profile: UserInputProfile, rules: RulesConfig, stats: ScoreStats) -> Optional[RiskFinding]:
    total = stats.total_projected_points
    floor = rules.min_total_points
    if total < floor:
        return make_finding(
            TrapType.MINIMUM_POINTS,
            Severity.HIGH,
            f"Projected total of {total} points is below the required minimum of {floor} ({floor - total} missing).",
            "report.pointsProjection.belowMinimum",
            {"total": total, "min": floor, "gap": floor - total},
        )
    surplus = total - floor
    if surplus < rules.near_miss_margin:
        return make_finding(
            TrapType.MINIMUM_POINTS,
            Severity.MEDIUM,
            f"Near miss: projected total of {total} points is only {surplus} above the minimum of {floor}.",
            "report.pointsProjection.nearMiss",
            {"total": total, "min": floor, "surplus": surplus, "margin": rules.near_miss_margin},
        )
    if rules.zero_is_fatal and _zero_hits(profile, rules.fatal_scope):
        # a fatal zero disqualifies whatever the surplus
        return None
    return make_finding(
        TrapType.MINIMUM_POINTS,
        Severity.LOW,
        f"Safe margin: projected total of {total} points is {surplus} above the minimum of {floor}.",
        "report.pointsProjection.safe",
        {"total": total, "min": floor, "surplus": surplus},
    )


@register_check("zero_danger_zone")
def check_zero_danger_zone(profile: UserInputProfile, rules: RulesConfig, stats: ScoreStats) -> Optional[RiskFinding]:
    zones = [s for s in profile.subjects if subject_average(s) < DANGER_ZONE_MEAN]
    if not zones:
        return None
    return make_finding(
        TrapType.ZERO_DANGER_ZONE,
        Severity.MEDIUM,
        f"Critical averages below {DANGER_ZONE_MEAN:g} points in {_names(zones)}. "
        "One failed exam could end in a 0-point period.",
        "report.zeroPoint.dangerZone",
        {"subjects": _names(zones), "count": len(zones)},
        _ids(zones),
    )


@register_check("transition_year")
def check_transition_year(profile: UserInputProfile, rules: RulesConfig, stats: ScoreStats) -> Optional[RiskFinding]:
    if rules.transition_year is None or profile.graduation_year != rules.transition_year:
        return None
    total_hit = (
        rules.transition_deficit_threshold is not None
        and stats.total_deficits >= rules.transition_deficit_threshold
    )
    lk_hit = (
        rules.transition_lk_deficit_threshold is not None
        and stats.lk_deficits >= rules.transition_lk_deficit_threshold
    )
    if not (total_hit or lk_hit):
        return None
    return make_finding(
        TrapType.TRANSITION_YEAR,
        Severity.HIGH,
        f"Transition-year risk: {stats.total_deficits} deficits ({stats.lk_deficits} in advanced courses) "
        f"in {rules.transition_year}. Repeating the year at your school may not be possible.",
        "report.special2026.gapYearCritical",
        {
            "year": rules.transition_year,
            "totalDeficits": stats.total_deficits,
            "lkDeficits": stats.lk_deficits,
        },
    )


@register_check("anchor_effect")
def check_anchor_effect(profile: UserInputProfile, rules: RulesConfig, stats: ScoreStats) -> Optional[RiskFinding]:
    anchors = [s for s in profile.subjects if _is_anchor(s, rules)]
    floats = [s for s in profile.subjects if not _is_anchor(s, rules)]
    if not anchors or not floats:
        return None
    anchor_avg = round(mean([g for s in anchors for g in s.semester_grades.values()]), 2)
    float_avg = round(mean([g for s in floats for g in s.semester_grades.values()]), 2)
    delta = round(float_avg - anchor_avg, 2)
    params = {"anchorAvg": anchor_avg, "floatAvg": float_avg, "delta": abs(delta)}

    if delta > rules.anchor_threshold:
        return make_finding(
            TrapType.ANCHOR_EFFECT,
            Severity.MEDIUM,
            f"Structural drag: electives average {float_avg} points but mandatory subjects only {anchor_avg} "
            f"({delta} point gap). Mandatory courses are pulling your result down.",
            "report.anchor.detected",
            {**params, "threshold": rules.anchor_threshold},
            _ids(anchors),
        )
    if delta < 0:
        return make_finding(
            TrapType.ANCHOR_EFFECT,
            Severity.LOW,
            f"Strong foundation: mandatory subjects average {anchor_avg} points, above your electives ({float_avg}).",
            "report.anchor.inverted",
            params,
            _ids(anchors),
        )
    return None


@register_check("exam_volatility")
def check_exam_volatility(profile: UserInputProfile, rules: RulesConfig, stats: ScoreStats) -> Optional[RiskFinding]:
    # volatile: σ above the threshold; variable: between the safe-bet ceiling and the threshold
    spreads = [(s, population_stdev(s.semester_grades.values())) for s in _exam_subjects(profile)]
    volatile = [s for s, sd in spreads if sd > rules.volatility_threshold]
    variable = [s for s, sd in spreads if SAFE_BET_MAX_STDEV < sd <= rules.volatility_threshold]
    if volatile:
        worst = max(round(sd, 2) for s, sd in spreads if s in volatile)
        return make_finding(
            TrapType.EXAM_VOLATILITY,
            Severity.HIGH,
            f"Volatile exam subjects: {_names(volatile)}. Grades swing strongly between periods "
            f"(max σ = {worst}), so the exam result is hard to predict.",
            "report.volatility.volatile",
            {"subjects": _names(volatile), "maxStdev": worst, "threshold": rules.volatility_threshold},
            _ids(volatile),
        )
    if variable:
        worst = max(round(sd, 2) for s, sd in spreads if s in variable)
        return make_finding(
            TrapType.EXAM_VOLATILITY,
            Severity.MEDIUM,
            f"Variable exam subjects: {_names(variable)} (max σ = {worst}). Monitor them for further swings.",
            "report.volatility.variable",
            {"subjects": _names(variable), "maxStdev": worst, "threshold": rules.volatility_threshold},
            _ids(variable),
        )
    return None


@register_check("declining_trend")
def check_declining_trend(profile: UserInputProfile, rules: RulesConfig, stats: ScoreStats) -> Optional[RiskFinding]:
    declining = []
    for s in _exam_subjects(profile):
        grades = s.semester_grades.values()
        if all(later < earlier for earlier, later in zip(grades, grades[1:])):
            declining.append(s)
    if not declining:
        return None
    return make_finding(
        TrapType.DECLINING_TREND,
        Severity.MEDIUM,
        f"Negative momentum: grades in {_names(declining)} fall in every period.",
        "report.volatility.downwardTrend",
        {"subjects": _names(declining), "count": len(declining)},
        _ids(declining),
    )


@register_check("performance_risk")
def check_performance_risk(profile: UserInputProfile, rules: RulesConfig, stats: ScoreStats) -> Optional[RiskFinding]:
    weak = [
        s for s in _exam_subjects(profile)
        if subject_average(s) < PERFORMANCE_RISK_MEAN
        and population_stdev(s.semester_grades.values()) <= rules.volatility_threshold
    ]
    if not weak:
        return None
    return make_finding(
        TrapType.PERFORMANCE_RISK,
        Severity.MEDIUM,
        f"Consistently low results in exam subjects {_names(weak)} (mean below {PERFORMANCE_RISK_MEAN:g} points). "
        "Stable grades do not help when the baseline itself is weak.",
        "report.volatility.performanceRisk",
        {"subjects": _names(weak), "count": len(weak)},
        _ids(weak),
    )


@register_check("hidden_fragility")
def check_hidden_fragility(profile: UserInputProfile, rules: RulesConfig, stats: ScoreStats) -> Optional[RiskFinding]:
    fragile = [
        s for s in profile.subjects
        if subject_average(s) > FRAGILE_MIN_MEAN and s.confidence < FRAGILE_MAX_CONFIDENCE
    ]
    if not fragile:
        return None
    return make_finding(
        TrapType.HIDDEN_FRAGILITY,
        Severity.MEDIUM,
        f"Good grades but low confidence in {_names(fragile)}. Burnout risk: exam nerves can undo a strong record.",
        "report.psychosocial.fragile",
        {"subjects": _names(fragile), "count": len(fragile)},
        _ids(fragile),
    )


@register_check("collapse_risk")
def check_collapse_risk(profile: UserInputProfile, rules: RulesConfig, stats: ScoreStats) -> Optional[RiskFinding]:
    unstable = [
        s for s in profile.subjects
        if subject_average(s) <= COLLAPSE_MAX_MEAN and s.stress_factors & COLLAPSE_STRESS_FACTORS
    ]
    if not unstable:
        return None
    return make_finding(
        TrapType.COLLAPSE_RISK,
        Severity.MEDIUM,
        f"Borderline grades combined with anxiety or health issues in {_names(unstable)}. "
        "Consider talking to a counselor early.",
        "report.psychosocial.unstable",
        {"subjects": _names(unstable), "count": len(unstable)},
        _ids(unstable),
    )


@register_check("exam_safe_bets")
def check_exam_safe_bets(profile: UserInputProfile, rules: RulesConfig, stats: ScoreStats) -> Optional[RiskFinding]:
    candidates = []
    for s in _exam_subjects(profile):
        grades = s.semester_grades.values()
        sd = population_stdev(grades)
        if sd <= SAFE_BET_MAX_STDEV and mean(grades) >= SAFE_BET_MIN_MEAN:
            candidates.append((sd, s))
    if not candidates:
        return None
    candidates.sort(key=lambda pair: pair[0])
    safe = [s for _, s in candidates[:SAFE_BET_LIMIT]]
    return make_finding(
        TrapType.EXAM_SAFE_BETS,
        Severity.LOW,
        f"Reliable exam subjects: {_names(safe)} show consistent, strong results.",
        "report.volatility.safeBet",
        {"subjects": _names(safe), "count": len(safe)},
        _ids(safe),
    )
