from __future__ import annotations

from typing import Any, Dict, List

from abitur.academic.grade_calculator import get_grade_label
from abitur.academic.types import RiskFinding, RiskReport, RulesConfig, ScoreStats
from abitur.services.shared.dto import FindingPayload, ReportPayload, StatsPayload


def serialize_finding(finding: RiskFinding) -> FindingPayload:
    return {
        "trapType": finding.trap_type.value,
        "severity": finding.severity.value,
        "message": finding.message,
        "i18nKey": finding.i18n_key,
        "i18nParams": dict(finding.i18n_params),
        "affectedSubjectIds": list(finding.affected_subject_ids),
    }


def serialize_stats(stats: ScoreStats) -> StatsPayload:
    return {
        "totalProjectedPoints": stats.total_projected_points,
        "periodPoints": stats.period_points,
        "examPoints": stats.exam_points,
        "totalDeficits": stats.total_deficits,
        "lkDeficits": stats.lk_deficits,
        "totalZeroPoints": stats.total_zero_points,
        "averagePoints": stats.average_points,
        "predictedGrade": stats.predicted_grade,
        "predictedGradeLabel": get_grade_label(stats.predicted_grade),
        "keystoneCount": stats.keystone_count,
        "highFindingsCount": stats.high_findings_count,
        "mediumFindingsCount": stats.medium_findings_count,
        "lowFindingsCount": stats.low_findings_count,
        "subjects": [
            {
                "subjectId": s.subject_id,
                "periodPoints": s.period_points,
                "examPoints": s.exam_points,
                "totalPoints": s.total_points,
                "projectedExamGrade": s.projected_exam_grade,
                "deficits": s.deficits,
                "zeroPoints": s.zero_points,
                "average": s.average,
            }
            for s in stats.subjects
        ],
    }


def serialize_report(report: RiskReport) -> ReportPayload:
    return {
        "federalState": report.federal_state.value,
        "rulesVersion": report.rules_version,
        "overallSeverity": report.overall_severity.value,
        "stats": serialize_stats(report.stats),
        "findings": [serialize_finding(f) for f in report.findings],
    }


def serialize_rules(rules: RulesConfig) -> Dict[str, Any]:
    mandatory: List[Dict[str, Any]] = [
        {"label": req.label, "patterns": list(req.patterns)} for req in rules.mandatory_subjects
    ]
    return {
        "version": rules.version,
        "lkWeight": rules.lk_weight,
        "gkWeight": rules.gk_weight,
        "examWeight": rules.exam_weight,
        "deficitThreshold": rules.deficit_threshold,
        "maxDeficits": rules.max_deficits,
        "maxLkDeficits": rules.max_lk_deficits,
        "minTotalPoints": rules.min_total_points,
        "nearMissMargin": rules.near_miss_margin,
        "zeroIsFatal": rules.zero_is_fatal,
        "fatalScope": rules.fatal_scope.value,
        "requiredLkCount": rules.required_lk_count,
        "requiredExamCount": rules.required_exam_count,
        "mandatorySubjects": mandatory,
        "transitionYear": rules.transition_year,
        "requireArtMusic": rules.require_art_music,
    }
