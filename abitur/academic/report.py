from __future__ import annotations

from dataclasses import replace
from typing import Iterable, Sequence

from .grade_calculator import compute_stats
from .rulesets import resolve_rules
from .trap_detector import detect_traps
from .types import RiskFinding, RiskReport, RulesConfig, ScoreStats, Severity, UserInputProfile


def overall_severity(findings: Iterable[RiskFinding]) -> Severity:
    worst = Severity.LOW
    for finding in findings:
        if finding.severity.rank > worst.rank:
            worst = finding.severity
    return worst


def assemble_report(
    profile: UserInputProfile,
    rules: RulesConfig,
    stats: ScoreStats,
    findings: Sequence[RiskFinding],
) -> RiskReport:
    counts = {severity: 0 for severity in Severity}
    for finding in findings:
        counts[finding.severity] += 1
    stats = replace(
        stats,
        high_findings_count=counts[Severity.HIGH],
        medium_findings_count=counts[Severity.MEDIUM],
        low_findings_count=counts[Severity.LOW],
    )
    return RiskReport(
        federal_state=profile.federal_state,
        rules_version=rules.version,
        overall_severity=overall_severity(findings),
        stats=stats,
        findings=tuple(findings),
    )


def evaluate_profile(profile: UserInputProfile) -> RiskReport:
    """Run resolve -> score -> detect -> assemble on an already validated profile."""
    rules = resolve_rules(profile)
    stats = compute_stats(profile, rules)
    findings = detect_traps(profile, rules, stats)
    return assemble_report(profile, rules, stats, findings)
