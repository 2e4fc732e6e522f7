from django.test import SimpleTestCase

from abitur.academic import report as rp
from abitur.academic.grade_calculator import compute_stats
from abitur.academic.types import FederalState, Severity, TrapType, make_finding
from abitur.services.profile.validators import validate_profile
from abitur.test.utils.profiles import make_profile, make_rules, make_subject, nrw_profile_raw


def _finding(severity):
    return make_finding(TrapType.HIDDEN_FRAGILITY, severity, "m", "k")


class OverallSeverityTests(SimpleTestCase):
    def test_empty_is_low(self):
        self.assertEqual(rp.overall_severity([]), Severity.LOW)

    def test_maximum_wins(self):
        self.assertEqual(rp.overall_severity([_finding(Severity.LOW), _finding(Severity.MEDIUM)]), Severity.MEDIUM)
        self.assertEqual(
            rp.overall_severity([_finding(Severity.MEDIUM), _finding(Severity.HIGH), _finding(Severity.LOW)]),
            Severity.HIGH,
        )


class EvaluateProfileTests(SimpleTestCase):
    def setUp(self):
        result = validate_profile(nrw_profile_raw())
        self.assertTrue(result.ok, result.violations)
        self.profile = result.profile

    def test_nrw_report(self):
        report = rp.evaluate_profile(self.profile)
        self.assertEqual(report.federal_state, FederalState.NRW)
        self.assertEqual(report.rules_version, "apo-gost-2026.1")
        self.assertEqual(report.stats.total_projected_points, 448)
        self.assertEqual(
            [f.trap_type for f in report.findings],
            [
                TrapType.KEYSTONE_SUBJECTS,
                TrapType.ART_MUSIC_REQUIREMENT,
                TrapType.DEFICIT_CEILING,
                TrapType.MINIMUM_POINTS,
                TrapType.EXAM_SAFE_BETS,
            ],
        )
        self.assertEqual(report.overall_severity, Severity.MEDIUM)
        self.assertEqual(report.findings[0].affected_subject_ids, ("s-de", "s-ma", "s-en", "s-bi"))
        self.assertEqual(report.findings[-1].affected_subject_ids, ("s-en", "s-de"))

    def test_nrw_report_counts(self):
        stats = rp.evaluate_profile(self.profile).stats
        self.assertEqual(stats.keystone_count, 4)
        self.assertEqual(
            (stats.high_findings_count, stats.medium_findings_count, stats.low_findings_count),
            (0, 2, 3),
        )

    def test_art_music_course_clears_requirement(self):
        raw = nrw_profile_raw()
        raw["subjects"][4]["name"] = "Kunst"
        report = rp.evaluate_profile(validate_profile(raw).profile)
        self.assertNotIn(TrapType.ART_MUSIC_REQUIREMENT, [f.trap_type for f in report.findings])

    def test_repeated_evaluation_is_identical(self):
        self.assertEqual(rp.evaluate_profile(self.profile), rp.evaluate_profile(self.profile))

    def test_assemble_is_a_projection(self):
        rules = make_rules()
        profile = make_profile([make_subject("a", [0, 9, 9, 9])], rules=rules)
        stats = compute_stats(profile, rules)
        findings = (_finding(Severity.LOW), _finding(Severity.HIGH), _finding(Severity.LOW))
        report = rp.assemble_report(profile, rules, stats, findings)
        self.assertEqual(report.stats.total_projected_points, stats.total_projected_points)
        self.assertEqual(report.findings, findings)
        self.assertEqual(report.overall_severity, Severity.HIGH)
        self.assertEqual(report.rules_version, "custom")
        self.assertEqual(
            (report.stats.high_findings_count, report.stats.medium_findings_count, report.stats.low_findings_count),
            (1, 0, 2),
        )
