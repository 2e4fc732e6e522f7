import tempfile
from pathlib import Path
from unittest.mock import patch

from django.test import SimpleTestCase

from abitur.academic import rulesets
from abitur.academic.types import FatalScope, FederalState, UserInputProfile
from abitur.services.shared.errors import InvariantViolation, RulesetConfigurationError
from abitur.test.utils.profiles import make_profile, make_rules, make_subject


class BuiltinRulesetTests(SimpleTestCase):
    def setUp(self):
        rulesets.builtin_rulesets.cache_clear()
        self.addCleanup(rulesets.builtin_rulesets.cache_clear)

    def test_fixed_jurisdictions_are_loaded(self):
        loaded = rulesets.builtin_rulesets()
        self.assertEqual(set(loaded), {FederalState.NRW, FederalState.BAVARIA})

        nrw = loaded[FederalState.NRW]
        self.assertEqual(nrw.version, "apo-gost-2026.1")
        self.assertEqual((nrw.lk_weight, nrw.gk_weight, nrw.exam_weight), (2, 1, 4))
        self.assertEqual(nrw.max_deficits, 7)
        self.assertEqual(nrw.fatal_scope, FatalScope.MANDATORY_ONLY)
        self.assertEqual(nrw.transition_year, 2026)
        self.assertTrue(nrw.require_art_music)
        self.assertEqual([r.label for r in nrw.mandatory_subjects],
                         ["Deutsch", "Mathematik", "Fremdsprache", "Naturwissenschaft"])

        bavaria = loaded[FederalState.BAVARIA]
        self.assertEqual(bavaria.required_exam_count, 5)
        self.assertEqual(bavaria.fatal_scope, FatalScope.ALL_COURSES)
        self.assertIsNone(bavaria.transition_year)
        self.assertFalse(bavaria.require_art_music)
        self.assertEqual(bavaria.mandatory_subjects, nrw.mandatory_subjects)

    def test_loaded_once(self):
        self.assertIs(rulesets.builtin_rulesets(), rulesets.builtin_rulesets())

    def test_mandatory_prefix_matching(self):
        nrw = rulesets.builtin_rulesets()[FederalState.NRW]
        science = nrw.mandatory_subjects[3]
        self.assertTrue(science.matches("Biologie"))
        self.assertTrue(science.matches("  physik"))
        self.assertFalse(science.matches("Sozialwissenschaften"))

    def _with_yaml(self, text):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        path = Path(tmp.name) / "rulesets.yaml"
        path.write_text(text, encoding="utf-8")
        return patch.object(rulesets, "RULESETS_PATH", path)

    def test_missing_keys_raise_configuration_error(self):
        with self._with_yaml("NRW:\n  version: x\nBavaria:\n  version: y\n"):
            with self.assertRaises(RulesetConfigurationError):
                rulesets.builtin_rulesets()

    def test_missing_jurisdiction_raises_configuration_error(self):
        with self._with_yaml("- just\n- a list\n"):
            with self.assertRaises(RulesetConfigurationError):
                rulesets.builtin_rulesets()

    def test_unreadable_file_raises_configuration_error(self):
        with patch.object(rulesets, "RULESETS_PATH", Path("/nonexistent/rulesets.yaml")):
            with self.assertRaises(RulesetConfigurationError):
                rulesets.builtin_rulesets()


class ResolveRulesTests(SimpleTestCase):
    def test_fixed_jurisdiction_uses_builtin(self):
        profile = make_profile([make_subject("a", [8, 8, 8, 8])], state=FederalState.NRW)
        self.assertIs(rulesets.resolve_rules(profile), rulesets.builtin_rulesets()[FederalState.NRW])

    def test_general_returns_profile_config_unchanged(self):
        rules = make_rules(max_deficits=3)
        profile = make_profile([make_subject("a", [8, 8, 8, 8])], rules=rules)
        self.assertIs(rulesets.resolve_rules(profile), rules)

    def test_general_without_config_is_an_invariant_violation(self):
        profile = UserInputProfile(
            federal_state=FederalState.GENERAL,
            graduation_year=2027,
            subjects=(make_subject("a", [8, 8, 8, 8]),),
        )
        with self.assertRaises(InvariantViolation):
            rulesets.resolve_rules(profile)
