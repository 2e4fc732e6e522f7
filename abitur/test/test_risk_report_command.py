import json
import tempfile
from io import StringIO
from pathlib import Path
from unittest.mock import patch

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import SimpleTestCase

from abitur.test.utils.profiles import general_profile_raw, nrw_profile_raw


class RiskReportCommandTests(SimpleTestCase):
    def _write(self, payload):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        path = Path(tmp.name) / "profile.json"
        path.write_text(payload, encoding="utf-8")
        return str(path)

    def test_prints_report_json(self):
        out = StringIO()
        call_command("risk_report", self._write(json.dumps(nrw_profile_raw())), stdout=out)
        report = json.loads(out.getvalue())
        self.assertEqual(report["federalState"], "NRW")
        self.assertEqual(report["overallSeverity"], "medium")

    def test_reads_stdin(self):
        out = StringIO()
        with patch("sys.stdin", StringIO(json.dumps(general_profile_raw()))):
            call_command("risk_report", "-", "--indent", "0", stdout=out)
        self.assertEqual(json.loads(out.getvalue())["federalState"], "General")

    def test_violations_raise_command_error(self):
        raw = general_profile_raw()
        del raw["rulesConfig"]
        with self.assertRaises(CommandError) as ctx:
            call_command("risk_report", self._write(json.dumps(raw)), stdout=StringIO())
        self.assertIn("rulesConfig", str(ctx.exception))

    def test_missing_file_is_a_validation_failure(self):
        with self.assertRaises(CommandError) as ctx:
            call_command("risk_report", "/nonexistent/profile.json", stdout=StringIO())
        self.assertIn("MISSING_PROFILE", str(ctx.exception))
