import json
import logging
from unittest.mock import patch

from django.test import SimpleTestCase

from abitur.test.utils.profiles import nrw_profile_raw


class RiskReportApiTests(SimpleTestCase):
    url = "/api/risk-report/"

    def _post(self, body):
        return self.client.post(self.url, data=body, content_type="application/json")

    def test_valid_profile_returns_report(self):
        res = self._post(json.dumps(nrw_profile_raw()))
        self.assertEqual(res.status_code, 200)
        data = res.json()
        self.assertEqual(data["status"], "success")
        self.assertEqual(data["report"]["rulesVersion"], "apo-gost-2026.1")
        self.assertTrue(res.has_header("X-Request-ID"))

    def test_invalid_profile_returns_violations(self):
        raw = nrw_profile_raw()
        raw["subjects"][2]["type"] = "LK"
        res = self._post(json.dumps(raw))
        self.assertEqual(res.status_code, 400)
        data = res.json()
        self.assertEqual(data["error_code"], "INVALID_PROFILE")
        self.assertTrue(any("2 LK" in v["message"] for v in data["violations"]))

    def test_malformed_json_is_a_validation_failure(self):
        res = self._post("{oops")
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.json()["violations"][0]["code"], "INVALID_JSON")

    def test_deeply_nested_body_is_a_validation_failure(self):
        res = self._post('{"subjects": ' + "[" * 100000 + "}")
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.json()["violations"][0]["code"], "INVALID_JSON")

    def test_method_not_allowed(self):
        res = self.client.get(self.url)
        self.assertEqual(res.status_code, 405)

    @patch.dict("os.environ", {"ARM_MAX_PAYLOAD_BYTES": "64"})
    def test_payload_too_large(self):
        res = self._post(json.dumps(nrw_profile_raw()))
        self.assertEqual(res.status_code, 413)

    @patch.dict("os.environ", {"ARM_API_ENABLED": "0"})
    def test_disabled(self):
        self.assertEqual(self._post("{}").status_code, 404)
        self.assertEqual(self.client.get("/api/rulesets/").status_code, 404)

    @patch("abitur.views.service.build_risk_report_from_blob", side_effect=RuntimeError("boom"))
    def test_unexpected_error_returns_500(self, _mock):
        with self.assertLogs("abitur.views", level=logging.ERROR):
            res = self._post(json.dumps(nrw_profile_raw()))
        self.assertEqual(res.status_code, 500)
        self.assertEqual(res.json()["status"], "error")


class RulesetsApiTests(SimpleTestCase):
    def test_lists_builtin_rulesets(self):
        res = self.client.get("/api/rulesets/")
        self.assertEqual(res.status_code, 200)
        nrw = res.json()["rulesets"]["NRW"]
        self.assertEqual(nrw["version"], "apo-gost-2026.1")
        self.assertEqual(nrw["fatalScope"], "MANDATORY_ONLY")

    def test_post_not_allowed(self):
        self.assertEqual(self.client.post("/api/rulesets/").status_code, 405)
