from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Sequence

from abitur.academic.report import evaluate_profile
from abitur.academic.rulesets import builtin_rulesets
from abitur.services.profile.validators import (
    ValidationResult,
    Violation,
    decode_profile_blob,
    validate_profile,
)
from abitur.services.risk.serializers import serialize_report, serialize_rules
from abitur.services.shared.settings import get_api_settings

logger = logging.getLogger(__name__)

INVALID_PROFILE = "INVALID_PROFILE"


def _error_payload(violations: Sequence[Violation]) -> Dict[str, Any]:
    count = len(violations)
    return {
        "status": "error",
        "error_code": INVALID_PROFILE,
        "error": f"Profile is invalid ({count} problem{'' if count == 1 else 's'}).",
        "violations": [v.as_dict() for v in violations],
    }


def _evaluate(result: ValidationResult, *, request_id: str = "-") -> Dict[str, Any]:
    if not result.ok:
        codes = sorted({v.code for v in result.violations})
        logger.warning(
            " [RISK REJECTED] violations=%s codes=%s",
            len(result.violations),
            ",".join(codes[:5]),
            extra={"request_id": request_id},
        )
        return _error_payload(result.violations)

    profile = result.profile
    report = evaluate_profile(profile)
    logger.info(
        " [RISK REPORT] subjects=%s total=%s deficits=%s findings=%s",
        len(profile.subjects),
        report.stats.total_projected_points,
        report.stats.total_deficits,
        len(report.findings),
        extra={
            "request_id": request_id,
            "federal_state": report.federal_state.value,
            "severity": report.overall_severity.value,
        },
    )
    if get_api_settings().log_findings:
        for finding in report.findings:
            logger.debug(
                " [RISK FINDING] trap=%s key=%s affected=%s",
                finding.trap_type.value,
                finding.i18n_key,
                ",".join(finding.affected_subject_ids) or "-",
                extra={"request_id": request_id, "severity": finding.severity.value},
            )
    return {"status": "success", "report": serialize_report(report)}


def build_risk_report(raw: Any, *, request_id: str = "-") -> Dict[str, Any]:
    return _evaluate(validate_profile(raw), request_id=request_id)


def build_risk_report_from_blob(text: Optional[str], *, request_id: str = "-") -> Dict[str, Any]:
    """Same as build_risk_report, for a persisted profile string that may be missing or malformed."""
    return _evaluate(decode_profile_blob(text), request_id=request_id)


def list_builtin_rulesets() -> Dict[str, Any]:
    return {
        "status": "success",
        "rulesets": {state.value: serialize_rules(rules) for state, rules in builtin_rulesets().items()},
    }
