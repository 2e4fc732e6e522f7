"""Academic domain modules for Abitur risk assessment."""

from .grade_calculator import (
    compute_stats,
    get_grade_label,
    points_to_grade,
)
from .report import (
    assemble_report,
    evaluate_profile,
    overall_severity,
)
from .rulesets import builtin_rulesets, resolve_rules
from .trap_detector import detect_traps, register_check, registry

__all__ = [
    "compute_stats",
    "get_grade_label",
    "points_to_grade",
    "assemble_report",
    "evaluate_profile",
    "overall_severity",
    "builtin_rulesets",
    "resolve_rules",
    "detect_traps",
    "register_check",
    "registry",
]
