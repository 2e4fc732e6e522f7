from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping

import yaml

from abitur.services.shared.errors import InvariantViolation, RulesetConfigurationError

from .types import FatalScope, FederalState, MandatoryRequirement, RulesConfig, UserInputProfile

logger = logging.getLogger(__name__)

RULESETS_PATH = Path(__file__).with_name("rulesets.yaml")

_REQUIRED_KEYS = (
    "version",
    "lk_weight",
    "gk_weight",
    "exam_weight",
    "deficit_threshold",
    "max_deficits",
    "min_total_points",
    "near_miss_margin",
    "zero_is_fatal",
    "fatal_scope",
)


def _build_rules(state: str, raw: Dict[str, Any]) -> RulesConfig:
    missing = [k for k in _REQUIRED_KEYS if k not in raw]
    if missing:
        raise RulesetConfigurationError(f"Rule set {state} is missing keys: {', '.join(missing)}")
    try:
        mandatory = tuple(
            MandatoryRequirement(
                label=str(item["label"]),
                patterns=tuple(str(p).strip().lower() for p in item.get("patterns") or []),
            )
            for item in raw.get("mandatory_subjects") or []
        )
        return RulesConfig(
            lk_weight=int(raw["lk_weight"]),
            gk_weight=int(raw["gk_weight"]),
            exam_weight=int(raw["exam_weight"]),
            deficit_threshold=int(raw["deficit_threshold"]),
            max_deficits=int(raw["max_deficits"]),
            max_lk_deficits=_opt_int(raw.get("max_lk_deficits")),
            min_total_points=int(raw["min_total_points"]),
            near_miss_margin=int(raw["near_miss_margin"]),
            zero_is_fatal=bool(raw["zero_is_fatal"]),
            fatal_scope=FatalScope(str(raw["fatal_scope"])),
            required_lk_count=int(raw.get("required_lk_count") or 0),
            required_exam_count=int(raw.get("required_exam_count") or 0),
            mandatory_subjects=mandatory,
            anchor_threshold=float(raw.get("anchor_threshold", 3.0)),
            volatility_threshold=float(raw.get("volatility_threshold", 3.5)),
            transition_year=_opt_int(raw.get("transition_year")),
            transition_deficit_threshold=_opt_int(raw.get("transition_deficit_threshold")),
            transition_lk_deficit_threshold=_opt_int(raw.get("transition_lk_deficit_threshold")),
            require_art_music=bool(raw.get("require_art_music", False)),
            version=str(raw["version"]),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise RulesetConfigurationError(f"Rule set {state} is invalid: {e}") from e


def _opt_int(value: Any) -> int | None:
    return None if value is None else int(value)


@lru_cache(maxsize=1)
def builtin_rulesets() -> Mapping[FederalState, RulesConfig]:
    """Load the packaged rule sets for the fixed jurisdictions (once per process)."""
    try:
        with RULESETS_PATH.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise RulesetConfigurationError(f"Cannot read {RULESETS_PATH.name}: {e}") from e
    if not isinstance(data, dict):
        raise RulesetConfigurationError(f"{RULESETS_PATH.name} must map jurisdiction names to rule sets")

    out: Dict[FederalState, RulesConfig] = {}
    for state in FederalState:
        if state.is_configurable:
            continue
        raw = data.get(state.value)
        if not isinstance(raw, dict):
            raise RulesetConfigurationError(f"No built-in rule set for {state.value}")
        out[state] = _build_rules(state.value, raw)
    logger.debug(
        "Built-in rule sets loaded: %s",
        ", ".join(f"{s.value}={r.version}" for s, r in out.items()),
    )
    return MappingProxyType(out)


def resolve_rules(profile: UserInputProfile) -> RulesConfig:
    state = profile.federal_state
    if state is FederalState.GENERAL:
        if profile.rules_config is None:
            raise InvariantViolation("General profile reached the resolver without rulesConfig")
        return profile.rules_config
    rules = builtin_rulesets().get(state)
    if rules is None:
        raise InvariantViolation(f"Unresolvable jurisdiction: {state!r}")
    return rules
