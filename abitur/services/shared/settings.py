import os
from dataclasses import dataclass


def env_bool(name: str, default: bool = False) -> bool:
    raw = str(os.environ.get(name, "1" if default else "0")).strip().lower()
    return raw in {"1", "true", "yes", "on"}


def env_int(name: str, default: int) -> int:
    try:
        return int(str(os.environ.get(name, str(default))).strip())
    except (TypeError, ValueError):
        return int(default)


def env_str(name: str, default: str = "") -> str:
    return str(os.environ.get(name, default))


@dataclass(frozen=True)
class ApiSettings:
    enabled: bool
    max_payload_bytes: int
    log_findings: bool


def get_api_settings() -> ApiSettings:
    """Read on every call so tests can patch the environment."""
    return ApiSettings(
        enabled=env_bool("ARM_API_ENABLED", default=True),
        max_payload_bytes=max(env_int("ARM_MAX_PAYLOAD_BYTES", 262144), 1),
        log_findings=env_bool("ARM_LOG_FINDINGS", default=False),
    )
