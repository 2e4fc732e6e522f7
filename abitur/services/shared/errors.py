class ServiceError(Exception):
    """Base class for service-layer errors."""


class InvariantViolation(ServiceError):
    """Raised when a validated profile reaches a state the validator should have excluded."""


class RulesetConfigurationError(ServiceError):
    """Raised when the packaged built-in rule sets cannot be loaded."""
