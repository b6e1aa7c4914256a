"""Configuration dataclass for doubletrace.

DoubleConfig is constructed programmatically or loaded from doubletrace.yaml
(see doubletrace.config_loader). It is handed explicitly to the lifecycle
driver and from there to every Space; nothing reads it from global state.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ConfigError(Exception):
    """Base exception for configuration errors.

    Raised when doubletrace.yaml has invalid content, unknown fields,
    or other configuration problems.
    """

    pass


class ConfigurationError(ConfigError):
    """Raised when a constructed DoubleConfig fails validation."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        message = "Configuration validation failed:\n" + "\n".join(
            f"  - {e}" for e in errors
        )
        super().__init__(message)


class VerificationMode(Enum):
    """How Space.verify_all reports several unmet expectations."""

    AGGREGATE = "aggregate"  # one combined error listing every failure
    FAIL_FAST = "fail_fast"  # the first failure only


@dataclass(frozen=True)
class DoubleConfig:
    """Settings that shape proxy construction and verification.

    Attributes:
        verify_partial_doubles: Use verifying proxies for partial doubles on
            instances and classes (messages must exist, arity must fit).
        allow_message_expectations_on_nil: None warns when a message is
            stubbed on None, False raises InterfaceError, True is silent.
        verification_mode: Reporting policy for Space.verify_all.

    Example:
        config = DoubleConfig(verify_partial_doubles=True)
        lifecycle = MockLifecycle(config)
    """

    verify_partial_doubles: bool = False
    allow_message_expectations_on_nil: bool | None = None
    verification_mode: VerificationMode = VerificationMode.AGGREGATE

    def validate(self) -> list[str]:
        """Validate field types and return a list of errors (empty if valid)."""
        errors: list[str] = []
        if not isinstance(self.verify_partial_doubles, bool):
            errors.append(
                "verify_partial_doubles must be a boolean, got "
                f"{type(self.verify_partial_doubles).__name__}"
            )
        if self.allow_message_expectations_on_nil is not None and not isinstance(
            self.allow_message_expectations_on_nil, bool
        ):
            errors.append(
                "allow_message_expectations_on_nil must be a boolean or null, got "
                f"{type(self.allow_message_expectations_on_nil).__name__}"
            )
        if not isinstance(self.verification_mode, VerificationMode):
            errors.append(
                f"verification_mode must be a VerificationMode, got {self.verification_mode!r}"
            )
        return errors
