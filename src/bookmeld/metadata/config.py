# ABOUTME: Shared configuration validation for bookmeld components.
# ABOUTME: Config dataclasses call these checks in __post_init__ so bad values fail at construction.

from dataclasses import replace
from typing import Any, TypeVar

_ConfigT = TypeVar("_ConfigT")


class ConfigurationError(ValueError):
    """Raised when a configuration value is out of its allowed range."""


def check_unit_interval(name: str, value: float) -> None:
    """Require value to lie within [0.0, 1.0]."""
    if not 0.0 <= value <= 1.0:
        raise ConfigurationError(f"{name} must be between 0.0 and 1.0, got {value}")


def check_positive(name: str, value: float) -> None:
    """Require value to be strictly greater than zero."""
    if value <= 0:
        raise ConfigurationError(f"{name} must be greater than 0, got {value}")


def check_non_negative(name: str, value: float) -> None:
    """Require value to be zero or greater."""
    if value < 0:
        raise ConfigurationError(f"{name} must not be negative, got {value}")


def check_choice(name: str, value: str, allowed: tuple[str, ...]) -> None:
    """Require value to be one of the allowed string constants."""
    if value not in allowed:
        raise ConfigurationError(f"{name} must be one of {', '.join(allowed)}, got {value!r}")


def with_overrides(config: _ConfigT, **overrides: Any) -> _ConfigT:
    """Return a copy of a config dataclass with the given fields replaced.

    Unknown field names raise ConfigurationError rather than TypeError so
    callers see one error type for every bad setting.
    """
    try:
        return replace(config, **overrides)  # type: ignore[type-var]
    except TypeError as exc:
        raise ConfigurationError(str(exc)) from exc
