"""Exception taxonomy for mlpnet."""

from __future__ import annotations


class ConfigurationError(ValueError):
    """A hyperparameter, preset or registry name was rejected."""


class InvalidOperationError(RuntimeError):
    """An operation was invoked on an object that does not support it."""


class NumericDivergenceError(ArithmeticError):
    """Training produced a cost that is NaN or infinite."""


def require_finite_nonnegative(name: str, value: float) -> float:
    """Return ``value`` as float or raise :class:`ConfigurationError`."""

    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from exc
    if number != number or number in (float("inf"), float("-inf")):
        raise ConfigurationError(f"{name} must be a finite number, got {value!r}")
    if number < 0:
        raise ConfigurationError(f"{name} must be nonnegative, got {value!r}")
    return number


def require_positive_int(name: str, value: int) -> int:
    """Return ``value`` as int or raise :class:`ConfigurationError`."""

    try:
        is_integral = not isinstance(value, bool) and int(value) == value
    except (TypeError, ValueError):
        is_integral = False
    if not is_integral:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value!r}")
    return int(value)


__all__ = [
    "ConfigurationError",
    "InvalidOperationError",
    "NumericDivergenceError",
    "require_finite_nonnegative",
    "require_positive_int",
]
