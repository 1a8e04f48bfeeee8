"""Cost function registry used by the gradient engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Protocol

import numpy as np

from ..core.types import Array
from ..errors import ConfigurationError, require_finite_nonnegative


class CostFunction(Protocol):
    """Maps an (expected, actual) output pair to a scalar cost."""

    name: str

    def __call__(self, expected: Array, actual: Array) -> float:
        """Return the cost of ``actual`` given the ground truth ``expected``."""


@dataclass(frozen=True)
class SumSquaredError:
    """``0.5 * sum((expected - actual) ** 2)``."""

    name: str = "sse"

    def __call__(self, expected: Array, actual: Array) -> float:
        diff = np.asarray(expected, dtype=np.float64) - np.asarray(actual, dtype=np.float64)
        return float(0.5 * np.sum(diff * diff))


@dataclass(frozen=True)
class Logistic:
    """Multivariate logistic (cross-entropy) cost.

    Only meaningful for outputs strictly inside ``(0, 1)``. An output of
    exactly 0 or 1 makes the logarithm diverge and the cost becomes infinite
    (or NaN), which the optimizer reports as a numeric divergence. Setting
    ``epsilon`` clips outputs into ``[epsilon, 1 - epsilon]`` first.
    """

    epsilon: float = 0.0
    name: str = "logistic"

    def __post_init__(self) -> None:
        require_finite_nonnegative("epsilon", self.epsilon)
        if self.epsilon >= 0.5:
            raise ConfigurationError(f"Logistic epsilon must be below 0.5, got {self.epsilon}")

    def __call__(self, expected: Array, actual: Array) -> float:
        y = np.asarray(expected, dtype=np.float64)
        a = np.asarray(actual, dtype=np.float64)
        if self.epsilon > 0:
            a = np.clip(a, self.epsilon, 1.0 - self.epsilon)
        with np.errstate(divide="ignore", invalid="ignore"):
            first = y * np.log(a)
            second = (1.0 - y) * np.log(1.0 - a)
        return float(-np.sum(first + second))


class CostRegistry:
    """Central registry for cost functions."""

    def __init__(self) -> None:
        self._registry: Dict[str, Callable[..., CostFunction]] = {}

    def register(self, name: str, factory: Callable[..., CostFunction]) -> None:
        self._registry[name] = factory

    def names(self) -> Iterable[str]:
        return sorted(self._registry)

    def get(self, name: str, **options: float) -> CostFunction:
        key = str(name).lower()
        if key not in self._registry:
            available = ", ".join(self.names())
            raise ConfigurationError(f"Unknown cost {name!r}. Available costs: {available}")
        try:
            return self._registry[key](**options)
        except TypeError as exc:
            raise ConfigurationError(f"Invalid options for cost {name!r}: {options}") from exc


REGISTRY = CostRegistry()
REGISTRY.register("sse", SumSquaredError)
REGISTRY.register("logistic", Logistic)
# Alias for parity with common naming
REGISTRY.register("sum_squared_error", SumSquaredError)

__all__ = ["CostFunction", "CostRegistry", "Logistic", "REGISTRY", "SumSquaredError"]
