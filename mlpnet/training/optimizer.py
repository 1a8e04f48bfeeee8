"""Momentum-based gradient descent."""

from __future__ import annotations

import logging
import math
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, Protocol, Sequence

from ..core.network import Network
from ..core.types import ErrorGradient, TrainingExample, TrainingProgress, TrainingStop
from ..errors import (
    ConfigurationError,
    InvalidOperationError,
    NumericDivergenceError,
    require_finite_nonnegative,
    require_positive_int,
)
from .gradient import GradientEngine

logger = logging.getLogger(__name__)

DEFAULT_LEARNING_RATE = 0.05
DEFAULT_MOMENTUM = 0.8
DEFAULT_MAXIMUM_ITERATIONS = 1000
DEFAULT_MINIMUM_ITERATIONS = DEFAULT_MAXIMUM_ITERATIONS // 10
DEFAULT_EPSILON = 5e-6
DEFAULT_REGULARIZATION = 0.01


class CancellationSignal(Protocol):
    def is_set(self) -> bool:
        """Return ``True`` once cancellation has been requested."""


@dataclass(frozen=True)
class DescentConfig:
    """Hyperparameters of :class:`MomentumDescent`, validated on creation."""

    learning_rate: float = DEFAULT_LEARNING_RATE
    momentum: float = DEFAULT_MOMENTUM
    regularization: float = DEFAULT_REGULARIZATION
    min_iterations: int = DEFAULT_MINIMUM_ITERATIONS
    max_iterations: int = DEFAULT_MAXIMUM_ITERATIONS
    epsilon: float = DEFAULT_EPSILON

    def __post_init__(self) -> None:
        for name in ("learning_rate", "momentum", "regularization", "epsilon"):
            object.__setattr__(self, name, require_finite_nonnegative(name, getattr(self, name)))
        for name in ("min_iterations", "max_iterations"):
            object.__setattr__(self, name, require_positive_int(name, getattr(self, name)))

    @classmethod
    def from_mapping(cls, config: dict) -> "DescentConfig":
        known = set(cls.__dataclass_fields__)
        unknown = set(config) - known
        if unknown:
            raise ConfigurationError(f"Unknown descent options: {', '.join(sorted(unknown))}")
        return cls(**config)


@dataclass
class _DescentState:
    iteration: int = 0
    last_cost: float = math.inf
    previous_deltas: Dict[int, ErrorGradient] = field(default_factory=dict)


class MomentumDescent:
    """Train a network in place with momentum-smoothed gradient descent.

    Each iteration computes the batch gradient against the unmodified network,
    checks for convergence and cancellation, and only then updates every
    layer by ``delta = learning_rate * gradient + momentum * previous_delta``.
    """

    def __init__(self, engine: GradientEngine, config: DescentConfig | None = None) -> None:
        self.engine = engine
        self.config = config or DescentConfig()
        # cost of the most recently evaluated iteration, including the one that converged
        self.last_cost = math.nan
        self.completed_iterations = 0

    def train(
        self,
        network: Network,
        training_set: Sequence[TrainingExample],
        progress: object | None = None,
        cancellation: CancellationSignal | None = None,
    ) -> TrainingStop:
        if network is None:
            raise InvalidOperationError("The network reference must not be None")
        if training_set is None:
            raise InvalidOperationError("The training set must not be None")
        examples = list(training_set)

        cfg = self.config
        self.last_cost = math.nan
        self.completed_iterations = 0
        state = _DescentState(
            previous_deltas={
                layer.index: ErrorGradient.zeros_like(layer) for layer in network.trainable_layers
            }
        )
        workers = max(self.engine.workers, len(state.previous_deltas))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="mlpnet") as pool:
            for iteration in range(cfg.max_iterations):
                state.iteration = iteration
                if _cancelled(cancellation):
                    logger.info("Training cancelled before iteration %d", iteration)
                    return TrainingStop.CANCELLED

                result = self.engine.compute(network, examples, cfg.regularization, executor=pool)
                cost = result.cost
                self.last_cost = cost

                cost_delta = state.last_cost - cost
                if iteration >= cfg.min_iterations and 0 <= cost_delta <= cfg.epsilon:
                    logger.info(
                        "Training stopped at iteration %d because cost delta %g <= %g",
                        iteration,
                        cost_delta,
                        cfg.epsilon,
                    )
                    return TrainingStop.EPSILON_REACHED

                state.last_cost = cost
                logger.debug("iteration %d: cost %g, cost delta %g", iteration, cost, cost_delta)
                if math.isnan(cost) or math.isinf(cost):
                    raise NumericDivergenceError(
                        f"Cost evaluated to {cost} at iteration {iteration}"
                    )

                if _cancelled(cancellation):
                    logger.info("Training cancelled at iteration %d before the update", iteration)
                    return TrainingStop.CANCELLED

                self._descend(network, result.gradients, state.previous_deltas, pool)
                self.completed_iterations = iteration + 1
                _emit_progress(progress, TrainingProgress(iteration=iteration, cost=cost))

        logger.info("Training terminated after %d iterations at cost %g", cfg.max_iterations, state.last_cost)
        return TrainingStop.MAXIMUM_ITERATIONS_REACHED

    # ------------------------------------------------------------------
    # Internal helpers

    def _descend(
        self,
        network: Network,
        gradients: Dict[int, ErrorGradient],
        previous_deltas: Dict[int, ErrorGradient],
        pool: Executor,
    ) -> None:
        lr, momentum = self.config.learning_rate, self.config.momentum

        def update(idx: int) -> tuple[int, ErrorGradient]:
            layer = network[idx]
            gradient, previous = gradients[idx], previous_deltas[idx]
            delta = ErrorGradient(
                lr * gradient.weight + momentum * previous.weight,
                lr * gradient.bias + momentum * previous.bias,
            )
            # the error is defined as output - expected, hence the subtraction
            layer.weights -= delta.weight
            layer.bias -= delta.bias
            return idx, delta

        # layers own disjoint buffers, so the update is data parallel
        for idx, delta in pool.map(update, sorted(gradients)):
            previous_deltas[idx] = delta


def _cancelled(cancellation: CancellationSignal | None) -> bool:
    return cancellation is not None and cancellation.is_set()


def _emit_progress(sink: object | None, progress: TrainingProgress) -> None:
    if sink is None:
        return
    if hasattr(sink, "on_step"):
        sink.on_step(progress.iteration, {"cost": progress.cost})  # type: ignore[attr-defined]
    elif callable(sink):
        sink(progress)


__all__ = ["CancellationSignal", "DescentConfig", "MomentumDescent"]
