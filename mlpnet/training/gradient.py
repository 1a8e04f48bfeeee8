"""Batch cost and error gradients via a parallel map/reduce over examples."""

from __future__ import annotations

import logging
import os
from concurrent.futures import Executor, ThreadPoolExecutor
from contextlib import nullcontext
from typing import Dict, List, Sequence, Tuple

import numpy as np

from ..core.layers import DEFAULT_FLAT_SPOT_ELIMINATION, validate_flat_spot_elimination
from ..core.network import Network
from ..core.types import ErrorGradient, Gradients, TrainingExample, TrainingResult
from ..errors import InvalidOperationError, require_finite_nonnegative, require_positive_int
from .costs import CostFunction

logger = logging.getLogger(__name__)

_Partial = Tuple[float, Gradients]


def default_workers() -> int:
    return max(1, min(8, os.cpu_count() or 1))


class GradientEngine:
    """Compute the cost and per-layer gradients of a network over a batch.

    Examples are split into one contiguous chunk per worker. Every chunk is
    summed independently on a thread pool, after which the partial sums are
    combined per layer in chunk order. The partitioning depends only on the
    batch size and worker count, so repeated calls produce identical results
    and every example is counted exactly once.
    """

    def __init__(
        self,
        cost: CostFunction,
        *,
        flat_spot_elimination: float = DEFAULT_FLAT_SPOT_ELIMINATION,
        workers: int | None = None,
    ) -> None:
        self.cost = cost
        self.flat_spot_elimination = validate_flat_spot_elimination(flat_spot_elimination)
        self.workers = require_positive_int("workers", workers if workers is not None else default_workers())

    # ------------------------------------------------------------------
    # Public API

    def compute(
        self,
        network: Network,
        training_set: Sequence[TrainingExample],
        regularization: float = 0.0,
        *,
        executor: Executor | None = None,
    ) -> TrainingResult:
        """Return the (optionally L2 regularised) batch cost and gradients."""

        if network is None:
            raise InvalidOperationError("The network must not be None")
        if training_set is None:
            raise InvalidOperationError("The training set must not be None")
        examples = list(training_set)
        if not examples:
            raise InvalidOperationError("The training set must not be empty")
        self._check_shapes(network, examples)
        lam = require_finite_nonnegative("regularization", regularization)

        result = self.compute_unregularized(network, examples, executor=executor)
        if lam > 0:
            return self.regularize(network, result, lam, len(examples))
        return result

    def compute_unregularized(
        self,
        network: Network,
        examples: Sequence[TrainingExample],
        *,
        executor: Executor | None = None,
    ) -> TrainingResult:
        chunks = [chunk for chunk in _partition(len(examples), self.workers) if chunk.size]
        if executor is None and len(chunks) > 1:
            context = ThreadPoolExecutor(max_workers=len(chunks), thread_name_prefix="mlpnet-grad")
        else:
            context = nullcontext(executor)

        with context as pool:
            if pool is None:
                partials = [self._accumulate(network, examples, chunk) for chunk in chunks]
            else:
                logger.debug("Fanning out %d examples over %d chunks", len(examples), len(chunks))
                partials = list(pool.map(lambda c: self._accumulate(network, examples, c), chunks))
            result = _reduce(network, partials, pool)

        inverse_count = 1.0 / len(examples)
        gradients = {idx: gradient * inverse_count for idx, gradient in result[1].items()}
        return TrainingResult(cost=result[0] * inverse_count, gradients=gradients)

    def example_gradient(self, network: Network, example: TrainingExample) -> TrainingResult:
        """Return the unscaled cost and gradients of a single example."""

        results = network.feedforward(example.inputs)
        output = results[-1].output
        expected = example.outputs

        gradients: Gradients = {}
        last = len(network) - 1
        error = output - expected
        gradients[last] = ErrorGradient(np.outer(error, results[last - 1].output), error)
        cost = self.cost(expected, output)

        for idx in range(last - 1, 0, -1):
            delta = network[idx].backpropagate(
                results[idx],
                error,
                network[idx + 1],
                flat_spot_elimination=self.flat_spot_elimination,
            )
            # the bias input is always one, so its gradient is the error itself
            gradients[idx] = ErrorGradient(
                np.outer(delta.weight_errors, results[idx - 1].output), delta.weight_errors
            )
            error = delta.weight_errors
        return TrainingResult(cost=cost, gradients=gradients)

    @staticmethod
    def regularize(
        network: Network, result: TrainingResult, regularization: float, count: int
    ) -> TrainingResult:
        """Apply the L2 penalty to an unregularised batch ``result``."""

        squared = sum(float(np.sum(layer.weights * layer.weights)) for layer in network.trainable_layers)
        cost = result.cost + regularization / (2 * count) * squared

        factor = regularization / count
        gradients: Gradients = {}
        for idx, gradient in result.gradients.items():
            weights = network[idx].weights
            gradients[idx] = ErrorGradient(gradient.weight + factor * weights, gradient.bias)
        return TrainingResult(cost=cost, gradients=gradients)

    # ------------------------------------------------------------------
    # Helpers

    def _accumulate(
        self, network: Network, examples: Sequence[TrainingExample], chunk: np.ndarray
    ) -> _Partial:
        gradients: Gradients = {
            layer.index: ErrorGradient.zeros_like(layer) for layer in network.trainable_layers
        }
        cost = 0.0
        for position in chunk:
            example_result = self.example_gradient(network, examples[int(position)])
            cost += example_result.cost
            for idx, gradient in example_result.gradients.items():
                gradients[idx] = gradients[idx] + gradient
        return cost, gradients

    @staticmethod
    def _check_shapes(network: Network, examples: Sequence[TrainingExample]) -> None:
        n_in, n_out = network.input_neuron_count, network.output_neuron_count
        for position, example in enumerate(examples):
            if example.inputs.shape[0] != n_in or example.outputs.shape[0] != n_out:
                raise InvalidOperationError(
                    f"Training example {position} has shape {example.inputs.shape[0]}->"
                    f"{example.outputs.shape[0]}, network expects {n_in}->{n_out}"
                )


def _partition(count: int, workers: int) -> List[np.ndarray]:
    return np.array_split(np.arange(count), min(workers, count))


def _reduce(network: Network, partials: List[_Partial], pool: Executor | None) -> _Partial:
    cost = float(sum(partial[0] for partial in partials))
    indices = [layer.index for layer in network.trainable_layers]

    def reduce_layer(idx: int) -> ErrorGradient:
        total = partials[0][1][idx]
        for _, gradients in partials[1:]:
            total = total + gradients[idx]
        return total

    if pool is None:
        reduced = [reduce_layer(idx) for idx in indices]
    else:
        reduced = list(pool.map(reduce_layer, indices))
    gradients: Dict[int, ErrorGradient] = dict(zip(indices, reduced))
    return cost, gradients


__all__ = ["GradientEngine", "default_workers"]
