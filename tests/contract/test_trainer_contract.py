import threading

import numpy as np
import pytest

from mlpnet.core.layers import LayerConfiguration
from mlpnet.core.network import NetworkFactory
from mlpnet.core.transfer import Sigmoid
from mlpnet.core.types import TrainingProgress, TrainingStop
from mlpnet.data import xor_examples
from mlpnet.errors import ConfigurationError, InvalidOperationError, NumericDivergenceError
from mlpnet.training.costs import SumSquaredError
from mlpnet.training.gradient import GradientEngine
from mlpnet.training.optimizer import DescentConfig, MomentumDescent


def _network(seed=0):
    return NetworkFactory(seed=seed).create(
        LayerConfiguration.for_input(2),
        [LayerConfiguration.for_hidden(2, Sigmoid())],
        LayerConfiguration.for_output(1, Sigmoid()),
    )


def _snapshot(network):
    return network.copy_parameters()


def _assert_unchanged(network, snapshot):
    for layer, (weights, bias) in zip(network.trainable_layers, snapshot):
        np.testing.assert_array_equal(layer.weights, weights)
        np.testing.assert_array_equal(layer.bias, bias)


class _NaNCost:
    name = "nan"

    def __call__(self, expected, actual):
        return float("nan")


class _CancellingCost:
    """Requests cancellation while the first batch gradient is computed."""

    name = "cancelling"

    def __init__(self, event):
        self.event = event
        self.inner = SumSquaredError()

    def __call__(self, expected, actual):
        self.event.set()
        return self.inner(expected, actual)


class _RisingCost:
    name = "rising"

    def __init__(self):
        self.calls = 0

    def __call__(self, expected, actual):
        self.calls += 1
        return float(self.calls)


def test_descent_config_defaults():
    cfg = DescentConfig()
    assert cfg.learning_rate == 0.05
    assert cfg.momentum == 0.8
    assert cfg.max_iterations == 1000
    assert cfg.min_iterations == 100
    assert cfg.epsilon == 5e-6
    assert cfg.regularization == 0.01


@pytest.mark.parametrize(
    "options",
    [
        {"learning_rate": -0.1},
        {"momentum": float("nan")},
        {"regularization": float("inf")},
        {"epsilon": -1e-3},
        {"max_iterations": 0},
        {"min_iterations": 2.5},
        {"max_iterations": True},
    ],
)
def test_descent_config_rejects_invalid_values(options):
    with pytest.raises(ConfigurationError):
        DescentConfig(**options)


def test_descent_config_from_mapping():
    cfg = DescentConfig.from_mapping({"learning_rate": 0.5, "max_iterations": 20})
    assert cfg.learning_rate == 0.5 and cfg.max_iterations == 20
    with pytest.raises(ConfigurationError):
        DescentConfig.from_mapping({"lr": 0.5})


def test_train_requires_network_and_examples():
    optimizer = MomentumDescent(GradientEngine(SumSquaredError(), workers=1))
    with pytest.raises(InvalidOperationError):
        optimizer.train(None, xor_examples())
    with pytest.raises(InvalidOperationError):
        optimizer.train(_network(), None)


def test_cancelled_before_first_iteration_leaves_weights_untouched():
    network = _network()
    before = _snapshot(network)
    event = threading.Event()
    event.set()
    calls = []

    stop = MomentumDescent(GradientEngine(SumSquaredError(), workers=2)).train(
        network, xor_examples(), progress=calls.append, cancellation=event
    )
    assert stop is TrainingStop.CANCELLED
    assert calls == []
    _assert_unchanged(network, before)


def test_cancellation_during_gradient_prevents_update():
    network = _network()
    before = _snapshot(network)
    event = threading.Event()
    engine = GradientEngine(_CancellingCost(event), workers=2)

    stop = MomentumDescent(engine).train(network, xor_examples(), cancellation=event)
    assert stop is TrainingStop.CANCELLED
    _assert_unchanged(network, before)


def test_nan_cost_fails_fast():
    network = _network()
    before = _snapshot(network)
    calls = []
    with pytest.raises(NumericDivergenceError):
        MomentumDescent(GradientEngine(_NaNCost(), workers=1)).train(
            network, xor_examples(), progress=calls.append
        )
    assert calls == []
    _assert_unchanged(network, before)


def test_epsilon_stop_after_minimum_iterations():
    config = DescentConfig(learning_rate=0.0, momentum=0.0, min_iterations=3, max_iterations=50)
    reports = []
    stop = MomentumDescent(GradientEngine(SumSquaredError(), workers=1), config).train(
        _network(), xor_examples(), progress=reports.append
    )
    assert stop is TrainingStop.EPSILON_REACHED
    assert [r.iteration for r in reports] == [0, 1, 2]
    assert all(isinstance(r, TrainingProgress) for r in reports)
    assert len({r.cost for r in reports}) == 1


def test_rising_cost_never_counts_as_converged():
    config = DescentConfig(
        learning_rate=0.0, momentum=0.0, regularization=0.0, epsilon=10.0, min_iterations=1, max_iterations=5
    )
    stop = MomentumDescent(GradientEngine(_RisingCost(), workers=1), config).train(
        _network(), xor_examples()
    )
    assert stop is TrainingStop.MAXIMUM_ITERATIONS_REACHED


def test_max_iterations_reports_every_iteration():
    config = DescentConfig(learning_rate=0.1, max_iterations=7, min_iterations=7)

    class Sink:
        def __init__(self):
            self.steps = []

        def on_step(self, step, metrics):
            self.steps.append((step, metrics["cost"]))

    sink = Sink()
    stop = MomentumDescent(GradientEngine(SumSquaredError(), workers=2), config).train(
        _network(), xor_examples(), progress=sink
    )
    assert stop is TrainingStop.MAXIMUM_ITERATIONS_REACHED
    assert [step for step, _ in sink.steps] == list(range(7))


def test_momentum_update_rule():
    lr, momentum, lam = 0.1, 0.5, 0.01
    examples = xor_examples()
    engine = GradientEngine(SumSquaredError(), workers=1)
    config = DescentConfig(
        learning_rate=lr, momentum=momentum, regularization=lam, min_iterations=2, max_iterations=2
    )

    trained = _network(seed=4)
    MomentumDescent(engine, config).train(trained, examples)

    manual = _network(seed=4)
    previous = {layer.index: (0.0, 0.0) for layer in manual.trainable_layers}
    for _ in range(2):
        gradients = engine.compute(manual, examples, lam).gradients
        for layer in manual.trainable_layers:
            prev_w, prev_b = previous[layer.index]
            delta_w = lr * gradients[layer.index].weight + momentum * prev_w
            delta_b = lr * gradients[layer.index].bias + momentum * prev_b
            layer.weights -= delta_w
            layer.bias -= delta_b
            previous[layer.index] = (delta_w, delta_b)

    for a, b in zip(trained.trainable_layers, manual.trainable_layers):
        np.testing.assert_allclose(a.weights, b.weights, rtol=1e-12)
        np.testing.assert_allclose(a.bias, b.bias, rtol=1e-12)


def test_training_reduces_cost():
    config = DescentConfig(learning_rate=0.5, momentum=0.8, regularization=0.0, max_iterations=200, min_iterations=200)
    reports = []
    MomentumDescent(GradientEngine(SumSquaredError(), workers=2), config).train(
        _network(seed=1), xor_examples(), progress=reports.append
    )
    assert reports[-1].cost < reports[0].cost


class _SlowlyFallingCost:
    name = "slowly_falling"

    def __init__(self):
        self.calls = 0

    def __call__(self, expected, actual):
        self.calls += 1
        return 1.0 - 1e-9 * self.calls


def test_converged_cost_is_exposed_after_epsilon_stop():
    config = DescentConfig(learning_rate=0.0, momentum=0.0, regularization=0.0, min_iterations=2, max_iterations=50)
    reports = []
    optimizer = MomentumDescent(GradientEngine(_SlowlyFallingCost(), workers=1), config)
    stop = optimizer.train(_network(), xor_examples(), progress=reports.append)

    assert stop is TrainingStop.EPSILON_REACHED
    assert [r.iteration for r in reports] == [0, 1]
    assert optimizer.completed_iterations == 2
    assert optimizer.last_cost < reports[-1].cost
    assert optimizer.last_cost == pytest.approx(1.0 - 1e-9 * 10.5)


def test_last_cost_is_nan_when_cancelled_before_evaluation():
    event = threading.Event()
    event.set()
    optimizer = MomentumDescent(GradientEngine(SumSquaredError(), workers=1))
    optimizer.train(_network(), xor_examples(), cancellation=event)
    assert np.isnan(optimizer.last_cost)
    assert optimizer.completed_iterations == 0
