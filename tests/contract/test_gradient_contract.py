import numpy as np
import pytest

from mlpnet.core.layers import LayerConfiguration
from mlpnet.core.network import NetworkFactory
from mlpnet.core.transfer import Identity, Sigmoid, Tanh
from mlpnet.core.types import TrainingExample
from mlpnet.errors import ConfigurationError, InvalidOperationError
from mlpnet.training.costs import Logistic, SumSquaredError
from mlpnet.training.gradient import GradientEngine


def _examples(rng, count, d_in, d_out, *, binary=False):
    examples = []
    for _ in range(count):
        x = rng.standard_normal(d_in)
        y = rng.integers(0, 2, d_out).astype(float) if binary else rng.standard_normal(d_out)
        examples.append(TrainingExample(x, y))
    return examples


def _numeric_gradients(engine, network, examples, regularization, h=1e-6):
    numeric = {}
    for layer in network.trainable_layers:
        grads = []
        for param in (layer.weights, layer.bias):
            grad = np.zeros_like(param)
            for idx in np.ndindex(param.shape):
                original = param[idx]
                param[idx] = original + h
                plus = engine.compute(network, examples, regularization).cost
                param[idx] = original - h
                minus = engine.compute(network, examples, regularization).cost
                param[idx] = original
                grad[idx] = (plus - minus) / (2 * h)
            grads.append(grad)
        numeric[layer.index] = grads
    return numeric


@pytest.mark.parametrize("regularization", [0.0, 0.3])
def test_gradients_match_finite_differences_for_identity_output(regularization):
    rng = np.random.default_rng(0)
    network = NetworkFactory(seed=1).create(
        LayerConfiguration.for_input(2),
        [LayerConfiguration.for_hidden(3, Tanh())],
        LayerConfiguration.for_output(2, Identity()),
    )
    examples = _examples(rng, 5, 2, 2)
    engine = GradientEngine(SumSquaredError(), flat_spot_elimination=0.0, workers=1)

    result = engine.compute(network, examples, regularization)
    numeric = _numeric_gradients(engine, network, examples, regularization)
    assert set(result.gradients) == {1, 2}
    for idx, (weight, bias) in numeric.items():
        np.testing.assert_allclose(result.gradients[idx].weight, weight, rtol=1e-5, atol=1e-7)
        np.testing.assert_allclose(result.gradients[idx].bias, bias, rtol=1e-5, atol=1e-7)


def test_gradients_match_finite_differences_for_logistic_sigmoid():
    rng = np.random.default_rng(4)
    network = NetworkFactory(seed=2).create(
        LayerConfiguration.for_input(3),
        [LayerConfiguration.for_hidden(4, Sigmoid()), LayerConfiguration.for_hidden(3, Sigmoid())],
        LayerConfiguration.for_output(2, Sigmoid()),
    )
    examples = _examples(rng, 6, 3, 2, binary=True)
    engine = GradientEngine(Logistic(), flat_spot_elimination=0.0, workers=1)

    result = engine.compute(network, examples, 0.1)
    numeric = _numeric_gradients(engine, network, examples, 0.1)
    for idx, (weight, bias) in numeric.items():
        np.testing.assert_allclose(result.gradients[idx].weight, weight, rtol=1e-5, atol=1e-7)
        np.testing.assert_allclose(result.gradients[idx].bias, bias, rtol=1e-5, atol=1e-7)


def test_regularization_adds_weight_penalty_only():
    rng = np.random.default_rng(9)
    network = NetworkFactory(seed=3).create(
        LayerConfiguration.for_input(2),
        [LayerConfiguration.for_hidden(2, Sigmoid())],
        LayerConfiguration.for_output(1, Sigmoid()),
    )
    examples = _examples(rng, 4, 2, 1, binary=True)
    engine = GradientEngine(SumSquaredError(), workers=2)

    plain = engine.compute(network, examples, 0.0)
    lam, n = 0.5, len(examples)
    regularized = engine.compute(network, examples, lam)

    squared = sum(np.sum(layer.weights ** 2) for layer in network.trainable_layers)
    assert regularized.cost == pytest.approx(plain.cost + lam / (2 * n) * squared)
    for layer in network.trainable_layers:
        np.testing.assert_allclose(
            regularized.gradients[layer.index].weight,
            plain.gradients[layer.index].weight + lam / n * layer.weights,
        )
        np.testing.assert_array_equal(
            regularized.gradients[layer.index].bias, plain.gradients[layer.index].bias
        )


def test_batch_gradient_is_mean_of_example_gradients():
    rng = np.random.default_rng(5)
    network = NetworkFactory(seed=5).create(
        LayerConfiguration.for_input(3),
        [LayerConfiguration.for_hidden(4, Tanh())],
        LayerConfiguration.for_output(2, Sigmoid()),
    )
    examples = _examples(rng, 7, 3, 2, binary=True)
    engine = GradientEngine(SumSquaredError(), workers=3)

    batch = engine.compute(network, examples)
    singles = [engine.example_gradient(network, example) for example in examples]
    assert batch.cost == pytest.approx(np.mean([s.cost for s in singles]))
    for idx in batch.gradients:
        expected = np.mean([s.gradients[idx].weight for s in singles], axis=0)
        np.testing.assert_allclose(batch.gradients[idx].weight, expected)


def test_reduction_is_order_and_worker_independent():
    rng = np.random.default_rng(11)
    network = NetworkFactory(seed=11).create(
        LayerConfiguration.for_input(4),
        [LayerConfiguration.for_hidden(5, Sigmoid())],
        LayerConfiguration.for_output(3, Sigmoid()),
    )
    examples = _examples(rng, 37, 4, 3, binary=True)
    shuffled = [examples[i] for i in rng.permutation(len(examples))]

    reference = GradientEngine(SumSquaredError(), workers=1).compute(network, examples, 0.1)
    for workers, batch in ((4, examples), (8, shuffled), (64, shuffled)):
        result = GradientEngine(SumSquaredError(), workers=workers).compute(network, batch, 0.1)
        assert result.cost == pytest.approx(reference.cost, rel=1e-9)
        for idx, gradient in reference.gradients.items():
            np.testing.assert_allclose(result.gradients[idx].weight, gradient.weight, rtol=1e-9, atol=1e-12)
            np.testing.assert_allclose(result.gradients[idx].bias, gradient.bias, rtol=1e-9, atol=1e-12)


def test_repeated_computation_is_deterministic():
    rng = np.random.default_rng(2)
    network = NetworkFactory(seed=2).create(
        LayerConfiguration.for_input(2), (), LayerConfiguration.for_output(1, Sigmoid())
    )
    examples = _examples(rng, 20, 2, 1, binary=True)
    engine = GradientEngine(SumSquaredError(), workers=4)
    first = engine.compute(network, examples, 0.2)
    second = engine.compute(network, examples, 0.2)
    assert first.cost == second.cost
    np.testing.assert_array_equal(first.gradients[1].weight, second.gradients[1].weight)


def test_gradient_engine_rejects_bad_input():
    network = NetworkFactory(seed=0).create(
        LayerConfiguration.for_input(2), (), LayerConfiguration.for_output(1, Sigmoid())
    )
    engine = GradientEngine(SumSquaredError(), workers=1)
    with pytest.raises(InvalidOperationError):
        engine.compute(network, [])
    with pytest.raises(InvalidOperationError):
        engine.compute(None, [TrainingExample([0, 0], [1])])
    with pytest.raises(InvalidOperationError):
        engine.compute(network, None)
    with pytest.raises(InvalidOperationError):
        engine.compute(network, [TrainingExample([0, 0, 0], [1])])
    with pytest.raises(ConfigurationError):
        engine.compute(network, [TrainingExample([0, 0], [1])], -0.1)


def test_gradient_engine_settings_are_validated():
    with pytest.raises(ConfigurationError):
        GradientEngine(SumSquaredError(), flat_spot_elimination=-1.0)
    with pytest.raises(ConfigurationError):
        GradientEngine(SumSquaredError(), workers=0)
    assert GradientEngine(SumSquaredError()).workers >= 1


def test_regularized_cost_equals_plain_cost_only_for_zero_weights():
    rng = np.random.default_rng(13)
    network = NetworkFactory(seed=13).create(
        LayerConfiguration.for_input(2),
        [LayerConfiguration.for_hidden(3, Sigmoid())],
        LayerConfiguration.for_output(1, Sigmoid()),
    )
    examples = _examples(rng, 6, 2, 1, binary=True)
    engine = GradientEngine(SumSquaredError(), workers=2)

    assert engine.compute(network, examples, 0.4).cost > engine.compute(network, examples, 0.0).cost

    for layer in network.trainable_layers:
        layer.weights[...] = 0.0
    plain = engine.compute(network, examples, 0.0)
    regularized = engine.compute(network, examples, 0.4)
    assert regularized.cost == plain.cost
    for idx, gradient in plain.gradients.items():
        np.testing.assert_array_equal(regularized.gradients[idx].weight, gradient.weight)

    # biases are never penalised
    network.output_layer.bias[...] = 5.0
    assert engine.compute(network, examples, 0.4).cost == engine.compute(network, examples, 0.0).cost
