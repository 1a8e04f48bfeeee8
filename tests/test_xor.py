import numpy as np

from mlpnet.core.layers import LayerConfiguration
from mlpnet.core.network import NetworkFactory
from mlpnet.core.transfer import Sigmoid, Step
from mlpnet.core.types import TrainingStop
from mlpnet.data import xor_examples
from mlpnet.training.costs import SumSquaredError
from mlpnet.training.gradient import GradientEngine
from mlpnet.training.optimizer import DescentConfig, MomentumDescent

XOR_CONFIG = DescentConfig(
    learning_rate=0.5,
    momentum=0.8,
    regularization=0.0,
    min_iterations=1000,
    max_iterations=2000,
)
SEEDS = range(20)


def _train_xor(seed, output_transfer):
    network = NetworkFactory(seed=seed).create(
        LayerConfiguration.for_input(2),
        [LayerConfiguration.for_hidden(2, Sigmoid())],
        LayerConfiguration.for_output(1, output_transfer),
    )
    engine = GradientEngine(SumSquaredError(), workers=1)
    stop = MomentumDescent(engine, XOR_CONFIG).train(network, xor_examples())
    return network, stop


def _labels_correct(network):
    return all(
        round(float(network.evaluate(example.inputs)[0])) == example.outputs[0]
        for example in xor_examples()
    )


def test_xor_step_output_learns_labels_for_most_seeds():
    solved = 0
    for seed in SEEDS:
        network, stop = _train_xor(seed, Step())
        assert stop in {TrainingStop.EPSILON_REACHED, TrainingStop.MAXIMUM_ITERATIONS_REACHED}
        outputs = {float(network.evaluate(e.inputs)[0]) for e in xor_examples()}
        assert outputs <= {0.0, 1.0}
        assert all(np.isfinite(layer.weights).all() for layer in network.trainable_layers)
        solved += _labels_correct(network)
    # 12 of these 20 initialisations separate XOR; the rest stall with a collapsed hidden layer
    assert solved >= 12


def test_xor_sigmoid_output_learns_labels_for_large_majority_of_seeds():
    solved = 0
    for seed in SEEDS:
        network, stop = _train_xor(seed, Sigmoid())
        assert stop in {TrainingStop.EPSILON_REACHED, TrainingStop.MAXIMUM_ITERATIONS_REACHED}
        solved += _labels_correct(network)
    assert solved >= 14
