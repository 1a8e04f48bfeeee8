import numpy as np
import pytest

from mlpnet.data import available_datasets, get_dataset, register_dataset, xor_examples
from mlpnet.data.registry import ExampleSet
from mlpnet.data.utils import one_hot, shuffled_split
from mlpnet.errors import ConfigurationError, InvalidOperationError


def test_builtin_datasets_registered():
    assert {"xor", "digits", "csv_classification"} <= set(available_datasets())


def test_xor_examples():
    examples = xor_examples()
    assert len(examples) == 4
    table = {tuple(e.inputs): float(e.outputs[0]) for e in examples}
    assert table == {(0.0, 0.0): 0.0, (0.0, 1.0): 1.0, (1.0, 0.0): 1.0, (1.0, 1.0): 0.0}


def test_xor_dataset_reports_progress():
    seen = []
    dataset = get_dataset("xor", progress=seen.append)
    assert dataset.d_in == 2 and dataset.d_out == 1
    assert dataset.test == dataset.train
    assert seen == [1.0]


def test_digits_dataset_split_and_scaling():
    seen = []
    dataset = get_dataset("digits", max_items=200, test_split=0.25, seed=3, progress=seen.append)
    assert dataset.splits == {"train": 150, "test": 50}
    assert dataset.d_in == 64 and dataset.d_out == 10
    assert dataset.task_type == "multiclass" and dataset.num_classes == 10
    inputs = np.stack([e.inputs for e in dataset.train])
    assert inputs.min() >= 0.0 and inputs.max() <= 1.0
    assert all(e.outputs.sum() == 1.0 for e in dataset.train)
    assert seen[-1] == pytest.approx(1.0)
    assert all(b >= a for a, b in zip(seen, seen[1:]))


def test_digits_split_is_seeded():
    first = get_dataset("digits", max_items=100, seed=1)
    second = get_dataset("digits", max_items=100, seed=1)
    np.testing.assert_array_equal(first.train[0].inputs, second.train[0].inputs)


def test_csv_fixture_multiclass():
    dataset = get_dataset("csv_classification", test_split=0.2, seed=0)
    assert dataset.task_type == "multiclass"
    assert dataset.num_classes == 3
    assert dataset.d_in == 2 and dataset.d_out == 3
    assert dataset.splits == {"train": 24, "test": 6}
    assert dataset.provenance["classes"] == ["setosa", "versicolor", "virginica"]


def test_csv_binary_uses_single_output(tmp_path):
    path = tmp_path / "binary.csv"
    rows = ["a,b,target"] + [f"{i},{i % 3},{'yes' if i % 2 else 'no'}" for i in range(10)]
    path.write_text("\n".join(rows) + "\n")
    dataset = get_dataset("csv_classification", csv_path=str(path), target_col="target", test_split=0.2)
    assert dataset.task_type == "binary"
    assert dataset.d_out == 1
    assert {float(e.outputs[0]) for e in dataset.train} <= {0.0, 1.0}


def test_csv_missing_target_column():
    with pytest.raises(ConfigurationError):
        get_dataset("csv_classification", target_col="species")


def test_unknown_dataset_and_options():
    with pytest.raises(ConfigurationError):
        get_dataset("mnist")
    with pytest.raises(ConfigurationError):
        get_dataset("xor", window=3)


def test_registered_dataset_is_validated():
    from mlpnet.core.types import TrainingExample

    @register_dataset("ragged_fixture")
    def _ragged(*, progress=None):
        train = (TrainingExample([1.0], [0.0]), TrainingExample([1.0, 2.0], [0.0]))
        return ExampleSet(name="ragged_fixture", train=train, test=(), task_type="binary", num_classes=2)

    with pytest.raises(InvalidOperationError):
        get_dataset("ragged_fixture")


def test_split_helpers():
    splits = shuffled_split(10, test_split=0.3, seed=0)
    assert splits.sizes == {"train": 7, "test": 3}
    assert sorted(np.concatenate([splits.train, splits.test]).tolist()) == list(range(10))
    with pytest.raises(ConfigurationError):
        shuffled_split(10, test_split=1.0)
    np.testing.assert_array_equal(one_hot(np.array([0, 2]), 3), [[1, 0, 0], [0, 0, 1]])


def test_loader_type_errors_are_not_reported_as_bad_options():
    @register_dataset("broken_loader_fixture")
    def _broken(*, scale=1.0, progress=None):
        return len(scale)

    with pytest.raises(TypeError):
        get_dataset("broken_loader_fixture", scale=2.0)
    with pytest.raises(ConfigurationError):
        get_dataset("broken_loader_fixture", shift=2.0)
