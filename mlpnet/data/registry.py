"""Dataset registry and example-set contracts."""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, MutableMapping, Tuple

from ..core.types import TrainingExample
from ..errors import ConfigurationError, InvalidOperationError

TASK_TYPES = ("regression", "binary", "multiclass")

ProgressCallback = Callable[[float], None]


@dataclass(frozen=True)
class ExampleSet:
    """Immutable training and test examples of a registered dataset.

    Attributes
    ----------
    name:
        Registry name of the dataset.
    train, test:
        Tuples of :class:`~mlpnet.core.types.TrainingExample`. Small toy sets
        may use the same examples for both.
    task_type:
        One of ``{"regression", "binary", "multiclass"}``.
    num_classes:
        Number of discrete classes for classification tasks.
    provenance:
        Free-form metadata describing where the examples came from, written to
        the run manifest.
    """

    name: str
    train: Tuple[TrainingExample, ...]
    test: Tuple[TrainingExample, ...]
    task_type: str
    num_classes: int | None = None
    provenance: Dict[str, Any] = field(default_factory=dict)

    @property
    def d_in(self) -> int:
        return int(self.train[0].inputs.shape[0])

    @property
    def d_out(self) -> int:
        return int(self.train[0].outputs.shape[0])

    @property
    def splits(self) -> Dict[str, int]:
        return {"train": len(self.train), "test": len(self.test)}


DatasetFactory = Callable[..., ExampleSet]


_REGISTRY: MutableMapping[str, DatasetFactory] = {}


def register_dataset(
    name: str | None = None,
    factory: DatasetFactory | None = None,
) -> Callable[[DatasetFactory], DatasetFactory] | DatasetFactory:
    """Register a dataset factory.

    ``register_dataset`` can be used both as a decorator::

        @register_dataset("xor")
        def make_xor(**kwargs):
            ...

    or directly::

        register_dataset("xor", make_xor)
    """

    def _decorator(func: DatasetFactory) -> DatasetFactory:
        _REGISTRY[str(name or func.__name__)] = func
        return func

    if factory is not None:
        return _decorator(factory)
    return _decorator


def get_dataset(
    dataset: str,
    /,
    *,
    progress: ProgressCallback | None = None,
    **options: Any,
) -> ExampleSet:
    """Return the :class:`ExampleSet` for ``dataset``."""

    if dataset not in _REGISTRY:
        available = ", ".join(available_datasets())
        raise ConfigurationError(f"Unknown dataset {dataset!r}. Available datasets: {available}")
    factory = _REGISTRY[dataset]
    try:
        inspect.signature(factory).bind(progress=progress, **options)
    except TypeError as exc:
        raise ConfigurationError(f"Invalid options for dataset {dataset!r}: {options}") from exc
    examples = factory(progress=progress, **options)
    _validate(examples)
    return examples


def available_datasets() -> Iterable[str]:
    """Return the sorted list of available dataset identifiers."""

    return sorted(_REGISTRY)


def _validate(examples: ExampleSet) -> None:
    if examples.task_type not in TASK_TYPES:
        raise ConfigurationError(f"Invalid task type: {examples.task_type}")
    if examples.task_type == "multiclass" and examples.num_classes is None:
        raise ConfigurationError("Multiclass datasets must define num_classes")
    if not examples.train:
        raise InvalidOperationError(f"Dataset {examples.name!r} has no training examples")
    d_in, d_out = examples.d_in, examples.d_out
    for example in (*examples.train, *examples.test):
        if example.inputs.shape[0] != d_in or example.outputs.shape[0] != d_out:
            raise InvalidOperationError(
                f"Dataset {examples.name!r} mixes example shapes "
                f"{d_in}->{d_out} and {example.inputs.shape[0]}->{example.outputs.shape[0]}"
            )


__all__ = [
    "ExampleSet",
    "ProgressCallback",
    "available_datasets",
    "get_dataset",
    "register_dataset",
]
