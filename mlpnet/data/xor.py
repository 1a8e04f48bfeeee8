"""The four-example XOR problem."""

from __future__ import annotations

from ..core.types import TrainingExample
from .registry import ExampleSet, ProgressCallback, register_dataset

XOR_TABLE = (
    ((0.0, 0.0), (0.0,)),
    ((0.0, 1.0), (1.0,)),
    ((1.0, 0.0), (1.0,)),
    ((1.0, 1.0), (0.0,)),
)


def xor_examples() -> tuple[TrainingExample, ...]:
    return tuple(TrainingExample(inputs, outputs) for inputs, outputs in XOR_TABLE)


@register_dataset("xor")
def load_xor(*, progress: ProgressCallback | None = None) -> ExampleSet:
    examples = xor_examples()
    if progress is not None:
        progress(1.0)
    # XOR has no held-out data; the truth table doubles as the test set
    return ExampleSet(
        name="xor",
        train=examples,
        test=examples,
        task_type="binary",
        num_classes=2,
        provenance={"type": "xor", "examples": len(examples)},
    )
