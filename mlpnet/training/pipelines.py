"""Pipeline assembly: dataset, network, momentum descent and run artifacts."""

from __future__ import annotations

import json
import logging
import time
from copy import deepcopy
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Sequence

from ..core.architecture import save_architecture
from ..core.layers import LayerConfiguration
from ..core.network import Network, NetworkFactory
from ..core.transfer import get_transfer
from ..data import get_dataset
from ..data.registry import ExampleSet
from ..errors import ConfigurationError
from ..reporting.artifacts import RunSummary, write_manifest, write_summary
from ..reporting.plots import PlotAdapter
from ..reporting.progress import CsvSink, JsonlSink, ProgressFanout
from .costs import REGISTRY as COST_REGISTRY
from .gradient import GradientEngine
from .metrics import default_metrics, evaluate_examples
from .optimizer import CancellationSignal, DescentConfig, MomentumDescent

logger = logging.getLogger(__name__)

_PRESETS: Dict[str, Mapping[str, object]] = {
    "xor-step": {
        "data": {"name": "xor", "options": {}},
        "model": {
            "hidden": [2],
            "hidden_transfer": "sigmoid",
            "output_transfer": "step",
            "seed": 0,
        },
        "train": {
            "cost": "sse",
            "learning_rate": 0.5,
            "momentum": 0.8,
            "regularization": 0.0,
            "min_iterations": 1000,
            "max_iterations": 2000,
            "run_dir": "runs/xor-step",
            "enable_plots": False,
        },
    },
    "xor-sigmoid": {
        "data": {"name": "xor", "options": {}},
        "model": {
            "hidden": [2],
            "hidden_transfer": "sigmoid",
            "output_transfer": "sigmoid",
            "seed": 0,
        },
        "train": {
            "cost": "sse",
            "learning_rate": 0.5,
            "momentum": 0.8,
            "regularization": 0.0,
            "min_iterations": 1000,
            "max_iterations": 2000,
            "run_dir": "runs/xor-sigmoid",
            "enable_plots": False,
        },
    },
    "digits-sigmoid": {
        "data": {"name": "digits", "options": {"test_split": 0.2, "seed": 0}},
        "model": {
            "hidden": [25],
            "hidden_transfer": "sigmoid",
            "output_transfer": "sigmoid",
            "seed": 0,
        },
        "train": {
            "cost": "sse",
            "learning_rate": 0.5,
            "momentum": 0.9,
            "regularization": 0.1,
            "min_iterations": 100,
            "max_iterations": 400,
            "run_dir": "runs/digits-sigmoid",
            "enable_plots": False,
        },
    },
}

_PRESET_DIR = Path(__file__).resolve().parents[2] / "configs" / "presets"
_FILE_PRESETS_CACHE: Dict[str, Mapping[str, object]] | None = None

_DESCENT_KEYS = {
    "learning_rate",
    "momentum",
    "regularization",
    "min_iterations",
    "max_iterations",
    "epsilon",
}


@dataclass(frozen=True)
class RunResult:
    """Summary returned by :func:`run_pipeline`.

    ``final_cost`` is the cost of the last evaluated iteration (the converged
    cost on an epsilon stop) and ``iterations`` counts committed updates.
    """

    stop: str
    iterations: int
    final_cost: float
    metrics: Mapping[str, Mapping[str, float]] = field(default_factory=dict)
    progress_path: str = ""
    manifest_path: str = ""
    summary_path: str = ""
    network_path: str = ""


def _read_preset_file(path: Path) -> Mapping[str, object]:
    text = path.read_text()
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        try:
            import yaml  # type: ignore
        except Exception as exc:  # pragma: no cover - optional dependency
            raise RuntimeError("PyYAML is required to load YAML presets") from exc
        data = yaml.safe_load(text) or {}
    elif suffix == ".json":
        data = json.loads(text or "{}")
    else:
        raise ConfigurationError(f"Unsupported preset file type: {path.suffix}")

    if not isinstance(data, Mapping):
        raise ConfigurationError(f"Preset {path.name} must decode to a mapping")
    return data


def _file_presets() -> Dict[str, Mapping[str, object]]:
    global _FILE_PRESETS_CACHE
    if _FILE_PRESETS_CACHE is None:
        presets: Dict[str, Mapping[str, object]] = {}
        if _PRESET_DIR.exists():
            for file in sorted(_PRESET_DIR.iterdir()):
                if file.suffix.lower() not in {".yaml", ".yml", ".json"}:
                    continue
                data = _read_preset_file(file)
                missing = {"data", "model", "train"} - set(data)
                if missing:
                    raise ConfigurationError(
                        f"Preset {file.name} is missing required sections: {', '.join(sorted(missing))}"
                    )
                presets[file.stem] = json.loads(json.dumps(data))
        _FILE_PRESETS_CACHE = presets
    return {name: deepcopy(cfg) for name, cfg in _FILE_PRESETS_CACHE.items()}


def presets() -> Mapping[str, Mapping[str, object]]:
    combined: Dict[str, Mapping[str, object]] = {}
    combined.update({name: deepcopy(cfg) for name, cfg in _PRESETS.items()})
    combined.update(_file_presets())
    return combined


def load_preset(name: str) -> Mapping[str, object]:
    file_overrides = _file_presets()
    if name in file_overrides:
        return file_overrides[name]
    try:
        return deepcopy(_PRESETS[name])
    except KeyError as exc:
        raise ConfigurationError(f"Unknown preset: {name}") from exc


def build_network(model_cfg: Mapping[str, object], d_in: int, d_out: int) -> Network:
    """Create a freshly initialised network from a ``model`` config section."""

    hidden = [int(n) for n in model_cfg.get("hidden", [])]
    hidden_transfer = get_transfer(str(model_cfg.get("hidden_transfer", "sigmoid")))
    output_name = str(model_cfg.get("output_transfer", "sigmoid"))
    output_options = {}
    if output_name == "step" and "step_epsilon" in model_cfg:
        output_options["epsilon"] = float(model_cfg["step_epsilon"])
    output_transfer = get_transfer(output_name, **output_options)

    factory = NetworkFactory(seed=int(model_cfg.get("seed", 0)))
    return factory.create(
        LayerConfiguration.for_input(d_in),
        [LayerConfiguration.for_hidden(n, hidden_transfer) for n in hidden],
        LayerConfiguration.for_output(d_out, output_transfer),
    )


def build_trainer(train_cfg: Mapping[str, object]) -> MomentumDescent:
    """Create the gradient engine and optimizer from a ``train`` config section."""

    cost_name = str(train_cfg.get("cost", "sse"))
    cost_options = {}
    if cost_name == "logistic" and "logistic_epsilon" in train_cfg:
        cost_options["epsilon"] = float(train_cfg["logistic_epsilon"])
    cost = COST_REGISTRY.get(cost_name, **cost_options)

    engine_options = {}
    if "flat_spot_elimination" in train_cfg:
        engine_options["flat_spot_elimination"] = float(train_cfg["flat_spot_elimination"])
    if train_cfg.get("workers") is not None:
        engine_options["workers"] = int(train_cfg["workers"])
    engine = GradientEngine(cost, **engine_options)

    descent = DescentConfig.from_mapping({k: v for k, v in train_cfg.items() if k in _DESCENT_KEYS})
    return MomentumDescent(engine, descent)


def run_pipeline(
    config: Mapping[str, object],
    *,
    cancellation: CancellationSignal | None = None,
) -> RunResult:
    missing = {"data", "model", "train"} - set(config)
    if missing:
        raise ConfigurationError(f"Config is missing required sections: {', '.join(sorted(missing))}")
    data_cfg = dict(config["data"])
    model_cfg = dict(config["model"])
    train_cfg = dict(config["train"])

    dataset = get_dataset(
        str(data_cfg["name"]),
        progress=_loading_progress(str(data_cfg["name"])),
        **dict(data_cfg.get("options", {})),
    )
    network = build_network(model_cfg, dataset.d_in, dataset.d_out)
    trainer = build_trainer(train_cfg)

    run_dir = _resolve_run_dir(train_cfg, dataset.name)
    run_dir.mkdir(parents=True, exist_ok=True)
    seed = int(model_cfg.get("seed", 0))

    metric_names = _resolve_metrics(train_cfg.get("metrics", "default"), dataset.task_type)

    _print_startup_summary(
        dataset=dataset,
        dims=network.neuron_counts,
        cost=trainer.engine.cost.name,
        transfers=[layer.transfer.name for layer in network.trainable_layers],
        config=trainer.config,
        param_count=network.parameter_count(),
    )

    jsonl = JsonlSink(run_dir / "progress.jsonl", seed=seed, run=dataset.name)
    csv_sink = CsvSink(run_dir / "progress.csv")
    plots = PlotAdapter(run_dir, enable_plots=bool(train_cfg.get("enable_plots", False)))

    started = time.perf_counter()
    stop = trainer.train(
        network,
        dataset.train,
        progress=ProgressFanout([jsonl, csv_sink, plots]),
        cancellation=cancellation,
    )
    elapsed = time.perf_counter() - started
    plots.close()

    metrics = {
        "train": dict(evaluate_examples(network, dataset.train, metric_names, cost=trainer.engine.cost)),
        "test": dict(evaluate_examples(network, dataset.test, metric_names, cost=trainer.engine.cost)),
    }
    summary = RunSummary(
        stop=stop.value,
        iterations=trainer.completed_iterations,
        final_cost=trainer.last_cost,
        elapsed_seconds=elapsed,
        descent=asdict(trainer.config),
        metrics=metrics,
    )

    network_path = save_architecture(run_dir / "network.json", network, name=dataset.name)
    summary_path = write_summary(run_dir / "summary.json", summary)
    manifest = write_manifest(
        run_dir / "manifest.json",
        config=json.loads(json.dumps(config)),
        dataset_provenance=dataset.provenance,
        summary=summary,
    )
    logger.info(
        "Run finished with %s after %d iterations at cost %g; artifacts in %s",
        stop.value,
        summary.iterations,
        summary.final_cost,
        run_dir,
    )

    return RunResult(
        stop=summary.stop,
        iterations=summary.iterations,
        final_cost=summary.final_cost,
        metrics=metrics,
        progress_path=str(jsonl.path),
        manifest_path=manifest,
        summary_path=summary_path,
        network_path=network_path,
    )


def _resolve_run_dir(train_cfg: Mapping[str, object], dataset: str) -> Path:
    if "run_dir" in train_cfg:
        return Path(str(train_cfg["run_dir"]))
    timestamp = time.strftime("%Y%m%d-%H%M%S")
    return Path("runs") / timestamp / dataset


def _resolve_metrics(metrics_cfg: object, task_type: str) -> List[str]:
    if isinstance(metrics_cfg, str):
        if metrics_cfg in {"", "default"}:
            return default_metrics(task_type) + ["cost"]
        return [m.strip() for m in metrics_cfg.split(",") if m.strip()]
    return [str(m) for m in metrics_cfg]  # type: ignore[union-attr]


def _loading_progress(name: str):
    def report(fraction: float) -> None:
        if fraction >= 1.0:
            logger.debug("Loaded dataset %s", name)

    return report


def _print_startup_summary(
    *,
    dataset: ExampleSet,
    dims: Sequence[int],
    cost: str,
    transfers: Sequence[str],
    config: DescentConfig,
    param_count: int,
) -> None:
    print("=== mlpnet run ===")
    print(f"Dataset       : {dataset.name} ({len(dataset.train)} train / {len(dataset.test)} test)")
    print(f"Dimensions    : {list(dims)}")
    print(f"Transfers     : {list(transfers)}")
    print(f"Cost          : {cost}")
    print(f"Learning rate : {config.learning_rate}")
    print(f"Momentum      : {config.momentum}")
    print(f"Lambda        : {config.regularization}")
    print(f"Iterations    : {config.min_iterations}..{config.max_iterations}")
    print(f"Parameters    : {param_count}")
    print("==================")


__all__ = ["RunResult", "build_network", "build_trainer", "load_preset", "presets", "run_pipeline"]
