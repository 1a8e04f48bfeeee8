"""Command line entry point for mlpnet training runs."""

from __future__ import annotations

import argparse
import json
import logging
import os
from pathlib import Path
from typing import Iterable

from mlpnet.data import available_datasets
from mlpnet.training import pipelines

LOG_LEVEL_ENV = "MLPNET_LOG_LEVEL"


def _format_result(result) -> str:
    payload = {
        "stop": result.stop,
        "iterations": result.iterations,
        "final_cost": result.final_cost,
        "progress": result.progress_path,
        "manifest": result.manifest_path,
        "network": result.network_path,
    }
    if getattr(result, "summary_path", ""):
        payload["summary"] = result.summary_path
    return json.dumps(payload, sort_keys=True)


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    preset_names = sorted(pipelines.presets().keys())
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--preset",
        choices=preset_names,
        default="xor-sigmoid",
        help="Preset configuration to execute",
    )
    parser.add_argument(
        "--config", type=Path, help="Optional JSON/YAML config override"
    )
    parser.add_argument(
        "--dataset",
        choices=sorted(available_datasets()),
        help="Override the dataset used by the run",
    )
    parser.add_argument("--csv-path", help="Path to a CSV file for csv_classification")
    parser.add_argument("--target-col", help="Target column name for CSV datasets")
    parser.add_argument(
        "--seed",
        type=int,
        help="Seed used for dataset splits and weight initialisation",
    )
    parser.add_argument(
        "--max-iterations", type=int, help="Override the iteration cap"
    )
    parser.add_argument(
        "--workers", type=int, help="Worker threads for the gradient fan-out"
    )
    parser.add_argument(
        "--enable-plots", action="store_true", help="Write a cost curve to the run directory"
    )
    parser.add_argument(
        "--list-presets", action="store_true", help="List available presets and exit"
    )
    parser.add_argument(
        "--dump-config", type=Path, help="Dump the resolved config to a JSON file"
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get(LOG_LEVEL_ENV, "WARNING"),
        help=f"Logging level (defaults to ${LOG_LEVEL_ENV} or WARNING)",
    )
    return parser.parse_args(argv)


def _load_override(path: Path) -> dict:
    text = path.read_text()
    if path.suffix in {".yml", ".yaml"}:
        try:
            import yaml  # type: ignore
        except Exception as exc:  # pragma: no cover - optional dependency
            raise RuntimeError("PyYAML is required to load YAML configs") from exc
        return yaml.safe_load(text) or {}
    return json.loads(text)


def _merge(base: dict, override: dict) -> dict:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key] = _merge(dict(base[key]), value)
        else:
            base[key] = value
    return base


def _configure_logging(level: str) -> None:
    numeric = logging.getLevelName(str(level).upper())
    if not isinstance(numeric, int):
        raise SystemExit(f"Unknown log level: {level}")
    logging.basicConfig(
        level=numeric,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main(argv: Iterable[str] | None = None) -> None:
    args = parse_args(argv)
    _configure_logging(args.log_level)

    if args.list_presets:
        for name in sorted(pipelines.presets().keys()):
            print(name)
        raise SystemExit(0)

    config = json.loads(json.dumps(pipelines.load_preset(args.preset)))
    if args.config:
        override = _load_override(args.config)
        if {"data", "model", "train"}.issubset(override):
            config = json.loads(json.dumps(override))
        else:
            config = _merge(config, override)

    train_cfg = config.setdefault("train", {})
    if args.enable_plots:
        train_cfg["enable_plots"] = True
    if args.max_iterations is not None:
        train_cfg["max_iterations"] = int(args.max_iterations)
        if int(train_cfg.get("min_iterations", 1)) > args.max_iterations:
            train_cfg["min_iterations"] = int(args.max_iterations)
    if args.workers is not None:
        train_cfg["workers"] = int(args.workers)

    if args.dataset:
        data_cfg = {"name": args.dataset, "options": {}}
        opts = data_cfg["options"]
        if args.seed is not None and args.dataset != "xor":
            opts["seed"] = int(args.seed)
        if args.dataset == "csv_classification":
            if args.csv_path:
                opts["csv_path"] = args.csv_path
            if args.target_col:
                opts["target_col"] = args.target_col
        config["data"] = data_cfg

    if args.seed is not None:
        config.setdefault("model", {})["seed"] = int(args.seed)

    if args.dump_config:
        args.dump_config.parent.mkdir(parents=True, exist_ok=True)
        args.dump_config.write_text(json.dumps(config, indent=2))

    result = pipelines.run_pipeline(config)
    print(_format_result(result))


if __name__ == "__main__":
    main()
