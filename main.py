"""I keep this as the CLI entry point for the caravan settlement simulation so I can launch a
seeded world, run it for a number of ticks, and capture the chronicle, config and data series."""

from __future__ import annotations

import argparse
import json
import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from statistics import mean
from typing import Optional
import contextlib
import sys

from src.model.game_config import ConfigError, GameConfig, load_config, resolve_config, save_config
from src.model.world_model import SettlementModel

_RUN_DIR: Path | None = None
_RUN_KEY: tuple[int | None, int | None] = (None, None)


@dataclass
class RunConfig:
    """I centralise the run knobs (ticks, seed, config file, verbosity) so every demo is comparable."""

    steps: int = 500
    seed: int = 42
    config_path: Optional[Path] = None
    silent: bool = False
    export_data: bool = True

    def chronicle_path(self) -> Path:
        """I standardise the log file name so I can find a run's chronicle again."""
        return _choose_run_artifact_path("chronicle", self.seed, self.steps, ".json")


def _resolve_game_config(run: RunConfig) -> GameConfig:
    if run.config_path is None:
        return resolve_config()
    return load_config(run.config_path)


def run_demo(
    steps: int = 500,
    seed: int = 42,
    save_log: bool = True,
    silent: bool = False,
    config: Optional[RunConfig] = None,
) -> SettlementModel:
    """I drive the demo loop: build ``SettlementModel``, advance the ticks, and persist artifacts.

    :param steps: I control how many simulation ticks to run.
    :param seed: I pass this seed into the model for deterministic runs.
    :param save_log: I set this to False if I do not want to write anything to disk.
    :param silent: I silence the per-resource-tick console recap.
    :param config: I pass a ``RunConfig`` when I want to manage all knobs from one object.
    """
    if config is None:
        config = RunConfig(steps=steps, seed=seed, silent=silent)

    game_config = _resolve_game_config(config)
    model = SettlementModel(random_seed=config.seed, config=game_config, silent=config.silent)
    if save_log:
        # I snapshot the configuration so I can replay the exact knobs later.
        model.save_config_summary(str(_choose_run_artifact_path("config_summary", config.seed, config.steps, ".txt")))
        save_config(game_config, _choose_run_artifact_path("config", config.seed, config.steps, ".json"))

    for _ in range(config.steps):
        model.step()
        if model.all_settlements_dead():
            print(f"All settlements have died out by tick {model.world.tick}. Ending simulation early.")
            break

    if save_log:
        out_path = config.chronicle_path()
        model.save_chronicle(out_path)
        print(f"Saved chronicle to {out_path.resolve()}")
        if config.export_data:
            export_data(model, config)
        summarize_chronicle(out_path)
    return model


def export_data(model: SettlementModel, run: RunConfig) -> None:
    """I dump the DataCollector series as CSV for plotting outside the dashboard."""
    model_df = model.datacollector.get_model_vars_dataframe()
    agent_df = model.datacollector.get_agent_vars_dataframe()
    model_path = _choose_run_artifact_path("model_series", run.seed, run.steps, ".csv")
    agent_path = _choose_run_artifact_path("faction_series", run.seed, run.steps, ".csv")
    model_df.to_csv(model_path, index=False)
    agent_df.to_csv(agent_path)
    print(f"Saved data series to {model_path.parent.resolve()}")


def summarize_chronicle(path: Path) -> None:
    """I load the chronicle JSON and print quick stats so I can sanity-check the run."""
    if not path.exists():
        print(f"No chronicle found at {path}")
        return

    data = json.loads(path.read_text(encoding="utf-8"))
    if not data:
        print("Chronicle is empty.")
        return

    kinds = Counter(entry.get("event_type", "unknown") for entry in data)
    trade_amounts = [entry.get("amount", 0.0) for entry in data if entry.get("event_type") == "trade"]
    resources = Counter(entry.get("resource") for entry in data if entry.get("event_type") == "trade")
    last_tick = max(entry.get("tick", 0) for entry in data)

    print("Chronicle summary:")
    print(f"  Events logged: {len(data)} (last at tick {last_tick})")
    print(f"  Event counts: {dict(kinds)}")
    if trade_amounts:
        print(
            f"  Trades -> count {len(trade_amounts)}, mean {mean(trade_amounts):.1f}, "
            f"max {max(trade_amounts):.1f}, by resource {dict(resources)}"
        )
    else:
        print("  Trades -> none")


class Tee:
    """Simple tee to duplicate stdout/stderr to a file."""

    def __init__(self, *streams):
        self.streams = streams

    def write(self, data: str) -> int:
        for stream in self.streams:
            stream.write(data)
        return len(data)

    def flush(self) -> None:
        for stream in self.streams:
            stream.flush()


def _choose_run_artifact_path(prefix: str, seed: int, steps: int, ext: str) -> Path:
    """I save run artifacts under a dated logs/ subfolder so the newest run is obvious."""
    global _RUN_DIR, _RUN_KEY
    logs_dir = Path("logs")
    logs_dir.mkdir(parents=True, exist_ok=True)
    if _RUN_DIR is None or _RUN_KEY != (seed, steps):
        stamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
        candidate = logs_dir / f"run_{stamp}_seed{seed}_steps{steps}"
        suffix = 1
        while candidate.exists():
            suffix += 1
            candidate = logs_dir / f"run_{stamp}_seed{seed}_steps{steps}_v{suffix}"
        candidate.mkdir(parents=True, exist_ok=True)
        _RUN_DIR = candidate
        _RUN_KEY = (seed, steps)
        print(f"[info] Logging run artifacts under {_RUN_DIR}")
    base = _RUN_DIR / f"{prefix}_seed{seed}_steps{steps}{ext}"
    if not base.exists():
        return base
    idx = 1
    while True:
        candidate = _RUN_DIR / f"{prefix}_seed{seed}_steps{steps}_run{idx}{ext}"
        if not candidate.exists():
            return candidate
        idx += 1


def _parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the caravan settlement simulation.")
    parser.add_argument("--steps", type=int, default=500, help="ticks to simulate")
    parser.add_argument("--seed", type=int, default=42, help="random seed")
    parser.add_argument("--config", type=Path, default=None, help="JSON config overrides")
    parser.add_argument("--quiet", action="store_true", help="skip the per-tick console recap")
    parser.add_argument("--log-level", default="WARNING", help="stdlib logging level")
    return parser.parse_args(argv)


if __name__ == "__main__":
    args = _parse_args()
    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")
    if args.steps <= 0:
        print("Steps must be positive, defaulting to 500.")
        args.steps = 500
    run = RunConfig(steps=args.steps, seed=args.seed, config_path=args.config, silent=args.quiet)

    log_path = _choose_run_artifact_path("output_log", run.seed, run.steps, ".txt")
    print(f"Saving console output to {log_path}")
    with log_path.open("w", encoding="utf-8") as log_file:
        tee = Tee(sys.stdout, log_file)
        with contextlib.redirect_stdout(tee), contextlib.redirect_stderr(tee):
            try:
                run_demo(config=run)
            except ConfigError as exc:
                print(f"Invalid configuration: {exc}")
                sys.exit(2)
