"""
Repeated runs and separation parameter sweeps.

A sweep scales the separation mean table by `1 - factor*i` and the standard deviation
table by `1 - factor*j` for every (i, j) level pair, runs `reps` replications per level
and summarizes each level by mean, standard deviation and confidence interval.
"""
import argparse
import csv
import dataclasses
import logging
from pathlib import Path
from typing import Optional, Sequence

import numpy as np
import pandas as pd

from runway_arrivals.airport_arrival import SimulationEngine
from runway_arrivals.confidence_interval import ConfidenceInterval
from runway_arrivals.event_log import EventLog
from runway_arrivals.scenarios_config import PROFILES, SimulationConfig, get_profile, print_profile_summary
from runway_arrivals.separation import SeparationModel

SUMMARY_KPIS = ["final_time", "done", "n_a", "n_lq", "n_c", "n_lz", "n_tp", "n_d", "t_over4",
                "circling_ratio", "throughput_per_hour"]


def scale_levels(level_count: int, factor: float) -> list[float]:
    """Scaling factors 1, 1 - factor, 1 - 2*factor, ... rounded to two decimals."""
    if level_count < 1:
        raise ValueError("level_count must be at least 1")
    levels = [round(1 - factor * i, 2) for i in range(level_count)]
    if min(levels) < 0:
        raise ValueError(f"{level_count} levels with factor {factor} reach a negative scale")
    return levels


def run_filename(name: str, rep: int, level: Optional[tuple[int, int]] = None) -> str:
    if level is None:
        return f"{name}_{rep:02d}.csv"
    i, j = level
    return f"{name}_{rep:02d}_{i:02d}_{j:02d}.csv"


# --------------------------------------------------
# REPEATED RUNS
# --------------------------------------------------
def run_repetitions(config: SimulationConfig, reps: int, base_seed: int = 0, output_dir: Optional[Path] = None,
                    name: str = "simulation", level: Optional[tuple[int, int]] = None,
                    separation: Optional[SeparationModel] = None, verbose: bool = True) -> list[dict]:
    """
    Run independent replications of one configuration.

    Args:
        config: Run configuration; its seed is replaced by base_seed + n for replication n
        reps: Number of replications
        base_seed: Seed of the first replication
        output_dir: Directory for per-run event logs (None writes nothing)
        name: Prefix of the per-run log file names
        level: (i, j) sweep level indices, used in the log file names
        separation: Shared separation model; the config must then carry no table overrides
        verbose: Whether to print one progress line per run

    Returns:
        One KPI dictionary per replication
    """
    if reps < 1:
        raise ValueError("reps must be at least 1")

    rows = []
    for n in range(reps):
        seed = base_seed + n
        run_config = dataclasses.replace(config, seed=seed)
        if verbose:
            print(f"Run {n+1}/{reps} (seed={seed}, mean x{config.mean_scale}, sd x{config.sd_scale})...", end=" ")

        log = EventLog()
        engine = SimulationEngine(run_config, sink=log, separation=separation)
        result = engine.event_loop()

        log_file = None
        if output_dir is not None:
            log_file = Path(output_dir) / run_filename(name, n, level)
            log.to_csv(log_file)

        row = {"mean_scale": config.mean_scale, "sd_scale": config.sd_scale, "rep": n, "seed": seed}
        row.update(result.kpis())
        row["completed"] = result.completed
        row["log_file"] = str(log_file) if log_file is not None else None
        rows.append(row)

        if verbose:
            print(f"T={result.final_time} Nc={result.counters['n_c']} T_over4={result.t_over4}")
    return rows


def run_parameter_sweep(config: SimulationConfig, level_count: int = 20, factor: float = 0.05, reps: int = 1,
                        base_seed: int = 0, output_dir: Optional[Path] = None, name: str = "simulation",
                        verbose: bool = True) -> pd.DataFrame:
    """Run the full mean-scale x sd-scale grid and return one row per run.

    Every level reuses the same seeds, so levels differ only by their separation scaling.
    """
    levels = scale_levels(level_count, factor)
    separation = SeparationModel(config.separation_mean, config.separation_sd)
    if output_dir is not None:
        Path(output_dir).mkdir(parents=True, exist_ok=True)

    if verbose:
        print(f"\n{'='*80}")
        print(f"SEPARATION SWEEP: {len(levels)}x{len(levels)} levels, {reps} run(s) per level")
        print(f"{'='*80}\n")

    rows = []
    for i, mean_scale in enumerate(levels):
        for j, sd_scale in enumerate(levels):
            level_config = dataclasses.replace(config, mean_scale=mean_scale, sd_scale=sd_scale,
                                               separation_mean=None, separation_sd=None)
            rows += run_repetitions(level_config, reps, base_seed, output_dir, name, level=(i, j),
                                    separation=separation, verbose=verbose)
    return pd.DataFrame(rows)


# --------------------------------------------------
# SUMMARY
# --------------------------------------------------
def summarize_sweep(runs: pd.DataFrame, kpis: Sequence[str] = SUMMARY_KPIS,
                    confidence_level: float = 0.95) -> pd.DataFrame:
    """Mean, standard deviation and confidence interval of each KPI per (mean_scale, sd_scale) level."""
    summary_rows = []
    for (mean_scale, sd_scale), group in runs.groupby(["mean_scale", "sd_scale"], sort=False):
        row = {"mean_scale": mean_scale, "sd_scale": sd_scale, "runs": len(group)}
        for kpi in kpis:
            values = group[kpi].to_numpy(dtype=float)
            interval = ConfidenceInterval.from_samples(values, confidence_level=confidence_level)
            bounds = interval.compute_interval()
            row[f"{kpi}_mean"] = interval.average
            row[f"{kpi}_std"] = interval.std_dev if len(values) > 1 else np.nan
            row[f"{kpi}_ci_low"] = bounds[1][0] if bounds else np.nan
            row[f"{kpi}_ci_high"] = bounds[1][1] if bounds else np.nan
        summary_rows.append(row)
    return pd.DataFrame(summary_rows)


def write_summary(summary: pd.DataFrame, path) -> None:
    summary.to_csv(path, index=False, quoting=csv.QUOTE_ALL)


# --------------------------------------------------
# COMMAND LINE
# --------------------------------------------------
def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Single-runway arrival simulation")
    parser.add_argument("--mode", type=str, default="single", choices=["profiles", "single", "repeat", "sweep"],
                        help="profiles (show timing profiles), single (one run), repeat (replications of one level), "
                             "sweep (mean x sd separation grid)")
    parser.add_argument("--arrivals", type=int, default=30, help="Number of arriving aircraft per run")
    parser.add_argument("--profile", type=str, default="standard", choices=sorted(PROFILES),
                        help="Timing profile")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (first replication)")
    parser.add_argument("--duration", type=int, default=None, help="Stop each run at this simulation time (s)")
    parser.add_argument("--reps", type=int, default=10, help="Replications per level")
    parser.add_argument("--levels", type=int, default=20, help="Scaling levels per table in sweep mode")
    parser.add_argument("--factor", type=float, default=0.05, help="Scaling step between sweep levels")
    parser.add_argument("--mean-scale", type=float, default=1.0, help="Separation mean scale (single/repeat)")
    parser.add_argument("--sd-scale", type=float, default=1.0, help="Separation sd scale (single/repeat)")
    parser.add_argument("--output-dir", type=Path, default=None, help="Directory for event logs and the summary")
    parser.add_argument("--name", type=str, default="simulation", help="Prefix of output file names")
    parser.add_argument("--log-level", type=str, default="WARNING", help="Logging level of the simulation core")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")

    if args.mode == "profiles":
        print_profile_summary()
        return 0

    config = SimulationConfig(arrival_count=args.arrivals, seed=args.seed, duration=args.duration,
                              profile=get_profile(args.profile), mean_scale=args.mean_scale,
                              sd_scale=args.sd_scale)
    if args.output_dir is not None:
        args.output_dir.mkdir(parents=True, exist_ok=True)

    if args.mode == "single":
        log = EventLog()
        engine = SimulationEngine(config, sink=log)
        engine.event_loop()
        engine.print_statistics(verbose=True)
        if args.output_dir is not None:
            path = args.output_dir / f"{args.name}.csv"
            log.to_csv(path)
            print(f"Event log saved to: {path}")
        return 0

    if args.mode == "repeat":
        runs = pd.DataFrame(run_repetitions(config, args.reps, args.seed, args.output_dir, args.name))
    else:
        runs = run_parameter_sweep(config, args.levels, args.factor, args.reps, args.seed,
                                   args.output_dir, args.name)

    summary = summarize_sweep(runs)
    print(f"\n{'='*80}")
    print(f"SUMMARY ACROSS {len(runs)} RUNS")
    print(f"{'='*80}")
    columns = ["mean_scale", "sd_scale", "runs", "final_time_mean", "n_c_mean", "t_over4_mean",
               "throughput_per_hour_mean"]
    print(summary[columns].to_string(index=False))

    if args.output_dir is not None:
        path = args.output_dir / "summary.csv"
        write_summary(summary, path)
        print(f"\nSummary saved to: {path}")
    return 0
