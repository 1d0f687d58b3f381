"""CLI main module with subcommands for run, inspect, and evaluate.

Usage:
    python -m smlm_sim.cli run --config loop.yaml --out out_dir
    python -m smlm_sim.cli inspect --config loop.yaml
    python -m smlm_sim.cli evaluate --stack stack.tif --out report.csv
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from ..analysis.analyzers import SpotCounterAnalyzer
from ..core.config import SimulationConfig, load_config, save_config
from ..core.errors import ConfigError, ShapeError
from ..core.logging import setup_logging
from ..simulator.context import SimulationContext
from ..simulator.evaluation import evaluate_tiff
from ..simulator.factory import build_camera, build_simulator


def _load(path: Path | None) -> SimulationConfig:
    return load_config(path) if path is not None else SimulationConfig()


def cmd_run(args: argparse.Namespace) -> int:
    """Run a closed-loop simulation and write report, stack and normalized config."""
    try:
        cfg = _load(args.config)
        if args.frames is not None:
            cfg.run.frames = args.frames

        out_path = Path(args.out)
        out_path.mkdir(parents=True, exist_ok=True)
        log_path = out_path / cfg.run.log_name if cfg.run.log_name else None
        setup_logging(log_path, logging.DEBUG if args.verbose else logging.INFO)
        save_config(cfg, out_path / "config.normalized.yaml")

        context = SimulationContext()
        simulator = build_simulator(cfg, context)
        simulator.execute(
            cfg.run.frames,
            csv_save_path=out_path / cfg.run.csv_name,
            tiff_save_path=out_path / cfg.run.tiff_name if cfg.run.tiff_name else None,
        )
        print("Wrote", out_path / cfg.run.csv_name)
        return 0
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2
    except ShapeError as e:
        print(f"Run aborted after {len(e.history)} frames: {e}", file=sys.stderr)
        return 1
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_inspect(args: argparse.Namespace) -> int:
    """Print PSF and noise constants for a config."""
    try:
        cfg = _load(args.config)
        camera = build_camera(cfg.camera)
    except (ConfigError, FileNotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    print("Camera Summary:")
    print("-" * 40)
    print(f"  Resolution:        {camera.res_x} x {camera.res_y}")
    print(f"  Object pixel:      {camera.object_space_pixel_size:.4f} um")
    print(f"  FWHM (object):     {camera.fwhm:.3f} samples")
    print(f"  FWHM (pixels):     {camera.fwhm_digital:.3f} px")
    print(f"  PSF kernel:        {camera.psf_digital.shape[0]} x {camera.psf_digital.shape[1]}")
    print(f"  Thermal e-/frame:  {camera.thermal_noise:.4g}")
    print(f"  Quantum gain:      {camera.quantum_gain:.4g}")
    print()
    print("Loop:")
    print("-" * 40)
    print(f"  Source:            {cfg.source.kind}")
    print(f"  Controller:        {cfg.controller.kind} -> setpoint {cfg.controller.setpoint}")
    print(f"  Frames:            {cfg.run.frames}")
    print(f"  Refresh period:    {cfg.run.refresh_period}")
    return 0


def cmd_evaluate(args: argparse.Namespace) -> int:
    """Run the spot counter over a recorded stack."""
    setup_logging(None, logging.DEBUG if args.verbose else logging.INFO)
    try:
        analyzer = SpotCounterAnalyzer(args.noise_tolerance, args.box_size)
        out = evaluate_tiff(args.stack, [analyzer], args.out)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print("Wrote", out)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="smlm_sim.cli",
        description="Closed-loop SMLM acquisition simulator",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(
        dest="command",
        help="Available commands",
        required=True,
    )

    parser_run = subparsers.add_parser("run", help="Run a closed-loop simulation")
    parser_run.add_argument(
        "--config",
        "-c",
        type=Path,
        required=False,
        help="Path to YAML/JSON config file (defaults if omitted)",
    )
    parser_run.add_argument(
        "--out",
        "-o",
        type=Path,
        default=Path("output"),
        help="Output directory (default: output)",
    )
    parser_run.add_argument("--frames", "-n", type=int, help="Override the frame budget")
    parser_run.set_defaults(func=cmd_run)

    parser_inspect = subparsers.add_parser(
        "inspect",
        help="Print PSF and sensor constants for a config",
    )
    parser_inspect.add_argument(
        "--config",
        "-c",
        type=Path,
        required=False,
        help="Path to YAML/JSON config file (defaults if omitted)",
    )
    parser_inspect.set_defaults(func=cmd_inspect)

    parser_eval = subparsers.add_parser(
        "evaluate",
        help="Run the spot counter over a TIFF stack and write a CSV",
    )
    parser_eval.add_argument("--stack", "-s", type=Path, required=True, help="Input TIFF stack")
    parser_eval.add_argument(
        "--out", "-o", type=Path, default=Path("evaluation.csv"), help="Output CSV"
    )
    parser_eval.add_argument("--noise-tolerance", type=float, default=100.0)
    parser_eval.add_argument("--box-size", type=int, default=5)
    parser_eval.set_defaults(func=cmd_evaluate)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    return int(args.func(args) or 0)


if __name__ == "__main__":
    sys.exit(main())
