#!/usr/bin/env python3
"""
Command-line entrypoint for fluid-SPH simulations.

This script runs a complete box-of-liquid workflow:
1. Load parameters (defaults, config file, command-line overrides)
2. Fill a centred container with a particle lattice
3. Optionally inject a particle stream every frame
4. Advance N frames of several substeps each
5. Print per-frame and final statistics

Usage:
    python scripts/run_simulation.py
    python scripts/run_simulation.py --particles 2000 --frames 200
    python scripts/run_simulation.py --config configs/dam_break.yaml --inlet 0 1.5 0
    python scripts/run_simulation.py --help
"""

import argparse
import sys
from pathlib import Path

# Add src to path if running from repository root
src_path = Path(__file__).parent.parent / "src"
if src_path.exists():
    sys.path.insert(0, str(src_path))

from fluid_sph.core import SPHSolver, SimulationParameters
from fluid_sph.config import load_config
from fluid_sph.integration import Container


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Run a weakly-compressible SPH fluid simulation in a box",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    # Configuration
    parser.add_argument("--config", "-c", type=str, default=None,
                        help="YAML/JSON parameter file")
    parser.add_argument("--particles", "-n", type=int, default=None,
                        help="Particle capacity (overrides config)")
    parser.add_argument("--dt", type=float, default=None,
                        help="Timestep (overrides config)")
    parser.add_argument("--viscosity", type=float, default=None,
                        help="Viscosity coefficient (overrides config)")
    parser.add_argument("--temperature", action="store_true",
                        help="Enable thermal diffusion")

    # Container
    parser.add_argument("--box", type=float, nargs=3, default=[4.0, 4.0, 4.0],
                        metavar=("W", "H", "D"),
                        help="Container extents, centred on the origin")

    # Run length
    parser.add_argument("--frames", "-f", type=int, default=100,
                        help="Number of frames")
    parser.add_argument("--substeps", "-s", type=int, default=2,
                        help="Solver steps per frame")
    parser.add_argument("--report-every", type=int, default=10,
                        help="Print statistics every N frames")

    # Inlet stream
    parser.add_argument("--inlet", type=float, nargs=3, default=None,
                        metavar=("X", "Y", "Z"),
                        help="Inject a particle stream at this position every frame")
    parser.add_argument("--inlet-velocity", type=float, nargs=3, default=[0.0, -1.0, 0.0],
                        metavar=("VX", "VY", "VZ"),
                        help="Stream velocity")
    parser.add_argument("--inlet-rate", type=int, default=5,
                        help="Particles injected per frame")
    parser.add_argument("--inlet-temperature", type=float, default=298.15,
                        help="Temperature of injected particles")
    parser.add_argument("--cull", action="store_true",
                        help="Remove particles whose age exceeds their lifetime")

    # Misc
    parser.add_argument("--seed", type=int, default=None,
                        help="Random seed (overrides config)")
    parser.add_argument("--quiet", "-q", action="store_true",
                        help="Suppress per-frame output")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Enable solver log messages")

    return parser


def load_parameters(args: argparse.Namespace) -> SimulationParameters:
    """Merge the optional config file with command-line overrides."""
    overrides = {}
    if args.particles is not None:
        overrides['particle_count'] = args.particles
    if args.dt is not None:
        overrides['time_step'] = args.dt
    if args.viscosity is not None:
        overrides['viscosity'] = args.viscosity
    if args.seed is not None:
        overrides['random_seed'] = args.seed
    if args.temperature:
        overrides['enable_temperature'] = True
    if args.verbose:
        overrides['verbose'] = True

    if args.config is not None:
        return load_config(args.config, **overrides)
    return SimulationParameters(**overrides)


def format_statistics(stats: dict) -> str:
    return (
        f"t={stats['simulation_time']:7.3f}  frame={stats['frame_count']:6d}  "
        f"n={stats['particle_count']:6d}  "
        f"ρ̄={stats['average_density']:9.2f}  "
        f"P̄={stats['average_pressure']:10.2f}  "
        f"|v|̄={stats['average_speed']:6.3f}  "
        f"T̄={stats['average_temperature']:7.2f}"
    )


def main():
    """Main entrypoint."""
    args = build_parser().parse_args()

    try:
        params = load_parameters(args)
        container = Container.centered(*args.box)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if not args.quiet:
        print("=" * 70)
        print("fluid-SPH: weakly-compressible SPH fluid solver")
        print("=" * 70)
        print(f"  Capacity: {params.particle_count}")
        print(f"  Smoothing radius: {params.smoothing_radius}")
        print(f"  Timestep: {params.time_step} × {args.substeps} substeps")
        print(f"  Container: {container.min_corner} → {container.max_corner}")
        print()

    solver = SPHSolver(params, container)

    for frame in range(1, args.frames + 1):
        if args.inlet is not None:
            solver.add_particle_stream(args.inlet, args.inlet_velocity, count=args.inlet_rate,
                                       temperature=args.inlet_temperature)

        stats = solver.run(args.substeps)

        if args.cull:
            solver.remove_old_particles()

        if not args.quiet and frame % args.report_every == 0:
            print(format_statistics(stats))

    timings = solver.timings
    print("\n" + "=" * 70)
    print("Simulation complete!")
    print(format_statistics(solver.get_simulation_statistics()))
    print(
        f"Last step: {timings.timing_total * 1e3:.2f} ms "
        f"(grid {timings.timing_grid * 1e3:.2f}, "
        f"density {timings.timing_density * 1e3:.2f}, "
        f"forces {timings.timing_forces * 1e3:.2f}, "
        f"integration {timings.timing_integration * 1e3:.2f})"
    )
    print("=" * 70)

    return 0


if __name__ == "__main__":
    sys.exit(main())
