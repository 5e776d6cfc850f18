"""Command-line tool for running implicit wave simulations.

The wave-compute CLI tool builds a simulation from command-line options or a
JSON configuration file, runs it with progress tracking, and writes
snapshots every report interval.
"""

import json
import logging
import sys
import time
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler

from implicit_wave.config import SimulationConfig
from implicit_wave.core.linsolve import SOLVER_METHODS
from implicit_wave.core.source import WAVELETS
from implicit_wave.core.stepper import StepperState
from implicit_wave.errors import WaveSimulationError
from implicit_wave.io import HDF5SnapshotWriter, MatlabSnapshotWriter

from .progress import SimulationProgress, format_time, print_diagnostics, print_simulation_info

console = Console()


def _build_config(config_file: Path | None, overrides: dict) -> SimulationConfig:
    """Merge a JSON config file with explicitly given command-line options."""
    data = {}
    if config_file is not None:
        data = json.loads(config_file.read_text())
    data.update({key: value for key, value in overrides.items() if value is not None})
    return SimulationConfig.from_dict(data)


def _build_writer(fmt: str, output: Path | None, stepper):
    """Snapshot writer for the chosen format, or None."""
    if fmt == "matlab":
        return MatlabSnapshotWriter(directory=output or Path("."))
    if fmt == "hdf5":
        return HDF5SnapshotWriter(
            output or Path("results.h5"),
            stepper.topology,
            stepper.time_state,
            stepper.source_spec,
            stepper.material,
        )
    return None


@click.command()
@click.option(
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSON configuration file; other options override its values",
)
@click.option("--shape", type=(int, int, int), default=None, help="Grid nodes NX NY NZ")
@click.option("--extent", type=(float, float, float), default=None, help="Domain size in meters")
@click.option("--c11", type=float, help="Uniform stiffness (wave speed)")
@click.option("--rho", type=float, help="Uniform density")
@click.option("--tmax", type=float, help="Simulation end time in seconds")
@click.option("--source", "source_position", type=(int, int, int), default=None,
              help="Source grid index (default: grid centre)")
@click.option("--f0", type=float, help="Source dominant frequency in Hz")
@click.option("--factor", type=float, help="Source amplitude factor")
@click.option("--angle", type=float, help="Source force azimuth in degrees")
@click.option("--wavelet", type=click.Choice(list(WAVELETS)), help="Source time function")
@click.option("--solver", type=click.Choice(list(SOLVER_METHODS)), help="Linear solver")
@click.option("--rtol", type=float, help="Relative tolerance for iterative solvers")
@click.option("--interval", "report_interval", type=int,
              help="Report diagnostics and write snapshots every N steps")
@click.option("--parts", type=(int, int, int), default=None,
              help="Subdomain blocks along each axis")
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["matlab", "hdf5", "none"]),
    default="matlab",
    help="Snapshot format (default: matlab)",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(path_type=Path),
    help="Snapshot directory (matlab) or file (hdf5)",
)
@click.option("--verbose", "-v", is_flag=True, help="Verbose output with debug info")
@click.option("--dry-run", is_flag=True, help="Validate configuration without running")
@click.version_option(version="0.1.0", prog_name="wave-compute")
def main(config_file, fmt, output, verbose, dry_run, **overrides):
    """Run an implicit 3D acoustic wave simulation.

    Without options the reference run is executed: a 25³ grid over a
    1000 m cube, c11 = 1800, rho = 1000, a 70 Hz Ricker source at the grid
    centre, and tmax = 1 s. Snapshots are written every 40 steps.

    \b
    Examples:
        wave-compute --tmax 0.5 --format hdf5 -o run.h5
        wave-compute --config run.json --solver direct
    """
    sys.exit(run_simulation(config_file, fmt, output, verbose, dry_run, overrides))


def run_simulation(
    config_file: Path | None,
    fmt: str,
    output: Path | None,
    verbose: bool,
    dry_run: bool,
    overrides: dict,
) -> int:
    """Body of the wave-compute command; returns the process exit code."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )

    console.print("\n[bold]Implicit wave simulation[/bold]", style="blue")
    console.print("─" * 60)

    try:
        config = _build_config(config_file, overrides)
    except (WaveSimulationError, ValueError, OSError) as e:
        console.print(f"\n[bold red]Configuration Error:[/bold red] {e}")
        return 1

    stepper = config.build_stepper()
    print_simulation_info(console, stepper, None if fmt == "none" else output or ".")

    if dry_run:
        console.print("[yellow]Dry run - simulation not executed[/yellow]")
        return 0

    try:
        writer = _build_writer(fmt, output, stepper)
    except WaveSimulationError as e:
        console.print(f"\n[bold red]Output Error:[/bold red] {e}")
        return 1
    stepper.snapshot_writer = writer

    start_time = time.time()
    progress = SimulationProgress(console, stepper)
    try:
        stepper.run(callback=progress.update)
    except KeyboardInterrupt:
        progress.finish()
        console.print(
            f"\n[yellow]Interrupted by user after step {stepper.time_state.it}[/yellow]"
        )
        return 130  # Standard exit code for SIGINT
    except Exception as e:
        progress.finish()
        console.print(f"\n[bold red]Simulation Error:[/bold red] {e}")
        if verbose:
            console.print_exception()
        return 1
    finally:
        progress.finish()
        runtime = time.time() - start_time
        if isinstance(writer, HDF5SnapshotWriter):
            writer.finalize(
                stepper.diagnostics, runtime=runtime, state=stepper.state.value
            )

    print_diagnostics(console, stepper.diagnostics)

    console.print("─" * 60)
    if stepper.state is StepperState.COMPLETED:
        console.print("✓ [bold green]Simulation complete![/bold green]")
    console.print(f"  Steps: {stepper.time_state.it} of {stepper.time_state.nt}")
    console.print(f"  Runtime: {format_time(runtime)}")
    if writer is not None:
        console.print(f"  Snapshots written: {len(writer.written)}")
    if stepper.skipped_snapshots:
        console.print(
            f"  [yellow]Snapshots skipped at steps: {stepper.skipped_snapshots}[/yellow]"
        )
    return 0


if __name__ == "__main__":
    main()
