"""Progress display for implicit wave simulations.

Provides rich terminal UI for real-time simulation progress tracking including:
- Progress bar with percentage
- Elapsed time and ETA
- Throughput (unknowns solved per second)
- Memory usage
"""

import time
from collections.abc import Sequence
from typing import TYPE_CHECKING

import psutil
from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)
from rich.table import Table

if TYPE_CHECKING:
    from implicit_wave.core.stepper import StepDiagnostics, TimeStepper


def format_time(seconds: float) -> str:
    """Format time duration for display.

    Args:
        seconds: Duration in seconds

    Returns:
        Formatted string like "1m 23s" or "2h 15m"
    """
    if seconds < 60:
        return f"{seconds:.0f}s"
    elif seconds < 3600:
        minutes = int(seconds // 60)
        secs = int(seconds % 60)
        return f"{minutes}m {secs:02d}s"
    else:
        hours = int(seconds // 3600)
        minutes = int((seconds % 3600) // 60)
        return f"{hours}h {minutes:02d}m"


class SimulationProgress:
    """Real-time progress display for a TimeStepper run.

    Shows a progress bar with statistics including:
    - Current step and total steps
    - Elapsed time and ETA
    - Throughput (M unknowns/s)
    - Current and peak memory usage

    Example:
        >>> progress = SimulationProgress(console, stepper)
        >>> stepper.run(callback=progress.update)
        >>> progress.finish()
    """

    def __init__(
        self, console: Console, stepper: "TimeStepper", update_interval: float = 0.1
    ):
        """Initialize progress display.

        Args:
            console: Rich console instance
            stepper: Time stepper being run
            update_interval: Minimum time between updates (seconds)
        """
        self.console = console
        self.stepper = stepper
        self.num_steps = stepper.time_state.nt
        self.update_interval = update_interval

        self.start_time = time.time()
        self.last_update = 0.0
        self.peak_memory = 0.0
        self._finished = False

        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            TimeElapsedColumn(),
            TextColumn("•"),
            TimeRemainingColumn(),
            console=console,
        )

        self.task = self.progress.add_task("Stepping", total=self.num_steps)
        self.progress.start()

    def update(self, it: int):
        """Update the display after iteration `it` (1-based).

        Rate-limited to avoid overhead on fast steps; the final step always
        updates.
        """
        current_time = time.time()
        if current_time - self.last_update < self.update_interval and it < self.num_steps:
            return

        self.progress.update(self.task, completed=it)

        elapsed = current_time - self.start_time
        if elapsed > 0 and it > 0:
            unknowns_per_second = it * self.stepper.topology.num_points / elapsed
            throughput = unknowns_per_second / 1e6
        else:
            throughput = 0.0

        current_memory = psutil.Process().memory_info().rss / (1024**3)  # GB
        self.peak_memory = max(self.peak_memory, current_memory)

        description = (
            f"Stepping [dim]{throughput:.2f} Munk/s | "
            f"{current_memory:.2f} GB (peak {self.peak_memory:.2f} GB)[/dim]"
        )
        self.progress.update(self.task, description=description)
        self.last_update = current_time

    def finish(self):
        """Stop the progress bar. Safe to call more than once."""
        if self._finished:
            return
        self._finished = True
        self.progress.stop()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.finish()


def print_simulation_info(console: Console, stepper: "TimeStepper", output_path=None):
    """Print model, source and time stepping parameters before running.

    Args:
        console: Rich console instance
        stepper: Configured time stepper
        output_path: Snapshot destination, or None when snapshots are disabled
    """
    topo = stepper.topology
    material = stepper.material
    spec = stepper.source_spec
    ts = stepper.time_state

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Parameter", style="cyan")
    table.add_column("Value", style="white")

    nx, ny, nz = topo.shape
    table.add_row("Grid", f"{nx} × {ny} × {nz} ({topo.num_points:,} unknowns)")
    table.add_row("Extent", " × ".join(f"{e:g} m" for e in topo.extent))
    table.add_row("Spacing", " × ".join(f"{h:g} m" for h in topo.spacing))
    table.add_row(
        "Wave speed", f"{material.min_wave_speed:g} – {material.max_wave_speed:g}"
    )

    lambda_max = material.max_wave_speed / spec.f0
    table.add_row("Source", f"{spec.wavelet} at {spec.position}, f0 = {spec.f0:g} Hz")
    table.add_row("Amplitude", f"{spec.factor:g} (azimuth {spec.angle:g}°)")
    table.add_row(
        "Wavelength",
        f"{lambda_max:g} m ({lambda_max / topo.dx:.2f} points per wavelength)",
    )

    table.add_row("Timestep", f"{ts.dt:.4e} s")
    table.add_row("Duration", f"{ts.nt} steps ({ts.tmax:g} s)")
    cfl_style = "red" if stepper.cfl_number > 1.0 else "white"
    table.add_row("CFL", f"[{cfl_style}]{stepper.cfl_number:.4f}[/{cfl_style}]")

    table.add_row("Solver", repr(stepper.solver))
    table.add_row("Subdomains", f"{stepper.decomposition.size} {stepper.decomposition.parts}")
    table.add_row("Output", str(output_path) if output_path else "none")

    console.print(table)
    console.print()


def print_diagnostics(console: Console, diagnostics: Sequence["StepDiagnostics"]):
    """Print the per-report field statistics as a table."""
    if not diagnostics:
        return

    table = Table(title="Diagnostics", header_style="bold cyan")
    for column in ("Step", "Time (s)", "UX max", "UX min", "Norm", "Elapsed"):
        table.add_column(column, justify="right")

    for d in diagnostics:
        table.add_row(
            str(d.iteration),
            f"{d.time:.4f}",
            f"{d.max:.4g}",
            f"{d.min:.4g}",
            f"{d.norm:.4g}",
            format_time(d.elapsed),
        )

    console.print(table)
