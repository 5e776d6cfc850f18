"""Implicit time stepping for the 3D acoustic displacement field.

Each step solves a sparse linear system A u^n = b^n where A is the 7-point
stencil operator (assembled once and reused) and b^n combines the three
previous solutions with the point source:

    (2 u^n - 5 u^{n-1} + 4 u^{n-2} - u^{n-3}) dV
        = dt^2 c11/rho * (discrete Laplacian of u^n) + dt^2/rho * f^n

Step sequence:
    1. Evaluate the source for iteration `it`
    2. Assemble the right-hand side and remove its constant component
    3. Solve with the cached operator
    4. Rotate the history buffers
    5. Every `report_interval` steps, record diagnostics and write a snapshot

Example:
    >>> from implicit_wave import SimulationConfig
    >>> stepper = SimulationConfig().build_stepper()
    >>> diagnostics = stepper.run()
    >>> stepper.state
    <StepperState.COMPLETED: 'completed'>
    >>> diagnostics[-1].iteration
    40
"""

from __future__ import annotations

import logging
import time as time_module
import warnings
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

from implicit_wave.errors import (
    AssemblyFailure,
    SnapshotIOError,
    SolverDivergence,
)

from .grid import GridTopology
from .halo import Decomposition
from .history import WaveFieldHistory
from .linsolve import LinearSolver
from .material import MaterialField
from .operator import OperatorAssembler
from .rhs import RHSAssembler
from .source import SourceModel, SourceSpec

if TYPE_CHECKING:
    from implicit_wave.io import SnapshotWriter

logger = logging.getLogger(__name__)

DEFAULT_REPORT_INTERVAL = 40


class StepperState(Enum):
    """Lifecycle of a TimeStepper."""

    INITIALIZED = "initialized"
    STEPPING = "stepping"
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass
class TimeState:
    """Time stepping parameters.

    Args:
        dt: Time step in seconds
        tmax: Simulation end time in seconds
        nt: Total number of iterations
        t0: Start time in seconds
        it: Last completed iteration (0 before the first step)
    """

    dt: float
    tmax: float
    nt: int
    t0: float = 0.0
    it: int = 0

    def __post_init__(self):
        if not np.isfinite(self.dt) or self.dt <= 0:
            raise ValueError(f"dt must be positive, got {self.dt}")
        if self.nt < 0:
            raise ValueError(f"nt must be non-negative, got {self.nt}")

    @classmethod
    def from_cfl(
        cls, topology: GridTopology, material: MaterialField, tmax: float
    ) -> TimeState:
        """Derive dt = dx / max_wave_speed and nt = floor(tmax / dt)."""
        if tmax <= 0:
            raise ValueError(f"tmax must be positive, got {tmax}")
        dt = topology.dx / material.max_wave_speed
        nt = int(np.floor(tmax / dt))
        return cls(dt=dt, tmax=tmax, nt=nt)

    @property
    def time(self) -> float:
        """Physical time of the last completed iteration."""
        return self.t0 + self.it * self.dt


def cfl_number(topology: GridTopology, material: MaterialField, dt: float) -> float:
    """Courant number max_wave_speed * dt / dx."""
    return material.max_wave_speed * dt / topology.dx


@dataclass(frozen=True)
class StepDiagnostics:
    """Field statistics recorded at a reporting step."""

    iteration: int
    time: float
    max: float
    min: float
    norm: float
    elapsed: float
    solver_iterations: int
    residual_norm: float


class TimeStepper:
    """Drive the implicit wave simulation from iteration 1 to nt.

    Owns the field history; the grid, material and source are read-only
    inputs. The operator is assembled on the first step and reused until the
    material or dt changes.

    Args:
        topology: Global grid
        material: Stiffness and density fields
        source: Point source parameters
        time: Time stepping parameters
        solver: Linear solver (default: ILU-preconditioned GMRES)
        decomposition: Subdomain layout (default: a single subdomain)
        report_interval: Record diagnostics and snapshots every N steps
        snapshot_writer: Callable(field, it) invoked at each report step

    Attributes:
        state: Current StepperState
        history: WaveFieldHistory holding ux and the previous solutions
        diagnostics: StepDiagnostics recorded so far

    Example:
        >>> stepper = TimeStepper(grid, material, spec, TimeState.from_cfl(grid, material, 1.0))
        >>> stepper.step()
        >>> stepper.time_state.it
        1
    """

    def __init__(
        self,
        topology: GridTopology,
        material: MaterialField,
        source: SourceSpec,
        time: TimeState,
        solver: LinearSolver | None = None,
        decomposition: Decomposition | None = None,
        report_interval: int = DEFAULT_REPORT_INTERVAL,
        snapshot_writer: SnapshotWriter | Callable[[NDArray[np.floating], int], None] | None = None,
    ):
        if report_interval < 1:
            raise ValueError(f"report_interval must be >= 1, got {report_interval}")

        self.topology = topology
        self.material = material
        self.source_spec = source
        self.time_state = time
        self.decomposition = decomposition or topology.decompose()
        self.solver = solver or LinearSolver()
        self.report_interval = report_interval
        self.snapshot_writer = snapshot_writer

        self.source = SourceModel(source)
        self.operator = OperatorAssembler(topology, material, self.decomposition)
        self.rhs = RHSAssembler(topology, material, source, self.decomposition)
        self.history = WaveFieldHistory(topology)

        self.state = StepperState.INITIALIZED
        self.diagnostics: list[StepDiagnostics] = []
        self.skipped_snapshots: list[int] = []
        self._start_time: float | None = None

        cfl = self.cfl_number
        if cfl > 1.0:
            warnings.warn(
                f"CFL number {cfl:.3f} exceeds 1; the run may be unstable",
                UserWarning,
                stacklevel=2,
            )
        self._log_setup()

    @property
    def field(self) -> NDArray[np.float64]:
        """Most recent solution."""
        return self.history.uxm1

    @property
    def dt(self) -> float:
        return self.time_state.dt

    @property
    def cfl_number(self) -> float:
        """Courant number max_wave_speed * dt / dx."""
        return cfl_number(self.topology, self.material, self.time_state.dt)

    @property
    def done(self) -> bool:
        """Whether no further steps will run."""
        return self.state in (StepperState.COMPLETED, StepperState.ABORTED)

    def _log_setup(self) -> None:
        topo = self.topology
        spec = self.source_spec
        ts = self.time_state
        lambda_max = self.material.max_wave_speed / spec.f0
        logger.info(
            "Model: extent=%s spacing=%s shape=%s c=[%g, %g]",
            topo.extent, topo.spacing, topo.shape,
            self.material.min_wave_speed, self.material.max_wave_speed,
        )
        logger.info(
            "Source: position=%s f0=%g Hz max wavelength=%g m points per wavelength=%g",
            spec.position, spec.f0, lambda_max, lambda_max / topo.dx,
        )
        logger.info("Time stepping: tmax=%g dt=%g nt=%d", ts.tmax, ts.dt, ts.nt)
        logger.info("CFL condition: %g", self.cfl_number)
        logger.info(
            "System: %d unknowns on %d subdomain(s)", topo.num_points, self.decomposition.size
        )

    def step(self) -> StepDiagnostics | None:
        """Advance the simulation by one iteration.

        Returns:
            StepDiagnostics if this iteration is a reporting step, else None

        Raises:
            RuntimeError: If the stepper has already completed or aborted
            AssemblyFailure, SolverDivergence, MemoryError: On fatal failure;
                the stepper moves to ABORTED and the error propagates
        """
        if self.done:
            raise RuntimeError(f"Cannot step: stepper is {self.state.value}")
        if self.time_state.it >= self.time_state.nt:
            self.state = StepperState.COMPLETED
            raise RuntimeError("Cannot step: all iterations have completed")

        if self.state is StepperState.INITIALIZED:
            self.state = StepperState.STEPPING
            self._start_time = time_module.perf_counter()

        it = self.time_state.it + 1
        dt = self.time_state.dt
        try:
            force = self.source.evaluate(it, dt)
            b = self.rhs.assemble(self.history, force, dt)
            A = self.operator.assemble(dt)
            self.solver.set_operator(A)
            solution = self.solver.solve(b, iteration=it)
        except (AssemblyFailure, SolverDivergence, MemoryError):
            self.state = StepperState.ABORTED
            logger.error("Simulation aborted at step %d", it)
            raise

        self.history.store_solution(solution)
        self.history.rotate()
        self.time_state.it = it

        report = None
        if it % self.report_interval == 0:
            report = self._report(it)

        if it >= self.time_state.nt:
            self.state = StepperState.COMPLETED
        return report

    def _report(self, it: int) -> StepDiagnostics:
        ux = self.history.uxm1
        info = self.solver.last_info
        diag = StepDiagnostics(
            iteration=it,
            time=self.time_state.time,
            max=float(np.max(ux)),
            min=float(np.min(ux)),
            norm=float(np.linalg.norm(ux)),
            elapsed=time_module.perf_counter() - (self._start_time or 0.0),
            solver_iterations=info.iterations if info else 0,
            residual_norm=info.residual_norm if info else float("nan"),
        )
        self.diagnostics.append(diag)
        logger.info(
            "Time step %d of %d: max=%g min=%g norm=%g elapsed=%.3f s",
            it, self.time_state.nt, diag.max, diag.min, diag.norm, diag.elapsed,
        )

        if self.snapshot_writer is not None:
            try:
                self.snapshot_writer(ux, it)
            except (SnapshotIOError, OSError) as e:
                self.skipped_snapshots.append(it)
                logger.warning("Skipping snapshot at step %d: %s", it, e)
                warnings.warn(
                    f"Snapshot at step {it} could not be written: {e}",
                    UserWarning,
                    stacklevel=3,
                )
        return diag

    def run(
        self,
        progress: bool = False,
        callback: Callable[[int], None] | None = None,
    ) -> list[StepDiagnostics]:
        """Run the remaining iterations up to nt.

        Args:
            progress: If True, show a tqdm progress bar
            callback: Function called after each step with the iteration number

        Returns:
            Diagnostics recorded over the whole run
        """
        if self.state is StepperState.ABORTED:
            raise RuntimeError("Cannot run: stepper was aborted. Call reset() first.")

        remaining = self.time_state.nt - self.time_state.it
        if remaining <= 0:
            self.state = StepperState.COMPLETED
            return self.diagnostics

        if progress:
            from tqdm import tqdm

            iterator = tqdm(range(remaining), desc="Implicit wave simulation")
        else:
            iterator = range(remaining)

        for _ in iterator:
            self.step()
            if callback:
                callback(self.time_state.it)

        return self.diagnostics

    def reset(self) -> None:
        """Return to the initial state with zeroed history.

        The assembled operator is kept since it does not depend on the field.
        """
        self.history.reset()
        self.time_state.it = 0
        self.diagnostics.clear()
        self.skipped_snapshots.clear()
        self.state = StepperState.INITIALIZED
        self._start_time = None
