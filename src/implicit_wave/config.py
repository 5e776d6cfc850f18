"""Simulation configuration.

SimulationConfig gathers everything needed to set up a run and derives the
time step from the CFL estimate:

    dt = dx / max_wave_speed
    nt = floor(tmax / dt)

The defaults reproduce the reference run: a 25^3 grid over a 1000 m cube,
uniform c11 = 1800 and rho = 1000, a 70 Hz Ricker source of factor 1e10 at
the grid centre with a 90 degree azimuth, and tmax = 1 s (45 steps).

Example:
    >>> config = SimulationConfig()
    >>> config.nt
    45
    >>> stepper = config.build_stepper()
    >>> config.to_json("run.json")
    >>> SimulationConfig.from_json("run.json") == config
    True
"""

from __future__ import annotations

import json
import math
import warnings
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Callable

from implicit_wave.core.grid import GridTopology
from implicit_wave.core.halo import Decomposition
from implicit_wave.core.linsolve import SOLVER_METHODS, LinearSolver
from implicit_wave.core.material import MaterialField
from implicit_wave.core.source import WAVELETS, SourceSpec
from implicit_wave.core.stepper import DEFAULT_REPORT_INTERVAL, TimeState, TimeStepper
from implicit_wave.errors import InvalidMaterial


@dataclass
class SimulationConfig:
    """Parameters of one simulation run.

    Args:
        shape: Grid dimensions (nx, ny, nz)
        extent: Physical domain size (xmax, ymax, zmax) in meters
        c11: Uniform stiffness (velocity-like, m/s in the reference setup); with
            a heterogeneous material, its maximum
        rho: Uniform density in kg/m^3
        tmax: Simulation end time in seconds
        source_position: Source grid index; None places it at the grid centre
        f0: Source dominant frequency in Hz
        factor: Source amplitude factor
        angle: Source force azimuth in degrees
        wavelet: Source time function name
        report_interval: Diagnostics/snapshot cadence in steps
        solver: Linear solver method
        rtol: Relative tolerance of iterative solvers
        parts: Decomposition blocks along each axis

    Raises:
        InvalidGridDimension: If the grid or decomposition is invalid
        InvalidMaterial: If c11 or rho is not positive
        ValueError: For any other invalid parameter
    """

    shape: tuple[int, int, int] = (25, 25, 25)
    extent: tuple[float, float, float] = (1000.0, 1000.0, 1000.0)
    c11: float = 1800.0
    rho: float = 1000.0
    tmax: float = 1.0
    source_position: tuple[int, int, int] | None = None
    f0: float = 70.0
    factor: float = 1e10
    angle: float = 90.0
    wavelet: str = "ricker"
    report_interval: int = DEFAULT_REPORT_INTERVAL
    solver: str = "gmres"
    rtol: float = 1e-5
    parts: tuple[int, int, int] = (1, 1, 1)
    _topology: GridTopology | None = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self):
        self.shape = tuple(int(n) for n in self.shape)
        self.extent = tuple(float(e) for e in self.extent)
        self.parts = tuple(int(p) for p in self.parts)
        if self.source_position is None:
            self.source_position = tuple(n // 2 for n in self.shape)
        else:
            self.source_position = tuple(int(x) for x in self.source_position)

        if not math.isfinite(self.tmax) or self.tmax <= 0:
            raise ValueError(f"tmax must be positive, got {self.tmax}")
        if self.report_interval < 1:
            raise ValueError(f"report_interval must be >= 1, got {self.report_interval}")
        if self.solver not in SOLVER_METHODS:
            raise ValueError(
                f"Unknown solver '{self.solver}'. Valid solvers: {list(SOLVER_METHODS)}"
            )
        if self.wavelet not in WAVELETS:
            raise ValueError(
                f"Unknown wavelet '{self.wavelet}'. Valid wavelets: {list(WAVELETS)}"
            )

        # Validate grid, material, source and decomposition eagerly
        self._topology = GridTopology(shape=self.shape, extent=self.extent)
        self.build_material()
        self.build_source().validate_for(self._topology)
        self.build_decomposition()

    # ------------------------------------------------------------------
    # Derived quantities
    # ------------------------------------------------------------------

    @property
    def dt(self) -> float:
        """CFL-derived time step, dx / c11."""
        return self._topology.dx / self.c11

    @property
    def nt(self) -> int:
        """Number of iterations, floor(tmax / dt)."""
        return int(math.floor(self.tmax / self.dt))

    @property
    def cfl_number(self) -> float:
        """Courant number c11 * dt / dx (1.0 by construction)."""
        return self._cfl_ratio(self.dt)

    def _cfl_ratio(self, dt: float) -> float:
        return self.c11 * dt / self._topology.dx

    def check_stability(self, dt: float | None = None) -> bool:
        """Whether the CFL ratio for `dt` (default: derived dt) is at most 1."""
        return self._cfl_ratio(self.dt if dt is None else dt) <= 1.0

    def warn_if_unstable(self, dt: float | None = None) -> float:
        """Emit a UserWarning if the CFL ratio exceeds 1; return the ratio.

        The time step is never clamped.
        """
        ratio = self._cfl_ratio(self.dt if dt is None else dt)
        if ratio > 1.0:
            warnings.warn(
                f"CFL number {ratio:.3f} exceeds 1; the run may be unstable",
                UserWarning,
                stacklevel=2,
            )
        return ratio

    # ------------------------------------------------------------------
    # Builders
    # ------------------------------------------------------------------

    def build_topology(self) -> GridTopology:
        return self._topology

    def build_material(self) -> MaterialField:
        return MaterialField.uniform(self._topology, c11=self.c11, rho=self.rho)

    def build_source(self) -> SourceSpec:
        return SourceSpec(
            position=self.source_position,
            f0=self.f0,
            factor=self.factor,
            angle=self.angle,
            wavelet=self.wavelet,
        )

    def build_time_state(self) -> TimeState:
        return TimeState.from_cfl(self._topology, self.build_material(), self.tmax)

    def build_solver(self) -> LinearSolver:
        return LinearSolver(method=self.solver, rtol=self.rtol)

    def build_decomposition(self) -> Decomposition:
        return self._topology.decompose(self.parts)

    def build_stepper(
        self,
        snapshot_writer: Callable[..., Any] | None = None,
        material: MaterialField | None = None,
    ) -> TimeStepper:
        """Create a TimeStepper for this configuration.

        Args:
            snapshot_writer: Optional callable(field, it) for snapshots
            material: Heterogeneous material to use instead of the uniform
                c11/rho values. It must match the grid and its maximum c11
                must equal ``self.c11`` so that dt, nt and cfl_number
                describe the stepper that is built.

        Raises:
            InvalidMaterial: If the material's grid or maximum wave speed
                disagrees with this configuration
        """
        if material is None:
            material = self.build_material()
        elif material.topology != self._topology:
            raise InvalidMaterial(
                f"Material grid {material.topology.shape} doesn't match configured "
                f"grid {self._topology.shape}"
            )
        elif material.max_wave_speed != self.c11:
            raise InvalidMaterial(
                f"Material maximum wave speed {material.max_wave_speed:g} doesn't match "
                f"configured c11 = {self.c11:g}; set c11 to the fastest medium"
            )
        return TimeStepper(
            topology=self._topology,
            material=material,
            source=self.build_source(),
            time=TimeState.from_cfl(self._topology, material, self.tmax),
            solver=self.build_solver(),
            decomposition=self.build_decomposition(),
            report_interval=self.report_interval,
            snapshot_writer=snapshot_writer,
        )

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data.pop("_topology", None)
        for key, value in data.items():
            if isinstance(value, tuple):
                data[key] = list(value)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SimulationConfig:
        """Build a config from a dict, rejecting unknown keys."""
        known = {f.name for f in fields(cls) if f.init}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")
        return cls(**data)

    def to_json(self, path: str | Path) -> None:
        Path(path).write_text(json.dumps(self.to_dict(), indent=2) + "\n")

    @classmethod
    def from_json(cls, path: str | Path) -> SimulationConfig:
        return cls.from_dict(json.loads(Path(path).read_text()))
