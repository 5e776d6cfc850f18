"""
implicit-wave - implicit 3D acoustic wave simulation.

Main exports:
- GridTopology: Uniform grid with Dirichlet boundary and decomposition
- MaterialField: Stiffness and density fields
- SourceSpec, SourceModel: Directional Ricker point source
- OperatorAssembler, RHSAssembler: Sparse system assembly
- LinearSolver: scipy-backed Krylov/direct solver with operator reuse
- TimeStepper: Per-step orchestration, diagnostics and snapshots
- SimulationConfig: Run parameters with CFL-derived time step
- MatlabSnapshotWriter, HDF5SnapshotWriter: Snapshot output
"""

from implicit_wave.config import SimulationConfig
from implicit_wave.core.grid import GridTopology
from implicit_wave.core.halo import Decomposition, GhostedArray, Subdomain
from implicit_wave.core.history import WaveFieldHistory
from implicit_wave.core.linsolve import LinearSolver
from implicit_wave.core.material import MaterialField
from implicit_wave.core.operator import OperatorAssembler
from implicit_wave.core.rhs import RHSAssembler, remove_null_space
from implicit_wave.core.source import Force, SourceModel, SourceSpec
from implicit_wave.core.stepper import (
    StepDiagnostics,
    StepperState,
    TimeState,
    TimeStepper,
    cfl_number,
)
from implicit_wave.errors import (
    AssemblyFailure,
    InvalidGridDimension,
    InvalidMaterial,
    SingularOperator,
    SnapshotIOError,
    SolverDivergence,
    WaveSimulationError,
)
from implicit_wave.io import HDF5ResultReader, HDF5SnapshotWriter, MatlabSnapshotWriter

# Submodules for more specific imports
from . import core, io

__version__ = "0.1.0"

__all__ = [
    # Core
    "GridTopology",
    "Decomposition",
    "Subdomain",
    "GhostedArray",
    "MaterialField",
    "SourceSpec",
    "SourceModel",
    "Force",
    "WaveFieldHistory",
    "OperatorAssembler",
    "RHSAssembler",
    "remove_null_space",
    "LinearSolver",
    "TimeStepper",
    "TimeState",
    "StepperState",
    "StepDiagnostics",
    "cfl_number",
    "SimulationConfig",
    # Errors
    "WaveSimulationError",
    "InvalidGridDimension",
    "InvalidMaterial",
    "AssemblyFailure",
    "SolverDivergence",
    "SingularOperator",
    "SnapshotIOError",
    # I/O
    "MatlabSnapshotWriter",
    "HDF5SnapshotWriter",
    "HDF5ResultReader",
    # Submodules
    "core",
    "io",
]
