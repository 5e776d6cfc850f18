"""Core numerical engine: grid, material, source, assembly and time stepping."""

from implicit_wave.core.grid import GridTopology
from implicit_wave.core.halo import Decomposition, GhostedArray, Subdomain
from implicit_wave.core.history import WaveFieldHistory
from implicit_wave.core.linsolve import LinearSolver, SolveInfo
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

__all__ = [
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
    "SolveInfo",
    "TimeStepper",
    "TimeState",
    "StepperState",
    "StepDiagnostics",
    "cfl_number",
]
