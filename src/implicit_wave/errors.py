"""Exception hierarchy for implicit-wave simulations.

Setup errors subclass ValueError so that callers validating user input can
catch them the same way as any other bad argument. Run-time numerical
failures subclass RuntimeError and abort the simulation. Snapshot write
failures subclass OSError and are never fatal.
"""

from __future__ import annotations


class WaveSimulationError(Exception):
    """Base class for all implicit-wave errors."""

    pass


class InvalidGridDimension(WaveSimulationError, ValueError):
    """Raised when grid dimensions, extents or decomposition are invalid."""

    pass


class InvalidMaterial(WaveSimulationError, ValueError):
    """Raised when stiffness or density values are non-positive or malformed."""

    pass


class AssemblyFailure(WaveSimulationError, RuntimeError):
    """Raised when the operator or right-hand side cannot be built."""

    pass


class SolverDivergence(WaveSimulationError, RuntimeError):
    """Raised when the linear solver fails to converge.

    Args:
        message: Human-readable description
        iteration: Time step at which the solve failed
        residual_norm: Last known residual 2-norm (NaN if unavailable)
    """

    def __init__(
        self,
        message: str,
        iteration: int | None = None,
        residual_norm: float = float("nan"),
    ):
        self.iteration = iteration
        self.residual_norm = residual_norm
        if iteration is not None:
            message = f"{message} (step {iteration}, residual {residual_norm:.3e})"
        super().__init__(message)


class SingularOperator(SolverDivergence):
    """Raised when the operator is singular or incompatible with the RHS."""

    pass


class SnapshotIOError(WaveSimulationError, OSError):
    """Raised by snapshot writers when a snapshot cannot be written."""

    pass
