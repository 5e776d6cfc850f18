"""
Linear solver adapter backed by scipy.sparse.linalg.

The operator usually stays fixed for the whole run, so the solver prepares
its preconditioner (or LU factorization) once in set_operator() and reuses
it for every right-hand side.

Methods:
    - "gmres": Restarted GMRES with an incomplete-LU preconditioner (default)
    - "bicgstab": BiCGSTAB with the same preconditioner
    - "cg": Conjugate gradient (only for symmetric operators)
    - "direct": Sparse LU factorization, reused across solves

Example:
    >>> solver = LinearSolver(method="gmres", rtol=1e-5)
    >>> solver.set_operator(A)
    >>> x = solver.solve(b, iteration=1)
    >>> solver.last_info.iterations
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

import numpy as np
import scipy.sparse as sp
import scipy.sparse.linalg as spla
from numpy.typing import NDArray

from implicit_wave.errors import SingularOperator, SolverDivergence

logger = logging.getLogger(__name__)

SolverMethod = Literal["gmres", "bicgstab", "cg", "direct"]
SOLVER_METHODS: tuple[str, ...] = ("gmres", "bicgstab", "cg", "direct")


@dataclass
class SolveInfo:
    """Outcome of the most recent solve."""

    iterations: int
    residual_norm: float
    converged: bool


class LinearSolver:
    """Repeated solves against a mostly-constant sparse operator.

    Args:
        method: Solution method (see module docstring)
        rtol: Relative residual tolerance for iterative methods
        atol: Absolute residual tolerance for iterative methods
        maxiter: Iteration cap for iterative methods
        restart: GMRES restart length
        preconditioner: "ilu" (incomplete LU) or None

    Raises:
        ValueError: If the method or preconditioner is unknown
    """

    def __init__(
        self,
        method: SolverMethod = "gmres",
        rtol: float = 1e-5,
        atol: float = 0.0,
        maxiter: int = 10000,
        restart: int = 30,
        preconditioner: Literal["ilu"] | None = "ilu",
    ):
        if method not in SOLVER_METHODS:
            raise ValueError(
                f"Unknown solver method '{method}'. Valid methods: {list(SOLVER_METHODS)}"
            )
        if preconditioner not in ("ilu", None):
            raise ValueError(f"Unknown preconditioner '{preconditioner}'")
        if rtol <= 0:
            raise ValueError(f"rtol must be positive, got {rtol}")

        self.method = method
        self.rtol = rtol
        self.atol = atol
        self.maxiter = maxiter
        self.restart = restart
        self.preconditioner = preconditioner

        self._operator: sp.csr_matrix | None = None
        self._precond: spla.LinearOperator | None = None
        self._factor = None
        self._setup_count = 0
        self.last_info: SolveInfo | None = None

    @property
    def operator(self) -> sp.csr_matrix | None:
        """Operator used by solve()."""
        return self._operator

    @property
    def setup_count(self) -> int:
        """Number of times an operator has been prepared."""
        return self._setup_count

    def set_operator(self, operator: sp.spmatrix) -> None:
        """Prepare the solver for `operator`.

        Passing the same matrix object again is a no-op, which is what makes
        operator reuse across time steps cheap.

        Raises:
            SingularOperator: If the operator is not square or cannot be
                factorized
        """
        if operator is self._operator:
            return
        if operator.shape[0] != operator.shape[1]:
            raise SingularOperator(f"Operator must be square, got shape {operator.shape}")

        self._operator = operator
        self._precond = None
        self._factor = None

        try:
            if self.method == "direct":
                self._factor = spla.factorized(operator.tocsc())
            elif self.preconditioner == "ilu" and self.method != "cg":
                ilu = spla.spilu(operator.tocsc())
                self._precond = spla.LinearOperator(operator.shape, ilu.solve)
        except RuntimeError as e:
            # SuperLU reports exactly singular factors as RuntimeError
            self._operator = None
            raise SingularOperator(f"Operator factorization failed: {e}") from e

        self._setup_count += 1
        logger.debug("Prepared %s solver for %dx%d operator", self.method, *operator.shape)

    def solve(self, b: NDArray[np.floating], iteration: int | None = None) -> NDArray[np.float64]:
        """Solve A x = b with a zero initial guess.

        Args:
            b: Right-hand side
            iteration: Time step number, used in error reports

        Raises:
            RuntimeError: If set_operator() has not been called
            SolverDivergence: If the solve does not converge or produces
                non-finite values
        """
        A = self._operator
        if A is None:
            raise RuntimeError("No operator set. Call set_operator() first.")

        if self.method == "direct":
            x = np.asarray(self._factor(b), dtype=np.float64)
            iterations, info = 1, 0
        else:
            counter = _IterationCounter()
            kwargs = dict(
                rtol=self.rtol, atol=self.atol, maxiter=self.maxiter, callback=counter
            )
            if self.method == "gmres":
                x, info = spla.gmres(
                    A, b, M=self._precond, restart=self.restart,
                    callback_type="pr_norm", **kwargs,
                )
            elif self.method == "bicgstab":
                x, info = spla.bicgstab(A, b, M=self._precond, **kwargs)
            else:
                x, info = spla.cg(A, b, **kwargs)
            iterations = counter.count

        residual = float(np.linalg.norm(b - A @ x)) if np.all(np.isfinite(x)) else float("nan")
        converged = info == 0 and np.isfinite(residual)
        self.last_info = SolveInfo(iterations=iterations, residual_norm=residual, converged=converged)
        logger.debug(
            "Solve %s: %d iterations, residual %.3e", iteration, iterations, residual
        )

        if info < 0:
            raise SingularOperator(
                f"{self.method} reported illegal input or breakdown (info={info})",
                iteration=iteration,
                residual_norm=residual,
            )
        if not converged:
            raise SolverDivergence(
                f"{self.method} did not converge after {iterations} iterations",
                iteration=iteration,
                residual_norm=residual,
            )
        return x

    def __repr__(self) -> str:
        return f"LinearSolver(method='{self.method}', rtol={self.rtol:g})"


class _IterationCounter:
    """Callback counting solver iterations."""

    def __init__(self):
        self.count = 0

    def __call__(self, _):
        self.count += 1
