"""Tests for the scipy-backed linear solver adapter."""

import numpy as np
import pytest
import scipy.sparse as sp
import scipy.sparse.linalg as spla

from implicit_wave import LinearSolver, SingularOperator, SolverDivergence


def laplacian_1d(n, shift=0.0):
    """Tridiagonal [-1, 2 + shift, -1] matrix."""
    return sp.diags(
        [-np.ones(n - 1), (2.0 + shift) * np.ones(n), -np.ones(n - 1)],
        offsets=[-1, 0, 1],
        format="csr",
    )


@pytest.fixture
def system():
    A = laplacian_1d(50, shift=1.0)
    b = np.random.default_rng(42).normal(size=50)
    return A, b, spla.spsolve(A.tocsc(), b)


class TestLinearSolver:
    @pytest.mark.parametrize("method", ["gmres", "bicgstab", "cg", "direct"])
    def test_methods_agree(self, system, method):
        A, b, expected = system
        solver = LinearSolver(method=method, rtol=1e-10)
        solver.set_operator(A)

        x = solver.solve(b, iteration=1)

        np.testing.assert_allclose(x, expected, rtol=1e-6, atol=1e-8)
        assert solver.last_info.converged
        assert solver.last_info.residual_norm < 1e-6 * np.linalg.norm(b)

    def test_without_preconditioner(self, system):
        A, b, expected = system
        solver = LinearSolver(method="gmres", rtol=1e-10, preconditioner=None)
        solver.set_operator(A)

        np.testing.assert_allclose(solver.solve(b), expected, rtol=1e-6, atol=1e-8)
        assert solver.last_info.iterations > 0

    def test_operator_reuse(self, system):
        A, b, _ = system
        solver = LinearSolver(method="direct")

        solver.set_operator(A)
        solver.set_operator(A)
        solver.solve(b)
        solver.solve(2.0 * b)

        assert solver.setup_count == 1
        assert solver.operator is A

    def test_new_operator_prepares_again(self, system):
        A, _, _ = system
        solver = LinearSolver()

        solver.set_operator(A)
        solver.set_operator(A.copy())

        assert solver.setup_count == 2

    def test_zero_rhs(self, system):
        A, _, _ = system
        solver = LinearSolver()
        solver.set_operator(A)

        x = solver.solve(np.zeros(50))
        assert np.all(x == 0.0)

    def test_solve_without_operator(self):
        with pytest.raises(RuntimeError, match="set_operator"):
            LinearSolver().solve(np.ones(3))

    def test_non_square(self):
        with pytest.raises(SingularOperator, match="square"):
            LinearSolver().set_operator(sp.csr_matrix(np.ones((3, 4))))

    def test_singular_direct(self):
        A = sp.csr_matrix(np.array([[1.0, 0.0], [0.0, 0.0]]))
        solver = LinearSolver(method="direct")

        with pytest.raises(SingularOperator):
            solver.set_operator(A)
        assert solver.operator is None

    def test_divergence(self):
        A = laplacian_1d(200)
        b = np.random.default_rng(1).normal(size=200)
        solver = LinearSolver(
            method="gmres", rtol=1e-12, maxiter=1, restart=1, preconditioner=None
        )
        solver.set_operator(A)

        with pytest.raises(SolverDivergence) as excinfo:
            solver.solve(b, iteration=17)

        assert not isinstance(excinfo.value, SingularOperator)
        assert excinfo.value.iteration == 17
        assert excinfo.value.residual_norm > 0.0
        assert "step 17" in str(excinfo.value)
        assert not solver.last_info.converged

    def test_divergence_is_runtime_error(self):
        assert issubclass(SolverDivergence, RuntimeError)

    @pytest.mark.parametrize(
        "kwargs", [{"method": "jacobi"}, {"preconditioner": "amg"}, {"rtol": 0.0}]
    )
    def test_invalid_arguments(self, kwargs):
        with pytest.raises(ValueError):
            LinearSolver(**kwargs)
