"""Tests for right-hand side assembly and null-space removal."""

import numpy as np
import pytest

from implicit_wave import (
    AssemblyFailure,
    Force,
    InvalidGridDimension,
    RHSAssembler,
    SourceSpec,
    WaveFieldHistory,
    remove_null_space,
)

DT = 40.0 / 1800.0
VOLUME = 40.0**3


def no_force():
    return Force(fx=0.0, fy=0.0, fz=0.0, amplitude=0.0)


@pytest.fixture
def history(small_grid):
    """History with distinct smooth fields in the three previous buffers."""
    history = WaveFieldHistory(small_grid)
    x, y, z = np.meshgrid(*(np.arange(n, dtype=float) for n in small_grid.shape), indexing="ij")
    history.uxm1[...] = np.sin(x) + y
    history.uxm2[...] = np.cos(y) * z
    history.uxm3[...] = x * y * z / 100.0
    return history


class TestRemoveNullSpace:
    def test_zero_mean(self):
        b = np.array([1.0, 2.0, 3.0, 10.0])
        remove_null_space(b)

        assert b.mean() == pytest.approx(0.0, abs=1e-14)
        np.testing.assert_allclose(b, [-3.0, -2.0, -1.0, 6.0])

    def test_in_place(self):
        b = np.array([1.0, 1.0])
        assert remove_null_space(b) is b

    def test_zero_vector_unchanged(self):
        b = np.zeros(5)
        remove_null_space(b)
        assert np.all(b == 0.0)

    def test_orthogonal_to_constant(self):
        b = np.random.default_rng(0).normal(size=100) + 5.0
        remove_null_space(b)
        assert np.dot(b, np.ones(100)) == pytest.approx(0.0, abs=1e-10)


class TestRHSAssembler:
    def test_history_combination(self, small_grid, small_material, small_source, history):
        rhs = RHSAssembler(small_grid, small_material, small_source)
        b = rhs.assemble(history, no_force(), DT, project=False).reshape(small_grid.shape)

        expected = VOLUME * (5.0 * history.uxm1 - 4.0 * history.uxm2 + history.uxm3)
        interior = ~small_grid.boundary_mask()
        np.testing.assert_allclose(b[interior], expected[interior], rtol=1e-14)

    def test_boundary_zero_before_projection(
        self, small_grid, small_material, small_source, history
    ):
        rhs = RHSAssembler(small_grid, small_material, small_source)
        b = rhs.assemble(history, no_force(), DT, project=False).reshape(small_grid.shape)

        assert np.all(b[small_grid.boundary_mask()] == 0.0)

    def test_projected_mean_is_zero(self, small_grid, small_material, small_source, history):
        rhs = RHSAssembler(small_grid, small_material, small_source)
        force = Force(fx=1e10, fy=0.0, fz=1e10, amplitude=1e10)
        b = rhs.assemble(history, force, DT)

        assert abs(b.mean()) <= 1e-12 * np.abs(b).max()

    def test_source_contribution(self, small_grid, small_material, small_source):
        """Test that only the source node receives dt^2 / rho * fx."""
        rhs = RHSAssembler(small_grid, small_material, small_source)
        history = WaveFieldHistory(small_grid)
        force = Force(fx=2e9, fy=5.0, fz=2e9, amplitude=2e9)

        b = rhs.assemble(history, force, DT, project=False)

        row = small_grid.flat_index(*small_source.position)
        assert b[row] == pytest.approx(DT**2 / 1000.0 * 2e9)
        assert np.count_nonzero(b) == 1

    def test_zero_history_and_force(self, small_grid, small_material, small_source):
        rhs = RHSAssembler(small_grid, small_material, small_source)
        b = rhs.assemble(WaveFieldHistory(small_grid), no_force(), DT)

        assert b.shape == (small_grid.num_points,)
        assert np.all(b == 0.0)

    def test_non_finite_raises(self, small_grid, small_material, small_source, history):
        rhs = RHSAssembler(small_grid, small_material, small_source)
        history.uxm2[4, 4, 4] = np.inf

        with pytest.raises(AssemblyFailure):
            rhs.assemble(history, no_force(), DT)

    def test_boundary_source_rejected(self, small_grid, small_material):
        spec = SourceSpec(position=(0, 4, 4), f0=70.0)
        with pytest.raises(InvalidGridDimension):
            RHSAssembler(small_grid, small_material, spec)

    @pytest.mark.parametrize("parts", [(2, 1, 1), (3, 3, 1), (2, 2, 2)])
    def test_same_for_every_decomposition(
        self, small_grid, small_material, small_source, history, parts
    ):
        force = Force(fx=1e10, fy=0.0, fz=1e10, amplitude=1e10)
        serial = RHSAssembler(small_grid, small_material, small_source).assemble(
            history, force, DT
        )
        split = RHSAssembler(
            small_grid, small_material, small_source, small_grid.decompose(parts)
        ).assemble(history, force, DT)

        np.testing.assert_array_equal(split, serial)

    def test_owned_entries_ignore_history_in_halo(
        self, small_grid, small_material, small_source, history
    ):
        decomposition = small_grid.decompose((2, 1, 1))
        sub = decomposition.subdomains[0]
        assembler = RHSAssembler(small_grid, small_material, small_source, decomposition)
        rows = decomposition.scatter_rows(sub)
        force = Force(fx=1e10, fy=0.0, fz=1e10, amplitude=1e10)
        before = assembler.assemble(history, force, DT, project=False)[rows]

        # Change every buffer on the neighbor's side, halo layer included
        outside = np.ones(small_grid.shape, dtype=bool)
        outside[sub.owned_slices] = False
        for buf in (history.uxm1, history.uxm2, history.uxm3):
            buf[outside] += 7.0
        after = assembler.assemble(history, force, DT, project=False)[rows]

        np.testing.assert_array_equal(after, before)
