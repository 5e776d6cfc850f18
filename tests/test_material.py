"""Tests for MaterialField validation and access."""

import numpy as np
import pytest

from implicit_wave import InvalidMaterial, MaterialField


class TestMaterialField:
    def test_uniform(self, small_grid):
        material = MaterialField.uniform(small_grid, c11=1800.0, rho=1000.0)

        assert material.c11.shape == small_grid.shape
        assert material.at(4, 4, 4) == (1800.0, 1000.0)
        assert material.is_uniform
        assert material.max_wave_speed == 1800.0
        assert material.min_wave_speed == 1800.0

    def test_heterogeneous(self, small_grid):
        c11 = np.full(small_grid.shape, 1800.0)
        c11[5:, :, :] = 2500.0
        material = MaterialField(small_grid, c11=c11, rho=1000.0)

        assert not material.is_uniform
        assert material.max_wave_speed == 2500.0
        assert material.min_wave_speed == 1800.0
        assert material.at(6, 0, 0) == (2500.0, 1000.0)

    def test_input_is_copied(self, small_grid):
        c11 = np.full(small_grid.shape, 1800.0)
        material = MaterialField(small_grid, c11=c11, rho=1000.0)

        c11[0, 0, 0] = 1.0
        assert material.c11[0, 0, 0] == 1800.0

    def test_read_only(self, small_material):
        with pytest.raises(ValueError):
            small_material.c11[0, 0, 0] = 1.0

    @pytest.mark.parametrize("c11, rho", [(0.0, 1000.0), (1800.0, -1.0), (np.nan, 1000.0)])
    def test_rejects_nonpositive(self, small_grid, c11, rho):
        with pytest.raises(InvalidMaterial):
            MaterialField.uniform(small_grid, c11=c11, rho=rho)

    def test_rejects_single_bad_node(self, small_grid):
        rho = np.full(small_grid.shape, 1000.0)
        rho[2, 3, 4] = 0.0

        with pytest.raises(InvalidMaterial, match=r"\(2, 3, 4\)"):
            MaterialField(small_grid, c11=1800.0, rho=rho)

    def test_rejects_shape_mismatch(self, small_grid):
        with pytest.raises(InvalidMaterial, match="shape"):
            MaterialField(small_grid, c11=np.ones((3, 3, 3)), rho=1000.0)

    def test_at_out_of_bounds(self, small_material):
        with pytest.raises(IndexError):
            small_material.at(9, 0, 0)

    def test_ghosted_views(self, small_grid, small_material):
        decomposition = small_grid.decompose((2, 1, 1))
        sub = decomposition.subdomains[1]

        c11, rho = small_material.ghosted(decomposition, sub)
        assert c11[4, 0, 0] == 1800.0
        assert rho.owned.shape == sub.size
