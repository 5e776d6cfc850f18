"""Tests for the field history buffers."""

import numpy as np
import pytest

from implicit_wave import WaveFieldHistory


class TestWaveFieldHistory:
    def test_starts_at_zero(self, small_grid):
        history = WaveFieldHistory(small_grid)

        for buffer in history:
            assert buffer.shape == small_grid.shape
            assert buffer.dtype == np.float64
            assert np.all(buffer == 0.0)

    def test_buffers_are_distinct(self, small_grid):
        history = WaveFieldHistory(small_grid)
        buffers = list(history)

        for a in range(4):
            for b in range(a + 1, 4):
                assert not np.shares_memory(buffers[a], buffers[b])

    def test_rotate_shifts_values(self, small_grid):
        history = WaveFieldHistory(small_grid)
        history.ux.fill(1.0)
        history.uxm1.fill(2.0)
        history.uxm2.fill(3.0)
        history.uxm3.fill(4.0)

        history.rotate()

        assert np.all(history.uxm1 == 1.0)
        assert np.all(history.uxm2 == 2.0)
        assert np.all(history.uxm3 == 3.0)

    def test_rotate_recycles_oldest_buffer(self, small_grid):
        """Test that rotation moves references rather than copying data."""
        history = WaveFieldHistory(small_grid)
        ux, uxm1, uxm2, uxm3 = list(history)

        history.rotate()

        assert history.ux is uxm3
        assert history.uxm1 is ux
        assert history.uxm2 is uxm1
        assert history.uxm3 is uxm2

    def test_four_rotations_restore_order(self, small_grid):
        history = WaveFieldHistory(small_grid)
        original = list(history)

        for _ in range(4):
            history.rotate()

        assert all(a is b for a, b in zip(history, original))

    def test_store_solution(self, small_grid):
        history = WaveFieldHistory(small_grid)
        target = history.ux
        solution = np.arange(small_grid.num_points, dtype=float)

        history.store_solution(solution)

        assert history.ux is target
        assert history.ux[0, 0, 1] == 1.0
        assert history.ux[1, 0, 0] == pytest.approx(81.0)

    def test_reset(self, small_grid):
        history = WaveFieldHistory(small_grid)
        for buffer in history:
            buffer.fill(7.0)

        history.reset()

        assert all(np.all(buffer == 0.0) for buffer in history)
