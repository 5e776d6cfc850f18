"""Time-step history of the displacement field."""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from .grid import GridTopology


class WaveFieldHistory:
    """Current field and the three previous solutions.

    At the start of step n, ``uxm1``, ``uxm2`` and ``uxm3`` hold the
    solutions of steps n-1, n-2 and n-3. All four buffers are zero before
    the first step.

    rotate() moves buffers by reference: the oldest buffer is recycled as
    the next ``ux`` so that no full-grid copy is made per step.

    Args:
        topology: Grid the fields live on

    Example:
        >>> history = WaveFieldHistory(grid)
        >>> history.ux[...] = 1.0
        >>> history.rotate()
        >>> float(history.uxm1.max())
        1.0
    """

    def __init__(self, topology: GridTopology):
        self.topology = topology
        self.ux = topology.zeros()
        self.uxm1 = topology.zeros()
        self.uxm2 = topology.zeros()
        self.uxm3 = topology.zeros()

    def rotate(self) -> None:
        """Shift the history: uxm3 <- uxm2, uxm2 <- uxm1, uxm1 <- ux.

        After rotation ``ux`` refers to the former ``uxm3`` buffer, whose
        contents are stale and will be overwritten by the next solve.
        """
        self.ux, self.uxm1, self.uxm2, self.uxm3 = (
            self.uxm3,
            self.ux,
            self.uxm1,
            self.uxm2,
        )

    def store_solution(self, solution: NDArray[np.floating]) -> None:
        """Write a flat solution vector into the ``ux`` buffer."""
        np.copyto(self.ux, np.reshape(solution, self.topology.shape))

    def reset(self) -> None:
        """Zero all four buffers."""
        for buffer in (self.ux, self.uxm1, self.uxm2, self.uxm3):
            buffer.fill(0)

    def __iter__(self):
        yield from (self.ux, self.uxm1, self.uxm2, self.uxm3)
