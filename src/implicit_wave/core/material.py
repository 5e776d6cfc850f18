"""Material fields sampled at grid nodes.

Two scalar fields drive the stencil coefficients: the stiffness ``c11`` and
the density ``rho``. Both are strictly positive everywhere and read-only for
the duration of a run.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import ArrayLike, NDArray

from implicit_wave.errors import InvalidMaterial

from .grid import GridTopology
from .halo import Decomposition, GhostedArray, Subdomain


class MaterialField:
    """Stiffness and density at every grid node.

    In the reference configuration ``c11`` holds the velocity-like stiffness
    directly (1800 for a 1800 m/s medium), so the CFL estimate uses
    ``max(c11)`` as the maximum wave speed.

    Args:
        topology: Grid the fields are sampled on
        c11: Stiffness, scalar or array of grid shape
        rho: Density, scalar or array of grid shape

    Raises:
        InvalidMaterial: If a field has the wrong shape or any value is
            non-positive or non-finite

    Example:
        >>> material = MaterialField.uniform(grid, c11=1800.0, rho=1000.0)
        >>> material.at(12, 12, 12)
        (1800.0, 1000.0)
    """

    def __init__(self, topology: GridTopology, c11: ArrayLike, rho: ArrayLike):
        self.topology = topology
        self._c11 = self._validated("c11", c11)
        self._rho = self._validated("rho", rho)

    def _validated(self, name: str, values: ArrayLike) -> NDArray[np.float64]:
        arr = np.asarray(values, dtype=np.float64)
        if arr.ndim == 0:
            arr = np.full(self.topology.shape, float(arr), dtype=np.float64)
        elif arr.shape != self.topology.shape:
            raise InvalidMaterial(
                f"{name} shape {arr.shape} doesn't match grid shape {self.topology.shape}"
            )
        else:
            arr = arr.copy()

        if not np.all(np.isfinite(arr)):
            raise InvalidMaterial(f"{name} contains non-finite values")
        if np.any(arr <= 0):
            bad = tuple(int(x) for x in np.argwhere(arr <= 0)[0])
            raise InvalidMaterial(
                f"{name} must be strictly positive, got {arr[bad]} at {bad}"
            )

        arr.setflags(write=False)
        return arr

    @classmethod
    def uniform(cls, topology: GridTopology, c11: float, rho: float) -> MaterialField:
        """Homogeneous medium with constant stiffness and density."""
        return cls(topology, c11=float(c11), rho=float(rho))

    @property
    def c11(self) -> NDArray[np.float64]:
        """Stiffness field (read-only)."""
        return self._c11

    @property
    def rho(self) -> NDArray[np.float64]:
        """Density field (read-only)."""
        return self._rho

    @property
    def is_uniform(self) -> bool:
        """Whether both fields are constant over the grid."""
        return bool(
            np.all(self._c11 == self._c11.flat[0]) and np.all(self._rho == self._rho.flat[0])
        )

    @property
    def max_wave_speed(self) -> float:
        """Maximum wave speed in the model."""
        return float(np.max(self._c11))

    @property
    def min_wave_speed(self) -> float:
        """Minimum wave speed in the model."""
        return float(np.min(self._c11))

    def at(self, i: int, j: int, k: int) -> tuple[float, float]:
        """Bounds-checked (c11, rho) at grid node (i, j, k).

        Raises:
            IndexError: If (i, j, k) is outside the grid
        """
        if not self.topology.contains(i, j, k):
            raise IndexError(
                f"Grid index {(i, j, k)} outside grid of shape {self.topology.shape}"
            )
        return float(self._c11[i, j, k]), float(self._rho[i, j, k])

    def ghosted(
        self, decomposition: Decomposition, subdomain: Subdomain
    ) -> tuple[GhostedArray, GhostedArray]:
        """Ghosted (c11, rho) views for one subdomain, including the halo layer."""
        return (
            decomposition.ghosted(self._c11, subdomain),
            decomposition.ghosted(self._rho, subdomain),
        )

    def __repr__(self) -> str:
        return (
            f"MaterialField(shape={self.topology.shape}, "
            f"c11=[{np.min(self._c11):.4g}, {np.max(self._c11):.4g}], "
            f"rho=[{np.min(self._rho):.4g}, {np.max(self._rho):.4g}])"
        )
