"""
Grid topology for implicit wave simulation.

This module describes the global computational grid: its dimensions, its
physical extent and the uniform node spacing derived from them. It also
classifies nodes as Dirichlet boundary or interior and maps grid indices to
rows of the global sparse system.

Classes:
    GridTopology: Global grid dimensions, extents and spacing

Example:
    >>> from implicit_wave import GridTopology
    >>> grid = GridTopology(shape=(25, 25, 25), extent=(1000.0, 1000.0, 1000.0))
    >>> grid.spacing
    (40.0, 40.0, 40.0)
    >>> grid.is_boundary(0, 12, 12)
    True
    >>> decomposition = grid.decompose((2, 2, 1))
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

from implicit_wave.errors import InvalidGridDimension

if TYPE_CHECKING:
    from .halo import Decomposition

HALO_WIDTH = 1
MIN_AXIS_SIZE = 3


@dataclass(frozen=True)
class GridTopology:
    """Uniform 3D grid with Dirichlet boundary nodes.

    Spacing along each axis is the physical extent divided by the number of
    nodes on that axis (dx = xmax / nx). Nodes with any coordinate equal to
    0 or to (axis_size - 1) are boundary nodes; all others are interior.

    Args:
        shape: Grid dimensions (nx, ny, nz), each at least 3
        extent: Physical domain size (xmax, ymax, zmax) in meters

    Attributes:
        shape: Grid dimensions tuple
        extent: Physical extent tuple
        dx, dy, dz: Node spacing in meters
        num_points: Total number of grid nodes (rows of the operator)

    Raises:
        InvalidGridDimension: If any axis has fewer than 3 nodes or any
            extent is not strictly positive

    Example:
        >>> grid = GridTopology(shape=(25, 25, 25), extent=(1000.0,) * 3)
        >>> grid.cell_volume
        64000.0
    """

    shape: tuple[int, int, int]
    extent: tuple[float, float, float]
    _spacing: tuple[float, float, float] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if len(self.shape) != 3 or len(self.extent) != 3:
            raise InvalidGridDimension(
                f"shape and extent must have 3 components, got {self.shape} and {self.extent}"
            )
        shape = tuple(int(n) for n in self.shape)
        extent = tuple(float(e) for e in self.extent)
        for axis, n in zip("xyz", shape):
            if n < MIN_AXIS_SIZE:
                raise InvalidGridDimension(
                    f"n{axis} must be at least {MIN_AXIS_SIZE}, got {n}"
                )
        for axis, length in zip("xyz", extent):
            if not np.isfinite(length) or length <= 0:
                raise InvalidGridDimension(
                    f"{axis}max must be positive, got {length}"
                )

        spacing = tuple(length / n for length, n in zip(extent, shape))
        if any(h <= 0 for h in spacing):
            raise InvalidGridDimension(f"Grid spacing must be positive, got {spacing}")

        # Frozen dataclass: normalize through object.__setattr__
        object.__setattr__(self, "shape", shape)
        object.__setattr__(self, "extent", extent)
        object.__setattr__(self, "_spacing", spacing)

    @property
    def spacing(self) -> tuple[float, float, float]:
        """Node spacing (dx, dy, dz) in meters."""
        return self._spacing

    @property
    def dx(self) -> float:
        """Node spacing in x-direction."""
        return self._spacing[0]

    @property
    def dy(self) -> float:
        """Node spacing in y-direction."""
        return self._spacing[1]

    @property
    def dz(self) -> float:
        """Node spacing in z-direction."""
        return self._spacing[2]

    @property
    def min_spacing(self) -> float:
        """Minimum node spacing across all axes."""
        return min(self._spacing)

    @property
    def cell_volume(self) -> float:
        """Volume dx * dy * dz associated with one node."""
        dx, dy, dz = self._spacing
        return dx * dy * dz

    @property
    def face_weights(self) -> tuple[float, float, float]:
        """Stencil face weights (dy*dz/dx, dx*dz/dy, dx*dy/dz)."""
        dx, dy, dz = self._spacing
        return (dy * dz / dx, dx * dz / dy, dx * dy / dz)

    @property
    def num_points(self) -> int:
        """Total number of grid nodes."""
        nx, ny, nz = self.shape
        return nx * ny * nz

    @property
    def halo_width(self) -> int:
        """Width of the ghost layer required by the 7-point stencil."""
        return HALO_WIDTH

    def interior_range(self) -> tuple[range, range, range]:
        """Index ranges of interior nodes along each axis."""
        return tuple(range(1, n - 1) for n in self.shape)

    def contains(self, i: int, j: int, k: int) -> bool:
        """Whether (i, j, k) is a valid grid index."""
        nx, ny, nz = self.shape
        return 0 <= i < nx and 0 <= j < ny and 0 <= k < nz

    def is_boundary(self, i: int, j: int, k: int) -> bool:
        """Whether the node (i, j, k) lies on the Dirichlet boundary.

        Raises:
            IndexError: If (i, j, k) is outside the grid
        """
        if not self.contains(i, j, k):
            raise IndexError(f"Grid index {(i, j, k)} outside grid of shape {self.shape}")
        nx, ny, nz = self.shape
        return (
            i == 0 or i == nx - 1
            or j == 0 or j == ny - 1
            or k == 0 or k == nz - 1
        )

    def is_interior(self, i: int, j: int, k: int) -> bool:
        """Whether the node (i, j, k) is strictly inside the domain."""
        return not self.is_boundary(i, j, k)

    def boundary_flags(
        self,
        i: NDArray[np.integer],
        j: NDArray[np.integer],
        k: NDArray[np.integer],
    ) -> NDArray[np.bool_]:
        """Vectorized boundary classification for index arrays."""
        nx, ny, nz = self.shape
        return (
            (i == 0) | (i == nx - 1)
            | (j == 0) | (j == ny - 1)
            | (k == 0) | (k == nz - 1)
        )

    def boundary_mask(self) -> NDArray[np.bool_]:
        """Boolean array of grid shape, True on boundary nodes."""
        mask = np.zeros(self.shape, dtype=bool)
        mask[0, :, :] = mask[-1, :, :] = True
        mask[:, 0, :] = mask[:, -1, :] = True
        mask[:, :, 0] = mask[:, :, -1] = True
        return mask

    def flat_index(self, i, j, k):
        """Row of node (i, j, k) in global vectors (C order).

        Accepts scalars or integer arrays.
        """
        _, ny, nz = self.shape
        return (np.asarray(i) * ny + np.asarray(j)) * nz + np.asarray(k)

    def grid_index(self, row: int) -> tuple[int, int, int]:
        """Inverse of flat_index for a single row.

        Raises:
            IndexError: If row is outside [0, num_points)
        """
        if not 0 <= row < self.num_points:
            raise IndexError(f"Row {row} outside [0, {self.num_points})")
        i, j, k = np.unravel_index(row, self.shape)
        return int(i), int(j), int(k)

    def coordinates(self, i: int, j: int, k: int) -> tuple[float, float, float]:
        """Physical position of node (i, j, k) in meters."""
        return (i * self.dx, j * self.dy, k * self.dz)

    def zeros(self) -> NDArray[np.float64]:
        """Allocate a zero-filled field of grid shape."""
        return np.zeros(self.shape, dtype=np.float64)

    def decompose(self, parts: tuple[int, int, int] = (1, 1, 1)) -> Decomposition:
        """Split the grid into parts[0] x parts[1] x parts[2] subdomains.

        Args:
            parts: Number of blocks along each axis

        Returns:
            Decomposition with one Subdomain per block
        """
        from .halo import Decomposition

        return Decomposition(self, parts)
