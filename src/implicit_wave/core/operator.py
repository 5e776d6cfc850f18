"""
Sparse stencil operator for the implicit wave update.

Each time step solves A u^n = b. For an interior node (i, j, k) the row of A
is the 7-point stencil

    diag      = kappa * 2 * (w_x + w_y + w_z) + 2 * dx * dy * dz
    neighbor  = -kappa * w_axis

with kappa = c11(i,j,k) * dt^2 / rho(i,j,k) and face weights
w_x = dy*dz/dx, w_y = dx*dz/dy, w_z = dx*dy/dz. Boundary rows are identity.

A neighbor entry is inserted only if the neighbor itself is strictly
interior along that axis (lower neighbor index > 0, upper neighbor index
< n - 1). Neighbors that land on the boundary are dropped, with nothing
substituted for them. On an axis of size 3 the single interior node
therefore has no off-diagonal entries along that axis.

Rows are assembled per subdomain and combined, so the operator is
identical for any decomposition. Each row's coefficients depend only on the
material at its own node, so only the owned block of the ghosted material
view is read; the halo layer is not needed here.
"""

from __future__ import annotations

import logging

import numpy as np
import scipy.sparse as sp
from numpy.typing import NDArray

from implicit_wave.errors import AssemblyFailure

from .grid import GridTopology
from .halo import Decomposition, Subdomain
from .material import MaterialField

logger = logging.getLogger(__name__)


class OperatorAssembler:
    """Build and cache the sparse operator A.

    The operator depends only on dt, the MaterialField and the GridTopology.
    assemble() returns the cached matrix when none of these changed, so the
    same CSR object is handed to the solver for every time step.

    Args:
        topology: Global grid
        material: Stiffness and density fields
        decomposition: Subdomain layout (default: a single subdomain)

    Example:
        >>> assembler = OperatorAssembler(grid, material)
        >>> A = assembler.assemble(dt=40.0 / 1800.0)
        >>> A is assembler.assemble(dt=40.0 / 1800.0)
        True
    """

    def __init__(
        self,
        topology: GridTopology,
        material: MaterialField,
        decomposition: Decomposition | None = None,
    ):
        if material.topology != topology:
            raise ValueError(
                f"Material grid {material.topology.shape} doesn't match topology {topology.shape}"
            )
        self.topology = topology
        self.material = material
        self.decomposition = decomposition or topology.decompose()
        self._operator: sp.csr_matrix | None = None
        self._cached_dt: float | None = None
        self._build_count = 0

    @property
    def build_count(self) -> int:
        """Number of times the operator has been assembled."""
        return self._build_count

    @property
    def is_assembled(self) -> bool:
        """Whether a cached operator is available."""
        return self._operator is not None

    def invalidate(self) -> None:
        """Drop the cached operator; the next assemble() rebuilds it."""
        self._operator = None
        self._cached_dt = None

    def set_material(self, material: MaterialField) -> None:
        """Replace the material fields and invalidate the cache."""
        if material.topology != self.topology:
            raise ValueError(
                f"Material grid {material.topology.shape} doesn't match topology "
                f"{self.topology.shape}"
            )
        self.material = material
        self.invalidate()

    def assemble(self, dt: float) -> sp.csr_matrix:
        """Return the operator for time step `dt`, rebuilding only if needed.

        Raises:
            AssemblyFailure: If the matrix cannot be allocated or contains
                non-finite coefficients
        """
        if self._operator is not None and self._cached_dt == dt:
            return self._operator

        if not np.isfinite(dt) or dt <= 0:
            raise AssemblyFailure(f"Time step must be positive and finite, got {dt}")

        rows, cols, vals = [], [], []
        try:
            for sub in self.decomposition.subdomains:
                r, c, v = self.assemble_rows(sub, dt)
                rows.append(r)
                cols.append(c)
                vals.append(v)

            n = self.topology.num_points
            matrix = sp.coo_matrix(
                (np.concatenate(vals), (np.concatenate(rows), np.concatenate(cols))),
                shape=(n, n),
            ).tocsr()
        except MemoryError as e:
            raise AssemblyFailure(
                f"Out of memory assembling operator for grid {self.topology.shape}"
            ) from e

        if not np.all(np.isfinite(matrix.data)):
            raise AssemblyFailure("Operator contains non-finite coefficients")

        matrix.sort_indices()
        self._operator = matrix
        self._cached_dt = dt
        self._build_count += 1
        logger.debug(
            "Assembled operator %dx%d with %d nonzeros (build %d)",
            n, n, matrix.nnz, self._build_count,
        )
        return matrix

    def assemble_rows(
        self, subdomain: Subdomain, dt: float
    ) -> tuple[NDArray[np.intp], NDArray[np.intp], NDArray[np.float64]]:
        """COO triplets (rows, cols, values) for the nodes owned by `subdomain`."""
        topo = self.topology
        shape = topo.shape
        c11, rho = self.material.ghosted(self.decomposition, subdomain)

        ii, jj, kk = subdomain.owned_indices()
        row = topo.flat_index(ii, jj, kk)
        boundary = topo.boundary_flags(ii, jj, kk)
        interior = ~boundary

        kappa = (c11.owned * (dt * dt) / rho.owned).ravel()
        weights = topo.face_weights
        volume = topo.cell_volume

        diag = np.ones(row.shape, dtype=np.float64)
        diag[interior] = kappa[interior] * 2.0 * sum(weights) + 2.0 * volume

        rows = [row]
        cols = [row]
        vals = [diag]

        index = (ii, jj, kk)
        for axis in range(3):
            n = shape[axis]
            coord = index[axis]
            for offset in (-1, 1):
                neighbor = coord + offset
                if offset < 0:
                    keep = interior & (neighbor > 0)
                else:
                    keep = interior & (neighbor < n - 1)
                if not np.any(keep):
                    continue
                shifted = [c[keep] for c in index]
                shifted[axis] = neighbor[keep]
                rows.append(row[keep])
                cols.append(topo.flat_index(*shifted))
                vals.append(-kappa[keep] * weights[axis])

        return np.concatenate(rows), np.concatenate(cols), np.concatenate(vals)
