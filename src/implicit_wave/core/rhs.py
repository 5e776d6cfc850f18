"""Right-hand side assembly for the implicit wave update.

For every interior node

    b = dx*dy*dz * (5*uxm1 - 4*uxm2 + uxm3) + [dt^2 / rho * fx at the source]

and b = 0 on the Dirichlet boundary. The constant component of b is then
projected out (b -= mean(b)) so that b is compatible with the near-singular
operator. The projection is part of the scheme, not an optimization:
without it the solve may fail to converge.

Each entry reads the history only at its own node. The halo exchange of
uxm1, uxm2 and uxm3 keeps the per-subdomain data flow of a distributed run,
but only the owned block of each ghosted view is used.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from implicit_wave.errors import AssemblyFailure

from .grid import GridTopology
from .halo import Decomposition, Subdomain
from .history import WaveFieldHistory
from .material import MaterialField
from .source import Force, SourceSpec

# Backward-difference weights applied to (uxm1, uxm2, uxm3)
HISTORY_WEIGHTS = (5.0, -4.0, 1.0)


def remove_null_space(b: NDArray[np.floating]) -> NDArray[np.floating]:
    """Subtract the mean of `b` in place and return it.

    Removes the component along the constant vector. An all-zero vector is
    left untouched.
    """
    b -= np.mean(b)
    return b


class RHSAssembler:
    """Build the per-step right-hand side vector.

    Args:
        topology: Global grid
        material: Stiffness and density fields (only rho is read)
        source: Source parameters (only the position is read)
        decomposition: Subdomain layout (default: a single subdomain)

    Example:
        >>> rhs = RHSAssembler(grid, material, spec)
        >>> b = rhs.assemble(history, force, dt)
        >>> abs(b.mean()) < 1e-12 * abs(b).max()
        True
    """

    def __init__(
        self,
        topology: GridTopology,
        material: MaterialField,
        source: SourceSpec,
        decomposition: Decomposition | None = None,
    ):
        source.validate_for(topology)
        self.topology = topology
        self.material = material
        self.source = source
        self.decomposition = decomposition or topology.decompose()

    def assemble(
        self,
        history: WaveFieldHistory,
        force: Force,
        dt: float,
        project: bool = True,
    ) -> NDArray[np.float64]:
        """Assemble b for the current step.

        Args:
            history: Field history at the start of the step
            force: Source force for this step
            dt: Time step in seconds
            project: Remove the constant null-space component (default True)

        Returns:
            Flat float64 vector with one entry per grid node

        Raises:
            AssemblyFailure: If b contains non-finite values
        """
        decomposition = self.decomposition
        uxm1 = decomposition.exchange(history.uxm1)
        uxm2 = decomposition.exchange(history.uxm2)
        uxm3 = decomposition.exchange(history.uxm3)

        parts = []
        for sub, m1, m2, m3 in zip(decomposition.subdomains, uxm1, uxm2, uxm3):
            parts.append(self.assemble_local(sub, m1.owned, m2.owned, m3.owned, force, dt))
        b = decomposition.gather(parts)

        if project:
            remove_null_space(b)

        if not np.all(np.isfinite(b)):
            raise AssemblyFailure("Right-hand side contains non-finite values")
        return b

    def assemble_local(
        self,
        subdomain: Subdomain,
        uxm1: NDArray[np.floating],
        uxm2: NDArray[np.floating],
        uxm3: NDArray[np.floating],
        force: Force,
        dt: float,
    ) -> NDArray[np.float64]:
        """Entries of b for the nodes owned by `subdomain`, before projection."""
        topo = self.topology
        w1, w2, w3 = HISTORY_WEIGHTS

        local = topo.cell_volume * (w1 * uxm1 + w2 * uxm2 + w3 * uxm3)

        i, j, k = self.source.position
        if subdomain.owns(i, j, k):
            _, rho = self.material.at(i, j, k)
            xs, ys, zs = subdomain.start
            local[i - xs, j - ys, k - zs] += dt * dt / rho * force.fx

        local = local.ravel()
        ii, jj, kk = subdomain.owned_indices()
        local[topo.boundary_flags(ii, jj, kk)] = 0.0
        return local
