"""
Domain decomposition and halo exchange.

A Decomposition splits the global grid into rectangular subdomains, one per
worker. Each worker owns a contiguous block of nodes and sees one extra layer
of ghost nodes around it (clipped to the global grid) so that 7-point
stencil operations near its edges read correct neighbor values.

All workers live in the same process: the exchange copies each subdomain's
ghosted block out of the global field. It is collective in the sense that
every subdomain receives its view from the same field state, so all workers
operate on the same iteration's data.

Example:
    >>> grid = GridTopology(shape=(25, 25, 25), extent=(1000.0,) * 3)
    >>> decomposition = grid.decompose((2, 1, 1))
    >>> [s.size for s in decomposition.subdomains]
    [(13, 25, 25), (12, 25, 25)]
    >>> views = decomposition.exchange(field)
    >>> views[1][12, 0, 0]  # ghost node owned by rank 0
"""

from __future__ import annotations

import itertools
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from implicit_wave.errors import InvalidGridDimension

from .grid import HALO_WIDTH, GridTopology


def split_axis(n: int, parts: int) -> list[tuple[int, int]]:
    """Split n nodes into `parts` contiguous (start, size) blocks.

    The first n % parts blocks receive one extra node.
    """
    base, extra = divmod(n, parts)
    blocks = []
    start = 0
    for p in range(parts):
        size = base + (1 if p < extra else 0)
        blocks.append((start, size))
        start += size
    return blocks


@dataclass(frozen=True)
class Subdomain:
    """Block of grid nodes owned by one worker.

    Args:
        rank: Worker index in the decomposition
        start: Global index (xs, ys, zs) of the first owned node
        size: Number of owned nodes (xm, ym, zm) along each axis
        global_shape: Shape of the full grid

    Example:
        >>> sub = Subdomain(rank=0, start=(0, 0, 0), size=(13, 25, 25),
        ...                 global_shape=(25, 25, 25))
        >>> sub.ghost_stop
        (14, 25, 25)
    """

    rank: int
    start: tuple[int, int, int]
    size: tuple[int, int, int]
    global_shape: tuple[int, int, int]

    @property
    def stop(self) -> tuple[int, int, int]:
        """Exclusive end index of the owned block."""
        return tuple(s + m for s, m in zip(self.start, self.size))

    @property
    def ghost_start(self) -> tuple[int, int, int]:
        """First index of the ghosted block (clipped at 0)."""
        return tuple(max(s - HALO_WIDTH, 0) for s in self.start)

    @property
    def ghost_stop(self) -> tuple[int, int, int]:
        """Exclusive end of the ghosted block (clipped at the grid size)."""
        return tuple(
            min(e + HALO_WIDTH, n) for e, n in zip(self.stop, self.global_shape)
        )

    @property
    def owned_slices(self) -> tuple[slice, slice, slice]:
        """Slices selecting the owned block from a global array."""
        return tuple(slice(s, e) for s, e in zip(self.start, self.stop))

    @property
    def ghost_slices(self) -> tuple[slice, slice, slice]:
        """Slices selecting the ghosted block from a global array."""
        return tuple(slice(s, e) for s, e in zip(self.ghost_start, self.ghost_stop))

    @property
    def num_owned(self) -> int:
        """Number of nodes owned by this subdomain."""
        xm, ym, zm = self.size
        return xm * ym * zm

    def owns(self, i: int, j: int, k: int) -> bool:
        """Whether node (i, j, k) is owned by this subdomain."""
        return all(s <= x < e for x, s, e in zip((i, j, k), self.start, self.stop))

    def owned_indices(self) -> tuple[NDArray[np.intp], NDArray[np.intp], NDArray[np.intp]]:
        """Flattened global (i, j, k) index arrays of every owned node (C order)."""
        axes = [np.arange(s, e) for s, e in zip(self.start, self.stop)]
        ii, jj, kk = np.meshgrid(*axes, indexing="ij")
        return ii.ravel(), jj.ravel(), kk.ravel()


class GhostedArray:
    """Bounds-checked view of one subdomain's ghosted block.

    Indexing uses *global* grid coordinates. Any index inside the ghosted
    range (owned block plus one halo layer, clipped to the grid) is valid;
    anything else raises IndexError instead of silently wrapping.

    Args:
        data: Copy of the ghosted block
        subdomain: Subdomain the block belongs to

    Example:
        >>> view = decomposition.ghosted(material.c11, subdomain)
        >>> view[12, 0, 0]
        1800.0
        >>> view.owned.shape
        (12, 25, 25)
    """

    def __init__(self, data: NDArray[np.floating], subdomain: Subdomain):
        expected = tuple(e - s for s, e in zip(subdomain.ghost_start, subdomain.ghost_stop))
        if data.shape != expected:
            raise ValueError(
                f"Ghosted data shape {data.shape} doesn't match subdomain block {expected}"
            )
        self.data = data
        self.subdomain = subdomain
        self._origin = subdomain.ghost_start

    def _local(self, index: tuple[int, int, int]) -> tuple[int, int, int]:
        sub = self.subdomain
        for x, lo, hi in zip(index, sub.ghost_start, sub.ghost_stop):
            if not lo <= x < hi:
                raise IndexError(
                    f"Index {tuple(index)} outside ghosted range "
                    f"{sub.ghost_start}..{sub.ghost_stop} of rank {sub.rank}"
                )
        return tuple(x - o for x, o in zip(index, self._origin))

    def __getitem__(self, index: tuple[int, int, int]) -> float:
        return self.data[self._local(index)]

    def contains(self, i: int, j: int, k: int) -> bool:
        """Whether (i, j, k) lies in the ghosted range."""
        sub = self.subdomain
        return all(lo <= x < hi for x, lo, hi in zip((i, j, k), sub.ghost_start, sub.ghost_stop))

    @property
    def owned(self) -> NDArray[np.floating]:
        """The owned block, without halo."""
        sub = self.subdomain
        slices = tuple(
            slice(s - o, s - o + m) for s, o, m in zip(sub.start, self._origin, sub.size)
        )
        return self.data[slices]

    def __repr__(self) -> str:
        return f"GhostedArray(rank={self.subdomain.rank}, shape={self.data.shape})"


class Decomposition:
    """Partition of a GridTopology into per-worker subdomains.

    Args:
        topology: Global grid
        parts: Number of blocks along each axis

    Raises:
        InvalidGridDimension: If a part count is < 1 or exceeds its axis size

    Example:
        >>> decomposition = Decomposition(grid, parts=(2, 2, 1))
        >>> decomposition.size
        4
    """

    def __init__(self, topology: GridTopology, parts: Sequence[int] = (1, 1, 1)):
        parts = tuple(int(p) for p in parts)
        if len(parts) != 3:
            raise InvalidGridDimension(f"parts must have 3 components, got {parts}")
        for axis, p, n in zip("xyz", parts, topology.shape):
            if p < 1 or p > n:
                raise InvalidGridDimension(
                    f"Cannot split {n} nodes along {axis} into {p} parts"
                )

        self.topology = topology
        self.parts = parts

        blocks = [split_axis(n, p) for n, p in zip(topology.shape, parts)]
        self.subdomains: list[Subdomain] = []
        for rank, (bx, by, bz) in enumerate(itertools.product(*blocks)):
            self.subdomains.append(
                Subdomain(
                    rank=rank,
                    start=(bx[0], by[0], bz[0]),
                    size=(bx[1], by[1], bz[1]),
                    global_shape=topology.shape,
                )
            )

    @property
    def size(self) -> int:
        """Number of subdomains (workers)."""
        return len(self.subdomains)

    def owner(self, i: int, j: int, k: int) -> Subdomain:
        """Subdomain owning node (i, j, k)."""
        for sub in self.subdomains:
            if sub.owns(i, j, k):
                return sub
        raise IndexError(f"Grid index {(i, j, k)} outside grid of shape {self.topology.shape}")

    def ghosted(self, field: NDArray[np.floating], subdomain: Subdomain) -> GhostedArray:
        """Copy one subdomain's ghosted block out of a global field."""
        self._check_shape(field)
        return GhostedArray(np.array(field[subdomain.ghost_slices], copy=True), subdomain)

    def exchange(self, field: NDArray[np.floating]) -> list[GhostedArray]:
        """Halo exchange: ghosted views of `field` for every subdomain.

        This is the synchronizing step of the decomposition. All views are
        taken from the same field state before any worker proceeds.
        """
        self._check_shape(field)
        return [self.ghosted(field, sub) for sub in self.subdomains]

    def scatter_rows(self, subdomain: Subdomain) -> NDArray[np.intp]:
        """Global rows of the nodes owned by `subdomain` (C order)."""
        return self.topology.flat_index(*subdomain.owned_indices())

    def gather(self, parts: Sequence[NDArray[np.floating]]) -> NDArray[np.float64]:
        """Assemble a global flat vector from per-subdomain owned values.

        Args:
            parts: One 1D array per subdomain, ordered like scatter_rows()
        """
        if len(parts) != self.size:
            raise ValueError(f"Expected {self.size} parts, got {len(parts)}")
        out = np.empty(self.topology.num_points, dtype=np.float64)
        for sub, values in zip(self.subdomains, parts):
            out[self.scatter_rows(sub)] = values
        return out

    def _check_shape(self, field: NDArray[np.floating]) -> None:
        if field.shape != self.topology.shape:
            raise ValueError(
                f"Field shape {field.shape} doesn't match grid shape {self.topology.shape}"
            )

    def __repr__(self) -> str:
        return f"Decomposition(shape={self.topology.shape}, parts={self.parts})"
