"""HDF5 output format for implicit wave simulation results.

This module provides a streaming snapshot writer and a reader for results in
a single HDF5 file:
- Simulation metadata (grid, material bounds, time step, source)
- Displacement snapshots with compression, tagged by iteration
- Per-report diagnostics written at finalize()
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

import h5py
import numpy as np
from numpy.typing import NDArray

from implicit_wave.errors import SnapshotIOError

from .base import SnapshotWriter

if TYPE_CHECKING:
    from implicit_wave.core.grid import GridTopology
    from implicit_wave.core.material import MaterialField
    from implicit_wave.core.source import SourceSpec
    from implicit_wave.core.stepper import StepDiagnostics, TimeState

_DIAGNOSTIC_FIELDS = (
    "iteration", "time", "max", "min", "norm", "elapsed",
    "solver_iterations", "residual_norm",
)


class HDF5SnapshotWriter(SnapshotWriter):
    """Streaming writer for displacement snapshots.

    Creates an HDF5 file with groups:
    - ``metadata``: creation time, package version, extra attributes
    - ``grid``: shape, extent, spacing
    - ``simulation``: dt, tmax, nt, cfl_number, material bounds
    - ``source``: position, f0, factor, angle, wavelet
    - ``fields/ux``: snapshots, shape (n_snapshots, nx, ny, nz)
    - ``fields/iterations``: iteration number of each snapshot
    - ``diagnostics``: one dataset per StepDiagnostics field

    Example:
        >>> writer = HDF5SnapshotWriter("results.h5", grid, time_state, spec, material)
        >>> stepper = TimeStepper(..., snapshot_writer=writer)
        >>> stepper.run()
        >>> writer.finalize(stepper.diagnostics, runtime=12.3)
    """

    def __init__(
        self,
        filename: str | Path,
        topology: GridTopology,
        time: TimeState | None = None,
        source: SourceSpec | None = None,
        material: MaterialField | None = None,
        compression: str | None = "gzip",
        compression_level: int = 4,
    ):
        super().__init__()
        self.filename = Path(filename)
        self.topology = topology
        self.compression = compression
        self.compression_opts = compression_level if compression == "gzip" else None
        try:
            self.file = h5py.File(self.filename, "w")
        except OSError as e:
            raise SnapshotIOError(f"Cannot create {self.filename}: {e}") from e

        self._write_metadata(time, source, material)
        self.ux_dataset = None
        self.iterations_dataset = None
        self._next_snapshot_idx = 0

    def _write_metadata(self, time, source, material):
        """Write simulation metadata to HDF5 attributes."""
        from implicit_wave import __version__

        topo = self.topology

        meta = self.file.create_group("metadata")
        meta.attrs["created_at"] = datetime.now(timezone.utc).isoformat()
        meta.attrs["solver_version"] = __version__

        grid_group = self.file.create_group("grid")
        grid_group.attrs["shape"] = list(topo.shape)
        grid_group.attrs["extent"] = list(topo.extent)
        grid_group.attrs["spacing"] = list(topo.spacing)

        sim_group = self.file.create_group("simulation")
        if time is not None:
            sim_group.attrs["dt"] = time.dt
            sim_group.attrs["tmax"] = time.tmax
            sim_group.attrs["nt"] = time.nt
        if material is not None:
            sim_group.attrs["c_max"] = material.max_wave_speed
            sim_group.attrs["c_min"] = material.min_wave_speed
            if time is not None:
                sim_group.attrs["cfl_number"] = material.max_wave_speed * time.dt / topo.dx

        if source is not None:
            src = self.file.create_group("source")
            src.attrs["position"] = list(source.position)
            src.attrs["f0"] = source.f0
            src.attrs["factor"] = source.factor
            src.attrs["angle"] = source.angle
            src.attrs["wavelet"] = source.wavelet

        self.file.create_group("fields")

    def write(self, field: NDArray[np.floating], it: int) -> Path:
        shape = self.topology.shape
        try:
            if self.ux_dataset is None:
                fields_group = self.file["fields"]
                # One chunk per snapshot for efficient time-slice access
                self.ux_dataset = fields_group.create_dataset(
                    "ux",
                    shape=(0,) + shape,
                    maxshape=(None,) + shape,
                    dtype=np.float64,
                    chunks=(1,) + shape,
                    compression=self.compression,
                    compression_opts=self.compression_opts,
                )
                self.iterations_dataset = fields_group.create_dataset(
                    "iterations", shape=(0,), maxshape=(None,), dtype=np.int64, chunks=True
                )

            idx = self._next_snapshot_idx
            self.ux_dataset.resize((idx + 1,) + shape)
            self.ux_dataset[idx] = field
            self.iterations_dataset.resize((idx + 1,))
            self.iterations_dataset[idx] = it
            self.file.flush()
        except (OSError, ValueError, KeyError) as e:
            raise SnapshotIOError(f"Cannot write snapshot {it} to {self.filename}: {e}") from e

        self._next_snapshot_idx += 1
        return self.filename

    def finalize(
        self,
        diagnostics: Sequence[StepDiagnostics] = (),
        runtime: float | None = None,
        **extra_metadata,
    ) -> None:
        """Write diagnostics and final metadata, then close the file.

        Args:
            diagnostics: StepDiagnostics recorded by the stepper
            runtime: Total wall time in seconds
            **extra_metadata: Additional attributes stored in ``metadata``
        """
        if not self.file:
            return

        if diagnostics:
            diag_group = self.file.create_group("diagnostics")
            for name in _DIAGNOSTIC_FIELDS:
                diag_group.create_dataset(
                    name, data=np.array([getattr(d, name) for d in diagnostics])
                )

        self.file["simulation"].attrs["num_snapshots"] = self._next_snapshot_idx
        if runtime is not None:
            self.file["metadata"].attrs["total_runtime_seconds"] = runtime
        for key, value in extra_metadata.items():
            self.file["metadata"].attrs[key] = value

        self.file.flush()
        self.file.close()

    def close(self) -> None:
        if self.file:
            self.finalize()


class HDF5ResultReader:
    """Reader for results written by HDF5SnapshotWriter.

    Example:
        >>> with HDF5ResultReader("results.h5") as reader:
        ...     field = reader.load_snapshot(40)
        ...     norms = reader.load_diagnostics()["norm"]
    """

    def __init__(self, filename: str | Path):
        self.filename = Path(filename)
        self.file = h5py.File(filename, "r")

    def get_metadata(self) -> dict[str, Any]:
        """Extract metadata, grid, simulation and source attributes."""
        metadata = {}
        for group in ("metadata", "grid", "simulation", "source"):
            if group in self.file:
                metadata[group] = dict(self.file[group].attrs)
        return metadata

    def get_iterations(self) -> list[int]:
        """Iteration numbers of the stored snapshots."""
        if "fields/iterations" not in self.file:
            return []
        return [int(i) for i in self.file["fields/iterations"][:]]

    def get_num_snapshots(self) -> int:
        """Number of stored snapshots."""
        return len(self.get_iterations())

    def load_snapshot(self, it: int) -> NDArray[np.float64]:
        """Load the snapshot written at iteration `it`.

        Raises:
            KeyError: If no snapshot was written at that iteration
        """
        iterations = self.get_iterations()
        if it not in iterations:
            raise KeyError(f"No snapshot for iteration {it}. Available: {iterations}")
        return self.file["fields/ux"][iterations.index(it)]

    def load_diagnostics(self) -> dict[str, NDArray[np.floating]]:
        """Diagnostics datasets keyed by field name (empty if none)."""
        if "diagnostics" not in self.file:
            return {}
        return {name: ds[:] for name, ds in self.file["diagnostics"].items()}

    def close(self):
        """Close the HDF5 file."""
        if self.file:
            self.file.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
