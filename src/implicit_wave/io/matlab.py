"""MATLAB ASCII snapshot files.

Each snapshot is a standalone ``<prefix>_<it>.m`` script that defines one
column vector. Values are written in natural grid order with i varying
fastest, so ``reshape(ux_40, nx, ny, nz)`` in MATLAB/Octave recovers the
3D field.

Example file::

    %Vec Object: ux_40 1 MPI processes
    %  type: seq
    %  shape: 25 25 25
    ux_40 = [
    0.0000000000000000e+00
    ...
    ];
"""

from __future__ import annotations

import re
from pathlib import Path

import numpy as np
from numpy.typing import NDArray

from implicit_wave.errors import SnapshotIOError

from .base import SnapshotWriter

_VALUE_FORMAT = "%.16e"


class MatlabSnapshotWriter(SnapshotWriter):
    """Write each snapshot to its own MATLAB ASCII file.

    Args:
        directory: Output directory (created on first write)
        prefix: File name prefix; files are named ``{prefix}_{it}.m``
        variable: MATLAB variable name prefix

    Example:
        >>> writer = MatlabSnapshotWriter("snapshots")
        >>> writer(field, 40)
        PosixPath('snapshots/tmp_Bvec_40.m')
    """

    def __init__(
        self,
        directory: str | Path = ".",
        prefix: str = "tmp_Bvec",
        variable: str = "ux",
    ):
        super().__init__()
        self.directory = Path(directory)
        self.prefix = prefix
        self.variable = variable

    def path_for(self, it: int) -> Path:
        """Deterministic file path for iteration `it`."""
        return self.directory / f"{self.prefix}_{it}.m"

    def write(self, field: NDArray[np.floating], it: int) -> Path:
        path = self.path_for(it)
        name = f"{self.variable}_{it}"
        values = np.asarray(field, dtype=np.float64)
        shape = " ".join(str(n) for n in values.shape)

        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with open(path, "w") as f:
                f.write(f"%Vec Object: {name} 1 MPI processes\n")
                f.write("%  type: seq\n")
                f.write(f"%  shape: {shape}\n")
                f.write(f"{name} = [\n")
                np.savetxt(f, values.ravel(order="F"), fmt=_VALUE_FORMAT)
                f.write("];\n")
        except OSError as e:
            raise SnapshotIOError(f"Cannot write snapshot {path}: {e}") from e
        return path


def read_matlab_snapshot(path: str | Path) -> NDArray[np.float64]:
    """Read a snapshot written by MatlabSnapshotWriter back as a 3D array."""
    text = Path(path).read_text()
    match = re.search(r"^%\s+shape:\s*([\d ]+)$", text, flags=re.MULTILINE)
    if match is None:
        raise ValueError(f"No shape header in {path}")
    shape = tuple(int(n) for n in match.group(1).split())

    body = text[text.index("[") + 1 : text.rindex("]")]
    values = np.array(body.split(), dtype=np.float64)
    return values.reshape(shape, order="F")
