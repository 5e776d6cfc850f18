"""Common interface for snapshot writers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

import numpy as np
from numpy.typing import NDArray


class SnapshotWriter(ABC):
    """Writes a field snapshot tagged with its iteration number.

    Writers are called as ``writer(field, it)`` by the TimeStepper at every
    reporting step. Implementations raise SnapshotIOError when the snapshot
    cannot be written; the stepper logs the failure and keeps running.
    """

    def __init__(self):
        self.written: list[int] = []

    @abstractmethod
    def write(self, field: NDArray[np.floating], it: int) -> Path:
        """Write one snapshot and return the path it was written to."""

    def __call__(self, field: NDArray[np.floating], it: int) -> Path:
        path = self.write(field, it)
        self.written.append(it)
        return path

    def close(self) -> None:
        """Release any open resources."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
