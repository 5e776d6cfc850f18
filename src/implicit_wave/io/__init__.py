"""Snapshot output for implicit wave simulations."""

from implicit_wave.io.base import SnapshotWriter
from implicit_wave.io.hdf5 import HDF5ResultReader, HDF5SnapshotWriter
from implicit_wave.io.matlab import MatlabSnapshotWriter, read_matlab_snapshot

__all__ = [
    "SnapshotWriter",
    "MatlabSnapshotWriter",
    "read_matlab_snapshot",
    "HDF5SnapshotWriter",
    "HDF5ResultReader",
]
