"""Directional point source for implicit wave simulation.

This module provides the source time function and its projection onto
force components at a fixed grid node.

Classes:
    SourceSpec: Immutable source parameters (location, amplitude, f0, angle)
    Force: Force components (fx, fy, fz) for one time step
    SourceModel: Evaluates the source for an iteration number

Example:
    >>> from implicit_wave import SourceSpec, SourceModel
    >>> spec = SourceSpec(position=(12, 12, 12), f0=70.0, factor=1e10, angle=90.0)
    >>> force = SourceModel(spec).evaluate(it=1, dt=40.0 / 1800.0)
    >>> force.fx == force.fz
    True
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

import numpy as np
from numpy.typing import NDArray

from implicit_wave.errors import InvalidGridDimension

from .grid import GridTopology

WaveletType = Literal["ricker", "gaussian", "gaussian_derivative"]
WAVELETS: tuple[str, ...] = ("ricker", "gaussian", "gaussian_derivative")

# Source delay in periods of the dominant frequency: t0 = 1.2 / f0
DELAY_PERIODS = 1.2


@dataclass(frozen=True)
class SourceSpec:
    """Point source parameters.

    Args:
        position: Grid index (isrc, jsrc, ksrc), must be an interior node
        f0: Dominant frequency in Hz
        factor: Amplitude factor
        angle: Force azimuth in degrees
        wavelet: Source time function: "ricker" (default, second derivative
            of a Gaussian), "gaussian", or "gaussian_derivative"

    Example:
        >>> spec = SourceSpec(position=(12, 12, 12), f0=70.0, factor=1e10)
    """

    position: tuple[int, int, int]
    f0: float
    factor: float = 1.0
    angle: float = 90.0
    wavelet: WaveletType = "ricker"

    def __post_init__(self):
        if len(self.position) != 3:
            raise ValueError(f"position must have 3 components, got {self.position}")
        object.__setattr__(self, "position", tuple(int(x) for x in self.position))
        if not np.isfinite(self.f0) or self.f0 <= 0:
            raise ValueError(f"f0 must be positive, got {self.f0}")
        if not np.isfinite(self.factor):
            raise ValueError(f"factor must be finite, got {self.factor}")
        if self.wavelet not in WAVELETS:
            raise ValueError(
                f"Unknown wavelet '{self.wavelet}'. Valid wavelets: {list(WAVELETS)}"
            )

    @property
    def t0(self) -> float:
        """Source delay in seconds."""
        return DELAY_PERIODS / self.f0

    @property
    def angle_radians(self) -> float:
        """Force azimuth in radians."""
        return float(np.deg2rad(self.angle))

    def validate_for(self, topology: GridTopology) -> None:
        """Check that the source sits on an interior node of `topology`.

        Raises:
            InvalidGridDimension: If the source is outside the grid or on
                the Dirichlet boundary, where it would never be injected
        """
        i, j, k = self.position
        if not topology.contains(i, j, k) or topology.is_boundary(i, j, k):
            raise InvalidGridDimension(
                f"Source position {self.position} must be an interior node "
                f"of grid {topology.shape}"
            )


@dataclass(frozen=True)
class Force:
    """Force components injected at the source node for one step."""

    fx: float
    fy: float
    fz: float
    amplitude: float

    def as_tuple(self) -> tuple[float, float, float]:
        return (self.fx, self.fy, self.fz)


class SourceModel:
    """Source time function and force projection.

    The Ricker wavelet is
        a = pi^2 f0^2,  t0 = 1.2 / f0,  t = (it - 1) dt,
        s(t) = factor (1 - 2a (t - t0)^2) exp(-a (t - t0)^2)

    and it is projected with the azimuth angle as
        fx = sin(angle) s,  fy = cos(angle) s,  fz = sin(angle) s.

    The vertical component reuses the x projection.

    Evaluation is a pure function of (it, dt, spec).
    """

    def __init__(self, spec: SourceSpec):
        self.spec = spec

    def time_function(self, t: float | NDArray[np.floating]) -> float | NDArray[np.floating]:
        """Scalar source value at time(s) `t` in seconds."""
        spec = self.spec
        a = np.pi**2 * spec.f0**2
        tau = np.asarray(t, dtype=np.float64) - spec.t0
        gauss = np.exp(-a * tau**2)

        if spec.wavelet == "ricker":
            values = spec.factor * (1.0 - 2.0 * a * tau**2) * gauss
        elif spec.wavelet == "gaussian":
            values = spec.factor * gauss
        else:  # gaussian_derivative
            values = -spec.factor * 2.0 * a * tau * gauss

        if np.ndim(values) == 0:
            return float(values)
        return values

    def time(self, it: int, dt: float) -> float:
        """Physical time of iteration `it` (iterations start at 1)."""
        return (it - 1) * dt

    def evaluate(self, it: int, dt: float) -> Force:
        """Force components for iteration `it`."""
        s = self.time_function(self.time(it, dt))
        angle = self.spec.angle_radians
        return Force(
            fx=float(np.sin(angle) * s),
            fy=float(np.cos(angle) * s),
            fz=float(np.sin(angle) * s),
            amplitude=s,
        )

    def __repr__(self) -> str:
        spec = self.spec
        return (
            f"SourceModel(position={spec.position}, f0={spec.f0}, "
            f"factor={spec.factor:.3g}, angle={spec.angle}, wavelet='{spec.wavelet}')"
        )
