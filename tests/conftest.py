"""Pytest configuration for the implicit-wave test suite.

Shared fixtures build a small 9x9x9 model with 40 m spacing (the same
spacing as the 25x25x25 reference run) so that the stepping tests stay
fast while exercising the same coefficients.
"""

import pytest

from implicit_wave import (
    GridTopology,
    MaterialField,
    SimulationConfig,
    SourceSpec,
    TimeState,
    TimeStepper,
)


@pytest.fixture
def small_grid():
    """9x9x9 grid over a 360 m cube (dx = 40 m)."""
    return GridTopology(shape=(9, 9, 9), extent=(360.0, 360.0, 360.0))


@pytest.fixture
def small_material(small_grid):
    """Uniform medium matching the reference run."""
    return MaterialField.uniform(small_grid, c11=1800.0, rho=1000.0)


@pytest.fixture
def small_source():
    """Ricker source at the centre of the small grid."""
    return SourceSpec(position=(4, 4, 4), f0=70.0, factor=1e10, angle=90.0)


@pytest.fixture
def small_time(small_grid, small_material):
    """Time stepping for tmax = 0.5 s (22 steps)."""
    return TimeState.from_cfl(small_grid, small_material, tmax=0.5)


@pytest.fixture
def small_stepper(small_grid, small_material, small_source, small_time):
    """Stepper on the small grid, reporting every 10 steps."""
    return TimeStepper(
        small_grid,
        small_material,
        small_source,
        small_time,
        report_interval=10,
    )


@pytest.fixture
def reference_config():
    """Default configuration: the 25x25x25 reference run."""
    return SimulationConfig()
