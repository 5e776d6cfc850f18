"""Tests for SimulationConfig."""

import json

import numpy as np
import pytest

from implicit_wave import (
    InvalidGridDimension,
    InvalidMaterial,
    LinearSolver,
    MaterialField,
    SimulationConfig,
    StepperState,
)


class TestDefaults:
    def test_reference_values(self, reference_config):
        assert reference_config.shape == (25, 25, 25)
        assert reference_config.extent == (1000.0, 1000.0, 1000.0)
        assert reference_config.source_position == (12, 12, 12)
        assert reference_config.f0 == 70.0
        assert reference_config.factor == 1e10
        assert reference_config.angle == 90.0

    def test_derived_time_step(self, reference_config):
        assert reference_config.dt == pytest.approx(40.0 / 1800.0)
        assert reference_config.nt == 45
        assert reference_config.cfl_number == pytest.approx(1.0)
        assert reference_config.check_stability()

    def test_builders(self, reference_config):
        topology = reference_config.build_topology()
        assert topology.spacing == (40.0, 40.0, 40.0)

        time = reference_config.build_time_state()
        assert time.nt == 45

        solver = reference_config.build_solver()
        assert isinstance(solver, LinearSolver)
        assert solver.method == "gmres"

        assert reference_config.build_decomposition().size == 1


class TestValidation:
    def test_bad_grid(self):
        with pytest.raises(InvalidGridDimension):
            SimulationConfig(shape=(2, 25, 25))

    def test_bad_material(self):
        with pytest.raises(InvalidMaterial):
            SimulationConfig(rho=0.0)

    def test_source_on_boundary(self):
        with pytest.raises(InvalidGridDimension):
            SimulationConfig(source_position=(0, 12, 12))

    def test_bad_decomposition(self):
        with pytest.raises(InvalidGridDimension):
            SimulationConfig(parts=(30, 1, 1))

    @pytest.mark.parametrize(
        "kwargs",
        [{"tmax": 0.0}, {"report_interval": 0}, {"solver": "jacobi"}, {"wavelet": "sinc"}],
    )
    def test_bad_parameters(self, kwargs):
        with pytest.raises(ValueError):
            SimulationConfig(**kwargs)

    def test_centre_source_for_custom_shape(self):
        config = SimulationConfig(shape=(9, 11, 13), extent=(360.0, 440.0, 520.0))
        assert config.source_position == (4, 5, 6)


class TestStability:
    def test_larger_dt_is_unstable(self, reference_config):
        dt = 2.0 * reference_config.dt
        assert not reference_config.check_stability(dt)

        with pytest.warns(UserWarning, match="CFL"):
            ratio = reference_config.warn_if_unstable(dt)
        assert ratio == pytest.approx(2.0)

    def test_time_step_uses_x_spacing(self):
        # dy = 20 m is finer than dx = 40 m; dt still follows dx / c11
        config = SimulationConfig(shape=(25, 25, 25), extent=(1000.0, 500.0, 1000.0))
        assert config.dt == pytest.approx(40.0 / 1800.0)
        assert config.nt == 45
        assert config.cfl_number == pytest.approx(1.0)
        assert config.build_stepper().dt == pytest.approx(config.dt)


class TestSerialization:
    def test_dict_round_trip(self, reference_config):
        data = reference_config.to_dict()

        assert data["shape"] == [25, 25, 25]
        assert "_topology" not in data
        assert SimulationConfig.from_dict(data) == reference_config

    def test_json_round_trip(self, tmp_path):
        config = SimulationConfig(shape=(9, 9, 9), extent=(360.0,) * 3, tmax=0.5, solver="direct")
        path = tmp_path / "run.json"

        config.to_json(path)

        assert json.loads(path.read_text())["solver"] == "direct"
        assert SimulationConfig.from_json(path) == config

    def test_unknown_keys_rejected(self):
        with pytest.raises(ValueError, match="Unknown configuration keys"):
            SimulationConfig.from_dict({"shape": [9, 9, 9], "resolution": 1e-3})


class TestBuildStepper:
    def test_small_run(self):
        config = SimulationConfig(
            shape=(9, 9, 9), extent=(360.0,) * 3, tmax=0.5, report_interval=10, parts=(2, 1, 1)
        )
        stepper = config.build_stepper()

        assert stepper.decomposition.size == 2
        assert stepper.time_state.nt == 22
        stepper.run()
        assert stepper.state is StepperState.COMPLETED

    def test_heterogeneous_material(self):
        config = SimulationConfig(shape=(9, 9, 9), extent=(360.0,) * 3, tmax=0.5, c11=3600.0)
        topology = config.build_topology()
        c11 = 1800.0 * (1.0 + topology.boundary_mask())
        material = MaterialField(topology, c11=c11, rho=1000.0)

        stepper = config.build_stepper(material=material)

        assert stepper.material is material
        # dt follows the fastest medium
        assert stepper.dt == pytest.approx(40.0 / 3600.0)
        assert stepper.dt == pytest.approx(config.dt)
        assert stepper.time_state.nt == config.nt
        assert stepper.cfl_number == pytest.approx(config.cfl_number)

    def test_material_faster_than_configured_c11_rejected(self):
        config = SimulationConfig(shape=(9, 9, 9), extent=(360.0,) * 3, tmax=0.5)
        topology = config.build_topology()
        c11 = 1800.0 * np.ones(topology.shape)
        c11[4, 4, 4] = 3600.0
        material = MaterialField(topology, c11=c11, rho=1000.0)

        with pytest.raises(InvalidMaterial, match="c11"):
            config.build_stepper(material=material)

    def test_material_on_other_grid_rejected(self):
        config = SimulationConfig(shape=(9, 9, 9), extent=(360.0,) * 3, tmax=0.5)
        other = SimulationConfig(shape=(11, 9, 9), extent=(440.0, 360.0, 360.0))

        with pytest.raises(InvalidMaterial, match="grid"):
            config.build_stepper(material=other.build_material())
