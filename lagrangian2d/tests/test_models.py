"""Tests for the equation of state, TTS and QCS viscosity models."""

import numpy as np
import numpy.testing as npt
import pytest

from lagrangian2d.hydro import Hydro
from lagrangian2d.mesh import LagrangianMesh2d
from lagrangian2d.models import (HydroModel, PressureModel, StabilizationModel,
                                 ViscosityModel)
from lagrangian2d.polygas import PolyGas
from lagrangian2d.qcs import QCS
from lagrangian2d.tts import TTS


def predicted_state(hydro):
    """Fill the predicted geometry and zone state of an unmoved mesh."""
    mesh = hydro.mesh
    mesh.pt_x_pred[:] = mesh.pt_x
    mesh.zone_vol0[:] = mesh.zone_vol
    for sch in range(mesh.num_side_chunks()):
        mesh.calc_predicted_geometry(sch)
    hydro.zone_rho_pred[:] = hydro.zone_rho
    hydro.pressure_model.calc_eos(hydro.zone_rho, hydro.zone_energy_density,
                                  hydro.zone_pressure, hydro.zone_sound_speed,
                                  0, mesh.num_zones)


@pytest.fixture
def hydro():
    mesh = LagrangianMesh2d.rectangular(4, 4, geometry='planar', zone_chunk_size=5)
    return Hydro(mesh, rho_init=1.0, energy_init=1.5)


def test_models_are_abstract():
    with pytest.raises(TypeError):
        HydroModel()
    with pytest.raises(TypeError):
        PressureModel()
    assert issubclass(PolyGas, PressureModel)
    assert issubclass(QCS, ViscosityModel)
    assert issubclass(TTS, StabilizationModel)


def test_polygas_eos():
    pgas = PolyGas(gamma=1.4)
    zr = np.array([1.0, 2.0])
    ze = np.array([2.5, 1.0])
    zp = np.zeros(2)
    zss = np.zeros(2)
    z0per = pgas.calc_eos(zr, ze, zp, zss, 0, 2)

    npt.assert_allclose(zp, 0.4 * zr * ze)
    npt.assert_allclose(zss, np.sqrt(1.4 * zp / zr))
    npt.assert_allclose(z0per, 0.4 * zr)


def test_polygas_sound_speed_floor():
    pgas = PolyGas(gamma=5.0 / 3.0, ssmin=0.1)
    zp = np.zeros(1)
    zss = np.zeros(1)
    pgas.calc_eos(np.ones(1), np.zeros(1), zp, zss, 0, 1)
    assert zp[0] == 0.0
    assert zss[0] == pytest.approx(0.1)


def test_pressure_unchanged_without_compression(hydro):
    predicted_state(hydro)
    hydro.pressure_model.calc_state_at_half(hydro, 1.e-3, 0, hydro.mesh.num_zones)
    npt.assert_allclose(hydro.zone_pressure, (2.0 / 3.0) * 1.5)


def test_pressure_rises_under_compression(hydro):
    predicted_state(hydro)
    hydro.mesh.zone_vol_pred[:] = 0.9 * hydro.mesh.zone_vol0
    hydro.pressure_model.calc_state_at_half(hydro, 1.e-3, 0, hydro.mesh.num_zones)
    assert np.all(hydro.zone_pressure > 1.0)


def test_pressure_force_points_outward(hydro):
    predicted_state(hydro)
    sf = np.zeros((hydro.mesh.num_sides, 2))
    hydro.pressure_model.calc_force(hydro, sf, 0, hydro.mesh.num_sides)
    npt.assert_allclose(sf, -hydro.zone_pressure[hydro.mesh.map_side2zone, np.newaxis]
                        * hydro.mesh.side_surfp)
    # the corner at the lower left of zone 0 is pushed away from the zone
    s3 = hydro.mesh.map_side2side_prev[0]
    fc = sf[0] - sf[s3]
    assert fc[0] < 0.0
    assert fc[1] < 0.0


def test_tts_vanishes_on_undistorted_mesh(hydro):
    predicted_state(hydro)
    sf = np.ones((hydro.mesh.num_sides, 2))
    TTS().calc_force(hydro, sf, 0, hydro.mesh.num_sides)
    npt.assert_allclose(sf, 0.0, atol=1e-14)


def test_tts_resists_distortion(hydro):
    mesh = hydro.mesh
    predicted_state(hydro)
    # shift an interior point: sides on one side shrink, the others grow
    mesh.pt_x_pred[6, 0] += 0.05
    for sch in range(mesh.num_side_chunks()):
        mesh.calc_predicted_geometry(sch)
    sf = np.zeros((mesh.num_sides, 2))
    TTS(alfa=0.5).calc_force(hydro, sf, 0, mesh.num_sides)
    assert np.abs(sf).max() > 0.0


def test_qcs_zero_at_rest(hydro):
    predicted_state(hydro)
    sf = np.ones((hydro.mesh.num_sides, 2))
    QCS().calc_force(hydro, sf, 0, hydro.mesh.num_sides)
    npt.assert_array_equal(sf, 0.0)
    npt.assert_array_equal(hydro.zone_dvel, 0.0)


def test_qcs_zero_for_uniform_translation(hydro):
    predicted_state(hydro)
    hydro.pt_vel[:, 0] = 1.0
    sf = np.ones((hydro.mesh.num_sides, 2))
    QCS(q1=0.0, q2=2.0).calc_force(hydro, sf, 0, hydro.mesh.num_sides)
    npt.assert_allclose(sf, 0.0, atol=1e-14)


def test_qcs_acts_in_compression(hydro):
    predicted_state(hydro)
    hydro.pt_vel[:] = -hydro.mesh.pt_x
    sf = np.zeros((hydro.mesh.num_sides, 2))
    QCS().calc_force(hydro, sf, 0, hydro.mesh.num_sides)
    assert np.abs(sf).max() > 0.0
    assert np.all(hydro.zone_dvel > 0.0)


def test_qcs_chunked_matches_whole(hydro):
    predicted_state(hydro)
    hydro.pt_vel[:] = -hydro.mesh.pt_x
    mesh = hydro.mesh
    qcs = QCS(q1=0.1)

    whole = np.zeros((mesh.num_sides, 2))
    qcs.calc_force(hydro, whole, 0, mesh.num_sides)
    dvel_whole = hydro.zone_dvel.copy()

    chunked = np.zeros((mesh.num_sides, 2))
    for sch in range(mesh.num_side_chunks()):
        sfirst, slast = mesh.side_chunk_range(sch)
        qcs.calc_force(hydro, chunked, sfirst, slast)

    npt.assert_allclose(chunked, whole, rtol=1e-14, atol=1e-15)
    npt.assert_allclose(hydro.zone_dvel, dvel_whole, rtol=1e-14)


def test_custom_model_plugs_into_cycle():
    class NoStabilization(StabilizationModel):
        calls = 0

        def calc_force(self, hydro, sf, sfirst, slast):
            NoStabilization.calls += 1
            sf[sfirst:slast] = 0.0

    mesh = LagrangianMesh2d.rectangular(3, 3, zone_chunk_size=4)
    h = Hydro(mesh, stabilization_model=NoStabilization(), energy_init=1.0)
    h.do_cycle(1.e-4)
    assert NoStabilization.calls == mesh.num_side_chunks()
    npt.assert_array_equal(h.side_force_tts, 0.0)
