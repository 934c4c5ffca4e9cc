"""Tests for parameter loading, the simulation driver and the CLI."""

import argparse

import matplotlib
matplotlib.use("Agg")

import numpy as np
import pytest

from lagrangian2d.__main__ import main, parse_override
from lagrangian2d.params import load_params, problem_inputs_file
from lagrangian2d.simulation import Simulation, run

SMALL_SEDOV = {"mesh.nzones_x": 8, "mesh.nzones_y": 8,
               "mesh.xmax": 1.0, "mesh.ymax": 1.0,
               "mesh.subregion_xmax": 0.125, "mesh.subregion_ymax": 0.125,
               "driver.cstop": 10, "driver.verbose": 0}


def test_defaults_and_inputs():
    rp = load_params("sedov")
    assert rp.get_param("mesh.nzones_x") == 30
    assert rp.get_param("hydro.energy_init_sub") == pytest.approx(245.8)
    # untouched defaults come through
    assert rp.get_param("qcs.q2") == pytest.approx(2.0)
    assert rp.get_param("mesh.xlboundary") == "reflect"


def test_overrides():
    rp = load_params("noh", overrides={"mesh.nzones_x": 4})
    assert rp.get_param("mesh.nzones_x") == 4

    with pytest.raises(KeyError):
        load_params("noh", overrides={"mesh.no_such_key": 1})


def test_missing_inputs_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_params(inputs_file=str(tmp_path / "inputs.none"))
    assert problem_inputs_file("noh").endswith("inputs.noh")


def test_short_sedov_run():
    sim = run("sedov", overrides=SMALL_SEDOV)

    assert sim.cycle == 10
    assert sim.time > 0.0
    cons = sim.check_conservation()
    assert cons["mass_error"] == 0.0
    assert cons["kinetic_energy"] > 0.0
    assert cons["energy_error"] < 0.1

    diag = sim.get_diagnostics()
    assert diag["cycle"] == 10
    assert diag["timestepper"]["total_steps"] == 10
    assert not diag["mesh_quality"]["is_tangled"]


def test_sedov_requires_subregion():
    sim = Simulation("sedov", overrides={"mesh.subregion_xmin": 1.e99})
    with pytest.raises(ValueError):
        sim.initialize()


def test_short_noh_run():
    sim = Simulation("noh", overrides={"mesh.nzones_x": 6, "mesh.nzones_y": 6,
                                       "driver.cstop": 5, "driver.verbose": 0})
    sim.initialize()
    r = np.linalg.norm(sim.mesh.pt_x, axis=1)
    assert np.all(np.sum(sim.hydro.pt_vel * sim.mesh.pt_x, axis=1)[r > 0] < 0.0)

    sim.evolve()
    assert sim.cycle == 5
    assert np.all(np.isfinite(sim.hydro.zone_rho))
    # converging flow compresses the gas
    assert sim.hydro.zone_rho.max() > 1.0
    sim.finalize()


def test_noh_requires_inward_velocity():
    sim = Simulation("noh", overrides={"hydro.vel_init_radial": 1.0})
    with pytest.raises(ValueError):
        sim.initialize()


def test_threaded_run_matches_serial():
    serial = run("sedov", overrides=dict(SMALL_SEDOV, **{"driver.cstop": 4}))
    threaded = run("sedov", overrides=dict(SMALL_SEDOV, **{
        "driver.cstop": 4, "hydro.num_workers": 3,
        "mesh.zone_chunk_size": 7, "mesh.pt_chunk_size": 11}))

    np.testing.assert_allclose(threaded.mesh.pt_x, serial.mesh.pt_x,
                               rtol=1e-13, atol=1e-15)
    np.testing.assert_allclose(threaded.hydro.zone_rho, serial.hydro.zone_rho,
                               rtol=1e-12)
    assert threaded.time == pytest.approx(serial.time, rel=1e-12)


def test_cstop_warning():
    sim = Simulation("sedov", overrides=dict(SMALL_SEDOV, **{"driver.cstop": 2}))
    sim.initialize()
    with pytest.warns(UserWarning, match="cycle limit"):
        sim.evolve()
    sim.shutdown()


def test_dovis():
    sim = Simulation("sedov", overrides=dict(SMALL_SEDOV, **{"driver.cstop": 2}))
    sim.initialize()
    sim.evolve()
    fig = sim.dovis()
    assert len(fig.axes) >= 4
    sim.shutdown()


def test_parse_override():
    assert parse_override("mesh.nzones_x=12") == ("mesh.nzones_x", 12)
    assert parse_override("driver.tstop=0.5") == ("driver.tstop", 0.5)
    assert parse_override("mesh.geometry=planar") == ("mesh.geometry", "planar")
    with pytest.raises(argparse.ArgumentTypeError):
        parse_override("mesh.nzones_x")


def test_cli(tmp_path):
    plot = tmp_path / "noh.png"
    sim = main(["noh", "mesh.nzones_x=4", "mesh.nzones_y=4", "driver.cstop=3",
                "driver.verbose=0", "--plot", str(plot)])
    assert sim.cycle == 3
    assert plot.exists()


def test_overrides_on_given_params():
    rp = load_params("noh")
    sim = Simulation("noh", rp=rp, overrides={"mesh.nzones_x": 5})
    assert sim.rp.get_param("mesh.nzones_x") == 5

    with pytest.raises(KeyError):
        Simulation("noh", rp=load_params("noh"), overrides={"mesh.no_such_key": 1})


def test_run_stops_pools_on_failure(monkeypatch):
    started = []

    def failing_cycle(self, dt):
        started.append(self)
        raise RuntimeError("cycle failed")

    monkeypatch.setattr(Simulation, "advance_timestep", failing_cycle)
    with pytest.raises(RuntimeError, match="cycle failed"):
        run("sedov", overrides=dict(SMALL_SEDOV, **{"hydro.num_workers": 2}))

    assert len(started) == 1
    assert not started[0].executor.active
