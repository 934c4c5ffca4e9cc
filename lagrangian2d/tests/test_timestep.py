"""Tests for hydro time step limits and global time step selection."""

import numpy as np
import pytest

from lagrangian2d.parallel import global_min_timestep
from lagrangian2d.timestep import (DT_SENTINEL, GlobalTimestepper, TimeStep,
                                   calc_dt_courant, calc_dt_hydro,
                                   calc_dt_volume)


def zone_data(n=6):
    return dict(zone_dl=np.full(n, 0.1), zone_dvel=np.zeros(n),
                zone_sound_speed=np.ones(n), zone_vol=np.ones(n),
                zone_vol0=np.ones(n))


def test_courant_limit():
    zdl = np.array([0.1, 0.05, 0.2])
    zss = np.array([1.0, 1.0, 1.0])
    dt, z = calc_dt_courant(zdl, np.zeros(3), zss, 0.5, 0, 3)
    assert dt == pytest.approx(0.025)
    assert z == 1


def test_courant_uses_larger_of_dvel_and_sound_speed():
    zdl = np.full(2, 0.1)
    zss = np.ones(2)
    zdu = np.array([0.0, 4.0])
    dt, z = calc_dt_courant(zdl, zdu, zss, 1.0, 0, 2)
    assert dt == pytest.approx(0.025)
    assert z == 1


def test_courant_decreases_with_smaller_zone_or_faster_sound():
    d = zone_data()
    base = calc_dt_hydro(1.e-3, 0, 6, cfl=0.6, cflv=0.1, **d)

    d['zone_dl'][3] = 0.05
    smaller = calc_dt_hydro(1.e-3, 0, 6, cfl=0.6, cflv=0.1, **d)
    assert smaller.dt < base.dt

    d['zone_sound_speed'][4] = 10.0
    faster = calc_dt_hydro(1.e-3, 0, 6, cfl=0.6, cflv=0.1, **d)
    assert faster.dt < smaller.dt
    assert faster.message == "Hydro Courant limit for z = 4"


def test_volume_limit():
    zvol = np.array([1.0, 1.1, 0.95])
    zvol0 = np.ones(3)
    dt, z = calc_dt_volume(zvol, zvol0, 1.e-2, 0.1, 0, 3)
    assert dt == pytest.approx(1.e-2)
    assert z == 1

    zvol[2] = 0.8
    dt2, z2 = calc_dt_volume(zvol, zvol0, 1.e-2, 0.1, 0, 3)
    assert dt2 < dt
    assert z2 == 2


def test_static_volume_names_first_zone():
    dt, z = calc_dt_volume(np.ones(4), np.ones(4), 1.e-2, 0.1, 2, 4)
    assert dt > 1.e90
    assert z == 2


def test_volume_limit_message():
    d = zone_data()
    d['zone_vol'][5] = 2.0
    ts = calc_dt_hydro(1.e-2, 0, 6, cfl=0.6, cflv=0.1, **d)
    assert ts.dt == pytest.approx(1.e-3)
    assert ts.message == "Hydro dV/V limit for z = 5"


def test_chunk_message_uses_global_zone_index():
    d = zone_data(10)
    d['zone_dl'][7] = 0.01
    ts = calc_dt_hydro(1.e-3, 5, 10, cfl=0.6, cflv=0.1, **d)
    assert ts.message == "Hydro Courant limit for z = 7"


def test_merge_picks_minimum():
    candidates = [TimeStep(3.0, "a"), TimeStep(1.0, "b"), TimeStep(2.0, "c")]
    assert global_min_timestep(candidates) == TimeStep(1.0, "b")


def test_merge_tie_keeps_first():
    candidates = [TimeStep(1.0, "first"), TimeStep(1.0, "second")]
    assert global_min_timestep(candidates).message == "first"
    assert global_min_timestep(candidates[::-1]).message == "second"


def test_merge_of_nothing_is_unlimited():
    assert global_min_timestep([]).dt == DT_SENTINEL


def test_initial_timestep():
    ts = GlobalTimestepper(dtinit=1.e-3, dtmax=1.e-2, tstop=1.0)
    assert ts.compute_timestep(0, 0.0) == 1.e-3
    assert ts.message == "Initial timestep"


def test_dtmax_applies_on_first_cycle():
    ts = GlobalTimestepper(dtinit=1.0, dtmax=1.e-2, tstop=1.0)
    assert ts.compute_timestep(0, 0.0) == 1.e-2
    assert ts.message == "Global maximum (dtmax)"


def test_recovery_growth():
    ts = GlobalTimestepper(dtinit=1.e-3, dtmax=1.0, dtfac=1.2, tstop=10.0)
    ts.compute_timestep(0, 0.0)
    dt = ts.compute_timestep(1, 1.e-3, TimeStep(1.0, "Hydro Courant limit for z = 0"))
    assert dt == pytest.approx(1.2e-3)
    assert ts.message == "Recovery: dt = dtfac*dtlast"


def test_hydro_recommendation_wins():
    ts = GlobalTimestepper(dtinit=1.e-3, dtmax=1.0, tstop=10.0)
    ts.compute_timestep(0, 0.0)
    dt = ts.compute_timestep(1, 1.e-3, TimeStep(5.e-4, "Hydro dV/V limit for z = 3"))
    assert dt == 5.e-4
    assert ts.message == "Hydro dV/V limit for z = 3"


def test_resize_to_hit_tstop():
    ts = GlobalTimestepper(dtinit=0.3, dtmax=1.0, tstop=1.0)
    dt = ts.compute_timestep(0, 0.9)
    assert dt == pytest.approx(0.1)
    assert ts.message == "Resize to hit tstop"


def test_non_positive_timestep_raises():
    ts = GlobalTimestepper(dtinit=0.1, tstop=1.0)
    with pytest.raises(ValueError):
        ts.compute_timestep(0, 1.0)


def test_diagnostics():
    ts = GlobalTimestepper(dtinit=1.e-3, dtmax=1.0, tstop=10.0)
    assert ts.get_diagnostics()['total_steps'] == 0
    ts.compute_timestep(0, 0.0)
    ts.compute_timestep(1, 1.e-3)
    diag = ts.get_diagnostics()
    assert diag['total_steps'] == 2
    assert diag['min_dt'] == pytest.approx(1.e-3)
    assert diag['max_dt'] == pytest.approx(1.2e-3)
