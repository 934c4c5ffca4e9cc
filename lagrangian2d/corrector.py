"""
Corrector stage of the hydro cycle.

The corrector applies the half-step forces over the full time step: it
moves the points, recomputes the geometry, updates zone energy and density
and recommends the next time step. The driver dispatches it as a single
unit of work and waits for the recommendation.
"""

from dataclasses import dataclass

import numpy as np
from numba import njit

from .parallel import global_min_timestep
from .timestep import TimeStep, calc_dt_hydro

FUZZ = 1.e-99


@dataclass(frozen=True)
class CorrectorTaskArgs:
    """
    Scalar configuration handed to the corrector.

    Attributes:
        dt (float): Time step of the cycle
        cfl (float): Courant number
        cflv (float): Maximum relative volume change per step
        num_points, num_sides, num_zones (int): Entity counts
        point_chunk_CRS, side_chunk_CRS, zone_chunk_CRS (np.ndarray): Chunks
    """
    dt: float
    cfl: float
    cflv: float
    num_points: int
    num_sides: int
    num_zones: int
    point_chunk_CRS: np.ndarray
    side_chunk_CRS: np.ndarray
    zone_chunk_CRS: np.ndarray


class CorrectorTask:
    """
    Full-step update of points and zones.

    Phases (each one a barrier over its chunks):

    1. points: boundary conditions, acceleration, velocity and position
    2. sides: final geometry and zone work
    3. zones: work rate, energy density and density
    4. zones: time step recommendation, merged over chunks

    Attributes:
        args (CorrectorTaskArgs): Cycle configuration
        hydro (Hydro): Field arrays, mesh, boundaries and executor
    """

    def __init__(self, args: CorrectorTaskArgs, hydro):
        self.args = args
        self.hydro = hydro
        self.mesh = hydro.mesh

    def execute(self) -> TimeStep:
        executor = self.hydro.executor
        num_pt_chunks = len(self.args.point_chunk_CRS) - 1
        num_side_chunks = len(self.args.side_chunk_CRS) - 1
        num_zone_chunks = len(self.args.zone_chunk_CRS) - 1

        executor.map_chunks(self._advance_points, num_pt_chunks)
        executor.map_chunks(self._update_geometry_and_work, num_side_chunks)
        executor.map_chunks(self._update_zones, num_zone_chunks)
        candidates = executor.map_chunks(self._recommend_dt, num_zone_chunks)
        return global_min_timestep(candidates)

    def _advance_points(self, pch: int):
        h = self.hydro
        m = self.mesh
        pfirst = int(self.args.point_chunk_CRS[pch])
        plast = int(self.args.point_chunk_CRS[pch + 1])

        for bc in h.bcs:
            bc.apply_fixed_bc(h.pt_vel0, h.pt_force, pfirst, plast)

        calc_accel(h.pt_force, h.pt_mass, h.pt_accel, pfirst, plast)
        adv_pos_full(self.args.dt, h.pt_vel0, h.pt_accel, m.pt_x0,
                     h.pt_vel, m.pt_x, pfirst, plast)

    def _update_geometry_and_work(self, sch: int):
        h = self.hydro
        m = self.mesh
        sfirst = int(self.args.side_chunk_CRS[sch])
        slast = int(self.args.side_chunk_CRS[sch + 1])
        zfirst = m.side_zone_chunks_first(sch)
        zlast = m.side_zone_chunks_last(sch)

        m.calc_ctrs(sch, m.pt_x, m.edge_x, m.zone_x)
        m.calc_vols(sch, m.pt_x, m.zone_x, m.side_area, m.side_vol,
                    m.zone_area, m.zone_vol)

        h.zone_work[zfirst:zlast] = 0.0
        calc_work(self.args.dt, m.map_side2pt1, m.map_side2pt2,
                  m.map_side2zone, h.side_force_pres, h.side_force_visc,
                  h.pt_vel, h.pt_vel0, m.pt_x_pred, m.cylindrical,
                  h.zone_energy_tot, h.zone_work, sfirst, slast)

    def _update_zones(self, zch: int):
        h = self.hydro
        m = self.mesh
        zfirst = int(self.args.zone_chunk_CRS[zch])
        zlast = int(self.args.zone_chunk_CRS[zch + 1])

        calc_work_rate(self.args.dt, m.zone_vol, m.zone_vol0, h.zone_work,
                       h.zone_pressure, h.zone_work_rate, zfirst, zlast)
        calc_energy(h.zone_energy_tot, h.zone_mass, h.zone_energy_density,
                    zfirst, zlast)
        calc_rho(m.zone_vol, h.zone_mass, h.zone_rho, zfirst, zlast)

    def _recommend_dt(self, zch: int) -> TimeStep:
        h = self.hydro
        m = self.mesh
        zfirst = int(self.args.zone_chunk_CRS[zch])
        zlast = int(self.args.zone_chunk_CRS[zch + 1])
        return calc_dt_hydro(self.args.dt, zfirst, zlast, m.zone_dl,
                             h.zone_dvel, h.zone_sound_speed, self.args.cfl,
                             m.zone_vol, m.zone_vol0, self.args.cflv)


@njit(nogil=True)
def calc_accel(pf, pmass, pa, pfirst, plast):
    """Point acceleration; massless points get a fuzz-floored mass."""
    for p in range(pfirst, plast):
        m = max(pmass[p], FUZZ)
        pa[p, 0] = pf[p, 0] / m
        pa[p, 1] = pf[p, 1] / m


@njit(nogil=True)
def adv_pos_full(dt, pu0, pa, px0, pu, px, pfirst, plast):
    """Full-step velocity, then trapezoidal position update."""
    for p in range(pfirst, plast):
        for k in range(2):
            pu[p, k] = pu0[p, k] + pa[p, k] * dt
            px[p, k] = px0[p, k] + 0.5 * (pu[p, k] + pu0[p, k]) * dt


@njit(nogil=True)
def calc_rho(zvol, zm, zr, zfirst, zlast):
    for z in range(zfirst, zlast):
        zr[z] = zm[z] / zvol[z]


@njit(nogil=True)
def calc_work(dt, map_side2pt1, map_side2pt2, map_side2zone, sfp, sfq,
              pu, pu0, px_pred, cylindrical, zetot, zw, sfirst, slast):
    """
    Work done on each zone over the step.

    For each side, the force of the zone on its two points is dotted with
    the average point velocity over the step; in cylindrical geometry each
    term is weighted by the point radius at the half step.
    """
    dth = 0.5 * dt

    for s in range(sfirst, slast):
        p1 = map_side2pt1[s]
        p2 = map_side2pt2[s]
        z = map_side2zone[s]

        sftx = sfp[s, 0] + sfq[s, 0]
        sfty = sfp[s, 1] + sfq[s, 1]
        sd1 = sftx * (pu0[p1, 0] + pu[p1, 0]) + sfty * (pu0[p1, 1] + pu[p1, 1])
        sd2 = -(sftx * (pu0[p2, 0] + pu[p2, 0]) + sfty * (pu0[p2, 1] + pu[p2, 1]))
        if cylindrical:
            dwork = -dth * (sd1 * px_pred[p1, 0] + sd2 * px_pred[p2, 0])
        else:
            dwork = -dth * (sd1 + sd2)

        zetot[z] += dwork
        zw[z] += dwork


@njit(nogil=True)
def calc_work_rate(dt, zvol, zvol0, zw, zp, zwrate, zfirst, zlast):
    dtinv = 1.0 / dt
    for z in range(zfirst, zlast):
        dvol = zvol[z] - zvol0[z]
        zwrate[z] = (zw[z] + zp[z] * dvol) * dtinv


@njit(nogil=True)
def calc_energy(zetot, zm, ze, zfirst, zlast):
    for z in range(zfirst, zlast):
        ze[z] = zetot[z] / (zm[z] + FUZZ)
