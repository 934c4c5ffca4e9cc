"""
Hydro cycle driver for the 2D staggered Lagrangian solver.

One call to ``Hydro.do_cycle`` advances the mesh by one explicit
predictor-corrector step:

predictor (this module)
    save start-of-cycle point state, move the points to the half step,
    recompute the geometry there, evaluate density, corner mass, pressure
    and the three side forces, difference them into corner forces and sum
    corner mass/force onto the points.

corrector (``corrector.CorrectorTask``)
    dispatched as one asynchronous unit of work; accelerates and moves the
    points over the full step, updates zone energy and density and returns
    the next time step recommendation.
"""

import numpy as np
from numba import njit
from typing import Dict, Optional, List

from pyro.util import msg

from .corrector import CorrectorTask, CorrectorTaskArgs, calc_rho
from .energy import calc_energy_totals
from .hydro_bc import create_bcs_from_params
from .models import PressureModel, ViscosityModel, StabilizationModel, create_models
from .parallel import ChunkExecutor
from .polygas import PolyGas
from .qcs import QCS
from .timestep import TimeStep
from .tts import TTS


class Hydro:
    """
    Field storage and cycle orchestration.

    Theory:
    Point (nodal) masses and forces are built from corners. The mass of
    the corner at point p1 of side s is

        m_c = rho_pred * A_z,pred * (smf[s] + smf[s3]) / 2

    with s3 the previous side in the zone, and its force is the difference
    of the total side forces F = F_pressure + F_viscosity + F_tts:

        f_c = F[s] - F[s3]

    Zone mass is set once at initialization and never recomputed, so mass
    is conserved exactly.

    Attributes:
        mesh (LagrangianMesh2d): Mesh topology and geometry
        pressure_model (PressureModel): Equation of state
        viscosity_model (ViscosityModel): Artificial viscosity
        stabilization_model (StabilizationModel): TTS force
        bcs (list): Boundary conditions applied by the corrector
        executor (ChunkExecutor): Chunk and task pools
        cfl, cflv (float): Time step control coefficients

        pt_vel, pt_vel0, pt_accel, pt_force (np.ndarray): [num_pts, 2]
        pt_mass (np.ndarray): Point mass [num_pts]
        crnr_weighted_mass (np.ndarray): Corner mass [num_sides]
        side_force_pres, side_force_visc, side_force_tts,
        crnr_force_tot (np.ndarray): [num_sides, 2]
        zone_rho, zone_rho_pred, zone_energy_density, zone_pressure,
        zone_mass, zone_energy_tot, zone_work, zone_work_rate,
        zone_sound_speed, zone_dvel (np.ndarray): [num_zones]
    """

    def __init__(self, mesh,
                 pressure_model: Optional[PressureModel] = None,
                 viscosity_model: Optional[ViscosityModel] = None,
                 stabilization_model: Optional[StabilizationModel] = None,
                 bcs: Optional[List] = None,
                 executor: Optional[ChunkExecutor] = None,
                 cfl: float = 0.6, cflv: float = 0.1,
                 rho_init: float = 1.0, energy_init: float = 0.0,
                 rho_init_sub: float = 1.0, energy_init_sub: float = 0.0,
                 vel_init_radial: float = 0.0):
        """
        Allocate fields and set the initial conditions.

        Args:
            mesh: LagrangianMesh2d
            pressure_model: Defaults to PolyGas()
            viscosity_model: Defaults to QCS()
            stabilization_model: Defaults to TTS()
            bcs: List of HydroBC (default: none)
            executor: ChunkExecutor (default: serial)
            cfl: Courant number
            cflv: Maximum relative volume change per step
            rho_init, energy_init: Bulk density and specific energy
            rho_init_sub, energy_init_sub: Values inside mesh.subregion
            vel_init_radial: Initial radial speed (0 for a fluid at rest)
        """
        self.mesh = mesh
        self.pressure_model = pressure_model if pressure_model is not None else PolyGas()
        self.viscosity_model = viscosity_model if viscosity_model is not None else QCS()
        self.stabilization_model = (stabilization_model
                                    if stabilization_model is not None else TTS())
        self.bcs = bcs if bcs is not None else []
        # a default executor belongs to this Hydro and is stopped by close()
        self._owns_executor = executor is None
        self.executor = executor if executor is not None else ChunkExecutor()

        self.cfl = cfl
        self.cflv = cflv
        self.rho_init = rho_init
        self.energy_init = energy_init
        self.rho_init_sub = rho_init_sub
        self.energy_init_sub = energy_init_sub
        self.vel_init_radial = vel_init_radial

        self._allocate_fields()
        self.init()

    def _allocate_fields(self):
        nump = self.mesh.num_pts
        nums = self.mesh.num_sides
        numz = self.mesh.num_zones

        self.pt_vel = np.zeros((nump, 2))
        self.pt_vel0 = np.zeros((nump, 2))
        self.pt_accel = np.zeros((nump, 2))
        self.pt_force = np.zeros((nump, 2))
        self.pt_mass = np.zeros(nump)

        self.crnr_weighted_mass = np.zeros(nums)
        self.side_force_pres = np.zeros((nums, 2))
        self.side_force_visc = np.zeros((nums, 2))
        self.side_force_tts = np.zeros((nums, 2))
        self.crnr_force_tot = np.zeros((nums, 2))

        self.zone_rho = np.zeros(numz)
        self.zone_rho_pred = np.zeros(numz)
        self.zone_energy_density = np.zeros(numz)
        self.zone_pressure = np.zeros(numz)
        self.zone_mass = np.zeros(numz)
        self.zone_energy_tot = np.zeros(numz)
        self.zone_work = np.zeros(numz)
        self.zone_work_rate = np.zeros(numz)
        self.zone_sound_speed = np.zeros(numz)
        self.zone_dvel = np.zeros(numz)

    def init(self):
        """Set zone and point initial conditions chunk by chunk."""
        mesh = self.mesh

        for zch in range(mesh.num_zone_chunks()):
            zfirst, zlast = mesh.zone_chunk_range(zch)

            self.zone_rho[zfirst:zlast] = self.rho_init
            self.zone_energy_density[zfirst:zlast] = self.energy_init
            self.zone_work_rate[zfirst:zlast] = 0.0

            if mesh.subregion is not None:
                xmin, xmax, ymin, ymax = mesh.subregion
                eps = 1.e-12
                zx = mesh.zone_x[zfirst:zlast]
                inside = ((zx[:, 0] > xmin - eps) & (zx[:, 0] < xmax + eps) &
                          (zx[:, 1] > ymin - eps) & (zx[:, 1] < ymax + eps))
                self.zone_rho[zfirst:zlast][inside] = self.rho_init_sub
                self.zone_energy_density[zfirst:zlast][inside] = self.energy_init_sub

            self.zone_mass[zfirst:zlast] = (self.zone_rho[zfirst:zlast] *
                                            mesh.zone_vol[zfirst:zlast])
            self.zone_energy_tot[zfirst:zlast] = (self.zone_energy_density[zfirst:zlast] *
                                                  self.zone_mass[zfirst:zlast])

        for pch in range(mesh.num_pt_chunks()):
            pfirst, plast = mesh.pt_chunk_range(pch)
            if self.vel_init_radial != 0.0:
                self.init_radial_vel(self.vel_init_radial, pfirst, plast)
            else:
                self.pt_vel[pfirst:plast] = 0.0

    def init_radial_vel(self, vel: float, pfirst: int, plast: int):
        """
        Velocity of magnitude ``vel`` pointing away from the origin.

        Points within 1e-12 of the origin are left at rest.
        """
        eps = 1.e-12
        px = self.mesh.pt_x[pfirst:plast]
        pmag = np.sqrt(px[:, 0] ** 2 + px[:, 1] ** 2)
        safe = np.where(pmag > eps, pmag, 1.0)
        pu = vel * px / safe[:, np.newaxis]
        pu[pmag <= eps] = 0.0
        self.pt_vel[pfirst:plast] = pu

    # ---- cycle ----

    def do_cycle(self, dt: float) -> TimeStep:
        """
        Advance the state by one time step.

        Args:
            dt: Time step

        Returns:
            TimeStep recommended for the next cycle
        """
        if dt <= 0.0:
            raise ValueError(f"Time step must be positive, got {dt}")

        mesh = self.mesh
        executor = self.executor

        executor.map_chunks(self._predict_points, mesh.num_pt_chunks(), dt)
        executor.map_chunks(self._predict_sides, mesh.num_side_chunks(), dt)
        executor.map_chunks(self._sum_to_points, mesh.num_pt_chunks())

        args = CorrectorTaskArgs(dt=dt, cfl=self.cfl, cflv=self.cflv,
                                 num_points=mesh.num_pts,
                                 num_sides=mesh.num_sides,
                                 num_zones=mesh.num_zones,
                                 point_chunk_CRS=mesh.pt_chunks_CRS,
                                 side_chunk_CRS=mesh.side_chunks_CRS,
                                 zone_chunk_CRS=mesh.zone_chunks_CRS)
        corrector = CorrectorTask(args, self)
        future = executor.submit_task(corrector.execute)
        return future.result()

    def _predict_points(self, pch: int, dt: float):
        mesh = self.mesh
        pfirst, plast = mesh.pt_chunk_range(pch)

        # save off point values from the previous cycle
        mesh.pt_x0[pfirst:plast] = mesh.pt_x[pfirst:plast]
        self.pt_vel0[pfirst:plast] = self.pt_vel[pfirst:plast]

        adv_pos_half(dt, mesh.pt_x0, self.pt_vel0, mesh.pt_x_pred, pfirst, plast)

    def _predict_sides(self, sch: int, dt: float):
        mesh = self.mesh
        sfirst, slast = mesh.side_chunk_range(sch)
        zfirst = mesh.side_zone_chunks_first(sch)
        zlast = mesh.side_zone_chunks_last(sch)

        mesh.zone_vol0[zfirst:zlast] = mesh.zone_vol[zfirst:zlast]

        mesh.calc_predicted_geometry(sch)

        calc_rho(mesh.zone_vol_pred, self.zone_mass, self.zone_rho_pred,
                 zfirst, zlast)
        calc_crnr_mass(self.zone_rho_pred, mesh.zone_area_pred,
                       mesh.side_mass_frac, mesh.map_side2zone,
                       mesh.map_side2side_prev, self.crnr_weighted_mass,
                       sfirst, slast)

        self.pressure_model.calc_state_at_half(self, dt, zfirst, zlast)

        self.pressure_model.calc_force(self, self.side_force_pres, sfirst, slast)
        self.stabilization_model.calc_force(self, self.side_force_tts, sfirst, slast)
        self.viscosity_model.calc_force(self, self.side_force_visc, sfirst, slast)

        sum_crnr_force(self.side_force_pres, self.side_force_visc,
                       self.side_force_tts, mesh.map_side2side_prev,
                       self.crnr_force_tot, sfirst, slast)

    def _sum_to_points(self, pch: int):
        self.mesh.sum_to_points(pch, self.crnr_weighted_mass, self.crnr_force_tot,
                                self.pt_mass, self.pt_force)

    def close(self):
        """Stop the worker pools of an executor this Hydro created."""
        if self._owns_executor:
            self.executor.shutdown()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False

    # ---- diagnostics ----

    def sum_energy(self):
        """
        Total internal and kinetic energy.

        Returns:
            (internal, kinetic)
        """
        return calc_energy_totals(self)

    def write_energy_check(self):
        ei, ek = self.sum_energy()
        msg.bold(f"Energy check:  total energy  = {ei + ek:14.6e}")
        print(f"(internal = {ei:14.6e}, kinetic = {ek:14.6e})")
        return ei, ek

    def get_zone_fields(self) -> Dict[str, np.ndarray]:
        """Copies of the zone fields for output."""
        return {
            'density': self.zone_rho.copy(),
            'pressure': self.zone_pressure.copy(),
            'energy_density': self.zone_energy_density.copy(),
            'sound_speed': self.zone_sound_speed.copy(),
            'mass': self.zone_mass.copy(),
            'volume': self.mesh.zone_vol.copy(),
            'x': self.mesh.zone_x.copy(),
        }

    def get_point_fields(self) -> Dict[str, np.ndarray]:
        """Copies of the point fields for output."""
        return {
            'position': self.mesh.pt_x.copy(),
            'velocity': self.pt_vel.copy(),
        }


def create_hydro_from_params(rp, mesh, executor: Optional[ChunkExecutor] = None) -> Hydro:
    """
    Build a Hydro with the default models and the boundaries of ``rp``.

    Args:
        rp: RuntimeParameters object
        mesh: LagrangianMesh2d
        executor: ChunkExecutor (default: serial)

    Returns:
        Initialized Hydro
    """
    pgas, qcs, tts = create_models(rp)
    return Hydro(mesh, pressure_model=pgas, viscosity_model=qcs,
                 stabilization_model=tts,
                 bcs=create_bcs_from_params(rp, mesh),
                 executor=executor,
                 cfl=rp.get_param("hydro.cfl"),
                 cflv=rp.get_param("hydro.cflv"),
                 rho_init=rp.get_param("hydro.rho_init"),
                 energy_init=rp.get_param("hydro.energy_init"),
                 rho_init_sub=rp.get_param("hydro.rho_init_sub"),
                 energy_init_sub=rp.get_param("hydro.energy_init_sub"),
                 vel_init_radial=rp.get_param("hydro.vel_init_radial"))


@njit(nogil=True)
def adv_pos_half(dt, px0, pu0, pxp, pfirst, plast):
    """Move points to the middle of the time step."""
    dth = 0.5 * dt
    for p in range(pfirst, plast):
        pxp[p, 0] = px0[p, 0] + pu0[p, 0] * dth
        pxp[p, 1] = px0[p, 1] + pu0[p, 1] * dth


@njit(nogil=True)
def calc_crnr_mass(zrp, zareap, smf, map_side2zone, map_side2side_prev,
                   cmaswt, sfirst, slast):
    for s in range(sfirst, slast):
        s3 = map_side2side_prev[s]
        z = map_side2zone[s]
        cmaswt[s] = zrp[z] * zareap[z] * 0.5 * (smf[s] + smf[s3])


@njit(nogil=True)
def sum_crnr_force(sfp, sfq, sft, map_side2side_prev, cftot, sfirst, slast):
    for s in range(sfirst, slast):
        s3 = map_side2side_prev[s]
        for k in range(2):
            cftot[s, k] = ((sfp[s, k] + sfq[s, k] + sft[s, k]) -
                           (sfp[s3, k] + sfq[s3, k] + sft[s3, k]))
