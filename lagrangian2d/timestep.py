"""
Hydro time step control for the 2D Lagrangian solver.

Two stability constraints are evaluated per zone chunk:

1. Courant: dt <= cfl * zdl / max(zdu, c, fuzz)
2. Volume change: dt <= dtlast * cflv / max(|dV/V|)

Each chunk produces its own ``TimeStep``; the chunk results are merged by
``parallel.global_min_timestep`` so no shared recommendation is ever
written concurrently.
"""

from dataclasses import dataclass

import numpy as np
from numba import njit

FUZZ = 1.e-99
DT_SENTINEL = 1.e99


@dataclass(frozen=True)
class TimeStep:
    """
    Time step recommendation produced once per cycle.

    Attributes:
        dt (float): Recommended time step
        message (str): Limiting criterion and zone
    """
    dt: float
    message: str

    @classmethod
    def unlimited(cls):
        return cls(DT_SENTINEL, "")


@njit(nogil=True)
def calc_dt_courant(zdl: np.ndarray, zdu: np.ndarray, zss: np.ndarray,
                    cfl: float, zfirst: int, zlast: int):
    """
    Courant limit over zones [zfirst, zlast).

    Returns:
        (dt, limiting zone)
    """
    dtnew = DT_SENTINEL
    zmin = zfirst
    for z in range(zfirst, zlast):
        cdu = max(zdu[z], max(zss[z], FUZZ))
        zdthyd = zdl[z] * cfl / cdu
        if zdthyd < dtnew:
            dtnew = zdthyd
            zmin = z
    return dtnew, zmin


@njit(nogil=True)
def calc_dt_volume(zvol: np.ndarray, zvol0: np.ndarray, dtlast: float,
                   cflv: float, zfirst: int, zlast: int):
    """
    Relative volume change limit over zones [zfirst, zlast).

    Returns:
        (dt, limiting zone)
    """
    dvovmax = FUZZ
    zmax = zfirst
    for z in range(zfirst, zlast):
        zdvov = abs((zvol[z] - zvol0[z]) / zvol0[z])
        if zdvov > dvovmax:
            dvovmax = zdvov
            zmax = z
    return dtlast * cflv / dvovmax, zmax


def calc_dt_hydro(dtlast: float, zfirst: int, zlast: int,
                  zone_dl: np.ndarray, zone_dvel: np.ndarray,
                  zone_sound_speed: np.ndarray, cfl: float,
                  zone_vol: np.ndarray, zone_vol0: np.ndarray,
                  cflv: float) -> TimeStep:
    """
    Most restrictive hydro time step for one zone chunk.

    Args:
        dtlast: Time step used for the cycle just completed
        zfirst, zlast: Zone range of the chunk
        zone_dl: Zone characteristic lengths
        zone_dvel: Zone velocity difference scale
        zone_sound_speed: Zone sound speeds
        cfl: Courant number
        zone_vol, zone_vol0: Zone volumes at end and start of the cycle
        cflv: Maximum allowed relative volume change

    Returns:
        Chunk-local TimeStep
    """
    recommend = TimeStep.unlimited()

    dtc, zc = calc_dt_courant(zone_dl, zone_dvel, zone_sound_speed,
                              cfl, zfirst, zlast)
    if dtc < recommend.dt:
        recommend = TimeStep(float(dtc), f"Hydro Courant limit for z = {zc}")

    dtv, zv = calc_dt_volume(zone_vol, zone_vol0, dtlast, cflv, zfirst, zlast)
    if dtv < recommend.dt:
        recommend = TimeStep(float(dtv), f"Hydro dV/V limit for z = {zv}")

    return recommend


class GlobalTimestepper:
    """
    Selects the time step for the next cycle.

    Combines the user limits with the hydro recommendation from the
    previous cycle:

    - dtmax always applies
    - dtinit on the first cycle, otherwise growth is capped at dtfac * dtlast
    - the step is shortened to land exactly on tstop
    - the hydro recommendation wins if it is smaller

    Attributes:
        dtinit (float): Initial time step
        dtmax (float): Maximum time step
        dtfac (float): Maximum growth factor between cycles
        tstop (float): Simulation stop time
        dt (float): Most recent time step
        message (str): Constraint that set the most recent time step
        dt_history (list): Time step history
        constraint_history (list): Limiting constraint history
    """

    def __init__(self, dtinit: float = DT_SENTINEL, dtmax: float = DT_SENTINEL,
                 dtfac: float = 1.2, tstop: float = DT_SENTINEL):
        self.dtinit = dtinit
        self.dtmax = dtmax
        self.dtfac = dtfac
        self.tstop = tstop

        self.dt = 0.0
        self.message = ""
        self.dt_history = []
        self.constraint_history = []

    def compute_timestep(self, cycle: int, time: float,
                         hydro_recommend: TimeStep = None) -> float:
        dtlast = self.dt

        dt = self.dtmax
        message = "Global maximum (dtmax)"

        if cycle == 0:
            if self.dtinit < dt:
                dt = self.dtinit
                message = "Initial timestep"
        else:
            dtrecover = self.dtfac * dtlast
            if dtrecover < dt:
                dt = dtrecover
                message = "Recovery: dt = dtfac*dtlast"

        if time + dt > self.tstop:
            dt = self.tstop - time
            message = "Resize to hit tstop"

        if hydro_recommend is not None and hydro_recommend.dt < dt:
            dt = hydro_recommend.dt
            message = hydro_recommend.message

        if dt <= 0.0:
            raise ValueError(f"Non-positive time step {dt} ({message})")

        self.dt = dt
        self.message = message
        self.dt_history.append(dt)
        self.constraint_history.append(message)
        return dt

    def get_diagnostics(self) -> dict:
        if self.dt_history:
            min_dt = float(np.min(self.dt_history))
            max_dt = float(np.max(self.dt_history))
        else:
            min_dt = max_dt = 0.0

        return {
            'current_dt': self.dt,
            'limiter': self.message,
            'min_dt': min_dt,
            'max_dt': max_dt,
            'total_steps': len(self.dt_history),
        }


def create_timestepper_from_params(rp) -> GlobalTimestepper:
    """
    Create the global timestepper from runtime parameters.

    Args:
        rp: RuntimeParameters object

    Returns:
        Configured GlobalTimestepper
    """
    return GlobalTimestepper(dtinit=rp.get_param("driver.dtinit"),
                             dtmax=rp.get_param("driver.dtmax"),
                             dtfac=rp.get_param("driver.dtfac"),
                             tstop=rp.get_param("driver.tstop"))
