"""
Polytropic (gamma-law) gas equation of state.

Provides the zone pressure and sound speed at the half step and the
pressure force on each side.
"""

import numpy as np
from numba import njit

from .models import PressureModel


class PolyGas(PressureModel):
    """
    Gamma-law gas: p = (gamma - 1) * rho * e.

    Theory:
    The pressure at the half step is extrapolated from the start-of-cycle
    state using the predicted volume change and the previous cycle's work
    rate. With g = dp/de|rho = (gamma - 1) * rho and bulk = rho * c^2:

        dv  = (V_pred - V_0) / m
        src = wrate * dt / 2 / m
        p  += (g * src - rho * bulk * dv) / (1 + g * dv / 2)

    The pressure force on a side acts along its median-mesh surface
    vector: sf = -p * ssurf.

    Attributes:
        gamma (float): Ratio of specific heats
        ssmin (float): Sound speed floor
    """

    def __init__(self, gamma: float = 5.0 / 3.0, ssmin: float = 0.0):
        self.gamma = gamma
        self.ssmin = ssmin

    @classmethod
    def from_params(cls, rp):
        return cls(gamma=rp.get_param("eos.gamma"),
                   ssmin=rp.get_param("eos.ssmin"))

    def calc_eos(self, zr: np.ndarray, ze: np.ndarray, zp: np.ndarray,
                 zss: np.ndarray, zfirst: int, zlast: int) -> np.ndarray:
        """
        Pressure and sound speed from density and energy density.

        Returns:
            dp/de at constant density for the zone range [zlast - zfirst]
        """
        z0per = np.zeros(zlast - zfirst)
        _calc_eos(zr, ze, zp, z0per, zss, self.gamma, self.ssmin, zfirst, zlast)
        return z0per

    def calc_state_at_half(self, hydro, dt: float, zfirst: int, zlast: int):
        mesh = hydro.mesh
        z0per = self.calc_eos(hydro.zone_rho, hydro.zone_energy_density,
                              hydro.zone_pressure, hydro.zone_sound_speed,
                              zfirst, zlast)
        _advance_pressure(hydro.zone_rho, mesh.zone_vol_pred, mesh.zone_vol0,
                          hydro.zone_work_rate, hydro.zone_mass, z0per,
                          hydro.zone_sound_speed, hydro.zone_pressure, dt,
                          zfirst, zlast)

    def calc_force(self, hydro, sf: np.ndarray, sfirst: int, slast: int):
        mesh = hydro.mesh
        _calc_pressure_force(hydro.zone_pressure, mesh.side_surfp,
                             mesh.map_side2zone, sf, sfirst, slast)


@njit(nogil=True)
def _calc_eos(zr, ze, zp, z0per, zss, gamma, ssmin, zfirst, zlast):
    gm1 = gamma - 1.0
    ss2 = max(ssmin * ssmin, 1.e-99)

    for z in range(zfirst, zlast):
        rx = zr[z]
        ex = max(ze[z], 0.0)
        px = gm1 * rx * ex
        prex = gm1 * ex
        perx = gm1 * rx
        csqd = max(ss2, prex + perx * px / (rx * rx))
        zp[z] = px
        z0per[z - zfirst] = perx
        zss[z] = np.sqrt(csqd)


@njit(nogil=True)
def _advance_pressure(zr0, zvolp, zvol0, zwrate, zm, z0per, zss, zp, dt,
                      zfirst, zlast):
    dth = 0.5 * dt

    for z in range(zfirst, zlast):
        z0 = z - zfirst
        zminv = 1.0 / zm[z]
        dv = (zvolp[z] - zvol0[z]) * zminv
        bulk = zr0[z] * zss[z] * zss[z]
        denom = 1.0 + 0.5 * z0per[z0] * dv
        src = zwrate[z] * dth * zminv
        zp[z] += (z0per[z0] * src - zr0[z] * bulk * dv) / denom


@njit(nogil=True)
def _calc_pressure_force(zp, ssurf, map_side2zone, sf, sfirst, slast):
    for s in range(sfirst, slast):
        z = map_side2zone[s]
        sf[s, 0] = -zp[z] * ssurf[s, 0]
        sf[s, 1] = -zp[z] * ssurf[s, 1]
