"""
Temporary triangular subzoning (TTS) stabilization force.
"""

import numpy as np
from numba import njit

from .models import StabilizationModel


class TTS(StabilizationModel):
    """
    Subzonal pressure force resisting non-physical zone distortion.

    Each side triangle keeps the mass fraction it was given at
    initialization. When the mesh distorts without changing the zone
    volume, the side density drifts away from the zone density and the
    resulting pressure difference pushes back:

        rho_s = rho_z * smf * A_z / A_s
        sf    = -alfa * max(c, ssmin)^2 * (rho_s - rho_z) * ssurf

    Attributes:
        alfa (float): Scaling factor of the subzonal pressure
        ssmin (float): Sound speed floor
    """

    def __init__(self, alfa: float = 0.5, ssmin: float = 0.0):
        self.alfa = alfa
        self.ssmin = ssmin

    @classmethod
    def from_params(cls, rp):
        return cls(alfa=rp.get_param("tts.alfa"),
                   ssmin=rp.get_param("tts.ssmin"))

    def calc_force(self, hydro, sf: np.ndarray, sfirst: int, slast: int):
        mesh = hydro.mesh
        _calc_tts_force(mesh.zone_area_pred, hydro.zone_rho_pred,
                        hydro.zone_sound_speed, mesh.side_area_pred,
                        mesh.side_mass_frac, mesh.side_surfp,
                        mesh.map_side2zone, sf, self.alfa, self.ssmin,
                        sfirst, slast)


@njit(nogil=True)
def _calc_tts_force(zarea, zr, zss, sarea, smf, ssurf, map_side2zone, sf,
                    alfa, ssmin, sfirst, slast):
    for s in range(sfirst, slast):
        z = map_side2zone[s]

        svfacinv = zarea[z] / sarea[s]
        srho = zr[z] * smf[s] * svfacinv
        sstmp = max(zss[z], ssmin)
        sstmp = alfa * sstmp * sstmp
        sdp = sstmp * (srho - zr[z])
        sf[s, 0] = -sdp * ssurf[s, 0]
        sf[s, 1] = -sdp * ssurf[s, 1]
