"""
Total internal and kinetic energy of the mesh.

Used to verify energy conservation. Each side chunk contributes partial
sums that are merged with ``parallel.global_sum``.
"""

import numpy as np
from numba import njit

from .parallel import global_sum


@njit(nogil=True)
def sum_energy(zetot, zarea, zvol, zm, smf, px, pu, map_side2pt1,
               map_side2zone, map_side2side_prev, cylindrical,
               zfirst, zlast, sfirst, slast):
    """
    Internal and kinetic energy of one chunk, before the geometry factor.

    Zone kinetic energy is the zone mass times the volume weighted average
    of u^2 / 2 over its corners:

        ke_z = sum(c in z) zm * cvol / zvol * 0.5 * |u_p|^2

    Returns:
        (internal, kinetic)
    """
    sumi = 0.0
    for z in range(zfirst, zlast):
        sumi += zetot[z]

    sumk = 0.0
    for s in range(sfirst, slast):
        s3 = map_side2side_prev[s]
        p1 = map_side2pt1[s]
        z = map_side2zone[s]

        cvol = zarea[z] * 0.5 * (smf[s] + smf[s3])
        if cylindrical:
            cvol *= px[p1, 0]
        cke = zm[z] * cvol / zvol[z] * 0.5 * (pu[p1, 0] * pu[p1, 0]
                                              + pu[p1, 1] * pu[p1, 1])
        sumk += cke

    return sumi, sumk


def volume_factor(mesh) -> float:
    """Rotation factor turning per-radian sums into totals."""
    return 2.0 * np.pi if mesh.cylindrical else 1.0


def calc_energy_totals(hydro):
    """
    Total internal and kinetic energy over all chunks.

    Args:
        hydro: Hydro instance

    Returns:
        (internal energy, kinetic energy)
    """
    mesh = hydro.mesh

    def chunk_energy(sch):
        sfirst, slast = mesh.side_chunk_range(sch)
        zfirst = mesh.side_zone_chunks_first(sch)
        zlast = mesh.side_zone_chunks_last(sch)
        return sum_energy(hydro.zone_energy_tot, mesh.zone_area, mesh.zone_vol,
                          hydro.zone_mass, mesh.side_mass_frac, mesh.pt_x,
                          hydro.pt_vel, mesh.map_side2pt1, mesh.map_side2zone,
                          mesh.map_side2side_prev, mesh.cylindrical,
                          zfirst, zlast, sfirst, slast)

    partials = hydro.executor.map_chunks(chunk_energy, mesh.num_side_chunks())
    factor = volume_factor(mesh)
    ei = global_sum(factor * p[0] for p in partials)
    ek = global_sum(factor * p[1] for p in partials)
    return ei, ek
