"""
Tensor artificial viscosity on corners (Campbell and Shashkov).

The viscous force is built corner by corner from the velocity jumps along
the two edges that bound the corner, so it only acts in compression and
vanishes for uniform translation and rotation.
"""

import numpy as np
from numba import njit

from .models import ViscosityModel


class QCS(ViscosityModel):
    """
    Edge-based tensor artificial viscosity.

    Theory:
    For each corner a divergence is computed from a four point stencil
    (point, neighbouring edge midpoints, zone centre). Compressing corners
    get a Kurapatenko viscous coefficient

        zkur = q2 * (gamma + 1) / 4 * du + sqrt((q2 * (gamma + 1) / 4 * du)^2
                                                + (q1 * c)^2)
        rmu  = zkur * rho * evol

    which scales the edge velocity jumps into a corner Q vector. Side forces
    gather the Q vectors of the two corners sharing the side's edge.

    The zone velocity difference used by the Courant limit is
    zdu = q1 * c + 2 * q2 * max(|du . dx| / |dx|) over the zone edges.

    Attributes:
        qgamma (float): Gamma used in the Kurapatenko coefficient
        q1 (float): Linear viscosity coefficient
        q2 (float): Quadratic viscosity coefficient
    """

    def __init__(self, qgamma: float = 5.0 / 3.0, q1: float = 0.0, q2: float = 2.0):
        self.qgamma = qgamma
        self.q1 = q1
        self.q2 = q2

    @classmethod
    def from_params(cls, rp):
        return cls(qgamma=rp.get_param("qcs.qgamma"),
                   q1=rp.get_param("qcs.q1"),
                   q2=rp.get_param("qcs.q2"))

    def calc_force(self, hydro, sf: np.ndarray, sfirst: int, slast: int):
        mesh = hydro.mesh
        zfirst = int(mesh.map_side2zone[sfirst])
        zlast = int(mesh.map_side2zone[slast - 1]) + 1
        _calc_qcs_force(mesh.pt_x_pred, mesh.edge_x_pred, mesh.zone_x_pred,
                        mesh.edge_len, hydro.pt_vel, hydro.zone_sound_speed,
                        hydro.zone_rho_pred, mesh.map_side2zone,
                        mesh.map_side2pt1, mesh.map_side2pt2,
                        mesh.map_side2edge, mesh.map_side2side_prev,
                        mesh.map_side2side_next, mesh.zone_npts, sf,
                        hydro.zone_dvel, self.q1, self.q2, self.qgamma,
                        sfirst, slast, zfirst, zlast)


@njit(nogil=True)
def _cross(ax, ay, bx, by):
    return ax * by - ay * bx


@njit(nogil=True)
def _calc_qcs_force(px, ex, zx, elen, pu, zss, zrp, map_side2zone,
                    map_side2pt1, map_side2pt2, map_side2edge,
                    map_side2side_prev, map_side2side_next, zone_npts,
                    sf, zdu, q1, q2, qgamma, sfirst, slast, zfirst, zlast):
    ncrn = slast - sfirst
    nzch = zlast - zfirst
    carea = np.zeros(ncrn)
    cdiv = np.zeros(ncrn)
    cevol = np.zeros(ncrn)
    cdu = np.zeros(ncrn)
    ccos = np.zeros(ncrn)
    cw = np.zeros(ncrn)
    cqe = np.zeros((ncrn, 2, 2))
    zuc = np.zeros((nzch, 2))

    # zone-centred velocity
    for c in range(sfirst, slast):
        p = map_side2pt1[c]
        z0 = map_side2zone[c] - zfirst
        zuc[z0, 0] += pu[p, 0]
        zuc[z0, 1] += pu[p, 1]
    for z in range(zfirst, zlast):
        zuc[z - zfirst, 0] /= zone_npts[z]
        zuc[z - zfirst, 1] /= zone_npts[z]

    # corner divergence, evolution length and velocity jump
    for c in range(sfirst, slast):
        c0 = c - sfirst
        s2 = c
        s = map_side2side_prev[s2]
        z = map_side2zone[s]
        p = map_side2pt2[s]
        p1 = map_side2pt1[s]
        p2 = map_side2pt2[s2]
        e1 = map_side2edge[s]
        e2 = map_side2edge[s2]

        # 0 = point, 1 = edge e2, 2 = zone centre, 3 = edge e1
        up0x, up0y = pu[p, 0], pu[p, 1]
        xp0x, xp0y = px[p, 0], px[p, 1]
        up1x = 0.5 * (pu[p, 0] + pu[p2, 0])
        up1y = 0.5 * (pu[p, 1] + pu[p2, 1])
        xp1x, xp1y = ex[e2, 0], ex[e2, 1]
        up2x, up2y = zuc[z - zfirst, 0], zuc[z - zfirst, 1]
        xp2x, xp2y = zx[z, 0], zx[z, 1]
        up3x = 0.5 * (pu[p1, 0] + pu[p, 0])
        up3y = 0.5 * (pu[p1, 1] + pu[p, 1])
        xp3x, xp3y = ex[e1, 0], ex[e1, 1]

        # planar area of the corner quadrilateral
        cvolume = 0.5 * _cross(xp2x - xp0x, xp2y - xp0y,
                               xp3x - xp1x, xp3y - xp1y)
        carea[c0] = cvolume

        v1x, v1y = xp3x - xp0x, xp3y - xp0y
        v2x, v2y = xp1x - xp0x, xp1y - xp0y
        de1 = elen[e1]
        de2 = elen[e2]
        minelen = min(de1, de2)
        if minelen < 1.e-12:
            ccos[c0] = 0.0
        else:
            ccos[c0] = 4.0 * (v1x * v2x + v1y * v2y) / (de1 * de2)

        cdiv[c0] = (_cross(up2x - up0x, up2y - up0y, xp3x - xp1x, xp3y - xp1y)
                    - _cross(up3x - up1x, up3y - up1y, xp2x - xp0x, xp2y - xp0y)) \
            / (2.0 * cvolume)

        dxx1x = 0.5 * (xp1x + xp2x - xp0x - xp3x)
        dxx1y = 0.5 * (xp1y + xp2y - xp0y - xp3y)
        dxx2x = 0.5 * (xp2x + xp3x - xp0x - xp1x)
        dxx2y = 0.5 * (xp2y + xp3y - xp0y - xp1y)
        dx1 = np.sqrt(dxx1x * dxx1x + dxx1y * dxx1y)
        dx2 = np.sqrt(dxx2x * dxx2x + dxx2y * dxx2y)

        duavx = 0.25 * (up0x + up1x + up2x + up3x)
        duavy = 0.25 * (up0y + up1y + up2y + up3y)
        test1 = abs((dxx1x * duavx + dxx1y * duavy) * dx2)
        test2 = abs((dxx2x * duavx + dxx2y * duavy) * dx1)
        num = dx1 if test1 > test2 else dx2
        den = dx2 if test1 > test2 else dx1
        r = num / den
        evol = np.sqrt(4.0 * cvolume * r)
        evol = min(evol, 2.0 * minelen)

        dv1x = up1x + up2x - up0x - up3x
        dv1y = up1y + up2y - up0y - up3y
        dv2x = up2x + up3x - up0x - up1x
        dv2y = up2y + up3y - up0y - up1y
        du = np.sqrt(max(dv1x * dv1x + dv1y * dv1y, dv2x * dv2x + dv2y * dv2y))

        if cdiv[c0] < 0.0:
            cevol[c0] = evol
            cdu[c0] = du

    # corner Q vectors
    gammap1 = qgamma + 1.0
    for c in range(sfirst, slast):
        c0 = c - sfirst
        z = map_side2zone[c]

        ztmp2 = q2 * 0.25 * gammap1 * cdu[c0]
        ztmp1 = q1 * zss[z]
        zkur = ztmp2 + np.sqrt(ztmp2 * ztmp2 + ztmp1 * ztmp1)
        rmu = zkur * zrp[z] * cevol[c0]
        if cdiv[c0] > 0.0:
            rmu = 0.0

        s4 = c
        s = map_side2side_prev[s4]
        p = map_side2pt2[s]
        p1 = map_side2pt1[s]
        p2 = map_side2pt2[s4]
        e1 = map_side2edge[s]
        e2 = map_side2edge[s4]

        cqe[c0, 0, 0] = rmu * (pu[p, 0] - pu[p1, 0]) / elen[e1]
        cqe[c0, 0, 1] = rmu * (pu[p, 1] - pu[p1, 1]) / elen[e1]
        cqe[c0, 1, 0] = rmu * (pu[p2, 0] - pu[p, 0]) / elen[e2]
        cqe[c0, 1, 1] = rmu * (pu[p2, 1] - pu[p, 1]) / elen[e2]

    # side forces from the two corners on each edge
    for c0 in range(ncrn):
        csin2 = 1.0 - ccos[c0] * ccos[c0]
        if csin2 < 1.e-4:
            cw[c0] = 0.0
            ccos[c0] = 0.0
        else:
            cw[c0] = carea[c0] / csin2

    for s in range(sfirst, slast):
        c1 = s - sfirst
        c2 = map_side2side_next[s] - sfirst
        el = elen[map_side2edge[s]]
        for k in range(2):
            sf[s, k] = (cw[c1] * (cqe[c1, 1, k] + ccos[c1] * cqe[c1, 0, k])
                        + cw[c2] * (cqe[c2, 0, k] + ccos[c2] * cqe[c2, 1, k])) / el

    # velocity difference for the time step control
    ztmp = np.zeros(nzch)
    for s in range(sfirst, slast):
        p1 = map_side2pt1[s]
        p2 = map_side2pt2[s]
        z0 = map_side2zone[s] - zfirst
        lenx = elen[map_side2edge[s]]
        dux = ((pu[p2, 0] - pu[p1, 0]) * (px[p2, 0] - px[p1, 0])
               + (pu[p2, 1] - pu[p1, 1]) * (px[p2, 1] - px[p1, 1]))
        if lenx > 0.0:
            dux = abs(dux) / lenx
        else:
            dux = 0.0
        ztmp[z0] = max(ztmp[z0], dux)

    for z in range(zfirst, zlast):
        zdu[z] = q1 * zss[z] + 2.0 * q2 * ztmp[z - zfirst]
