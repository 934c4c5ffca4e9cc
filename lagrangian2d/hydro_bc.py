"""
Fixed (reflecting) plane boundary conditions on point kinematics.
"""

import numpy as np
from numba import njit

BOUNDARY_TYPES = ('reflect', 'outflow')


class HydroBC:
    """
    Reflecting boundary along an axis-aligned plane.

    Points on the plane may slide along it but not cross it: the normal
    component of their velocity and of the force acting on them is removed,

        v <- v - (v . n) n

    Attributes:
        vfix (np.ndarray): Unit normal of the plane
        map_bound_pt (np.ndarray): Sorted indices of the boundary points
    """

    def __init__(self, mesh, vfix, map_bound_pt: np.ndarray):
        self.mesh = mesh
        self.vfix = np.asarray(vfix, dtype=np.float64)
        self.map_bound_pt = np.sort(np.asarray(map_bound_pt, dtype=np.int64))

    @classmethod
    def plane(cls, mesh, axis: int, value: float):
        """Boundary on the plane x[axis] == value."""
        vfix = np.zeros(2)
        vfix[axis] = 1.0
        return cls(mesh, vfix, mesh.boundary_points(axis, value))

    def chunk_range(self, pfirst: int, plast: int):
        """Range of boundary point entries that fall in [pfirst, plast)."""
        bfirst = int(np.searchsorted(self.map_bound_pt, pfirst, side='left'))
        blast = int(np.searchsorted(self.map_bound_pt, plast, side='left'))
        return bfirst, blast

    def apply_fixed_bc(self, pu: np.ndarray, pf: np.ndarray,
                       pfirst: int, plast: int):
        """Project velocity and force of boundary points in [pfirst, plast)."""
        bfirst, blast = self.chunk_range(pfirst, plast)
        _apply_fixed_bc(self.map_bound_pt, self.vfix, pu, pf, bfirst, blast)


def create_bcs_from_params(rp, mesh) -> list:
    """
    Build the reflecting boundaries requested in the [mesh] section.

    Args:
        rp: RuntimeParameters object
        mesh: LagrangianMesh2d

    Returns:
        List of HydroBC objects
    """
    xmin, xmax, ymin, ymax = mesh.extents
    planes = [("mesh.xlboundary", 0, xmin), ("mesh.xrboundary", 0, xmax),
              ("mesh.ylboundary", 1, ymin), ("mesh.yrboundary", 1, ymax)]

    bcs = []
    for key, axis, value in planes:
        bc_type = rp.get_param(key)
        if bc_type not in BOUNDARY_TYPES:
            raise ValueError(f"Unknown boundary type '{bc_type}' for {key}")
        if bc_type == "reflect":
            bcs.append(HydroBC.plane(mesh, axis, value))
    return bcs


@njit(nogil=True)
def _apply_fixed_bc(map_bound_pt, vfix, pu, pf, bfirst, blast):
    for i in range(bfirst, blast):
        p = map_bound_pt[i]
        dv = pu[p, 0] * vfix[0] + pu[p, 1] * vfix[1]
        pu[p, 0] -= dv * vfix[0]
        pu[p, 1] -= dv * vfix[1]
        df = pf[p, 0] * vfix[0] + pf[p, 1] * vfix[1]
        pf[p, 0] -= df * vfix[0]
        pf[p, 1] -= df * vfix[1]
