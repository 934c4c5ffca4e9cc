"""
Staggered 2D Lagrangian mesh: topology, chunking and geometry.

Points carry kinematics, zones carry thermodynamics. Each zone is a polygon
split into sides (one per edge, counter-clockwise); the corner at point p1
of side s is the wedge between s and the previous side of the same zone.
The mesh moves with the fluid, so geometry is recomputed every cycle from
the predicted (half step) and then the final point positions.

Cylindrical (r-z) geometry uses x as the radius: side volumes are the
planar side areas weighted by the mean x of the side triangle.
"""

import numpy as np
from numba import njit
from typing import Optional, Tuple

GEOMETRIES = ('cylindrical', 'planar')


class LagrangianMesh2d:
    """
    2D unstructured polygonal mesh with side/corner connectivity.

    Theory:
    Sides are triangles (p1, p2, zone centre). Summing the side quantities
    over a zone gives the zone area/volume, and the median-mesh surface
    vector of a side (edge midpoint minus zone centre, rotated by 90
    degrees) closes around each interior point, so a uniform pressure
    produces no net point force.

    Index ranges are partitioned into contiguous chunks described by
    prefix-offset tables with N+1 entries. Side chunks are aligned with
    zone chunks so every side in a chunk belongs to a zone of that chunk.

    Attributes:
        num_pts, num_zones, num_sides, num_edges (int): Entity counts
        geometry (str): 'cylindrical' or 'planar'
        pt_x, pt_x0, pt_x_pred (np.ndarray): Point positions [num_pts, 2]
        zone_x, zone_x_pred (np.ndarray): Zone centres [num_zones, 2]
        edge_x, edge_x_pred (np.ndarray): Edge midpoints [num_edges, 2]
        zone_area, zone_vol, zone_vol0 (np.ndarray): Zone area/volume
        side_mass_frac (np.ndarray): Side share of its zone area [num_sides]
        side_surfp (np.ndarray): Median-mesh surface vectors [num_sides, 2]
        zone_dl (np.ndarray): Zone characteristic lengths
        map_side2zone, map_side2pt1, map_side2pt2, map_side2edge,
        map_side2side_prev, map_side2side_next (np.ndarray): Adjacency
        pt_chunks_CRS, zone_chunks_CRS, side_chunks_CRS (np.ndarray): Chunks
    """

    def __init__(self, pt_x: np.ndarray, zone_pts: list,
                 geometry: str = 'cylindrical', zone_chunk_size: int = 64,
                 pt_chunk_size: int = 64,
                 subregion: Optional[Tuple[float, float, float, float]] = None):
        """
        Build the mesh from point coordinates and zone point lists.

        Args:
            pt_x: Point coordinates [num_pts, 2]
            zone_pts: Point indices of each zone, counter-clockwise
            geometry: 'cylindrical' or 'planar'
            zone_chunk_size: Maximum zones per zone/side chunk
            pt_chunk_size: Maximum points per point chunk
            subregion: Optional (xmin, xmax, ymin, ymax) box for initial
                condition overrides
        """
        if geometry not in GEOMETRIES:
            raise ValueError(f"Unknown mesh geometry '{geometry}', "
                             f"expected one of {GEOMETRIES}")
        self.geometry = geometry
        self.cylindrical = geometry == 'cylindrical'
        self.subregion = subregion

        self.pt_x = np.array(pt_x, dtype=np.float64)
        self.num_pts = self.pt_x.shape[0]
        self.num_zones = len(zone_pts)
        self.nzones_x = None
        self.nzones_y = None
        self.extents = (float(np.min(self.pt_x[:, 0])), float(np.max(self.pt_x[:, 0])),
                        float(np.min(self.pt_x[:, 1])), float(np.max(self.pt_x[:, 1])))

        self._init_topology(zone_pts)
        self._init_chunks(zone_chunk_size, pt_chunk_size)
        self._allocate_geometry()
        self._init_geometry()

    @classmethod
    def rectangular(cls, nzones_x: int, nzones_y: int,
                    xmin: float = 0.0, xmax: float = 1.0,
                    ymin: float = 0.0, ymax: float = 1.0, **kwargs):
        """
        Generate a uniform quadrilateral mesh.

        Points are numbered row by row, zones likewise; each zone lists its
        points counter-clockwise starting at the lower left corner.
        """
        npx = nzones_x + 1
        npy = nzones_y + 1
        xs = np.linspace(xmin, xmax, npx)
        ys = np.linspace(ymin, ymax, npy)
        xx, yy = np.meshgrid(xs, ys)
        pt_x = np.column_stack((xx.ravel(), yy.ravel()))

        zone_pts = []
        for j in range(nzones_y):
            for i in range(nzones_x):
                p0 = j * npx + i
                zone_pts.append([p0, p0 + 1, p0 + npx + 1, p0 + npx])

        mesh = cls(pt_x, zone_pts, **kwargs)
        mesh.nzones_x = nzones_x
        mesh.nzones_y = nzones_y
        return mesh

    def _init_topology(self, zone_pts: list):
        """Build side, edge and corner connectivity from zone point lists."""
        self.zone_npts = np.array([len(pts) for pts in zone_pts], dtype=np.int64)
        if np.any(self.zone_npts < 3):
            raise ValueError("Every zone needs at least 3 points")

        self.zone_pts_ptr = np.zeros(self.num_zones + 1, dtype=np.int64)
        self.zone_pts_ptr[1:] = np.cumsum(self.zone_npts)
        self.num_sides = int(self.zone_pts_ptr[-1])

        self.map_side2pt1 = np.concatenate(
            [np.asarray(pts, dtype=np.int64) for pts in zone_pts])
        self.map_side2zone = np.repeat(np.arange(self.num_zones, dtype=np.int64),
                                       self.zone_npts)

        # cyclic neighbours within each zone
        zstart = self.zone_pts_ptr[self.map_side2zone]
        znp = self.zone_npts[self.map_side2zone]
        local = np.arange(self.num_sides, dtype=np.int64) - zstart
        self.map_side2side_next = zstart + (local + 1) % znp
        self.map_side2side_prev = zstart + (local - 1) % znp
        self.map_side2pt2 = self.map_side2pt1[self.map_side2side_next]

        # edges are shared by the two sides that reference the same points
        lo = np.minimum(self.map_side2pt1, self.map_side2pt2)
        hi = np.maximum(self.map_side2pt1, self.map_side2pt2)
        keys = lo * self.num_pts + hi
        unique_keys, inverse = np.unique(keys, return_inverse=True)
        self.map_side2edge = inverse.ravel().astype(np.int64)
        self.num_edges = len(unique_keys)

        # corner s sits at point map_side2pt1[s]
        order = np.argsort(self.map_side2pt1, kind='stable')
        counts = np.bincount(self.map_side2pt1, minlength=self.num_pts)
        if np.any(counts == 0):
            raise ValueError("Mesh has points that belong to no zone")
        self.pt_crnr_ptr = np.zeros(self.num_pts + 1, dtype=np.int64)
        self.pt_crnr_ptr[1:] = np.cumsum(counts)
        self.map_pt2crnr = order.astype(np.int64)

    def _init_chunks(self, zone_chunk_size: int, pt_chunk_size: int):
        """Partition zones, sides and points into contiguous chunks."""
        self.zone_chunks_CRS = _make_chunks(self.num_zones, zone_chunk_size)
        self.side_chunks_CRS = self.zone_pts_ptr[self.zone_chunks_CRS]
        self.pt_chunks_CRS = _make_chunks(self.num_pts, pt_chunk_size)

        _check_chunks(self.zone_chunks_CRS, self.num_zones)
        _check_chunks(self.side_chunks_CRS, self.num_sides)
        _check_chunks(self.pt_chunks_CRS, self.num_pts)

    def _allocate_geometry(self):
        nump, numz, nums, nume = (self.num_pts, self.num_zones,
                                  self.num_sides, self.num_edges)

        self.pt_x0 = np.zeros((nump, 2))
        self.pt_x_pred = np.zeros((nump, 2))

        self.edge_x = np.zeros((nume, 2))
        self.edge_x_pred = np.zeros((nume, 2))
        self.edge_len = np.zeros(nume)

        self.zone_x = np.zeros((numz, 2))
        self.zone_x_pred = np.zeros((numz, 2))
        self.zone_area = np.zeros(numz)
        self.zone_vol = np.zeros(numz)
        self.zone_area_pred = np.zeros(numz)
        self.zone_vol_pred = np.zeros(numz)
        self.zone_vol0 = np.zeros(numz)
        self.zone_dl = np.zeros(numz)

        self.side_area = np.zeros(nums)
        self.side_vol = np.zeros(nums)
        self.side_area_pred = np.zeros(nums)
        self.side_vol_pred = np.zeros(nums)
        self.side_mass_frac = np.zeros(nums)
        self.side_surfp = np.zeros((nums, 2))

    def _init_geometry(self):
        """Compute the initial geometry and the fixed side mass fractions."""
        for sch in range(self.num_side_chunks()):
            self.calc_ctrs(sch, self.pt_x, self.edge_x, self.zone_x)
            self.calc_vols(sch, self.pt_x, self.zone_x, self.side_area,
                           self.side_vol, self.zone_area, self.zone_vol)
            sfirst, slast = self.side_chunk_range(sch)
            _calc_side_fracs(self.side_area, self.zone_area, self.map_side2zone,
                             self.side_mass_frac, sfirst, slast)

    # ---- chunk bookkeeping ----

    def num_pt_chunks(self) -> int:
        return len(self.pt_chunks_CRS) - 1

    def num_zone_chunks(self) -> int:
        return len(self.zone_chunks_CRS) - 1

    def num_side_chunks(self) -> int:
        return len(self.side_chunks_CRS) - 1

    def pt_chunk_range(self, pch: int) -> Tuple[int, int]:
        return int(self.pt_chunks_CRS[pch]), int(self.pt_chunks_CRS[pch + 1])

    def zone_chunk_range(self, zch: int) -> Tuple[int, int]:
        return int(self.zone_chunks_CRS[zch]), int(self.zone_chunks_CRS[zch + 1])

    def side_chunk_range(self, sch: int) -> Tuple[int, int]:
        return int(self.side_chunks_CRS[sch]), int(self.side_chunks_CRS[sch + 1])

    def side_zone_chunks_first(self, sch: int) -> int:
        return int(self.zone_chunks_CRS[sch])

    def side_zone_chunks_last(self, sch: int) -> int:
        return int(self.zone_chunks_CRS[sch + 1])

    # ---- adjacency ----

    def side_prev(self, s: int) -> int:
        """Previous side in the same zone (cyclic)."""
        return int(self.map_side2side_prev[s])

    def side_next(self, s: int) -> int:
        """Next side in the same zone (cyclic)."""
        return int(self.map_side2side_next[s])

    def boundary_points(self, axis: int, value: float,
                        eps: float = 1.e-12) -> np.ndarray:
        """Indices of the points lying on the plane x[axis] == value."""
        return np.nonzero(np.abs(self.pt_x[:, axis] - value) < eps)[0]

    # ---- geometry, one side chunk at a time ----

    def calc_ctrs(self, sch: int, px: np.ndarray, ex: np.ndarray,
                  zx: np.ndarray):
        """Edge midpoints and zone centres (mean of the zone points)."""
        sfirst, slast = self.side_chunk_range(sch)
        zfirst = self.side_zone_chunks_first(sch)
        zlast = self.side_zone_chunks_last(sch)
        _calc_ctrs(px, self.map_side2pt1, self.map_side2pt2, self.map_side2edge,
                   self.map_side2zone, self.zone_npts, ex, zx,
                   sfirst, slast, zfirst, zlast)

    def calc_vols(self, sch: int, px: np.ndarray, zx: np.ndarray,
                  sarea: np.ndarray, svol: np.ndarray, zarea: np.ndarray,
                  zvol: np.ndarray):
        """
        Side and zone areas/volumes.

        Raises:
            RuntimeError: If any side volume is not positive (tangled mesh)
        """
        sfirst, slast = self.side_chunk_range(sch)
        zfirst = self.side_zone_chunks_first(sch)
        zlast = self.side_zone_chunks_last(sch)
        count = _calc_vols(px, zx, self.map_side2pt1, self.map_side2pt2,
                           self.map_side2zone, sarea, svol, zarea, zvol,
                           self.cylindrical, sfirst, slast, zfirst, zlast)
        if count > 0:
            raise RuntimeError(f"Mesh tangling detected: {count} negative side "
                               f"volumes in side chunk {sch}")

    def calc_median_mesh_surf_vecs(self, sch: int):
        sfirst, slast = self.side_chunk_range(sch)
        _calc_surf_vecs(self.zone_x_pred, self.edge_x_pred, self.map_side2zone,
                        self.map_side2edge, self.side_surfp, sfirst, slast)

    def calc_edge_len(self, sch: int):
        sfirst, slast = self.side_chunk_range(sch)
        _calc_edge_len(self.pt_x_pred, self.map_side2pt1, self.map_side2pt2,
                       self.map_side2edge, self.edge_len, sfirst, slast)

    def calc_characteristic_len(self, sch: int):
        sfirst, slast = self.side_chunk_range(sch)
        zfirst = self.side_zone_chunks_first(sch)
        zlast = self.side_zone_chunks_last(sch)
        _calc_char_len(self.side_area_pred, self.edge_len, self.map_side2zone,
                       self.map_side2edge, self.zone_npts, self.zone_dl,
                       sfirst, slast, zfirst, zlast)

    def calc_predicted_geometry(self, sch: int):
        """Recompute all predicted geometry of a side chunk from pt_x_pred."""
        self.calc_ctrs(sch, self.pt_x_pred, self.edge_x_pred, self.zone_x_pred)
        self.calc_vols(sch, self.pt_x_pred, self.zone_x_pred,
                       self.side_area_pred, self.side_vol_pred,
                       self.zone_area_pred, self.zone_vol_pred)
        self.calc_median_mesh_surf_vecs(sch)
        self.calc_edge_len(sch)
        self.calc_characteristic_len(sch)

    def sum_to_points(self, pch: int, cvar: np.ndarray, cvec: np.ndarray,
                      pvar: np.ndarray, pvec: np.ndarray):
        """
        Gather corner scalars/vectors onto the points of a point chunk.

        Each point only sums its own corners, so point chunks never write
        to the same entry and the totals do not depend on chunk placement.
        """
        pfirst, plast = self.pt_chunk_range(pch)
        _sum_to_points(cvar, cvec, self.pt_crnr_ptr, self.map_pt2crnr,
                       pvar, pvec, pfirst, plast)

    def check_mesh_quality(self) -> dict:
        """
        Check mesh quality metrics.

        Returns:
            Dictionary with mesh quality metrics
        """
        min_vol = np.min(self.zone_vol)
        max_vol = np.max(self.zone_vol)
        return {
            'min_zone_vol': min_vol,
            'max_zone_vol': max_vol,
            'volume_ratio': max_vol / min_vol if min_vol > 0 else np.inf,
            'total_volume': np.sum(self.zone_vol),
            'total_area': np.sum(self.zone_area),
            'is_tangled': bool(np.any(self.side_vol <= 0)),
        }


def create_mesh_from_params(rp) -> LagrangianMesh2d:
    """
    Create a rectangular mesh from runtime parameters.

    Args:
        rp: RuntimeParameters object

    Returns:
        Configured LagrangianMesh2d
    """
    subregion = None
    if rp.get_param("mesh.subregion_xmin") < 1.e99:
        subregion = (rp.get_param("mesh.subregion_xmin"),
                     rp.get_param("mesh.subregion_xmax"),
                     rp.get_param("mesh.subregion_ymin"),
                     rp.get_param("mesh.subregion_ymax"))

    return LagrangianMesh2d.rectangular(
        rp.get_param("mesh.nzones_x"), rp.get_param("mesh.nzones_y"),
        xmin=rp.get_param("mesh.xmin"), xmax=rp.get_param("mesh.xmax"),
        ymin=rp.get_param("mesh.ymin"), ymax=rp.get_param("mesh.ymax"),
        geometry=rp.get_param("mesh.geometry"),
        zone_chunk_size=rp.get_param("mesh.zone_chunk_size"),
        pt_chunk_size=rp.get_param("mesh.pt_chunk_size"),
        subregion=subregion)


def _make_chunks(n: int, size: int) -> np.ndarray:
    if size < 1:
        raise ValueError(f"Chunk size must be >= 1, got {size}")
    return np.append(np.arange(0, n, size, dtype=np.int64), n).astype(np.int64)


def _check_chunks(crs: np.ndarray, n: int):
    assert len(crs) >= 2, "chunk table needs at least one chunk"
    assert crs[0] == 0, "chunks must start at index 0"
    assert crs[-1] == n, "chunks must cover the whole index range"
    assert np.all(np.diff(crs) > 0), "chunks must be contiguous and non-empty"


@njit(nogil=True)
def _calc_ctrs(px, map_side2pt1, map_side2pt2, map_side2edge, map_side2zone,
               zone_npts, ex, zx, sfirst, slast, zfirst, zlast):
    for z in range(zfirst, zlast):
        zx[z, 0] = 0.0
        zx[z, 1] = 0.0

    for s in range(sfirst, slast):
        p1 = map_side2pt1[s]
        p2 = map_side2pt2[s]
        e = map_side2edge[s]
        z = map_side2zone[s]
        ex[e, 0] = 0.5 * (px[p1, 0] + px[p2, 0])
        ex[e, 1] = 0.5 * (px[p1, 1] + px[p2, 1])
        zx[z, 0] += px[p1, 0]
        zx[z, 1] += px[p1, 1]

    for z in range(zfirst, zlast):
        zx[z, 0] /= zone_npts[z]
        zx[z, 1] /= zone_npts[z]


@njit(nogil=True)
def _calc_vols(px, zx, map_side2pt1, map_side2pt2, map_side2zone,
               sarea, svol, zarea, zvol, cylindrical, sfirst, slast,
               zfirst, zlast):
    third = 1.0 / 3.0
    count = 0

    for z in range(zfirst, zlast):
        zarea[z] = 0.0
        zvol[z] = 0.0

    for s in range(sfirst, slast):
        p1 = map_side2pt1[s]
        p2 = map_side2pt2[s]
        z = map_side2zone[s]

        # side triangle (p1, p2, zone centre)
        ax = px[p2, 0] - px[p1, 0]
        ay = px[p2, 1] - px[p1, 1]
        bx = zx[z, 0] - px[p1, 0]
        by = zx[z, 1] - px[p1, 1]
        sa = 0.5 * (ax * by - ay * bx)
        if cylindrical:
            sv = third * sa * (px[p1, 0] + px[p2, 0] + zx[z, 0])
        else:
            sv = sa

        sarea[s] = sa
        svol[s] = sv
        zarea[z] += sa
        zvol[z] += sv
        if sv <= 0.0:
            count += 1

    return count


@njit(nogil=True)
def _calc_side_fracs(sarea, zarea, map_side2zone, smf, sfirst, slast):
    for s in range(sfirst, slast):
        z = map_side2zone[s]
        smf[s] = sarea[s] / zarea[z]


@njit(nogil=True)
def _calc_surf_vecs(zx, ex, map_side2zone, map_side2edge, ssurf, sfirst, slast):
    for s in range(sfirst, slast):
        z = map_side2zone[s]
        e = map_side2edge[s]
        # rotate (edge midpoint - zone centre) counter-clockwise
        ssurf[s, 0] = -(ex[e, 1] - zx[z, 1])
        ssurf[s, 1] = ex[e, 0] - zx[z, 0]


@njit(nogil=True)
def _calc_edge_len(px, map_side2pt1, map_side2pt2, map_side2edge, elen,
                   sfirst, slast):
    for s in range(sfirst, slast):
        p1 = map_side2pt1[s]
        p2 = map_side2pt2[s]
        e = map_side2edge[s]
        dx = px[p2, 0] - px[p1, 0]
        dy = px[p2, 1] - px[p1, 1]
        elen[e] = np.sqrt(dx * dx + dy * dy)


@njit(nogil=True)
def _calc_char_len(sarea, elen, map_side2zone, map_side2edge, zone_npts, zdl,
                   sfirst, slast, zfirst, zlast):
    for z in range(zfirst, zlast):
        zdl[z] = 1.e99

    for s in range(sfirst, slast):
        z = map_side2zone[s]
        e = map_side2edge[s]
        fac = 3.0 if zone_npts[z] == 3 else 4.0
        sdl = fac * sarea[s] / elen[e]
        zdl[z] = min(zdl[z], sdl)


@njit(nogil=True)
def _sum_to_points(cvar, cvec, pt_crnr_ptr, map_pt2crnr, pvar, pvec,
                   pfirst, plast):
    for p in range(pfirst, plast):
        m = 0.0
        fx = 0.0
        fy = 0.0
        for i in range(pt_crnr_ptr[p], pt_crnr_ptr[p + 1]):
            c = map_pt2crnr[i]
            m += cvar[c]
            fx += cvec[c, 0]
            fy += cvec[c, 1]
        pvar[p] = m
        pvec[p, 0] = fx
        pvec[p, 1] = fy
