"""
Sedov blast wave in cylindrical (r-z) geometry.

A cold uniform gas (rho = 1, e = 0) receives a large specific internal
energy in a small box at the origin. Reflecting boundaries on the axis
and on the z = 0 plane make the corner a quarter of a spherical blast.
"""

from pyro.util import msg


def init_data(rp):
    """
    Check the Sedov parameters.

    Args:
        rp: The RuntimeParameters object
    """
    msg.bold("initializing the Sedov problem...")

    if rp.get_param("mesh.subregion_xmin") >= 1.e99:
        raise ValueError("Sedov problem needs an energy deposition subregion")
    if rp.get_param("hydro.energy_init_sub") <= 0.0:
        raise ValueError("Sedov problem needs a positive energy_init_sub")


def finalize(sim):
    """Print the location of the peak density."""
    zx = sim.hydro.mesh.zone_x
    zmax = int(sim.hydro.zone_rho.argmax())
    r = (zx[zmax, 0] ** 2 + zx[zmax, 1] ** 2) ** 0.5
    print(f"peak density {sim.hydro.zone_rho[zmax]:.4f} at r = {r:.4f}")
