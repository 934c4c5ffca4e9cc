"""
Noh implosion.

Cold gas (rho = 1, e = 0) moves radially inward with unit speed. A shock
forms at the origin and travels outward at 1/3 for gamma = 5/3; behind it
the gas is at rest with density 64 in spherical (r-z) geometry.
"""

from pyro.util import msg


def init_data(rp):
    """
    Check the Noh parameters.

    Args:
        rp: The RuntimeParameters object
    """
    msg.bold("initializing the Noh problem...")

    if rp.get_param("hydro.vel_init_radial") >= 0.0:
        raise ValueError("Noh problem needs an inward (negative) vel_init_radial")


def finalize(sim):
    """Print the analytic shock radius for comparison."""
    gamma = sim.hydro.pressure_model.gamma
    shock_speed = 0.5 * (gamma - 1.0)
    print(f"analytic shock radius at t = {sim.time:.4f}: {shock_speed * sim.time:.4f}")
