"""
A 2D staggered-grid Lagrangian hydrodynamics solver for compressible flow.
Points carry kinematics, zones carry thermodynamics, and forces are
assembled on sides and corners.

Key features:
- Explicit predictor-corrector cycle with half-step force evaluation
- Pluggable pressure, artificial viscosity and stabilization models
- Exact mass conservation (zone mass fixed at initialization)
- Courant and volume-change time step control
- Internal/kinetic energy accounting in planar or cylindrical geometry
- Chunk-parallel execution with explicit reductions

"""

__all__ = ["simulation"]

from .simulation import Simulation, run
