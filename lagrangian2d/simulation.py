"""
Main simulation driver for the 2D staggered Lagrangian solver.

Ties the mesh, the hydro cycle and the global time step selection
together into a time loop, with conservation checks, diagnostics and
visualization.
"""

import importlib
import time as walltime
import warnings
from typing import Dict, Any, Optional

import numpy as np
import matplotlib.pyplot as plt
from matplotlib.collections import PolyCollection

from pyro.util import msg

from .hydro import create_hydro_from_params
from .mesh import create_mesh_from_params
from .params import apply_overrides, load_params
from .parallel import ChunkExecutor
from .timestep import create_timestepper_from_params


class Simulation:
    """
    2D Lagrangian compressible hydrodynamics simulation.

    Theory:
    Each cycle advances the solution with the explicit predictor-corrector
    scheme of ``Hydro.do_cycle``. The time step of the next cycle is the
    smallest of the user limits (dtinit, dtmax, growth factor dtfac, tstop)
    and the Courant / volume change recommendation returned by the cycle.

    Attributes:
        problem_name (str): Name of the problem setup
        rp (RuntimeParameters): Runtime parameters
        mesh (LagrangianMesh2d): Computational mesh
        hydro (Hydro): Fields and cycle driver
        timestepper (GlobalTimestepper): Global time step selection
        executor (ChunkExecutor): Chunk and task pools
        time (float): Simulation time
        cycle (int): Number of completed cycles
        dt (float): Last time step
        recommend (TimeStep): Hydro recommendation for the next cycle

        # Conservation tracking
        mass_initial (float): Initial total mass
        energy_initial (float): Initial total energy
    """

    def __init__(self, problem_name: str, rp=None,
                 overrides: Optional[Dict[str, Any]] = None):
        """
        Args:
            problem_name: Name of a problem in lagrangian2d/problems
            rp: RuntimeParameters; loaded from the problem inputs if None
            overrides: "section.key" -> value pairs applied on top
        """
        self.problem_name = problem_name
        if rp is None:
            rp = load_params(problem_name, overrides=overrides)
        elif overrides:
            apply_overrides(rp, overrides)
        self.rp = rp

        self.mesh = None
        self.hydro = None
        self.timestepper = None
        self.executor = None
        self.problem = None

        self.time = 0.0
        self.cycle = 0
        self.dt = 0.0
        self.recommend = None

        self.mass_initial = 0.0
        self.energy_initial = 0.0

        self.tstop = rp.get_param("driver.tstop")
        self.cstop = rp.get_param("driver.cstop")
        self.dtreport = rp.get_param("driver.dtreport")
        self.verbose = rp.get_param("driver.verbose")

    def initialize(self):
        """Initialize all simulation components."""
        self.problem = importlib.import_module(
            f"lagrangian2d.problems.{self.problem_name}.problem")
        self.problem.init_data(self.rp)

        self.executor = ChunkExecutor(self.rp.get_param("hydro.num_workers"))
        self.mesh = create_mesh_from_params(self.rp)
        self.hydro = create_hydro_from_params(self.rp, self.mesh, self.executor)
        self.timestepper = create_timestepper_from_params(self.rp)

        self.mass_initial = float(np.sum(self.hydro.zone_mass))
        ei, ek = self.hydro.sum_energy()
        self.energy_initial = ei + ek

        msg.success("Lagrangian simulation initialized successfully")

    def finished(self) -> bool:
        return self.cycle >= self.cstop or self.time >= self.tstop

    def compute_timestep(self) -> float:
        """
        Select the time step of the next cycle.

        Returns:
            Time step
        """
        return self.timestepper.compute_timestep(self.cycle, self.time,
                                                 self.recommend)

    def advance_timestep(self, dt: float):
        """
        Advance the solution by one cycle.

        Args:
            dt: Time step
        """
        self.recommend = self.hydro.do_cycle(dt)
        self.cycle += 1
        self.time += dt
        self.dt = dt

    def evolve(self):
        """Run cycles until tstop or cstop is reached."""
        tstart = walltime.time()

        while not self.finished():
            dt = self.compute_timestep()
            self.advance_timestep(dt)

            if self.verbose > 0 and (self.cycle == 1 or self.cycle % self.dtreport == 0):
                wall = walltime.time() - tstart
                print(f"End cycle {self.cycle:6d}, time = {self.time:11.5g}, "
                      f"dt = {dt:11.5g}, wall = {wall:11.5g}")
                print(f"dt limiter: {self.timestepper.message}")

        if self.cycle >= self.cstop and self.time < self.tstop:
            warnings.warn(f"Stopped at cycle limit {self.cstop} before tstop")

    def finalize(self):
        """Report energy and shut down the worker pools."""
        self.hydro.write_energy_check()
        if hasattr(self.problem, "finalize"):
            self.problem.finalize(self)
        self.shutdown()
        msg.success(f"run complete: {self.cycle} cycles, t = {self.time:.6g}")

    def shutdown(self):
        """Stop the worker pools; safe to call more than once."""
        if self.executor is not None:
            self.executor.shutdown()

    def check_conservation(self) -> Dict[str, float]:
        """Check conservation of mass and energy."""
        mass = float(np.sum(self.hydro.zone_mass))
        ei, ek = self.hydro.sum_energy()
        energy = ei + ek

        mass_error = abs(mass - self.mass_initial) / self.mass_initial
        energy_error = abs(energy - self.energy_initial) / max(abs(self.energy_initial), 1e-10)

        return {
            'mass_error': mass_error,
            'energy_error': energy_error,
            'mass_current': mass,
            'energy_current': energy,
            'internal_energy': ei,
            'kinetic_energy': ek,
        }

    def get_diagnostics(self) -> Dict[str, Any]:
        """Get diagnostic information."""
        return {
            'time': self.time,
            'cycle': self.cycle,
            'timestep': self.dt,
            'recommend': self.recommend,
            'conservation': self.check_conservation(),
            'mesh_quality': self.mesh.check_mesh_quality(),
            'timestepper': self.timestepper.get_diagnostics(),
        }

    def dovis(self):
        """Plot zone density, pressure and energy on the moving mesh."""
        plt.clf()

        fig, axes = plt.subplots(2, 2, figsize=(12, 10))
        fig.suptitle(f'{self.problem_name}: t = {self.time:.4f}, cycle {self.cycle}')

        mesh = self.mesh
        polys = [mesh.pt_x[mesh.map_side2pt1[mesh.zone_pts_ptr[z]:mesh.zone_pts_ptr[z + 1]]]
                 for z in range(mesh.num_zones)]

        fields = [('Density', self.hydro.zone_rho),
                  ('Pressure', self.hydro.zone_pressure),
                  ('Specific internal energy', self.hydro.zone_energy_density)]

        for ax, (title, data) in zip(axes.flat, fields):
            coll = PolyCollection(polys, cmap='viridis', edgecolors='none')
            coll.set_array(data)
            ax.add_collection(coll)
            ax.autoscale_view()
            ax.set_aspect('equal')
            ax.set_title(title)
            fig.colorbar(coll, ax=ax)

        ax = axes[1, 1]
        ax.add_collection(PolyCollection(polys, facecolors='none',
                                         edgecolors='k', linewidths=0.3))
        ax.autoscale_view()
        ax.set_aspect('equal')
        ax.set_title('Mesh')

        plt.tight_layout()
        plt.draw()
        return fig


def run(problem_name: str, overrides: Optional[Dict[str, Any]] = None) -> Simulation:
    """
    Initialize, evolve and finalize a problem.

    Returns:
        The finished Simulation
    """
    sim = Simulation(problem_name, overrides=overrides)
    try:
        sim.initialize()
        sim.evolve()
        sim.finalize()
    finally:
        sim.shutdown()
    return sim
