"""
Physics model interface for the hydro cycle.

The driver only needs two capabilities from a model: optionally updating
zone state at the half step, and writing a force per side. Models read the
fields they need from the ``Hydro`` instance handed to them, so swapping
one implementation for another never changes the driver's control flow.
"""

from abc import ABC, abstractmethod

import numpy as np


class HydroModel(ABC):
    """A model that contributes a force on every side."""

    @abstractmethod
    def calc_force(self, hydro, sf: np.ndarray, sfirst: int, slast: int):
        """
        Write this model's side forces for sides [sfirst, slast).

        Args:
            hydro: Hydro instance holding mesh and field arrays
            sf: Side force array to fill [num_sides, 2]
            sfirst, slast: Side range of the chunk
        """


class PressureModel(HydroModel):
    """Equation of state: half-step pressure and sound speed plus pressure force."""

    @abstractmethod
    def calc_state_at_half(self, hydro, dt: float, zfirst: int, zlast: int):
        """Update hydro.zone_pressure and hydro.zone_sound_speed for [zfirst, zlast)."""


class ViscosityModel(HydroModel):
    """
    Artificial viscosity.

    Implementations also set ``hydro.zone_dvel``, the velocity difference
    scale used by the Courant limit.
    """


class StabilizationModel(HydroModel):
    """Supplementary force suppressing spurious (hourglass-like) motion."""


def create_models(rp):
    """
    Build the default pressure, viscosity and stabilization models.

    Args:
        rp: RuntimeParameters object

    Returns:
        (PolyGas, QCS, TTS)
    """
    from .polygas import PolyGas
    from .qcs import QCS
    from .tts import TTS

    return PolyGas.from_params(rp), QCS.from_params(rp), TTS.from_params(rp)
