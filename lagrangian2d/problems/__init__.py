"""Problem setups for the 2D Lagrangian solver."""

__all__ = ["sedov", "noh"]
