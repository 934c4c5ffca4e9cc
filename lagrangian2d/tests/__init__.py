"""
Test suite for the 2D Lagrangian solver.

Covers mesh topology and geometry, initialization, the predictor and
corrector stages, time step control, energy accounting, physics models,
boundary conditions, chunk execution and the simulation driver.
"""
