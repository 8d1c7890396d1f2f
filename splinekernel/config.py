"""Numerical defaults shared by the solvers, searches and evaluators.

Import these values instead of hard-coding magic numbers inside the
algorithms; every routine that uses one also accepts a keyword argument
overriding it.
"""

# Conjugate gradient
CG_TOLERANCE = 1e-6 # residual norm relative to the norm of the right-hand side
CG_MAX_ITERATIONS = 1000

# Closest-point search
CLOSEST_POINT_MAX_ITERATIONS = 30
CLOSEST_POINT_EPSILON = 1e-10 # spatial step length regarded as converged
CLOSEST_POINT_SAMPLES = 20 # coarse samples along a curve when no seed is given
SURFACE_SAMPLES = 10 # coarse samples per parameter direction on a surface

# Approximation checks
APPROXIMATION_MARGIN = 0.5 # fraction of tol1 that counts as "convincingly" inside

# Fitting driver
APPROXIMATION_DEGREE = 3
APPROXIMATION_MAX_COEFFICIENTS = 512
