'''
Linalg
------
Linear equation solvers used to compute spline coefficients from fitting equations.
 - linalg.lu: dense LU decomposition with scaled partial pivoting, and forward/backward substitution for one or several right-hand sides.
 - linalg.cg: conjugate gradient solver for sparse symmetric positive definite systems, with RILU preconditioning.
'''
