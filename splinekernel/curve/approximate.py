"""Spline approximation of evaluators.

This is the fitting loop the rest of the package exists for: sample an
evaluator, solve the linear system for the spline coefficients with the dense
or the sparse solver, ask the evaluator whether the result is acceptable, and
refine the knot vector until it is.
"""
import collections
import logging

import numpy

from .. import config
from ..linalg import cg
from ..linalg import lu
from . import evaluator
from . import spline

logger = logging.getLogger(__name__)

Approximation = collections.namedtuple('Approximation', ('curves', 'within_tolerance', 'num_coefs'))
Interpolation = collections.namedtuple('Interpolation', ('curves', 'converged'))

def _sample(curve_evaluator, parameters):
    """Return a list with one array of shape (len(parameters), dim_i) per curve."""
    values = [curve_evaluator.evaluate(t) for t in parameters]
    if isinstance(curve_evaluator, evaluator.EvalCurveSet):
        return [numpy.array([value[i] for value in values]) for i in range(curve_evaluator.num_curves())]
    return [numpy.array(values)]


def _solve_lu(knots, degree, curve_evaluator):
    parameters = spline.greville_abscissae(knots, degree)
    samples = _sample(curve_evaluator, parameters)
    matrix = spline.collocation_matrix(knots, degree, parameters)
    # one decomposition serves every curve and every spatial dimension
    permutation, parity = lu.lu_decompose(matrix)
    return [lu.lu_solve(matrix, permutation, s) for s in samples]


def _solve_cg(knots, degree, curve_evaluator, relaxation, tolerance, max_iterations):
    num_coefs = len(knots) - degree - 1
    start, end = knots[degree], knots[-degree-1]
    parameters = numpy.linspace(start, end, 2 * num_coefs + 1)
    samples = _sample(curve_evaluator, parameters)
    collocation = spline.collocation_matrix(knots, degree, parameters)
    solver = cg.SolveCG(tolerance=tolerance, max_iterations=max_iterations)
    solver.attach_dense(numpy.dot(collocation.T, collocation))
    status = solver.precondition_rilu(relaxation)
    if status != cg.CGStatus.CONVERGED:
        logger.warning('Falling back to unpreconditioned CG (RILU status %s)', status.name)
        solver.attach_dense(numpy.dot(collocation.T, collocation))
    coefficients = []
    converged = True
    for s in samples:
        rhs = numpy.dot(collocation.T, s)
        columns = []
        for d in range(rhs.shape[1]):
            result = solver.solve(numpy.zeros(num_coefs), rhs[:, d])
            if result.status < 0:
                raise RuntimeError('Conjugate gradient solve failed with status {}.'.format(result.status.name))
            if result.status != cg.CGStatus.CONVERGED:
                converged = False
            columns.append(result.x)
        coefficients.append(numpy.transpose(columns))
    return coefficients, converged


def interpolate_evaluator(curve_evaluator, num_coefs, degree=config.APPROXIMATION_DEGREE, method='lu',
        relaxation=0.95, tolerance=1e-12, max_iterations=config.CG_MAX_ITERATIONS):
    """Fit spline curves with uniformly spaced knots to an evaluator.

    Parameters:
        curve_evaluator: an EvalCurve or EvalCurveSet.
        num_coefs: number of coefficients of each spline curve.
        degree: degree of the spline curves.
        method: 'lu' to interpolate the evaluator at the Greville abscissae of
            the knot vector with the dense solver, or 'cg' to fit twice as many
            samples in the least-squares sense, solving the normal equations
            with the RILU-preconditioned conjugate gradient solver.
        relaxation: RILU relaxation factor, for method='cg'.
        tolerance, max_iterations: stopping criteria of the CG solves.

    Returns: Interpolation named tuple (curves, converged)
        curves: a SplineCurve for an EvalCurve, or a list of num_curves()
            SplineCurves for an EvalCurveSet.
        converged: False if any CG solve stopped at the iteration limit, in
            which case the coefficients are the best iterates found.
    """
    start, end = curve_evaluator.domain()
    knots = spline.uniform_knots(num_coefs, degree, start, end)
    if method == 'lu':
        coefficients = _solve_lu(knots, degree, curve_evaluator)
        converged = True
    elif method == 'cg':
        coefficients, converged = _solve_cg(knots, degree, curve_evaluator, relaxation, tolerance, max_iterations)
    else:
        raise ValueError('Unknown method "{}": use "lu" or "cg".'.format(method))
    curves = [spline.SplineCurve(knots, c, degree) for c in coefficients]
    if not isinstance(curve_evaluator, evaluator.EvalCurveSet):
        curves = curves[0]
    return Interpolation(curves, converged)


def _breakpoints(curve):
    return numpy.unique(curve.knots[curve.degree:len(curve.knots)-curve.degree])


def check_approximation(curve_evaluator, curves, tol1, tol2):
    """Return whether the approximating curve (or list of curves, for an
    EvalCurveSet) is accepted by the evaluator at every knot and at every knot
    span midpoint."""
    if isinstance(curves, spline.SplineCurve):
        knots = _breakpoints(curves)
        approx = curves.evaluate
    else:
        knots = _breakpoints(curves[0])
        approx = lambda t: [curve.evaluate(t) for curve in curves]
    parameters = numpy.concatenate([knots, (knots[:-1] + knots[1:]) / 2])
    return all(curve_evaluator.approximation_ok(t, approx(t), tol1, tol2) for t in parameters)


def approximate_evaluator(curve_evaluator, tol1, tol2, degree=config.APPROXIMATION_DEGREE, initial_coefs=None,
        max_coefs=config.APPROXIMATION_MAX_COEFFICIENTS, method='lu', max_iterations=config.CG_MAX_ITERATIONS):
    """Approximate an evaluator by splines to within its own tolerances.

    The number of knot spans is doubled until the evaluator's
    approximation_ok() accepts the fit, or until max_coefs is reached.

    Parameters:
        curve_evaluator: an EvalCurve or EvalCurveSet.
        tol1, tol2: tolerances passed to curve_evaluator.approximation_ok()
        degree: degree of the spline curves.
        initial_coefs: number of coefficients to start with; default degree+1
        max_coefs: maximal number of coefficients.
        method: linear solver to use; see interpolate_evaluator().
        max_iterations: iteration limit of the CG solves, for method='cg'.

    Returns: Approximation named tuple (curves, within_tolerance, num_coefs).
        If within_tolerance is False, curves is the last approximation tried:
        either the finest one, or one whose CG solve did not converge.
    """
    num_coefs = degree + 1 if initial_coefs is None else initial_coefs
    while True:
        curves, converged = interpolate_evaluator(curve_evaluator, num_coefs, degree, method,
            max_iterations=max_iterations)
        if not converged:
            logger.warning('CG solve for %d coefficients stopped at the iteration limit', num_coefs)
            return Approximation(curves, False, num_coefs)
        if check_approximation(curve_evaluator, curves, tol1, tol2):
            logger.debug('Approximation within tolerance with %d coefficients', num_coefs)
            return Approximation(curves, True, num_coefs)
        if num_coefs >= max_coefs:
            logger.warning('Approximation not within tolerance with the maximal %d coefficients', num_coefs)
            return Approximation(curves, False, num_coefs)
        num_coefs = min(2 * num_coefs - degree, max_coefs)
