"""Closest-point search on parametric curves and surfaces.

Both searches run Newton iterations on the condition that the residual vector
from the target point is perpendicular to the curve (or surface) tangents,
keeping the parameter inside the search domain. If no seed parameter is given,
a coarse sampling pass picks one.

A search that does not converge within the iteration limit is not an error:
the best point found is returned with converged=False.
"""
import collections
import logging

import numpy

from .. import config
from ..linalg import lu
from . import geometry

logger = logging.getLogger(__name__)

ClosestPoint = collections.namedtuple('ClosestPoint', ('parameter', 'point', 'distance', 'converged'))

def closest_point(curve, point, tmin=None, tmax=None, seed=None, epsilon=config.CLOSEST_POINT_EPSILON,
        max_iterations=config.CLOSEST_POINT_MAX_ITERATIONS, samples=config.CLOSEST_POINT_SAMPLES):
    """Find the point on a curve interval closest to a given point.

    Parameters:
        curve: an EvalCurve providing positions and first and second derivatives.
        point: target point, shape (dim,)
        tmin, tmax: search interval; defaults to the curve's domain.
        seed: starting parameter. If None, the curve is sampled at 'samples'
            intervals and the closest point on the resulting polyline is used.
        epsilon: the search has converged when the spatial step, or the
            component of the residual along the tangent, is below epsilon.
        max_iterations: number of Newton steps after which the search gives up.

    Returns: ClosestPoint named tuple (parameter, point, distance, converged).
        If converged is False, the values describe the best point found, which
        is not guaranteed to be a local minimum.
    """
    start, end = curve.domain()
    tmin = start if tmin is None else tmin
    tmax = end if tmax is None else tmax
    if tmin > tmax:
        raise ValueError('Empty search interval [{}, {}].'.format(tmin, tmax))
    point = numpy.asarray(point, dtype=float)
    if point.shape != (curve.dimension(),):
        raise ValueError('Point of shape {} does not match curve dimension {}.'.format(point.shape, curve.dimension()))
    if seed is None:
        seed = _sample_curve_seed(curve, point, tmin, tmax, samples)
    t = float(numpy.clip(seed, tmin, tmax))

    best = None
    for iteration in range(max_iterations):
        pos, d1, d2 = curve.evaluate_derivatives(t, 2)
        residual = pos - point
        distance = numpy.linalg.norm(residual)
        if best is None or distance < best.distance:
            best = ClosestPoint(t, pos, distance, False)
        speed2 = numpy.dot(d1, d1)
        f = numpy.dot(d1, residual)
        if speed2 == 0 or abs(f) <= epsilon * numpy.sqrt(speed2):
            return ClosestPoint(t, pos, distance, True)
        fprime = numpy.dot(d2, residual) + speed2
        if fprime <= 0:
            # not locally convex: fall back to the Gauss-Newton step
            fprime = speed2
        new_t = float(numpy.clip(t - f / fprime, tmin, tmax))
        step = abs(new_t - t) * numpy.sqrt(speed2)
        if new_t == t or step < epsilon:
            # either converged, or stuck on a bound with the minimum outside the interval
            pos = curve.evaluate(new_t)
            return ClosestPoint(new_t, pos, numpy.linalg.norm(pos - point), True)
        t = new_t

    logger.warning('Closest point search did not converge in %d iterations; best distance %g at t=%g',
        max_iterations, best.distance, best.parameter)
    return best


def _sample_curve_seed(curve, point, tmin, tmax, samples):
    if tmin == tmax:
        return tmin
    parameters = numpy.linspace(tmin, tmax, samples + 1)
    points = numpy.array([curve.evaluate(t) for t in parameters])
    return geometry.closest_point_on_polyline(point, points, parameters)[1]


def closest_point_on_surface(surface, point, domain=None, seed=None, epsilon=config.CLOSEST_POINT_EPSILON,
        max_iterations=config.CLOSEST_POINT_MAX_ITERATIONS, samples=config.SURFACE_SAMPLES):
    """Find the point on a surface closest to a given point.

    Parameters:
        surface: object with domain() returning a RectDomain, evaluate(u, v)
            and evaluate_derivatives(u, v, 2) (e.g. a SplineSurface).
        point: target point, shape (dim,)
        domain: optional RectDomain restricting the search to part of the
            surface's parameter domain.
        seed: starting (u, v) parameter. If None, the best of a grid of
            (samples+1)**2 surface points is used.
        epsilon: the search has converged when the spatial step, or the
            components of the residual along both partial derivatives, are
            below epsilon.
        max_iterations: number of Newton steps after which the search gives up.

    Returns: ClosestPoint named tuple (parameter, point, distance, converged),
        where parameter is an array (u, v).
    """
    search_domain = surface.domain() if domain is None else surface.domain().intersect(domain)
    point = numpy.asarray(point, dtype=float)
    if seed is None:
        seed = _sample_surface_seed(surface, point, search_domain, samples)
    par = search_domain.clip(numpy.asarray(seed, dtype=float))

    best = None
    for iteration in range(max_iterations):
        pos, su, sv, suu, suv, svv = surface.evaluate_derivatives(par[0], par[1], 2)
        residual = pos - point
        distance = numpy.linalg.norm(residual)
        if best is None or distance < best.distance:
            best = ClosestPoint(par, pos, distance, False)
        gradient = numpy.array([numpy.dot(su, residual), numpy.dot(sv, residual)])
        lengths = numpy.array([numpy.linalg.norm(su), numpy.linalg.norm(sv)])
        if numpy.all(numpy.absolute(gradient) <= epsilon * lengths):
            return ClosestPoint(par, pos, distance, True)
        first_fundamental = numpy.array([[numpy.dot(su, su), numpy.dot(su, sv)],
                                         [numpy.dot(su, sv), numpy.dot(sv, sv)]])
        hessian = first_fundamental + numpy.array([[numpy.dot(suu, residual), numpy.dot(suv, residual)],
                                                   [numpy.dot(suv, residual), numpy.dot(svv, residual)]])
        if hessian[0, 0] <= 0 or numpy.linalg.det(hessian) <= 0:
            # not locally convex: fall back to the Gauss-Newton step
            hessian = first_fundamental
        try:
            step = lu.lu_solve_system(hessian, -gradient)
        except lu.LUDecompositionError:
            logger.warning('Degenerate surface parameterization at (%g, %g); closest point search stopped', *par)
            return best
        new_par = search_domain.clip(par + step)
        actual = new_par - par
        spatial_step = numpy.linalg.norm(actual[0] * su + actual[1] * sv)
        if numpy.all(new_par == par) or spatial_step < epsilon:
            pos = surface.evaluate(*new_par)
            return ClosestPoint(new_par, pos, numpy.linalg.norm(pos - point), True)
        par = new_par

    logger.warning('Surface closest point search did not converge in %d iterations; best distance %g',
        max_iterations, best.distance)
    return best


def _sample_surface_seed(surface, point, domain, samples):
    us = numpy.linspace(domain.umin, domain.umax, samples + 1)
    vs = numpy.linspace(domain.vmin, domain.vmax, samples + 1)
    parameters = [(u, v) for u in us for v in vs]
    points = numpy.array([surface.evaluate(u, v) for u, v in parameters])
    i, closest = geometry.closest_point(point, points)
    return parameters[i]
