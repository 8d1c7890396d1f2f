"""Projection of a space curve and its cross-tangent curve onto a surface."""
import logging

import numpy

from ..linalg import lu
from . import closest_point
from . import evaluator
from . import geometry

logger = logging.getLogger(__name__)

class ProjectCurveAndCrossTan(evaluator.EvalCurveSet):
    """Evaluator for the projection of a space curve, and of the cross-tangent
    curve that goes with it, onto a surface.

    Three curves are evaluated at each parameter:
        0: the parameter point (u, v) of the projection onto the surface,
        1: the corresponding point on the surface,
        2: the cross tangent projected into the tangent plane of the surface,
           expressed as coefficients (a, b) of the partial derivatives Su, Sv.

    The input curves and surface are only referenced, never modified.

    Parameters:
        space_curve: the space curve to project (an EvalCurve).
        crosstan_curve: the cross-tangent curve belonging to space_curve.
        surface: the surface to project onto (e.g. a SplineSurface).
        start_par_pt, end_par_pt: if not None, the parameter point the projected
            curve must start (end) in, whether or not it is the closest point.
        epsgeo: geometric tolerance of the projection.
        domain_of_interest: if not None, a RectDomain restricting the part of
            the surface's parameter domain that is considered.
    """
    def __init__(self, space_curve, crosstan_curve, surface, start_par_pt=None, end_par_pt=None,
            epsgeo=1e-6, domain_of_interest=None):
        dim = surface.dimension()
        if space_curve.dimension() != dim or crosstan_curve.dimension() != dim:
            raise ValueError('Space curve, cross-tangent curve and surface must have the same dimension.')
        self.space_curve = space_curve
        self.crosstan_curve = crosstan_curve
        self.surface = surface
        self.start_par_pt = None if start_par_pt is None else numpy.array(start_par_pt, dtype=float)
        self.end_par_pt = None if end_par_pt is None else numpy.array(end_par_pt, dtype=float)
        self.epsgeo = epsgeo
        self.domain_of_interest = domain_of_interest

    def domain(self):
        return self.space_curve.domain()

    def dimension(self):
        # the parameter curve is the primary one
        return 2

    def num_curves(self):
        return 3

    def _seed(self, t):
        if self.start_par_pt is None or self.end_par_pt is None:
            return None
        start, end = self.domain()
        fraction = (t - start) / (end - start)
        return (1 - fraction) * self.start_par_pt + fraction * self.end_par_pt

    def _parameter_point(self, t):
        start, end = self.domain()
        if self.start_par_pt is not None and t == start:
            return self.start_par_pt.copy()
        if self.end_par_pt is not None and t == end:
            return self.end_par_pt.copy()
        result = closest_point.closest_point_on_surface(self.surface, self.space_curve.evaluate(t),
            self.domain_of_interest, self._seed(t), epsilon=self.epsgeo)
        if not result.converged:
            logger.debug('Projection at t=%g did not converge (distance %g)', t, result.distance)
        return result.parameter

    def _search_domain(self):
        domain = self.surface.domain()
        return domain if self.domain_of_interest is None else domain.intersect(self.domain_of_interest)

    def _parameter_derivative(self, par, hessian, gram, rhs):
        # a coordinate held on a bound of the search domain does not move with t;
        # only the free coordinates follow the closest-point condition
        search_domain = self._search_domain()
        free = (par != search_domain.lower) & (par != search_domain.upper)
        d_par = numpy.zeros(2)
        if free.all():
            try:
                return lu.lu_solve_system(hessian, rhs)
            except lu.LUDecompositionError:
                return lu.lu_solve_system(gram.copy(), rhs)
        for i in numpy.nonzero(free)[0]:
            curvature = hessian[i, i] if hessian[i, i] > 0 else gram[i, i]
            if curvature != 0:
                d_par[i] = rhs[i] / curvature
        return d_par

    def evaluate(self, t):
        par = self._parameter_point(t)
        pos, su, sv = self.surface.evaluate_derivatives(par[0], par[1], 1)
        crosstan = self.crosstan_curve.evaluate(t)
        coefficients = geometry.project_onto_span(crosstan, [su, sv])[0]
        return [par, pos, coefficients]

    def evaluate_derivatives(self, t, n):
        """Evaluate the three curves and their first derivatives. Only n <= 1 is
        supported: the derivatives follow from implicit differentiation of the
        closest-point condition. Where the parameter point lies on a bound of
        the searched domain, that coordinate has zero derivative."""
        evaluator.check_derivative_order(n, 1)
        par = self._parameter_point(t)
        pos, su, sv, suu, suv, svv = self.surface.evaluate_derivatives(par[0], par[1], 2)
        crosstan, d_crosstan = self.crosstan_curve.evaluate_derivatives(t, 1)
        gram = numpy.array([[numpy.dot(su, su), numpy.dot(su, sv)],
                            [numpy.dot(su, sv), numpy.dot(sv, sv)]])
        h = numpy.array([numpy.dot(su, crosstan), numpy.dot(sv, crosstan)])
        coefficients = lu.lu_solve_system(gram.copy(), h)
        if n == 0:
            return [par[numpy.newaxis], pos[numpy.newaxis], coefficients[numpy.newaxis]]

        space_pos, d_space = self.space_curve.evaluate_derivatives(t, 1)
        residual = pos - space_pos
        # d/dt [Su.(S-C), Sv.(S-C)] = 0 gives H.(du, dv) = (Su.C', Sv.C')
        hessian = gram + numpy.array([[numpy.dot(suu, residual), numpy.dot(suv, residual)],
                                      [numpy.dot(suv, residual), numpy.dot(svv, residual)]])
        rhs = numpy.array([numpy.dot(su, d_space), numpy.dot(sv, d_space)])
        d_par = self._parameter_derivative(par, hessian, gram, rhs)
        d_pos = d_par[0] * su + d_par[1] * sv

        d_su = d_par[0] * suu + d_par[1] * suv
        d_sv = d_par[0] * suv + d_par[1] * svv
        d_gram = numpy.array([[2 * numpy.dot(su, d_su), numpy.dot(d_su, sv) + numpy.dot(su, d_sv)],
                              [numpy.dot(d_su, sv) + numpy.dot(su, d_sv), 2 * numpy.dot(sv, d_sv)]])
        d_h = numpy.array([numpy.dot(d_su, crosstan) + numpy.dot(su, d_crosstan),
                           numpy.dot(d_sv, crosstan) + numpy.dot(sv, d_crosstan)])
        d_coefficients = lu.lu_solve_system(gram, d_h - numpy.dot(d_gram, coefficients))
        return [numpy.array([par, d_par]), numpy.array([pos, d_pos]), numpy.array([coefficients, d_coefficients])]

    def approximation_ok(self, t, approxpos, tol1, tol2):
        """The approximated parameter point must map to a surface point, and the
        approximated space point must lie, within tol1 of the projected point;
        the approximated cross tangent must be within angle tol2 (radians) of the
        projected cross tangent."""
        par, pos, coefficients = self.evaluate(t)
        approx_par, approx_pos, approx_coefficients = approxpos
        surface_pos, su, sv = self.surface.evaluate_derivatives(approx_par[0], approx_par[1], 1)
        if numpy.linalg.norm(surface_pos - pos) > tol1:
            return False
        if numpy.linalg.norm(numpy.asarray(approx_pos) - pos) > tol1:
            return False
        exact_su, exact_sv = self.surface.evaluate_derivatives(par[0], par[1], 1)[1:]
        crosstan = coefficients[0] * exact_su + coefficients[1] * exact_sv
        approx_crosstan = approx_coefficients[0] * su + approx_coefficients[1] * sv
        return geometry.angle_between_vectors(crosstan, approx_crosstan) <= tol2
