"""B-spline curves and surfaces, evaluated with scipy.interpolate.BSpline.

These are the concrete curve and surface types the evaluators and fitting
routines work with. A curve is described by its knots, coefficients of shape
(n, d) and degree k, like the (t, c, k) spline tuples of scipy.interpolate.
"""
import collections

import numpy
from scipy import interpolate

from . import closest_point
from . import evaluator

class RectDomain(collections.namedtuple('RectDomain', ('umin', 'umax', 'vmin', 'vmax'))):
    """Rectangular parameter domain of a surface."""
    __slots__ = ()

    @property
    def lower(self):
        return numpy.array([self.umin, self.vmin])

    @property
    def upper(self):
        return numpy.array([self.umax, self.vmax])

    def clip(self, par):
        """Return the parameter point (u, v) moved inside the domain."""
        return numpy.clip(par, self.lower, self.upper)

    def contains(self, par):
        return self.umin <= par[0] <= self.umax and self.vmin <= par[1] <= self.vmax

    def intersect(self, other):
        """Return the common part of two domains."""
        domain = RectDomain(max(self.umin, other.umin), min(self.umax, other.umax),
            max(self.vmin, other.vmin), min(self.vmax, other.vmax))
        if domain.umin > domain.umax or domain.vmin > domain.vmax:
            raise ValueError('Domains {} and {} do not overlap.'.format(self, other))
        return domain


def _check_spline(knots, num_coefs, degree):
    if degree < 0:
        raise ValueError('Degree must be non-negative.')
    if len(knots) != num_coefs + degree + 1:
        raise ValueError('A degree {} spline with {} coefficients needs {} knots, not {}.'.format(
            degree, num_coefs, num_coefs + degree + 1, len(knots)))
    if numpy.any(numpy.diff(knots) < 0):
        raise ValueError('Knots must be non-decreasing.')


def _basis_values(basis, degree, x, derivative):
    # scipy only differentiates up to the degree; higher derivatives vanish
    if derivative > degree:
        return numpy.zeros(basis.c.shape[0])
    return basis(x, nu=derivative)


class SplineCurve(evaluator.EvalCurve):
    """Non-rational B-spline curve in any dimension."""
    def __init__(self, knots, coefficients, degree):
        knots = numpy.array(knots, dtype=float)
        coefficients = numpy.array(coefficients, dtype=float)
        if coefficients.ndim == 1:
            coefficients = coefficients[:, numpy.newaxis]
        _check_spline(knots, len(coefficients), degree)
        self.knots = knots
        self.coefficients = coefficients
        self.degree = degree
        self._spline = interpolate.BSpline(knots, coefficients, degree)

    @classmethod
    def line(cls, p0, p1, start=0, end=1):
        """Straight line from p0 at parameter start to p1 at parameter end."""
        return cls([start, start, end, end], [p0, p1], 1)

    @classmethod
    def constant(cls, value, start=0, end=1):
        """Curve with the same value everywhere on [start, end]."""
        value = numpy.atleast_1d(numpy.asarray(value, dtype=float))
        return cls([start, start, end, end], [value, value], 1)

    def domain(self):
        return self.knots[self.degree], self.knots[-self.degree-1]

    def dimension(self):
        return self.coefficients.shape[1]

    def evaluate(self, t):
        return self._spline(t)

    def evaluate_derivatives(self, t, n):
        evaluator.check_derivative_order(n)
        ders = numpy.zeros((n+1, self.dimension()))
        for d in range(min(n, self.degree) + 1):
            ders[d] = self._spline(t, nu=d)
        return ders

    def approximation_ok(self, t, approxpos, tol1, tol2):
        """A position is acceptable if it is within tol1 of the curve point."""
        return numpy.linalg.norm(self.evaluate(t) - approxpos) <= tol1

    def closest_point(self, point, tmin=None, tmax=None, seed=None, **kws):
        """Closest point on the curve to 'point'; see closest_point.closest_point()."""
        return closest_point.closest_point(self, point, tmin, tmax, seed, **kws)


class SplineSurface:
    """Tensor-product B-spline surface.

    Parameters:
        knots_u, knots_v: knot vectors in the two parameter directions
        coefficients: array of shape (nu, nv, d)
        degree_u, degree_v: degree in each direction
    """
    def __init__(self, knots_u, knots_v, coefficients, degree_u, degree_v):
        knots_u = numpy.array(knots_u, dtype=float)
        knots_v = numpy.array(knots_v, dtype=float)
        coefficients = numpy.array(coefficients, dtype=float)
        if coefficients.ndim != 3:
            raise ValueError('Surface coefficients must have shape (nu, nv, d).')
        nu, nv, d = coefficients.shape
        _check_spline(knots_u, nu, degree_u)
        _check_spline(knots_v, nv, degree_v)
        self.knots_u = knots_u
        self.knots_v = knots_v
        self.coefficients = coefficients
        self.degree_u = degree_u
        self.degree_v = degree_v
        # evaluating with identity coefficients gives the values of all basis functions at once
        self._basis_u = interpolate.BSpline(knots_u, numpy.eye(nu), degree_u)
        self._basis_v = interpolate.BSpline(knots_v, numpy.eye(nv), degree_v)

    @classmethod
    def bilinear(cls, p00, p10, p01, p11, domain=RectDomain(0, 1, 0, 1)):
        """Bilinear patch with the given corners: p10 is the corner at (umax, vmin)."""
        coefficients = [[p00, p01], [p10, p11]]
        return cls([domain.umin]*2 + [domain.umax]*2, [domain.vmin]*2 + [domain.vmax]*2, coefficients, 1, 1)

    def domain(self):
        return RectDomain(self.knots_u[self.degree_u], self.knots_u[-self.degree_u-1],
            self.knots_v[self.degree_v], self.knots_v[-self.degree_v-1])

    def dimension(self):
        return self.coefficients.shape[2]

    def _evaluate(self, u, v, du, dv):
        bu = _basis_values(self._basis_u, self.degree_u, u, du)
        bv = _basis_values(self._basis_v, self.degree_v, v, dv)
        return numpy.einsum('i,j,ijk->k', bu, bv, self.coefficients)

    def evaluate(self, u, v):
        return self._evaluate(u, v, 0, 0)

    def evaluate_derivatives(self, u, v, n):
        """Return the position and all partial derivatives up to total order n at
        (u, v), as an array of shape ((n+1)(n+2)/2, d) ordered S, Su, Sv, Suu,
        Suv, Svv, Suuu, ..."""
        evaluator.check_derivative_order(n)
        ders = []
        for total in range(n+1):
            for dv in range(total+1):
                ders.append(self._evaluate(u, v, total-dv, dv))
        return numpy.array(ders)

    def normal(self, u, v):
        """Unit normal of a surface in 3D space."""
        if self.dimension() != 3:
            raise ValueError('Normals are only defined for surfaces in 3D.')
        su, sv = self.evaluate_derivatives(u, v, 1)[1:]
        normal = numpy.cross(su, sv)
        return normal / numpy.linalg.norm(normal)

    def closest_point(self, point, domain=None, seed=None, **kws):
        """Closest point on the surface to 'point'; see closest_point.closest_point_on_surface()."""
        return closest_point.closest_point_on_surface(self, point, domain, seed, **kws)


def uniform_knots(num_coefs, degree, start=0, end=1):
    """Clamped knot vector with uniformly spaced interior knots."""
    if num_coefs <= degree:
        raise ValueError('A degree {} spline needs more than {} coefficients.'.format(degree, degree))
    interior = numpy.linspace(start, end, num_coefs - degree + 1)[1:-1]
    return numpy.concatenate([[start]*(degree+1), interior, [end]*(degree+1)])


def greville_abscissae(knots, degree):
    """Parameter values associated with each coefficient of a spline: the means
    of 'degree' consecutive interior knots."""
    knots = numpy.asarray(knots, dtype=float)
    num_coefs = len(knots) - degree - 1
    if degree == 0:
        return (knots[:-1] + knots[1:]) / 2
    return numpy.array([knots[i+1:i+degree+1].mean() for i in range(num_coefs)])


def collocation_matrix(knots, degree, parameters, derivative=0):
    """Values of all basis functions (or their derivatives) at the given
    parameters: array of shape (len(parameters), num_coefs)."""
    num_coefs = len(knots) - degree - 1
    basis = interpolate.BSpline(knots, numpy.eye(num_coefs), degree)
    return numpy.array([_basis_values(basis, degree, p, derivative) for p in parameters])

