"""Offset curve along a direction blended from two cross-tangent curves."""
import numpy
from scipy import special

from .. import config
from . import evaluator
from . import geometry

def _leibniz_product(a, b, n):
    """Derivatives 0..n of a product, given the derivatives of both factors.
    a and b are arrays of shape (n+1, ...) that broadcast against each other."""
    return numpy.array([sum(special.comb(k, i) * a[i] * b[k-i] for i in range(k+1)) for k in range(n+1)])

def _check_direction(norm, t):
    if norm == 0:
        raise ValueError('Blended cross tangent vanishes at t={}: the offset direction is undefined.'.format(t))


class CrossTangentOffset(evaluator.EvalCurve):
    """Offset from a space curve along a blend of two cross-tangent curves.

    The offset direction at parameter t is the blended cross tangent
        b(t) = blend1(t) * tangcv1(t) + blend2(t) * tangcv2(t)
    and the offset distance interpolates linearly between the lengths of b at
    the start and end of the domain:
        offset(t) = poscurve(t) + length(t) * b(t) / |b(t)|

    Parameters:
        poscurve: the curve from which the offset is taken.
        tangcv1, tangcv2: the cross-tangent curves.
        blend1, blend2: one-dimensional blending functions for each cross-tangent curve.

    All five are EvalCurves; they are only referenced, never modified.
    Evaluating where the blended cross tangent is the zero vector raises
    ValueError.
    """
    def __init__(self, poscurve, tangcv1, tangcv2, blend1, blend2):
        dim = poscurve.dimension()
        if tangcv1.dimension() != dim or tangcv2.dimension() != dim:
            raise ValueError('Cross-tangent curves must have the same dimension as the position curve.')
        if blend1.dimension() != 1 or blend2.dimension() != 1:
            raise ValueError('Blending functions must be one-dimensional.')
        self.poscurve = poscurve
        self.tangent_curves = (tangcv1, tangcv2)
        self.blends = (blend1, blend2)
        start, end = self.domain()
        self._start_length = numpy.linalg.norm(self.blended_tangent(start))
        self._end_length = numpy.linalg.norm(self.blended_tangent(end))

    def domain(self):
        return self.poscurve.domain()

    def dimension(self):
        return self.poscurve.dimension()

    def blended_tangent(self, t):
        """Blend of the two cross-tangent curves at parameter t."""
        return sum(blend.evaluate(t)[0] * tangent.evaluate(t) for tangent, blend in zip(self.tangent_curves, self.blends))

    def blended_tangent_derivatives(self, t, n):
        """Blended cross tangent and its first n derivatives: shape (n+1, dim)."""
        return sum(_leibniz_product(blend.evaluate_derivatives(t, n), tangent.evaluate_derivatives(t, n), n)
            for tangent, blend in zip(self.tangent_curves, self.blends))

    def length_derivatives(self, t, n):
        """Offset distance and its first n derivatives at t: shape (n+1,)."""
        start, end = self.domain()
        slope = (self._end_length - self._start_length) / (end - start)
        ders = numpy.zeros(n+1)
        ders[0] = self._start_length + slope * (t - start)
        if n > 0:
            ders[1] = slope
        return ders

    def length(self, t):
        return self.length_derivatives(t, 0)[0]

    def evaluate(self, t):
        tangent = self.blended_tangent(t)
        norm = numpy.linalg.norm(tangent)
        _check_direction(norm, t)
        return self.poscurve.evaluate(t) + self.length(t) * tangent / norm

    def evaluate_derivatives(self, t, n):
        evaluator.check_derivative_order(n)
        b = self.blended_tangent_derivatives(t, n)
        # |b|^2 = b.b, differentiated with the product rule; then s = |b| from s*s = b.b
        q = _leibniz_product(b, b, n).sum(axis=1)
        s = numpy.zeros(n+1)
        s[0] = numpy.sqrt(q[0])
        _check_direction(s[0], t)
        for k in range(1, n+1):
            cross_terms = sum(special.comb(k, i) * s[i] * s[k-i] for i in range(1, k))
            s[k] = (q[k] - cross_terms) / (2 * s[0])
        # unit direction u from b = s * u
        u = numpy.zeros_like(b)
        for k in range(n+1):
            u[k] = (b[k] - sum(special.comb(k, i) * s[i] * u[k-i] for i in range(1, k+1))) / s[0]
        lengths = self.length_derivatives(t, n)[:, numpy.newaxis]
        return self.poscurve.evaluate_derivatives(t, n) + _leibniz_product(lengths, u, n)

    def approximation_ok(self, t, approxpos, tol1, tol2):
        """Both tolerances are used.

        Parameters:
            tol1: spatial tolerance. If approxpos is farther than tol1 from the
                offset point, it is rejected; if it is within
                config.APPROXIMATION_MARGIN * tol1, it is accepted.
            tol2: angular tolerance (radians), consulted only in between: the
                offset vector from the position curve to approxpos must lie
                within tol2 of the plane spanned by the cross-tangent curves.
        """
        approxpos = numpy.asarray(approxpos, dtype=float)
        distance = numpy.linalg.norm(self.evaluate(t) - approxpos)
        if distance > tol1:
            return False
        if distance <= config.APPROXIMATION_MARGIN * tol1:
            return True
        offset = approxpos - self.poscurve.evaluate(t)
        tangents = [tangent.evaluate(t) for tangent in self.tangent_curves]
        return geometry.angle_to_span(offset, tangents) <= tol2
