"""Interfaces for things that can be evaluated along a parameter and approximated
by splines.

An EvalCurve gives one position per parameter value; an EvalCurveSet gives a
fixed number of positions (one per logical sub-curve), possibly of differing
dimension. Fitting and search code depends only on these interfaces, never on
a particular curve representation.
"""
import abc

def check_derivative_order(n, max_order=None):
    """Raise ValueError if n is not a valid number of derivatives to evaluate."""
    if n < 0:
        raise ValueError('Number of derivatives must be non-negative, not {}.'.format(n))
    if max_order is not None and n > max_order:
        raise ValueError('Only derivatives up to order {} are supported, not {}.'.format(max_order, n))


class EvalCurve(abc.ABC):
    """A curve that can be evaluated and checked against an approximation."""

    @abc.abstractmethod
    def domain(self):
        """Return the (start, end) parameters of the curve."""

    def start(self):
        return self.domain()[0]

    def end(self):
        return self.domain()[1]

    @abc.abstractmethod
    def dimension(self):
        """Return the dimension of the space the curve lives in."""

    @abc.abstractmethod
    def evaluate(self, t):
        """Return the position at parameter t, as an array of shape (dim,)."""

    @abc.abstractmethod
    def evaluate_derivatives(self, t, n):
        """Return the position and its first n derivatives at parameter t, as an
        array of shape (n+1, dim)."""

    @abc.abstractmethod
    def approximation_ok(self, t, approxpos, tol1, tol2):
        """Return whether approxpos is an acceptable approximation of the curve
        at parameter t.

        tol1 bounds the spatial deviation; how (and whether) tol2 is used is up
        to the particular curve.
        """


class EvalCurveSet(abc.ABC):
    """A set of num_curves() curves sharing one parameter domain."""

    @abc.abstractmethod
    def domain(self):
        """Return the (start, end) parameters of the curves."""

    def start(self):
        return self.domain()[0]

    def end(self):
        return self.domain()[1]

    @abc.abstractmethod
    def dimension(self):
        """Return the dimension of the primary curve of the set."""

    @abc.abstractmethod
    def num_curves(self):
        """Return the number of curves in the set."""

    @abc.abstractmethod
    def evaluate(self, t):
        """Return a list of num_curves() positions at parameter t."""

    @abc.abstractmethod
    def evaluate_derivatives(self, t, n):
        """Return a list of num_curves() arrays, each of shape (n+1, dim_i),
        holding the position and first n derivatives of each curve."""

    @abc.abstractmethod
    def approximation_ok(self, t, approxpos, tol1, tol2):
        """Return whether the list of positions approxpos is an acceptable
        approximation of the curve set at parameter t."""
