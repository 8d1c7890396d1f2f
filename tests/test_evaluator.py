import numpy
import pytest

from splinekernel.curve import evaluator

class Circle(evaluator.EvalCurve):
    def domain(self):
        return 0, numpy.pi

    def dimension(self):
        return 2

    def evaluate(self, t):
        return numpy.array([numpy.cos(t), numpy.sin(t)])

    def evaluate_derivatives(self, t, n):
        evaluator.check_derivative_order(n)
        return numpy.array([[numpy.cos(t + k*numpy.pi/2), numpy.sin(t + k*numpy.pi/2)] for k in range(n+1)])

    def approximation_ok(self, t, approxpos, tol1, tol2):
        return numpy.linalg.norm(self.evaluate(t) - approxpos) <= tol1

def test_abstract_classes():
    with pytest.raises(TypeError):
        evaluator.EvalCurve()
    with pytest.raises(TypeError):
        evaluator.EvalCurveSet()

def test_start_end():
    circle = Circle()
    assert circle.start() == 0
    assert circle.end() == numpy.pi
    ders = circle.evaluate_derivatives(0, 2)
    assert numpy.allclose(ders, [[1, 0], [0, 1], [-1, 0]])

def test_check_derivative_order():
    evaluator.check_derivative_order(0)
    evaluator.check_derivative_order(1, 1)
    with pytest.raises(ValueError):
        evaluator.check_derivative_order(-1)
    with pytest.raises(ValueError):
        evaluator.check_derivative_order(2, 1)
