import numpy
import pytest

from splinekernel.curve import closest_point
from splinekernel.curve import spline

def parabola():
    # quadratic Bezier curve tracing y = x**2 for x in [-1, 1]
    return spline.SplineCurve([0, 0, 0, 1, 1, 1], [[-1, 1], [0, -1], [1, 1]], 2)

def paraboloid():
    # z = x**2 + y**2 over [-1, 1]**2; x = 2u - 1, y = 2v - 1
    xs = [-1, 0, 1]
    a = [1, -1, 1]
    coefficients = [[[xs[i], xs[j], a[i] + a[j]] for j in range(3)] for i in range(3)]
    return spline.SplineSurface([0, 0, 0, 1, 1, 1], [0, 0, 0, 1, 1, 1], coefficients, 2, 2)

def test_line_midpoint():
    line = spline.SplineCurve.line([0, 0], [10, 0])
    result = closest_point.closest_point(line, [5, 3])
    assert result.converged
    assert result.parameter == pytest.approx(0.5)
    assert numpy.allclose(result.point, [5, 0])
    assert result.distance == pytest.approx(3)

def test_line_with_seed():
    line = spline.SplineCurve.line([0, 0], [10, 0])
    result = line.closest_point([5, 3], seed=0.9)
    assert result.converged
    assert result.parameter == pytest.approx(0.5)

def test_clamped_to_interval():
    line = spline.SplineCurve.line([0, 0], [10, 0])
    result = closest_point.closest_point(line, [5, 3], tmin=0, tmax=0.3)
    assert result.converged
    assert result.parameter == pytest.approx(0.3)
    assert numpy.allclose(result.point, [3, 0])
    result = closest_point.closest_point(line, [12, 1], seed=0.5)
    assert result.parameter == 1
    assert result.distance == pytest.approx(numpy.sqrt(5))

def test_curved():
    curve = parabola()
    target = numpy.array([1.0, 0.0])
    result = closest_point.closest_point(curve, target)
    assert result.converged
    # brute force along y = x**2
    x = numpy.linspace(-1, 1, 200001)
    distances = numpy.sqrt((x - target[0])**2 + (x**2 - target[1])**2)
    assert result.distance <= distances.min() + 1e-9
    assert (2 * result.parameter - 1) == pytest.approx(x[distances.argmin()], abs=1e-4)
    # the residual is perpendicular to the tangent
    tangent = curve.evaluate_derivatives(result.parameter, 1)[1]
    assert numpy.dot(tangent, result.point - target) == pytest.approx(0, abs=1e-8)

def test_unconverged_returns_best_effort():
    line = spline.SplineCurve.line([0, 0], [10, 0])
    result = closest_point.closest_point(line, [5, 3], seed=0.0, max_iterations=1)
    assert not result.converged
    assert result.parameter == 0
    assert result.distance == pytest.approx(numpy.sqrt(34))

def test_invalid_input():
    line = spline.SplineCurve.line([0, 0], [10, 0])
    with pytest.raises(ValueError):
        closest_point.closest_point(line, [5, 3, 1])
    with pytest.raises(ValueError):
        closest_point.closest_point(line, [5, 3], tmin=0.8, tmax=0.2)

def test_plane():
    plane = spline.SplineSurface.bilinear([0, 0, 0], [2, 0, 0], [0, 3, 0], [2, 3, 0])
    result = closest_point.closest_point_on_surface(plane, [1, 1.5, 4])
    assert result.converged
    assert numpy.allclose(result.parameter, [0.5, 0.5])
    assert numpy.allclose(result.point, [1, 1.5, 0])
    assert result.distance == pytest.approx(4)

def test_plane_domain_of_interest():
    plane = spline.SplineSurface.bilinear([0, 0, 0], [2, 0, 0], [0, 3, 0], [2, 3, 0])
    result = plane.closest_point([1, 1.5, 4], domain=spline.RectDomain(0, 0.25, 0, 1))
    assert result.converged
    assert numpy.allclose(result.parameter, [0.25, 0.5])

def test_paraboloid():
    surface = paraboloid()
    target = numpy.array([0.3, -0.2, -1.0])
    result = closest_point.closest_point_on_surface(surface, target)
    assert result.converged
    x, y = numpy.meshgrid(numpy.linspace(-1, 1, 801), numpy.linspace(-1, 1, 801))
    distances = numpy.sqrt((x - target[0])**2 + (y - target[1])**2 + (x**2 + y**2 - target[2])**2)
    assert result.distance <= distances.min() + 1e-9
    i = distances.argmin()
    assert numpy.allclose(2 * result.parameter - 1, [x.flat[i], y.flat[i]], atol=5e-3)

def test_surface_seed():
    surface = paraboloid()
    target = [0.3, -0.2, -1.0]
    unseeded = closest_point.closest_point_on_surface(surface, target)
    seeded = closest_point.closest_point_on_surface(surface, target, seed=(0.9, 0.1))
    assert seeded.converged
    assert numpy.allclose(seeded.parameter, unseeded.parameter, atol=1e-6)
